from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    DEFAULT_TIMEZONE: str = "Europe/Kyiv"
    TIMEZONE_WAIT_SECONDS: float = 2.0

    STORE_PROVIDER: str = "memory"  # "memory", "json", "postgrest"
    DATA_DIR: str = "./data/tutors"
    POSTGREST_URL: str | None = None
    POSTGREST_API_KEY: str | None = None
    POSTGREST_TIMEOUT_SECONDS: float = 10.0

    MIN_SESSION_MINUTES: int = 15
    MAX_SESSION_MINUTES: int = 480
    MAX_REPEAT_WEEKS: int = 12

    BOOKING_BUFFER_MINUTES: int = 30
    BOOKING_STEP_MINUTES: int = 30

    CALENDAR_POLL_SECONDS: float = 30.0


settings = Settings()
