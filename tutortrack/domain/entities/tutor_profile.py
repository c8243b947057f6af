from dataclasses import dataclass

TIME_FORMAT_24H = "24h"
TIME_FORMAT_12H = "12h"


@dataclass(frozen=True)
class TutorProfile:
    id: str
    timezone: str | None = None
    currency: str = "USD"
    time_format: str = TIME_FORMAT_24H  # "24h" | "12h"
