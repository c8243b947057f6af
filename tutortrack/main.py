import logging

from fastapi import FastAPI

from tutortrack.api.v1.public import router as public_router
from tutortrack.api.v1.tutors import router as tutors_router
from tutortrack.core.config import settings


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("tutor_id", "session_id", "recurrence_id", "command", "reason", "skipped", "error"):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)

app = FastAPI(title="Tutor Session Scheduling", version="1.0.0")

app.include_router(tutors_router, prefix="/api/v1", tags=["tutors"])
app.include_router(public_router, prefix="/api/v1", tags=["public"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "env": settings.ENV}
