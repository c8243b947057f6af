from __future__ import annotations

import asyncio
import logging
from zoneinfo import ZoneInfo

from tutortrack.application.exceptions import TimezoneNotReady
from tutortrack.application.ports.tutor_profile import TutorProfilePort
from tutortrack.application.utils.instant_converter import get_zone, is_valid_timezone
from tutortrack.core.config import settings
from tutortrack.domain.entities.tutor_profile import TIME_FORMAT_24H, TutorProfile


class TimezoneResolver:
    """
    Holds the canonical IANA zone of the signed-in tutor.

    Readers use ``zone``/``timezone``, which raise ``TimezoneNotReady`` until a
    resolution has completed. Only an outer boundary should call
    ``wait_for_zone``, which substitutes the default zone after a bounded wait.
    """

    def __init__(self, profiles: TutorProfilePort, default_timezone: str | None = None) -> None:
        self._profiles = profiles
        self._default_timezone = default_timezone or settings.DEFAULT_TIMEZONE
        self._timezone: str | None = None
        self._time_format: str = TIME_FORMAT_24H
        self._resolved = asyncio.Event()
        self._logger = logging.getLogger(__name__)

    @property
    def resolved(self) -> bool:
        return self._resolved.is_set()

    @property
    def default_timezone(self) -> str:
        return self._default_timezone

    @property
    def timezone(self) -> str:
        if not self._resolved.is_set() or self._timezone is None:
            raise TimezoneNotReady("Tutor timezone has not been resolved yet")
        return self._timezone

    @property
    def zone(self) -> ZoneInfo:
        return get_zone(self.timezone)

    @property
    def time_format(self) -> str:
        return self._time_format

    async def resolve(self, tutor_id: str) -> str:
        profile: TutorProfile | None = None
        try:
            profile = await self._profiles.get_profile(tutor_id)
        except Exception as e:
            self._logger.error(
                "Error fetching tutor timezone, using default",
                extra={"tutor_id": tutor_id, "error": str(e), "timezone": self._default_timezone},
            )

        name = profile.timezone if profile else None
        if not is_valid_timezone(name):
            if profile is not None:
                self._logger.warning(
                    "Tutor timezone missing or unknown, using default",
                    extra={"tutor_id": tutor_id, "reason": repr(name)},
                )
            name = self._default_timezone

        self._timezone = name
        self._time_format = profile.time_format if profile else TIME_FORMAT_24H
        self._resolved.set()
        self._logger.info("Tutor timezone resolved", extra={"tutor_id": tutor_id, "timezone": name})
        return name

    async def on_sign_in(self, tutor_id: str) -> str:
        return await self.resolve(tutor_id)

    async def on_profile_update(self, tutor_id: str) -> str:
        return await self.resolve(tutor_id)

    def on_sign_out(self) -> None:
        self._timezone = self._default_timezone
        self._time_format = TIME_FORMAT_24H
        self._resolved.set()

    def set_timezone(self, name: str) -> None:
        """Manual change from the profile form; validates the zone name first."""
        get_zone(name)
        self._timezone = name
        self._resolved.set()

    async def wait_for_zone(self, timeout: float | None = None) -> ZoneInfo:
        wait = settings.TIMEZONE_WAIT_SECONDS if timeout is None else timeout
        try:
            await asyncio.wait_for(self._resolved.wait(), timeout=wait)
        except asyncio.TimeoutError:
            self._logger.warning(
                "Timezone not resolved in time, using default",
                extra={"timezone": self._default_timezone, "reason": "timeout"},
            )
            return get_zone(self._default_timezone)
        return self.zone
