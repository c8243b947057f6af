"""
Tests for resolving the tutor's canonical timezone.
"""

from __future__ import annotations

import pytest

from tutortrack.application.exceptions import InvalidTimezone, TimezoneNotReady
from tutortrack.application.ports.tutor_profile import TutorProfilePort
from tutortrack.application.use_cases.timezone_resolver import TimezoneResolver
from tutortrack.domain.entities.tutor_profile import TutorProfile
from tutortrack.infrastructure.store.memory_store import MemoryTutorProfileStore


class UnavailableProfiles(TutorProfilePort):
    async def get_profile(self, tutor_id: str) -> TutorProfile | None:
        raise ConnectionError("profile service down")


def make_resolver(*profiles: TutorProfile) -> TimezoneResolver:
    return TimezoneResolver(MemoryTutorProfileStore(list(profiles)), default_timezone="Europe/Kyiv")


def test_zone_unavailable_before_resolution():
    resolver = make_resolver()
    assert resolver.resolved is False
    with pytest.raises(TimezoneNotReady):
        resolver.timezone
    with pytest.raises(TimezoneNotReady):
        resolver.zone


@pytest.mark.asyncio
async def test_resolves_profile_zone_and_time_format():
    resolver = make_resolver(TutorProfile(id="t1", timezone="America/New_York", time_format="12h"))

    assert await resolver.resolve("t1") == "America/New_York"
    assert resolver.zone.key == "America/New_York"
    assert resolver.time_format == "12h"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "profiles",
    [
        [],
        [TutorProfile(id="t1", timezone=None)],
        [TutorProfile(id="t1", timezone="Atlantis/Capital")],
    ],
)
async def test_falls_back_to_default(profiles):
    resolver = make_resolver(*profiles)

    assert await resolver.resolve("t1") == "Europe/Kyiv"
    assert resolver.resolved is True


@pytest.mark.asyncio
async def test_profile_source_failure_falls_back_to_default():
    resolver = TimezoneResolver(UnavailableProfiles(), default_timezone="UTC")

    assert await resolver.resolve("t1") == "UTC"


@pytest.mark.asyncio
async def test_wait_for_zone_times_out_to_default():
    resolver = make_resolver()

    zone = await resolver.wait_for_zone(timeout=0.01)

    assert zone.key == "Europe/Kyiv"
    assert resolver.resolved is False


@pytest.mark.asyncio
async def test_wait_for_zone_returns_resolved_zone():
    resolver = make_resolver(TutorProfile(id="t1", timezone="Asia/Tokyo"))
    await resolver.on_sign_in("t1")

    assert (await resolver.wait_for_zone(timeout=0.01)).key == "Asia/Tokyo"


@pytest.mark.asyncio
async def test_profile_update_and_sign_out():
    profiles = MemoryTutorProfileStore([TutorProfile(id="t1", timezone="Asia/Tokyo")])
    resolver = TimezoneResolver(profiles, default_timezone="Europe/Kyiv")
    await resolver.on_sign_in("t1")

    profiles.put(TutorProfile(id="t1", timezone="America/Chicago"))
    assert await resolver.on_profile_update("t1") == "America/Chicago"

    resolver.on_sign_out()
    assert resolver.timezone == "Europe/Kyiv"


def test_set_timezone_validates_name():
    resolver = make_resolver()
    with pytest.raises(InvalidTimezone):
        resolver.set_timezone("Nowhere/Land")
    resolver.set_timezone("Europe/London")
    assert resolver.timezone == "Europe/London"
