from __future__ import annotations

import logging
from functools import lru_cache

from tutortrack.application.ports.booking_slot_store import BookingSlotStorePort
from tutortrack.application.ports.session_store import SessionStorePort
from tutortrack.application.ports.tutor_profile import TutorProfilePort
from tutortrack.application.use_cases.booking_slots import BookingSlotsUseCase
from tutortrack.application.use_cases.calendar_projection import CalendarProjector
from tutortrack.application.use_cases.public_booking import PublicBookingUseCase
from tutortrack.application.use_cases.schedule_sessions import ScheduleSessionsUseCase
from tutortrack.application.use_cases.session_mutations import SessionMutationsUseCase
from tutortrack.application.use_cases.timezone_resolver import TimezoneResolver
from tutortrack.core.config import settings
from tutortrack.infrastructure.store.json_store import JsonBookingSlotStore, JsonSessionStore
from tutortrack.infrastructure.store.memory_store import (
    MemoryBookingSlotStore,
    MemorySessionStore,
    MemoryTutorProfileStore,
)
from tutortrack.infrastructure.store.postgrest_store import (
    PostgrestBookingSlotStore,
    PostgrestClient,
    PostgrestSessionStore,
    PostgrestTutorProfileStore,
)

logger = logging.getLogger(__name__)


@lru_cache
def get_postgrest_client() -> PostgrestClient:
    return PostgrestClient()


@lru_cache
def get_session_store() -> SessionStorePort:
    provider = settings.STORE_PROVIDER.lower()
    logger.info("Using session store provider=%s", provider)
    if provider == "postgrest":
        return PostgrestSessionStore(get_postgrest_client())
    if provider == "json":
        return JsonSessionStore()
    return MemorySessionStore()


@lru_cache
def get_booking_slot_store() -> BookingSlotStorePort:
    provider = settings.STORE_PROVIDER.lower()
    if provider == "postgrest":
        return PostgrestBookingSlotStore(get_postgrest_client())
    if provider == "json":
        return JsonBookingSlotStore()
    return MemoryBookingSlotStore()


@lru_cache
def get_profile_source() -> TutorProfilePort:
    if settings.STORE_PROVIDER.lower() == "postgrest":
        return PostgrestTutorProfileStore(get_postgrest_client())
    return MemoryTutorProfileStore()


def get_timezone_resolver() -> TimezoneResolver:
    # one resolver per request: the HTTP surface serves many tutors
    return TimezoneResolver(profiles=get_profile_source())


def get_calendar_projector() -> CalendarProjector:
    return CalendarProjector()


def get_schedule_use_case() -> ScheduleSessionsUseCase:
    return ScheduleSessionsUseCase(store=get_session_store())


def get_mutations_use_case() -> SessionMutationsUseCase:
    return SessionMutationsUseCase(store=get_session_store())


def get_public_booking_use_case() -> PublicBookingUseCase:
    return PublicBookingUseCase(sessions=get_session_store(), slots=get_booking_slot_store())


def get_booking_slots_use_case() -> BookingSlotsUseCase:
    return BookingSlotsUseCase(slots=get_booking_slot_store())


def reset_dependencies() -> None:
    """Drop cached adapters (tests and settings reloads)."""
    for factory in (get_postgrest_client, get_session_store, get_booking_slot_store, get_profile_source):
        factory.cache_clear()
