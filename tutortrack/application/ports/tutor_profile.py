from abc import ABC, abstractmethod

from tutortrack.domain.entities.tutor_profile import TutorProfile


class TutorProfilePort(ABC):
    @abstractmethod
    async def get_profile(self, tutor_id: str) -> TutorProfile | None:
        """Read-only profile lookup. May raise when the upstream source is unavailable."""
        raise NotImplementedError
