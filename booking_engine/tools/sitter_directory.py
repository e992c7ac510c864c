"""
Sitter candidate directory.

Lists the sitters that can be recommended for a booking. The in-memory
directory can be switched offline to exercise the unreachable path.
"""

import logging
from typing import Iterable, Optional, Protocol

from booking_engine.errors import DependencyUnavailable, NotFound
from booking_engine.schemas.sitter_schema import SitterCandidate

logger = logging.getLogger(__name__)


class SitterDirectory(Protocol):
    async def list_active_sitters(self) -> list[SitterCandidate]: ...

    async def get_sitter(self, sitter_id: str) -> SitterCandidate: ...


class InMemorySitterDirectory:
    """SitterDirectory backed by a dict of candidates."""

    def __init__(self, sitters: Optional[Iterable[SitterCandidate]] = None) -> None:
        self._sitters: dict[str, SitterCandidate] = {s.id: s for s in sitters or ()}
        self.available = True

    def add_sitter(self, sitter: SitterCandidate) -> None:
        self._sitters[sitter.id] = sitter

    def _ensure_available(self) -> None:
        if not self.available:
            raise DependencyUnavailable("sitter directory")

    async def list_active_sitters(self) -> list[SitterCandidate]:
        self._ensure_available()
        return [s for s in self._sitters.values() if s.is_active]

    async def get_sitter(self, sitter_id: str) -> SitterCandidate:
        self._ensure_available()
        sitter = self._sitters.get(sitter_id)
        if sitter is None:
            raise NotFound("sitter", sitter_id)
        return sitter

    def reset(self) -> None:
        """Clear all sitters and bring the directory back online."""
        self._sitters.clear()
        self.available = True
