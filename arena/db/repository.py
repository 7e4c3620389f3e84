"""Protocol repository: the service only needs these operations, whatever stores the matches."""

from typing import Protocol
from uuid import UUID

from arena.core.models import MatchModel


class MatchRepository(Protocol):
    """Persistence layer orchestration"""

    def get_match(self, match_id: UUID) -> MatchModel | None:
        """Get match by ID, if record exists."""
        ...

    def create_match(self, match: MatchModel) -> tuple[MatchModel, UUID]:
        """Store new match and return the stored data + newly created match ID."""
        ...

    def update_match(self, match_id: UUID, match: MatchModel) -> MatchModel | None:
        """Overwrite an existing record with the latest snapshot."""
        ...

    def delete_match(self, match_id: UUID) -> MatchModel | None:
        """Remove a match's record."""
        ...

    def list_matches(self) -> list[tuple[UUID, MatchModel]]:
        """All stored matches, oldest first."""
        ...
