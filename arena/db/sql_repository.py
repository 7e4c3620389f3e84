"""Implementation of (Match)Repository using SQLAlchemy"""

import logging
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from arena.core.models import MatchModel
from arena.db.schema import DBMatch

log = logging.getLogger(__name__)


class SQLMatchRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_match(self, match_id: UUID) -> MatchModel | None:
        match_db = self._fetch_match(match_id)
        if match_db:
            return self._to_model(match_db)
        return None

    def create_match(self, match: MatchModel) -> tuple[MatchModel, UUID]:
        new_id = uuid4()
        match_db = DBMatch(id=new_id)
        self._copy_into(match_db, match)
        self.db.add(match_db)
        self.db.commit()
        self.db.refresh(match_db)
        log.debug("Stored new match %s", new_id)
        return self._to_model(match_db), new_id

    def update_match(self, match_id: UUID, match: MatchModel) -> MatchModel | None:
        match_db = self._fetch_match(match_id)
        if not match_db:
            return None
        self._copy_into(match_db, match)
        self.db.commit()
        self.db.refresh(match_db)
        return self._to_model(match_db)

    def delete_match(self, match_id: UUID) -> MatchModel | None:
        match_db = self._fetch_match(match_id)
        if not match_db:
            return None
        match_model = self._to_model(match_db)
        self.db.delete(match_db)
        self.db.commit()
        return match_model

    def list_matches(self) -> list[tuple[UUID, MatchModel]]:
        query = select(DBMatch).order_by(DBMatch.created_at)
        return [(match_db.id, self._to_model(match_db)) for match_db in self.db.scalars(query)]

    def _fetch_match(self, match_id: UUID) -> DBMatch | None:
        query = select(DBMatch).where(DBMatch.id == match_id)
        return self.db.scalar(query)

    @staticmethod
    def _copy_into(match_db: DBMatch, match: MatchModel) -> None:
        # JSON columns only notice reassignment, so always hand over fresh containers
        match_db.current_fen = match.current_fen
        match_db.history_fen = list(match.history_fen)
        match_db.moves = [dict(entry) for entry in match.moves]
        match_db.status = match.status
        match_db.outcome = match.outcome
        match_db.termination_reason = match.termination_reason
        match_db.hallucinations = dict(match.hallucinations)

    def _to_model(self, match_db: DBMatch) -> MatchModel:
        """Convert SQLAlchemy model to data transfer model."""
        return MatchModel(
            current_fen=match_db.current_fen,
            history_fen=list(match_db.history_fen),
            moves=[dict(entry) for entry in match_db.moves],
            status=match_db.status,
            outcome=match_db.outcome,
            termination_reason=match_db.termination_reason,
            hallucinations=dict(match_db.hallucinations),
        )
