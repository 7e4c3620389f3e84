"""
Orchestration of communication from the view layer to the orchestrator, director and persistence layers
(and the reverse direction).
"""

import logging
from typing import Optional
from uuid import UUID

from arena.api.models import (
    DeclareResultRequest,
    ForceMoveRequest,
    GetMatchRequest,
    LogEntryResponse,
    MatchResponse,
    MoveResponse,
    OverridePromptRequest,
    SetPositionRequest,
)
from arena.core.exceptions import RepositoryError
from arena.core.models import MatchModel
from arena.core.shared_types import MatchStatus, Outcome, Side, TerminationReason
from arena.db.repository import MatchRepository
from arena.orchestrator.director import Director
from arena.orchestrator.match import LogEntry, MatchState
from arena.orchestrator.orchestrator import TurnOrchestrator

log = logging.getLogger(__name__)


class MatchService:
    """
    Facade for one match.
    ----
    Views read the match through `get_match_state()` and write only through the controls and the director actions.
    Once the match has been saved, every control/director call also updates the stored record.
    """

    def __init__(
        self,
        repository: MatchRepository,
        orchestrator: TurnOrchestrator,
        director: Optional[Director] = None,
    ) -> None:
        self.repo = repository
        self.orchestrator = orchestrator
        self.director = director or Director(orchestrator)
        self.match_id: Optional[UUID] = None

    # -- Read access --
    def get_match_state(self) -> MatchResponse:
        """Used in the polling loop of a view to render board, status, counters and moves."""
        return self._create_match_response(
            self.match_id, self.orchestrator.state.to_model(), self.orchestrator.log
        )

    def get_stored_match(self, request: GetMatchRequest) -> MatchResponse:
        return self._create_match_response(request.match_id, self._fetch_match(request.match_id))

    def list_matches(self) -> list[MatchResponse]:
        return [
            self._create_match_response(match_id, model)
            for match_id, model in self.repo.list_matches()
        ]

    # -- Persistence --
    def save_match(self) -> MatchResponse:
        """Store the current match: a new record the first time, an update afterwards."""
        model = self.orchestrator.state.to_model()
        if self.match_id is None:
            _, self.match_id = self.repo.create_match(model)
            log.info("Saved match as %s", self.match_id)
        elif self.repo.update_match(self.match_id, model) is None:
            raise RepositoryError(f"Match with match_id={self.match_id} not found.")
        return self.get_match_state()

    def load_match(self, request: GetMatchRequest) -> MatchResponse:
        """Continue a stored match. The orchestrator must be idle (reset it first)."""
        model = self._fetch_match(request.match_id)
        self.orchestrator.restore(MatchState.from_model(model))
        self.match_id = request.match_id
        return self.get_match_state()

    def delete_match(self, request: GetMatchRequest) -> None:
        if self.repo.delete_match(request.match_id) is None:
            raise RepositoryError(f"Match with match_id={request.match_id} not found.")
        if self.match_id == request.match_id:
            self.match_id = None

    # -- Match controls --
    async def start(self) -> MatchResponse:
        await self.orchestrator.start()
        return self._after_change()

    async def pause(self) -> MatchResponse:
        await self.orchestrator.pause()
        return self._after_change()

    async def resume(self) -> MatchResponse:
        await self.orchestrator.resume()
        return self._after_change()

    async def reset(self) -> MatchResponse:
        """Back to a fresh match. The stored record (if any) is left alone; the next save creates a new one."""
        await self.orchestrator.reset()
        self.match_id = None
        return self.get_match_state()

    # -- Director actions --
    async def force_move(self, request: ForceMoveRequest) -> MatchResponse:
        await self.director.force_move(request.move, request.side)
        return self._after_change()

    async def skip_turn(self) -> MatchResponse:
        await self.director.skip_turn()
        return self._after_change()

    def override_prompt(self, request: OverridePromptRequest) -> MatchResponse:
        self.director.override_prompt(request.prompt)
        return self.get_match_state()

    async def set_position(self, request: SetPositionRequest) -> MatchResponse:
        await self.director.set_position(request.fen)
        return self._after_change()

    async def declare_result(self, request: DeclareResultRequest) -> MatchResponse:
        await self.director.declare_result(request.outcome)
        return self._after_change()

    # -- Internal helpers --
    def _after_change(self) -> MatchResponse:
        if self.match_id is not None:
            return self.save_match()
        return self.get_match_state()

    def _create_match_response(
        self,
        match_id: Optional[UUID],
        model: MatchModel,
        entries: Optional[list[LogEntry]] = None,
    ) -> MatchResponse:
        """Convert info in MatchModel to a MatchResponse."""

        # The history always starts with the position the match started from
        starting_fen = model.history_fen[0] if model.history_fen else model.current_fen
        side_to_move = Side.WHITE if model.current_fen.split(" ")[1] == "w" else Side.BLACK
        return MatchResponse(
            match_id=match_id,
            status=MatchStatus(model.status),
            fen_state=model.current_fen,
            starting_state=starting_fen,
            side_to_move=side_to_move,
            move_history=[
                MoveResponse(
                    ply=entry["ply"],
                    side=Side(entry["side"]),
                    san=entry["san"],
                    uci=entry["uci"],
                    commentary=entry.get("commentary"),
                    forced=entry.get("forced", False),
                )
                for entry in model.moves
            ],
            hallucinations=model.hallucinations,
            outcome=Outcome(model.outcome) if model.outcome else None,
            termination_reason=(
                TerminationReason(model.termination_reason) if model.termination_reason else None
            ),
            log=[
                LogEntryResponse(
                    kind=entry.kind,
                    message=entry.message,
                    side=entry.side,
                    timestamp=entry.timestamp,
                )
                for entry in entries or []
            ],
        )

    def _fetch_match(self, match_id: UUID) -> MatchModel:
        """Attempt to find the match in the repository and raise error if it fails."""
        match_model = self.repo.get_match(match_id)
        if match_model is None:
            raise RepositoryError(f"Match with {match_id=} not found.")
        return match_model
