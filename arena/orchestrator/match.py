"""
The match record owned by the orchestrator: position, history, logs, counters, status.

Views get read access through the orchestrator; only the orchestrator (and the director through it) writes.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional, Self

from arena.chess.pieces import PLAYER_COLORS, Color
from arena.chess.position import Position
from arena.chess.rules import side_of
from arena.core.exceptions import MatchStateError
from arena.core.models import MatchModel
from arena.core.shared_types import (
    LogKind,
    MatchResult,
    MatchStatus,
    Outcome,
    Side,
    TerminationReason,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LogEntry:
    kind: LogKind
    message: str
    side: Optional[Side] = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class MoveRecord:
    """One applied ply, as shown in the move list and fed back into prompts."""

    ply: int
    move_number: int
    side: Side
    notation: str  # as proposed (by the agent or the director)
    san: str
    uci: str
    fen_after: str
    commentary: Optional[str] = None
    forced: bool = False


@dataclass
class AgentStats:
    """
    Per-agent counters.

    `hallucinations` counts *consecutive* invalid moves and is what gets compared against the ceiling.
    It goes back to 0 as soon as the agent gets a move accepted.
    """

    hallucinations: int = 0
    total_hallucinations: int = 0
    requests: int = 0
    moves: int = 0


@dataclass
class MatchState:
    position: Position
    # positions reached during the match, starting position first, current position last
    history: list[Position]
    moves: list[MoveRecord] = field(default_factory=list)
    log: list[LogEntry] = field(default_factory=list)
    status: MatchStatus = MatchStatus.IDLE
    result: Optional[MatchResult] = None
    agents: dict[Color, AgentStats] = field(
        default_factory=lambda: {color: AgentStats() for color in PLAYER_COLORS}
    )

    @classmethod
    def new(cls, starting_position: Optional[Position] = None) -> Self:
        position = starting_position or Position.starting()
        return cls(position=position, history=[position])

    @property
    def side_to_move(self) -> Side:
        return side_of(self.position.color_to_move)

    def replace_position(self, position: Position) -> None:
        """Positions are never edited: a new one replaces the old and is appended to the history."""
        self.position = position
        self.history.append(position)

    def record(self, kind: LogKind, message: str, color: Optional[Color] = None) -> LogEntry:
        entry = LogEntry(kind, message, side_of(color) if color is not None else None)
        self.log.append(entry)
        return entry

    def hallucination_counts(self) -> dict[Side, int]:
        return {side_of(color): stats.hallucinations for color, stats in self.agents.items()}

    def to_model(self) -> MatchModel:
        """Encode into the format the Service layer uses (the log is not persisted)."""
        return MatchModel(
            current_fen=self.position.to_fen(),
            history_fen=[position.to_fen() for position in self.history],
            moves=[asdict(record) for record in self.moves],
            status=self.status.value,
            outcome=self.result.outcome.value if self.result else None,
            termination_reason=self.result.reason.value if self.result else None,
            hallucinations={side.value: count for side, count in self.hallucination_counts().items()},
        )

    @classmethod
    def from_model(cls, model: MatchModel) -> Self:
        """Rebuild a match record from a stored snapshot."""
        if model.status not in MatchStatus.__members__.values():
            raise MatchStateError(
                f"Invalid status code: {model.status!r}. Pick one from {', '.join(MatchStatus)}"
            )
        if (model.outcome is None) != (model.termination_reason is None):
            raise MatchStateError("A stored result needs both an outcome and a termination reason")

        position = Position.from_fen(model.current_fen)
        history = [Position.from_fen(fen) for fen in model.history_fen] or [position]
        moves = [MoveRecord(**{**entry, "side": Side(entry["side"])}) for entry in model.moves]
        result = (
            MatchResult(Outcome(model.outcome), TerminationReason(model.termination_reason))
            if model.outcome is not None and model.termination_reason is not None
            else None
        )
        state = cls(
            position=position,
            history=history,
            moves=moves,
            status=MatchStatus(model.status),
            result=result,
        )
        for color, stats in state.agents.items():
            stats.hallucinations = model.hallucinations.get(side_of(color).value, 0)
        return state
