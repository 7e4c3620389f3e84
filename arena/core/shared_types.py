"""
Type definitions used across layers
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional, Self


class MatchStatus(StrEnum):
    """Owned by the orchestrator's state machine. The rule engine never reads or writes it."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    WAITING_FOR_DIRECTOR = "waiting_for_director"
    ERROR = "error"
    GAME_OVER = "game_over"


class Outcome(StrEnum):
    WHITE_WINS = "white_wins"
    BLACK_WINS = "black_wins"
    DRAW = "draw"


class TerminationReason(StrEnum):
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    INSUFFICIENT_MATERIAL = "insufficient_material"
    THREEFOLD_REPETITION = "threefold_repetition"
    FIFTY_MOVE_RULE = "fifty_move_rule"
    DIRECTOR_DECISION = "director_decision"


class Side(StrEnum):
    """Transport-safe names of the two sides (the chess layer has its own Color enum)."""

    WHITE = "white"
    BLACK = "black"


@dataclass(frozen=True)
class MatchResult:
    """Only present once the match is over."""

    outcome: Outcome
    reason: TerminationReason

    @classmethod
    def draw(cls, reason: TerminationReason) -> Self:
        return cls(Outcome.DRAW, reason)

    @classmethod
    def win_for(cls, side: Side, reason: TerminationReason) -> Self:
        outcome = Outcome.WHITE_WINS if side == Side.WHITE else Outcome.BLACK_WINS
        return cls(outcome, reason)

    @property
    def winner(self) -> Optional[Side]:
        if self.outcome == Outcome.WHITE_WINS:
            return Side.WHITE
        if self.outcome == Outcome.BLACK_WINS:
            return Side.BLACK
        return None

    def describe(self) -> str:
        if self.winner is None:
            return f"draw by {self.reason.value.replace('_', ' ')}"
        return f"{self.winner.value} wins by {self.reason.value.replace('_', ' ')}"


class PromotionPiece(StrEnum):
    QUEEN = "queen"
    ROOK = "rook"
    BISHOP = "bishop"
    KNIGHT = "knight"


class LogKind(StrEnum):
    """Categories of the append-only match log shown by the view layer."""

    SYSTEM = "system"
    TURN = "turn"
    MOVE = "move"
    THOUGHT = "thought"
    TRASH = "trash"
    HALLUCINATION = "hallucination"
    ERROR = "error"
    DIRECTOR = "director"
