"""
Prompt construction.

The orchestrator only depends on the PromptBuilder protocol; richer builders (personas, summarised history, ...)
can be plugged in. PlainPromptBuilder is the default: position, moves so far, legal moves, answer format.
"""

from typing import Protocol, Sequence

from arena.chess.position import Position
from arena.chess.rules import legal_moves, to_san
from arena.core.shared_types import Side
from arena.orchestrator.match import MoveRecord

ANSWER_FORMAT = (
    "Answer with exactly these lines:\n"
    "MOVE: <your move in standard algebraic notation, e.g. e4, Nf3, exd5, O-O, e8=Q>\n"
    "THOUGHT: <one sentence of private reasoning>\n"
    "TRASH: <one sentence for your opponent>"
)


class PromptBuilder(Protocol):
    def build_prompt(
        self, position: Position, side: Side, history: Sequence[MoveRecord]
    ) -> str: ...

    def build_correction_prompt(
        self, position: Position, side: Side, rejected_move: str, reason: str
    ) -> str: ...


def format_move_list(history: Sequence[MoveRecord]) -> str:
    """1. e4 e5 2. Nf3 ... (numbered by full moves, like a PGN move text)"""
    parts: list[str] = []
    for record in history:
        if record.side == Side.WHITE or not parts:
            number = record.move_number
            parts.append(f"{number}." if record.side == Side.WHITE else f"{number}...")
        parts.append(record.san)
    return " ".join(parts) if parts else "(no moves yet)"


class PlainPromptBuilder:
    def __init__(self, show_legal_moves: bool = True) -> None:
        self.show_legal_moves = show_legal_moves

    def build_prompt(
        self, position: Position, side: Side, history: Sequence[MoveRecord]
    ) -> str:
        lines = [
            f"You are playing chess as {side.value}. It is your move.",
            f"Position (FEN): {position.to_fen()}",
            f"Moves so far: {format_move_list(history)}",
        ]
        if self.show_legal_moves:
            lines.append(f"Legal moves: {self._legal_moves_san(position)}")
        lines.append(ANSWER_FORMAT)
        return "\n".join(lines)

    def build_correction_prompt(
        self, position: Position, side: Side, rejected_move: str, reason: str
    ) -> str:
        lines = [
            f"Your move {rejected_move!r} was rejected: {reason}",
            f"You are still {side.value} to move in this position (FEN): {position.to_fen()}",
        ]
        if self.show_legal_moves:
            lines.append(f"Pick one of these legal moves: {self._legal_moves_san(position)}")
        lines.append(ANSWER_FORMAT)
        return "\n".join(lines)

    def _legal_moves_san(self, position: Position) -> str:
        return ", ".join(to_san(position, move) for move in legal_moves(position))
