"""
The director: a human operator with override powers over the orchestrator.

Every action is checked against the match status (and, for forced moves, against the rules) *before* anything
is touched. A rejected action raises DirectorError and leaves the match exactly as it was.
"""

import logging

from arena.chess.position import Position
from arena.chess.rules import apply_move, color_of, side_of, validate_move
from arena.core.exceptions import DirectorError, InvalidFENError
from arena.core.shared_types import (
    LogKind,
    MatchResult,
    MatchStatus,
    Outcome,
    Side,
    TerminationReason,
)
from arena.orchestrator.orchestrator import TurnOrchestrator

log = logging.getLogger(__name__)

FORCE_MOVE_STATUSES = frozenset(
    {MatchStatus.RUNNING, MatchStatus.PAUSED, MatchStatus.WAITING_FOR_DIRECTOR}
)
SKIP_TURN_STATUSES = frozenset({MatchStatus.PAUSED, MatchStatus.WAITING_FOR_DIRECTOR})
DECLARE_RESULT_STATUSES = frozenset(
    {
        MatchStatus.RUNNING,
        MatchStatus.PAUSED,
        MatchStatus.WAITING_FOR_DIRECTOR,
        MatchStatus.ERROR,
    }
)


class Director:
    def __init__(self, orchestrator: TurnOrchestrator) -> None:
        self.orchestrator = orchestrator

    @property
    def status(self) -> MatchStatus:
        return self.orchestrator.status

    async def force_move(self, move: str, side: Side) -> None:
        """
        Play `move` for `side` instead of asking its agent.
        The move still has to be legal, and it has to be `side`'s turn.
        """
        self._require(FORCE_MOVE_STATUSES, "force a move")
        position = self.orchestrator.position
        color = color_of(side)
        if color != position.color_to_move:
            raise DirectorError(
                f"Cannot force a move for {side.value}: it is {side_of(position.color_to_move).value} to move"
            )

        verdict = validate_move(position, move, self.orchestrator.default_promotion)
        if not verdict.legal or verdict.move is None:
            log.warning("Director forced move %r rejected: %s", move, verdict.reason)
            raise DirectorError(f"Forced move rejected: {verdict.reason}")

        await self.orchestrator.interrupt_turn()
        new_position = apply_move(position, verdict.move)
        record = self.orchestrator.build_move_record(
            color, verdict.notation, verdict.move, new_position, forced=True
        )
        self.orchestrator.replace_position(
            new_position, f"Director forced {record.san} for {side.value}", record
        )
        await self.orchestrator.continue_after_director()

    async def skip_turn(self) -> None:
        """Hand the move to the other side without moving a piece."""
        self._require(SKIP_TURN_STATUSES, "skip a turn")
        position = self.orchestrator.position
        skipped = side_of(position.color_to_move)

        await self.orchestrator.interrupt_turn()
        new_position = position.with_side_to_move(position.color_to_move.opponent)
        self.orchestrator.replace_position(new_position, f"Director skipped {skipped.value}'s turn")
        await self.orchestrator.continue_after_director()

    def override_prompt(self, text: str) -> None:
        """Replace the prompt of the next agent request (only that one)."""
        if not text or not text.strip():
            raise DirectorError("Prompt override cannot be empty")
        if self.status == MatchStatus.GAME_OVER:
            raise DirectorError("Cannot override the prompt: the match is over")

        self.orchestrator.set_prompt_override(text)
        self.orchestrator.state.record(LogKind.DIRECTOR, "Prompt override queued for the next request")
        log.info("Director queued a prompt override (%d chars)", len(text))

    async def set_position(self, position: Position | str) -> None:
        """
        Replace the position outright. No legality check: the director is trusted.
        A FEN string is accepted, but it must at least be a well-formed FEN.
        """
        self._require(
            frozenset(MatchStatus) - {MatchStatus.GAME_OVER}, "set the position"
        )
        if isinstance(position, str):
            try:
                position = Position.from_fen(position)
            except InvalidFENError as exc:
                raise DirectorError(f"Cannot set position: {exc}") from exc

        await self.orchestrator.interrupt_turn()
        self.orchestrator.replace_position(position, f"Director set the position to {position.to_fen()}")
        await self.orchestrator.continue_after_director(resume_waiting=False)

    async def declare_result(self, outcome: Outcome) -> None:
        self._require(DECLARE_RESULT_STATUSES, "declare a result")
        result = MatchResult(outcome, TerminationReason.DIRECTOR_DECISION)
        self.orchestrator.state.record(LogKind.DIRECTOR, f"Director declared the result: {result.describe()}")
        await self.orchestrator.end_match(result)

    def _require(self, allowed: frozenset[MatchStatus], action: str) -> None:
        if self.status not in allowed:
            message = f"Cannot {action} while the match is {self.status.value}"
            log.warning("Director action rejected: %s", message)
            raise DirectorError(message)
