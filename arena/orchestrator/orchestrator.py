"""
The TurnOrchestrator drives a match between two agents.

It owns the match record (position, history, status, counters) and is the only place where MatchStatus changes.
One turn:

1. stop if the position is already terminal (never ask for a move in a finished game)
2. ask the agent of the side to move for a move (one-shot or streamed)
3. extract the move (+ commentary) from the reply
4. validate it. An invalid move is a hallucination: count it, and while below the ceiling send one corrective
   request carrying the rejection reason. A second failure (or a counter already at the ceiling) hands
   control to the director.
5. apply the move, reset the agent's counter, log move and commentary
6. after the inter-turn delay, the next turn follows (unless the status changed meanwhile)

All turns run inside one asyncio task. Pause, reset and director actions cancel that task, which aborts the
outstanding agent request or the inter-turn delay, whichever is being awaited.
Every interrupt also bumps the turn epoch: replies and loops of an older epoch are dropped.
"""

import asyncio
import logging
from typing import Callable, Mapping, Optional

from arena.chess.moves import Move
from arena.chess.pieces import PLAYER_COLORS, Color, PieceType
from arena.chess.position import Position
from arena.chess.rules import (
    MoveVerdict,
    apply_move,
    side_of,
    terminal_state,
    to_san,
    validate_move,
)
from arena.core.config import OrchestratorSettings
from arena.core.exceptions import MatchStateError
from arena.core.shared_types import LogKind, MatchResult, MatchStatus, Side
from arena.orchestrator.agents import AgentAdapter, collect_reply
from arena.orchestrator.match import LogEntry, MatchState, MoveRecord
from arena.orchestrator.prompts import PlainPromptBuilder, PromptBuilder
from arena.orchestrator.replies import AgentReply, ReplyParser, extract_reply

log = logging.getLogger(__name__)

PROMOTION_PIECES: dict[str, PieceType] = {
    "queen": PieceType.QUEEN,
    "rook": PieceType.ROOK,
    "bishop": PieceType.BISHOP,
    "knight": PieceType.KNIGHT,
}

# Which status may follow which. reset() is allowed from anywhere and handled separately.
TRANSITIONS: dict[MatchStatus, frozenset[MatchStatus]] = {
    MatchStatus.IDLE: frozenset({MatchStatus.RUNNING}),
    MatchStatus.RUNNING: frozenset(
        {
            MatchStatus.PAUSED,
            MatchStatus.GAME_OVER,
            MatchStatus.WAITING_FOR_DIRECTOR,
            MatchStatus.ERROR,
        }
    ),
    MatchStatus.PAUSED: frozenset({MatchStatus.RUNNING, MatchStatus.GAME_OVER}),
    MatchStatus.WAITING_FOR_DIRECTOR: frozenset(
        {MatchStatus.RUNNING, MatchStatus.GAME_OVER}
    ),
    MatchStatus.ERROR: frozenset({MatchStatus.GAME_OVER}),
    MatchStatus.GAME_OVER: frozenset(),
}

DeltaListener = Callable[[Side, str], None]


class TurnOrchestrator:
    def __init__(
        self,
        agents: Mapping[Color, AgentAdapter],
        prompt_builder: Optional[PromptBuilder] = None,
        settings: Optional[OrchestratorSettings] = None,
        starting_position: Optional[Position] = None,
        reply_parser: ReplyParser = extract_reply,
        on_delta: Optional[DeltaListener] = None,
    ) -> None:
        missing = [color.name.lower() for color in PLAYER_COLORS if color not in agents]
        if missing:
            raise MatchStateError(f"No agent configured for: {', '.join(missing)}")

        self.agents = dict(agents)
        self.prompt_builder = prompt_builder or PlainPromptBuilder()
        self.settings = settings or OrchestratorSettings()
        self.reply_parser = reply_parser
        self.on_delta = on_delta
        self.starting_position = starting_position or Position.starting()
        self.state = MatchState.new(self.starting_position)

        self._loop_task: Optional[asyncio.Task[None]] = None
        self._turn_in_flight = False
        # bumped on every cancel; a reply belonging to an older epoch is thrown away
        self._epoch = 0
        self._prompt_override: Optional[str] = None

    # --- READ ACCESS FOR VIEWS ---
    @property
    def position(self) -> Position:
        return self.state.position

    @property
    def status(self) -> MatchStatus:
        return self.state.status

    @property
    def result(self) -> Optional[MatchResult]:
        return self.state.result

    @property
    def history(self) -> list[Position]:
        return list(self.state.history)

    @property
    def moves(self) -> list[MoveRecord]:
        return list(self.state.moves)

    @property
    def log(self) -> list[LogEntry]:
        return list(self.state.log)

    @property
    def hallucinations(self) -> dict[Side, int]:
        return self.state.hallucination_counts()

    @property
    def turn_in_flight(self) -> bool:
        return self._turn_in_flight

    @property
    def pending_prompt_override(self) -> Optional[str]:
        return self._prompt_override

    @property
    def default_promotion(self) -> Optional[PieceType]:
        promotion = self.settings.default_promotion
        return PROMOTION_PIECES[promotion.value] if promotion is not None else None

    # --- CONTROLS ---
    async def start(self) -> None:
        self._require_status(MatchStatus.IDLE, action="start")
        self._transition(MatchStatus.RUNNING)
        white, black = self.agents[Color.WHITE].name, self.agents[Color.BLACK].name
        self.state.record(LogKind.SYSTEM, f"Match started: {white} (white) vs {black} (black)")
        self._schedule()

    async def pause(self) -> None:
        self._require_status(MatchStatus.RUNNING, action="pause")
        await self.interrupt_turn()
        self._transition(MatchStatus.PAUSED)
        self.state.record(LogKind.SYSTEM, "Match paused")

    async def resume(self) -> None:
        self._require_status(MatchStatus.PAUSED, action="resume")
        self._transition(MatchStatus.RUNNING)
        self.state.record(LogKind.SYSTEM, "Match resumed")
        self._schedule()

    async def reset(self) -> None:
        """Back to Idle with the starting position. Allowed in every status."""
        await self.interrupt_turn()
        self.state = MatchState.new(self.starting_position)
        self._prompt_override = None
        log.info("Match reset")

    def restore(self, state: MatchState) -> None:
        """
        Take over a stored match record. Only an idle orchestrator can do that.
        A match stored while running comes back paused: play continues on resume().
        """
        self._require_status(MatchStatus.IDLE, action="restore a match")
        if state.status == MatchStatus.RUNNING:
            state.status = MatchStatus.PAUSED
        self.state = state
        self.state.record(
            LogKind.SYSTEM,
            f"Match restored at move {state.position.full_move_number} ({state.status.value})",
        )
        log.info("Restored match in status %s", state.status.value)

    async def wait_until_stopped(self) -> None:
        """Wait for the turn loop to finish (i.e. for the status to leave Running)."""
        task = self._loop_task
        if task is not None:
            await asyncio.wait([task])

    # --- PRIVILEGED HOOKS (used by the Director) ---
    def set_prompt_override(self, text: str) -> None:
        self._prompt_override = text

    async def interrupt_turn(self) -> None:
        """Cancel whatever the turn loop is awaiting (agent request or delay). The status is left untouched."""
        self._epoch += 1
        task, self._loop_task = self._loop_task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        await asyncio.wait([task])

    def replace_position(
        self,
        position: Position,
        message: str,
        move_record: Optional[MoveRecord] = None,
    ) -> None:
        self.state.replace_position(position)
        if move_record is not None:
            self.state.moves.append(move_record)
        self.state.record(LogKind.DIRECTOR, message)
        log.info("Director: %s", message)

    async def continue_after_director(self, resume_waiting: bool = True) -> None:
        """
        After a director action the match carries on in the way the status dictates:

        * waiting for the director: play resumes (unless `resume_waiting` is off)
        * running: the interrupted loop is restarted
        * paused: stays paused
        A position that is now terminal ends the match instead.
        """
        if self.state.status in (MatchStatus.RUNNING, MatchStatus.PAUSED, MatchStatus.WAITING_FOR_DIRECTOR):
            if self._check_terminal():
                return
        if resume_waiting and self.state.status == MatchStatus.WAITING_FOR_DIRECTOR:
            self._transition(MatchStatus.RUNNING)
            self.state.record(LogKind.SYSTEM, "Automatic play resumed")
        if self.state.status == MatchStatus.RUNNING:
            self._schedule()

    async def end_match(self, result: MatchResult) -> None:
        await self.interrupt_turn()
        self._finish(result)

    def build_move_record(
        self,
        color: Color,
        notation: str,
        move: Move,
        position_after: Position,
        commentary: Optional[str] = None,
        forced: bool = False,
    ) -> MoveRecord:
        return MoveRecord(
            ply=len(self.state.moves) + 1,
            move_number=self.state.position.full_move_number,
            side=side_of(color),
            notation=notation,
            san=to_san(self.state.position, move),
            uci=move.to_uci(),
            fen_after=position_after.to_fen(),
            commentary=commentary,
            forced=forced,
        )

    # --- THE TURN LOOP ---
    def _schedule(self) -> None:
        if self._loop_task is not None and not self._loop_task.done():
            return
        self._loop_task = asyncio.create_task(self._run_loop(), name="arena-turn-loop")

    async def _run_loop(self) -> None:
        # Leave as soon as an interrupt bumps the epoch, even when its cancel never arrived.
        epoch = self._epoch
        while self.state.status == MatchStatus.RUNNING and epoch == self._epoch:
            await self.play_turn(epoch)
            if self.state.status != MatchStatus.RUNNING or epoch != self._epoch:
                break
            await asyncio.sleep(self.settings.turn_delay_seconds)

    async def play_turn(self, epoch: Optional[int] = None) -> None:
        """
        Play exactly one turn. Only one turn can be in flight at a time.

        A collaborator failing halfway (prompt builder, reply parser, ...) moves the match to Error.
        """
        if self._turn_in_flight:
            raise MatchStateError("A turn is already in progress")
        self._require_status(MatchStatus.RUNNING, action="play a turn")
        epoch = self._epoch if epoch is None else epoch

        self._turn_in_flight = True
        try:
            await self._play_turn(epoch)
        except Exception as exc:
            if epoch != self._epoch:
                log.warning("Dropping the failure of an interrupted turn: %r", exc)
                return
            if self.state.status != MatchStatus.RUNNING:
                raise
            log.exception("Turn failed")
            self._fail(self.state.position.color_to_move, f"Turn failed: {exc!r}")
        finally:
            self._turn_in_flight = False

    async def _play_turn(self, epoch: int) -> None:
        if self._check_terminal():
            return

        color = self.state.position.color_to_move
        agent = self.agents[color]
        stats = self.state.agents[color]
        self.state.record(LogKind.TURN, f"{agent.name}'s turn ({side_of(color).value})", color)

        reply = await self._ask(color, self._take_prompt(color), epoch)
        if reply is None:
            return
        verdict = self._judge(reply)

        if not verdict.legal:
            self._register_hallucination(color, verdict)
            if stats.hallucinations >= self.settings.max_hallucination_retries:
                self._halt_for_director(color)
                return

            correction = self.prompt_builder.build_correction_prompt(
                self.state.position,
                side_of(color),
                verdict.notation,
                verdict.reason or "",
            )
            reply = await self._ask(color, correction, epoch)
            if reply is None:
                return
            verdict = self._judge(reply)
            if not verdict.legal:
                self._register_hallucination(color, verdict)
                self._halt_for_director(color)
                return

        self._commit_agent_move(color, verdict, reply)
        self._check_terminal()

    def _take_prompt(self, color: Color) -> str:
        """A director override replaces the regular prompt for this one request, then it is gone."""
        if self._prompt_override is not None:
            prompt, self._prompt_override = self._prompt_override, None
            self.state.record(LogKind.DIRECTOR, "Director replaced the prompt for this turn", color)
            return prompt
        return self.prompt_builder.build_prompt(
            self.state.position, side_of(color), list(self.state.moves)
        )

    async def _ask(self, color: Color, prompt: str, epoch: int) -> Optional[AgentReply]:
        """
        Request a reply from the agent.

        Returns None when there is nothing to judge: the request failed (status becomes Error)
        or the turn was cancelled while the reply was underway.
        """
        agent = self.agents[color]
        self.state.agents[color].requests += 1
        on_delta = None
        if self.on_delta is not None:
            listener, side = self.on_delta, side_of(color)
            on_delta = lambda delta: listener(side, delta)  # noqa: E731

        try:
            async with asyncio.timeout(self.settings.request_timeout_seconds):
                content = await collect_reply(
                    agent, prompt, self.settings.use_streaming, on_delta
                )
        except TimeoutError:
            self._fail(
                color,
                f"{agent.name} did not answer within {self.settings.request_timeout_seconds}s",
            )
            return None
        except Exception as exc:
            self._fail(color, f"{agent.name} request failed: {exc!r}")
            return None

        if epoch != self._epoch or self.state.status != MatchStatus.RUNNING:
            log.info("Discarding late reply from %s", agent.name)
            return None
        return self.reply_parser(content)

    def _judge(self, reply: AgentReply) -> MoveVerdict:
        if reply.move is None:
            return MoveVerdict.reject(
                reply.raw.strip()[:80],
                "No move found in the reply. Put your move on a line starting with 'MOVE:'",
            )
        return validate_move(self.state.position, reply.move, self.default_promotion)

    def _register_hallucination(self, color: Color, verdict: MoveVerdict) -> None:
        stats = self.state.agents[color]
        stats.hallucinations += 1
        stats.total_hallucinations += 1
        message = f"Rejected {verdict.notation!r}: {verdict.reason}"
        self.state.record(LogKind.HALLUCINATION, message, color)
        log.warning(
            "%s hallucinated (%d/%d): %s",
            self.agents[color].name,
            stats.hallucinations,
            self.settings.max_hallucination_retries,
            message,
        )

    def _halt_for_director(self, color: Color) -> None:
        self._transition(MatchStatus.WAITING_FOR_DIRECTOR)
        message = (
            f"{self.agents[color].name} failed to produce a legal move "
            f"({self.state.agents[color].hallucinations} in a row). Director intervention required."
        )
        self.state.record(LogKind.ERROR, message, color)
        log.warning(message)

    def _fail(self, color: Color, message: str) -> None:
        self._transition(MatchStatus.ERROR)
        self.state.record(LogKind.ERROR, message, color)
        log.error(message)

    def _commit_agent_move(self, color: Color, verdict: MoveVerdict, reply: AgentReply) -> None:
        assert verdict.move is not None
        new_position = apply_move(self.state.position, verdict.move)
        record = self.build_move_record(
            color, verdict.notation, verdict.move, new_position, reply.commentary
        )
        self.state.replace_position(new_position)
        self.state.moves.append(record)

        stats = self.state.agents[color]
        stats.hallucinations = 0
        stats.moves += 1

        self.state.record(LogKind.MOVE, record.san, color)
        if reply.thought:
            self.state.record(LogKind.THOUGHT, reply.thought, color)
        if reply.trash:
            self.state.record(LogKind.TRASH, reply.trash, color)
        log.info("%s played %s", self.agents[color].name, record.san)

    # --- STATUS HELPERS ---
    def _check_terminal(self) -> bool:
        terminal = terminal_state(self.state.position, self.state.history)
        if not terminal.over:
            return False
        assert terminal.result is not None
        self._finish(terminal.result)
        return True

    def _finish(self, result: MatchResult) -> None:
        self._transition(MatchStatus.GAME_OVER)
        self.state.result = result
        self.state.record(LogKind.SYSTEM, f"Game over: {result.describe()}")
        log.info("Game over: %s", result.describe())

    def _require_status(self, *allowed: MatchStatus, action: str) -> None:
        if self.state.status not in allowed:
            raise MatchStateError(
                f"Cannot {action} while the match is {self.state.status.value}"
            )

    def _transition(self, new_status: MatchStatus) -> None:
        old_status = self.state.status
        if new_status not in TRANSITIONS[old_status]:
            raise MatchStateError(
                f"Invalid status change: {old_status.value} -> {new_status.value}"
            )
        self.state.status = new_status
        log.debug("Status %s -> %s", old_status.value, new_status.value)
