"""Unit tests for arena/orchestrator/match.py"""

import pytest

from arena.chess.fen import STARTING_FEN
from arena.chess.pieces import Color
from arena.chess.position import Position
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
from arena.orchestrator.match import MatchState, MoveRecord

AFTER_E4_FEN = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"
E4 = MoveRecord(
    ply=1,
    move_number=1,
    side=Side.WHITE,
    notation="e4",
    san="e4",
    uci="e2e4",
    fen_after=AFTER_E4_FEN,
    commentary="Best by test.",
)


@pytest.fixture
def played_state() -> MatchState:
    state = MatchState.new()
    state.replace_position(Position.from_fen(AFTER_E4_FEN))
    state.moves.append(E4)
    state.status = MatchStatus.PAUSED
    state.agents[Color.BLACK].hallucinations = 1
    state.record(LogKind.MOVE, "e4", Color.WHITE)
    return state


def test_new_state() -> None:
    state = MatchState.new()
    assert state.position == Position.starting()
    assert state.history == [state.position]
    assert state.status == MatchStatus.IDLE
    assert state.side_to_move == Side.WHITE
    assert state.hallucination_counts() == {Side.WHITE: 0, Side.BLACK: 0}


def test_record_log_entry() -> None:
    state = MatchState.new()
    entry = state.record(LogKind.HALLUCINATION, "Rejected 'Ke2'", Color.BLACK)
    assert entry.side == Side.BLACK
    assert state.log == [entry]
    assert state.record(LogKind.SYSTEM, "hello").side is None


def test_to_model(played_state: MatchState) -> None:
    model = played_state.to_model()
    assert model.current_fen == AFTER_E4_FEN
    assert model.history_fen == [STARTING_FEN, AFTER_E4_FEN]
    assert model.moves_san == ["e4"]
    assert model.moves[0]["side"] == "white"
    assert model.status == "paused"
    assert model.outcome is None
    assert model.termination_reason is None
    assert model.hallucinations == {"white": 0, "black": 1}


def test_back_from_model(played_state: MatchState) -> None:
    """Everything but the log survives the trip through the storage format."""
    played_state.result = MatchResult(Outcome.WHITE_WINS, TerminationReason.DIRECTOR_DECISION)
    restored = MatchState.from_model(played_state.to_model())

    assert restored.position == played_state.position
    assert restored.history == played_state.history
    assert restored.moves == [E4]
    assert restored.status == MatchStatus.PAUSED
    assert restored.result == played_state.result
    assert restored.agents[Color.BLACK].hallucinations == 1
    assert restored.log == []


@pytest.mark.parametrize(
    "changes",
    [
        {"status": "sleeping"},
        {"outcome": "draw"},
        {"termination_reason": "stalemate"},
    ],
)
def test_invalid_stored_match(changes: dict) -> None:
    model = MatchModel(
        current_fen=STARTING_FEN, history_fen=[STARTING_FEN], moves=[], status="idle"
    )
    for key, value in changes.items():
        setattr(model, key, value)
    with pytest.raises(MatchStateError):
        MatchState.from_model(model)


def test_missing_history_starts_at_the_current_position() -> None:
    model = MatchModel(current_fen=AFTER_E4_FEN, history_fen=[], moves=[], status="idle")
    state = MatchState.from_model(model)
    assert state.history == [Position.from_fen(AFTER_E4_FEN)]
