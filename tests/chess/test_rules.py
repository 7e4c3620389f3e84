"""Unit tests for arena/chess/rules.py"""

from typing import Optional

import pytest

from arena.chess.moves import Move
from arena.chess.pieces import Color, Piece, PieceType
from arena.chess.position import Position
from arena.chess.rules import (
    RuleEngine,
    apply_move,
    is_checkmate,
    is_fifty_move_rule,
    is_in_check,
    is_insufficient_material,
    is_stalemate,
    legal_moves,
    repetition_count,
    terminal_state,
    to_san,
    validate_move,
)
from arena.chess.square import Square
from arena.core.exceptions import IllegalMoveError
from arena.core.shared_types import MatchResult, Outcome, Side, TerminationReason

TWO_KNIGHTS_FEN = "4k3/8/8/1N6/8/1N6/8/4K3 w - - 0 1"
CASTLING_FEN = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"


def sq(name: str) -> Square:
    return Square.from_algebraic(name)


def play(position: Position, *notations: str) -> Position:
    """Validate + apply a sequence of moves, failing the test on the first rejection"""
    for notation in notations:
        verdict = validate_move(position, notation)
        assert verdict.legal, f"{notation}: {verdict.reason}"
        assert verdict.move is not None
        position = apply_move(position, verdict.move)
    return position


def reason_for(fen: str, notation: str, default_promotion: Optional[PieceType] = None) -> str:
    verdict = validate_move(Position.from_fen(fen), notation, default_promotion)
    assert not verdict.legal
    assert verdict.move is None
    assert verdict.reason is not None
    return verdict.reason


# --- SCENARIOS ---
def test_open_with_king_pawns() -> None:
    """e4 e5: both validate, pawn moves keep the half move clock at 0"""
    start = Position.starting()
    after_e4 = play(start, "e4")
    assert after_e4.half_move_clock == 0
    assert after_e4.en_passant_square == sq("e3")
    assert after_e4.color_to_move == Color.BLACK

    after_e5 = play(after_e4, "e5")
    assert after_e5.to_fen() == "rnbqkbnr/pppp1ppp/8/4p3/4P3/8/PPPP1PPP/RNBQKBNR w KQkq e6 0 2"


def test_fools_mate() -> None:
    """f3 e5 g4 Qh4#: black wins by checkmate"""
    position = play(Position.starting(), "f3", "e5", "g4", "Qh4#")
    assert is_in_check(Color.WHITE, position)
    assert is_checkmate(position)
    state = terminal_state(position)
    assert state.over
    assert state.result == MatchResult(Outcome.BLACK_WINS, TerminationReason.CHECKMATE)
    assert state.result.winner == Side.BLACK


@pytest.mark.parametrize(
    "fen, is_draw",
    [
        ("4kb2/8/8/8/8/8/8/2B1K3 w - - 0 1", True),  # bishops on dark squares
        ("2b1k3/8/8/8/8/8/8/2B1K3 w - - 0 1", False),  # light vs dark
        ("4k3/8/8/8/8/8/8/4K3 w - - 0 1", True),
        ("4k3/8/8/8/8/8/8/1N2K3 w - - 0 1", True),
        ("4k3/8/8/8/8/8/8/2B1K3 b - - 0 1", True),
        ("4k3/8/8/8/8/8/8/R3K3 w - - 0 1", False),
        ("4k3/8/8/8/8/8/4P3/4K3 w - - 0 1", False),
        ("4k3/8/8/8/8/8/8/1NN1K3 w - - 0 1", False),
    ],
)
def test_insufficient_material(fen: str, is_draw: bool) -> None:
    position = Position.from_fen(fen)
    assert is_insufficient_material(position) == is_draw
    state = terminal_state(position)
    assert state.over == is_draw
    if is_draw:
        assert state.result == MatchResult.draw(TerminationReason.INSUFFICIENT_MATERIAL)


# --- PROPERTIES ---
@pytest.mark.parametrize(
    "fen",
    [
        Position.starting().to_fen(),
        "r3k2r/pppq1ppp/2npbn2/4p3/2B1P3/2NP1N2/PPP2PPP/R1BQ1RK1 b kq - 3 9",
        "4k3/4r3/8/8/8/8/4B3/4K3 w - - 0 1",
        "4k3/8/8/3pP3/8/8/8/4K3 w - d6 0 2",
    ],
)
def test_legal_moves_never_leave_king_in_check(fen: str) -> None:
    position = Position.from_fen(fen)
    mover = position.color_to_move
    moves = legal_moves(position)
    assert moves
    for move in moves:
        assert not is_in_check(mover, apply_move(position, move))


def test_starting_position_has_twenty_moves() -> None:
    assert len(legal_moves(Position.starting())) == 20


def test_fen_roundtrip_along_a_game() -> None:
    position = Position.starting()
    for notation in ["e4", "c5", "Nf3", "d6", "d4", "cxd4", "Nxd4", "Nf6", "Nc3", "a6"]:
        position = play(position, notation)
        assert Position.from_fen(position.to_fen()) == position


def test_turn_alternation_and_move_number() -> None:
    position = Position.starting()
    expected = [(Color.BLACK, 1), (Color.WHITE, 2), (Color.BLACK, 2), (Color.WHITE, 3)]
    for notation, (color, full_move) in zip(["Nf3", "Nf6", "g3", "g6"], expected):
        position = play(position, notation)
        assert position.color_to_move == color
        assert position.full_move_number == full_move


def test_half_move_clock() -> None:
    """Counts plies since the last pawn move or capture"""
    position = play(Position.starting(), "Nf3")
    assert position.half_move_clock == 1
    position = play(position, "Nc6")
    assert position.half_move_clock == 2
    position = play(position, "e4")
    assert position.half_move_clock == 0
    position = play(position, "Nf6", "Nc3")
    assert position.half_move_clock == 2
    position = play(position, "Nxe4")
    assert position.half_move_clock == 0


def test_threefold_repetition() -> None:
    position = Position.starting()
    history = [position]
    shuffle = ["Nf3", "Nf6", "Ng1", "Ng8"]
    for notation in shuffle * 2:
        assert not terminal_state(position, history).over
        position = play(position, notation)
        history.append(position)

    assert repetition_count(position, history) == 3
    state = terminal_state(position, history)
    assert state.result == MatchResult.draw(TerminationReason.THREEFOLD_REPETITION)


def test_repetition_counts_current_position_once() -> None:
    start = Position.starting()
    assert repetition_count(start, []) == 1
    assert repetition_count(start, [start]) == 1
    back = play(start, "Nf3", "Nf6", "Ng1", "Ng8")
    assert repetition_count(back, [start]) == 2


def test_fifty_move_rule() -> None:
    position = play(Position.from_fen("4k3/8/8/8/8/8/8/R3K3 w - - 99 80"), "Ra2")
    assert position.half_move_clock == 100
    assert is_fifty_move_rule(position)
    state = terminal_state(position)
    assert state.result == MatchResult.draw(TerminationReason.FIFTY_MOVE_RULE)


def test_stalemate() -> None:
    position = Position.from_fen("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
    assert is_stalemate(position)
    assert not is_checkmate(position)
    assert terminal_state(position).result == MatchResult.draw(TerminationReason.STALEMATE)


def test_checkmate_takes_precedence_over_fifty_move_rule() -> None:
    position = Position.from_fen("6rk/5Npp/8/8/8/8/8/6K1 b - - 100 70")
    assert terminal_state(position).result == MatchResult(Outcome.WHITE_WINS, TerminationReason.CHECKMATE)


# --- REJECTIONS ---
def test_no_piece_can_reach_the_square() -> None:
    reason = reason_for(Position.starting().to_fen(), "e5")
    assert reason == "No pawn can move to e5"
    assert reason_for(Position.starting().to_fen(), "Qh5") == "No queen can move to h5"


def test_unparsable_notation() -> None:
    reason = reason_for(Position.starting().to_fen(), "I resign")
    assert reason.startswith("Invalid notation")


def test_capturing_own_piece() -> None:
    assert reason_for(Position.starting().to_fen(), "Nd2") == "Cannot capture your own piece on d2"


def test_capture_marker_on_empty_square() -> None:
    reason = reason_for(Position.starting().to_fen(), "exd3")
    assert reason == "Move indicates a capture but d3 is empty"


def test_pinned_piece() -> None:
    reason = reason_for("4k3/4r3/8/8/8/8/4B3/4K3 w - - 0 1", "Bd3")
    assert reason == "Illegal move: would leave your king in check"


def test_coordinate_move_checks_the_origin() -> None:
    start = Position.starting().to_fen()
    assert reason_for(start, "e3e4") == "There is no piece on e3"
    assert reason_for(start, "e7e5") == "The piece on e7 belongs to your opponent"
    verdict = validate_move(Position.starting(), "g1f3")
    assert verdict.legal
    assert verdict.move == Move(sq("g1"), sq("f3"))


def test_wrong_hint() -> None:
    reason = reason_for(TWO_KNIGHTS_FEN, "Ncd4")
    assert reason == "No knight can move to d4 from the indicated square"


# --- DISAMBIGUATION ---
def test_scan_order_breaks_ties_without_hints() -> None:
    """Knights on b5 and b3 can both go to d4: b5 comes first when scanning from a8"""
    verdict = validate_move(Position.from_fen(TWO_KNIGHTS_FEN), "Nd4")
    assert verdict.legal
    assert verdict.move is not None
    assert verdict.move.from_square == sq("b5")


def test_rank_hint_picks_the_piece() -> None:
    verdict = validate_move(Position.from_fen(TWO_KNIGHTS_FEN), "N3d4")
    assert verdict.legal
    assert verdict.move is not None
    assert verdict.move.from_square == sq("b3")


def test_ambiguous_hint() -> None:
    reason = reason_for(TWO_KNIGHTS_FEN, "Nbd4")
    assert reason.startswith("Ambiguous move")
    assert "b5, b3" in reason


def test_lenient_pawn_capture_without_marker() -> None:
    position = play(Position.starting(), "e4", "d5")
    verdict = validate_move(position, "d5")
    assert verdict.legal
    assert verdict.move is not None
    assert verdict.move.from_square == sq("e4")


# --- CASTLING ---
@pytest.mark.parametrize("notation", ["O-O", "0-0", "e1g1"])
def test_castling_king_side(notation: str) -> None:
    position = play(Position.from_fen(CASTLING_FEN), notation)
    assert position.to_fen() == "r3k2r/8/8/8/8/8/8/R4RK1 b kq - 1 1"


def test_black_castles_queen_side() -> None:
    position = play(Position.from_fen(CASTLING_FEN), "Kf1", "O-O-O")
    assert position.board.piece(sq("c8")) == Piece(PieceType.KING, Color.BLACK)
    assert position.board.piece(sq("d8")) == Piece(PieceType.ROOK, Color.BLACK)
    assert position.castling_rights == {direction: False for direction in position.castling_rights}


@pytest.mark.parametrize(
    "fen, notation, reason",
    [
        ("4k3/8/8/8/8/8/8/R3K2R w - - 0 1", "O-O", "Castling kingside is not available"),
        ("4k3/4r3/8/8/8/8/8/R3K2R w KQ - 0 1", "O-O", "Cannot castle while in check"),
        (
            "4k3/8/8/8/8/8/5r2/R3K2R w KQ - 0 1",
            "O-O",
            "Cannot castle kingside through or into check",
        ),
        (
            "4k3/8/8/8/8/8/8/RN2K2R w KQ - 0 1",
            "O-O-O",
            "Castling queenside is blocked: the squares between king and rook must be empty",
        ),
    ],
)
def test_castling_rejections(fen: str, notation: str, reason: str) -> None:
    assert reason_for(fen, notation) == reason


def test_king_move_is_not_castling() -> None:
    """Kg1 names a normal king move, and the king cannot step two squares"""
    assert reason_for(CASTLING_FEN, "Kg1") == "No king can move to g1"


def test_rook_move_revokes_one_side() -> None:
    position = play(Position.from_fen(CASTLING_FEN), "Rb1")
    assert position.to_fen().split(" ")[2] == "Kkq"


def test_capturing_a_rook_revokes_its_castling() -> None:
    position = play(Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"), "Rxa8+")
    assert position.to_fen().split(" ")[2] == "Kk"


# --- EN PASSANT / PROMOTION ---
def test_en_passant() -> None:
    position = play(Position.from_fen("4k3/8/8/3pP3/8/8/8/4K3 w - d6 0 2"), "exd6")
    assert position.to_fen() == "4k3/8/3P4/8/8/8/8/4K3 b - - 0 2"


def test_en_passant_expires() -> None:
    position = play(Position.from_fen("4k3/3p4/8/4P3/8/8/8/4K3 b - - 0 1"), "d5", "Kd2", "Kd7")
    assert reason_for(position.to_fen(), "exd6") == "Move indicates a capture but d6 is empty"


@pytest.mark.parametrize(
    "notation, piece_type",
    [("b8=N", PieceType.KNIGHT), ("b8R", PieceType.ROOK), ("b7b8b", PieceType.BISHOP)],
)
def test_under_promotion(notation: str, piece_type: PieceType) -> None:
    position = play(Position.from_fen("4k3/1P6/8/8/8/8/8/4K3 w - - 0 1"), notation)
    assert position.board.piece(sq("b8")) == Piece(piece_type, Color.WHITE)


def test_promotion_piece_required() -> None:
    fen = "4k3/1P6/8/8/8/8/8/4K3 w - - 0 1"
    assert reason_for(fen, "b8").startswith("Promotion piece required")

    verdict = validate_move(Position.from_fen(fen), "b8", default_promotion=PieceType.QUEEN)
    assert verdict.legal
    assert verdict.move is not None
    assert verdict.move.promote_to == PieceType.QUEEN


def test_promotion_on_wrong_rank() -> None:
    reason = reason_for(Position.starting().to_fen(), "e4=Q")
    assert reason == "Promotion is only possible for a pawn reaching the last rank"


def test_apply_move_from_empty_square() -> None:
    with pytest.raises(IllegalMoveError):
        apply_move(Position.starting(), Move(sq("e4"), sq("e5")))


# --- SAN ---
@pytest.mark.parametrize(
    "fen, uci, san",
    [
        (Position.starting().to_fen(), "e2e4", "e4"),
        (Position.starting().to_fen(), "g1f3", "Nf3"),
        (TWO_KNIGHTS_FEN, "b5d4", "N5d4"),
        ("4k3/8/8/8/8/8/8/1N3N1K w - - 0 1", "b1d2", "Nbd2"),
        (CASTLING_FEN, "e1c1", "O-O-O"),
        ("4k3/8/8/3pP3/8/8/8/4K3 w - d6 0 2", "e5d6", "exd6"),
        ("4k3/1P6/8/8/8/8/8/4K3 w - - 0 1", "b7b8q", "b8=Q+"),
        ("rnbqkbnr/pppp1ppp/8/4p3/6P1/5P2/PPPPP2P/RNBQKBNR b KQkq g3 0 2", "d8h4", "Qh4#"),
    ],
)
def test_to_san(fen: str, uci: str, san: str) -> None:
    assert to_san(Position.from_fen(fen), Move.from_uci(uci)) == san


def test_rule_engine_is_a_thin_wrapper() -> None:
    engine = RuleEngine.from_fen(Position.starting().to_fen())
    verdict = engine.validate_move("e4")
    assert verdict.legal
    assert verdict.move is not None
    after = engine.apply_move(verdict.move)
    assert after.color_to_move == Color.BLACK
    # the engine keeps judging the position it was built with
    assert engine.position == Position.starting()
    assert engine.validate_move("e4").legal
    assert len(engine.legal_moves()) == 20
    assert not engine.is_in_check()
    assert not engine.terminal_state().over
    assert engine.to_san(verdict.move) == "e4"
