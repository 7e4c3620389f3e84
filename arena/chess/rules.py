"""
The rule engine.

Every function takes the Position it judges as an explicit argument and hands back a verdict or a *new* Position.
Nothing here keeps state between calls, so a verdict can never be computed against a stale copy of the game.

Rule violations are results, not exceptions: `validate_move()` returns a MoveVerdict carrying a human readable
reason that can be shown to whoever proposed the move.
"""

from dataclasses import dataclass, replace
from typing import Iterator, Optional, Self, Sequence

from arena.chess.castling import (
    CASTLING_RULES,
    CastlingDirection,
    CastlingSide,
    castling_direction_for,
)
from arena.chess.moves import (
    PROMOTION_OPTIONS,
    Move,
    candidate_castling_move,
    castling_direction_of,
    en_passant_moves,
    is_pawn_push_to_promotion_square,
    pawn_direction,
    pawn_pushes_w_promotion,
)
from arena.chess.notation import ParsedNotation, parse_notation, piece_letter, piece_name
from arena.chess.pieces import MINOR_PIECES, Color, Piece, PieceType
from arena.chess.position import Position
from arena.chess.square import SCAN_INDEX, Square
from arena.core.exceptions import IllegalMoveError
from arena.core.shared_types import MatchResult, Side, TerminationReason

FIFTY_MOVE_RULE_PLIES = 100
REPETITIONS_FOR_DRAW = 3


@dataclass(frozen=True)
class MoveVerdict:
    """Outcome of validating move text: either a legal move, or the reason it was rejected."""

    legal: bool
    notation: str
    move: Optional[Move] = None
    reason: Optional[str] = None

    @classmethod
    def accept(cls, notation: str, move: Move) -> Self:
        return cls(legal=True, notation=notation, move=move)

    @classmethod
    def reject(cls, notation: str, reason: str) -> Self:
        return cls(legal=False, notation=notation, reason=reason)


@dataclass(frozen=True)
class TerminalState:
    over: bool
    result: Optional[MatchResult] = None


def side_of(color: Color) -> Side:
    return Side.WHITE if color == Color.WHITE else Side.BLACK


def color_of(side: Side) -> Color:
    return Color.WHITE if side == Side.WHITE else Color.BLACK


# --- CHECK ---
def is_in_check(color: Color, position: Position) -> bool:
    """True if any opposing piece attacks the king of `color` (ignoring whether that attacker is pinned)."""
    return position.board.is_check(color)


def leaves_king_in_check(position: Position, move: Move) -> bool:
    """Play the move on a copy of the board and see if the mover's king is attacked."""
    mover = position.board.piece(move.from_square).color
    return position.board.with_move(move).is_check(mover)


# --- MOVE GENERATION ---
def castling_violation(position: Position, direction: CastlingDirection) -> Optional[str]:
    """
    Why castling in this direction is not allowed right now (None if it is).

    **you are allowed to castle if**

    * Castling rights are not yet revoked (and king and rook actually stand on their squares).
    * You are not currently in check (you cannot castle out of check).
    * All squares between king and rook are empty.
    * The king does not cross or land on an attacked square.
    """
    board = position.board
    color = direction.color
    rule = CASTLING_RULES[direction]
    side = direction.side.value

    pieces_in_place = board.piece(rule.king_from) == Piece(
        PieceType.KING, color
    ) and board.piece(rule.rook_from) == Piece(PieceType.ROOK, color)
    if not position.castling_rights[direction] or not pieces_in_place:
        return f"Castling {side} is not available"

    if board.is_check(color):
        return "Cannot castle while in check"

    if board.is_any_occupied(rule.squares_between()):
        return f"Castling {side} is blocked: the squares between king and rook must be empty"

    if board.is_any_under_attack(rule.king_path()[1:], color.opponent):
        return f"Cannot castle {side} through or into check"

    return None


def pseudo_legal_moves(position: Position) -> list[Move]:
    """
    Candidate moves for the side to move, before the king-safety filter.
    ----

    1. generate candidate moves, using the basic movement rules for all pieces (the board does this calculation)
    2. add castling moves that satisfy every castling condition
    3. add candidate en passant moves
    """
    color = position.color_to_move
    board = position.board
    candidate_moves = board.generate_candidate_moves(color)

    for direction in position.castling_options(color):
        if castling_violation(position, direction) is None:
            candidate_moves.append(candidate_castling_move(direction))

    if position.en_passant_square is not None:
        candidate_moves.extend(
            en_passant_moves(position.en_passant_square, color, board)
        )

    return candidate_moves


def _iter_legal_moves(position: Position) -> Iterator[Move]:
    for move in pseudo_legal_moves(position):
        if leaves_king_in_check(position, move):
            continue
        # promotion rule: one move for every piece type the pawn can become
        if is_pawn_push_to_promotion_square(move, position.board):
            yield from pawn_pushes_w_promotion(move)
        else:
            yield move


def legal_moves(position: Position) -> list[Move]:
    """
    Every legal move for the side to move.

    Recomputed on every call. Ordered by starting square in board-scan order
    (castling and en passant moves follow the ordinary moves of their piece).
    """
    return sorted(_iter_legal_moves(position), key=lambda move: SCAN_INDEX[move.from_square])


def has_legal_move(position: Position) -> bool:
    return next(_iter_legal_moves(position), None) is not None


def resolve_move(position: Position, move: Move) -> Optional[Move]:
    """Find the legal move with the same squares/promotion (fills in the capture/castling/en passant flags)."""
    return next(
        (candidate for candidate in _iter_legal_moves(position) if candidate.same_squares(move)),
        None,
    )


# --- VALIDATION ---
def validate_move(
    position: Position,
    notation: str,
    default_promotion: Optional[PieceType] = None,
) -> MoveVerdict:
    """
    Check move text against the position.
    ----

    1. Parse the notation (unparsable text is rejected as such)
    2. Castling tokens have their own set of conditions
    3. Reject taking your own piece, and a capture marker on an empty square (unless it is en passant)
    4. Find the pieces of the stated kind that can reach the square and agree with the file/rank hints
    5. Drop those that would leave your own king in check
    6. With hints, exactly one piece must remain. Without hints the first in board-scan order plays the move.
    7. A pawn reaching the last rank needs a promotion piece: the one given, else `default_promotion`.
    """
    parsed = parse_notation(notation)
    if parsed is None:
        return MoveVerdict.reject(
            notation,
            f'Invalid notation: "{notation.strip()}". Expected a move like e4, Nf3, exd5, O-O or e8=Q',
        )

    if parsed.is_castling:
        return _validate_castling(position, parsed)

    assert parsed.to_square is not None
    board = position.board
    color = position.color_to_move
    to_square = parsed.to_square
    target = board.piece(to_square)
    piece_type = parsed.piece_type

    if parsed.is_coordinate:
        # for the type checker: coordinate moves always carry both hints
        assert parsed.from_file is not None and parsed.from_rank is not None
        from_square = Square(parsed.from_file, parsed.from_rank)
        moving_piece = board.piece(from_square)
        if moving_piece.is_empty():
            return MoveVerdict.reject(notation, f"There is no piece on {from_square.to_algebraic()}")
        if moving_piece.color != color:
            return MoveVerdict.reject(
                notation, f"The piece on {from_square.to_algebraic()} belongs to your opponent"
            )
        piece_type = moving_piece.type
        direction = castling_direction_of(Move(from_square, to_square), board)
        if direction is not None:
            return _castling_verdict(position, direction, parsed.text)

    if target.color == color:
        return MoveVerdict.reject(
            notation, f"Cannot capture your own piece on {to_square.to_algebraic()}"
        )

    if parsed.is_capture and target.is_empty():
        is_en_passant = (
            piece_type == PieceType.PAWN and position.en_passant_square == to_square
        )
        if not is_en_passant:
            return MoveVerdict.reject(
                notation,
                f"Move indicates a capture but {to_square.to_algebraic()} is empty",
            )

    reaching = [
        move
        for move in pseudo_legal_moves(position)
        if move.to_square == to_square
        and board.piece(move.from_square).type == piece_type
        and parsed.matches_origin(move.from_square)
        and (move.castling_direction is None or parsed.is_coordinate)
    ]
    if not reaching:
        hint = " from the indicated square" if parsed.has_hints else ""
        return MoveVerdict.reject(
            notation,
            f"No {piece_name(piece_type)} can move to {to_square.to_algebraic()}{hint}",
        )

    legal = [move for move in reaching if not leaves_king_in_check(position, move)]
    if not legal:
        return MoveVerdict.reject(notation, "Illegal move: would leave your king in check")

    sources = sorted({move.from_square for move in legal}, key=SCAN_INDEX.__getitem__)
    if len(sources) > 1 and parsed.has_hints:
        origins = ", ".join(square.to_algebraic() for square in sources)
        return MoveVerdict.reject(
            notation,
            f"Ambiguous move: {piece_name(piece_type)}s on {origins} can all move to {to_square.to_algebraic()}",
        )
    chosen = next(move for move in legal if move.from_square == sources[0])

    if is_pawn_push_to_promotion_square(chosen, board):
        promote_to = parsed.promote_to or default_promotion
        if promote_to is None:
            return MoveVerdict.reject(
                notation,
                f"Promotion piece required: write {to_square.to_algebraic()}=Q, =R, =B or =N",
            )
        if promote_to not in PROMOTION_OPTIONS:
            return MoveVerdict.reject(
                notation, f"A pawn cannot promote to a {piece_name(promote_to)}"
            )
        return MoveVerdict.accept(notation, replace(chosen, promote_to=promote_to))

    if parsed.promote_to is not None:
        return MoveVerdict.reject(
            notation, "Promotion is only possible for a pawn reaching the last rank"
        )
    return MoveVerdict.accept(notation, chosen)


def _validate_castling(position: Position, parsed: ParsedNotation) -> MoveVerdict:
    assert parsed.castling_side is not None
    direction = castling_direction_for(position.color_to_move, parsed.castling_side)
    return _castling_verdict(position, direction, parsed.text)


def _castling_verdict(
    position: Position, direction: CastlingDirection, notation: str
) -> MoveVerdict:
    violation = castling_violation(position, direction)
    if violation is not None:
        return MoveVerdict.reject(notation, violation)
    return MoveVerdict.accept(notation, candidate_castling_move(direction))


# --- APPLYING MOVES ---
def apply_move(position: Position, move: Move) -> Position:
    """
    The position after the move. The move is assumed legal (see `validate_move`).
    ----

    1. update the board (castling also moves the rook, en passant removes the passed pawn)
    2. revoke castling rights: a king move revokes both, a move from/to a rook's starting square revokes that side
    3. set the en passant square after a two-square pawn advance, clear it otherwise
    4. half move clock: reset on pawn moves and captures, otherwise count up
    5. full move number goes up after black moved
    6. hand the move to the opponent
    """
    board = position.board
    moving_piece = board.piece(move.from_square)
    if moving_piece.is_empty():
        raise IllegalMoveError(f"There is no piece on {move.from_square.to_algebraic()}")

    is_pawn_move = moving_piece.type == PieceType.PAWN
    is_capture = not board.is_empty(move.to_square) or (
        is_pawn_move and move.from_square.file != move.to_square.file
    )

    castling_rights = dict(position.castling_rights)
    for direction, rule in CASTLING_RULES.items():
        if moving_piece.type == PieceType.KING and direction.color == moving_piece.color:
            castling_rights[direction] = False
        if rule.rook_from in (move.from_square, move.to_square):
            castling_rights[direction] = False

    en_passant_square: Optional[Square] = None
    if is_pawn_move and abs(move.to_square.rank - move.from_square.rank) == 2:
        en_passant_square = move.from_square.offset(0, pawn_direction(moving_piece.color))

    half_move_clock = 0 if (is_pawn_move or is_capture) else position.half_move_clock + 1
    full_move_number = position.full_move_number + (
        1 if moving_piece.color == Color.BLACK else 0
    )

    return Position(
        board=board.with_move(move),
        color_to_move=moving_piece.color.opponent,
        castling_rights=castling_rights,
        en_passant_square=en_passant_square,
        half_move_clock=half_move_clock,
        full_move_number=full_move_number,
    )


# --- CHECKS FOR ENDING THE GAME ---
def is_checkmate(position: Position) -> bool:
    return is_in_check(position.color_to_move, position) and not has_legal_move(position)


def is_stalemate(position: Position) -> bool:
    return not is_in_check(position.color_to_move, position) and not has_legal_move(position)


def is_insufficient_material(position: Position) -> bool:
    """
    Neither side can ever deliver mate:

    * king vs king
    * king + a single knight or bishop vs king
    * kings + bishops only, all standing on squares of the same color
    """
    non_kings = [
        (square, piece)
        for color in (Color.WHITE, Color.BLACK)
        for square, piece in position.board.player_pieces(color)
        if piece.type != PieceType.KING
    ]
    if not non_kings:
        return True

    if len(non_kings) == 1 and non_kings[0][1].type in MINOR_PIECES:
        return True

    if all(piece.type == PieceType.BISHOP for _, piece in non_kings):
        square_colors = {square.is_light() for square, _ in non_kings}
        return len(square_colors) == 1

    return False


def repetition_count(position: Position, history: Sequence[Position]) -> int:
    """
    How often the position has occurred, counting the current one once.

    `history` holds the positions reached during the match; it may or may not already end with `position`.
    """
    key = position.repetition_key()
    count = sum(1 for previous in history if previous.repetition_key() == key)
    if not history or history[-1] != position:
        count += 1
    return count


def is_threefold_repetition(position: Position, history: Sequence[Position]) -> bool:
    return repetition_count(position, history) >= REPETITIONS_FOR_DRAW


def is_fifty_move_rule(position: Position) -> bool:
    return position.half_move_clock >= FIFTY_MOVE_RULE_PLIES


def terminal_state(position: Position, history: Sequence[Position] = ()) -> TerminalState:
    """
    Is the game over, and how?

    Checked in order: checkmate, stalemate, insufficient material, threefold repetition, fifty-move rule.
    The first condition that holds decides the result.
    """
    to_move = position.color_to_move
    if not has_legal_move(position):
        if is_in_check(to_move, position):
            winner = side_of(to_move.opponent)
            return TerminalState(True, MatchResult.win_for(winner, TerminationReason.CHECKMATE))
        return TerminalState(True, MatchResult.draw(TerminationReason.STALEMATE))

    if is_insufficient_material(position):
        return TerminalState(True, MatchResult.draw(TerminationReason.INSUFFICIENT_MATERIAL))

    if is_threefold_repetition(position, history):
        return TerminalState(True, MatchResult.draw(TerminationReason.THREEFOLD_REPETITION))

    if is_fifty_move_rule(position):
        return TerminalState(True, MatchResult.draw(TerminationReason.FIFTY_MOVE_RULE))

    return TerminalState(False)


# --- NOTATION OUT ---
def to_san(position: Position, move: Move) -> str:
    """Standard algebraic notation of a legal move, with minimal disambiguation and a +/# suffix."""
    board = position.board
    moving_piece = board.piece(move.from_square)
    castling_direction = move.castling_direction or castling_direction_of(move, board)
    is_capture = not board.is_empty(move.to_square) or move.is_en_passant or (
        moving_piece.type == PieceType.PAWN and move.from_square.file != move.to_square.file
    )

    if castling_direction is not None:
        san = "O-O" if castling_direction.side == CastlingSide.KING_SIDE else "O-O-O"
    elif moving_piece.type == PieceType.PAWN:
        san = move.from_square.to_algebraic()[0] + "x" if is_capture else ""
        san += move.to_square.to_algebraic()
        if move.promote_to is not None:
            san += "=" + piece_letter(move.promote_to)
    else:
        san = piece_letter(moving_piece.type) + _disambiguation(position, move, moving_piece)
        san += ("x" if is_capture else "") + move.to_square.to_algebraic()

    after = apply_move(position, move)
    if is_in_check(after.color_to_move, after):
        san += "#" if not has_legal_move(after) else "+"
    return san


def _disambiguation(position: Position, move: Move, moving_piece: Piece) -> str:
    rivals = {
        other.from_square
        for other in _iter_legal_moves(position)
        if other.to_square == move.to_square
        and other.from_square != move.from_square
        and position.board.piece(other.from_square) == moving_piece
    }
    if not rivals:
        return ""
    origin = move.from_square.to_algebraic()
    if all(square.file != move.from_square.file for square in rivals):
        return origin[0]
    if all(square.rank != move.from_square.rank for square in rivals):
        return origin[1]
    return origin


@dataclass(frozen=True)
class RuleEngine:
    """
    Convenience wrapper around one (immutable) Position.

    It only delegates to the module functions above, so it can never drift from the position it was built from.
    """

    position: Position

    @classmethod
    def from_fen(cls, fen: str) -> Self:
        return cls(Position.from_fen(fen))

    def validate_move(
        self, notation: str, default_promotion: Optional[PieceType] = None
    ) -> MoveVerdict:
        return validate_move(self.position, notation, default_promotion)

    def apply_move(self, move: Move) -> Position:
        return apply_move(self.position, move)

    def is_in_check(self, color: Optional[Color] = None) -> bool:
        return is_in_check(color or self.position.color_to_move, self.position)

    def terminal_state(self, history: Sequence[Position] = ()) -> TerminalState:
        return terminal_state(self.position, history)

    def legal_moves(self) -> list[Move]:
        return legal_moves(self.position)

    def to_san(self, move: Move) -> str:
        return to_san(self.position, move)
