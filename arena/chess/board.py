"""The Board implements all rules that effect the placement of pieces (the first field of a FEN string)"""

from dataclasses import dataclass
from typing import Self

from arena.chess.castling import CASTLING_RULES
from arena.chess.moves import (
    ATTACK_RULES,
    MOVEMENT_RULES,
    CandidateMovesFn,
    Move,
    castling_direction_of,
    en_passant_victim_square,
)
from arena.chess.pieces import Color, Piece, PieceType
from arena.chess.square import BOARD_DIMENSIONS, SCAN_ORDER, Square


@dataclass(frozen=True)
class Board:
    """
    8x8 grid. Every square maps to a piece; empty squares hold the EMPTY piece.

    The board is never changed in place: `with_move()` and `with_piece()` return a new board.
    """

    squares: dict[Square, Piece]

    @classmethod
    def from_fen(cls, fen_str: str) -> Self:
        """Construct a board using the placement part of a FEN string.

        ex. standard starting position:
        rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR
        means:
        * black pieces are on the 8th rank, starting with rook on a8, knight on b8, etc.
        * pawns cover 7th rank entirely
        * ranks 6 through 3 have 8 consecutive empty squares
        * rank 2 are the white pawns (capital letters)
        * 1st rank are the white pieces.
        """
        squares: dict[Square, Piece] = {}
        for rank_idx, fen_one_rank in enumerate(fen_str.split("/")):
            # FEN string is read from top rank (8th) to bottom rank (1st)
            rank = BOARD_DIMENSIONS[1] - rank_idx
            # ... but the first character is the a-file, so reads in normal direction
            file = 1
            for character in fen_one_rank:
                if character.isalpha():
                    squares[Square(file, rank)] = Piece.from_fen(character)
                    file += 1
                else:
                    # A number denotes the amount of empty squares after each other
                    for _ in range(int(character)):
                        squares[Square(file, rank)] = Piece.empty()
                        file += 1
        return cls(squares)

    @classmethod
    def empty(cls) -> Self:
        return cls({square: Piece.empty() for square in SCAN_ORDER})

    def to_fen(self) -> str:
        """Ranks are separated by slashes in FEN string."""
        return "/".join(
            self._rank_to_fen(rank) for rank in range(BOARD_DIMENSIONS[1], 0, -1)
        )

    def _rank_to_fen(self, rank: int) -> str:
        """FEN string of a single rank"""
        fen_characters: list[str] = []
        empty_count = 0
        for file in range(1, BOARD_DIMENSIONS[0] + 1):
            piece = self.piece(Square(file, rank))

            if not piece.is_empty():
                if empty_count > 0:
                    fen_characters.append(str(empty_count))
                    empty_count = 0
                fen_characters.append(piece.to_fen())
            else:
                empty_count += 1

        # if the entire rank is empty, then we still place this number in the string
        if empty_count > 0:
            fen_characters.append(str(empty_count))
        return "".join(fen_characters)

    def piece(self, square: Square) -> Piece:
        return self.squares[square]

    def is_empty(self, square: Square) -> bool:
        return self.squares[square].is_empty()

    def locate_pieces(self, piece_type: PieceType, color: Color) -> list[Square]:
        """Squares holding the given piece, in board-scan order"""
        wanted = Piece(piece_type, color)
        return [square for square in SCAN_ORDER if self.squares[square] == wanted]

    def locate_color(self, color: Color) -> list[Square]:
        """Squares holding pieces of the given color, in board-scan order"""
        return [square for square in SCAN_ORDER if self.squares[square].color == color]

    def king_square(self, color: Color) -> Square | None:
        kings = self.locate_pieces(PieceType.KING, color)
        return kings[0] if kings else None

    def player_pieces(self, color: Color) -> list[tuple[Square, Piece]]:
        return [(square, self.squares[square]) for square in self.locate_color(color)]

    # --- ATTACKS / CHECK ---
    def is_square_attacked(self, square: Square, by_color: Color) -> bool:
        return any(rule(square, by_color, self) for rule in ATTACK_RULES)

    def is_check(self, color: Color) -> bool:
        """Is the king of the given color attacked? A board without that king is never in check."""
        king_square = self.king_square(color)
        if king_square is None:
            return False
        return self.is_square_attacked(king_square, color.opponent)

    def is_any_occupied(self, squares: list[Square]) -> bool:
        return any(not self.is_empty(square) for square in squares)

    def is_any_under_attack(self, squares: list[Square], by_color: Color) -> bool:
        return any(self.is_square_attacked(square, by_color) for square in squares)

    def generate_candidate_moves(self, color: Color) -> list[Move]:
        """
        Before knowing the set of legal moves, we use raycasting to find candidate moves, which will later be tested for legality
        (making sure it does not put yourself in check.)

        Moves are listed by starting square in board-scan order.
        ---
        NOTE: Castling and en passant depend on the position, not only on the board, and are added by the rules module.
        """
        candidate_moves: list[Move] = []
        for starting_square in self.locate_color(color):
            piece_type = self.piece(starting_square).type
            movement_rule: CandidateMovesFn = MOVEMENT_RULES[piece_type]
            candidate_moves.extend(movement_rule(starting_square, self))
        return candidate_moves

    # --- NEW BOARDS ---
    def with_piece(self, square: Square, piece: Piece) -> Self:
        squares = dict(self.squares)
        squares[square] = piece
        return type(self)(squares)

    def with_move(self, move: Move) -> Self:
        """
        The board after the move:

        * castling displaces both king and rook
        * en passant removes the pawn that was passed
        * a promotion replaces the pawn with the chosen piece
        """
        squares = dict(self.squares)
        moving_piece = squares[move.from_square]

        castling_direction = move.castling_direction or castling_direction_of(move, self)
        if castling_direction is not None:
            rule = CASTLING_RULES[castling_direction]
            squares[rule.rook_to] = squares[rule.rook_from]
            squares[rule.rook_from] = Piece.empty()

        if self._is_en_passant(move):
            squares[en_passant_victim_square(move)] = Piece.empty()

        if move.promote_to is not None and moving_piece.type == PieceType.PAWN:
            moving_piece = moving_piece.promoted_to(move.promote_to)

        squares[move.from_square] = Piece.empty()
        squares[move.to_square] = moving_piece
        return type(self)(squares)

    def _is_en_passant(self, move: Move) -> bool:
        """A pawn moving diagonally onto an empty square can only be taking en passant"""
        if move.is_en_passant:
            return True
        is_pawn = self.piece(move.from_square).type == PieceType.PAWN
        changes_file = move.from_square.file != move.to_square.file
        return is_pawn and changes_file and self.is_empty(move.to_square)
