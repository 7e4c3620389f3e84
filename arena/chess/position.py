"""
Representation of a single position: everything that can be encoded in a FEN string.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Self

from arena.chess.board import Board
from arena.chess.castling import (
    CastlingDirection,
    castling_directions,
    castling_from_fen,
    castling_to_fen,
)
from arena.chess.fen import NO_SQUARE, STARTING_FEN, is_valid_fen
from arena.chess.pieces import Color
from arena.chess.square import Square
from arena.core.exceptions import InvalidFENError


@dataclass(frozen=True)
class Position:
    """
    Data that can be constructed from a FEN string.
    ----

    FEN, or Forsyth-Edwards Notation, is a standard notation for describing a particular board position of a chess game.
    The purpose of FEN is to provide all the necessary information to restart a game from a particular position.

    <board placement><active color><castling rights><en passant square><# half move clock><full move number>

    * The string to describe the board placement is described in the Board class
    * The active color is either "w" or "b"
    * Castling rights are denoted as "k" for king-side or "q" for queen-side. Capital letters for the white pieces, small letters for the black pieces.
        In the starting position: KQkq (all rights available), and "-" once every right is revoked.
    * The en passant square is the square a pawn can take on. If not available a "-" is used.
    * The half move clock counts the plies since the last pawn move or capture. (A draw is reached when this number reaches 100)
    * The full move number starts at 1 and increments after every move black makes.

    ex) The standard starting position has a FEN
    rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1

    A Position is never changed: applying a move creates the next Position.
    """

    board: Board
    color_to_move: Color
    castling_rights: dict[CastlingDirection, bool] = field(
        default_factory=lambda: {direction: False for direction in CastlingDirection}
    )
    en_passant_square: Optional[Square] = None
    half_move_clock: int = 0
    full_move_number: int = 1

    @classmethod
    def from_fen(cls, fen: str) -> Self:
        """Parse the FEN into data"""

        # raise an exception if invalid FEN:
        if not is_valid_fen(fen):
            raise InvalidFENError(f"Cannot interpret supplied string as FEN: {fen}")

        # extract the different components. FEN is space separated
        (
            placement,
            active_color,
            castling_str,
            en_passant_algebraic,
            half_move_clock,
            full_move_number,
        ) = fen.split(" ")

        en_passant_square = (
            Square.from_algebraic(en_passant_algebraic)
            if en_passant_algebraic != NO_SQUARE
            else None
        )
        return cls(
            board=Board.from_fen(placement),
            color_to_move=Color.WHITE if active_color == "w" else Color.BLACK,
            castling_rights=castling_from_fen(castling_str),
            en_passant_square=en_passant_square,
            half_move_clock=int(half_move_clock),
            full_move_number=int(full_move_number),
        )

    @classmethod
    def starting(cls) -> Self:
        return cls.from_fen(STARTING_FEN)

    def to_fen(self) -> str:
        """reverse operation: write a FEN from the given data"""
        return f"{self.repetition_key()} {self.half_move_clock} {self.full_move_number}"

    def repetition_key(self) -> str:
        """
        The first four FEN fields. Two positions are 'the same' for threefold repetition
        when placement, side to move, castling rights and en passant square all agree.
        """
        active_color = "w" if self.color_to_move == Color.WHITE else "b"
        en_passant_algebraic = (
            self.en_passant_square.to_algebraic()
            if self.en_passant_square is not None
            else NO_SQUARE
        )
        castling_str = castling_to_fen(self.castling_rights)
        return f"{self.board.to_fen()} {active_color} {castling_str} {en_passant_algebraic}"

    def castling_options(self, color: Color) -> list[CastlingDirection]:
        """The directions in which the player still holds the right to castle"""
        return [
            direction
            for direction in castling_directions(color)
            if self.castling_rights[direction]
        ]

    def with_side_to_move(self, color: Color) -> Self:
        """Hand the move to `color` without touching the pieces (the en passant chance is lost)."""
        full_move_number = self.full_move_number
        if self.color_to_move == Color.BLACK and color == Color.WHITE:
            full_move_number += 1
        return replace(
            self,
            color_to_move=color,
            en_passant_square=None,
            full_move_number=full_move_number,
        )
