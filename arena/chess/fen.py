"""
Validation of FEN strings.

Decoding itself is done by Position.from_fen (and Board.from_fen for the placement field).
"""

from string import ascii_lowercase

from arena.chess.castling import CASTLING_ORDER
from arena.chess.pieces import FEN_TO_PIECE
from arena.chess.square import BOARD_DIMENSIONS

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
NO_SQUARE = "-"


def _valid_castling_encodings() -> set[str]:
    """'-' or any subsequence of 'KQkq' that keeps the canonical order."""
    encodings = {NO_SQUARE}
    symbols = [direction.value for direction in CASTLING_ORDER]
    for mask in range(1, 2 ** len(symbols)):
        encodings.add(
            "".join(symbol for idx, symbol in enumerate(symbols) if mask & (1 << idx))
        )
    return encodings


VALID_CASTLING_ENCODINGS: frozenset[str] = frozenset(_valid_castling_encodings())


def is_valid_fen(fen: str) -> bool:
    """
    Check if given string follows proper FEN notation.
    """

    # there should be 6 parts to the string
    parts = fen.split(" ")
    if len(parts) != 6:
        return False

    placement, color, castling, en_passant, half_move_counter, full_move_counter = parts
    return (
        is_valid_placement(placement)
        and is_valid_color_code(color)
        and is_valid_castling_rights(castling)
        and is_valid_en_passant(en_passant)
        and is_valid_move_counter(half_move_counter)
        and is_valid_move_counter(full_move_counter)
        and int(full_move_counter) >= 1
    )


def is_valid_placement(placement: str) -> bool:
    """Only check the part of the FEN encoding for the board position."""
    num_files, num_ranks = BOARD_DIMENSIONS
    rank_fens = placement.split("/")
    if len(rank_fens) != num_ranks:
        return False

    for rank_fen in rank_fens:
        file_count = 0
        for character in rank_fen:
            # make sure every character is valid
            if character.isdigit():
                file_count += int(character)
            elif character.lower() in FEN_TO_PIECE:
                file_count += 1
            else:
                # immediately invalidate if the character is anything else
                return False

        # make sure you are creating a correctly sized board
        if file_count != num_files:
            return False
    return True


def is_valid_color_code(color: str) -> bool:
    return color in {"w", "b"}


def is_valid_castling_rights(castling: str) -> bool:
    """A valid castling encoding has either KQkq, KQk, etc. or a '-' if all rights have been revoked."""
    return castling in VALID_CASTLING_ENCODINGS


def is_valid_en_passant(en_passant: str) -> bool:
    """Valid en passant square encoding should be a square on the 3rd or 6th rank, or a '-'"""
    if en_passant == NO_SQUARE:
        return True
    return is_valid_square(en_passant) and en_passant[1] in {"3", "6"}


def is_valid_square(square: str) -> bool:
    """Valid square should be a letter for the file + a number for the rank"""
    num_files, num_ranks = BOARD_DIMENSIONS
    if len(square) != 2:
        return False

    file_char, rank_char = square[0], square[1]
    if file_char not in ascii_lowercase[:num_files]:
        return False

    if not rank_char.isdigit():
        return False

    return 1 <= int(rank_char) <= num_ranks


def is_valid_move_counter(counter: str) -> bool:
    return counter.isdigit()
