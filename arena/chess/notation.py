"""
SAN-like move notation.

Parsing only extracts what the text *claims* (piece kind, destination, hints, capture marker, promotion).
Whether the claim fits the position is decided by the rules module.

Accepted shapes:
* pawn moves: "e4", "exd5", "e8=Q", "e8Q", "exd8=N"
* piece moves, optionally disambiguated: "Nf3", "Nbd7", "R1e2", "Qh4xe1", "Bxc6"
* castling: "O-O", "O-O-O" (zeros and lower case o's are accepted too)
* coordinate moves, treated as fully disambiguated: "e2e4", "e7e8q", "g1f3"

Check/mate markers and annotation glyphs ("+", "#", "!", "?") and a leading move number ("12.", "3...") are ignored.
"""

import re
from dataclasses import dataclass
from typing import Optional

from arena.chess.castling import CastlingSide
from arena.chess.pieces import FEN_TO_PIECE, PIECE_TO_FEN, PieceType
from arena.chess.square import Square

SAN_PATTERN = re.compile(
    r"^(?P<piece>[KQRBN])?"
    r"(?P<from_file>[a-h])?(?P<from_rank>[1-8])?"
    r"(?P<capture>[x:])?"
    r"(?P<to_file>[a-h])(?P<to_rank>[1-8])"
    r"(?:=?(?P<promotion>[QRBNqrbn]))?$"
)
CASTLING_PATTERN = re.compile(r"^[O0o]-[O0o](?P<long>-[O0o])?$")
MOVE_NUMBER_PREFIX = re.compile(r"^\d+\.+\s*")
ANNOTATION_SUFFIX = re.compile(r"(?:e\.p\.|[+#!?\s])+$")


@dataclass(frozen=True)
class ParsedNotation:
    """What the move text says. Squares and hints are not checked against any position yet."""

    text: str
    piece_type: PieceType = PieceType.PAWN
    to_square: Optional[Square] = None
    from_file: Optional[int] = None
    from_rank: Optional[int] = None
    is_capture: bool = False
    promote_to: Optional[PieceType] = None
    castling_side: Optional[CastlingSide] = None
    is_coordinate: bool = False

    @property
    def is_castling(self) -> bool:
        return self.castling_side is not None

    @property
    def has_hints(self) -> bool:
        return self.from_file is not None or self.from_rank is not None

    def matches_origin(self, square: Square) -> bool:
        """Does the starting square agree with the file/rank hints given?"""
        if self.from_file is not None and square.file != self.from_file:
            return False
        if self.from_rank is not None and square.rank != self.from_rank:
            return False
        return True


def clean_notation(text: str) -> str:
    """Strip the decorations agents (and humans) like to add around a move."""
    cleaned = text.strip().strip("\"'`*")
    cleaned = MOVE_NUMBER_PREFIX.sub("", cleaned)
    return ANNOTATION_SUFFIX.sub("", cleaned).strip()


def parse_notation(text: str) -> Optional[ParsedNotation]:
    """Return the parsed claim, or None when the text is not a move in any supported notation."""
    cleaned = clean_notation(text)
    if not cleaned:
        return None

    castling = CASTLING_PATTERN.match(cleaned)
    if castling:
        side = CastlingSide.QUEEN_SIDE if castling["long"] else CastlingSide.KING_SIDE
        return ParsedNotation(text=cleaned, piece_type=PieceType.KING, castling_side=side)

    match = SAN_PATTERN.match(cleaned)
    if not match:
        return None

    piece_type = FEN_TO_PIECE[match["piece"].lower()] if match["piece"] else PieceType.PAWN
    to_square = Square.from_algebraic(match["to_file"] + match["to_rank"])
    from_file = ord(match["from_file"]) - ord("a") + 1 if match["from_file"] else None
    from_rank = int(match["from_rank"]) if match["from_rank"] else None
    promote_to = FEN_TO_PIECE[match["promotion"].lower()] if match["promotion"] else None

    return ParsedNotation(
        text=cleaned,
        piece_type=piece_type,
        to_square=to_square,
        from_file=from_file,
        from_rank=from_rank,
        is_capture=match["capture"] is not None,
        promote_to=promote_to,
        is_coordinate=not match["piece"] and from_file is not None and from_rank is not None,
    )


def piece_name(piece_type: PieceType) -> str:
    return piece_type.name.lower()


def piece_letter(piece_type: PieceType) -> str:
    """SAN letter of a piece; pawns have none."""
    return "" if piece_type == PieceType.PAWN else PIECE_TO_FEN[piece_type].upper()
