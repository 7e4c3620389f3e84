"""
A square on the board

(placed in its own module as multiple other modules need to import it)
"""

from __future__ import annotations

from dataclasses import dataclass

# Chess board is always 8x8.
BOARD_DIMENSIONS = (8, 8)


@dataclass(frozen=True)
class Square:
    file: int
    rank: int

    @classmethod
    def from_algebraic(cls, sq: str) -> Square:
        """Algebraic notation: 'a1' - 'h8' get converted to (1,1) - (8,8)"""
        file = ord(sq[0]) - ord("a") + 1
        rank = int(sq[1])
        return cls(file, rank)

    def to_algebraic(self) -> str:
        return f"{chr(self.file + ord('a') - 1)}{self.rank}"

    def is_within_bounds(self) -> bool:
        return (1 <= self.file <= BOARD_DIMENSIONS[0]) and (
            1 <= self.rank <= BOARD_DIMENSIONS[1]
        )

    def is_light(self) -> bool:
        """a1 is a dark square, so light squares have an odd file + rank sum."""
        return (self.file + self.rank) % 2 == 1

    def offset(self, df: int, dr: int) -> Square:
        return Square(self.file + df, self.rank + dr)


def scan_order() -> list[Square]:
    """
    Board-scan order: ranks top-to-bottom (8 -> 1), files left-to-right (a -> h).

    This is the same order a FEN string lists the squares in, and it is the tie-break
    used when an undisambiguated move could be played by more than one piece.
    """
    num_files, num_ranks = BOARD_DIMENSIONS
    return [
        Square(file, rank)
        for rank in range(num_ranks, 0, -1)
        for file in range(1, num_files + 1)
    ]


SCAN_ORDER: tuple[Square, ...] = tuple(scan_order())
SCAN_INDEX: dict[Square, int] = {square: idx for idx, square in enumerate(SCAN_ORDER)}
