"""
A square on the board

(placed in its own module as multiple other modules need to import it)
"""

from __future__ import annotations

from dataclasses import dataclass
from string import ascii_uppercase

# Chess board is always 8x8.
BOARD_DIMENSIONS = (8, 8)
FILE_NAMES = ascii_uppercase[: BOARD_DIMENSIONS[0]]
RANK_NAMES = "".join(str(rank) for rank in range(1, BOARD_DIMENSIONS[1] + 1))


@dataclass(frozen=True)
class Square:
    file: int
    rank: int

    @classmethod
    def from_notation(cls, sq: str) -> Square:
        """Message notation: 'A1' - 'H8' get converted to (1,1) - (8,8)"""
        file = ord(sq[0]) - ord("A") + 1
        rank = int(sq[1])
        return cls(file, rank)

    def to_notation(self) -> str:
        return f"{chr(self.file + ord('A') - 1)}{self.rank}"

    def is_within_bounds(self) -> bool:
        return (1 <= self.file <= BOARD_DIMENSIONS[0]) and (
            1 <= self.rank <= BOARD_DIMENSIONS[1]
        )

    def offset(self, df: int, dr: int) -> Square:
        """Square shifted by the given number of files / ranks. Can be out of bounds."""
        return Square(self.file + df, self.rank + dr)


def is_valid_notation(sq: str) -> bool:
    """Column letter A-H followed by row digit 1-8"""
    return len(sq) == 2 and sq[0] in FILE_NAMES and sq[1] in RANK_NAMES
