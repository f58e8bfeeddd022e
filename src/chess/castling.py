"""Helpers for implementing Castling rules. Need to be imported by multiple sources"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Self

from src.chess.pieces import PieceId, king_of
from src.chess.square import Square
from src.core.shared_types import Color, PieceKind


class CastlingDirection(Enum):
    """The four castling rights. Declared in the order their flags are written in a turn message."""

    WHITE_QUEEN_SIDE = (Color.WHITE, 1)
    WHITE_KING_SIDE = (Color.WHITE, 2)
    BLACK_QUEEN_SIDE = (Color.BLACK, 1)
    BLACK_KING_SIDE = (Color.BLACK, 2)

    @property
    def color(self) -> Color:
        return self.value[0]

    @property
    def rook(self) -> PieceId:
        """Every right is tied to one specific rook (rook #1 starts on the A-file, rook #2 on the H-file)"""
        return PieceId(self.value[0], PieceKind.ROOK, self.value[1])


# None: the flag could not be read from the message
CastleRights = dict[CastlingDirection, Optional[bool]]


@dataclass(frozen=True)
class CastlingSquares:
    """
    Store the squares where king/rook start from/end up in by castling,
    plus the squares that must be empty and safe for the castle to be allowed.
    """

    king_from: Square
    king_to: Square
    rook_from: Square
    rook_to: Square
    path: tuple[Square, ...]

    @classmethod
    def from_notation(
        cls, k_from: str, k_to: str, r_from: str, r_to: str, path: str
    ) -> Self:
        """Convenience method: to make mapping shown below (from CastlingDirection) more readable"""
        return cls(
            king_from=Square.from_notation(k_from),
            king_to=Square.from_notation(k_to),
            rook_from=Square.from_notation(r_from),
            rook_to=Square.from_notation(r_to),
            path=tuple(Square.from_notation(sq) for sq in path.split()),
        )


# The moves made when castling. The path includes the king's own square (it may not castle out of check).
CASTLING_RULES: dict[CastlingDirection, CastlingSquares] = {
    CastlingDirection.WHITE_QUEEN_SIDE: CastlingSquares.from_notation(
        "E1", "C1", "A1", "D1", "B1 C1 D1 E1"
    ),
    CastlingDirection.WHITE_KING_SIDE: CastlingSquares.from_notation(
        "E1", "G1", "H1", "F1", "E1 F1 G1"
    ),
    CastlingDirection.BLACK_QUEEN_SIDE: CastlingSquares.from_notation(
        "E8", "C8", "A8", "D8", "B8 C8 D8 E8"
    ),
    CastlingDirection.BLACK_KING_SIDE: CastlingSquares.from_notation(
        "E8", "G8", "H8", "F8", "E8 F8 G8"
    ),
}


def directions_for(color: Color) -> list[CastlingDirection]:
    return [direction for direction in CastlingDirection if direction.color == color]


def all_rights(value: Optional[bool] = True) -> CastleRights:
    return {direction: value for direction in CastlingDirection}


def castling_direction_for(color: Color, king_to: Square) -> Optional[CastlingDirection]:
    """Which castle (if any) lands the king of `color` on `king_to`"""
    for direction in directions_for(color):
        if CASTLING_RULES[direction].king_to == king_to:
            return direction
    return None


def revoke_castling_rights(
    rights: CastleRights, positions: dict[PieceId, Optional[Square]]
) -> CastleRights:
    """
    A right survives only as long as both the king and that right's rook still stand on their starting squares.
    Rights that are already False (or unknown) stay that way.
    """
    updated: CastleRights = {}
    for direction, allowed in rights.items():
        rule = CASTLING_RULES[direction]
        king_home = positions.get(king_of(direction.color)) == rule.king_from
        rook_home = positions.get(direction.rook) == rule.rook_from
        updated[direction] = allowed if not allowed else (king_home and rook_home)
    return updated
