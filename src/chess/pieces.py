"""Defines the 32 pieces of a game and the (stateless) rules about their identity"""

from dataclasses import dataclass
from typing import Optional, Self

from src.chess.square import Square
from src.core.shared_types import Color, PieceKind

Vector = tuple[int, int]

# Kinds a pawn is allowed to transform into
PROMOTION_KINDS: tuple[PieceKind, ...] = (
    PieceKind.KNIGHT,
    PieceKind.BISHOP,
    PieceKind.ROOK,
    PieceKind.QUEEN,
)


@dataclass(frozen=True)
class PieceId:
    """
    Stable identity of a piece, assigned at game start.
    ---

    The kind stored here never changes. A promoted pawn stays a PAWN PieceId: its effective kind lives in the
    promotion registry instead.
    """

    color: Color
    kind: PieceKind
    number: Optional[int] = None

    @classmethod
    def from_code(cls, code: str) -> Self:
        """'WR1' -> white rook number 1, 'BK' -> black king"""
        number = int(code[2:]) if len(code) > 2 else None
        return cls(Color(code[0]), PieceKind(code[1]), number)

    @property
    def code(self) -> str:
        number = str(self.number) if self.number is not None else ""
        return f"{self.color.value}{self.kind.value}{number}"

    def __str__(self) -> str:
        return self.code


PromotionRegistry = dict[PieceId, PieceKind]


def _back_rank(color: Color) -> list[PieceId]:
    return [
        PieceId(color, PieceKind.ROOK, 1),
        PieceId(color, PieceKind.KNIGHT, 1),
        PieceId(color, PieceKind.BISHOP, 1),
        PieceId(color, PieceKind.QUEEN),
        PieceId(color, PieceKind.KING),
        PieceId(color, PieceKind.BISHOP, 2),
        PieceId(color, PieceKind.KNIGHT, 2),
        PieceId(color, PieceKind.ROOK, 2),
    ]


def _pawns(color: Color) -> list[PieceId]:
    return [PieceId(color, PieceKind.PAWN, number) for number in range(1, 9)]


# Fixed order in which pieces get written into a turn message
PIECE_ORDER: tuple[PieceId, ...] = tuple(
    _back_rank(Color.WHITE)
    + _pawns(Color.WHITE)
    + _back_rank(Color.BLACK)
    + _pawns(Color.BLACK)
)


def _initial_positions() -> dict[PieceId, Square]:
    home_ranks = {Color.WHITE: (1, 2), Color.BLACK: (8, 7)}
    positions: dict[PieceId, Square] = {}
    for color, (back_rank, pawn_rank) in home_ranks.items():
        for file, piece in enumerate(_back_rank(color), start=1):
            positions[piece] = Square(file, back_rank)
        for file, piece in enumerate(_pawns(color), start=1):
            positions[piece] = Square(file, pawn_rank)
    return positions


INITIAL_POSITIONS: dict[PieceId, Square] = _initial_positions()


def king_of(color: Color) -> PieceId:
    return PieceId(color, PieceKind.KING)


def owns_piece(color: Color, piece: PieceId) -> bool:
    return piece.color == color


def are_allies(piece: PieceId, other: Optional[PieceId]) -> bool:
    return other is not None and piece.color == other.color


def are_enemies(piece: PieceId, other: Optional[PieceId]) -> bool:
    return other is not None and piece.color != other.color


def effective_kind(piece: PieceId, registry: PromotionRegistry) -> PieceKind:
    """A transformed pawn acts as the kind it was promoted to."""
    if piece.kind == PieceKind.PAWN:
        return registry.get(piece, PieceKind.PAWN)
    return piece.kind


def is_kind(piece: PieceId, kind: PieceKind, registry: PromotionRegistry) -> bool:
    return effective_kind(piece, registry) == kind


def can_attack_direction(
    piece: PieceId, direction: Vector, registry: PromotionRegistry
) -> bool:
    """Can this piece attack (from any distance) along the given ray? Diagonal: bishop/queen. Straight: rook/queen"""
    kind = effective_kind(piece, registry)
    df, dr = direction
    if df != 0 and dr != 0:
        return kind in (PieceKind.BISHOP, PieceKind.QUEEN)
    return kind in (PieceKind.ROOK, PieceKind.QUEEN)
