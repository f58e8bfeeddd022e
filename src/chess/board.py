"""The Board is the square -> piece view of a position. It is always derived from the piece -> square mapping of a turn."""

from dataclasses import dataclass, field
from typing import Optional, Self

from src.chess.pieces import PieceId
from src.chess.square import Square
from src.core.exceptions import ProtocolError

Positions = dict[PieceId, Optional[Square]]


@dataclass
class Board:
    position: dict[Square, PieceId] = field(default_factory=dict)

    @classmethod
    def from_positions(cls, positions: Positions) -> Self:
        """Invert the positions mapping. Captured pieces (None) do not appear on the board."""
        position: dict[Square, PieceId] = {}
        for piece, square in positions.items():
            if square is None:
                continue
            if square in position:
                raise ProtocolError(
                    f"{piece} and {position[square]} both stand on {square.to_notation()}",
                    field="board",
                )
            position[square] = piece
        return cls(position)

    def piece(self, square: Square) -> Optional[PieceId]:
        return self.position.get(square)

    def is_empty(self, square: Square, ignore: Optional[PieceId] = None) -> bool:
        """An empty square, or one that holds the piece we pretend is not there."""
        piece = self.piece(square)
        return piece is None or piece == ignore

    def move_piece(self, from_square: Square, to_square: Square) -> Optional[PieceId]:
        """Update the position on the board. Returns the piece that got captured on the destination (if any)."""
        moving_piece = self.position.pop(from_square)
        captured = self.position.get(to_square)
        self.position[to_square] = moving_piece
        return captured

    def remove_piece(self, square: Square) -> Optional[PieceId]:
        return self.position.pop(square, None)

    def to_positions(self, pieces: tuple[PieceId, ...]) -> Positions:
        """Back to the piece -> square mapping. Every piece that is not on the board counts as captured."""
        positions: Positions = {piece: None for piece in pieces}
        for square, piece in self.position.items():
            positions[piece] = square
        return positions
