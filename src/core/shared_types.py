"""
Type definitions used across layers
"""

from enum import StrEnum


class GameStatus(StrEnum):
    WHITE_TURN = "white turn"
    BLACK_TURN = "black turn"
    WAITING = "waiting"
    CHEAT = "cheat"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"


TERMINAL_STATUSES: frozenset[GameStatus] = frozenset(
    {GameStatus.CHEAT, GameStatus.CHECKMATE, GameStatus.STALEMATE}
)


# --- Wire codes are the enum values, so a Color can be written straight into a message


class Color(StrEnum):
    WHITE = "W"
    BLACK = "B"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE


class PieceKind(StrEnum):
    PAWN = "P"
    KNIGHT = "N"
    BISHOP = "B"
    ROOK = "R"
    QUEEN = "Q"
    KING = "K"


class ActionKind(StrEnum):
    MOVE = "move"
    CAPTURE = "capture"
    CASTLE = "castle"
    EN_PASSANT = "en passant"
    TRANSFORM = "transform"


def turn_status(color: Color) -> GameStatus:
    """The status meaning it is `color`'s turn to move."""
    return GameStatus.WHITE_TURN if color == Color.WHITE else GameStatus.BLACK_TURN
