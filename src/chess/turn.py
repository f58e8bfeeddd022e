"""
Representation of a single turn. The part that gets sent as a message after every move.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Self

from src.chess.board import Board, Positions
from src.chess.castling import CastleRights, CastlingDirection, all_rights
from src.chess.pieces import (
    INITIAL_POSITIONS,
    PIECE_ORDER,
    PROMOTION_KINDS,
    PieceId,
    PromotionRegistry,
)
from src.chess.square import Square, is_valid_notation
from src.core.exceptions import ContinuityError, ProtocolError
from src.core.shared_types import Color, PieceKind

logger = logging.getLogger(__name__)

CAPTURED = "XX"
GAME_DELIMITER = ","
CASTLE_TRUE = "T"
CASTLE_FALSE = "F"
# 32 pieces of 2 characters, plus 1 extra character for every (at most 16) transformed pawn
MIN_BOARD_LENGTH = 2 * len(PIECE_ORDER)
MAX_BOARD_LENGTH = MIN_BOARD_LENGTH + 16

_PROMOTED_KIND_CHARS = "".join(kind.value for kind in PROMOTION_KINDS)
_BOARD_CHARSET = re.compile(r"^[A-H1-8KQRBNPX]+$")

Diff = dict[PieceId, tuple[Optional[Square], Optional[Square]]]


def _castle_flag_from_char(character: str) -> Optional[bool]:
    """Anything other than T/F is unknown. Never default to allowing the castle."""
    if character == CASTLE_TRUE:
        return True
    if character == CASTLE_FALSE:
        return False
    return None


def _castle_flag_to_char(flag: Optional[bool]) -> str:
    return CASTLE_TRUE if flag else CASTLE_FALSE


def decode_board(board: str) -> tuple[Positions, PromotionRegistry]:
    """
    Read the 32 piece entries in canonical order.
    ---

    Each entry is
    * a square: "E4"
    * a transformed pawn: kind character + square "QE8"
    * the captured sentinel: "XX"
    """
    if not MIN_BOARD_LENGTH <= len(board) <= MAX_BOARD_LENGTH:
        raise ProtocolError(
            f"Board must be {MIN_BOARD_LENGTH}-{MAX_BOARD_LENGTH} characters long, got {len(board)}",
            field="board",
        )
    if not _BOARD_CHARSET.match(board):
        raise ProtocolError(f"Board contains invalid characters: {board!r}", field="board")

    positions: Positions = {}
    registry: PromotionRegistry = {}
    idx = 0
    for piece in PIECE_ORDER:
        entry = board[idx : idx + 3]
        if (
            piece.kind == PieceKind.PAWN
            and len(entry) == 3
            and entry[0] in _PROMOTED_KIND_CHARS
            and is_valid_notation(entry[1:])
        ):
            registry[piece] = PieceKind(entry[0])
            positions[piece] = Square.from_notation(entry[1:])
            idx += 3
            continue

        entry = board[idx : idx + 2]
        if entry == CAPTURED:
            positions[piece] = None
        elif is_valid_notation(entry):
            positions[piece] = Square.from_notation(entry)
        else:
            raise ProtocolError(
                f"Cannot read position of {piece} from {entry!r}", field="board"
            )
        idx += 2

    if idx != len(board):
        raise ProtocolError(
            f"Board holds more than {len(PIECE_ORDER)} pieces", field="board"
        )

    # Two pieces on one square cannot be turned into a board
    Board.from_positions(positions)
    return positions, registry


def encode_board(positions: Positions, registry: PromotionRegistry) -> str:
    entries: list[str] = []
    for piece in PIECE_ORDER:
        square = positions.get(piece)
        if square is None:
            entries.append(CAPTURED)
            continue
        kind_char = registry[piece].value if piece in registry else ""
        entries.append(f"{kind_char}{square.to_notation()}")
    return "".join(entries)


def decode_castle_rights(castle: str) -> CastleRights:
    if len(castle) != len(CastlingDirection):
        raise ProtocolError(
            f"Castle rights must hold exactly {len(CastlingDirection)} flags: {castle!r}",
            field="castle",
        )
    return {
        direction: _castle_flag_from_char(character)
        for direction, character in zip(CastlingDirection, castle)
    }


def encode_castle_rights(castle_rights: CastleRights) -> str:
    return "".join(
        _castle_flag_to_char(castle_rights.get(direction))
        for direction in CastlingDirection
    )


@dataclass
class TurnSnapshot:
    """
    Data that can be constructed from a turn message.
    ----

    <board><delimiter><mover><delimiter><castle rights>

    * The board lists the square of every piece in a fixed order ("XX" when captured).
      A transformed pawn writes its new kind in front of its square.
    * The mover is the color who played this turn: "W" or "B"
    * Castle rights are 4 T/F flags: white queen side, white king side, black queen side, black king side.

    ex) The starting position, after black "played" the zero-th turn:
    A1B1C1D1E1F1G1H1A2B2C2D2E2F2G2H2A8B8C8D8E8F8G8H8A7B7C7D7E7F7G7H7,B,TTTT
    """

    positions: Positions
    mover: Color
    castle_rights: CastleRights
    registry: PromotionRegistry = field(default_factory=dict)

    @classmethod
    def from_message(cls, message: str) -> Self:
        """Parse the message into data. Raises ProtocolError naming the offending field."""
        parts = message.split(GAME_DELIMITER)
        if len(parts) != 3:
            raise ProtocolError(
                f"Turn message must contain 3 {GAME_DELIMITER!r}-separated parts: {message!r}",
                field="message",
            )
        board, mover, castle = parts

        positions, registry = decode_board(board)
        if mover not in {color.value for color in Color}:
            raise ProtocolError(f"Unknown mover color: {mover!r}", field="mover")
        castle_rights = decode_castle_rights(castle)
        return cls(positions, Color(mover), castle_rights, registry)

    def to_message(self) -> str:
        """reverse operation: write a message from the given data"""
        return GAME_DELIMITER.join(
            [
                encode_board(self.positions, self.registry),
                self.mover.value,
                encode_castle_rights(self.castle_rights),
            ]
        )

    @property
    def board(self) -> Board:
        return Board.from_positions(self.positions)

    def square_of(self, piece: PieceId) -> Optional[Square]:
        return self.positions.get(piece)

    def has_known_castle_rights(self) -> bool:
        return all(flag is not None for flag in self.castle_rights.values())


def encode_turn(snapshot: TurnSnapshot) -> str:
    return snapshot.to_message()


def decode_turn(message: str) -> TurnSnapshot:
    return TurnSnapshot.from_message(message)


def is_valid_turn(message: str) -> bool:
    """Does the message decode into a well-formed snapshot with known castle rights?"""
    try:
        snapshot = TurnSnapshot.from_message(message)
    except ProtocolError:
        return False
    return snapshot.has_known_castle_rights()


def diff_positions(last: Positions, current: Positions) -> Diff:
    """One entry (old square, new square) for every piece that changed square, in canonical order"""
    return {
        piece: (last.get(piece), current.get(piece))
        for piece in PIECE_ORDER
        if last.get(piece) != current.get(piece)
    }


@dataclass
class TurnDiff:
    """Everything the receiver needs from two consecutive turns to classify the action in between"""

    last: TurnSnapshot
    current: TurnSnapshot
    differences: Diff
    transformed: bool

    @property
    def mover(self) -> Color:
        return self.current.mover

    @property
    def new_registrations(self) -> list[PieceId]:
        return [
            piece for piece in self.current.registry if piece not in self.last.registry
        ]


def decode_and_diff(last_message: str, current_message: str) -> TurnDiff:
    """
    Decode both turns and compute the piece differences.
    ---

    At most one pawn gets registered (a transform) and at most one entry leaves the registry (a promoted
    pawn got captured). Both can happen in the same turn, so the size of the registry says nothing.
    """
    last = TurnSnapshot.from_message(last_message)
    current = TurnSnapshot.from_message(current_message)

    registered = [piece for piece in current.registry if piece not in last.registry]
    dropped = [piece for piece in last.registry if piece not in current.registry]
    if len(registered) > 1 or len(dropped) > 1:
        raise ContinuityError(
            f"Promotion registry gained {len(registered)} and lost {len(dropped)} entries between two turns",
            blame=current.mover,
        )

    differences = diff_positions(last.positions, current.positions)
    logger.debug(
        "Diff between turns of %s and %s: %s",
        last.mover.name.lower(),
        current.mover.name.lower(),
        {str(piece): squares for piece, squares in differences.items()},
    )
    # a pawn that got registered on a turn in which it also moved
    transformed = bool(registered) and registered[0] in differences
    return TurnDiff(last, current, differences, transformed=transformed)


# --- CANONICAL OPENING TURNS ---
def opening_turns() -> tuple[str, str]:
    """
    The two turns every game starts from.

    The "negative first" turn has the black knight on C6 and white as mover, the "zero-th" turn is the
    starting position with black as mover. Their difference is a single (legal-looking) knight move,
    so white's first real move can be validated like any other.
    """
    neg_one_positions: Positions = dict(INITIAL_POSITIONS)
    neg_one_positions[PieceId(Color.BLACK, PieceKind.KNIGHT, 1)] = Square.from_notation("C6")
    neg_one = TurnSnapshot(neg_one_positions, Color.WHITE, all_rights())
    zero = TurnSnapshot(dict(INITIAL_POSITIONS), Color.BLACK, all_rights())
    return neg_one.to_message(), zero.to_message()


NEG_ONE_TURN, ZERO_TURN = opening_turns()
