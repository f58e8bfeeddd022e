"""Unit tests for /src/chess/castling.py"""

import pytest

from src.chess.castling import (
    CASTLING_RULES,
    CastlingDirection,
    all_rights,
    castling_direction_for,
    directions_for,
    revoke_castling_rights,
)
from src.chess.pieces import INITIAL_POSITIONS, PieceId
from src.chess.square import Square
from src.core.shared_types import Color


def test_directions_in_message_order() -> None:
    """Flags are written: white queen side, white king side, black queen side, black king side."""
    assert list(CastlingDirection) == [
        CastlingDirection.WHITE_QUEEN_SIDE,
        CastlingDirection.WHITE_KING_SIDE,
        CastlingDirection.BLACK_QUEEN_SIDE,
        CastlingDirection.BLACK_KING_SIDE,
    ]
    assert directions_for(Color.BLACK) == [
        CastlingDirection.BLACK_QUEEN_SIDE,
        CastlingDirection.BLACK_KING_SIDE,
    ]


@pytest.mark.parametrize(
    "direction, rook_code",
    [
        (CastlingDirection.WHITE_QUEEN_SIDE, "WR1"),
        (CastlingDirection.WHITE_KING_SIDE, "WR2"),
        (CastlingDirection.BLACK_QUEEN_SIDE, "BR1"),
        (CastlingDirection.BLACK_KING_SIDE, "BR2"),
    ],
)
def test_every_right_belongs_to_one_rook(
    direction: CastlingDirection, rook_code: str
) -> None:
    """The rook of a right starts where the castle expects it."""
    rook = PieceId.from_code(rook_code)
    assert direction.rook == rook
    assert INITIAL_POSITIONS[rook] == CASTLING_RULES[direction].rook_from


@pytest.mark.parametrize(
    "color, king_to, expected",
    [
        (Color.WHITE, "G1", CastlingDirection.WHITE_KING_SIDE),
        (Color.WHITE, "C1", CastlingDirection.WHITE_QUEEN_SIDE),
        (Color.BLACK, "C8", CastlingDirection.BLACK_QUEEN_SIDE),
        (Color.BLACK, "G1", None),
        (Color.WHITE, "E4", None),
    ],
)
def test_castling_direction_for(
    color: Color, king_to: str, expected: CastlingDirection | None
) -> None:
    assert castling_direction_for(color, Square.from_notation(king_to)) == expected


def test_rights_survive_in_initial_position() -> None:
    assert revoke_castling_rights(all_rights(), dict(INITIAL_POSITIONS)) == all_rights()


def test_king_move_revokes_both_rights() -> None:
    positions: dict[PieceId, Square | None] = dict(INITIAL_POSITIONS)
    positions[PieceId.from_code("WK")] = Square.from_notation("F1")
    rights = revoke_castling_rights(all_rights(), positions)
    assert rights[CastlingDirection.WHITE_QUEEN_SIDE] is False
    assert rights[CastlingDirection.WHITE_KING_SIDE] is False
    assert rights[CastlingDirection.BLACK_QUEEN_SIDE] is True
    assert rights[CastlingDirection.BLACK_KING_SIDE] is True


def test_captured_rook_revokes_its_own_right() -> None:
    positions: dict[PieceId, Square | None] = dict(INITIAL_POSITIONS)
    positions[PieceId.from_code("BR2")] = None
    rights = revoke_castling_rights(all_rights(), positions)
    assert rights[CastlingDirection.BLACK_KING_SIDE] is False
    assert rights[CastlingDirection.BLACK_QUEEN_SIDE] is True


def test_revoked_rights_never_come_back() -> None:
    """False and unknown flags stay as they are, even with king and rook at home."""
    rights = all_rights(False)
    rights[CastlingDirection.WHITE_KING_SIDE] = None
    revoked = revoke_castling_rights(rights, dict(INITIAL_POSITIONS))
    assert revoked[CastlingDirection.WHITE_KING_SIDE] is None
    assert all(
        revoked[direction] is False
        for direction in CastlingDirection
        if direction != CastlingDirection.WHITE_KING_SIDE
    )
