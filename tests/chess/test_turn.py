"""Unit tests for /src/chess/turn.py"""

from typing import Callable

import pytest

from src.chess.castling import CastlingDirection, all_rights
from src.chess.pieces import INITIAL_POSITIONS, PieceId
from src.chess.square import Square
from src.chess.turn import (
    NEG_ONE_TURN,
    ZERO_TURN,
    TurnSnapshot,
    decode_and_diff,
    decode_board,
    decode_castle_rights,
    decode_turn,
    diff_positions,
    encode_castle_rights,
    encode_turn,
    is_valid_turn,
)
from src.core.exceptions import ContinuityError, ProtocolError
from src.core.shared_types import Color, PieceKind

START_BOARD = "A1B1C1D1E1F1G1H1A2B2C2D2E2F2G2H2A8B8C8D8E8F8G8H8A7B7C7D7E7F7G7H7"
KNIGHT_TO_C3 = "A1C3C1D1E1F1G1H1A2B2C2D2E2F2G2H2A8B8C8D8E8F8G8H8A7B7C7D7E7F7G7H7,W,TTTT"

TurnBuilder = Callable[..., str]


# --- OPENING TURNS ---
def test_opening_turns() -> None:
    """The zero-th turn is the starting position. The one before has the black knight on C6."""
    assert ZERO_TURN == f"{START_BOARD},B,TTTT"
    assert NEG_ONE_TURN == START_BOARD.replace("B8", "C6", 1) + ",W,TTTT"

    zero = decode_turn(ZERO_TURN)
    assert zero.positions == INITIAL_POSITIONS
    assert zero.mover == Color.BLACK
    assert zero.castle_rights == all_rights()
    assert zero.registry == {}


# --- ENCODING / DECODING ---
def test_round_trip_with_captures_and_promotions(turn_from: TurnBuilder) -> None:
    message = turn_from(
        {"E1": "WK", "E8": "BK", "A8": "WP1", "H1": "BP8", "C3": "BN1"},
        Color.BLACK,
        "FTFF",
        {"WP1": PieceKind.QUEEN, "BP8": PieceKind.KNIGHT},
    )
    snapshot = decode_turn(message)
    assert snapshot.registry == {
        PieceId.from_code("WP1"): PieceKind.QUEEN,
        PieceId.from_code("BP8"): PieceKind.KNIGHT,
    }
    assert snapshot.square_of(PieceId.from_code("WP1")) == Square.from_notation("A8")
    assert snapshot.square_of(PieceId.from_code("WR1")) is None
    assert snapshot.castle_rights[CastlingDirection.WHITE_KING_SIDE] is True
    assert snapshot.castle_rights[CastlingDirection.BLACK_KING_SIDE] is False
    assert encode_turn(snapshot) == message

    # promoted pawns take 3 characters
    board = message.split(",")[0]
    assert "QA8" in board and "NH1" in board
    assert len(board) == 64 + 2


def test_all_captured_but_kings(turn_from: TurnBuilder) -> None:
    message = turn_from({"E1": "WK", "E8": "BK"})
    board = message.split(",")[0]
    assert board.count("XX") == 30
    assert decode_turn(message).to_message() == message


@pytest.mark.parametrize(
    "message, field",
    [
        (f"{START_BOARD},B", "message"),  # missing castle rights
        (f"{START_BOARD},B,TTTT,extra", "message"),
        (f"{START_BOARD[:-2]},B,TTTT", "board"),  # too short
        (f"{START_BOARD}A1A1A1A1A1A1A1A1A1,B,TTTT", "board"),  # too long
        (f"a1{START_BOARD[2:]},B,TTTT", "board"),  # lowercase
        (f"A0{START_BOARD[2:]},B,TTTT", "board"),  # row out of range
        (f"QA1{START_BOARD[2:]},B,TTTT", "board"),  # only pawns can be promoted
        (f"{START_BOARD[:2]}A1{START_BOARD[4:]},B,TTTT", "board"),  # two pieces on A1
        (f"{START_BOARD},O,TTTT", "mover"),
        (f"{START_BOARD},WB,TTTT", "mover"),
        (f"{START_BOARD},B,TTTTT", "castle"),
        (f"{START_BOARD},B,TT", "castle"),
    ],
)
def test_decode_rejects_malformed_turns(message: str, field: str) -> None:
    """Decoding fails with the name of the part that is malformed."""
    with pytest.raises(ProtocolError) as excinfo:
        TurnSnapshot.from_message(message)
    assert excinfo.value.field == field
    assert is_valid_turn(message) is False


def test_unknown_castle_flags_are_never_permissive() -> None:
    """Anything other than T/F is unknown. The message decodes, but is not a valid turn."""
    rights = decode_castle_rights("TQFT")
    assert rights[CastlingDirection.WHITE_QUEEN_SIDE] is True
    assert rights[CastlingDirection.WHITE_KING_SIDE] is None
    assert rights[CastlingDirection.BLACK_QUEEN_SIDE] is False

    message = f"{START_BOARD},B,TQFT"
    snapshot = decode_turn(message)
    assert not snapshot.has_known_castle_rights()
    assert is_valid_turn(message) is False
    # written back as not allowed
    assert encode_castle_rights(snapshot.castle_rights) == "TFFT"


def test_decode_board_registry() -> None:
    board = START_BOARD.replace("A2", "RA5", 1)
    positions, registry = decode_board(board)
    assert registry == {PieceId.from_code("WP1"): PieceKind.ROOK}
    assert positions[PieceId.from_code("WP1")] == Square.from_notation("A5")


# --- DIFFING ---
def test_knight_development_diff() -> None:
    """From the start, white plays B1 -> C3: exactly one difference"""
    diff = decode_and_diff(ZERO_TURN, KNIGHT_TO_C3)
    assert diff.differences == {
        PieceId.from_code("WN1"): (Square.from_notation("B1"), Square.from_notation("C3"))
    }
    assert diff.mover == Color.WHITE
    assert diff.transformed is False


def test_opening_turns_differ_by_one_knight_move() -> None:
    diff = decode_and_diff(NEG_ONE_TURN, ZERO_TURN)
    assert diff.differences == {
        PieceId.from_code("BN1"): (Square.from_notation("C6"), Square.from_notation("B8"))
    }


def test_capture_diff(turn_from: TurnBuilder) -> None:
    """A captured piece changes from its square to None"""
    last = turn_from({"A1": "WR1", "A7": "BP1"}, Color.BLACK)
    current = turn_from({"A7": "WR1"}, Color.WHITE)
    diff = decode_and_diff(last, current)
    assert diff.differences == {
        PieceId.from_code("WR1"): (Square.from_notation("A1"), Square.from_notation("A7")),
        PieceId.from_code("BP1"): (Square.from_notation("A7"), None),
    }


def test_diff_positions_ignores_unchanged_pieces() -> None:
    assert diff_positions(dict(INITIAL_POSITIONS), dict(INITIAL_POSITIONS)) == {}


def test_promotion_shows_in_diff(turn_from: TurnBuilder) -> None:
    last = turn_from({"A7": "WP1", "E1": "WK", "E8": "BK"}, Color.BLACK)
    current = turn_from(
        {"A8": "WP1", "E1": "WK", "E8": "BK"}, Color.WHITE, registry={"WP1": PieceKind.QUEEN}
    )
    diff = decode_and_diff(last, current)
    assert diff.transformed is True
    assert diff.new_registrations == [PieceId.from_code("WP1")]


def test_registry_cannot_jump(turn_from: TurnBuilder) -> None:
    """Only one pawn can transform per turn"""
    last = turn_from({"A7": "WP1", "B7": "WP2"}, Color.BLACK)
    current = turn_from(
        {"A8": "WP1", "B8": "WP2"},
        Color.WHITE,
        registry={"WP1": PieceKind.QUEEN, "WP2": PieceKind.QUEEN},
    )
    with pytest.raises(ContinuityError) as excinfo:
        decode_and_diff(last, current)
    assert excinfo.value.blame == Color.WHITE


def test_transform_while_capturing_a_promoted_pawn(turn_from: TurnBuilder) -> None:
    """Registry size stays the same: one entry gained, one lost"""
    last = turn_from(
        {"G7": "WP8", "H8": "BP1"}, Color.BLACK, registry={"BP1": PieceKind.QUEEN}
    )
    current = turn_from({"H8": "WP8"}, Color.WHITE, registry={"WP8": PieceKind.ROOK})
    diff = decode_and_diff(last, current)
    assert diff.transformed is True
    assert diff.new_registrations == [PieceId.from_code("WP8")]


def test_registration_without_moving_is_not_a_transform(turn_from: TurnBuilder) -> None:
    last = turn_from({"A7": "WP1", "E1": "WK"}, Color.BLACK)
    current = turn_from(
        {"A7": "WP1", "E2": "WK"}, Color.WHITE, registry={"WP1": PieceKind.QUEEN}
    )
    assert decode_and_diff(last, current).transformed is False
