"""Unit tests for /src/negotiation/messages.py"""

from typing import Optional

import pytest

from src.chess.turn import NEG_ONE_TURN, ZERO_TURN
from src.core.shared_types import Color, GameStatus
from src.negotiation.messages import (
    TURN_PATTERN,
    AcceptMessage,
    DeclineMessage,
    EndMessage,
    Envelope,
    GameOverMessage,
    InviteMessage,
    TurnMessage,
    create_message,
    generate_session_hash,
    has_hash,
    is_valid_hash,
    parse_envelope,
)

MID_GAME_TURN = "A1B1C1D1E1F1XXG1A2B2C3D2E2F3G2H2A8B8C8D8E8A3G8H8A6B7C7D5F4F7G7H7,B,TTTT"


# --- HASHES ---
def test_generated_hash_is_valid() -> None:
    hashes = {generate_session_hash() for _ in range(20)}
    assert all(is_valid_hash(value) for value in hashes)
    assert len(hashes) > 1


@pytest.mark.parametrize(
    "content, expected",
    [
        ("ABCDE-", True),
        ("dYNsw-I,W", True),
        ("Hey there guys how are you doing", False),
        ("ABCD-I,W", False),
        ("ABCDEF-I,W", False),
        ("AB_DE-I,W", False),
    ],
)
def test_has_hash(content: str, expected: bool) -> None:
    assert has_hash(content) is expected


def test_create_message() -> None:
    assert create_message("ABCDE", "I", "W") == "ABCDE-I,W"
    assert create_message("ABCDE", "D") == "ABCDE-D"


# --- PARSING ---
@pytest.mark.parametrize(
    "content, payload",
    [
        ("ABCDE-I,W", InviteMessage(Color.WHITE)),
        ("ABCDE-I,B", InviteMessage(Color.BLACK)),
        ("ABCDE-A,B", AcceptMessage(Color.BLACK)),
        ("ABCDE-D", DeclineMessage()),
        ("ABCDE-E", EndMessage()),
        ("ABCDE-O", GameOverMessage()),
        ("ABCDE-O,checkmate", GameOverMessage(GameStatus.CHECKMATE)),
        ("ABCDE-O,white turn", GameOverMessage(GameStatus.WHITE_TURN)),
        (f"ABCDE-{ZERO_TURN}", TurnMessage(ZERO_TURN)),
        (f"ABCDE-{NEG_ONE_TURN}", TurnMessage(NEG_ONE_TURN)),
        (f"ABCDE-{MID_GAME_TURN}", TurnMessage(MID_GAME_TURN)),
    ],
)
def test_parse_game_messages(content: str, payload: object) -> None:
    envelope = parse_envelope(content)
    assert envelope == Envelope("ABCDE", payload)
    # writing it back gives the same message
    assert envelope.to_content() == content


@pytest.mark.parametrize(
    "content",
    [
        None,
        "",
        "Hello",
        "A",
        "ABCD-I,W",  # hash too short
        "ABCDE-I,X",
        "ABCDE-I",
        "ABCDE-A,W,B",
        "ABCDE-Z",
        "ABCDE-D,W",
        "ABCDE-O,bogus",
    ],
)
def test_parse_ignores_everything_else(content: Optional[str]) -> None:
    assert parse_envelope(content) is None


@pytest.mark.parametrize(
    "turn",
    [
        ZERO_TURN.replace(",B,", ",O,"),
        ZERO_TURN.replace(",B,", ",WB,"),
        ZERO_TURN.replace(",TTTT", ",TTTTT"),
        ZERO_TURN.replace(",TTTT", ",FFFQ"),
        "Q" + ZERO_TURN,  # rooks cannot be promoted
        ZERO_TURN.lower(),
        ZERO_TURN.replace("A1", "A0", 1),
        ZERO_TURN.replace("A1", "", 1),
    ],
)
def test_turn_pattern_rejects(turn: str) -> None:
    assert TURN_PATTERN.match(turn) is None
    assert parse_envelope(f"ABCDE-{turn}") is None


def test_turn_pattern_accepts_promoted_pawns() -> None:
    turn = ZERO_TURN.replace("A2", "QA6", 1).replace("B7", "XX", 1)
    assert TURN_PATTERN.match(turn) is not None


def test_turn_mover() -> None:
    assert TurnMessage(ZERO_TURN).mover == Color.BLACK
    assert TurnMessage(NEG_ONE_TURN).mover == Color.WHITE
