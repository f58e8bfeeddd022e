"""
Negotiation messages exchanged between two players over an (external) text transport.

Every game message looks like `<hash>-<payload>`, where the hash scopes all messages of one negotiated game.
The payload gets parsed once, here, into one of the message classes below. Everything downstream
dispatches on the class, never on the raw string.
"""

import logging
import re
import secrets
from dataclasses import dataclass
from enum import StrEnum
from string import ascii_letters, digits
from typing import Optional

from src.chess.pieces import PIECE_ORDER, PROMOTION_KINDS
from src.chess.turn import CAPTURED, CASTLE_FALSE, CASTLE_TRUE, GAME_DELIMITER
from src.core.shared_types import Color, GameStatus, PieceKind

logger = logging.getLogger(__name__)

HASH_DELIMITER = "-"
HASH_LENGTH = 5
HASH_CHARACTERS = ascii_letters + digits
_HASH_PATTERN = re.compile(rf"^[a-zA-Z0-9]{{{HASH_LENGTH}}}$")


class ConnectStatus(StrEnum):
    INVITE = "I"
    ACCEPT = "A"
    DECLINE = "D"
    GAME_OVER = "O"
    END = "E"


def _build_turn_pattern() -> re.Pattern[str]:
    """Shape of a turn message: 32 entries in canonical order (only pawns may carry a promoted kind), mover, 4 castle flags"""
    square = "[A-H][1-8]"
    promoted = "[" + "".join(kind.value for kind in PROMOTION_KINDS) + "]"
    entries = "".join(
        f"(?:{promoted}?{square}|{CAPTURED})"
        if piece.kind == PieceKind.PAWN
        else f"(?:{square}|{CAPTURED})"
        for piece in PIECE_ORDER
    )
    colors = "".join(color.value for color in Color)
    return re.compile(
        rf"^{entries}{GAME_DELIMITER}[{colors}]{GAME_DELIMITER}[{CASTLE_TRUE}{CASTLE_FALSE}]{{4}}$"
    )


TURN_PATTERN = _build_turn_pattern()


# --- PAYLOADS ---
@dataclass(frozen=True)
class InviteMessage:
    """Sender proposes a game and plays with `color`"""

    color: Color

    def to_payload(self) -> str:
        return GAME_DELIMITER.join([ConnectStatus.INVITE.value, self.color.value])


@dataclass(frozen=True)
class AcceptMessage:
    """Sender accepts an invite and plays with `color`"""

    color: Color

    def to_payload(self) -> str:
        return GAME_DELIMITER.join([ConnectStatus.ACCEPT.value, self.color.value])


@dataclass(frozen=True)
class DeclineMessage:
    def to_payload(self) -> str:
        return ConnectStatus.DECLINE.value


@dataclass(frozen=True)
class GameOverMessage:
    status: Optional[GameStatus] = None

    def to_payload(self) -> str:
        if self.status is None:
            return ConnectStatus.GAME_OVER.value
        return GAME_DELIMITER.join([ConnectStatus.GAME_OVER.value, self.status.value])


@dataclass(frozen=True)
class EndMessage:
    def to_payload(self) -> str:
        return ConnectStatus.END.value


@dataclass(frozen=True)
class TurnMessage:
    """A move: the full turn snapshot. Only its shape is checked here, decoding happens in the chess layer."""

    turn: str

    def to_payload(self) -> str:
        return self.turn

    @property
    def mover(self) -> Color:
        return Color(self.turn.split(GAME_DELIMITER)[1])


Payload = (
    InviteMessage
    | AcceptMessage
    | DeclineMessage
    | GameOverMessage
    | EndMessage
    | TurnMessage
)


@dataclass(frozen=True)
class Envelope:
    hash: str
    payload: Payload

    def to_content(self) -> str:
        return create_message(self.hash, self.payload.to_payload())


def is_valid_hash(value: str) -> bool:
    return _HASH_PATTERN.match(value) is not None


def has_hash(content: str) -> bool:
    return is_valid_hash(content.split(HASH_DELIMITER, 1)[0])


def generate_session_hash() -> str:
    return "".join(secrets.choice(HASH_CHARACTERS) for _ in range(HASH_LENGTH))


def create_message(hash: str, *content: str) -> str:
    """hash + delimiter + the content parts joined by the game delimiter"""
    return hash + HASH_DELIMITER + GAME_DELIMITER.join(content)


def parse_payload(payload: str) -> Optional[Payload]:
    """Turn the text after the hash into one of the payload classes. None when the payload is not recognized."""
    if TURN_PATTERN.match(payload):
        return TurnMessage(payload)

    tag, _, rest = payload.partition(GAME_DELIMITER)
    colors = {color.value for color in Color}
    statuses = {status.value for status in GameStatus}
    if tag == ConnectStatus.INVITE and rest in colors:
        return InviteMessage(Color(rest))
    if tag == ConnectStatus.ACCEPT and rest in colors:
        return AcceptMessage(Color(rest))

    # the remaining statuses carry no arguments (except for the optional status of a game over)
    if payload == ConnectStatus.DECLINE:
        return DeclineMessage()
    if payload == ConnectStatus.END:
        return EndMessage()
    if payload == ConnectStatus.GAME_OVER:
        return GameOverMessage()
    if tag == ConnectStatus.GAME_OVER and rest in statuses:
        return GameOverMessage(GameStatus(rest))
    return None


def parse_envelope(content: Optional[str]) -> Optional[Envelope]:
    """
    Parse a raw transport message.
    ---

    Returns None for anything that is not a game message (regular chat, or a hashed message with an unknown payload).
    """
    if not content or not has_hash(content):
        return None

    hash, _, payload = content.partition(HASH_DELIMITER)
    parsed = parse_payload(payload)
    if parsed is None:
        logger.debug("Ignoring message with unknown payload for hash %s", hash)
        return None
    return Envelope(hash, parsed)
