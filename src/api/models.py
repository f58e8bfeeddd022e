"""Requests and Response models"""

from typing import Optional

from pydantic import BaseModel, field_validator

from src.chess.square import is_valid_notation
from src.core.exceptions import InvalidRequestError
from src.core.shared_types import Color, GameStatus, PieceKind
from src.negotiation.messages import is_valid_hash

SquareName = str
PieceCode = str


def _check_hash(value: str) -> str:
    if not is_valid_hash(value):
        raise InvalidRequestError(
            f"Cannot interpret {value!r} as a session hash (5 letters or digits)."
        )
    return value


# --- REQUEST MODELS ---
class SendInviteRequest(BaseModel):
    color: Color


class AcceptInviteRequest(BaseModel):
    hash: str
    color: Color

    @field_validator("hash")
    @classmethod
    def validate_hash(cls, value: str) -> str:
        return _check_hash(value)


class DeclineInviteRequest(BaseModel):
    hash: str

    @field_validator("hash")
    @classmethod
    def validate_hash(cls, value: str) -> str:
        return _check_hash(value)


class BacklogMessage(BaseModel):
    """One message of the conversation. Content can be anything, including regular chat."""

    content: Optional[str]
    sender_address: str


class ResumeRequest(BaseModel):
    backlog: list[BacklogMessage]


class LegalActionsRequest(BaseModel):
    hash: str

    @field_validator("hash")
    @classmethod
    def validate_hash(cls, value: str) -> str:
        return _check_hash(value)


class ProposeActionRequest(BaseModel):
    hash: str
    from_square: str
    to_square: str
    promote_to: Optional[PieceKind] = None

    @field_validator("hash")
    @classmethod
    def validate_hash(cls, value: str) -> str:
        return _check_hash(value)

    @field_validator(*["from_square", "to_square"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        if not is_valid_notation(value):
            raise InvalidRequestError(
                f"Cannot interpret {value!r} as a valid square name (A1 - H8)."
            )
        return value


class ReceiveMessageRequest(BaseModel):
    content: str
    sender_address: str


# --- RESPONSE MODELS ---
class SessionResponse(BaseModel):
    """
    State of one game session, plus the wire message (if any) the caller should send to the opponent.
    """

    hash: str
    local_color: Color
    status: GameStatus
    curr_turn: Optional[str] = None
    en_passant: Optional[SquareName] = None
    outgoing: Optional[str] = None
    blame: Optional[Color] = None
    error: Optional[str] = None


class InviteRecord(BaseModel):
    hash: str
    color: Color


class ResumeResponse(BaseModel):
    """Outcome of scanning the backlog at the start of a session"""

    invite: Optional[InviteRecord] = None
    accept: Optional[InviteRecord] = None
    session: Optional[SessionResponse] = None


class LegalActionsResponse(BaseModel):
    hash: str
    color: Color
    legal_actions: dict[PieceCode, list[SquareName]]
