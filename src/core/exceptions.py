"""
Custom errors raised by the domain, service and persistence layers.

NOTE: None of these derive from ValueError. Pydantic would otherwise wrap them into its own ValidationError.
"""

from typing import Optional

from src.core.shared_types import Color


class GameError(Exception):
    """Base class for every recoverable rule / protocol violation"""

    def __init__(self, message: str, blame: Optional[Color] = None) -> None:
        super().__init__(message)
        self.message = message
        self.blame = blame


class ProtocolError(GameError):
    """A turn or negotiation message is malformed. `field` names the part that could not be decoded."""

    def __init__(
        self, message: str, field: str, blame: Optional[Color] = None
    ) -> None:
        super().__init__(message, blame)
        self.field = field


class ContinuityError(GameError):
    """Two consecutive turns do not follow each other (same mover twice, castling re-enabled, too many changes...)"""


class IllegalActionError(GameError):
    """The action implied by a turn could not be classified, or is not a legal action for the piece."""


class SelfCheckError(IllegalActionError):
    """The mover left their own king unsafe."""


class NotYourTurnError(GameError):
    pass


class GameStateError(GameError):
    """Requested operation does not fit the current state of the session (unknown, finished, ...)"""


class RepositoryError(Exception):
    pass


class InvalidRequestError(Exception):
    pass
