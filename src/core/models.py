"""
Boundary layer data model(s).

These objects can be used to communicate with the Service.
Hence, both the API layer (higher) and the db layer (lower) use the model defined here to send to/receive from the Service.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class SessionModel:
    """Transport-safe representation of one negotiated game, as seen by the local player."""

    hash: str
    local_color: str
    last_turn: Optional[str]
    curr_turn: Optional[str]
    status: str
    en_passant: Optional[str] = None
