"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from typing import Callable, Generator, Optional

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.chess.board import Board, Positions
from src.chess.pieces import PIECE_ORDER, PieceId
from src.chess.square import Square
from src.chess.turn import TurnSnapshot, decode_castle_rights
from src.core.shared_types import Color, PieceKind
from src.db.schema import Base

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)

# Placements are written as {"E1": "WK", "H1": "WR2"}: square -> piece code
Placements = dict[str, str]


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()


@pytest.fixture
def db_session_shared() -> Generator[Session, None, None]:
    """Connection to a test database. Mock real setup with multiple sessions connecting to the same engine / database tables."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def _positions(placements: Placements) -> Positions:
    """Every piece not mentioned in the placements counts as captured."""
    positions: Positions = {piece: None for piece in PIECE_ORDER}
    for square, code in placements.items():
        positions[PieceId.from_code(code)] = Square.from_notation(square)
    return positions


@pytest.fixture
def positions_from() -> Callable[[Placements], Positions]:
    return _positions


@pytest.fixture
def board_from() -> Callable[[Placements], Board]:
    """Build a board from a few placed pieces."""

    def _build(placements: Placements) -> Board:
        return Board.from_positions(_positions(placements))

    return _build


@pytest.fixture
def turn_from() -> Callable[..., str]:
    """
    Build a turn message from a few placed pieces.

    ex) turn_from({"E1": "WK", "E8": "BK"}, Color.BLACK, "FFFF", {"WP1": PieceKind.QUEEN})
    """

    def _build(
        placements: Placements,
        mover: Color = Color.WHITE,
        castle: str = "FFFF",
        registry: Optional[dict[str, PieceKind]] = None,
    ) -> str:
        promoted = {
            PieceId.from_code(code): kind for code, kind in (registry or {}).items()
        }
        snapshot = TurnSnapshot(
            _positions(placements), mover, decode_castle_rights(castle), promoted
        )
        return snapshot.to_message()

    return _build
