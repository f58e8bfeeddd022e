"""Protocol repository (SQL Alchemy implementation in sql_repository.py, in-memory dicts in the tests)"""

from typing import Protocol

from src.core.models import SessionModel


class SessionRepository(Protocol):
    """Persistence layer orchestration"""

    def get_session(self, hash: str) -> SessionModel | None:
        """Get session by hash, if record exists."""
        ...

    def create_session(self, session: SessionModel) -> SessionModel:
        """Store a new session under its hash and return the stored data."""
        ...

    def update_session(self, hash: str, session: SessionModel) -> SessionModel | None:
        """Overwrite the game state of an existing record."""
        ...

    def delete_session(self, hash: str) -> SessionModel | None:
        """Remove a session's record."""
        ...
