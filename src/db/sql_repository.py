"""Implementation of (Session)Repository using SQLAlchemy"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.exceptions import RepositoryError
from src.core.models import SessionModel
from src.db.schema import DBSession


class SQLSessionRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_session(self, hash: str) -> SessionModel | None:
        """Get session by hash, if record exists."""
        session_db = self._fetch_session(hash)
        if session_db:
            return self._to_model(session_db)
        return None

    def create_session(self, session: SessionModel) -> SessionModel:
        """Store a new session under its hash and return the stored data."""
        if self._fetch_session(session.hash) is not None:
            raise RepositoryError(f"Session with hash={session.hash!r} already exists.")

        session_db = DBSession(
            hash=session.hash,
            local_color=session.local_color,
            last_turn=session.last_turn,
            curr_turn=session.curr_turn,
            status=session.status,
            en_passant=session.en_passant,
        )
        self.db.add(session_db)
        self.db.commit()
        self.db.refresh(session_db)
        return self._to_model(session_db)

    def update_session(self, hash: str, session: SessionModel) -> SessionModel | None:
        """Overwrite the game state of an existing record."""
        session_db = self._fetch_session(hash)
        if not session_db:
            return None
        session_db.local_color = session.local_color
        session_db.last_turn = session.last_turn
        session_db.curr_turn = session.curr_turn
        session_db.status = session.status
        session_db.en_passant = session.en_passant
        self.db.commit()
        self.db.refresh(session_db)
        return self._to_model(session_db)

    def delete_session(self, hash: str) -> SessionModel | None:
        """Remove a session's record."""
        session_db = self._fetch_session(hash)
        if not session_db:
            return None
        session_model = self._to_model(session_db)
        self.db.delete(session_db)
        self.db.commit()
        return session_model

    def _fetch_session(self, hash: str) -> DBSession | None:
        query = select(DBSession).where(DBSession.hash == hash)
        return self.db.scalar(query)

    def _to_model(self, session_db: DBSession) -> SessionModel:
        """Convert SQLAlchemy model to data transfer model."""
        return SessionModel(
            hash=session_db.hash,
            local_color=session_db.local_color,
            last_turn=session_db.last_turn,
            curr_turn=session_db.curr_turn,
            status=session_db.status,
            en_passant=session_db.en_passant,
        )
