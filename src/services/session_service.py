"""Orchestration of communication from API layer to the chess engine, negotiation and persistence layers (and the reverse direction)."""

import logging
from typing import Optional

from src.api.models import (
    AcceptInviteRequest,
    DeclineInviteRequest,
    InviteRecord,
    LegalActionsRequest,
    LegalActionsResponse,
    ProposeActionRequest,
    ReceiveMessageRequest,
    ResumeRequest,
    ResumeResponse,
    SendInviteRequest,
    SessionResponse,
)
from src.chess.game import (
    StatusUpdate,
    advance_status,
    apply_action,
    legal_actions_for,
    resume_status,
)
from src.chess.square import Square
from src.chess.turn import NEG_ONE_TURN, ZERO_TURN
from src.core.exceptions import GameStateError, NotYourTurnError, RepositoryError
from src.core.models import SessionModel
from src.core.shared_types import TERMINAL_STATUSES, Color, GameStatus, turn_status
from src.db.repository import SessionRepository
from src.negotiation.history import BacklogEntry, reconstruct_history
from src.negotiation.messages import (
    AcceptMessage,
    DeclineMessage,
    EndMessage,
    Envelope,
    GameOverMessage,
    InviteMessage,
    Payload,
    TurnMessage,
    generate_session_hash,
    parse_envelope,
)

logger = logging.getLogger(__name__)

# Attempts at drawing a hash that is not in use yet
MAX_HASH_ATTEMPTS = 10


class GameSessionService:
    """
    Orchestration of layers for the games of one local player.

    Every method that produces something for the opponent returns it as `outgoing`: the caller is responsible
    for sending it over the transport.
    """

    def __init__(self, repository: SessionRepository, local_address: str) -> None:
        self.repo = repository
        self.local_address = local_address

    # -- Negotiation ---
    def send_invite(self, request: SendInviteRequest) -> SessionResponse:
        """Local player proposes a new game, playing with the requested color."""
        hash = self._new_hash()
        model = SessionModel(
            hash=hash,
            local_color=request.color.value,
            last_turn=None,
            curr_turn=None,
            status=GameStatus.WAITING.value,
        )
        stored = self.repo.create_session(model)
        logger.info("Invite %s sent, playing %s", hash, request.color.name.lower())
        return self._create_session_response(
            stored, outgoing=self._outgoing(hash, InviteMessage(request.color))
        )

    def accept_invite(self, request: AcceptInviteRequest) -> SessionResponse:
        """
        Local player accepts an invite of the opponent.
        ----
        `color` is the color the local player ends up with (the opposite of what the invite claimed).
        The game starts from the opening turns, white to move.
        """
        if self.repo.get_session(request.hash) is not None:
            raise GameStateError(f"Session {request.hash} already exists.")

        model = SessionModel(
            hash=request.hash,
            local_color=request.color.value,
            last_turn=NEG_ONE_TURN,
            curr_turn=ZERO_TURN,
            status=GameStatus.WHITE_TURN.value,
        )
        stored = self.repo.create_session(model)
        logger.info(
            "Invite %s accepted, playing %s", request.hash, request.color.name.lower()
        )
        return self._create_session_response(
            stored, outgoing=self._outgoing(request.hash, AcceptMessage(request.color))
        )

    def decline_invite(self, request: DeclineInviteRequest) -> str:
        """Turn down an invite. Returns the message to send."""
        self.repo.delete_session(request.hash)
        logger.info("Invite %s declined", request.hash)
        return self._outgoing(request.hash, DeclineMessage())

    def resume_from_history(self, request: ResumeRequest) -> ResumeResponse:
        """
        Start of a session: find outstanding invites and the most recent game in progress in the backlog.
        ----
        A game found this way gets (re)stored with its last two turns, so play can continue from there.
        """
        backlog = [
            BacklogEntry(message.content, message.sender_address)
            for message in request.backlog
        ]
        history = reconstruct_history(backlog, self.local_address)

        response = ResumeResponse(
            invite=(
                InviteRecord(hash=history.invite.hash, color=history.invite.color)
                if history.invite
                else None
            ),
            accept=(
                InviteRecord(hash=history.accept.hash, color=history.accept.color)
                if history.accept
                else None
            ),
        )
        if history.load is None:
            return response

        loaded = history.load
        update = resume_status(loaded.last_move, loaded.curr_move, loaded.color)
        model = SessionModel(
            hash=loaded.hash,
            local_color=loaded.color.value,
            last_turn=loaded.last_move,
            curr_turn=loaded.curr_move,
            status=update.status.value,
            en_passant=self._en_passant_text(update),
        )
        if self.repo.get_session(loaded.hash) is None:
            stored = self.repo.create_session(model)
        else:
            stored = self._update_session(model)
        logger.info("Resumed game %s: %s", loaded.hash, update.status)

        response.session = self._create_session_response(stored, update=update)
        return response

    # -- Playing ---
    def legal_actions(self, request: LegalActionsRequest) -> LegalActionsResponse:
        """Legal actions of the local player, on the last accepted turn."""
        model = self._fetch_session(request.hash)
        local_color = Color(model.local_color)
        self._require_local_turn(model)

        actions = legal_actions_for(
            self._current_turn(model), local_color, self._en_passant_square(model)
        )
        return LegalActionsResponse(
            hash=model.hash,
            color=local_color,
            legal_actions={
                piece.code: [action.destination.to_notation() for action in found]
                for piece, found in actions.items()
                if found
            },
        )

    def propose_action(self, request: ProposeActionRequest) -> SessionResponse:
        """
        Local player attempts an action.
        ----
        The resulting turn goes through the same validation a received turn would. Anything that fails
        raises, and nothing gets sent.
        """
        model = self._fetch_session(request.hash)
        local_color = Color(model.local_color)
        self._require_local_turn(model)

        current_turn = self._current_turn(model)
        en_passant = self._en_passant_square(model)
        next_turn = apply_action(
            current_turn,
            Square.from_notation(request.from_square),
            Square.from_notation(request.to_square),
            request.promote_to,
            en_passant,
        )

        update = advance_status(current_turn, next_turn, local_color, en_passant)
        if update.error is not None:
            raise update.error

        model.last_turn = current_turn
        model.curr_turn = next_turn
        model.status = update.status.value
        model.en_passant = self._en_passant_text(update)
        stored = self._update_session(model)
        return self._create_session_response(
            stored,
            outgoing=self._outgoing(model.hash, TurnMessage(next_turn)),
            update=update,
        )

    def receive_message(
        self, request: ReceiveMessageRequest
    ) -> Optional[SessionResponse]:
        """
        Handle a message of the opponent.
        ----
        Returns None for anything that does not concern a stored game (regular chat, unknown hashes, own messages).
        """
        if request.sender_address == self.local_address:
            return None

        envelope = parse_envelope(request.content)
        if envelope is None:
            return None

        model = self.repo.get_session(envelope.hash)
        if model is None:
            logger.debug("No session stored for %s, ignoring message", envelope.hash)
            return None

        payload = envelope.payload
        if isinstance(payload, TurnMessage):
            return self._receive_turn(model, payload)
        if isinstance(payload, AcceptMessage):
            return self._receive_accept(model, payload)
        if isinstance(payload, GameOverMessage):
            return self._receive_game_over(model, payload)
        if isinstance(payload, (DeclineMessage, EndMessage)):
            deleted = self.repo.delete_session(model.hash)
            logger.info("Session %s closed by the opponent", model.hash)
            return self._create_session_response(deleted or model)

        # an invite reusing the hash of a stored session
        logger.warning("Ignoring invite for existing session %s", model.hash)
        return None

    # -- Internal helpers --
    def _receive_turn(
        self, model: SessionModel, message: TurnMessage
    ) -> Optional[SessionResponse]:
        """Validate the opponent's turn. Only a turn that passes validation replaces the stored one."""
        status = GameStatus(model.status)
        if status == GameStatus.WAITING or status in TERMINAL_STATUSES:
            logger.warning(
                "Ignoring turn for session %s with status %s", model.hash, model.status
            )
            return None

        local_color = Color(model.local_color)
        update = advance_status(
            self._current_turn(model),
            message.turn,
            local_color,
            self._en_passant_square(model),
        )
        if update.status != GameStatus.CHEAT:
            model.last_turn = model.curr_turn
            model.curr_turn = message.turn
        model.status = update.status.value
        model.en_passant = self._en_passant_text(update)
        stored = self._update_session(model)

        outgoing = (
            self._outgoing(model.hash, GameOverMessage(update.status))
            if update.game_over
            else None
        )
        return self._create_session_response(stored, outgoing=outgoing, update=update)

    def _receive_accept(
        self, model: SessionModel, message: AcceptMessage
    ) -> Optional[SessionResponse]:
        """The opponent accepted the local invite: the game starts from the opening turns."""
        local_color = Color(model.local_color)
        if model.status != GameStatus.WAITING or message.color == local_color:
            logger.warning(
                "Ignoring accept for session %s (status %s, color %s)",
                model.hash,
                model.status,
                message.color,
            )
            return None

        model.last_turn = NEG_ONE_TURN
        model.curr_turn = ZERO_TURN
        model.status = GameStatus.WHITE_TURN.value
        stored = self._update_session(model)
        logger.info("Invite %s accepted by the opponent", model.hash)
        return self._create_session_response(stored)

    def _receive_game_over(
        self, model: SessionModel, message: GameOverMessage
    ) -> SessionResponse:
        """
        The opponent considers the game over. When the game is still live locally, answer with the local status
        so both sides know where the other stands.
        """
        logger.info("Opponent ended game %s: %s", model.hash, message.status)
        if GameStatus(model.status) in TERMINAL_STATUSES:
            return self._create_session_response(model)

        local_status = GameStatus(model.status)
        return self._create_session_response(
            model, outgoing=self._outgoing(model.hash, GameOverMessage(local_status))
        )

    def _fetch_session(self, hash: str) -> SessionModel:
        """Attempt to find the session in the repository and raise error if it fails."""
        session_model = self.repo.get_session(hash)
        if session_model is None:
            raise RepositoryError(f"Session with {hash=} not found.")
        return session_model

    def _update_session(self, model: SessionModel) -> SessionModel:
        stored = self.repo.update_session(model.hash, model)
        if stored is None:
            raise RepositoryError(f"Session with hash={model.hash!r} not found.")
        return stored

    def _new_hash(self) -> str:
        for _ in range(MAX_HASH_ATTEMPTS):
            hash = generate_session_hash()
            if self.repo.get_session(hash) is None:
                return hash
        raise RepositoryError("Could not find an unused session hash.")

    def _require_local_turn(self, model: SessionModel) -> None:
        local_color = Color(model.local_color)
        if model.status == turn_status(local_color):
            return
        if model.status == turn_status(local_color.opponent):
            raise NotYourTurnError(
                "Waiting for the opponent to move first.", blame=local_color
            )
        raise GameStateError(
            f"Session {model.hash} cannot be played (status: {model.status})."
        )

    @staticmethod
    def _current_turn(model: SessionModel) -> str:
        if model.curr_turn is None:
            raise GameStateError(f"Session {model.hash} has no turns yet.")
        return model.curr_turn

    @staticmethod
    def _en_passant_square(model: SessionModel) -> Optional[Square]:
        return Square.from_notation(model.en_passant) if model.en_passant else None

    @staticmethod
    def _en_passant_text(update: StatusUpdate) -> Optional[str]:
        return update.en_passant.to_notation() if update.en_passant else None

    @staticmethod
    def _outgoing(hash: str, payload: Payload) -> str:
        return Envelope(hash, payload).to_content()

    def _create_session_response(
        self,
        model: SessionModel,
        outgoing: Optional[str] = None,
        update: Optional[StatusUpdate] = None,
    ) -> SessionResponse:
        """Convert info in SessionModel (and the latest StatusUpdate) to a SessionResponse."""
        return SessionResponse(
            hash=model.hash,
            local_color=Color(model.local_color),
            status=GameStatus(model.status),
            curr_turn=model.curr_turn,
            en_passant=model.en_passant,
            outgoing=outgoing,
            blame=update.blame if update else None,
            error=update.error.message if update and update.error else None,
        )
