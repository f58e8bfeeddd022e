"""
The game module is the entrypoint into the domain layer for the service layer.

It is responsible for deciding what happens after every turn:
1. the turn must follow the previous one (continuity)
2. the action in between must be a legal one
3. the next player must still have actions left (else checkmate / stalemate)

Everything works on the last two turn messages. No game object is kept alive in between calls.
"""

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Optional

from src.chess.actions import (
    ClassifiedAction,
    classify_action,
    classify_and_validate_action,
)
from src.chess.castling import CastlingDirection, revoke_castling_rights
from src.chess.moves import (
    Action,
    execute_action,
    generate_actions,
    get_turn_info,
    is_safe,
)
from src.chess.pieces import PIECE_ORDER, PROMOTION_KINDS, PieceId, king_of
from src.chess.square import Square
from src.chess.turn import GAME_DELIMITER, TurnDiff, TurnSnapshot, decode_and_diff
from src.core.exceptions import (
    ContinuityError,
    GameError,
    IllegalActionError,
    NotYourTurnError,
    ProtocolError,
    SelfCheckError,
)
from src.core.shared_types import (
    TERMINAL_STATUSES,
    ActionKind,
    Color,
    GameStatus,
    PieceKind,
    turn_status,
)

logger = logging.getLogger(__name__)


@dataclass
class StatusUpdate:
    """
    Outcome of evaluating one turn.
    ---

    * status: the new GameStatus
    * en_passant: target square valid for the next turn only
    * actions: legal actions of the player who moves next
    * game_over: a terminal state reached on the opponent's move. This is the authoritative end of the game
      and should be broadcast. Terminal states found on the local player's own move are only surfaced.
    * blame / error: filled in when the turn was rejected (status CHEAT)
    """

    status: GameStatus
    en_passant: Optional[Square] = None
    actions: dict[PieceId, list[Action]] = field(default_factory=dict)
    game_over: bool = False
    blame: Optional[Color] = None
    error: Optional[GameError] = None
    classified: Optional[ClassifiedAction] = None


def mover_of(message: str) -> Optional[Color]:
    """Best effort read of the mover field. None when the message is too broken to tell."""
    parts = message.split(GAME_DELIMITER)
    if len(parts) == 3 and parts[1] in {color.value for color in Color}:
        return Color(parts[1])
    return None


def validate_turn_continuity(last_message: str, current_message: str) -> TurnDiff:
    """
    Checks that do not need the rules of chess:
    * both turns decode
    * the mover alternates
    * castle rights are readable, and none of them got re-enabled
    * 1 or 2 pieces changed square
    """
    diff = decode_and_diff(last_message, current_message)
    last, current = diff.last, diff.current
    mover = current.mover

    if last.mover == mover:
        raise ContinuityError(
            f"{mover.name.lower()} sent two turns in a row", blame=mover
        )

    if not (last.has_known_castle_rights() and current.has_known_castle_rights()):
        raise ProtocolError("Castle rights contain unknown flags", field="castle", blame=mover)

    for direction in CastlingDirection:
        if not last.castle_rights[direction] and current.castle_rights[direction]:
            raise ContinuityError(
                f"{mover.name.lower()} re-enabled castling ({direction.name.lower()})",
                blame=mover,
            )

    num_changes = len(diff.differences)
    if num_changes == 0:
        raise ContinuityError(f"{mover.name.lower()} did not move", blame=mover)
    if num_changes > 2:
        raise ContinuityError(
            f"{mover.name.lower()} changed {num_changes} pieces in one turn",
            blame=mover,
        )
    return diff


def _rejected(error: GameError, next_turn: str, local_color: Color) -> StatusUpdate:
    """A rejected turn is a cheat. Only a cheat by the opponent ends the game."""
    blame = error.blame or mover_of(next_turn)
    is_local = blame == local_color
    logger.warning(
        "Rejected turn of %s: %s", blame.name.lower() if blame else "unknown", error
    )
    return StatusUpdate(
        GameStatus.CHEAT, game_over=not is_local, blame=blame, error=error
    )


def _status_after(
    diff: TurnDiff,
    classified: ClassifiedAction,
    local_color: Color,
    signal_game_over: bool = True,
) -> StatusUpdate:
    """Checkmate / stalemate / next player's turn, as seen from the player who moves next"""
    mover = diff.mover
    current = diff.current
    next_mover = mover.opponent
    info = get_turn_info(
        current.board,
        next_mover,
        current.positions,
        current.registry,
        current.castle_rights,
        classified.en_passant,
    )
    if info.has_no_actions():
        status = GameStatus.STALEMATE if info.is_king_safe else GameStatus.CHECKMATE
    else:
        status = turn_status(next_mover)

    game_over = (
        signal_game_over and status in TERMINAL_STATUSES and mover != local_color
    )
    if game_over:
        logger.info("Game over after the turn of %s: %s", mover.name.lower(), status)
    return StatusUpdate(
        status,
        en_passant=classified.en_passant,
        actions=info.actions,
        game_over=game_over,
        classified=classified,
    )


def advance_status(
    prior: str,
    next_turn: str,
    local_color: Color,
    en_passant: Optional[Square] = None,
) -> StatusUpdate:
    """
    Given the previously accepted turn and the new one, derive the next GameStatus
    ----

    `en_passant` is the target created by the action that led to `prior` (if any).

    1. continuity + classification + legality. Failure means CHEAT, with the mover to blame.
    2. a turn of the opponent must also leave the opponent's own king safe.
    3. the player to move next: no actions and king unsafe -> CHECKMATE. No actions and king safe -> STALEMATE.
       Otherwise it is their turn.
    """
    try:
        diff = validate_turn_continuity(prior, next_turn)
        classified = classify_and_validate_action(diff, en_passant)
        mover = diff.mover
        current = diff.current

        if mover != local_color:
            king_square = current.square_of(king_of(mover))
            if king_square is not None and not is_safe(
                current.board, king_square, mover, current.registry
            ):
                raise SelfCheckError(
                    f"{mover.name.lower()} left their own king in check", blame=mover
                )
    except GameError as error:
        return _rejected(error, next_turn, local_color)

    return _status_after(diff, classified, local_color)


def resume_status(last_turn: str, curr_turn: str, local_color: Color) -> StatusUpdate:
    """
    Status of a game picked up again from its last two turns (after history reconstruction).

    The en passant target in effect before `last_turn` is not part of the history, so the newer turn is
    checked for continuity and classified, but not replayed for legality: both players already
    evaluated it while it was live. A game found finished this way does not signal game over again.
    """
    try:
        diff = validate_turn_continuity(last_turn, curr_turn)
        classified = classify_action(diff)
    except GameError as error:
        update = _rejected(error, curr_turn, local_color)
        update.game_over = False
        return update

    return _status_after(diff, classified, local_color, signal_game_over=False)


def legal_actions_for(
    message: str, color: Color, en_passant: Optional[Square] = None
) -> dict[PieceId, list[Action]]:
    """All legal actions of `color` on the snapshot of the given turn message"""
    snapshot = TurnSnapshot.from_message(message)
    info = get_turn_info(
        snapshot.board,
        color,
        snapshot.positions,
        snapshot.registry,
        snapshot.castle_rights,
        en_passant,
    )
    return info.actions


def apply_action(
    message: str,
    piece_square: Square,
    destination: Square,
    promote_to: Optional[PieceKind] = None,
    en_passant: Optional[Square] = None,
) -> str:
    """
    Play a local action on top of the given turn, and write the next turn message
    ----

    1. the piece must belong to the player whose turn it is
    2. the destination must be one of its legal actions
    3. update positions, promotion registry and castle rights (a right is lost as soon as its king or rook left home)
    """
    snapshot = TurnSnapshot.from_message(message)
    board = snapshot.board
    piece = board.piece(piece_square)
    if piece is None:
        raise IllegalActionError(f"No piece on {piece_square.to_notation()}")

    color = piece.color
    if snapshot.mover == color:
        raise NotYourTurnError(
            f"It is not the turn of {color.name.lower()}. Waiting for the opponent to move first.",
            blame=color,
        )

    legal_actions = generate_actions(
        board,
        piece_square,
        snapshot.castle_rights,
        snapshot.registry,
        snapshot.square_of(king_of(color)),
        en_passant,
    )
    action = next(
        (found for found in legal_actions if found.destination == destination), None
    )
    if action is None:
        raise IllegalActionError(
            f"{piece} cannot go from {piece_square.to_notation()} to {destination.to_notation()}",
            blame=color,
        )

    registry = deepcopy(snapshot.registry)
    if action.kind == ActionKind.TRANSFORM:
        if promote_to not in PROMOTION_KINDS:
            raise IllegalActionError(
                f"A pawn must transform into one of {', '.join(kind.name.lower() for kind in PROMOTION_KINDS)}",
                blame=color,
            )
        registry[piece] = promote_to

    execute_action(board, piece_square, action)
    positions = board.to_positions(PIECE_ORDER)
    registry = {
        pawn: kind for pawn, kind in registry.items() if positions.get(pawn) is not None
    }
    castle_rights = revoke_castling_rights(snapshot.castle_rights, positions)
    next_snapshot = TurnSnapshot(positions, color, castle_rights, registry)
    logger.debug("%s plays %s with %s", color.name.lower(), action, piece)
    return next_snapshot.to_message()
