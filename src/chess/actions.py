"""
Classify the action hidden in between two consecutive turns, and confirm it is a legal one.

A turn message is a full snapshot, so the receiver has to work out what happened from the pieces that changed square:

* 1 piece changed                      -> move
* 2 pieces changed, one got captured   -> capture (or en passant, when the capturer did not land on the captured piece)
* 2 allied pieces changed              -> castle
* a pawn got registered as promoted    -> transform
"""

import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Optional

from src.chess.castling import (
    CASTLING_RULES,
    castling_direction_for,
    revoke_castling_rights,
)
from src.chess.moves import (
    Action,
    en_passant_rank,
    execute_action,
    generate_actions,
    pawn_direction,
    pawn_start_rank,
)
from src.chess.pieces import PIECE_ORDER, PieceId, PromotionRegistry, are_allies, king_of
from src.chess.square import Square
from src.chess.turn import TurnDiff
from src.core.exceptions import IllegalActionError
from src.core.shared_types import ActionKind, Color, PieceKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifiedAction:
    """The piece that acted, where it stood before, what it did, and (after a double step) the new en passant target"""

    piece: PieceId
    piece_square: Square
    action: Action
    en_passant: Optional[Square] = None


def _illegal(mover: Color, reason: str) -> IllegalActionError:
    return IllegalActionError(
        f"Invalid action by {mover.name.lower()}: {reason}", blame=mover
    )


def is_en_passant_opening(
    piece: PieceId,
    start: Optional[Square],
    end: Optional[Square],
    registry: PromotionRegistry,
) -> bool:
    """An unpromoted pawn stepping two squares forward from its starting rank"""
    if start is None or end is None:
        return False
    if piece.kind != PieceKind.PAWN or piece in registry:
        return False
    return (
        start.file == end.file
        and start.rank == pawn_start_rank(piece.color)
        and end.rank == start.rank + 2 * pawn_direction(piece.color)
    )


def find_captured_piece(diff: TurnDiff) -> Optional[PieceId]:
    """The piece that was on the board last turn, and is captured now"""
    return next(
        (
            piece
            for piece, (last_square, current_square) in diff.differences.items()
            if last_square is not None and current_square is None
        ),
        None,
    )


# --- CLASSIFIERS ---
def _classify_move(diff: TurnDiff) -> ClassifiedAction:
    mover = diff.mover
    piece, (last_square, current_square) = next(iter(diff.differences.items()))
    if piece.color != mover:
        raise _illegal(mover, f"{piece} is not their piece")
    if last_square is None or current_square is None:
        raise _illegal(mover, f"{piece} cannot move from or into the captured pile")

    en_passant = (
        current_square
        if is_en_passant_opening(piece, last_square, current_square, diff.last.registry)
        else None
    )
    return ClassifiedAction(
        piece, last_square, Action(current_square, ActionKind.MOVE), en_passant
    )


def _classify_capture(
    diff: TurnDiff, capturer: PieceId, captured: PieceId
) -> ClassifiedAction:
    mover = diff.mover
    if capturer.color != mover or captured.color == mover:
        raise _illegal(mover, f"{capturer} cannot capture {captured}")

    last_capturer, current_capturer = diff.differences[capturer]
    last_captured, current_captured = diff.differences[captured]
    if last_capturer is None or current_capturer is None or last_captured is None:
        raise _illegal(mover, "capture involves a piece that was already captured")
    if current_captured is not None:
        raise _illegal(mover, f"{captured} was not removed from the board")
    if current_capturer != last_captured:
        raise _illegal(mover, f"{capturer} did not land on the square of {captured}")

    return ClassifiedAction(
        capturer, last_capturer, Action(current_capturer, ActionKind.CAPTURE)
    )


def _classify_en_passant(
    diff: TurnDiff, capturer: PieceId, captured: PieceId
) -> ClassifiedAction:
    mover = diff.mover
    if capturer.color != mover or captured.color == mover:
        raise _illegal(mover, f"{capturer} cannot capture {captured}")

    registries = (diff.last.registry, diff.current.registry)
    both_pawns = capturer.kind == PieceKind.PAWN and captured.kind == PieceKind.PAWN
    if not both_pawns or any(
        piece in registry for registry in registries for piece in (capturer, captured)
    ):
        raise _illegal(mover, "en passant can only be played by a pawn on a pawn")

    last_capturer, current_capturer = diff.differences[capturer]
    last_captured, current_captured = diff.differences[captured]
    if last_capturer is None or current_capturer is None or last_captured is None:
        raise _illegal(mover, "en passant involves a piece that was already captured")
    if current_captured is not None:
        raise _illegal(mover, f"{captured} was not removed from the board")

    required_rank = en_passant_rank(mover)
    if last_capturer.rank != required_rank or last_captured.rank != required_rank:
        raise _illegal(mover, "en passant played from the wrong rank")

    expected_end = Square(last_captured.file, required_rank + pawn_direction(mover))
    if current_capturer != expected_end:
        raise _illegal(mover, "en passant capture ends on the wrong square")

    return ClassifiedAction(
        capturer, last_capturer, Action(current_capturer, ActionKind.EN_PASSANT)
    )


def _classify_castle(diff: TurnDiff) -> ClassifiedAction:
    mover = diff.mover
    king = king_of(mover)
    rooks = [
        piece
        for piece in diff.differences
        if piece.color == mover and piece.kind == PieceKind.ROOK
    ]
    if king not in diff.differences or len(rooks) != 1:
        raise _illegal(mover, "castle must move their king and one rook")
    rook = rooks[0]

    last_king, current_king = diff.differences[king]
    last_rook, current_rook = diff.differences[rook]
    if None in (last_king, current_king, last_rook, current_rook):
        raise _illegal(mover, "castle involves a captured piece")
    assert last_king is not None and current_king is not None

    direction = castling_direction_for(mover, current_king)
    rule = CASTLING_RULES[direction] if direction else None
    if (
        direction is None
        or rule is None
        or direction.rook != rook
        or (last_rook, current_rook) != (rule.rook_from, rule.rook_to)
    ):
        raise _illegal(mover, "king and rook do not end on castling squares")

    return ClassifiedAction(king, last_king, Action(current_king, ActionKind.CASTLE))


def _classify_transform(diff: TurnDiff) -> ClassifiedAction:
    mover = diff.mover
    registered = diff.new_registrations
    if len(registered) != 1 or registered[0] not in diff.differences:
        raise _illegal(mover, "transform must register the pawn that moved")

    transformer = registered[0]
    if transformer.color != mover or transformer.kind != PieceKind.PAWN:
        raise _illegal(mover, f"{transformer} is not their pawn")

    last_square, current_square = diff.differences[transformer]
    if last_square is None or current_square is None:
        raise _illegal(mover, "a captured pawn cannot transform")

    others = [piece for piece in diff.differences if piece != transformer]
    if others:
        # transforming while capturing: the other piece must be taken on the destination
        (captured,) = others
        last_captured, current_captured = diff.differences[captured]
        if (
            captured.color == mover
            or last_captured != current_square
            or current_captured is not None
        ):
            raise _illegal(mover, f"transform cannot move {captured}")

    return ClassifiedAction(
        transformer, last_square, Action(current_square, ActionKind.TRANSFORM)
    )


def classify_action(diff: TurnDiff) -> ClassifiedAction:
    """Work out which action the mover played. Raises IllegalActionError when the differences make no sense."""
    mover = diff.mover
    if not 1 <= len(diff.differences) <= 2:
        raise _illegal(mover, f"{len(diff.differences)} pieces changed square")

    if diff.transformed:
        return _classify_transform(diff)

    if len(diff.differences) == 1:
        return _classify_move(diff)

    captured = find_captured_piece(diff)
    if captured is not None:
        capturer = next(piece for piece in diff.differences if piece != captured)
        capturer_end = diff.differences[capturer][1]
        captured_start = diff.differences[captured][0]
        if capturer_end != captured_start:
            return _classify_en_passant(diff, capturer, captured)
        return _classify_capture(diff, capturer, captured)

    first, second = diff.differences
    if are_allies(first, second):
        return _classify_castle(diff)

    raise _illegal(mover, "unrecognized action")


# --- VALIDATION ---
def _expected_registry(diff: TurnDiff, classified: ClassifiedAction) -> PromotionRegistry:
    """Promotions of captured pieces disappear, a transform adds exactly the transformed pawn"""
    expected = {
        piece: kind
        for piece, kind in diff.last.registry.items()
        if diff.current.square_of(piece) is not None
    }
    if classified.action.kind == ActionKind.TRANSFORM:
        expected[classified.piece] = diff.current.registry[classified.piece]
    return expected


def validate_action(
    diff: TurnDiff, classified: ClassifiedAction, en_passant: Optional[Square] = None
) -> None:
    """
    Classification is necessary, not sufficient: the action must also be generated as legal for that piece
    on the previous turn's board, and replaying it must produce exactly the new turn.
    """
    mover = diff.mover
    last = diff.last
    board = last.board
    if board.piece(classified.piece_square) != classified.piece:
        raise _illegal(mover, f"{classified.piece} did not stand on {classified.piece_square.to_notation()}")

    legal_actions = generate_actions(
        board,
        classified.piece_square,
        last.castle_rights,
        last.registry,
        last.square_of(king_of(mover)),
        en_passant,
    )
    if classified.action not in legal_actions:
        raise _illegal(
            mover,
            f"{classified.piece} cannot play {classified.action} from {classified.piece_square.to_notation()}",
        )

    replay = deepcopy(board)
    execute_action(replay, classified.piece_square, classified.action)
    if replay.to_positions(PIECE_ORDER) != diff.current.positions:
        raise _illegal(mover, "resulting position does not match the action")

    if diff.current.registry != _expected_registry(diff, classified):
        raise _illegal(mover, "promotion registry does not match the action")

    allowed_rights = revoke_castling_rights(last.castle_rights, diff.current.positions)
    for direction, flag in diff.current.castle_rights.items():
        if flag and not allowed_rights[direction]:
            raise _illegal(mover, f"kept a stale castle right ({direction.name.lower()})")


def classify_and_validate_action(
    diff: TurnDiff, en_passant: Optional[Square] = None
) -> ClassifiedAction:
    classified = classify_action(diff)
    validate_action(diff, classified, en_passant)
    logger.debug(
        "%s played %s with %s from %s",
        diff.mover.name.lower(),
        classified.action,
        classified.piece,
        classified.piece_square.to_notation(),
    )
    return classified
