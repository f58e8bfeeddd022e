"""
Geometry/Base movement and capturing/attacking rules

Key idea: Use strategy pattern to define candidate action sets for each piece kind.
Candidates are turned into legal actions by replaying them on a scratch board and checking the own king is still safe.
"""

import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Callable, Optional

from src.chess.board import Board, Positions
from src.chess.castling import (
    CASTLING_RULES,
    CastleRights,
    castling_direction_for,
    directions_for,
)
from src.chess.pieces import (
    PieceId,
    PromotionRegistry,
    Vector,
    are_enemies,
    can_attack_direction,
    effective_kind,
    is_kind,
    king_of,
)
from src.chess.square import BOARD_DIMENSIONS, Square
from src.core.shared_types import ActionKind, Color, PieceKind

logger = logging.getLogger(__name__)

STRAIGHTS: list[Vector] = [(0, 1), (1, 0), (0, -1), (-1, 0)]
DIAGONALS: list[Vector] = [(1, 1), (1, -1), (-1, -1), (-1, 1)]
KNIGHT_DELTAS: list[Vector] = [
    (2, 1),
    (2, -1),
    (-2, 1),
    (-2, -1),
    (1, 2),
    (1, -2),
    (-1, 2),
    (-1, -2),
]
KING_DELTAS: list[Vector] = STRAIGHTS + DIAGONALS


@dataclass(frozen=True)
class Action:
    """Where a piece goes, and what kind of action brings it there"""

    destination: Square
    kind: ActionKind

    def __str__(self) -> str:
        return f"{self.destination.to_notation()} ({self.kind})"


def pawn_direction(color: Color) -> int:
    """White moves UP the board, black moves DOWN"""
    return 1 if color == Color.WHITE else -1


def pawn_start_rank(color: Color) -> int:
    return 2 if color == Color.WHITE else BOARD_DIMENSIONS[1] - 1


def en_passant_rank(color: Color) -> int:
    """Rank a pawn of `color` must stand on to take en passant"""
    return 5 if color == Color.WHITE else 4


# --- MOVEMENT RULES ---
def raycasting_move(
    square: Square, board: Board, directions: list[Vector]
) -> list[Action]:
    """
    Raycasting algorithm
    -----

    We walk along each direction until we hit another piece or the edge of the board.
    A friendly blocker stops the ray before it, an enemy blocker yields one capture and then stops the ray.
    """
    piece = board.piece(square)
    actions: list[Action] = []
    for df, dr in directions:
        target_square = square.offset(df, dr)
        while target_square.is_within_bounds():
            if board.is_empty(target_square):
                actions.append(Action(target_square, ActionKind.MOVE))
            else:
                if are_enemies(piece, board.piece(target_square)):
                    actions.append(Action(target_square, ActionKind.CAPTURE))
                break
            target_square = target_square.offset(df, dr)
    return actions


def single_step_move(
    square: Square, board: Board, deltas: list[Vector]
) -> list[Action]:
    """Raycasting is for sliding pieces. This is the equivalent for kings and knights that just move a single step along a direction"""
    piece = board.piece(square)
    actions: list[Action] = []
    for df, dr in deltas:
        target_square = square.offset(df, dr)
        if not target_square.is_within_bounds():
            continue

        if board.is_empty(target_square):
            actions.append(Action(target_square, ActionKind.MOVE))
        elif are_enemies(piece, board.piece(target_square)):
            actions.append(Action(target_square, ActionKind.CAPTURE))
    return actions


def candidate_pawn_moves(square: Square, board: Board) -> list[Action]:
    """
    A pawn:
    - moves by a single square forward.
    - It can move by two in their first move (so when on their starting rank)
    - takes diagonally
    - transforms when it reaches the final rank (moving or taking)

    NOTE: En passant is added separately, as it depends on the previous turn
    """
    pawn = board.piece(square)
    assert pawn is not None
    forward = pawn_direction(pawn.color)
    reaches_final_rank = not square.offset(0, 2 * forward).is_within_bounds()

    actions: list[Action] = []
    one_step = square.offset(0, forward)
    if one_step.is_within_bounds() and board.is_empty(one_step):
        kind = ActionKind.TRANSFORM if reaches_final_rank else ActionKind.MOVE
        actions.append(Action(one_step, kind))

        two_steps = square.offset(0, 2 * forward)
        if square.rank == pawn_start_rank(pawn.color) and board.is_empty(two_steps):
            actions.append(Action(two_steps, ActionKind.MOVE))

    # pawns take diagonally:
    for df in (1, -1):
        target_square = square.offset(df, forward)
        if target_square.is_within_bounds() and are_enemies(
            pawn, board.piece(target_square)
        ):
            kind = ActionKind.TRANSFORM if reaches_final_rank else ActionKind.CAPTURE
            actions.append(Action(target_square, kind))
    return actions


def candidate_knight_moves(square: Square, board: Board) -> list[Action]:
    """Knights always move such that |delta_rank| + |delta_file| = 3"""
    return single_step_move(square, board, KNIGHT_DELTAS)


def candidate_bishop_moves(square: Square, board: Board) -> list[Action]:
    """Bishops move diagonally: |delta_rank| = |delta_file|"""
    return raycasting_move(square, board, DIAGONALS)


def candidate_rook_moves(square: Square, board: Board) -> list[Action]:
    """Rooks move either horizontally or vertically"""
    return raycasting_move(square, board, STRAIGHTS)


def candidate_queen_moves(square: Square, board: Board) -> list[Action]:
    """
    The Queen combines the rook moves (horizontal + vertical movements) and bishop moves (diagonal movement)
    """
    return candidate_rook_moves(square, board) + candidate_bishop_moves(square, board)


def candidate_king_moves(square: Square, board: Board) -> list[Action]:
    """
    The king can move by a single square at the time.

    Castling is modelled as a special king move (handled separately).
    """
    return single_step_move(square, board, KING_DELTAS)


# -- STRATEGY PATTERN: MOVEMENT RULES ---
CandidateMovesFn = Callable[[Square, Board], list[Action]]
MOVEMENT_RULES: dict[PieceKind, CandidateMovesFn] = {
    PieceKind.PAWN: candidate_pawn_moves,
    PieceKind.KNIGHT: candidate_knight_moves,
    PieceKind.BISHOP: candidate_bishop_moves,
    PieceKind.ROOK: candidate_rook_moves,
    PieceKind.QUEEN: candidate_queen_moves,
    PieceKind.KING: candidate_king_moves,
}


# --- SAFETY ---
def nearest_piece_square(
    board: Board, square: Square, direction: Vector, ignore: Optional[PieceId] = None
) -> Optional[Square]:
    """First occupied square along the ray (the ignored piece is treated as thin air)"""
    df, dr = direction
    check_square = square.offset(df, dr)
    while check_square.is_within_bounds():
        if not board.is_empty(check_square, ignore):
            return check_square
        check_square = check_square.offset(df, dr)
    return None


def is_safe(
    board: Board,
    square: Square,
    color: Color,
    registry: PromotionRegistry,
    ignore: Optional[PieceId] = None,
) -> bool:
    """
    Could a piece of `color` stand on `square` without being attacked?
    ---

    The square is unsafe when
    * an opposing slider has an unobstructed ray onto it
    * an opposing knight is a knight's move away
    * an opposing pawn threatens it diagonally from the correct side
    * the opposing king stands next to it

    `ignore` is left out as a blocker. Used for the king, so it cannot hide behind itself when stepping away from a slider.
    """
    for direction in KING_DELTAS:
        found_square = nearest_piece_square(board, square, direction, ignore)
        if found_square is None:
            continue
        attacker = board.piece(found_square)
        assert attacker is not None
        if attacker.color != color and can_attack_direction(
            attacker, direction, registry
        ):
            return False

    def _enemy_of_kind_at(deltas: list[Vector], kind: PieceKind) -> bool:
        for df, dr in deltas:
            target_square = square.offset(df, dr)
            if not target_square.is_within_bounds():
                continue
            found = board.piece(target_square)
            if (
                found is not None
                and found != ignore
                and found.color != color
                and is_kind(found, kind, registry)
            ):
                return True
        return False

    # NOTE: an enemy pawn attacks from the rank "in front of" the square, as seen from our side
    forward = pawn_direction(color)
    pawn_attack_deltas: list[Vector] = [(1, forward), (-1, forward)]

    return not (
        _enemy_of_kind_at(KNIGHT_DELTAS, PieceKind.KNIGHT)
        or _enemy_of_kind_at(pawn_attack_deltas, PieceKind.PAWN)
        or _enemy_of_kind_at(KING_DELTAS, PieceKind.KING)
    )


# -- SPECIAL ACTIONS ---
def en_passant_actions(
    square: Square, board: Board, en_passant: Optional[Square]
) -> list[Action]:
    """
    The en passant target is the square the opponent's pawn landed on after its double step.
    Our pawn must stand right next to it (same rank, adjacent file). It then moves diagonally behind it.
    """
    if en_passant is None:
        return []

    pawn = board.piece(square)
    assert pawn is not None
    required_rank = en_passant_rank(pawn.color)
    is_adjacent = (
        square.rank == en_passant.rank == required_rank
        and abs(square.file - en_passant.file) == 1
    )
    if not is_adjacent:
        return []

    target = board.piece(en_passant)
    destination = Square(en_passant.file, square.rank + pawn_direction(pawn.color))
    if (
        target is None
        or not are_enemies(pawn, target)
        or target.kind != PieceKind.PAWN
        or not board.is_empty(destination)
    ):
        return []
    return [Action(destination, ActionKind.EN_PASSANT)]


def castling_actions(
    square: Square,
    board: Board,
    castle_rights: CastleRights,
    registry: PromotionRegistry,
) -> list[Action]:
    """
    Castle is allowed when:
    * the right has not been revoked
    * the king stands on its home square, and the rook tied to this right on its own
    * every square between king and rook is empty, and none of the squares the king crosses is attacked
    """
    king = board.piece(square)
    assert king is not None
    actions: list[Action] = []
    for direction in directions_for(king.color):
        if not castle_rights.get(direction):
            continue

        rule = CASTLING_RULES[direction]
        if square != rule.king_from or board.piece(rule.rook_from) != direction.rook:
            continue

        if not all(board.is_empty(sq, ignore=king) for sq in rule.path):
            continue

        if not all(is_safe(board, sq, king.color, registry, king) for sq in rule.path):
            continue

        actions.append(Action(rule.king_to, ActionKind.CASTLE))
    return actions


# -- EXECUTING ACTIONS ---
def execute_action(board: Board, square: Square, action: Action) -> Optional[PieceId]:
    """
    Update the board in place. Returns the captured piece, if any.

    * castle: moves the king and the rook tied to the castle
    * en passant: the captured pawn is not on the destination, but next to the starting square
    """
    piece = board.piece(square)
    assert piece is not None

    if action.kind == ActionKind.CASTLE:
        direction = castling_direction_for(piece.color, action.destination)
        assert direction is not None
        rule = CASTLING_RULES[direction]
        board.move_piece(square, action.destination)
        board.move_piece(rule.rook_from, rule.rook_to)
        return None

    if action.kind == ActionKind.EN_PASSANT:
        captured = board.remove_piece(Square(action.destination.file, square.rank))
        board.move_piece(square, action.destination)
        return captured

    return board.move_piece(square, action.destination)


def leaves_king_safe(
    board: Board,
    square: Square,
    action: Action,
    registry: PromotionRegistry,
    king_square: Optional[Square],
) -> bool:
    """Replay the action on a scratch copy of the board and check if the own king is safe afterwards."""
    piece = board.piece(square)
    assert piece is not None
    scratch = deepcopy(board)
    execute_action(scratch, square, action)

    if square == king_square:
        king_square = action.destination
    if king_square is None:
        # a board without our king: nothing to protect
        return True
    return is_safe(scratch, king_square, piece.color, registry)


def generate_actions(
    board: Board,
    square: Square,
    castle_rights: CastleRights,
    registry: PromotionRegistry,
    king_square: Optional[Square],
    en_passant: Optional[Square] = None,
) -> list[Action]:
    """
    All legal actions for the piece standing on `square`
    ----

    1. candidate actions by the movement rule of its (effective) kind
    2. add en passant (unpromoted pawns) / castling (king) candidates
    3. keep the actions that leave the own king safe. King destinations are checked this way as well.
    """
    piece = board.piece(square)
    if piece is None:
        return []

    kind = effective_kind(piece, registry)
    candidates = MOVEMENT_RULES[kind](square, board)
    if kind == PieceKind.PAWN:
        candidates.extend(en_passant_actions(square, board, en_passant))
    elif kind == PieceKind.KING:
        candidates.extend(castling_actions(square, board, castle_rights, registry))

    return [
        action
        for action in candidates
        if leaves_king_safe(board, square, action, registry, king_square)
    ]


@dataclass
class TurnInfo:
    """Every legal action for each piece of one color, and whether that color's king is safe right now"""

    actions: dict[PieceId, list[Action]]
    is_king_safe: bool

    def has_no_actions(self) -> bool:
        return all(len(actions) == 0 for actions in self.actions.values())


def get_turn_info(
    board: Board,
    color: Color,
    positions: Positions,
    registry: PromotionRegistry,
    castle_rights: CastleRights,
    en_passant: Optional[Square] = None,
) -> TurnInfo:
    """
    Build the map PieceId -> legal actions for every piece of `color`.

    When the king starts out in check, the replay in `generate_actions` already leaves only the actions that
    resolve the check.
    """
    king_square = positions.get(king_of(color))
    is_king_safe = (
        king_square is None or is_safe(board, king_square, color, registry)
    )

    actions: dict[PieceId, list[Action]] = {}
    for piece, square in positions.items():
        if piece.color != color:
            continue
        if square is None:
            actions[piece] = []
            continue
        actions[piece] = generate_actions(
            board, square, castle_rights, registry, king_square, en_passant
        )

    logger.debug(
        "%s has %d legal actions (king safe: %s)",
        color.name.lower(),
        sum(len(found) for found in actions.values()),
        is_king_safe,
    )
    return TurnInfo(actions, is_king_safe)

