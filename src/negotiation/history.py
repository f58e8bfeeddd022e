"""
Reconstruct the negotiation state from a backlog of messages, at the start of a session.

The backlog is scanned newest-first with three independent searches:
* invite: the most recent outstanding invite sent by the local player
* accept: the most recent invite sent by the remote player (a candidate to accept)
* load:   the most recent game in progress, as its last two turns

Each search stops once resolved or invalidated. A hash that turns out to be inconsistent gets blacklisted and is
ignored for the rest of the (older) backlog. Nothing in here raises: unresolvable chains result in "no record".
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from src.chess.turn import NEG_ONE_TURN, ZERO_TURN, is_valid_turn
from src.core.shared_types import Color
from src.negotiation.messages import (
    AcceptMessage,
    DeclineMessage,
    EndMessage,
    GameOverMessage,
    InviteMessage,
    TurnMessage,
    parse_envelope,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BacklogEntry:
    """One message of the conversation, as delivered by the transport"""

    content: Optional[str]
    sender_address: str


@dataclass(frozen=True)
class Invite:
    hash: str
    color: Color


@dataclass(frozen=True)
class Accept:
    """An invite from the opponent that can still be accepted. `color` is the color the local player would get."""

    hash: str
    color: Color


@dataclass(frozen=True)
class LoadedGame:
    """Game to resume: the local player's color and the last two turns"""

    hash: str
    color: Color
    last_move: str
    curr_move: str


@dataclass
class History:
    invite: Optional[Invite] = None
    accept: Optional[Accept] = None
    load: Optional[LoadedGame] = None


@dataclass
class _LoadCandidate:
    """Game being pieced together while scanning. `curr_move` is newer than `last_move`."""

    hash: str
    color: Color
    curr_move: str
    local_went: bool
    answered_by_accept: bool = False
    last_move: Optional[str] = None


@dataclass
class _HistoryScan:
    invite: Optional[Invite] = None
    accept: Optional[Accept] = None
    load: Optional[_LoadCandidate] = None
    searching_invite: bool = True
    searching_accept: bool = True
    searching_load: bool = True
    blacklist: set[str] = field(default_factory=set)

    def is_done(self) -> bool:
        return not (self.searching_invite or self.searching_accept or self.searching_load)

    def _expected_color(self, claimed: Color, is_local: bool) -> bool:
        """Does the claimed color fit the color the local player got in the candidate game?"""
        assert self.load is not None
        expected = self.load.color if is_local else self.load.color.opponent
        return claimed == expected

    def _complete_or_blacklist(self, hash: str, move: str, claimed: Color, is_local: bool) -> None:
        """Second (older) message of the candidate game: completes the pair, or invalidates the hash."""
        assert self.load is not None
        if self._expected_color(claimed, is_local):
            self.load.last_move = move
        else:
            logger.debug("Color mismatch in history of %s, ignoring this game", hash)
            self.blacklist.add(hash)
        self.searching_load = False

    def _seed(
        self, hash: str, move: str, claimed: Color, is_local: bool, is_accept: bool = False
    ) -> None:
        color = claimed if is_local else claimed.opponent
        self.load = _LoadCandidate(
            hash, color, move, local_went=is_local, answered_by_accept=is_accept
        )

    # --- one handler per message type ---
    def on_turn(self, hash: str, message: TurnMessage, is_local: bool) -> None:
        self.searching_invite = False
        self.searching_accept = False
        if not self.searching_load:
            return

        same_game = self.load is not None and self.load.hash == hash
        if same_game and self.load.local_went != is_local:
            self._complete_or_blacklist(hash, message.turn, message.mover, is_local)
        elif self.load is None and hash not in self.blacklist:
            self._seed(hash, message.turn, message.mover, is_local)
        else:
            self.searching_load = False

    def on_invite(self, hash: str, message: InviteMessage, is_local: bool) -> None:
        if hash in self.blacklist:
            return

        if is_local and self.searching_invite:
            self.invite = Invite(hash, message.color)
            self.searching_invite = False
        elif not is_local and self.searching_accept:
            self.accept = Accept(hash, message.color.opponent)
            self.searching_accept = False
        elif self.searching_load and self.load is not None and self.load.hash == hash:
            if self.load.local_went != is_local and self.load.answered_by_accept:
                self._complete_or_blacklist(
                    hash, message.to_payload(), message.color, is_local
                )
            else:
                # an invite answered by the same player, or directly by a move
                self.blacklist.add(hash)
                self.searching_load = False

    def on_accept(self, hash: str, message: AcceptMessage, is_local: bool) -> None:
        if not self.searching_load:
            return

        if self.load is not None and self.load.hash == hash:
            self._complete_or_blacklist(hash, message.to_payload(), message.color, is_local)
        elif self.load is None and hash not in self.blacklist:
            self._seed(
                hash, message.to_payload(), message.color, is_local, is_accept=True
            )

        self.searching_invite = False
        self.searching_accept = False

    def on_decline(self, hash: str, is_local: bool) -> None:
        if is_local and self.searching_accept:
            self.blacklist.add(hash)
            self.searching_accept = False
        elif not is_local and self.searching_invite:
            self.blacklist.add(hash)
            self.searching_invite = False

    def on_closed(self) -> None:
        self.searching_invite = False
        self.searching_accept = False
        self.searching_load = False

    def finish(self) -> History:
        return History(self.invite, self.accept, self._loaded_game())

    def _loaded_game(self) -> Optional[LoadedGame]:
        """
        A game can only be resumed from two turns that are valid snapshots.
        Otherwise fall back on the opening turns:
        * neither valid (an invite + accept pair): both opening turns
        * only the newer one valid (first move of the game): zero-th turn + that move
        * only the older one valid: both opening turns
        """
        candidate = self.load
        if candidate is None or candidate.last_move is None:
            return None

        last_move, curr_move = candidate.last_move, candidate.curr_move
        last_valid, curr_valid = is_valid_turn(last_move), is_valid_turn(curr_move)
        if not curr_valid:
            last_move, curr_move = NEG_ONE_TURN, ZERO_TURN
        elif not last_valid:
            last_move = ZERO_TURN
        return LoadedGame(candidate.hash, candidate.color, last_move, curr_move)


def reconstruct_history(backlog: list[BacklogEntry], local_address: str) -> History:
    """
    Scan the backlog (oldest first, as delivered) from the newest message backwards.

    Messages without a hash (regular chat) are skipped.
    """
    scan = _HistoryScan()
    for entry in reversed(backlog):
        if scan.is_done():
            break

        envelope = parse_envelope(entry.content)
        if envelope is None:
            continue

        hash, payload = envelope.hash, envelope.payload
        is_local = entry.sender_address == local_address
        if isinstance(payload, TurnMessage):
            scan.on_turn(hash, payload, is_local)
        elif isinstance(payload, InviteMessage):
            scan.on_invite(hash, payload, is_local)
        elif isinstance(payload, AcceptMessage):
            scan.on_accept(hash, payload, is_local)
        elif isinstance(payload, DeclineMessage):
            scan.on_decline(hash, is_local)
        elif isinstance(payload, (EndMessage, GameOverMessage)):
            scan.on_closed()

    history = scan.finish()
    logger.debug(
        "History for %s: invite=%s accept=%s load=%s",
        local_address,
        history.invite,
        history.accept,
        history.load.hash if history.load else None,
    )
    return history
