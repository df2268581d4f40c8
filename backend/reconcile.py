"""
Client-side state: turns the authoritative snapshot into what one seat may see.

The client never mutates game state on its own. Each broadcast carries a
snapshot with a version number; ``reduce`` swaps it in wholesale when it is
not older than the one already applied and recomputes the ``LocalView``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from codec import parse_message
from errors import StaleSnapshot
from models import SEATS, Card, GameSnapshot, LocalView, Seat, SeatView, ServerMessage, Trick, TrickView
from positions import relative_seat, rotate_mapping
from rules import legal_bids, legal_cards, sort_hand, sort_hand_for_dummy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientState:
    seat: Seat
    snapshot: Optional[GameSnapshot] = None
    view: Optional[LocalView] = None


def _dummy_exposed(snapshot: GameSnapshot) -> bool:
    return bool(snapshot.dummy and snapshot.phase == "playing" and snapshot.first_card_played)


def controlled_seat(snapshot: GameSnapshot, viewer: Seat) -> Optional[Seat]:
    """Seat whose action ``viewer`` has to make now, if any."""
    on_turn = snapshot.current_player
    if on_turn is None or snapshot.phase not in ("bidding", "playing"):
        return None
    if snapshot.phase == "playing" and snapshot.dummy is not None:
        declarer = snapshot.contract.declarer if snapshot.contract else None
        if on_turn == snapshot.dummy:
            return on_turn if viewer == declarer else None
        if viewer == snapshot.dummy:
            return None
    return viewer if on_turn == viewer else None


def _trick_view(trick: Trick, viewer: Seat) -> TrickView:
    return TrickView(
        leader=trick.leader,
        leader_relative=relative_seat(trick.leader, viewer),
        cards=rotate_mapping({seat: trick.cards.get(seat) for seat in SEATS}, viewer),
        led_suit=trick.led_suit,
        winner=trick.winner,
        winner_relative=relative_seat(trick.winner, viewer) if trick.winner else None,
    )


def project(snapshot: GameSnapshot, viewer: Seat) -> LocalView:
    dummy = snapshot.dummy
    visible = {viewer}
    if _dummy_exposed(snapshot):
        visible.add(dummy)

    def _cards(seat: Seat) -> Optional[List[Card]]:
        if seat not in visible or seat not in snapshot.hands:
            return None
        if seat == dummy:
            return sort_hand_for_dummy(snapshot.hands[seat])
        return sort_hand(snapshot.hands[seat])

    seats: Dict[Seat, SeatView] = {}
    for seat in SEATS:
        cards = _cards(seat)
        count = snapshot.hand_counts.get(seat)
        if count is None:
            count = len(snapshot.hands.get(seat, []))
        rel = relative_seat(seat, viewer)
        seats[rel] = SeatView(
            seat=seat,
            relative=rel,
            player=snapshot.players.get(seat),
            card_count=count,
            cards=cards,
            is_dummy=seat == dummy,
            is_current=seat == snapshot.current_player,
            is_robot=seat in snapshot.robots,
        )

    hand = sort_hand(snapshot.hands.get(viewer, []))
    dummy_hand = _cards(dummy) if dummy is not None else None

    acting = controlled_seat(snapshot, viewer)
    bids = legal_bids(viewer, snapshot.auction) if acting and snapshot.phase == "bidding" else []
    playable: List[Card] = []
    if acting and snapshot.phase == "playing":
        acting_hand = snapshot.hands.get(acting, [])
        playable = sort_hand(legal_cards(acting_hand, snapshot.led_suit))

    current = snapshot.current_player
    return LocalView(
        viewer=viewer,
        version=snapshot.version,
        deal_number=snapshot.deal_number,
        phase=snapshot.phase,
        dealer=snapshot.dealer,
        current_player=current,
        current_player_relative=relative_seat(current, viewer) if current else None,
        is_my_turn=acting is not None,
        controlled_seat=acting,
        auction=list(snapshot.auction),
        contract=snapshot.contract,
        dummy=dummy,
        first_card_played=snapshot.first_card_played,
        vulnerability=snapshot.vulnerability,
        hand=hand,
        dummy_hand=dummy_hand,
        seats=seats,
        current_trick=_trick_view(snapshot.current_trick, viewer) if snapshot.current_trick else None,
        tricks=[_trick_view(trick, viewer) for trick in snapshot.tricks],
        tricks_won=dict(snapshot.tricks_won),
        legal_bids=bids,
        playable_cards=playable,
    )


def reduce(state: ClientState, snapshot: GameSnapshot) -> ClientState:
    current = state.snapshot
    if current is not None and current.room_id == snapshot.room_id and snapshot.version < current.version:
        raise StaleSnapshot(current.version, snapshot.version)
    return ClientState(seat=state.seat, snapshot=snapshot, view=project(snapshot, state.seat))


class LocalStore:
    """Single container for a client's state; only replaced through ``reduce``."""

    def __init__(self, seat: Seat):
        self.state = ClientState(seat=seat)
        self.room: Optional[dict] = None
        self.last_error: Optional[str] = None

    @property
    def seat(self) -> Seat:
        return self.state.seat

    @property
    def view(self) -> Optional[LocalView]:
        return self.state.view

    @property
    def snapshot(self) -> Optional[GameSnapshot]:
        return self.state.snapshot

    def apply_snapshot(self, snapshot: GameSnapshot) -> Optional[LocalView]:
        try:
            self.state = reduce(self.state, snapshot)
        except StaleSnapshot as exc:
            logger.warning("Discarding stale snapshot for %s: %s", self.seat, exc)
            return None
        return self.state.view

    def apply(self, message: Union[ServerMessage, Dict[str, Any]]) -> Optional[LocalView]:
        """Applies one broadcast; returns the new view or None when nothing changed."""
        if not isinstance(message, ServerMessage):
            try:
                message = parse_message(message)
            except ValidationError as exc:
                logger.warning("Ignoring malformed message: %s", exc)
                return None
        if message.type == "error":
            self.last_error = message.error
            logger.info("Server rejected action from %s: %s", self.seat, message.error)
            return None
        if message.type == "roomUpdated":
            self.room = message.room
        if message.snapshot is None:
            return None
        return self.apply_snapshot(message.snapshot)
