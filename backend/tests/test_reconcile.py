import pytest

from codec import envelope
from errors import StaleSnapshot
from game import Table
from models import SEATS, SUITS, Card, PassBid, Player, SuitBid
from reconcile import ClientState, LocalStore, controlled_seat, project, reduce
from rules import make_deck

SUIT_DEAL = {seat: [c for c in make_deck() if c.suit == suit] for seat, suit in zip(SEATS, SUITS)}


@pytest.fixture
def table() -> Table:
    t = Table("room", "Views")
    for seat in SEATS:
        t.add_player(Player(id=seat, name=seat), seat)
    t.start(SUIT_DEAL)
    return t


def _to_contract(t: Table):
    # East declares 1NT, West is dummy, South leads
    t.make_bid("East", SuitBid(seat="East", level=1, strain="NT"))
    for seat in ("South", "West", "North"):
        t.make_bid(seat, PassBid(seat=seat))


def test_project_is_idempotent(table):
    snapshot = table.snapshot_for("North")
    assert project(snapshot, "North") == project(snapshot, "North")


def test_project_shows_only_own_hand(table):
    view = project(table.snapshot_for("South"), "South")
    assert view.hand == table.hands["South"]
    assert view.seats["South"].cards == view.hand
    for rel in ("North", "East", "West"):
        assert view.seats[rel].cards is None
        assert view.seats[rel].card_count == 13


def test_seats_keyed_by_relative_position(table):
    view = project(table.snapshot_for("East"), "East")
    assert view.seats["South"].seat == "East"
    assert view.seats["North"].seat == "West"
    assert view.seats["West"].seat == "South"
    assert view.current_player == "East"
    assert view.current_player_relative == "South"
    assert view.is_my_turn
    assert view.legal_bids[0] == PassBid(seat="East")


def test_not_my_turn_has_no_legal_actions(table):
    view = project(table.snapshot_for("North"), "North")
    assert not view.is_my_turn
    assert view.legal_bids == []
    assert view.playable_cards == []


def test_dummy_revealed_only_after_opening_lead(table):
    _to_contract(table)
    before = project(table.snapshot_for("South"), "South")
    assert before.dummy == "West"
    assert before.dummy_hand is None
    assert before.is_my_turn
    assert before.playable_cards == table.hands["South"]

    table.play_card("South", Card.model_validate("AD"))
    after = project(table.snapshot_for("South"), "South")
    assert after.first_card_played
    assert after.dummy_hand == sorted(table.hands["West"], key=lambda c: c.rank)
    assert after.seats["West"].is_dummy
    assert after.current_trick.cards["South"] == Card.model_validate("AD")


def test_declarer_controls_dummy(table):
    _to_contract(table)
    table.play_card("South", Card.model_validate("AD"))
    snapshot = table.snapshot_for("East")
    assert controlled_seat(snapshot, "East") == "West"
    assert controlled_seat(table.snapshot_for("West"), "West") is None

    view = project(snapshot, "East")
    assert view.is_my_turn
    assert view.controlled_seat == "West"
    # West is void in diamonds, any club goes
    assert view.playable_cards == table.hands["West"]

    dummy_view = project(table.snapshot_for("West"), "West")
    assert not dummy_view.is_my_turn
    assert dummy_view.playable_cards == []


def test_reduce_rejects_older_snapshot(table):
    old = table.snapshot_for("North")
    table.make_bid("East", PassBid(seat="East"))
    new = table.snapshot_for("North")

    state = reduce(ClientState(seat="North"), new)
    with pytest.raises(StaleSnapshot):
        reduce(state, old)
    assert reduce(state, new).view == state.view


def test_store_discards_stale_and_applies_messages(table):
    store = LocalStore("North")
    first = table.snapshot_for("North")
    table.make_bid("East", PassBid(seat="East"))
    second = table.snapshot_for("North")

    view = store.apply(envelope("bidMade", second, seat="East", bid="pass", nextTurn="South"))
    assert view is not None and view.version == second.version
    assert store.apply(envelope("gameStarted", first)) is None
    assert store.view.version == second.version
    assert len(store.view.auction) == 1


def test_store_records_errors_and_room_updates(table):
    store = LocalStore("West")
    assert store.apply(envelope("error", error="Not your turn")) is None
    assert store.last_error == "Not your turn"
    view = store.apply(envelope("roomUpdated", table.snapshot_for("West"), room=table.summary()))
    assert store.room["room_id"] == "room"
    assert view.viewer == "West"
    assert store.apply({"type": "bogus"}) is None
