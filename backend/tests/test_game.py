import random

import pytest

from errors import IllegalAction, OutOfTurn
from game import Table
from models import SEATS, SUITS, Card, DoubleBid, PassBid, Player, SuitBid
from rules import legal_cards, make_deck

# North holds all spades, East all hearts, South all diamonds, West all clubs
SUIT_DEAL = {seat: [c for c in make_deck() if c.suit == suit] for seat, suit in zip(SEATS, SUITS)}


def make_table(hands=None, dealer="North") -> Table:
    table = Table("t1", "Test", dealer=dealer, rng=random.Random(3))
    for seat in SEATS:
        table.add_player(Player(id=seat.lower(), name=seat), seat)
    table.start(hands)
    return table


def bid_contract(table: Table, level=1, strain="NT"):
    """Dealer North: East opens, everyone else passes."""
    table.make_bid("East", SuitBid(seat="East", level=level, strain=strain))
    table.make_bid("South", PassBid(seat="South"))
    table.make_bid("West", PassBid(seat="West"))
    return table.make_bid("North", PassBid(seat="North"))


def test_seating_rules():
    table = Table("t", "Test")
    assert table.add_player(Player(id="a", name="A")) == "North"
    assert table.add_player(Player(id="b", name="B"), "South") == "South"
    assert table.add_player(Player(id="a", name="A")) == "North"
    with pytest.raises(ValueError, match="Seat taken"):
        table.add_player(Player(id="c", name="C"), "South")
    assert table.add_robot("Bot") == "East"
    assert table.robots == ["East"]
    with pytest.raises(ValueError, match="Not enough players"):
        table.start()
    table.add_player(Player(id="d", name="D"))
    with pytest.raises(ValueError, match="Room full"):
        table.add_robot()


def test_start_deals_and_opens_bidding_left_of_dealer():
    table = make_table()
    assert table.phase == "bidding"
    assert table.deal_number == 1
    assert table.current_player == "East"
    assert all(len(table.hands[seat]) == 13 for seat in SEATS)
    assert table.snapshot().card_total() == 52


def test_start_rejects_bad_deal():
    table = Table("t", "Test")
    for seat in SEATS:
        table.add_player(Player(id=seat, name=seat), seat)
    broken = {seat: list(SUIT_DEAL[seat]) for seat in SEATS}
    broken["North"][0] = broken["East"][0]
    with pytest.raises(ValueError):
        table.start(broken)


def test_version_bumps_on_every_change():
    table = make_table(SUIT_DEAL)
    before = table.version
    table.make_bid("East", PassBid(seat="East"))
    assert table.version == before + 1


def test_bid_out_of_turn_is_rejected_without_change():
    table = make_table(SUIT_DEAL)
    version = table.version
    with pytest.raises(OutOfTurn):
        table.make_bid("South", PassBid(seat="South"))
    assert table.version == version
    assert table.auction == []


def test_illegal_bid_is_rejected():
    table = make_table(SUIT_DEAL)
    table.make_bid("East", SuitBid(seat="East", level=2, strain="♥"))
    with pytest.raises(IllegalAction):
        table.make_bid("South", SuitBid(seat="South", level=1, strain="♠"))
    with pytest.raises(IllegalAction):
        table.make_bid("South", DoubleBid(seat="West"))
    assert len(table.auction) == 1


def test_contract_moves_to_play_with_opening_lead_left_of_declarer():
    table = make_table(SUIT_DEAL)
    assert bid_contract(table) == "contract"
    assert table.phase == "playing"
    assert table.contract.declarer == "East"
    assert table.dummy == "West"
    assert table.current_player == "South"
    assert table.first_card_played is False


def test_passed_out_deal_rotates_dealer_and_redeals():
    table = make_table(SUIT_DEAL)
    outcomes = [table.make_bid(seat, PassBid(seat=seat)) for seat in ("East", "South", "West", "North")]
    assert outcomes[-1] == "passed_out"
    assert table.phase == "bidding"
    assert table.dealer == "East"
    assert table.deal_number == 2
    assert table.current_player == "South"
    assert table.auction == []
    assert table.snapshot().card_total() == 52


def test_dummy_hidden_until_opening_lead():
    table = make_table(SUIT_DEAL)
    bid_contract(table)
    assert table.visible_seats("North") == ["North"]
    assert set(table.snapshot_for("North").hands) == {"North"}

    table.play_card("South", Card.model_validate("AD"))
    assert table.first_card_played is True
    assert table.visible_seats("North") == ["North", "West"]
    assert set(table.snapshot_for("East").hands) == {"East", "West"}


def test_declarer_plays_for_dummy():
    table = make_table(SUIT_DEAL)
    bid_contract(table)
    table.play_card("South", Card.model_validate("AD"))
    assert table.current_player == "West"
    with pytest.raises(OutOfTurn):
        table.play_card("West", Card.model_validate("2C"))
    assert table.play_card("East", Card.model_validate("2C")) == "played"
    assert Card.model_validate("2C") not in table.hands["West"]


def test_card_not_in_hand_is_rejected():
    table = make_table(SUIT_DEAL)
    bid_contract(table)
    with pytest.raises(IllegalAction, match="Card not in hand"):
        table.play_card("South", Card.model_validate("AS"))


def test_must_follow_suit_at_the_table():
    hands = {seat: list(SUIT_DEAL[seat]) for seat in SEATS}
    # swap one diamond into West's clubs so West can follow
    hands["West"][0], hands["South"][12] = hands["South"][12], hands["West"][0]
    table = make_table(hands)
    bid_contract(table)
    lead = next(c for c in table.hands["South"] if c.suit == "♦")
    table.play_card("South", lead)
    club = next(c for c in table.hands["West"] if c.suit == "♣")
    with pytest.raises(IllegalAction, match="Must follow suit"):
        table.play_card("East", club)


def test_full_deal_completes_after_13_tricks():
    table = make_table(SUIT_DEAL)
    bid_contract(table)
    total = 52
    while table.phase == "playing":
        on_turn = table.current_player
        trick_count = len(table.tricks)
        card = legal_cards(table.hands[on_turn], table.current_trick.led_suit)[0]
        table.play_card(table.controller_of(on_turn), card)
        total -= 1
        assert table.snapshot().card_total() == total
        if len(table.tricks) > trick_count:
            assert total % 4 == 0
    assert table.phase == "completed"
    assert len(table.tricks) == 13
    assert table.tricks_won["NS"] + table.tricks_won["EW"] == 13
    assert table.current_player is None


def test_new_game_only_after_completion():
    table = make_table(SUIT_DEAL)
    with pytest.raises(ValueError, match="still in progress"):
        table.new_game()
    bid_contract(table)
    while table.phase == "playing":
        on_turn = table.current_player
        card = legal_cards(table.hands[on_turn], table.current_trick.led_suit)[0]
        table.play_card(table.controller_of(on_turn), card)
    table.new_game(SUIT_DEAL)
    assert table.dealer == "East"
    assert table.deal_number == 2
    assert table.phase == "bidding"
    assert table.current_player == "South"
    assert table.tricks_won == {"NS": 0, "EW": 0}


def test_summary_lists_free_seats():
    table = Table("t", "Lobby")
    table.add_player(Player(id="a", name="A"), "West")
    summary = table.summary()
    assert summary["free_seats"] == ["North", "East", "South"]
    assert summary["players"]["West"]["name"] == "A"


def test_deal_hands_replaces_deal_and_restarts_auction():
    table = make_table()
    table.make_bid("East", PassBid(seat="East"))
    table.deal_hands(SUIT_DEAL)
    assert table.auction == []
    assert table.deal_number == 2
    assert table.dealer == "North"
    assert table.hands["North"] == SUIT_DEAL["North"]
    with pytest.raises(ValueError, match="not started"):
        Table("idle", "Idle").deal_hands(SUIT_DEAL)
