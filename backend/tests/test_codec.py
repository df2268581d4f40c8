import pytest
from pydantic import ValidationError

from codec import bid_action, card_action, decode_bid, decode_card, encode_bid, envelope, parse_action, parse_message
from game import Table
from models import (
    SEATS,
    Card,
    DoubleBid,
    MakeBidAction,
    PassBid,
    PlayCardAction,
    Player,
    RedoubleBid,
    StartRoomAction,
    SuitBid,
)


def test_card_codes():
    assert decode_card("TH") == Card(suit="♥", rank=10)
    assert decode_card("10h") == Card(suit="♥", rank=10)
    assert decode_card("A♠") == Card(suit="♠", rank=14)
    assert Card(suit="♣", rank=12).code == "QC"
    assert str(Card(suit="♦", rank=10)) == "10♦"
    with pytest.raises(ValueError):
        decode_card("1X")


@pytest.mark.parametrize(
    "token, expected",
    [
        ("pass", PassBid(seat="South")),
        ("P", PassBid(seat="South")),
        ("double", DoubleBid(seat="South")),
        ("xx", RedoubleBid(seat="South")),
        ("1NT", SuitBid(seat="South", level=1, strain="NT")),
        ("3n", SuitBid(seat="South", level=3, strain="NT")),
        ("4h", SuitBid(seat="South", level=4, strain="♥")),
        ("7C", SuitBid(seat="South", level=7, strain="♣")),
    ],
)
def test_decode_bid(token, expected):
    assert decode_bid(token, "South") == expected


@pytest.mark.parametrize("token", ["8S", "0H", "1Z", "", "dbl"])
def test_decode_bid_rejects_garbage(token):
    with pytest.raises(ValueError):
        decode_bid(token, "North")


def test_encode_bid():
    assert encode_bid(SuitBid(seat="North", level=2, strain="♠")) == "2S"
    assert encode_bid(RedoubleBid(seat="North")) == "redouble"


def test_actions():
    assert bid_action(SuitBid(seat="East", level=1, strain="NT")) == {"action": "makeBid", "bid": "1NT"}
    assert card_action(Card(suit="♥", rank=10)) == {"action": "playCard", "suit": "H", "rank": "T"}
    assert isinstance(parse_action({"action": "makeBid", "bid": "pass"}), MakeBidAction)
    assert isinstance(parse_action({"action": "startRoom"}), StartRoomAction)
    played = parse_action({"action": "playCard", "suit": "S", "rank": "A"})
    assert isinstance(played, PlayCardAction)
    assert played.card == Card(suit="♠", rank=14)
    with pytest.raises(ValidationError):
        parse_action({"action": "shuffle"})


def test_envelope_roundtrip_keeps_snapshot_fields():
    table = Table("r1", "Codec")
    for seat in SEATS:
        table.add_player(Player(id=seat, name=seat), seat)
    table.start()
    message = envelope("bidMade", table.snapshot_for("North"), seat="East", bid="pass", nextTurn=None)
    assert "nextTurn" not in message
    assert message["snapshot"]["roomId"] == "r1"
    assert message["snapshot"]["currentPlayer"] == "East"
    assert list(message["snapshot"]["hands"]) == ["North"]
    assert all(isinstance(code, str) for code in message["snapshot"]["hands"]["North"])

    parsed = parse_message(message)
    assert parsed.type == "bidMade"
    assert parsed.snapshot.version == table.version
    assert parsed.snapshot.hands["North"] == table.hands["North"]
    assert parsed.snapshot.hand_counts["West"] == 13
