"""Wire tokens for bids and cards, and the message envelopes sent over the socket."""
from __future__ import annotations

import re
from typing import Any, Dict, Optional

from pydantic import TypeAdapter

from models import (
    CODE_STRAINS,
    Bid,
    Card,
    ClientAction,
    DoubleBid,
    GameSnapshot,
    MakeBidAction,
    PassBid,
    PlayCardAction,
    RedoubleBid,
    Seat,
    ServerMessage,
    SuitBid,
    SUIT_CODES,
    RANK_CODES,
)

_BID_RE = re.compile(r"^([1-7])(C|D|H|S|NT|N)$")
_action_adapter: TypeAdapter = TypeAdapter(ClientAction)


def encode_card(card: Card) -> str:
    return card.code


def decode_card(code: str) -> Card:
    return Card.model_validate(code)


def encode_bid(bid: Bid) -> str:
    return bid.code


def decode_bid(token: str, seat: Seat) -> Bid:
    """Turns "1NT" / "4h" / "pass" / "double" / "redouble" into a bid made by ``seat``."""
    text = token.strip()
    lowered = text.lower()
    if lowered in ("pass", "p"):
        return PassBid(seat=seat)
    if lowered in ("double", "x"):
        return DoubleBid(seat=seat)
    if lowered in ("redouble", "xx"):
        return RedoubleBid(seat=seat)
    match = _BID_RE.match(text.upper())
    if not match:
        raise ValueError(f"Invalid bid token: {token!r}")
    strain_code = "NT" if match.group(2) == "N" else match.group(2)
    return SuitBid(seat=seat, level=int(match.group(1)), strain=CODE_STRAINS[strain_code])


def parse_action(data: Any):
    return _action_adapter.validate_python(data)


def bid_action(bid: Bid) -> Dict[str, Any]:
    return MakeBidAction(bid=encode_bid(bid)).model_dump()


def card_action(card: Card) -> Dict[str, Any]:
    return PlayCardAction(suit=SUIT_CODES[card.suit], rank=RANK_CODES[card.rank]).model_dump()


def envelope(
    kind: str,
    snapshot: Optional[GameSnapshot] = None,
    **fields: Any,
) -> Dict[str, Any]:
    message: Dict[str, Any] = {"type": kind}
    for key, value in fields.items():
        if value is not None:
            message[key] = value
    if snapshot is not None:
        message["snapshot"] = snapshot.model_dump(mode="json", by_alias=True)
    return message


def parse_message(data: Any) -> ServerMessage:
    return ServerMessage.model_validate(data)
