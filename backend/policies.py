"""
Robot policies.

``choose_bid(hand, auction, vulnerability) -> Bid`` and
``solve(snapshot, leader) -> [{"card": ..., "expectedTricks": ...}]`` are the
two collaborators the turn dispatcher calls.  A full SAYC system and a
double-dummy solver live outside this service; ``simple_choose_bid`` is a
small opener/raiser that keeps robot tables from passing every deal out.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from models import SEATS, Bid, Card, GameSnapshot, PassBid, Seat, Suit, SuitBid, Vulnerability
from positions import are_partners, next_seat
from rules import is_legal_bid

ChooseBid = Callable[[Sequence[Card], Sequence[Bid], Vulnerability], Bid]
SolveResult = List[Dict[str, Any]]
Solve = Callable[[GameSnapshot, Seat], Union[SolveResult, Awaitable[SolveResult]]]

HCP: Dict[int, int] = {14: 4, 13: 3, 12: 2, 11: 1}


def high_card_points(hand: Sequence[Card]) -> int:
    return sum(HCP.get(card.rank, 0) for card in hand)


def suit_lengths(hand: Sequence[Card]) -> Dict[Suit, int]:
    lengths: Dict[Suit, int] = {"♠": 0, "♥": 0, "♦": 0, "♣": 0}
    for card in hand:
        lengths[card.suit] += 1
    return lengths


def is_balanced(hand: Sequence[Card]) -> bool:
    # 4-3-3-3, 4-4-3-2, 5-3-3-2
    return sorted(suit_lengths(hand).values()) in ([3, 3, 3, 4], [2, 3, 4, 4], [2, 3, 3, 5])


def _bidder(auction: Sequence[Bid]) -> Seat:
    # the dispatcher re-tags the bid with the robot's seat; this is only a best guess
    return next_seat(auction[-1].seat) if auction else SEATS[0]


def _opening(hand: Sequence[Card], seat: Seat) -> Optional[Bid]:
    points = high_card_points(hand)
    lengths = suit_lengths(hand)
    if points >= 22:
        return SuitBid(seat=seat, level=2, strain="♣")
    if 20 <= points <= 21 and is_balanced(hand):
        return SuitBid(seat=seat, level=2, strain="NT")
    if 15 <= points <= 17 and is_balanced(hand):
        return SuitBid(seat=seat, level=1, strain="NT")
    if points >= 12:
        if lengths["♠"] >= 5 and lengths["♠"] >= lengths["♥"]:
            return SuitBid(seat=seat, level=1, strain="♠")
        if lengths["♥"] >= 5:
            return SuitBid(seat=seat, level=1, strain="♥")
        if lengths["♦"] >= 4 and lengths["♦"] >= lengths["♣"]:
            return SuitBid(seat=seat, level=1, strain="♦")
        return SuitBid(seat=seat, level=1, strain="♣")
    return None


def _raise(hand: Sequence[Card], seat: Seat, partner_bid: SuitBid) -> Optional[Bid]:
    points = high_card_points(hand)
    if partner_bid.strain == "NT":
        if partner_bid.level == 1 and points >= 10:
            return SuitBid(seat=seat, level=3, strain="NT")
        return None
    support = suit_lengths(hand)[partner_bid.strain]
    needed = 3 if partner_bid.strain in ("♠", "♥") else 4
    if points >= 6 and support >= needed:
        level = partner_bid.level + (2 if points >= 13 else 1)
        return SuitBid(seat=seat, level=min(level, 7), strain=partner_bid.strain)
    if points >= 6 and partner_bid.level == 1:
        return SuitBid(seat=seat, level=1, strain="NT")
    return None


def simple_choose_bid(hand: Sequence[Card], auction: Sequence[Bid], vulnerability: Vulnerability) -> Bid:
    """Never raises; answers Pass when no rule matches."""
    seat = _bidder(auction)
    suit_bids = [bid for bid in auction if isinstance(bid, SuitBid)]
    candidate: Optional[Bid] = None
    if not suit_bids:
        candidate = _opening(hand, seat)
    else:
        last = suit_bids[-1]
        mine = [bid for bid in suit_bids if bid.seat == seat]
        if are_partners(last.seat, seat) and not mine:
            candidate = _raise(hand, seat, last)
    if candidate is not None and is_legal_bid(candidate, auction):
        return candidate
    return PassBid(seat=seat)
