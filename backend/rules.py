from __future__ import annotations

import random
from typing import Dict, Iterable, List, Optional, Sequence

from models import (
    RANKS,
    SEATS,
    STRAINS,
    SUITS,
    Bid,
    Card,
    Contract,
    DoubleBid,
    PassBid,
    RedoubleBid,
    Seat,
    Strain,
    Suit,
    SuitBid,
    Trick,
)
from positions import is_opponent, next_seat

HAND_SIZE = 13
TRICKS_PER_DEAL = 13

# hand display order: clubs, diamonds, hearts, spades
SUIT_SORT_ORDER: Dict[Suit, int] = {"♣": 0, "♦": 1, "♥": 2, "♠": 3}


# ------------------------------------------------------------------
# Deck
# ------------------------------------------------------------------
def make_deck() -> List[Card]:
    return [Card(suit=suit, rank=rank) for suit in SUITS for rank in reversed(RANKS)]


def shuffle_deck(deck: Sequence[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """Fisher-Yates on a copy of ``deck``."""
    rng = rng or random.SystemRandom()
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randrange(i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def deal(deck: Sequence[Card], first: Seat = "North") -> Dict[Seat, List[Card]]:
    hands: Dict[Seat, List[Card]] = {seat: [] for seat in SEATS}
    seat = first
    for card in deck:
        hands[seat].append(card)
        seat = next_seat(seat)
    return hands


def sort_hand(hand: Iterable[Card]) -> List[Card]:
    return sorted(hand, key=lambda c: (SUIT_SORT_ORDER[c.suit], -c.rank))


def sort_hand_for_dummy(hand: Iterable[Card]) -> List[Card]:
    # dummy is laid out low to high within each suit
    return sorted(hand, key=lambda c: (SUIT_SORT_ORDER[c.suit], c.rank))


# ------------------------------------------------------------------
# Auction
# ------------------------------------------------------------------
def _last_suit_bid(auction: Sequence[Bid]) -> Optional[SuitBid]:
    for bid in reversed(auction):
        if isinstance(bid, SuitBid):
            return bid
    return None


def is_legal_bid(candidate: Bid, auction: Sequence[Bid]) -> bool:
    if isinstance(candidate, PassBid):
        return True
    if isinstance(candidate, DoubleBid):
        if not auction:
            return False
        last = auction[-1]
        return isinstance(last, SuitBid) and is_opponent(last.seat, candidate.seat)
    if isinstance(candidate, RedoubleBid):
        if not auction:
            return False
        last = auction[-1]
        return isinstance(last, DoubleBid) and is_opponent(last.seat, candidate.seat)
    if isinstance(candidate, SuitBid):
        highest = _last_suit_bid(auction)
        return highest is None or candidate.outranks(highest)
    return False


def legal_bids(seat: Seat, auction: Sequence[Bid]) -> List[Bid]:
    """Every call ``seat`` may make now: pass, double/redouble, then suit bids ascending."""
    res: List[Bid] = [PassBid(seat=seat)]
    for candidate in (DoubleBid(seat=seat), RedoubleBid(seat=seat)):
        if is_legal_bid(candidate, auction):
            res.append(candidate)
    highest = _last_suit_bid(auction)
    for level in range(1, 8):
        for strain in STRAINS:
            bid = SuitBid(seat=seat, level=level, strain=strain)
            if highest is None or bid.outranks(highest):
                res.append(bid)
    return res


def is_auction_complete(auction: Sequence[Bid]) -> bool:
    if len(auction) < 4:
        return False
    trailing_passes = 0
    for bid in reversed(auction):
        if not isinstance(bid, PassBid):
            break
        trailing_passes += 1
    return trailing_passes >= 3


def resolve_contract(auction: Sequence[Bid]) -> Optional[Contract]:
    """
    Final contract of a closed auction, or None for a passed-out deal.

    Declarer is the seat of the last (therefore highest) suit bid. Only a
    Double/Redouble made after that bid counts; the most recent one wins.
    """
    final_idx: Optional[int] = None
    for idx in range(len(auction) - 1, -1, -1):
        if isinstance(auction[idx], SuitBid):
            final_idx = idx
            break
    if final_idx is None:
        return None
    final: SuitBid = auction[final_idx]  # type: ignore[assignment]
    doubled = False
    redoubled = False
    for bid in reversed(auction[final_idx + 1:]):
        if isinstance(bid, RedoubleBid):
            redoubled = True
            break
        if isinstance(bid, DoubleBid):
            doubled = True
            break
    return Contract(
        level=final.level,
        strain=final.strain,
        declarer=final.seat,
        doubled=doubled,
        redoubled=redoubled,
    )


# ------------------------------------------------------------------
# Play
# ------------------------------------------------------------------
def is_legal_play(card: Card, hand: Sequence[Card], led_suit: Optional[Suit]) -> bool:
    if led_suit is None:
        return True
    if any(c.suit == led_suit for c in hand):
        return card.suit == led_suit
    return True


def legal_cards(hand: Sequence[Card], led_suit: Optional[Suit]) -> List[Card]:
    return [card for card in hand if is_legal_play(card, hand, led_suit)]


def _beats(card: Card, best: Card, led_suit: Suit, trump: Optional[Suit]) -> bool:
    if trump is not None and card.suit == trump:
        return best.suit != trump or card.value > best.value
    if trump is not None and best.suit == trump:
        return False
    return card.suit == led_suit and (best.suit != led_suit or card.value > best.value)


def resolve_trick_winner(trick: Trick, trump: Strain) -> Seat:
    plays = trick.plays()
    if len(plays) != 4:
        raise ValueError("Trick is not complete")
    trump_suit: Optional[Suit] = None if trump == "NT" else trump
    led_suit = trick.led_suit or plays[0][1].suit
    winner, best = plays[0]
    for seat, card in plays[1:]:
        if _beats(card, best, led_suit, trump_suit):
            winner, best = seat, card
    return winner
