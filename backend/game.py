from __future__ import annotations

import logging
import random
from typing import Dict, List, Literal, Mapping, Optional, Sequence

from errors import IllegalAction, OutOfTurn
from models import (
    SEATS,
    Bid,
    Card,
    Contract,
    GameSnapshot,
    Phase,
    Player,
    Seat,
    Side,
    Trick,
    Vulnerability,
)
from positions import next_seat, partnership
from rules import (
    HAND_SIZE,
    TRICKS_PER_DEAL,
    deal,
    is_auction_complete,
    is_legal_bid,
    is_legal_play,
    make_deck,
    resolve_contract,
    resolve_trick_winner,
    shuffle_deck,
    sort_hand,
)

logger = logging.getLogger(__name__)

BidOutcome = Literal["bid", "contract", "passed_out"]
PlayOutcome = Literal["played", "trick", "completed"]


class Table:
    """Authoritative state of one bridge table: seats, the deal, the auction and the play."""

    def __init__(
        self,
        room_id: str,
        room_name: str,
        *,
        dealer: Seat = "North",
        vulnerability: Optional[Vulnerability] = None,
        rng: Optional[random.Random] = None,
    ):
        self.id = room_id
        self.name = room_name
        self.players: Dict[Seat, Player] = {}
        self.started = False
        self.rng = rng

        self.version: int = 0
        self.deal_number: int = 0
        self.phase: Phase = "setup"
        self.dealer: Seat = dealer
        self.vulnerability = vulnerability or Vulnerability()

        self.hands: Dict[Seat, List[Card]] = {seat: [] for seat in SEATS}
        self.auction: List[Bid] = []
        self.contract: Optional[Contract] = None
        self.current_trick: Optional[Trick] = None
        self.tricks: List[Trick] = []
        self.first_card_played = False
        self.current_player: Optional[Seat] = None
        self.tricks_won: Dict[Side, int] = {"NS": 0, "EW": 0}

    # ------------------------------------------------------------------
    # Seating
    # ------------------------------------------------------------------
    def add_player(self, p: Player, seat: Optional[Seat] = None) -> Seat:
        for taken, existing in self.players.items():
            if existing.id == p.id:
                return taken
        if self.started:
            raise ValueError("Game already started")
        if seat is None:
            seat = next((s for s in SEATS if s not in self.players), None)
            if seat is None:
                raise ValueError("Room full")
        elif seat in self.players:
            raise ValueError("Seat taken")
        p.seat = seat
        self.players[seat] = p
        self._touch()
        return seat

    def add_robot(self, name: str = "Robot", seat: Optional[Seat] = None) -> Seat:
        if seat is None:
            seat = next((s for s in SEATS if s not in self.players), None)
            if seat is None:
                raise ValueError("Room full")
        return self.add_player(Player(id=f"robot-{self.id}-{seat}", name=name, robot=True), seat)

    def remove_player(self, player_id: str):
        for seat, player in list(self.players.items()):
            if player.id == player_id:
                del self.players[seat]
                self._touch()

    def seat_of(self, player_id: Optional[str]) -> Optional[Seat]:
        for seat, player in self.players.items():
            if player.id == player_id:
                return seat
        return None

    @property
    def robots(self) -> List[Seat]:
        return [seat for seat in SEATS if seat in self.players and self.players[seat].robot]

    # ------------------------------------------------------------------
    # Deal lifecycle
    # ------------------------------------------------------------------
    def start(self, hands: Optional[Mapping[Seat, Sequence[Card]]] = None):
        if self.started:
            return
        if len(self.players) < 4:
            raise ValueError("Not enough players")
        self.started = True
        self._new_deal(hands)

    def new_game(self, hands: Optional[Mapping[Seat, Sequence[Card]]] = None):
        if not self.started:
            raise ValueError("Game not started")
        if self.phase != "completed":
            raise ValueError("Deal still in progress")
        self.dealer = next_seat(self.dealer)
        self._new_deal(hands)

    def deal_hands(self, hands: Mapping[Seat, Sequence[Card]]):
        """Replace the current deal with a fixed one and restart the auction."""
        if not self.started:
            raise ValueError("Game not started")
        self._new_deal(hands)

    def _new_deal(self, hands: Optional[Mapping[Seat, Sequence[Card]]] = None):
        self.deal_number += 1
        self.phase = "setup"
        self.auction = []
        self.contract = None
        self.current_trick = None
        self.tricks = []
        self.first_card_played = False
        self.tricks_won = {"NS": 0, "EW": 0}

        if hands is None:
            hands = deal(shuffle_deck(make_deck(), self.rng))
        self._check_deal(hands)
        self.hands = {seat: sort_hand(hands[seat]) for seat in SEATS}

        self.phase = "bidding"
        self.current_player = next_seat(self.dealer)
        logger.info(
            "Table %s: deal %s, dealer %s, vulnerable %s, %s to bid",
            self.id,
            self.deal_number,
            self.dealer,
            self.vulnerability.label,
            self.current_player,
        )
        self._touch()

    @staticmethod
    def _check_deal(hands: Mapping[Seat, Sequence[Card]]):
        if set(hands.keys()) != set(SEATS):
            raise ValueError("A deal needs all four seats")
        cards = [card for seat in SEATS for card in hands[seat]]
        if any(len(hands[seat]) != HAND_SIZE for seat in SEATS) or len(set(cards)) != 52:
            raise ValueError("A deal needs 52 distinct cards, 13 per seat")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _touch(self):
        self.version += 1

    def _require_phase(self, phase: Phase):
        if not self.started or self.phase != phase:
            raise IllegalAction(f"Not in {phase} phase")

    @property
    def dummy(self) -> Optional[Seat]:
        return self.contract.dummy if self.contract else None

    def controller_of(self, seat: Seat) -> Seat:
        """Seat whose connection plays ``seat``'s cards: declarer plays for dummy."""
        if self.contract and self.phase == "playing" and seat == self.contract.dummy:
            return self.contract.declarer
        return seat

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def make_bid(self, seat: Seat, bid: Bid) -> BidOutcome:
        self._require_phase("bidding")
        if seat != self.current_player:
            raise OutOfTurn(f"{seat} is not on turn")
        if bid.seat != seat:
            raise IllegalAction("Bid made for another seat")
        if not is_legal_bid(bid, self.auction):
            raise IllegalAction(f"Illegal bid {bid.code}")

        self.auction.append(bid)
        if not is_auction_complete(self.auction):
            self.current_player = next_seat(seat)
            self._touch()
            return "bid"

        contract = resolve_contract(self.auction)
        if contract is None:
            logger.info("Table %s: deal %s passed out", self.id, self.deal_number)
            self.dealer = next_seat(self.dealer)
            self._new_deal()
            return "passed_out"

        self.contract = contract
        self.phase = "playing"
        self.current_player = next_seat(contract.declarer)
        self.current_trick = Trick(leader=self.current_player)
        logger.info("Table %s: contract %s by %s", self.id, contract.code, contract.declarer)
        self._touch()
        return "contract"

    def play_card(self, seat: Seat, card: Card) -> PlayOutcome:
        self._require_phase("playing")
        on_turn = self.current_player
        if on_turn is None or self.current_trick is None or self.contract is None:
            raise IllegalAction("Nobody is on play")
        if seat != self.controller_of(on_turn):
            raise OutOfTurn(f"{seat} may not play for {on_turn}")

        hand = self.hands[on_turn]
        if card not in hand:
            raise IllegalAction("Card not in hand")
        trick = self.current_trick
        if not is_legal_play(card, hand, trick.led_suit):
            raise IllegalAction("Must follow suit")

        hand.remove(card)
        if trick.led_suit is None:
            trick.led_suit = card.suit
        trick.cards[on_turn] = card
        self.first_card_played = True

        if not trick.is_complete():
            self.current_player = next_seat(on_turn)
            self._touch()
            return "played"

        trick.winner = resolve_trick_winner(trick, self.contract.strain)
        self.tricks.append(trick)
        self.tricks_won[partnership(trick.winner)] += 1
        if len(self.tricks) == TRICKS_PER_DEAL:
            self.phase = "completed"
            self.current_player = None
            self.current_trick = None
            logger.info(
                "Table %s: deal %s completed, tricks NS=%s EW=%s",
                self.id,
                self.deal_number,
                self.tricks_won["NS"],
                self.tricks_won["EW"],
            )
            self._touch()
            return "completed"
        self.current_player = trick.winner
        self.current_trick = Trick(leader=trick.winner)
        self._touch()
        return "trick"

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def visible_seats(self, viewer: Optional[Seat]) -> List[Seat]:
        seats: List[Seat] = []
        if viewer is not None:
            seats.append(viewer)
        dummy = self.dummy
        if dummy and dummy != viewer and self.phase == "playing" and self.first_card_played:
            seats.append(dummy)
        return seats

    def snapshot(self, hand_seats: Optional[Sequence[Seat]] = None) -> GameSnapshot:
        """Full authoritative snapshot; ``hand_seats`` limits which hands are included."""
        shown = SEATS if hand_seats is None else hand_seats
        return GameSnapshot(
            room_id=self.id,
            version=self.version,
            deal_number=self.deal_number,
            phase=self.phase,
            dealer=self.dealer,
            auction=list(self.auction),
            hands={seat: list(self.hands[seat]) for seat in shown},
            hand_counts={seat: len(self.hands[seat]) for seat in SEATS},
            current_trick=self.current_trick.model_copy(deep=True) if self.current_trick else None,
            tricks=[trick.model_copy(deep=True) for trick in self.tricks],
            contract=self.contract,
            dummy=self.dummy,
            first_card_played=self.first_card_played,
            current_player=self.current_player,
            vulnerability=self.vulnerability,
            tricks_won=dict(self.tricks_won),
            players={seat: player.name for seat, player in self.players.items()},
            robots=self.robots,
        )

    def snapshot_for(self, viewer: Optional[Seat]) -> GameSnapshot:
        return self.snapshot(self.visible_seats(viewer))

    def summary(self) -> dict:
        return {
            "room_id": self.id,
            "name": self.name,
            "players": {seat: p.model_dump() for seat, p in self.players.items()},
            "free_seats": [seat for seat in SEATS if seat not in self.players],
            "started": self.started,
            "phase": self.phase,
        }


ROOMS: Dict[str, Table] = {}


def list_rooms_summary():
    return [table.summary() for table in ROOMS.values()]
