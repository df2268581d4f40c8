from __future__ import annotations
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, Field, ConfigDict, model_serializer, model_validator

Suit = Literal["♠","♥","♦","♣"]
Strain = Literal["♣","♦","♥","♠","NT"]
Seat = Literal["North","East","South","West"]
Side = Literal["NS","EW"]
Phase = Literal["setup","bidding","playing","completed"]

# clockwise table order
SEATS: List[Seat] = ["North", "East", "South", "West"]
SUITS: List[Suit] = ["♠", "♥", "♦", "♣"]
# lowest to highest
STRAINS: List[Strain] = ["♣", "♦", "♥", "♠", "NT"]
RANKS: List[int] = list(range(2, 15))

SUIT_CODES: Dict[Suit, str] = {
    "♠": "S",
    "♥": "H",
    "♦": "D",
    "♣": "C",
}
CODE_SUITS: Dict[str, Suit] = {code: suit for suit, code in SUIT_CODES.items()}

STRAIN_CODES: Dict[Strain, str] = {**SUIT_CODES, "NT": "NT"}
CODE_STRAINS: Dict[str, Strain] = {code: strain for strain, code in STRAIN_CODES.items()}

RANK_CODES: Dict[int, str] = {
    2: "2",
    3: "3",
    4: "4",
    5: "5",
    6: "6",
    7: "7",
    8: "8",
    9: "9",
    10: "T",
    11: "J",
    12: "Q",
    13: "K",
    14: "A",
}
CODE_RANKS: Dict[str, int] = {code: rank for rank, code in RANK_CODES.items()}

RANK_LABELS: Dict[int, str] = {**{rank: str(rank) for rank in range(2, 11)}, 11: "J", 12: "Q", 13: "K", 14: "A"}


def parse_card_code(code: str) -> Dict[str, object]:
    """
    Parses the two-character wire form: rank, then suit.
    "TH" -> ten of hearts; "10H" and a suit symbol ("T♥") are accepted too.
    """
    text = code.strip().upper()
    if text.startswith("10"):
        text = "T" + text[2:]
    if len(text) != 2:
        raise ValueError(f"Invalid card code: {code!r}")
    rank_code, suit_code = text[0], text[1]
    rank = CODE_RANKS.get(rank_code)
    suit = CODE_SUITS.get(suit_code) or (suit_code if suit_code in SUIT_CODES else None)
    if rank is None or suit is None:
        raise ValueError(f"Invalid card code: {code!r}")
    return {"suit": suit, "rank": rank}


def _seat_after(seat: Seat, steps: int) -> Seat:
    return SEATS[(SEATS.index(seat) + steps) % 4]


class Card(BaseModel):
    suit: Suit
    rank: int = Field(ge=2, le=14)  # 2..14 (11=J,12=Q,13=K,14=A)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def from_code(cls, value):
        if isinstance(value, str):
            return parse_card_code(value)
        return value

    @model_serializer
    def to_code(self) -> str:
        return self.code

    @property
    def code(self) -> str:
        return f"{RANK_CODES[self.rank]}{SUIT_CODES[self.suit]}"

    @property
    def value(self) -> int:
        return self.rank

    @property
    def label(self) -> str:
        return f"{RANK_LABELS[self.rank]}{self.suit}"

    def __str__(self) -> str:
        return self.label


# ---------- bids ----------
class PassBid(BaseModel):
    kind: Literal["pass"] = "pass"
    seat: Seat

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def code(self) -> str:
        return "pass"


class DoubleBid(BaseModel):
    kind: Literal["double"] = "double"
    seat: Seat

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def code(self) -> str:
        return "double"


class RedoubleBid(BaseModel):
    kind: Literal["redouble"] = "redouble"
    seat: Seat

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def code(self) -> str:
        return "redouble"


class SuitBid(BaseModel):
    kind: Literal["suit"] = "suit"
    seat: Seat
    level: int = Field(ge=1, le=7)
    strain: Strain

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def code(self) -> str:
        return f"{self.level}{STRAIN_CODES[self.strain]}"

    @property
    def order(self) -> Tuple[int, int]:
        return self.level, STRAINS.index(self.strain)

    def outranks(self, other: "SuitBid") -> bool:
        return self.order > other.order


Bid = Annotated[Union[PassBid, DoubleBid, RedoubleBid, SuitBid], Field(discriminator="kind")]


class Contract(BaseModel):
    level: int = Field(ge=1, le=7)
    strain: Strain
    declarer: Seat
    doubled: bool = False
    redoubled: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def dummy(self) -> Seat:
        return _seat_after(self.declarer, 2)

    @property
    def code(self) -> str:
        suffix = "XX" if self.redoubled else "X" if self.doubled else ""
        return f"{self.level}{STRAIN_CODES[self.strain]}{suffix}"


class Trick(BaseModel):
    leader: Seat
    cards: Dict[Seat, Optional[Card]] = Field(default_factory=lambda: {seat: None for seat in SEATS})
    led_suit: Optional[Suit] = Field(default=None, alias="ledSuit")
    winner: Optional[Seat] = None

    model_config = ConfigDict(populate_by_name=True)

    def order(self) -> List[Seat]:
        return [_seat_after(self.leader, step) for step in range(4)]

    def plays(self) -> List[Tuple[Seat, Card]]:
        """Filled slots in play order, starting from the leader."""
        res: List[Tuple[Seat, Card]] = []
        for seat in self.order():
            card = self.cards.get(seat)
            if card is None:
                break
            res.append((seat, card))
        return res

    def is_complete(self) -> bool:
        return all(self.cards.get(seat) is not None for seat in SEATS)


class Vulnerability(BaseModel):
    ns: bool = Field(False, alias="NS")
    ew: bool = Field(False, alias="EW")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def from_label(cls, value):
        # server-style labels: "None" | "NS" | "EW" | "Both"
        if isinstance(value, str):
            label = value.strip().lower()
            return {"NS": label in ("ns", "both", "all"), "EW": label in ("ew", "both", "all")}
        return value

    @property
    def label(self) -> str:
        if self.ns and self.ew:
            return "Both"
        if self.ns:
            return "NS"
        if self.ew:
            return "EW"
        return "None"


def _empty_tally() -> Dict[Side, int]:
    return {"NS": 0, "EW": 0}


class GameSnapshot(BaseModel):
    room_id: str = Field(alias="roomId")
    version: int = 0
    deal_number: int = Field(0, alias="dealNumber")
    phase: Phase = "setup"
    dealer: Seat = "North"
    auction: List[Bid] = Field(default_factory=list)
    hands: Dict[Seat, List[Card]] = Field(default_factory=dict)
    hand_counts: Dict[Seat, int] = Field(default_factory=dict, alias="handCounts")
    current_trick: Optional[Trick] = Field(default=None, alias="currentTrick")
    tricks: List[Trick] = Field(default_factory=list)
    contract: Optional[Contract] = None
    dummy: Optional[Seat] = None
    first_card_played: bool = Field(False, alias="firstCardPlayed")
    current_player: Optional[Seat] = Field(default=None, alias="currentPlayer")
    vulnerability: Vulnerability = Field(default_factory=Vulnerability)
    tricks_won: Dict[Side, int] = Field(default_factory=_empty_tally, alias="tricksWon")
    players: Dict[Seat, str] = Field(default_factory=dict)
    robots: List[Seat] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def led_suit(self) -> Optional[Suit]:
        return self.current_trick.led_suit if self.current_trick else None

    def card_total(self) -> int:
        return sum(self.hand_counts.get(seat, len(self.hands.get(seat, []))) for seat in SEATS)


# ---------- per-viewer projection ----------
class SeatView(BaseModel):
    seat: Seat
    relative: Seat
    player: Optional[str] = None
    card_count: int = Field(0, alias="cardCount")
    # None means face down: only the count is known
    cards: Optional[List[Card]] = None
    is_dummy: bool = Field(False, alias="isDummy")
    is_current: bool = Field(False, alias="isCurrent")
    is_robot: bool = Field(False, alias="isRobot")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class TrickView(BaseModel):
    leader: Seat
    leader_relative: Seat = Field(alias="leaderRelative")
    cards: Dict[Seat, Optional[Card]] = Field(default_factory=dict)  # keyed by relative seat
    led_suit: Optional[Suit] = Field(default=None, alias="ledSuit")
    winner: Optional[Seat] = None
    winner_relative: Optional[Seat] = Field(default=None, alias="winnerRelative")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class LocalView(BaseModel):
    viewer: Seat
    version: int
    deal_number: int = Field(alias="dealNumber")
    phase: Phase
    dealer: Seat
    current_player: Optional[Seat] = Field(default=None, alias="currentPlayer")
    current_player_relative: Optional[Seat] = Field(default=None, alias="currentPlayerRelative")
    is_my_turn: bool = Field(False, alias="isMyTurn")
    # seat whose cards the viewer plays right now (own seat, or dummy for declarer)
    controlled_seat: Optional[Seat] = Field(default=None, alias="controlledSeat")
    auction: List[Bid] = Field(default_factory=list)
    contract: Optional[Contract] = None
    dummy: Optional[Seat] = None
    first_card_played: bool = Field(False, alias="firstCardPlayed")
    vulnerability: Vulnerability = Field(default_factory=Vulnerability)
    hand: List[Card] = Field(default_factory=list)
    dummy_hand: Optional[List[Card]] = Field(default=None, alias="dummyHand")
    seats: Dict[Seat, SeatView] = Field(default_factory=dict)  # keyed by relative seat
    current_trick: Optional[TrickView] = Field(default=None, alias="currentTrick")
    tricks: List[TrickView] = Field(default_factory=list)
    tricks_won: Dict[Side, int] = Field(default_factory=_empty_tally, alias="tricksWon")
    legal_bids: List[Bid] = Field(default_factory=list, alias="legalBids")
    playable_cards: List[Card] = Field(default_factory=list, alias="playableCards")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


# ---------- lobby / REST ----------
class Player(BaseModel):
    id: str
    name: str
    seat: Optional[Seat] = None
    robot: bool = False


class CreateGameRequest(BaseModel):
    room_name: str
    vulnerability: Optional[Vulnerability] = None
    dealer: Optional[Seat] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JoinGameRequest(BaseModel):
    room_id: str
    seat: Optional[Seat] = None


class RobotRequest(BaseModel):
    room_id: str
    seat: Optional[Seat] = None
    name: str = "Robot"


# ---------- client actions (seat-less, seat comes from the connection) ----------
class MakeBidAction(BaseModel):
    action: Literal["makeBid"] = "makeBid"
    bid: str  # "1NT" | "pass" | "double" | "redouble"


class PlayCardAction(BaseModel):
    action: Literal["playCard"] = "playCard"
    suit: str  # C/D/H/S
    rank: str  # 2..9, T, J, Q, K, A

    @property
    def card(self) -> Card:
        return Card.model_validate(f"{self.rank}{self.suit}")


class StartRoomAction(BaseModel):
    action: Literal["startRoom"] = "startRoom"


class NewGameAction(BaseModel):
    action: Literal["newGame"] = "newGame"


ClientAction = Annotated[
    Union[MakeBidAction, PlayCardAction, StartRoomAction, NewGameAction],
    Field(discriminator="action"),
]


class ServerMessage(BaseModel):
    type: Literal["roomUpdated", "gameStarted", "bidMade", "cardPlayed", "gameCompleted", "error"]
    snapshot: Optional[GameSnapshot] = None
    seat: Optional[Seat] = None
    bid: Optional[str] = None
    card: Optional[Card] = None
    next_turn: Optional[Seat] = Field(default=None, alias="nextTurn")
    room: Optional[dict] = None
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
