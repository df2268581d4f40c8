"""
Table client: one seat's connection to the server.

Everything the client knows comes from server broadcasts, applied through
``LocalStore``. Actions are checked locally against the current view and
then sent without touching local state; the next broadcast confirms them.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from app.settings import Settings, get_settings
from codec import bid_action, card_action, decode_bid, decode_card
from dispatcher import AITurnDispatcher
from errors import ChannelDisconnect, IllegalAction, OutOfTurn
from models import Bid, Card, LocalView, Seat
from policies import ChooseBid, Solve, simple_choose_bid
from reconcile import LocalStore
from rules import is_legal_bid

logger = logging.getLogger(__name__)


class Channel(Protocol):
    async def send_json(self, data: Dict[str, Any]) -> None: ...

    async def receive_json(self) -> Any: ...

    async def close(self) -> None: ...


Connect = Callable[[str], Awaitable[Channel]]


class WebSocketChannel:
    """JSON frames over a ``websockets`` client connection."""

    def __init__(self, ws):
        self.ws = ws

    @classmethod
    async def open(cls, url: str) -> "WebSocketChannel":
        return cls(await websockets.connect(url))

    async def send_json(self, data: Dict[str, Any]) -> None:
        try:
            await self.ws.send(json.dumps(data))
        except ConnectionClosed as exc:
            raise ChannelDisconnect(f"send failed: {exc}") from exc

    async def receive_json(self) -> Any:
        try:
            raw = await self.ws.recv()
        except ConnectionClosed as exc:
            raise ChannelDisconnect(f"connection closed: {exc}") from exc
        return json.loads(raw)

    async def close(self) -> None:
        await self.ws.close()


class TableClient:
    def __init__(
        self,
        room_id: str,
        player_id: str,
        seat: Seat,
        *,
        url: Optional[str] = None,
        connect: Optional[Connect] = None,
        settings: Optional[Settings] = None,
        dispatcher: Optional[AITurnDispatcher] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.room_id = room_id
        self.player_id = player_id
        self.seat = seat
        self.url = url or f"{self.settings.ws_endpoint.rstrip('/')}/{room_id}?player_id={player_id}"
        self.store = LocalStore(seat)
        self.dispatcher = dispatcher
        self.channel: Optional[Channel] = None
        self._connect: Connect = connect or WebSocketChannel.open
        self._sleep = sleep
        self._closed = False

    @property
    def view(self) -> Optional[LocalView]:
        return self.store.view

    def attach_robot(self, choose_bid: ChooseBid = simple_choose_bid, solve: Optional[Solve] = None) -> AITurnDispatcher:
        """Let a policy play this seat; it submits through ``send`` like a human would."""
        self.dispatcher = AITurnDispatcher(
            self.seat,
            self.send,
            choose_bid=choose_bid,
            solve=solve,
            watchdog_sec=self.settings.ai_watchdog_sec,
            policy_timeout_sec=self.settings.ai_policy_timeout_sec,
        )
        return self.dispatcher

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    async def connect(self) -> Channel:
        attempts = max(1, self.settings.reconnect_attempts)
        last_exc: Optional[BaseException] = None
        for attempt in range(1, attempts + 1):
            try:
                self.channel = await self._connect(self.url)
            except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
                last_exc = exc
                if attempt == attempts:
                    break
                delay = self.settings.backoff_delay(attempt)
                logger.warning(
                    "Connect to %s failed (%s/%s): %s, retrying in %.1fs",
                    self.url,
                    attempt,
                    attempts,
                    exc,
                    delay,
                )
                await self._sleep(delay)
            else:
                logger.info("Seat %s connected to %s", self.seat, self.url)
                return self.channel
        self.channel = None
        raise ChannelDisconnect(f"could not reach {self.url} after {attempts} attempts") from last_exc

    async def run(self):
        """Receive loop; returns after ``close`` and raises once reconnecting gives up."""
        if self.channel is None:
            await self.connect()
        while not self._closed:
            try:
                data = await self.channel.receive_json()
            except ChannelDisconnect as exc:
                if self._closed:
                    return
                logger.warning("Seat %s lost connection: %s", self.seat, exc)
                self.channel = None
                await self.connect()
                continue
            except ValueError as exc:
                logger.warning("Ignoring undecodable frame: %s", exc)
                continue
            self.handle(data)

    def handle(self, data: Any) -> Optional[LocalView]:
        view = self.store.apply(data)
        if view is not None and self.dispatcher is not None:
            self.dispatcher.on_view(view, self.store.snapshot)
        return view

    async def send(self, action: Dict[str, Any]):
        if self.channel is None:
            raise ChannelDisconnect("not connected")
        await self.channel.send_json(action)

    async def close(self):
        self._closed = True
        if self.dispatcher is not None:
            await self.dispatcher.close()
        if self.channel is not None:
            await self.channel.close()
            self.channel = None

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def _check_bid(self, bid: Bid):
        view = self.store.view
        if view is None or view.phase != "bidding" or not view.is_my_turn:
            raise OutOfTurn(f"{self.seat} is not on turn to bid")
        if not is_legal_bid(bid, view.auction):
            raise IllegalAction(f"Illegal bid {bid.code}")

    def _check_card(self, card: Card):
        view = self.store.view
        if view is None or view.phase != "playing" or not view.is_my_turn:
            raise OutOfTurn(f"{self.seat} is not on play")
        if card not in view.playable_cards:
            raise IllegalAction(f"{card.code} is not playable")

    async def make_bid(self, bid: Union[Bid, str]) -> bool:
        """Sends the bid when it passes the local check; False when it was dropped."""
        try:
            if isinstance(bid, str):
                bid = decode_bid(bid, self.seat)
            self._check_bid(bid)
        except ValueError as exc:
            logger.debug("Bid rejected locally: %s", exc)
            return False
        await self.send(bid_action(bid))
        return True

    async def play_card(self, card: Union[Card, str]) -> bool:
        try:
            if isinstance(card, str):
                card = decode_card(card)
            self._check_card(card)
        except ValueError as exc:
            logger.debug("Card rejected locally: %s", exc)
            return False
        await self.send(card_action(card))
        return True

    async def start_room(self):
        await self.send({"action": "startRoom"})

    async def new_game(self):
        await self.send({"action": "newGame"})
