from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from app.settings import get_settings
from codec import bid_action, card_action
from errors import OraclePolicyFailure
from models import Bid, Card, DoubleBid, GameSnapshot, LocalView, PassBid, RedoubleBid, Seat, SuitBid
from policies import ChooseBid, Solve, simple_choose_bid
from rules import is_legal_bid

logger = logging.getLogger(__name__)

Submit = Callable[[Dict[str, Any]], Awaitable[Any]]


class AITurnDispatcher:
    """
    Drives one computer-controlled seat.

    ``on_view`` is called once for every confirmed state transition. When the
    seat has to act, the policy runs in a background task and its answer goes
    through ``submit``, the same path a human action takes. ``ai_thinking``
    stays set until a newer view arrives or the watchdog fires. On expiry the
    last view is evaluated again if it still puts this seat on turn.
    """

    def __init__(
        self,
        seat: Seat,
        submit: Submit,
        *,
        choose_bid: ChooseBid = simple_choose_bid,
        solve: Optional[Solve] = None,
        watchdog_sec: Optional[float] = None,
        policy_timeout_sec: Optional[float] = None,
    ):
        settings = get_settings()
        self.seat = seat
        self.submit = submit
        self.choose_bid = choose_bid
        self.solve = solve
        self.watchdog_sec = settings.ai_watchdog_sec if watchdog_sec is None else watchdog_sec
        self.policy_timeout_sec = (
            settings.ai_policy_timeout_sec if policy_timeout_sec is None else policy_timeout_sec
        )

        self.ai_thinking = False
        self._thinking_version: Optional[int] = None
        self._watchdog: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()
        self._last_view: Optional[LocalView] = None
        self._last_snapshot: Optional[GameSnapshot] = None

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def on_view(self, view: LocalView, snapshot: Optional[GameSnapshot] = None) -> Optional[asyncio.Task]:
        if view.viewer != self.seat:
            raise ValueError(f"Dispatcher for {self.seat} got a view for {view.viewer}")
        if self._last_view is None or view.version >= self._last_view.version:
            self._last_view, self._last_snapshot = view, snapshot
        if self.ai_thinking and self._thinking_version is not None and view.version > self._thinking_version:
            self._clear()
        if self.ai_thinking or not view.is_my_turn:
            return None

        self.ai_thinking = True
        self._thinking_version = view.version
        self._arm_watchdog()
        task = asyncio.get_running_loop().create_task(self._take_turn(view, snapshot))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _arm_watchdog(self):
        self._cancel_watchdog()
        loop = asyncio.get_running_loop()
        self._watchdog = loop.call_later(self.watchdog_sec, self._on_watchdog)

    def _cancel_watchdog(self):
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    def _on_watchdog(self):
        self._watchdog = None
        if self.ai_thinking:
            logger.warning(
                "Robot %s saw no update within %.1fs of v%s, clearing thinking flag",
                self.seat,
                self.watchdog_sec,
                self._thinking_version,
            )
            self.ai_thinking = False
            self._thinking_version = None
            # the last known view still expects us to act: try again
            if self._last_view is not None and self._last_view.is_my_turn:
                self.on_view(self._last_view, self._last_snapshot)

    def _clear(self):
        self._cancel_watchdog()
        self.ai_thinking = False
        self._thinking_version = None

    async def close(self):
        self._clear()
        self._last_view = None
        self._last_snapshot = None
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------
    async def _take_turn(self, view: LocalView, snapshot: Optional[GameSnapshot]):
        if view.phase == "bidding":
            bid = await self.pick_bid(view)
            logger.info("Robot %s bids %s", self.seat, bid.code)
            action = bid_action(bid)
        else:
            card = await self.pick_card(view, snapshot)
            if card is None:
                logger.error("Robot %s has no playable card in v%s", self.seat, view.version)
                self._clear()
                return
            logger.info("Robot %s plays %s for %s", self.seat, card.code, view.controlled_seat)
            action = card_action(card)
        try:
            await self.submit(action)
        except (ConnectionError, ValueError) as exc:
            # flag stays set; the watchdog retries from the last view
            logger.warning("Robot %s could not submit %s: %s", self.seat, action, exc)

    async def _call_policy(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            if inspect.iscoroutinefunction(fn):
                pending = fn(*args)
            else:
                pending = asyncio.to_thread(fn, *args)
            result = await asyncio.wait_for(pending, timeout=self.policy_timeout_sec)
            if inspect.isawaitable(result):
                result = await asyncio.wait_for(result, timeout=self.policy_timeout_sec)
        except asyncio.TimeoutError as exc:
            raise OraclePolicyFailure(f"{getattr(fn, '__name__', fn)} timed out") from exc
        except Exception as exc:
            raise OraclePolicyFailure(f"{getattr(fn, '__name__', fn)} failed: {exc}") from exc
        return result

    async def pick_bid(self, view: LocalView) -> Bid:
        try:
            proposed = await self._call_policy(
                self.choose_bid, list(view.hand), list(view.auction), view.vulnerability
            )
            if not isinstance(proposed, (PassBid, DoubleBid, RedoubleBid, SuitBid)):
                raise OraclePolicyFailure(f"policy returned {proposed!r}")
            bid = proposed.model_copy(update={"seat": self.seat})
            if not is_legal_bid(bid, view.auction):
                raise OraclePolicyFailure(f"policy proposed illegal bid {bid.code}")
        except OraclePolicyFailure as exc:
            logger.warning("Robot %s bidding policy failed, passing: %s", self.seat, exc)
            return PassBid(seat=self.seat)
        return bid

    async def pick_card(self, view: LocalView, snapshot: Optional[GameSnapshot]) -> Optional[Card]:
        playable = list(view.playable_cards)
        if not playable:
            return None
        fallback = playable[0]
        if self.solve is None or snapshot is None:
            return fallback
        leader = view.current_trick.leader if view.current_trick else view.controlled_seat
        try:
            ranked = await self._call_policy(self.solve, snapshot, leader)
            best: Optional[Card] = None
            best_score = float("-inf")
            for entry in ranked or []:
                card = Card.model_validate(entry["card"])
                score = float(entry.get("expectedTricks", entry.get("score", 0)))
                if card in playable and score > best_score:
                    best, best_score = card, score
        except (OraclePolicyFailure, KeyError, TypeError, ValueError) as exc:
            logger.warning("Robot %s solver failed, playing first legal card: %s", self.seat, exc)
            return fallback
        return best or fallback
