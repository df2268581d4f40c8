from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple, Union

from fastapi import (
    FastAPI,
    WebSocket,
    WebSocketDisconnect,
    Header,
    Query,
    HTTPException,
)
from fastapi.middleware.cors import CORSMiddleware

from app.settings import settings
from codec import decode_bid, encode_bid, encode_card, envelope, parse_action
from dispatcher import AITurnDispatcher
from game import ROOMS, Table, list_rooms_summary
from models import (
    CreateGameRequest,
    JoinGameRequest,
    MakeBidAction,
    NewGameAction,
    PlayCardAction,
    Player,
    RobotRequest,
    Seat,
    StartRoomAction,
)
from reconcile import project

logger = logging.getLogger(__name__)

app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

logger.info("CORS allow_origins: %s", settings.allowed_origins())


def _get_room_or_404(room_id: str) -> Table:
    room = ROOMS.get(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="room_not_found")
    return room


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


# ---------- REST ----------
@app.get("/api/rooms")
async def rooms():
    return list_rooms_summary()


@app.post("/api/game/create")
async def create_game(
    req: CreateGameRequest,
    x_user_id: str = Header(...),
    x_user_name: str = Header("Player"),
):
    room_id = str(uuid.uuid4())[:8]
    r = Table(room_id, req.room_name, dealer=req.dealer or "North", vulnerability=req.vulnerability)
    ROOMS[room_id] = r
    seat = r.add_player(Player(id=x_user_id, name=x_user_name))
    logger.info("Room %s created by %s, seated %s", room_id, x_user_id, seat)
    return {"room_id": room_id, "seat": seat}


@app.post("/api/game/join")
async def join_game(
    req: JoinGameRequest,
    x_user_id: str = Header(...),
    x_user_name: str = Header("Player"),
):
    r = _get_room_or_404(req.room_id)
    try:
        seat = r.add_player(Player(id=x_user_id, name=x_user_name), req.seat)
    except ValueError as exc:
        raise _bad_request(exc)
    await hub.broadcast(req.room_id, "roomUpdated", room=r.summary())
    return {"ok": True, "seat": seat}


@app.post("/api/game/robot")
async def add_robot(req: RobotRequest):
    r = _get_room_or_404(req.room_id)
    try:
        seat = r.add_robot(req.name, req.seat)
    except ValueError as exc:
        raise _bad_request(exc)
    await hub.broadcast(req.room_id, "roomUpdated", room=r.summary())
    return {"ok": True, "seat": seat}


@app.post("/api/game/start/{room_id}")
async def start_game(room_id: str):
    room = _get_room_or_404(room_id)
    try:
        room.start()
    except ValueError as exc:
        raise _bad_request(exc)
    await hub.broadcast(room_id, "gameStarted")
    return {"ok": True}


@app.post("/api/game/new/{room_id}")
async def new_game(room_id: str):
    room = _get_room_or_404(room_id)
    try:
        room.new_game()
    except ValueError as exc:
        raise _bad_request(exc)
    await hub.broadcast(room_id, "gameStarted")
    return {"ok": True}


@app.get("/api/game/state/{room_id}")
async def game_state(room_id: str, x_user_id: Optional[str] = Header(None)):
    r = _get_room_or_404(room_id)
    return r.snapshot_for(r.seat_of(x_user_id)).model_dump(mode="json", by_alias=True)


# ---------- WebSockets hub ----------
class Hub:
    def __init__(self):
        self.rooms: Dict[str, List[WebSocket]] = {}
        self.ws_player: Dict[WebSocket, str] = {}
        self.ws_room: Dict[WebSocket, str] = {}
        self.robots: Dict[Tuple[str, Seat], AITurnDispatcher] = {}

    async def connect_room(self, room_id: str, player_id: str, ws: WebSocket):
        await ws.accept()
        self.rooms.setdefault(room_id, []).append(ws)
        self.ws_player[ws] = player_id
        self.ws_room[ws] = room_id

    async def disconnect(self, ws: WebSocket):
        pid = self.ws_player.pop(ws, None)
        rid = self.ws_room.pop(ws, None)
        if rid and ws in self.rooms.get(rid, []):
            self.rooms[rid].remove(ws)
        room = ROOMS.get(rid) if rid else None
        if room is None or pid is None:
            return
        # a seat stays taken once the deal is running so the player can reconnect
        if not room.started:
            room.remove_player(pid)
        if not any(not p.robot for p in room.players.values()):
            ROOMS.pop(rid, None)
            self.rooms.pop(rid, None)
            await self.drop_robots(rid)
            logger.info("Room %s closed, no players left", rid)
            return
        await self.broadcast(rid, "roomUpdated", room=room.summary())

    async def broadcast(self, room_id: str, kind: str, **fields: Any):
        """Sends ``kind`` to every connection with that connection's own snapshot."""
        room = ROOMS.get(room_id)
        if not room:
            return
        for ws in list(self.rooms.get(room_id, [])):
            seat = room.seat_of(self.ws_player.get(ws))
            try:
                await ws.send_json(envelope(kind, room.snapshot_for(seat), **fields))
            except RuntimeError:
                pass
        self.notify_robots(room)

    def robot_for(self, room_id: str, seat: Seat) -> AITurnDispatcher:
        key = (room_id, seat)
        dispatcher = self.robots.get(key)
        if dispatcher is None:
            dispatcher = AITurnDispatcher(seat, _robot_submit(room_id, seat))
            self.robots[key] = dispatcher
        return dispatcher

    def notify_robots(self, room: Table):
        if not room.started:
            return
        for seat in room.robots:
            snapshot = room.snapshot_for(seat)
            self.robot_for(room.id, seat).on_view(project(snapshot, seat), snapshot)

    async def drop_robots(self, room_id: str):
        for key in [key for key in self.robots if key[0] == room_id]:
            await self.robots.pop(key).close()


hub = Hub()


# ---------- actions ----------
Action = Union[MakeBidAction, PlayCardAction, StartRoomAction, NewGameAction]


async def handle_action(room_id: str, seat: Seat, action: Union[Action, Dict[str, Any]]):
    """Applies one seat's action and broadcasts the result. Raises ValueError when rejected."""
    room = ROOMS.get(room_id)
    if room is None:
        raise ValueError("Room not found")
    if isinstance(action, dict):
        action = parse_action(action)

    if isinstance(action, MakeBidAction):
        bid = decode_bid(action.bid, seat)
        outcome = room.make_bid(seat, bid)
        if outcome == "passed_out":
            await hub.broadcast(room_id, "gameStarted")
        else:
            await hub.broadcast(room_id, "bidMade", seat=seat, bid=encode_bid(bid), nextTurn=room.current_player)
    elif isinstance(action, PlayCardAction):
        card = action.card
        # dummy's cards are played by declarer; the event names the seat the card left
        played_from = room.current_player
        outcome = room.play_card(seat, card)
        await hub.broadcast(room_id, "cardPlayed", seat=played_from, card=encode_card(card), nextTurn=room.current_player)
        if outcome == "completed":
            await hub.broadcast(room_id, "gameCompleted")
    elif isinstance(action, StartRoomAction):
        room.start()
        await hub.broadcast(room_id, "gameStarted")
    elif isinstance(action, NewGameAction):
        room.new_game()
        await hub.broadcast(room_id, "gameStarted")


def _robot_submit(room_id: str, seat: Seat):
    async def submit(action: Dict[str, Any]):
        await handle_action(room_id, seat, action)

    return submit


# ---------- WS endpoints ----------
@app.websocket("/ws/{room_id}")
async def ws_room(ws: WebSocket, room_id: str, player_id: str = Query(...)):
    if room_id not in ROOMS:
        await ws.close(code=1008, reason="room_not_found")
        return

    await hub.connect_room(room_id, player_id, ws)
    try:
        await hub.broadcast(room_id, "roomUpdated", room=ROOMS[room_id].summary())
        while True:
            try:
                data = await ws.receive_json()
            except ValueError as exc:
                logger.debug("Malformed frame from %s in %s: %s", player_id, room_id, exc)
                await ws.send_json(envelope("error", error="Malformed message"))
                continue
            room = ROOMS.get(room_id)
            if room is None:
                await ws.close(code=1011, reason="room_not_found")
                await hub.disconnect(ws)
                break
            try:
                seat = room.seat_of(player_id)
                if seat is None:
                    raise ValueError("Not seated at this table")
                await handle_action(room_id, seat, data)
            except ValueError as exc:
                logger.debug("Rejected action from %s in %s: %s", player_id, room_id, exc)
                await ws.send_json(envelope("error", error=str(exc)))
    except WebSocketDisconnect:
        await hub.disconnect(ws)


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=8000)
