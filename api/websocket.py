"""WebSocket connection management with table engine integration."""

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from api.routes.tables import get_table_manager
from api.session import extract_seat
from core.errors import BlackjackError
from core.game import BlackjackTable
from core.game.events import GameEvent

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_QUEUED_EVENTS = 256


class ConnectionManager:
    """Manage WebSocket connections and their table event queues."""

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._event_queues: dict[str, asyncio.Queue] = {}
        self._subscriptions: dict[str, tuple[BlackjackTable, Any]] = {}

    async def connect(self, websocket: WebSocket, connection_id: str, table: BlackjackTable) -> None:
        """Accept a connection and subscribe it to the table's events."""
        await websocket.accept()
        self._connections[connection_id] = websocket
        self._event_queues[connection_id] = asyncio.Queue(maxsize=MAX_QUEUED_EVENTS)

        def handler(event: GameEvent) -> None:
            self._queue_event(connection_id, event)

        table.subscribe(handler)
        self._subscriptions[connection_id] = (table, handler)

    def disconnect(self, connection_id: str) -> None:
        """Remove a connection and its subscription. The seat is kept."""
        self._connections.pop(connection_id, None)
        self._event_queues.pop(connection_id, None)
        subscription = self._subscriptions.pop(connection_id, None)
        if subscription is not None:
            table, handler = subscription
            table.unsubscribe(handler)

    def _queue_event(self, connection_id: str, event: GameEvent) -> None:
        """Queue an event for async delivery."""
        queue = self._event_queues.get(connection_id)
        if queue is None:
            return
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Dropping event %s for slow client", event.event_type.name)

    async def get_event(self, connection_id: str) -> GameEvent:
        """Wait for the next event for a connection."""
        return await self._event_queues[connection_id].get()

    async def send_message(self, connection_id: str, message: dict[str, Any]) -> None:
        """Send a message to a specific connection."""
        websocket = self._connections.get(connection_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(message)
        except Exception:
            logger.debug("Send failed for connection %s", connection_id, exc_info=True)

    @property
    def active_connections(self) -> int:
        """Return number of active connections."""
        return len(self._connections)


# Global connection manager
manager = ConnectionManager()


def _error(exc: Exception) -> dict[str, Any]:
    code = exc.code if isinstance(exc, BlackjackError) else "error"
    return {"type": "error", "code": code, "message": str(exc)}


async def _handle_message(table: BlackjackTable, player_id: str | None, message: dict[str, Any]) -> dict[str, Any] | None:
    """Apply one client message; returns a direct reply, if any."""
    msg_type = message.get("type")

    if msg_type == "get_state":
        state = table.snapshot()
        if player_id in table.players:
            state["legal_actions"] = table.legal_actions(player_id)
        return {"type": "state_update", "state": state}

    if player_id is None:
        return {"type": "error", "code": "unauthorized", "message": "A player token is required"}

    if msg_type == "bet":
        amount = table.bet(player_id, message.get("amount"))
        return {"type": "ack", "request": "bet", "amount": amount}
    if msg_type == "action":
        outcome = await table.act(player_id, message.get("action", ""))
        return {
            "type": "ack",
            "request": "action",
            "action": outcome.action.value,
            "terminal": outcome.terminal,
        }
    if msg_type == "rebuy":
        amount = await table.rebuy(player_id, message.get("amount"))
        return {"type": "ack", "request": "rebuy", "amount": amount}

    return {"type": "error", "code": "unknownMessage", "message": f"Unknown message type: {msg_type}"}


@router.websocket("/tables/{table_id}")
async def table_websocket(websocket: WebSocket, table_id: str, token: str | None = None) -> None:
    """
    WebSocket endpoint for real-time table updates.

    Messages from client:
    - {"type": "bet", "amount": 100}
    - {"type": "action", "action": "hit"|"stand"|"double"|"split"|"insurance"}
    - {"type": "rebuy", "amount": 400}
    - {"type": "get_state"}

    Messages to client:
    - {"type": "state_update", "state": {...}}
    - {"type": "event", "event_type": "...", "data": {...}, "timestamp": "..."}
    - {"type": "ack", "request": "...", ...}
    - {"type": "error", "code": "...", "message": "..."}
    """
    tables = await get_table_manager(websocket)
    table = tables.get(table_id)
    if table is None:
        await websocket.close(code=4404)
        return

    player_id: str | None = None
    if token:
        seat = extract_seat(token)
        if seat is None or seat["table_id"] != table_id:
            await websocket.close(code=4401)
            return
        player_id = seat["player_id"]

    connection_id = f"{table_id}:{id(websocket)}"
    await manager.connect(websocket, connection_id, table)
    await manager.send_message(connection_id, {"type": "state_update", "state": table.snapshot()})

    async def process_events() -> None:
        """Forward table events to the client."""
        while True:
            event = await manager.get_event(connection_id)
            await manager.send_message(connection_id, {"type": "event", **event.to_dict()})

    event_task = asyncio.create_task(process_events())

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await manager.send_message(connection_id, {
                    "type": "error",
                    "code": "invalidJson",
                    "message": "Messages must be JSON objects",
                })
                continue
            if not isinstance(message, dict):
                await manager.send_message(connection_id, {
                    "type": "error",
                    "code": "invalidJson",
                    "message": "Messages must be JSON objects",
                })
                continue

            try:
                reply = await _handle_message(table, player_id, message)
            except BlackjackError as exc:
                reply = _error(exc)
            if reply is not None:
                await manager.send_message(connection_id, reply)

    except WebSocketDisconnect:
        pass
    finally:
        event_task.cancel()
        try:
            await event_task
        except asyncio.CancelledError:
            pass
        manager.disconnect(connection_id)
