"""WebSocket relay hub - manages peer connections.

Accepts WebSocket connections, assigns every peer an id and dispatches
incoming messages to the router.  Uses the ``websockets`` library with
asyncio.
"""

from __future__ import annotations

import itertools
import json
import logging
from typing import Any, Optional, TYPE_CHECKING

import websockets
from websockets.asyncio.server import ServerConnection, Server as WSServer

from shotserver.models.messages import WelcomeMessage

if TYPE_CHECKING:
    from shotserver.network.router import Router

log = logging.getLogger(__name__)

HUB_PEER_ID = 0
"""Sender id used for messages originating from the hub itself."""


class Server:
    """asyncio WebSocket server with peer tracking.

    Each connected peer goes through:
    1. WebSocket handshake
    2. A ``welcome`` message carrying its peer id
    3. Messages are routed via the Router; responses sent back.

    Args:
        router: Message router for dispatching incoming messages.
        host: Bind address.
        port: Bind port.
    """

    def __init__(self, router: Router, host: str = "0.0.0.0", port: int = 8765,
                 ping_interval: int = 30, ping_timeout: int = 10,
                 max_size: int = 1_048_576) -> None:
        self._router = router
        self._host = host
        self._port = port
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._max_size = max_size
        self._connections: dict[int, ServerConnection] = {}  # peer id → ws
        self._ws_to_peer: dict[int, int] = {}  # id(ws) → peer id
        self._server: Optional[WSServer] = None
        self._peer_ids = itertools.count(HUB_PEER_ID + 1)

    # -- Lifecycle -------------------------------------------------------

    async def start(self) -> None:
        """Start the WebSocket server."""
        self._server = await websockets.serve(
            self._on_connect,
            self._host,
            self._port,
            origins=None,
            ping_interval=self._ping_interval,
            ping_timeout=self._ping_timeout,
            max_size=self._max_size,
        )
        log.info("WebSocket hub listening on ws://%s:%d", self._host, self._port)

    async def stop(self) -> None:
        """Stop the WebSocket server and close all connections."""
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            log.info("WebSocket hub stopped")

    # -- Peer management -------------------------------------------------

    def register_peer(self, ws: ServerConnection) -> int:
        """Assign the next peer id to a connection."""
        peer_id = next(self._peer_ids)
        self._connections[peer_id] = ws
        self._ws_to_peer[id(ws)] = peer_id
        log.info("Peer registered: id=%d", peer_id)
        return peer_id

    def unregister_peer(self, ws: ServerConnection) -> Optional[int]:
        """Remove a WebSocket from the peer table.  Returns the peer id."""
        peer_id = self._ws_to_peer.pop(id(ws), None)
        if peer_id is not None:
            self._connections.pop(peer_id, None)
        return peer_id

    def get_peer(self, ws: ServerConnection) -> Optional[int]:
        """Look up the peer id for a WebSocket connection."""
        return self._ws_to_peer.get(id(ws))

    @property
    def connected_peers(self) -> list[int]:
        """List of all connected peer ids."""
        return sorted(self._connections.keys())

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # -- Sending ---------------------------------------------------------

    async def send_to(self, peer_id: int, data: dict[str, Any]) -> bool:
        """Send a message to one connected peer.

        Returns True if the message was sent, False if the peer is gone.
        """
        ws = self._connections.get(peer_id)
        if ws is None:
            return False
        try:
            await ws.send(json.dumps(data, ensure_ascii=False, default=str))
            return True
        except websockets.ConnectionClosed:
            log.debug("send_to peer=%d failed, connection closed", peer_id)
            return False

    async def broadcast(self, peer_ids: set[int], data: dict[str, Any]) -> int:
        """Send a message to several peers.

        Returns the number of peers that received the message.
        """
        raw = json.dumps(data, ensure_ascii=False, default=str)
        sent = 0
        for peer_id in peer_ids:
            ws = self._connections.get(peer_id)
            if ws is None:
                continue
            try:
                await ws.send(raw)
                sent += 1
            except websockets.ConnectionClosed:
                log.debug("broadcast to peer=%d failed, connection closed", peer_id)
        return sent

    async def broadcast_all(self, data: dict[str, Any]) -> int:
        """Send a message to ALL connected peers."""
        return await self.broadcast(set(self._connections.keys()), data)

    async def broadcast_except(self, sender: int, data: dict[str, Any]) -> int:
        """Send a message to every peer but `sender`."""
        return await self.broadcast(set(self._connections.keys()) - {sender}, data)

    # -- Connection handler ----------------------------------------------

    async def _on_connect(self, ws: ServerConnection) -> None:
        """Handle a new WebSocket connection lifecycle."""
        peer_id = self.register_peer(ws)
        remote = ws.remote_address
        log.info("Peer connected: id=%d remote=%s", peer_id, remote)

        try:
            await ws.send(json.dumps(WelcomeMessage(peer_id=peer_id).model_dump()))
            async for raw_msg in ws:
                await self._handle_message(ws, raw_msg)
        except websockets.ConnectionClosed as e:
            log.info("Peer disconnected: id=%d code=%s reason=%s",
                     peer_id, e.code, e.reason or "(none)")
        except Exception as e:
            log.error("Peer connection error: id=%d remote=%s error=%s", peer_id, remote, e)
        else:
            log.info("Peer closed cleanly: id=%d", peer_id)
        finally:
            self.unregister_peer(ws)

    async def _handle_message(self, ws: ServerConnection, raw_msg: Any) -> None:
        """Parse and route a single incoming message."""
        peer_id = self.get_peer(ws) or HUB_PEER_ID

        if isinstance(raw_msg, bytes):
            raw_msg = raw_msg.decode("utf-8")
        try:
            data = json.loads(raw_msg)
        except json.JSONDecodeError as e:
            await ws.send(json.dumps({
                "type": "error",
                "message": f"Invalid JSON: {e}",
            }))
            return

        if not isinstance(data, dict):
            await ws.send(json.dumps({
                "type": "error",
                "message": "Message must be a JSON object",
            }))
            return

        request_id = data.get("request_id")
        msg_type = data.get("type", "")
        log.debug("Received: type=%s peer=%d", msg_type, peer_id)

        try:
            response = await self._router.route(data, peer_id)
        except Exception as exc:
            log.exception("Handler error: type=%s peer=%d", msg_type, peer_id)
            error_resp: dict[str, Any] = {
                "type": "error",
                "message": str(exc),
            }
            if request_id is not None:
                error_resp["request_id"] = request_id
            await ws.send(json.dumps(error_resp))
            return

        if response is not None:
            if request_id is not None:
                response["request_id"] = request_id
            await ws.send(json.dumps(response, ensure_ascii=False, default=str))
