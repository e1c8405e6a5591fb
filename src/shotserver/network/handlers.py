"""Message handlers - central registry of all message type handlers.

Each handler is an async function that receives a parsed ShotMessage
and the sender peer id, and returns an optional response dict.

The hub does not simulate anything itself: it stamps shot messages with
the sender id, relays them to every other peer and keeps the history of
authoritative records for late joiners.

The handler signature is::

    async def handle_xyz(message: ShotMessage, sender: int) -> dict | None:
        ...

Returning a dict sends it back to the sender as a JSON response.
Returning None means no response to the sender (fire-and-forget).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from shotserver.main import Services

from shotserver.models.messages import (
    PROGRESSIVE_TYPES,
    HistoryRequest,
    HistoryResponse,
    ShotMessage,
    ShotRecord,
)
from shotserver.network.serialization import shot_from_dict

log = logging.getLogger(__name__)

# Module-level reference set by register_all_handlers()
_services: Optional[Services] = None


def _svc() -> Services:
    """Get the Services container. Raises if not initialized."""
    assert _services is not None, "handlers: services not initialized"
    return _services


def _stamped(message: ShotMessage, sender: int) -> dict[str, Any]:
    """Message dict with the hub-assigned sender id and a timestamp."""
    data = message.model_dump()
    data["sender"] = sender
    if not data.get("timestamp"):
        data["timestamp"] = int(time.time() * 1000)
    return data


async def _relay(data: dict[str, Any], sender: int) -> int:
    svc = _svc()
    if svc.server is None:
        return 0
    sent = await svc.server.broadcast_except(sender, data)
    log.debug("Relayed %s from peer %d to %d peer(s)", data["type"], sender, sent)
    return sent


# ===================================================================
# Progressive stream
# ===================================================================

async def handle_progressive(message: ShotMessage, sender: int) -> None:
    """Relay ``fire_shot`` / ``shot_segment`` / ``shot_hit`` / ``shot_complete``.

    Visual only: nothing is stored.
    """
    await _relay(_stamped(message, sender), sender)


# ===================================================================
# Authoritative records
# ===================================================================

async def handle_shot_record(message: ShotRecord, sender: int) -> Optional[dict[str, Any]]:
    """Handle ``shot_record`` - persist the record, then relay it.

    Malformed or incomplete records are rejected with an error response
    to the sender.
    """
    try:
        result = shot_from_dict(message.shot)
    except ValueError as exc:
        log.warning("Rejected shot record from peer %d: %s", sender, exc)
        return {"type": "error", "message": f"Invalid shot record: {exc}"}
    if not result.completed:
        log.warning("Rejected incomplete shot record %s from peer %d: %s",
                    result.id, sender, result.error)
        return {"type": "error", "message": f"Incomplete shot record: {result.id}"}

    _svc().shot_store.add(message.shot, {**message.meta, "sender": sender})
    log.info("Shot record %s from peer %d (%d segment(s))",
             result.id, sender, len(result.segments))
    await _relay(_stamped(message, sender), sender)
    return None


async def handle_history_request(message: HistoryRequest, sender: int) -> dict[str, Any]:
    """Handle ``history_request`` - newest stored records first."""
    store = _svc().shot_store
    store.prune()
    records = store.recent(message.limit)
    return HistoryResponse(shots=records, timestamp=int(time.time() * 1000)).model_dump()


# ===================================================================
# Registration - THE central place to add all handlers
# ===================================================================

def register_all_handlers(services: Services) -> None:
    """Register all message handlers on the router.

    Called once during startup from ``main.py``.

    Args:
        services: Fully initialized Services container.
    """
    global _services
    _services = services

    router = services.router

    # -- Progressive stream (relay only) ---------------------------------
    for msg_type in PROGRESSIVE_TYPES:
        router.register(msg_type, handle_progressive)

    # -- Records / history -----------------------------------------------
    router.register("shot_record", handle_shot_record)
    router.register("history_request", handle_history_request)

    log.info("Registered %d message handlers", len(router.registered_types))
