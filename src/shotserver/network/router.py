"""Message router - dispatches incoming hub messages to handlers by type.

Handlers are async callables that receive the parsed message and the
sender's peer id.  They may return a response dict that is sent back to
the sender only.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Awaitable, Optional

from pydantic import ValidationError

from shotserver.models.messages import ErrorMessage, ShotMessage, parse_message

log = logging.getLogger(__name__)

# Handler signature: async (message, sender) -> optional response dict
Handler = Callable[[ShotMessage, int], Awaitable[Optional[dict[str, Any]]]]


class Router:
    """Message dispatcher keyed by the ``type`` field."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, msg_type: str, handler: Handler) -> None:
        """Register (or replace) the handler for a message type.

        Args:
            msg_type: The message type string (e.g. ``"shot_record"``).
            handler: Async callable ``(message, sender) -> dict | None``.
        """
        self._handlers[msg_type] = handler
        log.debug("Handler registered: %s", msg_type)

    @property
    def registered_types(self) -> list[str]:
        """List of all message types that have a handler."""
        return list(self._handlers.keys())

    async def route(self, raw: dict[str, Any], sender: int) -> Optional[dict[str, Any]]:
        """Parse and dispatch a raw message dict.

        Args:
            raw: Raw JSON-decoded message dictionary.
            sender: Peer id of the sender.

        Returns:
            Response dict from the handler, an error dict if the message
            failed validation, or None if there is no handler / the
            handler returned nothing.
        """
        try:
            message = parse_message(raw)
        except ValidationError as exc:
            log.warning("Invalid %s message from peer %d: %s", raw.get("type"), sender, exc)
            return ErrorMessage(message=f"Invalid {raw.get('type')} message").model_dump()

        handler = self._handlers.get(message.type)
        if handler is None:
            log.warning("No handler for message type: %s", message.type)
            return None
        return await handler(message, sender)
