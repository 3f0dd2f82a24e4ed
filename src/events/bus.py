# src/events/bus.py - v1
"""In-process event bus for pipeline lifecycle signals.

Subscribers are registered explicitly on a bus instance. A failing
subscriber is logged and does not interrupt the publisher.
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Union

logger = logging.getLogger(__name__)

BEFORE_ANALYZE = "before_analyze"
AFTER_ANALYZE = "after_analyze"
ANALYSIS_FAILED = "analysis_failed"
PROVIDER_REQUEST = "provider_request"
BEFORE_APPLY_METADATA = "before_apply_metadata"
AFTER_APPLY_METADATA = "after_apply_metadata"
AFTER_DRAFT_METADATA = "after_draft_metadata"
BATCH_STARTED = "batch_started"
BATCH_COMPLETED = "batch_completed"

Handler = Callable[[str, dict[str, Any]], Union[None, Awaitable[None]]]


class EventBus:
    """Publish/subscribe by event name."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscribers(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    async def publish(self, event: str, payload: dict[str, Any] | None = None) -> None:
        """Call every handler for ``event`` in subscription order."""
        payload = payload or {}
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(event, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, event)
