"""Notification hooks.

The engine and the clock report what happened by emitting a name plus a
structured payload. Observers subscribe a callable per name:

    notifier = Notifier()
    notifier.subscribe("crisis_triggered", on_crisis)
    engine = EventLifecycleEngine(notifier=notifier)

Handlers run synchronously, in subscription order, as soon as the value is
emitted. A handler that raises is logged and skipped; the emitter and the
remaining handlers carry on.

Names in use:
  crisis_triggered / opportunity_triggered   payload: event record
  crisis_resolved / opportunity_resolved     payload: finalised event record
  memory_choice_recorded                     payload: memory moment
  tick                                       payload: {"elapsed", "time"}
  tech_decayed                               payload: {"node_ids": [...]}
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class Notifier:
    def __init__(self) -> None:
        self._subs: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subs[name].append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> bool:
        handlers = self._subs.get(name, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def emit(self, name: str, payload: Any = None) -> int:
        """Call every handler subscribed to *name*. Returns how many ran cleanly."""
        delivered = 0
        for handler in list(self._subs.get(name, [])):
            try:
                handler(payload)
            except Exception:
                logger.exception("hook handler failed for %s", name)
                continue
            delivered += 1
        return delivered

    def __repr__(self) -> str:
        return f"Notifier(names={sorted(self._subs)})"
