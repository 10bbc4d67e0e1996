"""Simulation clock: turns elapsed time into engine progress and decay ticks.

Constructed explicitly and handed to whoever drives the simulation; there is
no global tick dispatcher. Each advance(delta):

  1. scales delta by time_scale (nothing happens while paused),
  2. passes the simulated elapsed time to engine.progress(),
  3. accumulates it into whole ticks and runs graph.decay_all() on every
     ticks_per_decay-th tick,
  4. emits "tick" and, when any node changed state, "tech_decayed".
"""

from __future__ import annotations

import logging
from typing import Any

from .events.engine import EventLifecycleEngine
from .hooks import Notifier
from .models import as_float, is_number
from .tech_graph import TechGraph

logger = logging.getLogger(__name__)


def _whole_ticks(value: Any, default: int) -> int:
    """A decay interval of at least 1 tick. Malformed input keeps *default*."""
    if isinstance(value, str):
        value = as_float(value, default)
    return max(1, int(value)) if is_number(value) else default


class SimulationClock:
    def __init__(
        self,
        engine: EventLifecycleEngine,
        graph: TechGraph,
        *,
        notifier: Notifier | None = None,
        time_scale: float = 1.0,
        ticks_per_decay: int = 1,
    ) -> None:
        self.engine = engine
        self.graph = graph
        self._notifier = notifier
        self._time_scale = max(0.0, as_float(time_scale, 1.0))
        self.ticks_per_decay = _whole_ticks(ticks_per_decay, 1)
        self.paused = False
        self.time = 0.0
        self.ticks = 0
        self._carry = 0.0

    @property
    def time_scale(self) -> float:
        return self._time_scale

    def set_time_scale(self, scale: float) -> None:
        """Negative scales clamp to 0 (time frozen but not paused)."""
        self._time_scale = max(0.0, as_float(scale, self._time_scale))

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def advance(self, delta: float) -> float:
        """Advance by *delta* units of driver time. Returns the simulated time applied."""
        if self.paused or not is_number(delta) or delta <= 0:
            return 0.0
        elapsed = delta * self._time_scale
        if elapsed <= 0:
            return 0.0

        self.time += elapsed
        self.engine.progress(elapsed)

        self._carry += elapsed
        whole = int(self._carry + 1e-9)
        self._carry = max(0.0, self._carry - whole)
        changed: list[str] = []
        for _ in range(whole):
            self.ticks += 1
            if self.ticks % self.ticks_per_decay == 0:
                for node_id in self.graph.decay_all():
                    if node_id not in changed:
                        changed.append(node_id)

        if self._notifier is not None:
            self._notifier.emit("tick", {"elapsed": elapsed, "time": self.time})
            if changed:
                self._notifier.emit("tech_decayed", {"node_ids": changed})
        if changed:
            logger.debug("decay tick %d changed %s", self.ticks, changed)
        return elapsed

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "ticks": self.ticks,
            "carry": self._carry,
            "time_scale": self._time_scale,
            "ticks_per_decay": self.ticks_per_decay,
            "paused": self.paused,
        }

    def restore(self, data: dict[str, Any]) -> None:
        """Load counters saved by to_dict(). Missing fields keep their current values."""
        self.time = as_float(data.get("time"), self.time)
        ticks = data.get("ticks")
        if isinstance(ticks, int) and not isinstance(ticks, bool):
            self.ticks = max(0, ticks)
        self._carry = max(0.0, as_float(data.get("carry"), self._carry))
        self.set_time_scale(data.get("time_scale", self._time_scale))
        self.ticks_per_decay = _whole_ticks(data.get("ticks_per_decay"), self.ticks_per_decay)
        self.paused = bool(data.get("paused", self.paused))
