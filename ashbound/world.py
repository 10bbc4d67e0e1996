"""World: the tech graph, the event engine and the clock wired together.

Saved world format:
  {"graph":  [node records, see tech_graph],
   "events": EventLifecycleEngine.to_dict(),
   "clock":  SimulationClock.to_dict()}
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from typing import Any

from .clock import SimulationClock
from .events import EventLifecycleEngine
from .hooks import Notifier
from .models import LegacyScoreResult, ResilienceScore
from .score import LegacyScore
from .tech_graph import TechGraph

logger = logging.getLogger(__name__)


class World:
    def __init__(
        self,
        graph: TechGraph | None = None,
        engine: EventLifecycleEngine | None = None,
        *,
        notifier: Notifier | None = None,
        seed: int | None = None,
        time_scale: float = 1.0,
        ticks_per_decay: int = 1,
        thresholds: Mapping[str, Any] | None = None,
        default_resilience: ResilienceScore | None = None,
    ) -> None:
        self.notifier = notifier if notifier is not None else Notifier()
        self.graph = graph if graph is not None else TechGraph()
        self.engine = engine if engine is not None else EventLifecycleEngine(
            rng=random.Random(seed), notifier=self.notifier
        )
        self.clock = SimulationClock(
            self.engine,
            self.graph,
            notifier=self.notifier,
            time_scale=time_scale,
            ticks_per_decay=ticks_per_decay,
        )
        self.scorer = LegacyScore(thresholds)
        self.default_resilience = default_resilience if default_resilience is not None else ResilienceScore()

    def new_resilience(self) -> ResilienceScore:
        """A fresh copy of the world's default resistances for a new node."""
        return self.default_resilience.model_copy(deep=True)

    def advance(self, delta: float) -> float:
        return self.clock.advance(delta)

    def score(self, thresholds: Mapping[str, Any] | None = None) -> LegacyScoreResult:
        return self.scorer.calculate(self.graph, self.engine, thresholds=thresholds)

    def to_dict(self) -> dict[str, Any]:
        return {
            "graph": self.graph.serialize(),
            "events": self.engine.to_dict(),
            "clock": self.clock.to_dict(),
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        notifier: Notifier | None = None,
        seed: int | None = None,
        thresholds: Mapping[str, Any] | None = None,
        default_resilience: ResilienceScore | None = None,
    ) -> World:
        notifier = notifier if notifier is not None else Notifier()
        graph = TechGraph.deserialize(data.get("graph") or [], default_resilience)
        engine = EventLifecycleEngine.from_dict(
            data.get("events") or {}, rng=random.Random(seed), notifier=notifier
        )
        world = cls(
            graph,
            engine,
            notifier=notifier,
            thresholds=thresholds,
            default_resilience=default_resilience,
        )
        clock = data.get("clock")
        if isinstance(clock, Mapping):
            world.clock.restore(dict(clock))
        logger.info("world restored: %d techs, %d active events", len(graph), len(engine.active_events()))
        return world
