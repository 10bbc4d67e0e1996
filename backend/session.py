"""The live world served by the API.

One World per process. It is built lazily from the stored config on first
use, replaced on load/reset, and written to data/worlds/ on save.
"""

import logging
import random
from typing import Any

from ashbound.events import EventDefinitionRegistry, EventLifecycleEngine
from ashbound.hooks import Notifier
from ashbound.models import EVENT_KINDS, ResilienceScore
from ashbound.world import World

from backend import storage

logger = logging.getLogger(__name__)

_world: World | None = None


def _registry_from_config(config: dict[str, Any]) -> EventDefinitionRegistry:
    registry = EventDefinitionRegistry()
    overrides = config.get("event_definitions") or {}
    for kind in EVENT_KINDS:
        for type_key, definition in (overrides.get(kind) or {}).items():
            if registry.register(kind, type_key, definition) is None:
                logger.warning("config definition %s/%s rejected", kind, type_key)
    return registry


def _seed(config: dict[str, Any]) -> int | str | None:
    seed = config.get("seed")
    return seed if isinstance(seed, (int, str)) else None


def build_world(config: dict[str, Any] | None = None) -> World:
    """A fresh world wired with the decay, clock, score and definition settings of *config*."""
    config = config if config is not None else storage.get_config()
    notifier = Notifier()
    engine = EventLifecycleEngine(
        _registry_from_config(config),
        rng=random.Random(_seed(config)),
        notifier=notifier,
    )
    return World(
        engine=engine,
        notifier=notifier,
        time_scale=config["clock"]["time_scale"],
        ticks_per_decay=config["decay"]["ticks_per_decay"],
        thresholds=config["score"]["thresholds"],
        default_resilience=ResilienceScore.model_validate(config["decay"]["resilience"]),
    )


def get_world() -> World:
    global _world

    if _world is None:
        _world = build_world()
        logger.info("new world created")
    return _world


def set_world(world: World | None) -> None:
    global _world

    _world = world


def reset_world() -> World:
    set_world(build_world())
    return get_world()


def save_current(name: str) -> str:
    return storage.save_world(name, get_world().to_dict())


def load_saved(slug: str) -> World | None:
    """Replace the live world with a saved one. Returns None if the save is missing."""
    data = storage.get_world(slug)
    if data is None:
        return None
    config = storage.get_config()
    world = World.from_dict(
        data,
        seed=_seed(config),
        thresholds=config["score"]["thresholds"],
        default_resilience=ResilienceScore.model_validate(config["decay"]["resilience"]),
    )
    set_world(world)
    logger.info("loaded world %s", slug)
    return world
