"""Global simulation settings (seed, decay, clock, score tiers, event definition overrides)."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from ashbound.score import DEFAULT_THRESHOLDS

from .core import data_dir

logger = logging.getLogger(__name__)

SEED_ENV = "ASHBOUND_SEED"

_CONFIG_DEFAULTS: dict[str, Any] = {
    "seed": None,
    "decay": {
        "resilience": {
            "operable_resistance": 3,
            "fading_resistance": 4,
            "dormant_resistance": 6,
        },
        "ticks_per_decay": 1,
    },
    "clock": {"time_scale": 1.0},
    "score": {"thresholds": dict(DEFAULT_THRESHOLDS)},
    "event_definitions": {"crisis": {}, "opportunity": {}},
}


def _config_path() -> Path:
    return data_dir() / "config.json"


def _merge(config: dict[str, Any], fields: dict[str, Any]) -> None:
    """Apply a partial update in place. Nested sections merge key-by-key, scalars overwrite."""
    if "seed" in fields:
        config["seed"] = fields["seed"]
    decay = fields.get("decay")
    if isinstance(decay, dict):
        if isinstance(decay.get("resilience"), dict):
            config["decay"]["resilience"].update(decay["resilience"])
        if "ticks_per_decay" in decay:
            config["decay"]["ticks_per_decay"] = decay["ticks_per_decay"]
    clock = fields.get("clock")
    if isinstance(clock, dict) and "time_scale" in clock:
        config["clock"]["time_scale"] = clock["time_scale"]
    score = fields.get("score")
    if isinstance(score, dict) and isinstance(score.get("thresholds"), dict):
        config["score"]["thresholds"].update(score["thresholds"])
    definitions = fields.get("event_definitions")
    if isinstance(definitions, dict):
        for kind, entries in definitions.items():
            if kind in config["event_definitions"] and isinstance(entries, dict):
                config["event_definitions"][kind].update(entries)


def _stored_config() -> dict[str, Any]:
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    path = _config_path()
    if path.is_file():
        _merge(config, json.loads(path.read_text()))
    return config


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values.

    ASHBOUND_SEED in the environment (or .env) overrides the stored seed.
    """
    config = _stored_config()
    env_seed = os.getenv(SEED_ENV, "")
    if env_seed:
        try:
            config["seed"] = int(env_seed)
        except ValueError:
            logger.warning("ignoring non-integer %s=%r", SEED_ENV, env_seed)
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = _stored_config()
    _merge(config, fields)
    _config_path().write_text(json.dumps(config, indent=2))
    return get_config()
