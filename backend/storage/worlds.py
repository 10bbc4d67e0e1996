"""Saved worlds: one JSON file per world under data/worlds/."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .core import slugify, worlds_dir

logger = logging.getLogger(__name__)


def _world_path(slug: str) -> Path:
    return worlds_dir() / f"{slug}.json"


def list_worlds() -> list[dict[str, Any]]:
    """Summaries of every saved world: slug, saved_at, tech and event counts."""
    results = []
    for path in sorted(worlds_dir().glob("*.json")):
        data = json.loads(path.read_text())
        events = data.get("events", {})
        results.append({
            "slug": path.stem,
            "saved_at": data.get("saved_at", ""),
            "techs": len(data.get("graph", [])),
            "active_events": sum(len(v) for v in events.get("active", {}).values()),
            "resolved_events": sum(len(v) for v in events.get("resolved", {}).values()),
        })
    return results


def get_world(slug: str) -> dict[str, Any] | None:
    """Load a saved world. Returns None if missing."""
    path = _world_path(slug)
    if not path.is_file():
        return None
    return json.loads(path.read_text())


def save_world(name: str, data: dict[str, Any]) -> str:
    """Write a world under slugify(name), overwriting any previous save. Returns the slug."""
    slug = slugify(name)
    record = dict(data)
    record["saved_at"] = datetime.now(timezone.utc).isoformat()
    _world_path(slug).write_text(json.dumps(record, indent=2))
    logger.info("saved world %s", slug)
    return slug


def delete_world(slug: str) -> bool:
    path = _world_path(slug)
    if not path.is_file():
        return False
    path.unlink()
    return True
