"""Event definition registry and the built-in crisis/opportunity templates."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from ..models import EVENT_KINDS, EventDefinition

logger = logging.getLogger(__name__)

BUILTIN_DEFINITIONS: dict[str, dict[str, dict[str, Any]]] = {
    "crisis": {
        "epidemic": {
            "name": "Epidemic",
            "description": "A sickness moves from hearth to hearth faster than the healers can follow.",
            "base_duration": 6,
            "duration_variance": 2,
            "magnitude": {"min": 1.5, "max": 3.5},
            "default_tags": ["disease", "population"],
            "memory_prompt": "Who tended the sick while the lamps burned low?",
        },
        "blight": {
            "name": "Blight",
            "description": "The fields rot on the stalk and the granaries run thin.",
            "base_duration": 8,
            "duration_variance": 3,
            "magnitude": {"min": 1.0, "max": 2.5},
            "default_tags": ["harvest", "famine"],
            "memory_prompt": "Which seed was saved when the harvest failed?",
        },
    },
    "opportunity": {
        "artifact": {
            "name": "Artifact",
            "description": "A relic of the old makers surfaces from the ruins.",
            "base_duration": 4,
            "duration_variance": 1,
            "magnitude": {"min": 1.0, "max": 3.0},
            "default_tags": ["discovery", "relic"],
            "memory_prompt": "Who was trusted to keep the relic?",
        },
        "refugee_experts": {
            "name": "Refugee Experts",
            "description": "Skilled exiles arrive at the gates carrying crafts the settlement has lost.",
            "base_duration": 5,
            "duration_variance": 2,
            "magnitude": {"min": 1.5, "max": 3.0},
            "default_tags": ["migration", "expertise"],
            "memory_prompt": "Which guild opened its doors to the newcomers?",
        },
    },
}


class EventDefinitionRegistry:
    """Definitions keyed by kind, then type. Entries can be overridden at any time."""

    def __init__(self, include_builtins: bool = True) -> None:
        self._definitions: dict[str, dict[str, EventDefinition]] = {kind: {} for kind in EVENT_KINDS}
        if include_builtins:
            for kind, entries in BUILTIN_DEFINITIONS.items():
                for type_key, definition in entries.items():
                    self.register(kind, type_key, definition)

    def register(
        self, kind: str, type_key: str, definition: EventDefinition | dict[str, Any] | None = None
    ) -> EventDefinition | None:
        """Normalise and store *definition* under (kind, type). Returns None for bad input."""
        if kind not in self._definitions or not type_key:
            logger.warning("cannot register definition %r for unknown kind %r", type_key, kind)
            return None
        if isinstance(definition, EventDefinition):
            data = definition.model_dump()
        else:
            data = dict(definition or {})
        data["kind"] = kind
        data["type"] = type_key
        try:
            normalised = EventDefinition.model_validate(data)
        except ValidationError as e:
            logger.warning("rejected definition %s/%s: %s", kind, type_key, e)
            return None
        self._definitions[kind][type_key] = normalised
        return normalised.model_copy(deep=True)

    def get(self, kind: str, type_key: str) -> EventDefinition | None:
        definition = self._definitions.get(kind, {}).get(type_key)
        return definition.model_copy(deep=True) if definition is not None else None

    def has(self, kind: str, type_key: str) -> bool:
        return type_key in self._definitions.get(kind, {})

    def all(self) -> dict[str, list[EventDefinition]]:
        return {
            kind: [d.model_copy(deep=True) for d in entries.values()]
            for kind, entries in self._definitions.items()
        }
