"""Core domain models.

Every data boundary of the simulation goes through these types: event
definitions, live and resolved event records, the structured payloads that
trigger/resolve/memory calls accept, legacy ledger records and the score
result. Pydantic is used for validation and serialisation.

Caller-supplied payloads are parsed leniently: malformed optional fields
fall back to their defaults instead of raising, and keys a model does not
know about are kept in a free-form side table (``context`` or ``extra``).
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EventKind = Literal["crisis", "opportunity"]
EVENT_KINDS: tuple[str, ...] = ("crisis", "opportunity")


def is_number(value: Any) -> bool:
    """True for finite ints and floats. Bools, NaN and infinities are not numbers here."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return math.isfinite(value)


def as_float(value: Any, default: float) -> float:
    """Coerce a finite number or numeric string to float, else return *default*."""
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return default
        return parsed if math.isfinite(parsed) else default
    return default


def as_str_list(value: Any) -> list[str]:
    """Coerce a string or iterable of strings to a de-duplicated list (order kept)."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set)):
        return []
    result: list[str] = []
    for item in value:
        if item is None:
            continue
        text = str(item)
        if text and text not in result:
            result.append(text)
    return result


def merge_unique(existing: list[str], incoming: list[str]) -> list[str]:
    """Ordered union: *existing* first, then unseen items of *incoming*."""
    merged = list(existing)
    for item in incoming:
        if item not in merged:
            merged.append(item)
    return merged


def display_name(type_key: str) -> str:
    """Title-case a type key: refugee_experts → Refugee Experts."""
    return type_key.replace("_", " ").strip().title()


def _split_known(cls: type[BaseModel], data: dict[str, Any], side_table: str) -> dict[str, Any]:
    """Move keys the model does not declare into *side_table*."""
    known = set(cls.model_fields)
    result = {k: v for k, v in data.items() if k in known}
    extra = dict(data.get(side_table) or {}) if isinstance(data.get(side_table), dict) else {}
    for key, value in data.items():
        if key not in known:
            extra[key] = value
    result[side_table] = extra
    return result


# ---------------------------------------------------------------------------
# Technology states and resilience
# ---------------------------------------------------------------------------

class TechState(str, Enum):
    OPERABLE = "Operable"
    FADING = "Fading"
    DORMANT = "Dormant"
    FORGOTTEN = "Forgotten"

    @classmethod
    def from_name(cls, name: Any) -> TechState:
        """Case-insensitive lookup. Unknown input falls back to Operable."""
        if isinstance(name, TechState):
            return name
        if isinstance(name, str):
            wanted = name.strip().lower()
            for state in cls:
                if state.value.lower() == wanted:
                    return state
        return cls.OPERABLE


DECAY_ORDER: tuple[TechState, ...] = (
    TechState.OPERABLE,
    TechState.FADING,
    TechState.DORMANT,
    TechState.FORGOTTEN,
)
RELEARN_ORDER: tuple[TechState, ...] = tuple(reversed(DECAY_ORDER))


class ResilienceScore(BaseModel):
    """Per-state tick thresholds a node must accumulate before it decays further."""

    model_config = ConfigDict(validate_assignment=True)

    operable_resistance: int = 3
    fading_resistance: int = 4
    dormant_resistance: int = 6

    @field_validator("operable_resistance", "fading_resistance", "dormant_resistance", mode="before")
    @classmethod
    def _clamp(cls, value: Any, info) -> int:
        default = cls.model_fields[info.field_name].default
        return max(1, int(round(as_float(value, default))))

    @staticmethod
    def _field_for(state: TechState) -> str | None:
        return {
            TechState.OPERABLE: "operable_resistance",
            TechState.FADING: "fading_resistance",
            TechState.DORMANT: "dormant_resistance",
        }.get(state)

    def resistance_for(self, state: TechState) -> int:
        """Resistance of *state*; states without an entry use the Operable value."""
        field = self._field_for(state)
        if field is None:
            return self.operable_resistance
        return getattr(self, field)


# ---------------------------------------------------------------------------
# Event definitions
# ---------------------------------------------------------------------------

class MagnitudeRange(BaseModel):
    """Severity (crisis) or value (opportunity) range. Accepts {min,max}, [min,max] or a number."""

    min: float = 1.0
    max: float = 1.0

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> dict[str, float]:
        if is_number(data):
            data = {"min": data, "max": data}
        elif isinstance(data, (list, tuple)) and len(data) == 2:
            data = {"min": data[0], "max": data[1]}
        elif not isinstance(data, dict):
            data = {}
        low = as_float(data.get("min"), 1.0)
        high = as_float(data.get("max"), low)
        if high < low:
            low, high = high, low
        return {"min": low, "max": high}

    @property
    def is_constant(self) -> bool:
        return self.min == self.max


class EventDefinition(BaseModel):
    """Named template for a crisis or opportunity kind."""

    type: str
    kind: EventKind
    name: str = ""
    description: str = ""
    base_duration: float = 5.0
    duration_variance: float = 0.0
    magnitude: MagnitudeRange = Field(default_factory=MagnitudeRange)
    default_tags: list[str] = Field(default_factory=list)
    memory_prompt: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "base_duration" not in data and "duration" in data:
            data["base_duration"] = data.pop("duration")
        if "duration_variance" not in data and "variance" in data:
            data["duration_variance"] = data.pop("variance")
        if "magnitude" not in data:
            for alias in ("severity_range", "value_range", "range", "severity", "value"):
                if alias in data:
                    data["magnitude"] = data.pop(alias)
                    break
        if "default_tags" not in data and "tags" in data:
            data["default_tags"] = data.pop("tags")
        data["base_duration"] = max(1.0, as_float(data.get("base_duration"), 5.0))
        data["duration_variance"] = abs(as_float(data.get("duration_variance"), 0.0))
        data["default_tags"] = as_str_list(data.get("default_tags"))
        if not isinstance(data.get("metadata"), dict):
            data["metadata"] = {}
        for key in ("name", "description", "memory_prompt"):
            if data.get(key) is None:
                data.pop(key, None)
            else:
                data[key] = str(data[key])
        return data

    @model_validator(mode="after")
    def _fallback_name(self) -> EventDefinition:
        if not self.name:
            self.name = display_name(self.type)
        return self


# ---------------------------------------------------------------------------
# Call payloads (trigger overrides, resolutions, memory choices)
# ---------------------------------------------------------------------------

class TriggerOverrides(BaseModel):
    """Per-trigger overrides. Unknown keys become event context."""

    duration: float | None = None
    severity: float | None = None
    value: float | None = None
    name: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if data is None:
            return {}
        if not isinstance(data, dict):
            return data
        data = _split_known(cls, data, "context")
        for key in ("duration", "severity", "value"):
            if not is_number(data.get(key)):
                data[key] = None
        data["tags"] = as_str_list(data.get("tags"))
        if not isinstance(data.get("metadata"), dict):
            data["metadata"] = {}
        return data


class CrisisResolution(BaseModel):
    auto: bool = False
    mitigation: float = 0.0
    community_focus: float = 1.0
    memory_choice: dict[str, Any] | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if data is None:
            return {}
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "mitigation" not in data and "aid" in data:
            data["mitigation"] = data.pop("aid")
        data = _split_known(cls, data, "extra")
        data["auto"] = bool(data.get("auto", False))
        data["mitigation"] = as_float(data.get("mitigation"), 0.0)
        data["community_focus"] = as_float(data.get("community_focus"), 1.0)
        if not isinstance(data.get("memory_choice"), dict):
            data["memory_choice"] = None
        return data


class OpportunityResolution(BaseModel):
    auto: bool = False
    influence_multiplier: float = 1.0
    artifact_id: str | None = None
    artifact_name: str | None = None
    curator: str = ""
    preserved: bool = True
    significance: float | None = None
    story: str = ""
    guild_id: str | None = None
    guild_name: str | None = None
    disciplines: list[str] = Field(default_factory=list)
    refugees: list[str] = Field(default_factory=list)
    sponsor: str | None = None
    memory_choice: dict[str, Any] | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if data is None:
            return {}
        if not isinstance(data, dict):
            return data
        data = _split_known(cls, data, "extra")
        data["auto"] = bool(data.get("auto", False))
        data["preserved"] = bool(data.get("preserved", True))
        data["influence_multiplier"] = as_float(data.get("influence_multiplier"), 1.0)
        significance = data.get("significance")
        data["significance"] = as_float(significance, 0.0) if significance is not None else None
        data["disciplines"] = as_str_list(data.get("disciplines"))
        data["refugees"] = as_str_list(data.get("refugees"))
        for key in ("artifact_id", "artifact_name", "guild_id", "guild_name", "sponsor"):
            if data.get(key) is not None:
                data[key] = str(data[key])
        for key in ("curator", "story"):
            data[key] = str(data.get(key) or "")
        if not isinstance(data.get("memory_choice"), dict):
            data["memory_choice"] = None
        return data


_EFFECT_FIELDS = ("effect", "type", "path", "mode")


class MemoryChoice(BaseModel):
    """A choice recorded against a memory moment.

    ``effect`` is taken from the first present of effect/type/path/mode,
    case-folded. ``selection`` keeps the raw payload as given.
    """

    moment_id: str = ""
    effect: str = "memory"
    selection: dict[str, Any] = Field(default_factory=dict)

    legend_id: str | None = None
    title: str | None = None
    significance: float | None = None
    source: str | None = None

    school_id: str | None = None
    region: str | None = None
    focus: str | None = None
    cadre: list[str] = Field(default_factory=list)

    guild_id: str | None = None
    disciplines: list[str] = Field(default_factory=list)
    refugees: list[str] = Field(default_factory=list)
    sponsor: str | None = None

    name: str | None = None
    influence: float | None = None
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return data
        raw = dict(data)
        effect = "memory"
        for key in _EFFECT_FIELDS:
            value = raw.get(key)
            if value is not None and str(value).strip():
                effect = str(value).strip().casefold()
                break
        result: dict[str, Any] = {"selection": raw, "effect": effect}
        for key in ("moment_id", "legend_id", "title", "source", "school_id",
                    "region", "focus", "guild_id", "sponsor", "name"):
            if raw.get(key) is not None:
                result[key] = str(raw[key])
        for key in ("significance", "influence"):
            if raw.get(key) is not None:
                result[key] = as_float(raw[key], 0.0)
        for key in ("cadre", "disciplines", "refugees", "tags"):
            result[key] = as_str_list(raw.get(key))
        return result


# ---------------------------------------------------------------------------
# Legacy ledger records
# ---------------------------------------------------------------------------

class Legend(BaseModel):
    id: str
    title: str = ""
    significance: float = 1.0
    tags: list[str] = Field(default_factory=list)
    source: str = ""
    timestamp: float = 0.0


class School(BaseModel):
    id: str
    name: str = ""
    region: str = ""
    focus: str = ""
    cadre: list[str] = Field(default_factory=list)
    influence: float = 0.0
    seeded_at: float = 0.0


class Guild(BaseModel):
    id: str
    name: str = ""
    disciplines: list[str] = Field(default_factory=list)
    influence: float = 0.0
    refugee_cohort: list[str] = Field(default_factory=list)
    empowered_at: float = 0.0
    last_empowered: float = 0.0
    sponsor: str = ""


class Artifact(BaseModel):
    id: str
    name: str = ""
    discovered_at: float = 0.0
    catalogued_at: float = 0.0
    rarity: float = 0.0
    preserved: bool = True
    curator: str = ""
    significance: float = 1.0
    story: str = ""
    tags: list[str] = Field(default_factory=list)
    moment_id: str | None = None


class ChoiceEntry(BaseModel):
    timestamp: float
    selection: dict[str, Any] = Field(default_factory=dict)
    effects: dict[str, Any] = Field(default_factory=dict)


class MemoryMoment(BaseModel):
    id: str
    prompt: str = ""
    context: dict[str, Any] = Field(default_factory=dict)
    choices: list[ChoiceEntry] = Field(default_factory=list)
    resolved_at: float | None = None
    outcome: dict[str, Any] | None = None


class RefugeeIntegration(BaseModel):
    """Audit entry appended whenever refugee experts join a guild."""

    guild_id: str
    event_id: int
    value: float
    influence_gain: float
    refugees: list[str] = Field(default_factory=list)
    disciplines: list[str] = Field(default_factory=list)
    timestamp: float = 0.0


# ---------------------------------------------------------------------------
# Event records
# ---------------------------------------------------------------------------

TimelineState = Literal["started", "progress", "resolved"]


class TimelineEntry(BaseModel):
    time: float
    state: TimelineState
    elapsed: float | None = None
    remaining_duration: float | None = None
    auto: bool | None = None


class CrisisImpact(BaseModel):
    severity: float
    mitigation: float
    net_severity: float
    community_focus: float
    disruption: float
    population_loss: int
    infrastructure_loss: int
    resilience_tested: float
    recovery_index: float
    memory_effects: dict[str, Any] | None = None


class OpportunityOutcome(BaseModel):
    value: float
    type: str
    tags: list[str] = Field(default_factory=list)
    artifact: Artifact | None = None
    guild: Guild | None = None
    memory_effects: dict[str, Any] | None = None


class EventRecord(BaseModel):
    """Fields shared by crisis and opportunity instances."""

    id: int
    type: str
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] = Field(default_factory=dict)
    memory_prompt: str = ""
    started_at: float = 0.0
    elapsed: float = 0.0
    duration: int = 1
    remaining_duration: float = 1.0
    ended_at: float | None = None
    timeline: list[TimelineEntry] = Field(default_factory=list)


class CrisisEvent(EventRecord):
    kind: Literal["crisis"] = "crisis"
    severity: float = 0.0
    resolution: CrisisResolution | None = None
    outcome: CrisisImpact | None = None


class OpportunityEvent(EventRecord):
    kind: Literal["opportunity"] = "opportunity"
    value: float = 0.0
    resolution: OpportunityResolution | None = None
    outcome: OpportunityOutcome | None = None


# ---------------------------------------------------------------------------
# Score snapshots and result
# ---------------------------------------------------------------------------

class NodeRecord(BaseModel):
    """Detached view of one tech node, as read by the score aggregator."""

    id: str
    state: TechState = TechState.OPERABLE
    neighbors: list[str] = Field(default_factory=list)

    @field_validator("state", mode="before")
    @classmethod
    def _coerce_state(cls, value: Any) -> TechState:
        return TechState.from_name(value)


class GraphSnapshot(BaseModel):
    nodes: list[NodeRecord] = Field(default_factory=list)

    def node_records(self) -> list[NodeRecord]:
        return list(self.nodes)


class LedgerRecords(BaseModel):
    """Raw ledger arrays of a detached snapshot (e.g. a saved world)."""

    canonized_legends: list[dict[str, Any]] = Field(default_factory=list)
    seeded_schools: list[dict[str, Any]] = Field(default_factory=list)
    empowered_guilds: list[dict[str, Any]] = Field(default_factory=list)
    memory_moments: list[dict[str, Any]] = Field(default_factory=list)
    artifacts: list[dict[str, Any]] = Field(default_factory=list)


class ScoreBreakdown(BaseModel):
    preserved_pillars: int
    interlink_density: float
    artifact_count: int
    master_line_continuity: float


class LegacyScoreResult(BaseModel):
    preserved_pillars: int
    interlink_density: float
    artifact_count: int
    master_line_continuity: float
    total_score: float
    outcome: str
    breakdown: ScoreBreakdown
    thresholds: dict[str, float]
