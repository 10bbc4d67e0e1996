"""Event lifecycle engine: trigger, progress, resolve, memory choices.

Lifecycle of one event:
  1. trigger()   builds an instance from its definition (magnitude and duration
                 resolved once, "started" timeline entry) into the active list.
  2. progress()  adds elapsed simulated time to every active event and logs a
                 "progress" entry. Events whose remaining duration hits 0 are
                 auto-resolved with {"auto": true}, but only after the whole
                 batch has been updated.
  3. resolve()   moves the event to the resolved history exactly once, stamps
                 ended_at, logs "resolved" and derives the kind-specific outcome:
                   crisis      → CrisisImpact (losses, resilience tested, recovery)
                   opportunity → artifact catalogue / refugee guild integration
                 A memory_choice in the resolution is recorded against moment
                 "<kind>_<id>" and its effect lands in outcome.memory_effects.

Memory choices dispatch on effect/type/path/mode (first present, case-folded):
  canonization | canonize | canonised                  → legend
  school | school_seeding | seed_school | seeding       → school
  guild | empower_guild | guild_empowerment             → guild
  anything else                                         → neutral "memory" effect

Bad input (unknown kind/type/id, malformed payloads) returns None, never raises.
Every record handed out is a deep copy.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from ..hooks import Notifier
from ..models import (
    EVENT_KINDS,
    Artifact,
    ChoiceEntry,
    CrisisEvent,
    CrisisImpact,
    CrisisResolution,
    EventDefinition,
    Guild,
    Legend,
    MemoryChoice,
    MemoryMoment,
    OpportunityEvent,
    OpportunityOutcome,
    OpportunityResolution,
    School,
    TimelineEntry,
    TriggerOverrides,
    as_float,
    as_str_list,
    is_number,
    merge_unique,
)
from .definitions import EventDefinitionRegistry
from .ledger import LegacyLedger

logger = logging.getLogger(__name__)

EventInstance = CrisisEvent | OpportunityEvent

CANONIZATION_EFFECTS = {"canonization", "canonize", "canonised"}
SCHOOL_EFFECTS = {"school", "school_seeding", "seed_school", "seeding"}
GUILD_EFFECTS = {"guild", "empower_guild", "guild_empowerment"}


def _parse(model: type[BaseModel], payload: Any) -> Any:
    """Validate a caller payload, falling back to the model defaults."""
    try:
        return model.model_validate(payload if payload is not None else {})
    except ValidationError as e:
        logger.warning("ignoring malformed %s payload: %s", model.__name__, e)
        return model.model_validate({})


class EventLifecycleEngine:
    """Owns the simulated clock, the event id counter and the legacy ledger.

    Pass a seeded ``random.Random`` (or ``seed``) for reproducible draws.
    """

    def __init__(
        self,
        registry: EventDefinitionRegistry | None = None,
        ledger: LegacyLedger | None = None,
        *,
        rng: random.Random | None = None,
        seed: int | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.registry = registry if registry is not None else EventDefinitionRegistry()
        self.ledger = ledger if ledger is not None else LegacyLedger()
        self._rng = rng if rng is not None else random.Random(seed)
        self._notifier = notifier
        self._time = 0.0
        self._next_id = 1
        self._active: dict[str, list[EventInstance]] = {kind: [] for kind in EVENT_KINDS}
        self._resolved: dict[str, list[EventInstance]] = {kind: [] for kind in EVENT_KINDS}

    @property
    def time(self) -> float:
        """Simulated time accumulated through progress()."""
        return self._time

    def _emit(self, name: str, payload: BaseModel) -> None:
        if self._notifier is not None:
            self._notifier.emit(name, payload.model_copy(deep=True))

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def register_definition(
        self, kind: str, type_key: str, definition: EventDefinition | dict[str, Any] | None = None
    ) -> EventDefinition | None:
        return self.registry.register(kind, type_key, definition)

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------

    def _resolve_magnitude(self, definition: EventDefinition, override: float | None) -> float:
        if override is not None:
            return float(override)
        if definition.magnitude.is_constant:
            return definition.magnitude.min
        return self._rng.uniform(definition.magnitude.min, definition.magnitude.max)

    def _resolve_duration(self, definition: EventDefinition, override: float | None) -> int:
        if override is not None:
            return max(1, round(override))
        variance = definition.duration_variance
        if variance > 0:
            low = definition.base_duration - variance
            high = definition.base_duration + variance
            return max(1, round(self._rng.uniform(low, high)))
        return max(1, round(definition.base_duration))

    def trigger(
        self, kind: str, type_key: str, overrides: TriggerOverrides | dict[str, Any] | None = None
    ) -> EventInstance | None:
        """Start an event from its definition. Returns None for an unregistered type."""
        definition = self.registry.get(kind, type_key)
        if definition is None:
            logger.debug("trigger ignored: no %s definition %r", kind, type_key)
            return None

        parsed: TriggerOverrides = _parse(TriggerOverrides, overrides)
        magnitude = self._resolve_magnitude(
            definition, parsed.severity if kind == "crisis" else parsed.value
        )
        duration = self._resolve_duration(definition, parsed.duration)

        fields: dict[str, Any] = {
            "id": self._next_id,
            "type": type_key,
            "name": parsed.name or definition.name,
            "description": parsed.description if parsed.description is not None else definition.description,
            "tags": merge_unique(definition.default_tags, parsed.tags),
            "metadata": {**definition.metadata, **parsed.metadata},
            "context": dict(parsed.context),
            "memory_prompt": definition.memory_prompt,
            "started_at": self._time,
            "elapsed": 0.0,
            "duration": duration,
            "remaining_duration": float(duration),
            "timeline": [TimelineEntry(time=self._time, state="started", remaining_duration=float(duration))],
        }
        if kind == "crisis":
            event: EventInstance = CrisisEvent(severity=magnitude, **fields)
        else:
            event = OpportunityEvent(value=magnitude, **fields)

        self._next_id += 1
        self._active[kind].append(event)
        logger.info(
            "%s %s #%d triggered (magnitude=%.2f, duration=%d)",
            kind, type_key, event.id, magnitude, duration,
        )
        self._emit(f"{kind}_triggered", event)
        return event.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def progress(self, elapsed_ticks: float) -> list[EventInstance]:
        """Advance every active event. Returns the events that auto-resolved."""
        if not is_number(elapsed_ticks) or elapsed_ticks <= 0:
            return []

        self._time += elapsed_ticks
        finished: list[tuple[str, int]] = []
        for kind in EVENT_KINDS:
            for event in self._active[kind]:
                event.elapsed += elapsed_ticks
                event.remaining_duration = max(0.0, event.duration - event.elapsed)
                event.timeline.append(TimelineEntry(
                    time=self._time,
                    state="progress",
                    elapsed=event.elapsed,
                    remaining_duration=event.remaining_duration,
                ))
                if event.remaining_duration <= 0:
                    finished.append((kind, event.id))

        resolved: list[EventInstance] = []
        for kind, event_id in finished:
            result = self.resolve(kind, event_id, {"auto": True})
            if result is not None:
                resolved.append(result)
        return resolved

    # ------------------------------------------------------------------
    # Resolve
    # ------------------------------------------------------------------

    def _find_active(self, kind: str, identifier: Any) -> EventInstance | None:
        if isinstance(identifier, (CrisisEvent, OpportunityEvent)):
            identifier = identifier.id
        elif isinstance(identifier, Mapping):
            identifier = identifier.get("id")
        elif isinstance(identifier, str) and identifier.isdigit():
            identifier = int(identifier)
        if not isinstance(identifier, int) or isinstance(identifier, bool):
            return None
        for event in self._active.get(kind, []):
            if event.id == identifier:
                return event
        return None

    def resolve(
        self, kind: str, identifier: Any, resolution: Mapping[str, Any] | BaseModel | None = None
    ) -> EventInstance | None:
        """Finalise an active event. Returns None if no matching active event exists."""
        event = self._find_active(kind, identifier)
        if event is None:
            logger.debug("resolve ignored: no active %s %r", kind, identifier)
            return None

        self._active[kind] = [e for e in self._active[kind] if e is not event]
        event.ended_at = self._time
        event.remaining_duration = 0.0

        if isinstance(event, CrisisEvent):
            parsed_crisis: CrisisResolution = _parse(CrisisResolution, resolution)
            event.resolution = parsed_crisis
            outcome: CrisisImpact | OpportunityOutcome = self._crisis_impact(event, parsed_crisis)
            memory_choice = parsed_crisis.memory_choice
            auto = parsed_crisis.auto
        else:
            parsed_opportunity: OpportunityResolution = _parse(OpportunityResolution, resolution)
            event.resolution = parsed_opportunity
            outcome = self._opportunity_outcome(event, parsed_opportunity)
            memory_choice = parsed_opportunity.memory_choice
            auto = parsed_opportunity.auto

        event.timeline.append(TimelineEntry(
            time=self._time,
            state="resolved",
            elapsed=event.elapsed,
            remaining_duration=0.0,
            auto=auto,
        ))

        if memory_choice is not None:
            moment_id = str(memory_choice.get("moment_id") or f"{kind}_{event.id}")
            moment = self.record_memory_choice(
                moment_id,
                memory_choice,
                prompt=event.memory_prompt,
                context={"event_id": event.id, "kind": kind, "type": event.type},
            )
            outcome.memory_effects = dict(moment.outcome or {})

        event.outcome = outcome
        self._resolved[kind].append(event)
        logger.info("%s %s #%d resolved (auto=%s)", kind, event.type, event.id, auto)
        self._emit(f"{kind}_resolved", event)
        return event.model_copy(deep=True)

    def _crisis_impact(self, event: CrisisEvent, resolution: CrisisResolution) -> CrisisImpact:
        severity = event.severity
        mitigation = resolution.mitigation
        focus = resolution.community_focus
        net_severity = max(0.0, severity - mitigation)
        disruption = (severity + net_severity) / 2 * event.duration
        return CrisisImpact(
            severity=severity,
            mitigation=mitigation,
            net_severity=net_severity,
            community_focus=focus,
            disruption=disruption,
            population_loss=round(disruption * 1.5 / max(0.5, focus)),
            infrastructure_loss=round(disruption * focus),
            resilience_tested=net_severity * (1 + len(event.tags) * 0.1),
            recovery_index=max(0.0, focus * 5 - net_severity * 2),
        )

    def _opportunity_outcome(
        self, event: OpportunityEvent, resolution: OpportunityResolution
    ) -> OpportunityOutcome:
        outcome = OpportunityOutcome(value=event.value, type=event.type, tags=list(event.tags))
        context = event.context
        moment_id = None
        if resolution.memory_choice is not None:
            moment_id = str(resolution.memory_choice.get("moment_id") or f"opportunity_{event.id}")

        if event.type == "artifact":
            artifact_id = resolution.artifact_id or context.get("artifact_id")
            outcome.artifact = self.ledger.catalog_artifact(
                str(artifact_id) if artifact_id else None,
                name=resolution.artifact_name or context.get("artifact_name") or event.name,
                discovered_at=event.started_at,
                rarity=event.value,
                preserved=resolution.preserved,
                curator=resolution.curator,
                significance=resolution.significance if resolution.significance is not None else event.value,
                story=resolution.story or event.description,
                tags=event.tags,
                moment_id=moment_id,
                now=self._time,
            )
        elif event.type == "refugee_experts":
            guild_id = resolution.guild_id or context.get("guild_id")
            outcome.guild = self.ledger.integrate_refugees(
                str(guild_id) if guild_id else None,
                event_id=event.id,
                value=event.value,
                multiplier=resolution.influence_multiplier,
                name=resolution.guild_name or context.get("guild_name") or event.name,
                disciplines=merge_unique(as_str_list(context.get("disciplines")), resolution.disciplines),
                refugees=merge_unique(as_str_list(context.get("refugees")), resolution.refugees),
                sponsor=resolution.sponsor,
                now=self._time,
            )
        return outcome

    # ------------------------------------------------------------------
    # Memory choices
    # ------------------------------------------------------------------

    def record_memory_choice(
        self,
        moment_id: str | None,
        choice: MemoryChoice | Mapping[str, Any] | None,
        *,
        prompt: str = "",
        context: Mapping[str, Any] | None = None,
    ) -> MemoryMoment:
        """Append a choice to a memory moment (created on first use) and apply its effect."""
        if not moment_id:
            moment_id = f"moment_{self.ledger.memory_moment_count()}"
        parsed = self._parse_choice(choice)
        self.ledger.open_moment(moment_id, prompt, context)
        effects = self._apply_choice(parsed, moment_id)
        moment = self.ledger.append_choice(moment_id, ChoiceEntry(
            timestamp=self._time,
            selection=dict(parsed.selection),
            effects=effects,
        ))
        logger.debug("memory moment %s: %s choice recorded", moment_id, effects["type"])
        self._emit("memory_choice_recorded", moment)
        return moment

    @staticmethod
    def _parse_choice(choice: MemoryChoice | Mapping[str, Any] | None) -> MemoryChoice:
        if isinstance(choice, MemoryChoice):
            return choice
        return _parse(MemoryChoice, dict(choice) if isinstance(choice, Mapping) else {})

    def _apply_choice(self, choice: MemoryChoice, moment_id: str) -> dict[str, Any]:
        if choice.effect in CANONIZATION_EFFECTS:
            return self._apply_canonization(choice, moment_id)
        if choice.effect in SCHOOL_EFFECTS:
            return self._apply_school_seeding(choice)
        if choice.effect in GUILD_EFFECTS:
            return self._apply_guild_empowerment(choice)
        return {"type": "memory", "legacy_weight": 0.0}

    def _apply_canonization(
        self, choice: MemoryChoice | Mapping[str, Any], moment_id: str = ""
    ) -> dict[str, Any]:
        choice = self._parse_choice(choice)
        legend = self.ledger.canonize(
            choice.legend_id,
            title=choice.title or choice.name,
            significance=choice.significance,
            tags=choice.tags,
            source=choice.source or moment_id or None,
            now=self._time,
        )
        weight = max(1.0, legend.significance) + 0.1 * len(legend.tags)
        return {"type": "canonization", "legend": legend.model_dump(), "legacy_weight": weight}

    def _apply_school_seeding(self, choice: MemoryChoice | Mapping[str, Any]) -> dict[str, Any]:
        choice = self._parse_choice(choice)
        school = self.ledger.seed_school(
            choice.school_id,
            name=choice.name or choice.title,
            region=choice.region,
            focus=choice.focus,
            cadre=choice.cadre,
            influence=choice.influence,
            now=self._time,
        )
        weight = max(0.75, school.influence + 0.15 * len(school.cadre))
        return {"type": "school", "school": school.model_dump(), "legacy_weight": weight}

    def _apply_guild_empowerment(self, choice: MemoryChoice | Mapping[str, Any]) -> dict[str, Any]:
        choice = self._parse_choice(choice)
        guild = self.ledger.empower_guild(
            choice.guild_id,
            name=choice.name or choice.title,
            disciplines=choice.disciplines,
            influence=choice.influence,
            refugees=choice.refugees,
            sponsor=choice.sponsor,
            now=self._time,
        )
        weight = max(1.0, guild.influence) + 0.1 * len(guild.disciplines)
        return {"type": "guild", "guild": guild.model_dump(), "legacy_weight": weight}

    # ------------------------------------------------------------------
    # Read access (copies)
    # ------------------------------------------------------------------

    def _kinds(self, kind: str | None) -> tuple[str, ...]:
        if kind is None:
            return EVENT_KINDS
        return (kind,) if kind in EVENT_KINDS else ()

    def active_events(self, kind: str | None = None) -> list[EventInstance]:
        return [e.model_copy(deep=True) for k in self._kinds(kind) for e in self._active[k]]

    def resolved_events(self, kind: str | None = None) -> list[EventInstance]:
        return [e.model_copy(deep=True) for k in self._kinds(kind) for e in self._resolved[k]]

    def get_active_event(self, kind: str, identifier: Any) -> EventInstance | None:
        event = self._find_active(kind, identifier)
        return event.model_copy(deep=True) if event is not None else None

    def get_canonized_legends(self) -> list[Legend]:
        return self.ledger.get_legends()

    def get_seeded_schools(self) -> list[School]:
        return self.ledger.get_schools()

    def get_empowered_guilds(self) -> list[Guild]:
        return self.ledger.get_guilds()

    def get_artifacts(self) -> list[Artifact]:
        return self.ledger.get_artifacts()

    def get_memory_moments(self) -> list[MemoryMoment]:
        return self.ledger.get_memory_moments()

    def ledger_snapshot(self) -> dict[str, list[dict[str, Any]]]:
        return self.ledger.to_snapshot()

    def discovered_artifact_count(self) -> int:
        return self.ledger.discovered_artifact_count()

    def evaluate_master_line_continuity(self) -> float:
        return self.ledger.evaluate_master_line_continuity()

    # ------------------------------------------------------------------
    # Save contract
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self._time,
            "next_id": self._next_id,
            "definitions": {
                kind: [d.model_dump(mode="json") for d in entries]
                for kind, entries in self.registry.all().items()
            },
            "active": {k: [e.model_dump(mode="json") for e in v] for k, v in self._active.items()},
            "resolved": {k: [e.model_dump(mode="json") for e in v] for k, v in self._resolved.items()},
            "ledger": self.ledger.to_snapshot(),
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        rng: random.Random | None = None,
        seed: int | None = None,
        notifier: Notifier | None = None,
    ) -> EventLifecycleEngine:
        registry = EventDefinitionRegistry()
        definitions = data.get("definitions") or {}
        for kind in EVENT_KINDS:
            for entry in definitions.get(kind) or []:
                if isinstance(entry, Mapping) and entry.get("type"):
                    registry.register(kind, str(entry["type"]), dict(entry))

        engine = cls(
            registry,
            LegacyLedger.from_snapshot(data.get("ledger")),
            rng=rng,
            seed=seed,
            notifier=notifier,
        )
        engine._time = as_float(data.get("time"), 0.0)
        highest = 0
        for bucket, target in (("active", engine._active), ("resolved", engine._resolved)):
            stored = data.get(bucket) or {}
            for kind in EVENT_KINDS:
                model = CrisisEvent if kind == "crisis" else OpportunityEvent
                for entry in stored.get(kind) or []:
                    try:
                        event = model.model_validate(entry)
                    except ValidationError as e:
                        logger.warning("skipping malformed %s event: %s", kind, e)
                        continue
                    target[kind].append(event)
                    highest = max(highest, event.id)
        next_id = data.get("next_id")
        engine._next_id = max(next_id if isinstance(next_id, int) else 1, highest + 1)
        return engine
