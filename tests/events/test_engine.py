"""Tests for the event lifecycle engine."""

import random

import pytest

from ashbound.events import EventLifecycleEngine
from ashbound.hooks import Notifier
from ashbound.models import CrisisEvent, OpportunityEvent


@pytest.fixture
def engine() -> EventLifecycleEngine:
    return EventLifecycleEngine(rng=random.Random(7))


# ── trigger ──────────────────────────────────────────────


class TestTrigger:
    def test_builds_instance(self, engine: EventLifecycleEngine) -> None:
        event = engine.trigger("crisis", "epidemic", {"duration": 5, "severity": 2.0})
        assert isinstance(event, CrisisEvent)
        assert event.id == 1
        assert event.name == "Epidemic"
        assert event.severity == 2.0
        assert event.duration == 5
        assert event.remaining_duration == 5.0
        assert event.tags == ["disease", "population"]
        assert [t.state for t in event.timeline] == ["started"]

    def test_ids_are_monotonic_across_kinds(self, engine: EventLifecycleEngine) -> None:
        ids = [
            engine.trigger("crisis", "blight").id,
            engine.trigger("opportunity", "artifact").id,
            engine.trigger("crisis", "epidemic").id,
        ]
        assert ids == [1, 2, 3]

    def test_unknown_type_returns_none(self, engine: EventLifecycleEngine) -> None:
        assert engine.trigger("crisis", "dragon") is None
        assert engine.trigger("festival", "artifact") is None
        assert engine.active_events() == []

    def test_constant_magnitude(self, engine: EventLifecycleEngine) -> None:
        engine.register_definition("crisis", "quake", {"magnitude": 3, "base_duration": 2})
        event = engine.trigger("crisis", "quake")
        assert event.severity == 3.0
        assert event.duration == 2

    def test_drawn_magnitude_within_range(self, engine: EventLifecycleEngine) -> None:
        for _ in range(20):
            event = engine.trigger("opportunity", "artifact")
            assert 1.0 <= event.value <= 3.0
            assert 3 <= event.duration <= 5

    def test_same_seed_same_draws(self) -> None:
        a = EventLifecycleEngine(seed=11)
        b = EventLifecycleEngine(seed=11)
        for _ in range(5):
            ea = a.trigger("crisis", "blight")
            eb = b.trigger("crisis", "blight")
            assert (ea.severity, ea.duration) == (eb.severity, eb.duration)

    @pytest.mark.parametrize("override,expected", [(0.2, 1), (2.6, 3), (-4, 1)])
    def test_duration_override_rounded_with_floor(
        self, engine: EventLifecycleEngine, override: float, expected: int
    ) -> None:
        assert engine.trigger("crisis", "blight", {"duration": override}).duration == expected

    @pytest.mark.parametrize("override", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_overrides_use_definition(self, engine: EventLifecycleEngine, override: float) -> None:
        engine.register_definition("crisis", "quake", {"magnitude": 2, "base_duration": 3})
        event = engine.trigger("crisis", "quake", {"duration": override, "severity": override})
        assert event.duration == 3
        assert event.severity == 2.0

    def test_non_finite_definition_numbers_defaulted(self, engine: EventLifecycleEngine) -> None:
        d = engine.register_definition("crisis", "quake", {"base_duration": "inf", "duration_variance": float("nan")})
        assert d.base_duration == 5.0
        assert d.duration_variance == 0.0
        assert engine.trigger("crisis", "quake").duration == 5

    def test_overrides_merge_tags_and_keep_context(self, engine: EventLifecycleEngine) -> None:
        event = engine.trigger("opportunity", "artifact", {
            "name": "Lens of the First Kiln",
            "tags": ["glass", "relic"],
            "artifact_name": "Lens",
        })
        assert event.name == "Lens of the First Kiln"
        assert event.tags == ["discovery", "relic", "glass"]
        assert event.context == {"artifact_name": "Lens"}


# ── progress ─────────────────────────────────────────────


class TestProgress:
    def test_epidemic_auto_resolves(self, engine: EventLifecycleEngine) -> None:
        engine.trigger("crisis", "epidemic", {"duration": 5, "severity": 2.0})
        [event] = engine.progress(5)
        assert event.remaining_duration == 0
        assert event.ended_at == 5.0
        assert event.outcome.net_severity == 2.0
        assert event.outcome.disruption == 10.0
        assert event.outcome.population_loss == 15
        assert event.outcome.infrastructure_loss == 10
        assert event.outcome.resilience_tested == pytest.approx(2.4)
        assert event.outcome.recovery_index == 1.0
        assert event.resolution.auto is True
        assert [t.state for t in event.timeline] == ["started", "progress", "resolved"]
        assert engine.active_events() == []
        assert len(engine.resolved_events("crisis")) == 1

    def test_non_positive_is_noop(self, engine: EventLifecycleEngine) -> None:
        engine.trigger("crisis", "blight")
        assert engine.progress(0) == []
        assert engine.progress(-3) == []
        assert engine.time == 0.0
        assert engine.active_events()[0].elapsed == 0.0

    @pytest.mark.parametrize("elapsed", [float("nan"), float("inf"), "3", None])
    def test_malformed_elapsed_is_noop(self, engine: EventLifecycleEngine, elapsed) -> None:
        engine.trigger("crisis", "blight")
        assert engine.progress(elapsed) == []
        assert engine.time == 0.0
        assert len(engine.active_events()) == 1
        assert engine.active_events()[0].elapsed == 0.0

    def test_partial_progress(self, engine: EventLifecycleEngine) -> None:
        engine.trigger("crisis", "blight", {"duration": 4})
        assert engine.progress(1.5) == []
        event = engine.active_events("crisis")[0]
        assert event.elapsed == 1.5
        assert event.remaining_duration == 2.5

    def test_whole_batch_updated_before_resolution(self) -> None:
        notifier = Notifier()
        engine = EventLifecycleEngine(seed=1, notifier=notifier)
        engine.trigger("crisis", "epidemic", {"duration": 1})
        engine.trigger("opportunity", "artifact", {"duration": 9})
        seen: list[float] = []
        notifier.subscribe(
            "crisis_resolved",
            lambda _: seen.extend(e.elapsed for e in engine.active_events("opportunity")),
        )
        engine.progress(2)
        assert seen == [2.0]


# ── resolve ──────────────────────────────────────────────


class TestResolve:
    def test_unknown_identifier_leaves_active_untouched(self, engine: EventLifecycleEngine) -> None:
        engine.trigger("crisis", "blight")
        before = engine.active_events()
        assert engine.resolve("crisis", 99) is None
        assert engine.resolve("opportunity", 1) is None
        assert engine.resolve("crisis", "not-an-id") is None
        assert engine.active_events() == before

    def test_resolve_twice(self, engine: EventLifecycleEngine) -> None:
        event = engine.trigger("crisis", "blight")
        assert engine.resolve("crisis", event) is not None
        assert engine.resolve("crisis", event) is None
        assert len(engine.resolved_events()) == 1

    def test_identifier_forms(self, engine: EventLifecycleEngine) -> None:
        a = engine.trigger("crisis", "blight")
        engine.trigger("crisis", "blight")
        engine.trigger("crisis", "blight")
        assert engine.resolve("crisis", a).id == 1
        assert engine.resolve("crisis", "2").id == 2
        assert engine.resolve("crisis", {"id": 3}).id == 3

    def test_crisis_mitigation(self, engine: EventLifecycleEngine) -> None:
        event = engine.trigger("crisis", "blight", {"severity": 3.0, "duration": 4})
        resolved = engine.resolve("crisis", event.id, {"aid": 1.0, "community_focus": 2.0})
        impact = resolved.outcome
        assert impact.mitigation == 1.0
        assert impact.net_severity == 2.0
        assert impact.disruption == 10.0
        assert impact.population_loss == 8
        assert impact.infrastructure_loss == 20
        assert impact.recovery_index == 6.0
        assert resolved.resolution.auto is False
        assert resolved.remaining_duration == 0.0

    def test_over_mitigation_floors_at_zero(self, engine: EventLifecycleEngine) -> None:
        event = engine.trigger("crisis", "epidemic", {"severity": 1.0, "duration": 2})
        impact = engine.resolve("crisis", event.id, {"mitigation": 5, "community_focus": 0.1}).outcome
        assert impact.net_severity == 0.0
        assert impact.disruption == 1.0
        assert impact.population_loss == 3
        assert impact.resilience_tested == 0.0

    def test_artifact_catalogued(self, engine: EventLifecycleEngine) -> None:
        event = engine.trigger("opportunity", "artifact", {"value": 2.0})
        resolved = engine.resolve("opportunity", event.id, {"artifact_id": "lens", "curator": "Maren"})
        assert isinstance(resolved, OpportunityEvent)
        assert resolved.outcome.value == 2.0
        assert resolved.outcome.artifact.id == "lens"
        assert resolved.outcome.artifact.curator == "Maren"
        assert resolved.outcome.artifact.significance == 2.0
        assert engine.discovered_artifact_count() == 1

        again = engine.trigger("opportunity", "artifact", {"value": 1.0, "artifact_id": "lens"})
        engine.resolve("opportunity", again.id)
        assert engine.discovered_artifact_count() == 1
        assert engine.get_artifacts()[0].rarity == 1.0

    def test_artifact_auto_id(self, engine: EventLifecycleEngine) -> None:
        event = engine.trigger("opportunity", "artifact")
        assert engine.resolve("opportunity", event).outcome.artifact.id == "artifact_001"

    def test_refugee_guild_integration(self, engine: EventLifecycleEngine) -> None:
        event = engine.trigger("opportunity", "refugee_experts", {"value": 2.0, "disciplines": ["glass"]})
        resolved = engine.resolve("opportunity", event.id, {
            "guild_id": "lantern",
            "influence_multiplier": 1.5,
            "refugees": ["Ysolde"],
            "disciplines": ["glass", "optics"],
        })
        guild = resolved.outcome.guild
        assert guild.id == "lantern"
        assert guild.influence == 3.0
        assert guild.disciplines == ["glass", "optics"]
        assert guild.refugee_cohort == ["Ysolde"]
        assert len(engine.ledger.get_refugee_network()) == 1

    def test_plain_opportunity_has_no_entity(self, engine: EventLifecycleEngine) -> None:
        engine.register_definition("opportunity", "trade_fair", {"magnitude": 1})
        event = engine.trigger("opportunity", "trade_fair")
        outcome = engine.resolve("opportunity", event.id).outcome
        assert outcome.artifact is None
        assert outcome.guild is None
        assert outcome.type == "trade_fair"

    def test_memory_choice_in_resolution(self, engine: EventLifecycleEngine) -> None:
        event = engine.trigger("crisis", "blight")
        resolved = engine.resolve("crisis", event.id, {
            "memory_choice": {"effect": "Canonize", "title": "The Seed Vault", "tags": ["harvest"]},
        })
        effects = resolved.outcome.memory_effects
        assert effects["type"] == "canonization"
        assert effects["legend"]["source"] == "crisis_1"
        moment = engine.ledger.get_memory_moment("crisis_1")
        assert moment.prompt == event.memory_prompt
        assert moment.context["event_id"] == 1


# ── memory choices ───────────────────────────────────────


class TestMemoryChoices:
    def test_same_moment_accumulates(self, engine: EventLifecycleEngine) -> None:
        engine.record_memory_choice("m", {"effect": "school"})
        moment = engine.record_memory_choice("m", {"effect": "guild"})
        assert len(engine.get_memory_moments()) == 1
        assert [c.effects["type"] for c in moment.choices] == ["school", "guild"]
        assert moment.outcome["type"] == "guild"

    def test_default_moment_ids(self, engine: EventLifecycleEngine) -> None:
        assert engine.record_memory_choice(None, {}).id == "moment_0"
        assert engine.record_memory_choice("", {}).id == "moment_1"

    def test_canonization_merge_policies(self, engine: EventLifecycleEngine) -> None:
        first = engine._apply_canonization({"legend_id": "ember", "significance": 2.0, "tags": ["fire"]})
        second = engine._apply_canonization({"legend_id": "ember", "significance": 0.5, "tags": ["ash"]})
        assert first["legacy_weight"] == pytest.approx(2.1)
        assert second["legacy_weight"] == pytest.approx(1.2)
        [legend] = engine.get_canonized_legends()
        assert legend.significance == 0.5
        assert legend.tags == ["fire", "ash"]

    def test_school_weight(self, engine: EventLifecycleEngine) -> None:
        result = engine.record_memory_choice("m", {"type": "seed_school", "cadre": ["a", "b"]}).outcome
        assert result["type"] == "school"
        assert result["legacy_weight"] == pytest.approx(1.3)
        assert result["school"]["influence"] == 1.0

    def test_school_weight_floor(self, engine: EventLifecycleEngine) -> None:
        result = engine._apply_school_seeding({"influence": 0.1})
        assert result["legacy_weight"] == 0.75

    def test_guild_weight(self, engine: EventLifecycleEngine) -> None:
        result = engine.record_memory_choice(
            "m", {"mode": "EMPOWER_GUILD", "influence": 2.0, "disciplines": ["a", "b", "c"]}
        ).outcome
        assert result["type"] == "guild"
        assert result["legacy_weight"] == pytest.approx(2.3)

    def test_unknown_effect_is_neutral(self, engine: EventLifecycleEngine) -> None:
        moment = engine.record_memory_choice("m", {"effect": "whisper", "note": "kept"})
        assert moment.outcome == {"type": "memory", "legacy_weight": 0.0}
        assert moment.choices[0].selection == {"effect": "whisper", "note": "kept"}
        assert engine.get_canonized_legends() == []

    def test_memory_moments_count_towards_continuity(self, engine: EventLifecycleEngine) -> None:
        engine.record_memory_choice("m", {})
        assert engine.evaluate_master_line_continuity() == 0.25


# ── copies, hooks, save contract ─────────────────────────


def test_returned_events_are_copies(engine: EventLifecycleEngine) -> None:
    event = engine.trigger("crisis", "blight")
    event.tags.append("tampered")
    engine.active_events()[0].timeline.clear()
    stored = engine.get_active_event("crisis", event.id)
    assert "tampered" not in stored.tags
    assert len(stored.timeline) == 1


def test_hooks_emitted() -> None:
    notifier = Notifier()
    received: list[str] = []
    for name in ("crisis_triggered", "crisis_resolved", "memory_choice_recorded"):
        notifier.subscribe(name, lambda payload, name=name: received.append(name))
    engine = EventLifecycleEngine(seed=3, notifier=notifier)
    event = engine.trigger("crisis", "epidemic")
    engine.resolve("crisis", event.id, {"memory_choice": {}})
    assert received == ["crisis_triggered", "memory_choice_recorded", "crisis_resolved"]


def test_save_round_trip(engine: EventLifecycleEngine) -> None:
    engine.register_definition("crisis", "quake", {"magnitude": 4})
    engine.trigger("crisis", "blight", {"duration": 6})
    done = engine.trigger("opportunity", "artifact")
    engine.resolve("opportunity", done.id, {"memory_choice": {"effect": "school"}})
    engine.progress(2)

    restored = EventLifecycleEngine.from_dict(engine.to_dict(), seed=1)
    assert restored.time == 2.0
    assert restored.active_events() == engine.active_events()
    assert restored.resolved_events() == engine.resolved_events()
    assert restored.ledger_snapshot() == engine.ledger_snapshot()
    assert restored.registry.has("crisis", "quake")
    assert restored.trigger("crisis", "quake").id == 3


@pytest.mark.parametrize("stored", ["soon", float("nan"), [], None])
def test_restore_malformed_time(stored) -> None:
    engine = EventLifecycleEngine.from_dict({"time": stored})
    assert engine.time == 0.0
    assert engine.active_events() == []
