"""Tests for ashbound.tech_graph: decay/relearn, links, (de)serialization."""

import pytest

from ashbound.models import ResilienceScore, TechState
from ashbound.tech_graph import TechGraph, TechNode, create_link, disconnect


def _graph(*ids: str) -> TechGraph:
    return TechGraph(TechNode(i) for i in ids)


# ── decay ────────────────────────────────────────────────


class TestDecay:
    def test_steps_after_resistance_ticks(self) -> None:
        node = TechNode("smithing")
        assert node.apply_decay() is TechState.OPERABLE
        assert node.apply_decay() is TechState.OPERABLE
        assert node.apply_decay() is TechState.FADING
        assert node.decay_progress == 0

    def test_resistance_read_from_pre_transition_state(self) -> None:
        node = TechNode("x", resilience=ResilienceScore(operable_resistance=1, fading_resistance=2))
        assert node.apply_decay() is TechState.FADING
        assert node.apply_decay() is TechState.FADING
        assert node.apply_decay() is TechState.DORMANT

    def test_reaches_forgotten_and_stays(self) -> None:
        node = TechNode("x")
        for _ in range(3 + 4 + 6):
            node.apply_decay()
        assert node.state is TechState.FORGOTTEN
        assert node.decay_progress == 0
        for _ in range(10):
            assert node.apply_decay() is TechState.FORGOTTEN
            assert node.decay_progress == 0

    def test_forgotten_node_built_with_progress_pins_zero(self) -> None:
        assert TechNode("x", state="Forgotten", decay_progress=4).decay_progress == 0


class TestRelearn:
    def test_zero_steps_is_noop(self) -> None:
        node = TechNode("x", state="Dormant", decay_progress=2)
        assert node.relearn(0) is TechState.DORMANT
        assert node.decay_progress == 2

    def test_steps_walk_back(self) -> None:
        node = TechNode("x", state="Forgotten")
        assert node.relearn(2) is TechState.FADING

    def test_stops_at_operable(self) -> None:
        node = TechNode("x", state="Dormant", decay_progress=3)
        assert node.relearn(10) is TechState.OPERABLE
        assert node.decay_progress == 0

    def test_progress_zero_after_decaying_back(self) -> None:
        node = TechNode("x", state="Fading", decay_progress=2)
        node.relearn(1)
        for _ in range(3):
            node.apply_decay()
        assert node.state is TechState.FADING
        assert node.decay_progress == 0


# ── links ────────────────────────────────────────────────


class TestLinks:
    def test_no_parallel_edges(self) -> None:
        g = _graph("a", "b")
        first = g.create_link("a", "b")
        second = g.create_link("b", "a")
        assert first is second
        assert len(g.links()) == 1
        assert [n.id for n in g.get_neighbors("a")] == ["b"]

    def test_self_loop_and_missing_endpoint(self) -> None:
        g = _graph("a")
        node = g.get_node("a")
        assert create_link(node, node) is None
        assert create_link(node, None) is None
        assert g.create_link("a", "ghost") is None
        assert node.get_neighbors() == []

    def test_metadata_only_updated_when_supplied(self) -> None:
        g = _graph("a", "b")
        link = g.create_link("a", "b", {"shared": "tools"})
        g.create_link("a", "b")
        assert link.metadata == {"shared": "tools"}
        g.create_link("a", "b", {"strength": 2})
        assert link.metadata == {"shared": "tools", "strength": 2}

    def test_disconnect_removes_from_both_ends(self) -> None:
        g = _graph("a", "b")
        link = g.create_link("a", "b")
        disconnect(link)
        assert not link.is_connected
        assert g.get_neighbors("a") == []
        assert g.get_neighbors("b") == []

    def test_remove_node_disconnects(self) -> None:
        g = _graph("a", "b", "c")
        g.create_link("a", "b")
        g.create_link("b", "c")
        assert g.remove_node("b")
        assert g.get_neighbors("a") == []
        assert not g.remove_node("b")

    def test_neighbors_in_registration_order(self) -> None:
        g = _graph("hub", "x", "y", "z")
        for other in ("z", "x", "y"):
            g.create_link("hub", other)
        assert g.get_node("hub").neighbor_ids() == ["z", "x", "y"]

    def test_add_node_keeps_existing(self) -> None:
        g = TechGraph()
        first = g.add_node(TechNode("a", "First"))
        assert g.add_node(TechNode("a", "Second")) is first
        assert g.get_node("a").name == "First"


def test_decay_all_reports_changed_ids() -> None:
    g = TechGraph([
        TechNode("fast", resilience=ResilienceScore(operable_resistance=1)),
        TechNode("slow"),
    ])
    assert g.decay_all() == ["fast"]
    assert g.get_node("slow").decay_progress == 1


# ── serialization ────────────────────────────────────────


class TestSerialization:
    def test_round_trip_preserves_neighbor_order(self) -> None:
        g = _graph("a", "b", "c", "d")
        g.create_link("a", "c")
        g.create_link("a", "b")
        g.create_link("d", "a")
        g.create_link("b", "c")
        g.get_node("c").apply_decay()
        first = g.serialize()
        again = TechGraph.deserialize(first).serialize()
        assert again == first
        assert first[0]["neighbors"] == ["c", "b", "d"]

    def test_record_shape(self) -> None:
        record = TechNode("glass", "Glassblowing", "Dormant").to_dict()
        assert record == {
            "id": "glass",
            "name": "Glassblowing",
            "state": "Dormant",
            "decay_progress": 0,
            "resilience": {"operable_resistance": 3, "fading_resistance": 4, "dormant_resistance": 6},
            "neighbors": [],
        }

    def test_lenient_read(self) -> None:
        g = TechGraph.deserialize([
            {"id": "a", "state": "fAdInG", "neighbors": ["b", "ghost"]},
            {"id": "b", "state": "Molten", "resilience": {"fading_resistance": 0}},
            {"name": "no id"},
            "garbage",
        ])
        assert len(g) == 2
        assert g.get_node("a").state is TechState.FADING
        assert g.get_node("b").state is TechState.OPERABLE
        assert g.get_node("b").resilience.fading_resistance == 1
        assert g.get_node("a").neighbor_ids() == ["b"]
        assert g.get_node("b").neighbor_ids() == ["a"]

    def test_non_finite_resilience_defaulted(self) -> None:
        g = TechGraph.deserialize([
            {"id": "a", "resilience": {"operable_resistance": float("nan"), "fading_resistance": "inf"}},
            {"id": "b", "resilience": {"dormant_resistance": float("-inf")}},
        ])
        assert g.get_node("a").resilience.operable_resistance == 3
        assert g.get_node("a").resilience.fading_resistance == 4
        assert g.get_node("b").resilience.dormant_resistance == 6

    def test_duplicate_id_merges_neighbors(self) -> None:
        g = TechGraph.deserialize([
            {"id": "a", "name": "First", "neighbors": ["b"]},
            {"id": "a", "name": "Second", "neighbors": ["c", "b"]},
            {"id": "b"},
            {"id": "c"},
        ])
        assert len(g) == 3
        assert g.get_node("a").name == "First"
        assert g.get_node("a").neighbor_ids() == ["b", "c"]
        assert g.get_node("c").neighbor_ids() == ["a"]

    def test_default_resilience_fills_missing_fields(self) -> None:
        base = ResilienceScore(operable_resistance=9, fading_resistance=9, dormant_resistance=9)
        g = TechGraph.deserialize([{"id": "a", "resilience": {"dormant_resistance": 2}}], base)
        assert g.get_node("a").resilience.model_dump() == {
            "operable_resistance": 9,
            "fading_resistance": 9,
            "dormant_resistance": 2,
        }

    def test_inconsistent_lookup_raises(self) -> None:
        a = TechNode.from_dict({"id": "a", "neighbors": ["b"]})
        with pytest.raises(ValueError):
            a.resolve_pending_links({"b": TechNode("c")})
