"""Tests for ashbound.world: composition and the save/load contract."""

from ashbound.models import ResilienceScore, TechState
from ashbound.tech_graph import TechNode
from ashbound.world import World


def _populated_world() -> World:
    world = World(seed=4, time_scale=1.0)
    for tech_id in ("smithing", "masonry", "herbalism"):
        world.graph.add_node(TechNode(tech_id, resilience=world.new_resilience()))
    world.graph.create_link("smithing", "masonry", {"shared": "tools"})
    world.graph.create_link("masonry", "herbalism")
    world.engine.trigger("crisis", "blight", {"duration": 10})
    relic = world.engine.trigger("opportunity", "artifact", {"duration": 1})
    world.engine.resolve("opportunity", relic.id, {
        "memory_choice": {"effect": "canonization", "title": "Lens of the First Kiln"},
    })
    world.advance(2.5)
    return world


def test_advance_drives_engine_and_decay() -> None:
    world = _populated_world()
    assert world.engine.time == 2.5
    assert world.clock.ticks == 2
    assert world.graph.get_node("smithing").decay_progress == 2


def test_round_trip() -> None:
    world = _populated_world()
    data = world.to_dict()
    restored = World.from_dict(data)
    assert restored.to_dict() == data
    assert restored.score() == world.score()
    assert restored.graph.get_node("masonry").neighbor_ids() == ["smithing", "herbalism"]


def test_restored_world_keeps_running() -> None:
    restored = World.from_dict(_populated_world().to_dict())
    restored.advance(1)
    assert restored.clock.ticks == 3
    assert restored.graph.get_node("smithing").state is TechState.FADING


def test_default_resilience_used_for_new_nodes() -> None:
    world = World(default_resilience=ResilienceScore(operable_resistance=1))
    node = world.graph.add_node(TechNode("x", resilience=world.new_resilience()))
    world.advance(1)
    assert node.state is TechState.FADING
    assert world.new_resilience() is not world.new_resilience()


def test_score_uses_world_thresholds() -> None:
    world = World(thresholds={"Ashbound Silence": 0, "Flickering Echo": 1})
    world.graph.add_node(TechNode("x"))
    assert world.score().outcome == "Flickering Echo"
    assert world.score({"Flickering Echo": 10}).outcome == "Ashbound Silence"
