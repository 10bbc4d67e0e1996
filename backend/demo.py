"""Create a demo world for development/testing."""

import shutil

from ashbound.tech_graph import TechNode
from ashbound.world import World

from backend import session, storage

DEMO_NAME = "The Ember Vale"

DEMO_TECHS = [
    {"id": "smithing", "name": "Smithing"},
    {"id": "masonry", "name": "Masonry"},
    {"id": "herbalism", "name": "Herbalism", "state": "Fading"},
    {"id": "irrigation", "name": "Irrigation"},
    {"id": "glassblowing", "name": "Glassblowing", "state": "Dormant"},
    {"id": "star_charts", "name": "Star Charts", "state": "Forgotten"},
]

DEMO_LINKS = [
    ("smithing", "masonry", {"shared": "tools"}),
    ("masonry", "irrigation", {"shared": "aqueducts"}),
    ("herbalism", "irrigation", {}),
    ("smithing", "glassblowing", {"shared": "furnaces"}),
    ("glassblowing", "star_charts", {"shared": "lenses"}),
]


def create_demo_world() -> World:
    """Wipe saved worlds, build a small settlement and save it as the demo."""
    if storage.worlds_dir().exists():
        shutil.rmtree(storage.worlds_dir())
    storage.worlds_dir().mkdir(parents=True, exist_ok=True)

    world = session.reset_world()
    for tech in DEMO_TECHS:
        world.graph.add_node(TechNode(
            tech["id"], tech["name"], tech.get("state", "Operable"), world.new_resilience()
        ))
    for a, b, metadata in DEMO_LINKS:
        world.graph.create_link(a, b, metadata)

    engine = world.engine
    blight = engine.trigger("crisis", "blight", {"severity": 2.0, "duration": 6})
    engine.resolve("crisis", blight.id, {
        "mitigation": 0.5,
        "community_focus": 1.5,
        "memory_choice": {
            "effect": "canonization",
            "title": "The Seed Vault of Hollin",
            "significance": 2.0,
            "tags": ["harvest", "sacrifice"],
        },
    })

    relic = engine.trigger("opportunity", "artifact", {"value": 2.5, "artifact_name": "Lens of the First Kiln"})
    engine.resolve("opportunity", relic.id, {"curator": "Maren", "story": "Pulled from the cold furnace."})

    exiles = engine.trigger("opportunity", "refugee_experts", {
        "value": 2.0,
        "disciplines": ["glasswork"],
        "refugees": ["Ysolde", "Tamsin"],
    })
    engine.resolve("opportunity", exiles.id, {
        "guild_name": "Lantern Guild",
        "memory_choice": {
            "effect": "school",
            "name": "Kiln School",
            "region": "east ridge",
            "focus": "glassblowing",
            "cadre": ["Ysolde"],
        },
    })

    # Leave one crisis running so the clock has something to drive
    engine.trigger("crisis", "epidemic", {"severity": 1.5, "duration": 4})

    session.save_current(DEMO_NAME)
    return world
