"""File-based JSON storage.

Data layout:
  data/
    worlds/
      <slug>.json      Saved world: {"graph": [...], "events": {...}, "clock": {...}, "saved_at"}
    config.json        Simulation settings (seed, decay, clock, score tiers, definition overrides)

Slug rules: name → Unicode normalize → strip non-ASCII → lowercase →
replace non-alnum runs with hyphen → strip leading/trailing hyphens.

Config: get_config() returns defaults merged with stored values.
update_config() applies partial updates. Nested sections (decay.resilience,
score.thresholds, event_definitions.<kind>) merged key-by-key, scalars overwritten.
"""

# Re-export all public symbols so `from backend import storage` keeps working.

from .core import (  # noqa: F401
    data_dir,
    init_storage,
    slugify,
    worlds_dir,
)

from .worlds import (  # noqa: F401
    delete_world,
    get_world,
    list_worlds,
    save_world,
)

from .config import (  # noqa: F401
    get_config,
    update_config,
)
