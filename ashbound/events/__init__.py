"""Crisis/opportunity events and the legacy they leave behind.

  definitions  EventDefinitionRegistry with the built-in templates
                 (crises: epidemic, blight; opportunities: artifact, refugee_experts)
  engine       EventLifecycleEngine: trigger → progress → resolve → outcome
  ledger       LegacyLedger: legends, schools, guilds, artifacts, memory moments

The engine owns one ledger. Resolved events and memory choices are folded
into it; the score aggregator reads it back through
evaluate_master_line_continuity() and discovered_artifact_count().
"""

from .definitions import BUILTIN_DEFINITIONS, EventDefinitionRegistry  # noqa: F401
from .engine import EventInstance, EventLifecycleEngine  # noqa: F401
from .ledger import LegacyLedger, master_line_continuity  # noqa: F401
