"""Legacy score: one number, and a tier, for what the world managed to keep.

  preserved_pillars       nodes not Forgotten                          × 4
  interlink_density       unique links / C(n, 2), clamped to [0, 1]    × 40
  artifact_count          artifacts catalogued                         × 6
  master_line_continuity  accumulated ledger weight                    × 8

Outcome tiers, highest qualifying wins; per-call overrides merge over these:
  ≥ 120 Eternal Lineage · ≥ 80 Resilient Hearth · ≥ 45 Flickering Echo · else Ashbound Silence

Inputs are read through two capabilities rather than concrete classes:
  NodeSource    node_records() → NodeRecord(id, state, neighbors)
                implemented by TechGraph and GraphSnapshot
  LedgerSource  discovered_artifact_count(), evaluate_master_line_continuity()
                implemented by LegacyLedger and EventLifecycleEngine
A detached LedgerRecords snapshot is recomputed from its raw arrays with the
same formula the live ledger uses. Nothing here mutates its inputs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sized
from typing import Any, Protocol

from .events.ledger import master_line_continuity as continuity_formula
from .models import (
    LedgerRecords,
    LegacyScoreResult,
    NodeRecord,
    ScoreBreakdown,
    TechState,
    is_number,
)

logger = logging.getLogger(__name__)

PILLAR_WEIGHT = 4.0
DENSITY_WEIGHT = 40.0
ARTIFACT_WEIGHT = 6.0
CONTINUITY_WEIGHT = 8.0

FALLBACK_OUTCOME = "Ashbound Silence"
DEFAULT_THRESHOLDS: dict[str, float] = {
    "Eternal Lineage": 120.0,
    "Resilient Hearth": 80.0,
    "Flickering Echo": 45.0,
    FALLBACK_OUTCOME: 0.0,
}


class NodeSource(Protocol):
    def node_records(self) -> Iterable[NodeRecord]: ...


class LedgerSource(Protocol):
    def discovered_artifact_count(self) -> int: ...

    def evaluate_master_line_continuity(self) -> float: ...


def merge_thresholds(
    base: Mapping[str, float], overrides: Mapping[str, Any] | None
) -> dict[str, float]:
    """Overlay numeric *overrides* on *base*; non-numeric entries are dropped."""
    merged = {label: float(value) for label, value in base.items()}
    for label, value in (overrides or {}).items():
        if is_number(value):
            merged[str(label)] = float(value)
        else:
            logger.warning("ignoring non-numeric threshold %r=%r", label, value)
    return merged


def preserved_pillars(records: Iterable[NodeRecord]) -> int:
    return sum(1 for r in records if r.state is not TechState.FORGOTTEN)


def interlink_density(records: Iterable[NodeRecord]) -> float:
    """Unique undirected links over the number of possible pairs."""
    records = list(records)
    ids = {r.id for r in records}
    if len(ids) <= 1:
        return 0.0
    pairs: set[frozenset[str]] = set()
    for record in records:
        for neighbor in record.neighbors:
            if neighbor != record.id and neighbor in ids:
                pairs.add(frozenset((record.id, neighbor)))
    possible = len(ids) * (len(ids) - 1) / 2
    return min(1.0, max(0.0, len(pairs) / possible))


def outcome_for(total: float, thresholds: Mapping[str, float]) -> str:
    for label, minimum in sorted(thresholds.items(), key=lambda item: item[1], reverse=True):
        if total >= minimum:
            return label
    return FALLBACK_OUTCOME


class LegacyScore:
    """Weighted legacy score over a read-only snapshot of graph and ledger."""

    def __init__(self, thresholds: Mapping[str, Any] | None = None) -> None:
        self.thresholds = merge_thresholds(DEFAULT_THRESHOLDS, thresholds)

    def calculate(
        self,
        graph: NodeSource | None = None,
        ledger: LedgerSource | LedgerRecords | None = None,
        *,
        artifacts: Sized | None = None,
        artifact_count: int | None = None,
        master_line_continuity: float | None = None,
        thresholds: Mapping[str, Any] | None = None,
    ) -> LegacyScoreResult:
        records = list(graph.node_records()) if graph is not None else []
        pillars = preserved_pillars(records)
        density = interlink_density(records)

        if artifacts is not None:
            artifacts_found = len(artifacts)
        elif is_number(artifact_count):
            artifacts_found = int(artifact_count)
        elif isinstance(ledger, LedgerRecords):
            artifacts_found = len(ledger.artifacts)
        elif ledger is not None:
            artifacts_found = ledger.discovered_artifact_count()
        else:
            artifacts_found = 0

        if is_number(master_line_continuity):
            continuity = float(master_line_continuity)
        elif isinstance(ledger, LedgerRecords):
            continuity = continuity_formula(
                ledger.canonized_legends,
                ledger.seeded_schools,
                ledger.empowered_guilds,
                len(ledger.memory_moments),
            )
        elif ledger is not None:
            continuity = ledger.evaluate_master_line_continuity()
        else:
            continuity = 0.0

        total = (
            pillars * PILLAR_WEIGHT
            + density * DENSITY_WEIGHT
            + artifacts_found * ARTIFACT_WEIGHT
            + continuity * CONTINUITY_WEIGHT
        )
        tiers = merge_thresholds(self.thresholds, thresholds)
        outcome = outcome_for(total, tiers)
        logger.debug("legacy score %.2f -> %s", total, outcome)

        return LegacyScoreResult(
            preserved_pillars=pillars,
            interlink_density=density,
            artifact_count=artifacts_found,
            master_line_continuity=continuity,
            total_score=total,
            outcome=outcome,
            breakdown=ScoreBreakdown(
                preserved_pillars=pillars,
                interlink_density=density,
                artifact_count=artifacts_found,
                master_line_continuity=continuity,
            ),
            thresholds=tiers,
        )


def calculate(
    graph: NodeSource | None = None,
    ledger: LedgerSource | LedgerRecords | None = None,
    **kwargs: Any,
) -> LegacyScoreResult:
    """Score with the default thresholds."""
    return LegacyScore().calculate(graph, ledger, **kwargs)
