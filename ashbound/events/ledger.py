"""Legacy ledger: legends, schools, guilds, artifacts and memory moments.

Every record is upserted by id. Re-using an id merges into the stored record:
  influence      adds up across contributions (schools, guilds)
  list fields    ordered union (tags, cadre, disciplines, refugee_cohort)
  scalar fields  overwritten when supplied, kept when absent
  first-seen     seeded_at / empowered_at / discovered_at never move

Missing ids are generated as "<kind>_%03d" from the collection size + 1.

master_line_continuity() is the one formula for the ledger's accumulated
legacy weight. It reads plain mappings so the live ledger and any detached
snapshot (see score.py) go through exactly the same arithmetic.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from ..models import (
    Artifact,
    ChoiceEntry,
    Guild,
    LedgerRecords,
    Legend,
    MemoryMoment,
    RefugeeIntegration,
    School,
    as_float,
    merge_unique,
)

logger = logging.getLogger(__name__)

DEFAULT_SIGNIFICANCE = 1.0
DEFAULT_INFLUENCE = 1.0


def _count(value: Any) -> int:
    return len(value) if isinstance(value, (list, tuple, set)) else 0


def master_line_continuity(
    legends: Iterable[Mapping[str, Any]],
    schools: Iterable[Mapping[str, Any]],
    guilds: Iterable[Mapping[str, Any]],
    moment_count: int,
) -> float:
    """Σ legends + Σ schools + Σ guilds + 0.25 per memory moment."""
    total = 0.0
    for legend in legends:
        total += max(0.5, as_float(legend.get("significance"), DEFAULT_SIGNIFICANCE))
        total += 0.15 * _count(legend.get("tags"))
    for school in schools:
        total += max(0.25, as_float(school.get("influence"), 0.0) * 0.75 + 0.2 * _count(school.get("cadre")))
    for guild in guilds:
        total += max(0.5, as_float(guild.get("influence"), 0.0))
        total += 0.1 * _count(guild.get("disciplines"))
        total += 0.15 * _count(guild.get("refugee_cohort"))
    total += 0.25 * moment_count
    return total


def _load(model: type[BaseModel], entries: Any) -> list[Any]:
    loaded = []
    for entry in entries if isinstance(entries, list) else []:
        try:
            loaded.append(model.model_validate(entry))
        except ValidationError as e:
            logger.warning("skipping malformed %s record: %s", model.__name__, e)
    return loaded


class LegacyLedger:
    def __init__(self) -> None:
        self._legends: dict[str, Legend] = {}
        self._schools: dict[str, School] = {}
        self._guilds: dict[str, Guild] = {}
        self._artifacts: dict[str, Artifact] = {}
        self._moments: dict[str, MemoryMoment] = {}
        self._refugee_network: list[RefugeeIntegration] = []

    @staticmethod
    def _next_id(prefix: str, collection: Mapping[str, Any]) -> str:
        n = len(collection) + 1
        while f"{prefix}_{n:03d}" in collection:
            n += 1
        return f"{prefix}_{n:03d}"

    # ------------------------------------------------------------------
    # Upserts
    # ------------------------------------------------------------------

    def canonize(
        self,
        legend_id: str | None = None,
        *,
        title: str | None = None,
        significance: float | None = None,
        tags: Iterable[str] = (),
        source: str | None = None,
        now: float = 0.0,
    ) -> Legend:
        legend_id = legend_id or self._next_id("legend", self._legends)
        legend = self._legends.get(legend_id)
        if legend is None:
            legend = Legend(id=legend_id, timestamp=now)
            self._legends[legend_id] = legend
        if title:
            legend.title = title
        if significance is not None:
            legend.significance = significance
        if source:
            legend.source = source
        legend.tags = merge_unique(legend.tags, list(tags))
        legend.timestamp = now
        logger.debug("legend %s canonized (significance=%s)", legend_id, legend.significance)
        return legend.model_copy(deep=True)

    def seed_school(
        self,
        school_id: str | None = None,
        *,
        name: str | None = None,
        region: str | None = None,
        focus: str | None = None,
        cadre: Iterable[str] = (),
        influence: float | None = None,
        now: float = 0.0,
    ) -> School:
        school_id = school_id or self._next_id("school", self._schools)
        school = self._schools.get(school_id)
        if school is None:
            school = School(id=school_id, seeded_at=now)
            self._schools[school_id] = school
        if name:
            school.name = name
        if region:
            school.region = region
        if focus:
            school.focus = focus
        school.cadre = merge_unique(school.cadre, list(cadre))
        school.influence += DEFAULT_INFLUENCE if influence is None else influence
        logger.debug("school %s seeded (influence=%s)", school_id, school.influence)
        return school.model_copy(deep=True)

    def empower_guild(
        self,
        guild_id: str | None = None,
        *,
        name: str | None = None,
        disciplines: Iterable[str] = (),
        influence: float | None = None,
        refugees: Iterable[str] = (),
        sponsor: str | None = None,
        now: float = 0.0,
    ) -> Guild:
        guild_id = guild_id or self._next_id("guild", self._guilds)
        guild = self._guilds.get(guild_id)
        if guild is None:
            guild = Guild(id=guild_id, empowered_at=now)
            self._guilds[guild_id] = guild
        if name:
            guild.name = name
        if sponsor:
            guild.sponsor = sponsor
        guild.disciplines = merge_unique(guild.disciplines, list(disciplines))
        guild.refugee_cohort = merge_unique(guild.refugee_cohort, list(refugees))
        guild.influence += DEFAULT_INFLUENCE if influence is None else influence
        guild.last_empowered = now
        logger.debug("guild %s empowered (influence=%s)", guild_id, guild.influence)
        return guild.model_copy(deep=True)

    def integrate_refugees(
        self,
        guild_id: str | None = None,
        *,
        event_id: int,
        value: float,
        multiplier: float = 1.0,
        name: str | None = None,
        disciplines: Iterable[str] = (),
        refugees: Iterable[str] = (),
        sponsor: str | None = None,
        now: float = 0.0,
    ) -> Guild:
        """Fold a refugee-experts arrival into a guild and log it to the refugee network."""
        disciplines = list(disciplines)
        refugees = list(refugees)
        gain = value * multiplier
        guild = self.empower_guild(
            guild_id,
            name=name,
            disciplines=disciplines,
            influence=gain,
            refugees=refugees,
            sponsor=sponsor,
            now=now,
        )
        self._refugee_network.append(RefugeeIntegration(
            guild_id=guild.id,
            event_id=event_id,
            value=value,
            influence_gain=gain,
            refugees=refugees,
            disciplines=disciplines,
            timestamp=now,
        ))
        return guild

    def catalog_artifact(
        self,
        artifact_id: str | None = None,
        *,
        name: str | None = None,
        discovered_at: float = 0.0,
        rarity: float | None = None,
        preserved: bool | None = None,
        curator: str | None = None,
        significance: float | None = None,
        story: str | None = None,
        tags: Iterable[str] = (),
        moment_id: str | None = None,
        now: float = 0.0,
    ) -> Artifact:
        artifact_id = artifact_id or self._next_id("artifact", self._artifacts)
        artifact = self._artifacts.get(artifact_id)
        if artifact is None:
            artifact = Artifact(id=artifact_id, discovered_at=discovered_at)
            self._artifacts[artifact_id] = artifact
        if name:
            artifact.name = name
        if rarity is not None:
            artifact.rarity = rarity
        if preserved is not None:
            artifact.preserved = preserved
        if curator:
            artifact.curator = curator
        if significance is not None:
            artifact.significance = significance
        if story:
            artifact.story = story
        if moment_id:
            artifact.moment_id = moment_id
        artifact.tags = merge_unique(artifact.tags, list(tags))
        artifact.catalogued_at = now
        logger.debug("artifact %s catalogued (rarity=%s)", artifact_id, artifact.rarity)
        return artifact.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Memory moments
    # ------------------------------------------------------------------

    def open_moment(self, moment_id: str, prompt: str = "", context: Mapping[str, Any] | None = None) -> None:
        """Create the moment on first use; later calls only fill a missing prompt/context."""
        moment = self._moments.get(moment_id)
        if moment is None:
            self._moments[moment_id] = MemoryMoment(id=moment_id, prompt=prompt, context=dict(context or {}))
            return
        if prompt and not moment.prompt:
            moment.prompt = prompt
        for key, value in (context or {}).items():
            moment.context.setdefault(key, value)

    def append_choice(self, moment_id: str, entry: ChoiceEntry) -> MemoryMoment:
        self.open_moment(moment_id)
        moment = self._moments[moment_id]
        moment.choices.append(entry)
        moment.resolved_at = entry.timestamp
        moment.outcome = dict(entry.effects)
        return moment.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Read access (copies)
    # ------------------------------------------------------------------

    def get_legends(self) -> list[Legend]:
        return [r.model_copy(deep=True) for r in self._legends.values()]

    def get_schools(self) -> list[School]:
        return [r.model_copy(deep=True) for r in self._schools.values()]

    def get_guilds(self) -> list[Guild]:
        return [r.model_copy(deep=True) for r in self._guilds.values()]

    def get_artifacts(self) -> list[Artifact]:
        return [r.model_copy(deep=True) for r in self._artifacts.values()]

    def get_memory_moments(self) -> list[MemoryMoment]:
        return [r.model_copy(deep=True) for r in self._moments.values()]

    def get_memory_moment(self, moment_id: str) -> MemoryMoment | None:
        moment = self._moments.get(moment_id)
        return moment.model_copy(deep=True) if moment is not None else None

    def get_refugee_network(self) -> list[RefugeeIntegration]:
        return [r.model_copy(deep=True) for r in self._refugee_network]

    def memory_moment_count(self) -> int:
        return len(self._moments)

    def discovered_artifact_count(self) -> int:
        return len(self._artifacts)

    def evaluate_master_line_continuity(self) -> float:
        return master_line_continuity(
            [r.model_dump() for r in self._legends.values()],
            [r.model_dump() for r in self._schools.values()],
            [r.model_dump() for r in self._guilds.values()],
            len(self._moments),
        )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_records(self) -> LedgerRecords:
        snapshot = self.to_snapshot()
        return LedgerRecords(
            canonized_legends=snapshot["canonized_legends"],
            seeded_schools=snapshot["seeded_schools"],
            empowered_guilds=snapshot["empowered_guilds"],
            memory_moments=snapshot["memory_moments"],
            artifacts=snapshot["artifacts"],
        )

    def to_snapshot(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "canonized_legends": [r.model_dump() for r in self._legends.values()],
            "seeded_schools": [r.model_dump() for r in self._schools.values()],
            "empowered_guilds": [r.model_dump() for r in self._guilds.values()],
            "artifacts": [r.model_dump() for r in self._artifacts.values()],
            "memory_moments": [r.model_dump() for r in self._moments.values()],
            "refugee_network": [r.model_dump() for r in self._refugee_network],
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any] | None) -> LegacyLedger:
        ledger = cls()
        data = data or {}
        for legend in _load(Legend, data.get("canonized_legends")):
            ledger._legends[legend.id] = legend
        for school in _load(School, data.get("seeded_schools")):
            ledger._schools[school.id] = school
        for guild in _load(Guild, data.get("empowered_guilds")):
            ledger._guilds[guild.id] = guild
        for artifact in _load(Artifact, data.get("artifacts")):
            ledger._artifacts[artifact.id] = artifact
        for moment in _load(MemoryMoment, data.get("memory_moments")):
            ledger._moments[moment.id] = moment
        ledger._refugee_network = _load(RefugeeIntegration, data.get("refugee_network"))
        return ledger
