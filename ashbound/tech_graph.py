"""Technology graph: nodes, shared undirected links, decay and relearn.

Decay order: Operable → Fading → Dormant → Forgotten. Every apply_decay()
call adds one tick of decay progress; when progress reaches the resistance of
the current state the node steps down once and progress resets to 0.
Forgotten is terminal for decay and pins progress at 0. Relearn walks the
reverse order one step at a time and stops the moment Operable is reached.

Links are shared by their two endpoints: each node keeps an ordered incidence
list, neither endpoint owns the TechLink object. At most one link exists per
unordered pair; linking an already-connected pair updates the existing link.

Serialised node record:
  {"id", "name", "state", "decay_progress",
   "resilience": {"operable_resistance", "fading_resistance", "dormant_resistance"},
   "neighbors": [ids, in link registration order]}

No link records are stored. Deserialisation is two-phase: every node is built
first with its neighbor ids parked as pending, then the pending ids are
resolved against the completed id → node lookup and linked.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from .models import DECAY_ORDER, RELEARN_ORDER, NodeRecord, ResilienceScore, TechState

logger = logging.getLogger(__name__)


class TechLink:
    """Undirected edge between two distinct nodes plus free-form metadata."""

    def __init__(self, a: TechNode, b: TechNode, metadata: dict[str, Any] | None = None) -> None:
        self.a: TechNode | None = a
        self.b: TechNode | None = b
        self.metadata: dict[str, Any] = dict(metadata or {})

    @property
    def is_connected(self) -> bool:
        return self.a is not None and self.b is not None

    def other(self, node: TechNode) -> TechNode | None:
        """The endpoint opposite *node*, or None if *node* is not an endpoint."""
        if node is self.a:
            return self.b
        if node is self.b:
            return self.a
        return None

    def joins(self, a: TechNode, b: TechNode) -> bool:
        return (self.a is a and self.b is b) or (self.a is b and self.b is a)

    def disconnect(self) -> None:
        """Remove from both endpoints. The link is unusable afterwards."""
        for node in (self.a, self.b):
            if node is not None:
                node._unregister_link(self)
        self.a = None
        self.b = None

    def __repr__(self) -> str:
        a = self.a.id if self.a else None
        b = self.b.id if self.b else None
        return f"TechLink({a!r} <-> {b!r})"


class TechNode:
    """A technology and its position on the decay ladder."""

    def __init__(
        self,
        id: str,
        name: str = "",
        state: TechState | str = TechState.OPERABLE,
        resilience: ResilienceScore | None = None,
        decay_progress: int = 0,
    ) -> None:
        self.id = str(id)
        self.name = name or self.id
        self.state = TechState.from_name(state)
        self.resilience = resilience if resilience is not None else ResilienceScore()
        self.decay_progress = max(0, int(decay_progress))
        if self.state is TechState.FORGOTTEN:
            self.decay_progress = 0
        self._links: list[TechLink] = []
        self._pending_neighbors: list[str] = []

    # ------------------------------------------------------------------
    # Decay / relearn
    # ------------------------------------------------------------------

    def apply_decay(self) -> TechState:
        """Accumulate one tick of decay. Returns the resulting state."""
        if self.state is TechState.FORGOTTEN:
            self.decay_progress = 0
            return self.state

        self.decay_progress += 1
        threshold = max(1, self.resilience.resistance_for(self.state))
        if self.decay_progress >= threshold:
            self.decay_progress = 0
            previous = self.state
            self.state = DECAY_ORDER[DECAY_ORDER.index(previous) + 1]
            logger.debug("tech %s decayed %s -> %s", self.id, previous.value, self.state.value)
        return self.state

    def relearn(self, steps: int = 1) -> TechState:
        """Climb up to *steps* states towards Operable. Always clears decay progress."""
        steps = int(steps)
        if steps <= 0:
            return self.state

        self.decay_progress = 0
        previous = self.state
        for _ in range(steps):
            if self.state is TechState.OPERABLE:
                break
            self.state = RELEARN_ORDER[RELEARN_ORDER.index(self.state) + 1]
        if self.state is not previous:
            logger.debug("tech %s relearned %s -> %s", self.id, previous.value, self.state.value)
        return self.state

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    @property
    def links(self) -> list[TechLink]:
        return list(self._links)

    def _register_link(self, link: TechLink) -> None:
        if link not in self._links:
            self._links.append(link)

    def _unregister_link(self, link: TechLink) -> None:
        if link in self._links:
            self._links.remove(link)

    def link_to(self, other: TechNode) -> TechLink | None:
        """The existing link between this node and *other*, if any."""
        for link in self._links:
            if link.joins(self, other):
                return link
        return None

    def get_neighbors(self) -> list[TechNode]:
        """Linked nodes in link registration order, without duplicates."""
        neighbors: list[TechNode] = []
        for link in self._links:
            other = link.other(self)
            if other is not None and other not in neighbors:
                neighbors.append(other)
        return neighbors

    def neighbor_ids(self) -> list[str]:
        ids: list[str] = []
        for node in self.get_neighbors():
            if node.id not in ids:
                ids.append(node.id)
        return ids

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "state": self.state.value,
            "decay_progress": self.decay_progress,
            "resilience": self.resilience.model_dump(),
            "neighbors": self.neighbor_ids(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], default_resilience: ResilienceScore | None = None) -> TechNode:
        """Build a node from a record. Neighbor ids are parked until resolve_pending_links()."""
        base = default_resilience.model_dump() if default_resilience is not None else {}
        stored = data.get("resilience")
        if isinstance(stored, Mapping):
            base.update(stored)
        progress = data.get("decay_progress", 0)
        node = cls(
            id=data["id"],
            name=str(data.get("name") or ""),
            state=TechState.from_name(data.get("state")),
            resilience=ResilienceScore.model_validate(base),
            decay_progress=progress if isinstance(progress, int) and not isinstance(progress, bool) else 0,
        )
        neighbors = data.get("neighbors") or []
        if isinstance(neighbors, (list, tuple)):
            for neighbor_id in neighbors:
                neighbor_id = str(neighbor_id)
                if neighbor_id not in node._pending_neighbors:
                    node._pending_neighbors.append(neighbor_id)
        return node

    def resolve_pending_links(self, lookup: Mapping[str, TechNode]) -> None:
        """Link every parked neighbor id found in *lookup*; unknown ids are skipped."""
        pending, self._pending_neighbors = self._pending_neighbors, []
        for neighbor_id in pending:
            other = lookup.get(neighbor_id)
            if other is None:
                logger.debug("tech %s: neighbor %s not in lookup, skipped", self.id, neighbor_id)
                continue
            if other.id != neighbor_id:
                raise ValueError(f"Node lookup maps {neighbor_id!r} to node {other.id!r}")
            create_link(self, other)

    def __repr__(self) -> str:
        return f"TechNode({self.id!r}, state={self.state.value}, decay_progress={self.decay_progress})"


def create_link(a: TechNode | None, b: TechNode | None, metadata: dict[str, Any] | None = None) -> TechLink | None:
    """Link two nodes. Returns None for a missing endpoint or a self-loop.

    Linking an already-connected pair returns the existing link and merges
    *metadata* into it when non-empty metadata is given.
    """
    if a is None or b is None or a is b or a.id == b.id:
        return None
    existing = a.link_to(b)
    if existing is not None:
        if metadata:
            existing.metadata.update(metadata)
        return existing
    link = TechLink(a, b, metadata)
    a._register_link(link)
    b._register_link(link)
    return link


def disconnect(link: TechLink | None) -> None:
    if link is not None:
        link.disconnect()


class TechGraph:
    """The node collection. Lookup by id is a dict hit."""

    def __init__(self, nodes: Iterable[TechNode] = ()) -> None:
        self._nodes: dict[str, TechNode] = {}
        for node in nodes:
            self.add_node(node)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[TechNode]:
        return iter(list(self._nodes.values()))

    @property
    def nodes(self) -> list[TechNode]:
        return list(self._nodes.values())

    @property
    def lookup(self) -> Mapping[str, TechNode]:
        return self._nodes

    def _resolve(self, node: TechNode | str | None) -> TechNode | None:
        if isinstance(node, TechNode):
            return node
        if node is None:
            return None
        return self._nodes.get(str(node))

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(self, node: TechNode) -> TechNode:
        """Register *node*. An id that is already taken keeps the registered node."""
        existing = self._nodes.get(node.id)
        if existing is not None:
            if existing is not node:
                logger.warning("tech id %s already registered, keeping existing node", node.id)
            return existing
        self._nodes[node.id] = node
        return node

    def get_node(self, node_id: str) -> TechNode | None:
        return self._nodes.get(node_id)

    def remove_node(self, node_id: str) -> bool:
        node = self._nodes.pop(node_id, None)
        if node is None:
            return False
        for link in node.links:
            link.disconnect()
        return True

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def create_link(
        self,
        a: TechNode | str | None,
        b: TechNode | str | None,
        metadata: dict[str, Any] | None = None,
    ) -> TechLink | None:
        return create_link(self._resolve(a), self._resolve(b), metadata)

    def disconnect(self, link: TechLink | None) -> None:
        disconnect(link)

    def get_neighbors(self, node: TechNode | str) -> list[TechNode]:
        resolved = self._resolve(node)
        return resolved.get_neighbors() if resolved is not None else []

    def links(self) -> list[TechLink]:
        """Every connected link once, in first-seen order."""
        seen: list[TechLink] = []
        for node in self._nodes.values():
            for link in node.links:
                if link.is_connected and link not in seen:
                    seen.append(link)
        return seen

    # ------------------------------------------------------------------
    # Decay driver entry points
    # ------------------------------------------------------------------

    def apply_decay(self, node: TechNode | str) -> TechState | None:
        resolved = self._resolve(node)
        return resolved.apply_decay() if resolved is not None else None

    def relearn(self, node: TechNode | str, steps: int = 1) -> TechState | None:
        resolved = self._resolve(node)
        return resolved.relearn(steps) if resolved is not None else None

    def decay_all(self) -> list[str]:
        """One decay tick for every node. Returns the ids whose state changed."""
        changed: list[str] = []
        for node in self._nodes.values():
            before = node.state
            if node.apply_decay() is not before:
                changed.append(node.id)
        return changed

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def node_records(self) -> list[NodeRecord]:
        return [
            NodeRecord(id=node.id, state=node.state, neighbors=node.neighbor_ids())
            for node in self._nodes.values()
        ]

    def serialize(self) -> list[dict[str, Any]]:
        return [node.to_dict() for node in self._nodes.values()]

    @classmethod
    def deserialize(
        cls,
        records: Iterable[Mapping[str, Any]],
        default_resilience: ResilienceScore | None = None,
    ) -> TechGraph:
        graph = cls()
        for record in records:
            if not isinstance(record, Mapping) or record.get("id") in (None, ""):
                logger.warning("skipping malformed tech record: %r", record)
                continue
            node = TechNode.from_dict(record, default_resilience)
            kept = graph.add_node(node)
            if kept is not node:
                # Duplicate id: the first record wins, its neighbor lists are merged
                added = [n for n in node._pending_neighbors if n not in kept._pending_neighbors]
                kept._pending_neighbors.extend(added)
                if added:
                    logger.warning("tech %s: merged neighbors %s from duplicate record", kept.id, added)
        for node in graph.nodes:
            node.resolve_pending_links(graph.lookup)
        return graph
