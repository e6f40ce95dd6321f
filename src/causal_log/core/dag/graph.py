from __future__ import annotations

"""Append-only causal graph of events for one replica.

## Core model

- Every node carries a `NodeId` minted by its replica's clock, the set of its
  causal predecessors (`parents`) and an opaque `Event`.
- `relation` maps every known id to its node and always contains the root.
- Nodes are never mutated or removed once inserted.

## Invariants (must always hold after `append` / `integrate` return)

- **Root existence**: `ROOT_ID` is in `relation` and has no parents.
- **No forward references**: every parent of every node in `relation` is itself
  in `relation`. Remote nodes whose parents are unknown stay buffered in
  `_pending` and are not part of `relation` until their parents arrive.
- **Non-root nodes have parents**: only the root has an empty parent set.
- **Pending is disjoint from relation**.

Local appends always take the current leaves as parents, so a locally created
node causally follows every branch this replica knows about.
"""

import json
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from causal_log.core.dag.clock import ReplicaClock
from causal_log.core.dag.ids import ROOT_ID, NodeId, validate_replica_name
from causal_log.core.dag.linearize import linearize as linearize_relation
from causal_log.core.dag.replay import MutationTable, replay
from causal_log.core.protocol.messages import ROOT_EVENT, Event
from causal_log.errors import IdentityCollision, MalformedGraph


logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class GraphNode:
    """A node of the relation.

    Equality is type-strict over the payload (`1`, `1.0` and `True` are
    different arguments) because replay is type-sensitive. Hashing uses only
    the id, which is unique within a consistent relation.
    """

    id: NodeId
    parents: frozenset[NodeId]
    event: Event

    def content_key(self) -> tuple[NodeId, frozenset[NodeId], str]:
        payload = json.dumps(self.event.model_dump(mode="json", by_alias=True), sort_keys=True)
        return (self.id, self.parents, payload)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GraphNode):
            return NotImplemented
        return same_content(self, other)

    def __hash__(self) -> int:
        return hash(self.id)


def same_content(a: GraphNode, b: GraphNode) -> bool:
    """True iff both nodes carry the same id, parents and exactly-typed event."""
    return a is b or a.content_key() == b.content_key()


def make_root(event: Event = ROOT_EVENT) -> GraphNode:
    return GraphNode(id=ROOT_ID, parents=frozenset(), event=event)


class CausalGraph:
    def __init__(self, replica_name: str, clock: ReplicaClock, root: Optional[GraphNode] = None) -> None:
        self.replica_name = validate_replica_name(replica_name)
        if clock.replica_name != replica_name:
            raise ValueError(f"clock belongs to {clock.replica_name!r}, not {replica_name!r}")
        self.clock = clock

        if root is None:
            root = make_root()
        if root.id != ROOT_ID or root.parents:
            raise ValueError("root must use ROOT_ID and have no parents")
        self.root = root

        self._relation: Dict[NodeId, GraphNode] = {ROOT_ID: root}
        self._pending: Dict[NodeId, List[GraphNode]] = {}
        self._pending_ids: Dict[NodeId, GraphNode] = {}

    @property
    def relation(self) -> Mapping[NodeId, GraphNode]:
        return MappingProxyType(self._relation)

    @property
    def pending(self) -> Set[NodeId]:
        """Ids of received nodes still waiting for a parent.

        Nothing is ever evicted: a node whose parent never arrives stays here
        for the lifetime of the graph. Callers that see this set stay non-empty
        should re-synchronize the missing ancestors from a peer.
        """
        return set(self._pending_ids)

    def __len__(self) -> int:
        return len(self._relation)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._relation

    def get(self, node_id: NodeId) -> Optional[GraphNode]:
        return self._relation.get(node_id)

    def leaves(self) -> Set[NodeId]:
        """Ids that no node in `relation` names as a parent."""
        leaves = set(self._relation)
        for node in self._relation.values():
            leaves.difference_update(node.parents)
        return leaves

    def append(self, event: Event) -> GraphNode:
        parents = frozenset(self.leaves())
        node_id = self.clock.next_id()
        if node_id in self._relation or node_id in self._pending_ids:
            # The store handed out an id this graph already holds.
            raise IdentityCollision(node_id)

        node = GraphNode(id=node_id, parents=parents, event=event)
        self._relation[node_id] = node
        logger.debug(
            "event appended",
            extra={"replica": self.replica_name, "node_id": str(node_id), "seq": node_id.seq},
        )
        if __debug__:
            self._assert_invariants()
        return node

    def integrate(self, node: GraphNode) -> bool:
        """Insert a node received from another replica.

        Returns True if the node is now part of `relation`, False if it is
        buffered until its parents arrive. Safe to call repeatedly with the same node.
        """
        existing = self._relation.get(node.id) or self._pending_ids.get(node.id)
        if existing is not None:
            if not same_content(existing, node):
                logger.error(
                    "identity collision",
                    extra={"replica": self.replica_name, "node_id": str(node.id)},
                )
                raise IdentityCollision(node.id)
            return node.id in self._relation
        if not node.parents:
            raise MalformedGraph(f"non-root node {node.id} has no parents")
        if node.id in node.parents:
            raise MalformedGraph(f"node {node.id} names itself as a parent")

        ready = [node]
        while ready:
            n = ready.pop()
            missing = self._first_missing_parent(n)
            if missing is not None:
                self._pending.setdefault(missing, []).append(n)
                self._pending_ids[n.id] = n
                continue
            self._pending_ids.pop(n.id, None)
            self._relation[n.id] = n
            self.clock.witness(n.id)
            ready.extend(self._pending.pop(n.id, []))

        if __debug__:
            self._assert_invariants()
        return node.id in self._relation

    def integrate_all(self, nodes: Iterable[GraphNode]) -> None:
        for node in nodes:
            self.integrate(node)

    def buffered_nodes(self) -> List[GraphNode]:
        return list(self._pending_ids.values())

    def linearize(self) -> List[GraphNode]:
        return linearize_relation(self._relation)

    def merge(self, other: CausalGraph, **kwargs: Any) -> CausalGraph:
        from causal_log.core.dag.merge import merge

        return merge(self, other, **kwargs)

    def apply_to(self, state: Any, mutations: MutationTable) -> Any:
        return replay(self.linearize(), state, mutations)

    def ancestors(self, node_ids: Iterable[NodeId]) -> Set[NodeId]:
        """Ids reachable through parent links from `node_ids`, inclusive."""
        seen: Set[NodeId] = set()
        stack = [n for n in node_ids if n in self._relation]
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            stack.extend(self._relation[node_id].parents)
        return seen

    def _first_missing_parent(self, node: GraphNode) -> Optional[NodeId]:
        for parent_id in sorted(node.parents, key=NodeId.sort_key):
            if parent_id not in self._relation:
                return parent_id
        return None

    def _assert_invariants(self) -> None:
        root = self._relation.get(ROOT_ID)
        if root is None or root.parents:
            raise AssertionError("root missing or has parents")
        for node_id, node in self._relation.items():
            if node_id != node.id:
                raise AssertionError(f"relation key mismatch: {node_id} -> {node.id}")
            if node_id != ROOT_ID and not node.parents:
                raise AssertionError(f"non-root node without parents: {node_id}")
            for parent_id in node.parents:
                if parent_id not in self._relation:
                    raise AssertionError(f"missing parent for node: {node_id} -> {parent_id}")
        for node_id in self._pending_ids:
            if node_id in self._relation:
                raise AssertionError(f"pending node already integrated: {node_id}")
