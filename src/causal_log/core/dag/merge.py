from __future__ import annotations

import logging
from typing import Optional

from causal_log.core.dag.clock import ReplicaClock
from causal_log.core.dag.graph import CausalGraph, GraphNode, same_content
from causal_log.core.dag.ids import NodeId
from causal_log.errors import IdentityCollision


logger = logging.getLogger(__name__)


def merge(
    a: CausalGraph,
    b: CausalGraph,
    *,
    replica_name: Optional[str] = None,
    clock: Optional[ReplicaClock] = None,
) -> CausalGraph:
    """Union two causal graphs into a new graph.

    The result belongs to `replica_name` (default: `a`'s replica) and mints ids
    through `clock` (default: `a.clock`, the replica's shared clock). It never
    copies a counter out of either input.

    Raises `IdentityCollision` if the inputs disagree about any id, the root included.
    """
    if not same_content(a.root, b.root):
        raise IdentityCollision(a.root.id)

    if replica_name is None:
        replica_name = a.replica_name if clock is None else clock.replica_name
    if clock is None:
        clock = a.clock

    merged = CausalGraph(replica_name, clock, root=a.root)
    relation = merged._relation
    for source in (a, b):
        for node_id, node in source.relation.items():
            existing = relation.get(node_id)
            if existing is None:
                relation[node_id] = node
            elif not same_content(existing, node):
                logger.error(
                    "identity collision on merge",
                    extra={"replica": replica_name, "node_id": str(node_id)},
                )
                raise IdentityCollision(node_id)

    own = [node_id for node_id in relation if node_id.replica == clock.replica_name]
    if own:
        clock.witness(max(own, key=NodeId.sort_key))

    # Buffered nodes of either side may become placeable against the union.
    for source in (a, b):
        merged.integrate_all(_by_key(source.buffered_nodes()))

    if __debug__:
        merged._assert_invariants()
    logger.info(
        "graphs merged",
        extra={"replica": replica_name, "node_id": "-", "seq": len(relation) - 1},
    )
    return merged


def _by_key(nodes: list[GraphNode]) -> list[GraphNode]:
    return sorted(nodes, key=lambda n: NodeId.sort_key(n.id))
