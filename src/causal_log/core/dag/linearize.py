from __future__ import annotations

"""Deterministic total order over a causal graph.

## Order

Children of every node are sorted by `NodeId.sort_key()`, i.e.
`(seq, replica_name)`. Ids are unique, so the key is total and two replicas
holding the same relation build identical child lists regardless of the order
in which nodes were inserted or merged.

The traversal is a depth-first walk from ROOT over those sorted children. A node
is emitted when the walk reaches it through the last of its parents that had not
been emitted yet; on a tree this is exactly first-visit DFS order, and on a join
it guarantees every parent precedes the child.

The walk uses an explicit stack of child iterators, so long causal chains do not
hit the interpreter recursion limit.
"""

import logging
from typing import TYPE_CHECKING, Dict, Iterator, List, Mapping

from causal_log.core.dag.ids import ROOT_ID, NodeId
from causal_log.errors import MalformedGraph

if TYPE_CHECKING:
    from causal_log.core.dag.graph import GraphNode


logger = logging.getLogger(__name__)


def child_index(relation: Mapping[NodeId, GraphNode]) -> Dict[NodeId, List[NodeId]]:
    """Invert parent links into sorted child lists (one entry per node)."""
    children: Dict[NodeId, List[NodeId]] = {node_id: [] for node_id in relation}
    for node in relation.values():
        for parent_id in node.parents:
            siblings = children.get(parent_id)
            if siblings is None:
                logger.error("dangling parent reference", extra={"node_id": str(node.id)})
                raise MalformedGraph(f"node {node.id} references unknown parent {parent_id}")
            siblings.append(node.id)
    for siblings in children.values():
        siblings.sort(key=NodeId.sort_key)
    return children


def linearize(relation: Mapping[NodeId, GraphNode]) -> List[GraphNode]:
    """Return every non-root node exactly once, parents before children."""
    root = relation.get(ROOT_ID)
    if root is None:
        raise MalformedGraph("relation has no root")
    if root.parents:
        raise MalformedGraph("root node must not have parents")

    children = child_index(relation)
    remaining: Dict[NodeId, int] = {node_id: len(node.parents) for node_id, node in relation.items()}

    out: List[GraphNode] = []
    stack: List[Iterator[NodeId]] = [iter(children[ROOT_ID])]
    while stack:
        child_id = next(stack[-1], None)
        if child_id is None:
            stack.pop()
            continue
        remaining[child_id] -= 1
        if remaining[child_id]:
            continue
        out.append(relation[child_id])
        stack.append(iter(children[child_id]))

    if len(out) != len(relation) - 1:
        stuck = sorted((node_id for node_id, n in remaining.items() if n > 0), key=NodeId.sort_key)
        logger.error(
            "linearization incomplete: cycle or unreachable nodes",
            extra={"node_id": ",".join(str(n) for n in stuck[:10])},
        )
        raise MalformedGraph(f"cycle or unreachable nodes: {', '.join(str(n) for n in stuck)}")
    return out
