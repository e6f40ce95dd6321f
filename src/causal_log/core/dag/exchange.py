from __future__ import annotations

"""Conversion between causal graphs and their exchange documents.

A snapshot carries the whole relation. A delta carries the nodes the sender
holds that are not ancestors-or-self of the receiver's frontier (`since`); ids
in `since` the sender does not know are ignored, which widens the delta rather
than losing nodes.
"""

import logging
from typing import Iterable, List

from causal_log.core.dag.clock import ReplicaClock
from causal_log.core.dag.graph import CausalGraph, GraphNode, same_content
from causal_log.core.dag.ids import ROOT_ID, NodeId
from causal_log.core.protocol.messages import GraphDelta, GraphSnapshot, NodeMessage
from causal_log.errors import IdentityCollision


logger = logging.getLogger(__name__)


def node_to_message(node: GraphNode) -> NodeMessage:
    parents = sorted(node.parents, key=NodeId.sort_key)
    return NodeMessage(id=str(node.id), parents=[str(p) for p in parents], event=node.event)


def node_from_message(message: NodeMessage) -> GraphNode:
    return GraphNode(
        id=NodeId.parse(message.id),
        parents=frozenset(NodeId.parse(p) for p in message.parents),
        event=message.event,
    )


def _ordered(graph: CausalGraph, ids: Iterable[NodeId]) -> List[GraphNode]:
    return [graph.relation[i] for i in sorted(ids, key=NodeId.sort_key)]


def to_snapshot(graph: CausalGraph) -> GraphSnapshot:
    nodes = _ordered(graph, graph.relation)
    return GraphSnapshot(replica_name=graph.replica_name, nodes=[node_to_message(n) for n in nodes])


def graph_from_snapshot(snapshot: GraphSnapshot, clock: ReplicaClock) -> CausalGraph:
    """Rebuild a graph owned by `clock`'s replica from a snapshot.

    Nodes may appear in any order; the root entry, if present, becomes the
    graph's root.
    """
    nodes = [node_from_message(m) for m in snapshot.nodes]
    root = next((n for n in nodes if n.id == ROOT_ID), None)
    graph = CausalGraph(clock.replica_name, clock, root=root)
    graph.integrate_all(n for n in nodes if n.id != ROOT_ID)
    if graph.pending:
        logger.warning(
            "snapshot left nodes without parents",
            extra={"replica": clock.replica_name, "node_id": ",".join(sorted(str(i) for i in graph.pending))},
        )
    return graph


def export_delta(graph: CausalGraph, since: Iterable[NodeId]) -> GraphDelta:
    since = list(since)
    known = graph.ancestors(since)
    known.add(ROOT_ID)
    missing = [i for i in graph.relation if i not in known]
    return GraphDelta(
        replica_name=graph.replica_name,
        since=[str(i) for i in sorted(since, key=NodeId.sort_key)],
        nodes=[node_to_message(n) for n in _ordered(graph, missing)],
    )


def import_delta(graph: CausalGraph, delta: GraphDelta | GraphSnapshot) -> int:
    """Integrate a received delta (or snapshot) in place.

    Returns the number of nodes that became part of `relation`.
    """
    before = len(graph)
    for message in delta.nodes:
        node = node_from_message(message)
        if node.id == ROOT_ID:
            if not same_content(node, graph.root):
                raise IdentityCollision(ROOT_ID)
            continue
        graph.integrate(node)
    added = len(graph) - before
    logger.info(
        "delta imported",
        extra={"replica": graph.replica_name, "node_id": "-", "seq": added},
    )
    return added
