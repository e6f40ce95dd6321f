from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Set

from causal_log.core.dag.clock import ClockRegistry
from causal_log.core.dag.exchange import export_delta, import_delta, to_snapshot
from causal_log.core.dag.graph import CausalGraph, GraphNode
from causal_log.core.dag.ids import NodeId
from causal_log.core.dag.replay import MutationTable
from causal_log.core.protocol.messages import Event, ExchangeMessage, GraphDelta, GraphSnapshot


logger = logging.getLogger(__name__)


class ReplicaService:
    """Serializes every access to one replica's graph behind a single lock."""

    def __init__(self, replica_name: str, clocks: ClockRegistry) -> None:
        self.replica_name = replica_name
        self._graph = CausalGraph(replica_name, clocks.clock_for(replica_name))
        self._lock = asyncio.Lock()

    async def record(self, event: Event) -> GraphNode:
        async with self._lock:
            node = self._graph.append(event)
            logger.info(
                "event recorded",
                extra={"replica": self.replica_name, "node_id": str(node.id), "seq": node.id.seq},
            )
            return node

    async def frontier(self) -> Set[NodeId]:
        async with self._lock:
            return self._graph.leaves()

    async def snapshot(self) -> GraphSnapshot:
        async with self._lock:
            return to_snapshot(self._graph)

    async def delta(self, since: Iterable[NodeId]) -> GraphDelta:
        async with self._lock:
            return export_delta(self._graph, since)

    async def receive(self, message: ExchangeMessage) -> int:
        async with self._lock:
            logger.info(
                "exchange received",
                extra={"replica": self.replica_name, "node_id": "-", "seq": len(message.nodes)},
            )
            return import_delta(self._graph, message)

    async def materialize(self, state: Any, mutations: MutationTable) -> Any:
        async with self._lock:
            return self._graph.apply_to(state, mutations)
