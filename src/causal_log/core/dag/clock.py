from __future__ import annotations

import logging
import threading
from typing import Dict

from causal_log.core.dag.ids import NodeId, validate_replica_name
from causal_log.errors import ClockUnavailable
from causal_log.persistence.base import CounterStore


logger = logging.getLogger(__name__)


class ReplicaClock:
    """Mints node ids for exactly one replica.

    The counter lives in the `CounterStore`, not in this object or in any graph,
    so every graph instance that holds this clock continues the same sequence.
    """

    def __init__(self, replica_name: str, store: CounterStore) -> None:
        self.replica_name = validate_replica_name(replica_name)
        self._store = store

    def next_id(self) -> NodeId:
        try:
            seq = self._store.reserve(self.replica_name)
        except ClockUnavailable:
            raise
        except Exception as exc:
            raise ClockUnavailable(self.replica_name, str(exc)) from exc
        return NodeId(replica=self.replica_name, seq=seq)

    def peek(self) -> int:
        """Return the sequence number the next call to `next_id` will use."""
        return self._store.peek(self.replica_name)

    def witness(self, node_id: NodeId) -> None:
        """Advance past an id this replica minted in an earlier life."""
        if node_id.replica != self.replica_name or node_id.is_root:
            return
        if node_id.seq >= self._store.peek(self.replica_name):
            logger.warning(
                "clock advanced past witnessed id",
                extra={"replica": self.replica_name, "node_id": str(node_id), "seq": node_id.seq + 1},
            )
            self._store.advance_to(self.replica_name, node_id.seq + 1)


class ClockRegistry:
    """One `ReplicaClock` per replica name over a shared store."""

    def __init__(self, store: CounterStore) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._clocks: Dict[str, ReplicaClock] = {}

    def clock_for(self, replica_name: str) -> ReplicaClock:
        with self._lock:
            clock = self._clocks.get(replica_name)
            if clock is None:
                clock = ReplicaClock(replica_name, self._store)
                self._clocks[replica_name] = clock
            return clock
