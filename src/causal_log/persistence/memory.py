from __future__ import annotations

import threading
from typing import Dict

from causal_log.persistence.base import CounterStore


class InMemoryCounterStore(CounterStore):
    """Process-local counters. Survives graph instances, not process restarts."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._next: Dict[str, int] = {}

    def reserve(self, replica_name: str) -> int:
        with self._lock:
            seq = self._next.get(replica_name, 0)
            self._next[replica_name] = seq + 1
            return seq

    def peek(self, replica_name: str) -> int:
        with self._lock:
            return self._next.get(replica_name, 0)

    def advance_to(self, replica_name: str, next_seq: int) -> None:
        with self._lock:
            self._next[replica_name] = max(self._next.get(replica_name, 0), next_seq)
