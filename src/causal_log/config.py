from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from causal_log.core.dag.clock import ClockRegistry
from causal_log.persistence.base import CounterStore
from causal_log.persistence.file import FileCounterStore
from causal_log.persistence.memory import InMemoryCounterStore


@dataclass(frozen=True)
class Settings:
    replica_name: str = "nodeA"
    clock_dir: Optional[str] = None
    log_level: str = "INFO"

    @staticmethod
    def from_env() -> Settings:
        return Settings(
            replica_name=os.environ.get("CAUSAL_LOG_REPLICA", "nodeA"),
            clock_dir=os.environ.get("CAUSAL_LOG_CLOCK_DIR") or None,
            log_level=os.environ.get("CAUSAL_LOG_LOG_LEVEL", "INFO"),
        )

    def counter_store(self) -> CounterStore:
        """File-backed counters when a directory is configured, otherwise process memory."""
        if self.clock_dir:
            return FileCounterStore(self.clock_dir)
        return InMemoryCounterStore()

    def clock_registry(self) -> ClockRegistry:
        return ClockRegistry(self.counter_store())
