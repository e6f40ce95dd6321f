from __future__ import annotations

from typing import Protocol


class CounterStore(Protocol):
    """Durable per-replica sequence counters.

    `reserve` must only return once the reservation is durable; a store that
    cannot guarantee that raises `ClockUnavailable` instead of returning.
    """

    def reserve(self, replica_name: str) -> int: ...

    def peek(self, replica_name: str) -> int: ...

    def advance_to(self, replica_name: str, next_seq: int) -> None: ...
