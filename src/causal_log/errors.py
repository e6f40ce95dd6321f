from __future__ import annotations

"""Typed failures surfaced to callers of the causal log.

None of these are retried internally. `IdentityCollision` and `MalformedGraph`
mean the graph instance can no longer be trusted and must be re-synchronized
from a trusted source. `UnknownMutation` is a pause-and-retry-later condition.
"""


class CausalLogError(Exception):
    pass


class ClockUnavailable(CausalLogError):
    """The replica clock could not durably reserve a sequence number."""

    def __init__(self, replica_name: str, reason: str) -> None:
        super().__init__(f"clock unavailable for replica {replica_name!r}: {reason}")
        self.replica_name = replica_name
        self.reason = reason


class IdentityCollision(CausalLogError):
    """Two graphs carry the same node id with different content."""

    def __init__(self, node_id: object) -> None:
        super().__init__(f"identity collision on node {node_id}")
        self.node_id = node_id


class UnknownMutation(CausalLogError):
    def __init__(self, name: str, node_id: object = None) -> None:
        super().__init__(f"unknown mutation {name!r}" + (f" at node {node_id}" if node_id is not None else ""))
        self.name = name
        self.node_id = node_id


class MalformedGraph(CausalLogError):
    """A cycle or a dangling parent reference was found in a relation."""
