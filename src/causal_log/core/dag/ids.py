from __future__ import annotations

from dataclasses import dataclass


ROOT_TOKEN = "ROOT"


@dataclass(frozen=True)
class NodeId:
    """Identifier of a graph node: a replica name plus a per-replica sequence number.

    The root sentinel is the only id with `seq == -1`; use `ROOT_ID` rather than
    constructing it by hand.
    """

    replica: str
    seq: int

    @property
    def is_root(self) -> bool:
        return self.seq < 0

    def sort_key(self) -> tuple[int, str]:
        return (self.seq, self.replica)

    def __str__(self) -> str:
        if self.is_root:
            return ROOT_TOKEN
        return f"{self.replica}-{self.seq}"

    @classmethod
    def parse(cls, text: str) -> NodeId:
        if text == ROOT_TOKEN:
            return ROOT_ID
        replica, sep, raw_seq = text.rpartition("-")
        if not sep or not raw_seq.isdigit():
            raise ValueError(f"malformed node id: {text!r}")
        validate_replica_name(replica)
        return cls(replica=replica, seq=int(raw_seq))


ROOT_ID = NodeId(replica="", seq=-1)


def validate_replica_name(name: str) -> str:
    if not name:
        raise ValueError("replica name must be non-empty")
    if name == ROOT_TOKEN:
        raise ValueError(f"{ROOT_TOKEN!r} is reserved and cannot name a replica")
    return name
