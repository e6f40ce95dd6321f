import json
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue


class Event(BaseModel):
    """Opaque mutation payload; interpreted only by the caller's mutation table."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mutation_name: str = Field(alias="mutationName")
    mutation_args: list[JsonValue] = Field(default_factory=list, alias="mutationArgs")


ROOT_EVENT = Event(mutation_name="", mutation_args=[])


class NodeMessage(BaseModel):
    id: str = Field(min_length=1)
    parents: list[str]
    event: Event


class GraphSnapshot(BaseModel):
    type: Literal["graph"] = "graph"
    replica_name: str = Field(min_length=1)
    nodes: list[NodeMessage]


class GraphDelta(BaseModel):
    type: Literal["delta"] = "delta"
    replica_name: str = Field(min_length=1)
    since: list[str] = Field(default_factory=list)
    nodes: list[NodeMessage]


ExchangeMessage = Union[GraphSnapshot, GraphDelta]


def parse_exchange_message(raw_text: str) -> ExchangeMessage:
    data: Any = json.loads(raw_text)
    t = data.get("type") if isinstance(data, dict) else None
    if t == "graph":
        return GraphSnapshot.model_validate(data)
    if t == "delta":
        return GraphDelta.model_validate(data)
    raise ValueError(f"unknown message type: {t!r}")


def dump_exchange_message(message: ExchangeMessage) -> str:
    return json.dumps(message.model_dump(by_alias=True), separators=(",", ":"))
