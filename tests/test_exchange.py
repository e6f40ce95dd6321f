"""Tests for graph exchange documents (snapshots and deltas)."""

import json

import pytest

from causal_log.core.dag.clock import ClockRegistry
from causal_log.core.dag.exchange import (
    export_delta,
    graph_from_snapshot,
    import_delta,
    node_from_message,
    node_to_message,
    to_snapshot,
)
from causal_log.core.dag.graph import CausalGraph
from causal_log.core.dag.ids import ROOT_ID, NodeId
from causal_log.core.protocol.messages import (
    Event,
    GraphDelta,
    GraphSnapshot,
    dump_exchange_message,
    parse_exchange_message,
)
from causal_log.errors import IdentityCollision
from causal_log.persistence.memory import InMemoryCounterStore


def setup() -> tuple[ClockRegistry, CausalGraph, CausalGraph]:
    clocks = ClockRegistry(InMemoryCounterStore())
    a = CausalGraph("nodeA", clocks.clock_for("nodeA"))
    b = CausalGraph("nodeB", clocks.clock_for("nodeB"))
    return clocks, a, b


def test_event_wire_shape_preserves_argument_order_and_types() -> None:
    event = Event(mutation_name="put", mutation_args=["k", 1, 2.5, None, True, [1, "x"], {"n": {"m": []}}])

    data = json.loads(json.dumps(event.model_dump(by_alias=True)))

    assert list(data) == ["mutationName", "mutationArgs"]
    assert Event.model_validate(data) == event
    assert Event.model_validate(data).mutation_args[1:3] == [1, 2.5]


def test_node_message_renders_sorted_tokens() -> None:
    _, a, b = setup()
    a.append(Event(mutation_name="inc", mutation_args=[1]))
    b.append(Event(mutation_name="inc", mutation_args=[2]))
    m = a.merge(b)
    join = m.append(Event(mutation_name="inc", mutation_args=[3]))

    msg = node_to_message(join)

    assert msg.id == "nodeA-1"
    assert msg.parents == ["nodeA-0", "nodeB-0"]
    assert node_from_message(msg) == join


def test_snapshot_round_trip_through_json() -> None:
    clocks, a, b = setup()
    a.append(Event(mutation_name="inc", mutation_args=[1]))
    b.append(Event(mutation_name="inc", mutation_args=[2]))
    m = a.merge(b)
    m.append(Event(mutation_name="inc", mutation_args=[3]))

    raw = dump_exchange_message(to_snapshot(m))
    parsed = parse_exchange_message(raw)
    assert isinstance(parsed, GraphSnapshot)

    rebuilt = graph_from_snapshot(parsed, clocks.clock_for("nodeC"))

    assert dict(rebuilt.relation) == dict(m.relation)
    assert rebuilt.replica_name == "nodeC"
    assert [n.id for n in rebuilt.linearize()] == [n.id for n in m.linearize()]


def test_delta_carries_only_what_the_peer_lacks() -> None:
    _, a, b = setup()
    a.append(Event(mutation_name="inc", mutation_args=[1]))
    b.integrate_all(a.relation[i] for i in a.relation if i != ROOT_ID)
    a.append(Event(mutation_name="inc", mutation_args=[2]))
    a.append(Event(mutation_name="inc", mutation_args=[3]))

    delta = export_delta(a, b.leaves())

    assert delta.since == ["nodeA-0"]
    assert [n.id for n in delta.nodes] == ["nodeA-1", "nodeA-2"]

    assert import_delta(b, delta) == 2
    assert dict(b.relation) == dict(a.relation)
    assert import_delta(b, delta) == 0


def test_delta_with_unknown_since_sends_everything() -> None:
    _, a, _ = setup()
    a.append(Event(mutation_name="inc", mutation_args=[1]))

    delta = export_delta(a, [NodeId("nodeQ", 9)])

    assert [n.id for n in delta.nodes] == ["nodeA-0"]


def test_out_of_order_delta_is_buffered() -> None:
    _, a, b = setup()
    a.append(Event(mutation_name="inc", mutation_args=[1]))
    first = export_delta(a, [])
    a.append(Event(mutation_name="inc", mutation_args=[2]))
    second = export_delta(a, a.ancestors([NodeId("nodeA", 0)]))

    assert import_delta(b, second) == 0
    assert b.pending == {NodeId("nodeA", 1)}
    assert import_delta(b, first) == 2
    assert b.pending == set()


def test_import_rejects_divergent_root_and_nodes() -> None:
    _, a, b = setup()
    a.append(Event(mutation_name="inc", mutation_args=[1]))
    b.integrate_all(n for i, n in a.relation.items() if i != ROOT_ID)

    forged = GraphDelta(
        replica_name="nodeX",
        nodes=[node_to_message(a.relation[NodeId("nodeA", 0)]).model_copy(
            update={"event": Event(mutation_name="inc", mutation_args=[7])}
        )],
    )
    with pytest.raises(IdentityCollision):
        import_delta(b, forged)

    bad_root = to_snapshot(a).model_copy(deep=True)
    bad_root.nodes[0] = bad_root.nodes[0].model_copy(update={"event": Event(mutation_name="genesis")})
    with pytest.raises(IdentityCollision):
        import_delta(b, bad_root)


def test_parse_rejects_unknown_documents() -> None:
    with pytest.raises(ValueError):
        parse_exchange_message('{"type": "gossip"}')
    with pytest.raises(ValueError):
        parse_exchange_message("[1, 2]")
    with pytest.raises(ValueError):
        parse_exchange_message('{"type": "delta", "replica_name": "", "nodes": []}')
