from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping

from causal_log.errors import UnknownMutation

if TYPE_CHECKING:
    from causal_log.core.dag.graph import GraphNode


logger = logging.getLogger(__name__)


Mutation = Callable[..., Any]
MutationTable = Mapping[str, Mutation]


def replay(nodes: Iterable[GraphNode], state: Any, mutations: MutationTable) -> Any:
    """Fold `nodes` over `state` in the given order.

    Each mutation is called as `fn(state, *args)`. A non-None return value
    becomes the next state; None means the mutation changed `state` in place.
    Unknown mutation names stop the replay with `UnknownMutation`.
    """
    for node in nodes:
        name = node.event.mutation_name
        fn = mutations.get(name)
        if fn is None:
            logger.warning("unknown mutation", extra={"node_id": str(node.id), "mutation": name})
            raise UnknownMutation(name, node.id)
        result = fn(state, *node.event.mutation_args)
        if result is not None:
            state = result
    return state


def apply_to(graph: Any, state: Any, mutations: MutationTable) -> Any:
    """Replay every event of `graph` in its linearized order."""
    return replay(graph.linearize(), state, mutations)
