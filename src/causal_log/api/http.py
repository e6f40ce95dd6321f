import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from causal_log.core.dag.ids import NodeId
from causal_log.core.protocol.messages import Event, GraphDelta, GraphSnapshot, parse_exchange_message
from causal_log.errors import CausalLogError, ClockUnavailable, IdentityCollision, MalformedGraph
from causal_log.services.replica_service import ReplicaService

logger = logging.getLogger(__name__)


def build_router(service: ReplicaService) -> APIRouter:
    router = APIRouter(prefix="/graph")

    @router.get("")
    async def get_graph() -> dict[str, Any]:
        snapshot = await service.snapshot()
        return snapshot.model_dump(by_alias=True)

    @router.get("/leaves")
    async def get_leaves() -> dict[str, Any]:
        leaves = await service.frontier()
        return {"replica_name": service.replica_name, "leaves": sorted(str(i) for i in leaves)}

    @router.get("/delta")
    async def get_delta(since: list[str] = Query(default=[])) -> dict[str, Any]:
        try:
            since_ids = [NodeId.parse(s) for s in since]
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        delta = await service.delta(since_ids)
        return delta.model_dump(by_alias=True)

    @router.post("/events")
    async def post_event(event: Event) -> dict[str, Any]:
        try:
            node = await service.record(event)
        except ClockUnavailable as exc:
            logger.error("append refused", extra={"replica": service.replica_name})
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except IdentityCollision as exc:
            logger.error("append collided", extra={"replica": service.replica_name, "node_id": str(exc.node_id)})
            return JSONResponse(status_code=409, content={"error": type(exc).__name__, "detail": str(exc)})
        return {"id": str(node.id), "parents": sorted(str(p) for p in node.parents)}

    @router.post("/exchange")
    async def post_exchange(request: Request) -> JSONResponse:
        raw = (await request.body()).decode("utf-8")
        try:
            message: GraphSnapshot | GraphDelta = parse_exchange_message(raw)
            added = await service.receive(message)
        except (IdentityCollision, MalformedGraph) as exc:
            logger.warning(
                "exchange rejected",
                extra={"replica": service.replica_name, "node_id": str(getattr(exc, "node_id", "-"))},
            )
            return JSONResponse(status_code=409, content={"error": type(exc).__name__, "detail": str(exc)})
        except (ValueError, ValidationError) as exc:
            logger.warning("exchange protocol violation", extra={"replica": service.replica_name})
            return JSONResponse(status_code=422, content={"error": "protocol", "detail": str(exc)})
        except CausalLogError as exc:
            return JSONResponse(status_code=503, content={"error": type(exc).__name__, "detail": str(exc)})
        return JSONResponse(content={"added": added})

    return router
