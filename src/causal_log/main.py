from typing import Optional

from fastapi import FastAPI

from causal_log.api.http import build_router
from causal_log.config import Settings
from causal_log.logging_config import configure_logging
from causal_log.services.replica_service import ReplicaService


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    service = ReplicaService(settings.replica_name, settings.clock_registry())

    app = FastAPI(title="causal-log")

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "replica_name": settings.replica_name}

    app.include_router(build_router(service))
    return app


app = create_app()
