import logging

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.acs import router as acs_router
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware
from app.services.acs.engine import MonitoringRegistry
from app.services.acs.store import MonitoringStore
from app.websocket.broadcaster import ConnectionBroadcaster
from app.websocket.manager import ConnectionManager
from app.websocket.router import router as ws_router

app = FastAPI(title="ACS Monitor API")
logger = logging.getLogger(__name__)
configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)

app.state.connection_manager = ConnectionManager()
app.state.monitoring_registry = MonitoringRegistry(
    store=MonitoringStore(),
    broadcaster=ConnectionBroadcaster(app.state.connection_manager),
)

app.include_router(acs_router, prefix="/api")
app.include_router(ws_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@app.on_event("startup")
async def _start_websocket_manager():
    await app.state.connection_manager.connect()


@app.on_event("shutdown")
async def _stop_monitoring():
    await app.state.monitoring_registry.stop_all()
    await app.state.connection_manager.disconnect()
