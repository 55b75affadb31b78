import logging

from fastapi import FastAPI

from almacen.api.v1.router import api_router
from almacen.core.config import get_settings
from almacen.services.projection_sessions import ProjectionSessionRegistry


logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Almacen Insight")
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def _startup_event() -> None:
    registry = ProjectionSessionRegistry(get_settings())
    registry.start()
    app.state.projection_sessions = registry


@app.on_event("shutdown")
def _shutdown_event() -> None:
    registry = getattr(app.state, "projection_sessions", None)
    if registry is not None:
        registry.shutdown()


@app.get("/")
def root():
    return {"status": "ok", "message": "Almacen insight backend running"}
