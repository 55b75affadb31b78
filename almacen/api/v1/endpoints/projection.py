from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from almacen.api.v1.errors import translate_errors
from almacen.core.config import Settings, get_settings
from almacen.core.dependencies import get_store
from almacen.schemas import ProjectionRequest, ProjectionResponse, QueryState
from almacen.services.projection_sessions import ProjectionSessionRegistry, run_projection
from almacen.services.projection_table import validate_table_options
from almacen.store.base import StoreClient


router = APIRouter()


def get_session_registry(request: Request) -> ProjectionSessionRegistry:
    registry = getattr(request.app.state, "projection_sessions", None)
    if registry is None or not registry.running:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="projection scheduler is not running",
        )
    return registry


@router.post("", response_model=ProjectionResponse)
def projection(
    payload: ProjectionRequest,
    store: StoreClient = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> ProjectionResponse:
    """Purchase projection for every article, computed synchronously."""
    with translate_errors():
        return run_projection(store, payload, settings)


@router.put("/sessions/{session_id}", response_model=QueryState)
def submit_projection(
    session_id: str,
    payload: ProjectionRequest,
    registry: ProjectionSessionRegistry = Depends(get_session_registry),
) -> QueryState:
    """Debounced recomputation; poll the GET route for the outcome."""
    with translate_errors():
        validate_table_options(payload.table)
    return registry.submit(session_id, payload)


@router.get("/sessions/{session_id}", response_model=QueryState)
def projection_state(
    session_id: str,
    registry: ProjectionSessionRegistry = Depends(get_session_registry),
) -> QueryState:
    return registry.state(session_id)
