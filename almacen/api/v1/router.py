from fastapi import APIRouter

from almacen.api.v1.endpoints import (
    item_history,
    issue_summary,
    projection,
)

api_router = APIRouter()

api_router.include_router(item_history.router, prefix="/item-history", tags=["item-history"])
api_router.include_router(issue_summary.router, prefix="/issue-summary", tags=["issue-summary"])
api_router.include_router(projection.router, prefix="/projection", tags=["projection"])
