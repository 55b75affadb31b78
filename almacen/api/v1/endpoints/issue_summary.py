from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from almacen.api.v1.errors import translate_errors
from almacen.core.config import Settings, get_settings
from almacen.core.dependencies import get_store
from almacen.schemas import IssueSummaryRequest, IssueSummaryResponse
from almacen.services.issue_summary import build_issue_summary
from almacen.store.base import StoreClient


router = APIRouter()


@router.get("", response_model=IssueSummaryResponse)
def issue_summary(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    sort_by: Optional[str] = None,
    descending: bool = False,
    store: StoreClient = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> IssueSummaryResponse:
    request = IssueSummaryRequest(
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        descending=descending,
    )
    with translate_errors():
        return build_issue_summary(store, request, settings)
