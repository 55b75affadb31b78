from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from almacen.api.v1.errors import translate_errors
from almacen.core.config import Settings, get_settings
from almacen.core.dependencies import get_store
from almacen.schemas import ItemHistoryRequest, ItemHistoryResponse
from almacen.services.item_history import build_item_history
from almacen.store.base import StoreClient


router = APIRouter()


@router.get("", response_model=ItemHistoryResponse)
def item_history(
    item_code: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    fill_gaps: bool = False,
    store: StoreClient = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> ItemHistoryResponse:
    """Issue lines of one article in a date range, with its monthly trend."""
    request = ItemHistoryRequest(
        item_code=item_code,
        date_from=date_from,
        date_to=date_to,
        fill_gaps=fill_gaps,
    )
    with translate_errors():
        return build_item_history(store, request, settings)
