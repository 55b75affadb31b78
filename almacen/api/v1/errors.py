from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, status

from almacen.core.exceptions import ParameterValidationError, StoreError, StoreTimeoutError


logger = logging.getLogger(__name__)


@contextmanager
def translate_errors() -> Iterator[None]:
    """Map parameter and store failures onto HTTP errors."""
    try:
        yield
    except ParameterValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"field": exc.field, "message": exc.message},
        ) from exc
    except StoreTimeoutError as exc:
        logger.warning("Store timed out: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"{exc}; retry to reload",
        ) from exc
    except StoreError as exc:
        logger.warning("Store request failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{exc}; retry to reload",
        ) from exc
