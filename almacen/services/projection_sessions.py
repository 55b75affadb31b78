from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from contextlib import AbstractContextManager
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from almacen.core.config import Settings, get_settings
from almacen.core.dependencies import open_store
from almacen.schemas.projection import ProjectionRequest, ProjectionResponse
from almacen.schemas.query_state import QueryState
from almacen.services.projection_table import build_projection_response, validate_table_options
from almacen.services.query_state import ViewQuery
from almacen.services.replenishment_projector import ReplenishmentProjector
from almacen.store.base import StoreClient


logger = logging.getLogger(__name__)


StoreFactory = Callable[[Settings], AbstractContextManager[StoreClient]]


def run_projection(store: StoreClient, request: ProjectionRequest, settings: Settings) -> ProjectionResponse:
    validate_table_options(request.table)
    result = ReplenishmentProjector.from_settings(store, settings).project(request.parameters)
    return build_projection_response(request.parameters, result, request.table)


class ProjectionSessionRegistry:
    """Debounced projection recomputation, one query state per session.

    Each session owns a single one-shot job id. Submitting new parameters
    reschedules that job, so bursts of edits inside the debounce window
    collapse into one recomputation with the last parameters. Intended to be
    controlled from FastAPI startup/shutdown events.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        scheduler: Optional[BackgroundScheduler] = None,
        store_factory: StoreFactory = open_store,
    ) -> None:
        self._settings = settings or get_settings()
        self._debounce = timedelta(milliseconds=self._settings.projection_debounce_ms)
        self._scheduler = scheduler
        self._owns_scheduler = scheduler is None
        self._store_factory = store_factory
        self._max_sessions = self._settings.projection_max_sessions
        self._views: OrderedDict[str, ViewQuery] = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def job_id(session_id: str) -> str:
        return f"projection:{session_id}"

    def start(self) -> None:
        if not self._settings.projection_scheduler_enabled:
            logger.warning("Projection scheduler disabled via PROJECTION_SCHEDULER_ENABLED")
            return
        if self._scheduler is not None and self._scheduler.running:
            logger.warning("Projection scheduler already running, skipping start")
            return
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler(timezone="UTC")
        self._scheduler.start()
        logger.info("Projection scheduler started (debounce %s ms)", self._settings.projection_debounce_ms)

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            try:
                self._scheduler.shutdown(wait=False)
                logger.info("Projection scheduler stopped")
            finally:
                if self._owns_scheduler:
                    self._scheduler = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def view(self, session_id: str) -> ViewQuery:
        """Query state of a session, evicting the least recently used beyond the cap."""
        with self._lock:
            view = self._views.get(session_id)
            if view is None:
                view = ViewQuery()
                self._views[session_id] = view
                while len(self._views) > self._max_sessions:
                    evicted, _ = self._views.popitem(last=False)
                    logger.debug("Evicted idle projection session %s", evicted)
            else:
                self._views.move_to_end(session_id)
            return view

    def _existing(self, session_id: str) -> ViewQuery | None:
        with self._lock:
            view = self._views.get(session_id)
            if view is not None:
                self._views.move_to_end(session_id)
            return view

    def state(self, session_id: str) -> QueryState:
        view = self._existing(session_id)
        return view.state if view is not None else QueryState()

    def submit(self, session_id: str, request: ProjectionRequest) -> QueryState:
        """Schedule a recomputation; supersedes anything pending for the session."""
        if not self.running:
            raise RuntimeError("projection scheduler is not running")

        view = self.view(session_id)
        generation = view.begin()
        run_date = datetime.now(timezone.utc) + self._debounce
        self._scheduler.add_job(
            self._run_job,
            trigger=DateTrigger(run_date=run_date),
            args=[session_id, request, generation],
            id=self.job_id(session_id),
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=None,
        )
        logger.debug("Projection for session %s scheduled at %s (generation %s)", session_id, run_date, generation)
        return view.state

    def _run_job(self, session_id: str, request: ProjectionRequest, generation: int) -> None:
        view = self._existing(session_id)
        if view is None or generation != view.generation:
            logger.debug("Skipping superseded projection for session %s", session_id)
            return
        try:
            with self._store_factory(self._settings) as store:
                view.run(lambda: run_projection(store, request, self._settings), generation=generation)
        except Exception:
            logger.exception("Error while running projection job for session %s", session_id)
            view.fail(generation, "projection failed unexpectedly; retry to reload")
