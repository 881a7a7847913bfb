from __future__ import annotations

import asyncio
import threading
from datetime import date
from typing import Callable, Dict, List, Optional

from flask import Flask, current_app, session

from utils.periods import BillingPeriod
from utils.reconciliation_loop import ReconciliationLoop
from utils.store import WATCHED_TABLES, SnapshotStore
from utils.timezone_helpers import center_today

EXTENSION_KEY = "instructor_contexts"


class InstructorContext:
    """Per-instructor runtime: scoped store, event-loop thread and reconciler.

    Opened when an instructor signs in and closed on sign-out. Reconciliation
    passes only ever run on this context's event loop thread.
    """

    def __init__(self, app: Flask, instructor_id: int, store: Optional[SnapshotStore] = None):
        self.instructor_id = instructor_id
        self.store = store or SnapshotStore(app, instructor_id)
        self.timeout = float(app.config.get("RECONCILE_TIMEOUT_SECONDS", 15))
        self._logger = app.logger
        today = center_today(app.config.get("CENTER_TIMEZONE"))
        self.reconciler = ReconciliationLoop(
            self.store, BillingPeriod.containing(today), today, logger=app.logger
        )
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name=f"reconcile-{instructor_id}", daemon=True
        )
        self._unsubscribers: List[Callable[[], None]] = []

    @property
    def closed(self) -> bool:
        return self._loop.is_closed()

    def start(self) -> "InstructorContext":
        self._thread.start()
        for table in WATCHED_TABLES:
            self._unsubscribers.append(self.store.subscribe(table, self._on_change))
        # Initial pass; failures surface on the first wait_fresh()
        self.submit(self.reconciler.select())
        self._logger.info("Opened reconciliation context for instructor %s", self.instructor_id)
        return self

    def _on_change(self, table: str) -> None:
        if self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(self.reconciler.notify_change, table)
        except RuntimeError:
            # Loop closed between the check and the call (sign-out in progress)
            self._logger.debug("Dropped %s change for closing context %s", table, self.instructor_id)

    def submit(self, coro):
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def call(self, coro, timeout: Optional[float] = None):
        """Run ``coro`` on the context loop and block for its result."""
        future = self.submit(coro)
        try:
            return future.result(timeout if timeout is not None else self.timeout)
        except TimeoutError:
            future.cancel()
            raise

    def dashboard(self, period: Optional[BillingPeriod] = None, attendance_date: Optional[date] = None):
        """Fresh dashboard state, switching period/date first when given."""
        return self.call(self.reconciler.select(period=period, attendance_date=attendance_date))

    async def _drain(self) -> None:
        pending = self.reconciler.cancel_all()
        await asyncio.gather(*pending, return_exceptions=True)
        await self._loop.shutdown_default_executor()

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        if self._loop.is_closed():
            return
        try:
            self.call(self._drain())
        except TimeoutError:
            self._logger.warning("Reconciliation passes still running for instructor %s at close", self.instructor_id)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=self.timeout)
        if not self._thread.is_alive():
            self._loop.close()
        self._logger.info("Closed reconciliation context for instructor %s", self.instructor_id)


class ContextRegistry:
    def __init__(self, app: Flask):
        self._app = app
        self._contexts: Dict[int, InstructorContext] = {}
        self._lock = threading.Lock()

    def open(self, instructor_id: int) -> InstructorContext:
        with self._lock:
            ctx = self._contexts.get(instructor_id)
            if ctx is None or ctx.closed:
                ctx = InstructorContext(self._app, instructor_id).start()
                self._contexts[instructor_id] = ctx
            return ctx

    def get(self, instructor_id: int) -> Optional[InstructorContext]:
        with self._lock:
            return self._contexts.get(instructor_id)

    def close(self, instructor_id: int) -> None:
        with self._lock:
            ctx = self._contexts.pop(instructor_id, None)
        if ctx is not None:
            ctx.close()

    def close_all(self) -> None:
        with self._lock:
            contexts = list(self._contexts.values())
            self._contexts.clear()
        for ctx in contexts:
            ctx.close()


def init_contexts(app: Flask) -> ContextRegistry:
    registry = ContextRegistry(app)
    app.extensions[EXTENSION_KEY] = registry
    return registry


def get_registry() -> ContextRegistry:
    return current_app.extensions[EXTENSION_KEY]


def current_context() -> InstructorContext:
    """Context for the signed-in instructor, reopened lazily after a restart."""
    return get_registry().open(int(session["instructor_id"]))
