"""Keeps the derived dashboard views in step with the entity store.

Every trigger (period change, attendance-date change, table change signal)
starts a full reconciliation pass: fetch students, the month's fee rows and
attendance, derive all views, then publish them in one assignment. Passes
are numbered in start order and only the most recently started pass may
publish; an older pass that finishes late is dropped.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from utils.attendance import AttendanceSummary, DailyMark, daily_sheet, summarize_attendance
from utils.fee_reconciliation import FeeReconciliationResult, reconcile_fees
from utils.periods import BillingPeriod
from utils.roster import resolve_active_students
from utils.snapshots import AttendanceSnapshot, FeePaymentSnapshot, StudentSnapshot
from utils.store import StoreError


class LoopStatus(str, Enum):
    STALE = "stale"
    FRESH = "fresh"


class SelectionChanged(StoreError):
    """Other callers kept moving the selection; no state for the requested one."""

    status_code = 409

    def __init__(self, period: Optional[BillingPeriod], attendance_date: Optional[date]):
        wanted = [str(period)] if period is not None else []
        if attendance_date is not None:
            wanted.append(attendance_date.isoformat())
        super().__init__(f"Dashboard moved to another selection before {', '.join(wanted)} was ready, try again")
        self.period = period
        self.attendance_date = attendance_date


@dataclass(frozen=True)
class DashboardState:
    period: BillingPeriod
    attendance_date: date
    generation: int
    active_students: Tuple[StudentSnapshot, ...]
    fees: FeeReconciliationResult
    attendance: Tuple[AttendanceSummary, ...]
    day_sheet: Tuple[DailyMark, ...]
    refreshed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": str(self.period),
            "attendance_date": self.attendance_date.isoformat(),
            "generation": self.generation,
            "refreshed_at": self.refreshed_at.isoformat(),
            "active_count": len(self.active_students),
            "active_students": [s.to_dict() for s in self.active_students],
            "fees": self.fees.to_dict(),
            "attendance": [a.to_dict() for a in self.attendance],
            "day_sheet": [m.to_dict() for m in self.day_sheet],
        }


def build_dashboard_state(
    students: Iterable[StudentSnapshot],
    payments: Iterable[FeePaymentSnapshot],
    month_records: Iterable[AttendanceSnapshot],
    day_records: Iterable[AttendanceSnapshot],
    period: BillingPeriod,
    attendance_date: date,
    generation: int = 0,
) -> DashboardState:
    roster = list(students)
    return DashboardState(
        period=period,
        attendance_date=attendance_date,
        generation=generation,
        active_students=tuple(resolve_active_students(roster, period)),
        fees=reconcile_fees(roster, payments, period),
        attendance=tuple(summarize_attendance(month_records, roster, period)),
        day_sheet=tuple(daily_sheet(day_records, roster, attendance_date)),
    )


class ReconciliationLoop:
    """Single-event-loop driver for dashboard reconciliation.

    All methods must be called on the event loop that owns the instance.
    """

    def __init__(
        self,
        store,
        period: BillingPeriod,
        attendance_date: date,
        logger: Optional[logging.Logger] = None,
        max_reselects: int = 2,
    ):
        self._store = store
        self.period = period
        self.attendance_date = attendance_date
        self.status = LoopStatus.STALE
        self.published: Optional[DashboardState] = None
        self.last_error: Optional[Exception] = None
        self._started = 0
        self._latest: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._log = logger or logging.getLogger(__name__)
        self.max_reselects = max_reselects

    @property
    def generation(self) -> int:
        return self._started

    # -- triggers -----------------------------------------------------

    def trigger(self, reason: str = "manual") -> asyncio.Task:
        self._started += 1
        generation = self._started
        self.status = LoopStatus.STALE
        self._log.debug("Reconciliation pass %s started (%s)", generation, reason)
        task = asyncio.get_running_loop().create_task(
            self._reconcile(generation, self.period, self.attendance_date)
        )
        self._inflight.add(task)
        task.add_done_callback(self._finished)
        self._latest = task
        return task

    def notify_change(self, table: str) -> asyncio.Task:
        return self.trigger(f"{table} changed")

    async def select(self, period: Optional[BillingPeriod] = None, attendance_date: Optional[date] = None) -> Optional[DashboardState]:
        """Change the reporting period and/or attendance date, then wait until fresh.

        The returned state always matches the period and date that were
        passed in. If another caller moves the selection while this one
        waits, the selection is re-applied up to ``max_reselects`` times
        before giving up with :class:`SelectionChanged`.
        """
        for attempt in range(self.max_reselects + 1):
            reasons = []
            if period is not None and period != self.period:
                self.period = period
                reasons.append(f"period {period}")
            if attendance_date is not None and attendance_date != self.attendance_date:
                self.attendance_date = attendance_date
                reasons.append(f"attendance date {attendance_date.isoformat()}")
            if reasons:
                self.trigger(", ".join(reasons))
            elif self._latest is None:
                self.trigger("initial")
            elif self.last_error is not None and self._latest.done():
                self.trigger("retry after failure")
            state = await self.wait_fresh()
            if _matches(state, period, attendance_date):
                return state
            self._log.debug("Selection moved while waiting (attempt %s); reselecting", attempt + 1)
        raise SelectionChanged(period, attendance_date)

    async def refresh(self, reason: str = "manual") -> Optional[DashboardState]:
        self.trigger(reason)
        return await self.wait_fresh()

    async def wait_fresh(self) -> Optional[DashboardState]:
        """Wait for the latest started pass and return the published state.

        Raises the error of the latest pass if it failed. Errors of passes
        that were superseded meanwhile are ignored.
        """
        while self._latest is not None:
            generation = self._started
            task = self._latest
            try:
                await task
            except Exception:
                if generation == self._started:
                    raise
                continue
            if generation == self._started:
                break
        return self.published

    # -- pass ---------------------------------------------------------

    async def _fetch(self, func, *args):
        return await asyncio.to_thread(func, *args)

    async def _reconcile(self, generation: int, period: BillingPeriod, attendance_date: date) -> Optional[DashboardState]:
        try:
            students = await self._fetch(self._store.list_students)
            payments = await self._fetch(self._store.list_fee_payments, period)
            month_records = await self._fetch(self._store.list_attendance, period.start, period.end)
            if period.contains(attendance_date):
                day_records = [r for r in month_records if r.date == attendance_date]
            else:
                day_records = await self._fetch(self._store.list_attendance, attendance_date, attendance_date)
            state = build_dashboard_state(
                students, payments, month_records, day_records, period, attendance_date, generation
            )
        except Exception as exc:
            if generation == self._started:
                self.last_error = exc
                self._log.warning("Reconciliation pass %s failed; keeping previous views: %s", generation, exc)
            raise

        if generation != self._started:
            self._log.debug("Discarding superseded reconciliation pass %s (latest %s)", generation, self._started)
            return None
        self.published = state
        self.last_error = None
        self.status = LoopStatus.FRESH
        self._log.debug("Reconciliation pass %s published for %s", generation, period)
        return state

    def _finished(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        # Outcomes are read through wait_fresh(); mark failures as retrieved
        if not task.cancelled():
            task.exception()

    def cancel_all(self) -> List[asyncio.Task]:
        pending = list(self._inflight)
        for task in pending:
            task.cancel()
        return pending


def _matches(state: Optional[DashboardState], period: Optional[BillingPeriod], attendance_date: Optional[date]) -> bool:
    if period is None and attendance_date is None:
        return True
    if state is None:
        return False
    if period is not None and state.period != period:
        return False
    return attendance_date is None or state.attendance_date == attendance_date
