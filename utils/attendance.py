from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from utils.periods import BillingPeriod
from utils.roster import currently_active, filter_by_class
from utils.snapshots import AttendanceSnapshot, AttendanceStatus, StudentSnapshot, parse_choice
from utils.store import BatchPartialFailure, StoreError, WriteRejected

# Statuses offered by the "mark all" actions
BULK_STATUSES = (AttendanceStatus.PRESENT, AttendanceStatus.HOLIDAY)


@dataclass(frozen=True)
class AttendanceSummary:
    student: StudentSnapshot
    present: int = 0
    absent: int = 0
    leave: int = 0
    holiday: int = 0

    @property
    def total(self) -> int:
        return self.present + self.absent + self.leave + self.holiday

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student": self.student.to_dict(),
            "present": self.present,
            "absent": self.absent,
            "leave": self.leave,
            "holiday": self.holiday,
        }


@dataclass(frozen=True)
class DailyMark:
    student: StudentSnapshot
    status: Optional[AttendanceStatus] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student": self.student.to_dict(),
            "status": self.status.value if self.status else None,
        }


def summarize_attendance(
    records: Iterable[AttendanceSnapshot],
    students: Iterable[StudentSnapshot],
    period: BillingPeriod,
    class_grade: Optional[str] = None,
) -> List[AttendanceSummary]:
    """Tally each currently Active student's marks over ``period``.

    Left students are not reported at all. Students without marks get
    all-zero counters.
    """
    roster = filter_by_class(currently_active(students), class_grade)
    counts: Dict[int, Dict[AttendanceStatus, int]] = {
        s.id: {status: 0 for status in AttendanceStatus} for s in roster
    }
    for record in records:
        tally = counts.get(record.student_id)
        if tally is None or not period.contains(record.date):
            continue
        tally[record.status] += 1

    return [
        AttendanceSummary(
            student=s,
            present=counts[s.id][AttendanceStatus.PRESENT],
            absent=counts[s.id][AttendanceStatus.ABSENT],
            leave=counts[s.id][AttendanceStatus.LEAVE],
            holiday=counts[s.id][AttendanceStatus.HOLIDAY],
        )
        for s in roster
    ]


def daily_sheet(
    records: Iterable[AttendanceSnapshot],
    students: Iterable[StudentSnapshot],
    day: date,
    class_grade: Optional[str] = None,
) -> List[DailyMark]:
    marks = {r.student_id: r.status for r in records if r.date == day}
    return [
        DailyMark(student=s, status=marks.get(s.id))
        for s in filter_by_class(currently_active(students), class_grade)
    ]


def mark_attendance(store, student_id: int, day: date, status) -> AttendanceSnapshot:
    try:
        status = parse_choice(AttendanceStatus, status)
    except ValueError as exc:
        raise WriteRejected(str(exc)) from None
    return store.upsert_attendance(student_id, day, status)


def bulk_mark(
    store,
    students: Iterable[StudentSnapshot],
    day: date,
    status,
    class_grade: Optional[str] = None,
) -> List[AttendanceSnapshot]:
    """Apply one status to every active student in the class filter for ``day``.

    Each row is an independent upsert. Failures do not stop the batch and
    are reported together as ``BatchPartialFailure``; rows already written
    stay written.
    """
    try:
        status = parse_choice(AttendanceStatus, status)
    except ValueError as exc:
        raise WriteRejected(str(exc)) from None
    if status not in BULK_STATUSES:
        allowed = ", ".join(s.value for s in BULK_STATUSES)
        raise WriteRejected(f"Bulk marking supports only: {allowed}")

    written: List[AttendanceSnapshot] = []
    failed: List[Tuple[int, str]] = []
    for student in filter_by_class(currently_active(students), class_grade):
        try:
            written.append(store.upsert_attendance(student.id, day, status))
        except StoreError as exc:
            failed.append((student.id, str(exc)))
    if failed:
        raise BatchPartialFailure(day, written=len(written), failed=failed)
    return written
