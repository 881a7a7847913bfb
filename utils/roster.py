from __future__ import annotations

from typing import Iterable, List, Optional

from utils.periods import BillingPeriod
from utils.snapshots import StudentSnapshot, StudentStatus


def resolve_active_students(students: Iterable[StudentSnapshot], period: BillingPeriod) -> List[StudentSnapshot]:
    """Return students enrolled during any part of ``period``.

    A student counts when admitted on or before the last day of the month
    and either still Active or Left on/after the first day of the month.
    Input order is preserved.
    """
    start, end = period.start, period.end
    active = []
    for student in students:
        if student.admission_date > end:
            continue
        if student.status == StudentStatus.ACTIVE:
            active.append(student)
        elif student.leaving_date is not None and student.leaving_date >= start:
            active.append(student)
    return active


def left_during(students: Iterable[StudentSnapshot], period: BillingPeriod) -> List[StudentSnapshot]:
    """Students whose departure date falls inside ``period``."""
    return [
        s for s in students
        if s.status == StudentStatus.LEFT and s.leaving_date is not None and period.contains(s.leaving_date)
    ]


def currently_active(students: Iterable[StudentSnapshot]) -> List[StudentSnapshot]:
    return [s for s in students if s.status == StudentStatus.ACTIVE]


def filter_by_class(students: Iterable[StudentSnapshot], class_grade: Optional[str]) -> List[StudentSnapshot]:
    label = (class_grade or "").strip()
    if not label:
        return list(students)
    return [s for s in students if s.class_grade == label]


def search_students(students: Iterable[StudentSnapshot], term: Optional[str]) -> List[StudentSnapshot]:
    """Roster search over name, class label and parent phone."""
    needle = (term or "").strip()
    if not needle:
        return list(students)
    lowered = needle.lower()
    return [
        s for s in students
        if lowered in s.full_name.lower()
        or lowered in s.class_grade.lower()
        or needle in (s.parent_phone or "")
    ]


def class_labels(students: Iterable[StudentSnapshot]) -> List[str]:
    return sorted({s.class_grade for s in students if (s.class_grade or "").strip()})
