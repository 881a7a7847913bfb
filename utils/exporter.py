"""Flat tabular exports built from reconciled views.

Rows are derived from ``FeeReconciliationResult`` / ``AttendanceSummary``
values and never recomputed from raw rows.
"""
from __future__ import annotations

import csv
from io import StringIO
from typing import Iterable, List, Optional, Sequence, Tuple

from utils.attendance import AttendanceSummary
from utils.fee_reconciliation import FeeReconciliationResult

FEE_HEADER = ["Student Name", "Amount", "Date", "Mode", "Reference"]
UNPAID_HEADER = ["Student Name", "Class", "Batch", "Parent Phone", "Admission Date"]
ATTENDANCE_HEADER = ["Student Name", "Class", "Present", "Absent", "Leave", "Holiday"]

Table = Tuple[List[str], List[List[str]]]


def _text(value) -> str:
    if value is None:
        return ""
    return str(value)


def _matches(class_grade: Optional[str], value: Optional[str]) -> bool:
    label = (class_grade or "").strip()
    return not label or value == label


def fee_rows(result: FeeReconciliationResult, class_grade: Optional[str] = None) -> Table:
    rows = [
        [
            _text(p.student_name),
            _text(p.amount),
            _text(p.paid_date.isoformat()),
            _text(p.payment_mode.value),
            _text(p.payment_reference),
        ]
        for p in result.payments
        if _matches(class_grade, p.student_class)
    ]
    return list(FEE_HEADER), rows


def unpaid_rows(result: FeeReconciliationResult, class_grade: Optional[str] = None) -> Table:
    rows = [
        [
            _text(s.full_name),
            _text(s.class_grade),
            _text(s.batch_timing),
            _text(s.parent_phone),
            _text(s.admission_date.isoformat()),
        ]
        for s in result.unpaid_students
        if _matches(class_grade, s.class_grade)
    ]
    return list(UNPAID_HEADER), rows


def attendance_rows(summaries: Iterable[AttendanceSummary], class_grade: Optional[str] = None) -> Table:
    rows = [
        [
            _text(a.student.full_name),
            _text(a.student.class_grade),
            _text(a.present),
            _text(a.absent),
            _text(a.leave),
            _text(a.holiday),
        ]
        for a in summaries
        if _matches(class_grade, a.student.class_grade)
    ]
    return list(ATTENDANCE_HEADER), rows


def to_csv(header: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()
