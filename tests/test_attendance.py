from datetime import date

import pytest

from factories import mark, student
from utils.attendance import bulk_mark, daily_sheet, mark_attendance, summarize_attendance
from utils.periods import BillingPeriod
from utils.snapshots import AttendanceStatus
from utils.store import BatchPartialFailure, WriteRejected

FEB = BillingPeriod(2024, 2)


def test_tallies_per_status_and_zero_for_unmarked():
    roster = [student(1, name="Aarav"), student(2, name="Diya")]
    records = [
        mark(1, date(2024, 2, 1)),
        mark(1, date(2024, 2, 2), AttendanceStatus.ABSENT),
        mark(1, date(2024, 2, 3), AttendanceStatus.LEAVE),
        mark(1, date(2024, 2, 4), AttendanceStatus.HOLIDAY),
        mark(1, date(2024, 2, 5)),
        mark(1, date(2024, 3, 1)),  # outside the month
    ]
    summaries = summarize_attendance(records, roster, FEB)
    first, second = summaries
    assert (first.present, first.absent, first.leave, first.holiday) == (2, 1, 1, 1)
    assert first.total == 5
    assert (second.present, second.absent, second.leave, second.holiday) == (0, 0, 0, 0)


def test_left_students_are_not_reported_even_if_billable():
    roster = [student(1), student(2, leaving=date(2024, 2, 20))]
    records = [mark(2, date(2024, 2, 5))]
    assert [a.student.id for a in summarize_attendance(records, roster, FEB)] == [1]


def test_class_filter_does_not_change_tallies():
    roster = [student(1, class_grade="8"), student(2, class_grade="9")]
    records = [mark(1, date(2024, 2, 1)), mark(2, date(2024, 2, 1)), mark(2, date(2024, 2, 2))]
    everyone = {a.student.id: a for a in summarize_attendance(records, roster, FEB)}
    only_nine = summarize_attendance(records, roster, FEB, class_grade="9")
    assert [a.student.id for a in only_nine] == [2]
    assert only_nine[0] == everyone[2]


def test_daily_sheet_shows_unmarked_students():
    roster = [student(1), student(2), student(3, leaving=date(2024, 2, 1))]
    sheet = daily_sheet([mark(1, date(2024, 2, 12), AttendanceStatus.ABSENT)], roster, date(2024, 2, 12))
    assert [(m.student.id, m.status) for m in sheet] == [(1, AttendanceStatus.ABSENT), (2, None)]


def test_mark_attendance_rejects_unknown_status(fake_store, day):
    with pytest.raises(WriteRejected):
        mark_attendance(fake_store, 1, day, "Late")
    assert mark_attendance(fake_store, 1, day, "present").status == AttendanceStatus.PRESENT


def test_bulk_mark_replaces_existing_marks(fake_store, day):
    roster = [student(1), student(2), student(3)]
    fake_store.attendance = [mark(2, day, AttendanceStatus.HOLIDAY)]
    written = bulk_mark(fake_store, roster, day, AttendanceStatus.PRESENT)
    assert len(written) == 3
    same_day = [r for r in fake_store.attendance if r.date == day]
    assert len(same_day) == 3
    assert {r.status for r in same_day} == {AttendanceStatus.PRESENT}


def test_bulk_mark_only_touches_filtered_active_students(fake_store, day):
    roster = [student(1, class_grade="8"), student(2, class_grade="9"), student(3, class_grade="8", leaving=date(2024, 2, 1))]
    bulk_mark(fake_store, roster, day, "Holiday", class_grade="8")
    assert [(r.student_id, r.status) for r in fake_store.attendance] == [(1, AttendanceStatus.HOLIDAY)]


def test_bulk_mark_limited_to_present_and_holiday(fake_store, day):
    with pytest.raises(WriteRejected):
        bulk_mark(fake_store, [student(1)], day, AttendanceStatus.ABSENT)


def test_bulk_mark_reports_partial_failure_without_retry(fake_store, day):
    attempts = []
    original = fake_store.upsert_attendance

    def flaky(student_id, when, status):
        attempts.append(student_id)
        if student_id == 2:
            raise WriteRejected("Student 2 not found")
        return original(student_id, when, status)

    fake_store.upsert_attendance = flaky
    with pytest.raises(BatchPartialFailure) as excinfo:
        bulk_mark(fake_store, [student(1), student(2), student(3)], day, "Present")
    assert attempts == [1, 2, 3]
    assert excinfo.value.written == 2
    assert excinfo.value.failed == [(2, "Student 2 not found")]
    assert {r.student_id for r in fake_store.attendance} == {1, 3}
