from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from extensions import db
from models import AttendanceRecord, Student
from utils.attendance import bulk_mark
from utils.periods import BillingPeriod
from utils.snapshots import AttendanceStatus, PaymentMode, StudentStatus
from utils.store import SnapshotStore, StoreUnavailable, WriteRejected, change_feed


def _admit(store, name, admitted=date(2024, 1, 1), class_grade="8"):
    return store.insert_student(
        full_name=name,
        class_grade=class_grade,
        parent_phone="9876543210",
        admission_date=admitted,
    )


def test_students_listed_by_name_and_scoped_to_instructor(app, store, other_instructor_id):
    _admit(store, "Zoya")
    _admit(store, "Aarav")
    _admit(SnapshotStore(app, other_instructor_id), "Meera's student")
    assert [s.full_name for s in store.list_students()] == ["Aarav", "Zoya"]
    assert all(s.status == StudentStatus.ACTIVE for s in store.list_students())


def test_insert_student_requires_core_fields(store):
    with pytest.raises(WriteRejected):
        store.insert_student(full_name="  ", class_grade="8", parent_phone="1", admission_date=date(2024, 1, 1))


def test_leaving_is_one_way_and_not_before_admission(store):
    s = _admit(store, "Aarav", admitted=date(2024, 1, 10))
    with pytest.raises(WriteRejected):
        store.update_student_status(s.id, "Left", date(2024, 1, 9))
    left = store.update_student_status(s.id, "Left", date(2024, 2, 15))
    assert left.status == StudentStatus.LEFT
    assert left.leaving_date == date(2024, 2, 15)
    with pytest.raises(WriteRejected):
        store.update_student_status(s.id, "Left", date(2024, 3, 1))
    with pytest.raises(WriteRejected):
        store.update_student_status(s.id, "Active", date(2024, 3, 1))


def test_fee_payment_validation(store):
    s = _admit(store, "Aarav")
    base = dict(student_id=s.id, fee_month="2024-02", paid_date=date(2024, 2, 5), payment_mode="Cash")
    for bad in (0, -10, 2.5, True):
        with pytest.raises(WriteRejected):
            store.insert_fee_payment(amount=bad, **base)
    with pytest.raises(WriteRejected):
        store.insert_fee_payment(amount=500, **{**base, "payment_mode": "Cheque"})
    with pytest.raises(WriteRejected):
        store.insert_fee_payment(amount=500, **{**base, "fee_month": "Feb 2024"})
    with pytest.raises(WriteRejected):
        store.insert_fee_payment(amount=500, **{**base, "student_id": 9999})


def test_fee_payments_join_student_fields(store):
    s = _admit(store, "Aarav", class_grade="10")
    store.insert_fee_payment(student_id=s.id, fee_month="2024-02", amount=500,
                             paid_date=date(2024, 2, 5), payment_mode="online", payment_reference="UPI-1")
    store.insert_fee_payment(student_id=s.id, fee_month="2024-03", amount=500,
                             paid_date=date(2024, 3, 5), payment_mode="Cash")
    rows = store.list_fee_payments(BillingPeriod(2024, 2))
    assert len(rows) == 1
    assert rows[0].payment_mode == PaymentMode.ONLINE
    assert rows[0].student_name == "Aarav"
    assert rows[0].student_class == "10"


def test_attendance_upsert_is_idempotent(app, store):
    s = _admit(store, "Aarav")
    day = date(2024, 2, 12)
    store.upsert_attendance(s.id, day, AttendanceStatus.PRESENT)
    store.upsert_attendance(s.id, day, AttendanceStatus.PRESENT)
    store.upsert_attendance(s.id, day, "Absent")
    records = store.list_attendance(day)
    assert len(records) == 1
    assert records[0].status == AttendanceStatus.ABSENT
    with app.app_context():
        assert db.session.query(AttendanceRecord).count() == 1


def test_bulk_mark_all_present_replaces_holiday(store):
    day = date(2024, 2, 12)
    students = [_admit(store, name) for name in ("Aarav", "Diya", "Kabir")]
    store.upsert_attendance(students[1].id, day, AttendanceStatus.HOLIDAY)
    bulk_mark(store, store.list_students(), day, "Present")
    records = store.list_attendance(day)
    assert len(records) == 3
    assert {r.status for r in records} == {AttendanceStatus.PRESENT}


def test_list_attendance_range(store):
    s = _admit(store, "Aarav")
    for d in (date(2024, 1, 31), date(2024, 2, 1), date(2024, 2, 29), date(2024, 3, 1)):
        store.upsert_attendance(s.id, d, "Present")
    feb = BillingPeriod(2024, 2)
    assert [r.date for r in store.list_attendance(feb.start, feb.end)] == [date(2024, 2, 1), date(2024, 2, 29)]


def test_change_feed_fires_after_commit_only(store):
    seen = []
    unsubscribe = store.subscribe("students", seen.append)
    try:
        s = _admit(store, "Aarav")
        assert seen == ["students"]
        with pytest.raises(WriteRejected):
            store.update_student_status(s.id, "Left", date(2023, 1, 1))
        assert seen == ["students"]
    finally:
        unsubscribe()
    _admit(store, "Diya")
    assert seen == ["students"]


def test_change_feed_drops_flushed_tables_on_rollback(app, store, instructor_id):
    seen = []
    unsubscribe = store.subscribe("students", seen.append)
    try:
        with app.app_context():
            db.session.add(Student(
                instructor_id=instructor_id,
                full_name="Rolled Back",
                class_grade="8",
                parent_phone="9876543210",
                admission_date=date(2024, 1, 1),
            ))
            db.session.flush()
            db.session.rollback()
            db.session.commit()
    finally:
        unsubscribe()
    assert seen == []
    assert store.list_students() == []


def test_change_feed_routes_by_table(store):
    seen = []
    unsubscribe = store.subscribe("attendance", seen.append)
    try:
        s = _admit(store, "Aarav")
        store.upsert_attendance(s.id, date(2024, 2, 1), "Present")
    finally:
        unsubscribe()
    assert seen == ["attendance"]


def test_subscribe_rejects_unknown_table(store):
    with pytest.raises(ValueError):
        store.subscribe("payments", lambda table: None)
    assert change_feed is not None


def test_connection_failure_maps_to_store_unavailable(store):
    error = OperationalError("SELECT 1", {}, Exception("connection refused"))
    with patch("sqlalchemy.orm.Session.execute", side_effect=error):
        with pytest.raises(StoreUnavailable):
            store.ping()
    assert store.ping() is True
