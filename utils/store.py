"""Flask-SQLAlchemy backed entity store scoped to one instructor.

Every call pushes its own application context, so a store can be used from
request threads and from the reconciliation worker threads alike. Results
are detached snapshots (see ``utils.snapshots``).
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from flask import Flask
from sqlalchemy import event, select, text
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from extensions import db
from models import AttendanceRecord, FeePayment, Student
from utils.periods import BillingPeriod
from utils.snapshots import (
    AttendanceSnapshot,
    AttendanceStatus,
    FeePaymentSnapshot,
    PaymentMode,
    StudentSnapshot,
    StudentStatus,
    parse_choice,
)

WATCHED_TABLES = ("students", "fees", "attendance")


# -----------------------------
# Errors
# -----------------------------

class StoreError(Exception):
    status_code = 500

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "error": str(self)}


class StoreUnavailable(StoreError):
    """The database could not be reached; nothing was read or written."""

    status_code = 503


class WriteRejected(StoreError):
    """An insert/update was refused (validation or constraint failure)."""

    status_code = 400


class BatchPartialFailure(StoreError):
    """Some rows of a bulk write failed; the rest were applied."""

    status_code = 409

    def __init__(self, day: date, written: int, failed: Sequence[Tuple[int, str]]):
        self.day = day
        self.written = written
        self.failed = list(failed)
        super().__init__(
            f"Bulk attendance for {day.isoformat()} failed for {len(self.failed)} student(s); "
            f"{written} written"
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update({
            "date": self.day.isoformat(),
            "written": self.written,
            "failed": [{"student_id": sid, "error": reason} for sid, reason in self.failed],
        })
        return payload


# -----------------------------
# Change notifications
# -----------------------------

class ChangeFeed:
    """Dispatches table-level change signals after a session commits.

    Touched tables are collected at flush time and delivered only once the
    transaction commits; a rollback drops them.
    """

    _INFO_KEY = "changed_tables"

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[str], None]]] = {}
        self._lock = threading.Lock()
        self._installed = False

    def install(self) -> None:
        if self._installed:
            return
        event.listen(Session, "after_flush", self._after_flush)
        event.listen(Session, "after_commit", self._after_commit)
        event.listen(Session, "after_rollback", self._after_rollback)
        self._installed = True

    def subscribe(self, table: str, on_change: Callable[[str], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.setdefault(table, []).append(on_change)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._subscribers.get(table, [])
                if on_change in listeners:
                    listeners.remove(on_change)

        return unsubscribe

    def publish(self, table: str) -> None:
        with self._lock:
            listeners = list(self._subscribers.get(table, []))
        for listener in listeners:
            listener(table)

    def _after_flush(self, session, flush_context) -> None:
        touched = session.info.setdefault(self._INFO_KEY, set())
        for obj in list(session.new) + list(session.dirty) + list(session.deleted):
            table = getattr(obj, "__tablename__", None)
            if table:
                touched.add(table)

    def _after_commit(self, session) -> None:
        for table in sorted(session.info.pop(self._INFO_KEY, set())):
            self.publish(table)

    def _after_rollback(self, session) -> None:
        session.info.pop(self._INFO_KEY, None)


change_feed = ChangeFeed()


# -----------------------------
# Row -> snapshot
# -----------------------------

def _student_snapshot(row: Student) -> StudentSnapshot:
    return StudentSnapshot(
        id=row.id,
        full_name=row.full_name,
        class_grade=row.class_grade,
        parent_phone=row.parent_phone,
        admission_date=row.admission_date,
        status=StudentStatus(row.status),
        leaving_date=row.leaving_date,
        school_name=row.school_name,
        parent_name=row.parent_name,
        batch_timing=row.batch_timing,
        notes=row.notes,
        instructor_id=row.instructor_id,
    )


def _fee_snapshot(row: FeePayment, student: Optional[Student] = None) -> FeePaymentSnapshot:
    return FeePaymentSnapshot(
        id=row.id,
        student_id=row.student_id,
        fee_month=row.fee_month,
        amount=row.amount,
        paid_date=row.paid_date,
        payment_mode=PaymentMode(row.payment_mode),
        payment_reference=row.payment_reference,
        student_name=student.full_name if student else None,
        student_class=student.class_grade if student else None,
        student_batch=student.batch_timing if student else None,
    )


def _attendance_snapshot(row: AttendanceRecord) -> AttendanceSnapshot:
    return AttendanceSnapshot(
        id=row.id,
        student_id=row.student_id,
        date=row.date,
        status=AttendanceStatus(row.status),
    )


def _clean(value: Any) -> Optional[str]:
    text_value = str(value).strip() if value is not None else ""
    return text_value or None


# -----------------------------
# Store
# -----------------------------

class SnapshotStore:
    def __init__(self, app: Flask, instructor_id: int, feed: ChangeFeed = change_feed):
        self._app = app
        self.instructor_id = instructor_id
        self._feed = feed

    @contextmanager
    def _session(self):
        with self._app.app_context():
            try:
                yield db.session
            except (OperationalError, InterfaceError) as exc:
                raise StoreUnavailable(f"Database unavailable: {exc.orig}") from exc

    @contextmanager
    def _write(self):
        with self._session() as session:
            try:
                yield session
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise WriteRejected(f"Write rejected by database: {exc.orig}") from exc
            except StoreError:
                session.rollback()
                raise

    def _owned_student(self, session, student_id: int) -> Student:
        row = session.get(Student, student_id)
        if row is None or row.instructor_id != self.instructor_id:
            raise WriteRejected(f"Student {student_id} not found")
        return row

    # -- reads --------------------------------------------------------

    def ping(self) -> bool:
        with self._session() as session:
            session.execute(text("SELECT 1"))
        return True

    def list_students(self) -> List[StudentSnapshot]:
        with self._session() as session:
            rows = session.scalars(
                select(Student)
                .where(Student.instructor_id == self.instructor_id)
                .order_by(Student.full_name.asc(), Student.id.asc())
            ).all()
            return [_student_snapshot(r) for r in rows]

    def list_fee_payments(self, period) -> List[FeePaymentSnapshot]:
        label = str(BillingPeriod.parse(period))
        with self._session() as session:
            rows = session.execute(
                select(FeePayment, Student)
                .join(Student, Student.id == FeePayment.student_id)
                .where(FeePayment.instructor_id == self.instructor_id, FeePayment.fee_month == label)
                .order_by(FeePayment.paid_date.asc(), FeePayment.id.asc())
            ).all()
            return [_fee_snapshot(fee, student) for fee, student in rows]

    def list_attendance(self, start: date, end: Optional[date] = None) -> List[AttendanceSnapshot]:
        end = end or start
        with self._session() as session:
            rows = session.scalars(
                select(AttendanceRecord)
                .where(
                    AttendanceRecord.instructor_id == self.instructor_id,
                    AttendanceRecord.date >= start,
                    AttendanceRecord.date <= end,
                )
                .order_by(AttendanceRecord.date.asc(), AttendanceRecord.student_id.asc())
            ).all()
            return [_attendance_snapshot(r) for r in rows]

    # -- writes -------------------------------------------------------

    def insert_student(
        self,
        *,
        full_name: str,
        class_grade: str,
        parent_phone: str,
        admission_date: date,
        school_name: Optional[str] = None,
        parent_name: Optional[str] = None,
        batch_timing: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> StudentSnapshot:
        required = {"full_name": full_name, "class_grade": class_grade, "parent_phone": parent_phone}
        missing = [name for name, value in required.items() if not _clean(value)]
        if missing:
            raise WriteRejected(f"Missing required field(s): {', '.join(missing)}")
        if not isinstance(admission_date, date):
            raise WriteRejected("admission_date must be a date")
        with self._write() as session:
            row = Student(
                instructor_id=self.instructor_id,
                full_name=_clean(full_name),
                class_grade=_clean(class_grade),
                parent_phone=_clean(parent_phone),
                admission_date=admission_date,
                school_name=_clean(school_name),
                parent_name=_clean(parent_name),
                batch_timing=_clean(batch_timing),
                notes=_clean(notes),
                status=StudentStatus.ACTIVE.value,
            )
            session.add(row)
            session.flush()
            snapshot = _student_snapshot(row)
        return snapshot

    def update_student_status(self, student_id: int, status, leaving_date: date) -> StudentSnapshot:
        try:
            status = parse_choice(StudentStatus, status)
        except ValueError as exc:
            raise WriteRejected(str(exc)) from None
        # Left is the only transition; there is no way back to Active
        if status != StudentStatus.LEFT:
            raise WriteRejected("Students can only be marked as Left")
        if not isinstance(leaving_date, date):
            raise WriteRejected("leaving_date must be a date")
        with self._write() as session:
            row = self._owned_student(session, student_id)
            if row.status == StudentStatus.LEFT.value:
                raise WriteRejected(f"{row.full_name} is already marked as Left")
            if leaving_date < row.admission_date:
                raise WriteRejected("leaving_date cannot be before admission_date")
            row.status = StudentStatus.LEFT.value
            row.leaving_date = leaving_date
            session.flush()
            snapshot = _student_snapshot(row)
        return snapshot

    def insert_fee_payment(
        self,
        *,
        student_id: int,
        fee_month,
        amount: int,
        paid_date: date,
        payment_mode,
        payment_reference: Optional[str] = None,
    ) -> FeePaymentSnapshot:
        try:
            period = BillingPeriod.parse(fee_month)
            mode = parse_choice(PaymentMode, payment_mode)
        except ValueError as exc:
            raise WriteRejected(str(exc)) from None
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise WriteRejected("amount must be a positive whole number")
        if not isinstance(paid_date, date):
            raise WriteRejected("paid_date must be a date")
        with self._write() as session:
            student = self._owned_student(session, student_id)
            row = FeePayment(
                instructor_id=self.instructor_id,
                student_id=student.id,
                fee_month=str(period),
                amount=amount,
                paid_date=paid_date,
                payment_mode=mode.value,
                payment_reference=_clean(payment_reference),
            )
            session.add(row)
            session.flush()
            snapshot = _fee_snapshot(row, student)
        return snapshot

    def upsert_attendance(self, student_id: int, day: date, status) -> AttendanceSnapshot:
        """Insert or replace the mark for (student, day)."""
        try:
            status = parse_choice(AttendanceStatus, status)
        except ValueError as exc:
            raise WriteRejected(str(exc)) from None
        if not isinstance(day, date):
            raise WriteRejected("date must be a date")
        with self._write() as session:
            self._owned_student(session, student_id)
            row = session.scalars(
                select(AttendanceRecord).where(
                    AttendanceRecord.student_id == student_id,
                    AttendanceRecord.date == day,
                )
            ).first()
            if row is None:
                row = AttendanceRecord(
                    instructor_id=self.instructor_id,
                    student_id=student_id,
                    date=day,
                    status=status.value,
                )
                session.add(row)
            else:
                row.status = status.value
            session.flush()
            snapshot = _attendance_snapshot(row)
        return snapshot

    # -- notifications ------------------------------------------------

    def subscribe(self, table: str, on_change: Callable[[str], None]) -> Callable[[], None]:
        if table not in WATCHED_TABLES:
            raise ValueError(f"Unknown table {table!r}")
        return self._feed.subscribe(table, on_change)
