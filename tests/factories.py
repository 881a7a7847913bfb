from datetime import date
from itertools import count

from utils.snapshots import (
    AttendanceSnapshot,
    AttendanceStatus,
    FeePaymentSnapshot,
    PaymentMode,
    StudentSnapshot,
    StudentStatus,
)

_ids = count(1000)


def student(sid, name="Student", admitted=date(2024, 1, 1), leaving=None, class_grade="8", batch=None, phone="9876543210"):
    return StudentSnapshot(
        id=sid,
        full_name=name,
        class_grade=class_grade,
        parent_phone=phone,
        admission_date=admitted,
        status=StudentStatus.LEFT if leaving else StudentStatus.ACTIVE,
        leaving_date=leaving,
        batch_timing=batch,
    )


def payment(student_id, month="2024-02", amount=500, mode=PaymentMode.CASH, paid=None, name=None, class_grade=None, reference=None):
    return FeePaymentSnapshot(
        id=next(_ids),
        student_id=student_id,
        fee_month=month,
        amount=amount,
        paid_date=paid or date(int(month[:4]), int(month[5:]), 5),
        payment_mode=mode,
        payment_reference=reference,
        student_name=name,
        student_class=class_grade,
    )


def mark(student_id, day, status=AttendanceStatus.PRESENT):
    return AttendanceSnapshot(id=next(_ids), student_id=student_id, date=day, status=status)
