from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

E = TypeVar("E", bound=Enum)


class StudentStatus(str, Enum):
    ACTIVE = "Active"
    LEFT = "Left"


class PaymentMode(str, Enum):
    CASH = "Cash"
    ONLINE = "Online"


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    LEAVE = "Leave"
    HOLIDAY = "Holiday"


def parse_choice(enum_cls: Type[E], raw: Any) -> E:
    """Resolve ``raw`` to a member of ``enum_cls`` by value, ignoring case."""
    if isinstance(raw, enum_cls):
        return raw
    text = str(raw or "").strip().lower()
    for member in enum_cls:
        if member.value.lower() == text:
            return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValueError(f"{raw!r} is not one of: {allowed}")


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class StudentSnapshot:
    id: int
    full_name: str
    class_grade: str
    parent_phone: str
    admission_date: date
    status: StudentStatus = StudentStatus.ACTIVE
    leaving_date: Optional[date] = None
    school_name: Optional[str] = None
    parent_name: Optional[str] = None
    batch_timing: Optional[str] = None
    notes: Optional[str] = None
    instructor_id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status == StudentStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "class_grade": self.class_grade,
            "school_name": self.school_name,
            "parent_name": self.parent_name,
            "parent_phone": self.parent_phone,
            "admission_date": _iso(self.admission_date),
            "batch_timing": self.batch_timing,
            "status": self.status.value,
            "leaving_date": _iso(self.leaving_date),
            "notes": self.notes,
        }


@dataclass(frozen=True)
class FeePaymentSnapshot:
    id: int
    student_id: int
    fee_month: str
    amount: int
    paid_date: date
    payment_mode: PaymentMode
    payment_reference: Optional[str] = None
    # joined display fields
    student_name: Optional[str] = None
    student_class: Optional[str] = None
    student_batch: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "fee_month": self.fee_month,
            "amount": self.amount,
            "paid_date": _iso(self.paid_date),
            "payment_mode": self.payment_mode.value,
            "payment_reference": self.payment_reference,
            "student": {
                "full_name": self.student_name,
                "class_grade": self.student_class,
                "batch_timing": self.student_batch,
            },
        }


@dataclass(frozen=True)
class AttendanceSnapshot:
    id: int
    student_id: int
    date: date
    status: AttendanceStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "date": _iso(self.date),
            "status": self.status.value,
        }
