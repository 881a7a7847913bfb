from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Tuple

from utils.periods import BillingPeriod
from utils.roster import left_during, resolve_active_students
from utils.snapshots import FeePaymentSnapshot, PaymentMode, StudentSnapshot


@dataclass(frozen=True)
class FeeReconciliationResult:
    period: BillingPeriod
    active_count: int
    total: int
    cash: int
    online: int
    paid_count: int
    unpaid_count: int
    unpaid_students: Tuple[StudentSnapshot, ...]
    left_this_period: int
    payments: Tuple[FeePaymentSnapshot, ...]
    outside_active_payers: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": str(self.period),
            "active_count": self.active_count,
            "total": self.total,
            "cash": self.cash,
            "online": self.online,
            "paid_count": self.paid_count,
            "unpaid_count": self.unpaid_count,
            "unpaid_students": [s.to_dict() for s in self.unpaid_students],
            "left_this_period": self.left_this_period,
            "outside_active_payers": self.outside_active_payers,
            "payments": [p.to_dict() for p in self.payments],
        }


def reconcile_fees(
    students: Iterable[StudentSnapshot],
    payments: Iterable[FeePaymentSnapshot],
    period: BillingPeriod,
) -> FeeReconciliationResult:
    """Split the month's active students into paid/unpaid and total the collection.

    A student is paid once any payment row exists for the period, whatever
    its amount. Totals sum every row, so duplicate rows for one student are
    counted in the money figures but only once in the paid set.
    """
    roster = list(students)
    label = str(period)
    rows = sorted(
        (p for p in payments if p.fee_month == label),
        key=lambda p: (p.paid_date, p.id),
    )

    cash = sum(p.amount for p in rows if p.payment_mode == PaymentMode.CASH)
    online = sum(p.amount for p in rows if p.payment_mode == PaymentMode.ONLINE)

    active = resolve_active_students(roster, period)
    active_ids = {s.id for s in active}
    payer_ids = {p.student_id for p in rows}
    unpaid = tuple(s for s in active if s.id not in payer_ids)

    return FeeReconciliationResult(
        period=period,
        active_count=len(active),
        total=cash + online,
        cash=cash,
        online=online,
        paid_count=len(payer_ids & active_ids),
        unpaid_count=len(unpaid),
        unpaid_students=unpaid,
        left_this_period=len(left_during(roster, period)),
        payments=tuple(rows),
        outside_active_payers=len(payer_ids - active_ids),
    )
