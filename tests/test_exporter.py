import csv
from datetime import date
from io import StringIO

from factories import mark, payment, student
from utils.attendance import summarize_attendance
from utils.exporter import (
    ATTENDANCE_HEADER,
    FEE_HEADER,
    attendance_rows,
    fee_rows,
    to_csv,
    unpaid_rows,
)
from utils.fee_reconciliation import reconcile_fees
from utils.periods import BillingPeriod
from utils.snapshots import PaymentMode

FEB = BillingPeriod(2024, 2)


def test_fee_rows_follow_reconciled_payments():
    roster = [student(1, name="Aarav", class_grade="8"), student(2, name="Diya", class_grade="9")]
    result = reconcile_fees(roster, [
        payment(1, amount=500, name="Aarav", class_grade="8", paid=date(2024, 2, 3)),
        payment(1, amount=300, mode=PaymentMode.ONLINE, name="Aarav", class_grade="8",
                paid=date(2024, 2, 4), reference="UPI-77"),
    ], FEB)
    header, rows = fee_rows(result)
    assert header == FEE_HEADER
    assert rows == [
        ["Aarav", "500", "2024-02-03", "Cash", ""],
        ["Aarav", "300", "2024-02-04", "Online", "UPI-77"],
    ]
    assert fee_rows(result, "9")[1] == []


def test_unpaid_rows_match_unpaid_students():
    roster = [student(1, name="Aarav", batch="5-6 PM"), student(2, name="Diya")]
    result = reconcile_fees(roster, [payment(2)], FEB)
    _, rows = unpaid_rows(result)
    assert rows == [["Aarav", "8", "5-6 PM", "9876543210", "2024-01-01"]]


def test_attendance_rows_use_tallies():
    roster = [student(1, name="Aarav", class_grade="8"), student(2, name="Diya", class_grade="9")]
    summaries = summarize_attendance([mark(1, date(2024, 2, 1))], roster, FEB)
    header, rows = attendance_rows(summaries, "8")
    assert header == ATTENDANCE_HEADER
    assert rows == [["Aarav", "8", "1", "0", "0", "0"]]


def test_csv_escapes_separators_and_quotes():
    body = to_csv(["Student Name", "Reference"], [['Sharma, Aarav', 'said "paid"\nlate']])
    parsed = list(csv.reader(StringIO(body)))
    assert parsed == [["Student Name", "Reference"], ['Sharma, Aarav', 'said "paid"\nlate']]
    assert '"Sharma, Aarav"' in body
