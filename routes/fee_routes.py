from flask import Blueprint, Response, current_app, jsonify, session

from utils import instructor_required
from utils.exporter import fee_rows, to_csv, unpaid_rows
from utils.forms import query_class, query_period, request_data, required_date, required_int
from utils.notify import fee_reminder_message, normalize_phone, whatsapp_link
from utils.session_context import current_context

fee_bp = Blueprint('fees', __name__, url_prefix='/fees')


def _csv_response(body: str, filename: str) -> Response:
    resp = Response(body, mimetype="text/csv; charset=utf-8")
    resp.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return resp


@fee_bp.route('', methods=['POST'])
@instructor_required
def record_payment():
    data = request_data()
    payment = current_context().store.insert_fee_payment(
        student_id=required_int(data, 'student_id'),
        fee_month=data.get('fee_month'),
        amount=required_int(data, 'amount'),
        paid_date=required_date(data, 'paid_date'),
        payment_mode=data.get('payment_mode'),
        payment_reference=data.get('payment_reference'),
    )
    current_app.logger.info(
        "Recorded %s payment of %s for student %s (%s)",
        payment.payment_mode.value, payment.amount, payment.student_id, payment.fee_month,
    )
    return jsonify({"ok": True, "payment": payment.to_dict()}), 201


@fee_bp.route('/summary', methods=['GET'])
@instructor_required
def summary():
    state = current_context().dashboard(period=query_period())
    fees = state.fees
    payload = fees.to_dict()
    class_grade = query_class()
    if class_grade:
        payload["unpaid_students"] = [
            s.to_dict() for s in fees.unpaid_students if s.class_grade == class_grade
        ]
    return jsonify({"ok": True, "fees": payload})


@fee_bp.route('/export.csv', methods=['GET'])
@instructor_required
def export_payments():
    state = current_context().dashboard(period=query_period())
    header, rows = fee_rows(state.fees, query_class())
    return _csv_response(to_csv(header, rows), f"fees_{state.period}.csv")


@fee_bp.route('/unpaid.csv', methods=['GET'])
@instructor_required
def export_unpaid():
    state = current_context().dashboard(period=query_period())
    header, rows = unpaid_rows(state.fees, query_class())
    return _csv_response(to_csv(header, rows), f"unpaid_{state.period}.csv")


@fee_bp.route('/reminders', methods=['GET'])
@instructor_required
def reminders():
    """Reminder texts (and WhatsApp links) for students still unpaid this period."""
    state = current_context().dashboard(period=query_period())
    center = session.get('center_name') or current_app.config.get('CENTER_NAME')
    class_grade = query_class()
    items = []
    for student in state.fees.unpaid_students:
        if class_grade and student.class_grade != class_grade:
            continue
        message = fee_reminder_message(student.full_name, state.period, center)
        phone = normalize_phone(student.parent_phone)
        items.append({
            "student_id": student.id,
            "full_name": student.full_name,
            "parent_phone": phone,
            "message": message,
            "whatsapp_url": whatsapp_link(phone, message),
        })
    return jsonify({"ok": True, "period": str(state.period), "reminders": items})
