from flask import Blueprint, Response, current_app, jsonify

from utils import instructor_required
from utils.attendance import bulk_mark, mark_attendance
from utils.exporter import attendance_rows, to_csv
from utils.forms import query_class, query_date, query_period, request_data, required_date, required_int
from utils.session_context import current_context

attendance_bp = Blueprint('attendance', __name__, url_prefix='/attendance')


@attendance_bp.route('/mark', methods=['POST'])
@instructor_required
def mark():
    data = request_data()
    record = mark_attendance(
        current_context().store,
        required_int(data, 'student_id'),
        required_date(data, 'date'),
        data.get('status'),
    )
    return jsonify({"ok": True, "record": record.to_dict()})


@attendance_bp.route('/bulk', methods=['POST'])
@instructor_required
def mark_all():
    """Mark every active student (optionally one class) Present or Holiday for a date."""
    data = request_data()
    day = required_date(data, 'date')
    class_grade = (data.get('class') or '').strip() or None
    store = current_context().store
    written = bulk_mark(store, store.list_students(), day, data.get('status'), class_grade)
    current_app.logger.info("Bulk attendance %s on %s: %s rows", data.get('status'), day, len(written))
    return jsonify({"ok": True, "date": day.isoformat(), "written": len(written)})


@attendance_bp.route('/day', methods=['GET'])
@instructor_required
def day_view():
    state = current_context().dashboard(attendance_date=query_date())
    class_grade = query_class()
    marks = [m for m in state.day_sheet if not class_grade or m.student.class_grade == class_grade]
    return jsonify({
        "ok": True,
        "date": state.attendance_date.isoformat(),
        "marks": [m.to_dict() for m in marks],
    })


@attendance_bp.route('/summary', methods=['GET'])
@instructor_required
def summary():
    state = current_context().dashboard(period=query_period())
    class_grade = query_class()
    tallies = [a for a in state.attendance if not class_grade or a.student.class_grade == class_grade]
    return jsonify({
        "ok": True,
        "period": str(state.period),
        "attendance": [a.to_dict() for a in tallies],
    })


@attendance_bp.route('/export.csv', methods=['GET'])
@instructor_required
def export_summary():
    state = current_context().dashboard(period=query_period())
    header, rows = attendance_rows(state.attendance, query_class())
    resp = Response(to_csv(header, rows), mimetype="text/csv; charset=utf-8")
    resp.headers["Content-Disposition"] = f"attachment; filename=attendance_{state.period}.csv"
    return resp
