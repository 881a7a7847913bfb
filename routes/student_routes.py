from flask import Blueprint, current_app, jsonify, request

from utils import instructor_required
from utils.forms import optional_date, request_data, required_date
from utils.roster import class_labels, filter_by_class, search_students
from utils.session_context import current_context
from utils.snapshots import StudentStatus
from utils.timezone_helpers import center_today

student_bp = Blueprint('students', __name__, url_prefix='/students')


@student_bp.route('', methods=['GET'])
@instructor_required
def list_students():
    students = current_context().store.list_students()
    students = filter_by_class(students, request.args.get('class'))
    students = search_students(students, request.args.get('q'))
    return jsonify({"ok": True, "students": [s.to_dict() for s in students]})


@student_bp.route('/classes', methods=['GET'])
@instructor_required
def list_classes():
    return jsonify({"ok": True, "classes": class_labels(current_context().store.list_students())})


@student_bp.route('', methods=['POST'])
@instructor_required
def admit_student():
    data = request_data()
    student = current_context().store.insert_student(
        full_name=data.get('full_name'),
        class_grade=data.get('class_grade'),
        parent_phone=data.get('parent_phone'),
        admission_date=required_date(data, 'admission_date'),
        school_name=data.get('school_name'),
        parent_name=data.get('parent_name'),
        batch_timing=data.get('batch_timing'),
        notes=data.get('notes'),
    )
    current_app.logger.info("Admitted student %s (%s)", student.id, student.class_grade)
    return jsonify({"ok": True, "student": student.to_dict()}), 201


@student_bp.route('/<int:student_id>/left', methods=['POST'])
@instructor_required
def mark_left(student_id: int):
    data = request_data()
    leaving_date = optional_date(
        data, 'leaving_date', default=center_today(current_app.config.get('CENTER_TIMEZONE'))
    )
    student = current_context().store.update_student_status(student_id, StudentStatus.LEFT, leaving_date)
    current_app.logger.info("Student %s marked Left on %s", student.id, leaving_date)
    return jsonify({"ok": True, "student": student.to_dict()})
