from flask import Blueprint, current_app, jsonify, session
from sqlalchemy import select

from extensions import db, limiter
from models import Instructor
from utils.forms import request_data
from utils.security import verify_password
from utils.session_context import get_registry

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


@auth_bp.route('/login', methods=['POST'])
@limiter.limit('10 per minute')
def login():
    """Sign an instructor in and open their reconciliation context."""
    data = request_data()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    if not email or not password:
        return jsonify({"ok": False, "error": "Email and password are required"}), 400

    instructor = db.session.scalars(select(Instructor).where(Instructor.email == email)).first()
    if instructor is None or not verify_password(instructor.password_hash, password):
        current_app.logger.warning("Failed sign-in for %s", email)
        return jsonify({"ok": False, "error": "Invalid email or password"}), 401

    session.clear()
    session['instructor_id'] = instructor.id
    session['instructor_name'] = instructor.display_name
    session['center_name'] = instructor.center_name
    get_registry().open(instructor.id)
    return jsonify({
        "ok": True,
        "instructor": {
            "id": instructor.id,
            "email": instructor.email,
            "display_name": instructor.display_name,
            "center_name": instructor.center_name,
        },
    })


@auth_bp.route('/logout', methods=['POST'])
def logout():
    instructor_id = session.get('instructor_id')
    if instructor_id:
        get_registry().close(int(instructor_id))
    session.clear()
    return jsonify({"ok": True})
