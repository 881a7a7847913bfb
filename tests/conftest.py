import threading
from datetime import date

import pytest

from app import create_app
from extensions import db
from factories import mark
from models import Instructor
from utils.periods import BillingPeriod
from utils.security import hash_password
from utils.store import SnapshotStore, StoreUnavailable


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test_secret",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'tuition.db'}",
        "SESSION_COOKIE_SECURE": False,
        "RATELIMIT_ENABLED": False,
        "RECONCILE_TIMEOUT_SECONDS": 10,
        "CENTER_NAME": "Rajeev Classes",
        "CENTER_TIMEZONE": "Asia/Kolkata",
    })
    yield app
    app.extensions["instructor_contexts"].close_all()
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def _create_instructor(app, email, password="secret-pass", center="Rajeev Classes"):
    with app.app_context():
        instructor = Instructor(
            email=email,
            display_name=email.split("@")[0].title(),
            center_name=center,
            password_hash=hash_password(password),
        )
        db.session.add(instructor)
        db.session.commit()
        return instructor.id


@pytest.fixture
def instructor_id(app):
    return _create_instructor(app, "rajeev@example.org")


@pytest.fixture
def other_instructor_id(app):
    return _create_instructor(app, "meera@example.org", center="Meera Tutorials")


@pytest.fixture
def store(app, instructor_id):
    return SnapshotStore(app, instructor_id)


@pytest.fixture
def client(app, instructor_id):
    with app.test_client() as c:
        resp = c.post("/auth/login", json={"email": "rajeev@example.org", "password": "secret-pass"})
        assert resp.status_code == 200
        yield c


class FakeStore:
    """In-memory stand-in for SnapshotStore used to drive the reconciliation loop."""

    def __init__(self, students=(), payments=(), attendance=()):
        self.students = list(students)
        self.payments = list(payments)
        self.attendance = list(attendance)
        self.gates = {}
        self.unavailable = False
        self.calls = []
        self._lock = threading.Lock()

    def gate(self, period):
        """Block fee reads for ``period`` until the returned event is set."""
        event = threading.Event()
        self.gates[str(period)] = event
        return event

    def list_students(self):
        self.calls.append("students")
        if self.unavailable:
            raise StoreUnavailable("Database unavailable: connection refused")
        return list(self.students)

    def list_fee_payments(self, period):
        label = str(BillingPeriod.parse(period))
        self.calls.append(f"fees:{label}")
        gate = self.gates.get(label)
        if gate is not None:
            assert gate.wait(5), f"gate for {label} never opened"
        return [p for p in self.payments if p.fee_month == label]

    def list_attendance(self, start, end=None):
        end = end or start
        self.calls.append(f"attendance:{start.isoformat()}")
        return [r for r in self.attendance if start <= r.date <= end]

    def upsert_attendance(self, student_id, day, status):
        with self._lock:
            self.attendance = [
                r for r in self.attendance if not (r.student_id == student_id and r.date == day)
            ]
            record = mark(student_id, day, status)
            self.attendance.append(record)
            return record


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def feb_2024():
    return BillingPeriod(2024, 2)


@pytest.fixture
def day():
    return date(2024, 2, 12)
