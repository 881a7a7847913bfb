from datetime import datetime

from extensions import db


class Instructor(db.Model):
    __tablename__ = 'instructors'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    display_name = db.Column(db.String(150), nullable=False)
    center_name = db.Column(db.String(150))
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Instructor {self.email}>'


class Student(db.Model):
    __tablename__ = 'students'

    id = db.Column(db.Integer, primary_key=True)
    instructor_id = db.Column(db.Integer, db.ForeignKey('instructors.id'), nullable=False, index=True)
    full_name = db.Column(db.String(150), nullable=False)
    # Grade labels are free text ("8", "KG2", "Droppers")
    class_grade = db.Column(db.String(50), nullable=False)
    school_name = db.Column(db.String(150))
    parent_name = db.Column(db.String(150))
    parent_phone = db.Column(db.String(20), nullable=False)
    admission_date = db.Column(db.Date, nullable=False)
    batch_timing = db.Column(db.String(50))
    status = db.Column(db.String(10), nullable=False, default='Active')
    leaving_date = db.Column(db.Date)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    fees = db.relationship('FeePayment', backref='student', cascade="all, delete-orphan")
    attendance = db.relationship('AttendanceRecord', backref='student', cascade="all, delete-orphan")

    def __repr__(self):
        return f'<Student {self.full_name} ({self.class_grade})>'


class FeePayment(db.Model):
    __tablename__ = 'fees'

    id = db.Column(db.Integer, primary_key=True)
    instructor_id = db.Column(db.Integer, db.ForeignKey('instructors.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    fee_month = db.Column(db.String(7), nullable=False, index=True)  # YYYY-MM
    amount = db.Column(db.Integer, nullable=False)
    paid_date = db.Column(db.Date, nullable=False)
    payment_mode = db.Column(db.String(10), nullable=False)
    payment_reference = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<FeePayment StudentID={self.student_id} {self.fee_month} Paid={self.amount}>'


class AttendanceRecord(db.Model):
    __tablename__ = 'attendance'
    __table_args__ = (
        db.UniqueConstraint('student_id', 'date', name='uq_attendance_student_date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    instructor_id = db.Column(db.Integer, db.ForeignKey('instructors.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(10), nullable=False)

    def __repr__(self):
        return f'<AttendanceRecord StudentID={self.student_id} {self.date} {self.status}>'
