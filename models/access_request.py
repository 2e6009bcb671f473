# models/access_request.py

from datetime import datetime
from extensions import db
from sqlalchemy import CheckConstraint

REQUEST_STATUSES = ('Pending', 'Approved', 'Rejected', 'Conflict')


class AccessRequest(db.Model):
    __tablename__ = 'access_requests'
    id = db.Column(db.Integer, primary_key=True)
    school_name = db.Column(db.String(200), nullable=False)
    cnpj = db.Column(db.String(14), nullable=True)
    address = db.Column(db.String, nullable=True)
    school_phone = db.Column(db.String(20), nullable=True)

    contact_name = db.Column(db.String(200), nullable=False)
    contact_position = db.Column(db.String(100), nullable=True)
    contact_email = db.Column(db.String(200), nullable=False)
    contact_phone = db.Column(db.String(20), nullable=True)

    event_type = db.Column(db.String(100), nullable=True)
    expected_usage = db.Column(db.String(200), nullable=True)
    message = db.Column(db.Text, nullable=True)
    terms_ip = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(20), nullable=False, default='Pending')
    requested_at = db.Column(db.DateTime, default=datetime.utcnow)
    processed_at = db.Column(db.DateTime, nullable=True)
    processed_by_id = db.Column(db.Integer, db.ForeignKey('super_admins.id'), nullable=True)

    processed_by = db.relationship('SuperAdmin')

    __table_args__ = (
        CheckConstraint(
            f"status IN ({', '.join(repr(s) for s in REQUEST_STATUSES)})",
            name="check_request_status"
        ),
    )
