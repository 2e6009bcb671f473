# models/pre_registration.py

from datetime import datetime
from extensions import db
from sqlalchemy import CheckConstraint, UniqueConstraint

PRE_REGISTRATION_STATUSES = ('Pending', 'Approved', 'Rejected')


class PreRegistration(db.Model):
    """Evaluator candidate sent through the public per-fair form."""
    __tablename__ = 'pre_registrations'
    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    fair_id = db.Column(db.Integer, db.ForeignKey('fairs.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='Pending')
    # Set once the candidate is turned into an evaluator
    evaluator_id = db.Column(db.Integer, db.ForeignKey('evaluators.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    fair = db.relationship('Fair')

    __table_args__ = (
        UniqueConstraint('fair_id', 'email', name='unique_pre_registration_email'),
        CheckConstraint(
            f"status IN ({', '.join(repr(s) for s in PRE_REGISTRATION_STATUSES)})",
            name="check_pre_registration_status"
        ),
    )
