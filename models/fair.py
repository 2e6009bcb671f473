# models/fair.py

from extensions import db
from sqlalchemy import CheckConstraint


class Fair(db.Model):
    __tablename__ = 'fairs'
    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    # 'active' or 'archived'; at most one active fair per school
    status = db.Column(db.String(20), nullable=False, default='active')
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    archived_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, server_default=db.func.current_timestamp())

    __table_args__ = (
        CheckConstraint("status IN ('active', 'archived')", name="check_fair_status"),
    )
