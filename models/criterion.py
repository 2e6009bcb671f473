# models/criterion.py

from extensions import db
from sqlalchemy import CheckConstraint


class Criterion(db.Model):
    __tablename__ = 'criteria'
    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    fair_id = db.Column(db.Integer, db.ForeignKey('fairs.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String, nullable=False)
    weight = db.Column(db.Integer, nullable=False, default=1)
    note = db.Column(db.Text, nullable=True)
    # 0 = not used to break ties, 1 = highest priority, ...
    tiebreak_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, server_default=db.func.current_timestamp())

    __table_args__ = (
        CheckConstraint("weight BETWEEN 1 AND 10", name="check_criterion_weight"),
    )
