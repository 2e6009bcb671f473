# models/evaluation.py

from datetime import datetime
from extensions import db
from sqlalchemy import CheckConstraint


class Evaluation(db.Model):
    __tablename__ = 'evaluations'
    id = db.Column(db.Integer, primary_key=True)
    evaluator_id = db.Column(db.Integer, db.ForeignKey('evaluators.id', ondelete='CASCADE'), nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    fair_id = db.Column(db.Integer, db.ForeignKey('fairs.id', ondelete='CASCADE'), nullable=False)
    # "At least one score entered", not "every criterion scored"
    has_any_score = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship('ScoreItem', backref='evaluation', lazy='select',
                            order_by='ScoreItem.criterion_id', cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint('evaluator_id', 'project_id', name='unique_evaluation'),
    )

    def item_for(self, criterion_id):
        for item in self.items:
            if item.criterion_id == criterion_id:
                return item
        return None


class ScoreItem(db.Model):
    __tablename__ = 'score_items'
    id = db.Column(db.Integer, primary_key=True)
    evaluation_id = db.Column(db.Integer, db.ForeignKey('evaluations.id', ondelete='CASCADE'), nullable=False)
    criterion_id = db.Column(db.Integer, db.ForeignKey('criteria.id', ondelete='CASCADE'), nullable=False)
    score = db.Column(db.Integer, nullable=True)
    comment = db.Column(db.Text, nullable=False, default='')

    criterion = db.relationship('Criterion')

    __table_args__ = (
        db.UniqueConstraint('evaluation_id', 'criterion_id', name='unique_score_item'),
        CheckConstraint("score IS NULL OR score BETWEEN 5 AND 10", name="check_score_range"),
    )
