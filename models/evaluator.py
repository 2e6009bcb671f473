# models/evaluator.py

from extensions import db
from sqlalchemy import UniqueConstraint

# Assignment table shared by Evaluator.projects and Project.evaluators
evaluator_projects = db.Table('evaluator_projects',
    db.Column('evaluator_id', db.Integer, db.ForeignKey('evaluators.id', ondelete='CASCADE'), primary_key=True),
    db.Column('project_id', db.Integer, db.ForeignKey('projects.id', ondelete='CASCADE'), primary_key=True)
)


class Evaluator(db.Model):
    __tablename__ = 'evaluators'
    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    fair_id = db.Column(db.Integer, db.ForeignKey('fairs.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=False)
    pin = db.Column(db.String(6), unique=True, nullable=False, index=True)
    active = db.Column(db.Boolean, nullable=False, default=True)
    # One-way flag: once true the PIN never authenticates again
    finished_all = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, server_default=db.func.current_timestamp())

    projects = db.relationship(
        'Project',
        secondary=evaluator_projects,
        backref=db.backref('evaluators', lazy=True),
        order_by='Project.title',
        lazy='select'
    )
    evaluations = db.relationship('Evaluation', backref='evaluator', lazy=True, cascade="all, delete-orphan")

    __table_args__ = (
        # The same e-mail may serve different schools/fairs
        UniqueConstraint('email', 'school_id', 'fair_id', name='unique_evaluator_email_fair'),
    )
