# models/project.py

from extensions import db


class Project(db.Model):
    __tablename__ = 'projects'
    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    fair_id = db.Column(db.Integer, db.ForeignKey('fairs.id', ondelete='CASCADE'), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey('categories.id'), nullable=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    class_group = db.Column(db.String(50), nullable=True)
    # Comma separated student names
    students = db.Column(db.Text, nullable=True)
    advisor = db.Column(db.String(200), nullable=True)
    co_advisor = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime, server_default=db.func.current_timestamp())

    evaluations = db.relationship('Evaluation', backref='project', lazy=True, cascade="all, delete-orphan")

    @property
    def student_list(self):
        if not self.students:
            return []
        return [s.strip() for s in self.students.split(',') if s.strip()]
