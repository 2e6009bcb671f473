# models/school.py

from extensions import db


class School(db.Model):
    __tablename__ = 'schools'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), unique=True, nullable=False)
    # Brazilian company registry number, digits only
    cnpj = db.Column(db.String(14), unique=True, nullable=True)
    address = db.Column(db.String, nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)
    director = db.Column(db.String(200), nullable=True)
    responsible = db.Column(db.String(200), nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, server_default=db.func.current_timestamp())

    admins = db.relationship('Admin', backref='school', cascade="all, delete-orphan")
    fairs = db.relationship('Fair', backref='school', lazy=True, cascade="all, delete-orphan")
