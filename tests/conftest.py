"""
Shared fixtures: an app bound to an in-memory SQLite database, a fresh
schema per test and one seeded school/fair ready for evaluation.
"""
from types import SimpleNamespace

import pytest

from app import create_app
from config import TestConfig
from extensions import db
from logic import EvaluatorIdentity
from models import School, Admin, SuperAdmin, Fair, Criterion, Project, Evaluator


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_fair(school, name='Fair 2026', status='active'):
    fair = Fair(school_id=school.id, name=name, status=status)
    db.session.add(fair)
    db.session.flush()
    return fair


@pytest.fixture
def seeded(app):
    """
    One school with an active fair, three criteria (C1..C3 in display
    order), two projects and an evaluator assigned to both.
    """
    school = School(name='Escola Modelo')
    db.session.add(school)
    db.session.flush()

    admin = Admin(name='Admin Escola Modelo', email='escolamodelo@admin.com', school_id=school.id)
    admin.set_password('secret123')
    db.session.add(admin)

    fair = make_fair(school)
    criteria = [
        Criterion(name='C1 Creativity', weight=3, school_id=school.id, fair_id=fair.id),
        Criterion(name='C2 Method', weight=4, school_id=school.id, fair_id=fair.id),
        Criterion(name='C3 Presentation', weight=2, school_id=school.id, fair_id=fair.id)
    ]
    db.session.add_all(criteria)

    alpha = Project(title='Alpha Rocket', class_group='9A', school_id=school.id, fair_id=fair.id)
    beta = Project(title='Beta Battery', class_group='9B', school_id=school.id, fair_id=fair.id)
    db.session.add_all([alpha, beta])
    db.session.flush()

    evaluator = Evaluator(name='Helena', email='helena@example.com', pin='123456',
                          school_id=school.id, fair_id=fair.id, projects=[alpha, beta])
    db.session.add(evaluator)
    db.session.commit()

    return SimpleNamespace(
        school=school,
        admin=admin,
        fair=fair,
        criteria=criteria,
        c1=criteria[0].id,
        c2=criteria[1].id,
        c3=criteria[2].id,
        alpha=alpha,
        beta=beta,
        evaluator=evaluator,
        identity=EvaluatorIdentity.from_evaluator(evaluator)
    )


@pytest.fixture
def superadmin(app):
    superadmin = SuperAdmin(name='Root', email='root@example.com')
    superadmin.set_password('rootpass')
    db.session.add(superadmin)
    db.session.commit()
    return superadmin


@pytest.fixture
def admin_client(client, seeded):
    with client.session_transaction() as sess:
        sess['role'] = 'admin'
        sess['admin_id'] = seeded.admin.id
        sess['school_id'] = seeded.school.id
    return client


@pytest.fixture
def superadmin_client(client, superadmin):
    with client.session_transaction() as sess:
        sess['role'] = 'superadmin'
        sess['superadmin_id'] = superadmin.id
    return client
