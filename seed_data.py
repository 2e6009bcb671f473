# seed_data.py
# Demo data for local runs: `flask --app app seed-demo`

import logging
from datetime import date

from extensions import db
from logic import generate_unique_pin
from models import (School, Admin, Fair, Category, Criterion, Evaluator, evaluator_projects, Project,
                    Evaluation, ScoreItem, AccessRequest, PreRegistration)

logger = logging.getLogger(__name__)

DEMO_ADMIN_EMAIL = 'demoschool@admin.com'
DEMO_ADMIN_PASSWORD = 'demo1234'


def clear_all():
    # Reverse dependency order
    db.session.query(ScoreItem).delete()
    db.session.query(Evaluation).delete()
    db.session.query(PreRegistration).delete()
    db.session.execute(evaluator_projects.delete())
    db.session.query(Evaluator).delete()
    db.session.query(Project).delete()
    db.session.query(Criterion).delete()
    db.session.query(Category).delete()
    db.session.query(Fair).delete()
    db.session.query(Admin).delete()
    db.session.query(AccessRequest).delete()
    db.session.query(School).delete()
    db.session.commit()


def seed_demo(reset=False):
    """
    Creates one school with an active fair, three criteria, four projects
    and two evaluators. Returns the admin credentials and evaluator PINs.
    """
    if reset:
        logger.info('Clearing existing data...')
        clear_all()

    if School.query.filter_by(name='Demo School').first():
        raise RuntimeError('Demo data already present, use --reset to recreate it.')

    try:
        # --- School and admin ---
        school = School(name='Demo School', address='1 Science Avenue', phone='1133334444')
        admin = Admin(name='Admin Demo School', email=DEMO_ADMIN_EMAIL, position='Coordinator', school=school)
        admin.set_password(DEMO_ADMIN_PASSWORD)
        db.session.add_all([school, admin])
        db.session.flush()

        # --- Fair and its setup ---
        today = date.today()
        fair = Fair(school_id=school.id, name=f'Fair {today.year}', status='active', start_date=today)
        db.session.add(fair)
        db.session.flush()

        exact = Category(name='Exact Sciences', school_id=school.id, fair_id=fair.id)
        biology = Category(name='Biology', school_id=school.id, fair_id=fair.id)
        db.session.add_all([exact, biology])

        db.session.add_all([
            Criterion(name='Creativity', weight=3, tiebreak_order=1, school_id=school.id, fair_id=fair.id),
            Criterion(name='Scientific Method', weight=4, tiebreak_order=2, school_id=school.id, fair_id=fair.id),
            Criterion(name='Presentation', weight=2, tiebreak_order=3, school_id=school.id, fair_id=fair.id)
        ])
        db.session.flush()

        projects = [
            Project(title='Solar Water Heater', class_group='9A', students='Ana, Bruno',
                    advisor='Prof. Lima', category_id=exact.id),
            Project(title='Bridge Load Test', class_group='9B', students='Carla, Davi',
                    advisor='Prof. Lima', category_id=exact.id),
            Project(title='Composting at School', class_group='8A', students='Elisa',
                    advisor='Prof. Souza', category_id=biology.id),
            Project(title='Plant Growth Under LED', class_group='8B', students='Fabio, Gabi',
                    advisor='Prof. Souza', category_id=biology.id)
        ]
        for project in projects:
            project.school_id = school.id
            project.fair_id = fair.id
        db.session.add_all(projects)
        db.session.flush()

        # --- Evaluators, each with two projects ---
        pins = {}
        for name, email, assigned in (('Helena', 'helena@example.com', projects[:2]),
                                      ('Igor', 'igor@example.com', projects[2:])):
            evaluator = Evaluator(name=name, email=email, pin=generate_unique_pin(),
                                  school_id=school.id, fair_id=fair.id, projects=assigned)
            db.session.add(evaluator)
            # Flush so the next PIN lookup sees this one
            db.session.flush()
            pins[name] = evaluator.pin

        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception('Error while adding demo data')
        raise

    logger.info('Demo data added successfully')
    return {'admin_email': DEMO_ADMIN_EMAIL, 'admin_password': DEMO_ADMIN_PASSWORD, 'pins': pins}
