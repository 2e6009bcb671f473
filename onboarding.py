# onboarding.py
# School access requests: Pending -> Approved / Rejected (or Conflict when
# the school already exists), direct school management and evaluator
# pre-registration.

import logging
import re
import secrets
import string
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from extensions import db
from errors import (DuplicateRequest, RequestNotFound, InvalidTransition, PersistenceError,
                    SchoolConflict, FairClosed, DuplicatePreRegistration, EvaluatorExists)
from logic import generate_unique_pin
from models import (AccessRequest, School, Admin, Fair, Category, Criterion, Project, Evaluator,
                    evaluator_projects, Evaluation, ScoreItem, PreRegistration)

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_RE = re.compile(r'^\d{10,11}$')
CNPJ_RE = re.compile(r'^\d{14}$')

TEMP_PASSWORD_CHARS = string.ascii_letters + string.digits + '!@#$%^&*()'


def digits_only(value):
    return re.sub(r'\D', '', value or '')


def validate_access_request(form):
    """Returns the list of problems found in a submitted request form."""
    def field(name):
        return (form.get(name) or '').strip()

    errors = []
    if len(field('school_name')) < 3:
        errors.append('School name must have at least 3 characters.')
    if len(field('address')) < 5:
        errors.append('School address is required.')
    if not PHONE_RE.match(digits_only(field('school_phone'))):
        errors.append('School phone must have 10 or 11 digits.')
    if len(field('contact_name')) < 3:
        errors.append('Contact name is required.')
    if not EMAIL_RE.match(field('contact_email')):
        errors.append('Invalid contact e-mail.')
    if len(field('contact_position')) < 3:
        errors.append('Contact position is required.')
    if not PHONE_RE.match(digits_only(field('contact_phone'))):
        errors.append('Contact phone must have 10 or 11 digits.')
    if not field('event_type'):
        errors.append('Event type is required.')
    if field('cnpj') and not CNPJ_RE.match(digits_only(field('cnpj'))):
        errors.append('Invalid CNPJ. It must contain 14 digits.')
    if not form.get('accept_terms'):
        errors.append('You must accept the terms of use.')
    return errors


def create_access_request(data, ip=None):
    school_name = data['school_name'].strip()
    contact_email = data['contact_email'].strip().lower()

    existing = AccessRequest.query.filter(
        AccessRequest.status == 'Pending',
        or_(AccessRequest.contact_email == contact_email, AccessRequest.school_name == school_name)
    ).first()
    if existing:
        raise DuplicateRequest()

    access_request = AccessRequest(
        school_name=school_name,
        cnpj=digits_only(data.get('cnpj')) or None,
        address=(data.get('address') or '').strip(),
        school_phone=digits_only(data.get('school_phone')),
        contact_name=data['contact_name'].strip(),
        contact_position=(data.get('contact_position') or '').strip(),
        contact_email=contact_email,
        contact_phone=digits_only(data.get('contact_phone')),
        event_type=(data.get('event_type') or '').strip(),
        expected_usage=(data.get('expected_usage') or '').strip(),
        message=(data.get('message') or '').strip(),
        terms_ip=ip,
        status='Pending'
    )
    db.session.add(access_request)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not save access request for %s', school_name)
        raise PersistenceError()

    logger.info('New access request #%s from "%s"', access_request.id, school_name)
    return access_request


def generate_temporary_password(length=8):
    return ''.join(secrets.choice(TEMP_PASSWORD_CHARS) for _ in range(length))


def admin_email_for(school_name):
    local_part = re.sub(r'\s', '', school_name.lower())
    return f'{local_part}@admin.com'


def school_conflict(name, cnpj=None):
    """Reason why a new school cannot be registered, or None."""
    if School.query.filter_by(name=name).first():
        return 'name'
    if cnpj and School.query.filter_by(cnpj=cnpj).first():
        return 'cnpj'
    if Admin.query.filter_by(email=admin_email_for(name)).first():
        return 'admin e-mail'
    return None


def _add_school_with_admin(name, password, cnpj=None, address=None, phone=None, email=None,
                           position=None, admin_phone=None):
    school = School(name=name, cnpj=cnpj or None, address=address, phone=phone, email=email)
    db.session.add(school)

    admin = Admin(
        name=f'Admin {name}',
        email=admin_email_for(name),
        position=position,
        phone=admin_phone,
        school=school
    )
    admin.set_password(password)
    db.session.add(admin)
    return school, admin


def _pending_request(request_id):
    access_request = db.session.get(AccessRequest, request_id)
    if access_request is None:
        raise RequestNotFound()
    if access_request.status != 'Pending':
        raise InvalidTransition(access_request.status)
    return access_request


def approve_request(request_id, superadmin_id=None):
    """
    Creates the school and its first admin from a pending request.

    Returns (access_request, admin_email, temporary_password). When the
    school name, its CNPJ or the generated admin e-mail is already taken
    the request is moved to Conflict and (access_request, None, None) is
    returned.
    """
    access_request = _pending_request(request_id)
    now = datetime.utcnow()

    try:
        reason = school_conflict(access_request.school_name, access_request.cnpj)
        if reason:
            access_request.status = 'Conflict'
            access_request.processed_at = now
            access_request.processed_by_id = superadmin_id
            db.session.commit()
            logger.warning('Access request #%s conflicts with an existing %s', request_id, reason)
            return access_request, None, None

        password = generate_temporary_password()
        school, admin = _add_school_with_admin(
            access_request.school_name,
            password,
            cnpj=access_request.cnpj,
            address=access_request.address,
            phone=access_request.school_phone,
            email=access_request.contact_email,
            position=access_request.contact_position,
            admin_phone=access_request.contact_phone
        )

        access_request.status = 'Approved'
        access_request.processed_at = now
        access_request.processed_by_id = superadmin_id
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not approve access request #%s', request_id)
        raise PersistenceError()

    logger.info('Access request #%s approved, school "%s" created', request_id, school.name)
    return access_request, admin.email, password


def reject_request(request_id, superadmin_id=None):
    access_request = _pending_request(request_id)
    access_request.status = 'Rejected'
    access_request.processed_at = datetime.utcnow()
    access_request.processed_by_id = superadmin_id
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not reject access request #%s', request_id)
        raise PersistenceError()

    logger.info('Access request #%s rejected', request_id)
    return access_request


# --- Schools managed directly by the super admin ---
def create_school(data, admin_password):
    """Registers a school without an access request. Returns (school, admin_email)."""
    name = data['name'].strip()
    cnpj = digits_only(data.get('cnpj')) or None
    if school_conflict(name, cnpj):
        raise SchoolConflict()

    school, admin = _add_school_with_admin(
        name,
        admin_password,
        cnpj=cnpj,
        address=(data.get('address') or '').strip(),
        phone=digits_only(data.get('phone')),
        email=(data.get('email') or '').strip().lower() or None
    )
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SchoolConflict()

    logger.info('School "%s" registered directly', name)
    return school, admin.email


SCHOOL_FIELDS = ('name', 'cnpj', 'address', 'phone', 'email', 'description', 'director', 'responsible')


def update_school(school, data, fields=SCHOOL_FIELDS):
    """Copies the given form fields onto a school. The name stays mandatory."""
    for field in fields:
        if field not in data:
            continue
        value = (data.get(field) or '').strip()
        if field in ('cnpj', 'phone'):
            value = digits_only(value)
        elif field == 'email':
            value = value.lower()
        setattr(school, field, value or None)

    if not school.name:
        db.session.rollback()
        raise ValueError('The school name is required.')
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SchoolConflict()
    return school


def delete_school(school_id):
    """Removes a school with every fair, project, evaluator and evaluation it owns."""
    evaluation_ids = db.select(Evaluation.id).where(Evaluation.school_id == school_id)
    evaluator_ids = db.select(Evaluator.id).where(Evaluator.school_id == school_id)
    try:
        # Children first
        ScoreItem.query.filter(ScoreItem.evaluation_id.in_(evaluation_ids)).delete(synchronize_session=False)
        Evaluation.query.filter_by(school_id=school_id).delete(synchronize_session=False)
        PreRegistration.query.filter_by(school_id=school_id).delete(synchronize_session=False)
        db.session.execute(
            evaluator_projects.delete().where(evaluator_projects.c.evaluator_id.in_(evaluator_ids))
        )
        for model in (Evaluator, Project, Criterion, Category, Fair, Admin):
            model.query.filter_by(school_id=school_id).delete(synchronize_session=False)
        deleted = School.query.filter_by(id=school_id).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not delete school %s', school_id)
        raise PersistenceError()

    db.session.expire_all()
    logger.info('School %s deleted', school_id)
    return bool(deleted)


# --- Evaluator pre-registration ---
def validate_pre_registration(form):
    errors = []
    if len((form.get('name') or '').strip()) < 3:
        errors.append('Please enter your full name.')
    if not EMAIL_RE.match((form.get('email') or '').strip()):
        errors.append('Invalid e-mail.')
    phone = digits_only(form.get('phone'))
    if phone and not PHONE_RE.match(phone):
        errors.append('Phone must have 10 or 11 digits.')
    return errors


def submit_pre_registration(fair_id, data):
    fair = db.session.get(Fair, fair_id)
    if fair is None or fair.status != 'active':
        raise FairClosed()

    email = data['email'].strip().lower()
    if PreRegistration.query.filter_by(fair_id=fair.id, email=email).first():
        raise DuplicatePreRegistration()

    registration = PreRegistration(
        school_id=fair.school_id,
        fair_id=fair.id,
        name=data['name'].strip(),
        email=email,
        phone=digits_only(data.get('phone')) or None
    )
    db.session.add(registration)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicatePreRegistration()

    logger.info('Pre-registration #%s received for fair %s', registration.id, fair.id)
    return registration


def approve_pre_registration(registration, pin_length=6):
    """Turns a pending candidate into an active evaluator with a fresh PIN."""
    if registration.status != 'Pending':
        raise InvalidTransition(registration.status)
    if Evaluator.query.filter_by(email=registration.email, school_id=registration.school_id,
                                 fair_id=registration.fair_id).first():
        raise EvaluatorExists()

    evaluator = Evaluator(
        name=registration.name,
        email=registration.email,
        pin=generate_unique_pin(pin_length),
        school_id=registration.school_id,
        fair_id=registration.fair_id
    )
    db.session.add(evaluator)
    try:
        db.session.flush()
        registration.evaluator_id = evaluator.id
        registration.status = 'Approved'
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise EvaluatorExists()

    logger.info('Pre-registration #%s approved as evaluator %s', registration.id, evaluator.id)
    return evaluator


def reject_pre_registration(registration):
    if registration.status != 'Pending':
        raise InvalidTransition(registration.status)
    registration.status = 'Rejected'
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not reject pre-registration #%s', registration.id)
        raise PersistenceError()
    return registration
