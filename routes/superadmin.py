# routes/superadmin.py
# Platform owner console: access requests, schools, admin passwords, cross-school reports

import logging
from functools import wraps

from flask import Blueprint, render_template, request, redirect, url_for, session, flash
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from extensions import db
from errors import EvaluationError
from logic import build_fair_report, evaluator_summary, cross_school_report
from models import School, Admin, Fair, Evaluator, Project, Evaluation, AccessRequest
from onboarding import (approve_request, reject_request, generate_temporary_password,
                        create_school, update_school, delete_school)

logger = logging.getLogger(__name__)

superadmin_bp = Blueprint('superadmin', __name__, url_prefix='/superadmin')


def superadmin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if session.get('role') != 'superadmin' or not session.get('superadmin_id'):
            flash('Access restricted to the platform administrator.', 'error')
            return redirect(url_for('auth.superadmin_login'))
        return f(*args, **kwargs)
    return decorated_function


@superadmin_bp.route('/')
@superadmin_required
def dashboard():
    counters = {
        'schools': School.query.count(),
        'admins': Admin.query.count(),
        'evaluators': Evaluator.query.count(),
        'projects': Project.query.count(),
        'evaluations': Evaluation.query.count(),
        'pending_requests': AccessRequest.query.filter_by(status='Pending').count()
    }
    recent_requests = AccessRequest.query.order_by(AccessRequest.requested_at.desc()).limit(5).all()
    return render_template('superadmin/dashboard.html', counters=counters, recent_requests=recent_requests)


@superadmin_bp.route('/requests')
@superadmin_required
def requests():
    pending = AccessRequest.query.filter_by(status='Pending').order_by(AccessRequest.requested_at).all()
    processed = AccessRequest.query.filter(AccessRequest.status != 'Pending').options(
        joinedload(AccessRequest.processed_by)
    ).order_by(AccessRequest.processed_at.desc()).all()
    return render_template('superadmin/requests.html', pending=pending, processed=processed)


@superadmin_bp.route('/request/<int:request_id>/approve', methods=['POST'])
@superadmin_required
def approve(request_id):
    try:
        access_request, admin_email, password = approve_request(request_id, session['superadmin_id'])
    except EvaluationError as e:
        flash(str(e), 'error')
        return redirect(url_for('superadmin.requests'))

    if access_request.status == 'Conflict':
        flash(f'"{access_request.school_name}" clashes with a registered school (name, CNPJ or admin e-mail). '
              'The request was marked as Conflict.', 'error')
    else:
        # Credentials are shown once; there is no e-mail delivery
        flash(f'School "{access_request.school_name}" approved. '
              f'Admin login: {admin_email} / temporary password: {password}', 'success')
    return redirect(url_for('superadmin.requests'))


@superadmin_bp.route('/request/<int:request_id>/reject', methods=['POST'])
@superadmin_required
def reject(request_id):
    try:
        access_request = reject_request(request_id, session['superadmin_id'])
    except EvaluationError as e:
        flash(str(e), 'error')
        return redirect(url_for('superadmin.requests'))

    flash(f'Request from "{access_request.school_name}" rejected.', 'success')
    return redirect(url_for('superadmin.requests'))


@superadmin_bp.route('/schools')
@superadmin_required
def schools():
    all_schools = School.query.options(joinedload(School.admins)).order_by(School.name).all()
    return render_template('superadmin/schools.html', schools=all_schools)


@superadmin_bp.route('/school/<int:school_id>/toggle', methods=['POST'])
@superadmin_required
def toggle_school(school_id):
    school = School.query.filter_by(id=school_id).first_or_404()
    school.active = not school.active
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not change status of school %s', school_id)
        flash('Could not update the school.', 'error')
        return redirect(url_for('superadmin.schools'))

    flash(f'School "{school.name}" is now {"active" if school.active else "inactive"}.', 'success')
    return redirect(url_for('superadmin.schools'))


@superadmin_bp.route('/admin/<int:admin_id>/reset-password', methods=['POST'])
@superadmin_required
def reset_admin_password(admin_id):
    admin = Admin.query.filter_by(id=admin_id).first_or_404()
    password = generate_temporary_password()
    admin.set_password(password)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not reset password of admin %s', admin_id)
        flash('Could not reset the password.', 'error')
        return redirect(url_for('superadmin.schools'))

    logger.info('Super admin %s reset the password of admin %s', session['superadmin_id'], admin.id)
    flash(f'New temporary password for {admin.email}: {password}', 'success')
    return redirect(url_for('superadmin.schools'))


# --- School management ---
@superadmin_bp.route('/school/new', methods=['GET', 'POST'])
@superadmin_required
def new_school():
    if request.method == 'POST':
        name = request.form.get('name', '').strip()
        password = request.form.get('admin_password', '')
        if not name:
            flash('The school name is required.', 'error')
            return render_template('superadmin/school_new.html', form=request.form)
        if len(password) < 6:
            flash('The admin password must have at least 6 characters.', 'error')
            return render_template('superadmin/school_new.html', form=request.form)

        try:
            school, admin_email = create_school(request.form, password)
        except EvaluationError as e:
            flash(str(e), 'error')
            return render_template('superadmin/school_new.html', form=request.form)

        flash(f'School "{school.name}" created. Admin login: {admin_email}', 'success')
        return redirect(url_for('superadmin.school_detail', school_id=school.id))

    return render_template('superadmin/school_new.html', form={})


@superadmin_bp.route('/school/<int:school_id>')
@superadmin_required
def school_detail(school_id):
    school = School.query.filter_by(id=school_id).first_or_404()
    fairs = Fair.query.filter_by(school_id=school.id).order_by(Fair.created_at.desc()).all()
    active_fair = next((fair for fair in fairs if fair.status == 'active'), None)

    report, evaluators = None, []
    if active_fair:
        report = build_fair_report(school.id, active_fair.id)
        evaluators = evaluator_summary(school.id, active_fair.id)

    return render_template(
        'superadmin/school_detail.html',
        school=school,
        fairs=fairs,
        active_fair=active_fair,
        report=report,
        evaluators=evaluators
    )


@superadmin_bp.route('/school/<int:school_id>/edit', methods=['POST'])
@superadmin_required
def edit_school(school_id):
    school = School.query.filter_by(id=school_id).first_or_404()
    try:
        update_school(school, request.form)
    except (EvaluationError, ValueError) as e:
        flash(str(e), 'error')
        return redirect(url_for('superadmin.school_detail', school_id=school_id))

    flash('School updated.', 'success')
    return redirect(url_for('superadmin.school_detail', school_id=school_id))


@superadmin_bp.route('/school/<int:school_id>/delete', methods=['POST'])
@superadmin_required
def remove_school(school_id):
    school = School.query.filter_by(id=school_id).first_or_404()
    name = school.name
    try:
        delete_school(school.id)
    except EvaluationError as e:
        flash(str(e), 'error')
        return redirect(url_for('superadmin.school_detail', school_id=school_id))

    logger.info('Super admin %s deleted school "%s"', session['superadmin_id'], name)
    flash(f'School "{name}" and all its data were deleted.', 'success')
    return redirect(url_for('superadmin.schools'))


# --- Cross-school reports ---
@superadmin_bp.route('/reports')
@superadmin_required
def reports():
    return render_template('superadmin/reports.html', **cross_school_report())
