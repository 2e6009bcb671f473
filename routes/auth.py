# routes/auth.py
# Login and logout for the three roles: evaluator (PIN), school admin, super admin

import logging

from flask import Blueprint, render_template, request, redirect, url_for, session, flash
from models import Evaluator, Admin, SuperAdmin

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def start_evaluator_session(evaluator):
    session.clear()
    session['evaluator_id'] = evaluator.id
    session['role'] = 'evaluator'


@auth_bp.route('/evaluator/login', methods=['GET', 'POST'])
def evaluator_login():
    if session.get('role') == 'evaluator':
        return redirect(url_for('evaluator.dashboard'))

    if request.method == 'POST':
        pin = (request.form.get('pin') or '').strip()
        if not pin:
            flash('Please enter your PIN.', 'error')
            return redirect(url_for('auth.evaluator_login'))

        # Only active evaluators can use their PIN; finalize deactivates it for good
        evaluator = Evaluator.query.filter_by(pin=pin, active=True).first()
        if not evaluator:
            logger.warning('Rejected evaluator login attempt')
            flash('Invalid PIN or inactive evaluator.', 'error')
            return redirect(url_for('auth.evaluator_login'))

        start_evaluator_session(evaluator)
        logger.info('Evaluator %s logged in', evaluator.id)
        flash('Logged in successfully!', 'success')
        return redirect(url_for('evaluator.dashboard'))

    return render_template('login.html', title='Evaluator login', role='evaluator')


@auth_bp.route('/evaluator/access/<pin>')
def evaluator_direct_access(pin):
    """Direct link with the PIN embedded, e.g. from a QR code."""
    evaluator = Evaluator.query.filter_by(pin=pin, active=True).first()
    if not evaluator:
        flash('Invalid PIN or inactive evaluator.', 'error')
        return redirect(url_for('auth.evaluator_login'))

    start_evaluator_session(evaluator)
    return redirect(url_for('evaluator.dashboard'))


@auth_bp.route('/admin/login', methods=['GET', 'POST'])
def admin_login():
    if session.get('role') == 'admin':
        return redirect(url_for('admin.dashboard'))

    if request.method == 'POST':
        email = (request.form.get('email') or '').strip().lower()
        password = request.form.get('password') or ''
        if not email or not password:
            flash('Please fill in all fields.', 'error')
            return redirect(url_for('auth.admin_login'))

        admin = Admin.query.filter_by(email=email).first()
        if not admin or not admin.check_password(password):
            flash('Invalid credentials.', 'error')
            return redirect(url_for('auth.admin_login'))

        if not admin.school or not admin.school.active:
            flash('Your account is not linked to an active school. Please contact support.', 'error')
            return redirect(url_for('auth.admin_login'))

        session.clear()
        session['admin_id'] = admin.id
        session['school_id'] = admin.school_id
        session['role'] = 'admin'
        logger.info('Admin %s logged in for school %s', admin.id, admin.school_id)
        flash('Logged in successfully!', 'success')
        return redirect(url_for('admin.dashboard'))

    return render_template('login.html', title='School admin login', role='admin')


@auth_bp.route('/superadmin/login', methods=['GET', 'POST'])
def superadmin_login():
    if session.get('role') == 'superadmin':
        return redirect(url_for('superadmin.dashboard'))

    if request.method == 'POST':
        email = (request.form.get('email') or '').strip().lower()
        password = request.form.get('password') or ''

        superadmin = SuperAdmin.query.filter_by(email=email).first()
        if not superadmin or not superadmin.check_password(password):
            flash('Invalid credentials.', 'error')
            return redirect(url_for('auth.superadmin_login'))

        session.clear()
        session['superadmin_id'] = superadmin.id
        session['role'] = 'superadmin'
        logger.info('Super admin %s logged in', superadmin.id)
        return redirect(url_for('superadmin.dashboard'))

    return render_template('login.html', title='Super admin login', role='superadmin')


@auth_bp.route('/logout')
def logout():
    role = session.get('role')
    session.clear()
    flash('You have been logged out.', 'success')
    if role == 'admin':
        return redirect(url_for('auth.admin_login'))
    if role == 'superadmin':
        return redirect(url_for('auth.superadmin_login'))
    return redirect(url_for('auth.evaluator_login'))
