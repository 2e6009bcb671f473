# routes/public.py
# Landing page, the school access-request form and evaluator pre-registration

from flask import Blueprint, render_template, request, redirect, url_for, flash
from errors import EvaluationError
from models import Fair
from onboarding import (validate_access_request, create_access_request,
                        validate_pre_registration, submit_pre_registration)

public_bp = Blueprint('public', __name__)


@public_bp.route('/')
def index():
    return render_template('index.html')


@public_bp.route('/request-access', methods=['GET', 'POST'])
def request_access():
    if request.method == 'POST':
        errors = validate_access_request(request.form)
        if errors:
            for error in errors:
                flash(error, 'error')
            return render_template('request_access.html', form=request.form)

        try:
            create_access_request(request.form, ip=request.remote_addr)
        except EvaluationError as e:
            flash(str(e), 'error')
            return render_template('request_access.html', form=request.form)

        flash('Request sent! We will review it and get back to you by e-mail.', 'success')
        return redirect(url_for('public.index'))

    return render_template('request_access.html', form={})


@public_bp.route('/pre-registration/<int:fair_id>', methods=['GET', 'POST'])
def pre_registration(fair_id):
    fair = Fair.query.filter_by(id=fair_id, status='active').first_or_404()

    if request.method == 'POST':
        errors = validate_pre_registration(request.form)
        if errors:
            for error in errors:
                flash(error, 'error')
            return render_template('pre_registration.html', fair=fair, form=request.form)

        try:
            submit_pre_registration(fair.id, request.form)
        except EvaluationError as e:
            flash(str(e), 'error')
            return render_template('pre_registration.html', fair=fair, form=request.form)

        flash('Pre-registration sent! The school will contact you with your access PIN.', 'success')
        return redirect(url_for('public.index'))

    return render_template('pre_registration.html', fair=fair, form={})
