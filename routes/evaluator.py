# routes/evaluator.py
# Evaluator pages: assigned projects, scoring form, finalize

import logging
from functools import wraps

from flask import Blueprint, render_template, session, redirect, url_for, flash, request
from extensions import db
from errors import EvaluationError, NotAuthorized, AlreadyFinalized, InvalidScore, IncompleteProjects
from models import Evaluator, Evaluation, Project
from logic import EvaluatorIdentity, project_statuses, official_criteria, submit_scores, finalize_all

logger = logging.getLogger(__name__)

evaluator_bp = Blueprint('evaluator', __name__, url_prefix='/evaluator')


def evaluator_required(f):
    """
    Reloads the evaluator on every request and passes an EvaluatorIdentity
    to the view. A deactivated or finalized evaluator is logged out.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        evaluator_id = session.get('evaluator_id')
        evaluator = db.session.get(Evaluator, evaluator_id) if evaluator_id else None
        if not evaluator or not evaluator.active:
            session.clear()
            flash('Unauthorized access. Please enter your PIN.', 'error')
            return redirect(url_for('auth.evaluator_login'))
        return f(EvaluatorIdentity.from_evaluator(evaluator), *args, **kwargs)
    return decorated_function


def parse_criterion_form(form):
    """
    Collects `scores[<criterion_id>]` / `comments[<criterion_id>]` fields
    into the mapping expected by submit_scores.
    """
    inputs = {}
    for key in form.keys():
        for prefix, field in (('scores[', 'score'), ('comments[', 'comment')):
            if key.startswith(prefix) and key.endswith(']'):
                criterion_id = key[len(prefix):-1]
                inputs.setdefault(criterion_id, {})[field] = form.get(key)
    return inputs


@evaluator_bp.route('/dashboard')
@evaluator_required
def dashboard(identity):
    rows, all_complete = project_statuses(identity)
    return render_template('evaluator/dashboard.html',
                           identity=identity,
                           rows=rows,
                           all_complete=all_complete)


@evaluator_bp.route('/evaluate/<int:project_id>', methods=['GET', 'POST'])
@evaluator_required
def evaluate(identity, project_id):
    if request.method == 'POST':
        try:
            submit_scores(identity, project_id, parse_criterion_form(request.form))
            flash('Evaluation saved successfully!', 'success')
            return redirect(url_for('evaluator.dashboard'))
        except InvalidScore as e:
            flash(str(e), 'error')
            return redirect(url_for('evaluator.evaluate', project_id=project_id))
        except EvaluationError as e:
            flash(str(e), 'error')
            return redirect(url_for('evaluator.dashboard'))

    evaluator = db.session.get(Evaluator, identity.evaluator_id)
    project = db.session.get(Project, project_id)
    if (project is None or project not in evaluator.projects
            or project.school_id != identity.school_id or project.fair_id != identity.fair_id):
        flash(str(NotAuthorized()), 'error')
        return redirect(url_for('evaluator.dashboard'))

    criteria = official_criteria(project.school_id, project.fair_id)
    evaluation = Evaluation.query.filter_by(evaluator_id=identity.evaluator_id, project_id=project.id).first()
    items_map = {item.criterion_id: item for item in evaluation.items} if evaluation else {}

    return render_template('evaluator/evaluate.html',
                           identity=identity,
                           project=project,
                           criteria=criteria,
                           items_map=items_map)


@evaluator_bp.route('/finalize', methods=['POST'])
@evaluator_required
def finalize(identity):
    try:
        finalize_all(identity)
    except AlreadyFinalized as e:
        session.clear()
        flash(str(e), 'error')
        return redirect(url_for('auth.evaluator_login'))
    except IncompleteProjects as e:
        flash(str(e), 'error')
        return redirect(url_for('evaluator.dashboard'))
    except EvaluationError as e:
        flash(str(e), 'error')
        return redirect(url_for('evaluator.dashboard'))

    # The PIN is now disabled, end the session for good
    session.clear()
    return redirect(url_for('evaluator.thanks'))


@evaluator_bp.route('/thanks')
def thanks():
    return render_template('evaluator/thanks.html')
