# logic.py
# Evaluation aggregation: per-project status, score submission,
# the finalize gate and the read-only fair report.

import logging
import secrets
from collections import namedtuple, defaultdict
from collections.abc import Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from extensions import db
from errors import NotAuthorized, AlreadyFinalized, InvalidScore, IncompleteProjects, PersistenceError
from models import School, Fair, Criterion, Evaluator, Project, Evaluation, ScoreItem

logger = logging.getLogger(__name__)

SCORE_MIN = 5
SCORE_MAX = 10

STATUS_EVALUATED = 'Evaluated'
STATUS_IN_PROGRESS = 'In Progress'
STATUS_PENDING = 'Pending'

PROJECT_NOT_EVALUATED = 'Not Evaluated'
PROJECT_UNDER_EVALUATION = 'Under Evaluation'
PROJECT_EVALUATED = 'Evaluated'

NO_CATEGORY = 'No Category'

StatusResult = namedtuple('StatusResult', 'label is_complete')


class EvaluatorIdentity(namedtuple('EvaluatorIdentity', 'evaluator_id school_id fair_id name')):
    """Authenticated evaluator, built by the session layer after a PIN check.

    The aggregator trusts this value and never looks at the Flask session.
    """
    __slots__ = ()

    @classmethod
    def from_evaluator(cls, evaluator):
        return cls(evaluator.id, evaluator.school_id, evaluator.fair_id, evaluator.name)


def is_valid_score(value):
    return value is not None and SCORE_MIN <= value <= SCORE_MAX


def official_criteria(school_id, fair_id):
    """Criteria of a (school, fair) pair in display order."""
    return Criterion.query.filter_by(
        school_id=school_id, fair_id=fair_id
    ).order_by(Criterion.name, Criterion.id).all()


def classify(scored_count, total_criteria):
    if total_criteria > 0 and scored_count == total_criteria:
        return StatusResult(STATUS_EVALUATED, True)
    if 0 < scored_count < total_criteria:
        return StatusResult(STATUS_IN_PROGRESS, False)
    return StatusResult(STATUS_PENDING, False)


def compute_status(identity, project):
    """
    Compares the evaluator's saved items for a project with the criteria
    currently defined for the project's school and fair. Read-only.
    """
    total_criteria = Criterion.query.filter_by(
        school_id=project.school_id, fair_id=project.fair_id
    ).count()
    evaluation = Evaluation.query.filter_by(
        evaluator_id=identity.evaluator_id, project_id=project.id
    ).first()

    scored_count = 0
    if evaluation:
        scored_count = sum(1 for item in evaluation.items if is_valid_score(item.score))
    return classify(scored_count, total_criteria)


def project_statuses(identity):
    """Assigned projects with their status, for the evaluator dashboard."""
    evaluator = db.session.get(Evaluator, identity.evaluator_id)
    if evaluator is None:
        raise NotAuthorized()

    rows = [(project, compute_status(identity, project)) for project in evaluator.projects]
    all_complete = bool(rows) and all(status.is_complete for _, status in rows)
    return rows, all_complete


def _load_active_evaluator(identity):
    evaluator = db.session.get(Evaluator, identity.evaluator_id)
    if evaluator is None:
        raise NotAuthorized()
    if not evaluator.active or evaluator.finished_all:
        raise AlreadyFinalized()
    return evaluator


def _authorized_project(evaluator, project_id):
    project = db.session.get(Project, project_id)
    if (project is None
            or project.school_id != evaluator.school_id
            or project.fair_id != evaluator.fair_id
            or project not in evaluator.projects):
        logger.warning('Evaluator %s tried to reach project %s outside their assignment',
                       evaluator.id, project_id)
        raise NotAuthorized()
    return project


def _parse_score(raw):
    """None for an empty score, int otherwise. Raises ValueError on junk."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError(raw)
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    return int(text)


def submit_scores(identity, project_id, criterion_inputs):
    """
    Validates and merges a score submission for one project.

    `criterion_inputs` maps criterion id -> {'score': ..., 'comment': ...}.
    Every input is validated before the evaluation is touched, so an
    invalid score leaves the stored evaluation exactly as it was.
    """
    evaluator = _load_active_evaluator(identity)
    project = _authorized_project(evaluator, project_id)
    criteria = official_criteria(project.school_id, project.fair_id)
    inputs = {str(key): value for key, value in (criterion_inputs or {}).items()}

    # 1. Build the complete candidate change set
    changes = []
    for criterion in criteria:
        data = inputs.get(str(criterion.id))
        if data is None:
            continue
        if not isinstance(data, Mapping):
            data = {'score': data}
        try:
            score = _parse_score(data.get('score'))
        except (TypeError, ValueError):
            raise InvalidScore(criterion.name)
        if score is not None and not is_valid_score(score):
            raise InvalidScore(criterion.name)
        changes.append((criterion, score, (data.get('comment') or '').strip()))

    # 2. Apply it to the loaded (or new) evaluation
    evaluation = Evaluation.query.filter_by(
        evaluator_id=evaluator.id, project_id=project.id
    ).first()
    if evaluation is None:
        evaluation = Evaluation(
            evaluator_id=evaluator.id,
            project_id=project.id,
            school_id=project.school_id,
            fair_id=project.fair_id
        )
        db.session.add(evaluation)

    for criterion, score, comment in changes:
        item = evaluation.item_for(criterion.id)
        if score is not None:
            if item is None:
                evaluation.items.append(ScoreItem(criterion_id=criterion.id, score=score, comment=comment))
            else:
                item.score = score
                item.comment = comment
        elif item is not None:
            # Comment only: a previous score stays as it was
            item.comment = comment
        elif comment:
            evaluation.items.append(ScoreItem(criterion_id=criterion.id, score=None, comment=comment))

    evaluation.has_any_score = any(item.score is not None for item in evaluation.items)

    # 3. Persist once
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not save evaluation of project %s by evaluator %s', project.id, evaluator.id)
        raise PersistenceError()

    logger.info('Evaluator %s saved %d item(s) for project %s', evaluator.id, len(changes), project.id)
    return evaluation


def _incomplete_titles(identity, evaluator):
    return [
        project.title for project in evaluator.projects
        if not compute_status(identity, project).is_complete
    ]


def _mark_finished(evaluator_id):
    """Conditional update; only the first caller for an evaluator wins."""
    try:
        updated = Evaluator.query.filter_by(id=evaluator_id, finished_all=False).update(
            {'finished_all': True, 'active': False}, synchronize_session=False
        )
        if updated != 1:
            db.session.rollback()
            return False
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not finalize evaluator %s', evaluator_id)
        raise PersistenceError()
    return True


def finalize_all(identity):
    """
    Locks the evaluator's scores and disables the PIN for good.
    Raises IncompleteProjects without changing anything while some
    assigned project is not fully scored.
    """
    evaluator = _load_active_evaluator(identity)

    titles = _incomplete_titles(identity, evaluator)
    if titles:
        raise IncompleteProjects(titles)

    if not _mark_finished(evaluator.id):
        raise AlreadyFinalized()

    logger.info('Evaluator %s finalized all evaluations', identity.evaluator_id)


def generate_unique_pin(length=6):
    """Random numeric PIN not used by any evaluator yet."""
    low = 10 ** (length - 1)
    while True:
        pin = str(low + secrets.randbelow(9 * low))
        if not Evaluator.query.filter_by(pin=pin).first():
            return pin


def _mean(values):
    return round(sum(values) / len(values), 2) if values else None


def build_fair_report(school_id, fair_id):
    """
    Aggregates every evaluation of a fair for the admin results page:
    per-criterion means, weighted final score per project and a ranking
    grouped by category.
    """
    criteria = official_criteria(school_id, fair_id)
    criterion_ids = {c.id for c in criteria}

    projects = Project.query.filter_by(school_id=school_id, fair_id=fair_id).options(
        joinedload(Project.category),
        joinedload(Project.evaluators)
    ).order_by(Project.title).all()

    evaluations = Evaluation.query.filter_by(school_id=school_id, fair_id=fair_id).options(
        joinedload(Evaluation.items)
    ).all()

    evaluations_by_project = defaultdict(list)
    for evaluation in evaluations:
        evaluations_by_project[evaluation.project_id].append(evaluation)

    all_scores = []
    scores_by_criterion = defaultdict(list)
    status_counts = {PROJECT_NOT_EVALUATED: 0, PROJECT_UNDER_EVALUATION: 0, PROJECT_EVALUATED: 0}
    rows = []

    for project in projects:
        project_evaluations = evaluations_by_project.get(project.id, [])
        project_scores = defaultdict(list)
        for evaluation in project_evaluations:
            for item in evaluation.items:
                if item.criterion_id in criterion_ids and is_valid_score(item.score):
                    project_scores[item.criterion_id].append(item.score)
                    scores_by_criterion[item.criterion_id].append(item.score)
                    all_scores.append(item.score)

        criterion_means = {c.id: _mean(project_scores.get(c.id, [])) for c in criteria}

        weighted_total = 0
        total_weight = 0
        for c in criteria:
            if criterion_means[c.id] is not None:
                weighted_total += criterion_means[c.id] * c.weight
                total_weight += c.weight
        final_score = round(weighted_total / total_weight, 2) if total_weight else None

        scored_criteria = sum(1 for mean in criterion_means.values() if mean is not None)
        if not project_evaluations:
            status = PROJECT_NOT_EVALUATED
        elif len(project_evaluations) < len(project.evaluators) or scored_criteria < len(criteria):
            status = PROJECT_UNDER_EVALUATION
        else:
            status = PROJECT_EVALUATED
        status_counts[status] += 1

        rows.append({
            'project': project,
            'category': project.category.name if project.category else NO_CATEGORY,
            'evaluation_count': len(project_evaluations),
            'evaluator_count': len(project.evaluators),
            'criterion_means': criterion_means,
            'final_score': final_score,
            'status': status
        })

    by_category = defaultdict(list)
    for row in rows:
        by_category[row['category']].append(row)
    for group in by_category.values():
        # Unscored projects go last
        group.sort(key=lambda r: (r['final_score'] is None, -(r['final_score'] or 0)))

    return {
        'criteria': criteria,
        'projects': rows,
        'by_category': dict(by_category),
        'criterion_means': {c.name: _mean(scores_by_criterion.get(c.id, [])) for c in criteria},
        'status_counts': status_counts,
        'overall_mean': _mean(all_scores)
    }


def evaluator_summary(school_id, fair_id):
    """Progress of every evaluator of a fair."""
    summary = []
    evaluators = Evaluator.query.filter_by(school_id=school_id, fair_id=fair_id).order_by(Evaluator.name).all()
    for evaluator in evaluators:
        identity = EvaluatorIdentity.from_evaluator(evaluator)
        completed = sum(1 for p in evaluator.projects if compute_status(identity, p).is_complete)
        summary.append({
            'evaluator': evaluator,
            'assigned': len(evaluator.projects),
            'completed': completed,
            'finished': evaluator.finished_all
        })
    return summary


def cross_school_report():
    """
    Platform-wide view over the active fair of every school: projects nobody
    has evaluated yet, one ranking across schools and evaluator progress.
    """
    unevaluated, ranking, evaluators = [], [], []
    fairs = (Fair.query.join(School)
             .filter(Fair.status == 'active')
             .options(joinedload(Fair.school))
             .order_by(School.name).all())

    for fair in fairs:
        report = build_fair_report(fair.school_id, fair.id)
        for row in report['projects']:
            entry = dict(row, school=fair.school, fair=fair)
            if row['evaluation_count'] == 0:
                unevaluated.append(entry)
            ranking.append(entry)
        for entry in evaluator_summary(fair.school_id, fair.id):
            evaluators.append(dict(entry, school=fair.school, fair=fair))

    # Unscored projects go last
    ranking.sort(key=lambda row: (row['final_score'] is None, -(row['final_score'] or 0), row['project'].title))
    return {
        'fairs': fairs,
        'unevaluated': unevaluated,
        'ranking': ranking,
        'evaluators': evaluators
    }
