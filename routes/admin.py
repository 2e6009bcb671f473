# routes/admin.py
# School admin console: school data, fairs, categories, criteria, projects,
# evaluators, pre-registrations, results

import logging
from datetime import datetime, date, timedelta
from functools import wraps

from flask import Blueprint, render_template, request, redirect, url_for, session, flash, current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from extensions import db
from errors import EvaluationError
from models import School, Fair, Category, Criterion, Project, Evaluator, Evaluation, ScoreItem, PreRegistration
from logic import generate_unique_pin, build_fair_report, evaluator_summary
from onboarding import update_school, approve_pre_registration, reject_pre_registration

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


def admin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if session.get('role') != 'admin' or not session.get('school_id'):
            flash('Please log in as a school administrator to access this page.', 'error')
            return redirect(url_for('auth.admin_login'))
        return f(*args, **kwargs)
    return decorated_function


def current_school_id():
    return session['school_id']


def active_fair(school_id):
    return Fair.query.filter_by(school_id=school_id, status='active').first()


def selected_fair(school_id):
    """Fair picked with ?fair_id=, else the active one, else the most recent."""
    fair_id = request.args.get('fair_id', type=int)
    if fair_id:
        fair = Fair.query.filter_by(id=fair_id, school_id=school_id).first()
        if fair:
            return fair
        flash('Selected fair not found for your school.', 'error')
    fair = active_fair(school_id)
    if fair:
        return fair
    return Fair.query.filter_by(school_id=school_id).order_by(Fair.created_at.desc(), Fair.id.desc()).first()


def parse_date(value):
    if not value:
        return None
    return datetime.strptime(value, '%Y-%m-%d').date()


def parse_weight(value):
    try:
        weight = int(value)
    except (TypeError, ValueError):
        return None
    return weight if 1 <= weight <= 10 else None


def save_changes(success_message, integrity_message=None):
    """Commits the session and flashes the outcome. Returns True on success."""
    try:
        db.session.commit()
        flash(success_message, 'success')
        return True
    except IntegrityError:
        db.session.rollback()
        flash(integrity_message or 'This record conflicts with an existing one.', 'error')
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Admin change failed for school %s', session.get('school_id'))
        flash('Could not save your changes. Please try again.', 'error')
    return False


# --- Dashboard ---
@admin_bp.route('/')
@admin_required
def dashboard():
    school_id = current_school_id()
    school = db.session.get(School, school_id)
    fair = selected_fair(school_id)
    fairs = Fair.query.filter_by(school_id=school_id).order_by(Fair.created_at.desc()).all()

    report = build_fair_report(school_id, fair.id) if fair else None
    evaluator_count = Evaluator.query.filter_by(school_id=school_id, fair_id=fair.id).count() if fair else 0

    return render_template('admin/dashboard.html',
                           school=school,
                           fair=fair,
                           fairs=fairs,
                           report=report,
                           evaluator_count=evaluator_count)


# --- CRUD for Fair ---
@admin_bp.route('/fairs', methods=['GET', 'POST'])
@admin_required
def manage_fairs():
    school_id = current_school_id()

    if request.method == 'POST':
        name = (request.form.get('name') or '').strip()
        status = request.form.get('status') or 'active'

        if not name:
            flash('Please enter a name for the fair.', 'error')
            return redirect(url_for('admin.manage_fairs'))
        if status not in ('active', 'archived'):
            flash('Invalid fair status.', 'error')
            return redirect(url_for('admin.manage_fairs'))

        existing_active = active_fair(school_id)
        if status == 'active' and existing_active:
            flash(f'There is already an active fair for this school ({existing_active.name}). '
                  'Archive it before activating a new one.', 'error')
            return redirect(url_for('admin.manage_fairs'))

        try:
            start_date = parse_date(request.form.get('start_date'))
            end_date = parse_date(request.form.get('end_date'))
        except ValueError:
            flash('Invalid date format. Use YYYY-MM-DD.', 'error')
            return redirect(url_for('admin.manage_fairs'))
        if start_date and end_date and start_date > end_date:
            flash('The start date cannot be after the end date.', 'error')
            return redirect(url_for('admin.manage_fairs'))

        db.session.add(Fair(school_id=school_id, name=name, status=status,
                            start_date=start_date, end_date=end_date))
        save_changes(f'Fair "{name}" created successfully!')
        return redirect(url_for('admin.manage_fairs'))

    fairs = Fair.query.filter_by(school_id=school_id).order_by(Fair.created_at.desc()).all()
    return render_template('admin/fairs.html', fairs=fairs)


@admin_bp.route('/fair/<int:fair_id>/edit', methods=['POST'])
@admin_required
def edit_fair(fair_id):
    school_id = current_school_id()
    fair = Fair.query.filter_by(id=fair_id, school_id=school_id).first_or_404()

    name = (request.form.get('name') or '').strip()
    status = request.form.get('status')
    if not name or status not in ('active', 'archived'):
        flash('Name and a valid status are required.', 'error')
        return redirect(url_for('admin.manage_fairs'))

    try:
        start_date = parse_date(request.form.get('start_date'))
        end_date = parse_date(request.form.get('end_date'))
    except ValueError:
        flash('Invalid date format. Use YYYY-MM-DD.', 'error')
        return redirect(url_for('admin.manage_fairs'))
    if start_date and end_date and start_date > end_date:
        flash('The start date cannot be after the end date.', 'error')
        return redirect(url_for('admin.manage_fairs'))

    if status == 'active':
        # Only one active fair per school
        Fair.query.filter(
            Fair.school_id == school_id, Fair.id != fair.id, Fair.status == 'active'
        ).update({'status': 'archived', 'archived_at': datetime.utcnow()}, synchronize_session=False)
    elif fair.status == 'active':
        fair.archived_at = datetime.utcnow()

    fair.name = name
    fair.status = status
    fair.start_date = start_date
    fair.end_date = end_date
    save_changes('Fair updated successfully.')
    return redirect(url_for('admin.manage_fairs'))


@admin_bp.route('/fair/<int:fair_id>/delete', methods=['POST'])
@admin_required
def delete_fair(fair_id):
    school_id = current_school_id()
    fair = Fair.query.filter_by(id=fair_id, school_id=school_id).first_or_404()

    if fair.status == 'active':
        flash(f'Cannot delete fair "{fair.name}" because it is ACTIVE. Archive it first.', 'error')
        return redirect(url_for('admin.manage_fairs'))

    linked = {
        'project(s)': Project.query.filter_by(fair_id=fair.id).count(),
        'evaluation(s)': Evaluation.query.filter_by(fair_id=fair.id).count(),
        'evaluator(s)': Evaluator.query.filter_by(fair_id=fair.id).count(),
        'category(ies)': Category.query.filter_by(fair_id=fair.id).count(),
        'criterion(a)': Criterion.query.filter_by(fair_id=fair.id).count(),
        'pre-registration(s)': PreRegistration.query.filter_by(fair_id=fair.id).count()
    }
    in_use = [f'{count} {label}' for label, count in linked.items() if count]
    if in_use:
        flash(f'Cannot delete fair "{fair.name}", it still has: {", ".join(in_use)}.', 'error')
        return redirect(url_for('admin.manage_fairs'))

    db.session.delete(fair)
    save_changes(f'Fair "{fair.name}" deleted.')
    return redirect(url_for('admin.manage_fairs'))


@admin_bp.route('/fairs/archive', methods=['POST'])
@admin_required
def archive_fair():
    fair = active_fair(current_school_id())
    if not fair:
        flash('No active fair to archive.', 'error')
        return redirect(url_for('admin.manage_fairs'))

    fair.status = 'archived'
    fair.archived_at = datetime.utcnow()
    save_changes(f'Fair "{fair.name}" archived.')
    return redirect(url_for('admin.manage_fairs'))


@admin_bp.route('/fairs/start-new', methods=['POST'])
@admin_required
def start_new_fair():
    school_id = current_school_id()
    previous = active_fair(school_id)
    if previous:
        previous.status = 'archived'
        previous.archived_at = datetime.utcnow()

    today = date.today()
    new_fair = Fair(
        school_id=school_id,
        name=f'Fair {today.year + 1}',
        status='active',
        start_date=today,
        end_date=today + timedelta(days=365)
    )
    db.session.add(new_fair)
    save_changes(f'New fair "{new_fair.name}" started.')
    return redirect(url_for('admin.manage_fairs'))


# --- CRUD for Category ---
@admin_bp.route('/categories', methods=['GET', 'POST'])
@admin_required
def manage_categories():
    school_id = current_school_id()
    fair = active_fair(school_id)

    if request.method == 'POST':
        if not fair:
            flash('No active fair for this school, cannot create a category.', 'error')
            return redirect(url_for('admin.manage_categories'))
        name = (request.form.get('name') or '').strip()
        if not name:
            flash('Please enter a name for the category.', 'error')
            return redirect(url_for('admin.manage_categories'))

        db.session.add(Category(name=name, school_id=school_id, fair_id=fair.id))
        save_changes(f'Category "{name}" created.')
        return redirect(url_for('admin.manage_categories'))

    categories = Category.query.filter_by(school_id=school_id, fair_id=fair.id).order_by(Category.name).all() if fair else []
    return render_template('admin/categories.html', fair=fair, categories=categories)


@admin_bp.route('/category/<int:category_id>/edit', methods=['POST'])
@admin_required
def edit_category(category_id):
    category = Category.query.filter_by(id=category_id, school_id=current_school_id()).first_or_404()
    name = (request.form.get('name') or '').strip()
    if not name:
        flash('Please enter a name for the category.', 'error')
        return redirect(url_for('admin.manage_categories'))

    category.name = name
    save_changes('Category updated.')
    return redirect(url_for('admin.manage_categories'))


@admin_bp.route('/category/<int:category_id>/delete', methods=['POST'])
@admin_required
def delete_category(category_id):
    school_id = current_school_id()
    category = Category.query.filter_by(id=category_id, school_id=school_id).first_or_404()

    linked_projects = Project.query.filter_by(category_id=category.id, school_id=school_id).count()
    if linked_projects:
        flash(f'Cannot delete category "{category.name}", it has {linked_projects} project(s).', 'error')
        return redirect(url_for('admin.manage_categories'))

    db.session.delete(category)
    save_changes('Category deleted.')
    return redirect(url_for('admin.manage_categories'))


# --- CRUD for Criterion ---
@admin_bp.route('/criteria', methods=['GET', 'POST'])
@admin_required
def manage_criteria():
    school_id = current_school_id()
    fair = active_fair(school_id)

    if request.method == 'POST':
        if not fair:
            flash('No active fair for this school, cannot create a criterion.', 'error')
            return redirect(url_for('admin.manage_criteria'))

        name = (request.form.get('name') or '').strip()
        weight = parse_weight(request.form.get('weight'))
        if not name or weight is None:
            flash('Name is required and the weight must be a number between 1 and 10.', 'error')
            return redirect(url_for('admin.manage_criteria'))

        db.session.add(Criterion(
            name=name,
            weight=weight,
            note=(request.form.get('note') or '').strip(),
            tiebreak_order=request.form.get('tiebreak_order', default=0, type=int),
            school_id=school_id,
            fair_id=fair.id
        ))
        save_changes(f'Criterion "{name}" created.')
        return redirect(url_for('admin.manage_criteria'))

    criteria = Criterion.query.filter_by(school_id=school_id, fair_id=fair.id).order_by(Criterion.name).all() if fair else []
    return render_template('admin/criteria.html', fair=fair, criteria=criteria)


@admin_bp.route('/criterion/<int:criterion_id>/edit', methods=['POST'])
@admin_required
def edit_criterion(criterion_id):
    criterion = Criterion.query.filter_by(id=criterion_id, school_id=current_school_id()).first_or_404()

    name = (request.form.get('name') or '').strip()
    weight = parse_weight(request.form.get('weight'))
    if not name or weight is None:
        flash('Name is required and the weight must be a number between 1 and 10.', 'error')
        return redirect(url_for('admin.manage_criteria'))

    criterion.name = name
    criterion.weight = weight
    criterion.note = (request.form.get('note') or '').strip()
    criterion.tiebreak_order = request.form.get('tiebreak_order', default=criterion.tiebreak_order, type=int)
    save_changes('Criterion updated.')
    return redirect(url_for('admin.manage_criteria'))


@admin_bp.route('/criterion/<int:criterion_id>/delete', methods=['POST'])
@admin_required
def delete_criterion(criterion_id):
    criterion = Criterion.query.filter_by(id=criterion_id, school_id=current_school_id()).first_or_404()

    # Scores already given for this criterion block the deletion
    if ScoreItem.query.filter_by(criterion_id=criterion.id).first():
        flash(f'Cannot delete criterion "{criterion.name}", evaluators have already scored it.', 'error')
        return redirect(url_for('admin.manage_criteria'))

    db.session.delete(criterion)
    save_changes(f'Criterion "{criterion.name}" deleted.')
    return redirect(url_for('admin.manage_criteria'))


# --- CRUD for Project ---
def fill_project(project, form, school_id, fair_id):
    """Copies form fields onto a project. Returns a list of problems."""
    errors = []
    title = (form.get('title') or '').strip()
    class_group = (form.get('class_group') or '').strip()
    if not title:
        errors.append('The project title is required.')
    if not class_group:
        errors.append('The class group is required.')

    category_id = form.get('category_id', type=int)
    if category_id and not Category.query.filter_by(id=category_id, school_id=school_id, fair_id=fair_id).first():
        errors.append('Select a valid category.')

    if errors:
        return errors

    project.title = title
    project.class_group = class_group
    project.description = (form.get('description') or '').strip()
    project.advisor = (form.get('advisor') or '').strip()
    project.co_advisor = (form.get('co_advisor') or '').strip()
    project.students = ', '.join(s.strip() for s in (form.get('students') or '').split(',') if s.strip())
    project.category_id = category_id or None
    return []


@admin_bp.route('/projects', methods=['GET', 'POST'])
@admin_required
def manage_projects():
    school_id = current_school_id()
    fair = active_fair(school_id)

    if request.method == 'POST':
        if not fair:
            flash('No active fair for this school, cannot create a project.', 'error')
            return redirect(url_for('admin.manage_projects'))

        project = Project(school_id=school_id, fair_id=fair.id)
        errors = fill_project(project, request.form, school_id, fair.id)
        if errors:
            flash(' '.join(errors), 'error')
            return redirect(url_for('admin.manage_projects'))

        db.session.add(project)
        save_changes(f'Project "{project.title}" created.')
        return redirect(url_for('admin.manage_projects'))

    projects = []
    categories = []
    if fair:
        projects = Project.query.filter_by(school_id=school_id, fair_id=fair.id).options(
            joinedload(Project.category)
        ).order_by(Project.title).all()
        categories = Category.query.filter_by(school_id=school_id, fair_id=fair.id).order_by(Category.name).all()
    return render_template('admin/projects.html', fair=fair, projects=projects, categories=categories)


@admin_bp.route('/project/<int:project_id>/edit', methods=['POST'])
@admin_required
def edit_project(project_id):
    school_id = current_school_id()
    project = Project.query.filter_by(id=project_id, school_id=school_id).first_or_404()

    errors = fill_project(project, request.form, school_id, project.fair_id)
    if errors:
        flash(' '.join(errors), 'error')
        return redirect(url_for('admin.manage_projects'))

    save_changes('Project updated.')
    return redirect(url_for('admin.manage_projects'))


@admin_bp.route('/project/<int:project_id>/delete', methods=['POST'])
@admin_required
def delete_project(project_id):
    project = Project.query.filter_by(id=project_id, school_id=current_school_id()).first_or_404()
    # Evaluations go with the project (relationship cascade)
    db.session.delete(project)
    save_changes('Project and its evaluations deleted.')
    return redirect(url_for('admin.manage_projects'))


# --- CRUD for Evaluator ---
def assignable_projects(form, school_id, fair_id):
    project_ids = form.getlist('project_ids', type=int)
    if not project_ids:
        return []
    return Project.query.filter(
        Project.id.in_(project_ids),
        Project.school_id == school_id,
        Project.fair_id == fair_id
    ).all()


@admin_bp.route('/evaluators', methods=['GET', 'POST'])
@admin_required
def manage_evaluators():
    school_id = current_school_id()
    fair = active_fair(school_id)

    if request.method == 'POST':
        name = (request.form.get('name') or '').strip()
        email = (request.form.get('email') or '').strip().lower()
        fair_id = request.form.get('fair_id', type=int) or (fair.id if fair else None)
        target_fair = Fair.query.filter_by(id=fair_id, school_id=school_id).first() if fair_id else None

        errors = []
        if not name:
            errors.append('The evaluator name is required.')
        if not email:
            errors.append('The evaluator e-mail is required.')
        if not target_fair:
            errors.append('Select a valid fair for the evaluator.')
        elif email and Evaluator.query.filter_by(email=email, school_id=school_id, fair_id=target_fair.id).first():
            errors.append('There is already an evaluator with this e-mail in this fair.')
        if errors:
            flash(' '.join(errors), 'error')
            return redirect(url_for('admin.manage_evaluators'))

        pin = generate_unique_pin(current_app.config['PIN_LENGTH'])
        evaluator = Evaluator(
            name=name,
            email=email,
            pin=pin,
            active=bool(request.form.get('active')),
            school_id=school_id,
            fair_id=target_fair.id,
            projects=assignable_projects(request.form, school_id, target_fair.id)
        )
        db.session.add(evaluator)
        if save_changes(f'Evaluator "{name}" added. PIN: {pin}',
                        'There is already an evaluator with this e-mail in this fair.'):
            logger.info('Evaluator %s created for fair %s', evaluator.id, target_fair.id)
        return redirect(url_for('admin.manage_evaluators'))

    evaluators = []
    projects = []
    if fair:
        evaluators = Evaluator.query.filter_by(school_id=school_id, fair_id=fair.id).options(
            joinedload(Evaluator.projects)
        ).order_by(Evaluator.name).all()
        projects = Project.query.filter_by(school_id=school_id, fair_id=fair.id).order_by(Project.title).all()
    return render_template('admin/evaluators.html', fair=fair, evaluators=evaluators, projects=projects)


@admin_bp.route('/evaluator/<int:evaluator_id>/edit', methods=['POST'])
@admin_required
def edit_evaluator(evaluator_id):
    school_id = current_school_id()
    evaluator = Evaluator.query.filter_by(id=evaluator_id, school_id=school_id).first_or_404()

    name = (request.form.get('name') or '').strip()
    email = (request.form.get('email') or '').strip().lower()
    if not name or not email:
        flash('Name and e-mail are required.', 'error')
        return redirect(url_for('admin.manage_evaluators'))

    evaluator.name = name
    evaluator.email = email
    evaluator.projects = assignable_projects(request.form, school_id, evaluator.fair_id)
    if evaluator.finished_all:
        # A finalized evaluator can never be reactivated
        evaluator.active = False
    else:
        evaluator.active = bool(request.form.get('active'))

    save_changes('Evaluator updated.', 'There is already another evaluator with this e-mail in this fair.')
    return redirect(url_for('admin.manage_evaluators'))


@admin_bp.route('/evaluator/<int:evaluator_id>/reset-pin', methods=['POST'])
@admin_required
def reset_evaluator_pin(evaluator_id):
    evaluator = Evaluator.query.filter_by(id=evaluator_id, school_id=current_school_id()).first_or_404()
    evaluator.pin = generate_unique_pin(current_app.config['PIN_LENGTH'])
    save_changes(f'PIN of {evaluator.name} reset. New PIN: {evaluator.pin}')
    return redirect(url_for('admin.manage_evaluators'))


@admin_bp.route('/evaluator/<int:evaluator_id>/delete', methods=['POST'])
@admin_required
def delete_evaluator(evaluator_id):
    evaluator = Evaluator.query.filter_by(id=evaluator_id, school_id=current_school_id()).first_or_404()
    PreRegistration.query.filter_by(evaluator_id=evaluator.id).update({'evaluator_id': None}, synchronize_session=False)
    db.session.delete(evaluator)
    save_changes('Evaluator and their evaluations deleted.')
    return redirect(url_for('admin.manage_evaluators'))


# --- School data ---
SCHOOL_EDITABLE_FIELDS = ('name', 'address', 'phone', 'email', 'description', 'director', 'responsible')


@admin_bp.route('/school', methods=['GET', 'POST'])
@admin_required
def edit_school():
    school = db.session.get(School, current_school_id())
    if request.method == 'POST':
        try:
            update_school(school, request.form, SCHOOL_EDITABLE_FIELDS)
        except (EvaluationError, ValueError) as e:
            flash(str(e), 'error')
            return redirect(url_for('admin.edit_school'))
        flash('School data updated.', 'success')
        return redirect(url_for('admin.edit_school'))

    return render_template('admin/school.html', school=school)


# --- Evaluator pre-registrations ---
@admin_bp.route('/pre-registrations')
@admin_required
def pre_registrations():
    school_id = current_school_id()
    fair = selected_fair(school_id)
    registrations = []
    if fair:
        registrations = PreRegistration.query.filter_by(school_id=school_id, fair_id=fair.id).order_by(
            PreRegistration.created_at.desc(), PreRegistration.id.desc()
        ).all()
    return render_template('admin/pre_registrations.html', fair=fair, registrations=registrations)


@admin_bp.route('/pre-registration/<int:registration_id>/approve', methods=['POST'])
@admin_required
def approve_registration(registration_id):
    registration = PreRegistration.query.filter_by(
        id=registration_id, school_id=current_school_id()
    ).first_or_404()
    try:
        evaluator = approve_pre_registration(registration, current_app.config['PIN_LENGTH'])
    except EvaluationError as e:
        flash(str(e), 'error')
        return redirect(url_for('admin.pre_registrations', fair_id=registration.fair_id))

    flash(f'{evaluator.name} is now an evaluator. PIN: {evaluator.pin}. '
          'Assign projects on the Evaluators page.', 'success')
    return redirect(url_for('admin.pre_registrations', fair_id=registration.fair_id))


@admin_bp.route('/pre-registration/<int:registration_id>/reject', methods=['POST'])
@admin_required
def reject_registration(registration_id):
    registration = PreRegistration.query.filter_by(
        id=registration_id, school_id=current_school_id()
    ).first_or_404()
    try:
        reject_pre_registration(registration)
    except EvaluationError as e:
        flash(str(e), 'error')
        return redirect(url_for('admin.pre_registrations', fair_id=registration.fair_id))

    flash(f'Pre-registration of {registration.name} rejected.', 'success')
    return redirect(url_for('admin.pre_registrations', fair_id=registration.fair_id))


# --- Results ---
@admin_bp.route('/results')
@admin_required
def results():
    school_id = current_school_id()
    fair = selected_fair(school_id)
    if not fair:
        flash('No fair found for this school.', 'error')
        return redirect(url_for('admin.dashboard'))

    return render_template('admin/results.html',
                           fair=fair,
                           report=build_fair_report(school_id, fair.id),
                           evaluators=evaluator_summary(school_id, fair.id))
