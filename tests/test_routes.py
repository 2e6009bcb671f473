"""
Test: HTTP flows for evaluators, school admins and the platform admin.
"""
from datetime import date

from extensions import db
from logic import submit_scores
from models import (School, Admin, Fair, Category, Criterion, Project, Evaluator, Evaluation, AccessRequest,
                    PreRegistration)


def login_evaluator(client, pin='123456'):
    return client.post('/evaluator/login', data={'pin': pin})


def score_form(seeded, c1='8', c2='8', c3='8'):
    return {
        f'scores[{seeded.c1}]': c1,
        f'scores[{seeded.c2}]': c2,
        f'scores[{seeded.c3}]': c3,
        f'comments[{seeded.c1}]': 'Nice work'
    }


def fresh(model, pk):
    db.session.expire_all()
    return db.session.get(model, pk)


class TestEvaluatorFlow:
    def test_login_with_pin(self, client, seeded):
        response = login_evaluator(client)
        assert response.status_code == 302
        assert response.headers['Location'].endswith('/evaluator/dashboard')

        page = client.get('/evaluator/dashboard')
        assert b'Alpha Rocket' in page.data
        assert b'Beta Battery' in page.data
        assert b'Pending' in page.data

    def test_wrong_pin(self, client, seeded):
        response = client.post('/evaluator/login', data={'pin': '000000'}, follow_redirects=True)
        assert b'Invalid PIN or inactive evaluator.' in response.data
        with client.session_transaction() as sess:
            assert 'evaluator_id' not in sess

    def test_direct_access_link(self, client, seeded):
        response = client.get('/evaluator/access/123456')
        assert response.headers['Location'].endswith('/evaluator/dashboard')

    def test_dashboard_requires_login(self, client, seeded):
        response = client.get('/evaluator/dashboard')
        assert response.status_code == 302
        assert '/evaluator/login' in response.headers['Location']

    def test_evaluate_page_lists_criteria(self, client, seeded):
        login_evaluator(client)
        page = client.get(f'/evaluator/evaluate/{seeded.alpha.id}')
        assert page.status_code == 200
        assert b'C1 Creativity' in page.data
        assert b'C3 Presentation' in page.data

    def test_submit_scores(self, client, seeded):
        login_evaluator(client)
        response = client.post(f'/evaluator/evaluate/{seeded.alpha.id}', data=score_form(seeded))
        assert response.headers['Location'].endswith('/evaluator/dashboard')

        evaluation = Evaluation.query.filter_by(project_id=seeded.alpha.id).one()
        assert [item.score for item in evaluation.items] == [8, 8, 8]
        assert evaluation.item_for(seeded.c1).comment == 'Nice work'

    def test_invalid_score_goes_back_to_form(self, client, seeded):
        login_evaluator(client)
        response = client.post(f'/evaluator/evaluate/{seeded.alpha.id}', data=score_form(seeded, c2='11'))
        assert response.headers['Location'].endswith(f'/evaluator/evaluate/{seeded.alpha.id}')
        assert Evaluation.query.count() == 0

    def test_unassigned_project(self, client, seeded):
        other = Project(title='Gamma', class_group='9C', school_id=seeded.school.id, fair_id=seeded.fair.id)
        db.session.add(other)
        db.session.commit()
        login_evaluator(client)

        assert client.get(f'/evaluator/evaluate/{other.id}').headers['Location'].endswith('/evaluator/dashboard')
        client.post(f'/evaluator/evaluate/{other.id}', data=score_form(seeded))
        assert Evaluation.query.count() == 0

    def test_finalize_blocked_while_incomplete(self, client, seeded):
        login_evaluator(client)
        client.post(f'/evaluator/evaluate/{seeded.alpha.id}', data=score_form(seeded))
        response = client.post('/evaluator/finalize', follow_redirects=True)
        assert b'Beta Battery' in response.data
        assert fresh(Evaluator, seeded.evaluator.id).finished_all is False

    def test_finalize_disables_pin(self, client, seeded):
        login_evaluator(client)
        client.post(f'/evaluator/evaluate/{seeded.alpha.id}', data=score_form(seeded))
        client.post(f'/evaluator/evaluate/{seeded.beta.id}', data=score_form(seeded, '9', '9', '9'))

        response = client.post('/evaluator/finalize')
        assert response.headers['Location'].endswith('/evaluator/thanks')
        evaluator = fresh(Evaluator, seeded.evaluator.id)
        assert evaluator.finished_all is True
        assert evaluator.active is False

        # Session is gone and the PIN no longer works
        assert client.get('/evaluator/dashboard').status_code == 302
        response = login_evaluator(client)
        assert response.headers['Location'].endswith('/evaluator/login')

    def test_deactivated_evaluator_is_logged_out(self, client, seeded):
        login_evaluator(client)
        seeded.evaluator.active = False
        db.session.commit()
        response = client.get('/evaluator/dashboard')
        assert '/evaluator/login' in response.headers['Location']


class TestAdminAuth:
    def test_login(self, client, seeded):
        response = client.post('/admin/login', data={'email': 'EscolaModelo@admin.com', 'password': 'secret123'})
        assert response.headers['Location'].endswith('/admin/')
        with client.session_transaction() as sess:
            assert sess['school_id'] == seeded.school.id

    def test_wrong_password(self, client, seeded):
        response = client.post('/admin/login', data={'email': 'escolamodelo@admin.com', 'password': 'nope'},
                               follow_redirects=True)
        assert b'Invalid credentials.' in response.data

    def test_inactive_school(self, client, seeded):
        seeded.school.active = False
        db.session.commit()
        response = client.post('/admin/login', data={'email': 'escolamodelo@admin.com', 'password': 'secret123'})
        assert response.headers['Location'].endswith('/admin/login')

    def test_console_requires_admin(self, client, seeded):
        login_evaluator(client)
        response = client.get('/admin/projects')
        assert '/admin/login' in response.headers['Location']


class TestAdminFairs:
    def test_second_active_fair_refused(self, admin_client, seeded):
        admin_client.post('/admin/fairs', data={'name': 'Another', 'status': 'active'})
        assert Fair.query.filter_by(school_id=seeded.school.id, status='active').count() == 1

    def test_activating_on_edit_archives_the_other(self, admin_client, seeded):
        admin_client.post('/admin/fairs', data={'name': 'Old Fair', 'status': 'archived'})
        old = Fair.query.filter_by(name='Old Fair').one()
        admin_client.post(f'/admin/fair/{old.id}/edit', data={'name': 'Old Fair', 'status': 'active'})

        assert fresh(Fair, old.id).status == 'active'
        previous = fresh(Fair, seeded.fair.id)
        assert previous.status == 'archived'
        assert previous.archived_at is not None

    def test_edit_rejects_start_after_end(self, admin_client, seeded):
        seeded.fair.start_date = date(2026, 5, 1)
        db.session.commit()
        response = admin_client.post(f'/admin/fair/{seeded.fair.id}/edit', data={
            'name': 'Renamed', 'status': 'active', 'start_date': '2026-06-10', 'end_date': '2026-06-01'
        }, follow_redirects=True)
        assert b'The start date cannot be after the end date.' in response.data

        fair = fresh(Fair, seeded.fair.id)
        assert fair.name == 'Fair 2026'
        assert fair.start_date == date(2026, 5, 1)

    def test_delete_active_fair_refused(self, admin_client, seeded):
        admin_client.post(f'/admin/fair/{seeded.fair.id}/delete')
        assert fresh(Fair, seeded.fair.id) is not None

    def test_delete_archived_fair_with_data_refused(self, admin_client, seeded):
        admin_client.post('/admin/fairs/archive')
        admin_client.post(f'/admin/fair/{seeded.fair.id}/delete')
        assert fresh(Fair, seeded.fair.id) is not None

    def test_delete_empty_archived_fair(self, admin_client, seeded):
        admin_client.post('/admin/fairs', data={'name': 'Draft', 'status': 'archived'})
        draft = Fair.query.filter_by(name='Draft').one()
        admin_client.post(f'/admin/fair/{draft.id}/delete')
        assert fresh(Fair, draft.id) is None

    def test_start_new_fair(self, admin_client, seeded):
        admin_client.post('/admin/fairs/start-new')
        assert fresh(Fair, seeded.fair.id).status == 'archived'
        new_fair = Fair.query.filter_by(school_id=seeded.school.id, status='active').one()
        assert new_fair.name == f'Fair {date.today().year + 1}'


class TestAdminSetup:
    def test_category_crud(self, admin_client, seeded):
        admin_client.post('/admin/categories', data={'name': 'Physics'})
        category = Category.query.filter_by(name='Physics').one()
        assert category.fair_id == seeded.fair.id

        admin_client.post(f'/admin/category/{category.id}/edit', data={'name': 'Physics & Math'})
        assert fresh(Category, category.id).name == 'Physics & Math'

        seeded.alpha.category_id = category.id
        db.session.commit()
        admin_client.post(f'/admin/category/{category.id}/delete')
        assert fresh(Category, category.id) is not None

        seeded.alpha.category_id = None
        db.session.commit()
        admin_client.post(f'/admin/category/{category.id}/delete')
        assert fresh(Category, category.id) is None

    def test_criterion_weight_bounds(self, admin_client, seeded):
        admin_client.post('/admin/criteria', data={'name': 'Impact', 'weight': '11'})
        assert Criterion.query.filter_by(name='Impact').first() is None
        admin_client.post('/admin/criteria', data={'name': 'Impact', 'weight': '5'})
        assert Criterion.query.filter_by(name='Impact').one().weight == 5

    def test_scored_criterion_cannot_be_deleted(self, admin_client, seeded):
        submit_scores(seeded.identity, seeded.alpha.id, {seeded.c1: 7})
        admin_client.post(f'/admin/criterion/{seeded.c1}/delete')
        assert fresh(Criterion, seeded.c1) is not None

    def test_project_requires_title_and_class(self, admin_client, seeded):
        admin_client.post('/admin/projects', data={'title': 'No Class'})
        assert Project.query.filter_by(title='No Class').first() is None

        admin_client.post('/admin/projects', data={
            'title': 'Delta Drone', 'class_group': '1A', 'students': 'Ana ,  Bia,,Caio'
        })
        project = Project.query.filter_by(title='Delta Drone').one()
        assert project.student_list == ['Ana', 'Bia', 'Caio']
        assert project.fair_id == seeded.fair.id

    def test_delete_project_removes_evaluations(self, admin_client, seeded):
        submit_scores(seeded.identity, seeded.alpha.id, {seeded.c1: 7})
        admin_client.post(f'/admin/project/{seeded.alpha.id}/delete')
        assert fresh(Project, seeded.alpha.id) is None
        assert Evaluation.query.count() == 0

    def test_other_school_data_is_hidden(self, admin_client, seeded):
        school = School(name='Outra Escola')
        db.session.add(school)
        db.session.flush()
        fair = Fair(school_id=school.id, name='Their Fair')
        db.session.add(fair)
        db.session.flush()
        foreign = Project(title='Foreign', class_group='1A', school_id=school.id, fair_id=fair.id)
        db.session.add(foreign)
        db.session.commit()

        assert admin_client.post(f'/admin/project/{foreign.id}/delete').status_code == 404
        assert admin_client.post(f'/admin/fair/{fair.id}/delete').status_code == 404


class TestAdminEvaluators:
    def test_create_with_generated_pin(self, admin_client, seeded):
        admin_client.post('/admin/evaluators', data={
            'name': 'Joana', 'email': 'Joana@example.com', 'active': '1',
            'project_ids': [str(seeded.alpha.id)]
        })
        evaluator = Evaluator.query.filter_by(email='joana@example.com').one()
        assert len(evaluator.pin) == 6 and evaluator.pin.isdigit()
        assert evaluator.active is True
        assert [p.id for p in evaluator.projects] == [seeded.alpha.id]

    def test_duplicate_email_in_fair_refused(self, admin_client, seeded):
        admin_client.post('/admin/evaluators', data={'name': 'Helena 2', 'email': 'helena@example.com'})
        assert Evaluator.query.filter_by(email='helena@example.com').count() == 1

    def test_assignment_limited_to_fair(self, admin_client, seeded):
        archived = Fair(school_id=seeded.school.id, name='Past', status='archived')
        db.session.add(archived)
        db.session.flush()
        old_project = Project(title='Old', class_group='1A', school_id=seeded.school.id, fair_id=archived.id)
        db.session.add(old_project)
        db.session.commit()

        admin_client.post(f'/admin/evaluator/{seeded.evaluator.id}/edit', data={
            'name': 'Helena', 'email': 'helena@example.com', 'active': '1',
            'project_ids': [str(seeded.beta.id), str(old_project.id)]
        })
        assert [p.title for p in fresh(Evaluator, seeded.evaluator.id).projects] == ['Beta Battery']

    def test_finalized_evaluator_stays_inactive(self, admin_client, seeded):
        seeded.evaluator.finished_all = True
        seeded.evaluator.active = False
        db.session.commit()
        admin_client.post(f'/admin/evaluator/{seeded.evaluator.id}/edit', data={
            'name': 'Helena', 'email': 'helena@example.com', 'active': '1'
        })
        assert fresh(Evaluator, seeded.evaluator.id).active is False

    def test_reset_pin(self, admin_client, seeded):
        admin_client.post(f'/admin/evaluator/{seeded.evaluator.id}/reset-pin')
        assert fresh(Evaluator, seeded.evaluator.id).pin != '123456'

    def test_delete_evaluator(self, admin_client, seeded):
        submit_scores(seeded.identity, seeded.alpha.id, {seeded.c1: 7})
        admin_client.post(f'/admin/evaluator/{seeded.evaluator.id}/delete')
        assert fresh(Evaluator, seeded.evaluator.id) is None
        assert Evaluation.query.count() == 0

    def test_results_page(self, admin_client, seeded):
        response = admin_client.get('/admin/results')
        assert response.status_code == 200
        assert b'Alpha Rocket' in response.data
        assert b'Helena' in response.data


class TestPublicAndSuperAdmin:
    def test_request_access(self, client, app):
        response = client.post('/request-access', data={
            'school_name': 'Colegio Horizonte',
            'address': 'Rua das Flores, 100',
            'school_phone': '1133334444',
            'contact_name': 'Marina Alves',
            'contact_position': 'Coordinator',
            'contact_email': 'marina@horizonte.edu',
            'contact_phone': '11988887777',
            'event_type': 'Science fair',
            'accept_terms': 'on'
        })
        assert response.status_code == 302
        assert AccessRequest.query.one().status == 'Pending'

    def test_request_access_validation(self, client, app):
        response = client.post('/request-access', data={'school_name': 'X'})
        assert response.status_code == 200
        assert AccessRequest.query.count() == 0

    def test_superadmin_login(self, client, superadmin):
        response = client.post('/superadmin/login', data={'email': 'root@example.com', 'password': 'rootpass'})
        assert response.headers['Location'].endswith('/superadmin/')

    def test_approve_from_console(self, superadmin_client, superadmin):
        req = AccessRequest(school_name='Colegio Horizonte', contact_name='Marina',
                            contact_email='marina@horizonte.edu', status='Pending')
        db.session.add(req)
        db.session.commit()

        response = superadmin_client.post(f'/superadmin/request/{req.id}/approve', follow_redirects=True)
        assert b'colegiohorizonte@admin.com' in response.data
        assert fresh(AccessRequest, req.id).status == 'Approved'
        assert School.query.filter_by(name='Colegio Horizonte').one().admins[0].email == 'colegiohorizonte@admin.com'

    def test_reset_admin_password(self, superadmin_client, seeded):
        superadmin_client.post(f'/superadmin/admin/{seeded.admin.id}/reset-password')
        assert fresh(Admin, seeded.admin.id).check_password('secret123') is False

    def test_dashboard_counters(self, superadmin_client, seeded):
        response = superadmin_client.get('/superadmin/')
        assert response.status_code == 200
        assert b'Schools: 1' in response.data

    def test_conflicting_request_is_flagged(self, superadmin_client, seeded):
        req = AccessRequest(school_name='Escola  Modelo', contact_name='Marina',
                            contact_email='marina@modelo.edu', status='Pending')
        db.session.add(req)
        db.session.commit()

        response = superadmin_client.post(f'/superadmin/request/{req.id}/approve', follow_redirects=True)
        assert b'marked as Conflict' in response.data
        assert fresh(AccessRequest, req.id).status == 'Conflict'
        assert School.query.count() == 1

    def test_toggle_school_blocks_admin_login(self, superadmin_client, seeded):
        superadmin_client.post(f'/superadmin/school/{seeded.school.id}/toggle')
        assert fresh(School, seeded.school.id).active is False

        response = superadmin_client.post('/admin/login', data={
            'email': 'escolamodelo@admin.com', 'password': 'secret123'
        })
        assert response.headers['Location'].endswith('/admin/login')

        superadmin_client.post(f'/superadmin/school/{seeded.school.id}/toggle')
        assert fresh(School, seeded.school.id).active is True


class TestSuperAdminSchools:
    def test_create_school(self, superadmin_client):
        response = superadmin_client.post('/superadmin/school/new', data={
            'name': 'Colegio Norte', 'cnpj': '12.345.678/0001-90', 'admin_password': 'secret99'
        }, follow_redirects=True)
        assert b'colegionorte@admin.com' in response.data

        admin = Admin.query.filter_by(email='colegionorte@admin.com').one()
        assert admin.school.cnpj == '12345678000190'
        assert admin.check_password('secret99')

    def test_create_requires_password(self, superadmin_client):
        response = superadmin_client.post('/superadmin/school/new', data={'name': 'Colegio Norte',
                                                                          'admin_password': '123'})
        assert response.status_code == 200
        assert School.query.count() == 0

    def test_create_existing_school(self, superadmin_client, seeded):
        response = superadmin_client.post('/superadmin/school/new', data={'name': 'Escola Modelo',
                                                                          'admin_password': 'secret99'})
        assert b'already registered' in response.data
        assert School.query.count() == 1

    def test_details_show_active_fair_ranking(self, superadmin_client, seeded):
        submit_scores(seeded.identity, seeded.alpha.id, {seeded.c1: 9, seeded.c2: 9, seeded.c3: 9})
        response = superadmin_client.get(f'/superadmin/school/{seeded.school.id}')
        assert response.status_code == 200
        assert b'Ranking of Fair 2026' in response.data
        assert b'Alpha Rocket' in response.data
        assert b'Helena: 1/2' in response.data

    def test_edit_school(self, superadmin_client, seeded):
        superadmin_client.post(f'/superadmin/school/{seeded.school.id}/edit', data={
            'name': 'Escola Modelo Central', 'cnpj': '12.345.678/0001-90', 'director': 'Ana Lima'
        })
        school = fresh(School, seeded.school.id)
        assert school.name == 'Escola Modelo Central'
        assert school.cnpj == '12345678000190'
        assert school.director == 'Ana Lima'

    def test_delete_school(self, superadmin_client, seeded):
        submit_scores(seeded.identity, seeded.alpha.id, {seeded.c1: 9})
        response = superadmin_client.post(f'/superadmin/school/{seeded.school.id}/delete')
        assert response.headers['Location'].endswith('/superadmin/schools')
        assert School.query.count() == 0
        assert Evaluation.query.count() == 0
        assert Evaluator.query.count() == 0

    def test_unknown_school(self, superadmin_client):
        assert superadmin_client.get('/superadmin/school/999').status_code == 404

    def test_reports(self, superadmin_client, seeded):
        other = School(name='Colegio Norte')
        db.session.add(other)
        db.session.flush()
        other_fair = Fair(school_id=other.id, name='Norte 2026', status='active')
        db.session.add(other_fair)
        db.session.flush()
        db.session.add(Project(title='Gamma Gears', class_group='8A', school_id=other.id, fair_id=other_fair.id))
        db.session.commit()
        submit_scores(seeded.identity, seeded.alpha.id, {seeded.c1: 9, seeded.c2: 9, seeded.c3: 9})
        submit_scores(seeded.identity, seeded.beta.id, {seeded.c1: 5, seeded.c2: 5, seeded.c3: 5})

        response = superadmin_client.get('/superadmin/reports')
        assert response.status_code == 200
        page = response.data.decode()
        unevaluated = page.split('Projects without evaluation')[1].split('Project ranking')[0]
        assert 'Gamma Gears' in unevaluated
        assert 'Alpha Rocket' not in unevaluated
        ranking = page.split('Project ranking')[1]
        assert ranking.index('Alpha Rocket') < ranking.index('Beta Battery') < ranking.index('Gamma Gears')
        assert 'Helena' in ranking


class TestAdminSchoolAndPreRegistrations:
    def test_edit_own_school(self, admin_client, seeded):
        assert admin_client.get('/admin/school').status_code == 200
        admin_client.post('/admin/school', data={
            'name': 'Escola Modelo', 'address': 'Rua A, 10', 'phone': '(11) 3333-4444',
            'email': 'Contato@Modelo.edu', 'description': 'Public school',
            'director': 'Ana Lima', 'responsible': 'Carlos Souza', 'cnpj': '12345678000190'
        })
        school = fresh(School, seeded.school.id)
        assert school.phone == '1133334444'
        assert school.email == 'contato@modelo.edu'
        assert school.responsible == 'Carlos Souza'
        # CNPJ is kept by the platform admin
        assert school.cnpj is None

    def test_school_name_required(self, admin_client, seeded):
        response = admin_client.post('/admin/school', data={'name': ''}, follow_redirects=True)
        assert b'The school name is required.' in response.data
        assert fresh(School, seeded.school.id).name == 'Escola Modelo'

    def test_public_form(self, client, seeded):
        assert client.get(f'/pre-registration/{seeded.fair.id}').status_code == 200
        response = client.post(f'/pre-registration/{seeded.fair.id}', data={
            'name': 'Joana Reis', 'email': 'joana@example.com', 'phone': '11988887777'
        })
        assert response.status_code == 302
        registration = PreRegistration.query.one()
        assert registration.fair_id == seeded.fair.id
        assert registration.status == 'Pending'

    def test_public_form_duplicate_email(self, client, seeded):
        data = {'name': 'Joana Reis', 'email': 'joana@example.com'}
        client.post(f'/pre-registration/{seeded.fair.id}', data=data)
        response = client.post(f'/pre-registration/{seeded.fair.id}', data=data)
        assert b'already sent a pre-registration' in response.data
        assert PreRegistration.query.count() == 1

    def test_public_form_requires_active_fair(self, client, seeded):
        seeded.fair.status = 'archived'
        db.session.commit()
        assert client.get(f'/pre-registration/{seeded.fair.id}').status_code == 404
        assert client.get('/pre-registration/999').status_code == 404

    def test_admin_approves_candidate(self, admin_client, seeded):
        admin_client.post(f'/pre-registration/{seeded.fair.id}', data={'name': 'Joana Reis',
                                                                      'email': 'joana@example.com'})
        registration = PreRegistration.query.one()

        page = admin_client.get('/admin/pre-registrations')
        assert b'Joana Reis' in page.data
        assert f'/pre-registration/{seeded.fair.id}'.encode() in page.data

        response = admin_client.post(f'/admin/pre-registration/{registration.id}/approve', follow_redirects=True)
        assert b'is now an evaluator' in response.data
        evaluator = Evaluator.query.filter_by(email='joana@example.com').one()
        assert evaluator.fair_id == seeded.fair.id
        assert fresh(PreRegistration, registration.id).evaluator_id == evaluator.id

    def test_admin_rejects_candidate(self, admin_client, seeded):
        admin_client.post(f'/pre-registration/{seeded.fair.id}', data={'name': 'Joana Reis',
                                                                      'email': 'joana@example.com'})
        registration = PreRegistration.query.one()
        admin_client.post(f'/admin/pre-registration/{registration.id}/reject')
        assert fresh(PreRegistration, registration.id).status == 'Rejected'
        assert Evaluator.query.count() == 1

    def test_other_school_candidates_are_hidden(self, admin_client, seeded):
        other = School(name='Colegio Norte')
        db.session.add(other)
        db.session.flush()
        other_fair = Fair(school_id=other.id, name='Norte 2026', status='active')
        db.session.add(other_fair)
        db.session.flush()
        registration = PreRegistration(school_id=other.id, fair_id=other_fair.id,
                                       name='Pedro Costa', email='pedro@example.com')
        db.session.add(registration)
        db.session.commit()

        assert admin_client.post(f'/admin/pre-registration/{registration.id}/approve').status_code == 404
        assert b'Pedro Costa' not in admin_client.get('/admin/pre-registrations').data
