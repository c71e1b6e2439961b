# tests/test_projects.py

from io import StringIO

import pytest
from django.core.exceptions import PermissionDenied, ValidationError
from django.core.management import call_command
from django.urls import reverse

from apps.board.models import Task, TaskStatusHistory
from apps.core import services
from apps.core.models import Department, Project, ProjectMember

pytestmark = pytest.mark.django_db


def wizard_payload(**overrides):
    payload = {
        'project': {'name': 'Mercury', 'start_date': '2026-01-05', 'end_date': '2026-06-30', 'priority': 'high'},
        'milestones': [
            {'name': 'Design', 'due_date': '2026-02-01', 'tasks': [{'title': 'Wireframes'}, {'title': 'Review'}]},
            {'name': 'Build', 'due_date': '2026-04-01', 'tasks': [{'title': 'API', 'priority': 'critical'}]},
        ],
        'team': [{'email': 'morgan@orbit.test', 'role': 'developer'}],
    }
    payload.update(overrides)
    return payload


class TestProjects:
    def test_creator_becomes_owner_member(self, project, coordinator):
        assert project.created_by == coordinator
        assert ProjectMember.objects.get(project=project).role == 'owner'

    def test_members_cannot_create_projects(self, member):
        with pytest.raises(PermissionDenied):
            services.create_project(member, {'name': 'Nope'})

    def test_end_before_start(self, coordinator):
        with pytest.raises(ValidationError):
            services.create_project(coordinator, {'name': 'Bad', 'start_date': '2026-02-01',
                                                  'end_date': '2026-01-01'})

    def test_only_admins_delete(self, project, coordinator, workspace_admin):
        with pytest.raises(PermissionDenied):
            services.delete_project(project, coordinator)
        services.delete_project(project, workspace_admin)
        assert not Project.objects.exists()

    def test_partial_update(self, project, coordinator):
        services.update_project(project, coordinator, {'status': 'on_hold'})
        project.refresh_from_db()
        assert project.status == 'on_hold'
        assert project.name == 'Apollo'


class TestWizard:
    def test_creates_everything(self, coordinator, member):
        project = services.create_project_from_wizard(coordinator, wizard_payload())

        assert [m.name for m in project.milestones.order_by('due_date')] == ['Design', 'Build']
        assert project.tasks.count() == 3
        assert project.tasks.get(title='API').milestone.name == 'Build'
        assert project.memberships.get(user=member).role == 'developer'
        assert TaskStatusHistory.objects.filter(task__project=project, old_status=None).count() == 3

    def test_unknown_teammate_rolls_back(self, coordinator):
        with pytest.raises(ValidationError):
            services.create_project_from_wizard(coordinator, wizard_payload(team=[{'email': 'ghost@orbit.test'}]))

        assert not Project.objects.filter(name='Mercury').exists()
        assert not Task.objects.exists()

    def test_invalid_task_rolls_back(self, coordinator, member):
        payload = wizard_payload(milestones=[{'name': 'Design', 'tasks': [{'title': ''}]}])
        with pytest.raises(ValidationError):
            services.create_project_from_wizard(coordinator, payload)
        assert not Project.objects.filter(name='Mercury').exists()

    def test_api(self, api_for, coordinator, member):
        response = api_for(coordinator).post(reverse('core:api_project_wizard'), wizard_payload())
        assert response.status_code == 201
        assert Project.objects.get(id=response.json_body['data']['id']).tasks.count() == 3

    def test_api_rejects_members(self, api_for, member):
        response = api_for(member).post(reverse('core:api_project_wizard'), wizard_payload())
        assert response.status_code == 403


class TestAdministration:
    def test_departments_are_admin_only(self, coordinator, workspace_admin):
        with pytest.raises(PermissionDenied):
            services.create_department('Finance', coordinator)

        services.create_department('Finance', workspace_admin)
        with pytest.raises(ValidationError):
            services.create_department('finance', workspace_admin)

    def test_role_change(self, member, workspace_admin):
        services.set_user_role(member, 'project_coordinator', workspace_admin)
        member.refresh_from_db()
        assert member.can_create_projects()

        with pytest.raises(ValidationError):
            services.set_user_role(member, 'overlord', workspace_admin)

    def test_departments_page(self, client_for, workspace_admin, coordinator):
        Department.objects.create(name='Engineering')
        assert client_for(workspace_admin).get(reverse('core:departments')).status_code == 200
        assert client_for(coordinator).get(reverse('core:departments')).status_code == 302


class TestPages:
    @pytest.mark.parametrize('name', ['dashboard', 'profile', 'project_create', 'project_wizard'])
    def test_plain_pages(self, client_for, coordinator, project, name):
        assert client_for(coordinator).get(reverse(f'core:{name}')).status_code == 200

    @pytest.mark.parametrize('name', ['project_detail', 'project_edit', 'project_history'])
    def test_project_pages(self, client_for, coordinator, project, name):
        assert client_for(coordinator).get(reverse(f'core:{name}', args=[project.id])).status_code == 200

    def test_outsider_is_sent_to_dashboard(self, client_for, outsider, project):
        response = client_for(outsider).get(reverse('core:project_detail', args=[project.id]))
        assert response.url == reverse('core:dashboard')

    def test_create_through_form(self, client_for, coordinator):
        response = client_for(coordinator).post(reverse('core:project_create'), {
            'name': 'Gemini', 'status': 'planning', 'priority': 'medium',
        })
        project = Project.objects.get(name='Gemini')
        assert response.url == reverse('core:project_detail', args=[project.id])


class TestCommands:
    def test_seed_then_integrity(self):
        call_command('seed', stdout=StringIO())
        project = Project.objects.get(name='Orbit Demo')
        assert project.tasks.count() == 4
        assert project.risks.count() == 2

        out = StringIO()
        call_command('check_integrity', stdout=out)
        assert '0 problem(s) found' in out.getvalue()

    def test_seed_is_idempotent(self):
        call_command('seed', stdout=StringIO())
        call_command('seed', stdout=StringIO())
        assert Project.objects.filter(name='Orbit Demo').count() == 1

    def test_integrity_fixes_vote_counts(self, project, coordinator):
        from apps.workspace import services as workspace_services
        from apps.workspace.models import RetrospectiveCard

        retro = workspace_services.create_retrospective(project, {}, coordinator)
        card = workspace_services.add_card(retro.columns.first(), 'Card', coordinator)
        RetrospectiveCard.objects.filter(pk=card.pk).update(votes=7)

        call_command('check_integrity', '--fix', stdout=StringIO())
        card.refresh_from_db()
        assert card.votes == 0
