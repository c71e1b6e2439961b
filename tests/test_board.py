# tests/test_board.py

from datetime import timedelta

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.exceptions import ValidationError
from django.urls import reverse

from apps.board import services
from apps.board.models import BacklogItem, Task
from apps.core.models import AuditLog

pytestmark = pytest.mark.django_db


@pytest.fixture
def milestone(project, coordinator, today):
    return services.create_milestone(project, {'name': 'Alpha', 'due_date': today + timedelta(days=14)}, coordinator)


@pytest.fixture
def task(project, coordinator, milestone):
    return services.create_task(project, {'title': 'Write docs', 'milestone': milestone.id}, coordinator)


class TestMoveTask:
    def test_move_records_history(self, task, coordinator):
        previous = services.move_task_status(task, 'in_progress', coordinator, 'started')

        assert previous == 'todo'
        task.refresh_from_db()
        assert task.status == 'in_progress'

        history = list(task.status_history.order_by('changed_at', 'id'))
        assert [(h.old_status, h.new_status) for h in history] == [(None, 'todo'), ('todo', 'in_progress')]
        assert history[-1].changed_by == coordinator
        assert history[-1].notes == 'started'

    def test_move_to_same_column_is_noop(self, task, coordinator):
        services.move_task_status(task, 'todo', coordinator)
        assert task.status_history.count() == 1

    def test_unknown_column_is_rejected(self, task, coordinator):
        with pytest.raises(ValidationError):
            services.move_task_status(task, 'archived', coordinator)
        task.refresh_from_db()
        assert task.status == 'todo'
        assert task.status_history.count() == 1

    def test_completed_sets_completed_at(self, task, coordinator):
        services.move_task_status(task, 'completed', coordinator)
        assert task.completed_at is not None

        services.move_task_status(task, 'blocked', coordinator)
        assert task.completed_at is None

    def test_move_is_audited(self, task, coordinator):
        services.move_task_status(task, 'blocked', coordinator)
        log = AuditLog.objects.filter(entity_type='task', entity_id=str(task.id), action='status_changed').get()
        assert log.old_values == {'status': 'todo'}
        assert log.new_values == {'status': 'blocked'}
        assert log.user == coordinator

    def test_move_is_broadcast(self, project, task, coordinator):
        layer = get_channel_layer()
        channel = async_to_sync(layer.new_channel)()
        async_to_sync(layer.group_add)(services.board_group(project.id), channel)

        services.move_task_status(task, 'in_progress', coordinator)

        event = async_to_sync(layer.receive)(channel)
        assert event['type'] == 'task_moved'
        assert event['message']['task_id'] == task.id
        assert event['message']['previous_status'] == 'todo'
        assert event['message']['status'] == 'in_progress'


class TestMoveApi:
    def url(self, project, task):
        return reverse('board:api_move_task', args=[project.id, task.id])

    def test_owner_moves_task(self, api_for, coordinator, project, task):
        response = api_for(coordinator).post(self.url(project, task), {'status': 'completed'})

        assert response.status_code == 200
        assert response.json_body['success'] is True
        assert response.json_body['data'] == {'task_id': task.id, 'status': 'completed', 'previous_status': 'todo'}
        assert 'Completed' in response.json_body['message']

    def test_invalid_status_returns_current_status(self, api_for, coordinator, project, task):
        response = api_for(coordinator).post(self.url(project, task), {'status': 'nowhere'})

        assert response.status_code == 400
        assert response.json_body['success'] is False
        assert response.json_body['current_status'] == 'todo'

    def test_read_only_member_cannot_move(self, api_for, member, grant, project, task):
        grant(member, 'kanban', 'read')
        response = api_for(member).post(self.url(project, task), {'status': 'completed'})

        assert response.status_code == 403
        task.refresh_from_db()
        assert task.status == 'todo'

    def test_writer_can_move(self, api_for, member, grant, project, task):
        grant(member, 'kanban', 'write')
        response = api_for(member).post(self.url(project, task), {'status': 'blocked'})
        assert response.status_code == 200

    def test_task_of_other_project_is_not_found(self, api_for, coordinator, project, task):
        from apps.core import services as core_services

        other = core_services.create_project(coordinator, {'name': 'Other'})
        response = api_for(coordinator).post(self.url(other, task), {'status': 'blocked'})
        assert response.status_code == 404


class TestTasks:
    def test_title_is_required(self, project, coordinator):
        with pytest.raises(ValidationError):
            services.create_task(project, {'title': '  '}, coordinator)

    def test_milestone_from_other_project_is_rejected(self, coordinator, project, milestone):
        from apps.core import services as core_services

        other = core_services.create_project(coordinator, {'name': 'Other'})
        with pytest.raises(ValidationError):
            services.create_task(other, {'title': 'x', 'milestone': milestone.id}, coordinator)

    def test_filters_and_priority_sort(self, project, coordinator, milestone):
        services.create_task(project, {'title': 'Low one', 'priority': 'low'}, coordinator)
        services.create_task(project, {'title': 'Critical one', 'priority': 'critical',
                                       'milestone': milestone.id}, coordinator)
        services.create_task(project, {'title': 'High one', 'priority': 'high', 'status': 'blocked'}, coordinator)

        qs = project.tasks.all()
        ordered = services.filter_tasks(qs, {'sort': 'priority'})
        assert [t.title for t in ordered] == ['Critical one', 'High one', 'Low one']
        assert [t.title for t in services.filter_tasks(qs, {'status': 'blocked'})] == ['High one']
        unassigned = services.filter_tasks(qs, {'milestone': 'none', 'q': 'one', 'sort': 'title'})
        assert [t.title for t in unassigned] == ['High one', 'Low one']

    def test_overdue(self, project, coordinator, today):
        late = services.create_task(project, {'title': 'Late', 'due_date': today - timedelta(days=1)}, coordinator)
        assert late.is_overdue(today)
        services.move_task_status(late, 'completed', coordinator)
        assert not late.is_overdue(today)

    def test_api_crud(self, api_for, coordinator, project, milestone):
        api = api_for(coordinator)
        created = api.post(reverse('board:api_tasks', args=[project.id]),
                           {'title': 'From API', 'priority': 'high', 'milestone': milestone.id})
        assert created.status_code == 201
        task_id = created.json_body['data']['id']

        updated = api.patch(reverse('board:api_task_detail', args=[project.id, task_id]), {'status': 'in_progress'})
        assert updated.json_body['data']['status'] == 'in_progress'

        history = api.get(reverse('board:api_task_history', args=[project.id, task_id]))
        assert [h['new_status'] for h in history.json_body['data']] == ['in_progress', 'todo']

        deleted = api.delete(reverse('board:api_task_detail', args=[project.id, task_id]))
        assert deleted.status_code == 200
        assert not Task.objects.filter(id=task_id).exists()


class TestBacklog:
    def test_promote_creates_todo_task(self, project, coordinator, milestone):
        item = services.create_backlog_item(project, {'title': 'Dark mode', 'priority': 'low'}, coordinator)

        task = services.promote_to_task(item, milestone.id, coordinator)

        item.refresh_from_db()
        assert task.status == 'todo'
        assert task.milestone == milestone
        assert task.priority == 'low'
        assert item.status == 'done'
        assert item.promoted_task == task

    def test_promote_requires_milestone(self, project, coordinator):
        item = services.create_backlog_item(project, {'title': 'Dark mode'}, coordinator)
        with pytest.raises(ValidationError):
            services.promote_to_task(item, None, coordinator)
        assert project.tasks.count() == 0

    def test_promote_twice_is_rejected(self, project, coordinator, milestone):
        item = services.create_backlog_item(project, {'title': 'Dark mode'}, coordinator)
        services.promote_to_task(item, milestone.id, coordinator)
        with pytest.raises(ValidationError):
            services.promote_to_task(item, milestone.id, coordinator)
        assert project.tasks.count() == 1

    def test_promote_needs_tasks_write(self, api_for, member, grant, project, coordinator, milestone):
        item = services.create_backlog_item(project, {'title': 'Dark mode'}, coordinator)
        grant(member, 'task_backlog', 'write')
        url = reverse('board:api_backlog_promote', args=[project.id, item.id])

        denied = api_for(member).post(url, {'milestone': milestone.id})
        assert denied.status_code == 403
        assert BacklogItem.objects.get(id=item.id).status == 'new'

        grant(member, 'tasks_milestones', 'write')
        allowed = api_for(member).post(url, {'milestone': milestone.id})
        assert allowed.status_code == 200
        assert allowed.json_body['data']['backlog_item']['status'] == 'done'


class TestPages:
    @pytest.mark.parametrize('name', ['kanban', 'tasks', 'milestones', 'backlog', 'gantt', 'monthly', 'yearly', 'roadmap'])
    def test_owner_pages_render(self, client_for, coordinator, project, task, name):
        response = client_for(coordinator).get(reverse(f'board:{name}', args=[project.id]))
        assert response.status_code == 200

    def test_kanban_carries_board_wiring(self, client_for, coordinator, project, task):
        response = client_for(coordinator).get(reverse('board:kanban', args=[project.id]))
        content = response.content.decode()
        assert 'data-kanban-board' in content
        assert f'data-task="{task.id}"' in content
        assert f'/ws/projects/{project.id}/board/' in content

    def test_kanban_without_permission_redirects(self, client_for, member, project):
        response = client_for(member).get(reverse('board:kanban', args=[project.id]))
        assert response.status_code == 302
        assert response.url == reverse('core:dashboard')

    def test_task_rows_partial_for_htmx(self, client_for, coordinator, project, task):
        response = client_for(coordinator).get(reverse('board:tasks', args=[project.id]), HTTP_HX_REQUEST='true')
        content = response.content.decode()
        assert '<html' not in content
        assert 'Write docs' in content


class TestBadInput:
    def test_impossible_due_date_is_a_validation_error(self, api_for, coordinator, project):
        response = api_for(coordinator).post(reverse('board:api_tasks', args=[project.id]),
                                             {'title': 'x', 'due_date': '2025-02-30'})
        assert response.status_code == 400
        assert response.json_body['code'] == 'VALIDATION_ERROR'
        assert not project.tasks.exists()

    def test_impossible_due_date_in_form_redirects(self, client_for, coordinator, project):
        response = client_for(coordinator).post(reverse('board:task_create', args=[project.id]),
                                                {'title': 'x', 'due_date': '2025-02-30'})
        assert response.status_code == 302
        assert response.url == reverse('board:tasks', args=[project.id])
        assert not project.tasks.exists()

    @pytest.mark.parametrize('name, payload', [
        ('api_milestones', {'name': 'Beta', 'due_date': '2025-04-31'}),
        ('api_backlog', {'title': 'Idea', 'target_date': '2025-02-30'}),
        ('api_backlog', {'title': 'Idea', 'owner': 'abc'}),
        ('api_tasks', {'title': 'x', 'milestone': 'abc'}),
        ('api_tasks', {'title': 'x', 'owner': 'abc'}),
    ])
    def test_bad_values_are_rejected(self, api_for, coordinator, project, name, payload):
        response = api_for(coordinator).post(reverse(f'board:{name}', args=[project.id]), payload)
        assert response.status_code == 400
        assert response.json_body['code'] == 'VALIDATION_ERROR'

    def test_non_numeric_filters_are_ignored(self, client_for, coordinator, project, task):
        response = client_for(coordinator).get(reverse('board:tasks', args=[project.id]),
                                               {'milestone': 'abc', 'owner': 'x'})
        assert response.status_code == 200
        assert 'Write docs' in response.content.decode()

    @pytest.mark.parametrize('name, params', [
        ('monthly', {'year': '9999', 'month': '12'}),
        ('monthly', {'year': '1', 'month': '1'}),
        ('yearly', {'year': '0'}),
        ('yearly', {'year': '10000'}),
    ])
    def test_out_of_range_years_are_clamped(self, client_for, coordinator, project, name, params):
        response = client_for(coordinator).get(reverse(f'board:{name}', args=[project.id]), params)
        assert response.status_code == 200


class TestAudit:
    def test_edit_without_status_change_is_updated(self, task, coordinator):
        services.update_task(task, {'title': 'Write better docs'}, coordinator)
        log = AuditLog.objects.filter(entity_type='task', entity_id=str(task.id)).latest('id')
        assert log.action == 'updated'
        assert log.new_values == {'title': 'Write better docs'}
