# apps/board/views.py

import logging
from datetime import date

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.core.paginator import Paginator
from django.shortcuts import get_object_or_404, redirect, render
from django.utils import timezone
from django.views.decorators.http import require_http_methods, require_POST

from apps.core.permissions import WorkspacePermissions, api_requires_module, requires_module
from apps.core.services import log_module_view
from apps.core.utils import api_error, api_success, parse_json_body, validation_message

from . import services, timeline
from .models import PRIORITY_CHOICES, BacklogItem, Milestone, Task

logger = logging.getLogger(__name__)


def _project_people(project):
    """Users that can be picked as task owners"""
    from apps.core.models import User

    return User.objects.filter(memberships__project=project, is_active=True).order_by('full_name', 'username')


# === KANBAN ===

@login_required
@requires_module('kanban')
def kanban_view(request, project_id):
    """
    Kanban board, one column per task status
    The board reconnects to ws/projects/<id>/board/ for live moves
    """
    project = request.project
    log_module_view(request.user, project, 'kanban')

    tasks = project.tasks.select_related('owner', 'milestone')
    milestone = request.GET.get('milestone')
    if milestone:
        tasks = tasks.filter(milestone_id=milestone)

    context = {
        'title': f'{project.name} - Kanban',
        'project': project,
        'columns': services.board_columns(project, tasks),
        'milestones': project.milestones.all(),
        'can_write': request.can_write,
        'websocket_path': f'/ws/projects/{project.id}/board/',
        'heartbeat_seconds': settings.ORBIT_WS_HEARTBEAT_INTERVAL,
    }
    return render(request, 'board/kanban.html', context)


@api_requires_module('kanban')
@require_POST
def api_move_task(request, project_id, task_id):
    """
    Drag-and-drop endpoint

    Success returns the new and previous status. On failure the payload
    still carries current_status so the client can put the card back.
    """
    task = get_object_or_404(Task, id=task_id, project=request.project)
    data = parse_json_body(request)
    new_status = data.get('status')

    try:
        previous_status = services.move_task_status(task, new_status, request.user, data.get('notes', ''))
    except ValidationError as e:
        logger.warning(f"⚠️ Rejected move of task {task.id} to {new_status!r}")
        return api_error(validation_message(e), 'INVALID_STATUS', status=400, current_status=task.status)

    return api_success(
        {'task_id': task.id, 'status': task.status, 'previous_status': previous_status},
        message=services.move_message(task),
    )


# === TASKS ===

@login_required
@requires_module('tasks_milestones')
def task_list(request, project_id):
    """Task table with filters, search and sorting"""
    project = request.project
    tasks = services.filter_tasks(project.tasks.select_related('owner', 'milestone'), request.GET)
    page = Paginator(tasks, 50).get_page(request.GET.get('page'))

    context = {
        'title': f'{project.name} - Tasks',
        'project': project,
        'page': page,
        'tasks': page.object_list,
        'milestones': project.milestones.all(),
        'people': _project_people(project),
        'statuses': Task.STATUS_CHOICES,
        'priorities': PRIORITY_CHOICES,
        'filters': request.GET,
        'can_write': request.can_write,
    }
    template = 'board/partials/task_rows.html' if request.htmx else 'board/tasks.html'
    return render(request, template, context)


@login_required
@requires_module('tasks_milestones', 'write')
@require_POST
def task_create(request, project_id):
    try:
        task = services.create_task(request.project, request.POST.dict(), request.user)
        messages.success(request, f'Task "{task.title}" created!')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('board:tasks', project_id=project_id)


@login_required
@requires_module('tasks_milestones', 'write')
@require_POST
def task_delete(request, project_id, task_id):
    task = get_object_or_404(Task, id=task_id, project=request.project)
    services.delete_task(task, request.user)
    messages.success(request, 'Task deleted.')
    return redirect('board:tasks', project_id=project_id)


@api_requires_module('tasks_milestones')
@require_http_methods(['GET', 'POST'])
def api_tasks(request, project_id):
    if request.method == 'POST':
        task = services.create_task(request.project, parse_json_body(request), request.user)
        return api_success(services.serialize_task(task), status=201)

    tasks = services.filter_tasks(request.project.tasks.select_related('owner', 'milestone'), request.GET)
    return api_success([services.serialize_task(t) for t in tasks])


@api_requires_module('tasks_milestones')
@require_http_methods(['GET', 'PATCH', 'PUT', 'DELETE'])
def api_task_detail(request, project_id, task_id):
    task = get_object_or_404(Task.objects.select_related('owner', 'milestone'), id=task_id, project=request.project)

    if request.method == 'DELETE':
        services.delete_task(task, request.user)
        return api_success({'id': task_id})

    if request.method in ('PATCH', 'PUT'):
        task = services.update_task(task, parse_json_body(request), request.user)

    return api_success(services.serialize_task(task))


@api_requires_module('tasks_milestones')
def api_task_history(request, project_id, task_id):
    task = get_object_or_404(Task, id=task_id, project=request.project)
    history = task.status_history.select_related('changed_by')
    return api_success([services.serialize_history(h) for h in history])


@api_requires_module('tasks_milestones')
@require_POST
def api_task_move_milestone(request, project_id, task_id):
    task = get_object_or_404(Task, id=task_id, project=request.project)
    milestone = parse_json_body(request).get('milestone')
    task = services.move_task_to_milestone(task, milestone, request.user)
    return api_success(services.serialize_task(task))


# === MILESTONES ===

@login_required
@requires_module('tasks_milestones')
def milestone_list(request, project_id):
    project = request.project
    context = {
        'title': f'{project.name} - Milestones',
        'project': project,
        'roadmap': timeline.build_roadmap(project),
        'statuses': Milestone.STATUS_CHOICES,
        'can_write': request.can_write,
    }
    return render(request, 'board/milestones.html', context)


@login_required
@requires_module('tasks_milestones', 'write')
@require_POST
def milestone_create(request, project_id):
    try:
        milestone = services.create_milestone(request.project, request.POST.dict(), request.user)
        messages.success(request, f'Milestone "{milestone.name}" created!')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('board:milestones', project_id=project_id)


@api_requires_module('tasks_milestones')
@require_http_methods(['GET', 'POST'])
def api_milestones(request, project_id):
    if request.method == 'POST':
        milestone = services.create_milestone(request.project, parse_json_body(request), request.user)
        return api_success(services.serialize_milestone(milestone), status=201)

    return api_success([services.serialize_milestone(m) for m in request.project.milestones.all()])


@api_requires_module('tasks_milestones')
@require_http_methods(['GET', 'PATCH', 'PUT', 'DELETE'])
def api_milestone_detail(request, project_id, milestone_id):
    milestone = get_object_or_404(Milestone, id=milestone_id, project=request.project)

    if request.method == 'DELETE':
        milestone.delete()
        return api_success({'id': milestone_id})

    if request.method in ('PATCH', 'PUT'):
        milestone = services.update_milestone(milestone, parse_json_body(request), request.user)

    return api_success(services.serialize_milestone(milestone))


# === BACKLOG ===

@login_required
@requires_module('task_backlog')
def backlog_view(request, project_id):
    project = request.project
    items = services.filter_backlog(project.backlog_items.select_related('owner'), request.GET)

    context = {
        'title': f'{project.name} - Backlog',
        'project': project,
        'items': items,
        'milestones': project.milestones.all(),
        'stakeholders': project.stakeholders.all(),
        'statuses': BacklogItem.STATUS_CHOICES,
        'priorities': PRIORITY_CHOICES,
        'filters': request.GET,
        'can_write': request.can_write,
    }
    return render(request, 'board/backlog.html', context)


@login_required
@requires_module('task_backlog', 'write')
@require_POST
def backlog_create(request, project_id):
    try:
        item = services.create_backlog_item(request.project, request.POST.dict(), request.user)
        messages.success(request, f'"{item.title}" added to the backlog.')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('board:backlog', project_id=project_id)


@login_required
@requires_module('task_backlog', 'write')
@require_POST
def backlog_promote(request, project_id, item_id):
    """Moves a backlog item into a milestone as a new task"""
    item = get_object_or_404(BacklogItem, id=item_id, project=request.project)
    if not WorkspacePermissions.has_module_permission(request.user, request.project, 'tasks_milestones', 'write'):
        messages.error(request, 'Write access to tasks is required to promote backlog items.')
        return redirect('board:backlog', project_id=project_id)

    try:
        task = services.promote_to_task(item, request.POST.get('milestone'), request.user)
        messages.success(request, f'"{task.title}" moved to milestone {task.milestone.name}.')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('board:backlog', project_id=project_id)


@api_requires_module('task_backlog')
@require_http_methods(['GET', 'POST'])
def api_backlog(request, project_id):
    if request.method == 'POST':
        item = services.create_backlog_item(request.project, parse_json_body(request), request.user)
        return api_success(services.serialize_backlog_item(item), status=201)

    items = services.filter_backlog(request.project.backlog_items.select_related('owner'), request.GET)
    return api_success([services.serialize_backlog_item(i) for i in items])


@api_requires_module('task_backlog')
@require_http_methods(['GET', 'PATCH', 'PUT', 'DELETE'])
def api_backlog_detail(request, project_id, item_id):
    item = get_object_or_404(BacklogItem, id=item_id, project=request.project)

    if request.method == 'DELETE':
        item.delete()
        return api_success({'id': item_id})

    if request.method in ('PATCH', 'PUT'):
        item = services.update_backlog_item(item, parse_json_body(request), request.user)

    return api_success(services.serialize_backlog_item(item))


@api_requires_module('task_backlog', 'write')
@require_POST
def api_backlog_promote(request, project_id, item_id):
    item = get_object_or_404(BacklogItem, id=item_id, project=request.project)
    if not WorkspacePermissions.has_module_permission(request.user, request.project, 'tasks_milestones', 'write'):
        return api_error('Write access to tasks_milestones required', 'FORBIDDEN', status=403)

    data = parse_json_body(request)
    task = services.promote_to_task(item, data.get('milestone') or data.get('milestoneId'), request.user)
    return api_success({'task': services.serialize_task(task), 'backlog_item': services.serialize_backlog_item(item)})


# === TIMELINES ===

def _requested_month(request):
    today = timezone.localdate()
    try:
        year = int(request.GET.get('year', today.year))
        month = int(request.GET.get('month', today.month))
        return date(timeline.clamp_year(year), month, 1)
    except ValueError:
        return today.replace(day=1)


@login_required
@requires_module('roadmap')
def gantt_view(request, project_id):
    project = request.project
    context = {
        'title': f'{project.name} - Gantt',
        'project': project,
        'gantt': timeline.build_gantt(project),
    }
    return render(request, 'board/gantt.html', context)


@login_required
@requires_module('roadmap')
def monthly_view(request, project_id):
    project = request.project
    month = _requested_month(request)
    context = {
        'title': f'{project.name} - {month:%B %Y}',
        'project': project,
        'view': timeline.build_monthly(project, month.year, month.month),
    }
    return render(request, 'board/timeline_monthly.html', context)


@login_required
@requires_module('roadmap')
def yearly_view(request, project_id):
    project = request.project
    try:
        year = int(request.GET.get('year', timezone.localdate().year))
    except ValueError:
        year = timezone.localdate().year
    year = timeline.clamp_year(year)
    context = {
        'title': f'{project.name} - {year}',
        'project': project,
        'view': timeline.build_yearly(project, year),
    }
    return render(request, 'board/timeline_yearly.html', context)


@login_required
@requires_module('roadmap')
def roadmap_view(request, project_id):
    project = request.project
    context = {
        'title': f'{project.name} - Roadmap',
        'project': project,
        'roadmap': timeline.build_roadmap(project),
    }
    return render(request, 'board/roadmap.html', context)


@api_requires_module('roadmap')
def api_gantt(request, project_id):
    """Gantt layout as JSON for client-side rendering"""
    gantt = timeline.build_gantt(request.project)
    return api_success({
        'start': gantt['range'].start,
        'end': gantt['range'].end,
        'total_days': gantt['total_days'],
        'months': gantt['months'],
        'weeks': gantt['weeks'],
        'today': gantt['today'],
        'rows': [{
            'name': row['name'],
            'milestone_id': row['milestone'].id if row['milestone'] else None,
            'marker': row['marker'],
            'bars': [{'task_id': b['task'].id, 'title': b['task'].title, 'status': b['task'].status,
                      'left': b['left'], 'width': b['width']} for b in row['bars']],
        } for row in gantt['rows']],
    })
