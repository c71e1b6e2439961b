# apps/board/services.py

import logging
from typing import Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Case, IntegerField, Q, Value, When
from django.utils import timezone

from apps.core.models import Stakeholder, User
from apps.core.utils import format_status, require_choice, to_date, to_int

from .models import PRIORITY_CHOICES, PRIORITY_RANK, BacklogItem, Milestone, Task, TaskStatusHistory

logger = logging.getLogger(__name__)


# === REAL-TIME ===

def board_group(project_id) -> str:
    return f'project_{project_id}'


def notify_board(project_id, event_type: str, message: Dict) -> None:
    """Pushes an event to every WebSocket client watching the project"""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    message.setdefault('timestamp', timezone.now().isoformat())
    async_to_sync(channel_layer.group_send)(
        board_group(project_id),
        {'type': event_type, 'message': message}
    )


# === SERIALIZATION ===

def _user_ref(user):
    if user is None:
        return None
    return {'id': user.id, 'name': user.display_name, 'email': user.email}


def serialize_task(task: Task) -> Dict:
    return {
        'id': task.id,
        'project_id': task.project_id,
        'milestone_id': task.milestone_id,
        'milestone': task.milestone.name if task.milestone_id else None,
        'title': task.title,
        'description': task.description,
        'status': task.status,
        'priority': task.priority,
        'due_date': task.due_date,
        'owner': _user_ref(task.owner),
        'department_id': task.department_id,
        'is_overdue': task.is_overdue(),
        'completed_at': task.completed_at,
        'created_at': task.created_at,
        'updated_at': task.updated_at,
    }


def serialize_milestone(milestone: Milestone) -> Dict:
    return {
        'id': milestone.id,
        'project_id': milestone.project_id,
        'name': milestone.name,
        'description': milestone.description,
        'due_date': milestone.due_date,
        'status': milestone.status,
        'progress': milestone.progress(),
        'task_count': milestone.tasks.count(),
    }


def serialize_history(entry: TaskStatusHistory) -> Dict:
    return {
        'id': entry.id,
        'task_id': entry.task_id,
        'old_status': entry.old_status,
        'new_status': entry.new_status,
        'changed_by': _user_ref(entry.changed_by),
        'changed_at': entry.changed_at,
        'notes': entry.notes,
    }


def serialize_backlog_item(item: BacklogItem) -> Dict:
    return {
        'id': item.id,
        'project_id': item.project_id,
        'title': item.title,
        'description': item.description,
        'priority': item.priority,
        'status': item.status,
        'owner': {'id': item.owner.id, 'name': item.owner.name} if item.owner_id else None,
        'target_date': item.target_date,
        'source_type': item.source_type,
        'source_id': item.source_id,
        'promoted_task_id': item.promoted_task_id,
        'created_at': item.created_at,
    }


# === FIELD RESOLUTION ===

def _resolve_milestone(project, value) -> Optional[Milestone]:
    if value in (None, ''):
        return None
    if isinstance(value, Milestone):
        milestone = value
    else:
        milestone = Milestone.objects.filter(pk=to_int(value, 'milestone')).first()
    if milestone is None or milestone.project_id != project.id:
        raise ValidationError({'milestone': ['Milestone does not belong to this project']})
    return milestone


def _resolve_user(value, field='owner') -> Optional[User]:
    if value in (None, ''):
        return None
    user = User.objects.filter(pk=to_int(value, field)).first()
    if user is None:
        raise ValidationError({field: [f'Unknown user {value}']})
    return user


def _resolve_stakeholder(project, value) -> Optional[Stakeholder]:
    if value in (None, ''):
        return None
    stakeholder = Stakeholder.objects.filter(pk=to_int(value, 'owner'), project=project).first()
    if stakeholder is None:
        raise ValidationError({'owner': ['Stakeholder does not belong to this project']})
    return stakeholder


# === TASKS ===

def _clean_task_fields(project, data: Dict) -> Dict:
    cleaned = {}
    if 'title' in data:
        title = (data.get('title') or '').strip()
        if not title:
            raise ValidationError({'title': ['Title is required']})
        cleaned['title'] = title
    if 'description' in data:
        cleaned['description'] = data.get('description') or ''
    if 'status' in data:
        cleaned['status'] = require_choice(data['status'], Task.STATUS_CHOICES, 'status')
    if 'priority' in data:
        cleaned['priority'] = require_choice(data['priority'], PRIORITY_CHOICES, 'priority')
    if 'due_date' in data:
        cleaned['due_date'] = to_date(data.get('due_date'), 'due_date')
    if 'milestone' in data:
        cleaned['milestone'] = _resolve_milestone(project, data.get('milestone'))
    if 'owner' in data:
        cleaned['owner'] = _resolve_user(data.get('owner'))
    return cleaned


def create_task(project, data: Dict, user) -> Task:
    """Creates a task; the creator's department is used when none is given"""
    if not (data.get('title') or '').strip():
        raise ValidationError({'title': ['Title is required']})

    cleaned = _clean_task_fields(project, data)
    task = Task(project=project, created_by=user, department=getattr(user, 'department', None), **cleaned)
    task._changed_by = user
    task.save()

    notify_board(project.id, 'task_created', {
        'task_id': task.id,
        'title': task.title,
        'status': task.status,
        'user': user.display_name,
    })
    return task


def update_task(task: Task, data: Dict, user) -> Task:
    """Partial update: only keys present in data are touched"""
    cleaned = _clean_task_fields(task.project, data)
    previous_status = task.status

    for field, value in cleaned.items():
        setattr(task, field, value)
    task._changed_by = user
    task._status_notes = data.get('notes', '')
    task.save()

    if task.status != previous_status:
        notify_board(task.project_id, 'task_moved', {
            'task_id': task.id,
            'title': task.title,
            'previous_status': previous_status,
            'status': task.status,
            'user': user.display_name,
        })
    return task


def delete_task(task: Task, user) -> None:
    project_id, task_id = task.project_id, task.id
    task._changed_by = user
    task.delete()
    notify_board(project_id, 'task_deleted', {'task_id': task_id, 'user': user.display_name})


def move_task_status(task: Task, new_status: str, user, notes: str = '') -> str:
    """
    Moves a task to another Kanban column

    The target must be one of the columns; anything else raises
    ValidationError and leaves the task untouched. Moving to the current
    column is a no-op. Returns the status the task had before.
    """
    if new_status not in Task.column_statuses():
        raise ValidationError({'status': [f'"{new_status}" is not a board column']})

    previous_status = task.status
    if previous_status == new_status:
        return previous_status

    task.status = new_status
    task._changed_by = user
    task._status_notes = notes
    task.save()

    logger.info(f"📋 Task {task.id} moved {previous_status} -> {new_status} by {user.username}")

    notify_board(task.project_id, 'task_moved', {
        'task_id': task.id,
        'title': task.title,
        'previous_status': previous_status,
        'status': new_status,
        'user': user.display_name,
    })
    return previous_status


def move_message(task: Task) -> str:
    """Confirmation shown after a successful move"""
    return f'"{task.title}" moved to {format_status(task.status)}'


def move_task_to_milestone(task: Task, milestone: Optional[Milestone], user) -> Task:
    task.milestone = _resolve_milestone(task.project, milestone)
    task._changed_by = user
    task.save(update_fields=['milestone', 'updated_at'])
    return task


def board_columns(project, tasks=None):
    """Tasks grouped by column, in column order"""
    if tasks is None:
        tasks = project.tasks.select_related('owner', 'milestone')
    columns = [{'status': code, 'label': label, 'tasks': []} for code, label in Task.STATUS_CHOICES]
    by_status = {column['status']: column for column in columns}
    for task in tasks:
        by_status[task.status]['tasks'].append(task)
    return columns


TASK_SORTS = {
    'due_date': ['due_date', 'id'],
    '-due_date': ['-due_date', '-id'],
    'title': ['title'],
    '-title': ['-title'],
    'status': ['status', 'id'],
    '-status': ['-status', '-id'],
    'created': ['created_at'],
    '-created': ['-created_at'],
    'priority': ['priority_rank', 'id'],
    '-priority': ['-priority_rank', '-id'],
}


def filter_tasks(queryset, params):
    """
    Applies the task table filters

    Supported params: status, priority, milestone ('none' for unassigned),
    owner ('me' is not resolved here), q (title/description search), sort.
    """
    status = params.get('status')
    if status:
        queryset = queryset.filter(status=status)

    priority = params.get('priority')
    if priority:
        queryset = queryset.filter(priority=priority)

    milestone = params.get('milestone')
    if milestone == 'none':
        queryset = queryset.filter(milestone__isnull=True)
    elif milestone and str(milestone).isdigit():
        queryset = queryset.filter(milestone_id=milestone)

    owner = params.get('owner')
    if owner and str(owner).isdigit():
        queryset = queryset.filter(owner_id=owner)

    term = (params.get('q') or '').strip()
    if term:
        queryset = queryset.filter(Q(title__icontains=term) | Q(description__icontains=term))

    sort = params.get('sort') or 'due_date'
    if sort.lstrip('-') == 'priority':
        queryset = queryset.annotate(priority_rank=Case(
            *[When(priority=code, then=Value(rank)) for code, rank in PRIORITY_RANK.items()],
            default=Value(99),
            output_field=IntegerField(),
        ))
    return queryset.order_by(*TASK_SORTS.get(sort, TASK_SORTS['due_date']))


# === MILESTONES ===

def _clean_milestone_fields(data: Dict) -> Dict:
    cleaned = {}
    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError({'name': ['Milestone name is required']})
        cleaned['name'] = name
    if 'description' in data:
        cleaned['description'] = data.get('description') or ''
    if 'due_date' in data:
        cleaned['due_date'] = to_date(data.get('due_date'), 'due_date')
    if 'status' in data:
        cleaned['status'] = require_choice(data['status'], Milestone.STATUS_CHOICES, 'status')
    return cleaned


def create_milestone(project, data: Dict, user) -> Milestone:
    if not (data.get('name') or '').strip():
        raise ValidationError({'name': ['Milestone name is required']})
    cleaned = _clean_milestone_fields(data)
    return Milestone.objects.create(
        project=project,
        created_by=user,
        department=getattr(user, 'department', None),
        **cleaned
    )


def update_milestone(milestone: Milestone, data: Dict, user) -> Milestone:
    for field, value in _clean_milestone_fields(data).items():
        setattr(milestone, field, value)
    milestone.save()
    return milestone


# === BACKLOG ===

def _clean_backlog_fields(project, data: Dict) -> Dict:
    cleaned = {}
    if 'title' in data:
        title = (data.get('title') or '').strip()
        if not title:
            raise ValidationError({'title': ['Title is required']})
        cleaned['title'] = title
    if 'description' in data:
        cleaned['description'] = data.get('description') or ''
    if 'priority' in data:
        cleaned['priority'] = require_choice(data['priority'], PRIORITY_CHOICES, 'priority')
    if 'status' in data:
        cleaned['status'] = require_choice(data['status'], BacklogItem.STATUS_CHOICES, 'status')
    if 'target_date' in data:
        cleaned['target_date'] = to_date(data.get('target_date'), 'target_date')
    if 'owner' in data:
        cleaned['owner'] = _resolve_stakeholder(project, data.get('owner'))
    if 'source_type' in data:
        cleaned['source_type'] = require_choice(data['source_type'], BacklogItem.SOURCE_CHOICES, 'source_type')
    if 'source_id' in data:
        cleaned['source_id'] = str(data.get('source_id') or '')
    return cleaned


def create_backlog_item(project, data: Dict, user) -> BacklogItem:
    if not (data.get('title') or '').strip():
        raise ValidationError({'title': ['Title is required']})
    return BacklogItem.objects.create(project=project, created_by=user, **_clean_backlog_fields(project, data))


def update_backlog_item(item: BacklogItem, data: Dict, user) -> BacklogItem:
    for field, value in _clean_backlog_fields(item.project, data).items():
        setattr(item, field, value)
    item.save()
    return item


def filter_backlog(queryset, params):
    status = params.get('status')
    if status and status != 'all':
        queryset = queryset.filter(status=status)
    term = (params.get('q') or '').strip()
    if term:
        queryset = queryset.filter(Q(title__icontains=term) | Q(description__icontains=term))
    return queryset


@transaction.atomic
def promote_to_task(item: BacklogItem, milestone, user) -> Task:
    """
    Turns a backlog item into a 'todo' task under a milestone

    Both writes happen in one transaction: the task is created and the
    backlog item is marked done, or neither.
    """
    if milestone in (None, ''):
        raise ValidationError({'milestone': ['A milestone is required']})
    if item.status == 'done':
        raise ValidationError('Backlog item is already done')

    milestone = _resolve_milestone(item.project, milestone)
    task = create_task(item.project, {
        'title': item.title,
        'description': item.description,
        'priority': item.priority,
        'due_date': item.target_date,
        'milestone': milestone.id,
        'status': Task.STATUS_TODO,
    }, user)

    item.status = 'done'
    item.promoted_task = task
    item.save(update_fields=['status', 'promoted_task', 'updated_at'])

    logger.info(f"📤 Backlog item {item.id} promoted to task {task.id}")
    return task
