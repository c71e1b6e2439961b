# apps/core/services.py

import logging
from typing import Dict, List, Optional

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.forms.models import model_to_dict

from .models import (
    AuditLog,
    Department,
    ModuleAccessAudit,
    ModulePermission,
    Project,
    ProjectMember,
    User,
)
from .permissions import WorkspacePermissions
from .utils import require_choice, to_date

logger = logging.getLogger(__name__)


# === AUDIT LOG ===

def _json_safe(value):
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if hasattr(value, 'pk'):
        return value.pk
    return str(value)


def snapshot(instance, fields: Optional[List[str]] = None) -> Dict:
    """JSON-safe dict of a model instance for the audit trail"""
    return _json_safe(model_to_dict(instance, fields=fields))


def record_audit(project, module: str, entity, action: str, user=None,
                 description: str = '', old_values=None, new_values=None) -> AuditLog:
    """Appends one entry to the project's history"""
    return AuditLog.objects.create(
        project=project,
        user=user,
        module=module,
        entity_type=entity._meta.model_name,
        entity_id=str(entity.pk),
        action=action,
        description=description,
        old_values=old_values,
        new_values=new_values,
    )


def changed_values(old: Dict, new: Dict):
    """(old, new) dicts restricted to the keys whose values differ"""
    keys = [k for k in new if old.get(k) != new.get(k)]
    return {k: old.get(k) for k in keys}, {k: new.get(k) for k in keys}


def project_history(project, module: Optional[str] = None, limit: int = 200):
    logs = project.audit_logs.select_related('user')
    if module:
        logs = logs.filter(module=module)
    return logs[:limit]


# === MODULE ACCESS ===

def _validate_access(module: str, access_level: str):
    require_choice(module, ModulePermission.MODULE_CHOICES, 'module')
    require_choice(access_level, ModulePermission.ACCESS_CHOICES, 'access_level')


def grant_access(project: Project, email: str, module: str, access_level: str, granted_by) -> ModulePermission:
    """
    Grants (or changes) a user's access to one module

    The user is looked up by email, case-insensitively. Granting twice
    updates the existing row.
    """
    if not WorkspacePermissions.can_manage_access(granted_by, project):
        raise PermissionDenied('Only the project owner or an admin can manage access')

    _validate_access(module, access_level)
    email = (email or '').strip().lower()
    if not email:
        raise ValidationError({'email': ['Email is required']})

    user = User.objects.filter(email__iexact=email).first()
    if user is None:
        raise ValidationError({'email': [f'No user with email {email}']})

    permission, created = ModulePermission.objects.update_or_create(
        project=project,
        user=user,
        module=module,
        defaults={'access_level': access_level, 'granted_by': granted_by},
    )

    ModuleAccessAudit.objects.create(
        project=project,
        user=user,
        module=module,
        access_type='granted' if created else 'updated',
        access_level=access_level,
        granted_by=granted_by,
        metadata={'email': email},
    )

    logger.info(f"🔑 {module}:{access_level} granted to {email} on project {project.id}")
    return permission


def update_access(permission: ModulePermission, access_level: str, updated_by) -> ModulePermission:
    if not WorkspacePermissions.can_manage_access(updated_by, permission.project):
        raise PermissionDenied('Only the project owner or an admin can manage access')

    _validate_access(permission.module, access_level)
    previous = permission.access_level
    permission.access_level = access_level
    permission.granted_by = updated_by
    permission.save(update_fields=['access_level', 'granted_by', 'updated_at'])

    ModuleAccessAudit.objects.create(
        project=permission.project,
        user=permission.user,
        module=permission.module,
        access_type='updated',
        access_level=access_level,
        granted_by=updated_by,
        metadata={'previous_level': previous},
    )
    return permission


def revoke_access(permission: ModulePermission, revoked_by) -> None:
    if not WorkspacePermissions.can_manage_access(revoked_by, permission.project):
        raise PermissionDenied('Only the project owner or an admin can manage access')

    ModuleAccessAudit.objects.create(
        project=permission.project,
        user=permission.user,
        module=permission.module,
        access_type='revoked',
        access_level=permission.access_level,
        granted_by=revoked_by,
    )
    logger.info(f"🚫 {permission.module} revoked from {permission.user.email} on project {permission.project_id}")
    permission.delete()


def log_module_view(user, project, module: str) -> None:
    """Records that a non-owner opened a module"""
    if WorkspacePermissions.has_full_access(user, project):
        return
    ModuleAccessAudit.objects.create(
        project=project,
        user=user,
        module=module,
        access_type='viewed',
    )


# === PROJECTS ===

PROJECT_FIELDS = ['name', 'description', 'start_date', 'end_date', 'status', 'priority']


def clean_project_data(data: Dict, partial: bool = False) -> Dict:
    cleaned = {}
    if 'name' in data or not partial:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError({'name': ['Project name is required']})
        cleaned['name'] = name
    if 'description' in data:
        cleaned['description'] = data.get('description') or ''
    for field in ('start_date', 'end_date'):
        if field in data:
            cleaned[field] = to_date(data.get(field), field)
    if 'status' in data:
        cleaned['status'] = require_choice(data['status'], Project.STATUS_CHOICES, 'status')
    if 'priority' in data:
        cleaned['priority'] = require_choice(data['priority'], Project.PRIORITY_CHOICES, 'priority')

    start, end = cleaned.get('start_date'), cleaned.get('end_date')
    if start and end and end < start:
        raise ValidationError({'end_date': ['End date cannot be before start date']})
    return cleaned


def create_project(user, data: Dict) -> Project:
    if not WorkspacePermissions.can_create_project(user):
        raise PermissionDenied('You cannot create projects')

    cleaned = clean_project_data(data)
    project = Project.objects.create(
        created_by=user,
        department=user.department,
        **cleaned
    )
    ProjectMember.objects.create(project=project, user=user, role='owner')
    logger.info(f"📁 Project created: {project.name} by {user.username}")
    return project


def update_project(project: Project, user, data: Dict) -> Project:
    if not WorkspacePermissions.can_edit_project(user, project):
        raise PermissionDenied('Only the project owner or an admin can edit the project')

    cleaned = clean_project_data(data, partial=True)
    for field, value in cleaned.items():
        setattr(project, field, value)
    if project.start_date and project.end_date and project.end_date < project.start_date:
        raise ValidationError({'end_date': ['End date cannot be before start date']})
    project.save()
    return project


def delete_project(project: Project, user) -> None:
    if not WorkspacePermissions.can_delete_project(user, project):
        raise PermissionDenied('Only admins can delete projects')
    logger.warning(f"🗑️ Project deleted: {project.name} by {user.username}")
    project.delete()


def add_member(project: Project, user: User, role: str = 'member') -> ProjectMember:
    member, _ = ProjectMember.objects.get_or_create(project=project, user=user, defaults={'role': role})
    return member


@transaction.atomic
def create_project_from_wizard(user, payload: Dict) -> Project:
    """
    Creates a project with its milestones, tasks and team in one go

    payload = {
        'project': {...},
        'milestones': [{'name', 'description', 'due_date', 'tasks': [{...}]}],
        'team': [{'email', 'role'}],
    }
    Any invalid part rolls the whole creation back.
    """
    from apps.board.services import create_milestone, create_task

    project = create_project(user, payload.get('project') or {})

    for milestone_data in payload.get('milestones') or []:
        tasks = milestone_data.get('tasks') or []
        milestone = create_milestone(project, milestone_data, user)
        for task_data in tasks:
            create_task(project, dict(task_data, milestone=milestone.id), user)

    for member in payload.get('team') or []:
        email = (member.get('email') or '').strip().lower()
        teammate = User.objects.filter(email__iexact=email).first()
        if teammate is None:
            raise ValidationError({'team': [f'No user with email {email}']})
        add_member(project, teammate, member.get('role') or 'member')

    logger.info(f"🧙 Wizard created project {project.id} with "
                f"{project.milestones.count()} milestones and {project.tasks.count()} tasks")
    return project


# === DEPARTMENTS ===

def create_department(name: str, user) -> Department:
    if not WorkspacePermissions.is_admin(user):
        raise PermissionDenied('Only admins manage departments')
    name = (name or '').strip()
    if not name:
        raise ValidationError({'name': ['Department name is required']})
    if Department.objects.filter(name__iexact=name).exists():
        raise ValidationError({'name': [f'Department {name} already exists']})
    return Department.objects.create(name=name)


def assign_department(target: User, department: Optional[Department], user) -> User:
    if not WorkspacePermissions.is_admin(user):
        raise PermissionDenied('Only admins assign departments')
    target.department = department
    target.save(update_fields=['department', 'updated_at'])
    return target


def set_user_role(target: User, role: str, user) -> User:
    if not WorkspacePermissions.is_admin(user):
        raise PermissionDenied('Only admins change roles')
    target.role = require_choice(role, User.ROLE_CHOICES, 'role')
    target.save(update_fields=['role', 'updated_at'])
    return target
