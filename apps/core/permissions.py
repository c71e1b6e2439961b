# apps/core/permissions.py

from functools import wraps

from django.contrib import messages
from django.core.exceptions import PermissionDenied
from django.shortcuts import redirect

from .utils import api_error


class WorkspacePermissions:
    """
    Access rules of the workspace

    Project owners and admins hold write access to every module. Everyone
    else needs an explicit ModulePermission row; 'write' satisfies any
    requirement, 'read' only satisfies a read requirement.
    """

    @staticmethod
    def is_admin(user):
        return user.is_authenticated and user.is_workspace_admin

    @staticmethod
    def can_create_project(user):
        return user.is_authenticated and user.can_create_projects()

    @staticmethod
    def is_project_owner(user, project):
        return project.is_owner(user)

    @staticmethod
    def has_full_access(user, project):
        """Owner or admin"""
        if not user.is_authenticated:
            return False
        return user.is_workspace_admin or project.is_owner(user)

    @staticmethod
    def has_project_access(user, project):
        """Owner, admin, member, or holder of any module permission"""
        if not user.is_authenticated:
            return False

        if WorkspacePermissions.has_full_access(user, project):
            return True

        if project.memberships.filter(user=user).exists():
            return True

        return project.module_permissions.filter(user=user).exists()

    @staticmethod
    def has_module_permission(user, project, module, required='read'):
        """Checks one module against the required level ('read' or 'write')"""
        if not user.is_authenticated:
            return False

        if WorkspacePermissions.has_full_access(user, project):
            return True

        permission = project.module_permissions.filter(user=user, module=module).first()
        return permission is not None and permission.allows(required)

    @staticmethod
    def module_permissions_for(user, project):
        """
        Access level per module for this user

        Returns {module: 'read' | 'write' | None} covering every module.
        """
        from .models import ModulePermission

        modules = ModulePermission.module_names()
        if WorkspacePermissions.has_full_access(user, project):
            return {module: ModulePermission.ACCESS_WRITE for module in modules}

        levels = {module: None for module in modules}
        if user.is_authenticated:
            for row in project.module_permissions.filter(user=user):
                levels[row.module] = row.access_level
        return levels

    @staticmethod
    def can_edit_project(user, project):
        return WorkspacePermissions.has_full_access(user, project)

    @staticmethod
    def can_delete_project(user, project):
        return WorkspacePermissions.is_admin(user)

    @staticmethod
    def can_manage_access(user, project):
        return WorkspacePermissions.has_full_access(user, project)


# === HTML VIEW DECORATORS ===

def requires_admin(view_func):
    """Admins only; others are redirected to the dashboard"""

    @wraps(view_func)
    def wrapped_view(request, *args, **kwargs):
        if not WorkspacePermissions.is_admin(request.user):
            messages.error(request, 'Access denied. Administrators only.')
            return redirect('core:dashboard')
        return view_func(request, *args, **kwargs)

    return wrapped_view


def _load_project(project_id):
    from .models import Project

    return Project.objects.select_related('created_by', 'department').filter(id=project_id).first()


def requires_project_access(view_func):
    """
    Checks access to the project in the project_id URL kwarg
    The project is attached to the request as request.project
    """

    @wraps(view_func)
    def wrapped_view(request, project_id, *args, **kwargs):
        project = _load_project(project_id)
        if project is None:
            messages.error(request, 'Project not found.')
            return redirect('core:dashboard')

        if not WorkspacePermissions.has_project_access(request.user, project):
            messages.error(request, 'You do not have access to this project.')
            return redirect('core:dashboard')

        request.project = project
        return view_func(request, project_id, *args, **kwargs)

    return wrapped_view


def requires_module(module, level='read'):
    """
    Checks a module permission on the project in the project_id URL kwarg

    Sets request.project and request.can_write for the view and its template.
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapped_view(request, project_id, *args, **kwargs):
            project = _load_project(project_id)
            if project is None:
                messages.error(request, 'Project not found.')
                return redirect('core:dashboard')

            if not WorkspacePermissions.has_module_permission(request.user, project, module, level):
                messages.error(request, 'You do not have access to this module.')
                if WorkspacePermissions.has_project_access(request.user, project):
                    return redirect('core:project_detail', project_id=project.id)
                return redirect('core:dashboard')

            request.project = project
            request.can_write = WorkspacePermissions.has_module_permission(
                request.user, project, module, 'write'
            )
            return view_func(request, project_id, *args, **kwargs)

        return wrapped_view

    return decorator


# === JSON API DECORATORS ===

def api_login_required(view_func):
    """401 JSON instead of the login redirect"""

    @wraps(view_func)
    def wrapped_view(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return api_error('Authentication required', 'UNAUTHENTICATED', status=401)
        return view_func(request, *args, **kwargs)

    return wrapped_view


def api_requires_module(module, level='read', write_methods=('POST', 'PUT', 'PATCH', 'DELETE')):
    """
    JSON counterpart of requires_module

    Reads need `level`; any method in write_methods needs 'write'.
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapped_view(request, project_id, *args, **kwargs):
            if not request.user.is_authenticated:
                return api_error('Authentication required', 'UNAUTHENTICATED', status=401)

            project = _load_project(project_id)
            if project is None:
                return api_error('Project not found', 'NOT_FOUND', status=404)

            required = 'write' if request.method in write_methods else level
            if not WorkspacePermissions.has_module_permission(request.user, project, module, required):
                return api_error(
                    f'{required.capitalize()} access to {module} required',
                    'FORBIDDEN',
                    status=403
                )

            request.project = project
            return view_func(request, project_id, *args, **kwargs)

        return wrapped_view

    return decorator


def ensure_module_permission(user, project, module, required='read'):
    """Raises PermissionDenied unless the user may use the module"""
    if not WorkspacePermissions.has_module_permission(user, project, module, required):
        raise PermissionDenied(f'{required.capitalize()} access to {module} required')
