# apps/core/views.py

import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.cache import cache
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import connection
from django.db.models import Count, Q
from django.http import JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.utils import timezone
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_http_methods, require_POST

from apps import __version__

from . import services
from .auth_service import auth_service
from .forms import (
    DepartmentForm,
    LoginForm,
    ModuleAccessForm,
    PasswordResetRequestForm,
    ProfileForm,
    ProjectForm,
    RegistrationForm,
    SetPasswordForm,
)
from .models import Department, ModulePermission, Project, User
from .permissions import (
    WorkspacePermissions,
    api_login_required,
    requires_admin,
    requires_project_access,
)
from .utils import api_error, api_success, parse_json_body, validation_message

logger = logging.getLogger(__name__)


# === SERIALIZATION ===

def serialize_project(project, user=None):
    data = {
        'id': project.id,
        'name': project.name,
        'description': project.description,
        'start_date': project.start_date,
        'end_date': project.end_date,
        'status': project.status,
        'priority': project.priority,
        'department': project.department.name if project.department_id else None,
        'created_by': project.created_by_id,
        'progress': project.progress(),
        'created_at': project.created_at,
    }
    if user is not None:
        data['permissions'] = WorkspacePermissions.module_permissions_for(user, project)
    return data


def serialize_permission(permission):
    return {
        'id': permission.id,
        'user': {'id': permission.user_id, 'email': permission.user.email, 'name': permission.user.display_name},
        'module': permission.module,
        'access_level': permission.access_level,
        'granted_by': permission.granted_by_id,
        'updated_at': permission.updated_at,
    }


# === AUTHENTICATION ===

def login_view(request):
    """Login page; delegates everything but HTTP to auth_service"""
    if request.user.is_authenticated:
        return redirect('core:dashboard')

    form = LoginForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        ok, message = auth_service.login(
            request,
            form.cleaned_data['username'],
            form.cleaned_data['password'],
            form.cleaned_data['remember_me'],
        )
        if ok:
            messages.success(request, message)
            next_url = request.GET.get('next')
            if next_url and url_has_allowed_host_and_scheme(next_url, allowed_hosts={request.get_host()}):
                return redirect(next_url)
            return redirect('core:dashboard')
        messages.error(request, message)

    return render(request, 'core/login.html', {'title': 'Sign in', 'form': form})


def register_view(request):
    if request.user.is_authenticated:
        return redirect('core:dashboard')

    form = RegistrationForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        ok, message, _user = auth_service.register(form.cleaned_data)
        if ok:
            messages.success(request, message)
            return redirect('core:login')
        messages.error(request, message)

    return render(request, 'core/register.html', {'title': 'Create account', 'form': form})


def logout_view(request):
    auth_service.logout(request)
    messages.info(request, 'You have been signed out.')
    return redirect('core:login')


def password_reset_request_view(request):
    form = PasswordResetRequestForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        ok, message = auth_service.start_password_reset(form.cleaned_data['email'])
        (messages.success if ok else messages.error)(request, message)
        if ok:
            return redirect('core:login')

    return render(request, 'core/password_reset.html', {'title': 'Reset password', 'form': form})


def password_reset_confirm_view(request, token):
    if auth_service.user_from_reset_token(token) is None:
        messages.error(request, 'Invalid or expired link.')
        return redirect('core:password_reset')

    form = SetPasswordForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        ok, message = auth_service.reset_password(token, form.cleaned_data['password'])
        (messages.success if ok else messages.error)(request, message)
        if ok:
            return redirect('core:login')

    return render(request, 'core/password_reset_confirm.html', {'title': 'Choose a new password', 'form': form})


@login_required
def profile_view(request):
    form = ProfileForm(request.POST or None, request.FILES or None, instance=request.user)
    if request.method == 'POST' and form.is_valid():
        form.save()
        messages.success(request, 'Profile updated.')
        return redirect('core:profile')

    return render(request, 'core/profile.html', {'title': 'My profile', 'form': form})


# === DASHBOARD ===

def _dashboard_data(user):
    """Project cards and personal task lists for the dashboard"""
    from apps.board.models import Task

    today = timezone.localdate()
    projects = user.accessible_projects().annotate(
        task_total=Count('tasks', distinct=True),
        task_done=Count('tasks', filter=Q(tasks__status=Task.STATUS_COMPLETED), distinct=True),
    )

    cards = []
    for project in projects:
        progress = round(project.task_done / project.task_total * 100) if project.task_total else 0
        cards.append({'project': project, 'progress': progress, 'tasks': project.task_total})

    my_tasks = Task.objects.filter(owner=user).exclude(status=Task.STATUS_COMPLETED).select_related('project')
    return {
        'projects': cards,
        'my_tasks': my_tasks.order_by('due_date')[:10],
        'overdue': my_tasks.filter(due_date__lt=today).count(),
        'due_today': my_tasks.filter(due_date=today).count(),
        'open_tasks': my_tasks.count(),
    }


@login_required
def dashboard(request):
    context = {'title': 'Dashboard', 'can_create': WorkspacePermissions.can_create_project(request.user)}
    context.update(_dashboard_data(request.user))
    return render(request, 'core/dashboard.html', context)


@api_login_required
def api_dashboard_stats(request):
    data = _dashboard_data(request.user)
    return api_success({
        'projects': len(data['projects']),
        'open_tasks': data['open_tasks'],
        'overdue': data['overdue'],
        'due_today': data['due_today'],
    })


# === PROJECTS (HTML) ===

@login_required
@require_http_methods(['GET', 'POST'])
def project_create(request):
    if not WorkspacePermissions.can_create_project(request.user):
        messages.error(request, 'You cannot create projects.')
        return redirect('core:dashboard')

    form = ProjectForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        project = services.create_project(request.user, form.cleaned_data)
        messages.success(request, f'Project "{project.name}" created!')
        return redirect('core:project_detail', project_id=project.id)

    template = 'core/partials/project_form.html' if request.htmx else 'core/project_form.html'
    return render(request, template, {'title': 'New project', 'form': form})


@login_required
def project_wizard(request):
    """Multi-step creation page; the final step posts to api_project_wizard"""
    if not WorkspacePermissions.can_create_project(request.user):
        messages.error(request, 'You cannot create projects.')
        return redirect('core:dashboard')
    return render(request, 'core/project_wizard.html', {'title': 'Project wizard'})


@login_required
@requires_project_access
def project_detail(request, project_id):
    """Project overview: navigation limited to the modules the user may open"""
    from apps.board.models import Milestone, Task

    project = request.project
    permissions = WorkspacePermissions.module_permissions_for(request.user, project)
    modules = [
        {'code': code, 'label': label, 'level': permissions.get(code)}
        for code, label in ModulePermission.MODULE_CHOICES
    ]

    context = {
        'title': project.name,
        'project': project,
        'modules': modules,
        'can_edit': WorkspacePermissions.can_edit_project(request.user, project),
        'can_manage_access': WorkspacePermissions.can_manage_access(request.user, project),
        'stats': {
            'tasks': project.tasks.count(),
            'completed': project.tasks.filter(status=Task.STATUS_COMPLETED).count(),
            'milestones': project.milestones.count(),
            'milestones_done': project.milestones.filter(status='completed').count(),
            'members': project.memberships.count(),
        },
        'upcoming': Milestone.objects.filter(
            project=project, due_date__gte=timezone.localdate()
        ).order_by('due_date')[:5],
    }
    return render(request, 'core/project_detail.html', context)


@login_required
@requires_project_access
@require_http_methods(['GET', 'POST'])
def project_edit(request, project_id):
    project = request.project
    if not WorkspacePermissions.can_edit_project(request.user, project):
        messages.error(request, 'Only the project owner or an admin can edit the project.')
        return redirect('core:project_detail', project_id=project.id)

    form = ProjectForm(request.POST or None, instance=project)
    if request.method == 'POST' and form.is_valid():
        form.save()
        messages.success(request, 'Project updated.')
        return redirect('core:project_detail', project_id=project.id)

    return render(request, 'core/project_form.html', {'title': f'Edit {project.name}', 'form': form, 'project': project})


@login_required
@requires_project_access
@require_POST
def project_delete(request, project_id):
    try:
        services.delete_project(request.project, request.user)
    except PermissionDenied as e:
        messages.error(request, str(e))
        return redirect('core:project_detail', project_id=project_id)

    messages.success(request, 'Project deleted.')
    return redirect('core:dashboard')


@login_required
@requires_project_access
@require_http_methods(['GET', 'POST'])
def project_access(request, project_id):
    """Module access management page"""
    project = request.project
    if not WorkspacePermissions.can_manage_access(request.user, project):
        messages.error(request, 'Only the project owner or an admin can manage access.')
        return redirect('core:project_detail', project_id=project.id)

    form = ModuleAccessForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        try:
            services.grant_access(
                project,
                form.cleaned_data['email'],
                form.cleaned_data['module'],
                form.cleaned_data['access_level'],
                request.user,
            )
            messages.success(request, 'Access granted.')
            return redirect('core:project_access', project_id=project.id)
        except ValidationError as e:
            messages.error(request, validation_message(e))

    context = {
        'title': f'Access - {project.name}',
        'project': project,
        'form': form,
        'permissions': project.module_permissions.select_related('user', 'granted_by').order_by('user__email', 'module'),
        'audits': project.access_audits.select_related('user', 'granted_by')[:50],
    }
    return render(request, 'core/project_access.html', context)


@login_required
@requires_project_access
@require_POST
def project_access_revoke(request, project_id, permission_id):
    permission = get_object_or_404(ModulePermission, id=permission_id, project=request.project)
    try:
        services.revoke_access(permission, request.user)
        messages.success(request, 'Access revoked.')
    except PermissionDenied as e:
        messages.error(request, str(e))
    return redirect('core:project_access', project_id=project_id)


@login_required
@requires_project_access
def project_history(request, project_id):
    project = request.project
    module = request.GET.get('module') or None
    context = {
        'title': f'History - {project.name}',
        'project': project,
        'logs': services.project_history(project, module),
        'module': module,
        'modules': ModulePermission.MODULE_CHOICES,
    }
    return render(request, 'core/project_history.html', context)


# === ADMINISTRATION ===

@login_required
@requires_admin
@require_http_methods(['GET', 'POST'])
def department_list(request):
    form = DepartmentForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        department = services.create_department(form.cleaned_data['name'], request.user)
        messages.success(request, f'Department "{department.name}" created.')
        return redirect('core:departments')

    context = {
        'title': 'Departments',
        'form': form,
        'departments': Department.objects.annotate(user_count=Count('users')),
        'users': User.objects.select_related('department').order_by('username'),
        'roles': User.ROLE_CHOICES,
    }
    return render(request, 'core/departments.html', context)


@login_required
@requires_admin
@require_POST
def department_delete(request, department_id):
    department = get_object_or_404(Department, id=department_id)
    department.delete()
    messages.success(request, 'Department deleted.')
    return redirect('core:departments')


@login_required
@requires_admin
@require_POST
def user_update(request, user_id):
    """Admin change of a user's role and department"""
    target = get_object_or_404(User, id=user_id)
    department_id = request.POST.get('department')
    department = Department.objects.filter(id=department_id).first() if department_id else None

    try:
        services.assign_department(target, department, request.user)
        if request.POST.get('role'):
            services.set_user_role(target, request.POST['role'], request.user)
        messages.success(request, f'{target.display_name} updated.')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('core:departments')


# === JSON API ===

@api_login_required
@require_http_methods(['GET', 'POST'])
def api_projects(request):
    if request.method == 'POST':
        project = services.create_project(request.user, parse_json_body(request))
        return api_success(serialize_project(project, request.user), status=201)

    projects = request.user.accessible_projects().select_related('department')
    return api_success([serialize_project(p, request.user) for p in projects])


@api_login_required
@require_http_methods(['GET', 'PATCH', 'PUT', 'DELETE'])
def api_project_detail(request, project_id):
    project = get_object_or_404(Project, id=project_id)
    if not WorkspacePermissions.has_project_access(request.user, project):
        return api_error('You do not have access to this project', 'FORBIDDEN', status=403)

    if request.method == 'DELETE':
        services.delete_project(project, request.user)
        return api_success({'id': project_id})

    if request.method in ('PATCH', 'PUT'):
        project = services.update_project(project, request.user, parse_json_body(request))

    return api_success(serialize_project(project, request.user))


@api_login_required
@require_POST
def api_project_wizard(request):
    project = services.create_project_from_wizard(request.user, parse_json_body(request))
    return api_success(serialize_project(project, request.user), status=201)


@api_login_required
@require_http_methods(['GET', 'POST'])
def api_project_access(request, project_id):
    project = get_object_or_404(Project, id=project_id)

    if request.method == 'POST':
        data = parse_json_body(request)
        permission = services.grant_access(
            project,
            data.get('email') or data.get('userEmail'),
            data.get('module'),
            data.get('access_level') or data.get('accessLevel'),
            request.user,
        )
        return api_success(serialize_permission(permission), status=201)

    if not WorkspacePermissions.can_manage_access(request.user, project):
        return api_error('Only the project owner or an admin can view access', 'FORBIDDEN', status=403)
    permissions = project.module_permissions.select_related('user')
    return api_success([serialize_permission(p) for p in permissions])


@api_login_required
@require_http_methods(['PATCH', 'PUT', 'DELETE'])
def api_project_access_detail(request, project_id, permission_id):
    permission = get_object_or_404(ModulePermission, id=permission_id, project_id=project_id)

    if request.method == 'DELETE':
        services.revoke_access(permission, request.user)
        return api_success({'id': permission_id})

    data = parse_json_body(request)
    permission = services.update_access(permission, data.get('access_level') or data.get('accessLevel'), request.user)
    return api_success(serialize_permission(permission))


@api_login_required
def api_my_permissions(request, project_id):
    project = get_object_or_404(Project, id=project_id)
    if not WorkspacePermissions.has_project_access(request.user, project):
        return api_error('You do not have access to this project', 'FORBIDDEN', status=403)

    return api_success({
        'is_owner': project.is_owner(request.user),
        'is_admin': request.user.is_workspace_admin,
        'modules': WorkspacePermissions.module_permissions_for(request.user, project),
    })


@api_login_required
def api_project_history(request, project_id):
    project = get_object_or_404(Project, id=project_id)
    if not WorkspacePermissions.has_project_access(request.user, project):
        return api_error('You do not have access to this project', 'FORBIDDEN', status=403)

    logs = services.project_history(project, request.GET.get('module') or None)
    return api_success([{
        'id': log.id,
        'module': log.module,
        'entity_type': log.entity_type,
        'entity_id': log.entity_id,
        'action': log.action,
        'description': log.description,
        'old_values': log.old_values,
        'new_values': log.new_values,
        'user': log.user.display_name if log.user_id else None,
        'created_at': log.created_at,
    } for log in logs])


@api_login_required
@require_http_methods(['GET', 'POST'])
def api_departments(request):
    if request.method == 'POST':
        department = services.create_department(parse_json_body(request).get('name'), request.user)
        return api_success({'id': department.id, 'name': department.name}, status=201)

    return api_success([{'id': d.id, 'name': d.name} for d in Department.objects.all()])


# === MONITORING ===

def health_check(request):
    """Database and cache probe for load balancers"""
    status = {
        'timestamp': timezone.now().isoformat(),
        'version': __version__,
    }
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        status['database'] = 'ok'

        cache.set('health_check', 'ok', 60)
        status['cache'] = 'ok' if cache.get('health_check') == 'ok' else 'degraded'
    except Exception as e:
        logger.exception("❌ Health check failed")
        status.update({'status': 'unhealthy', 'error': str(e)})
        return JsonResponse(status, status=503)

    status['status'] = 'healthy'
    return JsonResponse(status)
