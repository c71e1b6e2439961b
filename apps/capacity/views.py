# apps/capacity/views.py

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_http_methods, require_POST

from apps.core.permissions import api_requires_module, requires_module
from apps.core.services import log_module_view
from apps.core.utils import api_success, parse_json_body, validation_message

from . import services
from .models import WORK_MODE_CHOICES, CapacitySettings, Iteration, IterationMember, Team


@login_required
@requires_module('team_capacity')
def capacity_view(request, project_id):
    """Iterations with their members and the project totals"""
    project = request.project
    log_module_view(request.user, project, 'team_capacity')

    context = {
        'title': f'{project.name} - Team Capacity',
        'project': project,
        'settings': services.get_settings(project),
        'summary': services.capacity_summary(project),
        'iterations': project.iterations.prefetch_related('members'),
        'teams': project.teams.prefetch_related('members'),
        'stakeholders': project.stakeholders.all(),
        'work_modes': WORK_MODE_CHOICES,
        'bases': CapacitySettings.BASIS_CHOICES,
        'can_write': request.can_write,
    }
    return render(request, 'capacity/capacity.html', context)


@login_required
@requires_module('team_capacity', 'write')
@require_POST
def settings_update(request, project_id):
    try:
        services.update_settings(request.project, request.POST.dict())
        messages.success(request, 'Capacity settings saved.')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('capacity:overview', project_id=project_id)


@login_required
@requires_module('team_capacity', 'write')
@require_POST
def iteration_create(request, project_id):
    try:
        iteration = services.create_iteration(request.project, request.POST.dict())
        messages.success(request, f'Iteration "{iteration.iteration_name}" created!')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('capacity:overview', project_id=project_id)


@login_required
@requires_module('team_capacity', 'write')
@require_POST
def member_create(request, project_id, iteration_id):
    iteration = get_object_or_404(Iteration, id=iteration_id, project=request.project)
    try:
        member = services.add_iteration_member(iteration, request.POST.dict())
        messages.success(request, f'{member.member_name} added ({member.effective_capacity_days} days).')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('capacity:overview', project_id=project_id)


@login_required
@requires_module('team_capacity', 'write')
@require_POST
def team_create(request, project_id):
    try:
        team = services.create_team(request.project, request.POST.dict())
        messages.success(request, f'Team "{team.team_name}" created!')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('capacity:overview', project_id=project_id)


# === API ===

@api_requires_module('team_capacity')
@require_http_methods(['GET', 'PUT', 'PATCH'])
def api_settings(request, project_id):
    if request.method in ('PUT', 'PATCH'):
        settings_row = services.update_settings(request.project, parse_json_body(request))
    else:
        settings_row = services.get_settings(request.project)

    return api_success({
        'iteration_basis': settings_row.iteration_basis,
        'work_week': settings_row.work_week,
        'office_weight': settings_row.office_weight,
        'wfh_weight': settings_row.wfh_weight,
        'hybrid_weight': settings_row.hybrid_weight,
    })


@api_requires_module('team_capacity')
def api_summary(request, project_id):
    return api_success(services.capacity_summary(request.project))


@api_requires_module('team_capacity')
@require_http_methods(['GET', 'POST'])
def api_iterations(request, project_id):
    if request.method == 'POST':
        iteration = services.create_iteration(request.project, parse_json_body(request))
        return api_success(services.serialize_iteration(iteration), status=201)

    iterations = request.project.iterations.prefetch_related('members')
    return api_success([services.serialize_iteration(i) for i in iterations])


@api_requires_module('team_capacity')
@require_http_methods(['GET', 'PATCH', 'PUT', 'DELETE'])
def api_iteration_detail(request, project_id, iteration_id):
    iteration = get_object_or_404(Iteration, id=iteration_id, project=request.project)

    if request.method == 'DELETE':
        iteration.delete()
        return api_success({'id': iteration_id})

    if request.method in ('PATCH', 'PUT'):
        iteration = services.update_iteration(iteration, parse_json_body(request))

    return api_success(services.serialize_iteration(iteration))


@api_requires_module('team_capacity')
@require_POST
def api_iteration_members(request, project_id, iteration_id):
    iteration = get_object_or_404(Iteration, id=iteration_id, project=request.project)
    member = services.add_iteration_member(iteration, parse_json_body(request))
    return api_success(services.serialize_member(member), status=201)


@api_requires_module('team_capacity')
@require_POST
def api_iteration_populate(request, project_id, iteration_id):
    iteration = get_object_or_404(Iteration, id=iteration_id, project=request.project)
    team = get_object_or_404(Team, id=parse_json_body(request).get('team'), project=request.project)
    added = services.populate_from_team(iteration, team)
    return api_success(services.serialize_iteration(iteration), added=added)


@api_requires_module('team_capacity')
@require_http_methods(['PATCH', 'PUT', 'DELETE'])
def api_member_detail(request, project_id, member_id):
    member = get_object_or_404(IterationMember, id=member_id, iteration__project=request.project)

    if request.method == 'DELETE':
        member.delete()
        return api_success({'id': member_id})

    member = services.update_iteration_member(member, parse_json_body(request))
    return api_success(services.serialize_member(member))


@api_requires_module('team_capacity')
@require_http_methods(['GET', 'POST'])
def api_teams(request, project_id):
    if request.method == 'POST':
        team = services.create_team(request.project, parse_json_body(request))
        return api_success({'id': team.id, 'team_name': team.team_name}, status=201)

    return api_success([{
        'id': team.id,
        'team_name': team.team_name,
        'description': team.description,
        'members': [{
            'id': m.id,
            'member_name': m.member_name,
            'role': m.role,
            'work_mode': m.work_mode,
            'default_availability_percent': m.default_availability_percent,
            'default_leaves': m.default_leaves,
        } for m in team.members.all()],
    } for team in request.project.teams.prefetch_related('members')])


@api_requires_module('team_capacity')
@require_POST
def api_team_members(request, project_id, team_id):
    team = get_object_or_404(Team, id=team_id, project=request.project)
    member = services.add_team_member(team, parse_json_body(request))
    return api_success({'id': member.id, 'member_name': member.member_name}, status=201)
