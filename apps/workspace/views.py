# apps/workspace/views.py

import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_http_methods, require_POST

from apps.core.models import Stakeholder
from apps.core.permissions import WorkspacePermissions, api_requires_module, requires_module
from apps.core.services import log_module_view
from apps.core.utils import api_error, api_success, parse_json_body, validation_message

from . import services
from .models import (
    Discussion,
    DiscussionActionItem,
    Retrospective,
    RetrospectiveActionItem,
    RetrospectiveCard,
    RetrospectiveColumn,
    Risk,
)

logger = logging.getLogger(__name__)


def _serialize_backlog(item):
    from apps.board.services import serialize_backlog_item

    return serialize_backlog_item(item)


def _can_write_backlog(request):
    return WorkspacePermissions.has_module_permission(request.user, request.project, 'task_backlog', 'write')


# === DISCUSSIONS ===

@login_required
@requires_module('discussions')
def discussion_list(request, project_id):
    project = request.project
    log_module_view(request.user, project, 'discussions')
    context = {
        'title': f'{project.name} - Discussions',
        'project': project,
        'discussions': project.discussions.prefetch_related('action_items__owner'),
        'statuses': DiscussionActionItem.STATUS_CHOICES,
        'can_write': request.can_write,
    }
    return render(request, 'workspace/discussions.html', context)


@login_required
@requires_module('discussions', 'write')
@require_POST
def discussion_create(request, project_id):
    data = request.POST.dict()
    data['attendees'] = request.POST.get('attendees', '')
    try:
        discussion = services.create_discussion(request.project, data, request.user)
        messages.success(request, f'Discussion "{discussion.meeting_title}" saved!')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('workspace:discussions', project_id=project_id)


@login_required
@requires_module('discussions')
def discussion_detail(request, project_id, discussion_id):
    discussion = get_object_or_404(Discussion, id=discussion_id, project=request.project)
    context = {
        'title': discussion.meeting_title,
        'project': request.project,
        'discussion': discussion,
        'action_items': discussion.action_items.select_related('owner', 'backlog_item'),
        'change_log': discussion.change_log.select_related('changed_by')[:100],
        'statuses': DiscussionActionItem.STATUS_CHOICES,
        'can_write': request.can_write,
    }
    return render(request, 'workspace/discussion_detail.html', context)


@login_required
@requires_module('discussions', 'write')
@require_POST
def action_item_create(request, project_id, discussion_id):
    discussion = get_object_or_404(Discussion, id=discussion_id, project=request.project)
    try:
        services.add_action_item(discussion, request.POST.dict(), request.user)
        messages.success(request, 'Action item added.')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('workspace:discussion_detail', project_id=project_id, discussion_id=discussion_id)


@login_required
@requires_module('discussions', 'write')
@require_POST
def action_item_to_backlog(request, project_id, item_id):
    item = get_object_or_404(DiscussionActionItem, id=item_id, discussion__project=request.project)
    if not _can_write_backlog(request):
        messages.error(request, 'Write access to the backlog is required.')
    else:
        try:
            services.action_item_to_backlog(item, request.user)
            messages.success(request, 'Action item sent to the backlog.')
        except ValidationError as e:
            messages.error(request, validation_message(e))
    return redirect('workspace:discussion_detail', project_id=project_id, discussion_id=item.discussion_id)


@api_requires_module('discussions')
@require_http_methods(['GET', 'POST'])
def api_discussions(request, project_id):
    if request.method == 'POST':
        discussion = services.create_discussion(request.project, parse_json_body(request), request.user)
        return api_success(services.serialize_discussion(discussion), status=201)

    discussions = request.project.discussions.all()
    return api_success([services.serialize_discussion(d) for d in discussions])


@api_requires_module('discussions')
@require_http_methods(['GET', 'PATCH', 'PUT', 'DELETE'])
def api_discussion_detail(request, project_id, discussion_id):
    discussion = get_object_or_404(Discussion, id=discussion_id, project=request.project)

    if request.method == 'DELETE':
        discussion._changed_by = request.user
        discussion.delete()
        return api_success({'id': discussion_id})

    if request.method in ('PATCH', 'PUT'):
        discussion._changed_by = request.user
        discussion = services.update_discussion(discussion, parse_json_body(request), request.user)

    return api_success(services.serialize_discussion(discussion))


@api_requires_module('discussions')
def api_discussion_changes(request, project_id, discussion_id):
    discussion = get_object_or_404(Discussion, id=discussion_id, project=request.project)
    return api_success([{
        'id': entry.id,
        'action_item_id': entry.action_item_id,
        'change_type': entry.change_type,
        'field_name': entry.field_name,
        'old_value': entry.old_value,
        'new_value': entry.new_value,
        'changed_by': entry.changed_by.display_name if entry.changed_by_id else None,
        'created_at': entry.created_at,
    } for entry in discussion.change_log.select_related('changed_by')])


@api_requires_module('discussions')
@require_POST
def api_action_items(request, project_id, discussion_id):
    discussion = get_object_or_404(Discussion, id=discussion_id, project=request.project)
    item = services.add_action_item(discussion, parse_json_body(request), request.user)
    return api_success(services.serialize_action_item(item), status=201)


@api_requires_module('discussions')
@require_http_methods(['PATCH', 'PUT', 'DELETE'])
def api_action_item_detail(request, project_id, item_id):
    item = get_object_or_404(DiscussionActionItem, id=item_id, discussion__project=request.project)

    if request.method == 'DELETE':
        services.delete_action_item(item, request.user)
        return api_success({'id': item_id})

    item = services.update_action_item(item, parse_json_body(request), request.user)
    return api_success(services.serialize_action_item(item))


@api_requires_module('discussions', 'write')
@require_POST
def api_action_item_to_backlog(request, project_id, item_id):
    item = get_object_or_404(DiscussionActionItem, id=item_id, discussion__project=request.project)
    if not _can_write_backlog(request):
        return api_error('Write access to task_backlog required', 'FORBIDDEN', status=403)

    backlog_item = services.action_item_to_backlog(item, request.user)
    return api_success({'action_item': services.serialize_action_item(item),
                        'backlog_item': _serialize_backlog(backlog_item)}, status=201)


# === RISK REGISTER ===

@login_required
@requires_module('risk_register')
def risk_list(request, project_id):
    project = request.project
    log_module_view(request.user, project, 'risk_register')
    context = {
        'title': f'{project.name} - Risk Register',
        'project': project,
        'risks': services.filter_risks(project.risks.all(), request.GET),
        'heatmap': services.risk_heatmap(project),
        'summary': services.risk_summary(project),
        'categories': Risk.CATEGORY_CHOICES,
        'statuses': Risk.STATUS_CHOICES,
        'strategies': Risk.STRATEGY_CHOICES,
        'filters': request.GET,
        'can_write': request.can_write,
    }
    return render(request, 'workspace/risks.html', context)


@login_required
@requires_module('risk_register', 'write')
@require_POST
def risk_create(request, project_id):
    data = request.POST.dict()
    data['mitigation_plan'] = request.POST.get('mitigation_plan', '')
    try:
        risk = services.create_risk(request.project, data, request.user)
        messages.success(request, f'Risk {risk.risk_code} registered!')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('workspace:risks', project_id=project_id)


@api_requires_module('risk_register')
@require_http_methods(['GET', 'POST'])
def api_risks(request, project_id):
    if request.method == 'POST':
        risk = services.create_risk(request.project, parse_json_body(request), request.user)
        return api_success(services.serialize_risk(risk), status=201)

    risks = services.filter_risks(request.project.risks.all(), request.GET)
    return api_success([services.serialize_risk(r) for r in risks])


@api_requires_module('risk_register')
@require_http_methods(['GET', 'PATCH', 'PUT', 'DELETE'])
def api_risk_detail(request, project_id, risk_id):
    risk = get_object_or_404(Risk, id=risk_id, project=request.project)
    risk._changed_by = request.user

    if request.method == 'DELETE':
        risk.delete()
        return api_success({'id': risk_id})

    if request.method in ('PATCH', 'PUT'):
        risk = services.update_risk(risk, parse_json_body(request), request.user)

    return api_success(services.serialize_risk(risk))


@api_requires_module('risk_register')
def api_risk_heatmap(request, project_id):
    return api_success({
        'matrix': services.risk_heatmap(request.project),
        'summary': services.risk_summary(request.project),
    })


# === STAKEHOLDERS ===

@login_required
@requires_module('stakeholders')
def stakeholder_list(request, project_id):
    project = request.project
    log_module_view(request.user, project, 'stakeholders')
    context = {
        'title': f'{project.name} - Stakeholders',
        'project': project,
        'stakeholders': services.search_stakeholders(project.stakeholders.all(), request.GET.get('q')),
        'raci_choices': Stakeholder.RACI_CHOICES,
        'influence_choices': Stakeholder.INFLUENCE_CHOICES,
        'filters': request.GET,
        'can_write': request.can_write,
    }
    return render(request, 'workspace/stakeholders.html', context)


@login_required
@requires_module('stakeholders', 'write')
@require_POST
def stakeholder_create(request, project_id):
    try:
        stakeholder = services.create_stakeholder(request.project, request.POST.dict(), request.user)
        messages.success(request, f'Stakeholder {stakeholder.name} added!')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('workspace:stakeholders', project_id=project_id)


@api_requires_module('stakeholders')
@require_http_methods(['GET', 'POST'])
def api_stakeholders(request, project_id):
    if request.method == 'POST':
        stakeholder = services.create_stakeholder(request.project, parse_json_body(request), request.user)
        return api_success(services.serialize_stakeholder(stakeholder), status=201)

    stakeholders = services.search_stakeholders(request.project.stakeholders.all(), request.GET.get('q'))
    return api_success([services.serialize_stakeholder(s) for s in stakeholders])


@api_requires_module('stakeholders')
@require_http_methods(['GET', 'PATCH', 'PUT', 'DELETE'])
def api_stakeholder_detail(request, project_id, stakeholder_id):
    stakeholder = get_object_or_404(Stakeholder, id=stakeholder_id, project=request.project)
    stakeholder._changed_by = request.user

    if request.method == 'DELETE':
        stakeholder.delete()
        return api_success({'id': stakeholder_id})

    if request.method in ('PATCH', 'PUT'):
        stakeholder = services.update_stakeholder(stakeholder, parse_json_body(request), request.user)

    return api_success(services.serialize_stakeholder(stakeholder))


# === RETROSPECTIVES ===

@login_required
@requires_module('retrospectives')
def retrospective_list(request, project_id):
    project = request.project
    log_module_view(request.user, project, 'retrospectives')
    context = {
        'title': f'{project.name} - Retrospectives',
        'project': project,
        'retrospectives': project.retrospectives.select_related('iteration'),
        'iterations': project.iterations.all(),
        'can_write': request.can_write,
    }
    return render(request, 'workspace/retrospectives.html', context)


@login_required
@requires_module('retrospectives', 'write')
@require_POST
def retrospective_create(request, project_id):
    data = request.POST.dict()
    data['columns'] = [c for c in request.POST.getlist('columns') if c.strip()]
    try:
        retro = services.create_retrospective(request.project, data, request.user)
        messages.success(request, 'Retrospective board created!')
        return redirect('workspace:retrospective_detail', project_id=project_id, retro_id=retro.id)
    except ValidationError as e:
        messages.error(request, validation_message(e))
        return redirect('workspace:retrospectives', project_id=project_id)


@login_required
@requires_module('retrospectives')
def retrospective_detail(request, project_id, retro_id):
    retro = get_object_or_404(Retrospective, id=retro_id, project=request.project)
    context = {
        'title': str(retro),
        'project': request.project,
        'retro': retro,
        'columns': retro.columns.prefetch_related('cards'),
        'action_items': retro.action_items.select_related('card', 'backlog_item'),
        'analytics': services.retrospective_analytics(retro),
        'can_write': request.can_write,
    }
    return render(request, 'workspace/retrospective_detail.html', context)


@api_requires_module('retrospectives')
@require_http_methods(['GET', 'POST'])
def api_retrospectives(request, project_id):
    if request.method == 'POST':
        retro = services.create_retrospective(request.project, parse_json_body(request), request.user)
        return api_success(services.serialize_retrospective(retro), status=201)

    return api_success([services.serialize_retrospective(r) for r in request.project.retrospectives.all()])


@api_requires_module('retrospectives')
@require_http_methods(['GET', 'PATCH', 'DELETE'])
def api_retrospective_detail(request, project_id, retro_id):
    retro = get_object_or_404(Retrospective, id=retro_id, project=request.project)
    retro._changed_by = request.user

    if request.method == 'DELETE':
        retro.delete()
        return api_success({'id': retro_id})

    if request.method == 'PATCH':
        data = parse_json_body(request)
        if 'status' in data:
            if data['status'] not in dict(Retrospective.STATUS_CHOICES):
                return api_error(f'Invalid status "{data["status"]}"', 'VALIDATION_ERROR')
            retro.status = data['status']
        if 'title' in data:
            retro.title = (data['title'] or '').strip()
        retro.save()

    return api_success(services.serialize_retrospective(retro))


@api_requires_module('retrospectives')
@require_POST
def api_retro_columns(request, project_id, retro_id):
    retro = get_object_or_404(Retrospective, id=retro_id, project=request.project)
    data = parse_json_body(request)
    column = services.add_column(retro, data.get('title'), data.get('subtitle') or '')
    return api_success({'id': column.id, 'title': column.title, 'column_order': column.column_order}, status=201)


@api_requires_module('retrospectives')
@require_POST
def api_retro_cards(request, project_id, column_id):
    column = get_object_or_404(RetrospectiveColumn, id=column_id, retrospective__project=request.project)
    card = services.add_card(column, parse_json_body(request).get('text'), request.user)
    return api_success({'id': card.id, 'text': card.text, 'votes': card.votes}, status=201)


@api_requires_module('retrospectives', write_methods=('DELETE',))
@require_POST
def api_card_vote(request, project_id, card_id):
    """Toggles the caller's vote; read access is enough to vote"""
    card = get_object_or_404(RetrospectiveCard, id=card_id, column__retrospective__project=request.project)
    voted = services.toggle_vote(card, request.user)
    return api_success({'card_id': card.id, 'voted': voted, 'votes': card.votes})


@api_requires_module('retrospectives')
@require_POST
def api_retro_action_items(request, project_id, retro_id):
    retro = get_object_or_404(Retrospective, id=retro_id, project=request.project)
    item = services.add_retro_action_item(retro, parse_json_body(request), request.user)
    return api_success({'id': item.id, 'what_task': item.what_task}, status=201)


@api_requires_module('retrospectives', 'write')
@require_POST
def api_retro_action_convert(request, project_id, item_id):
    item = get_object_or_404(RetrospectiveActionItem, id=item_id, retrospective__project=request.project)
    if not _can_write_backlog(request):
        return api_error('Write access to task_backlog required', 'FORBIDDEN', status=403)

    backlog_item = services.convert_retro_action(item, request.user)
    return api_success({'action_item_id': item.id, 'backlog_item': _serialize_backlog(backlog_item)}, status=201)


@api_requires_module('retrospectives')
def api_retro_analytics(request, project_id, retro_id):
    retro = get_object_or_404(Retrospective, id=retro_id, project=request.project)
    return api_success(services.retrospective_analytics(retro))
