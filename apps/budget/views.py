# apps/budget/views.py

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_http_methods, require_POST

from apps.core.permissions import api_login_required, api_requires_module, requires_module
from apps.core.services import log_module_view
from apps.core.utils import api_error, api_success, parse_json_body, validation_message

from . import services
from .models import AlertRule, BudgetCategory, ProjectBudget, Spending


def _budget_or_404(project):
    return get_object_or_404(ProjectBudget, project=project)


@login_required
@requires_module('budget')
def budget_view(request, project_id):
    project = request.project
    log_module_view(request.user, project, 'budget')
    budget = ProjectBudget.objects.filter(project=project).first()

    context = {
        'title': f'{project.name} - Budget',
        'project': project,
        'budget': budget,
        'analytics': services.budget_analytics(budget) if budget else None,
        'categories': budget.categories.all() if budget else [],
        'spending': Spending.objects.filter(category__budget=budget).select_related('category')[:100]
        if budget else [],
        'budget_types': services.enabled_budget_types(),
        'spending_statuses': Spending.STATUS_CHOICES,
        'conditions': AlertRule.CONDITION_CHOICES,
        'can_write': request.can_write,
    }
    return render(request, 'budget/budget.html', context)


@login_required
@requires_module('budget', 'write')
@require_POST
def budget_save(request, project_id):
    try:
        services.upsert_budget(request.project, request.POST.dict(), request.user)
        messages.success(request, 'Budget saved!')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('budget:overview', project_id=project_id)


@login_required
@requires_module('budget', 'write')
@require_POST
def category_create(request, project_id):
    budget = ProjectBudget.objects.filter(project=request.project).first()
    if budget is None:
        messages.error(request, 'Create the project budget first.')
        return redirect('budget:overview', project_id=project_id)
    try:
        category = services.create_category(budget, request.POST.dict(), request.user)
        messages.success(request, f'Category "{category.name}" added.')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('budget:overview', project_id=project_id)


@login_required
@requires_module('budget', 'write')
@require_POST
def spending_create(request, project_id, category_id):
    category = get_object_or_404(BudgetCategory, id=category_id, budget__project=request.project)
    try:
        services.add_spending(category, request.POST.dict(), request.user)
        messages.success(request, 'Spending recorded.')
    except ValidationError as e:
        messages.error(request, validation_message(e))
    return redirect('budget:overview', project_id=project_id)


# === API ===

@api_login_required
def api_budget_types(request):
    return api_success([{
        'code': t.code,
        'label': t.label,
        'default_allocation_percent': t.default_allocation_percent,
        'display_order': t.display_order,
    } for t in services.enabled_budget_types()])


@api_requires_module('budget')
@require_http_methods(['GET', 'POST', 'PUT', 'PATCH'])
def api_budget(request, project_id):
    if request.method == 'GET':
        budget = ProjectBudget.objects.filter(project=request.project).first()
        if budget is None:
            return api_success(None)
    else:
        budget = services.upsert_budget(request.project, parse_json_body(request), request.user)
    return api_success(services.serialize_budget(budget))


@api_requires_module('budget')
def api_analytics(request, project_id):
    return api_success(services.budget_analytics(_budget_or_404(request.project)))


@api_requires_module('budget')
@require_POST
def api_categories(request, project_id):
    category = services.create_category(_budget_or_404(request.project), parse_json_body(request), request.user)
    return api_success(services.serialize_category(category), status=201)


@api_requires_module('budget')
@require_http_methods(['PATCH', 'PUT', 'DELETE'])
def api_category_detail(request, project_id, category_id):
    category = get_object_or_404(BudgetCategory, id=category_id, budget__project=request.project)

    if request.method == 'DELETE':
        category.delete()
        return api_success({'id': category_id})

    category = services.update_category(category, parse_json_body(request))
    return api_success(services.serialize_category(category))


@api_requires_module('budget')
@require_http_methods(['GET', 'POST'])
def api_spending(request, project_id, category_id):
    category = get_object_or_404(BudgetCategory, id=category_id, budget__project=request.project)

    if request.method == 'POST':
        spending = services.add_spending(category, parse_json_body(request), request.user)
        return api_success(services.serialize_spending(spending), status=201,
                           amount_spent=float(category.amount_spent))

    return api_success([services.serialize_spending(s) for s in category.spending.all()])


@api_requires_module('budget')
@require_http_methods(['PATCH', 'PUT', 'DELETE'])
def api_spending_detail(request, project_id, spending_id):
    spending = get_object_or_404(Spending, id=spending_id, category__budget__project=request.project)

    if request.method == 'DELETE':
        services.delete_spending(spending)
        return api_success({'id': spending_id})

    spending = services.update_spending(spending, parse_json_body(request), request.user)
    return api_success(services.serialize_spending(spending), amount_spent=float(spending.category.amount_spent))


@api_requires_module('budget')
@require_POST
def api_receipts(request, project_id):
    receipt = services.add_receipt(_budget_or_404(request.project), parse_json_body(request), request.user)
    return api_success({'id': receipt.id, 'amount': float(receipt.amount), 'source': receipt.source}, status=201)


@api_requires_module('budget')
@require_http_methods(['GET', 'POST'])
def api_comments(request, project_id):
    budget = _budget_or_404(request.project)
    if request.method == 'POST':
        comment = services.add_comment(budget, parse_json_body(request).get('text'), request.user)
        return api_success({'id': comment.id, 'text': comment.text}, status=201)

    return api_success([{
        'id': c.id,
        'author': c.author.display_name if c.author_id else None,
        'text': c.text,
        'created_at': c.created_at,
    } for c in budget.comments.select_related('author')])


@api_requires_module('budget')
@require_http_methods(['GET', 'POST'])
def api_alert_rules(request, project_id):
    budget = _budget_or_404(request.project)
    if request.method == 'POST':
        rule = services.add_alert_rule(budget, parse_json_body(request), request.user)
        return api_success({'id': rule.id, 'condition_type': rule.condition_type}, status=201)

    return api_success([{
        'id': r.id,
        'condition_type': r.condition_type,
        'threshold_value': r.threshold_value,
        'severity': r.severity,
        'message': r.message,
        'is_active': r.is_active,
    } for r in budget.alert_rules.all()])


@api_requires_module('budget')
@require_http_methods(['PATCH', 'DELETE'])
def api_alert_rule_detail(request, project_id, rule_id):
    rule = get_object_or_404(AlertRule, id=rule_id, budget__project=request.project)

    if request.method == 'DELETE':
        rule.delete()
        return api_success({'id': rule_id})

    data = parse_json_body(request)
    if 'is_active' not in data:
        return api_error('Only is_active can be changed', 'VALIDATION_ERROR')
    rule.is_active = bool(data['is_active'])
    rule.save(update_fields=['is_active'])
    return api_success({'id': rule.id, 'is_active': rule.is_active})
