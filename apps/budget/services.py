# apps/budget/services.py

import logging
from decimal import Decimal
from typing import Dict, List

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum

from apps.core.utils import require_choice, to_date, to_decimal, to_int

from .models import AlertRule, BudgetCategory, BudgetComment, BudgetType, ProjectBudget, Receipt, Spending

logger = logging.getLogger(__name__)


def _money(value) -> float:
    return float(Decimal(value or 0).quantize(Decimal('0.01')))


def _non_negative(value, field) -> Decimal:
    amount = to_decimal(value, field)
    if amount < 0:
        raise ValidationError({field: ['Amount cannot be negative']})
    return amount


# === BUDGET ===

def enabled_budget_types():
    return BudgetType.objects.filter(enabled=True)


@transaction.atomic
def upsert_budget(project, data: Dict, user) -> ProjectBudget:
    """Creates the project's budget or updates the fields present in data"""
    budget, created = ProjectBudget.objects.get_or_create(project=project, defaults={'created_by': user})

    if data.get('currency'):
        currency = str(data['currency']).strip().upper()
        if len(currency) != 3:
            raise ValidationError({'currency': ['Currency must be a 3-letter code']})
        budget.currency = currency
    for field in ('total_allocated', 'total_received'):
        if field in data:
            setattr(budget, field, _non_negative(data[field], field))
    for field in ('start_date', 'end_date'):
        if field in data:
            setattr(budget, field, to_date(data[field], field))
    if budget.start_date and budget.end_date and budget.end_date < budget.start_date:
        raise ValidationError({'end_date': ['End date cannot be before start date']})

    budget.save()
    logger.info(f"💰 Budget {'created' if created else 'updated'} for project {project.id}")
    return budget


# === CATEGORIES ===

def _clean_category(data: Dict, partial: bool) -> Dict:
    cleaned = {}
    if 'budget_type_code' in data or not partial:
        code = (data.get('budget_type_code') or '').strip().upper()
        if not enabled_budget_types().filter(code=code).exists():
            raise ValidationError({'budget_type_code': [f'Unknown or disabled budget type "{code}"']})
        cleaned['budget_type_code'] = code
    if 'name' in data or not partial:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError({'name': ['Category name is required']})
        cleaned['name'] = name
    for field in ('budget_allocated', 'budget_received'):
        if field in data:
            cleaned[field] = _non_negative(data[field], field)
    if 'comments' in data:
        cleaned['comments'] = data.get('comments') or ''
    return cleaned


def create_category(budget: ProjectBudget, data: Dict, user) -> BudgetCategory:
    return BudgetCategory.objects.create(budget=budget, created_by=user, **_clean_category(data, partial=False))


def update_category(category: BudgetCategory, data: Dict) -> BudgetCategory:
    for field, value in _clean_category(data, partial=True).items():
        setattr(category, field, value)
    category.save()
    return category


def recompute_spent(category: BudgetCategory) -> Decimal:
    """amount_spent = sum of the category's paid spending"""
    total = category.spending.filter(status='paid').aggregate(total=Sum('amount'))['total'] or Decimal('0')
    BudgetCategory.objects.filter(pk=category.pk).update(amount_spent=total)
    category.amount_spent = total
    return total


# === SPENDING ===

def _clean_spending(data: Dict, partial: bool) -> Dict:
    cleaned = {}
    if 'date' in data or not partial:
        spent_on = to_date(data.get('date'), 'date')
        if spent_on is None:
            raise ValidationError({'date': ['Date is required']})
        cleaned['date'] = spent_on
    if 'description' in data or not partial:
        description = (data.get('description') or '').strip()
        if not description:
            raise ValidationError({'description': ['Description is required']})
        cleaned['description'] = description
    if 'amount' in data or not partial:
        amount = to_decimal(data.get('amount'), 'amount', default=None)
        if amount is None or amount <= 0:
            raise ValidationError({'amount': ['Amount must be greater than zero']})
        cleaned['amount'] = amount
    for field in ('vendor', 'invoice_id', 'payment_method'):
        if field in data:
            cleaned[field] = (data.get(field) or '').strip()
    if data.get('status'):
        cleaned['status'] = require_choice(data['status'], Spending.STATUS_CHOICES, 'status')
    return cleaned


@transaction.atomic
def add_spending(category: BudgetCategory, data: Dict, user) -> Spending:
    spending = Spending.objects.create(category=category, created_by=user, **_clean_spending(data, partial=False))
    recompute_spent(category)
    return spending


@transaction.atomic
def update_spending(spending: Spending, data: Dict, user) -> Spending:
    cleaned = _clean_spending(data, partial=True)
    for field, value in cleaned.items():
        setattr(spending, field, value)
    if cleaned.get('status') == 'approved':
        spending.approved_by = user
    spending.save()
    recompute_spent(spending.category)
    return spending


@transaction.atomic
def delete_spending(spending: Spending) -> None:
    category = spending.category
    spending.delete()
    recompute_spent(category)


# === RECEIPTS / COMMENTS / ALERTS ===

def add_receipt(budget: ProjectBudget, data: Dict, user) -> Receipt:
    received_on = to_date(data.get('date'), 'date')
    if received_on is None:
        raise ValidationError({'date': ['Date is required']})
    source = (data.get('source') or '').strip()
    if not source:
        raise ValidationError({'source': ['Source is required']})
    amount = to_decimal(data.get('amount'), 'amount', default=None)
    if amount is None or amount <= 0:
        raise ValidationError({'amount': ['Amount must be greater than zero']})

    category = None
    if data.get('restricted_to_category'):
        category = budget.categories.filter(pk=to_int(data['restricted_to_category'], 'restricted_to_category')).first()
        if category is None:
            raise ValidationError({'restricted_to_category': ['Category does not belong to this budget']})

    return Receipt.objects.create(
        budget=budget,
        date=received_on,
        source=source,
        amount=amount,
        notes=data.get('notes') or '',
        is_restricted=category is not None,
        restricted_to_category=category,
        received_by=user,
    )


def add_comment(budget: ProjectBudget, text: str, user) -> BudgetComment:
    text = (text or '').strip()
    if not text:
        raise ValidationError({'text': ['Comment cannot be empty']})
    return BudgetComment.objects.create(budget=budget, author=user, text=text)


def add_alert_rule(budget: ProjectBudget, data: Dict, user) -> AlertRule:
    condition = require_choice(data.get('condition_type'), AlertRule.CONDITION_CHOICES, 'condition_type')
    threshold = to_decimal(data.get('threshold_value'), 'threshold_value', default=None)
    if condition != 'overspend' and threshold is None:
        raise ValidationError({'threshold_value': ['A threshold is required for this condition']})
    message = (data.get('message') or '').strip()
    if not message:
        raise ValidationError({'message': ['Message is required']})

    return AlertRule.objects.create(
        budget=budget,
        condition_type=condition,
        threshold_value=threshold,
        severity=require_choice(data.get('severity') or 'medium', AlertRule.SEVERITY_CHOICES, 'severity'),
        message=message,
        created_by=user,
    )


def rule_triggered(rule: AlertRule, received: Decimal, spent: Decimal) -> bool:
    threshold = rule.threshold_value
    if rule.condition_type == 'percent_spent':
        return received > 0 and spent / received * 100 >= threshold
    if rule.condition_type == 'overspend':
        return spent > received
    if rule.condition_type == 'remaining_below':
        return received - spent < threshold
    return False


# === ANALYTICS ===

def budget_analytics(budget: ProjectBudget) -> Dict:
    """
    Totals, variance and category breakdown

    Allocated and received totals are the category sums or the budget
    row, whichever is higher, so a budget whose categories are not set up
    yet still shows its money. variance = received - spent; percentages
    are 0 when nothing was received and rounded to 2 decimals.
    """
    zero = Decimal('0')
    categories = list(budget.categories.all())
    allocated = max(sum((c.budget_allocated for c in categories), zero), budget.total_allocated or zero)
    received = max(sum((c.budget_received for c in categories), zero), budget.total_received or zero)
    spent = sum((c.amount_spent for c in categories), zero)
    remaining = received - spent

    breakdown: List[Dict] = []
    for category in categories:
        cat_received = category.budget_received
        breakdown.append({
            'id': category.id,
            'code': category.budget_type_code,
            'name': category.name,
            'allocated': _money(category.budget_allocated),
            'received': _money(cat_received),
            'spent': _money(category.amount_spent),
            'variance': _money(cat_received - category.amount_spent),
            'percent_spent': round(float(category.amount_spent / cat_received * 100), 2) if cat_received > 0 else 0,
        })

    alerts = [{
        'id': rule.id,
        'condition_type': rule.condition_type,
        'severity': rule.severity,
        'message': rule.message,
    } for rule in budget.alert_rules.filter(is_active=True) if rule_triggered(rule, received, spent)]

    return {
        'currency': budget.currency,
        'totals': {
            'allocated_total': _money(allocated),
            'received_total': _money(received),
            'spent_total': _money(spent),
            'remaining_total': _money(remaining),
        },
        'variance_summary': {
            'overall_variance_amount': _money(remaining),
            'overall_variance_percent': round(float(remaining / received * 100), 2) if received > 0 else 0,
        },
        'category_breakdown': breakdown,
        'alerts': alerts,
    }


def serialize_budget(budget: ProjectBudget) -> Dict:
    return {
        'id': budget.id,
        'project_id': budget.project_id,
        'currency': budget.currency,
        'total_allocated': _money(budget.total_allocated),
        'total_received': _money(budget.total_received),
        'start_date': budget.start_date,
        'end_date': budget.end_date,
        'categories': [serialize_category(c) for c in budget.categories.all()],
        'analytics': budget_analytics(budget),
    }


def serialize_category(category: BudgetCategory) -> Dict:
    return {
        'id': category.id,
        'budget_type_code': category.budget_type_code,
        'name': category.name,
        'budget_allocated': _money(category.budget_allocated),
        'budget_received': _money(category.budget_received),
        'amount_spent': _money(category.amount_spent),
        'comments': category.comments,
    }


def serialize_spending(spending: Spending) -> Dict:
    return {
        'id': spending.id,
        'category_id': spending.category_id,
        'date': spending.date,
        'vendor': spending.vendor,
        'description': spending.description,
        'invoice_id': spending.invoice_id,
        'amount': _money(spending.amount),
        'payment_method': spending.payment_method,
        'status': spending.status,
    }
