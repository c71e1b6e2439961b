# apps/reports/analytics.py

from decimal import Decimal
from typing import Dict, Optional

from django.conf import settings
from django.db.models import Avg, Sum
from django.utils import timezone

from apps.board.models import Task
from apps.capacity.models import IterationMember
from apps.core.utils import percent


def health_scores(budget_allocated, budget_spent, milestones_total, milestones_completed,
                  risks_total, risks_high, avg_availability) -> Dict:
    """
    0-100 health per area and the overall mean

    Every ratio falls back to 0 when its denominator is empty.
    """
    allocated = float(budget_allocated or 0)
    if allocated > 0:
        budget = 100 - min(100.0, float(budget_spent or 0) / allocated * 100)
    else:
        budget = 0.0

    timeline = float(percent(milestones_completed, milestones_total, 2))
    risks = (1 - risks_high / risks_total) * 100 if risks_total else 0.0
    team = float(avg_availability or 0)

    scores = {
        'budget': round(budget, 1),
        'timeline': round(timeline, 1),
        'risks': round(risks, 1),
        'team': round(team, 1),
    }
    scores['overall'] = round(sum(scores.values()) / 4, 1)
    return scores


def _task_stats(project, today) -> Dict:
    tasks = project.tasks.all()
    completed = [t for t in tasks if t.status == Task.STATUS_COMPLETED]
    durations = [
        (t.completed_at - t.created_at).total_seconds() / 86400
        for t in completed if t.completed_at and t.created_at
    ]
    return {
        'total': len(tasks),
        'completed': len(completed),
        'in_progress': sum(1 for t in tasks if t.status == Task.STATUS_IN_PROGRESS),
        'blocked': sum(1 for t in tasks if t.status == Task.STATUS_BLOCKED),
        'overdue': sum(1 for t in tasks if t.is_overdue(today)),
        'avg_completion_days': round(sum(durations) / len(durations), 1) if durations else 0,
        'completion_rate': percent(len(completed), len(tasks)),
    }


def _budget_stats(project) -> Dict:
    from apps.budget.models import ProjectBudget

    budget: Optional[ProjectBudget] = ProjectBudget.objects.filter(project=project).first()
    if budget is None:
        return {'currency': settings.ORBIT_DEFAULT_CURRENCY, 'allocated': 0.0, 'spent': 0.0}

    spent = budget.categories.aggregate(total=Sum('amount_spent'))['total'] or Decimal('0')
    allocated = budget.total_allocated or budget.categories.aggregate(
        total=Sum('budget_allocated'))['total'] or Decimal('0')
    return {'currency': budget.currency, 'allocated': float(allocated), 'spent': float(spent)}


def project_overview(project, today=None) -> Dict:
    """Cross-module numbers shown on the overview page and in the reports"""
    today = today or timezone.localdate()

    milestones = project.milestones.all()
    milestones_total = milestones.count()
    milestones_completed = milestones.filter(status='completed').count()

    high_score = settings.ORBIT_HIGH_RISK_SCORE
    risks = project.risks.all()
    risks_total = risks.count()
    risks_high = risks.filter(risk_score__gte=high_score).count()

    members = IterationMember.objects.filter(iteration__project=project)
    capacity = members.aggregate(
        availability=Avg('availability_percent'),
        capacity_days=Avg('effective_capacity_days'),
    )
    avg_availability = round(float(capacity['availability'] or 0), 1)

    budget = _budget_stats(project)

    return {
        'project': {'id': project.id, 'name': project.name, 'status': project.status},
        'tasks': _task_stats(project, today),
        'milestones': {
            'total': milestones_total,
            'completed': milestones_completed,
            'completion_rate': percent(milestones_completed, milestones_total),
        },
        'risks': {
            'total': risks_total,
            'high': risks_high,
            'mitigated': risks.filter(status='Closed').count(),
        },
        'stakeholders': {'total': project.stakeholders.count()},
        'capacity': {
            'members': members.count(),
            'avg_availability': avg_availability,
            'avg_capacity_days': round(float(capacity['capacity_days'] or 0), 1),
        },
        'budget': budget,
        'health': health_scores(
            budget['allocated'], budget['spent'],
            milestones_total, milestones_completed,
            risks_total, risks_high,
            avg_availability,
        ),
    }
