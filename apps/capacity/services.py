# apps/capacity/services.py

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

from django.core.exceptions import ValidationError
from django.db import transaction

from apps.core.models import Stakeholder
from apps.core.utils import require_choice, to_date, to_decimal, to_int

from .models import (
    WORK_MODE_CHOICES,
    CapacitySettings,
    Iteration,
    IterationMember,
    Team,
    TeamMember,
)

logger = logging.getLogger(__name__)


# === SETTINGS ===

def get_settings(project) -> CapacitySettings:
    settings_row, _ = CapacitySettings.objects.get_or_create(project=project)
    return settings_row


def update_settings(project, data: Dict) -> CapacitySettings:
    settings_row = get_settings(project)
    if data.get('iteration_basis'):
        settings_row.iteration_basis = require_choice(
            data['iteration_basis'], CapacitySettings.BASIS_CHOICES, 'iteration_basis'
        )
    if 'work_week' in data:
        settings_row.work_week = to_int(data['work_week'], 'work_week', minimum=1, maximum=7) or 5
    for mode in ('office', 'wfh', 'hybrid'):
        field = f'{mode}_weight'
        if field in data:
            weight = to_decimal(data[field], field)
            if weight < 0 or weight > 1:
                raise ValidationError({field: ['Weight must be between 0 and 1']})
            setattr(settings_row, field, weight)
    settings_row.save()

    # stored capacities follow the new weights
    for member in IterationMember.objects.filter(iteration__project=project).select_related('iteration'):
        member.save()
    return settings_row


# === ITERATIONS ===

def _clean_iteration(data: Dict, partial: bool) -> Dict:
    cleaned = {}
    if 'iteration_name' in data or not partial:
        name = (data.get('iteration_name') or '').strip()
        if not name:
            raise ValidationError({'iteration_name': ['Iteration name is required']})
        cleaned['iteration_name'] = name
    for field in ('start_date', 'end_date'):
        if field in data or not partial:
            value = to_date(data.get(field), field)
            if value is None:
                raise ValidationError({field: ['Date is required']})
            cleaned[field] = value
    if 'working_days' in data:
        cleaned['working_days'] = to_int(data['working_days'], 'working_days', minimum=0) or 0
    if 'committed_story_points' in data:
        cleaned['committed_story_points'] = to_int(
            data['committed_story_points'], 'committed_story_points', minimum=0
        ) or 0
    return cleaned


def create_iteration(project, data: Dict) -> Iteration:
    iteration = Iteration(project=project, **_clean_iteration(data, partial=False))
    iteration.full_clean()
    iteration.save()
    return iteration


def update_iteration(iteration: Iteration, data: Dict) -> Iteration:
    for field, value in _clean_iteration(data, partial=True).items():
        setattr(iteration, field, value)
    iteration.full_clean()
    iteration.save()

    if 'working_days' in data:
        for member in iteration.members.all():
            member.save()
    return iteration


# === TEAMS ===

def create_team(project, data: Dict) -> Team:
    name = (data.get('team_name') or '').strip()
    if not name:
        raise ValidationError({'team_name': ['Team name is required']})
    if project.teams.filter(team_name=name).exists():
        raise ValidationError({'team_name': [f'Team "{name}" already exists']})
    return Team.objects.create(project=project, team_name=name, description=data.get('description') or '')


def _stakeholder(project, value):
    if value in (None, ''):
        return None
    stakeholder = Stakeholder.objects.filter(pk=to_int(value, 'stakeholder'), project=project).first()
    if stakeholder is None:
        raise ValidationError({'stakeholder': ['Stakeholder does not belong to this project']})
    return stakeholder


def _member_name(data: Dict, stakeholder) -> str:
    name = (data.get('member_name') or '').strip() or (stakeholder.name if stakeholder else '')
    if not name:
        raise ValidationError({'member_name': ['A stakeholder or a member name is required']})
    return name


def _availability(value, field):
    number = to_int(value, field, minimum=0, maximum=100)
    return 100 if number is None else number


def add_team_member(team: Team, data: Dict) -> TeamMember:
    stakeholder = _stakeholder(team.project, data.get('stakeholder'))
    return TeamMember.objects.create(
        team=team,
        stakeholder=stakeholder,
        member_name=_member_name(data, stakeholder),
        role=(data.get('role') or '').strip(),
        work_mode=require_choice(data.get('work_mode') or 'office', WORK_MODE_CHOICES, 'work_mode'),
        default_availability_percent=_availability(data.get('default_availability_percent'),
                                                   'default_availability_percent'),
        default_leaves=to_decimal(data.get('default_leaves'), 'default_leaves'),
    )


# === ITERATION MEMBERS ===

def add_iteration_member(iteration: Iteration, data: Dict) -> IterationMember:
    stakeholder = _stakeholder(iteration.project, data.get('stakeholder'))
    team = None
    if data.get('team'):
        team = iteration.project.teams.filter(pk=to_int(data['team'], 'team')).first()
        if team is None:
            raise ValidationError({'team': ['Team does not belong to this project']})

    member = IterationMember(
        iteration=iteration,
        team=team,
        stakeholder=stakeholder,
        member_name=_member_name(data, stakeholder),
        role=(data.get('role') or '').strip(),
        work_mode=require_choice(data.get('work_mode') or 'office', WORK_MODE_CHOICES, 'work_mode'),
        availability_percent=_availability(data.get('availability_percent'), 'availability_percent'),
        leaves=to_decimal(data.get('leaves'), 'leaves'),
    )
    member.full_clean(exclude=['effective_capacity_days'])
    member.save()
    return member


def update_iteration_member(member: IterationMember, data: Dict) -> IterationMember:
    if data.get('work_mode'):
        member.work_mode = require_choice(data['work_mode'], WORK_MODE_CHOICES, 'work_mode')
    if 'availability_percent' in data:
        member.availability_percent = _availability(data['availability_percent'], 'availability_percent')
    if 'leaves' in data:
        member.leaves = to_decimal(data['leaves'], 'leaves')
    if 'role' in data:
        member.role = (data.get('role') or '').strip()
    member.full_clean(exclude=['effective_capacity_days'])
    member.save()
    return member


@transaction.atomic
def populate_from_team(iteration: Iteration, team: Team) -> int:
    """Copies the team roster into the iteration, skipping names already there"""
    existing = set(iteration.members.values_list('member_name', flat=True))
    added = 0
    for roster in team.members.all():
        if roster.member_name in existing:
            continue
        IterationMember.objects.create(
            iteration=iteration,
            team=team,
            stakeholder=roster.stakeholder,
            member_name=roster.member_name,
            role=roster.role,
            work_mode=roster.work_mode,
            availability_percent=roster.default_availability_percent,
            leaves=min(roster.default_leaves, Decimal(iteration.working_days)),
        )
        added += 1
    logger.info(f"👥 {added} members copied from team {team.id} to iteration {iteration.id}")
    return added


# === SUMMARY ===

def _one_decimal(value) -> float:
    return float(Decimal(value).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def capacity_summary(project) -> Dict:
    """Total capacity of the project and capacity vs commitment per iteration"""
    iterations = list(project.iterations.prefetch_related('members'))
    rows = []
    total = Decimal('0')
    for iteration in iterations:
        capacity = iteration.total_capacity()
        total += capacity
        rows.append({
            'id': iteration.id,
            'iteration_name': iteration.iteration_name,
            'start_date': iteration.start_date,
            'end_date': iteration.end_date,
            'working_days': iteration.working_days,
            'members': len(iteration.members.all()),
            'capacity_days': _one_decimal(capacity),
            'committed_story_points': iteration.committed_story_points,
        })
    return {
        'iterations': len(iterations),
        'total_capacity_days': _one_decimal(total),
        'by_iteration': rows,
    }


def serialize_iteration(iteration: Iteration) -> Dict:
    return {
        'id': iteration.id,
        'iteration_name': iteration.iteration_name,
        'start_date': iteration.start_date,
        'end_date': iteration.end_date,
        'working_days': iteration.working_days,
        'committed_story_points': iteration.committed_story_points,
        'total_capacity_days': _one_decimal(iteration.total_capacity()),
        'members': [serialize_member(m) for m in iteration.members.all()],
    }


def serialize_member(member: IterationMember) -> Dict:
    return {
        'id': member.id,
        'member_name': member.member_name,
        'role': member.role,
        'team_id': member.team_id,
        'stakeholder_id': member.stakeholder_id,
        'work_mode': member.work_mode,
        'availability_percent': member.availability_percent,
        'leaves': member.leaves,
        'effective_capacity_days': member.effective_capacity_days,
    }
