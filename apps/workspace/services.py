# apps/workspace/services.py

import logging
import re
from typing import Dict, List

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, F, Q

from apps.board.services import create_backlog_item
from apps.core.models import Stakeholder, User
from apps.core.utils import require_choice, to_date, to_int

from .models import (
    DEFAULT_RETRO_COLUMNS,
    CardVote,
    Discussion,
    DiscussionActionItem,
    DiscussionChangeLog,
    Retrospective,
    RetrospectiveActionItem,
    RetrospectiveCard,
    RetrospectiveColumn,
    Risk,
    risk_level,
)

logger = logging.getLogger(__name__)


def _required_text(data: Dict, field: str, label: str) -> str:
    value = (data.get(field) or '').strip()
    if not value:
        raise ValidationError({field: [f'{label} is required']})
    return value


# === DISCUSSIONS ===

DISCUSSION_FIELDS = ['meeting_title', 'meeting_date', 'attendees', 'summary_notes']
ACTION_ITEM_FIELDS = ['task_description', 'owner_id', 'target_date', 'status']


def _clean_attendees(value) -> List[str]:
    if value in (None, ''):
        return []
    if isinstance(value, str):
        value = value.split(',')
    if not isinstance(value, (list, tuple)):
        raise ValidationError({'attendees': ['Attendees must be a list']})
    return [str(name).strip() for name in value if str(name).strip()]


def _clean_discussion(data: Dict, partial: bool) -> Dict:
    cleaned = {}
    if 'meeting_title' in data or not partial:
        cleaned['meeting_title'] = _required_text(data, 'meeting_title', 'Meeting title')
    if 'meeting_date' in data or not partial:
        meeting_date = to_date(data.get('meeting_date'), 'meeting_date')
        if meeting_date is None:
            raise ValidationError({'meeting_date': ['Meeting date is required']})
        cleaned['meeting_date'] = meeting_date
    if 'attendees' in data:
        cleaned['attendees'] = _clean_attendees(data.get('attendees'))
    if 'summary_notes' in data:
        cleaned['summary_notes'] = data.get('summary_notes') or ''
    return cleaned


def _log_changes(discussion, user, old: Dict, new: Dict, action_item=None):
    """One change-log row per field whose value changed"""
    rows = []
    for field, new_value in new.items():
        old_value = old.get(field)
        if old_value == new_value:
            continue
        rows.append(DiscussionChangeLog(
            discussion=discussion,
            action_item=action_item,
            change_type='updated',
            field_name=field,
            old_value=None if old_value is None else str(old_value),
            new_value=None if new_value is None else str(new_value),
            changed_by=user,
        ))
    DiscussionChangeLog.objects.bulk_create(rows)
    return rows


def create_discussion(project, data: Dict, user) -> Discussion:
    discussion = Discussion.objects.create(project=project, created_by=user, **_clean_discussion(data, partial=False))
    DiscussionChangeLog.objects.create(discussion=discussion, change_type='created', changed_by=user)
    return discussion


def update_discussion(discussion: Discussion, data: Dict, user) -> Discussion:
    cleaned = _clean_discussion(data, partial=True)
    old = {field: getattr(discussion, field) for field in cleaned}
    for field, value in cleaned.items():
        setattr(discussion, field, value)
    discussion.save()
    _log_changes(discussion, user, old, cleaned)
    return discussion


def _clean_action_item(data: Dict, partial: bool) -> Dict:
    cleaned = {}
    if 'task_description' in data or not partial:
        cleaned['task_description'] = _required_text(data, 'task_description', 'Description')
    if 'owner' in data:
        owner = data.get('owner')
        if owner in (None, ''):
            cleaned['owner_id'] = None
        elif not User.objects.filter(pk=to_int(owner, 'owner')).exists():
            raise ValidationError({'owner': [f'Unknown user {owner}']})
        else:
            cleaned['owner_id'] = int(owner)
    if 'target_date' in data:
        cleaned['target_date'] = to_date(data.get('target_date'), 'target_date')
    if 'status' in data:
        cleaned['status'] = require_choice(data['status'], DiscussionActionItem.STATUS_CHOICES, 'status')
    return cleaned


def add_action_item(discussion: Discussion, data: Dict, user) -> DiscussionActionItem:
    item = DiscussionActionItem.objects.create(discussion=discussion, **_clean_action_item(data, partial=False))
    DiscussionChangeLog.objects.create(
        discussion=discussion, action_item=item, change_type='created',
        field_name='action_item', new_value=item.task_description, changed_by=user,
    )
    return item


def update_action_item(item: DiscussionActionItem, data: Dict, user) -> DiscussionActionItem:
    cleaned = _clean_action_item(data, partial=True)
    old = {field: getattr(item, field) for field in cleaned}
    for field, value in cleaned.items():
        setattr(item, field, value)
    item.save()
    _log_changes(item.discussion, user, old, cleaned, action_item=item)
    return item


def delete_action_item(item: DiscussionActionItem, user) -> None:
    DiscussionChangeLog.objects.create(
        discussion=item.discussion, change_type='deleted',
        field_name='action_item', old_value=item.task_description, changed_by=user,
    )
    item.delete()


@transaction.atomic
def action_item_to_backlog(item: DiscussionActionItem, user):
    """Copies a discussion action item into the task backlog once"""
    if item.backlog_item_id:
        raise ValidationError('Action item is already in the backlog')

    backlog_item = create_backlog_item(item.discussion.project, {
        'title': item.task_description[:300],
        'description': f'From discussion "{item.discussion.meeting_title}" ({item.discussion.meeting_date})',
        'target_date': item.target_date,
        'source_type': 'discussion',
        'source_id': item.discussion_id,
    }, user)
    item.backlog_item = backlog_item
    item.save(update_fields=['backlog_item', 'updated_at'])
    return backlog_item


def serialize_discussion(discussion: Discussion, with_items: bool = True) -> Dict:
    data = {
        'id': discussion.id,
        'meeting_title': discussion.meeting_title,
        'meeting_date': discussion.meeting_date,
        'attendees': discussion.attendees,
        'summary_notes': discussion.summary_notes,
        'created_at': discussion.created_at,
    }
    if with_items:
        data['action_items'] = [serialize_action_item(i) for i in discussion.action_items.select_related('owner')]
    return data


def serialize_action_item(item: DiscussionActionItem) -> Dict:
    return {
        'id': item.id,
        'discussion_id': item.discussion_id,
        'task_description': item.task_description,
        'owner': {'id': item.owner_id, 'name': item.owner.display_name} if item.owner_id else None,
        'target_date': item.target_date,
        'status': item.status,
        'backlog_item_id': item.backlog_item_id,
    }


# === RISK REGISTER ===

RISK_TEXT_FIELDS = ['description', 'cause', 'consequence', 'owner', 'contingency_plan', 'notes']
RISK_SCALE_FIELDS = ['likelihood', 'impact', 'residual_likelihood', 'residual_impact']


def next_risk_code(project) -> str:
    """R-001, R-002, ... continuing after the highest numeric code"""
    highest = 0
    for code in project.risks.values_list('risk_code', flat=True):
        match = re.fullmatch(r'R-(\d+)', code)
        if match:
            highest = max(highest, int(match.group(1)))
    return f'R-{highest + 1:03d}'


def _clean_mitigation_plan(value) -> List[str]:
    if value in (None, ''):
        return []
    if isinstance(value, str):
        value = value.splitlines()
    if not isinstance(value, (list, tuple)):
        raise ValidationError({'mitigation_plan': ['Mitigation plan must be a list of steps']})
    return [str(step).strip() for step in value if str(step).strip()]


def _clean_risk(data: Dict, partial: bool) -> Dict:
    cleaned = {}
    if 'title' in data or not partial:
        cleaned['title'] = _required_text(data, 'title', 'Title')
    if 'risk_code' in data and (data.get('risk_code') or '').strip():
        cleaned['risk_code'] = data['risk_code'].strip()
    for field in RISK_TEXT_FIELDS:
        if field in data:
            cleaned[field] = data.get(field) or ''
    for field in RISK_SCALE_FIELDS:
        if field in data:
            cleaned[field] = to_int(data.get(field), field, minimum=1, maximum=5)
    if data.get('category'):
        cleaned['category'] = require_choice(data['category'], Risk.CATEGORY_CHOICES, 'category')
    if data.get('response_strategy'):
        cleaned['response_strategy'] = require_choice(
            data['response_strategy'], Risk.STRATEGY_CHOICES, 'response_strategy'
        )
    if data.get('status'):
        cleaned['status'] = require_choice(data['status'], Risk.STATUS_CHOICES, 'status')
    if 'mitigation_plan' in data:
        cleaned['mitigation_plan'] = _clean_mitigation_plan(data.get('mitigation_plan'))
    for field in ('identified_date', 'next_review_date'):
        if field in data:
            cleaned[field] = to_date(data.get(field), field)
    return cleaned


def create_risk(project, data: Dict, user) -> Risk:
    cleaned = _clean_risk(data, partial=False)
    cleaned.setdefault('risk_code', next_risk_code(project))
    if project.risks.filter(risk_code=cleaned['risk_code']).exists():
        raise ValidationError({'risk_code': [f'Risk code {cleaned["risk_code"]} already exists']})
    try:
        with transaction.atomic():
            return Risk.objects.create(project=project, created_by=user, **cleaned)
    except IntegrityError:
        raise ValidationError({'risk_code': [f'Risk code {cleaned["risk_code"]} already exists']})


def update_risk(risk: Risk, data: Dict, user) -> Risk:
    cleaned = _clean_risk(data, partial=True)
    code = cleaned.get('risk_code')
    if code and code != risk.risk_code and risk.project.risks.filter(risk_code=code).exists():
        raise ValidationError({'risk_code': [f'Risk code {code} already exists']})
    for field, value in cleaned.items():
        setattr(risk, field, value)
    risk.save()
    return risk


def filter_risks(queryset, params):
    for field in ('status', 'category'):
        if params.get(field):
            queryset = queryset.filter(**{field: params[field]})
    term = (params.get('q') or '').strip()
    if term:
        queryset = queryset.filter(
            Q(title__icontains=term) | Q(risk_code__icontains=term) | Q(description__icontains=term)
        )
    return queryset


def risk_heatmap(project) -> List[List[int]]:
    """
    5x5 count matrix, rows by impact from 5 down to 1,
    columns by likelihood from 1 to 5
    """
    counts = {
        (row['likelihood'], row['impact']): row['total']
        for row in project.risks.filter(likelihood__isnull=False, impact__isnull=False)
        .order_by()
        .values('likelihood', 'impact')
        .annotate(total=Count('id'))
    }
    return [[counts.get((likelihood, impact), 0) for likelihood in range(1, 6)] for impact in range(5, 0, -1)]


def risk_summary(project) -> Dict:
    by_level = {'Low': 0, 'Medium': 0, 'High': 0, 'Critical': 0, 'N/A': 0}
    for score in project.risks.values_list('risk_score', flat=True):
        by_level[risk_level(score)] += 1
    return {
        'total': sum(by_level.values()),
        'open': project.risks.exclude(status='Closed').count(),
        'by_level': by_level,
    }


def serialize_risk(risk: Risk) -> Dict:
    return {
        'id': risk.id,
        'risk_code': risk.risk_code,
        'title': risk.title,
        'description': risk.description,
        'category': risk.category,
        'cause': risk.cause,
        'consequence': risk.consequence,
        'likelihood': risk.likelihood,
        'impact': risk.impact,
        'risk_score': risk.risk_score,
        'risk_level': risk.level,
        'owner': risk.owner,
        'response_strategy': risk.response_strategy,
        'mitigation_plan': risk.mitigation_plan,
        'contingency_plan': risk.contingency_plan,
        'status': risk.status,
        'identified_date': risk.identified_date,
        'next_review_date': risk.next_review_date,
        'residual_likelihood': risk.residual_likelihood,
        'residual_impact': risk.residual_impact,
        'residual_risk_score': risk.residual_risk_score,
        'residual_level': risk.residual_level,
        'notes': risk.notes,
    }


# === STAKEHOLDERS ===

def _clean_stakeholder(data: Dict, partial: bool) -> Dict:
    cleaned = {}
    if 'name' in data or not partial:
        cleaned['name'] = _required_text(data, 'name', 'Name')
    for field in ('email', 'department', 'notes'):
        if field in data:
            cleaned[field] = (data.get(field) or '').strip()
    if data.get('raci'):
        cleaned['raci'] = require_choice(data['raci'], Stakeholder.RACI_CHOICES, 'raci')
    if data.get('influence_level'):
        cleaned['influence_level'] = require_choice(
            data['influence_level'], Stakeholder.INFLUENCE_CHOICES, 'influence_level'
        )
    return cleaned


def create_stakeholder(project, data: Dict, user) -> Stakeholder:
    return Stakeholder.objects.create(project=project, created_by=user, **_clean_stakeholder(data, partial=False))


def update_stakeholder(stakeholder: Stakeholder, data: Dict, user) -> Stakeholder:
    for field, value in _clean_stakeholder(data, partial=True).items():
        setattr(stakeholder, field, value)
    stakeholder.save()
    return stakeholder


def search_stakeholders(queryset, term: str):
    term = (term or '').strip()
    if not term:
        return queryset
    return queryset.filter(Q(name__icontains=term) | Q(email__icontains=term) | Q(department__icontains=term))


def serialize_stakeholder(stakeholder: Stakeholder) -> Dict:
    return {
        'id': stakeholder.id,
        'name': stakeholder.name,
        'email': stakeholder.email,
        'department': stakeholder.department,
        'raci': stakeholder.raci,
        'influence_level': stakeholder.influence_level,
        'notes': stakeholder.notes,
    }


# === RETROSPECTIVES ===

@transaction.atomic
def create_retrospective(project, data: Dict, user) -> Retrospective:
    """
    Creates a retrospective with the given columns or the Classic set

    data['columns'] may hold strings or {'title', 'subtitle'} dicts.
    """
    from apps.capacity.models import Iteration

    iteration = None
    if data.get('iteration'):
        iteration = Iteration.objects.filter(pk=to_int(data['iteration'], 'iteration'), project=project).first()
        if iteration is None:
            raise ValidationError({'iteration': ['Iteration does not belong to this project']})

    retro = Retrospective.objects.create(
        project=project,
        iteration=iteration,
        title=(data.get('title') or '').strip(),
        framework=(data.get('framework') or 'Classic').strip(),
        created_by=user,
    )

    columns = data.get('columns') or [{'title': t, 'subtitle': s} for t, s in DEFAULT_RETRO_COLUMNS]
    for order, column in enumerate(columns):
        if isinstance(column, str):
            column = {'title': column}
        title = (column.get('title') or '').strip()
        if not title:
            raise ValidationError({'columns': ['Column titles cannot be empty']})
        RetrospectiveColumn.objects.create(
            retrospective=retro, title=title, subtitle=column.get('subtitle') or '', column_order=order,
        )

    logger.info(f"🔁 Retrospective {retro.id} created for project {project.id}")
    return retro


def add_column(retro: Retrospective, title: str, subtitle: str = '') -> RetrospectiveColumn:
    title = (title or '').strip()
    if not title:
        raise ValidationError({'title': ['Column title is required']})
    order = retro.columns.count()
    return RetrospectiveColumn.objects.create(retrospective=retro, title=title, subtitle=subtitle, column_order=order)


def add_card(column: RetrospectiveColumn, text: str, user) -> RetrospectiveCard:
    text = (text or '').strip()
    if not text:
        raise ValidationError({'text': ['Card text is required']})
    if column.retrospective.status != 'active':
        raise ValidationError('Retrospective is closed')
    return RetrospectiveCard.objects.create(column=column, text=text, card_order=column.cards.count(), created_by=user)


@transaction.atomic
def toggle_vote(card: RetrospectiveCard, user) -> bool:
    """
    Adds the user's vote, or removes it when already present

    Returns True when the card ends up voted by the user. card.votes
    always equals the number of vote rows.
    """
    existing = CardVote.objects.filter(card=card, user=user)
    if existing.exists():
        existing.delete()
        voted = False
    else:
        CardVote.objects.create(card=card, user=user)
        voted = True

    RetrospectiveCard.objects.filter(pk=card.pk).update(votes=card.card_votes.count())
    card.refresh_from_db(fields=['votes'])
    return voted


def add_retro_action_item(retro: Retrospective, data: Dict, user) -> RetrospectiveActionItem:
    card = None
    if data.get('card'):
        card = RetrospectiveCard.objects.filter(pk=to_int(data['card'], 'card'), column__retrospective=retro).first()
        if card is None:
            raise ValidationError({'card': ['Card does not belong to this retrospective']})

    return RetrospectiveActionItem.objects.create(
        retrospective=retro,
        card=card,
        what_task=_required_text(data, 'what_task', 'What'),
        when_sprint=(data.get('when_sprint') or '').strip(),
        who_responsible=(data.get('who_responsible') or '').strip(),
        how_approach=(data.get('how_approach') or '').strip(),
        created_by=user,
    )


@transaction.atomic
def convert_retro_action(item: RetrospectiveActionItem, user):
    """Sends a retrospective action item to the backlog"""
    if item.converted_to_task:
        raise ValidationError('Action item was already converted')

    details = [f'Approach: {item.how_approach}' if item.how_approach else '',
               f'Responsible: {item.who_responsible}' if item.who_responsible else '',
               f'When: {item.when_sprint}' if item.when_sprint else '']
    backlog_item = create_backlog_item(item.retrospective.project, {
        'title': item.what_task[:300],
        'description': '\n'.join(d for d in details if d),
        'source_type': 'retrospective',
        'source_id': item.retrospective_id,
    }, user)

    item.backlog_item = backlog_item
    item.converted_to_task = True
    item.save(update_fields=['backlog_item', 'converted_to_task'])
    return backlog_item


def retrospective_analytics(retro: Retrospective) -> Dict:
    cards = RetrospectiveCard.objects.filter(column__retrospective=retro)
    actions = retro.action_items.all()
    return {
        'total_cards': cards.count(),
        'total_votes': CardVote.objects.filter(card__column__retrospective=retro).count(),
        'unique_voters': CardVote.objects.filter(card__column__retrospective=retro)
        .values('user').distinct().count(),
        'action_items': actions.count(),
        'converted': actions.filter(converted_to_task=True).count(),
        'top_cards': [
            {'id': c.id, 'text': c.text, 'votes': c.votes}
            for c in cards.filter(votes__gt=0).order_by(F('votes').desc(), 'id')[:5]
        ],
    }


def serialize_retrospective(retro: Retrospective) -> Dict:
    return {
        'id': retro.id,
        'title': str(retro),
        'framework': retro.framework,
        'status': retro.status,
        'iteration_id': retro.iteration_id,
        'columns': [{
            'id': column.id,
            'title': column.title,
            'subtitle': column.subtitle,
            'cards': [{'id': c.id, 'text': c.text, 'votes': c.votes} for c in column.cards.all()],
        } for column in retro.columns.prefetch_related('cards')],
        'action_items': [{
            'id': a.id,
            'what_task': a.what_task,
            'when_sprint': a.when_sprint,
            'who_responsible': a.who_responsible,
            'how_approach': a.how_approach,
            'converted_to_task': a.converted_to_task,
            'backlog_item_id': a.backlog_item_id,
        } for a in retro.action_items.all()],
    }
