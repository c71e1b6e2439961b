# tests/test_workspace.py

from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError
from django.urls import reverse

from apps.workspace import services
from apps.workspace.models import DiscussionChangeLog, Retrospective, RetrospectiveColumn, Risk, risk_level

pytestmark = pytest.mark.django_db


# === RISKS ===

class TestRisks:
    def test_codes_are_sequential(self, project, coordinator):
        codes = [services.create_risk(project, {'title': f'Risk {n}'}, coordinator).risk_code for n in range(3)]
        assert codes == ['R-001', 'R-002', 'R-003']

    def test_code_continues_after_highest(self, project, coordinator):
        services.create_risk(project, {'title': 'Imported', 'risk_code': 'R-041'}, coordinator)
        services.create_risk(project, {'title': 'Custom', 'risk_code': 'VENDOR-1'}, coordinator)
        assert services.next_risk_code(project) == 'R-042'

    def test_duplicate_code_is_rejected(self, project, coordinator):
        services.create_risk(project, {'title': 'First', 'risk_code': 'R-007'}, coordinator)
        with pytest.raises(ValidationError):
            services.create_risk(project, {'title': 'Second', 'risk_code': 'R-007'}, coordinator)
        assert project.risks.count() == 1

    def test_codes_are_per_project(self, project, coordinator):
        from apps.core import services as core_services

        other = core_services.create_project(coordinator, {'name': 'Other'})
        services.create_risk(project, {'title': 'A'}, coordinator)
        assert services.create_risk(other, {'title': 'B'}, coordinator).risk_code == 'R-001'

    def test_scores_are_derived(self, project, coordinator):
        risk = services.create_risk(project, {
            'title': 'Vendor delay', 'likelihood': 4, 'impact': 5,
            'residual_likelihood': 2, 'residual_impact': 2,
        }, coordinator)

        assert (risk.risk_score, risk.level) == (20, 'High')
        assert (risk.residual_risk_score, risk.residual_level) == (4, 'Low')

        risk = services.update_risk(risk, {'impact': None}, coordinator)
        assert risk.risk_score is None
        assert risk.level == 'N/A'

    @pytest.mark.parametrize('score, level', [
        (None, 'N/A'), (1, 'Low'), (5, 'Low'), (6, 'Medium'), (12, 'Medium'),
        (15, 'High'), (20, 'High'), (25, 'Critical'),
    ])
    def test_levels(self, score, level):
        assert risk_level(score) == level

    def test_scale_is_one_to_five(self, project, coordinator):
        with pytest.raises(ValidationError):
            services.create_risk(project, {'title': 'Bad', 'likelihood': 6, 'impact': 1}, coordinator)

    def test_heatmap_rows_run_from_high_impact(self, project, coordinator):
        services.create_risk(project, {'title': 'a', 'likelihood': 1, 'impact': 5}, coordinator)
        services.create_risk(project, {'title': 'b', 'likelihood': 1, 'impact': 5}, coordinator)
        services.create_risk(project, {'title': 'c', 'likelihood': 5, 'impact': 1}, coordinator)
        services.create_risk(project, {'title': 'unscored'}, coordinator)

        grid = services.risk_heatmap(project)
        assert len(grid) == 5 and all(len(row) == 5 for row in grid)
        assert grid[0][0] == 2
        assert grid[4][4] == 1
        assert sum(map(sum, grid)) == 3

    def test_summary(self, project, coordinator):
        services.create_risk(project, {'title': 'a', 'likelihood': 5, 'impact': 5}, coordinator)
        services.create_risk(project, {'title': 'b', 'likelihood': 1, 'impact': 2, 'status': 'Closed'}, coordinator)
        services.create_risk(project, {'title': 'c'}, coordinator)

        summary = services.risk_summary(project)
        assert summary['total'] == 3
        assert summary['open'] == 2
        assert summary['by_level'] == {'Low': 1, 'Medium': 0, 'High': 0, 'Critical': 1, 'N/A': 1}

    def test_mitigation_plan_from_text(self, project, coordinator):
        risk = services.create_risk(project, {'title': 'x', 'mitigation_plan': 'Step one\n\nStep two'}, coordinator)
        assert risk.mitigation_plan == ['Step one', 'Step two']

    def test_api_create_and_read_only_member(self, api_for, coordinator, member, grant, project):
        created = api_for(coordinator).post(reverse('workspace:api_risks', args=[project.id]),
                                            {'title': 'Scope creep', 'likelihood': 3, 'impact': 3})
        assert created.status_code == 201
        assert created.json_body['data']['risk_code'] == 'R-001'
        assert created.json_body['data']['risk_level'] == 'Medium'

        grant(member, 'risk_register', 'read')
        api = api_for(member)
        assert api.get(reverse('workspace:api_risks', args=[project.id])).status_code == 200
        denied = api.post(reverse('workspace:api_risks', args=[project.id]), {'title': 'Nope'})
        assert denied.status_code == 403
        assert Risk.objects.count() == 1


# === DISCUSSIONS ===

@pytest.fixture
def discussion(project, coordinator, today):
    return services.create_discussion(project, {
        'meeting_title': 'Weekly sync',
        'meeting_date': today,
        'attendees': 'Casey, Morgan',
    }, coordinator)


class TestDiscussions:
    def test_attendees_from_text(self, discussion):
        assert discussion.attendees == ['Casey', 'Morgan']

    def test_title_and_date_required(self, project, coordinator):
        with pytest.raises(ValidationError):
            services.create_discussion(project, {'meeting_title': 'No date'}, coordinator)

    def test_update_logs_each_changed_field(self, discussion, coordinator, today):
        services.update_discussion(discussion, {
            'meeting_title': 'Weekly sync (moved)',
            'meeting_date': today + timedelta(days=1),
            'summary_notes': '',
        }, coordinator)

        changes = DiscussionChangeLog.objects.filter(discussion=discussion, change_type='updated')
        assert sorted(c.field_name for c in changes) == ['meeting_date', 'meeting_title']
        title_change = changes.get(field_name='meeting_title')
        assert (title_change.old_value, title_change.new_value) == ('Weekly sync', 'Weekly sync (moved)')
        assert title_change.changed_by == coordinator

    def test_action_item_to_backlog_once(self, discussion, coordinator, member, today):
        item = services.add_action_item(discussion, {
            'task_description': 'Send notes', 'owner': member.id, 'target_date': today,
        }, coordinator)

        backlog_item = services.action_item_to_backlog(item, coordinator)
        assert backlog_item.source_type == 'discussion'
        assert backlog_item.source_id == str(discussion.id)
        assert backlog_item.title == 'Send notes'
        assert item.backlog_item == backlog_item

        with pytest.raises(ValidationError):
            services.action_item_to_backlog(item, coordinator)

    def test_unknown_owner(self, discussion, coordinator):
        with pytest.raises(ValidationError):
            services.add_action_item(discussion, {'task_description': 'x', 'owner': 9999}, coordinator)

    def test_to_backlog_api_needs_backlog_write(self, api_for, member, grant, discussion, coordinator, project):
        item = services.add_action_item(discussion, {'task_description': 'Send notes'}, coordinator)
        grant(member, 'discussions', 'write')
        url = reverse('workspace:api_action_item_to_backlog', args=[project.id, item.id])

        assert api_for(member).post(url).status_code == 403

        grant(member, 'task_backlog', 'write')
        response = api_for(member).post(url)
        assert response.status_code == 201
        assert response.json_body['data']['action_item']['backlog_item_id'] is not None


# === STAKEHOLDERS ===

def test_stakeholder_search(project, coordinator):
    services.create_stakeholder(project, {'name': 'Dana', 'department': 'Finance', 'raci': 'Consulted'}, coordinator)
    services.create_stakeholder(project, {'name': 'Eli', 'email': 'eli@vendor.test'}, coordinator)

    found = services.search_stakeholders(project.stakeholders.all(), 'finance')
    assert [s.name for s in found] == ['Dana']

    with pytest.raises(ValidationError):
        services.create_stakeholder(project, {'name': 'Fay', 'raci': 'Owner'}, coordinator)


# === RETROSPECTIVES ===

@pytest.fixture
def retro(project, coordinator):
    return services.create_retrospective(project, {'title': 'Sprint 1 retro'}, coordinator)


class TestRetrospectives:
    def test_default_columns(self, retro):
        assert [c.title for c in retro.columns.order_by('column_order')] == [
            'What went well?', 'What could be improved?', 'Action items',
        ]

    def test_custom_columns(self, project, coordinator):
        retro = services.create_retrospective(project, {
            'framework': 'Start/Stop/Continue', 'columns': ['Start', {'title': 'Stop'}, 'Continue'],
        }, coordinator)
        assert [c.title for c in retro.columns.order_by('column_order')] == ['Start', 'Stop', 'Continue']

    def test_vote_toggles(self, retro, coordinator, member):
        card = services.add_card(retro.columns.first(), 'Good pairing', coordinator)

        assert services.toggle_vote(card, member) is True
        assert services.toggle_vote(card, coordinator) is True
        assert card.votes == 2

        assert services.toggle_vote(card, member) is False
        assert card.votes == 1
        assert card.card_votes.count() == 1

    def test_closed_retro_rejects_cards(self, retro, coordinator):
        Retrospective.objects.filter(pk=retro.pk).update(status='completed')
        column = RetrospectiveColumn.objects.get(pk=retro.columns.first().pk)
        with pytest.raises(ValidationError):
            services.add_card(column, 'Too late', coordinator)

    def test_reader_can_vote_but_not_add_cards(self, api_for, member, grant, retro, coordinator, project):
        card = services.add_card(retro.columns.first(), 'Good pairing', coordinator)
        grant(member, 'retrospectives', 'read')
        api = api_for(member)

        vote = api.post(reverse('workspace:api_card_vote', args=[project.id, card.id]))
        assert vote.status_code == 200
        assert vote.json_body['data'] == {'card_id': card.id, 'voted': True, 'votes': 1}

        added = api.post(reverse('workspace:api_retro_cards', args=[project.id, retro.columns.first().id]),
                         {'text': 'Sneaky'})
        assert added.status_code == 403

    def test_convert_action_item(self, retro, coordinator):
        card = services.add_card(retro.columns.last(), 'Automate deploys', coordinator)
        item = services.add_retro_action_item(retro, {
            'what_task': 'Automate deploys', 'who_responsible': 'Morgan', 'card': card.id,
        }, coordinator)

        backlog_item = services.convert_retro_action(item, coordinator)
        assert backlog_item.source_type == 'retrospective'
        assert 'Responsible: Morgan' in backlog_item.description
        assert item.converted_to_task

        with pytest.raises(ValidationError):
            services.convert_retro_action(item, coordinator)

    def test_action_item_card_must_belong_to_retro(self, project, retro, coordinator):
        other = services.create_retrospective(project, {}, coordinator)
        foreign_card = services.add_card(other.columns.first(), 'Elsewhere', coordinator)
        with pytest.raises(ValidationError):
            services.add_retro_action_item(retro, {'what_task': 'x', 'card': foreign_card.id}, coordinator)

    def test_analytics(self, retro, coordinator, member):
        first = services.add_card(retro.columns.first(), 'Good pairing', coordinator)
        second = services.add_card(retro.columns.first(), 'Fast reviews', coordinator)
        services.toggle_vote(first, member)
        services.toggle_vote(first, coordinator)
        services.toggle_vote(second, member)
        services.add_retro_action_item(retro, {'what_task': 'Keep pairing'}, coordinator)

        analytics = services.retrospective_analytics(retro)
        assert analytics['total_cards'] == 2
        assert analytics['total_votes'] == 3
        assert analytics['unique_voters'] == 2
        assert analytics['action_items'] == 1
        assert analytics['converted'] == 0
        assert [c['id'] for c in analytics['top_cards']] == [first.id, second.id]


@pytest.mark.parametrize('name', ['discussions', 'risks', 'stakeholders', 'retrospectives'])
def test_pages_render(client_for, coordinator, project, name):
    assert client_for(coordinator).get(reverse(f'workspace:{name}', args=[project.id])).status_code == 200


def test_retrospective_detail_renders(client_for, coordinator, project, retro):
    url = reverse('workspace:retrospective_detail', args=[project.id, retro.id])
    assert client_for(coordinator).get(url).status_code == 200


class TestBadInput:
    @pytest.mark.parametrize('name, payload', [
        ('api_discussions', {'meeting_title': 'Sync', 'meeting_date': '2025-02-30'}),
        ('api_risks', {'title': 'Late vendor', 'identified_date': '2025-02-30'}),
        ('api_retrospectives', {'title': 'Retro', 'iteration': 'abc'}),
    ])
    def test_api_rejects_bad_values(self, api_for, coordinator, project, name, payload):
        response = api_for(coordinator).post(reverse(f'workspace:{name}', args=[project.id]), payload)
        assert response.status_code == 400
        assert response.json_body['code'] == 'VALIDATION_ERROR'

    def test_action_item_owner_must_be_numeric(self, discussion, coordinator):
        with pytest.raises(ValidationError):
            services.add_action_item(discussion, {'task_description': 'Follow up', 'owner': 'abc'}, coordinator)

    def test_retro_action_card_must_be_numeric(self, retro, coordinator):
        with pytest.raises(ValidationError):
            services.add_retro_action_item(retro, {'what_task': 'Fix CI', 'card': 'abc'}, coordinator)
