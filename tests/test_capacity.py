# tests/test_capacity.py

from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.urls import reverse

from apps.capacity import services
from apps.capacity.models import effective_capacity


@pytest.mark.parametrize('working_days, leaves, availability, mode, expected', [
    (10, 0, 100, 'office', Decimal('10.00')),
    (10, 2, 80, 'wfh', Decimal('5.76')),
    (10, 1, 50, 'hybrid', Decimal('4.28')),
    (10, 12, 100, 'office', Decimal('0.00')),
    (10, 0, 100, 'moon', Decimal('10.00')),
    (0, 0, 100, 'office', Decimal('0.00')),
])
def test_effective_capacity(working_days, leaves, availability, mode, expected):
    assert effective_capacity(working_days, leaves, availability, mode) == expected


def test_custom_weights():
    assert effective_capacity(10, 0, 100, 'wfh', {'wfh': 0.5}) == Decimal('5.00')


@pytest.fixture
def iteration(project, today):
    return services.create_iteration(project, {
        'iteration_name': 'Sprint 1',
        'start_date': today,
        'end_date': today + timedelta(days=13),
        'working_days': 10,
        'committed_story_points': 30,
    })


@pytest.mark.django_db
class TestIterations:
    def test_end_before_start(self, project, today):
        with pytest.raises(ValidationError):
            services.create_iteration(project, {
                'iteration_name': 'Backwards', 'start_date': today, 'end_date': today - timedelta(days=1),
            })

    def test_member_capacity_is_stored(self, iteration):
        member = services.add_iteration_member(iteration, {
            'member_name': 'Morgan', 'work_mode': 'wfh', 'availability_percent': 80, 'leaves': '2',
        })
        assert member.effective_capacity_days == Decimal('5.76')

    def test_leaves_cannot_exceed_working_days(self, iteration):
        with pytest.raises(ValidationError):
            services.add_iteration_member(iteration, {'member_name': 'Morgan', 'leaves': '11'})

    def test_availability_bounds(self, iteration):
        with pytest.raises(ValidationError):
            services.add_iteration_member(iteration, {'member_name': 'Morgan', 'availability_percent': 120})

    def test_name_or_stakeholder_required(self, iteration):
        with pytest.raises(ValidationError):
            services.add_iteration_member(iteration, {'role': 'Developer'})

    def test_new_weights_recompute_members(self, project, iteration):
        member = services.add_iteration_member(iteration, {'member_name': 'Morgan', 'work_mode': 'wfh'})
        assert member.effective_capacity_days == Decimal('9.00')

        services.update_settings(project, {'wfh_weight': '0.5'})

        member.refresh_from_db()
        assert member.effective_capacity_days == Decimal('5.00')

    def test_weight_must_be_a_fraction(self, project):
        with pytest.raises(ValidationError):
            services.update_settings(project, {'office_weight': '1.5'})

    def test_working_days_change_recomputes(self, iteration):
        member = services.add_iteration_member(iteration, {'member_name': 'Morgan'})
        services.update_iteration(iteration, {'working_days': 5})
        member.refresh_from_db()
        assert member.effective_capacity_days == Decimal('5.00')

    def test_populate_from_team_skips_existing(self, project, iteration):
        team = services.create_team(project, {'team_name': 'Core'})
        services.add_team_member(team, {'member_name': 'Morgan', 'work_mode': 'hybrid'})
        services.add_team_member(team, {'member_name': 'Casey', 'default_availability_percent': 50,
                                        'default_leaves': '20'})
        services.add_iteration_member(iteration, {'member_name': 'Morgan'})

        assert services.populate_from_team(iteration, team) == 1
        casey = iteration.members.get(member_name='Casey')
        assert casey.leaves == Decimal('10')
        assert casey.effective_capacity_days == Decimal('0.00')
        assert services.populate_from_team(iteration, team) == 0

    def test_duplicate_team_name(self, project):
        services.create_team(project, {'team_name': 'Core'})
        with pytest.raises(ValidationError):
            services.create_team(project, {'team_name': 'Core'})

    def test_summary(self, project, iteration, today):
        services.add_iteration_member(iteration, {'member_name': 'Morgan'})
        services.add_iteration_member(iteration, {'member_name': 'Casey', 'work_mode': 'hybrid',
                                                  'availability_percent': 50, 'leaves': '1'})
        second = services.create_iteration(project, {
            'iteration_name': 'Sprint 2', 'start_date': today + timedelta(days=14),
            'end_date': today + timedelta(days=27), 'working_days': 10,
        })
        services.add_iteration_member(second, {'member_name': 'Morgan', 'availability_percent': 25})

        summary = services.capacity_summary(project)
        assert summary['iterations'] == 2
        assert summary['total_capacity_days'] == 16.8
        first_row = summary['by_iteration'][0]
        assert first_row['iteration_name'] == 'Sprint 1'
        assert first_row['members'] == 2
        assert first_row['capacity_days'] == 14.3
        assert first_row['committed_story_points'] == 30


@pytest.mark.django_db
class TestCapacityApi:
    def test_reader_sees_summary_but_cannot_add(self, api_for, member, grant, project, iteration):
        grant(member, 'team_capacity', 'read')
        api = api_for(member)

        summary = api.get(reverse('capacity:api_summary', args=[project.id]))
        assert summary.status_code == 200
        assert summary.json_body['data']['iterations'] == 1

        denied = api.post(reverse('capacity:api_iteration_members', args=[project.id, iteration.id]),
                          {'member_name': 'Sneaky'})
        assert denied.status_code == 403

    def test_owner_adds_member(self, api_for, coordinator, project, iteration):
        response = api_for(coordinator).post(
            reverse('capacity:api_iteration_members', args=[project.id, iteration.id]),
            {'member_name': 'Morgan', 'availability_percent': 50},
        )
        assert response.status_code == 201
        assert response.json_body['data']['effective_capacity_days'] == '5.00'

    def test_page_renders(self, client_for, coordinator, project, iteration):
        assert client_for(coordinator).get(reverse('capacity:overview', args=[project.id])).status_code == 200


class TestBadInput:
    def test_weight_must_be_finite(self, api_for, coordinator, project):
        response = api_for(coordinator).patch(reverse('capacity:api_settings', args=[project.id]),
                                              {'office_weight': 'NaN'})
        assert response.status_code == 400
        assert response.json_body['code'] == 'VALIDATION_ERROR'

    @pytest.mark.parametrize('payload', [
        {'member_name': 'Morgan', 'stakeholder': 'abc'},
        {'member_name': 'Morgan', 'team': 'core'},
    ])
    def test_member_references_must_be_numeric(self, api_for, coordinator, project, iteration, payload):
        response = api_for(coordinator).post(
            reverse('capacity:api_iteration_members', args=[project.id, iteration.id]), payload
        )
        assert response.status_code == 400
        assert not iteration.members.exists()

    def test_impossible_iteration_date(self, project, today):
        with pytest.raises(ValidationError):
            services.create_iteration(project, {
                'iteration_name': 'Sprint 9', 'start_date': '2025-02-30', 'end_date': today,
            })
