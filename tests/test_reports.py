# tests/test_reports.py

import csv
import io
from datetime import timedelta

import pytest
from django.urls import reverse

from apps.board import services as board_services
from apps.budget import services as budget_services
from apps.budget.models import BudgetType
from apps.capacity import services as capacity_services
from apps.reports import exports
from apps.reports.analytics import health_scores, project_overview
from apps.workspace import services as workspace_services


def test_health_scores():
    scores = health_scores(1000, 250, 4, 1, 4, 1, 85)
    assert scores == {'budget': 75.0, 'timeline': 25.0, 'risks': 75.0, 'team': 85.0, 'overall': 65.0}


def test_health_scores_with_empty_project():
    assert health_scores(0, 0, 0, 0, 0, 0, None) == {
        'budget': 0.0, 'timeline': 0.0, 'risks': 0.0, 'team': 0.0, 'overall': 0.0,
    }


def test_overspent_budget_floors_at_zero():
    assert health_scores(100, 150, 0, 0, 0, 0, 0)['budget'] == 0.0


@pytest.fixture
def populated(project, coordinator, today):
    done = board_services.create_milestone(project, {'name': 'Done', 'status': 'completed'}, coordinator)
    board_services.create_milestone(project, {'name': 'Next'}, coordinator)

    first = board_services.create_task(project, {'title': 'Shipped', 'milestone': done.id}, coordinator)
    board_services.move_task_status(first, 'completed', coordinator)
    board_services.create_task(project, {'title': 'Late', 'due_date': today - timedelta(days=2)}, coordinator)
    board_services.create_task(project, {'title': 'Stuck', 'status': 'blocked'}, coordinator)
    board_services.create_task(project, {'title': 'Doing, "quoted"', 'status': 'in_progress'}, coordinator)

    workspace_services.create_risk(project, {'title': 'Big', 'likelihood': 3, 'impact': 3}, coordinator)
    workspace_services.create_risk(project, {'title': 'Small', 'likelihood': 1, 'impact': 2,
                                             'status': 'Closed'}, coordinator)

    iteration = capacity_services.create_iteration(project, {
        'iteration_name': 'Sprint 1', 'start_date': today, 'end_date': today + timedelta(days=13),
    })
    capacity_services.add_iteration_member(iteration, {'member_name': 'Morgan', 'availability_percent': 100})
    capacity_services.add_iteration_member(iteration, {'member_name': 'Casey', 'availability_percent': 50})

    BudgetType.objects.create(code='OPEX', label='Operational Expenditure')
    budget = budget_services.upsert_budget(project, {'total_allocated': '2000', 'currency': 'USD'}, coordinator)
    category = budget_services.create_category(budget, {
        'budget_type_code': 'OPEX', 'name': 'Cloud', 'budget_allocated': '2000', 'budget_received': '2000',
    }, coordinator)
    budget_services.add_spending(category, {
        'date': today, 'description': 'Servers', 'amount': '500', 'status': 'paid',
    }, coordinator)
    return project


@pytest.mark.django_db
class TestOverview:
    def test_numbers(self, populated, today):
        overview = project_overview(populated, today)

        assert overview['tasks']['total'] == 4
        assert overview['tasks']['completed'] == 1
        assert overview['tasks']['blocked'] == 1
        assert overview['tasks']['in_progress'] == 1
        assert overview['tasks']['overdue'] == 1
        assert overview['tasks']['completion_rate'] == 25

        assert overview['milestones'] == {'total': 2, 'completed': 1, 'completion_rate': 50}
        assert overview['risks'] == {'total': 2, 'high': 1, 'mitigated': 1}
        assert overview['capacity']['members'] == 2
        assert overview['capacity']['avg_availability'] == 75.0
        assert overview['budget'] == {'currency': 'USD', 'allocated': 2000.0, 'spent': 500.0}

        assert overview['health'] == {'budget': 75.0, 'timeline': 50.0, 'risks': 50.0, 'team': 75.0, 'overall': 62.5}

    def test_empty_project(self, project):
        overview = project_overview(project)
        assert overview['tasks']['total'] == 0
        assert overview['budget']['currency'] == 'INR'
        assert overview['health']['overall'] == 0.0


@pytest.mark.django_db
class TestExports:
    def test_csv(self, populated):
        stream = io.StringIO()
        exports.write_tasks_csv(populated, stream)
        content = stream.getvalue()

        assert content.startswith('\ufeff')
        rows = list(csv.reader(io.StringIO(content.lstrip('\ufeff'))))
        assert rows[0] == exports.TASK_COLUMNS
        assert len(rows) == 5
        assert rows[1][1:4] == ['Shipped', 'Completed', 'Medium']
        assert 'Doing, "quoted"' in [row[1] for row in rows]

    def test_workbook_is_xlsx(self, populated):
        assert exports.build_workbook(populated)[:2] == b'PK'

    def test_pdf(self, populated):
        stream = io.BytesIO()
        exports.build_project_pdf(populated, stream)
        assert stream.getvalue().startswith(b'%PDF')

    def test_filename(self, project):
        project.name = 'Big Launch'
        assert exports.export_filename(project, 'csv') == 'project_Big_Launch.csv'

    def test_download_views(self, client_for, coordinator, populated):
        client = client_for(coordinator)

        csv_response = client.get(reverse('reports:tasks_csv', args=[populated.id]))
        assert csv_response['Content-Disposition'] == 'attachment; filename="project_Apollo.csv"'
        assert csv_response.content.startswith('\ufeff'.encode('utf-8'))

        xlsx = client.get(reverse('reports:project_excel', args=[populated.id]))
        assert xlsx['Content-Type'].startswith('application/vnd.openxmlformats')
        assert xlsx.content[:2] == b'PK'

        pdf = client.get(reverse('reports:project_pdf', args=[populated.id]))
        assert pdf['Content-Type'] == 'application/pdf'
        assert pdf.content.startswith(b'%PDF')

    def test_exports_need_module_access(self, client_for, member, project, grant):
        grant(member, 'overview')
        client = client_for(member)
        assert client.get(reverse('reports:project_pdf', args=[project.id])).status_code == 200
        assert client.get(reverse('reports:tasks_csv', args=[project.id])).status_code == 302


@pytest.mark.django_db
def test_pages_render(client_for, coordinator, populated):
    client = client_for(coordinator)
    assert client.get(reverse('reports:dashboard')).status_code == 200
    assert client.get(reverse('reports:overview', args=[populated.id])).status_code == 200

    api = client.get(reverse('reports:api_overview', args=[populated.id])).json()
    assert api['success'] is True
    assert api['data']['tasks']['total'] == 4
