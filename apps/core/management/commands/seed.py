# apps/core/management/commands/seed.py

from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from apps.board import services as board_services
from apps.budget import services as budget_services
from apps.budget.models import BudgetType
from apps.capacity import services as capacity_services
from apps.core import services
from apps.core.models import Department, Project, User
from apps.workspace import services as workspace_services

BUDGET_TYPES = [
    ('CAPEX', 'Capital Expenditure', 1),
    ('OPEX', 'Operational Expenditure', 2),
]

DEMO_PASSWORD = 'orbit12345'


class Command(BaseCommand):
    help = 'Creates budget types and a demo project with tasks, risks, capacity and budget'

    def add_arguments(self, parser):
        parser.add_argument('--types-only', action='store_true', help='Only create the default budget types')

    def handle(self, *args, **options):
        self.stdout.write('🌱 Seeding Orbit Workspace...')
        self._seed_budget_types()

        if options['types_only']:
            self.stdout.write(self.style.SUCCESS('✅ Budget types ready'))
            return

        if Project.objects.filter(name='Orbit Demo').exists():
            self.stdout.write(self.style.WARNING('⚠️  Demo project already exists, nothing else to do'))
            return

        with transaction.atomic():
            project = self._seed_demo()

        self.stdout.write(self.style.SUCCESS(
            f'\n✅ Demo workspace created (project #{project.id})\n'
            f'   coordinator: coordinator / {DEMO_PASSWORD}\n'
            f'   member:      member / {DEMO_PASSWORD}\n'
        ))

    def _seed_budget_types(self):
        for code, label, order in BUDGET_TYPES:
            _, created = BudgetType.objects.get_or_create(
                code=code, defaults={'label': label, 'display_order': order}
            )
            if created:
                self.stdout.write(f'  💰 Budget type {code} created')

    def _user(self, username, full_name, role, department):
        user, created = User.objects.get_or_create(
            username=username,
            defaults={
                'email': f'{username}@orbit.local',
                'full_name': full_name,
                'role': role,
                'department': department,
            }
        )
        if created:
            user.set_password(DEMO_PASSWORD)
            user.save()
        return user

    def _seed_demo(self):
        today = timezone.localdate()
        engineering, _ = Department.objects.get_or_create(name='Engineering')

        coordinator = self._user('coordinator', 'Casey Coordinator', User.ROLE_COORDINATOR, engineering)
        member = self._user('member', 'Morgan Member', User.ROLE_MEMBER, engineering)

        project = services.create_project_from_wizard(coordinator, {
            'project': {
                'name': 'Orbit Demo',
                'description': 'Sample project created by the seed command',
                'start_date': today - timedelta(days=14),
                'end_date': today + timedelta(days=90),
                'status': 'active',
                'priority': 'high',
            },
            'milestones': [
                {'name': 'Discovery', 'due_date': today + timedelta(days=7), 'tasks': [
                    {'title': 'Interview stakeholders', 'priority': 'high'},
                    {'title': 'Write requirements', 'priority': 'medium'},
                ]},
                {'name': 'First release', 'due_date': today + timedelta(days=45), 'tasks': [
                    {'title': 'Set up CI', 'priority': 'medium'},
                    {'title': 'Build dashboard', 'priority': 'critical', 'due_date': today + timedelta(days=30)},
                ]},
            ],
            'team': [{'email': member.email, 'role': 'developer'}],
        })
        self.stdout.write(f'  📁 Project "{project.name}" created')

        for module in ('kanban', 'tasks_milestones', 'roadmap', 'discussions', 'task_backlog'):
            services.grant_access(project, member.email, module, 'write', coordinator)
        for module in ('overview', 'risk_register', 'stakeholders', 'team_capacity', 'retrospectives'):
            services.grant_access(project, member.email, module, 'read', coordinator)

        first_task = project.tasks.order_by('id').first()
        board_services.move_task_status(first_task, 'in_progress', coordinator, 'Kick-off')

        board_services.create_backlog_item(project, {
            'title': 'Dark mode', 'priority': 'low', 'description': 'Requested in the first demo',
        }, coordinator)

        sponsor = workspace_services.create_stakeholder(project, {
            'name': 'Sam Sponsor', 'email': 'sponsor@orbit.local', 'raci': 'Accountable', 'influence_level': 'High',
        }, coordinator)

        workspace_services.create_risk(project, {
            'title': 'Key developer unavailable', 'category': 'Resource',
            'likelihood': 3, 'impact': 4, 'response_strategy': 'Mitigate',
            'mitigation_plan': ['Pair on critical work', 'Document setup'],
            'identified_date': today,
        }, coordinator)
        workspace_services.create_risk(project, {
            'title': 'Hosting costs above estimate', 'category': 'Financial', 'likelihood': 2, 'impact': 2,
        }, coordinator)

        discussion = workspace_services.create_discussion(project, {
            'meeting_title': 'Kick-off', 'meeting_date': today - timedelta(days=13),
            'attendees': ['Casey Coordinator', 'Morgan Member', 'Sam Sponsor'],
            'summary_notes': 'Agreed on scope and first milestone.',
        }, coordinator)
        workspace_services.add_action_item(discussion, {
            'task_description': 'Share the roadmap with the sponsor', 'owner': coordinator.id,
            'target_date': today + timedelta(days=3),
        }, coordinator)

        iteration = capacity_services.create_iteration(project, {
            'iteration_name': 'Sprint 1', 'start_date': today, 'end_date': today + timedelta(days=13),
            'working_days': 10, 'committed_story_points': 21,
        })
        capacity_services.add_iteration_member(iteration, {
            'member_name': coordinator.display_name, 'role': 'Coordinator',
            'work_mode': 'hybrid', 'availability_percent': 50,
        })
        capacity_services.add_iteration_member(iteration, {
            'stakeholder': sponsor.id, 'member_name': member.display_name, 'role': 'Developer',
            'work_mode': 'office', 'availability_percent': 100, 'leaves': 1,
        })

        budget = budget_services.upsert_budget(project, {
            'total_allocated': '50000', 'total_received': '30000',
            'start_date': today - timedelta(days=14), 'end_date': today + timedelta(days=90),
        }, coordinator)
        hardware = budget_services.create_category(budget, {
            'budget_type_code': 'CAPEX', 'name': 'Hardware', 'budget_allocated': '20000', 'budget_received': '15000',
        }, coordinator)
        budget_services.create_category(budget, {
            'budget_type_code': 'OPEX', 'name': 'Cloud hosting', 'budget_allocated': '30000',
            'budget_received': '15000',
        }, coordinator)
        budget_services.add_spending(hardware, {
            'date': today, 'description': 'Developer laptops', 'vendor': 'Acme', 'amount': '9000', 'status': 'paid',
        }, coordinator)
        budget_services.add_alert_rule(budget, {
            'condition_type': 'percent_spent', 'threshold_value': '80', 'severity': 'high',
            'message': 'More than 80% of the received budget is spent',
        }, coordinator)

        return project
