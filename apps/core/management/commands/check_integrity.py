# apps/core/management/commands/check_integrity.py

from django.apps import apps
from django.core.management.base import BaseCommand, CommandError
from django.db import connection
from django.db.models import Q, Sum

from apps.board.models import Task, TaskStatusHistory
from apps.budget.models import BudgetCategory
from apps.capacity.models import IterationMember, effective_capacity
from apps.workspace.models import RetrospectiveCard, Risk, score_of


class Command(BaseCommand):
    help = 'Checks database connectivity, tables and the derived values stored by the workspace'

    def add_arguments(self, parser):
        parser.add_argument('--fix', action='store_true', help='Rewrite derived values that are out of sync')

    def handle(self, *args, **options):
        self.fix = options['fix']
        self.problems = 0

        self.stdout.write('🔍 Running workspace integrity check...')

        self._check_connection()
        self._check_tables()
        self._check_task_history()
        self._check_risk_scores()
        self._check_card_votes()
        self._check_capacity()
        self._check_budget_spent()

        if self.problems and not self.fix:
            raise CommandError(f'{self.problems} problem(s) found. Run again with --fix to repair them.')

        self.stdout.write(self.style.SUCCESS(
            f'\n✅ Integrity check finished ({self.problems} problem(s) {"fixed" if self.fix else "found"})'
        ))

    def _report(self, message):
        self.problems += 1
        self.stdout.write(self.style.WARNING(f'    ⚠️  {message}'))

    def _check_connection(self):
        self.stdout.write('  🔗 Database connectivity...')
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            if cursor.fetchone()[0] != 1:
                raise CommandError('Database is not answering correctly')

    def _check_tables(self):
        """Every model of the workspace apps has its table"""
        self.stdout.write('  🏗️  Tables...')
        existing = set(connection.introspection.table_names())
        for app_label in ('core', 'board', 'workspace', 'capacity', 'budget'):
            for model in apps.get_app_config(app_label).get_models():
                if model._meta.db_table not in existing:
                    raise CommandError(f"Table '{model._meta.db_table}' for {model.__name__} is missing. Run migrate.")

    def _check_task_history(self):
        self.stdout.write('  📜 Task status history...')
        for task in Task.objects.filter(status_history__isnull=True):
            self._report(f'Task {task.id} has no status history')
            if self.fix:
                TaskStatusHistory.objects.create(task=task, old_status=None, new_status=task.status,
                                                 notes='Restored by check_integrity')

    def _check_risk_scores(self):
        self.stdout.write('  ⚠️  Risk scores...')
        for risk in Risk.objects.all():
            expected = (score_of(risk.likelihood, risk.impact),
                        score_of(risk.residual_likelihood, risk.residual_impact))
            if (risk.risk_score, risk.residual_risk_score) != expected:
                self._report(f'Risk {risk.risk_code} of project {risk.project_id} has stale scores')
                if self.fix:
                    Risk.objects.filter(pk=risk.pk).update(risk_score=expected[0], residual_risk_score=expected[1])

    def _check_card_votes(self):
        self.stdout.write('  🗳️  Retrospective votes...')
        for card in RetrospectiveCard.objects.all():
            actual = card.card_votes.count()
            if card.votes != actual:
                self._report(f'Card {card.id} shows {card.votes} votes but has {actual}')
                if self.fix:
                    RetrospectiveCard.objects.filter(pk=card.pk).update(votes=actual)

    def _check_capacity(self):
        self.stdout.write('  👥 Effective capacity...')
        for member in IterationMember.objects.select_related('iteration__project__capacity_settings'):
            settings_row = getattr(member.iteration.project, 'capacity_settings', None)
            expected = effective_capacity(
                member.iteration.working_days, member.leaves, member.availability_percent, member.work_mode,
                settings_row.weights() if settings_row else None,
            )
            if member.effective_capacity_days != expected:
                self._report(f'Iteration member {member.id} stores {member.effective_capacity_days}, expected {expected}')
                if self.fix:
                    member.save()

    def _check_budget_spent(self):
        self.stdout.write('  💰 Budget spending totals...')
        categories = BudgetCategory.objects.annotate(
            paid=Sum('spending__amount', filter=Q(spending__status='paid'))
        )
        for category in categories:
            paid = category.paid or 0
            if category.amount_spent != paid:
                self._report(f'Category {category.id} stores {category.amount_spent} spent, paid total is {paid}')
                if self.fix:
                    BudgetCategory.objects.filter(pk=category.pk).update(amount_spent=paid)
