# apps/budget/models.py

from decimal import Decimal

from django.conf import settings
from django.db import models

from apps.core.models import Project, User


def default_currency():
    return settings.ORBIT_DEFAULT_CURRENCY


class BudgetType(models.Model):
    """Admin-configurable budget type (CAPEX, OPEX...)"""

    code = models.CharField(max_length=20, unique=True)
    label = models.CharField(max_length=120)
    enabled = models.BooleanField(default=True)
    default_allocation_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    display_order = models.PositiveIntegerField(default=0)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'budget_type_config'
        ordering = ['display_order', 'code']

    def __str__(self):
        return f"{self.code} - {self.label}"


class ProjectBudget(models.Model):
    project = models.OneToOneField(Project, on_delete=models.CASCADE, related_name='budget')
    currency = models.CharField(max_length=3, default=default_currency)
    total_allocated = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0'))
    total_received = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0'))
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'project_budget'

    def __str__(self):
        return f"Budget - {self.project}"


class BudgetCategory(models.Model):
    budget = models.ForeignKey(ProjectBudget, on_delete=models.CASCADE, related_name='categories')
    budget_type_code = models.CharField(max_length=20)
    name = models.CharField(max_length=200)
    budget_allocated = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0'))
    budget_received = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0'))
    amount_spent = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0'), editable=False)
    comments = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'budget_category'
        ordering = ['budget_type_code', 'name']
        verbose_name_plural = 'budget categories'

    def __str__(self):
        return f"{self.budget_type_code} / {self.name}"


class Spending(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('paid', 'Paid'),
        ('rejected', 'Rejected'),
    ]

    category = models.ForeignKey(BudgetCategory, on_delete=models.CASCADE, related_name='spending')
    date = models.DateField()
    vendor = models.CharField(max_length=200, blank=True)
    description = models.TextField()
    invoice_id = models.CharField(max_length=100, blank=True)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    payment_method = models.CharField(max_length=50, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'budget_spending'
        ordering = ['-date', '-id']
        verbose_name_plural = 'spending'

    def __str__(self):
        return f"{self.date} {self.description[:40]} ({self.amount})"


class Receipt(models.Model):
    """Money received into the budget"""

    budget = models.ForeignKey(ProjectBudget, on_delete=models.CASCADE, related_name='receipts')
    date = models.DateField()
    source = models.CharField(max_length=200)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    notes = models.TextField(blank=True)
    is_restricted = models.BooleanField(default=False)
    restricted_to_category = models.ForeignKey(
        BudgetCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='restricted_receipts'
    )
    received_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'budget_receipt'
        ordering = ['-date', '-id']


class BudgetComment(models.Model):
    budget = models.ForeignKey(ProjectBudget, on_delete=models.CASCADE, related_name='comments')
    author = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='+')
    text = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'budget_comment'
        ordering = ['-created_at']


class AlertRule(models.Model):
    CONDITION_CHOICES = [
        ('percent_spent', 'Percent of received spent'),
        ('overspend', 'Spent more than received'),
        ('remaining_below', 'Remaining below threshold'),
    ]

    SEVERITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('critical', 'Critical'),
    ]

    budget = models.ForeignKey(ProjectBudget, on_delete=models.CASCADE, related_name='alert_rules')
    condition_type = models.CharField(max_length=30, choices=CONDITION_CHOICES)
    threshold_value = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default='medium')
    message = models.CharField(max_length=300)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'budget_alert_rule'
        ordering = ['id']

    def __str__(self):
        return f"{self.get_condition_type_display()} ({self.severity})"
