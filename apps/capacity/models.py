# apps/capacity/models.py

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from apps.core.models import Project, Stakeholder

WORK_MODE_CHOICES = [
    ('office', 'Office'),
    ('wfh', 'Work from home'),
    ('hybrid', 'Hybrid'),
]


def effective_capacity(working_days, leaves, availability_percent, work_mode, weights=None):
    """
    Person-days a member can actually contribute to an iteration

    (working_days - leaves) x availability% x work-mode weight, never
    negative. Unknown work modes weigh 1.0.
    """
    weights = weights or settings.ORBIT_CAPACITY_WEIGHTS
    available_days = max(Decimal('0'), Decimal(str(working_days or 0)) - Decimal(str(leaves or 0)))
    weight = Decimal(str(weights.get(work_mode, 1.0)))
    value = available_days * Decimal(str(availability_percent or 0)) / Decimal('100') * weight
    return value.quantize(Decimal('0.01'))


class CapacitySettings(models.Model):
    """Per-project weights used when computing effective capacity"""

    BASIS_CHOICES = [
        ('weeks', 'Weeks'),
        ('working_days', 'Working days'),
    ]

    project = models.OneToOneField(Project, on_delete=models.CASCADE, related_name='capacity_settings')
    iteration_basis = models.CharField(max_length=20, choices=BASIS_CHOICES, default='weeks')
    work_week = models.PositiveSmallIntegerField(default=5, validators=[MinValueValidator(1), MaxValueValidator(7)])
    office_weight = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal('1.00'))
    wfh_weight = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal('0.90'))
    hybrid_weight = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal('0.95'))
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'team_capacity_settings'
        verbose_name_plural = 'capacity settings'

    def weights(self):
        return {
            'office': float(self.office_weight),
            'wfh': float(self.wfh_weight),
            'hybrid': float(self.hybrid_weight),
        }

    def __str__(self):
        return f"Capacity settings - {self.project}"


class Iteration(models.Model):
    """Sprint window used for capacity planning"""

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='iterations')
    iteration_name = models.CharField(max_length=200)
    start_date = models.DateField()
    end_date = models.DateField()
    working_days = models.PositiveSmallIntegerField(default=10)
    committed_story_points = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'team_capacity_iteration'
        ordering = ['start_date', 'id']

    def clean(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({'end_date': 'End date cannot be before start date'})

    def total_capacity(self):
        return sum((m.effective_capacity_days for m in self.members.all()), Decimal('0'))

    def __str__(self):
        return self.iteration_name


class Team(models.Model):
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='teams')
    team_name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'team'
        ordering = ['team_name']
        unique_together = ['project', 'team_name']

    def __str__(self):
        return self.team_name


class TeamMember(models.Model):
    """Default roster entry copied into iterations"""

    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name='members')
    stakeholder = models.ForeignKey(Stakeholder, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    member_name = models.CharField(max_length=200)
    role = models.CharField(max_length=100, blank=True)
    work_mode = models.CharField(max_length=10, choices=WORK_MODE_CHOICES, default='office')
    default_availability_percent = models.PositiveSmallIntegerField(
        default=100, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    default_leaves = models.DecimalField(max_digits=5, decimal_places=1, default=Decimal('0'))

    class Meta:
        db_table = 'team_member'
        ordering = ['member_name']

    def __str__(self):
        return self.member_name


class IterationMember(models.Model):
    """A person's availability within one iteration"""

    iteration = models.ForeignKey(Iteration, on_delete=models.CASCADE, related_name='members')
    team = models.ForeignKey(Team, on_delete=models.SET_NULL, null=True, blank=True, related_name='iteration_members')
    stakeholder = models.ForeignKey(Stakeholder, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    member_name = models.CharField(max_length=200)
    role = models.CharField(max_length=100, blank=True)
    work_mode = models.CharField(max_length=10, choices=WORK_MODE_CHOICES, default='office')
    availability_percent = models.PositiveSmallIntegerField(
        default=100, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    leaves = models.DecimalField(max_digits=5, decimal_places=1, default=Decimal('0'))
    effective_capacity_days = models.DecimalField(max_digits=7, decimal_places=2, default=Decimal('0'), editable=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'team_capacity_member'
        ordering = ['member_name']

    def clean(self):
        if self.leaves is not None and self.iteration_id and self.leaves > self.iteration.working_days:
            raise ValidationError({'leaves': 'Leaves cannot exceed the working days of the iteration'})

    def save(self, *args, **kwargs):
        settings_row = CapacitySettings.objects.filter(project_id=self.iteration.project_id).first()
        weights = settings_row.weights() if settings_row else None
        self.effective_capacity_days = effective_capacity(
            self.iteration.working_days, self.leaves, self.availability_percent, self.work_mode, weights
        )
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.member_name} - {self.iteration}"
