# apps/board/models.py

from django.db import models
from django.utils import timezone

from apps.core.models import Department, Project, Stakeholder, User


PRIORITY_CHOICES = [
    ('low', '🟢 Low'),
    ('medium', '🟡 Medium'),
    ('high', '🟠 High'),
    ('critical', '🔴 Critical'),
]

PRIORITY_RANK = {'critical': 0, 'high': 1, 'medium': 2, 'low': 3}


class Milestone(models.Model):
    """Dated checkpoint grouping a set of tasks"""

    STATUS_CHOICES = [
        ('planning', 'Planning'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('blocked', 'Blocked'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='milestones')
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='planning')
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='milestones'
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_milestones'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'milestone'
        ordering = ['due_date', 'id']

    def __str__(self):
        return self.name

    def progress(self):
        """Completed tasks over all tasks, 0 for an empty milestone"""
        total = self.tasks.count()
        if total == 0:
            return 0
        return round(self.tasks.filter(status=Task.STATUS_COMPLETED).count() / total * 100)


class Task(models.Model):
    """
    Unit of work shown in the task table, the Kanban board and the timelines

    The status doubles as the Kanban column; STATUS_CHOICES order is the
    column order.
    """

    STATUS_TODO = 'todo'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_BLOCKED = 'blocked'
    STATUS_COMPLETED = 'completed'

    STATUS_CHOICES = [
        (STATUS_TODO, 'To Do'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_BLOCKED, 'Blocked'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    PRIORITY_CHOICES = PRIORITY_CHOICES

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='tasks')
    milestone = models.ForeignKey(
        Milestone,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='tasks'
    )
    title = models.CharField(max_length=300)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_TODO)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    due_date = models.DateField(null=True, blank=True)
    owner = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='owned_tasks'
    )
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='tasks'
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_tasks'
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'task'
        ordering = ['due_date', 'id']
        indexes = [
            models.Index(fields=['project', 'status']),
            models.Index(fields=['owner']),
        ]

    @classmethod
    def column_statuses(cls):
        return [code for code, _ in cls.STATUS_CHOICES]

    def save(self, *args, **kwargs):
        if self.status == self.STATUS_COMPLETED and self.completed_at is None:
            self.completed_at = timezone.now()
        elif self.status != self.STATUS_COMPLETED:
            self.completed_at = None
        super().save(*args, **kwargs)

    def is_overdue(self, today=None):
        if not self.due_date or self.status == self.STATUS_COMPLETED:
            return False
        return (today or timezone.localdate()) > self.due_date

    def __str__(self):
        return self.title


class TaskStatusHistory(models.Model):
    """One row per status transition of a task"""

    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='status_history')
    old_status = models.CharField(max_length=20, null=True, blank=True)
    new_status = models.CharField(max_length=20)
    changed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    notes = models.TextField(blank=True)
    changed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'task_status_history'
        ordering = ['-changed_at', '-id']
        verbose_name_plural = 'task status history'

    def __str__(self):
        return f"{self.task_id}: {self.old_status} -> {self.new_status}"


class BacklogItem(models.Model):
    """Idea or request waiting to be scheduled into a milestone"""

    STATUS_CHOICES = [
        ('new', 'New'),
        ('in_progress', 'In Progress'),
        ('blocked', 'Blocked'),
        ('done', 'Done'),
    ]

    SOURCE_CHOICES = [
        ('manual', 'Manual'),
        ('discussion', 'Discussion'),
        ('retrospective', 'Retrospective'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='backlog_items')
    title = models.CharField(max_length=300)
    description = models.TextField(blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='new')
    owner = models.ForeignKey(
        Stakeholder,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='backlog_items'
    )
    target_date = models.DateField(null=True, blank=True)
    source_type = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='manual')
    source_id = models.CharField(max_length=50, blank=True)
    promoted_task = models.ForeignKey(
        Task,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='backlog_origin'
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'task_backlog'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return self.title
