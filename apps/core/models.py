# apps/core/models.py

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class Department(models.Model):
    """Organisational unit shared by users, projects, milestones and tasks"""

    name = models.CharField(max_length=120, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'department'
        ordering = ['name']

    def __str__(self):
        return self.name


class User(AbstractUser):
    """
    Workspace user

    The application role is global: admins see and manage every project,
    project coordinators create projects, members only work inside the
    projects they were invited to.
    """

    ROLE_ADMIN = 'admin'
    ROLE_COORDINATOR = 'project_coordinator'
    ROLE_MEMBER = 'member'

    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_COORDINATOR, 'Project Coordinator'),
        (ROLE_MEMBER, 'Member'),
    ]

    # === PROFILE ===
    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=200, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    avatar = models.ImageField(upload_to='avatars/', blank=True, null=True)
    role = models.CharField(max_length=30, choices=ROLE_CHOICES, default=ROLE_MEMBER)
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='users'
    )

    # === METADATA ===
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'workspace_user'
        indexes = [
            models.Index(fields=['role']),
        ]

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)

    @property
    def display_name(self):
        return self.full_name or self.get_full_name() or self.username

    @property
    def is_workspace_admin(self):
        return self.role == self.ROLE_ADMIN or self.is_superuser

    def can_create_projects(self):
        return self.role in (self.ROLE_ADMIN, self.ROLE_COORDINATOR) or self.is_superuser

    def accessible_projects(self):
        """
        Projects this user can open

        Admins see everything; everyone else sees projects they created,
        joined, or hold at least one module permission on.
        """
        if self.is_workspace_admin:
            return Project.objects.all()

        return Project.objects.filter(
            models.Q(created_by=self) |
            models.Q(members=self) |
            models.Q(module_permissions__user=self)
        ).distinct()

    def __str__(self):
        return self.display_name


class Project(models.Model):
    """Top-level container for every workspace module"""

    STATUS_CHOICES = [
        ('planning', 'Planning'),
        ('active', 'Active'),
        ('on_hold', 'On Hold'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('critical', 'Critical'),
    ]

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='planning')
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default='medium')
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='projects'
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='created_projects'
    )
    members = models.ManyToManyField(
        User,
        through='ProjectMember',
        related_name='member_projects'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'project'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return self.name

    def is_owner(self, user):
        return user.is_authenticated and self.created_by_id == user.id

    def progress(self):
        """Percentage of tasks in the completed column, 0 when there are none"""
        total = self.tasks.count()
        if total == 0:
            return 0
        done = self.tasks.filter(status='completed').count()
        return round(done / total * 100)


class ProjectMember(models.Model):
    """Membership of a user in a project"""

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='memberships')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='memberships')
    role = models.CharField(max_length=100, default='member')
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'project_member'
        unique_together = ['project', 'user']
        ordering = ['joined_at']

    def __str__(self):
        return f"{self.user} @ {self.project} ({self.role})"


class ModulePermission(models.Model):
    """Per-project, per-module access level granted to a single user"""

    MODULE_CHOICES = [
        ('overview', 'Overview'),
        ('tasks_milestones', 'Tasks & Milestones'),
        ('roadmap', 'Roadmap'),
        ('kanban', 'Kanban'),
        ('stakeholders', 'Stakeholders'),
        ('risk_register', 'Risk Register'),
        ('discussions', 'Discussions'),
        ('task_backlog', 'Task Backlog'),
        ('team_capacity', 'Team Capacity'),
        ('retrospectives', 'Retrospectives'),
        ('budget', 'Budget'),
    ]

    ACCESS_READ = 'read'
    ACCESS_WRITE = 'write'

    ACCESS_CHOICES = [
        (ACCESS_READ, 'Read'),
        (ACCESS_WRITE, 'Write'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='module_permissions')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='module_permissions')
    module = models.CharField(max_length=30, choices=MODULE_CHOICES)
    access_level = models.CharField(max_length=10, choices=ACCESS_CHOICES, default=ACCESS_READ)
    granted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='granted_permissions'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'module_permission'
        unique_together = ['project', 'user', 'module']
        ordering = ['module']

    @classmethod
    def module_names(cls):
        return [code for code, _ in cls.MODULE_CHOICES]

    def allows(self, required):
        """write satisfies anything, read only satisfies read"""
        return self.access_level == self.ACCESS_WRITE or (
            required == self.ACCESS_READ and self.access_level == self.ACCESS_READ
        )

    def __str__(self):
        return f"{self.user} - {self.module}:{self.access_level}"


class ModuleAccessAudit(models.Model):
    """Trail of grants, updates, revocations and views of module access"""

    ACCESS_TYPE_CHOICES = [
        ('granted', 'Granted'),
        ('updated', 'Updated'),
        ('revoked', 'Revoked'),
        ('viewed', 'Viewed'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='access_audits')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='access_audits')
    module = models.CharField(max_length=30, choices=ModulePermission.MODULE_CHOICES)
    access_type = models.CharField(max_length=20, choices=ACCESS_TYPE_CHOICES)
    access_level = models.CharField(max_length=10, blank=True)
    granted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'module_access_audit'
        ordering = ['-created_at']


class AuditLog(models.Model):
    """Generic change history for project entities"""

    ACTION_CHOICES = [
        ('created', 'Created'),
        ('updated', 'Updated'),
        ('deleted', 'Deleted'),
        ('status_changed', 'Status changed'),
        ('moved', 'Moved'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='audit_logs')
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    module = models.CharField(max_length=30)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=50)
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    description = models.TextField(blank=True)
    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'audit_log'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['project', 'module']),
            models.Index(fields=['entity_type', 'entity_id']),
        ]

    def __str__(self):
        return f"{self.entity_type}#{self.entity_id} {self.action}"


class Stakeholder(models.Model):
    """
    Person with an interest in the project

    Shared directory used as owner of backlog items and as the source of
    iteration members in capacity planning.
    """

    RACI_CHOICES = [
        ('Responsible', 'Responsible'),
        ('Accountable', 'Accountable'),
        ('Consulted', 'Consulted'),
        ('Informed', 'Informed'),
    ]

    INFLUENCE_CHOICES = [
        ('Low', 'Low'),
        ('Medium', 'Medium'),
        ('High', 'High'),
        ('Critical', 'Critical'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='stakeholders')
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    department = models.CharField(max_length=120, blank=True)
    raci = models.CharField(max_length=20, choices=RACI_CHOICES, blank=True)
    influence_level = models.CharField(max_length=20, choices=INFLUENCE_CHOICES, blank=True)
    notes = models.TextField(blank=True)
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
        db_table = 'stakeholder'
        ordering = ['name']

    def __str__(self):
        return self.name
