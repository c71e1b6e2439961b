# apps/workspace/models.py

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from apps.core.models import Project, User


# === DISCUSSIONS ===

class Discussion(models.Model):
    """Meeting record with attendees, summary and follow-up action items"""

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='discussions')
    meeting_title = models.CharField(max_length=300)
    meeting_date = models.DateField()
    attendees = models.JSONField(default=list, blank=True)
    summary_notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'project_discussion'
        ordering = ['-meeting_date', '-id']

    def __str__(self):
        return f"{self.meeting_title} ({self.meeting_date})"


class DiscussionActionItem(models.Model):
    STATUS_CHOICES = [
        ('open', 'Open'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    discussion = models.ForeignKey(Discussion, on_delete=models.CASCADE, related_name='action_items')
    task_description = models.TextField()
    owner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='discussion_actions')
    target_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='open')
    backlog_item = models.ForeignKey(
        'board.BacklogItem',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'discussion_action_item'
        ordering = ['target_date', 'id']

    def __str__(self):
        return self.task_description[:60]


class DiscussionChangeLog(models.Model):
    """Field-level history of a discussion and its action items"""

    CHANGE_TYPE_CHOICES = [
        ('created', 'Created'),
        ('updated', 'Updated'),
        ('deleted', 'Deleted'),
    ]

    discussion = models.ForeignKey(Discussion, on_delete=models.CASCADE, related_name='change_log')
    action_item = models.ForeignKey(
        DiscussionActionItem,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='change_log'
    )
    change_type = models.CharField(max_length=20, choices=CHANGE_TYPE_CHOICES)
    field_name = models.CharField(max_length=100, blank=True)
    old_value = models.TextField(null=True, blank=True)
    new_value = models.TextField(null=True, blank=True)
    changed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'discussion_change_log'
        ordering = ['-created_at', '-id']


# === RISK REGISTER ===

SCALE = [MinValueValidator(1), MaxValueValidator(5)]


def score_of(likelihood, impact):
    """likelihood x impact, None unless both are known"""
    if likelihood is None or impact is None:
        return None
    return likelihood * impact


def risk_level(score):
    """Label of a 1-25 risk score"""
    if score is None:
        return 'N/A'
    if score <= 5:
        return 'Low'
    if score <= 12:
        return 'Medium'
    if score <= 20:
        return 'High'
    return 'Critical'


class Risk(models.Model):
    """Entry of the project risk register"""

    CATEGORY_CHOICES = [
        ('Schedule', 'Schedule'),
        ('Financial', 'Financial'),
        ('Technical', 'Technical'),
        ('Resource', 'Resource'),
        ('Quality', 'Quality'),
        ('External', 'External'),
        ('Legal', 'Legal'),
    ]

    LIKELIHOOD_CHOICES = [
        (1, '1 - Rare'),
        (2, '2 - Unlikely'),
        (3, '3 - Possible'),
        (4, '4 - Likely'),
        (5, '5 - Almost Certain'),
    ]

    IMPACT_CHOICES = [
        (1, '1 - Negligible'),
        (2, '2 - Minor'),
        (3, '3 - Moderate'),
        (4, '4 - Major'),
        (5, '5 - Severe'),
    ]

    STRATEGY_CHOICES = [
        ('Avoid', 'Avoid'),
        ('Mitigate', 'Mitigate'),
        ('Transfer', 'Transfer'),
        ('Accept', 'Accept'),
    ]

    STATUS_CHOICES = [
        ('Open', 'Open'),
        ('In Progress', 'In Progress'),
        ('Closed', 'Closed'),
        ('Monitoring', 'Monitoring'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='risks')
    risk_code = models.CharField(max_length=20)
    title = models.CharField(max_length=300)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, blank=True)
    cause = models.TextField(blank=True)
    consequence = models.TextField(blank=True)
    likelihood = models.PositiveSmallIntegerField(choices=LIKELIHOOD_CHOICES, null=True, blank=True, validators=SCALE)
    impact = models.PositiveSmallIntegerField(choices=IMPACT_CHOICES, null=True, blank=True, validators=SCALE)
    risk_score = models.PositiveSmallIntegerField(null=True, blank=True, editable=False)
    owner = models.CharField(max_length=200, blank=True)
    response_strategy = models.CharField(max_length=20, choices=STRATEGY_CHOICES, blank=True)
    mitigation_plan = models.JSONField(default=list, blank=True)
    contingency_plan = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='Open')
    identified_date = models.DateField(null=True, blank=True)
    next_review_date = models.DateField(null=True, blank=True)
    residual_likelihood = models.PositiveSmallIntegerField(
        choices=LIKELIHOOD_CHOICES, null=True, blank=True, validators=SCALE
    )
    residual_impact = models.PositiveSmallIntegerField(choices=IMPACT_CHOICES, null=True, blank=True, validators=SCALE)
    residual_risk_score = models.PositiveSmallIntegerField(null=True, blank=True, editable=False)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'risk_register'
        ordering = ['risk_code']
        unique_together = ['project', 'risk_code']

    def save(self, *args, **kwargs):
        self.risk_score = score_of(self.likelihood, self.impact)
        self.residual_risk_score = score_of(self.residual_likelihood, self.residual_impact)
        super().save(*args, **kwargs)

    @property
    def level(self):
        return risk_level(self.risk_score)

    @property
    def residual_level(self):
        return risk_level(self.residual_risk_score)

    def __str__(self):
        return f"{self.risk_code} {self.title}"


# === RETROSPECTIVES ===

DEFAULT_RETRO_COLUMNS = [
    ('What went well?', 'Things that worked'),
    ('What could be improved?', 'Areas for growth'),
    ('Action items', 'Next steps'),
]


class Retrospective(models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('completed', 'Completed'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='retrospectives')
    iteration = models.ForeignKey(
        'capacity.Iteration',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='retrospectives'
    )
    title = models.CharField(max_length=200, blank=True)
    framework = models.CharField(max_length=50, default='Classic')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'retrospective'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return self.title or f"{self.framework} retrospective #{self.pk}"


class RetrospectiveColumn(models.Model):
    retrospective = models.ForeignKey(Retrospective, on_delete=models.CASCADE, related_name='columns')
    title = models.CharField(max_length=200)
    subtitle = models.CharField(max_length=200, blank=True)
    column_order = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'retrospective_column'
        ordering = ['column_order', 'id']

    def __str__(self):
        return self.title


class RetrospectiveCard(models.Model):
    column = models.ForeignKey(RetrospectiveColumn, on_delete=models.CASCADE, related_name='cards')
    text = models.TextField()
    card_order = models.PositiveIntegerField(default=0)
    votes = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'retrospective_card'
        ordering = ['card_order', 'id']

    def __str__(self):
        return self.text[:60]


class CardVote(models.Model):
    card = models.ForeignKey(RetrospectiveCard, on_delete=models.CASCADE, related_name='card_votes')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'retrospective_card_vote'
        unique_together = ['card', 'user']


class RetrospectiveActionItem(models.Model):
    retrospective = models.ForeignKey(Retrospective, on_delete=models.CASCADE, related_name='action_items')
    card = models.ForeignKey(
        RetrospectiveCard,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='action_items'
    )
    what_task = models.TextField()
    when_sprint = models.CharField(max_length=100, blank=True)
    who_responsible = models.CharField(max_length=200, blank=True)
    how_approach = models.TextField(blank=True)
    backlog_item = models.ForeignKey(
        'board.BacklogItem',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    converted_to_task = models.BooleanField(default=False)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'retrospective_action_item'
        ordering = ['created_at', 'id']

    def __str__(self):
        return self.what_task[:60]
