# apps/board/signals.py

from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from apps.core.middleware import get_current_user
from apps.core.services import changed_values, record_audit, snapshot

from .models import BacklogItem, Milestone, Task, TaskStatusHistory

MODULE_BY_MODEL = {
    Task: 'tasks_milestones',
    Milestone: 'tasks_milestones',
    BacklogItem: 'task_backlog',
}


def _acting_user(instance):
    return getattr(instance, '_changed_by', None) or get_current_user()


@receiver(pre_save, sender=Task)
@receiver(pre_save, sender=Milestone)
@receiver(pre_save, sender=BacklogItem)
def remember_previous_state(sender, instance, **kwargs):
    """Keeps the stored values around so post_save can diff them"""
    instance._previous = None
    if instance.pk:
        previous = sender.objects.filter(pk=instance.pk).first()
        if previous is not None:
            instance._previous = snapshot(previous)


@receiver(post_save, sender=Task)
def record_status_history(sender, instance, created, **kwargs):
    """
    One history row per status change, including the initial status
    """
    previous = getattr(instance, '_previous', None)
    old_status = None if created or previous is None else previous.get('status')
    if not created and old_status == instance.status:
        return

    TaskStatusHistory.objects.create(
        task=instance,
        old_status=old_status,
        new_status=instance.status,
        changed_by=_acting_user(instance),
        notes=getattr(instance, '_status_notes', '') or '',
    )


@receiver(post_save, sender=Task)
@receiver(post_save, sender=Milestone)
@receiver(post_save, sender=BacklogItem)
def audit_save(sender, instance, created, **kwargs):
    current = snapshot(instance)
    if created:
        record_audit(
            instance.project, MODULE_BY_MODEL[sender], instance, 'created',
            user=_acting_user(instance),
            description=f'{sender._meta.verbose_name.capitalize()} "{instance}" created',
            new_values=current,
        )
        return

    old, new = changed_values(getattr(instance, '_previous', None) or {}, current)
    if not new:
        return

    action = 'status_changed' if set(new) == {'status'} else 'updated'
    record_audit(
        instance.project, MODULE_BY_MODEL[sender], instance, action,
        user=_acting_user(instance),
        description=f'{sender._meta.verbose_name.capitalize()} "{instance}" {action.replace("_", " ")}',
        old_values=old,
        new_values=new,
    )


@receiver(post_delete, sender=Task)
@receiver(post_delete, sender=Milestone)
@receiver(post_delete, sender=BacklogItem)
def audit_delete(sender, instance, **kwargs):
    from apps.core.models import Project

    # project cascade: nothing left to attach the entry to
    if isinstance(kwargs.get('origin'), Project):
        return
    record_audit(
        instance.project, MODULE_BY_MODEL[sender], instance, 'deleted',
        user=_acting_user(instance),
        description=f'{sender._meta.verbose_name.capitalize()} "{instance}" deleted',
        old_values=snapshot(instance),
    )
