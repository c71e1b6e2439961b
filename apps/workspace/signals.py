# apps/workspace/signals.py

from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from apps.core.middleware import get_current_user
from apps.core.services import changed_values, record_audit, snapshot

from .models import Discussion, Retrospective, Risk

MODULE_BY_MODEL = {
    Discussion: 'discussions',
    Risk: 'risk_register',
    Retrospective: 'retrospectives',
}


def _acting_user(instance):
    return getattr(instance, '_changed_by', None) or get_current_user()


@receiver(pre_save, sender=Discussion)
@receiver(pre_save, sender=Risk)
@receiver(pre_save, sender=Retrospective)
def remember_previous_state(sender, instance, **kwargs):
    instance._previous = None
    if instance.pk:
        previous = sender.objects.filter(pk=instance.pk).first()
        if previous is not None:
            instance._previous = snapshot(previous)


@receiver(post_save, sender=Discussion)
@receiver(post_save, sender=Risk)
@receiver(post_save, sender=Retrospective)
def audit_save(sender, instance, created, **kwargs):
    label = sender._meta.verbose_name.capitalize()
    current = snapshot(instance)
    if created:
        record_audit(
            instance.project, MODULE_BY_MODEL[sender], instance, 'created',
            user=_acting_user(instance),
            description=f'{label} "{instance}" created',
            new_values=current,
        )
        return

    old, new = changed_values(getattr(instance, '_previous', None) or {}, current)
    if new:
        record_audit(
            instance.project, MODULE_BY_MODEL[sender], instance, 'updated',
            user=_acting_user(instance),
            description=f'{label} "{instance}" updated',
            old_values=old,
            new_values=new,
        )


@receiver(post_delete, sender=Discussion)
@receiver(post_delete, sender=Risk)
@receiver(post_delete, sender=Retrospective)
def audit_delete(sender, instance, **kwargs):
    from apps.core.models import Project

    if isinstance(kwargs.get('origin'), Project):
        return
    record_audit(
        instance.project, MODULE_BY_MODEL[sender], instance, 'deleted',
        user=_acting_user(instance),
        description=f'{sender._meta.verbose_name.capitalize()} "{instance}" deleted',
        old_values=snapshot(instance),
    )
