# apps/core/signals.py

import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .middleware import get_current_user
from .models import Project, ProjectMember, Stakeholder, User
from .services import record_audit, snapshot

logger = logging.getLogger(__name__)


@receiver(post_save, sender=ProjectMember)
def log_new_member(sender, instance, created, **kwargs):
    """Membership changes show up in the project history"""
    if not created:
        return
    logger.info(f"👥 {instance.user.username} joined project {instance.project_id} as {instance.role}")
    record_audit(
        instance.project, 'overview', instance, 'created',
        user=get_current_user(),
        description=f'{instance.user.display_name} added as {instance.role}',
        new_values={'user': instance.user_id, 'role': instance.role},
    )


@receiver(post_save, sender=Stakeholder)
def audit_stakeholder_save(sender, instance, created, **kwargs):
    record_audit(
        instance.project, 'stakeholders', instance, 'created' if created else 'updated',
        user=get_current_user(),
        description=f'Stakeholder "{instance.name}" {"created" if created else "updated"}',
        new_values=snapshot(instance),
    )


@receiver(post_delete, sender=Stakeholder)
def audit_stakeholder_delete(sender, instance, **kwargs):
    if isinstance(kwargs.get('origin'), Project):
        return
    record_audit(
        instance.project, 'stakeholders', instance, 'deleted',
        user=get_current_user(),
        description=f'Stakeholder "{instance.name}" deleted',
        old_values=snapshot(instance),
    )


@receiver(post_save, sender=User)
def normalise_admin_role(sender, instance, created, **kwargs):
    """Superusers created from the command line get the admin role"""
    if created and instance.is_superuser and instance.role != User.ROLE_ADMIN:
        User.objects.filter(pk=instance.pk).update(role=User.ROLE_ADMIN)
        instance.role = User.ROLE_ADMIN
