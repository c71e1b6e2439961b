# apps/core/apps.py

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Users, projects and access control"""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core - Workspace'

    def ready(self):
        """Connects the core signals"""
        from . import signals  # noqa: F401
