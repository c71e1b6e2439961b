# apps/board/apps.py

import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class BoardConfig(AppConfig):
    """Tasks, milestones, Kanban, backlog and timelines"""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.board'
    verbose_name = 'Board - Tasks & Kanban'

    def ready(self):
        """Registers status history and audit signals"""
        from . import signals  # noqa: F401

        logger.debug("🔌 Board app ready - WebSockets enabled")
