# apps/reports/apps.py

import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class ReportsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.reports'
    verbose_name = 'Reports - PDF & Exports'

    def ready(self):
        logger.debug("📊 Reports app ready - ReportLab and XlsxWriter exports enabled")
