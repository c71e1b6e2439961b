# apps/capacity/apps.py

from django.apps import AppConfig


class CapacityConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.capacity'
    verbose_name = 'Team Capacity'
