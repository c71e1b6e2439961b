# apps/board/admin.py

from django.contrib import admin
from django.utils import timezone
from django.utils.html import format_html

from .models import BacklogItem, Milestone, Task, TaskStatusHistory

PRIORITY_COLORS = {
    'low': '#10B981',
    'medium': '#3B82F6',
    'high': '#F59E0B',
    'critical': '#EF4444',
}


class TaskInline(admin.TabularInline):
    model = Task
    extra = 0
    fields = ['title', 'status', 'priority', 'owner', 'due_date']
    show_change_link = True


@admin.register(Milestone)
class MilestoneAdmin(admin.ModelAdmin):
    list_display = ['name', 'project', 'status', 'due_date', 'tasks_count', 'progress_display']
    list_filter = ['status', 'department']
    search_fields = ['name', 'project__name']
    inlines = [TaskInline]

    def tasks_count(self, obj):
        return obj.tasks.count()

    tasks_count.short_description = 'Tasks'

    def progress_display(self, obj):
        return f"{obj.progress()}%"

    progress_display.short_description = 'Progress'


class StatusHistoryInline(admin.TabularInline):
    model = TaskStatusHistory
    extra = 0
    readonly_fields = ['old_status', 'new_status', 'changed_by', 'notes', 'changed_at']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'project', 'milestone', 'status', 'priority_badge', 'owner', 'due_status']
    list_filter = ['status', 'priority', 'project']
    search_fields = ['title', 'description']
    readonly_fields = ['completed_at', 'created_at', 'updated_at']
    inlines = [StatusHistoryInline]

    def priority_badge(self, obj):
        return format_html(
            '<span style="background-color: {}; color: white; '
            'padding: 3px 8px; border-radius: 4px; font-size: 11px;">{}</span>',
            PRIORITY_COLORS.get(obj.priority, '#6B7280'), obj.priority.capitalize()
        )

    priority_badge.short_description = 'Priority'

    def due_status(self, obj):
        if not obj.due_date:
            return '-'
        if obj.is_overdue(timezone.localdate()):
            return format_html('<span style="color: red;">⚠️ {}</span>', obj.due_date)
        return obj.due_date

    due_status.short_description = 'Due'


@admin.register(BacklogItem)
class BacklogItemAdmin(admin.ModelAdmin):
    list_display = ['title', 'project', 'status', 'priority', 'source_type', 'promoted_task']
    list_filter = ['status', 'priority', 'source_type']
    search_fields = ['title', 'description']
