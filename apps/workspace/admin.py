# apps/workspace/admin.py

from django.contrib import admin
from django.utils.html import format_html

from .models import (
    Discussion, DiscussionActionItem, DiscussionChangeLog,
    Retrospective, RetrospectiveActionItem, RetrospectiveColumn, Risk
)

LEVEL_COLORS = {
    'Low': '#10B981',
    'Medium': '#F59E0B',
    'High': '#F97316',
    'Critical': '#EF4444',
    'N/A': '#6B7280',
}


class ActionItemInline(admin.TabularInline):
    model = DiscussionActionItem
    extra = 0
    readonly_fields = ['backlog_item']


@admin.register(Discussion)
class DiscussionAdmin(admin.ModelAdmin):
    list_display = ['meeting_title', 'project', 'meeting_date', 'action_items_count']
    list_filter = ['meeting_date']
    search_fields = ['meeting_title', 'summary_notes']
    date_hierarchy = 'meeting_date'
    inlines = [ActionItemInline]

    def action_items_count(self, obj):
        return obj.action_items.count()

    action_items_count.short_description = 'Action items'


@admin.register(DiscussionChangeLog)
class DiscussionChangeLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'discussion', 'change_type', 'field_name', 'changed_by']
    list_filter = ['change_type']

    def has_add_permission(self, request):
        return False


@admin.register(Risk)
class RiskAdmin(admin.ModelAdmin):
    list_display = ['risk_code', 'title', 'project', 'category', 'score_badge', 'status', 'next_review_date']
    list_filter = ['status', 'category', 'response_strategy']
    search_fields = ['risk_code', 'title', 'description']
    readonly_fields = ['risk_score', 'residual_risk_score']

    def score_badge(self, obj):
        return format_html(
            '<span style="background-color: {}; color: white; '
            'padding: 3px 8px; border-radius: 4px; font-size: 11px;">{} ({})</span>',
            LEVEL_COLORS[obj.level], obj.risk_score or '-', obj.level
        )

    score_badge.short_description = 'Score'


class RetrospectiveColumnInline(admin.TabularInline):
    model = RetrospectiveColumn
    extra = 0


@admin.register(Retrospective)
class RetrospectiveAdmin(admin.ModelAdmin):
    list_display = ['__str__', 'project', 'iteration', 'framework', 'status', 'created_at']
    list_filter = ['status', 'framework']
    inlines = [RetrospectiveColumnInline]


@admin.register(RetrospectiveActionItem)
class RetrospectiveActionItemAdmin(admin.ModelAdmin):
    list_display = ['what_task', 'retrospective', 'who_responsible', 'converted_to_task']
    list_filter = ['converted_to_task']
