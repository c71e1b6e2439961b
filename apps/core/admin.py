# apps/core/admin.py

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html

from .models import (
    AuditLog, Department, ModuleAccessAudit, ModulePermission,
    Project, ProjectMember, Stakeholder, User
)

ROLE_COLORS = {
    'admin': '#EF4444',
    'project_coordinator': '#F59E0B',
    'member': '#3B82F6',
}

STATUS_COLORS = {
    'planning': '#6B7280',
    'active': '#10B981',
    'on_hold': '#F59E0B',
    'completed': '#3B82F6',
    'cancelled': '#EF4444',
}


def badge(color, label):
    return format_html(
        '<span style="background-color: {}; color: white; '
        'padding: 3px 8px; border-radius: 4px; font-size: 11px;">{}</span>',
        color, label
    )


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'full_name', 'role_badge', 'department', 'is_active', 'date_joined']
    list_filter = ['role', 'department', 'is_staff', 'is_active']
    search_fields = ['username', 'full_name', 'email']
    ordering = ['-date_joined']

    fieldsets = BaseUserAdmin.fieldsets + (
        ('Workspace', {
            'fields': ('full_name', 'role', 'department', 'phone', 'avatar')
        }),
    )

    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Workspace', {
            'fields': ('email', 'full_name', 'role', 'department')
        }),
    )

    def role_badge(self, obj):
        return badge(ROLE_COLORS.get(obj.role, '#6B7280'), obj.get_role_display())

    role_badge.short_description = 'Role'


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ['name', 'users_count', 'created_at']
    search_fields = ['name']

    def users_count(self, obj):
        return obj.users.count()

    users_count.short_description = 'Users'


class ProjectMemberInline(admin.TabularInline):
    model = ProjectMember
    extra = 0
    autocomplete_fields = ['user']


class ModulePermissionInline(admin.TabularInline):
    model = ModulePermission
    fk_name = 'project'
    extra = 0
    autocomplete_fields = ['user']
    readonly_fields = ['granted_by', 'created_at']


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ['name', 'status_badge', 'priority', 'department', 'created_by', 'members_count', 'created_at']
    list_filter = ['status', 'priority', 'department']
    search_fields = ['name', 'description']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [ProjectMemberInline, ModulePermissionInline]

    fieldsets = (
        ('Project', {
            'fields': ('name', 'description', 'status', 'priority', 'department')
        }),
        ('Schedule', {
            'fields': ('start_date', 'end_date')
        }),
        ('Ownership', {
            'fields': ('created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def status_badge(self, obj):
        return badge(STATUS_COLORS.get(obj.status, '#6B7280'), obj.get_status_display())

    status_badge.short_description = 'Status'

    def members_count(self, obj):
        return obj.memberships.count()

    members_count.short_description = 'Members'


@admin.register(ModulePermission)
class ModulePermissionAdmin(admin.ModelAdmin):
    list_display = ['user', 'project', 'module', 'access_level', 'granted_by', 'updated_at']
    list_filter = ['module', 'access_level']
    search_fields = ['user__email', 'user__username', 'project__name']


@admin.register(ModuleAccessAudit)
class ModuleAccessAuditAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'project', 'user', 'module', 'access_type', 'access_level', 'granted_by']
    list_filter = ['access_type', 'module']
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'project', 'module', 'entity', 'action', 'user']
    list_filter = ['module', 'action']
    search_fields = ['description', 'entity_type']
    date_hierarchy = 'created_at'
    readonly_fields = ['old_values', 'new_values']

    def entity(self, obj):
        return f"{obj.entity_type} #{obj.entity_id}"

    def has_add_permission(self, request):
        return False


@admin.register(Stakeholder)
class StakeholderAdmin(admin.ModelAdmin):
    list_display = ['name', 'project', 'email', 'raci', 'influence_level']
    list_filter = ['raci', 'influence_level']
    search_fields = ['name', 'email', 'department']


admin.site.site_header = "Orbit Workspace - Administration"
admin.site.site_title = "Orbit Admin"
