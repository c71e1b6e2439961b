# apps/capacity/admin.py

from django.contrib import admin

from .models import CapacitySettings, Iteration, IterationMember, Team, TeamMember


class IterationMemberInline(admin.TabularInline):
    model = IterationMember
    extra = 0
    readonly_fields = ['effective_capacity_days']


@admin.register(Iteration)
class IterationAdmin(admin.ModelAdmin):
    list_display = ['iteration_name', 'project', 'start_date', 'end_date', 'working_days',
                    'committed_story_points', 'capacity']
    list_filter = ['project']
    inlines = [IterationMemberInline]

    def capacity(self, obj):
        return f"{obj.total_capacity()} days"


class TeamMemberInline(admin.TabularInline):
    model = TeamMember
    extra = 0


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ['team_name', 'project']
    inlines = [TeamMemberInline]


@admin.register(CapacitySettings)
class CapacitySettingsAdmin(admin.ModelAdmin):
    list_display = ['project', 'iteration_basis', 'work_week', 'office_weight', 'wfh_weight', 'hybrid_weight']
