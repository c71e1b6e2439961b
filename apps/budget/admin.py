# apps/budget/admin.py

from django.contrib import admin

from .models import AlertRule, BudgetCategory, BudgetType, ProjectBudget, Receipt, Spending
from .services import recompute_spent


@admin.register(BudgetType)
class BudgetTypeAdmin(admin.ModelAdmin):
    list_display = ['code', 'label', 'enabled', 'default_allocation_percent', 'display_order']
    list_editable = ['enabled', 'display_order']


class BudgetCategoryInline(admin.TabularInline):
    model = BudgetCategory
    extra = 0
    readonly_fields = ['amount_spent']


class AlertRuleInline(admin.TabularInline):
    model = AlertRule
    extra = 0


@admin.register(ProjectBudget)
class ProjectBudgetAdmin(admin.ModelAdmin):
    list_display = ['project', 'currency', 'total_allocated', 'total_received', 'start_date', 'end_date']
    inlines = [BudgetCategoryInline, AlertRuleInline]


@admin.register(Spending)
class SpendingAdmin(admin.ModelAdmin):
    list_display = ['date', 'category', 'vendor', 'amount', 'status']
    list_filter = ['status']
    search_fields = ['description', 'vendor', 'invoice_id']
    date_hierarchy = 'date'

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        recompute_spent(obj.category)


@admin.register(Receipt)
class ReceiptAdmin(admin.ModelAdmin):
    list_display = ['date', 'budget', 'source', 'amount', 'is_restricted']
