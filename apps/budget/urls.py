# apps/budget/urls.py

from django.urls import path
from . import views

app_name = 'budget'

urlpatterns = [
    path('projects/<int:project_id>/budget/', views.budget_view, name='overview'),
    path('projects/<int:project_id>/budget/save/', views.budget_save, name='budget_save'),
    path('projects/<int:project_id>/budget/categories/new/', views.category_create, name='category_create'),
    path('projects/<int:project_id>/budget/categories/<int:category_id>/spending/new/',
         views.spending_create, name='spending_create'),

    # API
    path('api/budget-types/', views.api_budget_types, name='api_budget_types'),
    path('projects/<int:project_id>/api/budget/', views.api_budget, name='api_budget'),
    path('projects/<int:project_id>/api/budget/analytics/', views.api_analytics, name='api_analytics'),
    path('projects/<int:project_id>/api/budget/categories/', views.api_categories, name='api_categories'),
    path('projects/<int:project_id>/api/budget/categories/<int:category_id>/',
         views.api_category_detail, name='api_category_detail'),
    path('projects/<int:project_id>/api/budget/categories/<int:category_id>/spending/',
         views.api_spending, name='api_spending'),
    path('projects/<int:project_id>/api/budget/spending/<int:spending_id>/',
         views.api_spending_detail, name='api_spending_detail'),
    path('projects/<int:project_id>/api/budget/receipts/', views.api_receipts, name='api_receipts'),
    path('projects/<int:project_id>/api/budget/comments/', views.api_comments, name='api_comments'),
    path('projects/<int:project_id>/api/budget/alerts/', views.api_alert_rules, name='api_alert_rules'),
    path('projects/<int:project_id>/api/budget/alerts/<int:rule_id>/',
         views.api_alert_rule_detail, name='api_alert_rule_detail'),
]
