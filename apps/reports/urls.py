# apps/reports/urls.py

from django.urls import path
from . import views

app_name = 'reports'

urlpatterns = [
    path('reports/', views.reports_dashboard, name='dashboard'),
    path('projects/<int:project_id>/overview/', views.project_overview_view, name='overview'),
    path('projects/<int:project_id>/reports/pdf/', views.project_pdf, name='project_pdf'),
    path('projects/<int:project_id>/reports/tasks.csv', views.tasks_csv, name='tasks_csv'),
    path('projects/<int:project_id>/reports/workbook.xlsx', views.project_excel, name='project_excel'),
    path('projects/<int:project_id>/api/overview/', views.api_overview, name='api_overview'),
]
