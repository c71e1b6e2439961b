# apps/board/urls.py

from django.urls import path
from . import views

app_name = 'board'

urlpatterns = [
    # Kanban
    path('projects/<int:project_id>/kanban/', views.kanban_view, name='kanban'),
    path('projects/<int:project_id>/api/tasks/<int:task_id>/status/', views.api_move_task, name='api_move_task'),

    # Tasks
    path('projects/<int:project_id>/tasks/', views.task_list, name='tasks'),
    path('projects/<int:project_id>/tasks/new/', views.task_create, name='task_create'),
    path('projects/<int:project_id>/tasks/<int:task_id>/delete/', views.task_delete, name='task_delete'),
    path('projects/<int:project_id>/api/tasks/', views.api_tasks, name='api_tasks'),
    path('projects/<int:project_id>/api/tasks/<int:task_id>/', views.api_task_detail, name='api_task_detail'),
    path('projects/<int:project_id>/api/tasks/<int:task_id>/history/', views.api_task_history, name='api_task_history'),
    path('projects/<int:project_id>/api/tasks/<int:task_id>/milestone/',
         views.api_task_move_milestone, name='api_task_move_milestone'),

    # Milestones
    path('projects/<int:project_id>/milestones/', views.milestone_list, name='milestones'),
    path('projects/<int:project_id>/milestones/new/', views.milestone_create, name='milestone_create'),
    path('projects/<int:project_id>/api/milestones/', views.api_milestones, name='api_milestones'),
    path('projects/<int:project_id>/api/milestones/<int:milestone_id>/',
         views.api_milestone_detail, name='api_milestone_detail'),

    # Backlog
    path('projects/<int:project_id>/backlog/', views.backlog_view, name='backlog'),
    path('projects/<int:project_id>/backlog/new/', views.backlog_create, name='backlog_create'),
    path('projects/<int:project_id>/backlog/<int:item_id>/promote/', views.backlog_promote, name='backlog_promote'),
    path('projects/<int:project_id>/api/backlog/', views.api_backlog, name='api_backlog'),
    path('projects/<int:project_id>/api/backlog/<int:item_id>/', views.api_backlog_detail, name='api_backlog_detail'),
    path('projects/<int:project_id>/api/backlog/<int:item_id>/promote/',
         views.api_backlog_promote, name='api_backlog_promote'),

    # Timelines
    path('projects/<int:project_id>/gantt/', views.gantt_view, name='gantt'),
    path('projects/<int:project_id>/timeline/monthly/', views.monthly_view, name='monthly'),
    path('projects/<int:project_id>/timeline/yearly/', views.yearly_view, name='yearly'),
    path('projects/<int:project_id>/roadmap/', views.roadmap_view, name='roadmap'),
    path('projects/<int:project_id>/api/gantt/', views.api_gantt, name='api_gantt'),
]
