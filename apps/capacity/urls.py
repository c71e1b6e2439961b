# apps/capacity/urls.py

from django.urls import path
from . import views

app_name = 'capacity'

urlpatterns = [
    path('projects/<int:project_id>/capacity/', views.capacity_view, name='overview'),
    path('projects/<int:project_id>/capacity/settings/', views.settings_update, name='settings_update'),
    path('projects/<int:project_id>/capacity/iterations/new/', views.iteration_create, name='iteration_create'),
    path('projects/<int:project_id>/capacity/iterations/<int:iteration_id>/members/new/',
         views.member_create, name='member_create'),
    path('projects/<int:project_id>/capacity/teams/new/', views.team_create, name='team_create'),

    # API
    path('projects/<int:project_id>/api/capacity/settings/', views.api_settings, name='api_settings'),
    path('projects/<int:project_id>/api/capacity/summary/', views.api_summary, name='api_summary'),
    path('projects/<int:project_id>/api/capacity/iterations/', views.api_iterations, name='api_iterations'),
    path('projects/<int:project_id>/api/capacity/iterations/<int:iteration_id>/',
         views.api_iteration_detail, name='api_iteration_detail'),
    path('projects/<int:project_id>/api/capacity/iterations/<int:iteration_id>/members/',
         views.api_iteration_members, name='api_iteration_members'),
    path('projects/<int:project_id>/api/capacity/iterations/<int:iteration_id>/populate/',
         views.api_iteration_populate, name='api_iteration_populate'),
    path('projects/<int:project_id>/api/capacity/members/<int:member_id>/',
         views.api_member_detail, name='api_member_detail'),
    path('projects/<int:project_id>/api/capacity/teams/', views.api_teams, name='api_teams'),
    path('projects/<int:project_id>/api/capacity/teams/<int:team_id>/members/',
         views.api_team_members, name='api_team_members'),
]
