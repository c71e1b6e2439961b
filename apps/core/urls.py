# apps/core/urls.py

from django.urls import path
from . import views

app_name = 'core'

urlpatterns = [
    # === AUTHENTICATION ===
    path('login/', views.login_view, name='login'),
    path('logout/', views.logout_view, name='logout'),
    path('register/', views.register_view, name='register'),
    path('password-reset/', views.password_reset_request_view, name='password_reset'),
    path('password-reset/<str:token>/', views.password_reset_confirm_view, name='password_reset_confirm'),

    # === DASHBOARD ===
    path('', views.dashboard, name='home'),
    path('dashboard/', views.dashboard, name='dashboard'),
    path('profile/', views.profile_view, name='profile'),

    # === PROJECTS ===
    path('projects/new/', views.project_create, name='project_create'),
    path('projects/wizard/', views.project_wizard, name='project_wizard'),
    path('projects/<int:project_id>/', views.project_detail, name='project_detail'),
    path('projects/<int:project_id>/edit/', views.project_edit, name='project_edit'),
    path('projects/<int:project_id>/delete/', views.project_delete, name='project_delete'),
    path('projects/<int:project_id>/access/', views.project_access, name='project_access'),
    path('projects/<int:project_id>/access/<int:permission_id>/revoke/',
         views.project_access_revoke, name='project_access_revoke'),
    path('projects/<int:project_id>/history/', views.project_history, name='project_history'),

    # === ADMINISTRATION ===
    path('departments/', views.department_list, name='departments'),
    path('departments/<int:department_id>/delete/', views.department_delete, name='department_delete'),
    path('users/<int:user_id>/update/', views.user_update, name='user_update'),

    # === MONITORING ===
    path('health/', views.health_check, name='health'),

    # === JSON API ===
    path('api/dashboard/stats/', views.api_dashboard_stats, name='api_dashboard_stats'),
    path('api/projects/', views.api_projects, name='api_projects'),
    path('api/projects/wizard/', views.api_project_wizard, name='api_project_wizard'),
    path('api/projects/<int:project_id>/', views.api_project_detail, name='api_project_detail'),
    path('api/projects/<int:project_id>/access/', views.api_project_access, name='api_project_access'),
    path('api/projects/<int:project_id>/access/<int:permission_id>/',
         views.api_project_access_detail, name='api_project_access_detail'),
    path('api/projects/<int:project_id>/permissions/', views.api_my_permissions, name='api_my_permissions'),
    path('api/projects/<int:project_id>/history/', views.api_project_history, name='api_project_history'),
    path('api/departments/', views.api_departments, name='api_departments'),
]
