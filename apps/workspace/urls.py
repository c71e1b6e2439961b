# apps/workspace/urls.py

from django.urls import path
from . import views

app_name = 'workspace'

P = 'projects/<int:project_id>/'

urlpatterns = [
    # Discussions
    path(P + 'discussions/', views.discussion_list, name='discussions'),
    path(P + 'discussions/new/', views.discussion_create, name='discussion_create'),
    path(P + 'discussions/<int:discussion_id>/', views.discussion_detail, name='discussion_detail'),
    path(P + 'discussions/<int:discussion_id>/actions/new/', views.action_item_create, name='action_item_create'),
    path(P + 'discussion-actions/<int:item_id>/backlog/', views.action_item_to_backlog, name='action_item_to_backlog'),
    path(P + 'api/discussions/', views.api_discussions, name='api_discussions'),
    path(P + 'api/discussions/<int:discussion_id>/', views.api_discussion_detail, name='api_discussion_detail'),
    path(P + 'api/discussions/<int:discussion_id>/changes/',
         views.api_discussion_changes, name='api_discussion_changes'),
    path(P + 'api/discussions/<int:discussion_id>/actions/', views.api_action_items, name='api_action_items'),
    path(P + 'api/discussion-actions/<int:item_id>/', views.api_action_item_detail, name='api_action_item_detail'),
    path(P + 'api/discussion-actions/<int:item_id>/backlog/',
         views.api_action_item_to_backlog, name='api_action_item_to_backlog'),

    # Risk register
    path(P + 'risks/', views.risk_list, name='risks'),
    path(P + 'risks/new/', views.risk_create, name='risk_create'),
    path(P + 'api/risks/', views.api_risks, name='api_risks'),
    path(P + 'api/risks/heatmap/', views.api_risk_heatmap, name='api_risk_heatmap'),
    path(P + 'api/risks/<int:risk_id>/', views.api_risk_detail, name='api_risk_detail'),

    # Stakeholders
    path(P + 'stakeholders/', views.stakeholder_list, name='stakeholders'),
    path(P + 'stakeholders/new/', views.stakeholder_create, name='stakeholder_create'),
    path(P + 'api/stakeholders/', views.api_stakeholders, name='api_stakeholders'),
    path(P + 'api/stakeholders/<int:stakeholder_id>/', views.api_stakeholder_detail, name='api_stakeholder_detail'),

    # Retrospectives
    path(P + 'retrospectives/', views.retrospective_list, name='retrospectives'),
    path(P + 'retrospectives/new/', views.retrospective_create, name='retrospective_create'),
    path(P + 'retrospectives/<int:retro_id>/', views.retrospective_detail, name='retrospective_detail'),
    path(P + 'api/retrospectives/', views.api_retrospectives, name='api_retrospectives'),
    path(P + 'api/retrospectives/<int:retro_id>/', views.api_retrospective_detail, name='api_retrospective_detail'),
    path(P + 'api/retrospectives/<int:retro_id>/columns/', views.api_retro_columns, name='api_retro_columns'),
    path(P + 'api/retrospectives/<int:retro_id>/actions/',
         views.api_retro_action_items, name='api_retro_action_items'),
    path(P + 'api/retrospectives/<int:retro_id>/analytics/', views.api_retro_analytics, name='api_retro_analytics'),
    path(P + 'api/retro-columns/<int:column_id>/cards/', views.api_retro_cards, name='api_retro_cards'),
    path(P + 'api/retro-cards/<int:card_id>/vote/', views.api_card_vote, name='api_card_vote'),
    path(P + 'api/retro-actions/<int:item_id>/convert/',
         views.api_retro_action_convert, name='api_retro_action_convert'),
]
