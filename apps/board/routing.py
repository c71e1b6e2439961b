# apps/board/routing.py

from django.urls import re_path
from . import consumers

websocket_urlpatterns = [
    # Live Kanban updates for one project
    re_path(r'ws/projects/(?P<project_id>\d+)/board/$', consumers.ProjectBoardConsumer.as_asgi()),
]
