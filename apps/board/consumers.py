# apps/board/consumers.py

import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.utils import timezone

from apps.core.models import Project
from apps.core.permissions import WorkspacePermissions

from .services import board_group

logger = logging.getLogger(__name__)


class ProjectBoardConsumer(AsyncWebsocketConsumer):
    """
    Live Kanban updates for one project

    Clients receive task_moved / task_created / task_deleted events sent
    by the HTTP views and can ask for the current column counts.
    """

    async def connect(self):
        self.project_id = self.scope['url_route']['kwargs']['project_id']
        self.group_name = board_group(self.project_id)
        self.user = self.scope['user']

        if not self.user.is_authenticated:
            logger.warning("❌ WebSocket rejected - anonymous user")
            await self.close()
            return

        if not await self.check_kanban_access():
            logger.warning(f"❌ WebSocket rejected - {self.user.username} has no access to project {self.project_id}")
            await self.close()
            return

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.info(f"✅ WebSocket connected - {self.user.username} on project {self.project_id}")

    async def disconnect(self, close_code):
        if hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
        logger.info(f"🔌 WebSocket disconnected from project {getattr(self, 'project_id', '?')}")

    async def receive(self, text_data=None, bytes_data=None):
        try:
            data = json.loads(text_data or '{}')
        except json.JSONDecodeError:
            await self.send_json_message({'type': 'error', 'error': 'Invalid JSON'})
            return

        message_type = data.get('type')

        if message_type == 'ping':
            await self.send_json_message({'type': 'pong', 'timestamp': timezone.now().isoformat()})

        elif message_type == 'sync_board':
            await self.send_json_message({
                'type': 'board_sync',
                'board': await self.get_board_state(),
                'timestamp': timezone.now().isoformat(),
            })

        else:
            await self.send_json_message({'type': 'error', 'error': f'Unknown message type: {message_type}'})

    # === Group events ===

    async def task_moved(self, event):
        await self.send_json_message({'type': 'task_moved', 'message': event['message']})

    async def task_created(self, event):
        await self.send_json_message({'type': 'task_created', 'message': event['message']})

    async def task_deleted(self, event):
        await self.send_json_message({'type': 'task_deleted', 'message': event['message']})

    # === Helpers ===

    async def send_json_message(self, payload):
        await self.send(text_data=json.dumps(payload))

    @database_sync_to_async
    def check_kanban_access(self):
        project = Project.objects.filter(id=self.project_id).first()
        if project is None:
            return False
        return WorkspacePermissions.has_module_permission(self.user, project, 'kanban', 'read')

    @database_sync_to_async
    def get_board_state(self):
        """Task count per column"""
        from django.db.models import Count

        from .models import Task

        counts = dict(
            Task.objects.filter(project_id=self.project_id)
            .order_by()
            .values_list('status')
            .annotate(total=Count('id'))
        )
        return {
            'project_id': int(self.project_id),
            'columns': [
                {'status': code, 'label': label, 'count': counts.get(code, 0)}
                for code, label in Task.STATUS_CHOICES
            ],
        }
