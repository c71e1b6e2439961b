# tests/test_consumers.py

import pytest
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser

from apps.board.consumers import ProjectBoardConsumer


def communicator_for(user, project_id):
    communicator = WebsocketCommunicator(
        ProjectBoardConsumer.as_asgi(), f'/ws/projects/{project_id}/board/'
    )
    communicator.scope['user'] = user
    communicator.scope['url_route'] = {'kwargs': {'project_id': str(project_id)}}
    return communicator


@pytest.mark.asyncio
@pytest.mark.django_db(transaction=True)
async def test_anonymous_connection_is_closed():
    communicator = communicator_for(AnonymousUser(), 1)
    connected, _ = await communicator.connect()
    assert not connected
    await communicator.disconnect()


@pytest.mark.asyncio
@pytest.mark.django_db(transaction=True)
async def test_owner_gets_pong_and_board_state(coordinator, project):
    communicator = communicator_for(coordinator, project.id)
    connected, _ = await communicator.connect()
    assert connected

    await communicator.send_json_to({'type': 'ping'})
    assert (await communicator.receive_json_from())['type'] == 'pong'

    await communicator.send_json_to({'type': 'sync_board'})
    sync = await communicator.receive_json_from()
    assert sync['board']['project_id'] == project.id
    assert [c['status'] for c in sync['board']['columns']] == ['todo', 'in_progress', 'blocked', 'completed']

    await communicator.send_to(text_data='not json')
    assert (await communicator.receive_json_from())['error'] == 'Invalid JSON'

    await communicator.disconnect()


@pytest.mark.asyncio
@pytest.mark.django_db(transaction=True)
async def test_user_without_kanban_access_is_closed(outsider, project):
    communicator = communicator_for(outsider, project.id)
    connected, _ = await communicator.connect()
    assert not connected
    await communicator.disconnect()
