# tests/conftest.py

import json
from datetime import timedelta

import pytest
from django.core.cache import cache
from django.utils import timezone

from apps.core import services
from apps.core.models import User

PASSWORD = 'orbit-pass-123'


@pytest.fixture(autouse=True)
def clear_cache():
    """Login attempts and locks live in the cache"""
    cache.clear()
    yield
    cache.clear()


def make_user(username, role=User.ROLE_MEMBER, **extra):
    return User.objects.create_user(
        username=username,
        email=f'{username}@orbit.test',
        password=PASSWORD,
        role=role,
        full_name=extra.pop('full_name', username.capitalize()),
        **extra
    )


@pytest.fixture
def workspace_admin(db):
    return make_user('root', role=User.ROLE_ADMIN)


@pytest.fixture
def coordinator(db):
    return make_user('casey', role=User.ROLE_COORDINATOR)


@pytest.fixture
def member(db):
    return make_user('morgan')


@pytest.fixture
def outsider(db):
    return make_user('olive')


@pytest.fixture
def today():
    return timezone.localdate()


@pytest.fixture
def project(coordinator, today):
    return services.create_project(coordinator, {
        'name': 'Apollo',
        'description': 'Test project',
        'start_date': today - timedelta(days=10),
        'end_date': today + timedelta(days=60),
    })


@pytest.fixture
def grant(project, coordinator):
    """grant(user, module, level) as the project owner"""

    def _grant(user, module, level='read'):
        return services.grant_access(project, user.email, module, level, coordinator)

    return _grant


@pytest.fixture
def client_for(client):
    def _login(user):
        client.force_login(user)
        return client

    return _login


class JsonClient:
    """Thin wrapper sending and decoding JSON bodies"""

    def __init__(self, client):
        self.client = client

    def _send(self, method, url, data=None):
        body = json.dumps(data) if data is not None else ''
        response = getattr(self.client, method)(url, data=body, content_type='application/json')
        response.json_body = response.json()
        return response

    def get(self, url, params=None):
        response = self.client.get(url, params or {})
        response.json_body = response.json()
        return response

    def post(self, url, data=None):
        return self._send('post', url, data)

    def patch(self, url, data=None):
        return self._send('patch', url, data)

    def put(self, url, data=None):
        return self._send('put', url, data)

    def delete(self, url):
        return self._send('delete', url)


@pytest.fixture
def api_for(client):
    def _login(user):
        client.force_login(user)
        return JsonClient(client)

    return _login
