# tests/test_auth.py

from datetime import timedelta

import pytest
from django.core import mail
from django.urls import reverse
from django.utils import timezone

from apps.core.auth_service import auth_service
from apps.core.models import User

from .conftest import PASSWORD

pytestmark = pytest.mark.django_db


def post_login(client, identifier, password):
    return client.post(reverse('core:login'), {'username': identifier, 'password': password})


class TestLogin:
    def test_login_by_username_or_email(self, client, member):
        response = post_login(client, 'morgan', PASSWORD)
        assert response.status_code == 302
        assert response.url == reverse('core:dashboard')

        client.logout()
        response = post_login(client, 'MORGAN@orbit.test', PASSWORD)
        assert response.status_code == 302

    def test_wrong_password_stays_on_page(self, client, member):
        response = post_login(client, 'morgan', 'wrong-password')
        assert response.status_code == 200
        assert '_auth_user_id' not in client.session

    def test_lockout_after_max_attempts(self, client, member, rf):
        for _ in range(5):
            ok, _message = auth_service.login(rf.post('/login/'), 'morgan', 'wrong-password')
            assert not ok

        ok, message = auth_service.login(rf.post('/login/'), 'morgan', PASSWORD)
        assert not ok
        assert 'locked' in message

        response = post_login(client, 'morgan', PASSWORD)
        assert response.status_code == 200
        assert '_auth_user_id' not in client.session

    def test_fifth_failure_reports_the_lock(self, member, rf):
        messages = [auth_service.login(rf.post('/login/'), 'morgan', 'nope')[1] for _ in range(5)]
        assert messages[:4] == ['Invalid credentials'] * 4
        assert 'Too many failed attempts' in messages[4]

    def test_success_clears_failures(self, client, member, rf):
        for _ in range(4):
            auth_service.login(rf.post('/login/'), 'morgan', 'nope')
        assert post_login(client, 'morgan', PASSWORD).status_code == 302

        client.logout()
        for _ in range(4):
            auth_service.login(rf.post('/login/'), 'morgan', 'nope')
        assert post_login(client, 'morgan', PASSWORD).status_code == 302

    def test_safe_next_redirect(self, client, member):
        response = client.post(reverse('core:login') + '?next=/profile/',
                               {'username': 'morgan', 'password': PASSWORD})
        assert response.url == '/profile/'

        client.logout()
        response = client.post(reverse('core:login') + '?next=https://evil.example/',
                               {'username': 'morgan', 'password': PASSWORD})
        assert response.url == reverse('core:dashboard')


class TestRegistration:
    def test_register_creates_member(self, client):
        response = client.post(reverse('core:register'), {
            'username': 'newbie',
            'full_name': 'New Person',
            'email': 'Newbie@Orbit.test',
            'password': 'long-enough-1',
            'confirm_password': 'long-enough-1',
        })

        assert response.status_code == 302
        user = User.objects.get(username='newbie')
        assert user.email == 'newbie@orbit.test'
        assert user.role == User.ROLE_MEMBER
        assert len(mail.outbox) == 1

    def test_duplicate_email_is_rejected(self, member):
        ok, message, user = auth_service.register({
            'username': 'other', 'full_name': 'Other', 'email': 'morgan@orbit.test', 'password': 'long-enough-1',
        })
        assert not ok
        assert user is None
        assert 'already registered' in message

    @pytest.mark.parametrize('data, error', [
        ({'username': 'ab', 'email': 'ab@orbit.test', 'password': 'long-enough-1', 'full_name': 'A'}, 'Username'),
        ({'username': 'abc', 'email': 'not-an-email', 'password': 'long-enough-1', 'full_name': 'A'}, 'Invalid email'),
        ({'username': 'abc', 'email': 'abc@orbit.test', 'password': 'short', 'full_name': 'A'}, 'Password'),
        ({'username': 'abc', 'email': 'abc@orbit.test', 'password': 'long-enough-1', 'full_name': ''}, 'full_name'),
    ])
    def test_invalid_registration(self, data, error):
        ok, message, _ = auth_service.register(data)
        assert not ok
        assert error in message


class TestPasswordReset:
    def test_token_round_trip(self, member):
        token = auth_service.make_reset_token(member)
        assert token.count('.') == 2
        assert auth_service.user_from_reset_token(token) == member

    def test_expired_token(self, member):
        token = auth_service.make_reset_token(member, now=timezone.now() - timedelta(hours=3))
        assert auth_service.user_from_reset_token(token) is None

    @pytest.mark.parametrize('mangle', [
        lambda t: t + 'x',
        lambda t: 'garbage',
        lambda t: '.'.join(['!!', *t.split('.')[1:]]),
        lambda t: '.'.join([*t.split('.')[:2], 'soon']),
    ])
    def test_tampered_token(self, member, mangle):
        assert auth_service.user_from_reset_token(mangle(auth_service.make_reset_token(member))) is None

    def test_reset_password_invalidates_token(self, client, member):
        token = auth_service.make_reset_token(member)

        ok, _ = auth_service.reset_password(token, 'brand-new-pass')
        assert ok
        assert auth_service.user_from_reset_token(token) is None
        assert post_login(client, 'morgan', 'brand-new-pass').status_code == 302

    def test_reset_rejects_short_password(self, member):
        ok, message = auth_service.reset_password(auth_service.make_reset_token(member), 'short')
        assert not ok
        assert '8 characters' in message

    def test_request_sends_mail_only_for_known_address(self, client, member):
        client.post(reverse('core:password_reset'), {'email': 'unknown@orbit.test'})
        assert len(mail.outbox) == 0

        response = client.post(reverse('core:password_reset'), {'email': member.email})
        assert response.status_code == 302
        assert len(mail.outbox) == 1
        assert '/password-reset/' in mail.outbox[0].body

    def test_confirm_view(self, client, member):
        token = auth_service.make_reset_token(member)
        url = reverse('core:password_reset_confirm', args=[token])

        assert client.get(url).status_code == 200
        response = client.post(url, {'password': 'brand-new-pass', 'confirm_password': 'brand-new-pass'})
        assert response.url == reverse('core:login')

        member.refresh_from_db()
        assert member.check_password('brand-new-pass')

    def test_confirm_view_with_bad_token(self, client):
        response = client.get(reverse('core:password_reset_confirm', args=['bad.token.1']))
        assert response.url == reverse('core:password_reset')
