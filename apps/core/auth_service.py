# apps/core/auth_service.py

"""
Authentication service

Registration, login with lockout after repeated failures, logout and
password reset live here so views only deal with HTTP.
"""

import logging
from typing import Dict, Optional, Tuple

from django.conf import settings
from django.contrib.auth import authenticate, login, logout
from django.contrib.auth.tokens import default_token_generator
from django.core.cache import cache
from django.core.mail import send_mail
from django.db.models import Q
from django.utils import timezone
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode

from .models import User

logger = logging.getLogger(__name__)

TOKEN_SEPARATOR = '.'


class AuthenticationService:
    """
    Authentication operations returning (success, message[, payload]) tuples

    Failed logins are counted per identifier in the cache; once the limit
    is reached the identifier stays locked for the configured minutes.
    """

    def __init__(self):
        self._max_login_attempts = settings.ORBIT_LOGIN_MAX_ATTEMPTS
        self._lockout_minutes = settings.ORBIT_LOGIN_LOCKOUT_MINUTES
        self._password_reset_hours = settings.ORBIT_PASSWORD_RESET_HOURS

    def register(self, data: Dict) -> Tuple[bool, str, Optional[User]]:
        """
        Creates a member account

        Args:
            data: username, email, password, full_name (department optional)

        Returns:
            Tuple[success, message, user]
        """
        ok, error = self._validate_registration(data)
        if not ok:
            return False, error, None

        if self._user_exists(data['username'], data['email']):
            return False, "Username or email already registered", None

        user = User.objects.create_user(
            username=data['username'].strip(),
            email=data['email'].strip().lower(),
            password=data['password'],
            full_name=data['full_name'].strip(),
            department=data.get('department'),
            role=User.ROLE_MEMBER,
        )
        self._send_welcome_email(user)
        logger.info(f"👤 New user registered: {user.username}")
        return True, "Account created successfully!", user

    def login(self, request, identifier: str, password: str, remember_me: bool = False) -> Tuple[bool, str]:
        """
        Logs a user in by username or email

        Returns:
            Tuple[success, message]
        """
        identifier = (identifier or '').strip()

        if self._is_locked(identifier):
            logger.warning(f"🔒 Login blocked for locked account: {identifier}")
            return False, f"Account temporarily locked. Try again in {self._lockout_minutes} minutes."

        user = self._authenticate(identifier, password)
        if user is None:
            attempts = self._register_failure(identifier)
            remaining = self._max_login_attempts - attempts
            if remaining <= 0:
                return False, f"Too many failed attempts. Account locked for {self._lockout_minutes} minutes."
            return False, "Invalid credentials"

        login(request, user)
        if remember_me:
            request.session.set_expiry(86400 * 30)  # 30 days
        self._reset_failures(identifier)

        logger.info(f"✅ Login: {user.username}")
        return True, f"Welcome, {user.display_name}!"

    def logout(self, request) -> None:
        username = getattr(request.user, 'username', None)
        logout(request)
        if username:
            logger.info(f"👋 Logout: {username}")

    def start_password_reset(self, email: str) -> Tuple[bool, str]:
        """
        Emails a reset link

        Unknown addresses get the same answer so the response does not
        reveal which emails are registered.
        """
        generic = "If the email exists you will receive reset instructions"
        user = User.objects.filter(email__iexact=(email or '').strip(), is_active=True).first()
        if user is None:
            return True, generic

        token = self.make_reset_token(user)
        if not self._send_reset_email(user, token):
            return False, "Could not send the email. Please try again."
        return True, generic

    def reset_password(self, token: str, new_password: str) -> Tuple[bool, str]:
        user = self.user_from_reset_token(token)
        if user is None:
            return False, "Invalid or expired token"

        if not self._valid_password(new_password):
            return False, "Password must be at least 8 characters"

        user.set_password(new_password)
        user.save()
        self._reset_failures(user.username)
        self._reset_failures(user.email)
        logger.info(f"🔑 Password reset for {user.username}")
        return True, "Password updated successfully!"

    def make_reset_token(self, user: User, now=None) -> str:
        """uid.token.timestamp"""
        timestamp = int((now or timezone.now()).timestamp())
        uid = urlsafe_base64_encode(force_bytes(user.pk))
        token = default_token_generator.make_token(user)
        return TOKEN_SEPARATOR.join([uid, token, str(timestamp)])

    def user_from_reset_token(self, token: str) -> Optional[User]:
        parts = (token or '').split(TOKEN_SEPARATOR)
        if len(parts) != 3:
            return None

        uid, token_part, timestamp = parts
        try:
            issued = int(timestamp)
            user_id = urlsafe_base64_decode(uid).decode()
        except (ValueError, UnicodeDecodeError):
            return None

        if int(timezone.now().timestamp()) - issued > self._password_reset_hours * 3600:
            return None

        user = User.objects.filter(pk=user_id).first() if user_id.isdigit() else None
        if user is None or not default_token_generator.check_token(user, token_part):
            return None
        return user

    # =================== PRIVATE ===================

    def _validate_registration(self, data: Dict) -> Tuple[bool, str]:
        for field in ['username', 'email', 'password', 'full_name']:
            if not (data.get(field) or '').strip():
                return False, f"Field {field} is required"

        email = data['email']
        if '@' not in email or '.' not in email.split('@')[-1]:
            return False, "Invalid email"

        if not self._valid_password(data['password']):
            return False, "Password must be at least 8 characters"

        username = data['username']
        if ' ' in username.strip() or len(username.strip()) < 3:
            return False, "Username must have at least 3 characters and no spaces"

        return True, ""

    def _valid_password(self, password: str) -> bool:
        return len(password or '') >= 8

    def _user_exists(self, username: str, email: str) -> bool:
        return User.objects.filter(
            Q(username__iexact=username.strip()) | Q(email__iexact=email.strip())
        ).exists()

    def _authenticate(self, identifier: str, password: str) -> Optional[User]:
        user = authenticate(username=identifier, password=password)
        if user is None and '@' in identifier:
            match = User.objects.filter(email__iexact=identifier, is_active=True).first()
            if match is not None:
                user = authenticate(username=match.username, password=password)
        return user

    def _attempts_key(self, identifier: str) -> str:
        return f'orbit:login-attempts:{identifier.lower()}'

    def _lock_key(self, identifier: str) -> str:
        return f'orbit:login-locked:{identifier.lower()}'

    def _is_locked(self, identifier: str) -> bool:
        return bool(cache.get(self._lock_key(identifier)))

    def _register_failure(self, identifier: str) -> int:
        key = self._attempts_key(identifier)
        attempts = cache.get(key, 0) + 1
        cache.set(key, attempts, self._lockout_minutes * 60)

        if attempts >= self._max_login_attempts:
            cache.set(self._lock_key(identifier), True, self._lockout_minutes * 60)
            logger.warning(f"🔒 Account locked after {attempts} failed attempts: {identifier}")
        else:
            logger.warning(f"⚠️ Failed login {attempts}/{self._max_login_attempts} for {identifier}")
        return attempts

    def _reset_failures(self, identifier: str):
        cache.delete_many([self._attempts_key(identifier), self._lock_key(identifier)])

    def _send_welcome_email(self, user: User):
        send_mail(
            subject='Welcome to Orbit Workspace',
            message=(
                f"Hi {user.display_name},\n\n"
                "Your Orbit Workspace account is ready. Ask a project owner to "
                "grant you access to their project modules.\n"
            ),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
            fail_silently=True,
        )

    def _send_reset_email(self, user: User, token: str) -> bool:
        base_url = getattr(settings, 'BASE_URL', 'http://localhost:8000')
        link = f"{base_url}/password-reset/{token}/"
        try:
            send_mail(
                subject='Password reset - Orbit Workspace',
                message=(
                    f"Hi {user.display_name},\n\n"
                    f"Use the link below to choose a new password:\n{link}\n\n"
                    f"The link expires in {self._password_reset_hours} hours.\n"
                ),
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[user.email],
                fail_silently=False,
            )
        except OSError:
            logger.exception(f"❌ Could not send reset email to {user.email}")
            return False
        return True


# Module-level singleton
auth_service = AuthenticationService()
