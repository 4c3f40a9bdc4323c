"""Account lifecycle: registration, invites, approval, login and password resets."""
from __future__ import annotations

import secrets
import uuid
from datetime import timedelta
from typing import Any

from flask import current_app
from sqlalchemy import select

from wms.extensions import bcrypt, db
from wms.models import User, UserRole, Writer, WriterStatus, utcnow
from wms.services.errors import (
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)

MIN_PASSWORD_LENGTH = 8
PLACEHOLDER_EMAIL_DOMAIN = 'placeholder.temp'


def _normalize_email(email: str | None) -> str:
    email = (email or '').strip().lower()
    if not email or '@' not in email:
        raise InvalidInputError('A valid email is required')
    return email


def _check_password_strength(password: str | None) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    return password


class AccountService:
    """Service for user accounts."""

    @staticmethod
    def register(data: dict[str, Any], invite_token: str | None = None) -> User:
        """
        Register a writer account awaiting admin approval.

        When ``invite_token`` is given it must match an unexpired invite; the
        invite's placeholder user is removed as part of the registration.

        Args:
            data: email, password, first_name, last_name and optional phone
            invite_token: Token from an invite link

        Returns:
            The new (unapproved) user with a writer profile
        """
        email = _normalize_email(data.get('email'))
        password = _check_password_strength(data.get('password'))

        if invite_token:
            placeholder = db.session.execute(
                select(User).where(User.invite_token == invite_token)
            ).scalar_one_or_none()
            if not placeholder:
                raise UnauthorizedError('Invalid invite token')
            if placeholder.invite_token_expiry and utcnow() > placeholder.invite_token_expiry:
                db.session.delete(placeholder)
                db.session.commit()
                raise UnauthorizedError('Invite link has expired')
            db.session.delete(placeholder)

        existing = db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if existing:
            db.session.rollback()
            raise InvalidStateError('User already exists')

        user = User(
            email=email,
            first_name=(data.get('first_name') or '').strip(),
            last_name=(data.get('last_name') or '').strip(),
            phone=data.get('phone'),
            role=UserRole.WRITER,
            active=True,
            is_approved=False,
        )
        user.set_password(password)
        user.writer_profile = Writer(status=WriterStatus.ACTIVE)
        db.session.add(user)
        db.session.commit()

        current_app.logger.info(f"Writer registered: {email} (pending approval)")
        return user

    @staticmethod
    def create_user(
        email: str,
        password: str,
        role: UserRole,
        first_name: str = '',
        last_name: str = '',
        phone: str | None = None,
    ) -> User:
        """Create an approved, active account directly (admin tooling)."""
        email = _normalize_email(email)
        _check_password_strength(password)
        if db.session.execute(select(User).where(User.email == email)).scalar_one_or_none():
            raise InvalidStateError('User already exists')

        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role=role,
            active=True,
            is_approved=True,
        )
        user.set_password(password)
        if role == UserRole.WRITER:
            user.writer_profile = Writer(status=WriterStatus.ACTIVE)
        db.session.add(user)
        db.session.commit()
        return user

    @staticmethod
    def generate_invite_link(expiry_hours: int | None = None, invited_by: str | None = None) -> dict[str, Any]:
        """Create an invite placeholder and return its registration URL."""
        if expiry_hours is None:
            expiry_hours = current_app.config.get('INVITE_EXPIRY_HOURS', 48)
        if expiry_hours <= 0:
            raise InvalidInputError('Expiry hours must be greater than zero')

        token = str(uuid.uuid4())
        expires_at = utcnow() + timedelta(hours=expiry_hours)

        placeholder = User(
            email=f'invite-{token}@{PLACEHOLDER_EMAIL_DOMAIN}',
            first_name='Pending',
            last_name='Invite',
            role=UserRole.WRITER,
            active=False,
            is_approved=False,
            invite_token=token,
            invite_token_expiry=expires_at,
            invited_by=invited_by,
        )
        # Unusable password; placeholders can never log in
        placeholder.set_password(secrets.token_urlsafe(32))
        db.session.add(placeholder)
        db.session.commit()

        frontend_url = current_app.config.get('FRONTEND_URL', 'http://localhost:3002').rstrip('/')
        return {
            'invite_token': token,
            'invite_url': f'{frontend_url}/register?invite={token}',
            'expires_at': expires_at.isoformat(),
        }

    @staticmethod
    def find_one(user_id: str) -> User:
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError('User not found')
        return user

    @staticmethod
    def get_pending_approvals() -> list[User]:
        query = (
            select(User)
            .where(User.is_approved.is_(False), User.invite_token.is_(None))
            .order_by(User.created_at.asc())
        )
        return list(db.session.execute(query).scalars())

    @staticmethod
    def approve_user(user_id: str) -> User:
        user = AccountService.find_one(user_id)
        if user.is_approved:
            raise InvalidStateError('User is already approved')
        user.is_approved = True
        db.session.commit()
        current_app.logger.info(f"User {user.email} approved")
        return user

    @staticmethod
    def reject_user(user_id: str) -> None:
        """Hard-delete a registration that has not been approved."""
        user = AccountService.find_one(user_id)
        if user.is_approved:
            raise InvalidStateError('Approved users cannot be rejected')
        email = user.email
        db.session.delete(user)
        db.session.commit()
        current_app.logger.info(f"User {email} rejected")

    @staticmethod
    def activate_user(user_id: str) -> User:
        user = AccountService.find_one(user_id)
        user.active = True
        db.session.commit()
        return user

    @staticmethod
    def deactivate_user(user_id: str) -> User:
        user = AccountService.find_one(user_id)
        user.active = False
        user.invalidate_sessions()
        db.session.commit()
        return user

    @staticmethod
    def authenticate(email: str, password: str) -> User:
        """Return the user for valid credentials or raise UnauthorizedError."""
        email = (email or '').strip().lower()
        user = db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if not user or user.invite_token or not user.check_password(password or ''):
            raise UnauthorizedError('Invalid credentials')
        if not user.is_approved:
            raise UnauthorizedError('Account not yet approved')
        if not user.is_active:
            raise UnauthorizedError('Account is inactive')
        if user.has_role(UserRole.WRITER) and user.writer_profile \
                and user.writer_profile.status == WriterStatus.SUSPENDED:
            raise UnauthorizedError('Writer account is suspended')
        return user

    @staticmethod
    def change_password(user_id: str, current_password: str, new_password: str) -> User:
        user = AccountService.find_one(user_id)
        if not user.check_password(current_password or ''):
            raise UnauthorizedError('Current password is incorrect')
        user.set_password(_check_password_strength(new_password))
        user.invalidate_sessions()
        db.session.commit()
        return user

    @staticmethod
    def issue_reset_code(email: str) -> str | None:
        """
        Store a hashed 6-digit reset code for ``email`` and return the plain code.

        Returns None for unknown or inactive accounts so callers can answer
        identically either way.
        """
        email = (email or '').strip().lower()
        user = db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if not user or not user.is_active or user.invite_token:
            return None

        code = f'{secrets.randbelow(1_000_000):06d}'
        minutes = current_app.config.get('RESET_CODE_EXPIRY_MINUTES', 15)
        user.reset_otp_hash = bcrypt.hashpw(code.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')
        user.reset_otp_expiry = utcnow() + timedelta(minutes=minutes)
        db.session.commit()

        current_app.logger.info(f"Password reset code issued for {email}")
        return code

    @staticmethod
    def reset_password_with_code(email: str, code: str, new_password: str) -> User:
        email = (email or '').strip().lower()
        user = db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if not user or not user.reset_otp_hash or not user.reset_otp_expiry:
            raise UnauthorizedError('Invalid or expired reset code')
        if utcnow() > user.reset_otp_expiry:
            raise UnauthorizedError('Invalid or expired reset code')
        if not bcrypt.checkpw((code or '').encode('utf-8'), user.reset_otp_hash.encode('utf-8')):
            raise UnauthorizedError('Invalid or expired reset code')

        user.set_password(_check_password_strength(new_password))
        user.reset_otp_hash = None
        user.reset_otp_expiry = None
        user.invalidate_sessions()
        db.session.commit()
        return user


__all__ = ['AccountService', 'MIN_PASSWORD_LENGTH']
