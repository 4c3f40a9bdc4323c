"""Request parsing and error rendering shared by the JSON blueprints."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from flask import Flask, current_app, jsonify, request
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from wms.extensions import db
from wms.models import UserRole
from wms.services.errors import ForbiddenError, InvalidInputError, LedgerError, NotFoundError
from wms.services.uploads import save_attachments

E = TypeVar('E', bound=Enum)


def get_payload() -> dict[str, Any]:
    """JSON body, or form fields for multipart requests."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def parse_enum(enum_cls: type[E], value: Any, field: str) -> E:
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise InvalidInputError(f'Invalid {field}: expected one of {allowed}')


def parse_optional_enum(enum_cls: type[E], value: Any, field: str) -> E | None:
    if value in (None, ''):
        return None
    return parse_enum(enum_cls, value, field)


def parse_datetime_arg(name: str) -> datetime | None:
    value = request.args.get(name)
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise InvalidInputError(f'Invalid {name} date')
    return parsed.replace(tzinfo=None)


def uploaded_files(subfolder: str) -> list[tuple[str, str]]:
    """Store files sent under ``files`` and return (path, name) pairs."""
    files = request.files.getlist('files')
    if not files:
        return []
    return save_attachments(files, subfolder)


def is_admin() -> bool:
    return current_user.is_authenticated and current_user.has_role(UserRole.ADMIN)


def ensure_owner_or_admin(writer_id: str | None) -> None:
    """Writers may only see their own records."""
    if is_admin():
        return
    writer = current_user.writer_profile
    if writer is None or writer.id != writer_id:
        raise ForbiddenError('Unauthorized')


def require_writer_profile():
    writer = current_user.writer_profile
    if writer is None:
        raise NotFoundError('Writer profile not found')
    return writer


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(LedgerError)
    def handle_ledger_error(error: LedgerError):
        return jsonify({'error': error.message}), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.error(f"Database error: {error}")
        return jsonify({'error': 'Database error'}), 500

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(413)
    def too_large(error):
        return jsonify({'error': 'Upload too large'}), 413


__all__ = [
    'get_payload',
    'parse_enum',
    'parse_optional_enum',
    'parse_datetime_arg',
    'uploaded_files',
    'is_admin',
    'ensure_owner_or_admin',
    'require_writer_profile',
    'register_error_handlers',
]
