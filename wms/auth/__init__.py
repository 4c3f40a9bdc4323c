"""Authentication helpers shared across blueprints."""

from __future__ import annotations

from functools import wraps
from typing import Callable, TypeVar, cast

from flask import jsonify
from flask_login import current_user

from wms.models import UserRole

F = TypeVar('F', bound=Callable[..., object])


def role_required(*required_roles: UserRole | str):
    """Decorator factory to require specific roles; answers 401/403 as JSON."""
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'error': 'Authentication required'}), 401

            if not current_user.has_role(*required_roles):
                return jsonify({'error': 'Unauthorized'}), 403

            return func(*args, **kwargs)
        return cast(F, wrapper)
    return decorator


admin_required = role_required(UserRole.ADMIN)
writer_required = role_required(UserRole.WRITER)


__all__ = [
    'role_required',
    'admin_required',
    'writer_required',
]
