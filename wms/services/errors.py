"""Typed failures raised by the ledger services.

Every service validates its preconditions before touching the session, so a
raised error means nothing was written. Blueprints translate these into JSON
responses through ``status_code``.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for expected, caller-facing failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LedgerError):
    """Referenced writer/order/submission/payment/user does not exist."""

    status_code = 404


class ForbiddenError(LedgerError):
    """Actor may not perform the operation (wrong owner, suspended writer)."""

    status_code = 403


class InvalidStateError(LedgerError):
    """Operation is not legal from the entity's current state."""

    status_code = 409


class InvalidInputError(LedgerError):
    """Malformed input, including non-finite or non-positive numbers."""

    status_code = 400


class UnauthorizedError(LedgerError):
    """Credentials, invite or reset code were not accepted."""

    status_code = 401


__all__ = [
    'LedgerError',
    'NotFoundError',
    'ForbiddenError',
    'InvalidStateError',
    'InvalidInputError',
    'UnauthorizedError',
]
