"""Writer profile and status management service."""
from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import joinedload

from wms.extensions import db
from wms.models import (
    WRITER_TRANSITIONS,
    CancellationConsequence,
    StatusAction,
    User,
    Writer,
    WriterStatus,
    WriterStatusLog,
)
from wms.services.audit import log_status_change
from wms.services.errors import InvalidStateError, NotFoundError

# Default penalty lengths applied when an order is cancelled with a consequence
PROBATION_DAYS = 7
SUSPENSION_DAYS = 30

_STATUS_ACTIONS = {
    WriterStatus.ACTIVE: StatusAction.ACTIVATION,
    WriterStatus.PROBATION: StatusAction.PROBATION,
    WriterStatus.SUSPENDED: StatusAction.SUSPENSION,
}


class WriterService:
    """Service for writer profiles, status transitions and balances."""

    @staticmethod
    def find_all(status: WriterStatus | None = None) -> list[Writer]:
        query = select(Writer).options(joinedload(Writer.user))
        if status:
            query = query.where(Writer.status == status)
        query = query.order_by(Writer.created_at.desc())
        return list(db.session.execute(query).scalars())

    @staticmethod
    def find_one(writer_id: str) -> Writer:
        writer = db.session.get(Writer, writer_id)
        if not writer:
            raise NotFoundError('Writer not found')
        return writer

    @staticmethod
    def find_by_user_id(user_id: str) -> Writer:
        writer = db.session.execute(
            select(Writer).where(Writer.user_id == user_id)
        ).scalar_one_or_none()
        if not writer:
            raise NotFoundError('Writer profile not found')
        return writer

    @staticmethod
    def update_status(
        writer_id: str,
        status: WriterStatus,
        reason: str,
        performed_by: str | None = None,
        duration_days: int | None = None,
    ) -> Writer:
        """Move a writer to a new status and record it in the status log."""
        writer = WriterService.find_one(writer_id)
        previous_status = writer.status

        if previous_status == status:
            raise InvalidStateError(f'Writer is already {status.value}')
        if status not in WRITER_TRANSITIONS[previous_status]:
            raise InvalidStateError(
                f'Cannot move writer from {previous_status.value} to {status.value}'
            )

        writer.status = status
        log_status_change(
            writer,
            previous_status,
            status,
            _STATUS_ACTIONS[status],
            reason,
            performed_by=performed_by,
            duration_days=duration_days,
        )
        if status == WriterStatus.SUSPENDED:
            writer.user.invalidate_sessions()

        db.session.commit()
        current_app.logger.info(
            f"Writer {writer.id} status changed {previous_status.value} -> {status.value}"
        )
        return writer

    @staticmethod
    def apply_consequence(
        writer: Writer,
        consequence: CancellationConsequence,
        reason: str,
        performed_by: str | None = None,
    ) -> WriterStatusLog | None:
        """
        Apply an order-cancellation penalty to a writer.

        Warnings change nothing. Probation and suspension change the writer's
        status, append a status log entry and invalidate the writer's sessions.
        Changes are left in the session for the caller to commit.
        """
        if consequence == CancellationConsequence.PROBATION:
            new_status, action, duration = WriterStatus.PROBATION, StatusAction.PROBATION, PROBATION_DAYS
        elif consequence == CancellationConsequence.SUSPENSION:
            new_status, action, duration = WriterStatus.SUSPENDED, StatusAction.SUSPENSION, SUSPENSION_DAYS
        else:
            return None

        previous_status = writer.status
        writer.status = new_status
        entry = log_status_change(
            writer,
            previous_status,
            new_status,
            action,
            f'Order cancellation: {reason}',
            performed_by=performed_by,
            duration_days=duration,
        )

        user = writer.user or db.session.get(User, writer.user_id)
        if user:
            user.invalidate_sessions()
        return entry

    @staticmethod
    def get_status_history(writer_id: str) -> list[WriterStatusLog]:
        WriterService.find_one(writer_id)
        query = (
            select(WriterStatusLog)
            .where(WriterStatusLog.writer_id == writer_id)
            .order_by(WriterStatusLog.created_at.desc())
        )
        return list(db.session.execute(query).scalars())

    @staticmethod
    def get_writer_analytics(writer_id: str) -> dict[str, Any]:
        writer = WriterService.find_one(writer_id)
        return {
            'total_earnings': float(writer.lifetime_earnings or 0),
            'current_balance': float(writer.balance or 0),
            'total_orders': writer.total_orders_completed,
            'total_pages': float(writer.total_pages_completed or 0),
            'current_shift_pages': float(writer.current_shift_pages or 0),
            'current_shift_orders': writer.current_shift_orders,
            'status': writer.status.value,
            'last_submission': writer.last_submission_date.isoformat() if writer.last_submission_date else None,
        }


__all__ = ['WriterService', 'PROBATION_DAYS', 'SUSPENSION_DAYS']
