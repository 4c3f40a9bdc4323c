"""Append-only audit trails for writer status changes and payment events."""

from __future__ import annotations

import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

from wms.extensions import db
from wms.models import (
    PaymentLog,
    PaymentMethod,
    PaymentStatus,
    StatusAction,
    WriterStatus,
    WriterStatusLog,
    utcnow,
)

if TYPE_CHECKING:
    from wms.models import Payment, Writer


def log_status_change(
    writer: Writer,
    previous_status: WriterStatus | None,
    new_status: WriterStatus,
    action: StatusAction,
    reason: str,
    performed_by: str | None = None,
    duration_days: int | None = None,
) -> WriterStatusLog:
    """
    Record a writer status transition.

    The row is added to the current session only; the caller commits it
    together with the status change it describes.

    Args:
        writer: Writer whose status changed
        previous_status: Status before the change
        new_status: Status after the change
        action: Kind of action (warning, probation, suspension, activation)
        reason: Free-text reason shown to admins
        performed_by: Admin user id
        duration_days: Optional length of a probation/suspension
    """
    entry = WriterStatusLog(
        writer_id=writer.id,
        previous_status=previous_status,
        new_status=new_status,
        action=action,
        reason=reason,
        performed_by=performed_by,
        duration_days=duration_days,
        expires_at=utcnow() + timedelta(days=duration_days) if duration_days else None,
    )
    db.session.add(entry)
    return entry


def log_payment_event(
    payment: Payment,
    status: PaymentStatus,
    method: PaymentMethod | None = None,
    processed_by: str | None = None,
    notes: str | None = None,
    notification_sent: bool = False,
) -> PaymentLog:
    """
    Mirror a payment event into the payment log.

    Args:
        payment: Payment the event belongs to (must already have an id)
        status: Status recorded for this event
        method: Payment method, defaults to the payment's method
        processed_by: Admin user id
        notes: Notes, defaults to the payment's notes
        notification_sent: Whether this event records a sent notification
    """
    entry = PaymentLog(
        payment_id=payment.id,
        transaction_id=generate_transaction_id(),
        writer_id=payment.writer_id,
        amount=payment.amount,
        currency=payment.currency,
        status=status,
        payment_method=method or payment.method,
        processed_by=processed_by,
        processed_at=utcnow(),
        notification_sent=notification_sent,
        notes=notes if notes is not None else payment.notes,
    )
    db.session.add(entry)
    return entry


def generate_transaction_id() -> str:
    """Return an id like ``TXN-20250101123045-042``."""
    now = utcnow()
    return f"TXN-{now.strftime('%Y%m%d%H%M%S')}-{secrets.randbelow(1000):03d}"


__all__ = ["log_status_change", "log_payment_event", "generate_transaction_id"]
