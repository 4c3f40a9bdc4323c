"""JSON-ready dict renderings of ledger entities."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable

from wms.models import (
    Order,
    Payment,
    PaymentLog,
    Shift,
    Submission,
    User,
    Writer,
    WriterStatusLog,
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _num(value: Decimal | None) -> float:
    return float(value) if value is not None else 0.0


def _enum(value: Enum | None) -> str | None:
    return value.value if value is not None else None


def serialize_user(user: User) -> dict:
    return {
        'id': user.id,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'full_name': user.full_name,
        'phone': user.phone,
        'role': _enum(user.role),
        'is_active': user.is_active,
        'is_approved': user.is_approved,
        'writer_id': user.writer_profile.id if user.writer_profile else None,
        'created_at': _iso(user.created_at),
    }


def serialize_writer(writer: Writer) -> dict:
    return {
        'id': writer.id,
        'user_id': writer.user_id,
        'name': writer.user.full_name if writer.user else None,
        'email': writer.user.email if writer.user else None,
        'status': _enum(writer.status),
        'balance': _num(writer.balance),
        'lifetime_earnings': _num(writer.lifetime_earnings),
        'total_orders_completed': writer.total_orders_completed,
        'total_pages_completed': _num(writer.total_pages_completed),
        'current_shift_pages': _num(writer.current_shift_pages),
        'current_shift_orders': writer.current_shift_orders,
        'last_submission_date': _iso(writer.last_submission_date),
        'created_at': _iso(writer.created_at),
    }


def serialize_status_log(entry: WriterStatusLog) -> dict:
    return {
        'id': entry.id,
        'writer_id': entry.writer_id,
        'previous_status': _enum(entry.previous_status),
        'new_status': _enum(entry.new_status),
        'action': _enum(entry.action),
        'reason': entry.reason,
        'performed_by': entry.performed_by,
        'duration_days': entry.duration_days,
        'expires_at': _iso(entry.expires_at),
        'created_at': _iso(entry.created_at),
    }


def serialize_shift(shift: Shift) -> dict:
    return {
        'id': shift.id,
        'start_time': _iso(shift.start_time),
        'end_time': _iso(shift.end_time),
        'shift_date': shift.shift_date,
        'max_pages_per_shift': shift.max_pages_per_shift,
        'is_active': shift.is_active,
    }


def serialize_order(order: Order) -> dict:
    return {
        'id': order.id,
        'order_number': order.order_number,
        'subject': order.subject,
        'deadline': _iso(order.deadline),
        'pages': _num(order.pages),
        'cpp': _num(order.cpp),
        'total_amount': _num(order.total_amount),
        'instructions': order.instructions,
        'writer_id': order.writer_id,
        'writer_name': order.writer.user.full_name if order.writer and order.writer.user else None,
        'status': _enum(order.status),
        'is_overdue': order.is_overdue,
        'days_to_due': order.days_to_due,
        'cancellation_reason': order.cancellation_reason,
        'cancellation_consequence': _enum(order.cancellation_consequence),
        'cancelled_by': order.cancelled_by,
        'cancelled_at': _iso(order.cancelled_at),
        'attachment_paths': list(order.attachment_paths or []),
        'attachment_names': list(order.attachment_names or []),
        'created_at': _iso(order.created_at),
    }


def serialize_submission(submission: Submission) -> dict:
    return {
        'id': submission.id,
        'order_id': submission.order_id,
        'order_number': submission.order.order_number if submission.order else None,
        'writer_id': submission.writer_id,
        'shift_id': submission.shift_id,
        'pages_worked': _num(submission.pages_worked),
        'cpp': _num(submission.cpp),
        'amount': _num(submission.amount),
        'file_paths': list(submission.file_paths or []),
        'file_names': list(submission.file_names or []),
        'notes': submission.notes,
        'status': _enum(submission.status),
        'reviewed_by': submission.reviewed_by,
        'review_notes': submission.review_notes,
        'reviewed_at': _iso(submission.reviewed_at),
        'created_at': _iso(submission.created_at),
    }


def serialize_payment(payment: Payment) -> dict:
    return {
        'id': payment.id,
        'writer_id': payment.writer_id,
        'writer_name': payment.writer.user.full_name if payment.writer and payment.writer.user else None,
        'amount': _num(payment.amount),
        'currency': payment.currency,
        'status': _enum(payment.status),
        'method': _enum(payment.method),
        'transaction_reference': payment.transaction_reference,
        'notes': payment.notes,
        'created_by': payment.created_by,
        'paid_by': payment.paid_by,
        'paid_at': _iso(payment.paid_at),
        'processed_at': _iso(payment.processed_at),
        'notification_sent': payment.notification_sent,
        'notification_sent_at': _iso(payment.notification_sent_at),
        'created_at': _iso(payment.created_at),
    }


def serialize_payment_log(entry: PaymentLog) -> dict:
    return {
        'id': entry.id,
        'payment_id': entry.payment_id,
        'transaction_id': entry.transaction_id,
        'writer_id': entry.writer_id,
        'amount': _num(entry.amount),
        'currency': entry.currency,
        'status': _enum(entry.status),
        'payment_method': _enum(entry.payment_method),
        'processed_by': entry.processed_by,
        'processed_at': _iso(entry.processed_at),
        'notification_sent': entry.notification_sent,
        'notes': entry.notes,
    }


def serialize_many(serializer, items: Iterable[Any]) -> list[dict]:
    return [serializer(item) for item in items]


__all__ = [
    'serialize_user',
    'serialize_writer',
    'serialize_status_log',
    'serialize_shift',
    'serialize_order',
    'serialize_submission',
    'serialize_payment',
    'serialize_payment_log',
    'serialize_many',
]
