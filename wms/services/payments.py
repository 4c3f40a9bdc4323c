"""Payment settlement: debits against writer balances and their audit log."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from flask import current_app
from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import joinedload

from wms.extensions import db
from wms.models import (
    Payment,
    PaymentMethod,
    PaymentStatus,
    User,
    Writer,
    utcnow,
)
from wms.services.audit import log_payment_event
from wms.services.errors import (
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from wms.services.validation import to_positive_decimal


class PaymentService:
    """Service for creating and settling writer payments."""

    @staticmethod
    def create(
        writer_id: str,
        amount: Any,
        method: PaymentMethod | None = None,
        notes: str | None = None,
        currency: str | None = None,
        transaction_reference: str | None = None,
        created_by: str | None = None,
    ) -> Payment:
        """
        Reserve ``amount`` from a writer's balance as a pending payment.

        The balance is debited immediately; a failed payment credits it back.

        Raises:
            NotFoundError: writer does not exist
            InvalidInputError: amount is not a finite positive number
            InvalidStateError: amount exceeds the writer's balance
        """
        writer = db.session.get(Writer, writer_id)
        if not writer:
            raise NotFoundError('Writer not found')

        amount = to_positive_decimal(amount, 'payment amount')
        balance = Decimal(writer.balance or 0)
        if amount > balance:
            raise InvalidStateError('Payment amount exceeds writer balance')

        payment = Payment(
            writer_id=writer.id,
            amount=amount,
            currency=currency or current_app.config.get('PAYMENT_CURRENCY', 'KSH'),
            status=PaymentStatus.PENDING,
            method=method,
            transaction_reference=transaction_reference,
            notes=notes,
            created_by=created_by,
        )
        db.session.add(payment)
        writer.balance = balance - amount

        try:
            db.session.flush()
            log_payment_event(payment, PaymentStatus.PENDING, processed_by=created_by)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Error creating payment for writer {writer_id}: {e}")
            raise

        current_app.logger.info(f"Payment {payment.id} created for writer {writer.id}: {amount}")
        return payment

    @staticmethod
    def find_all(
        statuses: Iterable[PaymentStatus] | None = None,
        writer_id: str | None = None,
        method: PaymentMethod | None = None,
        search: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[Payment]:
        query = (
            select(Payment)
            .join(Writer, Payment.writer_id == Writer.id)
            .join(User, Writer.user_id == User.id)
            .options(joinedload(Payment.writer).joinedload(Writer.user))
        )

        statuses = list(statuses or [])
        if statuses:
            query = query.where(Payment.status.in_(statuses))
        if writer_id:
            query = query.where(Payment.writer_id == writer_id)
        if method:
            query = query.where(Payment.method == method)
        if search:
            pattern = f'%{search.lower()}%'
            query = query.where(
                or_(
                    func.lower(User.first_name).like(pattern),
                    func.lower(User.last_name).like(pattern),
                    Payment.writer_id == search,
                )
            )
        if date_from:
            query = query.where(Payment.created_at >= date_from)
        if date_to:
            query = query.where(Payment.created_at <= date_to)

        query = query.order_by(Payment.created_at.desc())
        return list(db.session.execute(query).unique().scalars())

    @staticmethod
    def find_one(payment_id: str) -> Payment:
        payment = db.session.get(Payment, payment_id)
        if not payment:
            raise NotFoundError('Payment not found')
        return payment

    @staticmethod
    def find_by_writer(writer_id: str) -> list[Payment]:
        return PaymentService.find_all(writer_id=writer_id)

    @staticmethod
    def get_pending_payments(writer_id: str | None = None) -> list[Payment]:
        return PaymentService.find_all(statuses=[PaymentStatus.PENDING], writer_id=writer_id)

    @staticmethod
    def mark_as_paid(
        payment_id: str,
        method: PaymentMethod,
        transaction_reference: str | None = None,
        notes: str | None = None,
        paid_by: str | None = None,
    ) -> Payment:
        """Settle a pending payment and dispatch the writer's notification."""
        payment = PaymentService._mark_paid(payment_id, method, transaction_reference, notes, paid_by)
        db.session.commit()

        current_app.logger.info(f"Payment {payment.id} marked as paid")
        PaymentService.dispatch_notification(payment)
        return payment

    @staticmethod
    def mark_selected_as_paid(
        payment_ids: list[str],
        method: PaymentMethod,
        transaction_reference: str | None = None,
        notes: str | None = None,
        paid_by: str | None = None,
    ) -> list[Payment]:
        """Settle several payments at once; any illegal one aborts the batch."""
        if not payment_ids:
            raise InvalidInputError('At least one payment is required')

        try:
            payments = [
                PaymentService._mark_paid(pid, method, transaction_reference, notes, paid_by)
                for pid in dict.fromkeys(payment_ids)
            ]
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        for payment in payments:
            PaymentService.dispatch_notification(payment)
        return payments

    @staticmethod
    def mark_all_as_paid(
        method: PaymentMethod,
        writer_id: str | None = None,
        transaction_reference: str | None = None,
        notes: str | None = None,
        paid_by: str | None = None,
    ) -> list[Payment]:
        pending = PaymentService.get_pending_payments(writer_id=writer_id)
        if not pending:
            raise InvalidStateError('No pending payments to mark as paid')

        return PaymentService.mark_selected_as_paid(
            [payment.id for payment in pending],
            method,
            transaction_reference=transaction_reference,
            notes=notes,
            paid_by=paid_by,
        )

    @staticmethod
    def _mark_paid(
        payment_id: str,
        method: PaymentMethod,
        transaction_reference: str | None,
        notes: str | None,
        paid_by: str | None,
    ) -> Payment:
        payment = PaymentService.find_one(payment_id)

        if payment.status == PaymentStatus.PAID:
            raise InvalidStateError('Payment is already marked as paid')
        if not payment.can_transition_to(PaymentStatus.PAID):
            raise InvalidStateError('Cannot mark a failed payment as paid')

        now = utcnow()
        payment.status = PaymentStatus.PAID
        payment.method = method
        payment.transaction_reference = transaction_reference
        payment.notes = notes
        payment.paid_by = paid_by
        payment.paid_at = now
        payment.processed_at = now

        log_payment_event(payment, PaymentStatus.PAID, method=method, processed_by=paid_by, notes=notes)
        return payment

    @staticmethod
    def mark_as_failed(payment_id: str, reason: str, processed_by: str | None = None) -> Payment:
        """
        Fail a pending payment and return its amount to the writer's balance.

        Only pending payments can fail, so the credit happens exactly once.
        """
        payment = PaymentService.find_one(payment_id)

        if payment.status == PaymentStatus.PAID:
            raise InvalidStateError('Cannot mark paid payment as failed')
        if not payment.can_transition_to(PaymentStatus.FAILED):
            raise InvalidStateError('Payment has already failed')

        payment.status = PaymentStatus.FAILED
        payment.notes = reason
        payment.processed_at = utcnow()

        writer = db.session.get(Writer, payment.writer_id)
        if writer:
            writer.balance = Decimal(writer.balance or 0) + Decimal(payment.amount)

        log_payment_event(payment, PaymentStatus.FAILED, processed_by=processed_by, notes=reason)
        db.session.commit()

        current_app.logger.info(f"Payment {payment.id} marked as failed; {payment.amount} returned to balance")
        return payment

    @staticmethod
    def dispatch_notification(payment: Payment) -> None:
        """Queue the paid notification, recording it in-request when queueing is off or fails."""
        if current_app.config.get('QUEUE_NOTIFICATIONS'):
            try:
                from wms.services.queue import queue_service
                queue_service.enqueue_payment_notification(payment.id)
                return
            except Exception as e:
                current_app.logger.warning(f"Failed to queue notification for payment {payment.id}: {e}")

        PaymentService.send_payment_notification(payment.id)

    @staticmethod
    def send_payment_notification(payment_id: str) -> Payment:
        """Record the paid notification once, with a summary note in the payment log."""
        payment = PaymentService.find_one(payment_id)
        if payment.notification_sent:
            return payment

        payment.notification_sent = True
        payment.notification_sent_at = utcnow()

        method = payment.method.value if payment.method else 'unspecified'
        note = ' | '.join([
            f"Notification sent | Subject: Payment Processed - {payment.currency} {Decimal(payment.amount):.2f}",
            f"Method: {method}",
            f"Txn Ref: {payment.transaction_reference or 'N/A'}",
        ])
        log_payment_event(
            payment,
            payment.status,
            processed_by=payment.paid_by,
            notes=note,
            notification_sent=True,
        )
        db.session.commit()
        return payment

    @staticmethod
    def get_total_payable_amount() -> float:
        total = db.session.execute(select(func.sum(Writer.balance))).scalar_one_or_none()
        return float(total or 0)

    @staticmethod
    def get_payment_stats() -> dict[str, Any]:
        row = db.session.execute(
            select(
                func.count(Payment.id),
                func.sum(case((Payment.status == PaymentStatus.PAID, 1), else_=0)),
                func.sum(case((Payment.status == PaymentStatus.PENDING, 1), else_=0)),
                func.sum(case((Payment.status == PaymentStatus.FAILED, 1), else_=0)),
                func.sum(case((Payment.status == PaymentStatus.PAID, Payment.amount), else_=0)),
                func.sum(case((Payment.status == PaymentStatus.PENDING, Payment.amount), else_=0)),
            )
        ).one()

        return {
            'total': int(row[0] or 0),
            'paid': int(row[1] or 0),
            'pending': int(row[2] or 0),
            'failed': int(row[3] or 0),
            'total_paid_amount': float(row[4] or 0),
            'total_pending_amount': float(row[5] or 0),
            'total_payable_amount': PaymentService.get_total_payable_amount(),
        }


__all__ = ['PaymentService']
