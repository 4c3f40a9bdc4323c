"""Order ledger service: CRUD plus the order status state machine."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from flask import current_app
from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from wms.extensions import db
from wms.models import (
    CancellationConsequence,
    Order,
    OrderStatus,
    Submission,
    Writer,
    utcnow,
)
from wms.services.errors import (
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from wms.services.validation import quantize_money, to_positive_decimal
from wms.services.writers import WriterService

# Fields an admin may edit through update(); status moves only through transitions
_UPDATABLE_FIELDS = ('subject', 'deadline', 'instructions', 'pages', 'cpp')


def _parse_deadline(value: Any) -> datetime:
    if isinstance(value, str) and value.strip():
        try:
            value = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            raise InvalidInputError('Invalid deadline')
    if not isinstance(value, datetime):
        raise InvalidInputError('Deadline is required')
    # Stored naive in UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class OrderService:
    """Service for order lifecycle operations."""

    @staticmethod
    def create(
        subject: str,
        deadline: Any,
        pages: Any,
        cpp: Any,
        writer_id: str | None = None,
        order_number: str | None = None,
        instructions: str | None = None,
        attachments: list[tuple[str, str]] | None = None,
    ) -> Order:
        """
        Create a new order in ``assigned`` status.

        Args:
            subject: Order subject
            deadline: Deadline as datetime or ISO-8601 string
            pages: Page count, must be > 0
            cpp: Cost per page, must be > 0
            writer_id: Optional writer to assign (must not be suspended)
            order_number: Caller-supplied number; generated when omitted
            instructions: Free-text instructions
            attachments: (stored_path, display_name) pairs from the upload layer

        Returns:
            The persisted order
        """
        subject = (subject or '').strip()
        if not subject:
            raise InvalidInputError('Subject is required')
        pages = to_positive_decimal(pages, 'pages')
        cpp = to_positive_decimal(cpp, 'cpp')
        deadline = _parse_deadline(deadline)

        if writer_id:
            writer = WriterService.find_one(writer_id)
            if not writer.can_receive_work:
                raise ForbiddenError('Cannot assign orders to suspended writers')

        order_number = (order_number or '').strip() or OrderService.generate_order_number()
        attachments = attachments or []

        order = Order(
            order_number=order_number,
            subject=subject,
            deadline=deadline,
            pages=pages,
            cpp=cpp,
            total_amount=quantize_money(pages * cpp),
            instructions=instructions,
            writer_id=writer_id,
            status=OrderStatus.ASSIGNED,
            attachment_paths=[path for path, _ in attachments],
            attachment_names=[name for _, name in attachments],
        )
        db.session.add(order)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise InvalidStateError(f'Order number {order_number} already exists')

        current_app.logger.info(f"Order {order.order_number} created ({order.id})")
        return order

    @staticmethod
    def find_all(status: OrderStatus | None = None, writer_id: str | None = None) -> list[Order]:
        query = select(Order).options(joinedload(Order.writer).joinedload(Writer.user))
        if status:
            query = query.where(Order.status == status)
        if writer_id:
            query = query.where(Order.writer_id == writer_id)
        query = query.order_by(Order.created_at.desc())
        return list(db.session.execute(query).unique().scalars())

    @staticmethod
    def find_one(order_id: str) -> Order:
        order = db.session.get(Order, order_id)
        if not order:
            raise NotFoundError('Order not found')
        return order

    @staticmethod
    def find_by_order_number(order_number: str) -> Order:
        order = db.session.execute(
            select(Order).where(Order.order_number == order_number)
        ).scalar_one_or_none()
        if not order:
            raise NotFoundError('Order not found')
        return order

    @staticmethod
    def find_by_writer(writer_id: str) -> list[Order]:
        return OrderService.find_all(writer_id=writer_id)

    @staticmethod
    def update(order_id: str, **updates: Any) -> Order:
        """Update editable order fields, recomputing the total when pages or cpp change."""
        order = OrderService.find_one(order_id)

        unknown = set(updates) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise InvalidInputError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        if 'subject' in updates:
            subject = (updates['subject'] or '').strip()
            if not subject:
                raise InvalidInputError('Subject is required')
            order.subject = subject
        if 'deadline' in updates:
            order.deadline = _parse_deadline(updates['deadline'])
        if 'instructions' in updates:
            order.instructions = updates['instructions']

        if 'pages' in updates or 'cpp' in updates:
            pages = to_positive_decimal(updates['pages'], 'pages') if 'pages' in updates else order.pages
            cpp = to_positive_decimal(updates['cpp'], 'cpp') if 'cpp' in updates else order.cpp
            order.pages = pages
            order.cpp = cpp
            order.total_amount = quantize_money(Decimal(pages) * Decimal(cpp))

        db.session.commit()
        return order

    @staticmethod
    def assign_to_writer(order_id: str, writer_id: str) -> Order:
        order = OrderService.find_one(order_id)
        writer = WriterService.find_one(writer_id)

        if not writer.can_receive_work:
            raise ForbiddenError('Cannot assign orders to suspended writers')
        if not order.can_transition_to(OrderStatus.ASSIGNED):
            raise InvalidStateError(
                f'Cannot reassign an order that is {order.status.value}'
            )

        order.writer_id = writer.id
        order.status = OrderStatus.ASSIGNED
        db.session.commit()
        return order

    @staticmethod
    def mark_in_progress(order_id: str) -> Order:
        order = OrderService.find_one(order_id)
        if order.status != OrderStatus.ASSIGNED:
            raise InvalidStateError('Order must be assigned to mark as in progress')

        order.status = OrderStatus.IN_PROGRESS
        db.session.commit()
        return order

    @staticmethod
    def mark_submitted(order_id: str) -> Order:
        order = OrderService.find_one(order_id)
        if order.status != OrderStatus.IN_PROGRESS:
            raise InvalidStateError('Order must be in progress to mark as submitted')

        order.status = OrderStatus.SUBMITTED
        db.session.commit()
        return order

    @staticmethod
    def cancel_order(
        order_id: str,
        reason: str,
        consequence: CancellationConsequence,
        cancelled_by: str | None = None,
    ) -> Order:
        """
        Cancel an order and apply the chosen consequence to its writer.

        Probation and suspension penalties are logged in the writer's status
        history and invalidate the writer's sessions. The cancellation and
        the penalty commit together.
        """
        order = OrderService.find_one(order_id)

        if order.status == OrderStatus.CANCELLED:
            raise InvalidStateError('Order is already cancelled')
        if order.status == OrderStatus.SUBMITTED:
            raise InvalidStateError('Cannot cancel submitted orders')

        reason = (reason or '').strip()
        if not reason:
            raise InvalidInputError('Cancellation reason is required')

        order.status = OrderStatus.CANCELLED
        order.cancellation_reason = reason
        order.cancellation_consequence = consequence
        order.cancelled_by = cancelled_by
        order.cancelled_at = utcnow()

        if order.writer_id and consequence != CancellationConsequence.WARNING:
            writer = db.session.get(Writer, order.writer_id)
            if writer:
                WriterService.apply_consequence(writer, consequence, reason, performed_by=cancelled_by)

        db.session.commit()
        current_app.logger.info(
            f"Order {order.order_number} cancelled with consequence {consequence.value}"
        )
        return order

    @staticmethod
    def remove(order_id: str) -> None:
        """Delete an order that has no submissions."""
        order = OrderService.find_one(order_id)
        has_submissions = db.session.execute(
            select(func.count(Submission.id)).where(Submission.order_id == order.id)
        ).scalar_one()
        if has_submissions:
            raise InvalidStateError('Cannot delete an order with submissions')

        db.session.delete(order)
        db.session.commit()

    @staticmethod
    def get_order_stats() -> dict[str, Any]:
        row = db.session.execute(
            select(
                func.count(Order.id),
                func.sum(case((Order.status == OrderStatus.ASSIGNED, 1), else_=0)),
                func.sum(case((Order.status == OrderStatus.IN_PROGRESS, 1), else_=0)),
                func.sum(case((Order.status == OrderStatus.SUBMITTED, 1), else_=0)),
                func.sum(case((Order.status == OrderStatus.CANCELLED, 1), else_=0)),
                func.sum(case((Order.status == OrderStatus.SUBMITTED, Order.total_amount), else_=0)),
            )
        ).one()

        return {
            'total': int(row[0] or 0),
            'assigned': int(row[1] or 0),
            'in_progress': int(row[2] or 0),
            'submitted': int(row[3] or 0),
            'cancelled': int(row[4] or 0),
            'total_completed_amount': float(row[5] or 0),
        }

    @staticmethod
    def generate_order_number() -> str:
        """Return ``{YYYYMMDD}{NNN}``, the next sequence for today's prefix; grows past 999."""
        prefix = utcnow().strftime('%Y%m%d')
        last_number = db.session.execute(
            select(Order.order_number)
            .where(Order.order_number.like(f'{prefix}%'))
            .order_by(func.length(Order.order_number).desc(), Order.order_number.desc())
            .limit(1)
        ).scalar_one_or_none()

        sequence = 1
        if last_number:
            suffix = last_number[len(prefix):]
            if suffix.isdigit():
                sequence = int(suffix) + 1
            else:
                sequence = db.session.execute(
                    select(func.count(Order.id)).where(Order.order_number.like(f'{prefix}%'))
                ).scalar_one() + 1

        return f'{prefix}{sequence:03d}'


__all__ = ['OrderService']
