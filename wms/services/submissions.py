"""Submission workflow: writer claims, admin review and shift progress views."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from flask import current_app
from sqlalchemy import case, func, select
from sqlalchemy.orm import joinedload

from wms.extensions import db
from wms.models import (
    Order,
    OrderStatus,
    Submission,
    SubmissionStatus,
    Writer,
    WriterStatus,
    utcnow,
)
from wms.services.errors import (
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from wms.services.shifts import ShiftService
from wms.services.validation import quantize_money, to_positive_decimal


def _percent(part: Decimal, whole: int) -> int:
    if not whole:
        return 0
    ratio = Decimal(100) * Decimal(part) / Decimal(whole)
    return int(ratio.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


class SubmissionService:
    """Service for submissions and their review."""

    @staticmethod
    def create(
        order_id: str,
        pages_worked: Any,
        cpp: Any,
        writer_id: str,
        files: list[tuple[str, str]] | None = None,
        notes: str | None = None,
    ) -> Submission:
        """
        Record a writer's completed pages against one of their orders.

        The submission is tagged with the active shift and counts toward the
        writer's shift pages. The shift quota is advisory; exceeding it is
        reported by the progress view and never rejected here.

        Args:
            order_id: Order the work belongs to
            pages_worked: Pages completed, must be > 0
            cpp: Cost per page snapshot, must be > 0
            writer_id: Submitting writer
            files: (stored_path, display_name) pairs from the upload layer
            notes: Optional notes for the reviewer

        Returns:
            The pending submission
        """
        writer = db.session.get(Writer, writer_id)
        if not writer:
            raise NotFoundError('Writer not found')
        if writer.status == WriterStatus.SUSPENDED:
            raise ForbiddenError('Suspended writers cannot submit work')

        order = db.session.get(Order, order_id)
        if not order:
            raise NotFoundError('Order not found')
        if order.writer_id != writer.id:
            raise ForbiddenError('You can only submit work for your assigned orders')
        if order.status in (OrderStatus.SUBMITTED, OrderStatus.CANCELLED):
            raise InvalidStateError('Cannot submit work for this order')

        shift = ShiftService.get_active_shift()
        if shift is None:
            raise InvalidStateError('No active shift found')

        pages_worked = to_positive_decimal(pages_worked, 'pages worked')
        cpp = to_positive_decimal(cpp, 'cpp')
        files = files or []

        submission = Submission(
            order_id=order.id,
            writer_id=writer.id,
            shift_id=shift.id,
            pages_worked=pages_worked,
            cpp=cpp,
            amount=quantize_money(pages_worked * cpp),
            file_paths=[path for path, _ in files],
            file_names=[name for _, name in files],
            notes=notes,
            status=SubmissionStatus.PENDING,
        )
        db.session.add(submission)

        writer.current_shift_pages = Decimal(writer.current_shift_pages or 0) + pages_worked
        writer.last_submission_date = utcnow()

        if order.status == OrderStatus.ASSIGNED:
            order.status = OrderStatus.IN_PROGRESS

        db.session.commit()
        current_app.logger.info(
            f"Submission {submission.id} created for order {order.order_number} "
            f"({pages_worked} pages)"
        )
        return submission

    @staticmethod
    def find_all(status: SubmissionStatus | None = None) -> list[Submission]:
        query = select(Submission).options(
            joinedload(Submission.order),
            joinedload(Submission.writer).joinedload(Writer.user),
        )
        if status:
            query = query.where(Submission.status == status)
        query = query.order_by(Submission.created_at.desc())
        return list(db.session.execute(query).unique().scalars())

    @staticmethod
    def find_one(submission_id: str) -> Submission:
        submission = db.session.get(Submission, submission_id)
        if not submission:
            raise NotFoundError('Submission not found')
        return submission

    @staticmethod
    def find_by_writer(writer_id: str) -> list[Submission]:
        query = (
            select(Submission)
            .options(joinedload(Submission.order))
            .where(Submission.writer_id == writer_id)
            .order_by(Submission.created_at.desc())
        )
        return list(db.session.execute(query).unique().scalars())

    @staticmethod
    def find_pending_reviews() -> list[Submission]:
        """Pending submissions, oldest first."""
        query = (
            select(Submission)
            .options(
                joinedload(Submission.order),
                joinedload(Submission.writer).joinedload(Writer.user),
            )
            .where(Submission.status == SubmissionStatus.PENDING)
            .order_by(Submission.created_at.asc())
        )
        return list(db.session.execute(query).unique().scalars())

    @staticmethod
    def review_submission(
        submission_id: str,
        status: SubmissionStatus,
        review_notes: str | None = None,
        reviewed_by: str | None = None,
    ) -> Submission:
        """
        Approve or reject a pending submission.

        Approval credits the writer with the submission amount and pages and
        completes the order once its pending and approved pages cover the
        order's page count. The review and its effects commit together.
        """
        if status not in (SubmissionStatus.APPROVED, SubmissionStatus.REJECTED):
            raise InvalidInputError('Review status must be approved or rejected')

        submission = SubmissionService.find_one(submission_id)
        if not submission.can_transition_to(status):
            raise InvalidStateError('Submission has already been reviewed')

        submission.status = status
        submission.review_notes = review_notes
        submission.reviewed_by = reviewed_by
        submission.reviewed_at = utcnow()

        try:
            if status == SubmissionStatus.APPROVED:
                SubmissionService._apply_approval(submission)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Error reviewing submission {submission_id}: {e}")
            raise

        current_app.logger.info(f"Submission {submission.id} {status.value}")
        return submission

    @staticmethod
    def _apply_approval(submission: Submission) -> None:
        writer = db.session.get(Writer, submission.writer_id)
        if writer:
            amount = Decimal(submission.amount)
            pages = Decimal(submission.pages_worked)
            writer.balance = Decimal(writer.balance or 0) + amount
            writer.lifetime_earnings = Decimal(writer.lifetime_earnings or 0) + amount
            writer.total_pages_completed = Decimal(writer.total_pages_completed or 0) + pages
            writer.total_orders_completed = (writer.total_orders_completed or 0) + 1

        order = db.session.get(Order, submission.order_id)
        if order is None:
            return

        covered_pages = SubmissionService._submitted_pages_for_order(order.id)
        if covered_pages >= Decimal(order.pages) and order.can_transition_to(OrderStatus.SUBMITTED):
            order.status = OrderStatus.SUBMITTED

    @staticmethod
    def _submitted_pages_for_order(order_id: str) -> Decimal:
        total = db.session.execute(
            select(func.coalesce(func.sum(Submission.pages_worked), 0)).where(
                Submission.order_id == order_id,
                Submission.status.in_([SubmissionStatus.PENDING, SubmissionStatus.APPROVED]),
            )
        ).scalar_one()
        return Decimal(str(total))

    @staticmethod
    def calculate_writer_progress(writer_id: str) -> dict[str, Any]:
        """
        Summarise a writer's pages in the current shift against its quota.

        Pages are bucketed by submission status. Remaining pages never go
        below zero; percent complete may exceed 100.
        """
        writer = db.session.get(Writer, writer_id)
        if not writer:
            raise NotFoundError('Writer not found')

        shift = ShiftService.get_current_shift()
        target = shift.max_pages_per_shift

        rows = db.session.execute(
            select(
                Submission.status,
                func.coalesce(func.sum(Submission.pages_worked), 0),
                func.count(Submission.id),
            )
            .where(
                Submission.writer_id == writer.id,
                Submission.created_at >= shift.start_time,
            )
            .group_by(Submission.status)
        ).all()

        pages = {status: Decimal('0') for status in SubmissionStatus}
        submission_count = 0
        for status, total, count in rows:
            pages[status] = Decimal(str(total))
            submission_count += count

        approved = pages[SubmissionStatus.APPROVED]
        pending = pages[SubmissionStatus.PENDING]
        rejected = pages[SubmissionStatus.REJECTED]
        remaining = max(Decimal(target) - approved, Decimal('0'))

        return {
            'writer_id': writer.id,
            'writer_name': writer.user.full_name if writer.user else None,
            'target_pages': target,
            'submitted_pages': float(approved + pending + rejected),
            'approved_pages': float(approved),
            'pending_pages': float(pending),
            'rejected_pages': float(rejected),
            'remaining_pages': float(remaining),
            'percent_complete': _percent(approved, target),
            'is_on_target': approved >= target,
            'shift_start_time': shift.start_time.isoformat(),
            'shift_end_time': shift.end_time.isoformat(),
            'submission_count': submission_count,
        }

    @staticmethod
    def get_all_writers_progress() -> dict[str, Any]:
        writers = db.session.execute(
            select(Writer).options(joinedload(Writer.user)).order_by(Writer.created_at)
        ).scalars().all()

        progress = [SubmissionService.calculate_writer_progress(w.id) for w in writers]
        return {
            'writers': progress,
            'summary': {
                'total_writers': len(progress),
                'writers_at_target': sum(1 for p in progress if p['is_on_target']),
                'writers_on_track': sum(
                    1 for p in progress if not p['is_on_target'] and p['percent_complete'] >= 50
                ),
                'writers_behind': sum(1 for p in progress if p['percent_complete'] < 50),
                'total_approved_pages': sum(p['approved_pages'] for p in progress),
                'total_pending_pages': sum(p['pending_pages'] for p in progress),
            },
        }

    @staticmethod
    def get_submission_stats() -> dict[str, Any]:
        row = db.session.execute(
            select(
                func.count(Submission.id),
                func.sum(case((Submission.status == SubmissionStatus.PENDING, 1), else_=0)),
                func.sum(case((Submission.status == SubmissionStatus.APPROVED, 1), else_=0)),
                func.sum(case((Submission.status == SubmissionStatus.REJECTED, 1), else_=0)),
                func.sum(case((Submission.status == SubmissionStatus.APPROVED, Submission.amount), else_=0)),
                func.sum(case((Submission.status == SubmissionStatus.APPROVED, Submission.pages_worked), else_=0)),
            )
        ).one()

        return {
            'total': int(row[0] or 0),
            'pending': int(row[1] or 0),
            'approved': int(row[2] or 0),
            'rejected': int(row[3] or 0),
            'total_approved_amount': float(row[4] or 0),
            'total_approved_pages': float(row[5] or 0),
        }


__all__ = ['SubmissionService']
