"""Read-only dashboard aggregations over orders, submissions, payments and writers.

Every projection degrades to zeros or empty lists when the database query
fails; nothing here writes.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from functools import wraps
from typing import Any, Callable, TypeVar, cast

from flask import current_app
from sqlalchemy import case, distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from wms.extensions import db
from wms.models import (
    Order,
    OrderStatus,
    Payment,
    PaymentStatus,
    Submission,
    SubmissionStatus,
    User,
    Writer,
    utcnow,
)
from wms.services.errors import NotFoundError
from wms.services.serializers import (
    serialize_many,
    serialize_order,
    serialize_payment,
    serialize_submission,
)

F = TypeVar('F', bound=Callable[..., Any])

_STATUS_LABELS = {
    OrderStatus.SUBMITTED: ('Completed', '#10B981'),
    OrderStatus.IN_PROGRESS: ('In Progress', '#3B82F6'),
    OrderStatus.ASSIGNED: ('Assigned', '#F59E0B'),
    OrderStatus.CANCELLED: ('Cancelled', '#EF4444'),
}

_WEEKDAYS = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']


def _fallback(default_factory: Callable[[], Any]) -> Callable[[F], F]:
    """Return ``default_factory()`` instead of raising when a query fails."""

    def decorator(fn: F) -> F:
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except SQLAlchemyError as e:
                db.session.rollback()
                current_app.logger.error(f"Analytics query {fn.__name__} failed: {e}")
                return default_factory()

        return cast(F, wrapper)

    return decorator


def _month_start(now: datetime, months_back: int = 0) -> datetime:
    year, month = now.year, now.month - months_back
    while month < 1:
        month += 12
        year -= 1
    return datetime(year, month, 1)


class AnalyticsService:
    """Dashboard projections."""

    @staticmethod
    def get_admin_dashboard() -> dict[str, Any]:
        overview = {
            'total_users': AnalyticsService.get_total_users(),
            'total_writers': AnalyticsService.get_total_writers(),
            'online_writers': AnalyticsService.get_online_writers(),
            'growth_rate': AnalyticsService.get_growth_rate(),
        }
        overview.update(AnalyticsService.get_order_overview())
        overview.update(AnalyticsService.get_submission_overview())
        overview.update(AnalyticsService.get_payment_overview())

        return {
            'overview': overview,
            'recent_activity': {
                'recent_orders': AnalyticsService.get_recent_orders(5),
                'pending_submissions': AnalyticsService.get_pending_submissions(5),
                'pending_payments': AnalyticsService.get_pending_payments(5),
            },
            'charts': {
                'weekly_orders': AnalyticsService.get_weekly_orders(),
                'order_status_distribution': AnalyticsService.get_order_status_distribution(),
            },
        }

    @staticmethod
    @_fallback(int)
    def get_total_users() -> int:
        return db.session.execute(select(func.count(User.id))).scalar_one()

    @staticmethod
    @_fallback(int)
    def get_total_writers() -> int:
        return db.session.execute(select(func.count(Writer.id))).scalar_one()

    @staticmethod
    @_fallback(lambda: {
        'total_orders': 0,
        'completed_orders': 0,
        'active_orders': 0,
        'total_revenue': 0.0,
        'completed_this_month': 0,
    })
    def get_order_overview() -> dict[str, Any]:
        month_start = _month_start(utcnow())
        completed = Order.status == OrderStatus.SUBMITTED
        row = db.session.execute(
            select(
                func.count(Order.id),
                func.sum(case((completed, 1), else_=0)),
                func.sum(case((Order.status.in_([OrderStatus.ASSIGNED, OrderStatus.IN_PROGRESS]), 1), else_=0)),
                func.sum(case((completed, Order.total_amount), else_=0)),
                func.sum(case((completed & (Order.created_at >= month_start), 1), else_=0)),
            )
        ).one()
        return {
            'total_orders': int(row[0] or 0),
            'completed_orders': int(row[1] or 0),
            'active_orders': int(row[2] or 0),
            'total_revenue': float(row[3] or 0),
            'completed_this_month': int(row[4] or 0),
        }

    @staticmethod
    @_fallback(lambda: {'total_submissions': 0, 'pending_submissions': 0, 'total_approved_pages': 0.0})
    def get_submission_overview() -> dict[str, Any]:
        row = db.session.execute(
            select(
                func.count(Submission.id),
                func.sum(case((Submission.status == SubmissionStatus.PENDING, 1), else_=0)),
                func.sum(case((Submission.status == SubmissionStatus.APPROVED, Submission.pages_worked), else_=0)),
            )
        ).one()
        return {
            'total_submissions': int(row[0] or 0),
            'pending_submissions': int(row[1] or 0),
            'total_approved_pages': float(row[2] or 0),
        }

    @staticmethod
    @_fallback(lambda: {'total_paid_amount': 0.0, 'total_pending_payments': 0.0, 'total_payable_amount': 0.0})
    def get_payment_overview() -> dict[str, Any]:
        row = db.session.execute(
            select(
                func.sum(case((Payment.status == PaymentStatus.PAID, Payment.amount), else_=0)),
                func.sum(case((Payment.status == PaymentStatus.PENDING, Payment.amount), else_=0)),
            )
        ).one()
        payable = db.session.execute(select(func.sum(Writer.balance))).scalar_one_or_none()
        return {
            'total_paid_amount': float(row[0] or 0),
            'total_pending_payments': float(row[1] or 0),
            'total_payable_amount': float(payable or 0),
        }

    @staticmethod
    @_fallback(list)
    def get_recent_orders(limit: int = 5) -> list[dict]:
        orders = db.session.execute(
            select(Order)
            .options(joinedload(Order.writer).joinedload(Writer.user))
            .order_by(Order.created_at.desc())
            .limit(limit)
        ).unique().scalars()
        return serialize_many(serialize_order, orders)

    @staticmethod
    @_fallback(list)
    def get_pending_submissions(limit: int = 5) -> list[dict]:
        submissions = db.session.execute(
            select(Submission)
            .options(joinedload(Submission.order))
            .where(Submission.status == SubmissionStatus.PENDING)
            .order_by(Submission.created_at.asc())
            .limit(limit)
        ).unique().scalars()
        return serialize_many(serialize_submission, submissions)

    @staticmethod
    @_fallback(list)
    def get_pending_payments(limit: int = 5) -> list[dict]:
        payments = db.session.execute(
            select(Payment)
            .options(joinedload(Payment.writer).joinedload(Writer.user))
            .where(Payment.status == PaymentStatus.PENDING)
            .order_by(Payment.created_at.asc())
            .limit(limit)
        ).unique().scalars()
        return serialize_many(serialize_payment, payments)

    @staticmethod
    @_fallback(list)
    def get_weekly_orders() -> list[dict]:
        """Orders created since Monday of the current week, bucketed Mon..Sun."""
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = today - timedelta(days=today.weekday())
        created = db.session.execute(
            select(Order.created_at).where(Order.created_at >= week_start)
        ).scalars()

        counts = [0] * 7
        for created_at in created:
            counts[created_at.weekday()] += 1
        return [{'day': day, 'orders': counts[i]} for i, day in enumerate(_WEEKDAYS)]

    @staticmethod
    @_fallback(list)
    def get_order_status_distribution() -> list[dict]:
        rows = db.session.execute(
            select(Order.status, func.count(Order.id)).group_by(Order.status)
        ).all()
        result = []
        for status, count in rows:
            label, color = _STATUS_LABELS.get(status, (status.value, '#94A3B8'))
            result.append({'name': label, 'value': int(count), 'color': color})
        return result

    @staticmethod
    @_fallback(int)
    def get_online_writers() -> int:
        """Writers with at least one submission since midnight UTC."""
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        return db.session.execute(
            select(func.count(distinct(Submission.writer_id))).where(Submission.created_at >= today)
        ).scalar_one()

    @staticmethod
    @_fallback(float)
    def get_growth_rate() -> float:
        """Month-over-month change in completed order revenue, in percent."""
        now = utcnow()
        this_month = _month_start(now)
        last_month = _month_start(now, 1)

        def revenue(start: datetime, end: datetime | None) -> float:
            query = select(func.sum(Order.total_amount)).where(
                Order.status == OrderStatus.SUBMITTED,
                Order.created_at >= start,
            )
            if end is not None:
                query = query.where(Order.created_at < end)
            return float(db.session.execute(query).scalar_one_or_none() or 0)

        current = revenue(this_month, None)
        previous = revenue(last_month, this_month)
        if previous == 0:
            return 100.0 if current > 0 else 0.0
        return round((current - previous) / previous * 100, 1)

    @staticmethod
    @_fallback(list)
    def get_orders_per_day(days: int = 30) -> list[dict]:
        since = utcnow() - timedelta(days=days)
        rows = db.session.execute(
            select(Order.created_at, Order.status).where(Order.created_at >= since)
        ).all()

        buckets: dict[str, dict[str, int]] = defaultdict(lambda: {'total': 0, 'completed': 0})
        for created_at, status in rows:
            bucket = buckets[created_at.date().isoformat()]
            bucket['total'] += 1
            if status == OrderStatus.SUBMITTED:
                bucket['completed'] += 1
        return [{'date': day, **buckets[day]} for day in sorted(buckets)]

    @staticmethod
    @_fallback(list)
    def get_earnings_per_writer(limit: int = 10) -> list[dict]:
        writers = db.session.execute(
            select(Writer)
            .options(joinedload(Writer.user))
            .order_by(Writer.lifetime_earnings.desc())
            .limit(limit)
        ).scalars()
        return [
            {
                'writer_id': writer.id,
                'name': writer.user.full_name if writer.user else None,
                'earnings': float(writer.lifetime_earnings or 0),
                'current_shift_pages': float(writer.current_shift_pages or 0),
                'status': writer.status.value,
            }
            for writer in writers
        ]

    @staticmethod
    @_fallback(list)
    def get_pages_per_day(days: int = 14) -> list[dict]:
        """Approved pages and distinct active writers per day."""
        since = utcnow() - timedelta(days=days)
        rows = db.session.execute(
            select(Submission.created_at, Submission.pages_worked, Submission.writer_id).where(
                Submission.created_at >= since,
                Submission.status == SubmissionStatus.APPROVED,
            )
        ).all()

        pages: dict[str, float] = defaultdict(float)
        writers: dict[str, set] = defaultdict(set)
        for created_at, pages_worked, writer_id in rows:
            day = created_at.date().isoformat()
            pages[day] += float(pages_worked or 0)
            writers[day].add(writer_id)
        return [
            {'date': day, 'pages': pages[day], 'active_writers': len(writers[day])}
            for day in sorted(pages)
        ]

    @staticmethod
    def get_writer_analytics(writer_id: str) -> dict[str, Any]:
        writer = db.session.get(Writer, writer_id)
        if not writer:
            raise NotFoundError('Writer not found')

        return {
            'profile': {
                'name': writer.user.full_name if writer.user else None,
                'status': writer.status.value,
                'lifetime_earnings': float(writer.lifetime_earnings or 0),
                'current_balance': float(writer.balance or 0),
                'total_orders_completed': writer.total_orders_completed,
                'total_pages_completed': float(writer.total_pages_completed or 0),
                'current_shift_pages': float(writer.current_shift_pages or 0),
                'current_shift_orders': writer.current_shift_orders,
            },
            'submissions': AnalyticsService.get_writer_submissions(writer.id),
            'payments': AnalyticsService.get_writer_payments(writer.id),
            'monthly_earnings': AnalyticsService.get_writer_monthly_earnings(writer.id),
        }

    @staticmethod
    @_fallback(list)
    def get_writer_submissions(writer_id: str, limit: int = 20) -> list[dict]:
        submissions = db.session.execute(
            select(Submission)
            .options(joinedload(Submission.order))
            .where(Submission.writer_id == writer_id)
            .order_by(Submission.created_at.desc())
            .limit(limit)
        ).unique().scalars()
        return serialize_many(serialize_submission, submissions)

    @staticmethod
    @_fallback(list)
    def get_writer_payments(writer_id: str, limit: int = 20) -> list[dict]:
        payments = db.session.execute(
            select(Payment)
            .where(Payment.writer_id == writer_id)
            .order_by(Payment.created_at.desc())
            .limit(limit)
        ).scalars()
        return serialize_many(serialize_payment, payments)

    @staticmethod
    @_fallback(list)
    def get_writer_monthly_earnings(writer_id: str, months: int = 12) -> list[dict]:
        since = _month_start(utcnow(), months)
        rows = db.session.execute(
            select(Submission.created_at, Submission.amount, Submission.pages_worked).where(
                Submission.writer_id == writer_id,
                Submission.status == SubmissionStatus.APPROVED,
                Submission.created_at >= since,
            )
        ).all()

        buckets: dict[tuple[int, int], dict[str, float]] = defaultdict(lambda: {'earnings': 0.0, 'pages': 0.0})
        for created_at, amount, pages_worked in rows:
            bucket = buckets[(created_at.year, created_at.month)]
            bucket['earnings'] += float(amount or 0)
            bucket['pages'] += float(pages_worked or 0)
        return [
            {'year': year, 'month': month, **buckets[(year, month)]}
            for year, month in sorted(buckets)
        ]


__all__ = ['AnalyticsService']
