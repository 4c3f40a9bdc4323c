"""Shift clock service: one authoritative active window and its page quota."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from flask import current_app
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError

from wms.extensions import db
from wms.models import Shift, Writer, utcnow
from wms.services.errors import InvalidStateError
from wms.services.validation import to_positive_int

SHIFT_LENGTH = timedelta(days=1) - timedelta(seconds=1)


def _boundary_hour() -> int:
    return int(current_app.config.get('SHIFT_BOUNDARY_HOUR', 0))


def _default_max_pages() -> int:
    return int(current_app.config.get('DEFAULT_MAX_PAGES_PER_SHIFT', 20))


def current_window_start(now: datetime, boundary_hour: int) -> datetime:
    """Return the boundary occurrence that opens the window containing ``now``."""
    start = now.replace(hour=boundary_hour, minute=0, second=0, microsecond=0)
    if now < start:
        start -= timedelta(days=1)
    return start


def next_shift_start(now: datetime, boundary_hour: int) -> datetime:
    """Return the next boundary occurrence strictly after ``now``."""
    start = now.replace(hour=boundary_hour, minute=0, second=0, microsecond=0)
    if now >= start:
        start += timedelta(days=1)
    return start


class ShiftService:
    """Service for the shift clock and per-shift counters."""

    @staticmethod
    def get_active_shift() -> Shift | None:
        """Return the active shift row without any rollover side effect."""
        query = (
            select(Shift)
            .where(Shift.is_active.is_(True))
            .order_by(Shift.start_time.desc())
            .limit(1)
        )
        return db.session.execute(query).scalar_one_or_none()

    @staticmethod
    def get_current_shift() -> Shift:
        """Return the active shift, opening a new one if none exists or it has ended."""
        shift = ShiftService.get_active_shift()
        if shift is None or utcnow() > shift.end_time:
            shift = ShiftService.create_new_shift()
        return shift

    @staticmethod
    def create_new_shift(max_pages: int | None = None) -> Shift:
        """
        Close the active shift and open the next one.

        Deactivation, insertion and the reset of every writer's shift counters
        commit together, so observers never see two active shifts or a new
        shift with stale counters.

        Args:
            max_pages: Page quota for the new shift (defaults to configuration)

        Returns:
            The newly active shift
        """
        max_pages = to_positive_int(max_pages, 'max pages') if max_pages is not None else _default_max_pages()

        now = utcnow()
        start = current_window_start(now, _boundary_hour())
        end = start + SHIFT_LENGTH

        try:
            ShiftService._close_active_shifts()
            shift = Shift(
                start_time=start,
                end_time=end,
                max_pages_per_shift=max_pages,
                is_active=True,
            )
            db.session.add(shift)
            db.session.flush()
            db.session.execute(
                update(Writer).values(current_shift_pages=Decimal('0'), current_shift_orders=0)
            )
            db.session.commit()
        except IntegrityError:
            # Another process opened a shift between our close and insert
            db.session.rollback()
            winner = ShiftService.get_active_shift()
            if winner is None:
                raise
            current_app.logger.warning(f"Concurrent shift creation; keeping shift {winner.id}")
            return winner
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f"New shift created: {shift.id} ({start.isoformat()} - {end.isoformat()})"
        )
        return shift

    @staticmethod
    def _close_active_shifts() -> None:
        db.session.execute(
            update(Shift).where(Shift.is_active.is_(True)).values(is_active=False)
        )

    @staticmethod
    def handle_shift_rollover() -> Shift | None:
        """Scheduled trigger body. Failures are logged; the lazy check in get_current_shift recovers."""
        current_app.logger.info('Running scheduled shift rollover')
        try:
            shift = ShiftService.create_new_shift()
        except Exception as e:
            current_app.logger.error(f"Failed to create new shift: {e}")
            return None
        current_app.logger.info('New shift created successfully')
        return shift

    @staticmethod
    def get_shift_history(limit: int = 30) -> list[Shift]:
        query = select(Shift).order_by(Shift.start_time.desc()).limit(limit)
        return list(db.session.execute(query).scalars())

    @staticmethod
    def update_max_pages(max_pages: Any) -> Shift:
        """Change the page quota of the current shift."""
        max_pages = to_positive_int(max_pages, 'max pages')
        shift = ShiftService.get_current_shift()
        if not shift.is_active:
            raise InvalidStateError('Shift is no longer active')
        shift.max_pages_per_shift = max_pages
        db.session.commit()
        return shift

    @staticmethod
    def get_shift_stats() -> dict[str, Any]:
        """Aggregate page/order counters across writers for the current shift."""
        shift = ShiftService.get_current_shift()
        row = db.session.execute(
            select(
                func.coalesce(func.sum(Writer.current_shift_pages), 0),
                func.coalesce(func.sum(Writer.current_shift_orders), 0),
                func.coalesce(func.sum(case((Writer.current_shift_pages > 0, 1), else_=0)), 0),
            )
        ).one()

        return {
            'current_shift': {
                'id': shift.id,
                'start_time': shift.start_time.isoformat(),
                'end_time': shift.end_time.isoformat(),
                'max_pages_per_shift': shift.max_pages_per_shift,
            },
            'stats': {
                'total_pages': float(row[0] or 0),
                'total_orders': int(row[1] or 0),
                'active_writers': int(row[2] or 0),
            },
        }


__all__ = ['ShiftService', 'current_window_start', 'next_shift_start', 'SHIFT_LENGTH']
