"""Shift clock: window arithmetic, single active shift and rollover resets."""

from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from wms.extensions import db
from wms.models import Shift, Writer, utcnow
from wms.services.errors import InvalidInputError
from wms.services.shifts import (
    SHIFT_LENGTH,
    ShiftService,
    current_window_start,
    next_shift_start,
)


class TestWindowArithmetic:

    def test_window_starts_at_todays_boundary(self):
        now = datetime(2025, 3, 10, 14, 30)
        assert current_window_start(now, 0) == datetime(2025, 3, 10, 0, 0)

    def test_window_before_boundary_belongs_to_previous_day(self):
        now = datetime(2025, 3, 10, 5, 59)
        assert current_window_start(now, 6) == datetime(2025, 3, 9, 6, 0)

    def test_next_start_is_strictly_after_now(self):
        assert next_shift_start(datetime(2025, 3, 10, 0, 0), 0) == datetime(2025, 3, 11, 0, 0)
        assert next_shift_start(datetime(2025, 3, 10, 5, 0), 6) == datetime(2025, 3, 10, 6, 0)

    def test_shift_length_ends_one_second_before_next_boundary(self):
        start = datetime(2025, 3, 10)
        assert start + SHIFT_LENGTH == datetime(2025, 3, 10, 23, 59, 59)


class TestShiftService:

    def test_get_current_shift_creates_one_when_missing(self, app):
        with app.app_context():
            shift = ShiftService.get_current_shift()
            assert shift.is_active
            assert shift.max_pages_per_shift == 20
            assert shift.is_current()

    def test_only_one_active_shift(self, app):
        with app.app_context():
            first = ShiftService.create_new_shift()
            second = ShiftService.create_new_shift(max_pages=30)

            active = db.session.execute(
                select(func.count(Shift.id)).where(Shift.is_active.is_(True))
            ).scalar_one()
            assert active == 1
            assert db.session.get(Shift, first.id).is_active is False
            assert ShiftService.get_active_shift().id == second.id
            assert second.max_pages_per_shift == 30

    def test_second_active_shift_is_rejected_by_schema(self, app, shift_id):
        with app.app_context():
            db.session.add(Shift(
                start_time=utcnow(),
                end_time=utcnow() + SHIFT_LENGTH,
                max_pages_per_shift=20,
                is_active=True,
            ))
            with pytest.raises(IntegrityError):
                db.session.commit()
            db.session.rollback()

    def test_concurrent_creation_keeps_existing_shift(self, app, writer_id, shift_id):
        with app.app_context():
            writer = db.session.get(Writer, writer_id)
            writer.current_shift_pages = Decimal('7')
            db.session.commit()

            # The other process's shift is still active when we insert
            with patch.object(ShiftService, '_close_active_shifts'):
                shift = ShiftService.create_new_shift()

            assert shift.id == shift_id
            active = db.session.execute(
                select(func.count(Shift.id)).where(Shift.is_active.is_(True))
            ).scalar_one()
            assert active == 1
            assert db.session.get(Writer, writer_id).current_shift_pages == Decimal('7')

    def test_expired_shift_is_replaced_lazily(self, app):
        with app.app_context():
            stale = Shift(
                start_time=datetime(2020, 1, 1),
                end_time=datetime(2020, 1, 1, 23, 59, 59),
                max_pages_per_shift=20,
                is_active=True,
            )
            db.session.add(stale)
            db.session.commit()
            stale_id = stale.id

            shift = ShiftService.get_current_shift()
            assert shift.id != stale_id
            assert db.session.get(Shift, stale_id).is_active is False

    def test_rollover_resets_writer_counters(self, app, writer_id, shift_id):
        with app.app_context():
            writer = db.session.get(Writer, writer_id)
            writer.current_shift_pages = Decimal('12')
            writer.current_shift_orders = 3
            db.session.commit()

            shift = ShiftService.handle_shift_rollover()
            assert shift is not None
            assert shift.id != shift_id

            writer = db.session.get(Writer, writer_id)
            assert writer.current_shift_pages == 0
            assert writer.current_shift_orders == 0

    def test_update_max_pages(self, app, shift_id):
        with app.app_context():
            shift = ShiftService.update_max_pages('25')
            assert shift.id == shift_id
            assert shift.max_pages_per_shift == 25

    @pytest.mark.parametrize('value', [0, -5, 'abc', 2.5, 'inf'])
    def test_update_max_pages_rejects_bad_values(self, app, shift_id, value):
        with app.app_context():
            with pytest.raises(InvalidInputError):
                ShiftService.update_max_pages(value)

    def test_history_newest_first(self, app):
        with app.app_context():
            for _ in range(3):
                ShiftService.create_new_shift()
            history = ShiftService.get_shift_history(limit=2)
            assert len(history) == 2
            assert history[0].is_active

    def test_shift_stats_counts_active_writers(self, app, writer_id, other_writer_id, shift_id):
        with app.app_context():
            writer = db.session.get(Writer, writer_id)
            writer.current_shift_pages = Decimal('4.5')
            db.session.commit()

            stats = ShiftService.get_shift_stats()
            assert stats['current_shift']['id'] == shift_id
            assert stats['stats']['total_pages'] == 4.5
            assert stats['stats']['active_writers'] == 1

    def test_new_shift_window_contains_now(self, app):
        with app.app_context():
            shift = ShiftService.create_new_shift()
            assert shift.start_time <= utcnow() + timedelta(seconds=1)
            assert shift.end_time - shift.start_time == SHIFT_LENGTH
