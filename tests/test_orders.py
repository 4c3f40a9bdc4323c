"""Order ledger: creation, editing, the status machine and cancellation penalties."""

from datetime import timedelta
from decimal import Decimal

import pytest

from wms.extensions import db
from wms.models import (
    CancellationConsequence,
    Order,
    OrderStatus,
    StatusAction,
    User,
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
from wms.services.orders import OrderService
from wms.services.validation import quantize_money
from wms.services.writers import SUSPENSION_DAYS, WriterService


def _create(writer_id=None, **overrides):
    fields = dict(
        subject='Essay',
        deadline=utcnow() + timedelta(days=2),
        pages='10',
        cpp='2',
        writer_id=writer_id,
    )
    fields.update(overrides)
    return OrderService.create(**fields)


class TestOrderCreation:

    def test_total_is_pages_times_cpp(self, app, writer_id):
        with app.app_context():
            order = _create(writer_id)
            assert order.total_amount == Decimal('20')
            assert order.status == OrderStatus.ASSIGNED
            assert order.writer_id == writer_id

    def test_generated_numbers_are_sequential_per_day(self, app):
        with app.app_context():
            first = _create()
            second = _create()
            prefix = utcnow().strftime('%Y%m%d')
            assert first.order_number == f'{prefix}001'
            assert second.order_number == f'{prefix}002'

    def test_fractional_inputs_are_rounded_before_total(self, app):
        with app.app_context():
            order = _create(pages='1.5', cpp='1.245')
            order_id = order.id
            assert order.cpp == Decimal('1.25')
            assert order.total_amount == Decimal('1.88')

            db.session.expire_all()
            stored = db.session.get(Order, order_id)
            assert stored.total_amount == Decimal('1.88')
            assert stored.total_amount == quantize_money(stored.pages * stored.cpp)

    def test_numbers_continue_past_999(self, app):
        with app.app_context():
            prefix = utcnow().strftime('%Y%m%d')
            _create(order_number=f'{prefix}999')
            assert OrderService.generate_order_number() == f'{prefix}1000'

            _create(order_number=f'{prefix}1000')
            assert OrderService.generate_order_number() == f'{prefix}1001'
            assert _create().order_number == f'{prefix}1001'

    def test_duplicate_order_number_rejected(self, app):
        with app.app_context():
            _create(order_number='A-1')
            with pytest.raises(InvalidStateError):
                _create(order_number='A-1')

    @pytest.mark.parametrize('field,value', [
        ('pages', 0),
        ('pages', '-1'),
        ('pages', '0.004'),
        ('cpp', 'NaN'),
        ('cpp', None),
        ('subject', '   '),
        ('deadline', 'not-a-date'),
    ])
    def test_invalid_input_rejected(self, app, field, value):
        with app.app_context():
            with pytest.raises(InvalidInputError):
                _create(**{field: value})

    def test_iso_deadline_with_offset_stored_as_utc(self, app):
        with app.app_context():
            order = _create(deadline='2030-01-01T03:00:00+03:00')
            assert order.deadline.tzinfo is None
            assert order.deadline.hour == 0

    def test_cannot_assign_to_suspended_writer(self, app, writer_id):
        with app.app_context():
            WriterService.update_status(writer_id, WriterStatus.SUSPENDED, 'Plagiarism')
            with pytest.raises(ForbiddenError):
                _create(writer_id)

    def test_unknown_writer(self, app):
        with app.app_context():
            with pytest.raises(NotFoundError):
                _create('missing')


class TestOrderLifecycle:

    def test_update_recomputes_total(self, app, order_id):
        with app.app_context():
            order = OrderService.update(order_id, pages='4', subject='Lab report')
            assert order.total_amount == Decimal('8')
            assert order.subject == 'Lab report'

    def test_update_rejects_status(self, app, order_id):
        with app.app_context():
            with pytest.raises(InvalidInputError):
                OrderService.update(order_id, status='submitted')

    def test_start_then_complete(self, app, order_id):
        with app.app_context():
            assert OrderService.mark_in_progress(order_id).status == OrderStatus.IN_PROGRESS
            assert OrderService.mark_submitted(order_id).status == OrderStatus.SUBMITTED

    def test_complete_requires_in_progress(self, app, order_id):
        with app.app_context():
            with pytest.raises(InvalidStateError):
                OrderService.mark_submitted(order_id)

    def test_reassign_only_while_assigned(self, app, order_id, other_writer_id):
        with app.app_context():
            order = OrderService.assign_to_writer(order_id, other_writer_id)
            assert order.writer_id == other_writer_id

            OrderService.mark_in_progress(order_id)
            with pytest.raises(InvalidStateError):
                OrderService.assign_to_writer(order_id, other_writer_id)

    def test_remove_order_without_submissions(self, app, order_id):
        with app.app_context():
            OrderService.remove(order_id)
            with pytest.raises(NotFoundError):
                OrderService.find_one(order_id)

    def test_find_by_writer_and_number(self, app, order_id, writer_id):
        with app.app_context():
            assert [o.id for o in OrderService.find_by_writer(writer_id)] == [order_id]
            assert OrderService.find_by_order_number('20250101001').id == order_id

    def test_order_stats(self, app, order_id):
        with app.app_context():
            stats = OrderService.get_order_stats()
            assert stats['total'] == 1
            assert stats['assigned'] == 1
            assert stats['total_completed_amount'] == 0


class TestCancellation:

    def test_warning_leaves_writer_untouched(self, app, order_id, writer_id):
        with app.app_context():
            order = OrderService.cancel_order(order_id, 'Client withdrew', CancellationConsequence.WARNING)
            assert order.status == OrderStatus.CANCELLED
            assert order.cancelled_at is not None

            writer = db.session.get(Writer, writer_id)
            assert writer.status == WriterStatus.ACTIVE
            assert WriterService.get_status_history(writer_id) == []

    def test_suspension_logs_and_invalidates_sessions(self, app, order_id, writer_id, admin_id):
        with app.app_context():
            writer = db.session.get(Writer, writer_id)
            version_before = writer.user.token_version

            OrderService.cancel_order(
                order_id,
                'Missed deadline',
                CancellationConsequence.SUSPENSION,
                cancelled_by=admin_id,
            )

            writer = db.session.get(Writer, writer_id)
            assert writer.status == WriterStatus.SUSPENDED
            assert db.session.get(User, writer.user_id).token_version == version_before + 1

            [entry] = WriterService.get_status_history(writer_id)
            assert entry.action == StatusAction.SUSPENSION
            assert entry.previous_status == WriterStatus.ACTIVE
            assert entry.duration_days == SUSPENSION_DAYS
            assert entry.performed_by == admin_id
            expected = utcnow() + timedelta(days=30)
            assert abs((entry.expires_at - expected).total_seconds()) < 60

    def test_probation_consequence(self, app, order_id, writer_id):
        with app.app_context():
            OrderService.cancel_order(order_id, 'Low quality', CancellationConsequence.PROBATION)
            assert db.session.get(Writer, writer_id).status == WriterStatus.PROBATION

    def test_cannot_cancel_twice(self, app, order_id):
        with app.app_context():
            OrderService.cancel_order(order_id, 'Duplicate', CancellationConsequence.WARNING)
            with pytest.raises(InvalidStateError):
                OrderService.cancel_order(order_id, 'Again', CancellationConsequence.WARNING)

    def test_cannot_cancel_submitted(self, app, order_id):
        with app.app_context():
            OrderService.mark_in_progress(order_id)
            OrderService.mark_submitted(order_id)
            with pytest.raises(InvalidStateError):
                OrderService.cancel_order(order_id, 'Too late', CancellationConsequence.WARNING)

    def test_reason_required(self, app, order_id):
        with app.app_context():
            with pytest.raises(InvalidInputError):
                OrderService.cancel_order(order_id, ' ', CancellationConsequence.WARNING)
