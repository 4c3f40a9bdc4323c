"""Submission workflow: claims against the shift, one-shot review and progress."""

from datetime import timedelta
from decimal import Decimal

import pytest

from wms.extensions import db
from wms.models import (
    Order,
    OrderStatus,
    Shift,
    SubmissionStatus,
    Writer,
    WriterStatus,
)
from wms.services.errors import (
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from wms.services.orders import OrderService
from wms.services.shifts import ShiftService
from wms.services.submissions import SubmissionService
from wms.services.writers import WriterService


class TestCreateSubmission:

    def test_submission_counts_toward_shift(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            submission = SubmissionService.create(order_id, '4', '2', writer_id, notes='Draft one')

            assert submission.status == SubmissionStatus.PENDING
            assert submission.shift_id == shift_id
            assert submission.amount == Decimal('8')

            writer = db.session.get(Writer, writer_id)
            assert writer.current_shift_pages == Decimal('4')
            assert writer.last_submission_date is not None
            assert db.session.get(Order, order_id).status == OrderStatus.IN_PROGRESS

    def test_fractional_pages_are_rounded_before_amount(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            submission = SubmissionService.create(order_id, '1.333', '1.5', writer_id)
            assert submission.pages_worked == Decimal('1.33')
            assert submission.amount == Decimal('2.00')
            assert db.session.get(Writer, writer_id).current_shift_pages == Decimal('1.33')

    def test_requires_active_shift(self, app, order_id, writer_id):
        with app.app_context():
            with pytest.raises(InvalidStateError):
                SubmissionService.create(order_id, '4', '2', writer_id)

    def test_quota_is_advisory(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            SubmissionService.create(order_id, '25', '2', writer_id)
            assert db.session.get(Writer, writer_id).current_shift_pages == Decimal('25')

    def test_only_assigned_writer_may_submit(self, app, order_id, other_writer_id, shift_id):
        with app.app_context():
            with pytest.raises(ForbiddenError):
                SubmissionService.create(order_id, '1', '2', other_writer_id)

    def test_suspended_writer_rejected(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            WriterService.update_status(writer_id, WriterStatus.SUSPENDED, 'Review')
            with pytest.raises(ForbiddenError):
                SubmissionService.create(order_id, '1', '2', writer_id)

    def test_closed_order_rejected(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            OrderService.mark_in_progress(order_id)
            OrderService.mark_submitted(order_id)
            with pytest.raises(InvalidStateError):
                SubmissionService.create(order_id, '1', '2', writer_id)

    def test_unknown_order(self, app, writer_id, shift_id):
        with app.app_context():
            with pytest.raises(NotFoundError):
                SubmissionService.create('missing', '1', '2', writer_id)

    @pytest.mark.parametrize('pages', [0, '-2', 'Infinity', 'abc'])
    def test_pages_must_be_positive_and_finite(self, app, order_id, writer_id, shift_id, pages):
        with app.app_context():
            with pytest.raises(InvalidInputError):
                SubmissionService.create(order_id, pages, '2', writer_id)


class TestReview:

    def test_full_approval_completes_order(self, app, order_id, writer_id, shift_id, admin_id):
        with app.app_context():
            submission = SubmissionService.create(order_id, '10', '2', writer_id)
            SubmissionService.review_submission(
                submission.id, SubmissionStatus.APPROVED, 'Great work', reviewed_by=admin_id
            )

            writer = db.session.get(Writer, writer_id)
            assert writer.balance == Decimal('20')
            assert writer.lifetime_earnings == Decimal('20')
            assert writer.total_pages_completed == Decimal('10')
            assert writer.total_orders_completed == 1
            assert db.session.get(Order, order_id).status == OrderStatus.SUBMITTED

    def test_partial_approval_keeps_order_open(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            submission = SubmissionService.create(order_id, '4', '2', writer_id)
            SubmissionService.review_submission(submission.id, SubmissionStatus.APPROVED)
            assert db.session.get(Order, order_id).status == OrderStatus.IN_PROGRESS

    def test_rejection_credits_nothing(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            submission = SubmissionService.create(order_id, '10', '2', writer_id)
            SubmissionService.review_submission(submission.id, SubmissionStatus.REJECTED, 'Off topic')

            writer = db.session.get(Writer, writer_id)
            assert writer.balance == 0
            assert db.session.get(Order, order_id).status == OrderStatus.IN_PROGRESS

    def test_review_is_one_shot(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            submission = SubmissionService.create(order_id, '10', '2', writer_id)
            SubmissionService.review_submission(submission.id, SubmissionStatus.APPROVED)

            with pytest.raises(InvalidStateError):
                SubmissionService.review_submission(submission.id, SubmissionStatus.APPROVED)
            with pytest.raises(InvalidStateError):
                SubmissionService.review_submission(submission.id, SubmissionStatus.REJECTED)
            assert db.session.get(Writer, writer_id).balance == Decimal('20')

    def test_pending_is_not_a_review_outcome(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            submission = SubmissionService.create(order_id, '1', '2', writer_id)
            with pytest.raises(InvalidInputError):
                SubmissionService.review_submission(submission.id, SubmissionStatus.PENDING)

    def test_pending_reviews_oldest_first(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            first = SubmissionService.create(order_id, '1', '2', writer_id)
            second = SubmissionService.create(order_id, '1', '2', writer_id)
            first.created_at = second.created_at - timedelta(minutes=5)
            db.session.commit()
            ids = [s.id for s in SubmissionService.find_pending_reviews()]
            assert ids == [first.id, second.id]


class TestProgress:

    def test_over_quota_progress(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            submission = SubmissionService.create(order_id, '25', '2', writer_id)
            SubmissionService.review_submission(submission.id, SubmissionStatus.APPROVED)

            progress = SubmissionService.calculate_writer_progress(writer_id)
            assert progress['target_pages'] == 20
            assert progress['approved_pages'] == 25.0
            assert progress['remaining_pages'] == 0.0
            assert progress['percent_complete'] == 125
            assert progress['is_on_target'] is True

    def test_progress_buckets_by_status(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            approved = SubmissionService.create(order_id, '3', '2', writer_id)
            rejected = SubmissionService.create(order_id, '2', '2', writer_id)
            SubmissionService.create(order_id, '1.5', '2', writer_id)
            SubmissionService.review_submission(approved.id, SubmissionStatus.APPROVED)
            SubmissionService.review_submission(rejected.id, SubmissionStatus.REJECTED)

            progress = SubmissionService.calculate_writer_progress(writer_id)
            assert progress['approved_pages'] == 3.0
            assert progress['rejected_pages'] == 2.0
            assert progress['pending_pages'] == 1.5
            assert progress['submitted_pages'] == 6.5
            assert progress['remaining_pages'] == 17.0
            assert progress['percent_complete'] == 15
            assert progress['submission_count'] == 3
            assert progress['is_on_target'] is False

    def test_all_writers_summary(self, app, order_id, writer_id, other_writer_id, shift_id):
        with app.app_context():
            submission = SubmissionService.create(order_id, '20', '1', writer_id)
            SubmissionService.review_submission(submission.id, SubmissionStatus.APPROVED)

            result = SubmissionService.get_all_writers_progress()
            summary = result['summary']
            assert summary['total_writers'] == 2
            assert summary['writers_at_target'] == 1
            assert summary['writers_behind'] == 1
            assert summary['total_approved_pages'] == 20.0

    def test_rollover_starts_progress_from_zero(self, app, order_id, writer_id, shift_id):
        with app.app_context():
            SubmissionService.create(order_id, '5', '2', writer_id)
            ShiftService.create_new_shift()
            assert ShiftService.get_active_shift().id != shift_id
            assert db.session.get(Shift, shift_id).is_active is False
            assert db.session.get(Writer, writer_id).current_shift_pages == 0
