"""Payment settlement: balance debits, one-way transitions and the payment log."""

from decimal import Decimal
from unittest.mock import patch

import pytest

from conftest import set_balance
from wms.extensions import db
from wms.models import PaymentMethod, PaymentStatus, Writer
from wms.services.errors import InvalidInputError, InvalidStateError, NotFoundError
from wms.services.payments import PaymentService


class TestCreatePayment:

    def test_payment_debits_balance(self, app, writer_id, admin_id):
        set_balance(app, writer_id, 100)
        with app.app_context():
            payment = PaymentService.create(writer_id, '60', PaymentMethod.MPESA, created_by=admin_id)

            assert payment.status == PaymentStatus.PENDING
            assert payment.currency == 'KSH'
            assert db.session.get(Writer, writer_id).balance == Decimal('40')
            [entry] = payment.logs
            assert entry.status == PaymentStatus.PENDING
            assert entry.transaction_id.startswith('TXN-')

    def test_overdraw_rejected_and_balance_unchanged(self, app, writer_id):
        set_balance(app, writer_id, 100)
        with app.app_context():
            with pytest.raises(InvalidStateError, match='exceeds writer balance'):
                PaymentService.create(writer_id, '150')
            assert db.session.get(Writer, writer_id).balance == Decimal('100')
            assert PaymentService.find_all() == []

    @pytest.mark.parametrize('amount', [0, '-5', 'NaN', None, '0.004'])
    def test_amount_must_be_positive(self, app, writer_id, amount):
        set_balance(app, writer_id, 100)
        with app.app_context():
            with pytest.raises(InvalidInputError):
                PaymentService.create(writer_id, amount)

    def test_sub_cent_amount_rounds_and_fails_back_exactly(self, app, writer_id):
        set_balance(app, writer_id, 100)
        with app.app_context():
            payment = PaymentService.create(writer_id, '0.005')
            assert payment.amount == Decimal('0.01')
            assert db.session.get(Writer, writer_id).balance == Decimal('99.99')

            PaymentService.mark_as_failed(payment.id, 'Wrong number')
            db.session.expire_all()
            assert db.session.get(Writer, writer_id).balance == Decimal('100')

    def test_unknown_writer(self, app):
        with app.app_context():
            with pytest.raises(NotFoundError):
                PaymentService.create('missing', '10')


class TestSettlement:

    @pytest.fixture
    def payment_id(self, app, writer_id):
        set_balance(app, writer_id, 100)
        with app.app_context():
            return PaymentService.create(writer_id, '30').id

    def test_mark_paid_records_notification(self, app, payment_id, admin_id):
        with app.app_context():
            payment = PaymentService.mark_as_paid(
                payment_id, PaymentMethod.BANK_TRANSFER, transaction_reference='REF-9', paid_by=admin_id
            )
            assert payment.status == PaymentStatus.PAID
            assert payment.paid_at is not None
            assert payment.notification_sent is True

            notes = [entry.notes for entry in payment.logs if entry.notification_sent]
            assert len(notes) == 1
            assert 'Payment Processed - KSH 30.00' in notes[0]
            assert 'Txn Ref: REF-9' in notes[0]

    def test_paid_is_terminal(self, app, payment_id):
        with app.app_context():
            PaymentService.mark_as_paid(payment_id, PaymentMethod.PAYPAL)
            with pytest.raises(InvalidStateError):
                PaymentService.mark_as_paid(payment_id, PaymentMethod.PAYPAL)
            with pytest.raises(InvalidStateError, match='Cannot mark paid payment as failed'):
                PaymentService.mark_as_failed(payment_id, 'Bounced')

    def test_failure_credits_balance_once(self, app, payment_id, writer_id):
        with app.app_context():
            payment = PaymentService.mark_as_failed(payment_id, 'Wrong account')
            assert payment.status == PaymentStatus.FAILED
            assert db.session.get(Writer, writer_id).balance == Decimal('100')

            with pytest.raises(InvalidStateError, match='already failed'):
                PaymentService.mark_as_failed(payment_id, 'Again')
            with pytest.raises(InvalidStateError):
                PaymentService.mark_as_paid(payment_id, PaymentMethod.MPESA)
            assert db.session.get(Writer, writer_id).balance == Decimal('100')

    def test_notification_is_idempotent(self, app, payment_id):
        with app.app_context():
            PaymentService.mark_as_paid(payment_id, PaymentMethod.CHECK)
            payment = PaymentService.send_payment_notification(payment_id)
            assert sum(1 for entry in payment.logs if entry.notification_sent) == 1

    def test_queued_notification_when_enabled(self, app, payment_id):
        app.config['QUEUE_NOTIFICATIONS'] = True
        with app.app_context():
            with patch('wms.services.queue.queue_service.enqueue_payment_notification') as enqueue:
                payment = PaymentService.mark_as_paid(payment_id, PaymentMethod.MPESA)
            enqueue.assert_called_once_with(payment_id)
            assert payment.notification_sent is False

    def test_queue_failure_falls_back_to_inline(self, app, payment_id):
        app.config['QUEUE_NOTIFICATIONS'] = True
        with app.app_context():
            with patch(
                'wms.services.queue.queue_service.enqueue_payment_notification',
                side_effect=ConnectionError('redis down'),
            ):
                payment = PaymentService.mark_as_paid(payment_id, PaymentMethod.MPESA)
            assert payment.notification_sent is True


class TestBatchSettlement:

    @pytest.fixture
    def payment_ids(self, app, writer_id):
        set_balance(app, writer_id, 100)
        with app.app_context():
            return [PaymentService.create(writer_id, '10').id for _ in range(3)]

    def test_mark_selected(self, app, payment_ids):
        with app.app_context():
            paid = PaymentService.mark_selected_as_paid(payment_ids[:2], PaymentMethod.MPESA)
            assert {p.id for p in paid} == set(payment_ids[:2])
            assert [p.id for p in PaymentService.get_pending_payments()] == [payment_ids[2]]

    def test_batch_is_atomic(self, app, payment_ids):
        with app.app_context():
            PaymentService.mark_as_failed(payment_ids[1], 'Closed account')
            with pytest.raises(InvalidStateError):
                PaymentService.mark_selected_as_paid(payment_ids, PaymentMethod.MPESA)

            statuses = {pid: PaymentService.find_one(pid).status for pid in payment_ids}
            assert statuses[payment_ids[0]] == PaymentStatus.PENDING
            assert statuses[payment_ids[2]] == PaymentStatus.PENDING

    def test_empty_selection_rejected(self, app):
        with app.app_context():
            with pytest.raises(InvalidInputError):
                PaymentService.mark_selected_as_paid([], PaymentMethod.MPESA)

    def test_mark_all(self, app, payment_ids):
        with app.app_context():
            paid = PaymentService.mark_all_as_paid(PaymentMethod.OTHER)
            assert len(paid) == 3
            with pytest.raises(InvalidStateError, match='No pending payments'):
                PaymentService.mark_all_as_paid(PaymentMethod.OTHER)

    def test_stats_and_filters(self, app, payment_ids, writer_id):
        with app.app_context():
            PaymentService.mark_as_paid(payment_ids[0], PaymentMethod.MPESA)
            PaymentService.mark_as_failed(payment_ids[1], 'Bounced')

            stats = PaymentService.get_payment_stats()
            assert stats['paid'] == 1
            assert stats['pending'] == 1
            assert stats['failed'] == 1
            assert stats['total_paid_amount'] == 10.0
            assert stats['total_payable_amount'] == 80.0

            found = PaymentService.find_all(statuses=[PaymentStatus.PAID, PaymentStatus.FAILED])
            assert {p.id for p in found} == set(payment_ids[:2])
            assert len(PaymentService.find_all(search='wanj')) == 3
            assert PaymentService.find_all(method=PaymentMethod.PAYPAL) == []
