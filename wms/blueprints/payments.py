"""Payment settlement endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from wms.auth import admin_required, writer_required
from wms.blueprints.common import (
    ensure_owner_or_admin,
    get_payload,
    parse_datetime_arg,
    parse_enum,
    parse_optional_enum,
    require_writer_profile,
)
from wms.models import PaymentMethod, PaymentStatus
from wms.services.errors import InvalidInputError
from wms.services.payments import PaymentService
from wms.services.serializers import serialize_many, serialize_payment, serialize_payment_log

payments_bp = Blueprint('payments', __name__)


@payments_bp.route('', methods=['POST'])
@admin_required
def create_payment():
    data = get_payload()
    if not data.get('writer_id'):
        raise InvalidInputError('writer_id is required')
    payment = PaymentService.create(
        writer_id=data['writer_id'],
        amount=data.get('amount'),
        method=parse_optional_enum(PaymentMethod, data.get('method'), 'method'),
        notes=data.get('notes'),
        currency=data.get('currency'),
        transaction_reference=data.get('transaction_reference'),
        created_by=current_user.id,
    )
    return jsonify(serialize_payment(payment)), 201


@payments_bp.route('', methods=['GET'])
@admin_required
def list_payments():
    statuses = [
        parse_enum(PaymentStatus, value, 'status')
        for value in (request.args.get('statuses') or '').split(',')
        if value.strip()
    ]
    payments = PaymentService.find_all(
        statuses=statuses,
        writer_id=request.args.get('writer_id'),
        method=parse_optional_enum(PaymentMethod, request.args.get('method'), 'method'),
        search=request.args.get('search'),
        date_from=parse_datetime_arg('from'),
        date_to=parse_datetime_arg('to'),
    )
    return jsonify({'items': serialize_many(serialize_payment, payments), 'total': len(payments)})


@payments_bp.route('/pending', methods=['GET'])
@admin_required
def pending_payments():
    payments = PaymentService.get_pending_payments(writer_id=request.args.get('writer_id'))
    return jsonify({'items': serialize_many(serialize_payment, payments), 'total': len(payments)})


@payments_bp.route('/stats', methods=['GET'])
@admin_required
def payment_stats():
    return jsonify(PaymentService.get_payment_stats())


@payments_bp.route('/my', methods=['GET'])
@writer_required
def my_payments():
    writer = require_writer_profile()
    return jsonify({'items': serialize_many(serialize_payment, PaymentService.find_by_writer(writer.id))})


@payments_bp.route('/mark-selected-paid', methods=['POST'])
@admin_required
def mark_selected_paid():
    data = get_payload()
    payments = PaymentService.mark_selected_as_paid(
        list(data.get('payment_ids') or []),
        parse_enum(PaymentMethod, data.get('method'), 'method'),
        transaction_reference=data.get('transaction_reference'),
        notes=data.get('notes'),
        paid_by=current_user.id,
    )
    return jsonify({'items': serialize_many(serialize_payment, payments)})


@payments_bp.route('/mark-all-paid', methods=['POST'])
@admin_required
def mark_all_paid():
    data = get_payload()
    payments = PaymentService.mark_all_as_paid(
        parse_enum(PaymentMethod, data.get('method'), 'method'),
        writer_id=data.get('writer_id'),
        transaction_reference=data.get('transaction_reference'),
        notes=data.get('notes'),
        paid_by=current_user.id,
    )
    return jsonify({'items': serialize_many(serialize_payment, payments)})


@payments_bp.route('/<payment_id>', methods=['GET'])
@login_required
def get_payment(payment_id):
    payment = PaymentService.find_one(payment_id)
    ensure_owner_or_admin(payment.writer_id)
    return jsonify(serialize_payment(payment))


@payments_bp.route('/<payment_id>/logs', methods=['GET'])
@admin_required
def payment_logs(payment_id):
    payment = PaymentService.find_one(payment_id)
    return jsonify({'items': serialize_many(serialize_payment_log, payment.logs)})


@payments_bp.route('/<payment_id>/mark-paid', methods=['POST'])
@admin_required
def mark_paid(payment_id):
    data = get_payload()
    payment = PaymentService.mark_as_paid(
        payment_id,
        parse_enum(PaymentMethod, data.get('method'), 'method'),
        transaction_reference=data.get('transaction_reference'),
        notes=data.get('notes'),
        paid_by=current_user.id,
    )
    return jsonify(serialize_payment(payment))


@payments_bp.route('/<payment_id>/mark-failed', methods=['POST'])
@admin_required
def mark_failed(payment_id):
    reason = (get_payload().get('reason') or '').strip()
    if not reason:
        raise InvalidInputError('A failure reason is required')
    payment = PaymentService.mark_as_failed(payment_id, reason, processed_by=current_user.id)
    return jsonify(serialize_payment(payment))
