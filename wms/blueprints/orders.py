"""Order ledger endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request, send_file
from flask_login import current_user, login_required

from wms.auth import admin_required, writer_required
from wms.blueprints.common import (
    ensure_owner_or_admin,
    get_payload,
    is_admin,
    parse_enum,
    parse_optional_enum,
    require_writer_profile,
    uploaded_files,
)
from wms.models import CancellationConsequence, OrderStatus
from wms.services.errors import InvalidInputError, NotFoundError
from wms.services.orders import OrderService
from wms.services.serializers import serialize_many, serialize_order
from wms.services.uploads import resolve_attachment

orders_bp = Blueprint('orders', __name__)


@orders_bp.route('', methods=['GET'])
@login_required
def list_orders():
    status = parse_optional_enum(OrderStatus, request.args.get('status'), 'status')
    if is_admin():
        orders = OrderService.find_all(status=status, writer_id=request.args.get('writer_id'))
    else:
        writer = require_writer_profile()
        orders = OrderService.find_all(status=status, writer_id=writer.id)
    return jsonify({'items': serialize_many(serialize_order, orders)})


@orders_bp.route('', methods=['POST'])
@admin_required
def create_order():
    data = get_payload()
    order = OrderService.create(
        subject=data.get('subject'),
        deadline=data.get('deadline'),
        pages=data.get('pages'),
        cpp=data.get('cpp'),
        writer_id=data.get('writer_id') or None,
        order_number=data.get('order_number'),
        instructions=data.get('instructions'),
        attachments=uploaded_files('orders'),
    )
    return jsonify(serialize_order(order)), 201


@orders_bp.route('/self-register', methods=['POST'])
@writer_required
def self_register_order():
    """A writer records an externally sourced order assigned to themselves."""
    writer = require_writer_profile()
    data = get_payload()
    order = OrderService.create(
        subject=data.get('subject'),
        deadline=data.get('deadline'),
        pages=data.get('pages'),
        cpp=data.get('cpp'),
        writer_id=writer.id,
        order_number=data.get('order_number'),
        instructions=data.get('instructions'),
        attachments=uploaded_files('orders'),
    )
    return jsonify(serialize_order(order)), 201


@orders_bp.route('/stats', methods=['GET'])
@admin_required
def order_stats():
    return jsonify(OrderService.get_order_stats())


@orders_bp.route('/number/<order_number>', methods=['GET'])
@admin_required
def get_order_by_number(order_number):
    return jsonify(serialize_order(OrderService.find_by_order_number(order_number)))


@orders_bp.route('/<order_id>', methods=['GET'])
@login_required
def get_order(order_id):
    order = OrderService.find_one(order_id)
    ensure_owner_or_admin(order.writer_id)
    return jsonify(serialize_order(order))


@orders_bp.route('/<order_id>', methods=['PUT'])
@admin_required
def update_order(order_id):
    data = get_payload()
    if 'status' in data:
        raise InvalidInputError('Order status changes through its dedicated actions')
    order = OrderService.update(order_id, **data)
    return jsonify(serialize_order(order))


@orders_bp.route('/<order_id>/assign', methods=['POST'])
@admin_required
def assign_order(order_id):
    writer_id = get_payload().get('writer_id')
    if not writer_id:
        raise InvalidInputError('writer_id is required')
    return jsonify(serialize_order(OrderService.assign_to_writer(order_id, writer_id)))


@orders_bp.route('/<order_id>/start', methods=['POST'])
@login_required
def start_order(order_id):
    order = OrderService.find_one(order_id)
    ensure_owner_or_admin(order.writer_id)
    return jsonify(serialize_order(OrderService.mark_in_progress(order_id)))


@orders_bp.route('/<order_id>/complete', methods=['POST'])
@admin_required
def complete_order(order_id):
    return jsonify(serialize_order(OrderService.mark_submitted(order_id)))


@orders_bp.route('/<order_id>/cancel', methods=['POST'])
@admin_required
def cancel_order(order_id):
    data = get_payload()
    consequence = parse_enum(
        CancellationConsequence,
        data.get('consequence') or CancellationConsequence.WARNING.value,
        'consequence',
    )
    order = OrderService.cancel_order(
        order_id,
        reason=data.get('reason'),
        consequence=consequence,
        cancelled_by=current_user.id,
    )
    return jsonify(serialize_order(order))


@orders_bp.route('/<order_id>', methods=['DELETE'])
@admin_required
def delete_order(order_id):
    OrderService.remove(order_id)
    return jsonify({'message': 'Order deleted'})


@orders_bp.route('/<order_id>/attachments/<int:index>', methods=['GET'])
@login_required
def download_attachment(order_id, index):
    order = OrderService.find_one(order_id)
    ensure_owner_or_admin(order.writer_id)

    paths = order.attachment_paths or []
    names = order.attachment_names or []
    if index < 0 or index >= len(paths):
        raise NotFoundError('Attachment not found')
    try:
        target = resolve_attachment(paths[index])
    except (FileNotFoundError, PermissionError):
        raise NotFoundError('Attachment not found')
    download_name = names[index] if index < len(names) else target.name
    return send_file(target, as_attachment=True, download_name=download_name)
