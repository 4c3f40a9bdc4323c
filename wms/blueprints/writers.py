"""Writer profile and status endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user

from wms.auth import admin_required, writer_required
from wms.blueprints.common import get_payload, parse_enum, parse_optional_enum, require_writer_profile
from wms.models import WriterStatus
from wms.services.errors import InvalidInputError
from wms.services.serializers import serialize_many, serialize_status_log, serialize_writer
from wms.services.validation import to_positive_int
from wms.services.writers import WriterService

writers_bp = Blueprint('writers', __name__)


@writers_bp.route('', methods=['GET'])
@admin_required
def list_writers():
    status = parse_optional_enum(WriterStatus, request.args.get('status'), 'status')
    return jsonify({'items': serialize_many(serialize_writer, WriterService.find_all(status))})


@writers_bp.route('/me', methods=['GET'])
@writer_required
def my_profile():
    return jsonify(serialize_writer(require_writer_profile()))


@writers_bp.route('/<writer_id>', methods=['GET'])
@admin_required
def get_writer(writer_id):
    return jsonify(serialize_writer(WriterService.find_one(writer_id)))


@writers_bp.route('/<writer_id>/status', methods=['PUT'])
@admin_required
def update_status(writer_id):
    data = get_payload()
    reason = (data.get('reason') or '').strip()
    if not reason:
        raise InvalidInputError('A reason is required')
    duration = data.get('duration_days')
    writer = WriterService.update_status(
        writer_id,
        parse_enum(WriterStatus, data.get('status'), 'status'),
        reason,
        performed_by=current_user.id,
        duration_days=to_positive_int(duration, 'duration days') if duration not in (None, '') else None,
    )
    return jsonify(serialize_writer(writer))


@writers_bp.route('/<writer_id>/status-history', methods=['GET'])
@admin_required
def status_history(writer_id):
    entries = WriterService.get_status_history(writer_id)
    return jsonify({'items': serialize_many(serialize_status_log, entries)})


@writers_bp.route('/<writer_id>/stats', methods=['GET'])
@admin_required
def writer_stats(writer_id):
    return jsonify(WriterService.get_writer_analytics(writer_id))
