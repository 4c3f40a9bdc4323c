"""Shift clock endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from wms.auth import admin_required, writer_required
from wms.blueprints.common import get_payload, require_writer_profile
from wms.services.serializers import serialize_many, serialize_shift
from wms.services.shifts import ShiftService
from wms.services.submissions import SubmissionService

shifts_bp = Blueprint('shifts', __name__)


@shifts_bp.route('/current', methods=['GET'])
@login_required
def current_shift():
    return jsonify(serialize_shift(ShiftService.get_current_shift()))


@shifts_bp.route('/stats', methods=['GET'])
@admin_required
def shift_stats():
    return jsonify(ShiftService.get_shift_stats())


@shifts_bp.route('/my-progress', methods=['GET'])
@writer_required
def my_progress():
    writer = require_writer_profile()
    return jsonify(SubmissionService.calculate_writer_progress(writer.id))


@shifts_bp.route('/writer-progress/<writer_id>', methods=['GET'])
@admin_required
def writer_progress(writer_id):
    return jsonify(SubmissionService.calculate_writer_progress(writer_id))


@shifts_bp.route('/all-writers-progress', methods=['GET'])
@admin_required
def all_writers_progress():
    return jsonify(SubmissionService.get_all_writers_progress())


@shifts_bp.route('/history', methods=['GET'])
@admin_required
def shift_history():
    limit = request.args.get('limit', 30, type=int)
    return jsonify({'items': serialize_many(serialize_shift, ShiftService.get_shift_history(limit))})


@shifts_bp.route('/create', methods=['POST'])
@admin_required
def create_shift():
    shift = ShiftService.create_new_shift(get_payload().get('max_pages'))
    return jsonify(serialize_shift(shift)), 201


@shifts_bp.route('/max-pages', methods=['PUT'])
@admin_required
def update_max_pages():
    shift = ShiftService.update_max_pages(get_payload().get('max_pages'))
    return jsonify(serialize_shift(shift))
