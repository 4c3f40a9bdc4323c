"""Submission workflow endpoints."""

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
from wms.models import SubmissionStatus
from wms.services.errors import NotFoundError
from wms.services.serializers import serialize_many, serialize_submission
from wms.services.submissions import SubmissionService
from wms.services.uploads import resolve_attachment

submissions_bp = Blueprint('submissions', __name__)


@submissions_bp.route('', methods=['POST'])
@writer_required
def create_submission():
    writer = require_writer_profile()
    data = get_payload()
    submission = SubmissionService.create(
        order_id=data.get('order_id'),
        pages_worked=data.get('pages_worked'),
        cpp=data.get('cpp'),
        writer_id=writer.id,
        files=uploaded_files('submissions'),
        notes=data.get('notes'),
    )
    return jsonify(serialize_submission(submission)), 201


@submissions_bp.route('', methods=['GET'])
@login_required
def list_submissions():
    if is_admin():
        status = parse_optional_enum(SubmissionStatus, request.args.get('status'), 'status')
        submissions = SubmissionService.find_all(status=status)
    else:
        submissions = SubmissionService.find_by_writer(require_writer_profile().id)
    return jsonify({'items': serialize_many(serialize_submission, submissions)})


@submissions_bp.route('/pending', methods=['GET'])
@admin_required
def pending_reviews():
    return jsonify({'items': serialize_many(serialize_submission, SubmissionService.find_pending_reviews())})


@submissions_bp.route('/stats', methods=['GET'])
@admin_required
def submission_stats():
    return jsonify(SubmissionService.get_submission_stats())


@submissions_bp.route('/<submission_id>', methods=['GET'])
@login_required
def get_submission(submission_id):
    submission = SubmissionService.find_one(submission_id)
    ensure_owner_or_admin(submission.writer_id)
    return jsonify(serialize_submission(submission))


@submissions_bp.route('/<submission_id>/review', methods=['POST'])
@admin_required
def review_submission(submission_id):
    data = get_payload()
    status = parse_enum(SubmissionStatus, data.get('status'), 'status')
    submission = SubmissionService.review_submission(
        submission_id,
        status,
        review_notes=data.get('review_notes'),
        reviewed_by=current_user.id,
    )
    return jsonify(serialize_submission(submission))


@submissions_bp.route('/<submission_id>/files/<int:index>', methods=['GET'])
@login_required
def download_file(submission_id, index):
    submission = SubmissionService.find_one(submission_id)
    ensure_owner_or_admin(submission.writer_id)

    paths = submission.file_paths or []
    names = submission.file_names or []
    if index < 0 or index >= len(paths):
        raise NotFoundError('File not found')
    try:
        target = resolve_attachment(paths[index])
    except (FileNotFoundError, PermissionError):
        raise NotFoundError('File not found')
    download_name = names[index] if index < len(names) else target.name
    return send_file(target, as_attachment=True, download_name=download_name)
