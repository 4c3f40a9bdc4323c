"""Authentication and account administration endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from wms.auth import admin_required
from wms.blueprints.common import get_payload
from wms.extensions import limiter
from wms.services.accounts import AccountService
from wms.services.errors import InvalidInputError
from wms.services.serializers import serialize_many, serialize_user
from wms.services.validation import to_positive_int

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/register', methods=['POST'])
@limiter.limit('10 per hour')
def register():
    data = get_payload()
    invite_token = request.args.get('invite') or data.get('invite_token')
    user = AccountService.register(data, invite_token=invite_token)
    return jsonify({
        'user': serialize_user(user),
        'message': 'Registration received. An administrator will review your account.',
    }), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit('5 per minute')
def login():
    data = get_payload()
    user = AccountService.authenticate(data.get('email'), data.get('password'))
    login_user(user, remember=bool(data.get('remember_me')))
    return jsonify({'user': serialize_user(user)})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out'})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': serialize_user(current_user)})


@auth_bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    data = get_payload()
    user = AccountService.change_password(
        current_user.id,
        data.get('current_password'),
        data.get('new_password'),
    )
    # The version bump logged out every session, this one included
    login_user(user)
    return jsonify({'message': 'Password updated'})


@auth_bp.route('/reset-password', methods=['POST'])
@limiter.limit('5 per hour')
def reset_password():
    data = get_payload()
    AccountService.reset_password_with_code(
        data.get('email'),
        str(data.get('code') or ''),
        data.get('new_password'),
    )
    return jsonify({'message': 'Password has been reset'})


@auth_bp.route('/reset-code', methods=['POST'])
@admin_required
def issue_reset_code():
    """Issue a one-time reset code for an admin to pass to the user."""
    email = get_payload().get('email')
    code = AccountService.issue_reset_code(email)
    if code is None:
        raise InvalidInputError('No active account with that email')
    return jsonify({'email': email, 'code': code})


@auth_bp.route('/invite', methods=['POST'])
@admin_required
def generate_invite():
    expiry_hours = get_payload().get('expiry_hours')
    invite = AccountService.generate_invite_link(
        to_positive_int(expiry_hours, 'expiry hours') if expiry_hours not in (None, '') else None,
        invited_by=current_user.id,
    )
    return jsonify(invite), 201


@auth_bp.route('/pending-approvals', methods=['GET'])
@admin_required
def pending_approvals():
    return jsonify({'items': serialize_many(serialize_user, AccountService.get_pending_approvals())})


@auth_bp.route('/users/<user_id>/approve', methods=['POST'])
@admin_required
def approve_user(user_id):
    return jsonify({'user': serialize_user(AccountService.approve_user(user_id))})


@auth_bp.route('/users/<user_id>/reject', methods=['POST'])
@admin_required
def reject_user(user_id):
    AccountService.reject_user(user_id)
    return jsonify({'message': 'User rejected'})


@auth_bp.route('/users/<user_id>/activate', methods=['POST'])
@admin_required
def activate_user(user_id):
    return jsonify({'user': serialize_user(AccountService.activate_user(user_id))})


@auth_bp.route('/users/<user_id>/deactivate', methods=['POST'])
@admin_required
def deactivate_user(user_id):
    return jsonify({'user': serialize_user(AccountService.deactivate_user(user_id))})
