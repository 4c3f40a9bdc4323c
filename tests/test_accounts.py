"""Account lifecycle: registration, invites, approval, login and resets."""

from datetime import timedelta

import pytest

from conftest import PASSWORD
from wms.extensions import db
from wms.models import User, UserRole, WriterStatus, utcnow
from wms.services.accounts import AccountService
from wms.services.errors import (
    InvalidInputError,
    InvalidStateError,
    UnauthorizedError,
)
from wms.services.writers import WriterService

REGISTRATION = {
    'email': 'New.Writer@Test.com',
    'password': 'Secret123',
    'first_name': 'Njeri',
    'last_name': 'New',
}


class TestRegistration:

    def test_register_creates_unapproved_writer(self, app):
        with app.app_context():
            user = AccountService.register(dict(REGISTRATION))
            assert user.email == 'new.writer@test.com'
            assert user.role == UserRole.WRITER
            assert user.is_approved is False
            assert user.writer_profile.status == WriterStatus.ACTIVE
            assert [u.id for u in AccountService.get_pending_approvals()] == [user.id]

    def test_unapproved_user_cannot_login(self, app):
        with app.app_context():
            AccountService.register(dict(REGISTRATION))
            with pytest.raises(UnauthorizedError, match='not yet approved'):
                AccountService.authenticate(REGISTRATION['email'], REGISTRATION['password'])

    def test_duplicate_email(self, app):
        with app.app_context():
            AccountService.register(dict(REGISTRATION))
            with pytest.raises(InvalidStateError):
                AccountService.register(dict(REGISTRATION))

    def test_short_password(self, app):
        with app.app_context():
            with pytest.raises(InvalidInputError):
                AccountService.register(dict(REGISTRATION, password='short'))

    def test_invite_flow_consumes_placeholder(self, app, admin_id):
        with app.app_context():
            invite = AccountService.generate_invite_link(24, invited_by=admin_id)
            assert invite['invite_url'].endswith(f"/register?invite={invite['invite_token']}")
            assert AccountService.get_pending_approvals() == []

            user = AccountService.register(dict(REGISTRATION), invite_token=invite['invite_token'])
            assert db.session.query(User).filter_by(invite_token=invite['invite_token']).first() is None
            assert user.is_approved is False

    def test_expired_invite(self, app):
        with app.app_context():
            invite = AccountService.generate_invite_link(1)
            placeholder = db.session.query(User).filter_by(invite_token=invite['invite_token']).one()
            placeholder.invite_token_expiry = utcnow() - timedelta(minutes=1)
            db.session.commit()

            with pytest.raises(UnauthorizedError, match='expired'):
                AccountService.register(dict(REGISTRATION), invite_token=invite['invite_token'])
            assert db.session.query(User).filter_by(invite_token=invite['invite_token']).first() is None

    def test_unknown_invite(self, app):
        with app.app_context():
            with pytest.raises(UnauthorizedError):
                AccountService.register(dict(REGISTRATION), invite_token='nope')


class TestApprovalAndLogin:

    def test_approve_then_login(self, app):
        with app.app_context():
            user = AccountService.register(dict(REGISTRATION))
            AccountService.approve_user(user.id)
            assert AccountService.authenticate('new.writer@test.com', 'Secret123').id == user.id

    def test_reject_deletes_registration(self, app):
        with app.app_context():
            user = AccountService.register(dict(REGISTRATION))
            user_id = user.id
            AccountService.reject_user(user_id)
            assert db.session.get(User, user_id) is None

    def test_wrong_password(self, app, admin_id):
        with app.app_context():
            with pytest.raises(UnauthorizedError, match='Invalid credentials'):
                AccountService.authenticate('admin@test.com', 'wrong-password')

    def test_suspended_writer_cannot_login(self, app, writer_id):
        with app.app_context():
            WriterService.update_status(writer_id, WriterStatus.SUSPENDED, 'Investigation')
            with pytest.raises(UnauthorizedError, match='suspended'):
                AccountService.authenticate('writer@test.com', PASSWORD)

    def test_deactivated_user_cannot_login(self, app, admin_id):
        with app.app_context():
            user = AccountService.deactivate_user(admin_id)
            assert user.token_version == 1
            with pytest.raises(UnauthorizedError, match='inactive'):
                AccountService.authenticate('admin@test.com', PASSWORD)


class TestPasswords:

    def test_change_password_bumps_version(self, app, admin_id):
        with app.app_context():
            user = AccountService.change_password(admin_id, PASSWORD, 'BrandNew456')
            assert user.token_version == 1
            assert user.check_password('BrandNew456')

    def test_change_password_requires_current(self, app, admin_id):
        with app.app_context():
            with pytest.raises(UnauthorizedError):
                AccountService.change_password(admin_id, 'not-it', 'BrandNew456')

    def test_reset_code_round_trip(self, app, writer_id):
        with app.app_context():
            code = AccountService.issue_reset_code('writer@test.com')
            assert len(code) == 6 and code.isdigit()

            user = AccountService.reset_password_with_code('writer@test.com', code, 'ResetPass789')
            assert user.check_password('ResetPass789')
            assert user.reset_otp_hash is None

            with pytest.raises(UnauthorizedError):
                AccountService.reset_password_with_code('writer@test.com', code, 'Another789')

    def test_reset_code_unknown_email(self, app):
        with app.app_context():
            assert AccountService.issue_reset_code('nobody@test.com') is None

    def test_expired_reset_code(self, app, writer_id):
        with app.app_context():
            code = AccountService.issue_reset_code('writer@test.com')
            user = db.session.query(User).filter_by(email='writer@test.com').one()
            user.reset_otp_expiry = utcnow() - timedelta(seconds=1)
            db.session.commit()
            with pytest.raises(UnauthorizedError):
                AccountService.reset_password_with_code('writer@test.com', code, 'ResetPass789')
