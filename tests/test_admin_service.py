from unittest import mock

import pytest
from sqlalchemy.exc import OperationalError

from admin_service import promote_user_admin, reset_password, setup_admin
from exceptions import NotFoundError, StoreError, ValidationError
from extensions import db
from models import ADMIN_ROLE, Profile, User, UserRole
from tests.conftest import make_user


def admin_rows(user_id):
    return UserRole.query.filter_by(user_id=user_id, role=ADMIN_ROLE).count()


class TestPromoteUserAdmin:
    def test_promotes(self, ctx, guest):
        result = promote_user_admin('guest@example.com')

        assert result.user_id == guest.id
        assert result.to_dict() == {
            'success': True,
            'message': 'User guest@example.com promoted to admin successfully',
            'userId': guest.id,
            'email': 'guest@example.com',
            'role': 'admin',
        }
        assert admin_rows(guest.id) == 1

    def test_is_idempotent(self, ctx, guest):
        promote_user_admin('guest@example.com')
        promote_user_admin('GUEST@example.com')
        assert admin_rows(guest.id) == 1

    def test_unknown_user(self, ctx):
        with pytest.raises(NotFoundError) as exc_info:
            promote_user_admin('ghost@example.com')
        assert exc_info.value.message == 'User with email ghost@example.com not found'

    def test_email_required(self, ctx):
        with pytest.raises(ValidationError):
            promote_user_admin('')

    def test_store_failure(self, ctx, guest):
        error = OperationalError('INSERT', {}, Exception('disk I/O error'))
        with mock.patch.object(db.session, 'commit', side_effect=error):
            with pytest.raises(StoreError):
                promote_user_admin('guest@example.com')


class TestSetupAdmin:
    def test_creates_confirmed_admin(self, ctx):
        result = setup_admin('Admin@Haven.com', 'admin123')

        user = User.query.filter_by(email='admin@haven.com').one()
        assert result.user_id == user.id
        assert user.email_confirmed
        assert user.check_password('admin123')
        profile = Profile.query.filter_by(user_id=user.id).one()
        assert (profile.first_name, profile.last_name) == ('Admin', 'User')
        assert admin_rows(user.id) == 1

    def test_reuses_existing_user(self, ctx):
        existing = make_user(ctx, 'staff@haven.com', confirmed=False, profile=False)

        result = setup_admin('staff@haven.com', 'whatever', 'Maya', 'Lopez')

        assert result.user_id == existing.id
        user = db.session.get(User, existing.id)
        assert user.email_confirmed
        assert user.profile.first_name == 'Maya'
        assert admin_rows(existing.id) == 1
        assert User.query.count() == 1

    def test_validates_input(self, ctx):
        with pytest.raises(ValidationError):
            setup_admin('not-an-email', 'admin123')
        with pytest.raises(ValidationError):
            setup_admin('admin@haven.com', '123')


class TestResetPassword:
    def test_resets(self, ctx, guest):
        reset_password('guest@example.com', 'brand-new-pass')
        user = db.session.get(User, guest.id)
        assert user.check_password('brand-new-pass')

    def test_unknown_user(self, ctx):
        with pytest.raises(NotFoundError):
            reset_password('ghost@example.com', 'brand-new-pass')

    def test_short_password(self, ctx, guest):
        with pytest.raises(ValidationError):
            reset_password('guest@example.com', 'abc')
