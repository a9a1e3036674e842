"""
Privileged admin operations.

These run only with the server-held service key: from the Flask CLI or the
promote-user-admin function endpoint. Nothing here is reachable with a
browser session.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from auth_service import EMAIL_PATTERN, MIN_PASSWORD_LENGTH, normalize_email
from exceptions import NotFoundError, StoreError, ValidationError
from extensions import db
from models import ADMIN_ROLE, Profile, User, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromotionResult:
    user_id: int
    email: str
    role: str = ADMIN_ROLE

    def to_dict(self):
        return {
            'success': True,
            'message': f'User {self.email} promoted to admin successfully',
            'userId': self.user_id,
            'email': self.email,
            'role': self.role,
        }


def _find_user(email):
    user = User.query.filter_by(email=normalize_email(email)).first()
    if user is None:
        raise NotFoundError(f'User with email {email} not found')
    return user


def _upsert_role(user_id, role):
    """Insert (user_id, role) unless it already exists"""
    existing = UserRole.query.filter_by(user_id=user_id, role=role).first()
    if existing is None:
        db.session.add(UserRole(user_id=user_id, role=role))
    return existing is None


def _upsert_profile(user, first_name, last_name):
    profile = Profile.query.filter_by(user_id=user.id).first()
    if profile is None:
        profile = Profile(user_id=user.id)
        db.session.add(profile)
    profile.email = user.email
    profile.first_name = first_name
    profile.last_name = last_name
    return profile


def promote_user_admin(email):
    """Give an existing identity the admin role"""
    if not email:
        raise ValidationError('Email is required')

    try:
        user = _find_user(email)
        created = _upsert_role(user.id, ADMIN_ROLE)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to promote {email}: {e}")
        raise StoreError(str(e)) from e

    if created:
        logger.info(f"Promoted user {user.id} ({user.email}) to admin")
    else:
        logger.info(f"User {user.id} ({user.email}) already holds the admin role")
    return PromotionResult(user_id=user.id, email=user.email)


def setup_admin(email, password, first_name='Admin', last_name='User'):
    """Create (or reuse) a confirmed identity, then upsert its profile and admin role"""
    email = normalize_email(email)
    if not EMAIL_PATTERN.match(email):
        raise ValidationError('Please enter a valid email address')
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')

    try:
        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(email=email, email_confirmed=True)
            user.set_password(password)
            db.session.add(user)
            db.session.flush()  # Get the ID
            logger.info(f"Created admin user {email}")
        else:
            # Make sure they can sign in
            user.email_confirmed = True
            logger.info(f"Admin user {email} already exists")

        _upsert_profile(user, first_name, last_name)
        _upsert_role(user.id, ADMIN_ROLE)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to set up admin {email}: {e}")
        raise StoreError(str(e)) from e

    return PromotionResult(user_id=user.id, email=user.email)


def reset_password(email, new_password):
    if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')

    try:
        user = _find_user(email)
        user.set_password(new_password)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to reset password for {email}: {e}")
        raise StoreError(str(e)) from e

    logger.info(f"Password reset for user {user.id}")
    return user
