"""
Identity service adapter and the request-scoped session context.

The identity service owns credentials, session handles (PyJWT tokens) and
email confirmation. AuthContext wraps it for a single request and exposes the
current identity, a loading flag and sign-in / sign-up / sign-out.
"""
import logging
import re
import smtplib
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

import jwt
from flask import current_app, g, url_for
from flask_login import current_user, login_user, logout_user
from flask_mail import Message
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from exceptions import AuthenticationError, AuthErrorKind, StoreError
from extensions import db, login_manager, mail
from models import Profile, User

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MIN_PASSWORD_LENGTH = 6

PURPOSE_ACCESS = 'access'
PURPOSE_CONFIRM = 'confirm'


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


def normalize_email(email):
    return (email or '').strip().lower()


@dataclass(frozen=True)
class Identity:
    id: int
    email: str

    @classmethod
    def from_user(cls, user):
        return cls(id=user.id, email=user.email)

    def to_dict(self):
        return {'id': self.id, 'email': self.email}


@dataclass(frozen=True)
class Session:
    """Opaque session handle issued on sign-in"""
    access_token: str
    identity: Identity
    expires_at: datetime

    def to_dict(self):
        return {
            'access_token': self.access_token,
            'token_type': 'bearer',
            'expires_at': self.expires_at.isoformat(),
            'user': self.identity.to_dict(),
        }


@dataclass(frozen=True)
class SignUpResult:
    identity: Identity
    confirmation_required: bool
    confirmation_token: Optional[str] = None


class IdentityService:
    """Credentials, session tokens and email confirmation"""

    def __init__(self, secret_key, algorithm='HS256', token_days=7,
                 confirmation_hours=24, require_confirmation=True):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.token_lifetime = timedelta(days=token_days)
        self.confirmation_lifetime = timedelta(hours=confirmation_hours)
        self.require_confirmation = require_confirmation

    @classmethod
    def from_config(cls, config):
        return cls(
            secret_key=config['JWT_SECRET_KEY'],
            algorithm=config.get('JWT_ALGORITHM', 'HS256'),
            token_days=config.get('JWT_EXPIRES_DAYS', 7),
            confirmation_hours=config.get('CONFIRMATION_EXPIRES_HOURS', 24),
            require_confirmation=config.get('REQUIRE_EMAIL_CONFIRMATION', True),
        )

    # Tokens

    def issue_token(self, user, purpose=PURPOSE_ACCESS, lifetime=None):
        expires_at = datetime.utcnow() + (lifetime or self.token_lifetime)
        payload = {
            'user_id': user.id,
            'email': user.email,
            'purpose': purpose,
            'exp': expires_at,
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return token, expires_at

    def decode_token(self, token, purpose=PURPOSE_ACCESS):
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError(AuthErrorKind.INVALID_TOKEN, 'Your session has expired')
        except jwt.InvalidTokenError:
            raise AuthenticationError(AuthErrorKind.INVALID_TOKEN)

        if payload.get('purpose') != purpose or 'user_id' not in payload:
            raise AuthenticationError(AuthErrorKind.INVALID_TOKEN)
        return payload

    def resolve_token(self, token):
        """User for a valid access token, or None"""
        try:
            payload = self.decode_token(token, PURPOSE_ACCESS)
        except AuthenticationError as e:
            logger.info(f"Rejected session token: {e.message}")
            return None
        return self.get_user(payload['user_id'])

    # Lookups

    def get_user(self, user_id):
        try:
            return db.session.get(User, int(user_id))
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to load user {user_id}: {e}")
            raise StoreError() from e

    def find_user_by_email(self, email):
        try:
            return User.query.filter_by(email=normalize_email(email)).first()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to look up user by email: {e}")
            raise StoreError() from e

    # Operations

    def sign_in(self, email, password):
        """Verify credentials and issue a session handle"""
        if not email or not password:
            raise AuthenticationError(AuthErrorKind.MISSING_FIELDS)

        user = self.find_user_by_email(email)
        if not user or not user.check_password(password):
            logger.info(f"Invalid credentials for: {normalize_email(email)}")
            raise AuthenticationError(AuthErrorKind.INVALID_CREDENTIALS)

        if self.require_confirmation and not user.email_confirmed:
            logger.info(f"Email not confirmed for: {user.email}")
            raise AuthenticationError(AuthErrorKind.EMAIL_NOT_CONFIRMED)

        token, expires_at = self.issue_token(user)
        return Session(access_token=token, identity=Identity.from_user(user), expires_at=expires_at)

    def sign_up(self, email, password, first_name, last_name):
        """Register a new identity and its profile row"""
        email = normalize_email(email)
        first_name = (first_name or '').strip()
        last_name = (last_name or '').strip()

        if not all([email, password, first_name, last_name]):
            raise AuthenticationError(AuthErrorKind.MISSING_FIELDS)
        if not EMAIL_PATTERN.match(email):
            raise AuthenticationError(AuthErrorKind.INVALID_EMAIL)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthenticationError(AuthErrorKind.WEAK_PASSWORD)

        if self.find_user_by_email(email):
            raise AuthenticationError(AuthErrorKind.ALREADY_REGISTERED)

        user = User(email=email, email_confirmed=not self.require_confirmation)
        user.set_password(password)
        try:
            db.session.add(user)
            db.session.flush()  # Get the ID
            db.session.add(Profile(user_id=user.id, email=email, first_name=first_name, last_name=last_name))
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise AuthenticationError(AuthErrorKind.ALREADY_REGISTERED)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to register {email}: {e}")
            raise StoreError() from e

        logger.info(f"Registered user {user.id} ({email})")

        token = None
        if self.require_confirmation:
            token, _ = self.issue_token(user, PURPOSE_CONFIRM, self.confirmation_lifetime)
        return SignUpResult(
            identity=Identity.from_user(user),
            confirmation_required=self.require_confirmation,
            confirmation_token=token,
        )

    def confirm_email(self, token):
        payload = self.decode_token(token, PURPOSE_CONFIRM)
        user = self.get_user(payload['user_id'])
        if user is None:
            raise AuthenticationError(AuthErrorKind.INVALID_TOKEN)

        if not user.email_confirmed:
            try:
                user.email_confirmed = True
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                raise StoreError() from e
            logger.info(f"Email confirmed for user {user.id}")
        return Identity.from_user(user)


def send_confirmation_email(email, link):
    """Send the sign-up confirmation link; returns False when mail delivery fails"""
    hotel_name = current_app.config.get('HOTEL_NAME', 'Haven Hotel')
    message = Message(
        subject=f"{hotel_name} - Confirm your email",
        recipients=[email],
        body=(
            f"Welcome to {hotel_name}!\n\n"
            f"Please confirm your email address by opening the link below:\n\n"
            f"{link}\n\n"
            f"If you did not create an account, please ignore this email.\n"
        ),
    )
    try:
        mail.send(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send confirmation email to {email}: {e}")
        return False
    return True


class AuthEvent(str, Enum):
    INITIAL_SESSION = 'INITIAL_SESSION'
    SIGNED_IN = 'SIGNED_IN'
    SIGNED_OUT = 'SIGNED_OUT'


class AuthContext:
    """
    Session state for one request.

    ``loading`` stays True until load_session() has resolved the cookie or
    bearer token. Listeners registered with on_auth_state_change() are called
    with (event, identity) on every transition.
    """

    def __init__(self, service):
        self.service = service
        self.user = None
        self.session = None
        self.loading = True
        self._listeners = []

    @property
    def is_authenticated(self):
        return self.user is not None

    def on_auth_state_change(self, listener):
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event):
        for listener in list(self._listeners):
            listener(event, self.user)

    def load_session(self, bearer_token=None, use_cookie=True):
        """Resolve the current identity from a bearer token or the login cookie"""
        if bearer_token:
            user = self.service.resolve_token(bearer_token)
        elif use_cookie and current_user.is_authenticated:
            user = current_user
        else:
            user = None

        self.user = Identity.from_user(user) if user is not None else None
        self.loading = False
        self._emit(AuthEvent.INITIAL_SESSION)
        return self.user

    def sign_in(self, email, password, remember=False):
        session = self.service.sign_in(email, password)
        login_user(self.service.get_user(session.identity.id), remember=remember)

        self.user = session.identity
        self.session = session
        self.loading = False
        logger.info(f"User {self.user.id} signed in")
        self._emit(AuthEvent.SIGNED_IN)
        return session

    def sign_up(self, email, password, first_name, last_name):
        result = self.service.sign_up(email, password, first_name, last_name)
        if result.confirmation_token:
            link = url_for('site.confirm_email', token=result.confirmation_token, _external=True)
            send_confirmation_email(result.identity.email, link)
        return result

    def sign_out(self):
        if self.user is not None:
            logger.info(f"User {self.user.id} signed out")
        logout_user()
        self.user = None
        self.session = None
        self.loading = False
        self._emit(AuthEvent.SIGNED_OUT)


def init_identity_service(app):
    app.extensions['identity_service'] = IdentityService.from_config(app.config)


def get_identity_service():
    return current_app.extensions['identity_service']


def get_auth_context():
    """The request's AuthContext, created on first use"""
    if 'auth_context' not in g:
        g.auth_context = AuthContext(get_identity_service())
    return g.auth_context
