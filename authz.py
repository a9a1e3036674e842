"""
Role checks and the admin dashboard gate.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from exceptions import AuthorizationError, StoreError
from extensions import db
from models import ADMIN_ROLE, Profile, UserRole

logger = logging.getLogger(__name__)


class AuthorizationPolicy(ABC):
    """Answers whether an identity holds a role"""

    @abstractmethod
    def has_role(self, identity, role) -> bool:
        pass


class RoleTablePolicy(AuthorizationPolicy):
    """Single-row lookup in the user_roles table"""

    def has_role(self, identity, role):
        if identity is None:
            return False
        try:
            row = UserRole.query.filter_by(user_id=identity.id, role=role).first()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Role lookup failed for user {identity.id}: {e}")
            raise StoreError() from e
        return row is not None


class GateState(str, Enum):
    UNKNOWN = 'unknown'
    DENIED = 'denied'
    GRANTED = 'granted'


@dataclass(frozen=True)
class AdminProfile:
    id: int
    email: str
    first_name: str
    last_name: str

    @property
    def display_name(self):
        return f"{self.first_name} {self.last_name}"

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
        }


def load_admin_profile(identity):
    """Display profile, falling back to 'Admin User' when no profile row exists"""
    try:
        profile = Profile.query.filter_by(user_id=identity.id).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning(f"Profile lookup failed for user {identity.id}: {e}")
        profile = None

    return AdminProfile(
        id=identity.id,
        email=identity.email,
        first_name=(profile.first_name if profile else None) or 'Admin',
        last_name=(profile.last_name if profile else None) or 'User',
    )


class AdminGate:
    """
    Admin dashboard access.

    Starts UNKNOWN. check() resolves the session and moves to DENIED (no
    session, no admin row, or a failed lookup) or GRANTED. A session that
    reaches DENIED through the role check is signed out.
    """

    def __init__(self, auth_context, policy=None, role=ADMIN_ROLE):
        self.auth_context = auth_context
        self.policy = policy or RoleTablePolicy()
        self.role = role
        self.state = GateState.UNKNOWN
        self.profile: Optional[AdminProfile] = None
        self.signed_out = False

    @property
    def granted(self):
        return self.state == GateState.GRANTED

    def _deny(self, sign_out):
        if sign_out:
            self.auth_context.sign_out()
            self.signed_out = True
        self.state = GateState.DENIED
        self.profile = None
        return self.state

    def check(self):
        if self.auth_context.loading:
            self.auth_context.load_session()

        identity = self.auth_context.user
        if identity is None:
            logger.info("Admin gate: no session")
            return self._deny(sign_out=False)

        try:
            allowed = self.policy.has_role(identity, self.role)
        except StoreError:
            logger.warning(f"Admin gate: role lookup failed for user {identity.id}")
            return self._deny(sign_out=True)

        if not allowed:
            logger.info(f"Admin gate: user {identity.id} lacks the {self.role} role")
            return self._deny(sign_out=True)

        self.profile = load_admin_profile(identity)
        self.state = GateState.GRANTED
        return self.state


def admin_sign_in(auth_context, email, password, policy=None):
    """Sign in through the admin login page; non-admins are signed straight back out"""
    policy = policy or RoleTablePolicy()
    session = auth_context.sign_in(email, password)

    try:
        allowed = policy.has_role(session.identity, ADMIN_ROLE)
    except StoreError:
        allowed = False

    if not allowed:
        auth_context.sign_out()
        logger.info(f"Admin login refused for user {session.identity.id}")
        raise AuthorizationError("You do not have admin access")

    return session
