"""
Booking records scoped to the signed-in identity.

The manager does not check availability, overlaps or ownership. Which rows it
can see is decided by the row policy it is built with: the owner policy used
by the public site mirrors the store's per-user access rules, the service
policy is unrestricted and only used by privileged tooling.
"""
import logging
from decimal import Decimal, InvalidOperation

from flask import g
from sqlalchemy import false, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from auth_service import AuthEvent, get_auth_context
from exceptions import AuthenticationError, AuthErrorKind, NotFoundError, StoreError, ValidationError
from extensions import db
from models import Booking, BookingStatus, Room
from pricing import parse_date

logger = logging.getLogger(__name__)

MAX_GUESTS = 6
MAX_SPECIAL_REQUEST_LENGTH = 1000


def owner_rows(identity):
    """Row policy: only bookings owned by ``identity``"""
    def apply(query):
        if identity is None:
            return query.filter(false())
        return query.filter(Booking.user_id == identity.id)
    return apply


def service_rows(query):
    """Row policy for server-held credentials: every row"""
    return query


def validate_guests(guests):
    # int() would quietly turn True into 1 and 2.7 into 2
    if isinstance(guests, bool):
        raise ValidationError('Number of guests must be a whole number')
    try:
        whole = int(guests)
        if isinstance(guests, (float, Decimal)) and guests != whole:
            raise ValueError(guests)
        guests = whole
    except (TypeError, ValueError, OverflowError, InvalidOperation):
        raise ValidationError('Number of guests must be a whole number')
    if guests < 1 or guests > MAX_GUESTS:
        raise ValidationError(f'Number of guests must be between 1 and {MAX_GUESTS}')
    return guests


def validate_stay(check_in, check_out):
    try:
        start = parse_date(check_in)
        end = parse_date(check_out)
    except (TypeError, ValueError):
        raise ValidationError('Invalid date format')
    if start is None or end is None:
        raise ValidationError('Please select check-in and check-out dates')
    if hasattr(start, 'date'):
        start = start.date()
    if hasattr(end, 'date'):
        end = end.date()
    if end <= start:
        raise ValidationError('Check-out date must be after check-in date')
    return start, end


def clean_special_requests(text):
    text = (text or '').strip()
    if not text:
        return None
    if len(text) > MAX_SPECIAL_REQUEST_LENGTH:
        raise ValidationError(f'Special requests are limited to {MAX_SPECIAL_REQUEST_LENGTH} characters')
    return text


class BookingManager:
    def __init__(self, identity, row_policy=None):
        self.identity = identity
        self._owner_scoped = row_policy is None
        self.row_policy = row_policy or owner_rows(identity)
        self._cache = {}

    @classmethod
    def for_context(cls, auth_context):
        """Manager bound to a session context; follows its sign-in / sign-out events"""
        manager = cls(auth_context.user)
        auth_context.on_auth_state_change(manager.handle_auth_event)
        return manager

    def handle_auth_event(self, event, identity):
        if event in (AuthEvent.SIGNED_IN, AuthEvent.SIGNED_OUT, AuthEvent.INITIAL_SESSION):
            self.identity = identity
            if self._owner_scoped:
                self.row_policy = owner_rows(identity)
            self.invalidate()

    def invalidate(self):
        self._cache.clear()

    def list_bookings(self):
        """The identity's bookings, newest first, with room name/type/price loaded"""
        if self.identity is None:
            return []

        key = self.identity.id
        if key not in self._cache:
            try:
                query = Booking.query.options(joinedload(Booking.room)).filter(Booking.user_id == self.identity.id)
                bookings = (
                    self.row_policy(query)
                    .order_by(Booking.created_at.desc(), Booking.id.desc())
                    .all()
                )
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"Failed to list bookings for user {key}: {e}")
                raise StoreError() from e
            self._cache[key] = bookings
        return list(self._cache[key])

    def create_booking(self, room_id, check_in, check_out, guests, total_price, special_requests=None):
        if self.identity is None:
            raise AuthenticationError(AuthErrorKind.NOT_AUTHENTICATED, 'Must be logged in to book')

        check_in, check_out = validate_stay(check_in, check_out)
        guests = validate_guests(guests)
        special_requests = clean_special_requests(special_requests)
        try:
            total_price = Decimal(str(total_price))
        except (InvalidOperation, ValueError):
            raise ValidationError('Invalid total price')
        if total_price < 0:
            raise ValidationError('Total price cannot be negative')

        try:
            room = db.session.get(Room, int(room_id))
        except (TypeError, ValueError):
            room = None
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreError() from e
        if room is None:
            raise NotFoundError('Room not found')

        booking = Booking(
            user_id=self.identity.id,
            room_id=room.id,
            check_in=check_in,
            check_out=check_out,
            guests=guests,
            total_price=total_price,
            status=BookingStatus.PENDING.value,
            special_requests=special_requests,
        )
        try:
            db.session.add(booking)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to create booking for user {self.identity.id}: {e}")
            raise StoreError() from e

        logger.info(f"Booking {booking.id} created for user {self.identity.id} (room {room.id})")
        self.invalidate()
        return booking

    def cancel_booking(self, booking_id):
        """Flip status to cancelled; nothing else about the booking changes"""
        try:
            booking_id = int(booking_id)
        except (TypeError, ValueError):
            raise NotFoundError('Booking not found')

        try:
            query = self.row_policy(Booking.query.filter(Booking.id == booking_id))
            updated = query.update(
                {Booking.status: BookingStatus.CANCELLED.value},
                synchronize_session='fetch',
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to cancel booking {booking_id}: {e}")
            raise StoreError() from e

        if not updated:
            raise NotFoundError('Booking not found')

        logger.info(f"Booking {booking_id} cancelled")
        self.invalidate()
        return db.session.get(Booking, booking_id)


def booking_summary(recent_limit=10):
    """Counts per status, confirmed revenue and latest bookings for the admin dashboard"""
    try:
        counts = dict(
            db.session.query(Booking.status, func.count(Booking.id))
            .group_by(Booking.status)
            .all()
        )
        revenue = (
            db.session.query(func.coalesce(func.sum(Booking.total_price), 0))
            .filter(Booking.status.in_([BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value]))
            .scalar()
        )
        recent = (
            service_rows(Booking.query.options(joinedload(Booking.room)))
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .limit(recent_limit)
            .all()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to build booking summary: {e}")
        raise StoreError() from e

    return {
        'counts': {status.value: counts.get(status.value, 0) for status in BookingStatus},
        'total_revenue': float(revenue or 0),
        'recent_bookings': recent,
    }


def get_booking_manager():
    """The request's BookingManager, bound to the request's session context"""
    if 'booking_manager' not in g:
        auth_context = get_auth_context()
        if auth_context.loading:
            auth_context.load_session()
        g.booking_manager = BookingManager.for_context(auth_context)
    return g.booking_manager
