from datetime import datetime
from enum import Enum

import pytz
from extensions import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash


class RoomType(str, Enum):
    """Room categories, entry to top tier"""
    DELUXE = 'deluxe'
    EXECUTIVE = 'executive'
    PRESIDENTIAL = 'presidential'


class BookingStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'


ADMIN_ROLE = 'admin'


def to_local_time(dt, tz_name='Asia/Kolkata'):
    """Convert a naive UTC datetime to the hotel's timezone"""
    if not dt:
        return dt
    utc = pytz.utc
    local_tz = pytz.timezone(tz_name)
    if dt.tzinfo is None:
        dt = utc.localize(dt)
    return dt.astimezone(local_tz)


class User(UserMixin, db.Model):
    """Identity record: login email plus password hash"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    email_confirmed = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    profile = db.relationship('Profile', backref='user', uselist=False)
    roles = db.relationship('UserRole', backref='user', lazy='dynamic')
    bookings = db.relationship('Booking', backref='user', lazy='dynamic')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'email_confirmed': self.email_confirmed,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<User {self.email}>'


class Profile(db.Model):
    """Display details for an identity"""
    __tablename__ = 'profiles'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    email = db.Column(db.String(120))
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
        }

    def __repr__(self):
        return f'<Profile {self.user_id}>'


class UserRole(db.Model):
    """Role membership; written only by privileged admin operations"""
    __tablename__ = 'user_roles'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    role = db.Column(db.String(30), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint('user_id', 'role', name='_user_role_uc'),)

    def __repr__(self):
        return f'<UserRole {self.user_id}:{self.role}>'


class Room(db.Model):
    __tablename__ = 'rooms'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    type = db.Column(db.String(20), nullable=False)  # deluxe, executive, presidential
    price = db.Column(db.Numeric(12, 2), nullable=False)  # per night
    capacity = db.Column(db.Integer, nullable=False)
    size = db.Column(db.Integer, nullable=False)  # square metres
    features = db.Column(db.JSON, default=list)
    description = db.Column(db.Text)
    image_url = db.Column(db.String(255))
    available = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    bookings = db.relationship('Booking', backref='room', lazy='dynamic')

    __table_args__ = (
        db.CheckConstraint('price > 0', name='ck_room_price_positive'),
        db.CheckConstraint('capacity > 0', name='ck_room_capacity_positive'),
        db.CheckConstraint('size > 0', name='ck_room_size_positive'),
    )

    def to_dict(self):
        """Convert room to dictionary for API responses"""
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'price': float(self.price) if self.price is not None else 0.0,
            'capacity': self.capacity,
            'size': self.size,
            'features': list(self.features or []),
            'description': self.description,
            'image_url': self.image_url,
            'available': self.available,
        }

    def __repr__(self):
        return f'<Room {self.name}>'


class Booking(db.Model):
    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    room_id = db.Column(db.Integer, db.ForeignKey('rooms.id'), nullable=False)

    # Booking dates
    check_in = db.Column(db.Date, nullable=False)
    check_out = db.Column(db.Date, nullable=False)

    guests = db.Column(db.Integer, nullable=False, default=1)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    # Booking status: pending, confirmed, cancelled, completed
    status = db.Column(db.String(20), default=BookingStatus.PENDING.value, nullable=False)
    special_requests = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('check_out > check_in', name='ck_booking_dates'),
        db.CheckConstraint('guests > 0', name='ck_booking_guests_positive'),
    )

    @property
    def nights(self):
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    @property
    def is_cancelled(self):
        return self.status == BookingStatus.CANCELLED.value

    def to_dict(self, tz_name='Asia/Kolkata'):
        """Convert booking to dictionary for API responses"""
        room = self.room
        local_created = to_local_time(self.created_at, tz_name)

        return {
            'id': self.id,
            'user_id': self.user_id,
            'room_id': self.room_id,
            'check_in': self.check_in.isoformat() if self.check_in else None,
            'check_out': self.check_out.isoformat() if self.check_out else None,
            'nights': self.nights if self.check_in and self.check_out else 0,
            'guests': self.guests,
            'total_price': float(self.total_price) if self.total_price is not None else 0.0,
            'status': self.status,
            'special_requests': self.special_requests,
            'created_at': local_created.isoformat() if local_created else None,
            'room': {
                'name': room.name,
                'type': room.type,
                'price': float(room.price),
            } if room else None,
        }

    def __repr__(self):
        return f'<Booking {self.id}>'
