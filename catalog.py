"""
Room catalog: the static showcase list and the store-backed room table.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from exceptions import NotFoundError, StoreError, ValidationError
from extensions import db
from models import Room, RoomType

logger = logging.getLogger(__name__)

FEATURED_COUNT = 3

STATIC_ROOMS = [
    {
        'id': 1,
        'name': 'Deluxe King Room',
        'type': 'deluxe',
        'price': 24817,
        'image_url': '/static/images/room-deluxe.jpg',
        'description': 'Experience refined comfort in our elegantly appointed Deluxe King Room, featuring stunning city views and premium amenities.',
        'features': ['King-size bed', 'City view', 'Rain shower', 'Smart TV', 'Mini bar', 'Coffee machine'],
        'capacity': 2,
        'size': 35,
        'available': True,
    },
    {
        'id': 2,
        'name': 'Deluxe Twin Room',
        'type': 'deluxe',
        'price': 23987,
        'image_url': '/static/images/room-deluxe.jpg',
        'description': 'Perfect for friends or colleagues, our Deluxe Twin Room offers two comfortable beds with all the luxury amenities you expect.',
        'features': ['Two queen beds', 'City view', 'Rain shower', 'Smart TV', 'Mini bar', 'Work desk'],
        'capacity': 2,
        'size': 38,
        'available': True,
    },
    {
        'id': 3,
        'name': 'Executive Suite',
        'type': 'executive',
        'price': 41417,
        'image_url': '/static/images/room-executive.jpg',
        'description': 'Indulge in spacious luxury with our Executive Suite, featuring a separate living area and panoramic views.',
        'features': ['King-size bed', 'Living room', 'Panoramic view', 'Jacuzzi tub', 'Butler service', 'Premium bar'],
        'capacity': 3,
        'size': 65,
        'available': True,
    },
    {
        'id': 4,
        'name': 'Executive Corner Suite',
        'type': 'executive',
        'price': 45567,
        'image_url': '/static/images/room-executive.jpg',
        'description': 'Our corner suites offer dual-aspect views and additional space for the discerning traveler.',
        'features': ['King-size bed', 'Dual views', 'Dining area', 'Spa bathroom', 'Lounge access', 'Smart home'],
        'capacity': 3,
        'size': 75,
        'available': False,
    },
    {
        'id': 5,
        'name': 'Presidential Suite',
        'type': 'presidential',
        'price': 107817,
        'image_url': '/static/images/room-presidential.jpg',
        'description': 'The pinnacle of luxury living. Our Presidential Suite offers unparalleled elegance with private terrace and dedicated butler.',
        'features': ['Master bedroom', 'Private terrace', 'Grand piano', 'Personal chef', 'Limousine service', 'Helipad access'],
        'capacity': 4,
        'size': 150,
        'available': True,
    },
    {
        'id': 6,
        'name': 'Royal Penthouse',
        'type': 'presidential',
        'price': 207417,
        'image_url': '/static/images/room-presidential.jpg',
        'description': 'Experience royalty in our exclusive penthouse spanning the entire top floor with 360-degree city views.',
        'features': ['3 bedrooms', 'Private pool', 'Home cinema', 'Wine cellar', 'Personal staff', 'Private elevator'],
        'capacity': 6,
        'size': 350,
        'available': True,
    },
]


def parse_room_type(value):
    """Map a query value to RoomType; 'all' or empty means no filter"""
    if value is None or value == '' or value == 'all':
        return None
    try:
        return RoomType(value)
    except ValueError:
        raise ValidationError(f'Unknown room type: {value}')


def static_rooms(room_type=None, available_only=False):
    rooms = STATIC_ROOMS
    if room_type is not None:
        rooms = [room for room in rooms if room['type'] == RoomType(room_type).value]
    if available_only:
        rooms = [room for room in rooms if room['available']]
    return sorted(rooms, key=lambda room: room['price'])


def featured_rooms():
    """Showcase rooms for the home page"""
    return [dict(room) for room in STATIC_ROOMS[:FEATURED_COUNT]]


class RoomCatalog:
    """Reads rooms from the store, falling back to the static list when the table is empty"""

    def list_rooms(self, room_type=None, available_only=False):
        """Return room dictionaries ordered by nightly price"""
        room_type = parse_room_type(room_type)

        try:
            if Room.query.count() == 0:
                logger.warning("Rooms table is empty, serving static catalog")
                return static_rooms(room_type, available_only)

            query = Room.query
            if room_type is not None:
                query = query.filter_by(type=room_type.value)
            if available_only:
                query = query.filter_by(available=True)
            rooms = query.order_by(Room.price.asc()).all()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to load rooms: {e}")
            raise StoreError() from e

        return [room.to_dict() for room in rooms]

    def available_rooms(self):
        return self.list_rooms(available_only=True)

    def get_room(self, room_id):
        """Fetch one room model from the store"""
        try:
            room = db.session.get(Room, int(room_id))
        except (TypeError, ValueError):
            raise NotFoundError('Room not found')
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to load room {room_id}: {e}")
            raise StoreError() from e

        if room is None:
            raise NotFoundError('Room not found')
        return room
