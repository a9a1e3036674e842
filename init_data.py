"""
Initialize database with the room catalog for the hotel booking site
"""
import logging
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from catalog import STATIC_ROOMS
from extensions import db
from models import Room

logger = logging.getLogger(__name__)


def seed_rooms():
    """Create the catalog rooms that are missing; returns how many were added"""
    created = 0
    try:
        for room_data in STATIC_ROOMS:
            existing_room = Room.query.filter_by(name=room_data['name']).first()
            if existing_room:
                continue

            room = Room(
                name=room_data['name'],
                type=room_data['type'],
                price=Decimal(room_data['price']),
                capacity=room_data['capacity'],
                size=room_data['size'],
                features=list(room_data['features']),
                description=room_data['description'],
                image_url=room_data['image_url'],
                available=room_data['available'],
            )
            db.session.add(room)
            created += 1
            logger.info(f"Created room: {room_data['name']}")

        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Room seeding failed: {e}")
        raise

    return created


def create_initial_data():
    """Create tables and seed data for the application"""
    db.create_all()
    created = seed_rooms()
    logger.info(f"Database initialization complete ({created} rooms added)")
    return created
