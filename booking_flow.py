"""
Three-step booking form: dates and room, special requests, confirmation.

The draft lives in the Flask session between steps.
"""
from dataclasses import asdict, dataclass, replace
from typing import Optional

from flask import session

from booking_service import clean_special_requests, validate_guests, validate_stay
from exceptions import ValidationError
from pricing import TAX_RATE, quote_stay

SESSION_KEY = 'booking'

STEP_SELECT = 1
STEP_REQUESTS = 2
STEP_CONFIRM = 3

STEP_LABELS = {
    STEP_SELECT: 'Select Room',
    STEP_REQUESTS: 'Special Requests',
    STEP_CONFIRM: 'Confirmation',
}


@dataclass(frozen=True)
class BookingDraft:
    room_id: int
    check_in: str
    check_out: str
    guests: int = 1
    special_requests: Optional[str] = None
    step: int = STEP_REQUESTS

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        field_names = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in data.items() if k in field_names})


def select_stay(catalog, room_id, check_in, check_out, guests=1, tax_rate=TAX_RATE):
    """Step 1. Blocks unless the room is bookable and the stay is at least one night"""
    if not room_id:
        raise ValidationError('Please select a room')
    room = catalog.get_room(room_id)
    if not room.available:
        raise ValidationError('This room is not available for booking')

    guests = validate_guests(guests)
    if guests > room.capacity:
        raise ValidationError(f'This room can only accommodate up to {room.capacity} guests')

    start, end = validate_stay(check_in, check_out)
    quote = quote_stay(room.price, start, end, tax_rate)
    if not quote.is_complete:
        raise ValidationError('Please select at least one night')

    draft = BookingDraft(
        room_id=room.id,
        check_in=start.isoformat(),
        check_out=end.isoformat(),
        guests=guests,
        step=STEP_REQUESTS,
    )
    return draft, quote


def add_special_requests(draft, text):
    """Step 2"""
    if draft.step < STEP_REQUESTS:
        raise ValidationError('Please select your dates and room first')
    return replace(draft, special_requests=clean_special_requests(text), step=STEP_CONFIRM)


def quote_draft(catalog, draft, tax_rate=TAX_RATE):
    room = catalog.get_room(draft.room_id)
    return quote_stay(room.price, draft.check_in, draft.check_out, tax_rate)


def confirm_draft(manager, catalog, draft, tax_rate=TAX_RATE):
    """Step 3. Recomputes the total from the stored room price and persists the booking"""
    if draft.step < STEP_CONFIRM:
        raise ValidationError('Please complete the previous steps')

    quote = quote_draft(catalog, draft, tax_rate)
    if not quote.is_complete:
        raise ValidationError('Please select at least one night')

    return manager.create_booking(
        room_id=draft.room_id,
        check_in=draft.check_in,
        check_out=draft.check_out,
        guests=draft.guests,
        total_price=quote.total,
        special_requests=draft.special_requests,
    )


def load_draft():
    data = session.get(SESSION_KEY)
    if not data:
        return None
    try:
        return BookingDraft.from_dict(data)
    except TypeError:
        session.pop(SESSION_KEY, None)
        return None


def save_draft(draft):
    session[SESSION_KEY] = draft.to_dict()


def clear_draft():
    session.pop(SESSION_KEY, None)
