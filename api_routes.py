import hmac
import logging
from decimal import Decimal, InvalidOperation
from functools import wraps

from flask import Blueprint, current_app, jsonify, request

from admin_service import promote_user_admin
from auth_service import get_auth_context, get_identity_service
from authz import RoleTablePolicy
from booking_flow import select_stay
from booking_service import get_booking_manager
from catalog import RoomCatalog, featured_rooms
from exceptions import AuthenticationError, AuthErrorKind, HotelError, StoreError, ValidationError
from models import ADMIN_ROLE
from pricing import quote_display, quote_stay

logger = logging.getLogger(__name__)

# Create API blueprint
api_bp = Blueprint('api', __name__, url_prefix='/api')


def _tax_rate():
    return Decimal(str(current_app.config.get('TAX_RATE', '0.12')))


def _timezone():
    return current_app.config.get('HOTEL_TIMEZONE', 'Asia/Kolkata')


def _bearer_token():
    token = request.headers.get('Authorization', '')
    if token.startswith('Bearer '):
        token = token[7:]
    return token.strip() or None


def _api_context():
    """Session context resolved from the bearer token only; cookies are ignored"""
    auth_context = get_auth_context()
    if auth_context.loading:
        auth_context.load_session(bearer_token=_bearer_token(), use_cookie=False)
    return auth_context


def token_required(f):
    """Decorator to require a valid session token"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({'success': False, 'message': 'Authentication required'}), 401

        # Raises AuthenticationError(INVALID_TOKEN) for expired or forged tokens
        get_identity_service().decode_token(token)

        auth_context = _api_context()
        if auth_context.user is None:
            return jsonify({'success': False, 'message': 'User not found'}), 404
        return f(auth_context, *args, **kwargs)

    return decorated_function


def _json_body():
    return request.get_json(silent=True) or {}


# Auth

@api_bp.route('/auth/register', methods=['POST'])
def register():
    """Register a new user; returns a session right away when confirmation is off"""
    data = _json_body()
    result = get_auth_context().sign_up(
        data.get('email'),
        data.get('password'),
        data.get('first_name'),
        data.get('last_name'),
    )

    response = {
        'success': True,
        'user': result.identity.to_dict(),
        'confirmation_required': result.confirmation_required,
    }
    if result.confirmation_required:
        response['message'] = 'Account created! Please check your email to confirm your account.'
    else:
        response['message'] = 'Account created!'
        response['session'] = get_identity_service().sign_in(data.get('email'), data.get('password')).to_dict()
    return jsonify(response), 201


@api_bp.route('/auth/login', methods=['POST'])
def login():
    data = _json_body()
    session = get_identity_service().sign_in(data.get('email'), data.get('password'))
    logger.info(f"API login for user {session.identity.id}")
    return jsonify({'success': True, 'session': session.to_dict()})


@api_bp.route('/auth/session', methods=['GET'])
@token_required
def current_session(auth_context):
    return jsonify({
        'success': True,
        'user': auth_context.user.to_dict(),
        'is_admin': RoleTablePolicy().has_role(auth_context.user, ADMIN_ROLE),
    })


# Rooms

@api_bp.route('/rooms', methods=['GET'])
def list_rooms():
    available_only = request.args.get('available', '').lower() in ('1', 'true', 'yes')
    rooms = RoomCatalog().list_rooms(
        room_type=request.args.get('type'),
        available_only=available_only,
    )
    return jsonify({'success': True, 'rooms': rooms})


@api_bp.route('/rooms/featured', methods=['GET'])
def list_featured_rooms():
    return jsonify({'success': True, 'rooms': featured_rooms()})


@api_bp.route('/rooms/<int:room_id>', methods=['GET'])
def get_room(room_id):
    room = RoomCatalog().get_room(room_id)
    return jsonify({'success': True, 'room': room.to_dict()})


@api_bp.route('/calculate_price', methods=['GET'])
def calculate_price():
    """Quote a stay for ?room_id= (or a raw ?price=) between ?check_in= and ?check_out="""
    room_id = request.args.get('room_id')
    if room_id:
        nightly_price = RoomCatalog().get_room(room_id).price
    else:
        try:
            nightly_price = Decimal(request.args.get('price', ''))
        except InvalidOperation:
            raise ValidationError('Please provide a room_id or a nightly price')

    try:
        quote = quote_stay(
            nightly_price,
            request.args.get('check_in'),
            request.args.get('check_out'),
            _tax_rate(),
        )
    except (TypeError, ValueError, InvalidOperation):
        raise ValidationError('Please provide a valid nightly price and ISO dates')

    data = quote_display(quote, current_app.config.get('CURRENCY_SYMBOL', '₹'))
    data['success'] = True
    data['complete'] = quote.is_complete
    return jsonify(data)


# Bookings

@api_bp.route('/bookings', methods=['GET'])
def list_bookings():
    _api_context()
    bookings = get_booking_manager().list_bookings()
    return jsonify({
        'success': True,
        'bookings': [b.to_dict(_timezone()) for b in bookings],
    })


@api_bp.route('/bookings', methods=['POST'])
def create_booking():
    """Create a booking; the total is always computed here from the room's price"""
    _api_context()
    manager = get_booking_manager()
    if manager.identity is None:
        raise AuthenticationError(AuthErrorKind.NOT_AUTHENTICATED, 'Must be logged in to book')
    data = _json_body()

    draft, quote = select_stay(
        RoomCatalog(),
        data.get('room_id'),
        data.get('check_in'),
        data.get('check_out'),
        data.get('guests', 1),
        _tax_rate(),
    )
    booking = manager.create_booking(
        room_id=draft.room_id,
        check_in=draft.check_in,
        check_out=draft.check_out,
        guests=draft.guests,
        total_price=quote.total,
        special_requests=data.get('special_requests'),
    )
    return jsonify({
        'success': True,
        'message': 'Booking confirmed!',
        'booking': booking.to_dict(_timezone()),
    }), 201


@api_bp.route('/bookings/<int:booking_id>/cancel', methods=['POST'])
@token_required
def cancel_booking(auth_context, booking_id):
    booking = get_booking_manager().cancel_booking(booking_id)
    return jsonify({
        'success': True,
        'message': 'Booking cancelled',
        'booking': booking.to_dict(_timezone()),
    })


# Privileged functions

def service_key_required(f):
    """Only callers holding the server-side service key get through"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        service_key = current_app.config.get('SERVICE_ROLE_KEY')
        if not service_key:
            logger.error("SERVICE_ROLE_KEY is not configured")
            return jsonify({'success': False, 'error': 'Missing environment variables'}), 500

        token = _bearer_token() or ''
        if not hmac.compare_digest(token.encode(), service_key.encode()):
            logger.warning(f"Rejected privileged call to {f.__name__}")
            return jsonify({'success': False, 'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)

    return decorated_function


@api_bp.route('/functions/promote-user-admin', methods=['POST'])
@service_key_required
def promote_user_admin_function():
    data = _json_body()
    email = data.get('email')
    if not email:
        return jsonify({'success': False, 'error': 'Email is required'}), 400

    try:
        result = promote_user_admin(email)
    except StoreError as e:
        return jsonify({'success': False, 'error': e.message}), 500
    except HotelError as e:
        return jsonify({'success': False, 'error': e.message}), e.status_code

    return jsonify(result.to_dict())
