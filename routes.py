"""
Public site and admin dashboard.

Pages respond with JSON or a redirect; the session is the Flask-Login cookie.
"""
import logging
from decimal import Decimal
from functools import wraps
from urllib.parse import urlparse

from flask import Blueprint, current_app, jsonify, redirect, request, url_for

from auth_service import get_auth_context, get_identity_service
from authz import AdminGate, GateState, RoleTablePolicy, admin_sign_in
from booking_flow import (
    STEP_CONFIRM, STEP_LABELS, STEP_REQUESTS, STEP_SELECT,
    add_special_requests, clear_draft, confirm_draft, load_draft,
    quote_draft, save_draft, select_stay,
)
from booking_service import booking_summary, get_booking_manager
from catalog import RoomCatalog, featured_rooms
from exceptions import NotFoundError
from models import ADMIN_ROLE
from pricing import quote_display

logger = logging.getLogger(__name__)

site_bp = Blueprint('site', __name__)


def _form_data():
    """Form fields, or the JSON body when the page is driven by fetch()"""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form


def _tax_rate():
    return Decimal(str(current_app.config.get('TAX_RATE', '0.12')))


def _currency():
    return current_app.config.get('CURRENCY_SYMBOL', '₹')


def _timezone():
    return current_app.config.get('HOTEL_TIMEZONE', 'Asia/Kolkata')


def safe_redirect_target(target, default='/'):
    """Only same-site relative paths are followed after login"""
    if not target:
        return default
    parsed = urlparse(target)
    if parsed.scheme or parsed.netloc or not target.startswith('/') or target.startswith('//'):
        return default
    return target


def _current_context():
    auth_context = get_auth_context()
    if auth_context.loading:
        auth_context.load_session()
    return auth_context


def login_required(f):
    """Send visitors without a session to the login page, remembering where they were going"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _current_context().is_authenticated:
            target = request.full_path.rstrip('?')
            return redirect(url_for('site.login', redirect=target))
        return f(*args, **kwargs)
    return decorated_function


def _draft_payload(draft, catalog):
    quote = quote_draft(catalog, draft, _tax_rate())
    room = catalog.get_room(draft.room_id)
    return {
        'step': draft.step,
        'step_label': STEP_LABELS[draft.step],
        'draft': draft.to_dict(),
        'room': room.to_dict(),
        'quote': quote_display(quote, _currency()),
    }


@site_bp.route('/')
def index():
    auth_context = _current_context()
    return jsonify({
        'hotel': current_app.config.get('HOTEL_NAME', 'Haven Hotel'),
        'featured_rooms': featured_rooms(),
        'user': auth_context.user.to_dict() if auth_context.user else None,
    })


@site_bp.route('/health')
def health():
    return jsonify({'status': 'healthy'})


@site_bp.route('/rooms')
def rooms():
    room_type = request.args.get('type')
    catalog = RoomCatalog()
    return jsonify({
        'type': room_type or 'all',
        'rooms': catalog.list_rooms(room_type=room_type),
    })


@site_bp.route('/signup', methods=['GET', 'POST'])
def signup():
    auth_context = _current_context()
    if auth_context.is_authenticated:
        return redirect(url_for('site.index'))

    if request.method == 'GET':
        return jsonify({'page': 'signup', 'fields': ['first_name', 'last_name', 'email', 'password']})

    data = _form_data()
    result = auth_context.sign_up(
        data.get('email'),
        data.get('password'),
        data.get('first_name'),
        data.get('last_name'),
    )

    if result.confirmation_required:
        return jsonify({
            'success': True,
            'message': 'Account created! Please check your email to confirm your account.',
            'user': result.identity.to_dict(),
        }), 201

    # No confirmation step: sign straight in
    auth_context.sign_in(data.get('email'), data.get('password'))
    return redirect(safe_redirect_target(request.args.get('redirect'), url_for('site.index')))


@site_bp.route('/login', methods=['GET', 'POST'])
def login():
    auth_context = _current_context()
    target = safe_redirect_target(request.args.get('redirect'), url_for('site.index'))

    if auth_context.is_authenticated:
        return redirect(target)

    if request.method == 'GET':
        return jsonify({'page': 'login', 'redirect': target})

    data = _form_data()
    remember = str(data.get('remember', '')).lower() in ('1', 'true', 'on', 'yes')
    auth_context.sign_in(data.get('email'), data.get('password'), remember=remember)
    return redirect(target)


@site_bp.route('/logout')
def logout():
    _current_context().sign_out()
    clear_draft()
    return redirect(url_for('site.index'))


@site_bp.route('/auth/confirm')
def confirm_email():
    identity = get_identity_service().confirm_email(request.args.get('token', ''))
    return jsonify({
        'success': True,
        'message': 'Your email has been confirmed. You can now sign in.',
        'user': identity.to_dict(),
    })


@site_bp.route('/booking', methods=['GET', 'POST'])
@login_required
def booking():
    catalog = RoomCatalog()

    if request.method == 'POST':
        data = _form_data()
        draft, _ = select_stay(
            catalog,
            data.get('room_id'),
            data.get('check_in'),
            data.get('check_out'),
            data.get('guests', 1),
            _tax_rate(),
        )
        save_draft(draft)
        return redirect(url_for('site.booking_details'))

    # Preselect ?room=<id> when that room can be booked
    selected_room = None
    room_id = request.args.get('room')
    if room_id:
        try:
            room = catalog.get_room(room_id)
        except NotFoundError:
            room = None
        if room is not None and room.available:
            selected_room = room.id

    return jsonify({
        'step': STEP_SELECT,
        'step_label': STEP_LABELS[STEP_SELECT],
        'steps': STEP_LABELS,
        'rooms': catalog.available_rooms(),
        'selected_room': selected_room,
    })


@site_bp.route('/booking/details', methods=['GET', 'POST'])
@login_required
def booking_details():
    draft = load_draft()
    if draft is None:
        return redirect(url_for('site.booking'))

    catalog = RoomCatalog()
    if request.method == 'POST':
        draft = add_special_requests(draft, _form_data().get('special_requests'))
        save_draft(draft)
        return redirect(url_for('site.checkout'))

    payload = _draft_payload(draft, catalog)
    payload['step'] = STEP_REQUESTS
    payload['step_label'] = STEP_LABELS[STEP_REQUESTS]
    return jsonify(payload)


@site_bp.route('/checkout', methods=['GET', 'POST'])
@login_required
def checkout():
    draft = load_draft()
    if draft is None:
        return redirect(url_for('site.booking'))
    if draft.step < STEP_CONFIRM:
        return redirect(url_for('site.booking_details'))

    catalog = RoomCatalog()
    if request.method == 'POST':
        booking = confirm_draft(get_booking_manager(), catalog, draft, _tax_rate())
        clear_draft()
        return jsonify({
            'success': True,
            'message': 'Booking confirmed!',
            'booking': booking.to_dict(_timezone()),
        }), 201

    return jsonify(_draft_payload(draft, catalog))


@site_bp.route('/bookings')
@login_required
def bookings():
    manager = get_booking_manager()
    return jsonify({
        'bookings': [b.to_dict(_timezone()) for b in manager.list_bookings()],
    })


@site_bp.route('/bookings/<int:booking_id>/cancel', methods=['POST'])
@login_required
def cancel_booking(booking_id):
    booking = get_booking_manager().cancel_booking(booking_id)
    return jsonify({
        'success': True,
        'message': 'Booking cancelled',
        'booking': booking.to_dict(_timezone()),
    })


@site_bp.route('/admin/login', methods=['GET', 'POST'])
def admin_login():
    auth_context = _current_context()
    policy = RoleTablePolicy()

    if request.method == 'GET':
        if auth_context.is_authenticated and policy.has_role(auth_context.user, ADMIN_ROLE):
            return redirect(url_for('site.admin_dashboard'))
        return jsonify({'page': 'admin_login'})

    data = _form_data()
    admin_sign_in(auth_context, data.get('email'), data.get('password'), policy)
    return redirect(url_for('site.admin_dashboard'))


@site_bp.route('/admin')
def admin_dashboard():
    gate = AdminGate(_current_context())
    if gate.check() != GateState.GRANTED:
        return redirect(url_for('site.admin_login'))

    logger.info(f"Admin dashboard opened by user {gate.profile.id}")
    summary = booking_summary()
    return jsonify({
        'admin': gate.profile.to_dict(),
        'display_name': gate.profile.display_name,
        'counts': summary['counts'],
        'total_revenue': summary['total_revenue'],
        'recent_bookings': [b.to_dict(_timezone()) for b in summary['recent_bookings']],
    })


@site_bp.route('/admin/logout')
def admin_logout():
    _current_context().sign_out()
    return redirect(url_for('site.admin_login'))

