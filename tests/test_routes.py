from decimal import Decimal
from urllib.parse import parse_qs, urlparse

from auth_service import PURPOSE_CONFIRM, get_identity_service
from extensions import db
from models import User
from tests.conftest import PASSWORD, login, make_user


def location(response):
    return urlparse(response.headers['Location'])


def start_booking(client, room_id, check_in='2025-03-01', check_out='2025-03-04', guests=2):
    return client.post('/booking', data={
        'room_id': room_id,
        'check_in': check_in,
        'check_out': check_out,
        'guests': guests,
    })


def book_room(client, room_id, special_requests=''):
    start_booking(client, room_id)
    client.post('/booking/details', data={'special_requests': special_requests})
    return client.post('/checkout')


class TestPublicPages:
    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json() == {'status': 'healthy'}

    def test_home_shows_featured_rooms(self, client):
        data = client.get('/').get_json()
        assert len(data['featured_rooms']) == 3
        assert data['user'] is None

    def test_rooms_filtered_by_type(self, client):
        data = client.get('/rooms?type=executive').get_json()
        assert [room['name'] for room in data['rooms']] == ['Executive Suite', 'Executive Corner Suite']

    def test_unknown_room_type(self, client):
        response = client.get('/rooms?type=penthouse')
        assert response.status_code == 400
        assert response.get_json()['error'] == 'validation'


class TestLogin:
    def test_booking_redirects_to_login_with_return_path(self, client):
        response = client.get('/booking?room=1')

        assert response.status_code == 302
        target = location(response)
        assert target.path == '/login'
        assert parse_qs(target.query)['redirect'] == ['/booking?room=1']

    def test_login_returns_to_booking(self, client, guest):
        response = client.post('/login?redirect=/booking%3Froom%3D1',
                               data={'email': 'guest@example.com', 'password': PASSWORD})

        assert response.status_code == 302
        assert location(response).path == '/booking'
        assert location(response).query == 'room=1'

    def test_offsite_redirect_is_ignored(self, client, guest):
        response = client.post('/login?redirect=https://evil.example/',
                               data={'email': 'guest@example.com', 'password': PASSWORD})
        assert location(response).netloc in ('', 'localhost')
        assert location(response).path == '/'

    def test_wrong_password(self, client, guest):
        response = login(client, 'guest@example.com', 'wrong-password')

        assert response.status_code == 401
        assert response.get_json()['kind'] == 'invalid_credentials'

    def test_logout(self, client, guest):
        login(client, 'guest@example.com')
        assert client.get('/').get_json()['user']['email'] == 'guest@example.com'

        client.get('/logout')

        assert client.get('/').get_json()['user'] is None
        assert client.get('/bookings').status_code == 302

    def test_signup_signs_in(self, client):
        response = client.post('/signup', data={
            'email': 'new@example.com',
            'password': 'abcdef',
            'first_name': 'Priya',
            'last_name': 'Nair',
        })

        assert response.status_code == 302
        assert client.get('/').get_json()['user']['email'] == 'new@example.com'

    def test_signup_duplicate(self, client, guest):
        response = client.post('/signup', data={
            'email': 'guest@example.com',
            'password': 'abcdef',
            'first_name': 'A',
            'last_name': 'B',
        })
        assert response.status_code == 401
        assert response.get_json()['message'] == 'An account with this email already exists'

    def test_confirm_email(self, app, client):
        user = make_user(app, 'pending@example.com', confirmed=False)
        with app.app_context():
            token, _ = get_identity_service().issue_token(db.session.get(User, user.id), PURPOSE_CONFIRM)

        response = client.get(f'/auth/confirm?token={token}')

        assert response.status_code == 200
        with app.app_context():
            assert db.session.get(User, user.id).email_confirmed

    def test_confirm_email_bad_token(self, client):
        response = client.get('/auth/confirm?token=garbage')
        assert response.status_code == 401
        assert response.get_json()['kind'] == 'invalid_token'


class TestBookingFlow:
    def test_preselected_room(self, client, guest, deluxe_king, corner_suite):
        login(client, 'guest@example.com')

        assert client.get(f'/booking?room={deluxe_king.id}').get_json()['selected_room'] == deluxe_king.id
        assert client.get(f'/booking?room={corner_suite.id}').get_json()['selected_room'] is None

    def test_three_steps(self, client, guest, deluxe_king):
        login(client, 'guest@example.com')

        response = start_booking(client, deluxe_king.id)
        assert location(response).path == '/booking/details'

        details = client.get('/booking/details').get_json()
        assert details['step_label'] == 'Special Requests'
        assert details['quote']['nights'] == 3

        response = client.post('/booking/details', data={'special_requests': 'Late arrival'})
        assert location(response).path == '/checkout'

        summary = client.get('/checkout').get_json()
        assert summary['step_label'] == 'Confirmation'
        assert Decimal(summary['quote']['total']) == Decimal('83385.12')
        assert summary['quote']['display']['total'] == '₹83,385.12'

        response = client.post('/checkout')
        assert response.status_code == 201
        booking = response.get_json()['booking']
        assert booking['status'] == 'pending'
        assert booking['total_price'] == 83385.12
        assert booking['special_requests'] == 'Late arrival'

        # Draft is cleared after confirming
        assert location(client.get('/checkout')).path == '/booking'

        bookings = client.get('/bookings').get_json()['bookings']
        assert [b['id'] for b in bookings] == [booking['id']]

    def test_unavailable_room_blocks_step_one(self, client, guest, corner_suite):
        login(client, 'guest@example.com')
        response = start_booking(client, corner_suite.id)
        assert response.status_code == 400
        assert response.get_json()['message'] == 'This room is not available for booking'

    def test_too_many_guests(self, client, guest, deluxe_king):
        login(client, 'guest@example.com')
        response = start_booking(client, deluxe_king.id, guests=3)
        assert response.status_code == 400
        assert 'up to 2 guests' in response.get_json()['message']

    def test_zero_nights(self, client, guest, deluxe_king):
        login(client, 'guest@example.com')
        response = start_booking(client, deluxe_king.id, check_in='2025-03-04', check_out='2025-03-04')
        assert response.status_code == 400

    def test_non_string_dates_rejected(self, client, guest, deluxe_king):
        login(client, 'guest@example.com')
        response = client.post('/booking', json={
            'room_id': deluxe_king.id,
            'check_in': 20250301,
            'check_out': 20250304,
        })
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid date format'

    def test_fractional_guests_rejected(self, client, guest, deluxe_king):
        login(client, 'guest@example.com')
        response = client.post('/booking', json={
            'room_id': deluxe_king.id,
            'check_in': '2025-03-01',
            'check_out': '2025-03-04',
            'guests': 1.5,
        })
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Number of guests must be a whole number'

    def test_checkout_needs_earlier_steps(self, client, guest, deluxe_king):
        login(client, 'guest@example.com')
        assert location(client.get('/checkout')).path == '/booking'

        start_booking(client, deluxe_king.id)
        assert location(client.get('/checkout')).path == '/booking/details'

    def test_cancel_own_booking(self, client, guest, deluxe_king):
        login(client, 'guest@example.com')
        booking_id = book_room(client, deluxe_king.id).get_json()['booking']['id']

        response = client.post(f'/bookings/{booking_id}/cancel')

        assert response.status_code == 200
        assert response.get_json()['booking']['status'] == 'cancelled'

    def test_cannot_cancel_someone_elses_booking(self, client, guest, other_guest, deluxe_king):
        login(client, 'other@example.com')
        booking_id = book_room(client, deluxe_king.id).get_json()['booking']['id']
        client.get('/logout')

        login(client, 'guest@example.com')
        response = client.post(f'/bookings/{booking_id}/cancel')

        assert response.status_code == 404


class TestAdminDashboard:
    def test_no_session_goes_to_admin_login(self, client):
        response = client.get('/admin')
        assert location(response).path == '/admin/login'

    def test_admin_login_and_dashboard(self, client, admin_user, guest, deluxe_king):
        login(client, 'guest@example.com')
        book_room(client, deluxe_king.id)
        client.get('/logout')

        response = client.post('/admin/login', data={'email': 'admin@haven.com', 'password': PASSWORD})
        assert location(response).path == '/admin'

        data = client.get('/admin').get_json()
        assert data['display_name'] == 'Hannah Reyes'
        assert data['counts']['pending'] == 1
        assert len(data['recent_bookings']) == 1

    def test_admin_login_page_skips_ahead_when_granted(self, client, admin_user):
        login(client, 'admin@haven.com')
        assert location(client.get('/admin/login')).path == '/admin'

    def test_non_admin_refused_at_admin_login(self, client, guest):
        response = client.post('/admin/login', data={'email': 'guest@example.com', 'password': PASSWORD})

        assert response.status_code == 403
        assert response.get_json()['message'] == 'You do not have admin access'
        assert client.get('/').get_json()['user'] is None

    def test_non_admin_session_is_signed_out(self, client, guest):
        login(client, 'guest@example.com')

        response = client.get('/admin')

        assert location(response).path == '/admin/login'
        assert client.get('/').get_json()['user'] is None

    def test_admin_logout(self, client, admin_user):
        login(client, 'admin@haven.com')
        response = client.get('/admin/logout')
        assert location(response).path == '/admin/login'
        assert location(client.get('/admin')).path == '/admin/login'
