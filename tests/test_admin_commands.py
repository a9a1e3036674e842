from extensions import db
from models import ADMIN_ROLE, Room, User, UserRole


def is_admin(app, email):
    with app.app_context():
        user = User.query.filter_by(email=email).first()
        return user is not None and UserRole.query.filter_by(user_id=user.id, role=ADMIN_ROLE).count() == 1


def test_init_db_is_idempotent(app, runner):
    result = runner.invoke(args=['init-db'])

    assert result.exit_code == 0
    assert 'Database initialized (0 rooms added)' in result.output
    with app.app_context():
        assert Room.query.count() == 6


def test_init_db_seeds_empty_table(app, runner):
    with app.app_context():
        Room.query.delete()
        db.session.commit()

    result = runner.invoke(args=['init-db'])

    assert 'Database initialized (6 rooms added)' in result.output


def test_promote_admin(app, runner, guest):
    result = runner.invoke(args=['promote-admin', 'guest@example.com'])

    assert result.exit_code == 0, result.output
    assert 'PROMOTION DETAILS' in result.output
    assert f'User ID: {guest.id}' in result.output
    assert is_admin(app, 'guest@example.com')


def test_promote_admin_unknown_user(app, runner):
    result = runner.invoke(args=['promote-admin', 'ghost@example.com'])

    assert result.exit_code == 1
    assert 'User with email ghost@example.com not found' in result.output


def test_commands_need_service_key(app, runner, guest):
    app.config['SERVICE_ROLE_KEY'] = None

    result = runner.invoke(args=['promote-admin', 'guest@example.com'])

    assert result.exit_code == 1
    assert 'Missing environment variable SERVICE_ROLE_KEY' in result.output
    assert not is_admin(app, 'guest@example.com')


def test_setup_admin(app, runner):
    result = runner.invoke(args=[
        'setup-admin', '--email', 'admin@haven.com', '--password', 'admin123',
        '--first-name', 'Hannah', '--last-name', 'Reyes',
    ])

    assert result.exit_code == 0, result.output
    assert 'Admin setup complete!' in result.output
    assert is_admin(app, 'admin@haven.com')


def test_setup_admin_prompts_for_password(app, runner):
    result = runner.invoke(args=['setup-admin', '--email', 'admin@haven.com'], input='admin123\nadmin123\n')

    assert result.exit_code == 0, result.output
    with app.app_context():
        assert User.query.filter_by(email='admin@haven.com').one().check_password('admin123')


def test_reset_password(app, runner, guest):
    result = runner.invoke(args=['reset-password', 'guest@example.com', '--password', 'brand-new-pass'])

    assert result.exit_code == 0, result.output
    assert 'Password reset for guest@example.com' in result.output
    with app.app_context():
        assert db.session.get(User, guest.id).check_password('brand-new-pass')
