"""
Admin maintenance commands, run with ``flask --app app <command>``.

  flask --app app init-db
  flask --app app setup-admin --email admin@haven.com
  flask --app app promote-admin someone@example.com
  flask --app app reset-password someone@example.com
"""
from functools import wraps

import click
from flask import current_app
from flask.cli import with_appcontext

from admin_service import promote_user_admin, reset_password, setup_admin
from exceptions import HotelError
from init_data import create_initial_data

RULE = '━' * 50


def service_key_required(f):
    """Refuse to run unless the server-held service key is configured"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_app.config.get('SERVICE_ROLE_KEY'):
            raise click.ClickException('Missing environment variable SERVICE_ROLE_KEY')
        try:
            return f(*args, **kwargs)
        except HotelError as e:
            raise click.ClickException(e.message)
    return decorated_function


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create tables and seed the room catalog."""
    created = create_initial_data()
    click.echo(f'Database initialized ({created} rooms added)')


@click.command('promote-admin')
@click.argument('email')
@with_appcontext
@service_key_required
def promote_admin_command(email):
    """Give an existing user the admin role."""
    click.echo(f'Promoting {email} to admin...')
    result = promote_user_admin(email)

    click.echo(RULE)
    click.echo('PROMOTION DETAILS')
    click.echo(RULE)
    click.echo(f'Email:   {result.email}')
    click.echo(f'User ID: {result.user_id}')
    click.echo(f'Role:    {result.role}')
    click.echo(RULE)
    click.echo('The user needs to sign out and back in for the change to take effect.')


@click.command('setup-admin')
@click.option('--email', required=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--first-name', default='Admin', show_default=True)
@click.option('--last-name', default='User', show_default=True)
@with_appcontext
@service_key_required
def setup_admin_command(email, password, first_name, last_name):
    """Create an admin user with profile and admin role."""
    result = setup_admin(email, password, first_name, last_name)

    click.echo('Admin setup complete!')
    click.echo(RULE)
    click.echo(f'Email:   {result.email}')
    click.echo(f'User ID: {result.user_id}')
    click.echo(RULE)


@click.command('reset-password')
@click.argument('email')
@click.option('--password', prompt='New password', hide_input=True, confirmation_prompt=True)
@with_appcontext
@service_key_required
def reset_password_command(email, password):
    """Set a new password for a user."""
    user = reset_password(email, password)
    click.echo(f'Password reset for {user.email}')


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(promote_admin_command)
    app.cli.add_command(setup_admin_command)
    app.cli.add_command(reset_password_command)
