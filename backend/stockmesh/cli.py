# Overview: Flask CLI command groups for bootstrap and user inspection.

# Commands (run from the backend directory, FLASK_APP=wsgi.py):
# - python -m flask system init
#   Create tables and the default admin user (idempotent).
# - python -m flask users list
#   List all users with their roles.
# - python -m flask users create --username u --email u@x.io --password "Password123!" --role sales
#   Create a user (prompts if options are omitted).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import ROLES, ROLE_ADMIN
from .services.auth_service import PasswordValidationError, create_user
from .validation import ValidationError

DEFAULT_ADMIN = ("admin", "admin@stockmesh.local")
DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create all tables and a default admin user.

    SECURITY: Change the admin password immediately in production!
    """
    db.create_all()
    click.echo("PASS Tables created")

    username, email = DEFAULT_ADMIN
    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"WARN  User '{username}' already exists, skipping...")
        return

    create_user(username=username, email=email, password=DEFAULT_PASSWORD, role=ROLE_ADMIN)
    click.echo(f"PASS Created user: {username} ({email}) with role '{ROLE_ADMIN}'")
    click.echo(f"\nDefault credentials (CHANGE IN PRODUCTION!): {email} / {DEFAULT_PASSWORD}")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@with_appcontext
def list_users_cli():
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role'}")
    click.echo("=" * 70)
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role}")
    click.echo("=" * 70 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(sorted(ROLES)), default='sales', show_default=True)
@with_appcontext
def create_user_cli(username, email, password, role):
    try:
        user = create_user(username=username, email=email, password=password, role=role)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except ValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
