# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/spherical/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--email md@spherical.local --password "ChangeMe123"]
#   Create all tables and, when no users exist, the first managing director.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with roles and active status.
# - python -m flask users create --name "Ada" --email ada@spherical.local --password "secret1" --role CASHIER
#   Create a user (prompts if options are omitted).
#
# Permission inspection:
# - python -m flask perms list [--role CASHIER]
#   List actions and the roles allowed to perform them.
# - python -m flask perms check cashier PROCESS_SALES
#   Check whether a role may perform an action.
#
# Maintenance:
# - python -m flask sessions cleanup --retention-days 30
#   Delete expired and revoked sessions older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import Role, ACTION_DEFINITIONS, allowed_roles, has_permission, parse_role, role_names, validate_action_code
from .services import auth_service, session_service
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair."""


@system_group.command('init')
@click.option('--name', default='Managing Director', help='Name of the first managing director')
@click.option('--email', default='md@spherical.local', help='Email of the first managing director')
@click.option('--password', default='ChangeMe123', help='Password of the first managing director')
@with_appcontext
def init_system(name, email, password):
    """
    Create tables and bootstrap the first managing director (idempotent).

    The account is only created when the users table is empty, so at least
    one active managing director exists from the start.
    """
    click.echo("START Initializing Spherical back office...")
    db.create_all()
    click.echo("PASS Tables created")

    if db.session.query(User.id).first():
        click.echo("WARN  Users already exist, skipping managing director bootstrap")
        return

    try:
        user = auth_service.create_user(
            name=name,
            email=email,
            password=password,
            role=Role.MANAGING_DIRECTOR,
        )
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Could not create managing director: {e}")
        return

    click.echo(f"PASS Created managing director: {user.email} (ID: {user.id})")
    click.echo("\nSECURITY Change the default password immediately in production!")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete. Run 'python -m flask system init' to bootstrap.")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users with roles and active status."""
    users = auth_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<32} {'Role':<20} {'Active'}")
    click.echo("="*90)
    for user in users:
        active_str = "yes" if user.is_active else "no"
        click.echo(f"{user.id:<5} {user.name:<25} {user.email:<32} {user.role:<20} {active_str}")
    click.echo("="*90 + "\n")


@users_group.command('create')
@click.option('--name', prompt=True, help='Full name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password (6+ characters)')
@click.option('--role', prompt=True, help='Role (e.g. MANAGING_DIRECTOR, ADMIN, CASHIER)')
@with_appcontext
def create_user_cli(name, email, password, role):
    """Create a new user. Role names are accepted in any casing."""
    try:
        resolved = auth_service.coerce_role(role)
        user = auth_service.create_user(name=name, email=email, password=password, role=resolved)
    except ValidationError as e:
        details = "; ".join(f"{k}: {v}" for k, v in e.details.items()) or str(e)
        click.echo(f"FAIL {details}")
        return
    except ConflictError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@click.group('perms')
def perms_group():
    """Permission inspection."""


@perms_group.command('list')
@click.option('--role', help='Only show actions granted to this role')
@with_appcontext
def list_perms(role):
    """List actions and the roles allowed to perform them."""
    resolved = None
    if role:
        resolved = parse_role(role)
        if resolved is None:
            click.echo(f"FAIL Unknown role '{role}'")
            return

    click.echo("\n" + "="*90)
    click.echo(f"{'Action':<20} {'Category':<12} {'Roles'}")
    click.echo("="*90)
    for code, _name, _description, category in ACTION_DEFINITIONS:
        roles = allowed_roles(code)
        if resolved is not None and resolved not in roles:
            continue
        click.echo(f"{code:<20} {category:<12} {', '.join(role_names(roles))}")
    click.echo("="*90 + "\n")


@perms_group.command('check')
@click.argument('role')
@click.argument('action')
@with_appcontext
def check_perm(role, action):
    """Check whether ROLE may perform ACTION."""
    if not validate_action_code(action):
        click.echo(f"WARN  Unknown action '{action}' (always denied)")

    resolved = parse_role(role)
    if resolved is None:
        click.echo(f"WARN  Unknown role '{role}' (always denied)")

    if has_permission(resolved, action):
        click.echo(f"PASS {resolved.value} may perform {action}")
    else:
        click.echo(f"FAIL {role} may NOT perform {action}")


@click.group('sessions')
def sessions_group():
    """Session maintenance."""


@sessions_group.command('cleanup')
@click.option('--retention-days', type=int, default=30, show_default=True, help='Keep sessions newer than this')
@with_appcontext
def cleanup_sessions(retention_days):
    """Delete expired and revoked sessions older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(sessions_group)
