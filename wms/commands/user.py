"""User management CLI commands."""

import click
from flask.cli import with_appcontext
from sqlalchemy import select

from wms.extensions import db
from wms.models import User, UserRole
from wms.services.accounts import AccountService
from wms.services.errors import LedgerError


@click.group('user')
def user_commands():
    """User management commands."""
    pass


@user_commands.command('create')
@click.option('--email', required=True, help='User email')
@click.option('--password', required=True, help='User password')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.ADMIN.value, show_default=True)
@click.option('--first-name', default='', help='First name')
@click.option('--last-name', default='', help='Last name')
@with_appcontext
def create_user(email, password, role, first_name, last_name):
    """Create an approved, active user (writers get a writer profile)."""
    try:
        user = AccountService.create_user(
            email,
            password,
            UserRole(role),
            first_name=first_name,
            last_name=last_name,
        )
    except LedgerError as e:
        click.echo(click.style(f'Error: {e.message}', fg='red'))
        return

    click.echo(click.style('User created successfully!', fg='green'))
    click.echo(f'  Email: {user.email}')
    click.echo(f'  Role: {role}')
    if user.writer_profile:
        click.echo(f'  Writer id: {user.writer_profile.id}')


@user_commands.command('set-password')
@click.option('--email', required=True, help='User email')
@click.option('--password', required=True, help='New password')
@with_appcontext
def set_password(email, password):
    """Set a user's password and sign out their existing sessions."""
    user = db.session.execute(
        select(User).where(User.email == email.strip().lower())
    ).scalar_one_or_none()
    if not user:
        click.echo(click.style(f'Error: No user {email} found', fg='red'))
        return

    user.set_password(password)
    user.invalidate_sessions()
    db.session.commit()
    click.echo(click.style('Password updated.', fg='green'))


@user_commands.command('reset-code')
@click.option('--email', required=True, help='User email')
@with_appcontext
def reset_code(email):
    """Issue a one-time password reset code to hand to the user."""
    code = AccountService.issue_reset_code(email)
    if code is None:
        click.echo(click.style(f'Error: No active user {email} found', fg='red'))
        return
    click.echo(click.style(f'Reset code for {email}: {code}', fg='green'))


@user_commands.command('approve')
@click.option('--email', required=True, help='User email')
@with_appcontext
def approve(email):
    """Approve a pending registration."""
    user = db.session.execute(
        select(User).where(User.email == email.strip().lower())
    ).scalar_one_or_none()
    if not user:
        click.echo(click.style(f'Error: No user {email} found', fg='red'))
        return
    try:
        AccountService.approve_user(user.id)
    except LedgerError as e:
        click.echo(click.style(f'Error: {e.message}', fg='red'))
        return
    click.echo(click.style(f'{email} approved.', fg='green'))


@user_commands.command('invite')
@click.option('--hours', type=int, default=None, help='Hours until the invite expires')
@with_appcontext
def invite(hours):
    """Generate a writer invite link."""
    try:
        result = AccountService.generate_invite_link(hours)
    except LedgerError as e:
        click.echo(click.style(f'Error: {e.message}', fg='red'))
        return
    click.echo(click.style('Invite created.', fg='green'))
    click.echo(f'  URL: {result["invite_url"]}')
    click.echo(f'  Expires: {result["expires_at"]}')
