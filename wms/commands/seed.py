"""Data seeding CLI commands."""

import random
from datetime import timedelta

import click
from flask.cli import with_appcontext
from sqlalchemy import select

from wms.extensions import db
from wms.models import SubmissionStatus, User, UserRole, utcnow
from wms.services.accounts import AccountService
from wms.services.orders import OrderService
from wms.services.shifts import ShiftService
from wms.services.submissions import SubmissionService

DEFAULT_ADMIN_EMAIL = 'admin@example.com'
SUBJECTS = ['History', 'Nursing', 'Economics', 'Literature', 'Biology', 'Marketing', 'Psychology']


@click.group('seed')
def seed_commands():
    """Data seeding commands."""
    pass


@seed_commands.command('admin')
@click.option('--email', default=DEFAULT_ADMIN_EMAIL, show_default=True, help='Admin email')
@click.option('--password', required=True, help='Admin password')
@with_appcontext
def seed_admin(email, password):
    """Create the first admin account if it does not exist."""
    existing = db.session.execute(select(User).where(User.email == email.lower())).scalar_one_or_none()
    if existing:
        click.echo(click.style('Admin user already exists', fg='yellow'))
        return

    AccountService.create_user(email, password, UserRole.ADMIN, first_name='Admin', last_name='User')
    click.echo(click.style(f'Admin user created: {email}', fg='green'))
    click.echo('Please change the admin password after first login')


@seed_commands.command('demo')
@click.option('--writers', default=3, show_default=True, help='Number of writers to create')
@click.option('--orders-per-writer', default=3, show_default=True, help='Orders assigned to each writer')
@click.option('--password', default='demo-password', show_default=True, help='Password for demo accounts')
@with_appcontext
def seed_demo(writers, orders_per_writer, password):
    """Seed demo writers with orders, submissions and reviews.

    Example:
        flask seed demo --writers 5
    """
    admin = db.session.execute(
        select(User).where(User.role == UserRole.ADMIN).order_by(User.created_at)
    ).scalars().first()
    if admin is None:
        admin = AccountService.create_user(
            DEFAULT_ADMIN_EMAIL, password, UserRole.ADMIN, first_name='Admin', last_name='User'
        )
        click.echo(f'Created admin {admin.email}')

    ShiftService.get_current_shift()
    rng = random.Random(42)

    for i in range(1, writers + 1):
        email = f'writer{i}@example.com'
        user = db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if user is None:
            user = AccountService.create_user(
                email, password, UserRole.WRITER, first_name='Writer', last_name=str(i)
            )
            click.echo(f'Created writer {email}')
        writer = user.writer_profile

        for _ in range(orders_per_writer):
            pages = rng.choice([2, 3, 5, 8, 10])
            order = OrderService.create(
                subject=rng.choice(SUBJECTS),
                deadline=utcnow() + timedelta(days=rng.randint(1, 7)),
                pages=pages,
                cpp=rng.choice([250, 300, 350]),
                writer_id=writer.id,
            )
            if rng.random() < 0.7:
                submission = SubmissionService.create(order.id, pages, order.cpp, writer.id)
                if rng.random() < 0.6:
                    SubmissionService.review_submission(
                        submission.id,
                        SubmissionStatus.APPROVED,
                        review_notes='Demo approval',
                        reviewed_by=admin.id,
                    )

    click.echo(click.style('Demo data seeded.', fg='green'))
