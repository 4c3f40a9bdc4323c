"""Shift clock CLI commands."""

import click
from flask import current_app
from flask.cli import with_appcontext

from wms.models import utcnow
from wms.services.errors import LedgerError
from wms.services.shifts import ShiftService, next_shift_start


@click.group('shift')
def shift_commands():
    """Shift clock commands."""
    pass


@shift_commands.command('rollover')
@with_appcontext
def rollover():
    """Close the active shift and open a new one (for system cron)."""
    shift = ShiftService.handle_shift_rollover()
    if shift is None:
        click.echo(click.style('Shift rollover failed; see the application log.', fg='red'))
        raise SystemExit(1)
    click.echo(click.style('New shift opened.', fg='green'))
    click.echo(f'  {shift.start_time.isoformat()} - {shift.end_time.isoformat()}')
    click.echo(f'  Max pages: {shift.max_pages_per_shift}')


@shift_commands.command('current')
@with_appcontext
def current():
    """Show the current shift, opening one if needed."""
    shift = ShiftService.get_current_shift()
    click.echo(f'Shift {shift.id}')
    click.echo(f'  {shift.start_time.isoformat()} - {shift.end_time.isoformat()}')
    click.echo(f'  Max pages: {shift.max_pages_per_shift}')


@shift_commands.command('history')
@click.option('--limit', default=10, show_default=True, help='Number of shifts to list')
@with_appcontext
def history(limit):
    """List recent shifts."""
    for shift in ShiftService.get_shift_history(limit):
        marker = '*' if shift.is_active else ' '
        click.echo(
            f'{marker} {shift.shift_date}  {shift.start_time.isoformat()} - '
            f'{shift.end_time.isoformat()}  max {shift.max_pages_per_shift}'
        )


@shift_commands.command('set-max-pages')
@click.argument('max_pages', type=int)
@with_appcontext
def set_max_pages(max_pages):
    """Change the page quota of the current shift."""
    try:
        shift = ShiftService.update_max_pages(max_pages)
    except LedgerError as e:
        click.echo(click.style(f'Error: {e.message}', fg='red'))
        return
    click.echo(click.style(f'Max pages set to {shift.max_pages_per_shift}.', fg='green'))


@shift_commands.command('schedule')
@with_appcontext
def schedule():
    """Queue the next rollover job on the RQ scheduler."""
    from wms.services.queue import queue_service

    run_at = next_shift_start(utcnow(), current_app.config['SHIFT_BOUNDARY_HOUR'])
    job = queue_service.schedule_next_rollover(run_at)
    click.echo(click.style(f'Rollover job {job.id} scheduled for {run_at.isoformat()} UTC', fg='green'))


@shift_commands.command('queue-stats')
@with_appcontext
def queue_stats():
    """Show background queue counters."""
    from wms.services.queue import queue_service

    for name, stats in queue_service.get_queue_stats().items():
        click.echo(
            f"{name}: {stats['length']} queued, {stats['scheduled_count']} scheduled, "
            f"{stats['failed_count']} failed"
        )
