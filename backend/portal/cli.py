import click
from flask import current_app
from flask.cli import with_appcontext
from portal import db
from portal.models import ProjectScope
from portal.services.timer.clock_sync import ClockOffsetAdapter, CountdownTicker, read_payload
from portal.services.timer.working_hours import utcnow


@click.command('timer-watch')
@click.argument('scope_id', type=int)
@click.option('--ticks', type=int, default=None, help='Stop after this many ticks.')
@click.option('--poll-every', type=int, default=None, help='Refetch the scope every N ticks.')
@with_appcontext
def timer_watch_command(scope_id, ticks, poll_every):
    """Print a live HH:MM:SS countdown for a scope's batch timer."""
    if db.session.get(ProjectScope, scope_id) is None:
        raise click.ClickException(f'Scope {scope_id} not found')

    tz = current_app.config.get('INSTITUTION_TIMEZONE')

    def fetch():
        # Drop cached rows so admin changes made elsewhere show up
        db.session.expire_all()
        scope = db.session.get(ProjectScope, scope_id)
        # Same payload the browser receives
        return read_payload(scope.to_dict(now=utcnow(), tz=tz))

    ticker = CountdownTicker(
        fetch,
        adapter=ClockOffsetAdapter(tz=tz),
        poll_every=poll_every or current_app.config.get('TIMER_WATCH_POLL_SEC', 60),
    )

    def show(reading):
        click.echo(f"{reading.display}  [{reading.status}]")

    try:
        ticker.run(show, max_ticks=ticks)
    except KeyboardInterrupt:
        ticker.stop()
