"""State commands - inspect recorded resources."""

import click
from ...presentation import format_state_list, format_state_show, to_json
from ...utils.errors import StateError
from ...utils.logging import get_logger
from ..utils import build_reconciler, build_settings, handle_errors

logger = get_logger("cli.state")


@click.group()
def state():
    """Inspect the state file."""
    pass


@state.command(name="list")
@click.option('--state', 'state_path', type=click.Path(), default=None, help='State file path')
@handle_errors
def list_resources(state_path):
    """List recorded resource addresses."""
    store = build_reconciler(build_settings(state_path)).store
    records = store.load()
    if records:
        click.echo(format_state_list(records))


@state.command()
@click.argument('address')
@click.option('--state', 'state_path', type=click.Path(), default=None, help='State file path')
@click.option('--json', 'as_json', is_flag=True, help='Output the record as JSON')
@handle_errors
def show(address, state_path, as_json):
    """Show the recorded attributes of one resource."""
    store = build_reconciler(build_settings(state_path)).store
    store.load()
    record = store.get(address)
    if record is None:
        raise StateError(f"No resource '{address}' in state {store.path}")
    click.echo(to_json(record) if as_json else format_state_show(record))
