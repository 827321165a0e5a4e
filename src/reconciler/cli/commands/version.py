"""Version command - show reconciler version."""

import click
from ... import __version__


@click.command()
def version():
    """Show reconciler version."""
    click.echo(f"reconciler version {__version__}")
