"""Main CLI entry point for reconciler."""

import click
from .commands.apply import apply
from .commands.destroy import destroy
from .commands.graph import graph
from .commands.plan import plan
from .commands.state import state
from .commands.validate import validate
from .commands.version import version as version_command
from .. import __version__
from ..utils.logging import get_logger

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="reconciler", message="%(prog)s version %(version)s")
@click.option('--verbose', '-v', is_flag=True, help='Log debug output to stderr')
@click.pass_context
def cli(ctx, verbose):
    """Reconciler - declarative infrastructure plan and apply."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(validate)
cli.add_command(graph)
cli.add_command(state)
cli.add_command(version_command)
