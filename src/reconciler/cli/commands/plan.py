"""Plan command - show what apply would change."""

import click
from ...presentation import format_plan, to_json
from ...utils.logging import get_logger
from ..utils import build_reconciler, build_settings, config_options, handle_errors, load, run_options

logger = get_logger("cli.plan")


@click.command()
@config_options
@run_options
@click.option('--destroy', is_flag=True, help='Plan the destruction of every recorded resource')
@handle_errors
def plan(config_path, var_file, state_path, parallelism, refresh, no_replace, lock_timeout, as_json, destroy):
    """
    Compute and show the actions needed to match the configuration.

    Nothing is changed remotely, though refreshed outputs are written back
    to state unless --no-refresh is given.
    """
    settings = build_settings(state_path, parallelism, refresh, no_replace, lock_timeout)
    reconciler = build_reconciler(settings)
    configuration = load(reconciler, config_path, var_file)

    if destroy:
        result = reconciler.plan_destroy(configuration)
    else:
        result = reconciler.plan(configuration)

    if as_json:
        click.echo(to_json(result))
    else:
        click.echo(format_plan(result))
