"""Destroy command - tear down every recorded resource."""

import sys
import click
from ...presentation import format_plan, format_report, to_json
from ...utils.errors import ConfigurationLoadError
from ...utils.logging import get_logger
from ..utils import EXIT_PARTIAL, build_reconciler, build_settings, config_options, handle_errors, load, run_options

logger = get_logger("cli.destroy")


@click.command()
@config_options
@run_options
@click.option('--auto-approve', is_flag=True, help='Skip the interactive confirmation')
@handle_errors
def destroy(config_path, var_file, state_path, parallelism, refresh, no_replace, lock_timeout, as_json, auto_approve):
    """
    Destroy every resource recorded in state, dependents first.

    The configuration is optional here; when it loads, its prevent_destroy
    flags are honoured and its declaration order breaks ordering ties.
    """
    settings = build_settings(state_path, parallelism, refresh, no_replace, lock_timeout)
    reconciler = build_reconciler(settings)
    try:
        configuration = load(reconciler, config_path, var_file)
    except (FileNotFoundError, ConfigurationLoadError) as e:
        if config_path:
            raise
        logger.info(f"Destroying without configuration: {e}")
        configuration = None

    with reconciler.store.locked():
        plan = reconciler.plan_destroy(configuration)
        if not as_json:
            click.echo(format_plan(plan))
        if not plan.has_changes:
            if as_json:
                click.echo(to_json(plan))
            return
        if not auto_approve:
            click.confirm("\nDestroy all of these resources?", abort=True, err=True)
        report = reconciler.execute(plan, configuration)

    if as_json:
        click.echo(to_json(report))
    else:
        click.echo("")
        click.echo(format_report(report))

    if not report.success:
        sys.exit(EXIT_PARTIAL)
