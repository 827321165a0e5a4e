"""Apply command - plan, confirm and execute."""

import sys
import click
from ...presentation import format_plan, format_report, to_json
from ...utils.logging import get_logger
from ..utils import EXIT_PARTIAL, build_reconciler, build_settings, config_options, handle_errors, load, run_options

logger = get_logger("cli.apply")


@click.command()
@config_options
@run_options
@click.option('--auto-approve', is_flag=True, help='Skip the interactive confirmation')
@handle_errors
def apply(config_path, var_file, state_path, parallelism, refresh, no_replace, lock_timeout, as_json, auto_approve):
    """
    Create, update, replace or destroy resources to match the configuration.

    Exits with status 2 when some resources failed or were skipped.
    """
    settings = build_settings(state_path, parallelism, refresh, no_replace, lock_timeout)
    reconciler = build_reconciler(settings)
    configuration = load(reconciler, config_path, var_file)

    with reconciler.store.locked():
        plan = reconciler.plan(configuration)
        if not as_json:
            click.echo(format_plan(plan))
        if not plan.has_changes and not as_json:
            return
        if plan.has_changes and not auto_approve:
            click.confirm("\nApply these changes?", abort=True, err=True)
        report = reconciler.execute(plan, configuration)

    if as_json:
        click.echo(to_json(report))
    else:
        click.echo("")
        click.echo(format_report(report))

    if not report.success:
        sys.exit(EXIT_PARTIAL)
