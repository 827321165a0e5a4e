"""Validate command - check configuration without touching state."""

import click
from ...utils.logging import get_logger
from ..utils import build_reconciler, build_settings, config_options, handle_errors, load

logger = get_logger("cli.validate")


@click.command()
@config_options
@handle_errors
def validate(config_path, var_file):
    """Check references, cycles and attribute schemas."""
    reconciler = build_reconciler(build_settings())
    configuration = load(reconciler, config_path, var_file)
    graph = reconciler.validate(configuration)
    click.echo(f"Success! The configuration is valid ({len(graph)} resources).")
