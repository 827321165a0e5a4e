"""Graph command - print the dependency graph in DOT format."""

import click
from ...utils.logging import get_logger
from ..utils import build_reconciler, build_settings, config_options, handle_errors, load

logger = get_logger("cli.graph")


@click.command()
@config_options
@click.option('--order', is_flag=True, help='Print addresses in execution order instead of DOT')
@handle_errors
def graph(config_path, var_file, order):
    """
    Show resource dependencies.

    Pipe the output to Graphviz: reconciler graph | dot -Tsvg > graph.svg
    """
    reconciler = build_reconciler(build_settings())
    configuration = load(reconciler, config_path, var_file)
    dependency_graph = reconciler.validate(configuration)
    if order:
        for address in dependency_graph.topological_order():
            click.echo(address)
    else:
        click.echo(dependency_graph.to_dot())
