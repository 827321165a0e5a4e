"""CLI utilities package."""

import functools
import logging
import sys
from typing import Any, Callable, Dict, Optional
import click
from ...config import Settings, load_settings
from ...engine import Reconciler
from ...ingest.models import Configuration
from ...providers import build_default_registry
from ...state.store import StateStore
from ...utils.errors import CycleDetected, ReconcilerError, ReplaceRequiredButDenied, StateConflict, UnknownReference
from ...utils.logging import get_logger, setup_logging
from .file_resolver import resolve_config_path

logger = get_logger("cli.utils")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 2


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.

    Args:
        message: Error message
        suggestion: Optional suggestion or help text

    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


def config_options(func: Callable) -> Callable:
    """Options shared by every command that reads configuration."""
    decorators = [
        click.option('--config', '-c', 'config_path', type=click.Path(), default=None,
                     help='Configuration file or directory (default: current directory)'),
        click.option('--var-file', type=click.Path(), default=None, help='YAML/JSON file of variable values'),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def run_options(func: Callable) -> Callable:
    """Options shared by plan, apply and destroy."""
    decorators = [
        click.option('--state', 'state_path', type=click.Path(), default=None, help='State file path'),
        click.option('--parallelism', type=click.IntRange(min=1), default=None,
                     help='Maximum concurrent operations'),
        click.option('--refresh/--no-refresh', default=None, help='Read remote objects before planning'),
        click.option('--no-replace', is_flag=True, help='Fail instead of replacing resources'),
        click.option('--lock-timeout', type=click.FloatRange(min=0), default=None,
                     help='Seconds to wait for the state lock'),
        click.option('--json', 'as_json', is_flag=True, help='Output structured JSON instead of human-readable'),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def handle_errors(command: Callable) -> Callable:
    """Print ReconcilerError and unexpected failures the same way, then exit 1."""

    @functools.wraps(command)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return command(*args, **kwargs)
        except FileNotFoundError as e:
            click.echo(format_error(str(e)), err=True)
            sys.exit(EXIT_ERROR)
        except ReconcilerError as e:
            click.echo(format_error(str(e), _suggestion(e)), err=True)
            sys.exit(EXIT_ERROR)
        except (click.ClickException, click.exceptions.Abort, click.exceptions.Exit):
            raise
        except Exception as e:
            logger.error(f"Unexpected error: {e}", exc_info=True)
            click.echo(format_error(f"Command failed: {e}"), err=True)
            sys.exit(EXIT_ERROR)

    return wrapper


def _suggestion(error: ReconcilerError) -> Optional[str]:
    if isinstance(error, StateConflict):
        return "Another run holds the state lock; retry later or pass --lock-timeout."
    if isinstance(error, ReplaceRequiredButDenied):
        return "Re-run without --no-replace to allow destroy-then-create."
    if isinstance(error, (CycleDetected, UnknownReference)):
        return "Run 'reconciler graph' to inspect resource references."
    return None


def build_settings(
    state_path: Optional[str] = None,
    parallelism: Optional[int] = None,
    refresh: Optional[bool] = None,
    no_replace: bool = False,
    lock_timeout: Optional[float] = None
) -> Settings:
    """Settings from config files, overridden by explicit CLI flags."""
    overrides: Dict[str, Any] = {
        "state_path": state_path,
        "parallelism": parallelism,
        "refresh": refresh,
        "lock_timeout": lock_timeout,
        "allow_replace": False if no_replace else None,
    }
    settings = load_settings(overrides)
    ctx = click.get_current_context(silent=True)
    verbose = bool(ctx and ctx.find_root().obj and ctx.find_root().obj.get("verbose"))
    setup_logging(logging.DEBUG if verbose else settings.log_level)
    return settings


def build_reconciler(settings: Settings) -> Reconciler:
    """Reconciler wired to the simulated provider and the configured state file."""
    registry = build_default_registry(settings.provider_store_path)
    store = StateStore(settings.state_path, lock_timeout=settings.lock_timeout)
    return Reconciler(registry, store, settings)


def load(reconciler: Reconciler, config_path: Optional[str], var_file: Optional[str]) -> Configuration:
    """Resolve the config path and load it."""
    path = resolve_config_path(config_path)
    return reconciler.load(str(path), var_file)


__all__ = [
    "EXIT_OK",
    "EXIT_ERROR",
    "EXIT_PARTIAL",
    "format_error",
    "config_options",
    "run_options",
    "handle_errors",
    "build_settings",
    "build_reconciler",
    "load",
    "resolve_config_path",
]
