"""Path resolution utilities for CLI."""

from pathlib import Path
from typing import Optional

CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


def resolve_config_path(config_path: Optional[str]) -> Path:
    """
    Resolve the configuration path given on the command line.

    A file must have a YAML or JSON suffix; a directory is accepted as-is and
    its files are collected by the loader. Without a path, the current
    directory is used.

    Args:
        config_path: User-provided file or directory, or None

    Returns:
        Resolved Path object

    Raises:
        FileNotFoundError: If the path does not exist or is not a config file
    """
    path = Path(config_path) if config_path else Path.cwd()
    resolved_path = path if path.is_absolute() else (Path.cwd() / path).resolve()

    if not resolved_path.exists():
        raise FileNotFoundError(
            f"Configuration not found: {config_path}. Please check the path and try again."
        )

    if resolved_path.is_file() and resolved_path.suffix.lower() not in CONFIG_SUFFIXES:
        raise FileNotFoundError(
            f"Not a configuration file: {config_path}. Expected one of {', '.join(CONFIG_SUFFIXES)}."
        )

    return resolved_path
