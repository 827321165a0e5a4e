"""Two-tier configuration manager (user + project override)."""

import yaml
from pathlib import Path
from typing import Dict, Any
from .paths import get_user_config_path, get_project_config_path, get_defaults_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")


def load_config() -> Dict[str, Any]:
    """
    Load full config tree: packaged defaults, then user, then project override.
    
    Returns:
        Configuration dictionary (project config overrides user config)
        
    Raises:
        ConfigError: If a config file contains invalid YAML or is not a mapping
    """
    config = _read_yaml(get_defaults_path())
    
    user_config_path = get_user_config_path()
    if user_config_path.exists():
        _deep_merge(config, _read_yaml(user_config_path))
        logger.info(f"Loaded user config from {user_config_path}")
    
    project_config_path = get_project_config_path()
    if project_config_path:
        _deep_merge(config, _read_yaml(project_config_path))
        logger.info(f"Loaded project config from {project_config_path}")
    
    return config


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read a YAML mapping; an empty file yields an empty dict."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading config file {path}: {e}")
    
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a dictionary")
    return data


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
