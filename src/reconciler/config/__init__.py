"""Configuration module: load and validate reconciler settings."""

from typing import Dict, Any, Optional
from pydantic import ValidationError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import load_config, _deep_merge
from .paths import get_defaults_path, get_user_config_path, get_project_config_path
from .settings import Settings, RetrySettings

logger = get_logger("config")


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Load settings from config files and apply explicit overrides.
    
    Args:
        overrides: Values that take precedence over every config file
            (typically CLI flags). Keys with a None value are ignored.
        
    Returns:
        Validated Settings
        
    Raises:
        ConfigError: If config cannot be loaded or fails validation
    """
    config = load_config()
    
    if overrides:
        _deep_merge(config, {k: v for k, v in overrides.items() if v is not None})
    
    try:
        settings = Settings(**config)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}")
    
    logger.debug(f"Resolved settings: {settings.model_dump()}")
    return settings


__all__ = [
    "Settings",
    "RetrySettings",
    "load_settings",
    "load_config",
    "get_defaults_path",
    "get_user_config_path",
    "get_project_config_path",
]
