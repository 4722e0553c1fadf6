"""
Configuration entry point for TripMate.

Loads ``.env`` into the environment, then the YAML configuration
(``config/config.yaml`` or ``CONFIG_PATH``) with ``${VAR:-default}``
interpolation.
"""

from dotenv import load_dotenv

from .config_loader import load_app_config
from .models import AppConfig

load_dotenv()


def get_config() -> AppConfig:
    """Get the application configuration."""
    return load_app_config()


# Global config instance
config = get_config()
