"""
Configuration
Loads YAML settings, applies environment overrides and sets up logging.
"""

import copy
import logging
import os
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = 'config.yaml'


def default_config() -> Dict[str, Any]:
    """Return default configuration if config file not found."""
    return {
        'logging': {
            'level': 'INFO',
            'format': '[%(levelname)s] %(message)s',
            'console': True
        },
        'dispatcher': {
            'local_mode': True,
            'local_delay_ms': 100,
            'show_progress': False
        },
        'remediation': {
            'min_severity': 'info'
        },
        'output': {
            'directory': './cache',
            'formats': ['json'],
            'include_timestamp': True
        }
    }


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    dispatcher = config.setdefault('dispatcher', {})
    if os.getenv('IAMWARDEN_LOCAL_MODE') is not None:
        dispatcher['local_mode'] = _env_bool(os.environ['IAMWARDEN_LOCAL_MODE'])
    if os.getenv('IAMWARDEN_LOCAL_DELAY_MS'):
        try:
            dispatcher['local_delay_ms'] = int(os.environ['IAMWARDEN_LOCAL_DELAY_MS'])
        except ValueError:
            logger.warning(f"Ignoring invalid IAMWARDEN_LOCAL_DELAY_MS: {os.environ['IAMWARDEN_LOCAL_DELAY_MS']}")
    if os.getenv('IAMWARDEN_LOG_LEVEL'):
        config.setdefault('logging', {})['level'] = os.environ['IAMWARDEN_LOG_LEVEL'].upper()
    return config


def load_config(config_path: Optional[str] = None, load_env: bool = True) -> Dict[str, Any]:
    """
    Load configuration from a YAML file merged over the defaults.

    Args:
        config_path: Path to configuration YAML file. Falls back to the
            IAMWARDEN_CONFIG environment variable, then ``config.yaml``.
        load_env: Load a ``.env`` file before reading environment overrides

    Returns:
        Configuration dictionary
    """
    if load_env:
        load_dotenv()

    path = config_path or os.getenv('IAMWARDEN_CONFIG', DEFAULT_CONFIG_PATH)
    try:
        with open(path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.info(f'Config file {path} not found, using defaults')
        loaded = {}

    if not isinstance(loaded, dict):
        raise ValueError(f'Config file {path} must contain a mapping, got {type(loaded).__name__}')

    return _apply_env_overrides(_merge(default_config(), loaded))


def setup_logging(config: Dict[str, Any], name: Optional[str] = None) -> logging.Logger:
    """
    Setup logging based on configuration.

    Handlers go on the root logger unless ``name`` is given, so the per-class
    loggers used throughout the package inherit them.
    """
    log_config = config.get('logging', {})
    level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)
    format_str = log_config.get('format', '[%(levelname)s] %(message)s')

    root = logging.getLogger(name)
    root.setLevel(level)

    # Console handler
    if log_config.get('console', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(format_str))
        root.addHandler(console_handler)

    # File handler
    if 'file' in log_config:
        file_handler = logging.FileHandler(log_config['file'])
        file_handler.setFormatter(logging.Formatter(format_str))
        root.addHandler(file_handler)

    return root
