#!/usr/bin/env python3
"""Configuration loader - YAML settings for News Pulse plus secrets from the environment."""

import logging
import os
from pathlib import Path
from typing import Dict, Any, List, Optional
from dotenv import load_dotenv
import yaml

logger = logging.getLogger(__name__)
load_dotenv('.env.local')
load_dotenv()

class ConfigLoader:
    """YAML configuration loader with a per-name cache."""

    _config_cache: Dict[str, Dict[str, Any]] = {}

    @staticmethod
    def _get_config_dir() -> Path:
        """Get the configuration directory path."""
        config_dir_str = os.getenv('CONFIG_DIR')
        if config_dir_str:
            config_dir = Path(config_dir_str)
        else:
            config_dir = Path(__file__).parent

        if not config_dir.exists():
            raise FileNotFoundError(f"Configuration directory not found: {config_dir}")
        return config_dir

    @classmethod
    def _load_file(cls, file_path: Path) -> Dict[str, Any]:
        """Load a YAML configuration file."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load configuration file {file_path}: {e}")
            raise RuntimeError(f"Could not load configuration from {file_path}: {e}") from e

    @classmethod
    def load_config(cls, config_name: str = "app") -> Dict[str, Any]:
        """Load configuration by name (app, fallbacks)."""
        if config_name in cls._config_cache:
            return cls._config_cache[config_name]

        config_dir = cls._get_config_dir()

        for ext in ['.yaml', '.yml']:
            config_path = config_dir / f"{config_name}{ext}"
            if config_path.exists():
                config = cls._load_file(config_path)
                cls._config_cache[config_name] = config
                logger.debug(f"Loaded {config_name} configuration from {config_path}")
                return config

        raise FileNotFoundError(f"No YAML configuration file found for '{config_name}' in {config_dir}")

    @classmethod
    def get(cls, key: str, default: Any = None, config_name: str = "app") -> Any:
        """Get a setting using dot notation (e.g., 'fetch.timeout_seconds')."""
        config = cls.load_config(config_name)
        value = config
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the configuration cache."""
        cls._config_cache.clear()


def get_gemini_api_key() -> Optional[str]:
    """Gemini key; None disables remote synthesis and translation."""
    return os.getenv('GEMINI_API_KEY') or None


def get_database_url() -> Optional[str]:
    """Cache backend URL; None turns every cache operation into a miss."""
    return os.getenv('DATABASE_URL') or None


def get_categories() -> List[Dict[str, Any]]:
    return ConfigLoader.get('categories', [])


def category_requires_subscription(category: str) -> bool:
    """Entitlement gate consulted before a premium category is fetched."""
    for entry in get_categories():
        if entry.get('id') == category:
            return bool(entry.get('premium', False))
    return False


def get_language_voice(language: str) -> str:
    """Voice tag used to narrate text in the given language code."""
    for entry in ConfigLoader.get('languages', []):
        if entry.get('code') == language:
            return entry.get('voice', 'en-IN')
    return 'en-IN'

