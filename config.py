#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Configuration module for Playlist Stats.

Defines configuration parameters and loads values from environment variables.
"""

import os
import logging
from typing import Dict, Any

# Initialize a basic logger for config loading issues
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Default configuration values
_CONFIG_DEFAULTS: Dict[str, Any] = {
    # API Configuration
    "API_KEY": "",
    "API_KEY_ENV_VAR": "YOUTUBE_API_KEY",
    "API_KEY_SALT_ENV_VAR": "YOUTUBE_API_KEY_SALT",
    "API_KEY_PASSWORD_ENV_VAR": "YOUTUBE_API_KEY_PASSWORD",

    # YouTube API Settings
    "PAGE_SIZE": 50,  # Max allowed by YouTube API for playlistItems.list
    "BATCH_SIZE": 50,  # Max allowed by YouTube API for videos.list
    "API_TIMEOUT_SECONDS": 20.0,  # Timeout for a single API request

    # Aggregation Limits
    "MAX_PLAYLIST_ITEMS": 5000,  # Playlists above this are rejected
    "DETAIL_FETCH_CONCURRENCY": 1,  # Detail batches in flight per run (1 = sequential)

    # Per-client throttling
    "THROTTLE_COOLDOWN_MS": 1000,  # Minimum interval between accepted requests per client
    "THROTTLE_CAPACITY": 10000,  # Max client keys tracked at once
    "THROTTLE_SWEEP_INTERVAL_SECONDS": 60,  # How often stale client keys are dropped

    # Caching
    "URL_PARSE_CACHE_SIZE": 256,  # Cache size for playlist URL parsing

    # Result placeholders
    "DEFAULT_PLAYLIST_TITLE": "Untitled Playlist",
    "DEFAULT_CHANNEL_TITLE": "Unknown Channel",

    # Web Server
    "DEFAULT_ENCODING": "utf-8",

    # CORS
    "ALLOWED_ORIGINS": [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ],
}


class Config:
    """Configuration class that loads values from environment variables."""

    def __init__(self, load_from_env=True):
        """Initialize configuration with default values and optionally from environment.

        Args:
            load_from_env: Whether to load values from environment variables
        """
        for key, value in _CONFIG_DEFAULTS.items():
            # Copy lists so instances never share mutable defaults
            setattr(self, key, list(value) if isinstance(value, list) else value)

        if load_from_env:
            self.load_from_env()

    def load_from_env(self):
        """Load configuration values from environment variables."""
        self.API_KEY = os.environ.get(self.API_KEY_ENV_VAR, self.API_KEY)

        env_origins = os.environ.get("ALLOWED_ORIGINS", "")
        if env_origins:
            origins = [origin.strip() for origin in env_origins.split(",")]
            self.ALLOWED_ORIGINS = [o for o in origins if o]
            logger.info(f"CORS origins set from environment: {self.ALLOWED_ORIGINS}")

        for key in ("DEFAULT_PLAYLIST_TITLE", "DEFAULT_CHANNEL_TITLE"):
            env_value = os.environ.get(key)
            if env_value:
                setattr(self, key, env_value)

        self._load_int_from_env("PAGE_SIZE", minimum=1, maximum=50)
        self._load_int_from_env("BATCH_SIZE", minimum=1, maximum=50)
        self._load_float_from_env("API_TIMEOUT_SECONDS")
        self._load_int_from_env("MAX_PLAYLIST_ITEMS", minimum=0)
        self._load_int_from_env("DETAIL_FETCH_CONCURRENCY", minimum=1)
        self._load_int_from_env("THROTTLE_COOLDOWN_MS", minimum=0)
        self._load_int_from_env("THROTTLE_CAPACITY", minimum=1)
        self._load_float_from_env("THROTTLE_SWEEP_INTERVAL_SECONDS")
        self._load_int_from_env("URL_PARSE_CACHE_SIZE", minimum=1)

        if not self.API_KEY:
            logger.warning(f"API key not found in env var {self.API_KEY_ENV_VAR}.")

    def _load_int_from_env(self, key, minimum=None, maximum=None):
        """Load an integer value from environment variable.

        Out-of-range values are rejected the same way as unparseable ones.

        Args:
            key: The configuration key to load
            minimum: Optional inclusive lower bound
            maximum: Optional inclusive upper bound

        Returns:
            bool: True if the value was loaded, False otherwise
        """
        env_value = os.environ.get(key)
        if env_value is None:
            return False
        try:
            value = int(env_value)
        except ValueError:
            logger.warning(f"Invalid integer value for {key}: {env_value}")
            return False
        if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
            logger.warning(f"Out of range value for {key}: {value} (allowed {minimum}..{maximum})")
            return False
        setattr(self, key, value)
        return True

    def _load_float_from_env(self, key):
        """Load a float value from environment variable.

        Args:
            key: The configuration key to load

        Returns:
            bool: True if the value was loaded, False otherwise
        """
        env_value = os.environ.get(key)
        if env_value is not None:
            try:
                setattr(self, key, float(env_value))
                return True
            except ValueError:
                logger.warning(f"Invalid float value for {key}: {env_value}")
        return False


# Create a single instance of Config to be imported by other modules
config = Config(load_from_env=True)
