#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
General utilities and helper classes for Playlist Stats.

Includes duration and count parsing, playlist URL resolution, chunking,
the performance timer and the secure API key manager.
"""

import functools
import os
import re
import time
from base64 import urlsafe_b64encode
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Iterator, List, Optional, Sequence
from urllib.parse import unquote, urlparse

import isodate
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config import config
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)


# --- Field Parsing ---

def parse_duration_seconds(duration_iso: Optional[str]) -> int:
    """Convert an ISO 8601 duration such as ``PT1H2M3S`` to whole seconds.

    Anything that cannot be parsed counts as zero: a single corrupt field
    must not invalidate a whole aggregation.

    Args:
        duration_iso: Duration text from ``contentDetails.duration``.

    Returns:
        int: Non-negative number of seconds.
    """
    if not duration_iso or not isinstance(duration_iso, str):
        return 0
    try:
        duration = isodate.parse_duration(duration_iso.strip())
    except (isodate.ISO8601Error, ValueError, TypeError, OverflowError):
        logger.debug(f"Unparseable duration '{duration_iso[:32]}', counting as 0s.")
        return 0

    # Year/month durations come back as isodate.Duration and have no fixed length
    if not isinstance(duration, timedelta):
        logger.debug(f"Calendar duration '{duration_iso[:32]}' has no fixed length, counting as 0s.")
        return 0

    return max(0, int(duration.total_seconds()))


def parse_count(value: Any) -> int:
    """Parse a statistics counter (the API sends them as strings).

    Missing, negative or non-numeric values count as zero.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    try:
        return max(0, int(str(value).strip()))
    except ValueError:
        return 0


# --- Playlist URL Resolution ---

PLAYLIST_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")

# Tried in order, first match wins
PLAYLIST_URL_PATTERNS = (
    re.compile(r"[&?]list=(?P<identifier>[^&#]+)"),  # watch?v=...&list=... and friends
    re.compile(r"playlist\?list=(?P<identifier>[^&#]+)"),  # playlist page
)


@functools.lru_cache(maxsize=config.URL_PARSE_CACHE_SIZE)
def _extract_playlist_id_impl(url: str) -> Optional[str]:
    cleaned = url.strip()
    if not cleaned:
        return None

    try:
        parsed = urlparse(cleaned)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        logger.debug(f"Input is not an absolute http(s) URL: '{cleaned[:100]}'")
        return None

    for pattern in PLAYLIST_URL_PATTERNS:
        match = pattern.search(cleaned)
        if not match:
            continue
        identifier = unquote(match.group("identifier"))
        if PLAYLIST_ID_RE.match(identifier):
            return identifier
        logger.debug(f"Rejected malformed playlist ID '{identifier[:64]}'")

    return None


def extract_playlist_id(url: Any) -> Optional[str]:
    """Extract the playlist ID from a YouTube URL.

    Recognises the ``list`` query parameter on any page (``watch?v=..&list=..``)
    and the playlist page itself (``playlist?list=..``).

    Args:
        url: Raw user input.

    Returns:
        str: The playlist ID, or None when the input is not a URL or carries
             no valid playlist ID. Never raises.
    """
    if not isinstance(url, str):
        return None
    return _extract_playlist_id_impl(url)


def chunked(items: Sequence[str], size: int) -> Iterator[List[str]]:
    """Yield consecutive slices of at most ``size`` items, in order."""
    if size <= 0:
        raise ValueError("Chunk size must be greater than 0")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


# --- Performance Timer ---

@contextmanager
def performance_timer(operation_name: str, threshold_ms: float = 500.0):
    """Context manager for timing operations with threshold-based logging.

    Logs at WARNING when the block takes more than ten times ``threshold_ms``,
    INFO above ``threshold_ms``, DEBUG otherwise.
    """
    start_time = time.monotonic()
    try:
        yield
    finally:
        duration_ms = (time.monotonic() - start_time) * 1000
        log_data = {"operation": operation_name, "duration_ms": round(duration_ms, 2)}

        if duration_ms > threshold_ms * 10:
            logger.warning(f"SLOW OPERATION: '{operation_name}' took {duration_ms:.2f}ms", **log_data)
        elif duration_ms > threshold_ms:
            logger.info(f"Performance watch: '{operation_name}' took {duration_ms:.2f}ms", **log_data)
        else:
            logger.debug(f"Performance: '{operation_name}' completed in {duration_ms:.2f}ms", **log_data)


# --- Secure API Key Manager ---

FERNET_TOKEN_PREFIX = "gAAAA"

# Google API keys are URL-safe base64-like tokens
API_KEY_CHARS_RE = re.compile(r"^[A-Za-z0-9_-]+$")

class SecureApiKeyManager:
    """Provides the YouTube API key, optionally stored encrypted.

    The key is read from ``YOUTUBE_API_KEY``. When that value is a Fernet
    token and both ``YOUTUBE_API_KEY_PASSWORD`` and ``YOUTUBE_API_KEY_SALT``
    are set, it is decrypted with a PBKDF2-derived key. Only an obfuscated
    form of the key is ever logged.
    """

    def __init__(self, encrypted_key: Optional[str] = None,
                 key_env_var: str = config.API_KEY_ENV_VAR,
                 key_salt_env_var: str = config.API_KEY_SALT_ENV_VAR,
                 key_password_env_var: str = config.API_KEY_PASSWORD_ENV_VAR):
        self.encrypted_key_input = encrypted_key
        self.key_env_var = key_env_var
        self._key: Optional[str] = None
        self._fernet: Optional[Fernet] = None

        password = os.environ.get(key_password_env_var, "")
        salt = os.environ.get(key_salt_env_var, "")
        if password and salt:
            self._fernet = Fernet(self.derive_fernet_key(password, salt))
            logger.info("API key encryption initialized.")
        elif password or salt:
            logger.warning(f"Both {key_password_env_var} and {key_salt_env_var} are needed for key decryption; ignoring.")

    @staticmethod
    def derive_fernet_key(password: str, salt: str) -> bytes:
        """Derive a Fernet key from a password and salt (PBKDF2-SHA256)."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt.encode(config.DEFAULT_ENCODING),
            iterations=100000,
        )
        return urlsafe_b64encode(kdf.derive(password.encode(config.DEFAULT_ENCODING)))

    def get_key(self) -> str:
        """Return the plain API key, or an empty string if none is configured."""
        if self._key is not None:
            return self._key

        candidate = self.encrypted_key_input or os.environ.get(self.key_env_var, "")
        # Fernet tokens always start with the version byte 0x80, i.e. "gAAAA"
        if candidate and self._fernet is not None and candidate.startswith(FERNET_TOKEN_PREFIX):
            try:
                self._key = self._fernet.decrypt(candidate.encode(config.DEFAULT_ENCODING)).decode(config.DEFAULT_ENCODING)
                logger.info("API key successfully decrypted.")
            except InvalidToken:
                logger.error("Could not decrypt API key: invalid token or wrong password/salt.")
                self._key = ""
        else:
            self._key = candidate

        if not self._key:
            logger.warning("API key is missing or could not be retrieved/decrypted.")
        return self._key

    def validate_key(self, key_to_validate: Optional[str] = None) -> bool:
        """Heuristic sanity check of the key format.

        Returns:
            bool: False only when the key is missing; format oddities are logged.
        """
        key = key_to_validate if key_to_validate is not None else self.get_key()
        if not key:
            logger.error("API key validation failed: Key is missing.")
            return False
        if not (30 <= len(key) <= 50):
            logger.warning(f"API key length ({len(key)}) is outside the expected range (30-50).")
        if not API_KEY_CHARS_RE.match(key):
            logger.warning("API key contains unexpected characters.")
        return True

    def obfuscate_key(self, key_to_obfuscate: Optional[str] = None) -> str:
        """Return a log-safe rendering of the key, e.g. ``AIza...abc``."""
        key = key_to_obfuscate if key_to_obfuscate is not None else self.get_key()
        if not key:
            return "[MISSING]"
        if len(key) > 7:
            return f"{key[:4]}...{key[-3:]}"
        return f"{key[0]}...{'*' * (len(key) - 1)}"
