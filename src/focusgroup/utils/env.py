"""Environment variable utilities for focusgroup.

This module provides utilities for accessing environment variables,
particularly for API keys and credentials.
"""

from __future__ import annotations

import logging
import os

from focusgroup.config.exceptions import ApiKeyNotFoundError

logger = logging.getLogger(__name__)


def get_google_api_key() -> str:
    """Get Google API key from environment.

    Checks GOOGLE_API_KEY first, then falls back to GEMINI_API_KEY.

    Returns:
        The API key string

    Raises:
        ApiKeyNotFoundError: If neither environment variable is set

    """
    api_key = os.environ.get("GOOGLE_API_KEY") or os.environ.get("GEMINI_API_KEY")
    if not api_key:
        raise ApiKeyNotFoundError("GOOGLE_API_KEY")
    return api_key


def google_api_key_available() -> bool:
    """Check if Google API key is available in environment."""
    return bool(os.environ.get("GOOGLE_API_KEY") or os.environ.get("GEMINI_API_KEY"))
