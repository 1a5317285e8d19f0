# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration helpers for webinvoke."""

import os
import platform
from dataclasses import dataclass

from .version import __version__

DEFAULT_USER_AGENT = f"Mozilla/5.0 ({platform.system() or 'Unknown'}; {platform.machine() or 'unknown'}) webinvoke/{__version__}"


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class HttpSettings:
    """Engine defaults shared by every operation that does not override them."""

    timeout: float = 100.0
    user_agent: str = DEFAULT_USER_AGENT
    verify_ssl: bool = True
    max_redirects: int = 50
    retry_interval: int = 5
    chunk_size: int = 64 * 1024
    lock_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "HttpSettings":
        """Create settings from environment variables (evaluated at call time)."""
        max_redirects = _int_env("WEBINVOKE_HTTP_MAX_REDIRECTS", cls.max_redirects)
        if max_redirects < 0:
            max_redirects = cls.max_redirects
        chunk_size = _int_env("WEBINVOKE_HTTP_CHUNK_SIZE", cls.chunk_size)
        if chunk_size <= 0:
            chunk_size = cls.chunk_size
        return cls(
            timeout=_float_env("WEBINVOKE_HTTP_TIMEOUT", cls.timeout),
            user_agent=os.getenv("WEBINVOKE_USER_AGENT", cls.user_agent),
            verify_ssl=_bool_env("WEBINVOKE_HTTP_VERIFY_SSL", cls.verify_ssl),
            max_redirects=max_redirects,
            retry_interval=_int_env("WEBINVOKE_HTTP_RETRY_INTERVAL", cls.retry_interval),
            chunk_size=chunk_size,
            lock_timeout=_float_env("WEBINVOKE_LOCK_TIMEOUT", cls.lock_timeout),
        )


def load_http_settings() -> HttpSettings:
    """Load HTTP settings from environment with sensible defaults."""
    return HttpSettings.from_env()
