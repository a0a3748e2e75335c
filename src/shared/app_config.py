"""Process configuration loaded from the environment.

run.py calls load_dotenv() first, so values may come from a .env file.
Every setting has a default; malformed values raise ConfigError rather than
silently falling back.

Environment variables:
    LOCATOR_REQUEST_TIMEOUT_SECS   - per-request timeout (default 30)
    LOCATOR_USER_AGENT             - user agent for library-level requests
    LOCATOR_MAX_CONCURRENT_BRANDS  - brands collected in parallel (default 1)
    LOCATOR_USE_CURL               - try the curl backend first (default true)
    LOCATOR_SWEEP_REGION           - named grid region for sweep vendors
                                     (default: strategic city points)
    LOCATOR_DATA_DIR               - location/run storage root (default data)
    LOCATOR_BRANDS_FILE            - brand registry (default config/brands.yaml)
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from config.grid_config import REGIONS
from src.shared.constants import HTTP, WORKERS

__all__ = [
    'AppConfig',
    'ConfigError',
    'load_app_config',
]

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off'}


class ConfigError(ValueError):
    """Raised when an environment setting cannot be parsed."""


@dataclass(frozen=True)
class AppConfig:
    """Effective settings for a collection run."""
    request_timeout_secs: int = HTTP.TIMEOUT
    user_agent: str = HTTP.USER_AGENT
    max_concurrent_brands: int = WORKERS.MAX_CONCURRENT_BRANDS
    use_curl: bool = True
    sweep_region: Optional[str] = None
    data_dir: str = "data"
    brands_file: str = "config/brands.yaml"


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{raw}'") from None
    if value < 1:
        raise ConfigError(f"{name} must be >= 1, got {value}")
    return value


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean (true/false), got '{raw}'")


def _str(env: Mapping[str, str], name: str, default: Optional[str]) -> Optional[str]:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def load_app_config(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Build an AppConfig from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        Populated AppConfig

    Raises:
        ConfigError: If any variable is malformed or names an unknown region
    """
    env = os.environ if env is None else env

    sweep_region = _str(env, 'LOCATOR_SWEEP_REGION', None)
    if sweep_region is not None and sweep_region not in REGIONS:
        raise ConfigError(
            f"LOCATOR_SWEEP_REGION '{sweep_region}' is not a known region "
            f"(known: {', '.join(sorted(REGIONS))})"
        )

    return AppConfig(
        request_timeout_secs=_positive_int(env, 'LOCATOR_REQUEST_TIMEOUT_SECS', HTTP.TIMEOUT),
        user_agent=_str(env, 'LOCATOR_USER_AGENT', HTTP.USER_AGENT),
        max_concurrent_brands=_positive_int(
            env, 'LOCATOR_MAX_CONCURRENT_BRANDS', WORKERS.MAX_CONCURRENT_BRANDS
        ),
        use_curl=_bool(env, 'LOCATOR_USE_CURL', True),
        sweep_region=sweep_region,
        data_dir=_str(env, 'LOCATOR_DATA_DIR', 'data'),
        brands_file=_str(env, 'LOCATOR_BRANDS_FILE', 'config/brands.yaml'),
    )
