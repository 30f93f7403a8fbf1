"""Runtime settings, read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .env import load_env

DEFAULT_API_DOMAIN = "https://www.zohoapis.com"
QUIET_PERIOD = 0.5  # seconds of no input before a lookup fires
DEFAULT_TIMEOUT = 15.0
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class Settings:
    api_domain: str = DEFAULT_API_DOMAIN
    access_token: Optional[str] = None
    quiet_period: float = QUIET_PERIOD
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"
    log_dir: Optional[Path] = None


def _float_env(name: str, default: float, warnings: list[str]) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        warnings.append(f"{name}={raw!r} is not a number; using {default}")
        return default
    if value < 0:
        warnings.append(f"{name}={raw!r} is negative; using {default}")
        return default
    return value


def load_settings(use_dotenv: bool = True) -> tuple[Settings, list[str]]:
    """
    Build Settings from environment variables.

    Returns the settings and a list of warnings for values that were
    rejected and replaced by defaults. Logging is left to the caller
    since the log level itself comes from here.
    """
    if use_dotenv:
        load_env()

    warnings: list[str] = []
    log_level = (os.getenv("STAKESELECT_LOG_LEVEL") or "INFO").upper()
    if log_level not in LOG_LEVELS:
        warnings.append(f"STAKESELECT_LOG_LEVEL={log_level!r} is not a log level; using INFO")
        log_level = "INFO"
    log_dir = os.getenv("STAKESELECT_LOG_DIR")
    settings = Settings(
        api_domain=(os.getenv("ZOHO_API_DOMAIN") or DEFAULT_API_DOMAIN).rstrip("/"),
        access_token=os.getenv("ZOHO_ACCESS_TOKEN") or None,
        quiet_period=_float_env("STAKESELECT_QUIET_PERIOD", QUIET_PERIOD, warnings),
        timeout=_float_env("STAKESELECT_TIMEOUT", DEFAULT_TIMEOUT, warnings),
        log_level=log_level,
        log_dir=Path(log_dir) if log_dir else None,
    )
    return settings, warnings
