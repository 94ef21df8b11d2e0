"""Runtime configuration helpers for engines."""
from __future__ import annotations

import os
from typing import Optional

DEFAULT_WEIGHTED_EXPONENT = 1.5
DEFAULT_DURATION_TOLERANCE = 0.05
DEFAULT_GROUP_RETRY_BUDGET = 10
DEFAULT_COMPILE_WORKERS = 4
DEFAULT_PERMUTATION_LIMIT = 40320  # 8!
DEFAULT_MAX_OUTPUT_COUNT = 500


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _float_env(name: str, default: float, *, min_value: Optional[float] = None) -> float:
    raw = _get_env(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if min_value is not None and value < min_value:
        return default
    return value


def _int_env(name: str, default: int, *, min_value: Optional[int] = None) -> int:
    raw = _get_env(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if min_value is not None and value < min_value:
        return default
    return value


def get_env() -> Optional[str]:
    return _get_env("ENV") or _get_env("APP_ENV")


def get_weighted_exponent() -> float:
    value = _float_env("VIDEO_VARIANTS_WEIGHTED_EXPONENT", DEFAULT_WEIGHTED_EXPONENT)
    return value if value > 1.0 else DEFAULT_WEIGHTED_EXPONENT


def get_duration_tolerance() -> float:
    return _float_env("VIDEO_VARIANTS_DURATION_TOLERANCE", DEFAULT_DURATION_TOLERANCE, min_value=0.0)


def get_group_retry_budget() -> int:
    return _int_env("VIDEO_VARIANTS_GROUP_RETRY_BUDGET", DEFAULT_GROUP_RETRY_BUDGET, min_value=1)


def get_compile_workers() -> int:
    return _int_env("VIDEO_VARIANTS_COMPILE_WORKERS", DEFAULT_COMPILE_WORKERS, min_value=1)


def get_permutation_enumeration_limit() -> int:
    """Largest N! the planner will materialise before switching to sampling."""
    return _int_env("VIDEO_VARIANTS_PERMUTATION_LIMIT", DEFAULT_PERMUTATION_LIMIT, min_value=1)


def get_max_output_count() -> int:
    return _int_env("VIDEO_VARIANTS_MAX_OUTPUT_COUNT", DEFAULT_MAX_OUTPUT_COUNT, min_value=1)
