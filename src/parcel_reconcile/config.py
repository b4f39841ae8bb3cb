"""Environment-driven settings.

All variables are optional:

- ``PARCEL_RECONCILE_CROP_PREFIX``: country prefix for crop codes (default ``nl``).
- ``PARCEL_RECONCILE_AREA_METHOD``: ``geodesic`` (default) or ``planar``.
- ``PARCEL_RECONCILE_LOG_LEVEL``: log level name for the CLI (default ``INFO``).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from .cultivation import DEFAULT_CROP_CODE_PREFIX
from .geometry import AREA_METHODS

ENV_CROP_PREFIX = "PARCEL_RECONCILE_CROP_PREFIX"
ENV_AREA_METHOD = "PARCEL_RECONCILE_AREA_METHOD"
ENV_LOG_LEVEL = "PARCEL_RECONCILE_LOG_LEVEL"


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    value = env.get(name, "").strip()
    return value or default


@dataclass(frozen=True)
class ReconcileConfig:
    crop_code_prefix: str = DEFAULT_CROP_CODE_PREFIX
    area_method: str = "geodesic"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "ReconcileConfig":
        env = os.environ if env is None else env

        prefix = _env_str(env, ENV_CROP_PREFIX, DEFAULT_CROP_CODE_PREFIX).lower()
        if not prefix.isalnum():
            raise ValueError(f"{ENV_CROP_PREFIX} must be alphanumeric, got: {prefix!r}")

        area_method = _env_str(env, ENV_AREA_METHOD, "geodesic").lower()
        if area_method not in AREA_METHODS:
            raise ValueError(f"{ENV_AREA_METHOD} must be one of {AREA_METHODS}, got: {area_method!r}")

        log_level = _env_str(env, ENV_LOG_LEVEL, "INFO").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"{ENV_LOG_LEVEL} is not a log level: {log_level!r}")

        return cls(crop_code_prefix=prefix, area_method=area_method, log_level=log_level)


def configure_logging(*, level: int | str = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with a terse CLI format."""

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
