"""
Engine configuration.

Values can be given directly or read from ``SEGENGINE_*`` environment
variables (and a ``.env`` file) via :meth:`EngineConfig.from_env`.
"""

from typing import Any

from decouple import config as env
from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "SEGENGINE_"


def _optional_float(raw: str | float | None) -> float | None:
    """Seconds from the environment. `none`, `off` or empty disables; zero is rejected."""
    if raw is None:
        return None
    if isinstance(raw, str) and raw.strip().lower() in ("", "none", "off"):
        return None
    return float(raw)


class EngineConfig(BaseModel):
    """Settings for the segmentation engine."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Membership caching
    cache_results: bool = True
    cache_ttl_seconds: float | None = Field(default=300.0, gt=0)

    # Persistence
    persistence_timeout_seconds: float | None = Field(default=10.0, gt=0)
    fail_on_load_error: bool = False

    # Table names
    segments_table: str = "segments"
    users_table: str = "users"
    exposures_table: str = "ab_exposures"
    conversions_table: str = "ab_conversions"
    experiments_table: str = "ab_experiments"

    @classmethod
    def from_env(cls, **overrides: Any) -> "EngineConfig":
        """Build a config from the environment; keyword overrides win."""
        defaults = cls()
        values: dict[str, Any] = {
            "cache_results": env(
                f"{ENV_PREFIX}CACHE_RESULTS", default=defaults.cache_results, cast=bool
            ),
            "cache_ttl_seconds": _optional_float(
                env(f"{ENV_PREFIX}CACHE_TTL_SECONDS", default=defaults.cache_ttl_seconds)
            ),
            "persistence_timeout_seconds": _optional_float(
                env(
                    f"{ENV_PREFIX}PERSISTENCE_TIMEOUT_SECONDS",
                    default=defaults.persistence_timeout_seconds,
                )
            ),
            "fail_on_load_error": env(
                f"{ENV_PREFIX}FAIL_ON_LOAD_ERROR",
                default=defaults.fail_on_load_error,
                cast=bool,
            ),
        }
        for name in (
            "segments_table",
            "users_table",
            "exposures_table",
            "conversions_table",
            "experiments_table",
        ):
            values[name] = env(f"{ENV_PREFIX}{name.upper()}", default=getattr(defaults, name))

        values.update(overrides)
        return cls(**values)
