"""
Centralized configuration with environment variable overrides.

Batch sizing, write pacing, scheduling defaults and remote-scorer settings
are configurable here. Nothing is hardcoded in engine logic. The
auto-assignment toggle is not a setting: callers pass an explicit
AutoAssignmentPolicy per operation.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Per-transaction operation ceiling of the record store.
STORE_MAX_BATCH_OPERATIONS = 500


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BatchConfig:
    """Chunking of large record batches."""

    chunk_size: int = _safe_int("BATCH_CHUNK_SIZE", str(STORE_MAX_BATCH_OPERATIONS))
    max_parallel_chunks: int = _safe_int("BATCH_MAX_PARALLEL_CHUNKS", "1")


@dataclass(frozen=True)
class PacingConfig:
    """Pacing of sequential per-booking writes (series propagation, bulk assign)."""

    sibling_write_delay_sec: float = _safe_float("SIBLING_WRITE_DELAY_SEC", "0.1")
    writes_per_pause: int = _safe_int("SIBLING_WRITES_PER_PAUSE", "10")


@dataclass(frozen=True)
class SchedulingConfig:
    """Recurring schedule defaults."""

    time_interval_minutes: int = _safe_int("VISIT_TIME_INTERVAL_MINUTES", "60")
    default_time_zone: str = os.getenv("DEFAULT_TIME_ZONE", "UTC")
    monthly_discount: float = _safe_float("MONTHLY_RECURRING_DISCOUNT", "0.10")


@dataclass(frozen=True)
class ScoringConfig:
    """Remote sitter scoring and recommendation settings."""

    remote_url: str = os.getenv("SCORER_URL", "")
    timeout_sec: float = _safe_float("SCORER_TIMEOUT_SEC", "10.0")
    max_recommendations: int = _safe_int("MAX_RECOMMENDATIONS", "5")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    batch: BatchConfig = field(default_factory=BatchConfig)
    pacing: PacingConfig = field(default_factory=PacingConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    engine_name: str = os.getenv("ENGINE_NAME", "booking-engine")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 1 <= config.batch.chunk_size <= STORE_MAX_BATCH_OPERATIONS:
        raise ValueError(
            f"BATCH_CHUNK_SIZE must be between 1 and {STORE_MAX_BATCH_OPERATIONS}, "
            f"got {config.batch.chunk_size}"
        )
    if config.batch.max_parallel_chunks < 1:
        raise ValueError(
            f"BATCH_MAX_PARALLEL_CHUNKS must be >= 1, got {config.batch.max_parallel_chunks}"
        )
    if config.pacing.sibling_write_delay_sec < 0:
        raise ValueError(
            "SIBLING_WRITE_DELAY_SEC must be >= 0, "
            f"got {config.pacing.sibling_write_delay_sec}"
        )
    if config.pacing.writes_per_pause < 1:
        raise ValueError(
            f"SIBLING_WRITES_PER_PAUSE must be >= 1, got {config.pacing.writes_per_pause}"
        )
    if config.scheduling.time_interval_minutes < 1:
        raise ValueError(
            "VISIT_TIME_INTERVAL_MINUTES must be >= 1, "
            f"got {config.scheduling.time_interval_minutes}"
        )
    if not 0.0 <= config.scheduling.monthly_discount < 1.0:
        raise ValueError(
            "MONTHLY_RECURRING_DISCOUNT must be between 0.0 and 1.0, "
            f"got {config.scheduling.monthly_discount}"
        )
    try:
        ZoneInfo(config.scheduling.default_time_zone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            f"DEFAULT_TIME_ZONE is not a known IANA zone: {config.scheduling.default_time_zone!r}"
        ) from None
    if config.scoring.timeout_sec <= 0:
        raise ValueError(
            f"SCORER_TIMEOUT_SEC must be > 0, got {config.scoring.timeout_sec}"
        )
    if config.scoring.max_recommendations < 1:
        raise ValueError(
            f"MAX_RECOMMENDATIONS must be >= 1, got {config.scoring.max_recommendations}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.engine_name)
    return config


# Singleton instance
settings = load_config()
