"""Tests for configuration loading and validation."""

import pytest

from booking_engine.config import (
    STORE_MAX_BATCH_OPERATIONS,
    AppConfig,
    BatchConfig,
    PacingConfig,
    SchedulingConfig,
    ScoringConfig,
    _safe_float,
    _safe_int,
    _validate_config,
)


def _config_with(**sections) -> AppConfig:
    config = AppConfig.__new__(AppConfig)
    object.__setattr__(config, "batch", sections.get("batch", BatchConfig()))
    object.__setattr__(config, "pacing", sections.get("pacing", PacingConfig()))
    object.__setattr__(config, "scheduling", sections.get("scheduling", SchedulingConfig()))
    object.__setattr__(config, "scoring", sections.get("scoring", ScoringConfig()))
    object.__setattr__(config, "log_level", "INFO")
    object.__setattr__(config, "engine_name", "test")
    return config


def _batch(chunk_size=500, max_parallel_chunks=1) -> BatchConfig:
    batch = BatchConfig.__new__(BatchConfig)
    object.__setattr__(batch, "chunk_size", chunk_size)
    object.__setattr__(batch, "max_parallel_chunks", max_parallel_chunks)
    return batch


def _pacing(delay=0.1, writes_per_pause=10) -> PacingConfig:
    pacing = PacingConfig.__new__(PacingConfig)
    object.__setattr__(pacing, "sibling_write_delay_sec", delay)
    object.__setattr__(pacing, "writes_per_pause", writes_per_pause)
    return pacing


def _scheduling(interval=60, zone="UTC", discount=0.10) -> SchedulingConfig:
    scheduling = SchedulingConfig.__new__(SchedulingConfig)
    object.__setattr__(scheduling, "time_interval_minutes", interval)
    object.__setattr__(scheduling, "default_time_zone", zone)
    object.__setattr__(scheduling, "monthly_discount", discount)
    return scheduling


def _scoring(timeout=10.0, max_recommendations=5) -> ScoringConfig:
    scoring = ScoringConfig.__new__(ScoringConfig)
    object.__setattr__(scoring, "remote_url", "")
    object.__setattr__(scoring, "timeout_sec", timeout)
    object.__setattr__(scoring, "max_recommendations", max_recommendations)
    return scoring


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        _validate_config(AppConfig())  # should not raise

    def test_defaults(self):
        config = AppConfig()
        assert config.batch.chunk_size == STORE_MAX_BATCH_OPERATIONS
        assert config.pacing.writes_per_pause == 10
        assert config.scheduling.monthly_discount == pytest.approx(0.10)

    @pytest.mark.parametrize("chunk_size", [0, STORE_MAX_BATCH_OPERATIONS + 1])
    def test_chunk_size_bounds(self, chunk_size):
        with pytest.raises(ValueError, match="BATCH_CHUNK_SIZE"):
            _validate_config(_config_with(batch=_batch(chunk_size=chunk_size)))

    def test_parallel_chunks_at_least_one(self):
        with pytest.raises(ValueError, match="BATCH_MAX_PARALLEL_CHUNKS"):
            _validate_config(_config_with(batch=_batch(max_parallel_chunks=0)))

    def test_negative_write_delay(self):
        with pytest.raises(ValueError, match="SIBLING_WRITE_DELAY_SEC"):
            _validate_config(_config_with(pacing=_pacing(delay=-1.0)))

    def test_writes_per_pause_at_least_one(self):
        with pytest.raises(ValueError, match="SIBLING_WRITES_PER_PAUSE"):
            _validate_config(_config_with(pacing=_pacing(writes_per_pause=0)))

    def test_visit_interval_positive(self):
        with pytest.raises(ValueError, match="VISIT_TIME_INTERVAL_MINUTES"):
            _validate_config(_config_with(scheduling=_scheduling(interval=0)))

    def test_discount_below_one(self):
        with pytest.raises(ValueError, match="MONTHLY_RECURRING_DISCOUNT"):
            _validate_config(_config_with(scheduling=_scheduling(discount=1.0)))

    def test_unknown_default_zone(self):
        with pytest.raises(ValueError, match="DEFAULT_TIME_ZONE"):
            _validate_config(_config_with(scheduling=_scheduling(zone="Nowhere/Town")))

    def test_scorer_timeout_positive(self):
        with pytest.raises(ValueError, match="SCORER_TIMEOUT_SEC"):
            _validate_config(_config_with(scoring=_scoring(timeout=0)))

    def test_max_recommendations_at_least_one(self):
        with pytest.raises(ValueError, match="MAX_RECOMMENDATIONS"):
            _validate_config(_config_with(scoring=_scoring(max_recommendations=0)))


class TestEnvParsing:
    def test_safe_int_parsing(self):
        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_float_parsing(self):
        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)

    def test_safe_int_reads_env(self, monkeypatch):
        monkeypatch.setenv("BATCH_CHUNK_SIZE_TEST", "250")
        assert _safe_int("BATCH_CHUNK_SIZE_TEST", "500") == 250

    def test_safe_int_invalid(self, monkeypatch):
        monkeypatch.setenv("BATCH_CHUNK_SIZE_TEST", "lots")
        with pytest.raises(ValueError, match="Invalid integer for BATCH_CHUNK_SIZE_TEST"):
            _safe_int("BATCH_CHUNK_SIZE_TEST", "500")

    def test_safe_float_invalid(self, monkeypatch):
        monkeypatch.setenv("SIBLING_WRITE_DELAY_SEC_TEST", "slow")
        with pytest.raises(ValueError, match="Invalid float"):
            _safe_float("SIBLING_WRITE_DELAY_SEC_TEST", "0.1")
