"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""


class TestSchemaImports:
    def test_import_booking_schema(self):
        from booking_engine.schemas.booking_schema import (
            AdminBookingCreate, Booking, BookingStatus, PaymentMethod,
        )
        assert BookingStatus.SCHEDULED == "scheduled"
        assert PaymentMethod.COMP == "comp"
        assert AdminBookingCreate is not None and Booking is not None

    def test_import_series_schema(self):
        from booking_engine.schemas.series_schema import (
            AdminRecurringBookingCreate, DaySchedule, Frequency, SeriesStatus,
        )
        assert Frequency.MONTHLY == "monthly"
        assert SeriesStatus.FAILED == "failed"
        assert DaySchedule(day_of_week=0).enabled

    def test_import_sitter_schema(self):
        from booking_engine.schemas.sitter_schema import Confidence, Recommendation
        assert Confidence.HIGH == "high"
        assert Recommendation is not None


class TestPackageReExports:
    def test_scheduling_package(self):
        from booking_engine.scheduling import build_recurrence_rule, generate_visit_datetimes
        assert callable(build_recurrence_rule)
        assert callable(generate_visit_datetimes)

    def test_lifecycle_package(self):
        from booking_engine.lifecycle import (
            AutoAssignmentPolicy, BookingStatusStateMachine, SeriesConsistencyCoordinator,
        )
        assert not AutoAssignmentPolicy().enabled
        assert BookingStatusStateMachine is not None
        assert SeriesConsistencyCoordinator is not None

    def test_scoring_package(self):
        from booking_engine.scoring import SitterRecommendationScorer, score_locally
        assert callable(score_locally)
        assert SitterRecommendationScorer().remote is None

    def test_orchestration_package(self):
        from booking_engine.orchestration import AdminBookingOrchestrator, BatchWriteCoordinator
        assert AdminBookingOrchestrator is not None
        assert BatchWriteCoordinator is not None


class TestToolImports:
    def test_import_tools(self):
        from booking_engine.tools.record_store import InMemoryRecordStore
        from booking_engine.tools.remote_scorer import HttpRemoteScorer
        from booking_engine.tools.role_verifier import InMemoryRoleVerifier
        from booking_engine.tools.sitter_directory import InMemorySitterDirectory
        assert InMemoryRecordStore().max_batch_size == 500
        assert HttpRemoteScorer is not None
        assert InMemoryRoleVerifier is not None
        assert InMemorySitterDirectory([]) is not None


class TestConfigImport:
    def test_import_config(self):
        from booking_engine.config import settings
        assert 1 <= settings.batch.chunk_size <= 500
        assert settings.pacing.writes_per_pause >= 1
        assert settings.scheduling.default_time_zone


class TestConsoleDemo:
    def test_console_session_imports(self):
        from console_demo import ConsoleSession
        session = ConsoleSession()
        assert session.orchestrator is not None
        assert set(ConsoleSession.SCENARIOS) == {"series", "approval", "bulk"}
