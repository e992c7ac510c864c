"""
Offline console demo: walks through the admin booking engine end to end.

Uses the real recurrence generator, state machine, series coordinator,
scorer and batch writer against in-memory collaborators. No network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario approval
    python console_demo.py --scenario bulk
"""

import argparse
import asyncio
from datetime import datetime, timezone

from booking_engine.config import settings
from booking_engine.errors import BookingEngineError
from booking_engine.lifecycle.series_coordinator import AutoAssignmentPolicy, WritePacing
from booking_engine.orchestration.admin_booking import AdminBookingOrchestrator
from booking_engine.schemas.booking_schema import BookingStatus
from booking_engine.schemas.sitter_schema import Confidence, SitterCandidate
from booking_engine.tools.record_store import InMemoryRecordStore
from booking_engine.tools.role_verifier import InMemoryRoleVerifier, UserRole
from booking_engine.tools.sitter_directory import InMemorySitterDirectory

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

ADMIN_ID = "admin-demo"
CLIENT_ID = "client-demo"

DEMO_SITTERS = [
    SitterCandidate(id="sitter-ava", name="Ava Reyes", rating=4.9, total_bookings=120,
                    has_location_data=True, pet_types={"dog", "cat"}),
    SitterCandidate(id="sitter-ben", name="Ben Ode", rating=4.2, total_bookings=35,
                    has_location_data=True, pet_types={"dog"}),
    SitterCandidate(id="sitter-cy", name="Cy Marsh", rating=3.8, total_bookings=8,
                    pet_types={"cat"}),
]


class ConsoleSession:
    """Runs scripted admin scenarios and prints what the engine did."""

    def __init__(self) -> None:
        self.store = InMemoryRecordStore()
        self.roles = InMemoryRoleVerifier()
        self.roles.add_user(ADMIN_ID, UserRole.ADMIN, name="Demo Admin")
        self.roles.add_user(CLIENT_ID, UserRole.PET_OWNER, name="Jordan Client")
        self.directory = InMemorySitterDirectory(DEMO_SITTERS)
        self.orchestrator = AdminBookingOrchestrator(
            self.store, self.roles, self.directory,
            pacing=WritePacing(delay_sec=0.0),
        )

    def say(self, text: str) -> None:
        print(f"{GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    async def _show_series(self, series_id: str) -> None:
        for booking in await self.orchestrator.get_series_bookings(series_id):
            self.system_log(
                f"#{booking.visit_number:<2} {booking.scheduled_date_time:%a %Y-%m-%d} "
                f"{booking.scheduled_time:>8}  {booking.status.value:<9} "
                f"sitter={booking.sitter_id or '-'}"
            )

    async def _create_weekly_series(self, payment_method: str) -> str:
        series_id = await self.orchestrator.create_recurring_series(ADMIN_ID, {
            "client_id": CLIENT_ID,
            "service_type": "dog-walking",
            "number_of_visits": 6,
            "frequency": "weekly",
            "start_date": datetime(2025, 3, 5, tzinfo=timezone.utc),
            "preferred_time": "09:00",
            "day_schedules": [
                {"day_of_week": 1, "number_of_visits": 2, "visit_times": ["09:00", "15:00"]},
                {"day_of_week": 4, "number_of_visits": 1, "visit_times": ["12:30"]},
            ],
            "base_price": 25.0,
            "pets": ["dog"],
            "payment_method": payment_method,
        })
        series = await self.store.get_series(series_id)
        self.say(
            f"Created series {series_id}: {series.number_of_visits} visits, "
            f"total ${series.total_price:.2f} ({series.status.value})"
        )
        await self._show_series(series_id)
        return series_id

    async def scenario_series(self) -> None:
        await self._create_weekly_series("cash")
        monthly_id = await self.orchestrator.create_recurring_series(ADMIN_ID, {
            "client_id": CLIENT_ID,
            "service_type": "drop-in-visit",
            "number_of_visits": 4,
            "frequency": "monthly",
            "start_date": datetime(2025, 1, 10, tzinfo=timezone.utc),
            "preferred_time": "4:00 PM",
            "preferred_days": [31],
            "base_price": 40.0,
            "payment_method": "invoice",
        })
        series = await self.store.get_series(monthly_id)
        self.say(
            f"Created monthly series {monthly_id}: total ${series.total_price:.2f} "
            f"after the recurring discount"
        )
        await self._show_series(monthly_id)

    async def scenario_approval(self) -> None:
        series_id = await self._create_weekly_series("square")
        first = (await self.orchestrator.get_series_bookings(series_id))[0]
        self.say(f"\nApproving booking {first.id} with auto-assignment enabled...")
        result = await self.orchestrator.update_booking_status(
            ADMIN_ID, first.id, BookingStatus.APPROVED,
            policy=AutoAssignmentPolicy(enabled=True, min_confidence=Confidence.MEDIUM),
        )
        self.system_log(
            f"Trigger -> {result.booking.status.value}, sitter {result.auto_assigned_sitter_id}"
        )
        if result.propagation:
            self.system_log(
                f"Siblings advanced: {len(result.propagation.advanced)}, "
                f"failed: {len(result.propagation.failed)}"
            )
        await self._show_series(series_id)

    async def scenario_bulk(self) -> None:
        series_id = await self._create_weekly_series("check")
        bookings = await self.orchestrator.get_series_bookings(series_id)
        await self.orchestrator.update_booking_status(
            ADMIN_ID, bookings[-1].id, BookingStatus.CANCELLED, reason="Client travelling"
        )
        self.say("\nBulk assigning sitter-ben to the series...")
        report = await self.orchestrator.bulk_assign_series(ADMIN_ID, series_id, "sitter-ben")
        self.system_log(f"Updated {report.updated_count}, skipped {len(report.skipped)}")
        await self._show_series(series_id)

        self.say("\nTrying to assign a different sitter to an assigned booking...")
        try:
            await self.orchestrator.assign_sitter(ADMIN_ID, bookings[0].id, "sitter-ava")
        except BookingEngineError as exc:
            print(f"{YELLOW}  {exc.kind}: {exc.message}{RESET}")

    SCENARIOS = {
        "series": scenario_series,
        "approval": scenario_approval,
        "bulk": scenario_bulk,
    }

    async def run_scenario(self, scenario: str) -> None:
        handler = self.SCENARIOS.get(scenario)
        if handler is None:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {settings.engine_name.upper()} - Scenario: {scenario}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()
        try:
            await handler(self)
        except BookingEngineError as exc:
            print(f"{RED}{exc.kind}: {exc.message}{RESET}")
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline booking engine demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default="series",
        help="Scripted scenario to run",
    )
    args = parser.parse_args()
    asyncio.run(ConsoleSession().run_scenario(args.scenario))


if __name__ == "__main__":
    main()
