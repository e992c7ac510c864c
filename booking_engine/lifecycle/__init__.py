from booking_engine.lifecycle.series_coordinator import (
    AutoAssignmentPolicy,
    PropagationReport,
    SeriesConsistencyCoordinator,
    SiblingFailure,
    WritePacing,
)
from booking_engine.lifecycle.state_machine import (
    BookingStatusStateMachine,
    InvalidTransitionError,
    StatusDecision,
    initial_payment_status,
    next_status,
    payment_auto_approves,
)

__all__ = [
    "BookingStatusStateMachine",
    "InvalidTransitionError",
    "StatusDecision",
    "next_status",
    "payment_auto_approves",
    "initial_payment_status",
    "SeriesConsistencyCoordinator",
    "AutoAssignmentPolicy",
    "WritePacing",
    "PropagationReport",
    "SiblingFailure",
]
