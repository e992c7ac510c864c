from booking_engine.orchestration.admin_booking import (
    AdminBookingOrchestrator,
    BulkAssignmentReport,
    StatusUpdateResult,
)
from booking_engine.orchestration.batch_writer import (
    BatchCommitResult,
    BatchWriteCoordinator,
    VerificationResult,
)

__all__ = [
    "AdminBookingOrchestrator",
    "StatusUpdateResult",
    "BulkAssignmentReport",
    "BatchWriteCoordinator",
    "BatchCommitResult",
    "VerificationResult",
]
