"""
Typed errors raised by the booking engine.

Every error carries a machine-readable ``kind``, the affected record ids
and any relevant counts so the calling layer can render an actionable
message. The engine itself produces no UI text.
"""

from typing import Any, Optional, Sequence


class BookingEngineError(Exception):
    """Base class for all engine errors."""

    kind = "engine_error"

    def __init__(
        self,
        message: str,
        *,
        ids: Sequence[str] = (),
        counts: Optional[dict[str, int]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.ids = list(ids)
        self.counts = dict(counts or {})

    def to_dict(self) -> dict[str, Any]:
        """Structured detail for the calling layer."""
        return {
            "kind": self.kind,
            "message": self.message,
            "ids": list(self.ids),
            "counts": dict(self.counts),
        }


class PermissionDenied(BookingEngineError):
    """The acting user does not hold the administrative role."""

    kind = "permission_denied"

    def __init__(self, actor_id: str, reason: str = "Admin role required") -> None:
        super().__init__(f"Unauthorized: {reason}", ids=[actor_id])
        self.actor_id = actor_id


class NotFound(BookingEngineError):
    """A booking, series, client or sitter id does not resolve."""

    kind = "not_found"

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity.capitalize()} {entity_id} not found", ids=[entity_id])
        self.entity = entity
        self.entity_id = entity_id


class Conflict(BookingEngineError):
    """The record changed underneath the caller, or an exclusive assignment clashes.

    ``current`` holds the re-fetched record when one was available so the
    caller can decide whether to refresh and retry.
    """

    kind = "conflict"

    def __init__(self, message: str, booking_id: str, current: Any = None) -> None:
        super().__init__(message, ids=[booking_id])
        self.booking_id = booking_id
        self.current = current


class InvalidRule(BookingEngineError):
    """A recurrence rule cannot produce the requested visit count."""

    kind = "invalid_rule"

    def __init__(
        self,
        message: str,
        *,
        requested: Optional[int] = None,
        generated: Optional[int] = None,
    ) -> None:
        counts = {}
        if requested is not None:
            counts["requested"] = requested
        if generated is not None:
            counts["generated"] = generated
        super().__init__(message, counts=counts)
        self.requested = requested
        self.generated = generated


class InvalidRequest(BookingEngineError):
    """A request is well-formed but violates a business rule."""

    kind = "invalid_request"


class PartialBatchFailure(BookingEngineError):
    """A chunk failed after earlier chunks had already committed."""

    kind = "partial_batch_failure"

    def __init__(
        self,
        *,
        committed_count: int,
        failed_chunk_index: int,
        total_count: int,
        cause: Optional[BaseException] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        message = (
            f"Batch chunk {failed_chunk_index} failed after {committed_count} "
            f"of {total_count} writes committed"
        )
        if cause is not None:
            message += f": {cause}"
        super().__init__(
            message,
            ids=[correlation_id] if correlation_id else [],
            counts={
                "committed": committed_count,
                "failed_chunk_index": failed_chunk_index,
                "total": total_count,
            },
        )
        self.committed_count = committed_count
        self.failed_chunk_index = failed_chunk_index
        self.total_count = total_count
        self.cause = cause
        self.correlation_id = correlation_id


class DependencyUnavailable(BookingEngineError):
    """The remote scorer or sitter directory could not be reached."""

    kind = "dependency_unavailable"

    def __init__(self, dependency: str, cause: Optional[BaseException] = None) -> None:
        message = f"{dependency} unavailable"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
        self.dependency = dependency
        self.cause = cause
