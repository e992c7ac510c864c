"""
Booking status state machine.

Derives the next status of a booking from its current status, whether a
sitter is attached, whether its payment method auto-approves, and the
status an admin asked for. Every derived status must be reachable through
an explicit transition in the table; anything else is rejected.

Invariant: a booking never holds ``approved`` without a sitter. Asking for
``approved`` on a booking with no sitter yields ``scheduled`` instead.

Usage:
    decision = next_status(
        BookingStatus.PENDING,
        has_sitter=False,
        payment_auto_approves=True,
        requested_status=BookingStatus.APPROVED,
    )
    assert decision.status == BookingStatus.SCHEDULED
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from booking_engine.errors import BookingEngineError
from booking_engine.schemas.booking_schema import (
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
)

logger = logging.getLogger(__name__)

AUTO_APPROVED_PAYMENT_METHODS = frozenset(
    {PaymentMethod.CASH, PaymentMethod.CHECK, PaymentMethod.COMP}
)

TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus


@dataclass(frozen=True)
class StatusDecision:
    """Outcome of a status derivation."""
    status: BookingStatus
    set_approved_at: bool = False


class InvalidTransitionError(BookingEngineError):
    """Raised when a derived status is not reachable from the current one."""

    kind = "invalid_transition"

    def __init__(self, from_status: BookingStatus, to_status: BookingStatus) -> None:
        valid = [s.value for s in BookingStatusStateMachine().get_valid_targets(from_status)]
        super().__init__(
            f"No valid transition from '{from_status.value}' to '{to_status.value}'. "
            f"Valid targets: {valid}"
        )
        self.from_status = from_status
        self.to_status = to_status


def payment_auto_approves(method: Union[PaymentMethod, str]) -> bool:
    """Cash, check and comp bookings skip the payment gate."""
    return PaymentMethod(method) in AUTO_APPROVED_PAYMENT_METHODS


def initial_payment_status(method: Union[PaymentMethod, str]) -> PaymentStatus:
    """Payment status a new booking starts with for its payment method."""
    method = PaymentMethod(method)
    if method == PaymentMethod.COMP:
        return PaymentStatus.WAIVED
    if method in AUTO_APPROVED_PAYMENT_METHODS:
        return PaymentStatus.CONFIRMED
    return PaymentStatus.PENDING


class BookingStatusStateMachine:
    """
    Deterministic status derivation for bookings.

    Stateless: the current status is always passed in, since the record
    store owns it. Self-transitions are allowed for non-terminal statuses
    so that re-applying a decision is a no-op.
    """

    TRANSITIONS: list[Transition] = [
        # --- Pending ---
        Transition(BookingStatus.PENDING, BookingStatus.SCHEDULED),
        Transition(BookingStatus.PENDING, BookingStatus.APPROVED),
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED),

        # --- Scheduled (waiting on a sitter) ---
        Transition(BookingStatus.SCHEDULED, BookingStatus.APPROVED),
        Transition(BookingStatus.SCHEDULED, BookingStatus.CANCELLED),

        # --- Approved ---
        Transition(BookingStatus.APPROVED, BookingStatus.ACTIVE),
        Transition(BookingStatus.APPROVED, BookingStatus.CANCELLED),

        # --- Active ---
        Transition(BookingStatus.ACTIVE, BookingStatus.COMPLETED),
        Transition(BookingStatus.ACTIVE, BookingStatus.CANCELLED),

        # --- Re-application ---
        Transition(BookingStatus.PENDING, BookingStatus.PENDING),
        Transition(BookingStatus.SCHEDULED, BookingStatus.SCHEDULED),
        Transition(BookingStatus.APPROVED, BookingStatus.APPROVED),
        Transition(BookingStatus.ACTIVE, BookingStatus.ACTIVE),
    ]

    def initial_status(
        self, has_sitter: bool, payment_method: Union[PaymentMethod, str]
    ) -> BookingStatus:
        """Status of a newly created booking."""
        return self.next_status(
            None,
            has_sitter=has_sitter,
            payment_auto_approves=payment_auto_approves(payment_method),
        ).status

    def next_status(
        self,
        current_status: Optional[BookingStatus],
        has_sitter: bool,
        payment_auto_approves: bool,
        requested_status: Optional[BookingStatus] = None,
        approved_at_set: bool = False,
    ) -> StatusDecision:
        """
        Derive the status a booking should move to.

        Args:
            current_status: Stored status, or None when the booking is being created.
            has_sitter: Whether a sitter is attached at decision time.
            payment_auto_approves: Whether the payment method skips the payment gate.
            requested_status: Status asked for by the admin. Ignored on creation.
            approved_at_set: Whether the booking already carries an approval timestamp.

        Returns:
            The derived status and whether ``approved_at`` should be stamped now.

        Raises:
            InvalidTransitionError: If the derived status is not reachable.
        """
        if current_status is None:
            if payment_auto_approves:
                status = BookingStatus.APPROVED if has_sitter else BookingStatus.SCHEDULED
            else:
                status = BookingStatus.PENDING
            return StatusDecision(
                status=status,
                set_approved_at=status == BookingStatus.APPROVED,
            )

        current_status = BookingStatus(current_status)
        if requested_status is None:
            raise ValueError("requested_status is required for an existing booking")
        requested_status = BookingStatus(requested_status)

        if requested_status == BookingStatus.APPROVED and not has_sitter:
            target = BookingStatus.SCHEDULED
            logger.debug("Approval requested without a sitter; holding at scheduled")
        else:
            target = requested_status

        if not self.can_transition(current_status, target):
            raise InvalidTransitionError(current_status, target)

        set_approved_at = target == BookingStatus.APPROVED and not approved_at_set
        logger.debug(
            "Status decision: %s -> %s (requested: %s, sitter: %s)",
            current_status.value, target.value, requested_status.value, has_sitter,
        )
        return StatusDecision(status=target, set_approved_at=set_approved_at)

    def status_after_sitter_removed(self, current_status: BookingStatus) -> BookingStatus:
        """Status a booking falls back to when its sitter is removed."""
        current_status = BookingStatus(current_status)
        if current_status == BookingStatus.APPROVED:
            return BookingStatus.SCHEDULED
        return current_status

    def can_transition(self, from_status: BookingStatus, to_status: BookingStatus) -> bool:
        return any(
            t.from_status == from_status and t.to_status == to_status
            for t in self.TRANSITIONS
        )

    def get_valid_targets(self, status: BookingStatus) -> list[BookingStatus]:
        """Return all statuses reachable from the given one."""
        return [t.to_status for t in self.TRANSITIONS if t.from_status == status]

    def is_terminal(self, status: BookingStatus) -> bool:
        return BookingStatus(status) in TERMINAL_STATUSES


_machine = BookingStatusStateMachine()

next_status = _machine.next_status
initial_status = _machine.initial_status
status_after_sitter_removed = _machine.status_after_sitter_removed
can_transition = _machine.can_transition
get_valid_targets = _machine.get_valid_targets
is_terminal = _machine.is_terminal
