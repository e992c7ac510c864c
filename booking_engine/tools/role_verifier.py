"""
Role checks for admin actors and client accounts.

In production the user records live in the hosted identity/document
store; the in-memory verifier below is used by tests and the console demo.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from booking_engine.errors import InvalidRequest, NotFound, PermissionDenied

logger = logging.getLogger(__name__)


class UserRole(str, Enum):
    ADMIN = "admin"
    PET_OWNER = "petOwner"
    PET_SITTER = "petSitter"


@dataclass(frozen=True)
class ClientInfo:
    """Client details copied onto bookings at creation."""

    client_id: str
    name: str = ""
    email: str = ""


class RoleVerifier(Protocol):
    async def verify_admin_role(self, actor_id: str) -> None: ...

    async def verify_client(self, client_id: str) -> ClientInfo: ...


@dataclass
class _UserRecord:
    role: UserRole
    name: str = ""
    email: str = ""


class InMemoryRoleVerifier:
    """RoleVerifier backed by a dict of user records."""

    def __init__(self) -> None:
        self._users: dict[str, _UserRecord] = {}

    def add_user(self, user_id: str, role: UserRole, name: str = "", email: str = "") -> None:
        self._users[user_id] = _UserRecord(role=UserRole(role), name=name, email=email)

    async def verify_admin_role(self, actor_id: str) -> None:
        """
        Raises:
            PermissionDenied: If the actor is unknown or not an admin.
        """
        user = self._users.get(actor_id)
        if user is None or user.role != UserRole.ADMIN:
            logger.warning("Admin check failed for %s", actor_id)
            raise PermissionDenied(actor_id)

    async def verify_client(self, client_id: str) -> ClientInfo:
        """
        Raises:
            NotFound: If the client does not exist.
            InvalidRequest: If the user exists but is not a pet owner.
        """
        user = self._users.get(client_id)
        if user is None:
            raise NotFound("client", client_id)
        if user.role != UserRole.PET_OWNER:
            raise InvalidRequest(
                f"User {client_id} is not a pet owner (role: {user.role.value})",
                ids=[client_id],
            )
        return ClientInfo(client_id=client_id, name=user.name, email=user.email)

    def reset(self) -> None:
        """Clear all users. Used by test fixtures for isolation."""
        self._users.clear()
