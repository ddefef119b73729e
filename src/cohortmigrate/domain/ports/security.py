"""Ports for credential hashing and the emergency kill-switch."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cohortmigrate.domain.model import EmergencyDisableFlag


@runtime_checkable
class PasswordHasher(Protocol):
    """One-way credential hashing."""

    def hash(self, password: str) -> str: ...

    def verify(self, password: str, hashed: str) -> bool: ...


@runtime_checkable
class EmergencySwitch(Protocol):
    """Persistent sentinel that blocks every destructive run while present."""

    def is_active(self) -> bool: ...

    def status(self) -> EmergencyDisableFlag | None: ...

    def activate(self, *, reason: str, actor: str) -> EmergencyDisableFlag: ...

    def clear(self) -> bool: ...
