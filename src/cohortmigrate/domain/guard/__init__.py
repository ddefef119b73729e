"""Execution guard and security monitor."""

from __future__ import annotations

from .guard import (
    ConfirmationProvider,
    ConfirmationRequest,
    ConfirmationResponse,
    ExecutionGuard,
    GuardPermit,
    GuardRun,
    ProtectedOperation,
    phrase_token,
)
from .monitor import SecurityMonitor

__all__ = [
    "ConfirmationProvider",
    "ConfirmationRequest",
    "ConfirmationResponse",
    "ExecutionGuard",
    "GuardPermit",
    "GuardRun",
    "ProtectedOperation",
    "SecurityMonitor",
    "phrase_token",
]
