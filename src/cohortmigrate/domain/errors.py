"""Error taxonomy for the migration pipeline and its execution guard.

Run-level errors abort before any store write. Record-level errors
(``RowValidationError``, ``AmbiguousMatchError``, ``MutationError``,
``CohortGuardError``) are caught and attached to the affected record.
"""

from __future__ import annotations


class MigrationError(RuntimeError):
    """Base class for everything raised by the migration core."""


class FeatureDisabledError(MigrationError):
    """The migration feature gate is off; nothing was loaded, locked or written."""


class CohortSourceError(MigrationError):
    """The record source is missing or its header does not match the contract."""


class RowValidationError(MigrationError):
    def __init__(self, line: int, message: str) -> None:
        super().__init__(f"Row {line}: {message}")
        self.line = line
        self.reason = message


class AmbiguousMatchError(MigrationError):
    """Several identities share the record's name; never merged automatically."""

    def __init__(self, display_name: str, candidates: int) -> None:
        super().__init__(f"Multiple identities ({candidates}) found with name: {display_name}")
        self.display_name = display_name
        self.candidates = candidates


class MutationError(MigrationError):
    """A single record's store write failed."""


class CohortGuardError(MutationError):
    """A record outside the loaded cohort was about to be mutated."""


class IdentityNotFoundError(MigrationError):
    pass


class SnapshotNotFoundError(MigrationError):
    pass


class GuardError(MigrationError):
    """Base class for execution-guard refusals."""


class EmergencyDisabledError(GuardError):
    pass


class AuthorizationError(GuardError):
    pass


class ConfirmationDeclined(GuardError):  # noqa: N818
    """The operator did not confirm; a clean exit with no mutation and no audit."""


class LockHeldError(GuardError):
    """Another destructive run currently holds the operation lock."""


class QuarantinedOperationError(GuardError):
    pass
