"""Engine error types."""

from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """Base exception for engine errors."""


# ── Reconciliation taxonomy ─────────────────────────────────────────


class ReconcileError(EngineError):
    """Base for errors raised by the reconciler.

    ``category`` names the diagnostic class the CLI renders for the error.
    """

    category: str = "reconcile"


class UnknownAttributeError(ReconcileError):
    """An attribute is not declared for the resource kind (programming error)."""

    category = "unknown-attribute"

    def __init__(self, kind: str, attribute: str) -> None:
        super().__init__(f"Unknown attribute '{attribute}' for resource kind '{kind}'")
        self.kind = kind
        self.attribute = attribute


class MissingIdentityError(ReconcileError):
    """Desired attributes lack one or more identity-key attributes."""

    category = "missing-identity"

    def __init__(self, kind: str, missing: list[str]) -> None:
        super().__init__(f"Missing identity for {kind}: {', '.join(missing)}")
        self.kind = kind
        self.missing = missing


class AlreadyExistsError(ReconcileError):
    """The remote already holds a record with the identity being created."""

    category = "already-exists"

    def __init__(self, kind: str, identity: str) -> None:
        super().__init__(f"{kind} '{identity}' already exists; import it instead of creating it")
        self.kind = kind
        self.identity = identity


class ResourceNotFoundError(ReconcileError):
    """The identity does not resolve remotely where a record is required."""

    category = "not-found"

    def __init__(self, kind: str, identity: str) -> None:
        super().__init__(f"{kind} '{identity}' not found")
        self.kind = kind
        self.identity = identity


class InvariantViolationError(ReconcileError):
    """A lifecycle assumption about the resource kind was broken by the remote."""

    category = "invariant-violation"


class OperationCanceled(ReconcileError):
    """The caller's deadline expired or cancellation was requested."""

    category = "canceled"


# ── Orchestration ───────────────────────────────────────────────────


class UnknownResourceTypeError(EngineError):
    """Raised when a resource type has no registration/handler."""

    def __init__(self, resource_type: str) -> None:
        super().__init__(f"Unknown resource type: {resource_type}")
        self.resource_type = resource_type


class DuplicateAddressError(EngineError):
    """Raised when multiple desired resources share the same address."""

    def __init__(self, address: str) -> None:
        super().__init__(f"Duplicate resource address: {address}")
        self.address = address


class StateTenantMismatchError(EngineError):
    """Raised when the on-disk state belongs to a different tenant."""

    def __init__(self, expected: str, got: str) -> None:
        super().__init__(f"State tenant mismatch: expected {expected}, got {got}")
        self.expected = expected
        self.got = got


class StalePlanError(EngineError):
    """Raised when applying a plan against a different state than planned."""


class StateLockError(EngineError):
    """Raised when the state lock cannot be acquired or released."""


class UpdateFailedError(EngineError):
    """An in-place update failed; state holds what the remote reported afterwards."""

    def __init__(self, address: str, category: str, detail: str) -> None:
        super().__init__(f"Update of {address} failed ({category}): {detail}")
        self.address = address
        self.category = category
        self.detail = detail


class ApplyError(EngineError):
    """Raised when an apply fails mid-way through.

    Carries the partial result (what was applied before the failure) so
    callers can inspect progress.  The original exception is chained via
    ``__cause__``.
    """

    def __init__(self, *, applied: list[Any], address: str, message: str) -> None:
        from emporix_provisioner.engine.types import ApplyResult

        self.result = ApplyResult(applied=applied)
        self.address = address
        super().__init__(f"Apply failed on {address}: {message}")


class ApplyCanceled(EngineError):
    """Raised when an apply is canceled (e.g., Ctrl-C)."""
