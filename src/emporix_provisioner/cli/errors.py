"""Turn provisioning failures into one-line stderr reports (exit code 1)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

if TYPE_CHECKING:
    from emporix_provisioner.engine.errors import ApplyError

# Headline per reconciler failure category.
_CATEGORY_TITLES: dict[str, str] = {
    "unknown-attribute": "Unknown attribute",
    "missing-identity": "Missing identity",
    "already-exists": "Already exists",
    "not-found": "Not found",
    "invariant-violation": "Invariant violated",
    "canceled": "Canceled",
}


def _headline(exc: Exception) -> str:
    from emporix_provisioner.config.loader import ConfigError
    from emporix_provisioner.core.client import ApiError
    from emporix_provisioner.engine.errors import (
        ApplyCanceled,
        ApplyError,
        ReconcileError,
        StalePlanError,
        StateLockError,
        StateTenantMismatchError,
        UpdateFailedError,
    )

    if isinstance(exc, ReconcileError):
        return _CATEGORY_TITLES.get(exc.category, "Reconcile error")
    if isinstance(exc, ApiError) and exc.status_code:
        return f"API error (HTTP {exc.status_code})"

    # First match wins.
    titles: list[tuple[type[Exception], str]] = [
        (ConfigError, "Configuration error"),
        (UpdateFailedError, "Update failed"),
        (ApiError, "API error"),
        (StalePlanError, "Plan is stale"),
        (StateTenantMismatchError, "State mismatch"),
        (StateLockError, "State locked"),
        (ApplyError, "Apply failed"),
        (ApplyCanceled, "Apply canceled"),
    ]
    return next((title for kind, title in titles if isinstance(exc, kind)), "Error")


def _partial_result(exc: ApplyError) -> list[str]:
    from emporix_provisioner.engine.errors import ReconcileError

    lines = []
    if isinstance(exc.__cause__, ReconcileError):
        category = exc.__cause__.category
        lines.append(f"  Cause: {_CATEGORY_TITLES.get(category, category)}")
    done = exc.result.summary()
    verbs = {"create": "added", "update": "changed", "replace": "replaced", "delete": "destroyed"}
    parts = [f"{done[action]} {verb}" for action, verb in verbs.items() if done[action]]
    if parts:
        lines.append(f"  Partial result: {', '.join(parts)}.")
    return lines


def handle_error(exc: Exception, *, color: bool = True) -> int:
    """Report *exc* on stderr without a traceback and return the exit code."""
    from emporix_provisioner.engine.errors import ApplyCanceled, ApplyError

    headline = _headline(exc)
    lines = [f"{headline}." if isinstance(exc, ApplyCanceled) else f"{headline}: {exc}"]
    if isinstance(exc, ApplyError):
        lines += _partial_result(exc)

    fg = typer.colors.RED if color else None
    for line in lines:
        typer.echo(typer.style(line, fg=fg), err=True)
    return 1
