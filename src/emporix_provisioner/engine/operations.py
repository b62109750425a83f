"""Apply operations.

Each planned change becomes one operation that knows how to apply itself
through the :class:`Reconciler` and record the outcome in state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from emporix_provisioner.engine.errors import (
    InvariantViolationError,
    StalePlanError,
    UpdateFailedError,
)
from emporix_provisioner.engine.policy import desired_from_observed
from emporix_provisioner.engine.types import Outcome

if TYPE_CHECKING:
    from collections.abc import Mapping

    from emporix_provisioner.core.state import ResourceInstance, State
    from emporix_provisioner.engine.handlers import EngineContext
    from emporix_provisioner.engine.reconciler import Reconciler
    from emporix_provisioner.engine.registry import ResourceTypeRegistry
    from emporix_provisioner.engine.types import ResourceChange


class Operation(Protocol):
    key: str
    change: ResourceChange

    def run(self, *, ctx: EngineContext, state: State, reconciler: Reconciler) -> bool:
        """Execute this operation.

        Returns:
            True if state should be persisted (serial bump + write).
        """


def desired_attributes(
    change: ResourceChange, registry: ResourceTypeRegistry, *, action: str
) -> dict[str, Any]:
    """Re-validate a (possibly saved) plan's desired attributes against the model."""
    if change.desired is None or change.label is None:
        raise ValueError(f"Missing desired config for {action}: {change.address}")

    reg = registry.get(change.resource_type)
    desired_obj = reg.model.model_validate({"label": change.label, **change.desired})
    if desired_obj.address != change.address:
        raise ValueError(
            f"Desired address mismatch for {action}: {change.address} != {desired_obj.address}"
        )
    return dict(change.desired)


def update_baseline(instance: ResourceInstance, desired: Mapping[str, Any]) -> dict[str, Any]:
    """Observed attributes an update of *instance* to *desired* is diffed against.

    Covers every attribute that is desired now or was desired before, so an
    attribute dropped from the configuration is planned and applied as a
    change to ``None``.  Plan and apply both diff against this baseline.
    """
    observed = desired_from_observed(instance.resource_type, instance.attributes)
    keys = set(desired) | set(instance.desired)
    return {k: v for k, v in observed.items() if k in keys}


@dataclass
class CreateOperation:
    key: str
    change: ResourceChange
    desired: dict[str, Any]

    def run(self, *, ctx: EngineContext, state: State, reconciler: Reconciler) -> bool:
        assert self.change.label is not None
        result = reconciler.create(ctx, self.change.resource_type, self.change.label, self.desired)
        assert result.instance is not None
        state.resources[self.key] = result.instance
        return True


@dataclass
class UpdateOperation:
    key: str
    change: ResourceChange
    desired: dict[str, Any]

    def run(self, *, ctx: EngineContext, state: State, reconciler: Reconciler) -> bool:
        prior = state.resources[self.key]
        # Diff against what the remote holds (not what was last desired) so
        # out-of-band drift is corrected too.
        baseline = update_baseline(prior, self.desired)
        result = reconciler.update(ctx, prior, self.desired, baseline)
        match result.outcome:
            case Outcome.SUCCESS:
                assert result.instance is not None
                state.resources[self.key] = result.instance
                return True
            case Outcome.ERROR:
                assert result.instance is not None and result.error is not None
                state.resources[self.key] = result.instance
                raise UpdateFailedError(self.key, result.error.category, result.error.detail)
            case Outcome.NOT_FOUND:
                del state.resources[self.key]
                raise InvariantViolationError(f"{self.key} disappeared during update")
            case Outcome.REQUIRES_REPLACEMENT:
                raise StalePlanError(f"{self.key} now requires replacement; re-run plan")
            case _:
                raise ValueError(f"Unknown outcome: {result.outcome}")


@dataclass
class ReplaceOperation:
    key: str
    change: ResourceChange
    desired: dict[str, Any]

    def run(self, *, ctx: EngineContext, state: State, reconciler: Reconciler) -> bool:
        prior = state.resources[self.key]
        result = reconciler.replace(ctx, prior, self.desired, label=self.change.label)
        assert result.instance is not None
        state.resources[self.key] = result.instance
        return True


@dataclass
class DeleteOperation:
    key: str
    change: ResourceChange

    def run(self, *, ctx: EngineContext, state: State, reconciler: Reconciler) -> bool:
        prior = state.resources[self.key]
        reconciler.destroy(ctx, prior)
        del state.resources[self.key]
        return True
