"""Reconciliation of one resource instance against the remote API.

The :class:`Reconciler` turns a desired-state request into an ordered
sequence of remote calls.  It is generic: everything kind-specific comes
from the policy table in :mod:`emporix_provisioner.engine.policy`.

Operations never retry and never mutate the instance they are given; they
return a fresh :class:`ResourceInstance` inside a :class:`ReconcileResult`.
Exactly one remote call is in flight at a time, and the context's deadline
is checked before each of them.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from emporix_provisioner.core.client import ApiError, ConflictError, NotFoundError
from emporix_provisioner.core.state import ResourceInstance, compute_attributes_hash
from emporix_provisioner.engine.diff import compute_diff, values_differ
from emporix_provisioner.engine.errors import (
    AlreadyExistsError,
    InvariantViolationError,
    ResourceNotFoundError,
)
from emporix_provisioner.engine.policy import (
    AttributeClass,
    DeletionPolicy,
    KindPolicy,
    ResourceKind,
    apply_defaults,
    classify,
    desired_from_observed,
    identity_of,
    parse_identity,
    policy_for,
)
from emporix_provisioner.engine.types import (
    LifecycleState,
    Outcome,
    ReconcileFailure,
    ReconcileResult,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from emporix_provisioner.engine.handlers import EngineContext, RemoteResource
    from emporix_provisioner.engine.registry import ResourceTypeRegistry

logger = logging.getLogger(__name__)


def _label(identity: Mapping[str, Any]) -> str:
    return "/".join(str(v) for v in identity.values())


def _failure(exc: ApiError) -> ReconcileFailure:
    if isinstance(exc, NotFoundError):
        category = "not-found"
    elif isinstance(exc, ConflictError):
        category = "conflict"
    else:
        category = "transport"
    return ReconcileFailure(category=category, detail=str(exc))


class Reconciler:
    """Create/read/update/destroy/replace/import for every registered kind."""

    def __init__(self, registry: ResourceTypeRegistry) -> None:
        self._registry = registry

    def _remote(self, kind: ResourceKind) -> RemoteResource:
        return self._registry.get(kind.value).handler

    @staticmethod
    def _get(
        ctx: EngineContext, remote: RemoteResource, identity: Mapping[str, Any]
    ) -> dict[str, Any]:
        ctx.check()
        return remote.get(ctx, identity)

    def _require(
        self, ctx: EngineContext, kind: ResourceKind, instance: ResourceInstance
    ) -> dict[str, Any]:
        """Read a record that the kind's lifecycle says can never disappear."""
        try:
            return self._get(ctx, self._remote(kind), instance.identity)
        except NotFoundError as exc:
            raise InvariantViolationError(
                f"{instance.address}: {kind.value} '{instance.identity_label}' vanished "
                "remotely; records of this kind are never removed"
            ) from exc

    @staticmethod
    def _observe(instance: ResourceInstance, observed: dict[str, Any]) -> ResourceInstance:
        # Observed attributes are replaced, never merged, so drift stays visible.
        return instance.model_copy(
            update={
                "attributes": dict(observed),
                "attributes_hash": compute_attributes_hash(observed),
                "exists": True,
                "updated_at": datetime.now(UTC),
            },
            deep=True,
        )

    @staticmethod
    def _changed_mutable(
        policy: KindPolicy, desired: Mapping[str, Any], observed: Mapping[str, Any]
    ) -> dict[str, Any]:
        return {
            k: v
            for k, v in desired.items()
            if k in policy.mutable
            and values_differ(v, observed.get(k), strategy=policy.compare.get(k))
        }

    def drift(self, instance: ResourceInstance) -> dict[str, Any]:
        """Diff desired attributes against the observed ones."""
        policy = policy_for(instance.resource_type)
        observed = desired_from_observed(policy.kind, instance.attributes)
        return compute_diff(
            instance.desired, observed, strategies=policy.compare, keys=instance.desired
        )

    # ── Create ──────────────────────────────────────────────────────

    def create(
        self,
        ctx: EngineContext,
        kind: ResourceKind | str,
        label: str,
        desired: Mapping[str, Any],
    ) -> ReconcileResult:
        """Bring a new instance under management.

        Hard-delete kinds are created remotely; a conflict raises
        ``AlreadyExistsError``.  Deactivate and immutable kinds are reference
        records that already exist, so they are adopted instead: read, then
        one update for the mutable attributes that differ.
        """
        kind = ResourceKind(kind)
        policy = policy_for(kind)
        identity = identity_of(kind, desired)
        desired = apply_defaults(kind, desired)
        remote = self._remote(kind)
        address = f"{kind.value}.{label}"

        if policy.deletion is DeletionPolicy.HARD_DELETE:
            ctx.check()
            logger.info("Creating %s '%s'", kind.value, _label(identity))
            try:
                remote.create(ctx, desired)
            except ConflictError as exc:
                raise AlreadyExistsError(kind.value, _label(identity)) from exc
        else:
            logger.info("Adopting existing %s '%s'", kind.value, _label(identity))
            try:
                current = self._get(ctx, remote, identity)
            except NotFoundError as exc:
                raise ResourceNotFoundError(kind.value, _label(identity)) from exc
            changed = self._changed_mutable(policy, desired, current)
            if changed:
                ctx.check()
                logger.debug("Updating %s during adoption: %s", address, sorted(changed))
                remote.update(ctx, identity, changed)

        now = datetime.now(UTC)
        pending = ResourceInstance(
            address=address,
            resource_type=kind.value,
            label=label,
            identity=identity,
            desired=desired,
            created_at=now,
            updated_at=now,
        )
        try:
            created = self._observe(pending, self._get(ctx, remote, identity))
        except NotFoundError as exc:
            raise InvariantViolationError(
                f"{address}: {kind.value} '{_label(identity)}' is missing right after create"
            ) from exc

        return ReconcileResult(
            outcome=Outcome.SUCCESS,
            state=LifecycleState.CREATED,
            instance=created,
            diff=self.drift(created),
        )

    # ── Read ────────────────────────────────────────────────────────

    def read(self, ctx: EngineContext, instance: ResourceInstance) -> ReconcileResult:
        """Refresh observed attributes.

        A remote not-found yields outcome ``not_found`` (drop from state);
        every other failure propagates.
        """
        kind = ResourceKind(instance.resource_type)
        try:
            observed = self._get(ctx, self._remote(kind), instance.identity)
        except NotFoundError:
            logger.info("%s no longer exists remotely", instance.address)
            gone = instance.model_copy(
                update={"attributes": {}, "attributes_hash": "", "exists": False},
                deep=True,
            )
            return ReconcileResult(
                outcome=Outcome.NOT_FOUND, state=LifecycleState.UNMANAGED, instance=gone
            )

        refreshed = self._observe(instance, observed)
        diff = self.drift(refreshed)
        if diff:
            logger.debug("Drift on %s: %s", instance.address, sorted(diff))
        return ReconcileResult(
            outcome=Outcome.SUCCESS,
            state=LifecycleState.RECONCILED,
            instance=refreshed,
            diff=diff,
        )

    # ── Update ──────────────────────────────────────────────────────

    def update(
        self,
        ctx: EngineContext,
        instance: ResourceInstance,
        desired_new: Mapping[str, Any],
        desired_old: Mapping[str, Any] | None = None,
    ) -> ReconcileResult:
        """Apply the mutable-attribute diff between *desired_new* and *desired_old*.

        *desired_old* defaults to the desired attributes stored on the
        instance and is taken as-is (no defaults filled in), so an attribute
        it holds that *desired_new* lacks is cleared.  Identity attributes
        left out of *desired_new* keep the instance's values; a change to an
        identity or create-only attribute yields ``requires_replacement``
        without touching the remote.
        """
        kind = ResourceKind(instance.resource_type)
        policy = policy_for(kind)
        desired_new = apply_defaults(kind, {**instance.identity, **desired_new})
        desired_old = {
            k: v
            for k, v in (instance.desired if desired_old is None else desired_old).items()
            if v is not None and classify(kind, k) is not AttributeClass.COMPUTED
        }
        new_identity = identity_of(kind, desired_new)

        diff = compute_diff(desired_new, desired_old, strategies=policy.compare)
        for k in policy.identity_key:
            if new_identity[k] != instance.identity.get(k):
                diff[k] = {"from": instance.identity.get(k), "to": new_identity[k]}

        if any(classify(kind, k) is not AttributeClass.MUTABLE for k in diff):
            logger.info("%s requires replacement (%s)", instance.address, sorted(diff))
            return ReconcileResult(
                outcome=Outcome.REQUIRES_REPLACEMENT,
                state=LifecycleState.PENDING_REPLACEMENT,
                instance=instance,
                diff=diff,
            )

        if not diff:
            return ReconcileResult(
                outcome=Outcome.SUCCESS,
                state=LifecycleState.RECONCILED,
                instance=instance.model_copy(update={"desired": desired_new}, deep=True),
            )

        changed = {k: desired_new.get(k) for k in diff}
        ctx.check()
        logger.info("Updating %s: %s", instance.address, ", ".join(sorted(changed)))
        try:
            self._remote(kind).update(ctx, instance.identity, changed)
        except ApiError as exc:
            logger.warning(
                "Update of %s failed, re-reading remote state: %s", instance.address, exc
            )
            return self._after_failed_update(ctx, instance, desired_new, exc)

        result = self.read(ctx, instance.model_copy(update={"desired": desired_new}, deep=True))
        if result.outcome is Outcome.SUCCESS:
            result.diff = diff
        return result

    def _after_failed_update(
        self,
        ctx: EngineContext,
        instance: ResourceInstance,
        desired_new: dict[str, Any],
        failure: ApiError,
    ) -> ReconcileResult:
        """Report the real remote state after an update call failed.

        The update may have partially applied, so the caller gets what the
        remote holds now, plus what is still outstanding.
        """
        try:
            result = self.read(ctx, instance)
        except ApiError:
            raise failure from None
        if result.outcome is Outcome.NOT_FOUND:
            return result

        assert result.instance is not None
        observed = desired_from_observed(instance.resource_type, result.instance.attributes)
        policy = policy_for(instance.resource_type)
        return ReconcileResult(
            outcome=Outcome.ERROR,
            state=LifecycleState.RECONCILED,
            instance=result.instance,
            diff=compute_diff(desired_new, observed, strategies=policy.compare, keys=desired_new),
            error=_failure(failure),
        )

    # ── Destroy ─────────────────────────────────────────────────────

    def destroy(self, ctx: EngineContext, instance: ResourceInstance) -> ReconcileResult:
        """Release the instance according to the kind's deletion policy."""
        kind = ResourceKind(instance.resource_type)
        policy = policy_for(kind)

        match policy.deletion:
            case DeletionPolicy.HARD_DELETE:
                ctx.check()
                logger.info("Deleting %s", instance.address)
                try:
                    self._remote(kind).delete(ctx, instance.identity)
                except NotFoundError:
                    logger.debug("%s already gone", instance.address)
                final = instance.model_copy(
                    update={"attributes": {}, "attributes_hash": "", "exists": False},
                    deep=True,
                )
            case DeletionPolicy.DEACTIVATE:
                final = self._deactivate(ctx, kind, policy, instance)
            case DeletionPolicy.IMMUTABLE:
                logger.info(
                    "Releasing %s from management; the remote record is left untouched",
                    instance.address,
                )
                final = instance.model_copy(deep=True)
            case _:
                raise ValueError(f"Unknown deletion policy: {policy.deletion}")

        return ReconcileResult(
            outcome=Outcome.SUCCESS, state=LifecycleState.DESTROYED, instance=final
        )

    def _deactivate(
        self,
        ctx: EngineContext,
        kind: ResourceKind,
        policy: KindPolicy,
        instance: ResourceInstance,
    ) -> ResourceInstance:
        assert policy.deactivation is not None
        attr, inactive = policy.deactivation

        # Check before acting: a previous, interrupted destroy may already
        # have deactivated the record.
        observed = self._require(ctx, kind, instance)
        if values_differ(inactive, observed.get(attr)):
            ctx.check()
            logger.info("Deactivating %s (%s=%r)", instance.address, attr, inactive)
            self._remote(kind).update(ctx, instance.identity, {attr: inactive})
            observed = self._require(ctx, kind, instance)
        else:
            logger.debug("%s already inactive", instance.address)

        if values_differ(inactive, observed.get(attr)):
            raise InvariantViolationError(
                f"{instance.address}: {attr} is {observed.get(attr)!r} after deactivation"
            )
        return self._observe(instance, observed)

    # ── Replace ─────────────────────────────────────────────────────

    def replace(
        self,
        ctx: EngineContext,
        instance: ResourceInstance,
        desired_new: Mapping[str, Any],
        *,
        label: str | None = None,
    ) -> ReconcileResult:
        """Destroy *instance*, then create the replacement from *desired_new*.

        The destroy completes before the create starts.
        """
        self.destroy(ctx, instance)
        return self.create(ctx, instance.resource_type, label or instance.label, desired_new)

    # ── Import ──────────────────────────────────────────────────────

    def import_instance(
        self,
        ctx: EngineContext,
        kind: ResourceKind | str,
        label: str,
        raw_identity: str,
    ) -> ReconcileResult:
        """Adopt an existing remote record by its identity string.

        Desired attributes are seeded from the observed ones so the first
        diff after import is empty.

        Raises:
            ResourceNotFoundError: If the identity does not resolve remotely.
        """
        kind = ResourceKind(kind)
        identity = parse_identity(kind, raw_identity)
        try:
            observed = self._get(ctx, self._remote(kind), identity)
        except NotFoundError as exc:
            raise ResourceNotFoundError(kind.value, raw_identity) from exc

        logger.info("Imported %s '%s' as %s.%s", kind.value, raw_identity, kind.value, label)
        now = datetime.now(UTC)
        imported = self._observe(
            ResourceInstance(
                address=f"{kind.value}.{label}",
                resource_type=kind.value,
                label=label,
                identity=identity,
                desired={**desired_from_observed(kind, observed), **identity},
                created_at=now,
                updated_at=now,
            ),
            observed,
        )
        return ReconcileResult(
            outcome=Outcome.SUCCESS,
            state=LifecycleState.CREATED,
            instance=imported,
            diff=self.drift(imported),
        )
