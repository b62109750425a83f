"""Plan/apply engine."""

from __future__ import annotations

import contextlib
import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal

from emporix_provisioner import __version__
from emporix_provisioner.core.state import State, compute_state_digest
from emporix_provisioner.engine.diff import compute_diff
from emporix_provisioner.engine.errors import (
    ApplyCanceled,
    ApplyError,
    DuplicateAddressError,
    StalePlanError,
    StateTenantMismatchError,
    UpdateFailedError,
)
from emporix_provisioner.engine.handlers import EngineContext
from emporix_provisioner.engine.lock import StateLock
from emporix_provisioner.engine.operations import (
    CreateOperation,
    DeleteOperation,
    ReplaceOperation,
    UpdateOperation,
    desired_attributes,
    update_baseline,
)
from emporix_provisioner.engine.policy import (
    apply_defaults,
    identity_of,
    policy_for,
)
from emporix_provisioner.engine.reconciler import Reconciler
from emporix_provisioner.engine.types import (
    Action,
    ApplyResult,
    Outcome,
    Plan,
    PlanMetadata,
    ResourceChange,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ResourceChange, Literal["start", "done"]], None]

_LABEL_RE = re.compile(r"[a-zA-Z0-9_]+")

if TYPE_CHECKING:
    import threading
    from collections.abc import Sequence
    from pathlib import Path

    from emporix_provisioner.core import EmporixProvider, ResourceInstance
    from emporix_provisioner.engine.operations import Operation
    from emporix_provisioner.engine.registry import ResourceTypeRegistry
    from emporix_provisioner.resources.base import Resource


class ProvisionEngine:
    """Terraform-like plan/apply engine for Emporix resources.

    Creates and updates run in ascending kind priority (countries and
    currencies before sites); deletes run afterwards in reverse priority.
    """

    def __init__(
        self,
        *,
        provider: EmporixProvider,
        tenant: str,
        state_path: Path,
        registry: ResourceTypeRegistry,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self._provider = provider
        self._tenant = tenant
        self._state_path = state_path
        self._registry = registry
        self._reconciler = Reconciler(registry)
        self._timeout = timeout
        self._cancel = cancel

    @property
    def tenant(self) -> str:
        return self._tenant

    @property
    def state_path(self) -> Path:
        return self._state_path

    @property
    def reconciler(self) -> Reconciler:
        return self._reconciler

    def _ctx(self) -> EngineContext:
        if self._timeout is None:
            return EngineContext(provider=self._provider, cancel=self._cancel)
        return EngineContext.with_timeout(self._provider, self._timeout, cancel=self._cancel)

    def _load_state(self) -> State:
        state = State.load_or_create(self._state_path, tenant=self._tenant)
        if state.tenant != self._tenant:
            raise StateTenantMismatchError(self._tenant, state.tenant)
        logger.debug("State loaded: serial=%d, %d resources", state.serial, len(state.resources))
        return state

    def _load_state_for_apply(self, plan: Plan) -> State:
        if self._state_path.exists():
            return self._load_state()
        # If no state exists, bootstrap from the plan metadata (saved-plan semantics).
        return State(
            tenant=self._tenant,
            lineage=plan.metadata.state_lineage,
            serial=plan.metadata.state_serial,
        )

    def _priority(self, resource_type: str) -> int:
        return policy_for(resource_type).priority

    # ── Refresh ─────────────────────────────────────────────────────

    def _refresh_state_in_place(self, state: State) -> bool:
        logger.debug("Refreshing state from Emporix")
        changed = False
        ctx = self._ctx()

        for address, inst in list(state.resources.items()):
            result = self._reconciler.read(ctx, inst)
            if result.outcome is Outcome.NOT_FOUND:
                del state.resources[address]
                changed = True
                continue

            assert result.instance is not None
            if result.instance.attributes_hash != inst.attributes_hash:
                state.resources[address] = result.instance
                changed = True

        logger.debug("State refreshed, changed=%s", changed)
        return changed

    def refresh(self, *, persist: bool = False) -> tuple[State, State]:
        """Refresh state from Emporix. Returns (pre_refresh, post_refresh)."""
        with StateLock(self._state_path):
            state = self._load_state()
            snapshot = state.model_copy(deep=True)
            changed = self._refresh_state_in_place(state)
            if changed and persist:
                state.serial += 1
                state.save(self._state_path)
            return snapshot, state

    def drift(self, state: State) -> dict[str, dict[str, dict[str, object]]]:
        """Per-address diff of desired vs. observed attributes for *state*."""
        return {
            address: diff
            for address, inst in sorted(state.resources.items())
            if (diff := self._reconciler.drift(inst))
        }

    # ── Plan ────────────────────────────────────────────────────────

    def _classify_change(self, resource: Resource, state: State) -> ResourceChange:
        """Classify a single resource as CREATE, UPDATE, REPLACE or NOOP."""
        kind = resource.kind
        desired = apply_defaults(kind, resource.desired_attributes())

        prior_inst = state.resources.get(resource.address)
        if prior_inst is None:
            logger.debug("Classified %s as create", resource.address)
            return ResourceChange(
                address=resource.address,
                resource_type=resource.resource_type,
                action=Action.CREATE,
                label=resource.label,
                desired=desired,
            )

        prior = dict(prior_inst.attributes)
        policy = policy_for(kind)
        identity = identity_of(kind, desired)
        if identity != prior_inst.identity:
            action = Action.REPLACE
            diff = {
                k: {"from": prior_inst.identity.get(k), "to": v}
                for k, v in identity.items()
                if prior_inst.identity.get(k) != v
            }
        else:
            baseline = update_baseline(prior_inst, desired)
            diff = compute_diff(desired, baseline, strategies=policy.compare)
            if policy.create_only & diff.keys():
                action = Action.REPLACE
            else:
                action = Action.UPDATE if diff else Action.NOOP

        logger.debug("Classified %s as %s", resource.address, action.value)
        return ResourceChange(
            address=resource.address,
            resource_type=resource.resource_type,
            action=action,
            label=resource.label,
            desired=desired,
            prior=prior,
            diff=diff or None,
        )

    def _plan_deletes(self, state: State, addrs: set[str]) -> list[ResourceChange]:
        """Plan delete changes for the given addresses in reverse priority order."""
        order = sorted(
            addrs,
            key=lambda a: (-self._priority(state.resources[a].resource_type), a),
        )
        changes: list[ResourceChange] = []
        for addr in order:
            inst = state.resources[addr]
            self._registry.get(inst.resource_type)  # fail early if unknown
            changes.append(
                ResourceChange(
                    address=addr,
                    resource_type=inst.resource_type,
                    action=Action.DELETE,
                    label=inst.label,
                    prior=dict(inst.attributes),
                )
            )
        return changes

    def plan(
        self, resources: Sequence[Resource], *, destroy: bool = False, refresh: bool = True
    ) -> Plan:
        logger.info(
            "Planning %d resources (destroy=%s, refresh=%s)", len(resources), destroy, refresh
        )
        # Only lock when refresh may write state.
        lock_cm = StateLock(self._state_path) if refresh else contextlib.nullcontext()
        with lock_cm:
            state = self._load_state()

            if refresh:
                changed = self._refresh_state_in_place(state)
                if changed:
                    state.serial += 1
                    state.save(self._state_path)

            desired_by_addr: dict[str, Resource] = {}
            for r in resources:
                if r.address in desired_by_addr:
                    raise DuplicateAddressError(r.address)
                self._registry.get(r.resource_type)
                desired_by_addr[r.address] = r

            state_addrs = set(state.resources)
            if destroy:
                changes = self._plan_deletes(state, state_addrs)
            else:
                order = sorted(
                    desired_by_addr.values(),
                    key=lambda r: (self._priority(r.resource_type), r.address),
                )
                changes = [self._classify_change(r, state) for r in order]
                changes.extend(self._plan_deletes(state, state_addrs - set(desired_by_addr)))

            metadata = PlanMetadata(
                tenant=self._tenant,
                created_at=datetime.now(UTC),
                destroy=destroy,
                refresh=refresh,
                state_lineage=state.lineage,
                state_serial=state.serial,
                state_digest=compute_state_digest(state),
                engine_version=__version__,
            )

            return Plan(metadata=metadata, changes=changes)

    # ── Apply ───────────────────────────────────────────────────────

    def _build_operations(self, plan: Plan) -> list[Operation]:
        upserts: list[Operation] = []
        deletes: list[Operation] = []
        seen: set[str] = set()

        for c in plan.changes:
            if c.action is Action.NOOP:
                continue
            if c.address in seen:
                raise ValueError(f"Duplicate operation key in plan: {c.address}")
            seen.add(c.address)

            op: Operation
            match c.action:
                case Action.CREATE:
                    desired = desired_attributes(c, self._registry, action="create")
                    op = CreateOperation(key=c.address, change=c, desired=desired)
                case Action.UPDATE:
                    desired = desired_attributes(c, self._registry, action="update")
                    op = UpdateOperation(key=c.address, change=c, desired=desired)
                case Action.REPLACE:
                    desired = desired_attributes(c, self._registry, action="replace")
                    op = ReplaceOperation(key=c.address, change=c, desired=desired)
                case Action.DELETE:
                    deletes.append(DeleteOperation(key=c.address, change=c))
                    continue
                case _:
                    raise ValueError(f"Unknown action: {c.action}")
            upserts.append(op)

        upserts.sort(key=lambda op: (self._priority(op.change.resource_type), op.key))
        deletes.sort(key=lambda op: (-self._priority(op.change.resource_type), op.key))
        # Creates/updates run before deletes (Terraform-like default ordering).
        return upserts + deletes

    def apply(self, plan: Plan, *, progress: ProgressCallback | None = None) -> ApplyResult:
        with StateLock(self._state_path):
            state = self._load_state_for_apply(plan)
            if state.tenant != self._tenant or plan.metadata.tenant != self._tenant:
                raise StateTenantMismatchError(self._tenant, plan.metadata.tenant)

            # Stale plan detection
            if state.lineage != plan.metadata.state_lineage:
                raise StalePlanError("State lineage changed; re-run plan")
            if state.serial != plan.metadata.state_serial:
                raise StalePlanError("State serial changed; re-run plan")
            if compute_state_digest(state) != plan.metadata.state_digest:
                raise StalePlanError("State digest changed; re-run plan")

            ctx = self._ctx()
            applied: list[ResourceChange] = []
            ordered_ops = self._build_operations(plan)
            logger.info("Applying %d operations", len(ordered_ops))

            op_key = ""
            try:
                for op in ordered_ops:
                    op_key = op.key
                    logger.debug("Applying %s: %s", op.key, type(op).__name__)
                    if progress:
                        progress(op.change, "start")
                    if not op.run(ctx=ctx, state=state, reconciler=self._reconciler):
                        continue
                    if progress:
                        progress(op.change, "done")

                    state.serial += 1
                    state.save(self._state_path)
                    applied.append(op.change)
            except KeyboardInterrupt as e:  # pragma: no cover
                raise ApplyCanceled("Apply canceled") from e
            except Exception as e:
                if isinstance(e, UpdateFailedError):
                    # The observed post-failure state was recorded; keep it.
                    state.serial += 1
                    state.save(self._state_path)
                raise ApplyError(applied=applied, address=op_key, message=str(e)) from e

            return ApplyResult(applied=applied)

    # ── Import ──────────────────────────────────────────────────────

    def import_resource(self, resource_type: str, label: str, identity: str) -> ResourceInstance:
        """Bring an existing remote record under management as ``<type>.<label>``."""
        if not _LABEL_RE.fullmatch(label):
            raise ValueError(f"Invalid label {label!r}: use letters, digits and underscores")
        self._registry.get(resource_type)
        with StateLock(self._state_path):
            state = self._load_state()
            address = f"{resource_type}.{label}"
            if address in state.resources:
                raise DuplicateAddressError(address)

            result = self._reconciler.import_instance(self._ctx(), resource_type, label, identity)
            assert result.instance is not None
            state.resources[address] = result.instance
            state.serial += 1
            state.save(self._state_path)
            return result.instance
