"""YAML configuration loading and convenience plan/apply API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from emporix_provisioner.config.loader import ConfigError, load_config
from emporix_provisioner.config.registry import default_registry
from emporix_provisioner.config.schema import Config, ProviderConfig
from emporix_provisioner.core.provider import (
    AccessTokenAuth,
    ClientCredentialsAuth,
    EmporixProvider,
)
from emporix_provisioner.core.state import State
from emporix_provisioner.engine.engine import ProgressCallback, ProvisionEngine
from emporix_provisioner.engine.lock import StateLock
from emporix_provisioner.engine.types import Action, ResourceChange

if TYPE_CHECKING:
    from pathlib import Path

    from emporix_provisioner.core.state import ResourceInstance
    from emporix_provisioner.engine.types import ApplyResult, Plan

__all__ = [
    "Config",
    "ConfigError",
    "ProviderConfig",
    "State",
    "apply",
    "drift",
    "import_resource",
    "load",
    "load_config",
    "plan",
    "plan_and_apply",
    "refresh",
    "save_state",
]


def load(path: Path | str) -> Config:
    """Load a YAML configuration file."""
    return load_config(path)


def _provider_from_config(config: Config) -> EmporixProvider:
    p = config.provider
    auth: AccessTokenAuth | ClientCredentialsAuth
    if p.access_token is not None:
        auth = AccessTokenAuth(access_token=p.access_token)
    elif p.client_id and p.client_secret is not None:
        auth = ClientCredentialsAuth(
            client_id=p.client_id, client_secret=p.client_secret, scope=p.scope
        )
    else:
        raise ConfigError(
            "provider credentials are required: set EMPORIX_ACCESS_TOKEN, or "
            "EMPORIX_CLIENT_ID and EMPORIX_CLIENT_SECRET"
        )
    return EmporixProvider(tenant=p.tenant, api_url=p.api_url, auth=auth, timeout=p.timeout)


def _engine_from_config(config: Config) -> ProvisionEngine:
    """Build a ``ProvisionEngine`` from a ``Config`` instance."""
    return ProvisionEngine(
        provider=_provider_from_config(config),
        tenant=config.provider.tenant,
        state_path=config.state_path,
        registry=default_registry(),
    )


def plan(config: Config, *, destroy: bool = False, refresh: bool = True) -> Plan:
    """Plan changes for the given configuration."""
    engine = _engine_from_config(config)
    return engine.plan(config.resources, destroy=destroy, refresh=refresh)


def apply(
    plan_obj: Plan, config: Config, *, progress: ProgressCallback | None = None
) -> ApplyResult:
    """Apply a previously computed plan."""
    engine = _engine_from_config(config)
    return engine.apply(plan_obj, progress=progress)


def plan_and_apply(config: Config, *, destroy: bool = False, refresh: bool = True) -> ApplyResult:
    """Plan and apply in one step."""
    plan_obj = plan(config, destroy=destroy, refresh=refresh)
    return apply(plan_obj, config)


def refresh(config: Config) -> tuple[list[ResourceChange], State]:
    """Refresh state from the live tenant (not persisted).

    Returns the list of changes observed since the last refresh and the new
    state. Call :func:`save_state` to persist the returned state to disk.
    """
    engine = _engine_from_config(config)
    old_state, new_state = engine.refresh()
    return _build_refresh_changes(old_state, new_state), new_state


def save_state(config: Config, state: State) -> None:
    """Persist state to disk."""
    with StateLock(config.state_path):
        state.serial += 1
        state.save(config.state_path)


def drift(config: Config) -> list[ResourceChange]:
    """Detect drift between the desired attributes in state and the live tenant.

    Attribute drift is reported as an ``update``; a record that vanished
    remotely is reported as a ``create``.
    """
    engine = _engine_from_config(config)
    old_state, new_state = engine.refresh()
    changes = [
        ResourceChange(
            address=addr,
            resource_type=new_state.resources[addr].resource_type,
            action=Action.UPDATE,
            label=new_state.resources[addr].label,
            prior=dict(new_state.resources[addr].attributes),
            diff=diff,
        )
        for addr, diff in engine.drift(new_state).items()
    ]
    for addr in sorted(set(old_state.resources) - set(new_state.resources)):
        inst = old_state.resources[addr]
        changes.append(
            ResourceChange(
                address=addr,
                resource_type=inst.resource_type,
                action=Action.CREATE,
                label=inst.label,
                desired=dict(inst.desired),
            )
        )
    return changes


def import_resource(
    config: Config, resource_type: str, label: str, identity: str
) -> ResourceInstance:
    """Adopt an existing remote record into state as ``<resource_type>.<label>``."""
    engine = _engine_from_config(config)
    return engine.import_resource(resource_type, label, identity)


def _build_refresh_changes(old_state: State, new_state: State) -> list[ResourceChange]:
    """Compare old vs new state and return the observed attribute changes."""
    changes: list[ResourceChange] = []
    for addr, inst in sorted(new_state.resources.items()):
        old_inst = old_state.resources.get(addr)
        if old_inst is None or old_inst.attributes == inst.attributes:
            continue
        old = old_inst.attributes
        all_keys = sorted(set(old) | set(inst.attributes))
        changes.append(
            ResourceChange(
                address=addr,
                resource_type=inst.resource_type,
                action=Action.UPDATE,
                label=inst.label,
                prior=dict(old),
                desired=dict(inst.attributes),
                diff={
                    k: {"from": old.get(k), "to": inst.attributes.get(k)}
                    for k in all_keys
                    if old.get(k) != inst.attributes.get(k)
                },
            )
        )
    for addr in sorted(set(old_state.resources) - set(new_state.resources)):
        old_inst = old_state.resources[addr]
        changes.append(
            ResourceChange(
                address=addr,
                resource_type=old_inst.resource_type,
                action=Action.DELETE,
                label=old_inst.label,
                prior=dict(old_inst.attributes),
            )
        )
    return changes
