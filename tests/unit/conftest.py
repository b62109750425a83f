"""Shared fixtures for unit tests."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest

from emporix_provisioner.config import load
from emporix_provisioner.core.client import ConflictError, NotFoundError, TransportError
from emporix_provisioner.core.provider import EmporixProvider
from emporix_provisioner.engine.handlers import EngineContext, RemoteResource
from emporix_provisioner.engine.policy import ResourceKind, policy_for
from emporix_provisioner.engine.reconciler import Reconciler
from emporix_provisioner.engine.registry import ResourceTypeRegistry
from emporix_provisioner.resources import (
    CountryResource,
    CurrencyResource,
    PaymentModeResource,
    SiteSettingsResource,
    TaxResource,
    TenantConfigurationResource,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path

    from emporix_provisioner.config.schema import Config

_EMPORIX_ENV_VARS = (
    "EMPORIX_TENANT",
    "EMPORIX_API_URL",
    "EMPORIX_ACCESS_TOKEN",
    "EMPORIX_CLIENT_ID",
    "EMPORIX_CLIENT_SECRET",
    "EMPORIX_SCOPE",
    "EMPORIX_TIMEOUT",
    "EMPORIX_LOG",
)


@pytest.fixture(autouse=True)
def _clean_emporix_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove EMPORIX_* env vars so unit tests don't leak tenant config."""
    for var in _EMPORIX_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Config]:
    """Factory fixture: write YAML + optional .env, return loaded Config."""

    def _make(yaml_str: str, *, dotenv: str | None = None) -> Config:
        (tmp_path / "config.yaml").write_text(yaml_str)
        if dotenv is not None:
            (tmp_path / ".env").write_text(dotenv)
        return load(tmp_path / "config.yaml")

    return _make


class FakeRemote(RemoteResource):
    """In-memory remote for one kind.

    ``calls`` records ``(operation, identity)`` tuples and ``changes`` the
    attributes each update received.  ``fail_update`` makes
    the next update raise; with ``apply_before_failure`` the change lands
    before the error, like a request that timed out after the server acted.
    """

    def __init__(self, kind: ResourceKind) -> None:
        self.kind = kind
        self.records: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.changes: list[dict[str, Any]] = []
        self.fail_update: Exception | None = None
        self.apply_before_failure = False

    def _key(self, attributes: Mapping[str, Any]) -> str:
        return "/".join(str(attributes[k]) for k in policy_for(self.kind).identity_key)

    def seed(self, **attributes: Any) -> None:
        self.records[self._key(attributes)] = dict(attributes)

    def get(self, ctx: EngineContext, identity: Mapping[str, Any]) -> dict[str, Any]:
        key = self._key(identity)
        self.calls.append(("get", key))
        if key not in self.records:
            raise NotFoundError(f"{key} not found", status_code=404)
        return copy.deepcopy(self.records[key])

    def create(self, ctx: EngineContext, attributes: Mapping[str, Any]) -> dict[str, Any]:
        key = self._key(attributes)
        self.calls.append(("create", key))
        if key in self.records:
            raise ConflictError(f"{key} already exists", status_code=409)
        record = dict(attributes)
        if self.kind is ResourceKind.TENANT_CONFIGURATION:
            record["version"] = 1
        self.records[key] = record
        return copy.deepcopy(record)

    def update(
        self,
        ctx: EngineContext,
        identity: Mapping[str, Any],
        changed: Mapping[str, Any],
    ) -> dict[str, Any]:
        key = self._key(identity)
        self.calls.append(("update", key))
        self.changes.append(copy.deepcopy(dict(changed)))
        if self.fail_update is not None:
            failure, self.fail_update = self.fail_update, None
            if self.apply_before_failure:
                self.records[key].update(copy.deepcopy(dict(changed)))
            raise failure
        if key not in self.records:
            raise NotFoundError(f"{key} not found", status_code=404)
        self.records[key].update(copy.deepcopy(dict(changed)))
        return copy.deepcopy(self.records[key])

    def delete(self, ctx: EngineContext, identity: Mapping[str, Any]) -> None:
        key = self._key(identity)
        self.calls.append(("delete", key))
        if key not in self.records:
            raise NotFoundError(f"{key} not found", status_code=404)
        del self.records[key]


@pytest.fixture
def remotes() -> dict[ResourceKind, FakeRemote]:
    return {kind: FakeRemote(kind) for kind in ResourceKind}


@pytest.fixture
def registry(remotes: dict[ResourceKind, FakeRemote]) -> ResourceTypeRegistry:
    registry = ResourceTypeRegistry()
    registry.register(CountryResource, remotes[ResourceKind.COUNTRY])
    registry.register(CurrencyResource, remotes[ResourceKind.CURRENCY])
    registry.register(SiteSettingsResource, remotes[ResourceKind.SITE_SETTINGS])
    registry.register(TenantConfigurationResource, remotes[ResourceKind.TENANT_CONFIGURATION])
    registry.register(PaymentModeResource, remotes[ResourceKind.PAYMENT_MODE])
    registry.register(TaxResource, remotes[ResourceKind.TAX])
    return registry


@pytest.fixture
def reconciler(registry: ResourceTypeRegistry) -> Reconciler:
    return Reconciler(registry)


@pytest.fixture
def provider() -> EmporixProvider:
    return EmporixProvider.from_client(MagicMock())


@pytest.fixture
def ctx(provider: EmporixProvider) -> EngineContext:
    return EngineContext(provider=provider)


@pytest.fixture
def transport_error() -> TransportError:
    return TransportError("unexpected status code: 503, body: unavailable", status_code=503)
