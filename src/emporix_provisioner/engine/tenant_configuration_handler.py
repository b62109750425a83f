"""Tenant configuration handler implementing CRUD via the configuration service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from emporix_provisioner.engine.handlers import RemoteResource
from emporix_provisioner.resources.markers import build_api_payload, extract_api_attrs
from emporix_provisioner.resources.tenant_configuration import TenantConfigurationResource

if TYPE_CHECKING:
    from collections.abc import Mapping

    from emporix_provisioner.engine.handlers import EngineContext


class TenantConfigurationHandler(RemoteResource):
    """CRUD handler for tenant configuration entries."""

    def _read_attrs(self, raw: Mapping[str, Any]) -> dict[str, Any]:
        attrs = extract_api_attrs(TenantConfigurationResource, raw)
        # A JSON null value is still a value.
        if "value" in raw:
            attrs["value"] = raw["value"]
        attrs.setdefault("secured", False)
        if raw.get("version") is not None:
            attrs["version"] = raw["version"]
        return attrs

    def get(self, ctx: EngineContext, identity: Mapping[str, Any]) -> dict[str, Any]:
        raw = ctx.provider.client.get_tenant_configuration(
            identity["key"], timeout=ctx.remaining()
        )
        return self._read_attrs(raw)

    def create(self, ctx: EngineContext, attributes: Mapping[str, Any]) -> dict[str, Any]:
        raw = ctx.provider.client.create_tenant_configuration(
            build_api_payload(TenantConfigurationResource, attributes),
            timeout=ctx.remaining(),
        )
        return self._read_attrs(raw)

    def update(
        self,
        ctx: EngineContext,
        identity: Mapping[str, Any],
        changed: Mapping[str, Any],
    ) -> dict[str, Any]:
        raw = ctx.provider.client.update_tenant_configuration(
            identity["key"],
            build_api_payload(TenantConfigurationResource, changed),
            deadline=ctx.deadline,
        )
        return self._read_attrs(raw)

    def delete(self, ctx: EngineContext, identity: Mapping[str, Any]) -> None:
        ctx.provider.client.delete_tenant_configuration(identity["key"], timeout=ctx.remaining())
