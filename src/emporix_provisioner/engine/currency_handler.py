"""Currency handler implementing CRUD via the currency service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from emporix_provisioner.engine.handlers import RemoteResource
from emporix_provisioner.resources.currency import CurrencyResource
from emporix_provisioner.resources.markers import build_api_payload, extract_api_attrs

if TYPE_CHECKING:
    from collections.abc import Mapping

    from emporix_provisioner.engine.handlers import EngineContext


class CurrencyHandler(RemoteResource):
    """CRUD handler for currencies."""

    def get(self, ctx: EngineContext, identity: Mapping[str, Any]) -> dict[str, Any]:
        raw = ctx.provider.client.get_currency(identity["code"], timeout=ctx.remaining())
        return extract_api_attrs(CurrencyResource, raw)

    def create(self, ctx: EngineContext, attributes: Mapping[str, Any]) -> dict[str, Any]:
        raw = ctx.provider.client.create_currency(
            build_api_payload(CurrencyResource, attributes), deadline=ctx.deadline
        )
        return extract_api_attrs(CurrencyResource, raw)

    def update(
        self,
        ctx: EngineContext,
        identity: Mapping[str, Any],
        changed: Mapping[str, Any],
    ) -> dict[str, Any]:
        raw = ctx.provider.client.update_currency(
            identity["code"],
            build_api_payload(CurrencyResource, changed),
            deadline=ctx.deadline,
        )
        return extract_api_attrs(CurrencyResource, raw)

    def delete(self, ctx: EngineContext, identity: Mapping[str, Any]) -> None:
        ctx.provider.client.delete_currency(identity["code"], timeout=ctx.remaining())
