"""Tax handler implementing CRUD via the tax service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic.alias_generators import to_camel, to_snake

from emporix_provisioner.engine.handlers import RemoteResource
from emporix_provisioner.resources.markers import build_api_payload, extract_api_attrs
from emporix_provisioner.resources.tax import TaxResource

if TYPE_CHECKING:
    from collections.abc import Mapping

    from emporix_provisioner.engine.handlers import EngineContext


def _classes_to_api(tax_classes: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [{to_camel(k): v for k, v in tc.items()} for tc in tax_classes]


def _classes_from_api(tax_classes: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
    result = []
    for tc in tax_classes:
        attrs = {to_snake(k): v for k, v in tc.items() if v is not None}
        attrs.setdefault("is_default", False)
        result.append(attrs)
    return result


class TaxHandler(RemoteResource):
    """CRUD handler for per-country tax configurations."""

    def _payload(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        payload = build_api_payload(TaxResource, attributes)
        if payload.get("taxClasses") is not None:
            payload["taxClasses"] = _classes_to_api(payload["taxClasses"])
        return payload

    def _read_attrs(self, raw: Mapping[str, Any]) -> dict[str, Any]:
        attrs = extract_api_attrs(TaxResource, raw)
        attrs["tax_classes"] = _classes_from_api(attrs.get("tax_classes") or [])
        return attrs

    def get(self, ctx: EngineContext, identity: Mapping[str, Any]) -> dict[str, Any]:
        raw = ctx.provider.client.get_tax(identity["country_code"], timeout=ctx.remaining())
        return self._read_attrs(raw)

    def create(self, ctx: EngineContext, attributes: Mapping[str, Any]) -> dict[str, Any]:
        raw = ctx.provider.client.create_tax(self._payload(attributes), deadline=ctx.deadline)
        return self._read_attrs(raw)

    def update(
        self,
        ctx: EngineContext,
        identity: Mapping[str, Any],
        changed: Mapping[str, Any],
    ) -> dict[str, Any]:
        raw = ctx.provider.client.update_tax(
            identity["country_code"], self._payload(changed), deadline=ctx.deadline
        )
        return self._read_attrs(raw)

    def delete(self, ctx: EngineContext, identity: Mapping[str, Any]) -> None:
        ctx.provider.client.delete_tax(identity["country_code"], timeout=ctx.remaining())
