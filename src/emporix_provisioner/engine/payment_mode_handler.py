"""Payment mode handler implementing CRUD via the payment gateway."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from emporix_provisioner.core.client import NotFoundError
from emporix_provisioner.engine.handlers import RemoteResource
from emporix_provisioner.resources.markers import build_api_payload, extract_api_attrs
from emporix_provisioner.resources.payment_mode import PaymentModeResource

if TYPE_CHECKING:
    from collections.abc import Mapping

    from emporix_provisioner.engine.handlers import EngineContext

logger = logging.getLogger(__name__)


class PaymentModeHandler(RemoteResource):
    """CRUD handler for payment modes.

    The gateway addresses payment modes by a generated id, so every call
    resolves the code through the payment mode listing first.
    """

    def _read_attrs(self, raw: Mapping[str, Any]) -> dict[str, Any]:
        attrs = extract_api_attrs(PaymentModeResource, raw)
        if not attrs.get("configuration"):
            attrs.pop("configuration", None)
        if raw.get("id"):
            attrs["id"] = raw["id"]
        return attrs

    def _find(self, ctx: EngineContext, code: str) -> dict[str, Any]:
        for raw in ctx.provider.client.list_payment_modes(timeout=ctx.remaining()):
            if raw.get("code") == code:
                return raw
        raise NotFoundError(f"payment mode {code!r} not found", status_code=404)

    def get(self, ctx: EngineContext, identity: Mapping[str, Any]) -> dict[str, Any]:
        return self._read_attrs(self._find(ctx, identity["code"]))

    def create(self, ctx: EngineContext, attributes: Mapping[str, Any]) -> dict[str, Any]:
        raw = ctx.provider.client.create_payment_mode(
            build_api_payload(PaymentModeResource, attributes), timeout=ctx.remaining()
        )
        return self._read_attrs(raw)

    def update(
        self,
        ctx: EngineContext,
        identity: Mapping[str, Any],
        changed: Mapping[str, Any],
    ) -> dict[str, Any]:
        current = self._find(ctx, identity["code"])
        # PUT replaces both fields; the ones not being changed are carried over.
        attrs = {**self._read_attrs(current), **changed}
        payload = {
            "active": attrs.get("active", True),
            "configuration": attrs.get("configuration") or {},
        }
        logger.debug("Updating payment mode %s (%s)", identity["code"], current["id"])
        raw = ctx.provider.client.update_payment_mode(
            current["id"], payload, deadline=ctx.deadline
        )
        return self._read_attrs(raw)

    def delete(self, ctx: EngineContext, identity: Mapping[str, Any]) -> None:
        current = self._find(ctx, identity["code"])
        ctx.provider.client.delete_payment_mode(current["id"], timeout=ctx.remaining())
