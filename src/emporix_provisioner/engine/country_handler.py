"""Country handler implementing the remote calls via the country service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from emporix_provisioner.engine.handlers import RemoteResource
from emporix_provisioner.resources.country import CountryResource
from emporix_provisioner.resources.markers import build_api_payload, extract_api_attrs

if TYPE_CHECKING:
    from collections.abc import Mapping

    from emporix_provisioner.engine.handlers import EngineContext

logger = logging.getLogger(__name__)


class CountryHandler(RemoteResource):
    """Read and patch pre-populated countries; they are never created or deleted."""

    def _read_attrs(self, raw: Mapping[str, Any]) -> dict[str, Any]:
        attrs = extract_api_attrs(CountryResource, raw)
        if raw.get("name") is not None:
            attrs["name"] = raw["name"]
        attrs["regions"] = list(raw.get("regions") or [])
        return attrs

    def get(self, ctx: EngineContext, identity: Mapping[str, Any]) -> dict[str, Any]:
        raw = ctx.provider.client.get_country(identity["code"], timeout=ctx.remaining())
        return self._read_attrs(raw)

    def update(
        self,
        ctx: EngineContext,
        identity: Mapping[str, Any],
        changed: Mapping[str, Any],
    ) -> dict[str, Any]:
        payload = build_api_payload(CountryResource, changed)
        logger.debug("Patching country %s: %s", identity["code"], payload)
        raw = ctx.provider.client.update_country(
            identity["code"], payload, deadline=ctx.deadline
        )
        return self._read_attrs(raw)
