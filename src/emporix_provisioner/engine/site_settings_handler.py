"""Site settings handler implementing read/patch via the site service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic.alias_generators import to_camel, to_snake

from emporix_provisioner.engine.handlers import RemoteResource
from emporix_provisioner.resources.markers import build_api_payload, extract_api_attrs
from emporix_provisioner.resources.site_settings import SiteSettingsResource

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from emporix_provisioner.engine.handlers import EngineContext

logger = logging.getLogger(__name__)

# Nested objects whose keys are field names (not user data like mixin names).
_NESTED = ("home_base", "assisted_buying")
_MIXIN_ATTRS = frozenset({"mixins", "mixin_schemas"})


def _convert_keys(value: Any, convert: Callable[[str], str]) -> Any:
    if isinstance(value, dict):
        return {convert(k): _convert_keys(v, convert) for k, v in value.items()}
    return value


def _drop_none(value: Any) -> Any:
    # Nested objects are compared exactly; unset fields come back as null.
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    return value


class SiteSettingsHandler(RemoteResource):
    """Patch handler for existing sites.

    Regular settings go through one PATCH of the site; mixins are patched
    separately and mixins that are no longer desired are deleted one by one.
    """

    def _read_attrs(self, raw: Mapping[str, Any]) -> dict[str, Any]:
        attrs = extract_api_attrs(SiteSettingsResource, raw)
        for name in _NESTED:
            if name in attrs:
                attrs[name] = _drop_none(_convert_keys(attrs[name], to_snake))
        return attrs

    def get(self, ctx: EngineContext, identity: Mapping[str, Any]) -> dict[str, Any]:
        raw = ctx.provider.client.get_site(identity["code"], timeout=ctx.remaining())
        return self._read_attrs(raw)

    def update(
        self,
        ctx: EngineContext,
        identity: Mapping[str, Any],
        changed: Mapping[str, Any],
    ) -> dict[str, Any]:
        client = ctx.provider.client
        code = identity["code"]

        settings = {
            k: _convert_keys(v, to_camel) if k in _NESTED else v
            for k, v in changed.items()
            if k not in _MIXIN_ATTRS
        }
        if settings:
            payload = build_api_payload(SiteSettingsResource, settings)
            logger.debug("Patching site %s: %s", code, sorted(payload))
            client.update_site(code, payload, timeout=ctx.remaining())

        if _MIXIN_ATTRS & changed.keys():
            self._sync_mixins(ctx, code, changed)

        return self.get(ctx, identity)

    def _sync_mixins(
        self, ctx: EngineContext, code: str, changed: Mapping[str, Any]
    ) -> None:
        client = ctx.provider.client
        current = self._read_attrs(client.get_site(code, timeout=ctx.remaining()))
        mixins = changed.get("mixins", current.get("mixins")) or {}
        schemas = changed.get("mixin_schemas", current.get("mixin_schemas")) or {}

        for name in sorted(set(current.get("mixins") or {}) - set(mixins)):
            logger.debug("Removing mixin %s from site %s", name, code)
            client.delete_site_mixin(code, name, timeout=ctx.remaining())
        if mixins:
            client.patch_site_mixins(
                code,
                mixins,
                {k: v for k, v in schemas.items() if k in mixins},
                timeout=ctx.remaining(),
            )
