"""Declarative API field markers for resource models.

``ApiField`` attaches to Pydantic fields via ``Annotated`` and names the
dot-separated path of the field in the Emporix JSON record.  Handlers use
the helpers below instead of hand-mapping every attribute:

- ``extract_api_attrs`` reads model attributes out of a raw API record
- ``build_api_payload`` writes attributes back into the API's shape
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pydantic.fields import FieldInfo

M = TypeVar("M")


@dataclass(frozen=True, slots=True)
class ApiField:
    """Field maps to a path in the API record.

    ``path`` is dot-separated, e.g. ``"homeBase.address"`` → ``raw["homeBase"]["address"]``.
    """

    path: str


def _find_marker(field_info: FieldInfo, marker_type: type[M]) -> M | None:
    """Return the first marker of *marker_type* on a field, or ``None``."""
    return next((m for m in field_info.metadata if isinstance(m, marker_type)), None)


def _iter_api_fields(model_or_cls: Any) -> list[tuple[str, ApiField]]:
    cls = model_or_cls if isinstance(model_or_cls, type) else type(model_or_cls)
    return [
        (name, marker)
        for name, fi in cls.model_fields.items()
        if (marker := _find_marker(fi, ApiField)) is not None
    ]


def _resolve_path(raw: Mapping[str, Any], path: str) -> Any:
    """Resolve a dot-separated path in a nested dict, ``None`` if absent."""
    current: Any = raw
    for segment in path.split("."):
        if not isinstance(current, dict) or segment not in current:
            return None
        current = current[segment]
    return current


def _assign_path(target: dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    for segment in parents:
        target = target.setdefault(segment, {})
    target[leaf] = value


def api_paths(resource_cls: type) -> dict[str, str]:
    """Map of attribute name → API path for every ``ApiField`` on the model."""
    return {name: marker.path for name, marker in _iter_api_fields(resource_cls)}


def extract_api_attrs(resource_cls: type, raw: Mapping[str, Any]) -> dict[str, Any]:
    """Extract model attributes from an API record via ``ApiField`` markers.

    Paths the record does not carry (or carries as ``null``) are left out, so
    an unset optional attribute never shows up as drift.
    """
    attrs: dict[str, Any] = {}
    for name, marker in _iter_api_fields(resource_cls):
        value = _resolve_path(raw, marker.path)
        if value is not None:
            attrs[name] = value
    return attrs


def build_api_payload(resource_cls: type, attrs: Mapping[str, Any]) -> dict[str, Any]:
    """Build an API request body from the attributes present in *attrs*."""
    payload: dict[str, Any] = {}
    for name, marker in _iter_api_fields(resource_cls):
        if name in attrs:
            _assign_path(payload, marker.path, attrs[name])
    return payload
