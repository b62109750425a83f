"""Attribute-level diffing of desired vs. prior values."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

CompareStrategy: TypeAlias = Literal["partial", "exact", "set"]


def values_differ(
    desired: Any,
    prior: Any,
    *,
    strategy: CompareStrategy | None = None,
) -> bool:
    """Check whether a desired value differs from the prior value.

    Comparison semantics depend on *strategy*:

    - ``strategy="set"``:
      - If both values are lists, they are compared as sets (order-insensitive).
      - Other types fall back to strict equality.
    - ``strategy="exact"``:
      - Values are compared with strict equality.
    - ``strategy=None`` or ``"partial"``:
      - For dict values, only keys present in *desired* are compared.
      - Extra keys present only in *prior* (API-added defaults) are ignored.
      - Non-dict values use strict equality.
    """
    if strategy == "set":
        if isinstance(desired, list) and isinstance(prior, list):
            return {_hashable(v) for v in desired} != {_hashable(v) for v in prior}
        return desired != prior

    if strategy == "exact":
        return desired != prior

    if isinstance(desired, dict) and isinstance(prior, dict):
        return any(values_differ(v, prior.get(k), strategy="partial") for k, v in desired.items())
    return desired != prior


def _hashable(value: Any) -> Any:
    if isinstance(value, dict):
        return tuple(sorted((k, _hashable(v)) for k, v in value.items()))
    if isinstance(value, list):
        return tuple(_hashable(v) for v in value)
    return value


def compute_diff(
    desired: Mapping[str, Any],
    prior: Mapping[str, Any],
    *,
    strategies: Mapping[str, CompareStrategy] | None = None,
    keys: Iterable[str] | None = None,
) -> dict[str, dict[str, Any]]:
    """Return ``{attr: {"from": prior, "to": desired}}`` for every differing attribute.

    Only attributes in *keys* are compared; by default the union of both
    mappings.  A key missing on one side compares as ``None``.
    """
    strategies = strategies or {}
    names = sorted(set(desired) | set(prior)) if keys is None else sorted(keys)
    return {
        k: {"from": prior.get(k), "to": desired.get(k)}
        for k in names
        if values_differ(desired.get(k), prior.get(k), strategy=strategies.get(k))
    }
