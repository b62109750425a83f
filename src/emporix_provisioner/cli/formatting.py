"""Plan and apply output rendering (Terraform-style).

Each change is rendered with the wording of what will actually happen to the
remote record: removing a country from the configuration deactivates it,
removing site settings only releases them from management.
"""

from __future__ import annotations

import json
from collections import Counter
from typing import TYPE_CHECKING, Any, NamedTuple

import typer

from emporix_provisioner.engine.policy import DeletionPolicy, policy_for
from emporix_provisioner.engine.types import Action

if TYPE_CHECKING:
    from collections.abc import Callable

    from emporix_provisioner.engine.types import Plan, ResourceChange


class Wording(NamedTuple):
    color: str
    symbol: str
    outcome: str  # "# <address> <outcome>" in the plan
    ongoing: str  # progress line while the change is applied
    finished: str


_WORDING: dict[Action, Wording] = {
    Action.CREATE: Wording("green", "+", "will be created", "Creating", "Creation complete"),
    Action.UPDATE: Wording(
        "yellow", "~", "will be updated in-place", "Updating", "Update complete"
    ),
    Action.REPLACE: Wording(
        "magenta", "-/+", "must be replaced", "Replacing", "Replacement complete"
    ),
    Action.NOOP: Wording("bright_black", " ", "is up-to-date", "", ""),
}

_REMOVAL_WORDING: dict[DeletionPolicy, Wording] = {
    DeletionPolicy.HARD_DELETE: Wording(
        "red", "-", "will be deleted", "Deleting", "Deletion complete"
    ),
    DeletionPolicy.DEACTIVATE: Wording(
        "red", "-", "will be deactivated", "Deactivating", "Deactivation complete"
    ),
    DeletionPolicy.IMMUTABLE: Wording(
        "bright_black",
        "-",
        "will be released (left untouched remotely)",
        "Releasing",
        "Released",
    ),
}


def wording(change: ResourceChange) -> Wording:
    """Colors and phrases for *change*; removals follow the kind's deletion policy."""
    if change.action is Action.DELETE:
        return _REMOVAL_WORDING[policy_for(change.resource_type).deletion]
    return _WORDING[change.action]


def styler(color: bool) -> Callable[..., str]:
    """Return ``typer.style`` when *color* is True, otherwise a passthrough."""
    if color:
        return typer.style
    return lambda text, **_kw: text


def has_actionable_changes(plan: Plan) -> bool:
    return any(c.action is not Action.NOOP for c in plan.changes)


def _format_value(value: Any) -> str:
    match value:
        case None:
            return "null"
        case bool():
            return "true" if value else "false"
        case str():
            return f'"{value}"'
        case dict() | list():
            # localized names, mixins, tax classes and country lists
            return json.dumps(value, sort_keys=True, ensure_ascii=False)
        case _:
            return str(value)


def _attribute_lines(change: ResourceChange) -> list[tuple[str, str]]:
    """``(name, rendered value)`` pairs, names padded so the ``=`` signs line up."""
    if change.action is Action.CREATE:
        rendered = {k: _format_value(v) for k, v in (change.desired or {}).items()}
    elif change.action in (Action.UPDATE, Action.REPLACE):
        rendered = {
            k: f"{_format_value(d['from'])} -> {_format_value(d['to'])}"
            for k, d in (change.diff or {}).items()
        }
    else:
        return []
    width = max(map(len, rendered), default=0)
    return [(k.ljust(width), rendered[k]) for k in sorted(rendered)]


def format_change(change: ResourceChange, *, color: bool = True) -> str:
    """Render a single change as a Terraform-style block."""
    style = styler(color)
    w = wording(change)
    label = change.label or change.address.split(".", 1)[-1]

    lines = [
        style(f"  # {change.address} {w.outcome}", fg=w.color, bold=True),
        style(f'  {w.symbol} resource "{change.resource_type}" "{label}" {{', fg=w.color),
    ]
    lines += [
        style(f"      {w.symbol} {name} = {value}", fg=w.color)
        for name, value in _attribute_lines(change)
    ]
    lines.append(style("    }", fg=w.color))
    return "\n".join(lines)


def format_changes(changes: list[ResourceChange], *, color: bool = True) -> str:
    blocks = [format_change(c, color=color) for c in changes if c.action is not Action.NOOP]
    return "\n\n".join(blocks) if blocks else "No changes. Resources are up-to-date."


def format_plan(plan: Plan, *, color: bool = True) -> str:
    return format_changes(plan.changes, color=color)


def changes_summary(changes: list[ResourceChange]) -> dict[str, int]:
    """Count actionable changes per action."""
    summary = dict.fromkeys(("create", "update", "replace", "delete"), 0)
    for c in changes:
        if c.action is not Action.NOOP:
            summary[c.action.value] += 1
    return summary


def _format_counts(summary: dict[str, int], verbs: tuple[str, str, str], *, color: bool) -> str:
    # A replacement is one removal plus one addition.
    replaced = summary.get("replace", 0)
    counts = (
        summary.get("create", 0) + replaced,
        summary.get("update", 0),
        summary.get("delete", 0) + replaced,
    )
    style = styler(color)
    return ", ".join(
        style(f"{n} {verb}", fg=fg) if n else f"{n} {verb}"
        for n, verb, fg in zip(counts, verbs, ("green", "yellow", "red"), strict=True)
    )


def format_plan_summary(
    summary: dict[str, int], *, color: bool = True, header: str = "Plan"
) -> str:
    """Render ``Plan: 2 to add, 1 to change, 0 to destroy.``"""
    counts = _format_counts(summary, ("to add", "to change", "to destroy"), color=color)
    return f"{header}: {counts}."


def format_removals(changes: list[ResourceChange]) -> str | None:
    """Render ``Removals: 1 to delete, 2 to deactivate.`` or None if all are deletes."""
    counts = Counter(
        policy_for(c.resource_type).deletion for c in changes if c.action is Action.DELETE
    )
    if not counts.keys() - {DeletionPolicy.HARD_DELETE}:
        return None
    verbs = {
        DeletionPolicy.HARD_DELETE: "to delete",
        DeletionPolicy.DEACTIVATE: "to deactivate",
        DeletionPolicy.IMMUTABLE: "to release",
    }
    return "Removals: " + ", ".join(f"{counts[p]} {verbs[p]}" for p in verbs if counts[p]) + "."


def format_apply_summary(summary: dict[str, int], *, color: bool = True) -> str:
    """Render ``Apply complete! Resources: 2 added, 0 changed, 0 destroyed.``"""
    header = styler(color)("Apply complete!", fg="green", bold=True)
    counts = _format_counts(summary, ("added", "changed", "destroyed"), color=color)
    return f"{header} Resources: {counts}."
