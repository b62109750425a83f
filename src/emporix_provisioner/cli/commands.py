"""Terraform-style commands run against one Emporix tenant."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Literal

import typer

from emporix_provisioner.cli import app
from emporix_provisioner.cli.errors import handle_error

if TYPE_CHECKING:
    from collections.abc import Iterator

    from emporix_provisioner.config.schema import Config
    from emporix_provisioner.engine.types import ApplyResult, Plan, ResourceChange

DEFAULT_CONFIG = Path("emporix-provisioner.yaml")

ConfigPath = Annotated[
    Path,
    typer.Option("--config", "-c", help="Path to the configuration file."),
]

NoColor = Annotated[
    bool,
    typer.Option("--no-color", help="Disable colored output."),
]

AutoApprove = Annotated[
    bool,
    typer.Option("--auto-approve", help="Skip interactive approval."),
]

NoRefresh = Annotated[
    bool,
    typer.Option("--no-refresh", help="Skip refreshing state from Emporix."),
]


def _use_color(no_color: bool) -> bool:
    """Color unless ``--no-color`` is given or ``NO_COLOR`` is set."""
    return not (no_color or os.environ.get("NO_COLOR"))


@contextmanager
def _reported(color: bool) -> Iterator[None]:
    """Exit with code 1 and a one-line report when the body raises."""
    try:
        yield
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc


def _echo_plan(changes: list[ResourceChange], summary: str, *, color: bool) -> None:
    from emporix_provisioner.cli.formatting import format_changes, format_removals

    typer.echo(format_changes(changes, color=color))
    typer.echo()
    typer.echo(summary)
    removals = format_removals(changes)
    if removals:
        typer.echo(removals)


def _apply_with_progress(plan_obj: Plan, cfg: Config, *, color: bool) -> ApplyResult:
    """Apply *plan_obj*, printing one line per record as the tenant confirms it."""
    from rich.console import Console
    from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

    from emporix_provisioner.cli.formatting import wording
    from emporix_provisioner.config import apply
    from emporix_provisioner.engine.types import Action

    console = Console(no_color=not color)
    pending = sum(c.action is not Action.NOOP for c in plan_obj.changes)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Applying", total=pending)

        def on_progress(change: ResourceChange, event: Literal["start", "done"]) -> None:
            w = wording(change)
            if event == "start":
                progress.update(task, description=f"{change.address}: {w.ongoing}...")
            elif event == "done":
                progress.console.print(f"  {change.address}: {w.finished}")
                progress.advance(task)

        return apply(plan_obj, cfg, progress=on_progress)




def _confirm_and_apply(
    plan_obj: Plan,
    cfg: Config,
    *,
    color: bool,
    auto_approve: bool,
    confirm_msg: str,
    empty_msg: str,
) -> None:
    """Print the plan, ask for approval, apply it and print the outcome.

    A plan without actionable changes prints *empty_msg* and exits with code 0.
    """
    from emporix_provisioner.cli.formatting import (
        format_apply_summary,
        format_plan_summary,
        has_actionable_changes,
    )

    if not has_actionable_changes(plan_obj):
        typer.echo(empty_msg)
        raise typer.Exit(0)

    _echo_plan(plan_obj.changes, format_plan_summary(plan_obj.summary(), color=color), color=color)
    typer.echo()

    if not auto_approve:
        try:
            typer.confirm(confirm_msg, abort=True)
        except typer.Abort as e:
            typer.echo("Apply canceled.", err=True)
            raise typer.Exit(1) from e

    with _reported(color):
        result = _apply_with_progress(plan_obj, cfg, color=color)

    typer.echo()
    typer.echo(format_apply_summary(result.summary(), color=color))


@app.command()
def plan(
    config: ConfigPath = DEFAULT_CONFIG,
    out: Annotated[
        Path | None,
        typer.Option("--out", "-o", help="Save plan to file."),
    ] = None,
    no_color: NoColor = False,
    no_refresh: NoRefresh = False,
) -> None:
    """Show changes required by the current configuration.

    Exits with code 2 when the plan contains changes.
    """
    from emporix_provisioner.cli.formatting import format_plan_summary, has_actionable_changes
    from emporix_provisioner.config import load
    from emporix_provisioner.config import plan as plan_fn

    color = _use_color(no_color)
    with _reported(color):
        plan_obj = plan_fn(load(config), refresh=not no_refresh)

    _echo_plan(plan_obj.changes, format_plan_summary(plan_obj.summary(), color=color), color=color)

    if out is not None:
        plan_obj.save(out)
        typer.echo(f"\nPlan saved to {out}")

    if has_actionable_changes(plan_obj):
        raise typer.Exit(2)


@app.command(name="apply")
def apply_cmd(
    plan_file: Annotated[
        Path | None,
        typer.Argument(help="Saved plan file to apply."),
    ] = None,
    config: ConfigPath = DEFAULT_CONFIG,
    auto_approve: AutoApprove = False,
    no_color: NoColor = False,
    no_refresh: NoRefresh = False,
) -> None:
    """Bring the tenant in line with the configuration (or a saved plan)."""
    from emporix_provisioner.config import load
    from emporix_provisioner.config import plan as plan_fn
    from emporix_provisioner.engine.types import Plan

    color = _use_color(no_color)
    with _reported(color):
        cfg = load(config)
        if plan_file is None:
            plan_obj = plan_fn(cfg, refresh=not no_refresh)
        else:
            plan_obj = Plan.load(plan_file)

    _confirm_and_apply(
        plan_obj,
        cfg,
        color=color,
        auto_approve=auto_approve,
        confirm_msg="Do you want to apply these changes?",
        empty_msg="No changes. Resources are up-to-date.",
    )


@app.command()
def destroy(
    config: ConfigPath = DEFAULT_CONFIG,
    auto_approve: AutoApprove = False,
    no_color: NoColor = False,
) -> None:
    """Remove all managed resources according to their deletion policy.

    Currencies, tenant configurations, payment modes and taxes are deleted.
    Countries are deactivated and sites are released but left untouched.
    """
    from emporix_provisioner.config import load
    from emporix_provisioner.config import plan as plan_fn

    color = _use_color(no_color)
    with _reported(color):
        cfg = load(config)
        plan_obj = plan_fn(cfg, destroy=True)

    _confirm_and_apply(
        plan_obj,
        cfg,
        color=color,
        auto_approve=auto_approve,
        confirm_msg="Do you really want to delete, deactivate or release all resources?",
        empty_msg="No resources to destroy.",
    )


@app.command(name="refresh")
def refresh_cmd(
    config: ConfigPath = DEFAULT_CONFIG,
    auto_approve: AutoApprove = False,
    no_color: NoColor = False,
) -> None:
    """Re-read every tracked record from Emporix and offer to rewrite the state."""
    from emporix_provisioner.cli.formatting import changes_summary, format_plan_summary
    from emporix_provisioner.config import load, save_state
    from emporix_provisioner.config import refresh as refresh_fn

    color = _use_color(no_color)
    with _reported(color):
        cfg = load(config)
        changes, state = refresh_fn(cfg)

    if not changes:
        typer.echo("No changes. State is up-to-date with Emporix.")
        raise typer.Exit(0)

    summary = format_plan_summary(changes_summary(changes), color=color, header="Refresh")
    _echo_plan(changes, summary, color=color)
    typer.echo()

    if not auto_approve and not typer.confirm("Do you want to update the state file?"):
        typer.echo("Refresh canceled.", err=True)
        raise typer.Exit(1)

    save_state(cfg, state)
    tracked = len(state.resources)
    typer.echo(f"State refreshed. {tracked} resource{'' if tracked == 1 else 's'} tracked.")


@app.command()
def drift(
    config: ConfigPath = DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """List managed records whose remote attributes no longer match the state."""
    from emporix_provisioner.cli.formatting import format_changes
    from emporix_provisioner.config import drift as drift_fn
    from emporix_provisioner.config import load

    color = _use_color(no_color)
    with _reported(color):
        changes = drift_fn(load(config))

    if not changes:
        typer.echo("No drift detected. State is up-to-date with Emporix.")
        raise typer.Exit(0)

    typer.echo("Drift detected:\n")
    typer.echo(format_changes(changes, color=color))


@app.command(name="import")
def import_cmd(
    resource_type: Annotated[
        str,
        typer.Argument(help="Resource kind, e.g. country or currency."),
    ],
    identity: Annotated[
        str,
        typer.Argument(help="Remote identity, e.g. a country or currency code."),
    ],
    label: Annotated[
        str,
        typer.Argument(help="Label to manage the resource under."),
    ],
    config: ConfigPath = DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """Adopt an existing remote record into state."""
    from emporix_provisioner.cli.formatting import styler
    from emporix_provisioner.config import import_resource, load

    color = _use_color(no_color)
    with _reported(color):
        inst = import_resource(load(config), resource_type, label, identity)

    typer.echo(styler(color)(f"Imported {inst.address} ({inst.identity_label}).", fg="green"))


@app.command()
def validate(
    config: ConfigPath = DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """Check the configuration offline: schema, defaults and identities."""
    from emporix_provisioner.cli.formatting import styler
    from emporix_provisioner.config import load
    from emporix_provisioner.engine.policy import apply_defaults, identity_of

    color = _use_color(no_color)
    with _reported(color):
        for r in load(config).resources:
            identity_of(r.kind, apply_defaults(r.kind, r.desired_attributes()))

    typer.echo(styler(color)("Configuration is valid.", fg="green"))
