"""CLI entry point for access-governance.

Invoked as::

    access-gov [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m access_governance.cli.main

Commands
--------
- init           Write a starter access.yaml
- check          Evaluate a user/resource/action request
- roles list     List roles with user counts
- roles show     Show a role's permission matrix
- audit show     Display a filtered page of audit events
- audit export   Export filtered audit events to CSV, JSON, or JSONL
- audit stats    Summarise filtered audit events
- version        Show version information
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from access_governance.errors import AccessGovernanceError

console = Console()
err_console = Console(stderr=True)

_DEFAULT_CONFIG = Path("access.yaml")

_SAMPLE_USERS: list[dict[str, object]] = [
    {"id": 1, "name": "John Doe", "email": "john@example.com", "role": "admin"},
    {"id": 2, "name": "Jane Smith", "email": "jane@example.com", "role": "manager"},
    {"id": 3, "name": "Bob Johnson", "email": "bob@example.com", "role": "sales"},
    {"id": 4, "name": "Alice Brown", "email": "alice@example.com", "role": "support"},
    {"id": 5, "name": "Charlie Wilson", "email": "charlie@example.com", "role": "viewer"},
]


def _config_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--config",
        "-c",
        "config_path",
        default=str(_DEFAULT_CONFIG),
        show_default=True,
        type=click.Path(),
        help="Path to access.yaml.",
    )(func)


def _filter_options(func: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.option("--actor", default=None, help="Exact actor match."),
        click.option("--action", "action", default=None, help="Audit action, e.g. UPDATE."),
        click.option("--resource", default=None, help="Resource catalog key, e.g. DEAL."),
        click.option("--severity", default=None, help="LOW, MEDIUM, HIGH, or CRITICAL."),
        click.option(
            "--status",
            type=click.Choice(["success", "failed"]),
            default=None,
            help="Outcome filter.",
        ),
        click.option("--search", default=None, help="Substring of description or actor."),
        click.option("--from", "date_from", default=None, help="Inclusive ISO-8601 lower bound."),
        click.option("--to", "date_to", default=None, help="Inclusive ISO-8601 upper bound."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_filter(**kwargs: object) -> dict[str, object]:
    status = kwargs.pop("status", None)
    flt: dict[str, object] = {k: v for k, v in kwargs.items() if v is not None}
    if status is not None:
        flt["success"] = status == "success"
    return flt


def _load_governor(config_path: str) -> Any:
    from access_governance.config.loader import ConfigLoader
    from access_governance.governor import AccessGovernor

    loader = ConfigLoader()
    cfg_path = Path(config_path)
    config = loader.load(cfg_path) if cfg_path.exists() else loader.defaults()
    return AccessGovernor(config)


def _parse_user_id(raw: str) -> int | str:
    return int(raw) if raw.isdigit() else raw


def _fail(exc: Exception) -> None:
    err_console.print(f"[red]Error:[/red] {exc}")
    sys.exit(2)


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="access-governance")
def cli() -> None:
    """Access Governance CLI — roles, permission checks, and audit tools."""


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from access_governance import __version__

    console.print(
        Panel(
            f"[bold]access-governance[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Role-based access control and audit logging core.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


@cli.command(name="init")
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default=str(_DEFAULT_CONFIG),
    show_default=True,
    help="Output access config file path.",
)
@click.option(
    "--sample-users/--no-sample-users",
    default=True,
    show_default=True,
    help="Seed one example user per built-in role.",
)
@click.option(
    "--audit-log",
    default="./access_audit.jsonl",
    show_default=True,
    help="Path of the JSONL audit log.",
)
def init_command(output: str, sample_users: bool, audit_log: str) -> None:
    """Write a starter access.yaml with the built-in catalog and roles."""
    from access_governance.config.loader import AccessConfig, ConfigLoader

    raw: dict[str, object] = {"audit": {"log_path": audit_log}}
    if sample_users:
        raw["users"] = _SAMPLE_USERS
    config = AccessConfig.model_validate(raw)

    output_path = Path(output)
    ConfigLoader().dump(config, output_path)

    console.print(f"[green]Initialised[/green] access config: [bold]{output_path}[/bold]")
    console.print(f"  Resources: [cyan]{len(config.catalog.resources)}[/cyan]")
    console.print(f"  Roles: [cyan]{len(config.roles)}[/cyan]")
    console.print(f"  Users: [cyan]{len(config.users)}[/cyan]")


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@cli.command(name="check")
@click.argument("user_id")
@click.argument("resource")
@click.argument("action")
@_config_option
def check_command(user_id: str, resource: str, action: str, config_path: str) -> None:
    """Check whether USER_ID may perform ACTION on RESOURCE."""
    governor = _load_governor(config_path)
    decision = governor.evaluator.check(_parse_user_id(user_id), resource, action)

    status_str = "[green]ALLOWED[/green]" if decision.allowed else "[red]DENIED[/red]"
    console.print(Panel(status_str, title="Authorization Check", border_style="blue"))
    console.print(f"  Role: [cyan]{decision.role_id or '-'}[/cyan]")
    console.print(f"  Reason: {decision.reason}")

    sys.exit(0 if decision.allowed else 1)


# ---------------------------------------------------------------------------
# roles group
# ---------------------------------------------------------------------------


@cli.group(name="roles")
def roles_group() -> None:
    """Role and permission matrix commands."""


@roles_group.command(name="list")
@_config_option
def roles_list_command(config_path: str) -> None:
    """List roles with their user counts."""
    governor = _load_governor(config_path)
    counts = governor.assignments.role_counts()

    table = Table(title="Roles", box=box.SIMPLE)
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Description")
    table.add_column("Users", justify="right")
    table.add_column("Protected")

    for role in governor.roles.list_roles():
        protected = "[red]yes[/red]" if governor.roles.is_protected(role.id) else ""
        table.add_row(role.id, role.name, role.description, str(counts.get(role.id, 0)), protected)

    console.print(table)


@roles_group.command(name="show")
@click.argument("role_id")
@_config_option
def roles_show_command(role_id: str, config_path: str) -> None:
    """Show the permission matrix row of ROLE_ID."""
    governor = _load_governor(config_path)
    try:
        role = governor.roles.get_role(role_id)
        permissions = governor.roles.get_permissions(role_id)
    except AccessGovernanceError as exc:
        _fail(exc)
        return

    table = Table(title=f"{role.name} ({role.id})", box=box.SIMPLE)
    table.add_column("Resource", style="cyan")
    table.add_column("Granted", style="green")
    table.add_column("Not granted", style="dim")

    for resource in governor.catalog.list_resources():
        granted = permissions[resource]
        allowed = governor.catalog.actions_for(resource)
        table.add_row(
            governor.catalog.label_for(resource),
            ", ".join(a for a in allowed if a in granted),
            ", ".join(a for a in allowed if a not in granted),
        )

    console.print(table)


# ---------------------------------------------------------------------------
# audit group
# ---------------------------------------------------------------------------


@cli.group(name="audit")
def audit_group() -> None:
    """Audit trail commands."""


@audit_group.command(name="show")
@_filter_options
@click.option("--page", "-p", default=1, show_default=True, type=int, help="1-based page number.")
@click.option("--page-size", "-n", default=None, type=int, help="Events per page.")
@_config_option
def audit_show_command(page: int, page_size: int | None, config_path: str, **filters: object) -> None:
    """Show a filtered page of audit events, newest first."""
    from access_governance.presentation import (
        ACTION_DISPLAY,
        SEVERITY_DISPLAY,
        resource_label,
        status_label,
    )

    governor = _load_governor(config_path)
    flt = _build_filter(**filters)
    flt["page"] = page
    if page_size is not None:
        flt["page_size"] = page_size

    try:
        result = governor.query(flt)
    except AccessGovernanceError as exc:
        _fail(exc)
        return

    if not result.events:
        console.print("[yellow]No audit entries found.[/yellow]")
        console.print(f"  Matching audit records: [cyan]{result.total_count}[/cyan]")
        return

    table = Table(title=f"Audit Events (page {result.page}/{result.total_pages})", box=box.SIMPLE)
    table.add_column("Id", justify="right", style="dim")
    table.add_column("Timestamp", style="dim", no_wrap=True)
    table.add_column("User", style="cyan")
    table.add_column("Action")
    table.add_column("Resource", style="magenta")
    table.add_column("Description")
    table.add_column("Status")
    table.add_column("Severity")

    for event in result.events:
        action = ACTION_DISPLAY[event.action]
        severity = SEVERITY_DISPLAY[event.severity]
        table.add_row(
            str(event.id),
            event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            event.actor,
            f"[{action.style}]{action.label}[/{action.style}]",
            resource_label(event.resource, governor.catalog),
            event.description,
            status_label(event.success),
            f"[{severity.style}]{severity.label}[/{severity.style}]",
        )

    console.print(table)
    console.print(f"  Matching audit records: [cyan]{result.total_count}[/cyan]")


@audit_group.command(name="export")
@_filter_options
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["csv", "json", "jsonl"]),
    default="csv",
    show_default=True,
    help="Export format.",
)
@click.option(
    "--output",
    "-o",
    "output_file",
    default=None,
    type=click.Path(),
    help="Output file path (default: audit-logs-<date>.<format>).",
)
@_config_option
def audit_export_command(
    output_format: str,
    output_file: str | None,
    config_path: str,
    **filters: object,
) -> None:
    """Export filtered audit events to CSV, JSON, or JSONL."""
    from access_governance.audit.exporter import AuditExporter

    governor = _load_governor(config_path)
    exporter = AuditExporter(governor.audit)
    out_path = Path(output_file or exporter.export_filename(extension=output_format))
    flt = _build_filter(**filters)

    try:
        if output_format == "csv":
            count = exporter.to_csv(out_path, flt)
        elif output_format == "jsonl":
            count = exporter.to_jsonl(out_path, flt)
        else:
            count = exporter.to_json(out_path, flt)
    except AccessGovernanceError as exc:
        _fail(exc)
        return

    console.print(
        f"[green]Exported[/green] {count} records to [bold]{out_path}[/bold] "
        f"({output_format.upper()})."
    )


@audit_group.command(name="stats")
@_filter_options
@_config_option
def audit_stats_command(config_path: str, **filters: object) -> None:
    """Summarise filtered audit events by action, severity, and resource."""
    governor = _load_governor(config_path)
    try:
        summary = governor.audit.summary(_build_filter(**filters))
    except AccessGovernanceError as exc:
        _fail(exc)
        return

    console.print(
        Panel(
            f"Events: [cyan]{summary.total_count}[/cyan]   "
            f"Failures: [red]{summary.failure_count}[/red]   "
            f"Actors: [cyan]{len(summary.actors)}[/cyan]",
            title="Audit Summary",
            border_style="blue",
        )
    )
    for title, counts in (
        ("By Action", summary.by_action),
        ("By Severity", summary.by_severity),
        ("By Resource", summary.by_resource),
    ):
        if not counts:
            continue
        table = Table(title=title, box=box.SIMPLE)
        table.add_column("Key", style="cyan")
        table.add_column("Count", justify="right", style="bold")
        for key, value in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
            table.add_row(key, str(value))
        console.print(table)


if __name__ == "__main__":
    cli()
