"""ConstructOS estimating CLI.

Commands:
- init: Initialize database schema
- recalc: Re-price an estimate's items and totals
- allowed: List legal next statuses for a workflow status
- transition: Move an estimate or variation to a new workflow status
- convert: Convert an accepted quote version into a project with WOs/POs
- export-audit: Write the audit bundle JSON for an estimate
- rules list|add|remove: Manage Work/Purchase Order grouping rules
- web serve: Run the FastAPI app
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from pathlib import Path
from typing import TypeVar
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from constructos.config import get_config
from constructos.conversion.pipeline import ConversionPipeline
from constructos.core.logging import configure_logging
from constructos.db.connection import close_db, get_session, init_db
from constructos.errors import EstimatingError, PartialConversionError, ValidationFailedError
from constructos.estimates.service import recalculate_estimate
from constructos.grouping.repository import GroupRuleRepository
from constructos.models import GroupRuleType
from constructos.reporting.audit_export import export_audit_bundle
from constructos.workflow.permissions import RolePermissionChecker
from constructos.workflow.service import WorkflowGuard
from constructos.workflow.transitions import EntityType, allowed_transitions

T = TypeVar("T")

app = typer.Typer(
    name="constructos",
    help="ConstructOS - Estimating lifecycle engine",
    no_args_is_help=True,
)
rules_cli = typer.Typer(help="Work/Purchase Order grouping rules")
app.add_typer(rules_cli, name="rules")

web_cli = typer.Typer(help="Web API")
app.add_typer(web_cli, name="web")

console = Console()


@app.callback()
def _setup() -> None:
    configure_logging()


def _run(coro: Awaitable[T]) -> T:
    """Run a command coroutine, reporting estimating errors and exiting non-zero."""

    async def _wrapped():
        try:
            return await coro
        finally:
            await close_db()

    try:
        return asyncio.run(_wrapped())
    except ValidationFailedError as exc:
        console.print("[red]Validation failed:[/red]")
        for error in exc.errors:
            console.print(f"  • {error}")
        raise typer.Exit(1)
    except PartialConversionError as exc:
        console.print(f"[red]{exc.message}[/red]")
        console.print(f"[yellow]Project {exc.project_id} is linked; reconcile manually.[/yellow]")
        raise typer.Exit(2)
    except EstimatingError as exc:
        console.print(f"[red]{exc.kind}: {exc.message}[/red]")
        raise typer.Exit(1)


def _role(role: str | None) -> RolePermissionChecker:
    return RolePermissionChecker(role or get_config().workflow.default_role)


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")
    if drop:
        console.print("[yellow]Dropping existing tables...[/yellow]")
    _run(init_db(drop=drop))
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def recalc(
    estimate_id: UUID = typer.Argument(..., help="Estimate ID"),
):
    """Re-price every item on an estimate and update its totals."""
    tenant_id = get_config().tenant_id

    async def _recalc():
        async with get_session() as session:
            return await recalculate_estimate(session, tenant_id, estimate_id)

    totals = _run(_recalc())

    table = Table(title=f"Estimate {estimate_id}")
    table.add_column("Line", justify="right", style="cyan")
    table.add_column("Cost", justify="right")
    table.add_column("Price ex VAT", justify="right", style="green")
    table.add_column("VAT", justify="right")
    for idx, line in enumerate(totals.breakdowns, start=1):
        cost = line.base_cost + line.wastage_cost + line.labour_burden_cost + line.overhead_cost
        table.add_row(str(idx), f"{cost:.2f}", f"{line.price_ex_vat:.2f}", f"{line.vat:.2f}")
    console.print(table)
    console.print(
        f"Subtotal: {totals.subtotal_ex_vat:.2f}  VAT: {totals.vat:.2f}  "
        f"[bold]Total: {totals.total:.2f}[/bold]"
    )


@app.command()
def allowed(
    status: str = typer.Argument("draft", help="Current workflow status"),
    entity_type: EntityType = typer.Option(EntityType.ESTIMATE, "--type", help="estimate or variation"),
):
    """List the statuses reachable from STATUS."""
    targets = allowed_transitions(status, entity_type)
    if not targets:
        console.print(f"[yellow]No transitions out of '{status}'[/yellow]")
        return
    for target in targets:
        console.print(f"  {status} → [cyan]{target}[/cyan]")


@app.command()
def transition(
    entity_id: UUID = typer.Argument(..., help="Estimate or variation ID"),
    to_status: str = typer.Argument(..., help="Target workflow status"),
    variation: bool = typer.Option(False, "--variation", help="ENTITY_ID is a variation"),
    role: str | None = typer.Option(None, "--role", help="Caller role (default from config)"),
    note: str | None = typer.Option(None, "--note", help="Note stored on the activity entry"),
    actor: str = typer.Option("cli", "--actor", help="Name recorded as the actor"),
):
    """Apply a workflow transition."""
    tenant_id = get_config().tenant_id

    async def _transition():
        async with get_session() as session:
            guard = WorkflowGuard(session, tenant_id, _role(role), actor=actor)
            if variation:
                return await guard.transition_variation(entity_id, to_status, note)
            return await guard.transition_estimate(entity_id, to_status, note)

    result = _run(_transition())
    console.print(
        f"[bold green]✓[/bold green] {result.entity_type.value} {result.entity_id}: "
        f"{result.from_status} → {result.to_status} (revision {result.revision})"
    )


@app.command()
def convert(
    estimate_id: UUID = typer.Argument(..., help="Estimate ID"),
    quote_version_id: UUID = typer.Argument(..., help="Accepted quote version ID"),
    role: str | None = typer.Option(None, "--role", help="Caller role (default from config)"),
    actor: str = typer.Option("cli", "--actor", help="Name recorded as the actor"),
):
    """Convert an accepted quote version into a project."""
    tenant_id = get_config().tenant_id

    async def _convert():
        async with get_session() as session:
            pipeline = ConversionPipeline(session, tenant_id, _role(role), actor=actor)
            return await pipeline.convert(estimate_id, quote_version_id)

    result = _run(_convert())

    table = Table(title="Conversion")
    table.add_column("Document", style="cyan")
    table.add_column("ID")
    table.add_row("Project", str(result.project_id))
    for order_id in result.work_order_ids:
        table.add_row("Work Order", str(order_id))
    for order_id in result.purchase_order_ids:
        table.add_row("Purchase Order", str(order_id))
    console.print(table)


@app.command(name="export-audit")
def export_audit(
    estimate_id: UUID = typer.Argument(..., help="Estimate ID"),
    out_dir: Path = typer.Option(Path("."), "--out", "-o", help="Output directory"),
):
    """Write the redacted audit bundle for an estimate."""
    tenant_id = get_config().tenant_id

    async def _export():
        async with get_session() as session:
            return await export_audit_bundle(session, tenant_id, estimate_id)

    filename, payload = _run(_export())
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / filename
    path.write_bytes(payload)
    console.print(f"[bold green]✓[/bold green] Audit bundle written to {path}")


@rules_cli.command("list")
def rules_list(
    rule_type: GroupRuleType | None = typer.Option(None, "--type", help="work_order or purchase_order"),
    include_disabled: bool = typer.Option(False, "--all", help="Include disabled rules"),
):
    """List grouping rules in evaluation order."""
    tenant_id = get_config().tenant_id

    async def _list():
        async with get_session() as session:
            repo = GroupRuleRepository(session)
            return await repo.list_rules(tenant_id, rule_type, include_disabled)

    rules = _run(_list())

    table = Table(title="Grouping Rules")
    table.add_column("Priority", justify="right", style="cyan")
    table.add_column("Type")
    table.add_column("Match")
    table.add_column("Party", style="green")
    table.add_column("Title")
    table.add_column("ID", style="dim")
    for rule in rules:
        predicates = [
            f"{label}={value}"
            for label, value in (
                ("type", rule.match_item_type),
                ("section", rule.match_section_contains),
                ("title", rule.match_title_contains),
                ("tag", rule.match_tag_contains),
            )
            if value
        ]
        name = rule.rule_type if rule.is_enabled else f"{rule.rule_type} (disabled)"
        table.add_row(
            str(rule.priority),
            name,
            ", ".join(predicates) or "*",
            rule.target_party_name,
            rule.target_document_title or "",
            str(rule.id),
        )
    console.print(table)


@rules_cli.command("add")
def rules_add(
    rule_type: GroupRuleType = typer.Option(..., "--type", help="work_order or purchase_order"),
    party: str = typer.Option(..., "--party", help="Target subcontractor/supplier name"),
    priority: int = typer.Option(100, "--priority", help="Lower runs first"),
    item_type: str | None = typer.Option(None, "--item-type", help="Match item type"),
    section: str | None = typer.Option(None, "--section", help="Section title contains"),
    title: str | None = typer.Option(None, "--title", help="Item title contains"),
    tag: str | None = typer.Option(None, "--tag", help="Item tags contain"),
    document_title: str | None = typer.Option(None, "--doc-title", help="Order title override"),
):
    """Add a grouping rule."""
    tenant_id = get_config().tenant_id

    async def _add():
        async with get_session() as session:
            repo = GroupRuleRepository(session)
            rule = await repo.create_rule(
                tenant_id,
                rule_type,
                party,
                priority=priority,
                match_item_type=item_type,
                match_section_contains=section,
                match_title_contains=title,
                match_tag_contains=tag,
                target_document_title=document_title,
            )
            return rule.id

    rule_id = _run(_add())
    console.print(f"[bold green]✓[/bold green] Rule {rule_id} created")


@rules_cli.command("remove")
def rules_remove(
    rule_id: UUID = typer.Argument(..., help="Rule ID"),
):
    """Delete a grouping rule."""
    tenant_id = get_config().tenant_id

    async def _remove():
        async with get_session() as session:
            await GroupRuleRepository(session).remove_rule(tenant_id, rule_id)

    _run(_remove())
    console.print(f"[bold green]✓[/bold green] Rule {rule_id} removed")


@web_cli.command("serve")
def web_serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8001, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the FastAPI app."""
    import uvicorn

    typer.echo(f"Starting estimating API on http://{host}:{port}")
    uvicorn.run("constructos.web.app:app", host=host, port=port, reload=reload, workers=1)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
