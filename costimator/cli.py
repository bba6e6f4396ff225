"""Costimator CLI - async commands over the costing core.

Commands:
- init: Initialize database schema
- create-project: Create an empty project
- classify: Show the DPWH Part of a pay item
- import-schedule: Import schedule items (CSV/XLSX)
- calculate: Preview takeoff lines from a project's schedule items
- generate-boq: Run schedule → takeoff → BOQ and record a CalcRun
- export-boq: Write a CalcRun's BOQ to an Excel workbook
- versions list|create|duplicate|status: Takeoff version management
- estimates create|list|submit|approve|reject: Estimate approval workflow
"""

from __future__ import annotations

import asyncio
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from costimator.calcruns.store import CalcRunStore
from costimator.catalog.classifier import classify
from costimator.catalog.service import CatalogService, load_catalog
from costimator.config import get_config
from costimator.core.logging import configure_logging
from costimator.db.connection import close_db, get_engine, get_session
from costimator.db.models import Base
from costimator.db.projects import create_project, get_project
from costimator.errors import CostimatorError
from costimator.ingestion.schedules import ingest_schedule
from costimator.models import EstimateType, VersionType
from costimator.pipeline.orchestrator import GenerationPipeline
from costimator.reporting.boq_export import export_boq_excel
from costimator.takeoff.schedule import calculate_schedule_items
from costimator.versioning.manager import VersionManager
from costimator.workflow import estimates as estimate_workflow

app = typer.Typer(
    name="costimator",
    help="Costimator - DPWH quantity takeoff, BOQ and estimate workflow",
    no_args_is_help=True,
)
versions_cli = typer.Typer(help="Takeoff version management")
app.add_typer(versions_cli, name="versions")

estimates_cli = typer.Typer(help="Estimate approval workflow")
app.add_typer(estimates_cli, name="estimates")

console = Console()


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
):
    configure_logging(log_level)


def _load_catalog() -> CatalogService:
    """Load the pay item catalog, turning a bad dataset into a clean exit code."""
    try:
        return load_catalog()
    except CostimatorError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(code=1)


def _run(coro) -> None:
    """Run a coroutine, turning domain errors into a clean exit code."""

    async def _with_engine_cleanup():
        try:
            await coro
        finally:
            await close_db()

    try:
        asyncio.run(_with_engine_cleanup())
    except CostimatorError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(code=1)


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        engine = get_engine()
        async with engine.begin() as conn:
            if drop:
                console.print("[yellow]Dropping existing tables...[/yellow]")
                await conn.run_sync(Base.metadata.drop_all)
            console.print("[green]Creating tables...[/green]")
            await conn.run_sync(Base.metadata.create_all)
        await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command(name="create-project")
def create_project_cmd(
    name: str = typer.Argument(..., help="Project name"),
    location: str | None = typer.Option(None, "--location", help="Project location"),
):
    """Create an empty project."""

    async def _create():
        async with get_session() as session:
            project = await create_project(session, name, location)
        console.print(f"[bold green]✓[/bold green] Created project {project.id} ({project.name})")

    _run(_create())


@app.command(name="classify")
def classify_cmd(
    item_numbers: list[str] = typer.Argument(..., help="DPWH pay item numbers"),
    category: str | None = typer.Option(None, "--category", help="Catalog category text"),
):
    """Show the DPWH Part and subcategory of pay items."""
    catalog = _load_catalog()

    table = Table(title="DPWH Classification")
    table.add_column("Item", style="cyan")
    table.add_column("Part")
    table.add_column("Subcategory")
    table.add_column("Catalog description", style="dim")

    for item_number in item_numbers:
        catalog_item = catalog.get(item_number)
        result = classify(item_number, category or (catalog_item.category if catalog_item else None))
        table.add_row(
            item_number,
            result.label or "[yellow]unclassified[/yellow]",
            result.subcategory,
            catalog_item.description if catalog_item else "[red]not in catalog[/red]",
        )

    console.print(table)


@app.command(name="import-schedule")
def import_schedule_cmd(
    files: list[Path] = typer.Argument(..., help="Schedule files (CSV/XLSX)"),
    project_id: str = typer.Option(..., "--project", help="Project ID"),
):
    """Import schedule items from CSV or XLSX files."""
    catalog = _load_catalog()
    console.print(f"[bold]Importing schedule items:[/bold] project={project_id}")

    async def _ingest():
        total_success = 0
        total_errors: list[str] = []

        for file_path in files:
            console.print(f"  Processing: {file_path}")
            try:
                async with get_session() as session:
                    success_count, errors = await ingest_schedule(
                        session, catalog, file_path, project_id
                    )
            except (FileNotFoundError, ValueError, CostimatorError) as e:
                console.print(f"    [red]✗[/red] Failed: {e}")
                total_errors.append(str(e))
                continue

            total_success += success_count
            total_errors.extend(errors)
            console.print(f"    [green]✓[/green] {success_count} items imported")
            if errors:
                console.print(f"    [yellow]⚠[/yellow] {len(errors)} errors")
                for err in errors[:5]:  # Show first 5 errors
                    console.print(f"      {err}", style="dim")

        console.print(f"\n[bold green]✓[/bold green] Total: {total_success} items imported")
        if total_errors:
            console.print(f"[yellow]⚠[/yellow] {len(total_errors)} errors (see above)")

    _run(_ingest())


@app.command()
def calculate(
    project_id: str = typer.Option(..., "--project", help="Project ID"),
):
    """Preview takeoff lines for a project's schedule items (nothing is saved)."""

    async def _calculate():
        async with get_session() as session:
            project = await get_project(session, project_id)

        result = calculate_schedule_items(project.schedule_items, project_id)

        table = Table(title=f"Takeoff Lines - {project.name}")
        table.add_column("Source", style="cyan")
        table.add_column("Trade")
        table.add_column("DPWH Item")
        table.add_column("Quantity", justify="right")
        table.add_column("Unit")

        for line in result.takeoff_lines:
            table.add_row(
                line.source_element_id,
                line.trade.value,
                line.tag_value("dpwh") or "-",
                f"{line.quantity:,}",
                line.unit,
            )

        console.print(table)
        console.print(f"\n[bold]Items:[/bold] {result.summary['total_items']}")
        for category, count in result.summary["by_category"].items():
            console.print(f"  {category}: {count}")
        for err in result.errors:
            console.print(f"[red]✗[/red] {err}")

    _run(_calculate())


@app.command(name="generate-boq")
def generate_boq_cmd(
    project_id: str = typer.Option(..., "--project", help="Project ID"),
    run_id: str | None = typer.Option(None, "--run-id", help="Attach to an existing CalcRun"),
    save_version: bool = typer.Option(False, "--save-version", help="Snapshot as a draft version"),
    created_by: str | None = typer.Option(None, "--by", help="Version author"),
):
    """Generate the BOQ for a project and record it on a CalcRun."""
    catalog = _load_catalog()

    async def _generate():
        async with get_session() as session:
            result = await GenerationPipeline(session, catalog).run(
                project_id, run_id, save_version=save_version, created_by=created_by
            )

        table = Table(title=f"Bill of Quantities (run {result.run_id})")
        table.add_column("Item", style="cyan")
        table.add_column("Description")
        table.add_column("Quantity", justify="right")
        table.add_column("Unit")
        table.add_column("Sources", justify="right")

        for line in result.boq_lines:
            table.add_row(
                line.dpwh_item_number_raw,
                line.description,
                f"{line.quantity:,}",
                line.unit,
                str(len(line.source_takeoff_line_ids)),
            )

        console.print(table)
        console.print(f"\n[bold]Status:[/bold] {result.status.value}")
        if result.version_id:
            console.print(f"[bold]Version:[/bold] {result.version_id}")
        for warning in result.warnings:
            console.print(f"[yellow]⚠[/yellow] {warning}")
        for err in result.errors:
            console.print(f"[red]✗[/red] {err}")

    _run(_generate())


@app.command(name="export-boq")
def export_boq_cmd(
    project_id: str = typer.Option(..., "--project", help="Project ID"),
    output: Path = typer.Option(..., "--out", "-o", help="Output XLSX file"),
    run_id: str | None = typer.Option(None, "--run-id", help="CalcRun to export (default: latest)"),
):
    """Export a CalcRun's BOQ lines to an Excel workbook."""
    catalog = _load_catalog()

    async def _export():
        async with get_session() as session:
            project = await get_project(session, project_id)
            store = CalcRunStore(session)
            run = await store.get_run(run_id, project_id) if run_id else await store.latest_run(project_id)

        if run is None:
            console.print("[yellow]No calc runs found for project[/yellow]")
            raise typer.Exit(code=1)

        buffer = export_boq_excel(run.boq_lines, catalog, project.name)
        output.write_bytes(buffer.getvalue())
        console.print(
            f"[bold green]✓[/bold green] Exported {len(run.boq_lines)} BOQ lines "
            f"from run {run.run_id} to {output}"
        )

    _run(_export())


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------


@versions_cli.command("list")
def versions_list(
    project_id: str = typer.Option(..., "--project", help="Project ID"),
    include_superseded: bool = typer.Option(False, "--all", help="Include superseded versions"),
):
    """List takeoff versions, newest first."""

    async def _list():
        async with get_session() as session:
            versions = await VersionManager(session).list_versions(project_id, include_superseded)

        table = Table(title="Takeoff Versions")
        table.add_column("#", justify="right")
        table.add_column("Label", style="cyan")
        table.add_column("Type")
        table.add_column("Status")
        table.add_column("BOQ lines", justify="right")
        table.add_column("Parent", style="dim")
        table.add_column("ID", style="dim")

        for version in versions:
            table.add_row(
                str(version.version_number),
                version.version_label,
                version.version_type.value,
                version.status.value,
                str(version.snapshot.boq_line_count),
                version.parent_version_id or "-",
                version.id,
            )

        console.print(table)

    _run(_list())


@versions_cli.command("create")
def versions_create(
    project_id: str = typer.Option(..., "--project", help="Project ID"),
    label: str | None = typer.Option(None, "--label", help="Version label"),
    version_type: VersionType = typer.Option(VersionType.PRELIMINARY, "--type", help="Version type"),
    description: str = typer.Option("", "--description", help="Description"),
    created_by: str | None = typer.Option(None, "--by", help="Author"),
):
    """Snapshot the live project as a new draft version."""

    async def _create():
        async with get_session() as session:
            version = await VersionManager(session).create_version(
                project_id,
                version_label=label,
                version_type=version_type,
                description=description,
                created_by=created_by,
            )
        console.print(
            f"[bold green]✓[/bold green] Created version {version.version_number} "
            f"({version.version_label}) id={version.id}"
        )

    _run(_create())


@versions_cli.command("duplicate")
def versions_duplicate(
    version_id: str = typer.Argument(..., help="Source version ID"),
    label: str | None = typer.Option(None, "--label", help="New version label"),
    version_type: VersionType | None = typer.Option(None, "--type", help="New version type"),
    description: str | None = typer.Option(None, "--description", help="Description"),
    created_by: str | None = typer.Option(None, "--by", help="Author"),
):
    """Duplicate a version into a new draft."""

    async def _duplicate():
        async with get_session() as session:
            version = await VersionManager(session).duplicate_version(
                version_id,
                version_label=label,
                version_type=version_type,
                description=description,
                created_by=created_by,
            )
        console.print(
            f"[bold green]✓[/bold green] Duplicated as version {version.version_number} "
            f"({version.version_label}) id={version.id}"
        )

    _run(_duplicate())


@versions_cli.command("status")
def versions_status(
    version_id: str = typer.Argument(..., help="Version ID"),
    action: str = typer.Argument(..., help="submit, approve, reject or supersede"),
    actor: str | None = typer.Option(None, "--by", help="Acting user"),
    reason: str | None = typer.Option(None, "--reason", help="Rejection reason"),
):
    """Move a version through its lifecycle."""

    async def _transition():
        async with get_session() as session:
            manager = VersionManager(session)
            if action == "submit":
                version = await manager.submit_version(version_id, actor)
            elif action == "approve":
                version = await manager.approve_version(version_id, actor)
            elif action == "reject":
                version = await manager.reject_version(version_id, reason or "", actor)
            elif action == "supersede":
                version = await manager.supersede_version(version_id)
            else:
                console.print(
                    f"[red]Invalid action {action!r}. Must be: submit, approve, reject, or supersede[/red]"
                )
                raise typer.Exit(code=2)

        console.print(
            f"[bold green]✓[/bold green] Version {version.version_number} is now {version.status.value}"
        )

    _run(_transition())


# ---------------------------------------------------------------------------
# Estimates
# ---------------------------------------------------------------------------


@estimates_cli.command("create")
def estimates_create(
    project_id: str = typer.Option(..., "--project", help="Project ID"),
    direct_cost: str = typer.Option("0", "--direct-cost", help="Total direct cost"),
    estimate_type: EstimateType = typer.Option(EstimateType.DETAILED, "--type", help="Estimate type"),
    prepared_by: str | None = typer.Option(None, "--by", help="Preparer"),
):
    """Create the next draft estimate for a project."""
    try:
        total_direct_cost = Decimal(direct_cost)
    except InvalidOperation:
        console.print(f"[red]Invalid direct cost: {direct_cost}[/red]")
        raise typer.Exit(code=2)

    async def _create():
        async with get_session() as session:
            estimate = await estimate_workflow.create_estimate(
                session,
                project_id,
                total_direct_cost=total_direct_cost,
                estimate_type=estimate_type,
                prepared_by=prepared_by,
            )
        currency = get_config().markups.currency
        console.print(
            f"[bold green]✓[/bold green] Created estimate v{estimate.version} "
            f"(grand total {currency} {estimate.grand_total:,})"
        )

    _run(_create())


@estimates_cli.command("list")
def estimates_list(
    project_id: str = typer.Option(..., "--project", help="Project ID"),
):
    """List a project's estimates."""

    async def _list():
        async with get_session() as session:
            estimates = await estimate_workflow.list_estimates(session, project_id)

        table = Table(title="Project Estimates")
        table.add_column("Version", justify="right")
        table.add_column("Type")
        table.add_column("Status", style="cyan")
        table.add_column("Grand total", justify="right")
        table.add_column("Prepared by")
        table.add_column("Approved by")

        for estimate in estimates:
            table.add_row(
                str(estimate.version),
                estimate.estimate_type.value,
                estimate.status.value,
                f"{estimate.grand_total:,}",
                estimate.prepared_by or "-",
                estimate.approved_by or "-",
            )

        console.print(table)

    _run(_list())


@estimates_cli.command("submit")
def estimates_submit(
    project_id: str = typer.Option(..., "--project", help="Project ID"),
    version: int = typer.Option(..., "--version", help="Estimate version"),
    prepared_by: str | None = typer.Option(None, "--by", help="Preparer"),
):
    """Submit a draft estimate for approval."""

    async def _submit():
        async with get_session() as session:
            estimate = await estimate_workflow.submit_estimate(session, project_id, version, prepared_by)
        console.print(f"[bold green]✓[/bold green] Estimate v{estimate.version} submitted for approval")

    _run(_submit())


@estimates_cli.command("approve")
def estimates_approve(
    project_id: str = typer.Option(..., "--project", help="Project ID"),
    version: int = typer.Option(..., "--version", help="Estimate version"),
    approved_by: str | None = typer.Option(None, "--by", help="Approver"),
):
    """Approve a submitted estimate."""

    async def _approve():
        async with get_session() as session:
            estimate = await estimate_workflow.approve_estimate(session, project_id, version, approved_by)
        console.print(
            f"[bold green]✓[/bold green] Estimate v{estimate.version} approved by {estimate.approved_by}"
        )

    _run(_approve())


@estimates_cli.command("reject")
def estimates_reject(
    project_id: str = typer.Option(..., "--project", help="Project ID"),
    version: int = typer.Option(..., "--version", help="Estimate version"),
    reason: str | None = typer.Option(None, "--reason", help="Rejection reason"),
    reviewed_by: str | None = typer.Option(None, "--by", help="Reviewer"),
):
    """Reject a submitted estimate."""

    async def _reject():
        async with get_session() as session:
            estimate = await estimate_workflow.reject_estimate(
                session, project_id, version, reason, reviewed_by
            )
        console.print(f"[bold green]✓[/bold green] Estimate v{estimate.version} rejected")

    _run(_reject())


if __name__ == "__main__":
    app()
