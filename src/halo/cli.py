from __future__ import annotations

import shutil
from datetime import date
from pathlib import Path
from typing import Annotated

import typer

from halo import __version__
from halo.config import (
    WorkspaceConfig,
    WorkspaceError,
    ensure_workspaces_dir,
    load_workspace,
    set_current_workspace,
    workspace_config_path,
    write_workspace_config,
)
from halo.domain import rules
from halo.domain.models import Identity, Job, Lead
from halo.domain.rules import ValidationError
from halo.domain.stages import Bucket, CalendarViewMode, CampaignStatus, JobStatus, SortOrder
from halo.services import calendar, exports, leads, lifecycle, view_model
from halo.services.events import EventLogger
from halo.services.scheduling import DragError, DragState, PlacementInProgressError, SchedulingController
from halo.services.utils import today_iso
from halo.store import records
from halo.store.records import StoreError
from halo.store.sqlite import SqliteStore

app = typer.Typer(help="Halo leads CLI")
workspace_app = typer.Typer(help="Workspace management")
schema_app = typer.Typer(help="Schema operations")
campaign_app = typer.Typer(help="Campaigns")
lead_app = typer.Typer(help="Lead lifecycle")
job_app = typer.Typer(help="Scheduled and completed jobs")
calendar_app = typer.Typer(help="Inspection calendar")
export_app = typer.Typer(help="Exports")

app.add_typer(workspace_app, name="workspace")
app.add_typer(schema_app, name="schema")
app.add_typer(campaign_app, name="campaign")
app.add_typer(lead_app, name="lead")
app.add_typer(job_app, name="job")
app.add_typer(calendar_app, name="calendar")
app.add_typer(export_app, name="export")

SCHEMA_PATH = Path("resources/schema/canonical.yaml")

Events = Annotated[
    bool,
    typer.Option("--events/--no-events", help="Write events to the workspace log."),
]


@app.callback()
def version_callback(version: bool = typer.Option(False, "--version", help="Show version and exit.")):
    if version:
        typer.echo(__version__)
        raise typer.Exit()


@app.command("init")
def init() -> None:
    """Initialize directories for workspaces and outputs."""
    ensure_workspaces_dir()
    Path("data").mkdir(exist_ok=True)
    Path("exports").mkdir(exist_ok=True)
    typer.echo("Initialized halo directories.")


@workspace_app.command("add")
def workspace_add(
    name: str = typer.Argument(...),
    contractor: str = typer.Option(..., "--contractor", help="Contractor id owning the campaigns."),
    use: bool = typer.Option(True, "--use/--no-use", help="Set as current workspace."),
    force: bool = typer.Option(
        False, "--force", help="Overwrite existing workspace config if it exists."
    ),
) -> None:
    config_path = workspace_config_path(name)
    if config_path.exists() and not force:
        raise typer.BadParameter(
            f"Workspace already exists: {config_path}. Use --force to overwrite."
        )
    config_path = write_workspace_config(name, contractor)
    if use:
        set_current_workspace(name)
    typer.echo(f"Workspace created: {config_path}")


@workspace_app.command("use")
def workspace_use(name: str = typer.Argument(...)) -> None:
    if not workspace_config_path(name).exists():
        raise typer.BadParameter(f"Workspace config not found: {workspace_config_path(name)}")
    set_current_workspace(name)
    typer.echo(f"Active workspace: {name}")


@schema_app.command("apply")
def schema_apply() -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        store.apply_schema(SCHEMA_PATH)
    except StoreError as exc:
        _exit_with_error(str(exc))
    typer.echo("Applied schema to local SQLite.")


@campaign_app.command("add")
def campaign_add(
    name: str = typer.Argument(...),
    status: str = typer.Option(CampaignStatus.ACTIVE.value, "--status"),
) -> None:
    ws, store, identity = _context()
    try:
        campaign_id = leads.add_campaign(store, identity, name, status)
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created campaign: {campaign_id}")


@campaign_app.command("status")
def campaign_status(
    campaign_id: str = typer.Argument(...),
    status: str = typer.Argument(..., help="Active or Inactive"),
) -> None:
    ws, store, identity = _context()
    try:
        leads.set_campaign_status(store, identity, campaign_id, status)
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Campaign {campaign_id}: {status}")


@campaign_app.command("list")
def campaign_list() -> None:
    ws, store, identity = _context()
    try:
        snapshot = view_model.load_snapshot(store, identity)
    except StoreError as exc:
        _exit_with_error(str(exc))
    for summary in view_model.campaign_summaries(snapshot):
        typer.echo(
            f"{summary.campaign_id} | {summary.name} | {summary.campaign_status} | "
            f"{summary.new_lead_count} new | {summary.job_count} jobs"
        )


@lead_app.command("submit")
def lead_submit(
    campaign: str = typer.Option(..., "--campaign"),
    name: str = typer.Option(..., "--name"),
    address: str = typer.Option(..., "--address"),
    email: str = typer.Option(..., "--email"),
    phone: str = typer.Option(..., "--phone"),
    notes: str | None = typer.Option(None, "--notes"),
    events: Events = True,
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        lead_id = leads.submit_lead(
            store,
            campaign,
            name=name,
            address=address,
            email=email,
            phone=phone,
            notes=notes,
            duplicate_window_minutes=ws.tunables.duplicate_window_minutes,
            logger=_event_logger(ws, enabled=events),
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Submitted lead: {lead_id}")


@lead_app.command("list")
def lead_list(
    campaign: str | None = typer.Option(None, "--campaign"),
    bucket: str | None = typer.Option(None, "--bucket", help="leads, cold or completed"),
) -> None:
    ws, store, identity = _context()
    try:
        if bucket:
            rules.validate_enum(bucket, [b.value for b in Bucket], "bucket")
        if bucket == Bucket.COMPLETED.value:
            items = records.fetch_jobs(store, identity).completed
        else:
            items = leads.list_leads(store, identity, campaign_id=campaign)
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    if bucket == Bucket.COMPLETED.value:
        for job in view_model.filter_campaign(items, campaign):
            typer.echo(_job_line(job))
        return
    if bucket == Bucket.COLD.value:
        selected = view_model.cold_leads(items)
    elif bucket == Bucket.LEADS.value:
        selected = view_model.active_leads(items)
    else:
        selected = items
    for lead in selected:
        typer.echo(_lead_line(lead))


@lead_app.command("attempt")
def lead_attempt(
    lead_id: str = typer.Argument(...),
    attempt: int = typer.Argument(..., help="0, 1, 2 or 3"),
    inspector: str | None = typer.Option(None, "--inspector"),
    notes: str | None = typer.Option(None, "--notes"),
    events: Events = True,
) -> None:
    ws, store, identity = _context()
    try:
        lead = lifecycle.record_contact_attempt(
            store,
            identity,
            lead_id,
            attempt,
            inspector=inspector,
            internal_notes=notes,
            logger=_event_logger(ws, enabled=events),
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Lead {lead.lead_id}: {calendar.lead_badge(lead)}")


@lead_app.command("cold")
def lead_cold(lead_id: str = typer.Argument(...), events: Events = True) -> None:
    ws, store, identity = _context()
    try:
        current = records.get_lead(store, identity, lead_id)
        lead = lifecycle.record_contact_attempt(
            store,
            identity,
            lead_id,
            current.contact_attempt,
            is_cold=True,
            logger=_event_logger(ws, enabled=events),
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Lead {lead.lead_id}: {calendar.lead_badge(lead)}")


@lead_app.command("restore")
def lead_restore(lead_id: str = typer.Argument(...), events: Events = True) -> None:
    ws, store, identity = _context()
    try:
        lead = lifecycle.restore_cold_lead(
            store, identity, lead_id, logger=_event_logger(ws, enabled=events)
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Lead {lead.lead_id}: {calendar.lead_badge(lead)}")


@lead_app.command("place")
def lead_place(
    lead_id: str = typer.Argument(...),
    day: str = typer.Argument(..., help="YYYY-MM-DD"),
    events: Events = True,
) -> None:
    ws, store, identity = _context()
    try:
        when = _require_date(day, "date")
        lead = lifecycle.place_on_calendar(
            store, identity, lead_id, when, logger=_event_logger(ws, enabled=events)
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Lead {lead.lead_id} tentatively on {lead.tentative_date:%Y-%m-%d}")


@lead_app.command("unplace")
def lead_unplace(lead_id: str = typer.Argument(...), events: Events = True) -> None:
    ws, store, identity = _context()
    try:
        lead = lifecycle.remove_from_calendar(
            store, identity, lead_id, logger=_event_logger(ws, enabled=events)
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Lead {lead.lead_id} removed from calendar")


@lead_app.command("promote")
def lead_promote(
    lead_id: str = typer.Argument(...),
    day: str | None = typer.Option(None, "--date", help="Inspection date YYYY-MM-DD."),
    status: str = typer.Option(JobStatus.SCHEDULED.value, "--status"),
    inspector: str | None = typer.Option(None, "--inspector"),
    notes: str | None = typer.Option(None, "--notes"),
    events: Events = True,
) -> None:
    ws, store, identity = _context()
    try:
        job = lifecycle.promote(
            store,
            identity,
            lead_id,
            status=status,
            scheduled_inspection_date=rules.parse_date(day, "date"),
            inspector=inspector,
            internal_notes=notes,
            logger=_event_logger(ws, enabled=events),
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created job: {job.job_id}")


@lead_app.command("note")
def lead_note(
    lead_id: str = typer.Argument(...),
    inspector: str | None = typer.Option(None, "--inspector"),
    notes: str | None = typer.Option(None, "--notes"),
    events: Events = True,
) -> None:
    ws, store, identity = _context()
    try:
        lead = lifecycle.update_lead_details(
            store,
            identity,
            lead_id,
            inspector=inspector,
            internal_notes=notes,
            logger=_event_logger(ws, enabled=events),
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Updated lead: {lead.lead_id}")


@job_app.command("list")
def job_list(
    campaign: str | None = typer.Option(None, "--campaign"),
    status: str | None = typer.Option(None, "--status", help="scheduled or completed"),
) -> None:
    ws, store, identity = _context()
    try:
        if status:
            rules.validate_enum(status, [s.value for s in JobStatus], "status")
        partition = records.fetch_jobs(store, identity)
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    if status == JobStatus.SCHEDULED.value:
        jobs = partition.scheduled
    elif status == JobStatus.COMPLETED.value:
        jobs = partition.completed
    else:
        jobs = partition.all()
    for job in view_model.filter_campaign(jobs, campaign):
        typer.echo(_job_line(job))


@job_app.command("edit")
def job_edit(
    job_id: str = typer.Argument(...),
    day: str | None = typer.Option(None, "--date", help="Inspection date YYYY-MM-DD."),
    clear_date: bool = typer.Option(False, "--clear-date"),
    inspector: str | None = typer.Option(None, "--inspector"),
    notes: str | None = typer.Option(None, "--notes"),
    events: Events = True,
) -> None:
    ws, store, identity = _context()
    try:
        job = lifecycle.update_job(
            store,
            identity,
            job_id,
            scheduled_inspection_date=rules.parse_date(day, "date"),
            clear_date=clear_date,
            inspector=inspector,
            internal_notes=notes,
            logger=_event_logger(ws, enabled=events),
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Updated job: {job.job_id}")


@job_app.command("complete")
def job_complete(job_id: str = typer.Argument(...), events: Events = True) -> None:
    ws, store, identity = _context()
    try:
        job = lifecycle.advance_job_to_completed(
            store, identity, job_id, logger=_event_logger(ws, enabled=events)
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Job {job.job_id}: {job.status}")


@job_app.command("reopen")
def job_reopen(job_id: str = typer.Argument(...), events: Events = True) -> None:
    ws, store, identity = _context()
    try:
        job = lifecycle.restore_completed_job(
            store, identity, job_id, logger=_event_logger(ws, enabled=events)
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Job {job.job_id}: {job.status}")


@job_app.command("unschedule")
def job_unschedule(
    job_id: str = typer.Argument(...),
    reopen_as_lead: bool = typer.Option(
        False, "--reopen-as-lead", help="Put the customer back in the leads bucket."
    ),
    events: Events = True,
) -> None:
    ws, store, identity = _context()
    try:
        lead = lifecycle.unschedule_job(
            store,
            identity,
            job_id,
            reopen_as_lead=reopen_as_lead,
            logger=_event_logger(ws, enabled=events),
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted job: {job_id}")
    if lead is not None:
        typer.echo(f"Reopened as lead: {lead.lead_id}")


@job_app.command("cold")
def job_cold(job_id: str = typer.Argument(...), events: Events = True) -> None:
    ws, store, identity = _context()
    try:
        lead = lifecycle.mark_job_cold(
            store, identity, job_id, logger=_event_logger(ws, enabled=events)
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted job: {job_id}")
    typer.echo(f"Cold lead: {lead.lead_id}")


@job_app.command("move")
def job_move(
    job_id: str = typer.Argument(...),
    status: str = typer.Argument(..., help="Target column: scheduled or completed"),
    events: Events = True,
) -> None:
    """Drag a job card to another job board column."""
    ws, store, identity = _context()
    board = view_model.SidebarViewModel(
        lambda: view_model.load_snapshot(store, identity), page_size=ws.tunables.page_size
    )
    if not board.refresh():
        _exit_with_error(board.error)
    if board.find_job(job_id) is None:
        _exit_with_error("Job not found")
    controller = SchedulingController(
        store,
        identity,
        board,
        drag_state=DragState(settle_ms=ws.tunables.drag_settle_ms),
        logger=_event_logger(ws, enabled=events),
    )
    try:
        item = controller.start_drag(job_id, "job")
        controller.end_drag()
        controller.drop_on_column(status, item)
    except (ValidationError, DragError, PlacementInProgressError) as exc:
        _exit_with_error(str(exc))
    if controller.error:
        _exit_with_error(controller.error)
    job = board.find_job(job_id)
    typer.echo(f"Job {job_id}: {job.status if job else status}")


@calendar_app.command("show")
def calendar_show(
    day: str | None = typer.Option(None, "--date", help="Any day inside the period, YYYY-MM-DD."),
    view: str = typer.Option(CalendarViewMode.MONTH.value, "--view", help="month or week"),
    campaign: str | None = typer.Option(None, "--campaign"),
) -> None:
    ws, store, identity = _context()
    try:
        anchor = rules.parse_date(day, "date") or date.today()
        snapshot = view_model.load_snapshot(store, identity)
        state = calendar.CalendarState(anchor, view)
        weeks = calendar.month_grid(
            _calendar_events(snapshot, campaign), state.anchor, state.view, ws.tunables.max_rows
        )
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    typer.echo(state.title)
    for week in weeks:
        for cell in week:
            if not cell.visible:
                continue
            for event in cell.visible:
                typer.echo(
                    f"{cell.day.isoformat()} | {calendar.event_badge(event)} | {event.title}"
                )
            if cell.more_label:
                typer.echo(f"{cell.day.isoformat()} | {cell.more_label}")


@calendar_app.command("agenda")
def calendar_agenda(
    day: str | None = typer.Option(None, "--today", help="Start day, YYYY-MM-DD."),
    days: int | None = typer.Option(None, "--days"),
    campaign: str | None = typer.Option(None, "--campaign"),
) -> None:
    ws, store, identity = _context()
    try:
        today = rules.parse_date(day, "today") or date.today()
        snapshot = view_model.load_snapshot(store, identity)
    except (ValidationError, StoreError) as exc:
        _exit_with_error(str(exc))
    agenda = calendar.agenda(
        _calendar_events(snapshot, campaign), today, days or ws.tunables.agenda_days
    )
    if not agenda:
        typer.echo("No upcoming events.")
        return
    for agenda_day in agenda:
        typer.echo(agenda_day.label)
        for event in agenda_day.events:
            typer.echo(f"  {calendar.agenda_label(event)} | {event.customer_name} | {event.phone}")


@calendar_app.command("drop")
def calendar_drop(
    lead_id: str = typer.Argument(...),
    day: str = typer.Argument(..., help="YYYY-MM-DD"),
    events: Events = True,
) -> None:
    """Drag a lead onto a calendar day."""
    ws, store, identity = _context()
    sidebar = view_model.SidebarViewModel(
        lambda: view_model.load_snapshot(store, identity), page_size=ws.tunables.page_size
    )
    sidebar.refresh()
    controller = SchedulingController(
        store,
        identity,
        sidebar,
        drag_state=DragState(settle_ms=ws.tunables.drag_settle_ms),
        logger=_event_logger(ws, enabled=events),
    )
    try:
        cell = _require_date(day, "date")
        item = controller.start_drag(lead_id)
        controller.end_drag()
        request = controller.drop(cell, item)
    except (ValidationError, DragError, PlacementInProgressError) as exc:
        _exit_with_error(str(exc))
    if request is None:
        _exit_with_error(controller.error or "Drop cancelled.")
    typer.echo(f"Lead {request.record_id} tentatively on {request.seeded_date:%Y-%m-%d}")


@app.command("sidebar")
def sidebar(
    campaign: str = typer.Option(view_model.ALL_CAMPAIGNS, "--campaign"),
    sort: str = typer.Option(SortOrder.NEWEST.value, "--sort", help="newest or oldest"),
    bucket: str = typer.Option(Bucket.LEADS.value, "--bucket", help="leads, cold or completed"),
    page: int = typer.Option(1, "--page", help="1-based page number."),
) -> None:
    ws, store, identity = _context()
    model = view_model.SidebarViewModel(
        lambda: view_model.load_snapshot(store, identity), page_size=ws.tunables.page_size
    )
    if not model.refresh():
        _exit_with_error(model.error)
    try:
        model.select_campaign(campaign)
        model.set_sort_order(sort)
        model.set_bucket(bucket)
    except ValidationError as exc:
        _exit_with_error(str(exc))
    model.set_page(page - 1)

    for option in model.campaign_options:
        typer.echo(f"{option.name} ({option.new_lead_count} new, {option.job_count} jobs)")
    typer.echo("")
    for item in model.bucket_items():
        typer.echo(_job_line(item) if isinstance(item, Job) else _lead_line(item))
    if model.bucket == Bucket.LEADS.value and model.total_pages:
        typer.echo(f"Page {model.page + 1} of {model.total_pages}")


@app.command("dashboard")
def dashboard() -> None:
    """Campaign and lead totals with the most recent submissions."""
    ws, store, identity = _context()
    try:
        summary = view_model.load_dashboard_summary(store, identity)
    except StoreError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Campaigns: {summary.total_campaigns} ({summary.active_campaigns} active)")
    typer.echo(f"Leads: {summary.total_leads}")
    for lead in summary.recent_leads:
        typer.echo(
            f"{lead.submitted_at:%Y-%m-%d %H:%M} | {lead.campaign_name} | {lead.name} | {lead.email}"
        )


@export_app.command("excel")
def export_excel(out: str = typer.Option(..., "--out")) -> None:
    ws, store, identity = _context()
    try:
        exports.export_excel(store, Path(out), contractor_id=identity.contractor_id)
    except StoreError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Exported Excel to {out}")


@app.command("snapshot")
def snapshot() -> None:
    ws, store, identity = _context()
    snapshot_dir = Path("data") / "snapshots" / today_iso()
    snapshot_dir.mkdir(parents=True, exist_ok=True)
    if ws.store.sqlite_path.exists():
        shutil.copy2(ws.store.sqlite_path, snapshot_dir / "local.sqlite")
    try:
        exports.export_csv_tables(store, snapshot_dir, contractor_id=identity.contractor_id)
    except StoreError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Snapshot created at {snapshot_dir}")


def _calendar_events(snapshot: view_model.Snapshot, campaign: str | None):
    return calendar.build_events(
        view_model.filter_campaign(snapshot.leads, campaign),
        view_model.scheduled_jobs(snapshot.jobs, campaign),
    )


def _lead_line(lead: Lead) -> str:
    tentative = f"{lead.tentative_date:%Y-%m-%d}" if lead.tentative_date else ""
    return (
        f"{lead.lead_id} | {lead.campaign_name} | {lead.name} | {lead.phone} | "
        f"{calendar.lead_badge(lead)} | {tentative}"
    )


def _job_line(job: Job) -> str:
    scheduled = (
        f"{job.scheduled_inspection_date:%Y-%m-%d}" if job.scheduled_inspection_date else ""
    )
    return f"{job.job_id} | {job.campaign_name} | {job.customer_name} | {job.status} | {scheduled}"


def _require_date(value: str, field: str) -> date:
    parsed = rules.parse_date(value, field)
    if parsed is None:
        raise ValidationError(f"{field} is required.")
    return parsed


def _context() -> tuple[WorkspaceConfig, SqliteStore, Identity]:
    ws = _load_workspace()
    try:
        identity = ws.identity()
    except WorkspaceError as exc:
        _exit_with_error(str(exc))
    return ws, SqliteStore(ws.store.sqlite_path), identity


def _load_workspace() -> WorkspaceConfig:
    try:
        return load_workspace()
    except WorkspaceError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc


def _exit_with_error(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _event_logger(ws: WorkspaceConfig, enabled: bool) -> EventLogger:
    return EventLogger(path=ws.path / "events.ndjson", workspace=ws.name, enabled=enabled)


if __name__ == "__main__":
    app()
