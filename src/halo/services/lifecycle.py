from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime

from halo.domain import lifecycle, rules
from halo.domain.models import Identity, Job, Lead
from halo.domain.stages import JobStatus
from halo.services.events import EventLogger
from halo.services.utils import new_id, utc_now
from halo.store import records
from halo.store.sqlite import SqliteStore


def record_contact_attempt(
    store: SqliteStore,
    identity: Identity,
    lead_id: str,
    attempt: int,
    is_cold: bool = False,
    inspector: str | None = None,
    internal_notes: str | None = None,
    logger: EventLogger | None = None,
) -> Lead:
    rules.validate_contact_attempt(attempt)
    with store.session() as session:
        lead = records.get_lead(session, identity, lead_id)
        patch = lifecycle.record_contact_attempt(lead, attempt, is_cold, inspector, internal_notes)
        records.patch_lead(session, identity, lead_id, patch, utc_now())
    _log(logger, "contact_attempt", "lead", lead_id, patch)
    return replace(lead, **patch)


def place_on_calendar(
    store: SqliteStore,
    identity: Identity,
    lead_id: str,
    when: date | datetime,
    logger: EventLogger | None = None,
) -> Lead:
    if when is None:
        raise rules.ValidationError("tentativeDate is required.")
    with store.session() as session:
        lead = records.get_lead(session, identity, lead_id)
        patch = lifecycle.place_on_calendar(lead, when)
        records.patch_lead(session, identity, lead_id, patch, utc_now())
    _log(logger, "placed", "lead", lead_id, patch)
    return replace(lead, **patch)


def remove_from_calendar(
    store: SqliteStore,
    identity: Identity,
    lead_id: str,
    logger: EventLogger | None = None,
) -> Lead:
    with store.session() as session:
        lead = records.get_lead(session, identity, lead_id)
        patch = lifecycle.remove_from_calendar(lead)
        records.patch_lead(session, identity, lead_id, patch, utc_now())
    _log(logger, "unplaced", "lead", lead_id, patch)
    return replace(lead, **patch)


def restore_cold_lead(
    store: SqliteStore,
    identity: Identity,
    lead_id: str,
    logger: EventLogger | None = None,
) -> Lead:
    with store.session() as session:
        lead = records.get_lead(session, identity, lead_id)
        patch = lifecycle.restore_cold_lead(lead)
        records.patch_lead(session, identity, lead_id, patch, utc_now())
    _log(logger, "lead_restored", "lead", lead_id, patch)
    return replace(lead, **patch)


def update_lead_details(
    store: SqliteStore,
    identity: Identity,
    lead_id: str,
    inspector: str | None = None,
    internal_notes: str | None = None,
    logger: EventLogger | None = None,
) -> Lead:
    with store.session() as session:
        lead = records.get_lead(session, identity, lead_id)
        patch = lifecycle.update_lead_details(lead, inspector, internal_notes)
        records.patch_lead(session, identity, lead_id, patch, utc_now())
    if patch:
        _log(logger, "lead_updated", "lead", lead_id, patch)
    return replace(lead, **patch)


def promote(
    store: SqliteStore,
    identity: Identity,
    lead_id: str,
    status: str = JobStatus.SCHEDULED.value,
    scheduled_inspection_date: date | datetime | None = None,
    inspector: str | None = None,
    internal_notes: str | None = None,
    logger: EventLogger | None = None,
) -> Job:
    """Turn a lead into a job; the lead's calendar placement is cleared."""
    rules.validate_enum(status, [s.value for s in JobStatus], "status")
    if status == JobStatus.SCHEDULED.value and scheduled_inspection_date is None:
        raise rules.ValidationError(lifecycle.DATE_REQUIRED)

    now = utc_now()
    with store.session() as session:
        lead = records.get_lead(session, identity, lead_id)
        lead_patch, job = lifecycle.promote(
            lead,
            job_id=new_id(),
            status=status,
            scheduled_inspection_date=scheduled_inspection_date,
            inspector=inspector,
            internal_notes=internal_notes,
            now=now,
        )
        records.patch_lead(session, identity, lead_id, lead_patch, now)
        records.create_job(session, identity, job, now)
    _log(logger, "promoted", "lead", lead_id, lead_patch)
    return job


def update_job(
    store: SqliteStore,
    identity: Identity,
    job_id: str,
    scheduled_inspection_date: date | datetime | None = None,
    clear_date: bool = False,
    inspector: str | None = None,
    internal_notes: str | None = None,
    logger: EventLogger | None = None,
) -> Job:
    with store.session() as session:
        job = records.get_job(session, identity, job_id)
        patch = lifecycle.edit_job(
            job,
            scheduled_inspection_date=scheduled_inspection_date,
            clear_date=clear_date,
            inspector=inspector,
            internal_notes=internal_notes,
        )
        records.patch_job(session, identity, job_id, patch, utc_now())
    if patch:
        _log(logger, "job_updated", "job", job_id, patch)
    return replace(job, **patch)


def advance_job_to_completed(
    store: SqliteStore,
    identity: Identity,
    job_id: str,
    scheduled_inspection_date: date | datetime | None = None,
    inspector: str | None = None,
    internal_notes: str | None = None,
    logger: EventLogger | None = None,
) -> Job:
    now = utc_now()
    with store.session() as session:
        job = records.get_job(session, identity, job_id)
        patch = lifecycle.complete_job(
            job,
            now=now,
            scheduled_inspection_date=scheduled_inspection_date,
            inspector=inspector,
            internal_notes=internal_notes,
        )
        if patch is None:
            return job
        records.patch_job(session, identity, job_id, patch, now)
    _log(logger, "job_completed", "job", job_id, patch)
    return replace(job, **patch)


def restore_completed_job(
    store: SqliteStore,
    identity: Identity,
    job_id: str,
    logger: EventLogger | None = None,
) -> Job:
    with store.session() as session:
        job = records.get_job(session, identity, job_id)
        patch = lifecycle.reopen_job(job)
        records.patch_job(session, identity, job_id, patch, utc_now())
    _log(logger, "job_reopened", "job", job_id, patch)
    return replace(job, **patch)


def unschedule_job(
    store: SqliteStore,
    identity: Identity,
    job_id: str,
    reopen_as_lead: bool = False,
    logger: EventLogger | None = None,
) -> Lead | None:
    return _retire_job(
        store,
        identity,
        job_id,
        as_cold=False,
        write_lead=reopen_as_lead,
        event_type="job_unscheduled",
        logger=logger,
    )


def mark_job_cold(
    store: SqliteStore,
    identity: Identity,
    job_id: str,
    logger: EventLogger | None = None,
) -> Lead | None:
    """Delete the job and put the customer back in the cold bucket."""
    return _retire_job(
        store,
        identity,
        job_id,
        as_cold=True,
        write_lead=True,
        event_type="job_marked_cold",
        logger=logger,
    )


def _retire_job(
    store: SqliteStore,
    identity: Identity,
    job_id: str,
    *,
    as_cold: bool,
    write_lead: bool,
    event_type: str,
    logger: EventLogger | None,
) -> Lead | None:
    now = utc_now()
    lead = None
    with store.session() as session:
        job = records.get_job(session, identity, job_id)
        records.delete_job(session, identity, job_id)
        if write_lead:
            lead = lifecycle.retire_job(job, lead_id=new_id(), as_cold=as_cold, now=now)
            records.insert_lead(session, lead, now)
    _log(logger, event_type, "job", job_id, ["status"])
    if lead is not None:
        _log(logger, "lead_submitted", "lead", lead.lead_id, ["is_cold_lead"])
    return lead


def _log(logger: EventLogger | None, event_type: str, entity_type: str, entity_id: str, fields) -> None:
    if logger is None:
        return
    logger.log(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        changed_fields=list(fields),
    )
