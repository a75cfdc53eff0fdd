from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from halo.domain import rules
from halo.domain.models import Job, Lead
from halo.domain.rules import ValidationError
from halo.domain.stages import PROMOTED_LEAD_STATUSES, JobStatus, LeadJobStatus

DATE_REQUIRED = "date required to schedule"


class TransitionError(ValidationError):
    pass


@dataclass(frozen=True)
class Uncontacted:
    pass


@dataclass(frozen=True)
class Attempted:
    attempt: int


@dataclass(frozen=True)
class Cold:
    attempt: int


@dataclass(frozen=True)
class TentativelyScheduled:
    tentative_date: datetime
    attempt: int


@dataclass(frozen=True)
class Promoted:
    status: str


LeadStage = Uncontacted | Attempted | Cold | TentativelyScheduled | Promoted


def lead_stage(lead: Lead) -> LeadStage:
    # Cold outranks a tentative placement for display purposes.
    if lead.job_status in PROMOTED_LEAD_STATUSES:
        return Promoted(status=lead.job_status)
    if lead.is_cold_lead:
        return Cold(attempt=lead.contact_attempt)
    if lead.tentative_date is not None:
        return TentativelyScheduled(tentative_date=lead.tentative_date, attempt=lead.contact_attempt)
    if lead.contact_attempt:
        return Attempted(attempt=lead.contact_attempt)
    return Uncontacted()


def is_promoted(lead: Lead) -> bool:
    return isinstance(lead_stage(lead), Promoted)


def legacy_status_for_attempt(attempt: int) -> str:
    return LeadJobStatus.NEW.value if attempt == 0 else LeadJobStatus.CONTACTED.value


def record_contact_attempt(
    lead: Lead,
    attempt: object,
    is_cold: bool,
    inspector: str | None = None,
    internal_notes: str | None = None,
) -> dict[str, Any]:
    attempt = rules.validate_contact_attempt(attempt)
    _require_not_promoted(lead)
    patch: dict[str, Any] = {
        "contact_attempt": attempt,
        "is_cold_lead": bool(is_cold),
        "job_status": legacy_status_for_attempt(attempt),
    }
    patch.update(_note_fields(inspector, internal_notes))
    return patch


def place_on_calendar(lead: Lead, when: date | datetime) -> dict[str, Any]:
    if when is None:
        raise ValidationError("tentativeDate is required.")
    _require_not_promoted(lead)
    return {"tentative_date": rules.local_noon(when)}


def remove_from_calendar(lead: Lead) -> dict[str, Any]:
    _require_not_promoted(lead)
    if lead.tentative_date is None:
        raise TransitionError("Lead is not on the calendar.")
    return {"tentative_date": None}


def restore_cold_lead(lead: Lead) -> dict[str, Any]:
    if not isinstance(lead_stage(lead), Cold):
        raise TransitionError("Lead is not in the cold bucket.")
    return {"is_cold_lead": False}


def update_lead_details(
    lead: Lead, inspector: str | None = None, internal_notes: str | None = None
) -> dict[str, Any]:
    return _note_fields(inspector, internal_notes)


def promote(
    lead: Lead,
    *,
    job_id: str,
    status: str,
    scheduled_inspection_date: date | datetime | None,
    inspector: str | None,
    internal_notes: str | None,
    now: datetime,
) -> tuple[dict[str, Any], Job]:
    rules.validate_enum(status, [s.value for s in JobStatus], "status")
    if status == JobStatus.SCHEDULED.value and scheduled_inspection_date is None:
        raise ValidationError(DATE_REQUIRED)
    _require_not_promoted(lead)

    job = Job(
        job_id=job_id,
        campaign_id=lead.campaign_id,
        campaign_name=lead.campaign_name,
        customer_name=lead.name,
        email=lead.email,
        phone=lead.phone,
        address=lead.address,
        notes=lead.notes,
        status=status,
        scheduled_inspection_date=(
            rules.local_noon(scheduled_inspection_date) if scheduled_inspection_date else None
        ),
        inspector=rules.clean_optional(inspector),
        internal_notes=rules.clean_optional(internal_notes),
        promoted_at=now,
        completed_at=now if status == JobStatus.COMPLETED.value else None,
    )
    lead_patch = {"tentative_date": None, "job_status": status}
    return lead_patch, job


def edit_job(
    job: Job,
    *,
    scheduled_inspection_date: date | datetime | None = None,
    clear_date: bool = False,
    inspector: str | None = None,
    internal_notes: str | None = None,
) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    if clear_date:
        if job.status == JobStatus.SCHEDULED.value:
            raise ValidationError(DATE_REQUIRED)
        patch["scheduled_inspection_date"] = None
    elif scheduled_inspection_date is not None:
        patch["scheduled_inspection_date"] = rules.local_noon(scheduled_inspection_date)
    patch.update(_note_fields(inspector, internal_notes))
    return patch


def complete_job(
    job: Job,
    *,
    now: datetime,
    scheduled_inspection_date: date | datetime | None = None,
    inspector: str | None = None,
    internal_notes: str | None = None,
) -> dict[str, Any] | None:
    """Return the completion patch, or None when the job is already completed."""
    if job.status == JobStatus.COMPLETED.value:
        return None
    patch = edit_job(
        job,
        scheduled_inspection_date=scheduled_inspection_date,
        inspector=inspector,
        internal_notes=internal_notes,
    )
    patch["status"] = JobStatus.COMPLETED.value
    patch["completed_at"] = now
    return patch


def reopen_job(job: Job) -> dict[str, Any]:
    if job.status != JobStatus.COMPLETED.value:
        raise TransitionError("Only completed jobs can be restored to scheduled.")
    if job.scheduled_inspection_date is None:
        raise ValidationError(DATE_REQUIRED)
    return {"status": JobStatus.SCHEDULED.value, "completed_at": None}


def retire_job(job: Job, *, lead_id: str, as_cold: bool, now: datetime) -> Lead:
    """Build the lead row written back when a job is taken off the calendar.

    Jobs hold no reference to the lead they came from, so the customer is
    re-entered as a fresh lead from the job's copied contact fields.
    """
    return Lead(
        lead_id=lead_id,
        campaign_id=job.campaign_id,
        campaign_name=job.campaign_name,
        name=job.customer_name,
        email=job.email,
        phone=job.phone,
        address=job.address,
        notes=job.notes,
        submitted_at=now,
        contact_attempt=0,
        is_cold_lead=as_cold,
        tentative_date=None,
        job_status=LeadJobStatus.NEW.value,
        inspector=job.inspector,
        internal_notes=job.internal_notes,
    )


def _require_not_promoted(lead: Lead) -> None:
    if is_promoted(lead):
        raise TransitionError("Lead has already been promoted to a job.")


def _note_fields(inspector: str | None, internal_notes: str | None) -> dict[str, Any]:
    # None leaves a field untouched; an empty string clears it.
    fields: dict[str, Any] = {}
    if inspector is not None:
        fields["inspector"] = rules.clean_optional(inspector)
    if internal_notes is not None:
        fields["internal_notes"] = rules.clean_optional(internal_notes)
    return fields
