from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Protocol

from halo.domain.models import Campaign, Identity, Job, JobPartition, Lead
from halo.domain.stages import PROMOTED_LEAD_STATUSES, JobStatus

LEAD_PATCH_FIELDS = {
    "contact_attempt",
    "is_cold_lead",
    "tentative_date",
    "inspector",
    "internal_notes",
    "job_status",
}
JOB_PATCH_FIELDS = {
    "status",
    "scheduled_inspection_date",
    "inspector",
    "internal_notes",
    "completed_at",
}

_LEAD_SELECT = (
    "SELECT leads.*, campaigns.name AS campaign_name, campaigns.contractor_id AS contractor_id "
    "FROM leads JOIN campaigns ON leads.campaign_id = campaigns.campaign_id"
)
_JOB_SELECT = (
    "SELECT jobs.*, campaigns.name AS campaign_name, campaigns.contractor_id AS contractor_id "
    "FROM jobs JOIN campaigns ON jobs.campaign_id = campaigns.campaign_id"
)


class _StoreLike(Protocol):
    def execute(self, query: str, params: Iterable[object] | None = None) -> int: ...

    def fetch_one(self, query: str, params: Iterable[object] | None = None): ...

    def fetch_all(self, query: str, params: Iterable[object] | None = None): ...


class StoreError(RuntimeError):
    pass


class RecordNotFoundError(StoreError):
    pass


class AuthorizationError(StoreError):
    pass


def fetch_campaigns(db: _StoreLike, identity: Identity) -> list[Campaign]:
    _require_identity(identity)
    rows = db.fetch_all(
        "SELECT * FROM campaigns WHERE contractor_id = ? ORDER BY created_at DESC",
        (identity.contractor_id,),
    )
    return [_campaign_from_row(row) for row in rows]


def find_campaign(db: _StoreLike, campaign_id: str) -> Campaign | None:
    """Unscoped lookup used by the public intake form."""
    row = db.fetch_one("SELECT * FROM campaigns WHERE campaign_id = ?", (campaign_id,))
    return _campaign_from_row(row) if row else None


def get_campaign(db: _StoreLike, identity: Identity, campaign_id: str) -> Campaign:
    _require_identity(identity)
    campaign = find_campaign(db, campaign_id)
    if campaign is None:
        raise RecordNotFoundError("Campaign not found")
    _check_owner(campaign.contractor_id, identity, "Campaign")
    return campaign


def insert_campaign(db: _StoreLike, campaign: Campaign) -> None:
    db.execute(
        "INSERT INTO campaigns (campaign_id, contractor_id, name, status, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        (
            campaign.campaign_id,
            campaign.contractor_id,
            campaign.name,
            campaign.status,
            _iso(campaign.created_at),
            _iso(campaign.updated_at),
        ),
    )


def set_campaign_status(
    db: _StoreLike, identity: Identity, campaign_id: str, status: str, now: datetime
) -> None:
    get_campaign(db, identity, campaign_id)
    db.execute(
        "UPDATE campaigns SET status = ?, updated_at = ? WHERE campaign_id = ?",
        (status, _iso(now), campaign_id),
    )


def fetch_leads(
    db: _StoreLike,
    identity: Identity,
    campaign_id: str | None = None,
    include_promoted: bool = False,
) -> list[Lead]:
    """Leads for the contractor; promoted leads are retired unless asked for."""
    _require_identity(identity)
    where = ["campaigns.contractor_id = ?"]
    params: list[object] = [identity.contractor_id]
    if campaign_id:
        where.append("leads.campaign_id = ?")
        params.append(campaign_id)
    if not include_promoted:
        retired = sorted(PROMOTED_LEAD_STATUSES)
        where.append(f"leads.job_status NOT IN ({', '.join('?' for _ in retired)})")
        params.extend(retired)
    rows = db.fetch_all(
        f"{_LEAD_SELECT} WHERE {' AND '.join(where)} ORDER BY leads.submitted_at DESC",
        params,
    )
    return [_lead_from_row(row) for row in rows]


def get_lead(db: _StoreLike, identity: Identity, lead_id: str) -> Lead:
    _require_identity(identity)
    row = db.fetch_one(f"{_LEAD_SELECT} WHERE leads.lead_id = ?", (lead_id,))
    if row is None:
        raise RecordNotFoundError("Lead not found")
    _check_owner(row["contractor_id"], identity, "Lead")
    return _lead_from_row(row)


def insert_lead(db: _StoreLike, lead: Lead, now: datetime) -> None:
    db.execute(
        "INSERT INTO leads (lead_id, campaign_id, name, email, phone, address, notes, submitted_at, "
        "contact_attempt, is_cold_lead, tentative_date, job_status, inspector, internal_notes, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            lead.lead_id,
            lead.campaign_id,
            lead.name,
            lead.email,
            lead.phone,
            lead.address,
            lead.notes,
            _iso(lead.submitted_at),
            lead.contact_attempt,
            int(lead.is_cold_lead),
            _iso(lead.tentative_date),
            lead.job_status,
            lead.inspector,
            lead.internal_notes,
            _iso(now),
        ),
    )


def patch_lead(
    db: _StoreLike,
    identity: Identity,
    lead_id: str,
    fields: Mapping[str, Any],
    now: datetime,
) -> None:
    _update(db, identity, "leads", "lead_id", lead_id, fields, LEAD_PATCH_FIELDS, now)


def has_recent_lead(db: _StoreLike, campaign_id: str, email: str, since: datetime) -> bool:
    row = db.fetch_one(
        "SELECT lead_id FROM leads WHERE campaign_id = ? AND email = ? AND submitted_at > ? "
        "ORDER BY submitted_at DESC LIMIT 1",
        (campaign_id, email.lower(), _iso(since)),
    )
    return row is not None


def fetch_jobs(db: _StoreLike, identity: Identity) -> JobPartition:
    _require_identity(identity)
    rows = db.fetch_all(
        f"{_JOB_SELECT} WHERE campaigns.contractor_id = ? "
        "ORDER BY jobs.scheduled_inspection_date ASC, jobs.promoted_at ASC",
        (identity.contractor_id,),
    )
    partition = JobPartition()
    for row in rows:
        job = _job_from_row(row)
        if job.status == JobStatus.COMPLETED.value:
            partition.completed.append(job)
        else:
            partition.scheduled.append(job)
    return partition


def get_job(db: _StoreLike, identity: Identity, job_id: str) -> Job:
    _require_identity(identity)
    row = db.fetch_one(f"{_JOB_SELECT} WHERE jobs.job_id = ?", (job_id,))
    if row is None:
        raise RecordNotFoundError("Job not found")
    _check_owner(row["contractor_id"], identity, "Job")
    return _job_from_row(row)


def create_job(db: _StoreLike, identity: Identity, job: Job, now: datetime) -> None:
    get_campaign(db, identity, job.campaign_id)
    db.execute(
        "INSERT INTO jobs (job_id, campaign_id, customer_name, email, phone, address, notes, status, "
        "scheduled_inspection_date, inspector, internal_notes, promoted_at, completed_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            job.job_id,
            job.campaign_id,
            job.customer_name,
            job.email,
            job.phone,
            job.address,
            job.notes,
            job.status,
            _iso(job.scheduled_inspection_date),
            job.inspector,
            job.internal_notes,
            _iso(job.promoted_at),
            _iso(job.completed_at),
            _iso(now),
        ),
    )


def patch_job(
    db: _StoreLike,
    identity: Identity,
    job_id: str,
    fields: Mapping[str, Any],
    now: datetime,
) -> None:
    _update(db, identity, "jobs", "job_id", job_id, fields, JOB_PATCH_FIELDS, now)


def delete_job(db: _StoreLike, identity: Identity, job_id: str) -> None:
    get_job(db, identity, job_id)
    db.execute("DELETE FROM jobs WHERE job_id = ?", (job_id,))


def _update(
    db: _StoreLike,
    identity: Identity,
    table: str,
    id_field: str,
    record_id: str,
    fields: Mapping[str, Any],
    allowed: set[str],
    now: datetime,
) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise StoreError(f"Cannot patch {table} fields: {', '.join(sorted(unknown))}")
    if table == "leads":
        get_lead(db, identity, record_id)
    else:
        get_job(db, identity, record_id)
    if not fields:
        return
    updates = [f"{name} = ?" for name in fields]
    params: list[object] = [_to_column(value) for value in fields.values()]
    updates.append("updated_at = ?")
    params.append(_iso(now))
    params.append(record_id)
    db.execute(f"UPDATE {table} SET {', '.join(updates)} WHERE {id_field} = ?", params)


def _require_identity(identity: Identity) -> None:
    if identity is None or not identity.contractor_id:
        raise AuthorizationError("Unauthorized - No auth token provided")


def _check_owner(contractor_id: str, identity: Identity, kind: str) -> None:
    if contractor_id != identity.contractor_id:
        raise AuthorizationError(f"Unauthorized - {kind} does not belong to your campaigns")


def _to_column(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return _iso(value)
    return value


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _campaign_from_row(row) -> Campaign:
    return Campaign(
        campaign_id=row["campaign_id"],
        contractor_id=row["contractor_id"],
        name=row["name"],
        status=row["status"],
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


def _lead_from_row(row) -> Lead:
    return Lead(
        lead_id=row["lead_id"],
        campaign_id=row["campaign_id"],
        campaign_name=row["campaign_name"],
        name=row["name"],
        email=row["email"],
        phone=row["phone"],
        address=row["address"],
        notes=row["notes"],
        submitted_at=_dt(row["submitted_at"]),
        contact_attempt=row["contact_attempt"],
        is_cold_lead=bool(row["is_cold_lead"]),
        tentative_date=_dt(row["tentative_date"]),
        job_status=row["job_status"],
        inspector=row["inspector"],
        internal_notes=row["internal_notes"],
    )


def _job_from_row(row) -> Job:
    return Job(
        job_id=row["job_id"],
        campaign_id=row["campaign_id"],
        campaign_name=row["campaign_name"],
        customer_name=row["customer_name"],
        email=row["email"],
        phone=row["phone"],
        address=row["address"],
        notes=row["notes"],
        status=row["status"],
        scheduled_inspection_date=_dt(row["scheduled_inspection_date"]),
        inspector=row["inspector"],
        internal_notes=row["internal_notes"],
        promoted_at=_dt(row["promoted_at"]),
        completed_at=_dt(row["completed_at"]),
    )
