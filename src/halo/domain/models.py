from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Identity:
    contractor_id: str
    token: str | None = None


@dataclass(frozen=True)
class Campaign:
    campaign_id: str
    contractor_id: str
    name: str
    status: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Lead:
    lead_id: str
    campaign_id: str
    campaign_name: str
    name: str
    email: str
    phone: str
    address: str | None
    notes: str | None
    submitted_at: datetime
    contact_attempt: int = 0
    is_cold_lead: bool = False
    tentative_date: datetime | None = None
    job_status: str = "new"
    inspector: str | None = None
    internal_notes: str | None = None


@dataclass(frozen=True)
class Job:
    job_id: str
    campaign_id: str
    campaign_name: str
    customer_name: str
    email: str
    phone: str
    address: str | None
    notes: str | None
    status: str
    scheduled_inspection_date: datetime | None
    inspector: str | None
    internal_notes: str | None
    promoted_at: datetime
    completed_at: datetime | None = None


@dataclass(frozen=True)
class JobPartition:
    scheduled: list[Job] = field(default_factory=list)
    completed: list[Job] = field(default_factory=list)

    def all(self) -> list[Job]:
        return [*self.scheduled, *self.completed]


@dataclass(frozen=True)
class CampaignSummary:
    campaign_id: str
    name: str
    new_lead_count: int
    job_count: int
    campaign_status: str | None = None
    active_campaign_count: int | None = None


@dataclass(frozen=True)
class CalendarEvent:
    event_id: str
    title: str
    start: datetime
    end: datetime
    type: str
    customer_name: str
    phone: str
    email: str
    contact_attempt: int | None = None
    lead_id: str | None = None
    job_id: str | None = None
    inspector: str | None = None


@dataclass(frozen=True)
class DashboardSummary:
    total_campaigns: int
    active_campaigns: int
    total_leads: int
    recent_leads: list[Lead] = field(default_factory=list)
