from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from halo.domain import rules
from halo.domain.models import (
    Campaign,
    CampaignSummary,
    DashboardSummary,
    Identity,
    Job,
    JobPartition,
    Lead,
)
from halo.domain.stages import Bucket, CampaignStatus, SortOrder
from halo.store import records
from halo.store.records import StoreError
from halo.store.sqlite import SqliteStore

ALL_CAMPAIGNS = "all"
ALL_CAMPAIGNS_NAME = "All Campaigns"
DEFAULT_PAGE_SIZE = 8
LOAD_ERROR = "Failed to load data"
SUMMARY_LOAD_ERROR = "Failed to load dashboard summary"
RECENT_LEADS_LIMIT = 5


@dataclass(frozen=True)
class Snapshot:
    campaigns: list[Campaign] = field(default_factory=list)
    leads: list[Lead] = field(default_factory=list)
    jobs: JobPartition = field(default_factory=JobPartition)


def load_snapshot(store: SqliteStore, identity: Identity) -> Snapshot:
    try:
        with store.session() as session:
            return Snapshot(
                campaigns=records.fetch_campaigns(session, identity),
                leads=records.fetch_leads(session, identity),
                jobs=records.fetch_jobs(session, identity),
            )
    except StoreError as exc:
        raise StoreError(LOAD_ERROR) from exc


def load_dashboard_summary(store: SqliteStore, identity: Identity) -> DashboardSummary:
    try:
        with store.session() as session:
            campaigns = records.fetch_campaigns(session, identity)
            leads = records.fetch_leads(session, identity, include_promoted=True)
    except StoreError as exc:
        raise StoreError(SUMMARY_LOAD_ERROR) from exc
    return dashboard_summary(campaigns, leads)


def dashboard_summary(
    campaigns: list[Campaign],
    leads: list[Lead],
    limit: int = RECENT_LEADS_LIMIT,
) -> DashboardSummary:
    """Contractor-wide totals; promoted leads still count towards ``total_leads``."""
    return DashboardSummary(
        total_campaigns=len(campaigns),
        active_campaigns=sum(1 for c in campaigns if c.status == CampaignStatus.ACTIVE.value),
        total_leads=len(leads),
        recent_leads=sort_leads(leads, SortOrder.NEWEST.value)[:limit],
    )


def is_active_lead(lead: Lead) -> bool:
    return not lead.is_cold_lead and lead.tentative_date is None


def campaign_summaries(snapshot: Snapshot) -> list[CampaignSummary]:
    counts: dict[str, dict[str, Any]] = {}
    for campaign in snapshot.campaigns:
        counts[campaign.campaign_id] = {
            "name": campaign.name,
            "status": campaign.status,
            "leads": 0,
            "jobs": 0,
        }

    def entry(campaign_id: str, name: str) -> dict[str, Any]:
        return counts.setdefault(campaign_id, {"name": name, "status": None, "leads": 0, "jobs": 0})

    for lead in snapshot.leads:
        if is_active_lead(lead):
            entry(lead.campaign_id, lead.campaign_name)["leads"] += 1
    for job in snapshot.jobs.all():
        entry(job.campaign_id, job.campaign_name)["jobs"] += 1

    summaries = [
        CampaignSummary(
            campaign_id=campaign_id,
            name=data["name"],
            new_lead_count=data["leads"],
            job_count=data["jobs"],
            campaign_status=data["status"],
        )
        for campaign_id, data in counts.items()
    ]
    summaries.sort(key=_summary_sort_key)
    return summaries


def campaign_options(snapshot: Snapshot) -> list[CampaignSummary]:
    """Campaign picker entries, with the synthetic "All Campaigns" row first."""
    summaries = campaign_summaries(snapshot)
    all_entry = CampaignSummary(
        campaign_id=ALL_CAMPAIGNS,
        name=ALL_CAMPAIGNS_NAME,
        new_lead_count=sum(s.new_lead_count for s in summaries),
        job_count=sum(s.job_count for s in summaries),
        active_campaign_count=sum(
            1 for c in snapshot.campaigns if c.status == CampaignStatus.ACTIVE.value
        ),
    )
    return [all_entry, *summaries]


def _summary_sort_key(summary: CampaignSummary) -> tuple:
    status_rank = 0 if summary.campaign_status == CampaignStatus.ACTIVE.value else 1
    return (status_rank, -summary.new_lead_count, -summary.job_count, summary.name.casefold())


def filter_campaign(items: Iterable, campaign_id: str | None) -> list:
    if not campaign_id or campaign_id == ALL_CAMPAIGNS:
        return list(items)
    return [item for item in items if item.campaign_id == campaign_id]


def active_leads(leads: Iterable[Lead], campaign_id: str | None = ALL_CAMPAIGNS) -> list[Lead]:
    return filter_campaign((lead for lead in leads if is_active_lead(lead)), campaign_id)


def cold_leads(leads: Iterable[Lead], campaign_id: str | None = ALL_CAMPAIGNS) -> list[Lead]:
    return filter_campaign((lead for lead in leads if lead.is_cold_lead), campaign_id)


def tentative_leads(leads: Iterable[Lead], campaign_id: str | None = ALL_CAMPAIGNS) -> list[Lead]:
    return filter_campaign(
        (lead for lead in leads if not lead.is_cold_lead and lead.tentative_date is not None),
        campaign_id,
    )


def completed_jobs(jobs: JobPartition, campaign_id: str | None = ALL_CAMPAIGNS) -> list[Job]:
    return filter_campaign(jobs.completed, campaign_id)


def scheduled_jobs(jobs: JobPartition, campaign_id: str | None = ALL_CAMPAIGNS) -> list[Job]:
    return filter_campaign(jobs.scheduled, campaign_id)


def sort_leads(leads: Iterable[Lead], order: str = SortOrder.NEWEST.value) -> list[Lead]:
    return sorted(leads, key=lambda lead: lead.submitted_at, reverse=order == SortOrder.NEWEST.value)


def page_count(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total else 0


def clamp_page(page: int, total: int, page_size: int) -> int:
    pages = page_count(total, page_size)
    if pages == 0:
        return 0
    return max(0, min(page, pages - 1))


def paginate(items: list, page: int, page_size: int) -> list:
    start = page * page_size
    return items[start : start + page_size]


class SidebarViewModel:
    def __init__(
        self,
        loader: Callable[[], Snapshot],
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size <= 0:
            raise rules.ValidationError("page_size must be positive.")
        self._loader = loader
        self.page_size = page_size
        self.snapshot = Snapshot()
        self.error: str | None = None
        self.selected_campaign_id = ALL_CAMPAIGNS
        self.sort_order = SortOrder.NEWEST.value
        self.bucket = Bucket.LEADS.value
        self._page = 0

    def refresh(self) -> bool:
        try:
            snapshot = self._loader()
        except StoreError as exc:
            self.snapshot = Snapshot()
            self.error = str(exc) or LOAD_ERROR
            self._page = 0
            return False
        self.snapshot = snapshot
        self.error = None
        self._clamp_page()
        return True

    def dismiss_error(self) -> None:
        self.error = None

    def select_campaign(self, campaign_id: str) -> None:
        self.selected_campaign_id = campaign_id or ALL_CAMPAIGNS
        self._page = 0

    def set_sort_order(self, order: str) -> None:
        rules.validate_enum(order, [o.value for o in SortOrder], "sort")
        self.sort_order = order
        self._page = 0

    def set_bucket(self, bucket: str) -> None:
        rules.validate_enum(bucket, [b.value for b in Bucket], "bucket")
        self.bucket = bucket
        self._page = 0

    @property
    def page(self) -> int:
        return clamp_page(self._page, len(self.active_leads), self.page_size)

    def set_page(self, page: int) -> None:
        self._page = clamp_page(page, len(self.active_leads), self.page_size)

    def next_page(self) -> None:
        self.set_page(self.page + 1)

    def previous_page(self) -> None:
        self.set_page(self.page - 1)

    @property
    def campaign_options(self) -> list[CampaignSummary]:
        return campaign_options(self.snapshot)

    @property
    def active_leads(self) -> list[Lead]:
        filtered = active_leads(self.snapshot.leads, self.selected_campaign_id)
        return sort_leads(filtered, self.sort_order)

    @property
    def total_pages(self) -> int:
        return page_count(len(self.active_leads), self.page_size)

    @property
    def lead_page(self) -> list[Lead]:
        return paginate(self.active_leads, self.page, self.page_size)

    @property
    def cold_leads(self) -> list[Lead]:
        return cold_leads(self.snapshot.leads, self.selected_campaign_id)

    @property
    def completed_jobs(self) -> list[Job]:
        return completed_jobs(self.snapshot.jobs, self.selected_campaign_id)

    @property
    def scheduled_jobs(self) -> list[Job]:
        return scheduled_jobs(self.snapshot.jobs, self.selected_campaign_id)

    @property
    def tentative_leads(self) -> list[Lead]:
        return tentative_leads(self.snapshot.leads, self.selected_campaign_id)

    def bucket_items(self) -> list[Lead] | list[Job]:
        if self.bucket == Bucket.COLD.value:
            return self.cold_leads
        if self.bucket == Bucket.COMPLETED.value:
            return self.completed_jobs
        return self.lead_page

    def find_lead(self, lead_id: str) -> Lead | None:
        return next((lead for lead in self.snapshot.leads if lead.lead_id == lead_id), None)

    def find_job(self, job_id: str) -> Job | None:
        return next((job for job in self.snapshot.jobs.all() if job.job_id == job_id), None)

    def is_visible(self, record: Lead | Job) -> bool:
        return bool(filter_campaign([record], self.selected_campaign_id))

    def apply_lead_patch(self, lead_id: str, fields: Mapping[str, Any]) -> Snapshot:
        """Patch one lead locally ahead of the store; returns the prior snapshot."""
        previous = self.snapshot
        leads = [
            replace(lead, **fields) if lead.lead_id == lead_id else lead for lead in previous.leads
        ]
        self.snapshot = replace(previous, leads=leads)
        self._clamp_page()
        return previous

    def restore(self, snapshot: Snapshot) -> None:
        self.snapshot = snapshot
        self._clamp_page()

    def _clamp_page(self) -> None:
        self._page = clamp_page(self._page, len(self.active_leads), self.page_size)
