from __future__ import annotations

from datetime import timedelta

from halo.domain import rules
from halo.domain.models import Campaign, Identity, Lead
from halo.domain.rules import ValidationError
from halo.domain.stages import CampaignStatus, LeadJobStatus
from halo.services.events import EventLogger
from halo.services.utils import new_id, utc_now
from halo.store import records
from halo.store.records import RecordNotFoundError
from halo.store.sqlite import SqliteStore

DEFAULT_DUPLICATE_WINDOW_MINUTES = 60


class DuplicateLeadError(ValidationError):
    pass


def add_campaign(
    store: SqliteStore,
    identity: Identity,
    name: str,
    status: str = CampaignStatus.ACTIVE.value,
) -> str:
    rules.require(name, "name")
    rules.validate_enum(status, [s.value for s in CampaignStatus], "status")
    now = utc_now()
    campaign = Campaign(
        campaign_id=new_id(),
        contractor_id=identity.contractor_id,
        name=name.strip(),
        status=status,
        created_at=now,
        updated_at=now,
    )
    with store.session() as session:
        records.insert_campaign(session, campaign)
    return campaign.campaign_id


def set_campaign_status(store: SqliteStore, identity: Identity, campaign_id: str, status: str) -> None:
    rules.validate_enum(status, [s.value for s in CampaignStatus], "status")
    with store.session() as session:
        records.set_campaign_status(session, identity, campaign_id, status, utc_now())


def submit_lead(
    store: SqliteStore,
    campaign_id: str,
    name: str | None,
    address: str | None,
    email: str | None,
    phone: str | None,
    notes: str | None = None,
    duplicate_window_minutes: int = DEFAULT_DUPLICATE_WINDOW_MINUTES,
    logger: EventLogger | None = None,
) -> str:
    """Capture a homeowner inquiry from a campaign landing page."""
    if not campaign_id or not name or not address or not email or not phone:
        raise ValidationError("All required fields must be provided")
    email = rules.validate_email(email)
    phone = rules.validate_phone(phone)
    name = rules.min_length(name, 2, "Name must be at least 2 characters")
    address = rules.min_length(address, 10, "Please provide a complete address")

    now = utc_now()
    with store.session() as session:
        campaign = records.find_campaign(session, campaign_id)
        if campaign is None:
            raise RecordNotFoundError("Campaign not found")
        if campaign.status != CampaignStatus.ACTIVE.value:
            raise ValidationError("This campaign is no longer accepting submissions")
        since = now - timedelta(minutes=duplicate_window_minutes)
        if records.has_recent_lead(session, campaign_id, email, since):
            raise DuplicateLeadError(
                "You have already submitted a request recently. We'll be in touch soon!"
            )

        lead = Lead(
            lead_id=new_id(),
            campaign_id=campaign_id,
            campaign_name=campaign.name,
            name=name,
            email=email,
            phone=phone,
            address=address,
            notes=rules.clean_optional(notes),
            submitted_at=now,
            contact_attempt=0,
            is_cold_lead=False,
            tentative_date=None,
            job_status=LeadJobStatus.NEW.value,
        )
        records.insert_lead(session, lead, now)

    if logger is not None:
        logger.log(
            event_type="lead_submitted",
            entity_type="lead",
            entity_id=lead.lead_id,
            changed_fields=["job_status"],
        )
    return lead.lead_id


def list_leads(store: SqliteStore, identity: Identity, campaign_id: str | None = None) -> list[Lead]:
    return records.fetch_leads(store, identity, campaign_id=campaign_id)
