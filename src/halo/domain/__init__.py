from halo.domain.lifecycle import TransitionError
from halo.domain.models import (
    CalendarEvent,
    Campaign,
    CampaignSummary,
    Identity,
    Job,
    JobPartition,
    Lead,
)
from halo.domain.rules import ValidationError

__all__ = [
    "CalendarEvent",
    "Campaign",
    "CampaignSummary",
    "Identity",
    "Job",
    "JobPartition",
    "Lead",
    "TransitionError",
    "ValidationError",
]
