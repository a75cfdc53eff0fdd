from __future__ import annotations

from enum import Enum


class CampaignStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class LeadJobStatus(str, Enum):
    """Legacy status mirrored on the lead row for simple list views."""

    NEW = "new"
    CONTACTED = "contacted"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


class JobStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


class Bucket(str, Enum):
    LEADS = "leads"
    COLD = "cold"
    COMPLETED = "completed"


class SortOrder(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"


class EventType(str, Enum):
    TENTATIVE = "tentative"
    CONFIRMED = "confirmed"


class CalendarViewMode(str, Enum):
    MONTH = "month"
    WEEK = "week"


CONTACT_ATTEMPTS = (0, 1, 2, 3)
PROMOTED_LEAD_STATUSES = {LeadJobStatus.SCHEDULED.value, LeadJobStatus.COMPLETED.value}
