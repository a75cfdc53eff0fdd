from dataclasses import replace
from datetime import UTC, date, datetime

import pytest

from halo.domain import lifecycle
from halo.domain.lifecycle import (
    Attempted,
    Cold,
    Promoted,
    TentativelyScheduled,
    TransitionError,
    Uncontacted,
)
from halo.domain.models import Job, Lead
from halo.domain.rules import ValidationError

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)


def _lead(**overrides) -> Lead:
    lead = Lead(
        lead_id="lead-1",
        campaign_id="campaign-1",
        campaign_name="Spring Roofing",
        name="Dana Whitfield",
        email="dana@example.com",
        phone="5551234567",
        address="12 Orchard Lane, Springfield",
        notes="Leak over the garage",
        submitted_at=NOW,
    )
    return replace(lead, **overrides)


def _job(**overrides) -> Job:
    job = Job(
        job_id="job-1",
        campaign_id="campaign-1",
        campaign_name="Spring Roofing",
        customer_name="Dana Whitfield",
        email="dana@example.com",
        phone="5551234567",
        address="12 Orchard Lane, Springfield",
        notes="Leak over the garage",
        status="scheduled",
        scheduled_inspection_date=datetime(2026, 3, 20, 12, 0),
        inspector="Sam",
        internal_notes="Bring ladder",
        promoted_at=NOW,
    )
    return replace(job, **overrides)


def test_lead_stage() -> None:
    assert lifecycle.lead_stage(_lead()) == Uncontacted()
    assert lifecycle.lead_stage(_lead(contact_attempt=2)) == Attempted(attempt=2)
    placed = datetime(2026, 3, 15, 12, 0)
    assert lifecycle.lead_stage(_lead(tentative_date=placed, contact_attempt=1)) == TentativelyScheduled(
        tentative_date=placed, attempt=1
    )
    assert lifecycle.lead_stage(_lead(is_cold_lead=True, tentative_date=placed)) == Cold(attempt=0)
    assert lifecycle.lead_stage(_lead(job_status="scheduled")) == Promoted(status="scheduled")


def test_contact_attempt_leaves_calendar_alone() -> None:
    lead = _lead(tentative_date=datetime(2026, 3, 15, 12, 0))
    patch = lifecycle.record_contact_attempt(lead, 2, is_cold=False)
    assert patch == {"contact_attempt": 2, "is_cold_lead": False, "job_status": "contacted"}


def test_contact_attempt_zero_maps_to_new() -> None:
    patch = lifecycle.record_contact_attempt(_lead(contact_attempt=1), 0, is_cold=True)
    assert patch["job_status"] == "new"
    assert patch["is_cold_lead"] is True


def test_contact_attempt_out_of_range() -> None:
    with pytest.raises(ValidationError):
        lifecycle.record_contact_attempt(_lead(), 4, is_cold=False)


def test_notes_none_unchanged_and_empty_clears() -> None:
    lead = _lead(inspector="Sam", internal_notes="Dog in yard")
    patch = lifecycle.record_contact_attempt(lead, 1, False, inspector=None, internal_notes="")
    assert "inspector" not in patch
    assert patch["internal_notes"] is None


def test_place_on_calendar_normalizes_to_noon() -> None:
    patch = lifecycle.place_on_calendar(_lead(contact_attempt=3), date(2026, 3, 15))
    assert patch == {"tentative_date": datetime(2026, 3, 15, 12, 0)}


def test_place_on_calendar_rejects_promoted_lead() -> None:
    with pytest.raises(TransitionError):
        lifecycle.place_on_calendar(_lead(job_status="completed"), date(2026, 3, 15))


def test_remove_from_calendar_requires_placement() -> None:
    with pytest.raises(TransitionError):
        lifecycle.remove_from_calendar(_lead())
    patch = lifecycle.remove_from_calendar(_lead(tentative_date=datetime(2026, 3, 15, 12, 0)))
    assert patch == {"tentative_date": None}


def test_restore_cold_lead_keeps_attempt() -> None:
    assert lifecycle.restore_cold_lead(_lead(is_cold_lead=True, contact_attempt=3)) == {
        "is_cold_lead": False
    }
    with pytest.raises(TransitionError):
        lifecycle.restore_cold_lead(_lead())


def test_promote_scheduled_requires_date() -> None:
    with pytest.raises(ValidationError, match="date required to schedule"):
        lifecycle.promote(
            _lead(),
            job_id="job-1",
            status="scheduled",
            scheduled_inspection_date=None,
            inspector=None,
            internal_notes=None,
            now=NOW,
        )


def test_promote_clears_tentative_date_and_copies_contact() -> None:
    lead = _lead(tentative_date=datetime(2026, 3, 15, 12, 0), contact_attempt=2)
    lead_patch, job = lifecycle.promote(
        lead,
        job_id="job-9",
        status="scheduled",
        scheduled_inspection_date=date(2026, 3, 18),
        inspector=" Sam ",
        internal_notes="",
        now=NOW,
    )
    assert lead_patch == {"tentative_date": None, "job_status": "scheduled"}
    assert job.job_id == "job-9"
    assert job.customer_name == lead.name
    assert job.address == lead.address
    assert job.scheduled_inspection_date == datetime(2026, 3, 18, 12, 0)
    assert job.inspector == "Sam"
    assert job.internal_notes is None
    assert job.promoted_at == NOW
    assert job.completed_at is None


def test_promote_completed_without_date() -> None:
    _, job = lifecycle.promote(
        _lead(),
        job_id="job-2",
        status="completed",
        scheduled_inspection_date=None,
        inspector=None,
        internal_notes=None,
        now=NOW,
    )
    assert job.status == "completed"
    assert job.completed_at == NOW


def test_promote_twice_is_rejected() -> None:
    with pytest.raises(TransitionError):
        lifecycle.promote(
            _lead(job_status="scheduled"),
            job_id="job-3",
            status="scheduled",
            scheduled_inspection_date=date(2026, 3, 18),
            inspector=None,
            internal_notes=None,
            now=NOW,
        )


def test_edit_job_cannot_clear_scheduled_date() -> None:
    with pytest.raises(ValidationError):
        lifecycle.edit_job(_job(), clear_date=True)
    assert lifecycle.edit_job(_job(status="completed"), clear_date=True) == {
        "scheduled_inspection_date": None
    }


def test_complete_job_is_idempotent() -> None:
    patch = lifecycle.complete_job(_job(), now=NOW)
    assert patch == {"status": "completed", "completed_at": NOW}
    assert lifecycle.complete_job(_job(status="completed", completed_at=NOW), now=NOW) is None


def test_reopen_job() -> None:
    completed = _job(status="completed", completed_at=NOW)
    assert lifecycle.reopen_job(completed) == {"status": "scheduled", "completed_at": None}
    with pytest.raises(TransitionError):
        lifecycle.reopen_job(_job())
    with pytest.raises(ValidationError):
        lifecycle.reopen_job(replace(completed, scheduled_inspection_date=None))


def test_retire_job_builds_fresh_lead() -> None:
    lead = lifecycle.retire_job(_job(), lead_id="lead-2", as_cold=True, now=NOW)
    assert lead.lead_id == "lead-2"
    assert lead.name == "Dana Whitfield"
    assert lead.is_cold_lead is True
    assert lead.contact_attempt == 0
    assert lead.tentative_date is None
    assert lead.job_status == "new"
    assert lead.internal_notes == "Bring ladder"
