from datetime import date, datetime
from pathlib import Path

import pytest

from halo.domain.models import Identity
from halo.services import calendar, leads, lifecycle, scheduling, view_model
from halo.services.events import EventLogger, read_events
from halo.services.modal import ModalAction, ModalMode, ModalOrchestrator
from halo.services.scheduling import (
    DragError,
    DragItem,
    DragState,
    PlacementInProgressError,
    SchedulingController,
)
from halo.store import records
from halo.store.records import StoreError
from halo.store.sqlite import SqliteStore

IDENTITY = Identity(contractor_id="contractor-1")


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _store(tmp_path: Path) -> SqliteStore:
    db_path = tmp_path / "test.sqlite"
    store = SqliteStore(db_path)
    schema_path = (
        Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"
    )
    store.apply_schema(schema_path)
    return store


def _controller(tmp_path: Path, clock: _Clock | None = None) -> tuple[SchedulingController, str]:
    store = _store(tmp_path)
    campaign_id = leads.add_campaign(store, IDENTITY, "Spring Roofing")
    lead_id = leads.submit_lead(
        store,
        campaign_id,
        name="Dana Whitfield",
        address="12 Orchard Lane, Springfield",
        email="dana@example.com",
        phone="5551234567",
    )
    sidebar = view_model.SidebarViewModel(lambda: view_model.load_snapshot(store, IDENTITY))
    sidebar.refresh()
    controller = SchedulingController(
        store,
        IDENTITY,
        sidebar,
        drag_state=DragState(clock=clock or _Clock()),
        logger=EventLogger(path=tmp_path / "events.ndjson", workspace="test"),
    )
    return controller, lead_id


def test_drag_state_clears_after_settle_delay() -> None:
    clock = _Clock()
    state = DragState(settle_ms=150, clock=clock)
    item = DragItem(item_id="lead-1")

    state.begin(item)
    assert state.is_dragging
    state.end()
    clock.now += 0.1
    assert state.current == item
    assert not state.is_dragging
    clock.now += 0.1
    assert state.current is None


def test_only_one_drag_at_a_time() -> None:
    state = DragState(clock=_Clock())
    state.begin(DragItem(item_id="lead-1"))
    with pytest.raises(DragError):
        state.begin(DragItem(item_id="lead-2"))
    state.end()
    state.begin(DragItem(item_id="lead-2"))
    assert state.current == DragItem(item_id="lead-2")


def test_resolve_drop_slot_uses_local_noon() -> None:
    slot = scheduling.resolve_drop_slot(datetime(2026, 3, 15, 0, 0))
    assert slot.start == datetime(2026, 3, 15, 12, 0)
    assert slot.end == slot.start
    assert slot.dropped_item is None


def test_drop_new_lead_on_march_15(tmp_path: Path) -> None:
    clock = _Clock()
    controller, lead_id = _controller(tmp_path, clock)

    controller.start_drag(lead_id)
    controller.end_drag()
    clock.now += 0.05
    request = controller.drop(date(2026, 3, 15))

    assert request.mode == ModalMode.PROMOTE.value
    assert request.record_id == lead_id
    assert request.seeded_date == datetime(2026, 3, 15, 12, 0)
    stored = records.get_lead(controller.store, IDENTITY, lead_id)
    assert stored.tentative_date == datetime(2026, 3, 15, 12, 0)
    assert stored.contact_attempt == 0

    sidebar = controller.view_model
    assert sidebar.active_leads == []
    [event] = calendar.build_events(sidebar.snapshot.leads, sidebar.snapshot.jobs)
    assert event.type == "tentative"
    assert event.lead_id == lead_id
    assert calendar.event_badge(event) == "NEW"
    assert controller.drag_state.current is None
    assert [e["event_type"] for e in read_events(tmp_path / "events.ndjson")] == ["placed"]


def test_drop_outside_a_day_cell_changes_nothing(tmp_path: Path) -> None:
    controller, lead_id = _controller(tmp_path)

    controller.start_drag(lead_id)
    controller.end_drag()

    assert controller.drop(None) is None
    assert controller.drop(date(2026, 3, 15)) is None
    assert records.get_lead(controller.store, IDENTITY, lead_id).tentative_date is None
    assert read_events(tmp_path / "events.ndjson") == []


def test_store_failure_rolls_back_optimistic_update(tmp_path: Path, monkeypatch) -> None:
    controller, lead_id = _controller(tmp_path)

    def fail(*args, **kwargs):
        assert controller.view_model.active_leads == []
        raise StoreError("Failed to update lead")

    monkeypatch.setattr(lifecycle, "place_on_calendar", fail)

    assert controller.drop(date(2026, 3, 15), DragItem(item_id=lead_id)) is None
    assert controller.error == "Failed to update lead"
    assert [lead.lead_id for lead in controller.view_model.active_leads] == [lead_id]
    assert records.get_lead(controller.store, IDENTITY, lead_id).tentative_date is None


def test_second_drop_of_same_lead_while_saving(tmp_path: Path, monkeypatch) -> None:
    controller, lead_id = _controller(tmp_path)
    place = lifecycle.place_on_calendar
    item = DragItem(item_id=lead_id)

    def reentrant(*args, **kwargs):
        with pytest.raises(PlacementInProgressError):
            controller.drop(date(2026, 3, 16), item)
        return place(*args, **kwargs)

    monkeypatch.setattr(lifecycle, "place_on_calendar", reentrant)

    request = controller.drop(date(2026, 3, 15), item)
    assert request.seeded_date == datetime(2026, 3, 15, 12, 0)
    assert records.get_lead(controller.store, IDENTITY, lead_id).tentative_date == datetime(
        2026, 3, 15, 12, 0
    )


def test_drop_of_promoted_lead_reports_error(tmp_path: Path) -> None:
    controller, lead_id = _controller(tmp_path)
    lifecycle.promote(controller.store, IDENTITY, lead_id, scheduled_inspection_date=date(2026, 3, 18))

    assert controller.drop(date(2026, 3, 15), DragItem(item_id=lead_id)) is None
    assert controller.error == "Lead has already been promoted to a job."


def test_clicks_open_modal_requests_without_writes(tmp_path: Path) -> None:
    controller, lead_id = _controller(tmp_path)
    job = lifecycle.promote(
        controller.store, IDENTITY, lead_id, scheduled_inspection_date=date(2026, 3, 18)
    )
    [event] = calendar.build_events([], records.fetch_jobs(controller.store, IDENTITY))

    request = controller.click_event(event)
    assert (request.mode, request.record_id) == (ModalMode.EDIT.value, job.job_id)
    assert controller.click_completed_job(job.job_id).mode == ModalMode.RESTORE_JOB.value
    assert controller.select_slot(date(2026, 3, 20)).start == datetime(2026, 3, 20, 12, 0)
    assert records.fetch_jobs(controller.store, IDENTITY).scheduled[0] == job


def _submit(controller: SchedulingController, name: str, email: str) -> str:
    campaign_id = controller.view_model.snapshot.campaigns[0].campaign_id
    return leads.submit_lead(
        controller.store,
        campaign_id,
        name=name,
        address="40 Birch Road, Springfield",
        email=email,
        phone="5559876543",
    )


def test_clicking_sidebar_leads_opens_the_matching_modal(tmp_path: Path) -> None:
    controller, active_id = _controller(tmp_path)
    tentative_id = _submit(controller, "Lee Okafor", "lee@example.com")
    cold_id = _submit(controller, "Sam Ortiz", "sam@example.com")
    lifecycle.place_on_calendar(controller.store, IDENTITY, tentative_id, date(2026, 3, 15))
    lifecycle.record_contact_attempt(controller.store, IDENTITY, cold_id, 2, is_cold=True)
    controller.view_model.refresh()
    before = records.fetch_leads(controller.store, IDENTITY)

    active = controller.click_lead(active_id)
    assert (active.mode, active.record_id, active.seeded_date) == (
        ModalMode.PROMOTE.value,
        active_id,
        None,
    )
    tentative = controller.click_lead(tentative_id)
    assert tentative.mode == ModalMode.PROMOTE.value
    assert tentative.seeded_date == datetime(2026, 3, 15, 12, 0)
    cold = controller.click_lead(cold_id)
    assert (cold.mode, cold.record_id, cold.seeded_date) == (
        ModalMode.RESTORE_LEAD.value,
        cold_id,
        None,
    )

    assert controller.view_model.find_lead("missing") is None
    assert records.fetch_leads(controller.store, IDENTITY) == before
    assert [e["event_type"] for e in read_events(tmp_path / "events.ndjson")] == []


def test_job_drop_moves_between_board_columns(tmp_path: Path) -> None:
    controller, lead_id = _controller(tmp_path)
    job = lifecycle.promote(
        controller.store, IDENTITY, lead_id, scheduled_inspection_date=date(2026, 3, 18)
    )
    controller.view_model.refresh()

    controller.start_drag(job.job_id, scheduling.JOB_ITEM)
    controller.end_drag()
    assert controller.drop_on_column("completed") is None
    assert controller.error is None
    assert records.get_job(controller.store, IDENTITY, job.job_id).status == "completed"
    assert controller.view_model.find_job(job.job_id).status == "completed"
    assert controller.drag_state.current is None

    assert controller.drop_on_column("completed", DragItem(job.job_id, "job")) is None
    assert controller.drop_on_column("scheduled", DragItem(job.job_id, "job")) is None
    stored = records.get_job(controller.store, IDENTITY, job.job_id)
    assert (stored.status, stored.completed_at) == ("scheduled", None)
    assert [e["event_type"] for e in read_events(tmp_path / "events.ndjson")] == [
        "job_completed",
        "job_reopened",
    ]


def test_job_drop_outside_selected_campaign_is_ignored(tmp_path: Path) -> None:
    controller, lead_id = _controller(tmp_path)
    job = lifecycle.promote(
        controller.store, IDENTITY, lead_id, scheduled_inspection_date=date(2026, 3, 18)
    )
    controller.view_model.refresh()
    controller.view_model.select_campaign("another-campaign")

    assert controller.drop_on_column("completed", DragItem(job.job_id, "job")) is None
    assert records.get_job(controller.store, IDENTITY, job.job_id).status == "scheduled"
    with pytest.raises(DragError):
        controller.drop(date(2026, 3, 15), DragItem(job.job_id, "job"))


def test_lead_drop_on_column_opens_promote_modal_for_that_status(tmp_path: Path) -> None:
    controller, lead_id = _controller(tmp_path)

    request = controller.drop_on_column("completed", DragItem(item_id=lead_id))
    assert (request.mode, request.record_id, request.target_status) == (
        ModalMode.PROMOTE.value,
        lead_id,
        "completed",
    )
    assert records.fetch_jobs(controller.store, IDENTITY).all() == []

    modal = ModalOrchestrator(controller.store, IDENTITY)
    modal.open(request)
    assert (modal.form.contact_action, modal.form.job_status) == ("scheduled", "completed")
    outcome = modal.submit(ModalAction.SUBMIT.value)
    assert outcome.ok, outcome.message
    assert outcome.result.status == "completed"
    assert [j.job_id for j in records.fetch_jobs(controller.store, IDENTITY).completed] == [
        outcome.result.job_id
    ]


def test_dashboard_summary_includes_promoted_leads(tmp_path: Path) -> None:
    controller, lead_id = _controller(tmp_path)
    other_id = _submit(controller, "Lee Okafor", "lee@example.com")
    lifecycle.promote(
        controller.store, IDENTITY, lead_id, scheduled_inspection_date=date(2026, 3, 18)
    )

    summary = view_model.load_dashboard_summary(controller.store, IDENTITY)

    assert (summary.total_campaigns, summary.active_campaigns, summary.total_leads) == (1, 1, 2)
    assert {lead.lead_id for lead in summary.recent_leads} == {lead_id, other_id}
    assert len(view_model.load_snapshot(controller.store, IDENTITY).leads) == 1
