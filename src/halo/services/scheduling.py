from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime

from halo.domain import rules
from halo.domain.models import CalendarEvent, Identity
from halo.domain.rules import ValidationError
from halo.domain.stages import EventType, JobStatus
from halo.services import lifecycle
from halo.services.events import EventLogger
from halo.services.modal import ModalMode, ModalRequest
from halo.services.view_model import SidebarViewModel
from halo.store.records import StoreError
from halo.store.sqlite import SqliteStore

DEFAULT_SETTLE_MS = 150
LEAD_ITEM = "lead"
JOB_ITEM = "job"


class DragError(RuntimeError):
    pass


class PlacementInProgressError(RuntimeError):
    pass


@dataclass(frozen=True)
class DragItem:
    item_id: str
    type: str = LEAD_ITEM


@dataclass(frozen=True)
class DropSlot:
    start: datetime
    end: datetime
    dropped_item: DragItem | None = None


def resolve_drop_slot(cell_date: date | datetime, dropped_item: DragItem | None = None) -> DropSlot:
    start = rules.local_noon(cell_date)
    return DropSlot(start=start, end=start, dropped_item=dropped_item)


class DragState:
    def __init__(
        self,
        settle_ms: int = DEFAULT_SETTLE_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settle_seconds = settle_ms / 1000
        self._clock = clock
        self._item: DragItem | None = None
        self._clear_at: float | None = None

    @property
    def current(self) -> DragItem | None:
        if self._clear_at is not None and self._clock() >= self._clear_at:
            self.clear()
        return self._item

    @property
    def is_dragging(self) -> bool:
        return self.current is not None and self._clear_at is None

    def begin(self, item: DragItem) -> None:
        if self.is_dragging and self._item != item:
            raise DragError(f"Already dragging {self._item.type} {self._item.item_id}")
        self._item = item
        self._clear_at = None

    def end(self) -> None:
        if self._item is not None and self._clear_at is None:
            self._clear_at = self._clock() + self.settle_seconds

    def clear(self) -> None:
        self._item = None
        self._clear_at = None


class SchedulingController:
    def __init__(
        self,
        store: SqliteStore,
        identity: Identity,
        view_model: SidebarViewModel,
        drag_state: DragState | None = None,
        logger: EventLogger | None = None,
    ) -> None:
        self.store = store
        self.identity = identity
        self.view_model = view_model
        self.drag_state = drag_state or DragState()
        self.logger = logger
        self.error: str | None = None
        self._in_flight: set[str] = set()

    def start_drag(self, item_id: str, item_type: str = LEAD_ITEM) -> DragItem:
        rules.validate_enum(item_type, [LEAD_ITEM, JOB_ITEM], "drag item")
        item = DragItem(item_id=item_id, type=item_type)
        self.drag_state.begin(item)
        return item

    def end_drag(self) -> None:
        self.drag_state.end()

    def drop(
        self,
        cell_date: date | datetime | None,
        dropped_item: DragItem | None = None,
    ) -> ModalRequest | None:
        """Place the dragged lead on ``cell_date`` and open the promote modal.

        Dropping outside any day cell (``cell_date`` is None) or without a
        dragged item cancels the drag with no state change. Store failures
        roll the optimistic sidebar update back and land in ``error``.
        """
        item = dropped_item or self.drag_state.current
        self.drag_state.clear()
        if cell_date is None or item is None:
            return None
        if item.type != LEAD_ITEM:
            raise DragError(f"Cannot place {item.type} on the calendar")
        if item.item_id in self._in_flight:
            raise PlacementInProgressError(f"Lead {item.item_id} is already being placed")

        slot = resolve_drop_slot(cell_date, item)
        self.error = None
        self._in_flight.add(item.item_id)
        previous = self.view_model.apply_lead_patch(item.item_id, {"tentative_date": slot.start})
        try:
            lifecycle.place_on_calendar(
                self.store, self.identity, item.item_id, slot.start, logger=self.logger
            )
        except (ValidationError, StoreError) as exc:
            self.view_model.restore(previous)
            self.error = str(exc)
            return None
        finally:
            self._in_flight.discard(item.item_id)

        self.view_model.refresh()
        return ModalRequest(mode=ModalMode.PROMOTE.value, record_id=item.item_id, seeded_date=slot.start)

    def drop_on_column(
        self,
        target_status: str,
        dropped_item: DragItem | None = None,
    ) -> ModalRequest | None:
        """Drop onto the scheduled or completed column of the job board.

        A lead opens the promote modal aimed at ``target_status``. A job moves
        to the target column directly and returns None. Items outside the
        selected campaign, and jobs dropped on their own column, are ignored.
        """
        rules.validate_enum(target_status, [s.value for s in JobStatus], "status")
        item = dropped_item or self.drag_state.current
        self.drag_state.clear()
        if item is None:
            return None

        if item.type == LEAD_ITEM:
            lead = self.view_model.find_lead(item.item_id)
            if lead is None or not self.view_model.is_visible(lead):
                return None
            return ModalRequest(
                mode=ModalMode.PROMOTE.value,
                record_id=lead.lead_id,
                seeded_date=lead.tentative_date,
                target_status=target_status,
            )
        if item.type != JOB_ITEM:
            raise DragError(f"Cannot drop {item.type} on the job board")

        job = self.view_model.find_job(item.item_id)
        if job is None or not self.view_model.is_visible(job) or job.status == target_status:
            return None
        if job.job_id in self._in_flight:
            raise PlacementInProgressError(f"Job {job.job_id} is already being moved")

        self.error = None
        self._in_flight.add(job.job_id)
        try:
            if target_status == JobStatus.COMPLETED.value:
                lifecycle.advance_job_to_completed(
                    self.store, self.identity, job.job_id, logger=self.logger
                )
            else:
                lifecycle.restore_completed_job(
                    self.store, self.identity, job.job_id, logger=self.logger
                )
        except (ValidationError, StoreError) as exc:
            self.error = str(exc)
            return None
        finally:
            self._in_flight.discard(job.job_id)

        self.view_model.refresh()
        return None

    def select_slot(self, cell_date: date | datetime) -> DropSlot:
        """A plain click on a day cell; nothing is written."""
        return resolve_drop_slot(cell_date)

    def click_event(self, event: CalendarEvent) -> ModalRequest:
        if event.type == EventType.CONFIRMED.value:
            return ModalRequest(mode=ModalMode.EDIT.value, record_id=event.job_id, seeded_date=event.start)
        return ModalRequest(mode=ModalMode.PROMOTE.value, record_id=event.lead_id, seeded_date=event.start)

    def click_lead(self, lead_id: str) -> ModalRequest:
        lead = self.view_model.find_lead(lead_id)
        if lead is not None and lead.is_cold_lead:
            return ModalRequest(mode=ModalMode.RESTORE_LEAD.value, record_id=lead_id)
        seeded = lead.tentative_date if lead is not None else None
        return ModalRequest(mode=ModalMode.PROMOTE.value, record_id=lead_id, seeded_date=seeded)

    def click_completed_job(self, job_id: str) -> ModalRequest:
        return ModalRequest(mode=ModalMode.RESTORE_JOB.value, record_id=job_id)
