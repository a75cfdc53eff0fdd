from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from halo.domain import rules
from halo.domain.models import Identity, Job, Lead
from halo.domain.rules import ValidationError
from halo.domain.stages import JobStatus
from halo.services import lifecycle
from halo.services.events import EventLogger
from halo.store import records
from halo.store.records import RecordNotFoundError, StoreError
from halo.store.sqlite import SqliteStore

SELECT_DATE_MESSAGE = "Please select an inspection date."
BUSY_MESSAGE = "A save is already in progress."


class ModalMode(str, Enum):
    PROMOTE = "promote"
    EDIT = "edit"
    RESTORE_LEAD = "restore_lead"
    RESTORE_JOB = "restore_job"


class ContactAction(str, Enum):
    UNCONTACTED = "uncontacted"
    FIRST_ATTEMPT = "attempt_1"
    SECOND_ATTEMPT = "attempt_2"
    THIRD_ATTEMPT = "attempt_3"
    SCHEDULED = "scheduled"


class ModalAction(str, Enum):
    SUBMIT = "submit"
    SAVE = "save"
    COLD_BUCKET = "cold_bucket"
    REMOVE_FROM_CALENDAR = "remove_from_calendar"
    MOVE_TO_COMPLETED = "move_to_completed"
    RESTORE = "restore"


ATTEMPT_LEVELS = {
    ContactAction.UNCONTACTED.value: 0,
    ContactAction.FIRST_ATTEMPT.value: 1,
    ContactAction.SECOND_ATTEMPT.value: 2,
    ContactAction.THIRD_ATTEMPT.value: 3,
}


@dataclass(frozen=True)
class ModalRequest:
    mode: str
    record_id: str
    seeded_date: datetime | None = None
    target_status: str | None = None


@dataclass
class ModalForm:
    contact_action: str = ContactAction.UNCONTACTED.value
    job_status: str = JobStatus.SCHEDULED.value
    scheduled_inspection_date: date | datetime | None = None
    clear_date: bool = False
    inspector: str | None = None
    internal_notes: str | None = None


@dataclass(frozen=True)
class ModalOutcome:
    ok: bool
    action: str
    message: str | None = None
    closed: bool = False
    result: Any = None


@dataclass
class _ModalState:
    mode: str | None = None
    lead: Lead | None = None
    job: Job | None = None
    form: ModalForm = field(default_factory=ModalForm)
    not_found: bool = False
    submitting: bool = False
    error: str | None = None
    field_error: str | None = None


def contact_action_for(attempt: int) -> str:
    for action, level in ATTEMPT_LEVELS.items():
        if level == attempt:
            return action
    return ContactAction.UNCONTACTED.value


class ModalOrchestrator:
    def __init__(
        self,
        store: SqliteStore,
        identity: Identity,
        on_refresh: Callable[[], Any] | None = None,
        logger: EventLogger | None = None,
    ) -> None:
        self.store = store
        self.identity = identity
        self.on_refresh = on_refresh
        self.logger = logger
        self.state = _ModalState()
        self.is_open = False

    @property
    def mode(self) -> str | None:
        return self.state.mode

    @property
    def form(self) -> ModalForm:
        return self.state.form

    def open(self, request: ModalRequest) -> None:
        rules.validate_enum(request.mode, [m.value for m in ModalMode], "mode")
        self.state = _ModalState(mode=request.mode)
        self.is_open = True
        try:
            if request.mode in {ModalMode.PROMOTE.value, ModalMode.RESTORE_LEAD.value}:
                lead = records.get_lead(self.store, self.identity, request.record_id)
                self.state.lead = lead
                self.state.form = ModalForm(
                    contact_action=(
                        ContactAction.SCHEDULED.value
                        if request.target_status
                        else contact_action_for(lead.contact_attempt)
                    ),
                    job_status=request.target_status or JobStatus.SCHEDULED.value,
                    scheduled_inspection_date=request.seeded_date or lead.tentative_date,
                    inspector=lead.inspector,
                    internal_notes=lead.internal_notes,
                )
            else:
                job = records.get_job(self.store, self.identity, request.record_id)
                self.state.job = job
                self.state.form = ModalForm(
                    job_status=job.status,
                    scheduled_inspection_date=request.seeded_date or job.scheduled_inspection_date,
                    inspector=job.inspector,
                    internal_notes=job.internal_notes,
                )
        except RecordNotFoundError as exc:
            self.state.not_found = True
            self.state.error = str(exc)
        except StoreError as exc:
            self.state.error = str(exc)

    def close(self) -> None:
        self.is_open = False
        self.state = _ModalState()

    def contact_options(self) -> list[str]:
        if self.state.mode != ModalMode.PROMOTE.value:
            return []
        return [action.value for action in ContactAction]

    def available_actions(self) -> list[str]:
        state = self.state
        if not self.is_open or state.not_found:
            return []
        if state.mode == ModalMode.PROMOTE.value and state.lead is not None:
            actions = [ModalAction.SUBMIT.value, ModalAction.COLD_BUCKET.value]
            if state.lead.tentative_date is not None:
                actions.append(ModalAction.REMOVE_FROM_CALENDAR.value)
            return actions
        if state.mode == ModalMode.EDIT.value and state.job is not None:
            actions = [
                ModalAction.SAVE.value,
                ModalAction.REMOVE_FROM_CALENDAR.value,
                ModalAction.COLD_BUCKET.value,
            ]
            if state.job.status != JobStatus.COMPLETED.value:
                actions.append(ModalAction.MOVE_TO_COMPLETED.value)
            return actions
        if state.mode == ModalMode.RESTORE_LEAD.value and state.lead is not None:
            return [ModalAction.RESTORE.value]
        if state.mode == ModalMode.RESTORE_JOB.value and state.job is not None:
            return [ModalAction.RESTORE.value]
        return []

    def submit(self, action: str, form: ModalForm | None = None) -> ModalOutcome:
        if self.state.submitting:
            return ModalOutcome(ok=False, action=action, message=BUSY_MESSAGE)
        if action not in self.available_actions():
            return ModalOutcome(ok=False, action=action, message=f"Action not available: {action}")

        form = form or self.state.form
        self.state.submitting = True
        self.state.error = None
        self.state.field_error = None
        try:
            result = self._dispatch(action, form)
        except ValidationError as exc:
            self.state.field_error = str(exc)
            return ModalOutcome(ok=False, action=action, message=str(exc))
        except RecordNotFoundError as exc:
            self.state.not_found = True
            self.state.error = str(exc)
            return ModalOutcome(ok=False, action=action, message=str(exc))
        except StoreError as exc:
            self.state.error = str(exc)
            return ModalOutcome(ok=False, action=action, message=str(exc))
        finally:
            self.state.submitting = False

        self.close()
        if self.on_refresh is not None:
            self.on_refresh()
        return ModalOutcome(ok=True, action=action, closed=True, result=result)

    def _dispatch(self, action: str, form: ModalForm) -> Any:
        mode = self.state.mode
        if mode == ModalMode.PROMOTE.value:
            return self._dispatch_promote(action, form)
        if mode == ModalMode.EDIT.value:
            return self._dispatch_edit(action, form)
        if mode == ModalMode.RESTORE_LEAD.value:
            return lifecycle.restore_cold_lead(
                self.store, self.identity, self.state.lead.lead_id, logger=self.logger
            )
        return lifecycle.restore_completed_job(
            self.store, self.identity, self.state.job.job_id, logger=self.logger
        )

    def _dispatch_promote(self, action: str, form: ModalForm) -> Any:
        lead = self.state.lead
        if action == ModalAction.REMOVE_FROM_CALENDAR.value:
            return lifecycle.remove_from_calendar(self.store, self.identity, lead.lead_id, logger=self.logger)
        if action == ModalAction.COLD_BUCKET.value:
            return lifecycle.record_contact_attempt(
                self.store,
                self.identity,
                lead.lead_id,
                lead.contact_attempt,
                is_cold=True,
                inspector=form.inspector,
                internal_notes=form.internal_notes,
                logger=self.logger,
            )

        rules.validate_enum(form.contact_action, [c.value for c in ContactAction], "contact status")
        if form.contact_action == ContactAction.SCHEDULED.value:
            if form.job_status == JobStatus.SCHEDULED.value and form.scheduled_inspection_date is None:
                raise ValidationError(SELECT_DATE_MESSAGE)
            return lifecycle.promote(
                self.store,
                self.identity,
                lead.lead_id,
                status=form.job_status,
                scheduled_inspection_date=form.scheduled_inspection_date,
                inspector=form.inspector,
                internal_notes=form.internal_notes,
                logger=self.logger,
            )
        # Attempt tracking and promotion are alternative submits, never both.
        return lifecycle.record_contact_attempt(
            self.store,
            self.identity,
            lead.lead_id,
            ATTEMPT_LEVELS[form.contact_action],
            is_cold=False,
            inspector=form.inspector,
            internal_notes=form.internal_notes,
            logger=self.logger,
        )

    def _dispatch_edit(self, action: str, form: ModalForm) -> Any:
        job_id = self.state.job.job_id
        if action == ModalAction.REMOVE_FROM_CALENDAR.value:
            return lifecycle.unschedule_job(self.store, self.identity, job_id, logger=self.logger)
        if action == ModalAction.COLD_BUCKET.value:
            return lifecycle.mark_job_cold(self.store, self.identity, job_id, logger=self.logger)
        if action == ModalAction.MOVE_TO_COMPLETED.value:
            return lifecycle.advance_job_to_completed(
                self.store,
                self.identity,
                job_id,
                scheduled_inspection_date=form.scheduled_inspection_date,
                inspector=form.inspector,
                internal_notes=form.internal_notes,
                logger=self.logger,
            )
        return lifecycle.update_job(
            self.store,
            self.identity,
            job_id,
            scheduled_inspection_date=form.scheduled_inspection_date,
            clear_date=form.clear_date,
            inspector=form.inspector,
            internal_notes=form.internal_notes,
            logger=self.logger,
        )
