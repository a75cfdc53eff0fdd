from __future__ import annotations

import calendar as _calendar
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta

from halo.domain import rules
from halo.domain.models import CalendarEvent, Job, JobPartition, Lead
from halo.domain.stages import CalendarViewMode, EventType, JobStatus

DEFAULT_MAX_ROWS = 3
DEFAULT_AGENDA_DAYS = 14

ATTEMPT_BADGES = {1: "1ST", 2: "2ND", 3: "3RD"}
LEAD_BADGES = {0: "UNSCHEDULED", 1: "1ST ATTEMPT", 2: "2ND ATTEMPT", 3: "3RD ATTEMPT"}
ATTEMPT_CLASSES = {1: "event-tentative-1st", 2: "event-tentative-2nd", 3: "event-tentative-3rd"}
AGENDA_ATTEMPTS = {1: "1st", 2: "2nd", 3: "3rd"}


@dataclass(frozen=True)
class DayCell:
    day: date
    visible: list[CalendarEvent]
    overflow: int

    @property
    def more_label(self) -> str | None:
        return f"+{self.overflow} more" if self.overflow else None


@dataclass(frozen=True)
class AgendaDay:
    day: date
    label: str
    events: list[CalendarEvent] = field(default_factory=list)


def tentative_event(lead: Lead) -> CalendarEvent:
    start = rules.local_noon(lead.tentative_date)
    return CalendarEvent(
        event_id=f"lead-{lead.lead_id}",
        title=lead.name,
        start=start,
        end=start,
        type=EventType.TENTATIVE.value,
        customer_name=lead.name,
        phone=lead.phone,
        email=lead.email,
        contact_attempt=lead.contact_attempt,
        lead_id=lead.lead_id,
        inspector=lead.inspector,
    )


def confirmed_event(job: Job) -> CalendarEvent:
    start = rules.local_noon(job.scheduled_inspection_date)
    return CalendarEvent(
        event_id=f"job-{job.job_id}",
        title=job.customer_name,
        start=start,
        end=start,
        type=EventType.CONFIRMED.value,
        customer_name=job.customer_name,
        phone=job.phone,
        email=job.email,
        job_id=job.job_id,
        inspector=job.inspector,
    )


def build_events(leads: Iterable[Lead], jobs: JobPartition | Iterable[Job]) -> list[CalendarEvent]:
    """Project tentative leads and scheduled jobs onto the calendar.

    Cold leads stay off the calendar even when they still carry a
    tentative date.
    """
    if isinstance(jobs, JobPartition):
        jobs = jobs.scheduled
    events = [
        tentative_event(lead)
        for lead in leads
        if lead.tentative_date is not None and not lead.is_cold_lead
    ]
    events.extend(
        confirmed_event(job)
        for job in jobs
        if job.status == JobStatus.SCHEDULED.value and job.scheduled_inspection_date is not None
    )
    events.sort(key=lambda event: (event.start, event.type != EventType.CONFIRMED.value, event.title))
    return events


def event_badge(event: CalendarEvent) -> str:
    if event.type == EventType.CONFIRMED.value:
        return "CONFIRMED"
    return ATTEMPT_BADGES.get(event.contact_attempt or 0, "NEW")


def event_class(event: CalendarEvent) -> str:
    if event.type == EventType.CONFIRMED.value:
        return "event-confirmed"
    return ATTEMPT_CLASSES.get(event.contact_attempt or 0, "event-tentative-new")


def agenda_label(event: CalendarEvent) -> str:
    if event.type == EventType.CONFIRMED.value:
        return "Confirmed"
    return f"Tentative - {AGENDA_ATTEMPTS.get(event.contact_attempt or 0, 'New')}"


def lead_badge(lead: Lead) -> str:
    if lead.is_cold_lead:
        return "COLD"
    return LEAD_BADGES.get(lead.contact_attempt, "UNSCHEDULED")


def week_start(day: date) -> date:
    # Weeks start on Sunday.
    return day - timedelta(days=(day.weekday() + 1) % 7)


def visible_range(anchor: date, view: str = CalendarViewMode.MONTH.value) -> tuple[date, date]:
    """First and last day drawn for the view, both inclusive."""
    rules.validate_enum(view, [v.value for v in CalendarViewMode], "view")
    if view == CalendarViewMode.WEEK.value:
        start = week_start(anchor)
        return start, start + timedelta(days=6)
    first = anchor.replace(day=1)
    last = anchor.replace(day=_calendar.monthrange(anchor.year, anchor.month)[1])
    start = week_start(first)
    end = week_start(last) + timedelta(days=6)
    return start, end


def events_in_range(events: Iterable[CalendarEvent], start: date, end: date) -> list[CalendarEvent]:
    return [event for event in events if start <= event.start.date() <= end]


def events_on(events: Iterable[CalendarEvent], day: date) -> list[CalendarEvent]:
    return [event for event in events if event.start.date() == day]


def day_cell(events: Iterable[CalendarEvent], day: date, max_rows: int = DEFAULT_MAX_ROWS) -> DayCell:
    todays = events_on(events, day)
    return DayCell(day=day, visible=todays[:max_rows], overflow=max(0, len(todays) - max_rows))


def more_events(events: Iterable[CalendarEvent], day: date, max_rows: int = DEFAULT_MAX_ROWS) -> list[CalendarEvent]:
    """Events hidden behind a day's "+N more" link; never other days."""
    return events_on(events, day)[max_rows:]


def month_grid(
    events: Iterable[CalendarEvent],
    anchor: date,
    view: str = CalendarViewMode.MONTH.value,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> list[list[DayCell]]:
    start, end = visible_range(anchor, view)
    shown = events_in_range(events, start, end)
    weeks: list[list[DayCell]] = []
    day = start
    while day <= end:
        weeks.append([day_cell(shown, day + timedelta(days=i), max_rows) for i in range(7)])
        day += timedelta(days=7)
    return weeks


def agenda(
    events: Iterable[CalendarEvent],
    today: date,
    days: int = DEFAULT_AGENDA_DAYS,
) -> list[AgendaDay]:
    end = today + timedelta(days=days)
    upcoming = sorted(
        (event for event in events if today <= event.start.date() <= end),
        key=lambda event: event.start,
    )
    grouped: dict[date, list[CalendarEvent]] = {}
    for event in upcoming:
        grouped.setdefault(event.start.date(), []).append(event)
    return [
        AgendaDay(day=day, label=_agenda_day_label(day, today), events=grouped[day])
        for day in sorted(grouped)
    ]


def _agenda_day_label(day: date, today: date) -> str:
    if day == today:
        return "Today"
    if day == today + timedelta(days=1):
        return "Tomorrow"
    return f"{day:%A, %b} {day.day}"


class CalendarState:
    """View-only navigation; never touches lead or job state."""

    def __init__(self, anchor: date | None = None, view: str = CalendarViewMode.MONTH.value) -> None:
        rules.validate_enum(view, [v.value for v in CalendarViewMode], "view")
        self.anchor = anchor or date.today()
        self.view = view

    def set_view(self, view: str) -> None:
        rules.validate_enum(view, [v.value for v in CalendarViewMode], "view")
        self.view = view

    def today(self, today: date | None = None) -> None:
        self.anchor = today or date.today()

    def next(self) -> None:
        self.anchor = self._shift(1)

    def prev(self) -> None:
        self.anchor = self._shift(-1)

    @property
    def range(self) -> tuple[date, date]:
        return visible_range(self.anchor, self.view)

    @property
    def title(self) -> str:
        if self.view != CalendarViewMode.WEEK.value:
            return f"{self.anchor:%B %Y}"
        start, end = self.range
        if start.year != end.year:
            return f"{start:%b} {start.day}, {start.year} - {end:%b} {end.day}, {end.year}"
        return f"{start:%b} {start.day} - {end:%b} {end.day}, {end.year}"

    def _shift(self, step: int) -> date:
        if self.view == CalendarViewMode.WEEK.value:
            return self.anchor + timedelta(days=7 * step)
        month_index = self.anchor.year * 12 + self.anchor.month - 1 + step
        year, month = divmod(month_index, 12)
        return date(year, month + 1, 1)
