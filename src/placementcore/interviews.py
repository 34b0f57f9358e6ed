"""Interview slot scheduling and slot notifications."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import pendulum
import structlog

from .core.notifications import NotificationDispatcher, NotificationRequest
from .errors import SlotConflict
from .repository import DocumentRepository
from .schemas import InterviewSlot

CALENDAR_URL = "https://calendar.google.com/calendar/render?action=TEMPLATE"
CALENDAR_TIMEZONE = "Asia/Kolkata"

_UPDATABLE = ("interview_date", "start_time", "end_time", "mode", "location", "notes", "status")


def _encode(text: str) -> str:
    return quote(text, safe="-_.!~*'()")


def format_clock(value: str) -> str:
    """Format ``"14:05"`` as ``"2:05 PM"``."""
    hours, minutes = value.split(":")
    hour = int(hours)
    display = hour - 12 if hour > 12 else (12 if hour == 0 else hour)
    suffix = "PM" if hour >= 12 else "AM"
    return f"{display}:{minutes} {suffix}"


def calendar_link(slot: InterviewSlot) -> str:
    """Build a Google Calendar event template link for the slot."""
    day = slot.interview_date.strftime("%Y%m%d")
    start = slot.start_time.replace(":", "")
    end = slot.end_time.replace(":", "")
    details = f"Interview via PlacementPro\nDrive: {slot.drive_name}"
    if slot.location:
        details += f"\nVenue: {slot.location}"
    if slot.notes:
        details += f"\nNotes: {slot.notes}"
    return (
        CALENDAR_URL
        + f"&text={_encode('Interview – ' + (slot.drive_name or 'Campus Placement'))}"
        + f"&dates={day}T{start}00%2F{day}T{end}00"
        + f"&details={_encode(details)}"
        + f"&location={_encode(slot.location or 'Campus')}"
        + f"&ctz={_encode(CALENDAR_TIMEZONE)}"
    )


def slot_message(slot: InterviewSlot, *, compact: bool = False) -> str:
    day = pendulum.date(
        slot.interview_date.year, slot.interview_date.month, slot.interview_date.day
    )
    extras = ""
    if slot.location:
        extras += f" | Venue: {slot.location}"
    if slot.notes:
        extras += f" | Note: {slot.notes}"
    start, end = format_clock(slot.start_time), format_clock(slot.end_time)
    if compact:
        return (
            f"Interview for {slot.drive_name}: {day.format('ddd, D MMM')}, {start}–{end}. "
            f"Mode: {slot.mode}{extras}. Add to Calendar: {calendar_link(slot)}"
        )
    return (
        f"Your interview for {slot.drive_name} is scheduled on "
        f"{day.format('dddd, D MMMM YYYY')} from {start} to {end}. "
        f"Mode: {slot.mode}{extras}. Add to Google Calendar: {calendar_link(slot)}"
    )


class InterviewScheduler:
    """Create, move and announce interview slots for a drive."""

    def __init__(self, repository: DocumentRepository, dispatcher: NotificationDispatcher):
        self._repository = repository
        self._dispatcher = dispatcher
        self._logger = structlog.get_logger(__name__)

    def list_slots(self, drive_id: str | None = None) -> list[InterviewSlot]:
        slots: list[InterviewSlot] = self._repository.all(  # type: ignore[assignment]
            "slots", (lambda s: s.drive_id == drive_id) if drive_id else None
        )
        slots.sort(key=lambda s: (s.interview_date, s.start_time))
        return slots

    def schedule(self, slot: InterviewSlot) -> InterviewSlot:
        self._ensure_free(slot)
        self._repository.save("slots", slot)
        self._logger.info("interview.scheduled", slot_id=slot.slot_id, drive_id=slot.drive_id, usn=slot.usn)
        return slot

    def update(self, slot_id: str, changes: dict[str, Any]) -> InterviewSlot:
        current = self._repository.slot(slot_id)
        updates = {key: value for key, value in changes.items() if key in _UPDATABLE and value is not None}
        candidate = InterviewSlot.model_validate({**current.model_dump(), **updates})
        if "interview_date" in updates or "start_time" in updates:
            self._ensure_free(candidate)
        self._repository.save("slots", candidate)
        return candidate

    def delete(self, slot_id: str) -> None:
        self._repository.delete("slots", slot_id)

    def notify(self, slot_id: str) -> bool:
        slot = self._repository.slot(slot_id)
        return self._notify(slot, compact=False)

    def notify_drive(self, drive_id: str) -> int:
        """Announce every scheduled slot of the drive; returns how many were sent."""
        slots = [slot for slot in self.list_slots(drive_id) if slot.status == "scheduled"]
        for slot in slots:
            self._notify(slot, compact=True)
        self._logger.info("interview.notified", drive_id=drive_id, notified=len(slots))
        return len(slots)

    def _notify(self, slot: InterviewSlot, *, compact: bool) -> bool:
        request = NotificationRequest(
            usn=slot.usn,
            title=f"Interview Scheduled: {slot.drive_name}",
            message=slot_message(slot, compact=compact),
            category="general",
            drive_id=slot.drive_id,
        )
        _, changed = self._dispatcher.upsert(request, title_pattern=f"Interview Scheduled: {slot.drive_name}")
        return changed

    def _ensure_free(self, slot: InterviewSlot) -> None:
        for other in self._repository.all("slots"):
            if (
                other.slot_id != slot.slot_id  # type: ignore[attr-defined]
                and other.drive_id == slot.drive_id  # type: ignore[attr-defined]
                and other.interview_date == slot.interview_date  # type: ignore[attr-defined]
                and other.start_time == slot.start_time  # type: ignore[attr-defined]
            ):
                raise SlotConflict(
                    f"{other.student_name} already has a slot at {slot.start_time}"  # type: ignore[attr-defined]
                )
