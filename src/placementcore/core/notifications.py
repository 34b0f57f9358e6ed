"""Notification dispatch for drive lifecycle and interview events."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

import structlog

from ..repository import DocumentRepository
from ..schemas import Drive, Notification, NotificationCategory, Student, Tier
from ..schemas.common import utcnow
from .eligibility import format_number


@dataclass
class NotificationConfig:
    """Configuration for notification feeds."""

    feed_limit: int = 20


@dataclass(slots=True)
class NotificationRequest:
    usn: str
    title: str
    message: str
    category: NotificationCategory = "general"
    drive_id: str | None = None


def drive_published_request(drive: Drive, student: Student) -> NotificationRequest:
    package = drive.package or "TBD"
    return NotificationRequest(
        usn=student.usn,
        title=f"New Drive: {drive.company_name}",
        message=(
            f"You are eligible for {drive.company_name}! "
            f"Min CGPA: {format_number(drive.criterion.min_cgpa)}, Package: {package}. Check it out!"
        ),
        category="drive",
        drive_id=drive.drive_id,
    )


def shortlisted_request(drive: Drive, student: Student, tier: Tier) -> NotificationRequest:
    return NotificationRequest(
        usn=student.usn,
        title=f"Shortlisted: {drive.company_name}",
        message=f"You've been shortlisted for {drive.company_name}! Ranking: {tier}",
        category="shortlist",
        drive_id=drive.drive_id,
    )


class NotificationDispatcher:
    """Persist per-student notifications through the repository."""

    def __init__(
        self,
        repository: DocumentRepository,
        *,
        config: NotificationConfig | None = None,
    ) -> None:
        self._repository = repository
        self._config = config or NotificationConfig()
        self._logger = structlog.get_logger(__name__)

    def dispatch(self, requests: Iterable[NotificationRequest]) -> list[Notification]:
        """Persist one unread notification per request."""
        created = [self._repository.save("notifications", self._build(request)) for request in requests]
        if created:
            self._logger.info("notifications.dispatched", count=len(created))
        return created

    def publish_drive(self, drive: Drive, students: Iterable[Student]) -> list[Notification]:
        """Notify students of a drive and give each one ``eligible`` application."""
        students = list(students)
        notifications = self.dispatch(drive_published_request(drive, s) for s in students)
        added = 0
        for student in students:
            if student.ensure_application(drive.drive_id):
                self._repository.save("students", student)
                added += 1
        self._logger.info(
            "drive.published",
            drive_id=drive.drive_id,
            notified=len(notifications),
            applications_added=added,
        )
        return notifications

    def upsert(
        self,
        request: NotificationRequest,
        *,
        title_pattern: str | None = None,
    ) -> tuple[Notification, bool]:
        """Update the student's matching notification or insert a new one.

        A notification matches on (usn, category, drive). With ``title_pattern``
        its title must also contain the pattern (case-insensitive); a request
        without a drive then matches on the title alone. Returns the record and
        whether anything was written.
        """
        existing = self._find_match(request, title_pattern)
        if existing is None:
            notification = self._repository.save("notifications", self._build(request))
            return notification, True

        if existing.title == request.title and existing.message == request.message:
            return existing, False

        existing.title = request.title
        existing.message = request.message
        existing.drive_id = request.drive_id or existing.drive_id
        existing.is_read = False
        existing.created_at = utcnow()
        self._repository.save("notifications", existing)
        return existing, True

    def for_student(self, usn: str, limit: int | None = None) -> list[Notification]:
        usn = usn.strip().upper()
        records: list[Notification] = self._repository.all(  # type: ignore[assignment]
            "notifications", lambda n: n.usn == usn
        )
        records.sort(key=lambda n: n.created_at, reverse=True)
        return records[: limit or self._config.feed_limit]

    def mark_read(self, notification_id: str) -> Notification:
        notification: Notification = self._repository.get("notifications", notification_id)  # type: ignore[assignment]
        notification.is_read = True
        return self._repository.save("notifications", notification)

    def mark_all_read(self, usn: str) -> int:
        usn = usn.strip().upper()
        unread = self._repository.all("notifications", lambda n: n.usn == usn and not n.is_read)
        for notification in unread:
            notification.is_read = True  # type: ignore[attr-defined]
            self._repository.save("notifications", notification)
        return len(unread)

    def _find_match(
        self,
        request: NotificationRequest,
        title_pattern: str | None,
    ) -> Notification | None:
        usn = request.usn.strip().upper()
        matcher = re.compile(re.escape(title_pattern), re.IGNORECASE) if title_pattern else None
        for notification in self._repository.all("notifications"):
            if notification.usn != usn or notification.category != request.category:  # type: ignore[attr-defined]
                continue
            same_drive = notification.drive_id == request.drive_id  # type: ignore[attr-defined]
            if matcher is not None:
                # a title like "Acme" also occurs inside "Acme Labs"
                if (same_drive or request.drive_id is None) and matcher.search(notification.title):  # type: ignore[attr-defined]
                    return notification  # type: ignore[return-value]
            elif same_drive:
                return notification  # type: ignore[return-value]
        return None

    @staticmethod
    def _build(request: NotificationRequest) -> Notification:
        return Notification(
            usn=request.usn.strip().upper(),
            title=request.title,
            message=request.message,
            category=request.category,
            drive_id=request.drive_id,
        )
