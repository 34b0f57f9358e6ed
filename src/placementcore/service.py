"""Service operations invoked by the CLI (and any HTTP front end)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import pendulum
import structlog
from pydantic import ValidationError as PydanticValidationError

from .alumni import AlumniGroupDirectory
from .core import (
    AssessmentGrader,
    AttemptStateMachine,
    EligibilityEvaluator,
    EligibilityVerdict,
    GradeResult,
    NotificationDispatcher,
    RankingEngine,
)
from .core.grading import Answers
from .core.notifications import shortlisted_request
from .errors import AlreadyCompleted, NotFound, PermissionDenied, ValidationError
from .importer import form_to_fields, row_to_fields
from .interviews import InterviewScheduler
from .llm import QuizGenerator
from .repository import DocumentRepository
from .schemas import (
    AlumniGroup,
    ApplicationStatus,
    Assessment,
    AssessmentAttempt,
    AssessmentScore,
    Drive,
    EligibilityCriterion,
    GroupMember,
    GroupMessage,
    GroupSection,
    InterviewSlot,
    Notification,
    Principal,
    Student,
    Tier,
)

CGPA_BUCKETS: tuple[float, ...] = (0, 6, 7, 8, 9, 10.1)
_STUDENT_LOCKED = ("usn", "assessment_scores", "drive_applications", "created_at")


@dataclass(slots=True)
class ImportSummary:
    added: int
    skipped: int
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ShortlistEntry:
    usn: str
    score: float
    tier: Tier


@dataclass(slots=True)
class ShortlistResult:
    drive_id: str
    shortlisted: list[ShortlistEntry]
    notified: int
    skipped: list[str]
    changed: bool


@dataclass(slots=True)
class AttemptResult:
    attempt: AssessmentAttempt
    changed: bool
    message: str | None = None


@dataclass(slots=True)
class SubmissionResult:
    grade: GradeResult
    changed: bool
    score_recorded: bool
    message: str | None = None


@dataclass(slots=True)
class DriveEligibility:
    drive: Drive
    verdict: EligibilityVerdict


def _validate(model: type, payload: Mapping[str, Any]):
    try:
        return model.model_validate(dict(payload))
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or model.__name__}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(problems) from exc


class PlacementService:
    """Student, drive, assessment, notification, interview and alumni group operations."""

    def __init__(
        self,
        *,
        repository: DocumentRepository,
        evaluator: EligibilityEvaluator,
        ranking: RankingEngine,
        dispatcher: NotificationDispatcher,
        grader: AssessmentGrader,
        attempts: AttemptStateMachine,
        scheduler: InterviewScheduler,
        alumni: AlumniGroupDirectory,
        quiz_generator: QuizGenerator | None = None,
    ) -> None:
        self._repository = repository
        self._evaluator = evaluator
        self._ranking = ranking
        self._dispatcher = dispatcher
        self._grader = grader
        self._attempts = attempts
        self._scheduler = scheduler
        self._alumni = alumni
        self._quiz_generator = quiz_generator
        self._logger = structlog.get_logger(__name__)

    @property
    def repository(self) -> DocumentRepository:
        return self._repository

    # students

    def list_students(self) -> list[Student]:
        return sorted(self._repository.students(), key=lambda s: s.usn)

    def get_student(self, usn: str) -> Student:
        return self._repository.student(usn)

    def create_student(self, principal: Principal, payload: Mapping[str, Any]) -> Student:
        self._require_admin(principal)
        student: Student = _validate(Student, payload)
        with self._repository.unit_of_work():
            if self._repository.find_student(student.usn) is not None:
                raise ValidationError(f"Student {student.usn} already exists")
            self._repository.save("students", student)
        self._logger.info("student.created", usn=student.usn, by=principal.user_id)
        return student

    def update_student(self, principal: Principal, usn: str, changes: Mapping[str, Any]) -> Student:
        self._require_admin(principal)
        current = self._repository.student(usn)
        editable = {k: v for k, v in changes.items() if k not in _STUDENT_LOCKED}
        updated: Student = _validate(Student, {**current.model_dump(), **editable})
        with self._repository.unit_of_work():
            self._repository.save("students", updated)
        return updated

    def delete_student(self, principal: Principal, usn: str) -> None:
        self._require_admin(principal)
        with self._repository.unit_of_work():
            self._repository.delete("students", usn.strip().upper())

    def import_students(self, principal: Principal, rows: Iterable[Mapping[str, Any]]) -> ImportSummary:
        """Upsert students by usn; rows missing a name or usn are skipped."""
        self._require_admin(principal)
        summary = ImportSummary(added=0, skipped=0)
        with self._repository.unit_of_work():
            for idx, row in enumerate(rows, start=1):
                fields = row_to_fields(row)
                if not fields["usn"] or not fields["name"]:
                    summary.skipped += 1
                    summary.errors.append(f"row {idx}: missing name or usn")
                    continue
                existing = self._repository.find_student(fields["usn"])
                if existing is not None:
                    known = {k: v for k, v in fields.items() if v is not None}
                    merged = {**existing.model_dump(), **known}
                else:
                    merged = fields
                try:
                    student: Student = _validate(Student, merged)
                except ValidationError as exc:
                    summary.skipped += 1
                    summary.errors.append(f"row {idx}: {exc}")
                    continue
                self._repository.save("students", student)
                summary.added += 1
        self._logger.info("students.imported", added=summary.added, skipped=summary.skipped)
        return summary

    def submit_form(self, principal: Principal, payload: Mapping[str, Any]) -> Student:
        """Upsert a student from a registration form submission.

        Form fields overwrite the stored profile; scores and applications are kept.
        """
        self._require_admin(principal)
        fields = form_to_fields(payload)
        if not fields["name"] or not fields["usn"]:
            raise ValidationError("Full Name and USN are required")
        existing = self._repository.find_student(fields["usn"])
        merged = {**existing.model_dump(), **fields} if existing is not None else fields
        student: Student = _validate(Student, merged)
        with self._repository.unit_of_work():
            self._repository.save("students", student)
        self._logger.info(
            "student.form_saved",
            usn=student.usn,
            created=existing is None,
            cgpa=student.cgpa,
            branch=student.branch,
        )
        return student

    def eligible_students(self, criterion: EligibilityCriterion | Mapping[str, Any]) -> list[Student]:
        if not isinstance(criterion, EligibilityCriterion):
            criterion = _validate(EligibilityCriterion, criterion)
        return self._evaluator.eligible_set(self.list_students(), criterion)

    # drives

    def list_drives(self) -> list[Drive]:
        drives: list[Drive] = self._repository.all("drives")  # type: ignore[assignment]
        return sorted(drives, key=lambda d: d.created_at, reverse=True)

    def get_drive(self, drive_id: str) -> Drive:
        return self._repository.drive(drive_id)

    def create_drive(self, principal: Principal, payload: Mapping[str, Any]) -> Drive:
        self._require_admin(principal)
        drive: Drive = _validate(Drive, payload)
        drive.eligible_count = len(self._evaluator.eligible_set(self._repository.students(), drive.criterion))
        with self._repository.unit_of_work():
            self._repository.save("drives", drive)
        self._logger.info(
            "drive.created",
            drive_id=drive.drive_id,
            company=drive.company_name,
            eligible_count=drive.eligible_count,
        )
        return drive

    def update_drive(self, principal: Principal, drive_id: str, changes: Mapping[str, Any]) -> Drive:
        self._require_admin(principal)
        current = self._repository.drive(drive_id)
        if "criterion" in changes and current.shortlisted_at is not None:
            proposed = _validate(EligibilityCriterion, changes["criterion"])
            if proposed != current.criterion:
                raise ValidationError("Eligibility criterion is locked once shortlisting has run")
        editable = {k: v for k, v in changes.items() if k not in ("drive_id", "created_at", "shortlisted_at")}
        updated: Drive = _validate(Drive, {**current.model_dump(), **editable})
        if updated.criterion != current.criterion:
            updated.eligible_count = len(self._evaluator.eligible_set(self._repository.students(), updated.criterion))
        with self._repository.unit_of_work():
            self._repository.save("drives", updated)
        return updated

    def delete_drive(self, principal: Principal, drive_id: str) -> None:
        self._require_admin(principal)
        with self._repository.unit_of_work():
            self._repository.delete("drives", drive_id)

    def publish_drive(self, principal: Principal, drive_id: str) -> list[Notification]:
        """Notify the drive's eligible set and open an application for each."""
        self._require_admin(principal)
        drive = self._repository.drive(drive_id)
        with self._repository.unit_of_work():
            eligible = self._evaluator.eligible_set(self._repository.students(), drive.criterion)
            notifications = self._dispatcher.publish_drive(drive, eligible)
            drive.eligible_count = len(eligible)
            self._repository.save("drives", drive)
        return notifications

    def shortlist_drive(self, principal: Principal, drive_id: str) -> ShortlistResult:
        """Rank the eligible set, tag applications with tiers and notify once."""
        self._require_admin(principal)
        drive = self._repository.drive(drive_id)
        entries: list[ShortlistEntry] = []
        skipped: list[str] = []
        notified = 0
        changed = False

        with self._repository.unit_of_work():
            eligible = self._evaluator.eligible_set(self._repository.students(), drive.criterion)
            for ranked in self._ranking.rank(eligible):
                student = ranked.student
                application = student.application_for(drive.drive_id)
                if application is not None and application.status in ("selected", "rejected"):
                    skipped.append(student.usn)
                    continue
                if student.set_application_status(drive.drive_id, "shortlisted", ranking=ranked.tier):
                    self._repository.save("students", student)
                    changed = True
                _, sent = self._dispatcher.upsert(shortlisted_request(drive, student, ranked.tier))
                notified += int(sent)
                entries.append(ShortlistEntry(usn=student.usn, score=ranked.score, tier=ranked.tier))

            if drive.shortlisted_at is None:
                drive.shortlisted_at = pendulum.now("UTC")
                self._repository.save("drives", drive)

        self._logger.info(
            "drive.shortlisted",
            drive_id=drive.drive_id,
            shortlisted=len(entries),
            notified=notified,
            skipped=len(skipped),
            changed=changed,
        )
        return ShortlistResult(
            drive_id=drive.drive_id,
            shortlisted=entries,
            notified=notified,
            skipped=skipped,
            changed=changed or notified > 0,
        )

    def set_application_status(
        self,
        principal: Principal,
        usn: str,
        drive_id: str,
        status: ApplicationStatus,
    ) -> bool:
        """Move a student's application forward; backwards moves are rejected."""
        self._require_admin(principal)
        self._repository.drive(drive_id)
        student = self._repository.student(usn)
        with self._repository.unit_of_work():
            changed = student.set_application_status(drive_id, status)
            if changed:
                self._repository.save("students", student)
        self._logger.info("application.status_set", usn=student.usn, drive_id=drive_id, status=status, changed=changed)
        return changed

    def apply_to_drive(self, principal: Principal, drive_id: str) -> bool:
        """Student self-service: mark an eligible application as applied."""
        usn = self._require_student(principal)
        drive = self._repository.drive(drive_id)
        student = self._repository.student(usn)
        verdict = self._evaluator.evaluate(student, drive.criterion)
        if not verdict.eligible:
            raise ValidationError("; ".join(verdict.reasons))
        with self._repository.unit_of_work():
            changed = student.set_application_status(drive_id, "applied")
            if changed:
                self._repository.save("students", student)
        return changed

    def open_drives_for(self, usn: str) -> list[Drive]:
        student = self._repository.student(usn)
        return [
            drive
            for drive in self.list_drives()
            if drive.status in ("upcoming", "active") and self._evaluator.is_eligible(student, drive.criterion)
        ]

    def drives_with_eligibility(self, usn: str) -> list[DriveEligibility]:
        student = self._repository.student(usn)
        drives = sorted(
            self.list_drives(),
            key=lambda d: d.drive_date.timestamp() if d.drive_date else float("-inf"),
            reverse=True,
        )
        return [DriveEligibility(drive=d, verdict=self._evaluator.evaluate(student, d.criterion)) for d in drives]

    # assessments

    def list_assessments(self) -> list[Assessment]:
        assessments: list[Assessment] = self._repository.all("assessments")  # type: ignore[assignment]
        return sorted(assessments, key=lambda a: a.created_at, reverse=True)

    def create_assessment(self, principal: Principal, payload: Mapping[str, Any]) -> Assessment:
        self._require_admin(principal)
        assessment: Assessment = _validate(Assessment, payload)
        with self._repository.unit_of_work():
            self._repository.save("assessments", assessment)
        return assessment

    def generate_assessment(self, principal: Principal, **options: Any) -> Assessment:
        """Create an assessment from AI-generated questions.

        Raises ProviderUnavailable when no completion provider answers.
        """
        self._require_admin(principal)
        if self._quiz_generator is None:
            raise ValidationError("Quiz generation is not configured")
        try:
            assessment = self._quiz_generator.generate(**options)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        with self._repository.unit_of_work():
            self._repository.save("assessments", assessment)
        self._logger.info("assessment.generated", assessment_id=assessment.assessment_id, questions=len(assessment.questions))
        return assessment

    def toggle_assessment(self, principal: Principal, assessment_id: str) -> bool:
        self._require_admin(principal)
        assessment = self._repository.assessment(assessment_id)
        with self._repository.unit_of_work():
            assessment.is_active = not assessment.is_active
            self._repository.save("assessments", assessment)
        return assessment.is_active

    def delete_assessment(self, principal: Principal, assessment_id: str) -> None:
        self._require_admin(principal)
        with self._repository.unit_of_work():
            self._repository.delete("assessments", assessment_id)

    def take_assessment(self, assessment_id: str) -> dict[str, Any]:
        assessment = self._repository.find("assessments", assessment_id)
        if assessment is None or not assessment.is_active:  # type: ignore[attr-defined]
            raise NotFound("Assessment", assessment_id)
        return assessment.public_view()  # type: ignore[attr-defined]

    def start_attempt(self, principal: Principal, assessment_id: str) -> AttemptResult:
        usn = self._require_student(principal)
        assessment = self._repository.assessment(assessment_id)
        student = self._repository.student(usn)
        existing = self._repository.find_attempt(assessment.assessment_id, student.usn)
        if existing is not None:
            if existing.is_terminal:
                return AttemptResult(attempt=existing, changed=False, message="Already submitted")
            return AttemptResult(attempt=existing, changed=False)
        if not assessment.is_active:
            raise ValidationError("Assessment is not active")

        attempt = AssessmentAttempt(
            assessment_id=assessment.assessment_id,
            usn=student.usn,
            student_name=student.name,
        )
        with self._repository.unit_of_work():
            self._repository.save("attempts", attempt)
        self._logger.info("attempt.started", attempt_id=attempt.attempt_id, usn=student.usn)
        return AttemptResult(attempt=attempt, changed=True)

    def record_warning(self, principal: Principal, attempt_id: str, event: str | None = None) -> AttemptResult:
        attempt = self._owned_attempt(principal, attempt_id)
        with self._repository.unit_of_work():
            changed = self._attempts.record_warning(attempt, event)
            if changed:
                self._repository.save("attempts", attempt)
        return AttemptResult(
            attempt=attempt,
            changed=changed,
            message=None if changed else f"Attempt is already {attempt.status}",
        )

    def submit_attempt(self, principal: Principal, attempt_id: str, answers: Answers | None) -> SubmissionResult:
        attempt = self._owned_attempt(principal, attempt_id)
        assessment = self._repository.assessment(attempt.assessment_id)
        try:
            with self._repository.unit_of_work():
                grade = self._attempts.submit(attempt, assessment, answers)
                self._repository.save("attempts", attempt)
                recorded = self._record_score(attempt.usn, assessment, grade)
        except AlreadyCompleted as exc:
            return SubmissionResult(
                grade=self._attempts.replay(attempt),
                changed=False,
                score_recorded=False,
                message=str(exc),
            )
        self._logger.info(
            "attempt.submitted",
            attempt_id=attempt.attempt_id,
            usn=attempt.usn,
            score=grade.score,
            total_marks=grade.total_marks,
        )
        return SubmissionResult(grade=grade, changed=True, score_recorded=recorded)

    def submit_answers(self, principal: Principal, assessment_id: str, answers: Answers | None) -> SubmissionResult:
        """Grade a submission made without an attempt; the profile score is written once."""
        usn = self._require_student(principal)
        assessment = self._repository.assessment(assessment_id)
        self._repository.student(usn)
        attempt = self._repository.find_attempt(assessment_id, usn)
        if attempt is not None:
            return self.submit_attempt(principal, attempt.attempt_id, answers)

        grade = self._grader.grade(assessment.questions, answers)
        with self._repository.unit_of_work():
            recorded = self._record_score(usn, assessment, grade)
        return SubmissionResult(
            grade=grade,
            changed=recorded,
            score_recorded=recorded,
            message=None if recorded else "Score already recorded",
        )

    def attempts_for(self, assessment_id: str) -> list[AssessmentAttempt]:
        attempts: list[AssessmentAttempt] = self._repository.all(  # type: ignore[assignment]
            "attempts", lambda a: a.assessment_id == assessment_id
        )
        return sorted(attempts, key=lambda a: a.started_at, reverse=True)

    # notifications

    def notifications_for(self, usn: str) -> list[Notification]:
        return self._dispatcher.for_student(usn)

    def mark_read(self, notification_id: str) -> Notification:
        with self._repository.unit_of_work():
            return self._dispatcher.mark_read(notification_id)

    def mark_all_read(self, usn: str) -> int:
        with self._repository.unit_of_work():
            return self._dispatcher.mark_all_read(usn)

    # interviews

    def interview_candidates(self, drive_id: str) -> list[Student]:
        """Shortlisted students for the drive, or its eligible set before shortlisting."""
        drive = self._repository.drive(drive_id)
        shortlisted = [
            student
            for student in self.list_students()
            if (app := student.application_for(drive.drive_id)) is not None and app.status == "shortlisted"
        ]
        if shortlisted:
            return shortlisted
        return self._evaluator.eligible_set(self.list_students(), drive.criterion)

    def list_slots(self, drive_id: str | None = None) -> list[InterviewSlot]:
        return self._scheduler.list_slots(drive_id)

    def schedule_slot(self, principal: Principal, payload: Mapping[str, Any]) -> InterviewSlot:
        self._require_admin(principal)
        drive = self._repository.drive(str(payload.get("drive_id", "")))
        data = dict(payload)
        data.setdefault("drive_name", drive.company_name)
        slot: InterviewSlot = _validate(InterviewSlot, data)
        with self._repository.unit_of_work():
            return self._scheduler.schedule(slot)

    def update_slot(self, principal: Principal, slot_id: str, changes: Mapping[str, Any]) -> InterviewSlot:
        self._require_admin(principal)
        with self._repository.unit_of_work():
            try:
                return self._scheduler.update(slot_id, dict(changes))
            except PydanticValidationError as exc:
                raise ValidationError(str(exc)) from exc

    def delete_slot(self, principal: Principal, slot_id: str) -> None:
        self._require_admin(principal)
        with self._repository.unit_of_work():
            self._scheduler.delete(slot_id)

    def notify_slot(self, principal: Principal, slot_id: str) -> bool:
        self._require_admin(principal)
        with self._repository.unit_of_work():
            return self._scheduler.notify(slot_id)

    def notify_drive_slots(self, principal: Principal, drive_id: str) -> int:
        self._require_admin(principal)
        with self._repository.unit_of_work():
            return self._scheduler.notify_drive(drive_id)

    # alumni groups

    def list_groups(self) -> list[AlumniGroup]:
        return self._alumni.list_groups()

    def create_group(self, principal: Principal, company_tag: str) -> AlumniGroup:
        with self._repository.unit_of_work():
            return self._alumni.create_group(principal, company_tag)

    def join_group(self, principal: Principal, group_id: str) -> tuple[AlumniGroup, bool]:
        with self._repository.unit_of_work():
            return self._alumni.join(group_id, principal)

    def delete_group(self, principal: Principal, group_id: str) -> int:
        with self._repository.unit_of_work():
            return self._alumni.delete_group(principal, group_id)

    def group_members(self, group_id: str) -> list[GroupMember]:
        return self._alumni.members(group_id)

    def group_messages(self, group_id: str, section: GroupSection = "general") -> list[GroupMessage]:
        return self._alumni.messages(group_id, section)

    def post_group_message(
        self,
        principal: Principal,
        group_id: str,
        *,
        content: str = "",
        section: GroupSection = "general",
        file_name: str = "",
    ) -> GroupMessage:
        with self._repository.unit_of_work():
            return self._alumni.post_message(
                group_id,
                principal,
                content=content,
                section=section,
                file_name=file_name,
            )

    # dashboard

    def dashboard_stats(self) -> dict[str, Any]:
        students = self._repository.students()
        drives = self.list_drives()

        branches: dict[str, list[float]] = {}
        for student in students:
            branches.setdefault(student.branch or "Unknown", []).append(student.cgpa or 0.0)
        branch_stats = sorted(
            (
                {"branch": branch, "count": len(values), "avg_cgpa": round(sum(values) / len(values), 2)}
                for branch, values in branches.items()
            ),
            key=lambda item: item["count"],
            reverse=True,
        )

        buckets = {f"{low:g}-{high:g}": 0 for low, high in zip(CGPA_BUCKETS, CGPA_BUCKETS[1:])}
        buckets["Other"] = 0
        for student in students:
            label = "Other"
            if student.cgpa is not None:
                for low, high in zip(CGPA_BUCKETS, CGPA_BUCKETS[1:]):
                    if low <= student.cgpa < high:
                        label = f"{low:g}-{high:g}"
                        break
            buckets[label] += 1

        return {
            "total_students": len(students),
            "total_drives": len(drives),
            "active_drives": sum(1 for d in drives if d.status == "active"),
            "total_assessments": self._repository.count("assessments"),
            "shortlisted_students": sum(
                1 for s in students if any(a.status == "shortlisted" for a in s.drive_applications)
            ),
            "branch_stats": branch_stats,
            "cgpa_ranges": buckets,
            "recent_drives": [d.drive_id for d in drives[:5]],
        }

    # helpers

    def _record_score(self, usn: str, assessment: Assessment, grade: GradeResult) -> bool:
        student = self._repository.find_student(usn)
        if student is None:
            return False
        recorded = student.record_score(
            AssessmentScore(
                assessment_id=assessment.assessment_id,
                score=grade.score,
                max_score=grade.total_marks,
            )
        )
        if recorded:
            self._repository.save("students", student)
        return recorded

    def _owned_attempt(self, principal: Principal, attempt_id: str) -> AssessmentAttempt:
        attempt = self._repository.attempt(attempt_id)
        if not principal.is_admin and principal.usn != attempt.usn:
            raise PermissionDenied("Attempt belongs to another student")
        return attempt

    @staticmethod
    def _require_admin(principal: Principal) -> None:
        if not principal.is_admin:
            raise PermissionDenied(f"{principal.user_id} is not an administrator")

    @staticmethod
    def _require_student(principal: Principal) -> str:
        if not principal.usn:
            raise PermissionDenied(f"{principal.user_id} has no student identity")
        return principal.usn.strip().upper()
