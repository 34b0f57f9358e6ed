from __future__ import annotations

from typing import Any

import pytest

from placementcore.container import create_container
from placementcore.errors import InvalidTransition, NotFound, PermissionDenied, ValidationError
from placementcore.schemas import Principal
from placementcore.service import PlacementService

ADMIN = Principal.operator("tpo")
STUDENT = Principal(user_id="asha", role="student", usn="1RV20CS001")


def build_service() -> PlacementService:
    return create_container().service()


def add_student(service: PlacementService, usn: str, **kwargs: Any) -> None:
    payload: dict[str, Any] = {
        "usn": usn,
        "name": f"Student {usn}",
        "branch": "CSE",
        "year": 4,
        "cgpa": 8.0,
        "backlogs": 0,
    }
    payload.update(kwargs)
    service.create_student(ADMIN, payload)


def add_drive(service: PlacementService, **criterion: Any):
    return service.create_drive(
        ADMIN,
        {
            "company_name": "Acme",
            "package": "10 LPA",
            "criterion": {"min_cgpa": 7.0, "max_backlogs": 0, **criterion},
        },
    )


def seed(service: PlacementService):
    add_student(service, "1RV20CS001", cgpa=9.5)
    add_student(service, "1RV20CS002", cgpa=7.5)
    add_student(service, "1RV20CS003", cgpa=6.5)
    add_student(service, "1RV20ME004", cgpa=8.0, branch="ME")
    return add_drive(service, eligible_branches=["CSE"])


def test_create_drive_counts_eligible_students():
    service = build_service()
    drive = seed(service)

    assert drive.eligible_count == 2


def test_publish_notifies_eligible_and_opens_applications():
    service = build_service()
    drive = seed(service)

    notifications = service.publish_drive(ADMIN, drive.drive_id)
    service.publish_drive(ADMIN, drive.drive_id)

    assert sorted(n.usn for n in notifications) == ["1RV20CS001", "1RV20CS002"]
    student = service.get_student("1RV20CS001")
    assert len(student.drive_applications) == 1
    assert student.drive_applications[0].status == "eligible"
    assert service.get_student("1RV20CS003").drive_applications == []


def test_shortlist_assigns_tiers_and_notifies_once():
    service = build_service()
    drive = seed(service)
    service.publish_drive(ADMIN, drive.drive_id)

    first = service.shortlist_drive(ADMIN, drive.drive_id)
    second = service.shortlist_drive(ADMIN, drive.drive_id)

    assert [(e.usn, e.tier) for e in first.shortlisted] == [("1RV20CS001", "Best"), ("1RV20CS002", "Better")]
    assert first.notified == 2
    assert [(e.usn, e.tier) for e in second.shortlisted] == [(e.usn, e.tier) for e in first.shortlisted]
    assert second.notified == 0
    assert second.changed is False

    shortlist_notes = [
        n for n in service.notifications_for("1RV20CS001") if n.category == "shortlist"
    ]
    assert len(shortlist_notes) == 1
    assert shortlist_notes[0].message == "You've been shortlisted for Acme! Ranking: Best"

    application = service.get_student("1RV20CS002").application_for(drive.drive_id)
    assert application.status == "shortlisted"
    assert application.ranking == "Better"


def test_shortlist_without_publish_creates_applications():
    service = build_service()
    drive = seed(service)

    service.shortlist_drive(ADMIN, drive.drive_id)

    application = service.get_student("1RV20CS001").application_for(drive.drive_id)
    assert application.status == "shortlisted"


def test_shortlist_leaves_final_decisions_alone():
    service = build_service()
    drive = seed(service)
    service.shortlist_drive(ADMIN, drive.drive_id)
    service.set_application_status(ADMIN, "1RV20CS001", drive.drive_id, "selected")

    result = service.shortlist_drive(ADMIN, drive.drive_id)

    assert result.skipped == ["1RV20CS001"]
    assert service.get_student("1RV20CS001").application_for(drive.drive_id).status == "selected"


def test_application_status_cannot_regress():
    service = build_service()
    drive = seed(service)
    service.shortlist_drive(ADMIN, drive.drive_id)

    with pytest.raises(InvalidTransition):
        service.set_application_status(ADMIN, "1RV20CS001", drive.drive_id, "applied")


def test_criterion_is_locked_after_shortlisting():
    service = build_service()
    drive = seed(service)
    service.update_drive(ADMIN, drive.drive_id, {"criterion": {"min_cgpa": 7.5}})
    service.shortlist_drive(ADMIN, drive.drive_id)

    with pytest.raises(ValidationError):
        service.update_drive(ADMIN, drive.drive_id, {"criterion": {"min_cgpa": 9.0}})
    updated = service.update_drive(ADMIN, drive.drive_id, {"status": "active"})
    assert updated.status == "active"


def test_students_cannot_run_admin_operations():
    service = build_service()
    drive = seed(service)

    with pytest.raises(PermissionDenied):
        service.shortlist_drive(STUDENT, drive.drive_id)


def test_unknown_drive_is_not_found():
    service = build_service()

    with pytest.raises(NotFound):
        service.publish_drive(ADMIN, "missing")


def test_malformed_drive_is_a_validation_error():
    service = build_service()

    with pytest.raises(ValidationError) as exc:
        service.create_drive(ADMIN, {"company_name": "Acme", "criterion": {"max_backlogs": 1}})
    assert "criterion.min_cgpa" in str(exc.value)


def test_student_views_of_drives():
    service = build_service()
    drive = seed(service)
    service.update_drive(ADMIN, drive.drive_id, {"status": "completed"})
    open_drive = add_drive(service)

    assert [d.drive_id for d in service.open_drives_for("1RV20CS001")] == [open_drive.drive_id]

    rows = {row.drive.drive_id: row.verdict for row in service.drives_with_eligibility("1RV20ME004")}
    assert rows[drive.drive_id].reasons == ["Branch ME not eligible (CSE)"]
    assert rows[open_drive.drive_id].eligible is True


def test_student_can_apply_when_eligible():
    service = build_service()
    drive = seed(service)
    low = Principal(user_id="low", usn="1RV20CS003")

    assert service.apply_to_drive(STUDENT, drive.drive_id) is True
    assert service.apply_to_drive(STUDENT, drive.drive_id) is False
    with pytest.raises(ValidationError):
        service.apply_to_drive(low, drive.drive_id)


def test_import_upserts_and_skips_incomplete_rows():
    service = build_service()
    add_student(service, "1RV20CS001", cgpa=6.0, email="old@example.com")

    summary = service.import_students(
        ADMIN,
        [
            {"Name": "Asha Rao", "USN": "1rv20cs001", "CGPA": "8.9"},
            {"Name": "Ravi", "USN": "1RV20CS009", "Branch": "ISE", "Year": "3"},
            {"Name": "", "USN": "1RV20CS010"},
        ],
    )

    assert (summary.added, summary.skipped) == (2, 1)
    asha = service.get_student("1RV20CS001")
    assert asha.cgpa == pytest.approx(8.9)
    assert asha.name == "Asha Rao"
    assert service.get_student("1RV20CS009").year == 3


def test_interview_candidates_fall_back_to_eligible_set():
    service = build_service()
    drive = seed(service)

    before = [s.usn for s in service.interview_candidates(drive.drive_id)]
    service.shortlist_drive(ADMIN, drive.drive_id)
    service.set_application_status(ADMIN, "1RV20CS002", drive.drive_id, "rejected")
    after = [s.usn for s in service.interview_candidates(drive.drive_id)]

    assert before == ["1RV20CS001", "1RV20CS002"]
    assert after == ["1RV20CS001"]


def test_schedule_and_notify_interview_slots():
    service = build_service()
    drive = seed(service)
    slot = service.schedule_slot(
        ADMIN,
        {
            "drive_id": drive.drive_id,
            "usn": "1RV20CS001",
            "student_name": "Student 1RV20CS001",
            "interview_date": "2025-03-14",
            "start_time": "14:00",
            "end_time": "14:30",
        },
    )

    assert slot.drive_name == "Acme"
    assert service.notify_drive_slots(ADMIN, drive.drive_id) == 1
    assert service.notify_slot(ADMIN, slot.slot_id) is True
    notes = [n for n in service.notifications_for("1RV20CS001") if n.title.startswith("Interview Scheduled")]
    assert len(notes) == 1
    assert "2:00 PM to 2:30 PM" in notes[0].message


def test_dashboard_stats():
    service = build_service()
    drive = seed(service)
    service.shortlist_drive(ADMIN, drive.drive_id)

    stats = service.dashboard_stats()

    assert stats["total_students"] == 4
    assert stats["total_drives"] == 1
    assert stats["shortlisted_students"] == 2
    assert stats["branch_stats"][0] == {"branch": "CSE", "count": 3, "avg_cgpa": pytest.approx(7.83)}
    assert stats["cgpa_ranges"]["9-10.1"] == 1
    assert stats["cgpa_ranges"]["6-7"] == 1


def test_eligible_students_accepts_raw_criterion():
    service = build_service()
    seed(service)

    students = service.eligible_students({"min_cgpa": 7.5, "eligible_branches": ["CSE", "ME"]})

    assert [s.usn for s in students] == ["1RV20CS001", "1RV20CS002", "1RV20ME004"]
    with pytest.raises(ValidationError):
        service.eligible_students({"max_backlogs": 1})


def test_criterion_change_recounts_eligible_students():
    service = build_service()
    drive = seed(service)

    widened = service.update_drive(ADMIN, drive.drive_id, {"criterion": {"min_cgpa": 6.0}})
    renamed = service.update_drive(ADMIN, drive.drive_id, {"company_name": "Acme Corp"})

    assert widened.eligible_count == 4
    assert renamed.eligible_count == 4
    assert service.get_drive(drive.drive_id).eligible_count == 4


def test_form_submission_upserts_without_losing_applications():
    service = build_service()
    drive = seed(service)
    service.publish_drive(ADMIN, drive.drive_id)

    updated = service.submit_form(
        ADMIN,
        {"Full Name": "Asha Rao", "USN": "1rv20cs001", "Branch": "CSE", "CGPA": "9.1", "Ongoing Backlogs": "0"},
    )
    created = service.submit_form(ADMIN, {"Full Name": "New Student", "USN": "1rv20cs099", "CGPA": "7.9"})

    assert updated.name == "Asha Rao"
    assert updated.cgpa == 9.1
    assert updated.application_for(drive.drive_id) is not None
    assert created.profile is not None
    assert service.get_student("1RV20CS099").branch == "CSE"
    with pytest.raises(ValidationError):
        service.submit_form(ADMIN, {"USN": "1rv20cs100"})
