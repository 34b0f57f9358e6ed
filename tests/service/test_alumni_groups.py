from __future__ import annotations

import pytest

from placementcore.container import create_container
from placementcore.errors import NotFound, PermissionDenied, ValidationError
from placementcore.schemas import Principal
from placementcore.service import PlacementService

ADMIN = Principal.operator("tpo")
ASHA = Principal(user_id="asha", usn="1RV20CS001", name="Asha Rao")
RAVI = Principal(user_id="ravi", usn="1RV20CS002", name="Ravi Kumar")
NEHA = Principal(user_id="neha", role="alumni", name="Neha (Acme, 2021)")


def build_service() -> PlacementService:
    return create_container().service()


def test_create_group_names_it_after_the_company():
    service = build_service()

    group = service.create_group(ASHA, "  Acme ")

    assert group.name == "Acme Family"
    assert group.company_tag == "Acme"
    assert [(m.user_id, m.name, m.role) for m in group.members] == [("asha", "Asha Rao", "student")]
    with pytest.raises(ValidationError):
        service.create_group(ASHA, " ")


def test_join_is_idempotent():
    service = build_service()
    group = service.create_group(ASHA, "Acme")

    _, joined = service.join_group(NEHA, group.group_id)
    _, again = service.join_group(NEHA, group.group_id)

    assert joined is True
    assert again is False
    assert [m.role for m in service.group_members(group.group_id)] == ["student", "alumni"]
    with pytest.raises(NotFound):
        service.join_group(RAVI, "missing")


def test_posting_rules_by_section_and_membership():
    service = build_service()
    group = service.create_group(ASHA, "Acme")
    service.join_group(NEHA, group.group_id)

    service.post_group_message(ASHA, group.group_id, content="Any tips for the coding round?")
    service.post_group_message(NEHA, group.group_id, content="Practice graphs.")
    service.post_group_message(NEHA, group.group_id, section="resource", file_name="acme-prep.pdf")

    with pytest.raises(PermissionDenied):
        service.post_group_message(ASHA, group.group_id, section="resource", file_name="notes.pdf")
    with pytest.raises(PermissionDenied):
        service.post_group_message(RAVI, group.group_id, content="Hello")
    with pytest.raises(ValidationError):
        service.post_group_message(ASHA, group.group_id, content="   ")

    general = service.group_messages(group.group_id)
    assert [m.sender_name for m in general] == ["Asha Rao", "Neha (Acme, 2021)"]
    assert [m.file_name for m in service.group_messages(group.group_id, "resource")] == ["acme-prep.pdf"]


def test_delete_group_removes_messages_and_needs_creator_or_admin():
    service = build_service()
    group = service.create_group(ASHA, "Acme")
    service.post_group_message(ASHA, group.group_id, content="First!")

    with pytest.raises(PermissionDenied):
        service.delete_group(RAVI, group.group_id)

    assert service.delete_group(ADMIN, group.group_id) == 1
    assert service.list_groups() == []
    assert service.repository.count("messages") == 0
