"""Alumni company groups: membership and section message boards."""

from __future__ import annotations

import structlog

from .errors import PermissionDenied, ValidationError
from .repository import DocumentRepository
from .schemas import AlumniGroup, GroupMember, GroupMessage, GroupSection, Principal


class AlumniGroupDirectory:
    """Create and join company groups and post to their boards.

    Only members may post, and only alumni may post to the ``resource``
    section. Deleting a group removes its messages.
    """

    def __init__(self, repository: DocumentRepository):
        self._repository = repository
        self._logger = structlog.get_logger(__name__)

    def list_groups(self) -> list[AlumniGroup]:
        groups: list[AlumniGroup] = self._repository.all("groups")  # type: ignore[assignment]
        return sorted(groups, key=lambda g: g.created_at, reverse=True)

    def group(self, group_id: str) -> AlumniGroup:
        return self._repository.get("groups", group_id)  # type: ignore[return-value]

    def create_group(self, principal: Principal, company_tag: str) -> AlumniGroup:
        tag = (company_tag or "").strip()
        if not tag:
            raise ValidationError("Company name is required")
        group = AlumniGroup(
            name=f"{tag} Family",
            company_tag=tag,
            created_by=principal.user_id,
            creator_name=principal.display_name,
            creator_role=principal.role,
            members=[self._member(principal)],
        )
        self._repository.save("groups", group)
        self._logger.info("alumni_group.created", group_id=group.group_id, company=tag, by=principal.user_id)
        return group

    def join(self, group_id: str, principal: Principal) -> tuple[AlumniGroup, bool]:
        """Add the caller to the group; joining twice changes nothing."""
        group = self.group(group_id)
        if group.member(principal.user_id) is not None:
            return group, False
        group.members.append(self._member(principal))
        self._repository.save("groups", group)
        return group, True

    def delete_group(self, principal: Principal, group_id: str) -> int:
        """Remove the group and its messages; returns the number of messages removed."""
        group = self.group(group_id)
        if not principal.is_admin and principal.user_id != group.created_by:
            raise PermissionDenied("Only the group creator or an administrator can delete a group")
        messages = self._repository.all("messages", lambda m: m.group_id == group_id)
        for message in messages:
            self._repository.delete("messages", message.message_id)  # type: ignore[attr-defined]
        self._repository.delete("groups", group_id)
        self._logger.info("alumni_group.deleted", group_id=group_id, messages=len(messages))
        return len(messages)

    def members(self, group_id: str) -> list[GroupMember]:
        return list(self.group(group_id).members)

    def messages(self, group_id: str, section: GroupSection = "general") -> list[GroupMessage]:
        self.group(group_id)
        messages: list[GroupMessage] = self._repository.all(  # type: ignore[assignment]
            "messages", lambda m: m.group_id == group_id and m.section == section
        )
        return sorted(messages, key=lambda m: m.created_at)

    def post_message(
        self,
        group_id: str,
        principal: Principal,
        *,
        content: str = "",
        section: GroupSection = "general",
        file_name: str = "",
    ) -> GroupMessage:
        group = self.group(group_id)
        if section == "resource" and principal.role != "alumni":
            raise PermissionDenied("Only alumni can upload resources")
        if not principal.is_admin and group.member(principal.user_id) is None:
            raise PermissionDenied("Join the group before posting")
        if not content.strip() and not file_name:
            raise ValidationError("Message required")
        message = GroupMessage(
            group_id=group.group_id,
            section=section,
            sender_id=principal.user_id,
            sender_name=principal.display_name,
            sender_role=principal.role,
            content=content.strip(),
            file_name=file_name,
        )
        return self._repository.save("messages", message)

    @staticmethod
    def _member(principal: Principal) -> GroupMember:
        return GroupMember(user_id=principal.user_id, name=principal.display_name, role=principal.role)
