"""Alumni company groups and their message boards."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .common import new_id, utcnow
from .principal import Role

GroupSection = Literal["general", "resource"]


class GroupMember(BaseModel):
    user_id: str
    name: str
    role: Role = "student"
    joined_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")


class AlumniGroup(BaseModel):
    """Company-tagged group ("<Company> Family") joined by students and alumni."""

    group_id: str = Field(default_factory=new_id)
    name: str
    company_tag: str = Field(min_length=1)
    created_by: str
    creator_name: str
    creator_role: Role = "student"
    members: list[GroupMember] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")

    def member(self, user_id: str) -> GroupMember | None:
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None


class GroupMessage(BaseModel):
    message_id: str = Field(default_factory=new_id)
    group_id: str
    section: GroupSection = "general"
    sender_id: str
    sender_name: str
    sender_role: Role = "student"
    content: str = ""
    file_name: str = ""
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")
