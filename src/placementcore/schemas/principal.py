"""Request-scoped caller identity."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["admin", "student", "alumni"]


class Principal(BaseModel):
    """Who is calling a service operation.

    Passed explicitly into every mutating service call.
    """

    user_id: str
    role: Role = "student"
    usn: str | None = None
    name: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def display_name(self) -> str:
        return self.name or self.user_id

    @classmethod
    def operator(cls, user_id: str = "cli") -> "Principal":
        return cls(user_id=user_id, role="admin")
