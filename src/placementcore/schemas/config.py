"""Pydantic configuration schema for YAML settings."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError


class RankingSettings(BaseModel):
    cgpa_weight: float | None = None
    assessment_weight: float | None = None
    thresholds: dict[str, float] | None = None
    assessment_selection: Literal["first", "best"] | None = None


class GradingSettings(BaseModel):
    warning_limit: int | None = Field(default=None, ge=1)


class NotificationSettings(BaseModel):
    feed_limit: int | None = Field(default=None, ge=1)


class LLMSettings(BaseModel):
    gemini_model: str | None = None
    openrouter_model: str | None = None
    timeout: float | None = None
    max_tokens: int | None = None
    temperature: float | None = None


class AppConfig(BaseModel):
    state_path: str | None = None
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    grading: GradingSettings = Field(default_factory=GradingSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)

    def to_settings(self) -> dict[str, Any]:
        settings: dict[str, Any] = {}
        if self.state_path:
            settings["state_path"] = self.state_path
        for section in ("ranking", "grading", "notifications", "llm"):
            values = getattr(self, section).model_dump(exclude_none=True)
            if values:
                settings[section] = values
        return settings


def load_config(raw: Any) -> AppConfig:
    if not isinstance(raw, dict):
        raise ValidationError("Config must be a mapping")
    try:
        return AppConfig.model_validate(raw)
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ValidationError(f"Invalid config: {problems}") from exc
