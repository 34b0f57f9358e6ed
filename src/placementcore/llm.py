"""AI completion clients with provider fallback, used by quiz generation."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from typing import Any, Iterable, Protocol, Sequence, runtime_checkable
from urllib import error, request

import structlog

from .errors import ProviderUnavailable
from .schemas import Assessment, Question

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass
class LLMConfig:
    """Configuration for completion providers."""

    gemini_model: str = "gemini-2.0-flash"
    openrouter_model: str = "openai/gpt-4o-mini"
    timeout: float = 60.0
    max_tokens: int = 1024
    temperature: float = 0.7


@runtime_checkable
class CompletionClient(Protocol):
    """Text completion contract."""

    name: str

    def complete(self, system_prompt: str, messages: Sequence[dict[str, str]]) -> str:
        """Return the reply text for the conversation."""


def _post_json(url: str, payload: dict[str, Any], headers: dict[str, str], timeout: float) -> dict[str, Any]:
    data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    req = request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    with request.urlopen(req, timeout=timeout) as resp:
        body = resp.read().decode("utf-8")
    try:
        return json.loads(body) if body else {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON reply: {body[:200]}") from exc


class GeminiClient:
    name = "gemini"

    def __init__(self, api_key: str | None, *, config: LLMConfig | None = None):
        self._api_key = api_key
        self._config = config or LLMConfig()

    def complete(self, system_prompt: str, messages: Sequence[dict[str, str]]) -> str:
        if not self._api_key:
            raise ValueError("GEMINI_API_KEY is not set")
        payload = {
            "system_instruction": {"parts": [{"text": system_prompt}]},
            "contents": [
                {
                    "role": "model" if message.get("role") == "assistant" else "user",
                    "parts": [{"text": message.get("content", "")}],
                }
                for message in messages
            ],
            "generationConfig": {
                "maxOutputTokens": self._config.max_tokens,
                "temperature": self._config.temperature,
            },
        }
        url = GEMINI_URL.format(model=self._config.gemini_model) + f"?key={self._api_key}"
        reply = _post_json(url, payload, {}, self._config.timeout)
        if reply.get("error"):
            problem = reply["error"]
            raise ValueError(problem.get("message") if isinstance(problem, dict) else str(problem))
        try:
            return reply["candidates"][0]["content"]["parts"][0]["text"] or ""
        except (KeyError, IndexError, TypeError):
            return ""


class OpenRouterClient:
    name = "openrouter"

    def __init__(self, api_key: str | None, *, config: LLMConfig | None = None):
        self._api_key = api_key
        self._config = config or LLMConfig()

    def complete(self, system_prompt: str, messages: Sequence[dict[str, str]]) -> str:
        if not self._api_key:
            raise ValueError("OPENROUTER_KEY is not set")
        payload = {
            "model": self._config.openrouter_model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "X-Title": "PlacementPro",
        }
        reply = _post_json(OPENROUTER_URL, payload, headers, self._config.timeout)
        try:
            return reply["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            return ""


class FallbackCompletionClient:
    """Try each provider in order and return the first non-empty reply."""

    name = "fallback"

    def __init__(self, providers: Iterable[CompletionClient]):
        self._providers = list(providers)
        self._logger = structlog.get_logger(__name__)

    @classmethod
    def from_env(cls, *, config: LLMConfig | None = None) -> "FallbackCompletionClient":
        config = config or LLMConfig()
        return cls(
            [
                GeminiClient(os.environ.get("GEMINI_API_KEY"), config=config),
                OpenRouterClient(os.environ.get("OPENROUTER_KEY"), config=config),
            ]
        )

    def complete(self, system_prompt: str, messages: Sequence[dict[str, str]]) -> str:
        errors: list[str] = []
        for provider in self._providers:
            try:
                text = provider.complete(system_prompt, messages)
            except (error.URLError, TimeoutError, OSError, ValueError) as exc:
                self._logger.warning("llm.provider_failed", provider=provider.name, error=str(exc))
                errors.append(f"{provider.name}: {exc}")
                continue
            if text and text.strip():
                self._logger.info("llm.provider_succeeded", provider=provider.name)
                return text
            self._logger.warning("llm.provider_empty", provider=provider.name)
            errors.append(f"{provider.name}: empty response")
        raise ProviderUnavailable(errors)


def parse_reply(text: str) -> Any:
    """Return the reply parsed as JSON when possible, else the raw text."""
    cleaned = _FENCE.sub("", text.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        return text


QUIZ_SYSTEM_PROMPT = (
    "You write multiple-choice placement aptitude questions. "
    "Reply with a JSON array only. Each item has question, options (4 strings), "
    "correctAnswer (0-based index) and topic."
)


class QuizGenerator:
    """Build an inactive assessment from an AI-generated question list."""

    def __init__(self, client: CompletionClient):
        self._client = client

    def generate(
        self,
        *,
        title: str,
        categories: list[str],
        sub_topics: list[str] | None = None,
        question_count: int = 10,
        difficulty: str = "mixed",
        drive_id: str | None = None,
    ) -> Assessment:
        if not categories:
            raise ValueError("Categories required")
        topics = ", ".join([*categories, *(sub_topics or [])])
        prompt = f"Generate {question_count} {difficulty} difficulty questions on: {topics}."
        reply = parse_reply(self._client.complete(QUIZ_SYSTEM_PROMPT, [{"role": "user", "content": prompt}]))
        if isinstance(reply, dict):
            reply = reply.get("questions", [])
        if not isinstance(reply, list):
            raise ValueError("Quiz reply is not a question list")

        questions = [
            Question(
                question=str(item.get("question", "")),
                options=[str(option) for option in item.get("options", [])],
                correct_answer=int(item.get("correctAnswer", item.get("correct_answer", 0))),
                marks=int(item.get("marks", 1) or 1),
                topic=item.get("topic"),
            )
            for item in reply
            if isinstance(item, dict)
        ]
        return Assessment(
            title=title,
            categories=categories,
            sub_topics=sub_topics or [],
            drive_id=drive_id,
            questions=questions[:question_count],
            ai_generated=True,
        )
