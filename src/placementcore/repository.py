"""In-process document store with JSON snapshots and a unit-of-work boundary."""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, TypeVar

import structlog
from pydantic import BaseModel

from .errors import NotFound
from .schemas import (
    AlumniGroup,
    Assessment,
    AssessmentAttempt,
    Drive,
    GroupMessage,
    InterviewSlot,
    Notification,
    Student,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

# collection name -> (model, key attribute, label used in NotFound)
COLLECTIONS: dict[str, tuple[type[BaseModel], str, str]] = {
    "students": (Student, "usn", "Student"),
    "drives": (Drive, "drive_id", "Drive"),
    "assessments": (Assessment, "assessment_id", "Assessment"),
    "attempts": (AssessmentAttempt, "attempt_id", "Attempt"),
    "notifications": (Notification, "notification_id", "Notification"),
    "slots": (InterviewSlot, "slot_id", "Interview slot"),
    "groups": (AlumniGroup, "group_id", "Alumni group"),
    "messages": (GroupMessage, "message_id", "Group message"),
}


class DocumentRepository:
    """Keyed collections of pydantic documents.

    Records are returned by reference; callers mutate them and persist with
    ``save``. Writes made inside ``unit_of_work`` are rolled back if the block
    raises, and flushed to ``path`` when it completes.
    """

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path) if path else None
        self._data: dict[str, dict[str, BaseModel]] = {name: {} for name in COLLECTIONS}
        self._depth = 0
        self._logger = structlog.get_logger(__name__)
        if self._path and self._path.exists():
            self.load()

    @property
    def path(self) -> Path | None:
        return self._path

    # generic access

    def get(self, collection: str, key: str) -> BaseModel:
        _, _, label = COLLECTIONS[collection]
        try:
            return self._data[collection][key]
        except KeyError as exc:
            raise NotFound(label, key) from exc

    def find(self, collection: str, key: str) -> BaseModel | None:
        return self._data[collection].get(key)

    def all(
        self,
        collection: str,
        predicate: Callable[[BaseModel], bool] | None = None,
    ) -> list[BaseModel]:
        records = list(self._data[collection].values())
        if predicate is None:
            return records
        return [record for record in records if predicate(record)]

    def save(self, collection: str, record: ModelT) -> ModelT:
        _, key_attr, _ = COLLECTIONS[collection]
        self._data[collection][getattr(record, key_attr)] = record
        return record

    def delete(self, collection: str, key: str) -> None:
        _, _, label = COLLECTIONS[collection]
        if self._data[collection].pop(key, None) is None:
            raise NotFound(label, key)

    def count(self, collection: str, predicate: Callable[[BaseModel], bool] | None = None) -> int:
        return len(self.all(collection, predicate))

    # typed helpers

    def student(self, usn: str) -> Student:
        return self.get("students", usn.strip().upper())  # type: ignore[return-value]

    def find_student(self, usn: str) -> Student | None:
        return self.find("students", usn.strip().upper())  # type: ignore[return-value]

    def students(self, predicate: Callable[[Student], bool] | None = None) -> list[Student]:
        return self.all("students", predicate)  # type: ignore[arg-type,return-value]

    def drive(self, drive_id: str) -> Drive:
        return self.get("drives", drive_id)  # type: ignore[return-value]

    def assessment(self, assessment_id: str) -> Assessment:
        return self.get("assessments", assessment_id)  # type: ignore[return-value]

    def attempt(self, attempt_id: str) -> AssessmentAttempt:
        return self.get("attempts", attempt_id)  # type: ignore[return-value]

    def find_attempt(self, assessment_id: str, usn: str) -> AssessmentAttempt | None:
        usn = usn.strip().upper()
        for attempt in self._data["attempts"].values():
            if attempt.assessment_id == assessment_id and attempt.usn == usn:  # type: ignore[attr-defined]
                return attempt  # type: ignore[return-value]
        return None

    def slot(self, slot_id: str) -> InterviewSlot:
        return self.get("slots", slot_id)  # type: ignore[return-value]

    # unit of work and persistence

    @contextmanager
    def unit_of_work(self) -> Iterator["DocumentRepository"]:
        """Group writes; nested blocks join the outermost one."""
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        snapshot = self._snapshot()
        self._depth = 1
        try:
            yield self
        except BaseException:
            self._data = snapshot
            self._logger.warning("repository.rolled_back")
            raise
        finally:
            self._depth = 0
        self.flush()

    def _snapshot(self) -> dict[str, dict[str, BaseModel]]:
        return {
            name: {key: record.model_copy(deep=True) for key, record in records.items()}
            for name, records in self._data.items()
        }

    def dump(self) -> dict[str, list[dict]]:
        return {
            name: [record.model_dump(mode="json") for record in records.values()]
            for name, records in self._data.items()
        }

    def flush(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(self.dump(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    def load(self) -> None:
        if self._path is None:
            return
        with self._path.open("r", encoding="utf-8") as handle:
            try:
                raw = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid state JSON: {exc}") from exc
        for name, (model, key_attr, _) in COLLECTIONS.items():
            records = (model.model_validate(item) for item in raw.get(name, []))
            self._data[name] = {getattr(record, key_attr): record for record in records}
        self._logger.debug("repository.loaded", path=str(self._path))
