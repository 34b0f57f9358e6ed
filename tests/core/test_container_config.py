from __future__ import annotations

from pathlib import Path

import pytest

from placementcore.config import load_settings
from placementcore.container import create_container
from placementcore.errors import ValidationError
from placementcore.schemas import Principal
from placementcore.schemas.config import AppConfig, load_config
from placementcore.service import PlacementService


def test_create_container_with_overrides(tmp_path: Path):
    container = create_container(
        settings={
            "state_path": str(tmp_path / "state.json"),
            "ranking": {"thresholds": {"Best": 85.0}, "assessment_selection": "best"},
            "grading": {"warning_limit": 5},
            "notifications": {"feed_limit": 7},
            "llm": {"timeout": 5.0},
        }
    )

    ranking = container.ranking_engine()
    attempts = container.attempt_machine()
    dispatcher = container.dispatcher()
    repository = container.repository()

    assert ranking._thresholds["Best"] == 85.0
    assert ranking._thresholds["Better"] == 70.0
    assert ranking._config.assessment_selection == "best"
    assert attempts.warning_limit == 5
    assert dispatcher._config.feed_limit == 7
    assert repository.path == tmp_path / "state.json"
    assert isinstance(container.service(), PlacementService)


def test_default_container_is_in_memory():
    container = create_container()

    assert container.repository().path is None
    assert container.attempt_machine().warning_limit == 3
    assert container.service().repository is container.repository()


def test_load_config_validation():
    data = {
        "ranking": {"cgpa_weight": 12},
        "grading": {"warning_limit": 4},
    }
    app_config = load_config(data)
    assert isinstance(app_config, AppConfig)
    settings = app_config.to_settings()
    assert settings == {"ranking": {"cgpa_weight": 12.0}, "grading": {"warning_limit": 4}}


def test_load_config_rejects_non_mapping():
    with pytest.raises(ValidationError):
        load_config(["not", "a", "mapping"])


def test_load_settings_reads_yaml(tmp_path: Path):
    path = tmp_path / "placement.yaml"
    path.write_text(
        "state_path: data/state.json\nnotifications:\n  feed_limit: 50\n",
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings == {"state_path": "data/state.json", "notifications": {"feed_limit": 50}}


def test_state_file_survives_a_new_container(tmp_path: Path):
    state = tmp_path / "state.json"
    first = create_container(settings={"state_path": str(state)}).service()
    first.create_student(Principal.operator(), {"usn": "1rv20cs001", "name": "Asha", "cgpa": 9.1, "backlogs": 0})

    assert state.exists()
    second = create_container(settings={"state_path": str(state)}).service()
    assert second.get_student("1RV20CS001").cgpa == 9.1


def test_load_config_reports_bad_values_as_validation_error():
    with pytest.raises(ValidationError) as exc:
        load_config({"grading": {"warning_limit": 0}})

    assert "grading.warning_limit" in str(exc.value)
