# tests/test_config.py

from __future__ import annotations

from pathlib import Path

from meeting_taskbot.config import Settings, parse_weekdays


def test_parse_weekdays_names_numbers_ranges() -> None:
    assert parse_weekdays(["mon-fri"]) == (0, 1, 2, 3, 4)
    assert parse_weekdays(["0", "2", "Sunday"]) == (0, 2, 6)
    assert parse_weekdays(["sat-sun", "mon"]) == (0, 5, 6)
    assert parse_weekdays(["fri-mon", "someday", "9"]) == ()


def test_settings_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TASKBOT_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("TASKBOT_LLM_MODELS", "model-a, model-b")
    monkeypatch.setenv("TASKBOT_OVERDUE_SWEEP_HOUR", "30")
    monkeypatch.setenv("TASKBOT_OVERDUE_SWEEP_WEEKDAYS", "mon,wed")
    monkeypatch.setenv("TASKBOT_EXPLICIT_START_DENIAL", "yes")
    monkeypatch.setenv("TASKBOT_EXTRACTION_TIMEOUT_SECONDS", "not-a-number")
    monkeypatch.delenv("TASKBOT_TASKS_DB_PATH", raising=False)

    s = Settings.from_env()

    assert s.data_dir == tmp_path
    assert s.tasks_db_path == tmp_path / "tasks.sqlite3"
    assert s.llm_models == ["model-a", "model-b"]
    assert s.overdue_sweep_hour == 23
    assert s.overdue_sweep_weekdays == (0, 2)
    assert s.explicit_start_denial is True
    assert s.extraction_timeout_seconds == 60.0
