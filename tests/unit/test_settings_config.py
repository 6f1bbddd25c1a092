from pathlib import Path

import pytest
from pydantic import BaseModel

from config import load_app_registry, load_config, resolve_registry
from config.settings import Settings
from interviewer.gateway import TASK_SCHEMAS, FeedbackDraft, InterviewerReply

APP_CONFIG = Path(__file__).resolve().parents[2] / "app_config.json"


def test_settings_defaults():
    settings = Settings(_env_file=None)
    assert settings.DB_PATH.endswith(".db")
    assert settings.DEFAULT_DURATION_MINUTES == 30
    assert settings.POLL_INTERVAL_SECONDS == 3.0
    assert settings.POLL_MAX_ATTEMPTS == 40
    assert settings.PROMPT_HISTORY_LIMIT == 0


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("POLL_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("TTS_VOICE", "nova")
    settings = Settings(_env_file=None)
    assert settings.POLL_MAX_ATTEMPTS == 5
    assert settings.TTS_VOICE == "nova"


def test_app_config_routes_cover_interviewer_tasks():
    registry = load_app_registry(APP_CONFIG, TASK_SCHEMAS)
    opening, schema = registry["interviewer.opening"]
    assert schema is InterviewerReply
    assert registry["interviewer.feedback"][1] is FeedbackDraft
    timeouts = {task: route.timeout_s for task, (route, _) in registry.items()}
    assert timeouts["interviewer.opening"] == max(timeouts.values())


def test_registry_reports_missing_entries():
    cfg = load_config(APP_CONFIG)

    class Other(BaseModel):
        value: int

    with pytest.raises(KeyError):
        resolve_registry(cfg, {"interviewer.unknown": Other})
    cfg.registry["interviewer.next"] = "missing-route"
    with pytest.raises(KeyError):
        resolve_registry(cfg, {"interviewer.next": InterviewerReply})
