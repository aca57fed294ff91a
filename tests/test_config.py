import structlog

from fleetsync.core.config import Settings
from fleetsync.core.logging import configure_logging


def test_agent_urls_built_from_host_and_port():
    settings = Settings(agent_host="192.168.1.20", agent_port=9000)

    assert settings.agent_base_url == "http://192.168.1.20:9000"
    assert settings.agent_events_url == "ws://192.168.1.20:9000/events"


def test_explicit_agent_urls_win():
    settings = Settings(agent_base_url="http://agent.local", agent_events_url="ws://agent.local/stream")

    assert settings.agent_base_url == "http://agent.local"
    assert settings.agent_events_url == "ws://agent.local/stream"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("COMMAND_HISTORY_LIMIT", "50")
    monkeypatch.setenv("PROGRESS_CLEAR_DELAY", "0.5")

    settings = Settings()

    assert settings.command_history_limit == 50
    assert settings.progress_clear_delay == 0.5


def test_configure_logging():
    configure_logging("DEBUG", json=False)
    try:
        structlog.get_logger("fleetsync.test").info("configured", devices=3)
    finally:
        structlog.reset_defaults()
