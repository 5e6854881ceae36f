from pathlib import Path

import pytest

import config
from db import database

NOW = 1_700_000_000_000

ENV_OVERRIDES = (
    "HISTORY_MAX_RECENT",
    "HISTORY_MAX_MISSPELLINGS",
    "HISTORY_STORAGE_PREFIX",
    "MATCH_ROUND_COUNT",
    "MATCH_TURN_TIME_MS",
    "MATCH_TRANSACTION_RETRIES",
    "GRADING_CLOSE_THRESHOLD",
    "SPELLBEE_LOG_LEVEL",
)


def _write_test_config(config_path: Path) -> None:
    config_path.write_text(
        "\n".join(
            [
                "[history]",
                "max_recent = 200",
                "max_misspellings = 5",
                "storage_prefix = \"test-word-history\"",
                "",
                "[match]",
                "round_count = 10",
                "turn_time_ms = 15000",
                "max_players = 2",
                "transaction_retries = 3",
                "",
                "[grading]",
                "close_threshold = 0.75",
            ]
        ),
        encoding="utf-8",
    )


class FakeClock:
    def __init__(self, start: int = NOW):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app_env(tmp_path, monkeypatch):
    config_dir = tmp_path / ".spellbee"
    config_dir.mkdir()
    config_path = config_dir / "config.toml"
    _write_test_config(config_path)

    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_path)
    monkeypatch.setattr(database, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(database, "DB_PATH", config_dir / "spellbee.db")
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)

    database.init_db()
    return config_dir
