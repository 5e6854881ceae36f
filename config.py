import tomllib
import shutil
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv
import os

CONFIG_DIR = Path.home() / ".spellbee"
CONFIG_PATH = CONFIG_DIR / "config.toml"
PROJECT_CONFIG_EXAMPLE = Path(__file__).parent / "config.toml"

DEFAULT_HISTORY = {
    "max_recent": 200,
    "max_misspellings": 5,
    "storage_prefix": "spell-bee-word-history",
}
DEFAULT_MATCH = {
    "round_count": 10,
    "turn_time_ms": 15000,
    "max_players": 2,
    "transaction_retries": 3,
}
DEFAULT_GRADING = {
    "close_threshold": 0.75,
}
DEFAULT_LOGGING = {
    "level": "INFO",
}

def load_config() -> Dict[str, Any]:
    """Load config from ~/.spellbee/config.toml, copy example if missing, load .env overrides."""
    load_dotenv()  # Load .env for overrides (e.g., MATCH_TURN_TIME_MS env var)
    if not CONFIG_PATH.exists():
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        shutil.copy(PROJECT_CONFIG_EXAMPLE, CONFIG_PATH)
    with open(CONFIG_PATH, "rb") as f:
        config = tomllib.load(f)

    history_cfg = {**DEFAULT_HISTORY, **config.get("history", {})}
    config["history"] = {
        "max_recent": int(os.getenv("HISTORY_MAX_RECENT", history_cfg["max_recent"])),
        "max_misspellings": int(os.getenv("HISTORY_MAX_MISSPELLINGS", history_cfg["max_misspellings"])),
        "storage_prefix": os.getenv("HISTORY_STORAGE_PREFIX", history_cfg["storage_prefix"]),
    }
    match_cfg = {**DEFAULT_MATCH, **config.get("match", {})}
    config["match"] = {
        "round_count": int(os.getenv("MATCH_ROUND_COUNT", match_cfg["round_count"])),
        "turn_time_ms": int(os.getenv("MATCH_TURN_TIME_MS", match_cfg["turn_time_ms"])),
        "max_players": int(match_cfg["max_players"]),
        "transaction_retries": int(os.getenv("MATCH_TRANSACTION_RETRIES", match_cfg["transaction_retries"])),
    }
    grading_cfg = {**DEFAULT_GRADING, **config.get("grading", {})}
    config["grading"] = {
        "close_threshold": float(os.getenv("GRADING_CLOSE_THRESHOLD", grading_cfg["close_threshold"])),
    }
    logging_cfg = {**DEFAULT_LOGGING, **config.get("logging", {})}
    config["logging"] = {
        "level": os.getenv("SPELLBEE_LOG_LEVEL", logging_cfg["level"]).upper(),
    }
    return config

def get_config_value(section: str, key: str, default: Optional[Any] = None) -> Any:
    """Get nested config value, e.g., get_config_value('match', 'turn_time_ms')."""
    config = load_config()
    value = config.get(section, {}).get(key, default)
    return value
