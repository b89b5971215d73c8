"""Single source of truth for all configuration.

All modules import from here, never from os.environ directly.

Values come from a plain .env file (NOTEWISE_ENV_FILE, default
secrets/notewise.env) and can be overridden by NOTEWISE_* environment
variables. Missing files are fine: every setting has a default.
"""

import os
from pathlib import Path

from dotenv import dotenv_values

PROJECT_ROOT = Path(__file__).resolve().parent.parent

ENV_PREFIX = "NOTEWISE_"


def _load() -> dict[str, str | None]:
    """Merge the dotenv file with NOTEWISE_* process variables (process wins)."""
    env_file = Path(
        os.environ.get(f"{ENV_PREFIX}ENV_FILE", PROJECT_ROOT / "secrets" / "notewise.env")
    )
    values: dict[str, str | None] = {}
    if env_file.exists():
        values.update(dotenv_values(env_file))
    for key, value in os.environ.items():
        if key.startswith(ENV_PREFIX):
            values[key.removeprefix(ENV_PREFIX)] = value
    return values


_settings = _load()


def _float(key: str, default: float) -> float:
    return float(_settings.get(key) or default)


# --- Organization ---
INTERNAL_DOMAIN: str = (_settings.get("INTERNAL_DOMAIN") or "egen.com").lower()
FOLDER_ROOT: str = _settings.get("FOLDER_ROOT", "Meeting Notes") or ""

# --- Storage ---
DATA_DIR = Path(_settings.get("DATA_DIR") or PROJECT_ROOT / "data")
DIRECTORY_PATH: str = _settings.get("DIRECTORY_PATH") or str(DATA_DIR / "directory.json")
FEEDBACK_LOG_PATH: str = _settings.get("FEEDBACK_LOG_PATH") or str(DATA_DIR / "feedback.jsonl")
PREFERENCES_DB_PATH: str = _settings.get("PREFERENCES_DB_PATH") or str(DATA_DIR / "preferences.db")
REVIEW_DB_PATH: str = _settings.get("REVIEW_DB_PATH") or str(DATA_DIR / "review.db")
AUDIT_LOG_PATH: str = _settings.get("AUDIT_LOG_PATH") or str(DATA_DIR / "audit.jsonl")

# --- AI fallback (Ollama) ---
OLLAMA_BASE_URL: str = _settings.get("OLLAMA_BASE_URL") or "http://localhost:11434"
OLLAMA_MODEL: str = _settings.get("OLLAMA_MODEL") or ""
AI_TIMEOUT_SECONDS: float = _float("AI_TIMEOUT_SECONDS", 20.0)

# --- Filing thresholds (per-user overrides live in the preferences store) ---
AUTO_FILE_THRESHOLD: float = _float("AUTO_FILE_THRESHOLD", 0.90)
SHOW_POPUP_THRESHOLD: float = _float("SHOW_POPUP_THRESHOLD", 0.70)

# --- Scoring weights ---
WEIGHT_DOMAIN_MATCH: float = _float("WEIGHT_DOMAIN_MATCH", 0.80)
WEIGHT_KEYWORD_MATCH: float = _float("WEIGHT_KEYWORD_MATCH", 0.65)
WEIGHT_PROJECT_MATCH: float = _float("WEIGHT_PROJECT_MATCH", 0.15)
WEIGHT_PROJECT_DEFAULT: float = _float("WEIGHT_PROJECT_DEFAULT", 0.05)
WEIGHT_RULE_MATCH: float = _float("WEIGHT_RULE_MATCH", 0.70)
WEIGHT_INTERNAL_MATCH: float = _float("WEIGHT_INTERNAL_MATCH", 0.70)
WEIGHT_EXTERNAL_MATCH: float = _float("WEIGHT_EXTERNAL_MATCH", 0.40)
AI_FALLBACK_FLOOR: float = _float("AI_FALLBACK_FLOOR", 0.50)
