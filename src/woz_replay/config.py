import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .exceptions import ConfigurationError

DEFAULT_API_PORT = 5005
DEFAULT_DB_PORT = 5006
DEFAULT_SCREENSHOT_MAX_WIDTH = 1200
DEFAULT_LLM_MODEL = "gpt-4o"
DEFAULT_LLM_MAX_TOKENS = 4000


@dataclass
class Settings:
    api_host: str = "127.0.0.1"
    api_port: int = DEFAULT_API_PORT
    db_host: str = "127.0.0.1"
    db_port: int = DEFAULT_DB_PORT
    db_file: str = "db.json"
    media_dir: str = "media"
    openai_api_key: str = ""
    llm_model: str = DEFAULT_LLM_MODEL
    llm_max_tokens: int = DEFAULT_LLM_MAX_TOKENS
    screenshot_max_width: int = DEFAULT_SCREENSHOT_MAX_WIDTH
    api_base_url: str = f"http://localhost:{DEFAULT_API_PORT}"
    db_base_url: str = f"http://localhost:{DEFAULT_DB_PORT}"
    prompt_file: str = ".woz_prompt.txt"
    log_level: str = "INFO"
    log_dir: str = "logs"


def load_dotenv(env_path: Optional[Path] = None) -> None:
    """Lightweight .env loader; variables already set in the environment win."""
    env_path = env_path or Path.cwd() / ".env"
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, val = line.partition("=")
        key = key.strip()
        val = val.strip().strip('"').strip("'")
        if key and val and key not in os.environ:
            os.environ[key] = val


def _int_setting(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e


def load_settings(env: Optional[Mapping[str, str]] = None, env_path: Optional[Path] = None) -> Settings:
    if env is None:
        load_dotenv(env_path)
        env = os.environ

    api_port = _int_setting(env, "API_PORT", DEFAULT_API_PORT)
    db_port = _int_setting(env, "DB_PORT", DEFAULT_DB_PORT)
    return Settings(
        api_host=env.get("API_HOST", "127.0.0.1"),
        api_port=api_port,
        db_host=env.get("DB_HOST", "127.0.0.1"),
        db_port=db_port,
        db_file=env.get("DB_FILE", "db.json"),
        media_dir=env.get("MEDIA_DIR", "media"),
        openai_api_key=env.get("OPENAI_API_KEY", ""),
        llm_model=env.get("LLM_MODEL", DEFAULT_LLM_MODEL),
        llm_max_tokens=_int_setting(env, "LLM_MAX_TOKENS", DEFAULT_LLM_MAX_TOKENS),
        screenshot_max_width=_int_setting(env, "SCREENSHOT_MAX_WIDTH", DEFAULT_SCREENSHOT_MAX_WIDTH),
        api_base_url=env.get("API_BASE_URL", f"http://localhost:{api_port}").rstrip("/"),
        db_base_url=env.get("DB_BASE_URL", f"http://localhost:{db_port}").rstrip("/"),
        prompt_file=env.get("PROMPT_FILE", ".woz_prompt.txt"),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        log_dir=env.get("LOG_DIR", "logs"),
    )
