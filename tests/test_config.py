import pytest

from woz_replay.config import load_dotenv, load_settings
from woz_replay.exceptions import ConfigurationError
from woz_replay.prompts import DEFAULT_PROMPT, load_prompt, save_prompt


def test_defaults():
    settings = load_settings(env={})
    assert settings.api_port == 5005
    assert settings.db_port == 5006
    assert settings.db_base_url == "http://localhost:5006"
    assert settings.llm_model == "gpt-4o"
    assert settings.screenshot_max_width == 1200


def test_overrides():
    settings = load_settings(env={"API_PORT": "8000", "DB_BASE_URL": "http://db:9000/", "LOG_LEVEL": "debug"})
    assert settings.api_port == 8000
    assert settings.api_base_url == "http://localhost:8000"
    assert settings.db_base_url == "http://db:9000"
    assert settings.log_level == "DEBUG"


def test_bad_integer():
    with pytest.raises(ConfigurationError):
        load_settings(env={"DB_PORT": "five"})


def test_dotenv_does_not_override(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text('# comment\nWOZ_TEST_A="from file"\nWOZ_TEST_B=file\n', encoding="utf-8")
    monkeypatch.delenv("WOZ_TEST_A", raising=False)
    monkeypatch.setenv("WOZ_TEST_B", "from env")

    load_dotenv(env_file)

    import os
    assert os.environ["WOZ_TEST_A"] == "from file"
    assert os.environ["WOZ_TEST_B"] == "from env"
    monkeypatch.delenv("WOZ_TEST_A")


def test_prompt_round_trip(tmp_path):
    path = str(tmp_path / "prompt.txt")
    assert load_prompt(path) == DEFAULT_PROMPT
    save_prompt(path, "Ask about the chart.")
    assert load_prompt(path) == "Ask about the chart."
