import json
import logging
import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from chat_core.config.settings import Settings
from chat_core.infrastructure.logging.logger import JsonFormatter


def test_server_url_is_normalized():
    assert Settings(server_url=" https://proxy.test/ ").server_url == "https://proxy.test"
    with pytest.raises(PydanticValidationError):
        Settings(server_url="ftp://proxy.test")


def test_image_quality_is_validated():
    assert Settings(image_quality="hd").image_quality == "hd"
    with pytest.raises(PydanticValidationError):
        Settings(image_quality="ultra")


def test_yaml_config_file(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "chat.yaml"
        path.write_text("default_model: openai/gpt-4\ntyping_enabled: false\n", encoding="utf-8")
        monkeypatch.setenv("CHAT_CONFIG_FILE", str(path))
        cfg = Settings()
        assert cfg.default_model == "openai/gpt-4"
        assert cfg.typing_enabled is False

        monkeypatch.setenv("CHAT_DEFAULT_MODEL", "anthropic/claude-3-sonnet")
        assert Settings().default_model == "anthropic/claude-3-sonnet"


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("chat_core", logging.INFO, __file__, 1, "Request completed", None, None)
    record.extra = {"op": "chat", "elapsed_seconds": 0.5}
    payload = json.loads(JsonFormatter().format(record))
    assert payload["msg"] == "Request completed"
    assert payload["level"] == "INFO"
    assert payload["op"] == "chat"
    assert payload["ts"].endswith("Z")
