"""Tests for server configuration."""

import pytest
from groundstream import ServerConfig


def test_defaults():
    config = ServerConfig.from_env({})
    assert config.host == "localhost"
    assert config.port == 8787
    assert config.kb_dir == "kb"
    assert config.sweep_interval_s == 60.0
    assert config.action_max_age_s == 300.0
    assert config.cooldown_s == 30.0


def test_env_overrides():
    config = ServerConfig.from_env({
        "GROUNDSTREAM_PORT": "9000",
        "GROUNDSTREAM_KB_DIR": "/srv/kb",
        "GROUNDSTREAM_HALLUCINATION_RATE": "0",
        "GROUNDSTREAM_HOST": "",
    })
    assert config.port == 9000
    assert config.kb_dir == "/srv/kb"
    assert config.hallucination_rate == 0.0
    assert config.host == "localhost"


def test_invalid_env_value():
    with pytest.raises(ValueError, match="GROUNDSTREAM_PORT"):
        ServerConfig.from_env({"GROUNDSTREAM_PORT": "eighty"})
