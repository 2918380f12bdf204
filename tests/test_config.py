"""Tests for client configuration."""

import pytest
from pydantic import ValidationError
from autocode import IntegerCoercion, OptimizationConfig


def test_defaults():
    config = OptimizationConfig()
    assert config.server_url == "http://localhost:10000"
    assert config.client_url == "http://localhost:10001"
    assert config.client_name == "autocode-client"
    assert config.imports == []
    assert config.integer_coercion is IntegerCoercion.STRICT
    assert config.prepare_timeout is None
    assert config.log_level == "info"


def test_from_yaml_string():
    """Test YAML loading."""
    config = OptimizationConfig.from_yaml_string("""
server_host: optimizer.internal
server_port: 11000
client_name: tuner
imports: [math, json]
integer_coercion: truncate
""")
    assert config.server_url == "http://optimizer.internal:11000"
    assert config.client_name == "tuner"
    assert config.imports == ["math", "json"]
    assert config.integer_coercion is IntegerCoercion.TRUNCATE


def test_empty_yaml_gives_defaults():
    assert OptimizationConfig.from_yaml_string("") == OptimizationConfig()


def test_from_yaml_file(tmp_path):
    path = tmp_path / "autocode.yaml"
    path.write_text("client_port: 12001\nprepare_timeout: 30\n")
    config = OptimizationConfig.from_yaml(path)
    assert config.client_port == 12001
    assert config.prepare_timeout == 30.0


def test_yaml_round_trip():
    config = OptimizationConfig(client_name="tuner", imports=["math"], integer_coercion=IntegerCoercion.TRUNCATE)
    text = config.to_yaml_string()
    assert "integer_coercion: truncate" in text
    assert "prepare_timeout" not in text
    assert OptimizationConfig.from_yaml_string(text) == config


def test_from_env():
    config = OptimizationConfig.from_env({
        "AUTOCODE_SERVER_HOST": "optimizer",
        "AUTOCODE_SERVER_PORT": "10500",
        "AUTOCODE_IMPORTS": "math, json,,",
        "AUTOCODE_INTEGER_COERCION": "truncate",
        "AUTOCODE_PREPARE_TIMEOUT": "2.5",
        "OTHER_SERVER_PORT": "1",
    })
    assert config.server_url == "http://optimizer:10500"
    assert config.imports == ["math", "json"]
    assert config.integer_coercion is IntegerCoercion.TRUNCATE
    assert config.prepare_timeout == 2.5
    assert config.client_port == 10001


def test_from_process_env(monkeypatch):
    monkeypatch.setenv("AUTOCODE_CLIENT_NAME", "from-env")
    assert OptimizationConfig.from_env().client_name == "from-env"


@pytest.mark.parametrize("field,value", [
    ("server_port", 0),
    ("client_port", 70000),
    ("prepare_timeout", -1),
    ("log_level", "verbose"),
    ("integer_coercion", "round"),
])
def test_invalid_settings(field, value):
    with pytest.raises(ValidationError):
        OptimizationConfig(**{field: value})
