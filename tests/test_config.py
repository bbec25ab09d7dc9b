import pytest

from nokode.config import DEFAULT_CONFIG, load_app_config


def test_defaults_without_file_or_env():
    cfg = load_app_config(environ={})
    assert cfg["server"]["port"] == 3001
    assert cfg["provider"] == "anthropic"
    assert cfg["agent"]["max_steps"] == 10
    assert "reasoning" not in cfg["providers"]["openai"]


def test_defaults_are_not_mutated():
    cfg = load_app_config(environ={"PORT": "9000"})
    cfg["agent"]["max_steps"] = 3
    assert DEFAULT_CONFIG["agent"]["max_steps"] == 10
    assert DEFAULT_CONFIG["server"]["port"] == 3001


def test_environment_overrides():
    cfg = load_app_config(
        environ={
            "PORT": "8080",
            "LLM_PROVIDER": "openai",
            "OPENAI_MODEL": "gpt-5-nano",
            "ANTHROPIC_MODEL": "claude-x",
            "NOKODE_MEMORY_PATH": "/tmp/mem.md",
            "DEBUG": "true",
        }
    )
    assert cfg["server"]["port"] == 8080
    assert cfg["provider"] == "openai"
    assert cfg["providers"]["openai"]["model"] == "gpt-5-nano"
    assert cfg["providers"]["anthropic"]["model"] == "claude-x"
    assert cfg["paths"]["memory"] == "/tmp/mem.md"
    assert cfg["debug"] is True


def test_yaml_file_is_merged_then_overridden_by_env(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "server:\n  port: 4000\nagent:\n  max_steps: 5\nproviders:\n  openai:\n    reasoning: false\n",
        encoding="utf-8",
    )
    cfg = load_app_config(str(path), environ={"PORT": "4001"})
    assert cfg["server"]["port"] == 4001
    assert cfg["server"]["host"] == "0.0.0.0"
    assert cfg["agent"]["max_steps"] == 5
    assert cfg["agent"]["max_tokens"] == 50000
    assert cfg["providers"]["openai"]["reasoning"] is False
    assert cfg["providers"]["openai"]["api_key_env"] == "OPENAI_API_KEY"


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_app_config(str(tmp_path / "nope.yaml"), environ={})


def test_non_mapping_config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_app_config(str(path), environ={})
