import pytest

from finch_service.core.config import apply_env_overrides, deep_merge, get_limits, load_settings


def test_deep_merge_nested():
    a = {"x": {"y": 1, "z": 2}, "k": 1}
    b = {"x": {"y": 10}, "n": 3}
    assert deep_merge(a, b) == {"x": {"y": 10, "z": 2}, "k": 1, "n": 3}
    assert a == {"x": {"y": 1, "z": 2}, "k": 1}


def test_env_overrides_parse_yaml_values():
    cfg = {"limits": {"max_tool_calls": 10}, "app": "scalar"}
    env = {
        "FINCH__LIMITS__MAX_TOOL_CALLS": "3",
        "FINCH__APP__API__PORT": "9000",
        "FINCH__TOOLS__ENABLED": "[shell]",
        "FINCH__HISTORY__HYDRATE_ON_STARTUP": "false",
        "OTHER__X": "1",
    }
    apply_env_overrides(cfg, env)
    assert cfg["limits"]["max_tool_calls"] == 3
    assert cfg["app"] == {"api": {"port": 9000}}
    assert cfg["tools"]["enabled"] == ["shell"]
    assert cfg["history"]["hydrate_on_startup"] is False
    assert "other" not in cfg


def test_load_settings_defaults(monkeypatch):
    monkeypatch.setenv("FINCH_IGNORE_DEV_CONFIG", "true")
    cfg = load_settings()
    assert get_limits(cfg) == {"max_tool_calls": 10, "max_history_turns": 20, "tool_timeout_sec": 30.0}
    assert cfg["system"]["prompt"].startswith("You are Finch")
    assert set(cfg["tools"]["enabled"]) == {"read_file", "write_file", "list_directory", "shell"}


def test_load_settings_env_override(monkeypatch):
    monkeypatch.setenv("FINCH_IGNORE_DEV_CONFIG", "true")
    monkeypatch.setenv("FINCH__LIMITS__MAX_HISTORY_TURNS", "5")
    assert get_limits(load_settings())["max_history_turns"] == 5


@pytest.mark.parametrize("cfg", [{}, {"limits": None}])
def test_get_limits_fills_defaults(cfg):
    assert get_limits(cfg)["max_tool_calls"] == 10
