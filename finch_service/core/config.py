from typing import Any, Dict
from importlib import resources
import os
import yaml


def deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(a)
    for k, v in (b or {}).items():
        if isinstance(out.get(k), dict) and isinstance(v, dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _yaml_load_text(path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def _truthy(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def apply_env_overrides(cfg: Dict[str, Any], environ: Dict[str, str], prefix: str = "FINCH__") -> Dict[str, Any]:
    """Apply FINCH__A__B=val -> cfg['a']['b']=parsed(val) overrides in place."""
    for key, val in environ.items():
        if not key.startswith(prefix):
            continue
        parts = key[len(prefix) :].split("__")
        parts = [p.strip().lower() for p in parts if p.strip()]
        if not parts:
            continue
        sub = cfg
        for p in parts[:-1]:
            # replace scalars sitting where a section is needed
            if not isinstance(sub.get(p), dict):
                sub[p] = {}
            sub = sub[p]
        # parse value as YAML for numbers/bools/lists/dicts support
        try:
            parsed = yaml.safe_load(val)
        except yaml.YAMLError:
            parsed = val
        sub[parts[-1]] = parsed
    return cfg


def load_settings() -> Dict[str, Any]:
    """
    Load default.yml, overlay dev.yml if present, then apply env overrides using
    FINCH__A__B=val -> cfg['a']['b']=parsed(val)
    """
    pkg_root = resources.files("finch_service.config")
    cfg = _yaml_load_text(pkg_root / "default.yml")

    # Useful for testing the bundled defaults on a dev machine
    ignore_dev_config = _truthy(os.environ.get("FINCH_IGNORE_DEV_CONFIG", "false"))

    dev_file = pkg_root / "dev.yml"
    if not ignore_dev_config and dev_file.is_file():
        dev_cfg = _yaml_load_text(dev_file)
        if dev_cfg.pop("_replaces_default", False):
            cfg = dev_cfg
        else:
            cfg = deep_merge(cfg, dev_cfg)

    return apply_env_overrides(cfg, dict(os.environ))


def get_limits(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Loop and cache bounds with their documented defaults filled in."""
    limits = cfg.get("limits", {}) or {}
    return {
        "max_tool_calls": int(limits.get("max_tool_calls", 10)),
        "max_history_turns": int(limits.get("max_history_turns", 20)),
        "tool_timeout_sec": float(limits.get("tool_timeout_sec", 30)),
    }
