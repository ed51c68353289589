# tests/test_redact_config.py
from __future__ import annotations

import copy

from pr_platform.config_base import _REDACT, _SECRET_PATHS, DEFAULT_CFG, redact_config


def _build_cfg_with_secrets() -> dict:
    """Default config with a truthy value at every _SECRET_PATHS location."""
    cfg = copy.deepcopy(DEFAULT_CFG)
    for path in _SECRET_PATHS:
        node = cfg
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = "secret_value"
    cfg["trakt"]["client_id"] = "public-client-id"
    return cfg


def test_all_secret_paths_redacted():
    out = redact_config(_build_cfg_with_secrets())
    for path in _SECRET_PATHS:
        node = out
        for key in path[:-1]:
            assert isinstance(node, dict)
            node = node[key]
        assert node[path[-1]] == _REDACT, f"Path {path} was not redacted"


def test_client_id_is_not_a_secret():
    out = redact_config(_build_cfg_with_secrets())
    assert out["trakt"]["client_id"] == "public-client-id"


def test_input_not_mutated():
    cfg = _build_cfg_with_secrets()
    snapshot = copy.deepcopy(cfg)
    redact_config(cfg)
    assert cfg == snapshot


def test_empty_secret_left_alone():
    cfg = copy.deepcopy(DEFAULT_CFG)
    out = redact_config(cfg)
    assert out["trakt"]["client_secret"] == ""


def test_none_config():
    assert redact_config(None) == {}  # type: ignore[arg-type]
