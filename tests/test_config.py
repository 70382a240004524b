from __future__ import annotations

import pytest

from cronos_guard.config import apply_overrides
from cronos_guard.config import load_config_from_env
from cronos_guard.config import parse_bool


def test_load_config_requires_api_url() -> None:
    with pytest.raises(ValueError):
        load_config_from_env(environ={})


def test_load_config_rejects_blank_api_url() -> None:
    with pytest.raises(ValueError):
        load_config_from_env(environ={"CRONOS_API_URL": "   "})


def test_load_config_rejects_invalid_url() -> None:
    with pytest.raises(ValueError):
        load_config_from_env(environ={"CRONOS_API_URL": "not a url"})


def test_load_config_defaults() -> None:
    cfg = load_config_from_env(environ={"CRONOS_API_URL": "https://cronos.example.com/"})
    assert cfg.api_base_url == "https://cronos.example.com"
    assert cfg.analysis_mode == "STRICT"
    assert cfg.file_suffixes == (".py",)
    assert cfg.fail_on_warn is False
    assert cfg.connect_timeout == 10.0
    assert cfg.total_timeout == 120.0
    assert cfg.max_workers == 4
    assert cfg.run_timeout is None
    assert cfg.report_dir == "cronos-reports"
    assert cfg.event_name == "push"
    assert cfg.base_ref == "main"
    assert cfg.github_env is None


def test_load_config_reads_optional_env() -> None:
    environ = {
        "CRONOS_API_URL": "https://cronos.example.com/api/",
        "ANALYSIS_MODE": "LENIENT",
        "CRONOS_FILE_SUFFIXES": ".py, .pyi",
        "CRONOS_FAIL_ON_WARN": "true",
        "CRONOS_CONNECT_TIMEOUT": "5",
        "CRONOS_TIMEOUT": "60",
        "CRONOS_MAX_WORKERS": "8",
        "CRONOS_RUN_TIMEOUT": "600",
        "CRONOS_REPORT_DIR": "out/reports",
        "GITHUB_EVENT_NAME": "pull_request",
        "GITHUB_BASE_REF": "develop",
        "GITHUB_ENV": "/tmp/github_env",
    }
    cfg = load_config_from_env(environ=environ)
    assert cfg.api_base_url == "https://cronos.example.com/api"
    assert cfg.analysis_mode == "LENIENT"
    assert cfg.file_suffixes == (".py", ".pyi")
    assert cfg.fail_on_warn is True
    assert cfg.connect_timeout == 5.0
    assert cfg.total_timeout == 60.0
    assert cfg.max_workers == 8
    assert cfg.run_timeout == 600.0
    assert cfg.report_dir == "out/reports"
    assert cfg.event_name == "pull_request"
    assert cfg.base_ref == "develop"
    assert cfg.github_env == "/tmp/github_env"


def test_load_config_rejects_out_of_range_workers() -> None:
    with pytest.raises(ValueError):
        load_config_from_env(environ={"CRONOS_API_URL": "https://cronos.example.com", "CRONOS_MAX_WORKERS": "0"})


def test_load_config_rejects_invalid_bool() -> None:
    with pytest.raises(ValueError):
        load_config_from_env(environ={"CRONOS_API_URL": "https://cronos.example.com", "CRONOS_FAIL_ON_WARN": "maybe"})


def test_parse_bool() -> None:
    assert parse_bool("YES") is True
    assert parse_bool("0") is False


def test_apply_overrides_revalidates() -> None:
    cfg = load_config_from_env(environ={"CRONOS_API_URL": "https://cronos.example.com"})
    updated = apply_overrides(cfg, report_dir="reports", analysis_mode=None, max_workers=2)
    assert updated.report_dir == "reports"
    assert updated.analysis_mode == "STRICT"
    assert updated.max_workers == 2
    with pytest.raises(ValueError):
        apply_overrides(cfg, max_workers=100)
