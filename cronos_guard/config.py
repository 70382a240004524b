"""
Gate 配置加载。

设计目标：
- **严格**：缺少分析服务地址直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验 URL / 超时 / 并发数，减少运行时踩坑
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, HttpUrl, field_validator

DEFAULT_FILE_SUFFIXES: tuple[str, ...] = (".py",)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class GateConfig(BaseModel):
    """一次 gate 运行所需的配置（只有 api_url 必填）。"""

    api_url: HttpUrl
    analysis_mode: str = Field(default="STRICT", min_length=1)
    file_suffixes: tuple[str, ...] = DEFAULT_FILE_SUFFIXES
    fail_on_warn: bool = False
    connect_timeout: float = Field(default=10.0, gt=0)
    total_timeout: float = Field(default=120.0, gt=0)
    max_workers: int = Field(default=4, ge=1, le=16)
    run_timeout: float | None = Field(default=None, gt=0)
    report_dir: str = Field(default="cronos-reports", min_length=1)
    event_name: str = "push"
    base_ref: str = "main"
    github_env: str | None = None

    @field_validator("file_suffixes")
    @classmethod
    def _require_suffixes(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(s.strip() for s in value if s.strip())
        if not cleaned:
            raise ValueError("file_suffixes must contain at least one suffix")
        return cleaned

    @property
    def api_base_url(self) -> str:
        return str(self.api_url).rstrip("/")


def parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {raw!r}")


def load_config_from_env(environ: Mapping[str, str]) -> GateConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`GateConfig`
    - **失败**：缺失/为空则抛 `ValueError`（Pydantic 的 ValidationError 也是 ValueError）
    """
    required_keys: tuple[str, ...] = ("CRONOS_API_URL",)
    missing: list[str] = [key for key in required_keys if key not in environ or not environ[key].strip()]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")

    values: dict[str, Any] = {"api_url": environ["CRONOS_API_URL"].strip()}
    if environ.get("ANALYSIS_MODE"):
        values["analysis_mode"] = environ["ANALYSIS_MODE"].strip()
    if environ.get("CRONOS_FILE_SUFFIXES"):
        values["file_suffixes"] = tuple(environ["CRONOS_FILE_SUFFIXES"].split(","))
    if "CRONOS_FAIL_ON_WARN" in environ:
        values["fail_on_warn"] = parse_bool(environ["CRONOS_FAIL_ON_WARN"])
    if environ.get("CRONOS_CONNECT_TIMEOUT"):
        values["connect_timeout"] = environ["CRONOS_CONNECT_TIMEOUT"]
    if environ.get("CRONOS_TIMEOUT"):
        values["total_timeout"] = environ["CRONOS_TIMEOUT"]
    if environ.get("CRONOS_MAX_WORKERS"):
        values["max_workers"] = environ["CRONOS_MAX_WORKERS"]
    if environ.get("CRONOS_RUN_TIMEOUT"):
        values["run_timeout"] = environ["CRONOS_RUN_TIMEOUT"]
    if environ.get("CRONOS_REPORT_DIR"):
        values["report_dir"] = environ["CRONOS_REPORT_DIR"]
    if environ.get("GITHUB_EVENT_NAME"):
        values["event_name"] = environ["GITHUB_EVENT_NAME"]
    if environ.get("GITHUB_BASE_REF"):
        values["base_ref"] = environ["GITHUB_BASE_REF"]
    if environ.get("GITHUB_ENV"):
        values["github_env"] = environ["GITHUB_ENV"]

    # 交给 Pydantic 做类型校验（例如 URL 合法性、数值范围）
    return GateConfig.model_validate(values)


def apply_overrides(config: GateConfig, **overrides: Any) -> GateConfig:
    """用命令行参数覆盖配置（值为 None 的参数忽略），并重新校验。"""
    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return config
    return GateConfig.model_validate({**config.model_dump(mode="json"), **updates})
