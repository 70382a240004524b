"""
Gate 领域模型（Pydantic）。

用途：
- 明确每个阶段的输入/输出（变更集 -> 请求 -> 单文件结论 -> 汇总结论）
- 作为远端 `/analyze_ci` 响应的 schema 校验点（只在一个地方校验）
- 所有模型都是 frozen：创建后不再修改
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Verdict(str, Enum):
    """单文件结论。ERROR 为本地合成（远端没有给出可信的 PASS/WARN/FAIL）。"""

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"
    ERROR = "ERROR"


class GateStatus(str, Enum):
    """整体结论（ERROR 在汇总时等价于 FAIL）。"""

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


TriggerKind = Literal["first_commit", "push", "pull_request"]


class TriggerContext(BaseModel):
    """
    触发上下文：决定变更集的计算方式。

    - first_commit：没有 parent，所有被跟踪的文件都视为新文件
    - push：与 `base_rev`（通常为 HEAD~1）比较
    - pull_request：与 `base_rev`（目标分支）和 HEAD 的 merge-base 比较
    """

    model_config = ConfigDict(frozen=True)

    kind: TriggerKind
    base_rev: str | None = None
    head_rev: str = "HEAD"


class ChangeRecord(BaseModel):
    """一个待分析文件：old_content 为空串表示新文件。"""

    model_config = ConfigDict(frozen=True)

    path: str = Field(min_length=1)
    old_content: str
    new_content: str

    @property
    def is_new_file(self) -> bool:
        return self.old_content == ""


class SkippedPath(BaseModel):
    """被排除在分析之外、但必须显式上报的路径（例如运行期间被删除）。"""

    model_config = ConfigDict(frozen=True)

    path: str
    reason: str


class ChangeSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    trigger: TriggerContext
    base_rev: str | None
    records: tuple[ChangeRecord, ...] = ()
    skipped: tuple[SkippedPath, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.records


class AnalysisRequest(BaseModel):
    """`POST /analyze_ci` 的请求体。"""

    model_config = ConfigDict(frozen=True)

    old_code: str
    new_code: str
    mode: str = Field(min_length=1)


class AnalysisResponse(BaseModel):
    """
    `/analyze_ci` 的响应 schema。

    status 在这里保持为字符串：未知 status 需要单独归类（UNKNOWN_STATUS），
    而不是混进通用的 schema 错误。
    """

    status: str
    risk: int = Field(default=0, ge=0, le=100)
    findings_count: int | None = None
    summary: list[Any] = Field(default_factory=list)

    @field_validator("risk", mode="before")
    @classmethod
    def _default_null_risk(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("summary", mode="before")
    @classmethod
    def _default_null_summary(cls, value: Any) -> Any:
        return [] if value is None else value


class AnalysisOutcome(BaseModel):
    """
    单文件分析结果（每个被处理的路径恰好一个）。

    - verdict=ERROR 时 error_code 必填，risk 为 None
    - raw_payload：远端原始 JSON（不透明，原样透传）
    """

    model_config = ConfigDict(frozen=True)

    path: str
    verdict: Verdict
    risk: int | None = Field(default=None, ge=0, le=100)
    raw_payload: Any = None
    error_code: str | None = None
    detail: str | None = None
    findings_count: int | None = None
    summary: tuple[Any, ...] = ()

    @property
    def is_error(self) -> bool:
        return self.verdict is Verdict.ERROR


class GateCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    passed: int = 0
    warned: int = 0
    failed: int = 0
    errors: int = 0
    total: int = 0


class GateResult(BaseModel):
    """整体结论（由 outcome 列表确定性折叠得到）。`failed` 包含 ERROR。"""

    model_config = ConfigDict(frozen=True)

    overall: GateStatus = GateStatus.PASS
    counts: GateCounts = Field(default_factory=GateCounts)
    max_risk: int = 0
    skipped: int = 0
    cancelled: bool = False
