"""
汇总（确定性，不依赖网络）。

把单文件 outcome 折叠为一个 `GateResult`：
- FAIL / ERROR -> FAIL（一旦 FAIL 不会被降级）
- WARN -> 仅当当前为 PASS 时变为 WARN
- PASS -> 不变
- max_risk 取所有带 risk 的 outcome 的最大值

折叠满足交换律/结合律，并发完成顺序不影响结果。
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import reduce

from cronos_guard.gate.models import AnalysisOutcome
from cronos_guard.gate.models import GateCounts
from cronos_guard.gate.models import GateResult
from cronos_guard.gate.models import GateStatus
from cronos_guard.gate.models import Verdict

EXIT_OK = 0
EXIT_BLOCKED = 1
EXIT_STRUCTURAL_ERROR = 2

_PRECEDENCE = {GateStatus.PASS: 0, GateStatus.WARN: 1, GateStatus.FAIL: 2}


def verdict_to_status(verdict: Verdict) -> GateStatus:
    if verdict is Verdict.PASS:
        return GateStatus.PASS
    if verdict is Verdict.WARN:
        return GateStatus.WARN
    return GateStatus.FAIL


def stronger(left: GateStatus, right: GateStatus) -> GateStatus:
    return left if _PRECEDENCE[left] >= _PRECEDENCE[right] else right


def fold_outcome(state: GateResult, outcome: AnalysisOutcome) -> GateResult:
    counts = state.counts
    verdict = outcome.verdict
    new_counts = GateCounts(
        passed=counts.passed + (verdict is Verdict.PASS),
        warned=counts.warned + (verdict is Verdict.WARN),
        failed=counts.failed + (verdict in (Verdict.FAIL, Verdict.ERROR)),
        errors=counts.errors + (verdict is Verdict.ERROR),
        total=counts.total + 1,
    )
    max_risk = state.max_risk if outcome.risk is None else max(state.max_risk, outcome.risk)
    return state.model_copy(
        update={
            "overall": stronger(state.overall, verdict_to_status(verdict)),
            "counts": new_counts,
            "max_risk": max_risk,
        }
    )


def aggregate(outcomes: Iterable[AnalysisOutcome], skipped: int = 0, cancelled: bool = False) -> GateResult:
    """
    折叠 outcome 列表得到 `GateResult`。

    - skipped：被排除（无 verdict）的路径数，只用于汇总报告
    - cancelled：运行被取消时强制为 FAIL
    """
    result = reduce(fold_outcome, outcomes, GateResult(skipped=skipped))
    if cancelled:
        result = result.model_copy(update={"overall": GateStatus.FAIL, "cancelled": True})
    return result


def exit_code_for(result: GateResult, fail_on_warn: bool = False) -> int:
    """FAIL -> 1；WARN 默认不阻塞（fail_on_warn 时为 1）；PASS -> 0。"""
    if result.overall is GateStatus.FAIL:
        return EXIT_BLOCKED
    if result.overall is GateStatus.WARN and fail_on_warn:
        return EXIT_BLOCKED
    return EXIT_OK
