"""
报告落盘（每个文件一份 JSON + 一份汇总）。

约定：
- 文件名：路径中的 `/`、`\\` 替换为 `_`，再加 `.json`
- 展平后重名（例如 `a/b.py` 与 `a_b.py`）时，后登记的路径追加路径哈希，保证每个路径一份报告
- ERROR 也写合法 JSON，并带稳定的 `error` 码，下游不需要特殊解析
- 先写临时文件再 `os.replace`，避免留下半截报告
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from cronos_guard.gate.models import AnalysisOutcome
from cronos_guard.gate.models import GateResult
from cronos_guard.gate.models import SkippedPath

logger = logging.getLogger(__name__)

SUMMARY_FILE_NAME = "summary.json"
SKIPPED_STATUS = "SKIPPED"


def report_file_name(path: str) -> str:
    safe = path.replace("/", "_").replace("\\", "_")
    return f"{safe}.json"


def disambiguated_file_name(path: str) -> str:
    digest = hashlib.sha1(path.encode("utf-8")).hexdigest()[:8]
    return report_file_name(path).removesuffix(".json") + f".{digest}.json"


def build_outcome_report(outcome: AnalysisOutcome) -> dict[str, object]:
    report: dict[str, object] = {
        "path": outcome.path,
        "status": outcome.verdict.value,
        "risk": outcome.risk,
    }
    if outcome.error_code is not None:
        report["error"] = outcome.error_code
    if outcome.detail:
        report["detail"] = outcome.detail
    if outcome.findings_count is not None:
        report["findings_count"] = outcome.findings_count
    if outcome.summary:
        report["summary"] = list(outcome.summary)
    if outcome.raw_payload is not None:
        report["response"] = outcome.raw_payload
    return report


def build_summary_report(result: GateResult, timestamp: datetime | None = None) -> dict[str, object]:
    moment = timestamp or datetime.now(timezone.utc)
    return {
        "status": result.overall.value,
        "risk": result.max_risk,
        "total_files": result.counts.total,
        "passed": result.counts.passed,
        "warnings": result.counts.warned,
        "failed": result.counts.failed,
        "errors": result.counts.errors,
        "skipped": result.skipped,
        "cancelled": result.cancelled,
        "timestamp": moment.astimezone(timezone.utc).isoformat(),
    }


class ReportStore:
    """报告目录（不存在则创建）。不同路径写不同文件，并发写入互不影响。"""

    def __init__(self, report_dir: str) -> None:
        self._report_dir = Path(report_dir)
        self._names: dict[str, str] = {}
        self._taken: set[str] = {SUMMARY_FILE_NAME}

    @property
    def report_dir(self) -> Path:
        return self._report_dir

    def ensure_dir(self) -> None:
        self._report_dir.mkdir(parents=True, exist_ok=True)

    def reserve(self, paths: Iterable[str]) -> None:
        """按给定顺序预先分配文件名（与完成顺序无关，结果确定）。"""
        for path in paths:
            self.file_name_for(path)

    def file_name_for(self, path: str) -> str:
        name = self._names.get(path)
        if name is not None:
            return name
        name = report_file_name(path)
        if name in self._taken:
            name = disambiguated_file_name(path)
            logger.warning(f"Report name collision for {path}: using {name}")
        self._names[path] = name
        self._taken.add(name)
        return name

    def write_outcome(self, outcome: AnalysisOutcome) -> Path:
        target = self._report_dir / self.file_name_for(outcome.path)
        _write_json(target=target, data=build_outcome_report(outcome))
        logger.info(f"Report saved: {target}")
        return target

    def write_skipped(self, skipped: SkippedPath) -> Path:
        target = self._report_dir / self.file_name_for(skipped.path)
        _write_json(target=target, data={"path": skipped.path, "status": SKIPPED_STATUS, "risk": None, "reason": skipped.reason})
        logger.info(f"Skip report saved: {target}")
        return target

    def write_summary(self, result: GateResult, timestamp: datetime | None = None) -> Path:
        target = self._report_dir / SUMMARY_FILE_NAME
        _write_json(target=target, data=build_summary_report(result=result, timestamp=timestamp))
        logger.info(f"Summary saved: {target}")
        return target


def _write_json(target: Path, data: dict[str, object]) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_name(f".{target.name}.tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    os.replace(tmp, target)
