"""
本地 Mock CRONOS 分析服务（只实现 `/analyze_ci`）。

用途：
- 在没有真实分析服务的情况下，本地跑通：变更检测 -> 分析 -> 报告 -> 汇总
- 通过 new_code 中的标记控制返回值，便于复现各种失败分支：
  - `# cronos-mock: fail` / `warn`：返回 FAIL / WARN
  - `# cronos-mock: http500`：HTTP 500 + 空 body
  - `# cronos-mock: empty`：HTTP 200 + 空 body
  - `# cronos-mock: garbage`：HTTP 200 + 非 JSON
  - `# cronos-mock: bogus`：未知 status
  - 其他：PASS

启动：
  python -m cronos_guard.dev.mock_analysis_server
"""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI
from fastapi import Response

from cronos_guard.gate.models import AnalysisRequest

MARKER_PREFIX = "# cronos-mock:"


def _extract_marker(code: str) -> str | None:
    for line in code.splitlines():
        stripped = line.strip()
        if stripped.startswith(MARKER_PREFIX):
            return stripped.removeprefix(MARKER_PREFIX).strip().lower()
    return None


def _mock_risk(req: AnalysisRequest) -> int:
    # 新增行越多风险越高（只是为了让数字有变化）
    added = max(len(req.new_code.splitlines()) - len(req.old_code.splitlines()), 0)
    return min(added * 5, 100)


app = FastAPI(title="Mock CRONOS Analysis API", version="0.1.0")


@app.post("/analyze_ci", response_model=None)
async def analyze_ci(req: AnalysisRequest) -> Response | dict[str, object]:
    marker = _extract_marker(req.new_code)
    if marker == "http500":
        return Response(status_code=500)
    if marker == "empty":
        return Response(status_code=200, media_type="application/json")
    if marker == "garbage":
        return Response(content="<html>oops</html>", status_code=200, media_type="text/html")
    if marker == "bogus":
        return {"status": "BOGUS"}
    if marker == "fail":
        return {"status": "FAIL", "risk": 90, "findings_count": 2, "summary": ["[MOCK] removed input validation", "[MOCK] broad except"]}
    if marker == "warn":
        return {"status": "WARN", "risk": 40, "findings_count": 1, "summary": ["[MOCK] missing tests for new branch"]}
    return {"status": "PASS", "risk": _mock_risk(req), "findings_count": 0, "summary": [], "mode": req.mode}


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9003)


if __name__ == "__main__":
    main()
