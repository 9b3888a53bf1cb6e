# tests/_problem.py
from __future__ import annotations

from typing import Any, Dict


def as_problem(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    断言 API 错误响应为 Problem 形状（顶层 error_code / message / http_status）。
    """
    assert isinstance(payload, dict), payload
    assert "error_code" in payload and "message" in payload, payload
    assert "http_status" in payload, payload
    return payload
