# app/http_problem_handlers.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.problem import make_problem

logger = logging.getLogger("codops")


def _new_trace_id() -> str:
    return f"t_{uuid.uuid4().hex[:12]}"


def _validation_details(errors: List[Any]) -> List[Dict[str, Any]]:
    details: List[Dict[str, Any]] = []
    for i, e in enumerate(errors):
        if not isinstance(e, dict):
            details.append({"type": "validation", "path": f"validation[{i}]", "reason": str(e)})
            continue
        loc = e.get("loc") or ()
        path = ".".join(str(p) for p in loc if p != "body") or f"validation[{i}]"
        details.append(
            {
                "type": "validation",
                "path": path,
                "reason": str(e.get("msg") or e.get("type") or "invalid"),
            }
        )
    return details


def _problem_from_http_exc(req: Request, exc: HTTPException) -> Dict[str, Any]:
    """
    统一将 HTTPException.detail 翻译为 Problem 形状：
    - {"error_code","message",...}（已是 Problem）→ 补齐 trace_id / context
    - list → validation 详情
    - str / 其它 → state 兜底
    """
    status_code = int(exc.status_code)
    trace_id = _new_trace_id()

    ctx: Dict[str, Any] = {
        "path": getattr(req.url, "path", ""),
        "method": req.method,
    }

    d = exc.detail

    if isinstance(d, dict) and "error_code" in d and "message" in d:
        out = dict(d)
        out.setdefault("http_status", status_code)
        out.setdefault("trace_id", trace_id)
        if isinstance(out.get("context"), dict):
            merged = dict(ctx)
            merged.update(out["context"])
            out["context"] = merged
        else:
            out["context"] = ctx
        return out

    if isinstance(d, list):
        return make_problem(
            status_code=status_code,
            error_code="request_validation_error",
            message="Invalid request",
            context=ctx,
            details=_validation_details(d),
            trace_id=trace_id,
        )

    msg = str(d) if d is not None else "Request rejected"
    return make_problem(
        status_code=status_code,
        error_code="http_error",
        message=msg,
        context=ctx,
        details=[{"type": "state", "reason": msg}],
        trace_id=trace_id,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def _unhandled_exc(req: Request, exc: Exception):
        trace_id = _new_trace_id()
        logger.exception("UNHANDLED_EXC[%s]: %s", trace_id, exc)
        content = make_problem(
            status_code=500,
            error_code="internal_error",
            message="Unexpected server error. Please try again later.",
            context={"path": getattr(req.url, "path", ""), "method": req.method},
            trace_id=trace_id,
        )
        return JSONResponse(status_code=500, content=content)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(req: Request, exc: RequestValidationError):
        content = make_problem(
            status_code=422,
            error_code="request_validation_error",
            message="Invalid request",
            context={"path": getattr(req.url, "path", ""), "method": req.method},
            details=_validation_details(list(exc.errors())),
            trace_id=_new_trace_id(),
        )
        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(HTTPException)
    async def _http_exc(req: Request, exc: HTTPException):
        content = _problem_from_http_exc(req, exc)
        return JSONResponse(status_code=int(exc.status_code), content=content, headers=exc.headers)
