# app/metrics.py
from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    multiprocess,
)

# 业务指标
BATCH_TRANSITIONS = Counter(
    "codops_batch_transitions_total",
    "Warehouse batch state transitions",
    ["transition"],  # create / lock / release / undo_release
)
BATCH_REJECTIONS = Counter(
    "codops_batch_rejections_total",
    "Rejected batch operations",
    ["operation", "code"],
)
BATCH_PRINTS = Counter("codops_batch_prints_total", "Batch document prints", ["print_type"])
ORDER_ACTIONS = Counter(
    "codops_order_actions_total",
    "Admin order actions",
    ["action", "result"],  # result: success / failed / replay
)
DOC_RENDER_LAT = Histogram(
    "codops_document_render_seconds", "Document render latency (seconds)", ["document"]
)

router = APIRouter()


@router.get("/metrics")
def metrics() -> Response:
    """
    在单进程模式下直接导出默认 REGISTRY；
    在多进程模式下，创建临时 CollectorRegistry，并让 MultiProcessCollector 合并各分片。
    """
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
