# app/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routers.admin_auth import router as admin_auth_router
from app.api.routers.batches import router as batches_router
from app.api.routers.courier_export import router as courier_export_router
from app.api.routers.health import router as health_router
from app.api.routers.orders import router as orders_router
from app.api.routers.system_events import router as system_events_router
from app.core.config import get_settings
from app.core.logging import setup_logging
from app.db.session import close_engines
from app.http_problem_handlers import register_exception_handlers
from app.metrics import router as metrics_router

settings = get_settings()
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger("codops")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("codops starting env=%s", settings.ENV)
    yield
    await close_engines()


app = FastAPI(
    title="COD-OPS",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://127.0.0.1:8000",
        "http://localhost:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Export-Ref"],
)

# 统一 Problem 形状的异常处理
register_exception_handlers(app)

# ---------------- 路由 ----------------
app.include_router(health_router)
app.include_router(admin_auth_router)
app.include_router(batches_router)
app.include_router(orders_router)
app.include_router(courier_export_router)
app.include_router(system_events_router)
app.include_router(metrics_router)
