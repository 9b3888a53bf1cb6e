# app/db/base.py
from __future__ import annotations

import importlib
import logging
import pkgutil
from typing import Iterable, Iterator, List, Set

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("codops.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


_INITIALIZED: bool = False  # 防重复初始化


def _iter_model_modules_recursive(pkg_name: str = "app.models") -> Iterator[str]:
    """递归发现 app.models.* 下的所有模块（排除以下划线开头的内部模块）"""
    pkg = importlib.import_module(pkg_name)
    paths = list(getattr(pkg, "__path__", []))
    if not paths:
        return

    for _, name, _ in pkgutil.walk_packages(paths, prefix=pkg_name + "."):
        short = name.rsplit(".", 1)[-1]
        if short.startswith("_"):
            continue
        yield name


def init_models(
    *,
    extra_modules: Iterable[str] | None = None,
    force: bool = False,
) -> None:
    """
    集中导入模型 + 固化映射：
      1) 先显式导入关键模型（orders / batches 是其余表的外键目标）
      2) 再递归导入 app.models.* 补齐遗漏
      3) 最后统一 configure_mappers()
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        log.debug("init_models() called again; already initialized, skipping.")
        return

    loaded: Set[str] = set()
    order: List[str] = []

    explicit_chain = [
        "app.models.batch",
        "app.models.order",
        "app.models.order_item",
    ]
    for mod in [*explicit_chain, *_iter_model_modules_recursive("app.models"), *(extra_modules or [])]:
        if mod in loaded:
            continue
        importlib.import_module(mod)
        loaded.add(mod)
        order.append(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", len(order))
