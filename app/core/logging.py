# app/core/logging.py
import logging
import sys

_FMT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """
    进程级日志初始化（main.py 启动时调用一次）：
    - 根 logger 只挂一个 stdout handler，重复调用不会叠加
    - codops.* 跟随配置级别，第三方库压到 WARNING
    """
    lvl = logging.getLevelName(level.upper())
    if not isinstance(lvl, int):
        lvl = logging.INFO

    root = logging.getLogger()
    root.setLevel(lvl)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FMT))
    root.addHandler(handler)

    # codops.* 子 logger 继承该级别
    logging.getLogger("codops").setLevel(lvl)

    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("passlib").setLevel(logging.WARNING)
    # DEBUG 时才打印 SQL
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if lvl <= logging.DEBUG else logging.WARNING
    )
