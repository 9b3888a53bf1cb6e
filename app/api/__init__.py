# app/api/__init__.py
"""
API package bootstrap.

- 这里不做任何重导出
- 路由在 `app/main.py` 中逐个 include（batches / orders / courier-export / system-events ...）
"""

__all__ = []
