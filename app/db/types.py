# app/db/types.py
# 跨方言列类型：PG 下用 BIGINT / JSONB，SQLite（测试）下退化为 INTEGER / JSON
from sqlalchemy import JSON, BigInteger, Integer
from sqlalchemy.dialects.postgresql import JSONB

# SQLite 只对 INTEGER PRIMARY KEY 自增
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")

JSONDoc = JSON().with_variant(JSONB(), "postgresql")

__all__ = ["BigIntPK", "JSONDoc"]
