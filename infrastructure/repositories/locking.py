"""
行锁 / 并发写入冲突识别
"""
from sqlalchemy.exc import DBAPIError

# PostgreSQL: lock_not_available / serialization_failure / deadlock_detected
_LOCK_SQLSTATES = {"55P03", "40001", "40P01"}
_LOCK_MESSAGES = ("could not obtain lock", "database is locked", "lock not available")


def is_lock_conflict(exc: DBAPIError) -> bool:
    """NOWAIT 取锁失败或数据库忙，视为并发冲突"""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _LOCK_SQLSTATES:
        return True
    message = str(orig or exc).lower()
    return any(m in message for m in _LOCK_MESSAGES)
