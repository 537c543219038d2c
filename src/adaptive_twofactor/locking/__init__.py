"""Per-subject locks serialising enrollment read-modify-write cycles.

Locks:
- InMemorySubjectLock (single process, asyncio tasks)
- RedisSubjectLock (shared across worker processes)
"""

from .memory import InMemorySubjectLock
from .redis_lock import RedisSubjectLock

__all__: list[str] = [
    "InMemorySubjectLock",
    "RedisSubjectLock",
]
