"""
contravention_services -- engine orchestration over the contravention kernel.

Public API:
    ContraventionEngine   -- composition root and operation entrypoints
    EngineResult          -- value returned by every engine operation
    retry_on_conflict     -- retries CONCURRENCY_CONFLICT results
    NotificationOutbox    -- post-commit notification delivery
    InMemoryDirectory     -- DirectoryLookup for local runs and tests
"""

from contravention_services.directory import InMemoryDirectory
from contravention_services.engine import SYSTEM_ACTOR_ID, ContraventionEngine
from contravention_services.notifications import LoggingDispatcher, NotificationOutbox
from contravention_services.results import EngineResult
from contravention_services.retry import retry_on_conflict

__all__ = [
    "ContraventionEngine",
    "EngineResult",
    "InMemoryDirectory",
    "LoggingDispatcher",
    "NotificationOutbox",
    "SYSTEM_ACTOR_ID",
    "retry_on_conflict",
]
