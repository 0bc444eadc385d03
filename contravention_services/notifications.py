"""
NotificationOutbox -- post-commit, best-effort notification delivery.

Responsibility:
    Collects notifications staged during an engine operation and hands
    them to the NotificationDispatcher only after the transaction has
    committed.  Delivery runs on a worker pool so the caller never waits
    on it.

Invariants enforced:
    - Nothing is dispatched for an operation that rolled back.
    - At most one delivery attempt per notification; failures are logged
      (``notification_dispatch_failed``) and dropped.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from threading import Lock
from typing import Any
from uuid import UUID

from contravention_kernel.domain.collaborators import (
    Notification,
    NotificationDispatcher,
    NotificationKind,
)
from contravention_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


class NotificationOutbox:
    """
    Staged notifications for the current operation.

    Usage:
        outbox.stage(NotificationKind.APPROVAL_REQUESTED, {...})
        ...commit...
        outbox.flush()      # after commit
        outbox.discard()    # after rollback
    """

    def __init__(self, dispatcher: NotificationDispatcher, max_workers: int = 2):
        self._dispatcher = dispatcher
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notify"
        )
        self._staged: list[Notification] = []
        self._futures: list[Future] = []
        self._lock = Lock()

    @property
    def staged(self) -> tuple[Notification, ...]:
        return tuple(self._staged)

    def stage(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        self._staged.append(Notification(kind=kind, payload=_plain(payload)))

    def discard(self) -> int:
        dropped = len(self._staged)
        self._staged.clear()
        return dropped

    def flush(self) -> int:
        """Submit every staged notification.  Returns the number submitted."""
        staged, self._staged = self._staged, []
        with self._lock:
            self._futures = [f for f in self._futures if not f.done()]
            for notification in staged:
                self._futures.append(self._executor.submit(self._deliver, notification))
        return len(staged)

    def _deliver(self, notification: Notification) -> None:
        try:
            self._dispatcher.notify(notification.kind, notification.payload)
        except Exception as exc:
            logger.warning(
                "notification_dispatch_failed",
                extra={
                    "notification_kind": notification.kind.value,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return
        logger.debug(
            "notification_dispatched",
            extra={"notification_kind": notification.kind.value},
        )

    def drain(self, timeout: float | None = 5.0) -> None:
        """Wait for submitted deliveries to finish."""
        with self._lock:
            pending = list(self._futures)
        wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


class LoggingDispatcher:
    """Dispatcher that only logs; used by the maintenance scripts."""

    def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        logger.info(
            "notification_logged",
            extra={"notification_kind": kind.value, "payload": payload},
        )
