"""
EngineResult -- the value every engine operation returns.

Kernel services raise typed exceptions; the engine catches them at the
boundary and hands the caller a result that names the error kind, so the
caller handles each kind deliberately instead of catching exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from contravention_kernel.exceptions import ContraventionKernelError, ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class EngineResult(Generic[T]):
    """Outcome of one engine operation.

    ``value`` is set on success.  ``error_kind`` is set on failure, and
    also on a successful reconciliation that corrected drift
    (``RECONCILIATION_DRIFT`` is reported, not fatal).
    """

    operation: str
    value: T | None = None
    error_kind: ErrorKind | None = None
    error_code: str | None = None
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()

    @property
    def is_success(self) -> bool:
        return self.error_kind in (None, ErrorKind.RECONCILIATION_DRIFT)

    @property
    def is_retryable(self) -> bool:
        return self.error_kind is not None and self.error_kind.is_retryable

    @classmethod
    def ok(
        cls,
        operation: str,
        value: T,
        warnings: tuple[str, ...] = (),
    ) -> EngineResult[T]:
        return cls(operation=operation, value=value, warnings=warnings)

    @classmethod
    def failure(cls, operation: str, error: ContraventionKernelError) -> EngineResult[T]:
        details = {
            k: v
            for k, v in vars(error).items()
            if k not in ("code", "kind") and not k.startswith("_")
        }
        return cls(
            operation=operation,
            error_kind=error.kind,
            error_code=error.code,
            message=str(error),
            details=details,
        )

    def unwrap(self) -> T:
        """Return the value or raise if the operation failed."""
        if not self.is_success:
            raise RuntimeError(f"{self.operation} failed [{self.error_code}]: {self.message}")
        return self.value
