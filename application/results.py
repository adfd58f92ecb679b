from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from domain.errors import PokerError


@dataclass
class OperationResult:
    """
    Outcome of a command.

    Expected business-rule failures (wrong role, game not open, unknown
    invite code, ...) come back here as `error` instead of being raised, so
    every caller has a message to show. Storage faults are raised.
    """

    success: bool
    error: Optional[PokerError] = None
    value: Any = None
    warnings: List[str] = field(default_factory=list)

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error is not None else None

    def unwrap(self) -> Any:
        """Return `value`, or raise the carried error."""

        if self.error is not None:
            raise self.error
        return self.value


def ok(value: Any = None, **kwargs: Any) -> OperationResult:
    return OperationResult(success=True, value=value, **kwargs)


def fail(error: PokerError) -> OperationResult:
    return OperationResult(success=False, error=error)
