from __future__ import annotations

from typing import Optional


class PokerError(Exception):
    """Base class for every error the core reports."""

    default_message = "Something went wrong."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(PokerError):
    """Input had the wrong shape; `field` names the offending input."""

    default_message = "Invalid input."

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Invalid value for {field}.")
        self.field = field


class Forbidden(PokerError):
    default_message = "You are not allowed to do that."


class GameNotOpen(Forbidden):
    default_message = "Game is not open."


class NotFound(PokerError):
    default_message = "Not found."


class Conflict(PokerError):
    default_message = "That conflicts with an existing record."


class AlreadyMember(Conflict):
    default_message = "You are already a member of this group."


class StorageFailure(PokerError):
    """The storage backend failed; nothing was applied and the call may be retried."""

    default_message = "Storage failure, please try again."
