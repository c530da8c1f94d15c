"""
TPCS-DIFA — Domain Exceptions

Exception classes raised by the scoring core and its collaborators.  Each
carries the structured attributes the API layer needs to build an error
response, so handlers never have to parse messages.
"""

from __future__ import annotations

from typing import Any


class AnswerValidationError(ValueError):
    """An answer item is missing, non-numeric, non-integral or out of range."""

    def __init__(self, item: int, raw_value: Any, reason: str) -> None:
        self.item = item
        self.raw_value = raw_value
        self.reason = reason
        super().__init__(f"Invalid answer for item {item}: {reason} (raw={raw_value!r})")


class SubmissionError(ValueError):
    """A webhook body could not be turned into a scoreable submission."""

    def __init__(self, message: str, detail: dict[str, Any] | None = None) -> None:
        self.message = message
        self.detail = detail or {}
        super().__init__(message)


class UnknownVariantError(KeyError):
    """No scoring variant is registered under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown scoring variant: {self.name!r}"
