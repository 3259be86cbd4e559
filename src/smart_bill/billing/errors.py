"""Error taxonomy for the billing engine."""

from __future__ import annotations

from typing import Optional


class BillingError(Exception):
    """Base class for every error raised by the billing engine."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationFailure(BillingError):
    """Malformed or out-of-range input, raised before any arithmetic runs.

    ``field`` is the payload path of the offending value, e.g.
    ``items[0].addOns[1].unitPrice``.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class CalculationFailure(BillingError):
    """An internal invariant was violated while computing a bill."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CALCULATION_ERROR")
