"""Exception hierarchy for the expense engine.

Every error raised by the engine derives from ExpenseEngineError so that the
HTTP layer can map the whole taxonomy in one place.
"""

from __future__ import annotations

from uuid import UUID


class ExpenseEngineError(Exception):
    """Base class for expense engine errors."""

    code: str = "EXPENSE_ENGINE_ERROR"


class ValidationError(ExpenseEngineError):
    """Malformed rule, workflow, or expense input."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NotFoundError(ExpenseEngineError):
    """Unknown entity, or an entity the caller does not own."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: UUID | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class AlreadyDecidedError(ExpenseEngineError):
    """Raised when a decision is recorded on a step that already left pending."""

    code = "ALREADY_DECIDED"

    def __init__(self, step_id: UUID, status: str | None = None):
        self.step_id = step_id
        self.status = status
        msg = f"Approval step {step_id} already processed"
        if status:
            msg += f" (status: {status})"
        super().__init__(msg)


class PermissionDeniedError(ExpenseEngineError):
    """Caller's role does not allow the operation."""

    code = "PERMISSION_DENIED"


class ConversionError(ExpenseEngineError):
    """Currency conversion failed. Recovered by falling back to the original amount."""

    code = "CONVERSION_FAILED"

    def __init__(self, from_currency: str, to_currency: str, reason: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.reason = reason
        super().__init__(
            f"Failed to convert {from_currency} to {to_currency}: {reason}"
        )


class ExtractionError(ExpenseEngineError):
    """Document extraction failed. Aborts the whole upload."""

    code = "EXTRACTION_FAILED"


class CurrencyLookupError(ExpenseEngineError):
    """A country's currency could not be looked up. Recovered with the default currency."""

    code = "CURRENCY_LOOKUP_FAILED"

    def __init__(self, country: str, reason: str):
        self.country = country
        self.reason = reason
        super().__init__(f"Failed to look up the currency of {country}: {reason}")
