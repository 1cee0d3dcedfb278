from __future__ import annotations


class LoanServiceError(RuntimeError):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class MissingFieldsError(LoanServiceError):
    status_code = 400
    default_message = "Missing required fields"


class NotFoundError(LoanServiceError):
    status_code = 404
    default_message = "Not found"


class BusinessRuleViolation(LoanServiceError):
    status_code = 400
    default_message = "Request violates a business rule"


class InsufficientStockError(BusinessRuleViolation):
    default_message = "Insufficient stock"


class InventoryInvariantError(LoanServiceError):
    status_code = 409
    default_message = "Inventory counters are inconsistent"


class PersistenceError(LoanServiceError):
    pass
