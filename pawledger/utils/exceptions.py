"""
Custom exceptions for PawLedger business logic.

These exceptions provide more specific error handling than generic Exception,
allowing for better error messages and appropriate HTTP status codes.
"""


class PawLedgerError(Exception):
    """Base exception for all PawLedger business logic errors."""

    def __init__(self, message: str, code: str = "PAWLEDGER_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(PawLedgerError):
    """Resource not found."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper()}_NOT_FOUND")


class ClientNotFoundError(NotFoundError):
    """Client not found."""

    def __init__(self, identifier=None):
        super().__init__("Client", identifier)


class AppointmentNotFoundError(NotFoundError):
    """Appointment not found."""

    def __init__(self, identifier=None):
        super().__init__("Appointment", identifier)


class TenantNotFoundError(NotFoundError):
    """Tenant not found."""

    def __init__(self, identifier=None):
        super().__init__("Tenant", identifier)


class ValidationError(PawLedgerError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class InsufficientBalanceError(PawLedgerError):
    """Not enough balance for the operation."""

    def __init__(self, current: float, required: float, currency: str = "credits"):
        self.current = current
        self.required = required
        message = f"Insufficient {currency}. Current: {current}, Required: {required}"
        super().__init__(message, "INSUFFICIENT_BALANCE")


class InsufficientPointsError(InsufficientBalanceError):
    """Not enough points for the operation."""

    def __init__(self, current: int, required: int):
        super().__init__(current, required, "points")
        self.code = "INSUFFICIENT_POINTS"


class InvalidStatusTransitionError(PawLedgerError):
    """Invalid status transition for a resource."""

    def __init__(self, resource: str, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        message = f"Cannot change {resource} status from '{from_status}' to '{to_status}'"
        super().__init__(message, "INVALID_STATUS_TRANSITION")


class ConfigError(PawLedgerError):
    """Malformed tenant configuration (e.g. loyalty program tiers)."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")


class StoreError(PawLedgerError):
    """Document store failure."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "STORE_ERROR")


class ConcurrencyConflictError(StoreError):
    """A conditional write lost against a concurrent writer."""

    def __init__(self, collection: str, doc_id: str, expected_version: int):
        self.collection = collection
        self.doc_id = doc_id
        self.expected_version = expected_version
        super().__init__(
            f"{collection}/{doc_id} changed since version {expected_version}"
        )
        self.code = "CONCURRENCY_CONFLICT"
