"""
Utility modules for PawLedger.
"""
from .logging_config import setup_logging
from .errors import (
    ErrorCode,
    error_response,
    bad_request,
    unauthorized,
    forbidden,
    not_found,
    exception_response,
)
from .exceptions import (
    PawLedgerError,
    NotFoundError,
    ClientNotFoundError,
    AppointmentNotFoundError,
    TenantNotFoundError,
    ValidationError,
    InsufficientBalanceError,
    InsufficientPointsError,
    InvalidStatusTransitionError,
    ConfigError,
    StoreError,
    ConcurrencyConflictError,
)
from .concurrency import retry_on_conflict
