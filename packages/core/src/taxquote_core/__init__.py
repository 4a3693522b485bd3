"""TaxQuote Core - Fee quotation for tax-preparation services."""

__version__ = "0.1.0"

from .exceptions import (
    ConfigurationError,
    DeliveryError,
    FeeScheduleError,
    QuoteValidationError,
    TaxQuoteError,
)
from .fee_schedules import (
    BUILTIN_SCHEDULES,
    HOME_BANDED,
    SCHEDULE_BANDED,
    SCHEDULE_LINEAR,
    CountRange,
    FeeScheduleConfig,
    get_fee_schedule,
    list_fee_schedules,
    load_fee_schedule,
    parse_fee_schedule,
)
from .models import (
    AuditEntry,
    CountBand,
    DeductionType,
    FieldError,
    FilingStatus,
    ForeignIncomeHandling,
    PricingMode,
    QuoteBreakdown,
    QuoteInput,
    QuoteRequest,
    ScheduleCIncomeBand,
)
from .resolver import FeeScheduleResolver, resolve
from .validator import ValidationResult, validate

__all__ = [
    # Core operations
    "validate",
    "resolve",
    "FeeScheduleResolver",
    "ValidationResult",
    # Models
    "AuditEntry",
    "CountBand",
    "DeductionType",
    "FieldError",
    "FilingStatus",
    "ForeignIncomeHandling",
    "PricingMode",
    "QuoteBreakdown",
    "QuoteInput",
    "QuoteRequest",
    "ScheduleCIncomeBand",
    # Schedules
    "BUILTIN_SCHEDULES",
    "HOME_BANDED",
    "SCHEDULE_BANDED",
    "SCHEDULE_LINEAR",
    "CountRange",
    "FeeScheduleConfig",
    "get_fee_schedule",
    "list_fee_schedules",
    "load_fee_schedule",
    "parse_fee_schedule",
    # Errors
    "TaxQuoteError",
    "QuoteValidationError",
    "ConfigurationError",
    "FeeScheduleError",
    "DeliveryError",
]
