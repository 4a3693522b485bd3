"""Custom exceptions for the tax quote engine.

This module provides the exception hierarchy used across validation, fee
resolution and quote delivery. All exceptions inherit from TaxQuoteError,
making it easy to catch every engine-specific error in one place.

Two families matter to callers:

- QuoteValidationError: the client's input is incomplete or malformed. It is
  recoverable; re-prompt the client and never call the resolver.
- ConfigurationError / FeeScheduleError: the fee schedule cannot price a
  validated input. These are fatal and must never be answered with a
  default fee.

Example:
    try:
        quote_input = validate(form_state, schedule).unwrap()
        breakdown = resolve(quote_input, schedule)
    except QuoteValidationError as e:
        show_field_errors(e.errors)
    except FeeScheduleError:
        # Misconfigured deployment, let it surface
        raise
"""

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .models import FieldError


class TaxQuoteError(Exception):
    """Base exception for all tax quote engine errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
        recoverable: Whether the error is potentially recoverable.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize TaxQuoteError.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context about the error.
            recoverable: Whether the caller can recover, typically by asking
                the client for corrected input. Defaults to False.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation of the error."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable!r})"
        )


class QuoteValidationError(TaxQuoteError):
    """Error raised when a quote request fails input validation.

    Carries every violated field so the caller can re-prompt for all of
    them at once.

    Attributes:
        errors: The field-level violations.

    Example:
        >>> raise QuoteValidationError(
        ...     "Quote request is invalid",
        ...     errors=[FieldError(field="client_email", message="Enter a valid email address")],
        ... )
        QuoteValidationError: Quote request is invalid
    """

    def __init__(
        self,
        message: str,
        *,
        errors: Optional[list["FieldError"]] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        """Initialize QuoteValidationError.

        Args:
            message: Human-readable error description.
            errors: Field-level violations, in the order they were found.
            details: Optional dictionary with additional context.
            recoverable: Defaults to True since the client can correct input.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.errors = list(errors or [])

        if self.errors:
            self.details["fields"] = [e.field for e in self.errors]

    @property
    def fields(self) -> list[str]:
        """Identifiers of the fields that failed validation."""
        return [e.field for e in self.errors]


class ConfigurationError(TaxQuoteError):
    """Error raised when configuration is invalid or missing.

    Configuration errors are fatal and require operator intervention.

    Attributes:
        config_key: The configuration key that is problematic.
        expected: Description of the expected value or format.
        actual: The actual value found (if any).
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            message: Human-readable error description.
            config_key: The name of the configuration key that is problematic.
            expected: Description of what value was expected.
            actual: The actual value found.
            details: Optional dictionary with additional context.
            recoverable: Defaults to False since configuration errors
                require a corrected deployment.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.config_key = config_key
        self.expected = expected
        self.actual = actual

        if config_key:
            self.details["config_key"] = config_key
        if expected:
            self.details["expected"] = expected
        if actual is not None:
            self.details["actual"] = actual


class FeeScheduleError(ConfigurationError):
    """Error raised when a fee schedule cannot be loaded or cannot price an input.

    Raised at load time when a schedule document is incomplete or
    inconsistent, and at resolution time when a validated input has no
    matching table entry.

    Example:
        >>> raise FeeScheduleError(
        ...     "No base fee for filing status",
        ...     schedule="schedule_linear",
        ...     config_key="base_fee_table",
        ...     actual="head_of_household",
        ... )
        FeeScheduleError: No base fee for filing status
    """

    def __init__(
        self,
        message: str,
        *,
        schedule: Optional[str] = None,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            config_key=config_key,
            expected=expected,
            actual=actual,
            details=details,
            recoverable=False,
        )
        self.schedule = schedule

        if schedule:
            self.details["schedule"] = schedule


class DeliveryError(TaxQuoteError):
    """Error describing a failed lead or webhook delivery.

    Delivery is fire-and-forget: this error is recorded in a DeliveryReport
    and logged, never raised out of the delivery boundary.

    Attributes:
        target: Which delivery target failed ("lead_relay" or "webhook").
        url: The URL the payload was sent to.
        status_code: HTTP status code, when a response was received.
    """

    def __init__(
        self,
        message: str,
        *,
        target: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message, details=details, recoverable=recoverable)
        self.target = target
        self.url = url
        self.status_code = status_code

        if target:
            self.details["target"] = target
        if url:
            self.details["url"] = url
        if status_code is not None:
            self.details["status_code"] = status_code


__all__ = [
    "TaxQuoteError",
    "QuoteValidationError",
    "ConfigurationError",
    "FeeScheduleError",
    "DeliveryError",
]
