"""Quote input validator.

Checks raw quote form state against the rules of a fee schedule and either
produces a QuoteInput or the complete list of violated fields. Structural
problems (a count that is not a number, an unknown filing status label) are
caught by QuoteRequest parsing; the rules below run on whatever parsed.

Rules:
  1. client_name             trimmed, non-empty
  2. client_email            local@domain.tld shape, no whitespace
  3. filing_status           required, offered by the schedule
  4. deduction_type          required when the schedule has a deduction axis
  5. owns_home               required when the schedule has a home ownership fee
  6. schedule_c_income_band  required when has_schedule_c
  7. K-1 / jurisdictions     representation matches the schedule's pricing mode;
                             banded selections are required, linear counts
                             default to the bottom of their range

There is no partial success: callers get a QuoteInput or errors, never both.
"""

from collections.abc import Mapping
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import QuoteValidationError
from .fee_schedules import FeeScheduleConfig
from .models import EMAIL_PATTERN, FieldError, QuoteInput, QuoteRequest

logger = structlog.get_logger()


class ValidationResult(BaseModel):
    """Outcome of validate(): a QuoteInput or a non-empty error list."""

    model_config = ConfigDict(frozen=True)

    quote_input: Optional[QuoteInput] = None
    errors: list[FieldError] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.quote_input is not None and not self.errors

    @property
    def fields(self) -> list[str]:
        """Identifiers of the violated fields."""
        return [e.field for e in self.errors]

    def unwrap(self) -> QuoteInput:
        """Return the validated input or raise QuoteValidationError."""
        if not self.is_valid:
            raise QuoteValidationError("Quote request is invalid", errors=self.errors)
        return self.quote_input


def _structural_errors(exc: ValidationError) -> list[FieldError]:
    errors: list[FieldError] = []
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "__root__"
        errors.append(FieldError(field=field, message=err["msg"]))
    return errors


def _check_identity(request: QuoteRequest) -> list[FieldError]:
    errors: list[FieldError] = []
    if not (request.client_name or "").strip():
        errors.append(FieldError(field="client_name", message="Please provide your name"))
    email = (request.client_email or "").strip()
    if not EMAIL_PATTERN.match(email):
        errors.append(
            FieldError(field="client_email", message="Please provide a valid email address")
        )
    return errors


def _check_selections(request: QuoteRequest, schedule: FeeScheduleConfig) -> list[FieldError]:
    errors: list[FieldError] = []

    if request.filing_status is None:
        errors.append(FieldError(field="filing_status", message="Filing status is required"))
    elif request.filing_status not in schedule.filing_statuses:
        offered = ", ".join(s.value for s in schedule.filing_statuses)
        errors.append(
            FieldError(
                field="filing_status",
                message=f"Filing status must be one of: {offered}",
            )
        )

    if schedule.has_deduction_axis and request.deduction_type is None:
        errors.append(FieldError(field="deduction_type", message="Deduction type is required"))

    if schedule.has_home_ownership and request.owns_home is None:
        errors.append(
            FieldError(field="owns_home", message="Please tell us whether you own a home")
        )

    if (
        schedule.has_schedules
        and request.has_schedule_c
        and request.schedule_c_income_band is None
    ):
        errors.append(
            FieldError(
                field="schedule_c_income_band",
                message="Business income level is required with Schedule C",
            )
        )
    return errors


def _check_counts(request: QuoteRequest, schedule: FeeScheduleConfig) -> list[FieldError]:
    errors: list[FieldError] = []
    factors = (
        ("k1_form_count", "k1_form_band", "K-1 forms"),
        ("jurisdiction_count", "jurisdiction_band", "number of states"),
    )
    for count_field, band_field, label in factors:
        count = getattr(request, count_field)
        band = getattr(request, band_field)
        if schedule.is_linear:
            if band is not None:
                errors.append(
                    FieldError(
                        field=band_field,
                        message=f"This calculator takes a count for {label}, not a range",
                    )
                )
        else:
            if count is not None:
                errors.append(
                    FieldError(
                        field=count_field,
                        message=f"This calculator takes a range for {label}, not a count",
                    )
                )
            if band is None:
                errors.append(FieldError(field=band_field, message=f"Please select {label}"))
    return errors


def _build_input(request: QuoteRequest, schedule: FeeScheduleConfig) -> QuoteInput:
    has_schedule_c = bool(request.has_schedule_c) and schedule.has_schedules
    values: dict[str, Any] = {
        "client_name": request.client_name.strip(),
        "client_email": request.client_email.strip(),
        "filing_status": request.filing_status,
        "deduction_type": request.deduction_type if schedule.has_deduction_axis else None,
        "has_schedule_c": has_schedule_c,
        "schedule_c_income_band": request.schedule_c_income_band if has_schedule_c else None,
        "has_schedule_d": bool(request.has_schedule_d) and schedule.has_schedules,
        "has_schedule_e": bool(request.has_schedule_e) and schedule.has_schedules,
        "owns_home": request.owns_home if schedule.has_home_ownership else None,
        "has_foreign_income": bool(request.has_foreign_income),
    }
    if schedule.is_linear:
        # Omitted counts mean the form default: the bottom of the range
        values["k1_form_count"] = (
            request.k1_form_count
            if request.k1_form_count is not None
            else schedule.k1_count_range.minimum
        )
        values["jurisdiction_count"] = (
            request.jurisdiction_count
            if request.jurisdiction_count is not None
            else schedule.jurisdiction_count_range.minimum
        )
    else:
        values["k1_form_band"] = request.k1_form_band
        values["jurisdiction_band"] = request.jurisdiction_band
    return QuoteInput(**values)


def validate(
    raw: Union[QuoteRequest, Mapping[str, Any]],
    schedule: FeeScheduleConfig,
) -> ValidationResult:
    """Validate raw quote form state against a fee schedule.

    Args:
        raw: A QuoteRequest or a mapping with QuoteRequest's keys.
        schedule: The schedule the quote will be priced with.

    Returns:
        ValidationResult holding either the QuoteInput or every field error.
    """
    errors: list[FieldError] = []
    if isinstance(raw, QuoteRequest):
        request = raw
    else:
        data = dict(raw)
        try:
            request = QuoteRequest.model_validate(data)
        except ValidationError as e:
            # Keep checking the fields that did parse so every problem is reported
            errors = _structural_errors(e)
            bad_fields = {err.field for err in errors}
            request = QuoteRequest.model_validate(
                {k: v for k, v in data.items() if k not in bad_fields}
            )

    seen = {err.field for err in errors}
    for err in (
        _check_identity(request)
        + _check_selections(request, schedule)
        + _check_counts(request, schedule)
    ):
        if err.field not in seen:
            errors.append(err)
            seen.add(err.field)

    if errors:
        logger.debug(
            "quote_validation_failed",
            schedule=schedule.name,
            fields=[err.field for err in errors],
        )
        return ValidationResult(errors=errors)

    return ValidationResult(quote_input=_build_input(request, schedule))
