"""Data models for tax-preparation quotes.

This module contains the value objects that flow through the quote engine:

- QuoteRequest: raw, lenient form state as a UI, CLI or HTTP layer holds it
- QuoteInput: the immutable, validated input the resolver prices
- QuoteBreakdown: the immutable, itemized result
- AuditEntry / FieldError: supporting records

Amounts are Decimal throughout so totals never drift.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# =============================================================================
# ENUMERATIONS
# =============================================================================

class FilingStatus(str, Enum):
    """IRS filing status options."""
    SINGLE = "single"
    HEAD_OF_HOUSEHOLD = "head_of_household"
    MARRIED_FILING_JOINTLY = "married_filing_jointly"
    MARRIED_FILING_SEPARATELY = "married_filing_separately"


class DeductionType(str, Enum):
    """Standard or itemized deductions."""
    STANDARD = "standard"
    ITEMIZED = "itemized"


class ScheduleCIncomeBand(str, Enum):
    """Business income level reported on Schedule C."""
    UNDER_250K = "under_250k"
    AT_OR_OVER_250K = "at_or_over_250k"


class CountBand(str, Enum):
    """Ordered tiers for count-based factors (K-1 forms, extra jurisdictions)."""
    NONE = "0"
    ONE = "1"
    TWO_TO_FIVE = "2-5"
    SIX_TO_FOURTEEN = "6-14"
    FIFTEEN_PLUS = "15+"

    @property
    def rank(self) -> int:
        """Position of the band in tier order, starting at 0."""
        return list(CountBand).index(self)


class PricingMode(str, Enum):
    """How a schedule prices count-based factors."""
    LINEAR = "linear"
    BANDED = "banded"


class ForeignIncomeHandling(str, Enum):
    """What happens when a client reports foreign income."""
    NOT_APPLICABLE = "not_applicable"
    DEFER_TO_CONSULTATION = "defer_to_consultation"


# Human labels used by the calculator forms, normalized to enum values
_FILING_STATUS_ALIASES = {
    "married_filing_separate": FilingStatus.MARRIED_FILING_SEPARATELY.value,
    "mfs": FilingStatus.MARRIED_FILING_SEPARATELY.value,
    "mfj": FilingStatus.MARRIED_FILING_JOINTLY.value,
    "hoh": FilingStatus.HEAD_OF_HOUSEHOLD.value,
}

_INCOME_BAND_ALIASES = {
    "< $250,000": ScheduleCIncomeBand.UNDER_250K.value,
    "<$250,000": ScheduleCIncomeBand.UNDER_250K.value,
    "≥ $250,000": ScheduleCIncomeBand.AT_OR_OVER_250K.value,
    "≥$250,000": ScheduleCIncomeBand.AT_OR_OVER_250K.value,
    ">= $250,000": ScheduleCIncomeBand.AT_OR_OVER_250K.value,
}


def _slug(value: str) -> str:
    return re.sub(r"[\s\-]+", "_", value.strip().lower())


# =============================================================================
# SUPPORTING RECORDS
# =============================================================================

class FieldError(BaseModel):
    """A single field-level validation failure."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(description="Identifier of the offending input field")
    message: str = Field(description="What the client needs to fix")


class AuditEntry(BaseModel):
    """Audit log entry for calculation transparency."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    step: str
    input_value: str
    output_value: str
    source: str
    notes: Optional[str] = None


# =============================================================================
# INPUT
# =============================================================================

class QuoteRequest(BaseModel):
    """Raw quote form state.

    Every field is optional so that half-filled forms still parse; the
    validator decides what is actually required for a given fee schedule.
    Empty strings count as "not selected", "Yes"/"No" answers become
    booleans and form labels such as "Married Filing Jointly" or
    "< $250,000" normalize to enum values.
    """

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "examples": [
                {
                    "client_name": "Jane Doe",
                    "client_email": "jane@example.com",
                    "filing_status": "Single",
                    "deduction_type": "Standard",
                    "has_schedule_c": "No",
                    "has_schedule_d": "Yes",
                    "has_schedule_e": "No",
                    "k1_form_count": 3,
                    "jurisdiction_count": 2,
                    "has_foreign_income": "No",
                }
            ]
        },
    )

    client_name: Optional[str] = None
    client_email: Optional[str] = None
    filing_status: Optional[FilingStatus] = None
    deduction_type: Optional[DeductionType] = None
    has_schedule_c: Optional[bool] = None
    schedule_c_income_band: Optional[ScheduleCIncomeBand] = None
    has_schedule_d: Optional[bool] = None
    has_schedule_e: Optional[bool] = None
    owns_home: Optional[bool] = None
    k1_form_count: Optional[int] = None
    k1_form_band: Optional[CountBand] = None
    jurisdiction_count: Optional[int] = None
    jurisdiction_band: Optional[CountBand] = None
    has_foreign_income: Optional[bool] = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat unselected form controls as missing."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("filing_status", mode="before")
    @classmethod
    def normalize_filing_status(cls, v: Any) -> Any:
        if isinstance(v, str):
            slug = _slug(v)
            return _FILING_STATUS_ALIASES.get(slug, slug)
        return v

    @field_validator("deduction_type", mode="before")
    @classmethod
    def normalize_deduction_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _slug(v).removesuffix("_deduction")
        return v

    @field_validator("schedule_c_income_band", mode="before")
    @classmethod
    def normalize_income_band(cls, v: Any) -> Any:
        if isinstance(v, str):
            stripped = v.strip()
            return _INCOME_BAND_ALIASES.get(stripped, _slug(stripped))
        return v

    @field_validator("k1_form_band", "jurisdiction_band", mode="before")
    @classmethod
    def normalize_band(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, str):
            return re.sub(r"\s+", "", v)
        return v

    @field_validator("k1_form_count", "jurisdiction_count", mode="before")
    @classmethod
    def strip_sentinel_suffix(cls, v: Any) -> Any:
        """Accept slider labels such as "20+" as the count itself."""
        if isinstance(v, str):
            return v.strip().removesuffix("+")
        return v

    @field_validator(
        "has_schedule_c", "has_schedule_d", "has_schedule_e", "owns_home", "has_foreign_income",
        mode="before",
    )
    @classmethod
    def normalize_yes_no(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v


class QuoteInput(BaseModel):
    """Validated, immutable input to the fee resolver.

    Built by the validator from a QuoteRequest. Count-based factors carry
    either a count or a band, matching the pricing mode of the schedule the
    input was validated against.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    client_name: str = Field(min_length=1, description="Client's full name, trimmed")
    client_email: str = Field(description="Client's email address")
    filing_status: FilingStatus
    deduction_type: Optional[DeductionType] = None
    has_schedule_c: bool = False
    schedule_c_income_band: Optional[ScheduleCIncomeBand] = None
    has_schedule_d: bool = False
    has_schedule_e: bool = False
    owns_home: Optional[bool] = None
    k1_form_count: Optional[int] = None
    k1_form_band: Optional[CountBand] = None
    jurisdiction_count: Optional[int] = None
    jurisdiction_band: Optional[CountBand] = None
    has_foreign_income: bool = False

    @field_validator("client_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        """Ensure the client name is not empty."""
        if not v.strip():
            raise ValueError("Client name cannot be empty")
        return v.strip()

    @field_validator("client_email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        """Require a local@domain.tld shape."""
        v = v.strip()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Email must look like name@domain.tld")
        return v

    @model_validator(mode="after")
    def single_representation(self) -> "QuoteInput":
        """A count factor is either a count or a band, never both."""
        if self.k1_form_count is not None and self.k1_form_band is not None:
            raise ValueError("K-1 forms given as both a count and a band")
        if self.jurisdiction_count is not None and self.jurisdiction_band is not None:
            raise ValueError("Jurisdictions given as both a count and a band")
        if self.has_schedule_c and self.schedule_c_income_band is None:
            raise ValueError("Schedule C requires an income band")
        return self


# =============================================================================
# OUTPUT
# =============================================================================

class QuoteBreakdown(BaseModel):
    """Itemized price quote.

    Line items that do not apply to a schedule are zero. The foreign income
    note is advisory only and never part of the total.
    """

    model_config = ConfigDict(frozen=True)

    schedule_name: str
    base: Decimal = Decimal("0")
    schedule_c: Decimal = Decimal("0")
    schedule_d: Decimal = Decimal("0")
    schedule_e: Decimal = Decimal("0")
    home_ownership: Decimal = Decimal("0")
    k1_forms: Decimal = Decimal("0")
    jurisdictions: Decimal = Decimal("0")
    foreign_income_note: Optional[str] = None
    audit_log: list[AuditEntry] = Field(default_factory=list)
    calculated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def line_items(self) -> dict[str, Decimal]:
        """Numeric line items in display order."""
        return {
            "base": self.base,
            "schedule_c": self.schedule_c,
            "schedule_d": self.schedule_d,
            "schedule_e": self.schedule_e,
            "home_ownership": self.home_ownership,
            "k1_forms": self.k1_forms,
            "jurisdictions": self.jurisdictions,
        }

    @computed_field
    @property
    def total(self) -> Decimal:
        """Exact sum of the numeric line items."""
        return sum(self.line_items().values(), Decimal("0"))
