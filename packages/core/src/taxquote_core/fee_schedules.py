"""Fee schedules for tax-preparation quotes.

A fee schedule is the declarative rule set the resolver prices against:
base fees, supplementary schedule fees, count-based fees (linear or banded)
and foreign income handling. Schedules are immutable and validate
themselves on construction, so an incomplete table fails at load time
instead of mispricing a quote.

Three rule sets ship with the engine:

- schedule_linear: filing status x deduction base table, Schedules C/D/E,
  K-1 forms and extra states priced per unit
- schedule_banded: the same base and schedule axes with banded K-1 and
  jurisdiction tiers
- home_banded: flat base fee, home ownership surcharge, banded tiers

Custom schedules can be loaded from a JSON document with the same shape as
FeeScheduleConfig.model_dump(mode="json").
"""

import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .exceptions import FeeScheduleError
from .models import (
    CountBand,
    DeductionType,
    FilingStatus,
    ForeignIncomeHandling,
    PricingMode,
    ScheduleCIncomeBand,
)

logger = structlog.get_logger()


DEFAULT_FOREIGN_INCOME_NOTE = "Discussed during consultation"


class CountRange(BaseModel):
    """Inclusive bounds for a linearly priced count.

    The maximum doubles as the "N+" sentinel: anything above it is billed
    as exactly the maximum.
    """

    model_config = ConfigDict(frozen=True)

    minimum: int = Field(ge=0)
    maximum: int = Field(ge=0)

    @model_validator(mode="after")
    def check_order(self) -> "CountRange":
        if self.minimum > self.maximum:
            raise ValueError(f"minimum {self.minimum} exceeds maximum {self.maximum}")
        return self

    def clamp(self, count: int) -> int:
        """Clamp a raw count into [minimum, maximum]."""
        return max(self.minimum, min(count, self.maximum))

    @property
    def sentinel_label(self) -> str:
        """Display label for the maximum, e.g. "20+"."""
        return f"{self.maximum}+"


class FeeScheduleConfig(BaseModel):
    """Immutable pricing rules for one calculator variant.

    Exactly one of base_fee_table / flat_base_fee is set. Linear schedules
    set the per-unit fees and count ranges; banded schedules set the band
    tables. Jurisdiction bands count jurisdictions beyond the first, which
    is included in the base fee.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    description: str = ""
    pricing_mode: PricingMode
    filing_statuses: tuple[FilingStatus, ...] = Field(min_length=1)

    # Base fee
    base_fee_table: Optional[dict[FilingStatus, dict[DeductionType, Decimal]]] = None
    flat_base_fee: Optional[Decimal] = None

    # Supplementary schedules
    schedule_c_fee_table: Optional[dict[ScheduleCIncomeBand, Decimal]] = None
    schedule_d_fee: Optional[Decimal] = None
    schedule_e_fee: Optional[Decimal] = None

    home_ownership_fee: Optional[Decimal] = None

    # Linear count pricing
    per_k1_form_fee: Optional[Decimal] = None
    k1_count_range: Optional[CountRange] = None
    per_extra_jurisdiction_fee: Optional[Decimal] = None
    jurisdiction_count_range: Optional[CountRange] = None

    # Banded count pricing
    k1_band_fees: Optional[dict[CountBand, Decimal]] = None
    jurisdiction_band_fees: Optional[dict[CountBand, Decimal]] = None

    foreign_income_handling: ForeignIncomeHandling = ForeignIncomeHandling.DEFER_TO_CONSULTATION
    foreign_income_note: str = DEFAULT_FOREIGN_INCOME_NOTE

    @property
    def has_deduction_axis(self) -> bool:
        return self.base_fee_table is not None

    @property
    def has_schedules(self) -> bool:
        return self.schedule_c_fee_table is not None

    @property
    def has_home_ownership(self) -> bool:
        return self.home_ownership_fee is not None

    @property
    def is_linear(self) -> bool:
        return self.pricing_mode == PricingMode.LINEAR

    @model_validator(mode="after")
    def check_completeness(self) -> "FeeScheduleConfig":
        """Every input value the schedule accepts must have a fee."""
        problems: list[str] = []

        if (self.base_fee_table is None) == (self.flat_base_fee is None):
            problems.append("exactly one of base_fee_table or flat_base_fee is required")
        if self.base_fee_table is not None:
            for status in self.filing_statuses:
                row = self.base_fee_table.get(status)
                if row is None:
                    problems.append(f"base_fee_table has no row for {status.value}")
                    continue
                for deduction in DeductionType:
                    if deduction not in row:
                        problems.append(
                            f"base_fee_table[{status.value}] has no fee for {deduction.value}"
                        )

        schedule_fields = (self.schedule_c_fee_table, self.schedule_d_fee, self.schedule_e_fee)
        if any(f is not None for f in schedule_fields) and any(f is None for f in schedule_fields):
            problems.append("schedule_c_fee_table, schedule_d_fee and schedule_e_fee go together")
        if self.schedule_c_fee_table is not None:
            for band in ScheduleCIncomeBand:
                if band not in self.schedule_c_fee_table:
                    problems.append(f"schedule_c_fee_table has no fee for {band.value}")

        linear_fields = {
            "per_k1_form_fee": self.per_k1_form_fee,
            "k1_count_range": self.k1_count_range,
            "per_extra_jurisdiction_fee": self.per_extra_jurisdiction_fee,
            "jurisdiction_count_range": self.jurisdiction_count_range,
        }
        banded_fields = {
            "k1_band_fees": self.k1_band_fees,
            "jurisdiction_band_fees": self.jurisdiction_band_fees,
        }
        required, forbidden = (
            (linear_fields, banded_fields) if self.is_linear else (banded_fields, linear_fields)
        )
        for key, value in required.items():
            if value is None:
                problems.append(f"{key} is required for {self.pricing_mode.value} pricing")
        for key, value in forbidden.items():
            if value is not None:
                problems.append(f"{key} cannot be mixed into {self.pricing_mode.value} pricing")

        for key, table in banded_fields.items():
            if table is None:
                continue
            missing = [band.value for band in CountBand if band not in table]
            if missing:
                problems.append(f"{key} has no fee for bands {missing}")
                continue
            fees = [table[band] for band in CountBand]
            if any(lower > higher for lower, higher in zip(fees, fees[1:])):
                problems.append(f"{key} must not decrease from one band to the next")

        if self.jurisdiction_count_range is not None and self.jurisdiction_count_range.minimum < 1:
            problems.append("jurisdiction_count_range must start at 1 or more")

        if any(amount < 0 for amount in self._amounts()):
            problems.append("fees must be non-negative")

        if problems:
            raise ValueError("; ".join(problems))
        return self

    def _amounts(self) -> list[Decimal]:
        amounts = [
            a
            for a in (
                self.flat_base_fee,
                self.schedule_d_fee,
                self.schedule_e_fee,
                self.home_ownership_fee,
                self.per_k1_form_fee,
                self.per_extra_jurisdiction_fee,
            )
            if a is not None
        ]
        for row in (self.base_fee_table or {}).values():
            amounts.extend(row.values())
        for table in (self.schedule_c_fee_table, self.k1_band_fees, self.jurisdiction_band_fees):
            amounts.extend((table or {}).values())
        return amounts


# =============================================================================
# BUILT-IN SCHEDULES
# =============================================================================

SCHEDULE_C_FEES = {
    ScheduleCIncomeBand.UNDER_250K: Decimal("50"),
    ScheduleCIncomeBand.AT_OR_OVER_250K: Decimal("100"),
}
SCHEDULE_D_FEE = Decimal("50")
SCHEDULE_E_FEE = Decimal("50")

SCHEDULE_LINEAR = FeeScheduleConfig(
    name="schedule_linear",
    description="1040 pricing with Schedules C/D/E, K-1 forms and states billed per unit",
    pricing_mode=PricingMode.LINEAR,
    filing_statuses=(
        FilingStatus.SINGLE,
        FilingStatus.MARRIED_FILING_SEPARATELY,
        FilingStatus.MARRIED_FILING_JOINTLY,
    ),
    base_fee_table={
        FilingStatus.SINGLE: {
            DeductionType.STANDARD: Decimal("300"),
            DeductionType.ITEMIZED: Decimal("350"),
        },
        FilingStatus.MARRIED_FILING_SEPARATELY: {
            DeductionType.STANDARD: Decimal("300"),
            DeductionType.ITEMIZED: Decimal("350"),
        },
        FilingStatus.MARRIED_FILING_JOINTLY: {
            DeductionType.STANDARD: Decimal("350"),
            DeductionType.ITEMIZED: Decimal("400"),
        },
    },
    schedule_c_fee_table=SCHEDULE_C_FEES,
    schedule_d_fee=SCHEDULE_D_FEE,
    schedule_e_fee=SCHEDULE_E_FEE,
    per_k1_form_fee=Decimal("100"),
    k1_count_range=CountRange(minimum=0, maximum=20),
    per_extra_jurisdiction_fee=Decimal("100"),
    jurisdiction_count_range=CountRange(minimum=1, maximum=10),
)

SCHEDULE_BANDED = FeeScheduleConfig(
    name="schedule_banded",
    description="1040 pricing with Schedules C/D/E and banded K-1 and state tiers",
    pricing_mode=PricingMode.BANDED,
    filing_statuses=tuple(FilingStatus),
    base_fee_table={
        FilingStatus.SINGLE: {
            DeductionType.STANDARD: Decimal("300"),
            DeductionType.ITEMIZED: Decimal("350"),
        },
        FilingStatus.HEAD_OF_HOUSEHOLD: {
            DeductionType.STANDARD: Decimal("325"),
            DeductionType.ITEMIZED: Decimal("375"),
        },
        FilingStatus.MARRIED_FILING_JOINTLY: {
            DeductionType.STANDARD: Decimal("350"),
            DeductionType.ITEMIZED: Decimal("400"),
        },
        FilingStatus.MARRIED_FILING_SEPARATELY: {
            DeductionType.STANDARD: Decimal("300"),
            DeductionType.ITEMIZED: Decimal("350"),
        },
    },
    schedule_c_fee_table=SCHEDULE_C_FEES,
    schedule_d_fee=SCHEDULE_D_FEE,
    schedule_e_fee=SCHEDULE_E_FEE,
    k1_band_fees={
        CountBand.NONE: Decimal("0"),
        CountBand.ONE: Decimal("100"),
        CountBand.TWO_TO_FIVE: Decimal("400"),
        CountBand.SIX_TO_FOURTEEN: Decimal("1000"),
        CountBand.FIFTEEN_PLUS: Decimal("1800"),
    },
    jurisdiction_band_fees={
        CountBand.NONE: Decimal("0"),
        CountBand.ONE: Decimal("100"),
        CountBand.TWO_TO_FIVE: Decimal("400"),
        CountBand.SIX_TO_FOURTEEN: Decimal("1000"),
        CountBand.FIFTEEN_PLUS: Decimal("1800"),
    },
)

HOME_BANDED = FeeScheduleConfig(
    name="home_banded",
    description="Flat base fee with home ownership surcharge and banded K-1 and state tiers",
    pricing_mode=PricingMode.BANDED,
    filing_statuses=tuple(FilingStatus),
    flat_base_fee=Decimal("350"),
    home_ownership_fee=Decimal("150"),
    k1_band_fees={
        CountBand.NONE: Decimal("0"),
        CountBand.ONE: Decimal("300"),
        CountBand.TWO_TO_FIVE: Decimal("600"),
        CountBand.SIX_TO_FOURTEEN: Decimal("1200"),
        CountBand.FIFTEEN_PLUS: Decimal("2000"),
    },
    jurisdiction_band_fees={
        CountBand.NONE: Decimal("0"),
        CountBand.ONE: Decimal("250"),
        CountBand.TWO_TO_FIVE: Decimal("600"),
        CountBand.SIX_TO_FOURTEEN: Decimal("1200"),
        CountBand.FIFTEEN_PLUS: Decimal("2000"),
    },
)

BUILTIN_SCHEDULES: dict[str, FeeScheduleConfig] = {
    s.name: s for s in (SCHEDULE_LINEAR, SCHEDULE_BANDED, HOME_BANDED)
}


# =============================================================================
# LOOKUP AND LOADING
# =============================================================================

def list_fee_schedules() -> list[str]:
    """Names of the built-in schedules."""
    return sorted(BUILTIN_SCHEDULES)


def get_fee_schedule(name: str) -> FeeScheduleConfig:
    """Return a built-in schedule by name.

    Raises:
        FeeScheduleError: If no built-in schedule has that name.
    """
    try:
        return BUILTIN_SCHEDULES[name]
    except KeyError:
        raise FeeScheduleError(
            f"Unknown fee schedule: {name}",
            config_key="fee_schedule",
            expected=f"One of: {', '.join(list_fee_schedules())}",
            actual=name,
        ) from None


def parse_fee_schedule(data: Any, source: Optional[str] = None) -> FeeScheduleConfig:
    """Build a schedule from a decoded JSON document.

    Raises:
        FeeScheduleError: If the document is incomplete or inconsistent.
    """
    try:
        schedule = FeeScheduleConfig.model_validate(data)
    except ValidationError as e:
        raise FeeScheduleError(
            "Fee schedule document is invalid",
            schedule=data.get("name") if isinstance(data, dict) else None,
            details={
                "source": source,
                "errors": [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()],
            },
        ) from e

    logger.info(
        "fee_schedule_loaded",
        schedule=schedule.name,
        pricing_mode=schedule.pricing_mode.value,
        source=source or "inline",
    )
    return schedule


def load_fee_schedule(path: Union[str, Path]) -> FeeScheduleConfig:
    """Load a schedule from a JSON file.

    Raises:
        FeeScheduleError: If the file cannot be read, decoded or validated.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise FeeScheduleError(
            f"Cannot read fee schedule file: {path}",
            config_key="fee_schedule_path",
            actual=str(path),
        ) from e
    except json.JSONDecodeError as e:
        raise FeeScheduleError(
            f"Fee schedule file is not valid JSON: {path}",
            config_key="fee_schedule_path",
            actual=str(path),
            details={"line": e.lineno, "column": e.colno},
        ) from e

    return parse_fee_schedule(data, source=str(path))


def dump_fee_schedule(schedule: FeeScheduleConfig) -> dict[str, Any]:
    """JSON-ready document for a schedule, loadable by parse_fee_schedule."""
    return schedule.model_dump(mode="json", exclude_none=True)
