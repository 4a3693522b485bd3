"""Fee schedule resolver.

Prices a validated QuoteInput against a FeeScheduleConfig and returns an
itemized QuoteBreakdown. Resolution is deterministic and side-effect free
apart from structured logging: the same input and schedule always produce
the same line items.

Every step is recorded in the breakdown's audit log. Any value the schedule
cannot price is a FeeScheduleError; a fee is never defaulted to zero.
"""

from decimal import Decimal
from typing import Optional

import structlog

from .exceptions import FeeScheduleError
from .fee_schedules import FeeScheduleConfig
from .models import (
    AuditEntry,
    CountBand,
    ForeignIncomeHandling,
    QuoteBreakdown,
    QuoteInput,
)

logger = structlog.get_logger()

ZERO = Decimal("0")


class FeeScheduleResolver:
    """
    Resolve quote line items from a fee schedule.

    The resolver keeps no state between calls, so one instance can serve
    concurrent quotes. The schedule is read-only.
    """

    def __init__(self, schedule: FeeScheduleConfig):
        """
        Initialize resolver with the schedule to price against.

        Args:
            schedule: Loaded, self-validated fee schedule
        """
        self.schedule = schedule

    def _log_step(
        self,
        audit_log: list[AuditEntry],
        step: str,
        input_value: str,
        output_value: str,
        source: str,
        notes: Optional[str] = None,
    ) -> None:
        """Add an entry to the audit log."""
        audit_log.append(
            AuditEntry(
                step=step,
                input_value=input_value,
                output_value=output_value,
                source=source,
                notes=notes,
            )
        )
        logger.debug(
            "quote_calculation_step",
            schedule=self.schedule.name,
            step=step,
            input=input_value,
            output=output_value,
            source=source,
        )

    def _missing(self, config_key: str, actual: object) -> FeeScheduleError:
        return FeeScheduleError(
            f"Fee schedule {self.schedule.name} has no entry in {config_key} for {actual}",
            schedule=self.schedule.name,
            config_key=config_key,
            actual=str(actual),
        )

    def _base_fee(self, quote_input: QuoteInput, audit_log: list[AuditEntry]) -> Decimal:
        schedule = self.schedule
        if quote_input.filing_status not in schedule.filing_statuses:
            raise self._missing("filing_statuses", quote_input.filing_status.value)

        if schedule.flat_base_fee is not None:
            fee = schedule.flat_base_fee
            self._log_step(
                audit_log,
                step="base_fee",
                input_value=quote_input.filing_status.value,
                output_value=str(fee),
                source="flat_base_fee",
            )
            return fee

        row = schedule.base_fee_table.get(quote_input.filing_status)
        if row is None:
            raise self._missing("base_fee_table", quote_input.filing_status.value)
        if quote_input.deduction_type is None or quote_input.deduction_type not in row:
            raise self._missing(
                f"base_fee_table[{quote_input.filing_status.value}]",
                quote_input.deduction_type.value if quote_input.deduction_type else None,
            )
        fee = row[quote_input.deduction_type]
        self._log_step(
            audit_log,
            step="base_fee",
            input_value=f"{quote_input.filing_status.value} + {quote_input.deduction_type.value}",
            output_value=str(fee),
            source="base_fee_table",
        )
        return fee

    def _schedule_fees(
        self, quote_input: QuoteInput, audit_log: list[AuditEntry]
    ) -> tuple[Decimal, Decimal, Decimal]:
        schedule = self.schedule
        if not schedule.has_schedules:
            if quote_input.has_schedule_c or quote_input.has_schedule_d or quote_input.has_schedule_e:
                raise self._missing("schedule_c_fee_table", "supplementary schedules")
            return ZERO, ZERO, ZERO

        schedule_c = ZERO
        if quote_input.has_schedule_c:
            band = quote_input.schedule_c_income_band
            if band not in schedule.schedule_c_fee_table:
                raise self._missing("schedule_c_fee_table", band.value if band else None)
            schedule_c = schedule.schedule_c_fee_table[band]
        self._log_step(
            audit_log,
            step="schedule_c",
            input_value=(
                f"yes, {quote_input.schedule_c_income_band.value}" if quote_input.has_schedule_c else "no"
            ),
            output_value=str(schedule_c),
            source="schedule_c_fee_table",
        )

        schedule_d = schedule.schedule_d_fee if quote_input.has_schedule_d else ZERO
        self._log_step(
            audit_log,
            step="schedule_d",
            input_value="yes" if quote_input.has_schedule_d else "no",
            output_value=str(schedule_d),
            source="schedule_d_fee",
        )

        schedule_e = schedule.schedule_e_fee if quote_input.has_schedule_e else ZERO
        self._log_step(
            audit_log,
            step="schedule_e",
            input_value="yes" if quote_input.has_schedule_e else "no",
            output_value=str(schedule_e),
            source="schedule_e_fee",
        )
        return schedule_c, schedule_d, schedule_e

    def _home_ownership_fee(self, quote_input: QuoteInput, audit_log: list[AuditEntry]) -> Decimal:
        if not self.schedule.has_home_ownership:
            return ZERO
        if quote_input.owns_home is None:
            raise self._missing("home_ownership_fee", "unanswered home ownership")
        fee = self.schedule.home_ownership_fee if quote_input.owns_home else ZERO
        self._log_step(
            audit_log,
            step="home_ownership",
            input_value="yes" if quote_input.owns_home else "no",
            output_value=str(fee),
            source="home_ownership_fee",
        )
        return fee

    def _band_fee(
        self,
        table: dict[CountBand, Decimal],
        band: Optional[CountBand],
        config_key: str,
    ) -> Decimal:
        if band is None or band not in table:
            raise self._missing(config_key, band.value if band else None)
        return table[band]

    def _k1_fee(self, quote_input: QuoteInput, audit_log: list[AuditEntry]) -> Decimal:
        schedule = self.schedule
        if schedule.is_linear:
            if quote_input.k1_form_count is None:
                raise self._missing("k1_count_range", "missing K-1 count")
            billable = schedule.k1_count_range.clamp(quote_input.k1_form_count)
            fee = schedule.per_k1_form_fee * billable
            self._log_step(
                audit_log,
                step="k1_forms",
                input_value=f"{quote_input.k1_form_count} (billed {billable}) * {schedule.per_k1_form_fee}",
                output_value=str(fee),
                source="per_k1_form_fee",
                notes=(
                    f"capped at {schedule.k1_count_range.sentinel_label}"
                    if billable != quote_input.k1_form_count
                    else None
                ),
            )
            return fee

        fee = self._band_fee(schedule.k1_band_fees, quote_input.k1_form_band, "k1_band_fees")
        self._log_step(
            audit_log,
            step="k1_forms",
            input_value=quote_input.k1_form_band.value,
            output_value=str(fee),
            source="k1_band_fees",
        )
        return fee

    def _jurisdiction_fee(self, quote_input: QuoteInput, audit_log: list[AuditEntry]) -> Decimal:
        schedule = self.schedule
        if schedule.is_linear:
            if quote_input.jurisdiction_count is None:
                raise self._missing("jurisdiction_count_range", "missing jurisdiction count")
            count = schedule.jurisdiction_count_range.clamp(quote_input.jurisdiction_count)
            # First jurisdiction is included in the base fee
            extra = max(count - 1, 0)
            fee = schedule.per_extra_jurisdiction_fee * extra
            self._log_step(
                audit_log,
                step="jurisdictions",
                input_value=(
                    f"{quote_input.jurisdiction_count} (billed {count}), "
                    f"({count} - 1) * {schedule.per_extra_jurisdiction_fee}"
                ),
                output_value=str(fee),
                source="per_extra_jurisdiction_fee",
                notes=(
                    f"capped at {schedule.jurisdiction_count_range.sentinel_label}"
                    if count != quote_input.jurisdiction_count
                    else None
                ),
            )
            return fee

        fee = self._band_fee(
            schedule.jurisdiction_band_fees, quote_input.jurisdiction_band, "jurisdiction_band_fees"
        )
        self._log_step(
            audit_log,
            step="jurisdictions",
            input_value=quote_input.jurisdiction_band.value,
            output_value=str(fee),
            source="jurisdiction_band_fees",
        )
        return fee

    def _foreign_income_note(
        self, quote_input: QuoteInput, audit_log: list[AuditEntry]
    ) -> Optional[str]:
        if not quote_input.has_foreign_income:
            return None
        if self.schedule.foreign_income_handling != ForeignIncomeHandling.DEFER_TO_CONSULTATION:
            return None
        note = self.schedule.foreign_income_note
        self._log_step(
            audit_log,
            step="foreign_income",
            input_value="yes",
            output_value=note,
            source="foreign_income_handling",
            notes="Not included in total",
        )
        return note

    def resolve(self, quote_input: QuoteInput) -> QuoteBreakdown:
        """
        Price a validated quote input.

        Args:
            quote_input: Input produced by validate() against this schedule

        Returns:
            QuoteBreakdown with line items, total and audit log

        Raises:
            FeeScheduleError: If the schedule has no entry for a value of the input
        """
        audit_log: list[AuditEntry] = []

        base = self._base_fee(quote_input, audit_log)
        schedule_c, schedule_d, schedule_e = self._schedule_fees(quote_input, audit_log)
        home_ownership = self._home_ownership_fee(quote_input, audit_log)
        k1_forms = self._k1_fee(quote_input, audit_log)
        jurisdictions = self._jurisdiction_fee(quote_input, audit_log)
        foreign_income_note = self._foreign_income_note(quote_input, audit_log)

        breakdown = QuoteBreakdown(
            schedule_name=self.schedule.name,
            base=base,
            schedule_c=schedule_c,
            schedule_d=schedule_d,
            schedule_e=schedule_e,
            home_ownership=home_ownership,
            k1_forms=k1_forms,
            jurisdictions=jurisdictions,
            foreign_income_note=foreign_income_note,
            audit_log=audit_log,
        )
        logger.info(
            "quote_resolved",
            schedule=self.schedule.name,
            filing_status=quote_input.filing_status.value,
            total=str(breakdown.total),
            deferred_to_consultation=foreign_income_note is not None,
        )
        return breakdown


def resolve(quote_input: QuoteInput, schedule: FeeScheduleConfig) -> QuoteBreakdown:
    """Price a validated quote input against a fee schedule."""
    return FeeScheduleResolver(schedule).resolve(quote_input)
