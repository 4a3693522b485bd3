"""Tests for the fee schedule resolver."""

from decimal import Decimal

import pytest

from taxquote_core import (
    HOME_BANDED,
    SCHEDULE_BANDED,
    SCHEDULE_LINEAR,
    CountBand,
    DeductionType,
    FeeScheduleError,
    FeeScheduleResolver,
    FilingStatus,
    ForeignIncomeHandling,
    QuoteBreakdown,
    QuoteInput,
    ScheduleCIncomeBand,
    resolve,
    validate,
)


def linear_input(**overrides) -> QuoteInput:
    values = dict(
        client_name="Bob Smith",
        client_email="bob@example.com",
        filing_status=FilingStatus.SINGLE,
        deduction_type=DeductionType.STANDARD,
        k1_form_count=0,
        jurisdiction_count=1,
    )
    values.update(overrides)
    return QuoteInput(**values)


def banded_input(**overrides) -> QuoteInput:
    values = dict(
        client_name="Bob Smith",
        client_email="bob@example.com",
        filing_status=FilingStatus.SINGLE,
        owns_home=False,
        k1_form_band=CountBand.NONE,
        jurisdiction_band=CountBand.NONE,
    )
    values.update(overrides)
    return QuoteInput(**values)


class TestLinearSchedule:
    """Test suite for per-unit pricing."""

    def test_worked_example(self):
        """Single + Standard, Schedule D, 3 K-1s, 2 states prices at 750."""
        result = validate(
            {
                "client_name": "Bob Smith",
                "client_email": "bob@example.com",
                "filing_status": "Single",
                "deduction_type": "Standard",
                "has_schedule_c": "No",
                "has_schedule_d": "Yes",
                "has_schedule_e": "No",
                "k1_form_count": 3,
                "jurisdiction_count": 2,
                "has_foreign_income": "No",
            },
            SCHEDULE_LINEAR,
        )
        breakdown = resolve(result.unwrap(), SCHEDULE_LINEAR)

        assert isinstance(breakdown, QuoteBreakdown)
        assert breakdown.base == Decimal("300")
        assert breakdown.schedule_c == Decimal("0")
        assert breakdown.schedule_d == Decimal("50")
        assert breakdown.schedule_e == Decimal("0")
        assert breakdown.k1_forms == Decimal("300")
        assert breakdown.jurisdictions == Decimal("100")
        assert breakdown.foreign_income_note is None
        assert breakdown.total == Decimal("750")

    @pytest.mark.parametrize(
        "status,deduction,expected",
        [
            (FilingStatus.SINGLE, DeductionType.STANDARD, "300"),
            (FilingStatus.SINGLE, DeductionType.ITEMIZED, "350"),
            (FilingStatus.MARRIED_FILING_SEPARATELY, DeductionType.STANDARD, "300"),
            (FilingStatus.MARRIED_FILING_SEPARATELY, DeductionType.ITEMIZED, "350"),
            (FilingStatus.MARRIED_FILING_JOINTLY, DeductionType.STANDARD, "350"),
            (FilingStatus.MARRIED_FILING_JOINTLY, DeductionType.ITEMIZED, "400"),
        ],
    )
    def test_base_fee_table(self, status, deduction, expected):
        """Base fee is an exact lookup of filing status and deduction type."""
        breakdown = resolve(
            linear_input(filing_status=status, deduction_type=deduction), SCHEDULE_LINEAR
        )
        assert breakdown.base == Decimal(expected)
        assert breakdown.total == Decimal(expected)

    @pytest.mark.parametrize(
        "band,expected",
        [
            (ScheduleCIncomeBand.UNDER_250K, "50"),
            (ScheduleCIncomeBand.AT_OR_OVER_250K, "100"),
        ],
    )
    def test_schedule_c_by_income_band(self, band, expected):
        breakdown = resolve(
            linear_input(has_schedule_c=True, schedule_c_income_band=band), SCHEDULE_LINEAR
        )
        assert breakdown.schedule_c == Decimal(expected)

    def test_all_schedules(self):
        breakdown = resolve(
            linear_input(
                has_schedule_c=True,
                schedule_c_income_band=ScheduleCIncomeBand.UNDER_250K,
                has_schedule_d=True,
                has_schedule_e=True,
            ),
            SCHEDULE_LINEAR,
        )
        assert breakdown.schedule_c + breakdown.schedule_d + breakdown.schedule_e == Decimal("150")

    def test_first_state_is_free(self):
        breakdown = resolve(linear_input(jurisdiction_count=1), SCHEDULE_LINEAR)
        assert breakdown.jurisdictions == Decimal("0")

    def test_jurisdiction_count_below_range_is_clamped(self):
        """Zero states bills like one state, never a negative fee."""
        breakdown = resolve(linear_input(jurisdiction_count=0), SCHEDULE_LINEAR)
        assert breakdown.jurisdictions == Decimal("0")

    def test_k1_count_at_sentinel(self):
        """20+ bills at the per-unit rate for 20."""
        breakdown = resolve(linear_input(k1_form_count=20), SCHEDULE_LINEAR)
        assert breakdown.k1_forms == Decimal("2000")

    @pytest.mark.parametrize("count", [20, 21, 35, 1000])
    def test_k1_count_above_max_matches_sentinel(self, count):
        capped = resolve(linear_input(k1_form_count=count), SCHEDULE_LINEAR)
        sentinel = resolve(linear_input(k1_form_count=20), SCHEDULE_LINEAR)
        assert capped.k1_forms == sentinel.k1_forms

    @pytest.mark.parametrize("count", [10, 11, 50])
    def test_jurisdiction_count_above_max_matches_sentinel(self, count):
        capped = resolve(linear_input(jurisdiction_count=count), SCHEDULE_LINEAR)
        assert capped.jurisdictions == Decimal("900")

    def test_clamping_is_noted_in_audit_log(self):
        breakdown = resolve(linear_input(k1_form_count=25), SCHEDULE_LINEAR)
        k1_step = next(e for e in breakdown.audit_log if e.step == "k1_forms")
        assert k1_step.notes == "capped at 20+"

    def test_k1_fee_is_monotonic(self):
        fees = [
            resolve(linear_input(k1_form_count=n), SCHEDULE_LINEAR).k1_forms for n in range(0, 26)
        ]
        assert fees == sorted(fees)

    def test_jurisdiction_fee_is_monotonic(self):
        fees = [
            resolve(linear_input(jurisdiction_count=n), SCHEDULE_LINEAR).jurisdictions
            for n in range(0, 15)
        ]
        assert fees == sorted(fees)


class TestBandedSchedules:
    """Test suite for banded pricing."""

    def test_home_banded_worked_example(self):
        """Single, owns home, 2-5 K-1s, one extra state prices at 1350."""
        breakdown = resolve(
            banded_input(
                owns_home=True,
                k1_form_band=CountBand.TWO_TO_FIVE,
                jurisdiction_band=CountBand.ONE,
            ),
            HOME_BANDED,
        )

        assert breakdown.base == Decimal("350")
        assert breakdown.home_ownership == Decimal("150")
        assert breakdown.k1_forms == Decimal("600")
        assert breakdown.jurisdictions == Decimal("250")
        assert breakdown.total == Decimal("1350")

    def test_flat_base_ignores_filing_status(self):
        totals = {
            resolve(banded_input(filing_status=status), HOME_BANDED).base
            for status in FilingStatus
        }
        assert totals == {Decimal("350")}

    def test_no_home_no_surcharge(self):
        breakdown = resolve(banded_input(owns_home=False), HOME_BANDED)
        assert breakdown.home_ownership == Decimal("0")
        assert breakdown.total == Decimal("350")

    @pytest.mark.parametrize("schedule", [SCHEDULE_BANDED, HOME_BANDED])
    def test_band_fees_are_monotonic(self, schedule):
        extra = {} if schedule is HOME_BANDED else {"deduction_type": DeductionType.STANDARD}
        k1 = [
            resolve(banded_input(k1_form_band=band, **extra), schedule).k1_forms
            for band in sorted(CountBand, key=lambda b: b.rank)
        ]
        states = [
            resolve(banded_input(jurisdiction_band=band, **extra), schedule).jurisdictions
            for band in sorted(CountBand, key=lambda b: b.rank)
        ]
        assert k1 == sorted(k1)
        assert states == sorted(states)

    def test_schedule_banded_head_of_household(self):
        breakdown = resolve(
            banded_input(
                filing_status=FilingStatus.HEAD_OF_HOUSEHOLD,
                deduction_type=DeductionType.ITEMIZED,
                k1_form_band=CountBand.SIX_TO_FOURTEEN,
                jurisdiction_band=CountBand.FIFTEEN_PLUS,
            ),
            SCHEDULE_BANDED,
        )
        assert breakdown.base == Decimal("375")
        assert breakdown.k1_forms == Decimal("1000")
        assert breakdown.jurisdictions == Decimal("1800")
        assert breakdown.total == Decimal("3175")


class TestForeignIncome:
    """Foreign income routes to consultation instead of a fee."""

    def test_note_added_and_total_unchanged(self):
        without = resolve(linear_input(), SCHEDULE_LINEAR)
        with_foreign = resolve(linear_input(has_foreign_income=True), SCHEDULE_LINEAR)

        assert with_foreign.foreign_income_note == "Discussed during consultation"
        assert with_foreign.total == without.total
        assert "foreign_income_note" not in with_foreign.line_items()

    def test_not_applicable_handling_adds_no_note(self):
        schedule = SCHEDULE_LINEAR.model_copy(
            update={"foreign_income_handling": ForeignIncomeHandling.NOT_APPLICABLE}
        )
        breakdown = resolve(linear_input(has_foreign_income=True), schedule)
        assert breakdown.foreign_income_note is None


class TestResolverProperties:
    """Determinism, totals and audit trail."""

    def test_deterministic(self):
        quote_input = linear_input(
            has_schedule_c=True,
            schedule_c_income_band=ScheduleCIncomeBand.AT_OR_OVER_250K,
            k1_form_count=7,
            jurisdiction_count=4,
            has_foreign_income=True,
        )
        first = resolve(quote_input, SCHEDULE_LINEAR)
        second = resolve(quote_input, SCHEDULE_LINEAR)

        assert first.line_items() == second.line_items()
        assert first.total == second.total
        assert first.foreign_income_note == second.foreign_income_note

    def test_total_is_sum_of_line_items(self):
        breakdown = resolve(
            linear_input(
                filing_status=FilingStatus.MARRIED_FILING_JOINTLY,
                deduction_type=DeductionType.ITEMIZED,
                has_schedule_c=True,
                schedule_c_income_band=ScheduleCIncomeBand.AT_OR_OVER_250K,
                has_schedule_d=True,
                has_schedule_e=True,
                k1_form_count=12,
                jurisdiction_count=6,
            ),
            SCHEDULE_LINEAR,
        )
        assert breakdown.total == sum(breakdown.line_items().values())
        assert breakdown.total == Decimal("2300")

    def test_audit_log_populated(self):
        breakdown = resolve(linear_input(has_foreign_income=True), SCHEDULE_LINEAR)
        steps = [entry.step for entry in breakdown.audit_log]

        assert steps[0] == "base_fee"
        assert "k1_forms" in steps
        assert "jurisdictions" in steps
        assert "foreign_income" in steps

    def test_resolver_instance_is_reusable(self):
        resolver = FeeScheduleResolver(SCHEDULE_LINEAR)
        first = resolver.resolve(linear_input(k1_form_count=1))
        second = resolver.resolve(linear_input(k1_form_count=2))

        assert first.k1_forms == Decimal("100")
        assert second.k1_forms == Decimal("200")
        assert len(first.audit_log) == len(second.audit_log)

    def test_breakdown_names_schedule(self):
        assert resolve(banded_input(), HOME_BANDED).schedule_name == "home_banded"


class TestConfigurationErrors:
    """Inputs the schedule cannot price fail loudly."""

    def test_filing_status_not_offered(self):
        with pytest.raises(FeeScheduleError) as exc_info:
            resolve(linear_input(filing_status=FilingStatus.HEAD_OF_HOUSEHOLD), SCHEDULE_LINEAR)
        assert exc_info.value.recoverable is False
        assert exc_info.value.schedule == "schedule_linear"

    def test_missing_deduction_type(self):
        with pytest.raises(FeeScheduleError):
            resolve(linear_input(deduction_type=None), SCHEDULE_LINEAR)

    def test_band_against_linear_schedule(self):
        quote_input = linear_input(k1_form_count=None, k1_form_band=CountBand.ONE)
        with pytest.raises(FeeScheduleError):
            resolve(quote_input, SCHEDULE_LINEAR)

    def test_count_against_banded_schedule(self):
        quote_input = banded_input(jurisdiction_band=None, jurisdiction_count=3)
        with pytest.raises(FeeScheduleError):
            resolve(quote_input, HOME_BANDED)

    def test_schedules_against_schedule_free_variant(self):
        quote_input = banded_input(has_schedule_d=True)
        with pytest.raises(FeeScheduleError):
            resolve(quote_input, HOME_BANDED)

    def test_unanswered_home_ownership(self):
        quote_input = banded_input(owns_home=None)
        with pytest.raises(FeeScheduleError) as exc_info:
            resolve(quote_input, HOME_BANDED)
        assert exc_info.value.config_key == "home_ownership_fee"

    def test_home_ownership_ignored_without_home_fee(self):
        quote_input = banded_input(owns_home=None, deduction_type=DeductionType.STANDARD)
        breakdown = resolve(quote_input, SCHEDULE_BANDED)
        assert breakdown.home_ownership == Decimal("0")

    def test_filing_status_not_offered_by_flat_fee_schedule(self):
        single_only = HOME_BANDED.model_copy(update={"filing_statuses": (FilingStatus.SINGLE,)})
        quote_input = banded_input(filing_status=FilingStatus.HEAD_OF_HOUSEHOLD)
        with pytest.raises(FeeScheduleError) as exc_info:
            resolve(quote_input, single_only)
        assert exc_info.value.config_key == "filing_statuses"
