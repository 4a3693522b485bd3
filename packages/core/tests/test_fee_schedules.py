"""Tests for fee schedule definitions and loading."""

import json
from decimal import Decimal

import pytest

from taxquote_core import (
    BUILTIN_SCHEDULES,
    HOME_BANDED,
    SCHEDULE_BANDED,
    SCHEDULE_LINEAR,
    CountBand,
    CountRange,
    FeeScheduleConfig,
    FeeScheduleError,
    FilingStatus,
    PricingMode,
    get_fee_schedule,
    list_fee_schedules,
    load_fee_schedule,
    parse_fee_schedule,
)
from taxquote_core.fee_schedules import dump_fee_schedule


@pytest.fixture
def linear_document() -> dict:
    """JSON document for the linear schedule, ready to be broken."""
    return dump_fee_schedule(SCHEDULE_LINEAR)


@pytest.fixture
def banded_document() -> dict:
    return dump_fee_schedule(HOME_BANDED)


class TestCountRange:
    """Test suite for CountRange."""

    @pytest.mark.parametrize("count,expected", [(-3, 0), (0, 0), (7, 7), (20, 20), (21, 20)])
    def test_clamp(self, count, expected):
        assert CountRange(minimum=0, maximum=20).clamp(count) == expected

    def test_sentinel_label(self):
        assert CountRange(minimum=1, maximum=10).sentinel_label == "10+"

    def test_minimum_above_maximum(self):
        with pytest.raises(ValueError):
            CountRange(minimum=5, maximum=2)

    def test_negative_minimum(self):
        with pytest.raises(ValueError):
            CountRange(minimum=-1, maximum=2)


class TestBuiltinSchedules:
    """The shipped schedules are complete and distinct."""

    def test_registry(self):
        assert list_fee_schedules() == ["home_banded", "schedule_banded", "schedule_linear"]
        assert get_fee_schedule("schedule_linear") is SCHEDULE_LINEAR

    def test_unknown_schedule(self):
        with pytest.raises(FeeScheduleError) as exc_info:
            get_fee_schedule("schedule_quadratic")
        assert exc_info.value.details["actual"] == "schedule_quadratic"

    def test_pricing_modes(self):
        assert SCHEDULE_LINEAR.pricing_mode == PricingMode.LINEAR
        assert SCHEDULE_BANDED.pricing_mode == PricingMode.BANDED
        assert HOME_BANDED.pricing_mode == PricingMode.BANDED

    def test_variant_axes(self):
        assert SCHEDULE_LINEAR.has_deduction_axis and SCHEDULE_LINEAR.has_schedules
        assert not SCHEDULE_LINEAR.has_home_ownership
        assert not HOME_BANDED.has_deduction_axis and not HOME_BANDED.has_schedules
        assert HOME_BANDED.has_home_ownership

    def test_linear_schedule_offers_three_statuses(self):
        assert FilingStatus.HEAD_OF_HOUSEHOLD not in SCHEDULE_LINEAR.filing_statuses
        assert len(SCHEDULE_LINEAR.filing_statuses) == 3

    @pytest.mark.parametrize("schedule", list(BUILTIN_SCHEDULES.values()))
    def test_band_tables_cover_every_band(self, schedule):
        if schedule.is_linear:
            assert schedule.k1_band_fees is None
            return
        assert set(schedule.k1_band_fees) == set(CountBand)
        assert set(schedule.jurisdiction_band_fees) == set(CountBand)

    def test_schedules_are_immutable(self):
        with pytest.raises(ValueError):
            SCHEDULE_LINEAR.flat_base_fee = Decimal("1")


class TestScheduleSelfValidation:
    """Incomplete or inconsistent schedules fail at load time."""

    def test_dump_and_parse(self, linear_document):
        schedule = parse_fee_schedule(linear_document)
        assert dump_fee_schedule(schedule) == linear_document
        assert schedule.base_fee_table == SCHEDULE_LINEAR.base_fee_table

    def test_missing_base_fee_row(self, linear_document):
        del linear_document["base_fee_table"]["single"]
        with pytest.raises(FeeScheduleError) as exc_info:
            parse_fee_schedule(linear_document)
        assert any("single" in e for e in exc_info.value.details["errors"])

    def test_missing_deduction_fee(self, linear_document):
        del linear_document["base_fee_table"]["married_filing_jointly"]["itemized"]
        with pytest.raises(FeeScheduleError):
            parse_fee_schedule(linear_document)

    def test_missing_schedule_c_band(self, linear_document):
        del linear_document["schedule_c_fee_table"]["at_or_over_250k"]
        with pytest.raises(FeeScheduleError):
            parse_fee_schedule(linear_document)

    def test_partial_schedule_fees(self, linear_document):
        del linear_document["schedule_e_fee"]
        with pytest.raises(FeeScheduleError):
            parse_fee_schedule(linear_document)

    def test_flat_and_table_base_fee(self, linear_document):
        linear_document["flat_base_fee"] = "350"
        with pytest.raises(FeeScheduleError):
            parse_fee_schedule(linear_document)

    def test_no_base_fee(self, banded_document):
        del banded_document["flat_base_fee"]
        with pytest.raises(FeeScheduleError):
            parse_fee_schedule(banded_document)

    def test_mixed_pricing_representations(self, linear_document, banded_document):
        linear_document["k1_band_fees"] = banded_document["k1_band_fees"]
        with pytest.raises(FeeScheduleError) as exc_info:
            parse_fee_schedule(linear_document)
        assert any("cannot be mixed" in e for e in exc_info.value.details["errors"])

    def test_linear_fields_required(self, linear_document):
        del linear_document["k1_count_range"]
        with pytest.raises(FeeScheduleError):
            parse_fee_schedule(linear_document)

    def test_missing_band(self, banded_document):
        del banded_document["jurisdiction_band_fees"]["15+"]
        with pytest.raises(FeeScheduleError):
            parse_fee_schedule(banded_document)

    def test_decreasing_band_fees(self, banded_document):
        banded_document["k1_band_fees"]["15+"] = "100"
        with pytest.raises(FeeScheduleError) as exc_info:
            parse_fee_schedule(banded_document)
        assert any("must not decrease" in e for e in exc_info.value.details["errors"])

    def test_negative_fee(self, linear_document):
        linear_document["schedule_d_fee"] = "-5"
        with pytest.raises(FeeScheduleError):
            parse_fee_schedule(linear_document)

    def test_jurisdictions_start_at_one(self, linear_document):
        linear_document["jurisdiction_count_range"] = {"minimum": 0, "maximum": 10}
        with pytest.raises(FeeScheduleError):
            parse_fee_schedule(linear_document)

    def test_unknown_keys_rejected(self, linear_document):
        linear_document["surprise_fee"] = "10"
        with pytest.raises(FeeScheduleError):
            parse_fee_schedule(linear_document)

    def test_direct_construction_raises_value_error(self):
        with pytest.raises(ValueError):
            FeeScheduleConfig(
                name="broken",
                pricing_mode=PricingMode.BANDED,
                filing_statuses=(FilingStatus.SINGLE,),
                flat_base_fee=Decimal("100"),
            )


class TestLoadFeeSchedule:
    """Loading schedules from JSON files."""

    def test_load_from_file(self, tmp_path, banded_document):
        banded_document["name"] = "home_banded_2026"
        banded_document["flat_base_fee"] = "375"
        path = tmp_path / "schedule.json"
        path.write_text(json.dumps(banded_document), encoding="utf-8")

        schedule = load_fee_schedule(path)

        assert schedule.name == "home_banded_2026"
        assert schedule.flat_base_fee == Decimal("375")
        assert schedule.k1_band_fees[CountBand.TWO_TO_FIVE] == Decimal("600")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FeeScheduleError) as exc_info:
            load_fee_schedule(tmp_path / "nope.json")
        assert exc_info.value.config_key == "fee_schedule_path"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "schedule.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(FeeScheduleError):
            load_fee_schedule(path)
