#!/usr/bin/env python3
"""
Quote Engine Demonstration

This script walks one client through each built-in fee schedule:
1. Validate raw form answers against the schedule
2. Resolve the itemized quote
3. Print the breakdown and its audit trail

Run: python examples/quote_demo.py
"""

from taxquote_core import (
    BUILTIN_SCHEDULES,
    FeeScheduleResolver,
    QuoteBreakdown,
    validate,
)


SAMPLE_FORMS = {
    "schedule_linear": {
        "client_name": "John Smith",
        "client_email": "john.smith@example.com",
        "filing_status": "Married Filing Jointly",
        "deduction_type": "Itemized",
        "has_schedule_c": "Yes",
        "schedule_c_income_band": "< $250,000",
        "has_schedule_d": "Yes",
        "has_schedule_e": "No",
        "k1_form_count": 4,
        "jurisdiction_count": 3,
        "has_foreign_income": "Yes",
    },
    "schedule_banded": {
        "client_name": "John Smith",
        "client_email": "john.smith@example.com",
        "filing_status": "Head of Household",
        "deduction_type": "Standard",
        "has_schedule_e": "Yes",
        "k1_form_band": "2-5",
        "jurisdiction_band": "1",
        "has_foreign_income": "No",
    },
    "home_banded": {
        "client_name": "John Smith",
        "client_email": "john.smith@example.com",
        "filing_status": "Single",
        "owns_home": "Yes",
        "k1_form_band": "2-5",
        "jurisdiction_band": "1",
        "has_foreign_income": "No",
    },
}


def print_breakdown(breakdown: QuoteBreakdown) -> None:
    """Print line items, total and audit trail."""
    for name, amount in breakdown.line_items().items():
        if amount:
            print(f"  {name.replace('_', ' ').title():<22} ${amount:>9,.2f}")
    print(f"  {'-' * 33}")
    print(f"  {'Total':<22} ${breakdown.total:>9,.2f}")
    if breakdown.foreign_income_note:
        print(f"  Foreign income: {breakdown.foreign_income_note}")

    print()
    print("  Audit trail:")
    for entry in breakdown.audit_log:
        line = f"    {entry.step:<16} {entry.input_value} -> {entry.output_value}"
        if entry.notes:
            line += f" ({entry.notes})"
        print(line)


def main():
    print("=" * 70)
    print("TAX PREPARATION QUOTES")
    print("=" * 70)

    for name, form in SAMPLE_FORMS.items():
        schedule = BUILTIN_SCHEDULES[name]
        print()
        print(f"{name}: {schedule.description}")
        print("-" * 70)

        result = validate(form, schedule)
        if not result.is_valid:
            for error in result.errors:
                print(f"  ! {error.field}: {error.message}")
            continue

        breakdown = FeeScheduleResolver(schedule).resolve(result.quote_input)
        print_breakdown(breakdown)

    print()
    print("=" * 70)
    print("Demo complete!")
    print("=" * 70)


if __name__ == "__main__":
    main()
