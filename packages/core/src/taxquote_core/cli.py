"""Command line quotes.

Usage:
    taxquote schedules
    taxquote schedules --show home_banded
    taxquote quote --name "Jane Doe" --email jane@example.com \\
        --filing-status single --deduction standard --schedule-d yes \\
        --k1-forms 3 --states 2
    taxquote quote --schedule home_banded --name "Jane Doe" --email jane@example.com \\
        --filing-status single --owns-home yes --k1-forms 2-5 --states 1

--k1-forms and --states take a count for linear schedules and a band
("0", "1", "2-5", "6-14", "15+") for banded ones.

Exit codes: 0 quoted, 1 configuration error, 2 invalid input.
"""

import argparse
import json
import sys
from typing import Any, Optional

from pydantic import ValidationError

from .config import TaxQuoteSettings, configure_logging, load_active_schedule
from .delivery import BookingRedirect, LeadDelivery
from .exceptions import FeeScheduleError
from .fee_schedules import (
    BUILTIN_SCHEDULES,
    FeeScheduleConfig,
    dump_fee_schedule,
    get_fee_schedule,
    list_fee_schedules,
    load_fee_schedule,
)
from .resolver import FeeScheduleResolver
from .validator import validate


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taxquote",
        description="Price tax-preparation work from a few client answers",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override TAXQUOTE_LOG_LEVEL (DEBUG shows every calculation step)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    schedules = sub.add_parser("schedules", help="List built-in fee schedules")
    schedules.add_argument("--show", metavar="NAME", help="Print one schedule as JSON")

    q = sub.add_parser("quote", help="Compute a quote")
    q.add_argument("--schedule", help="Built-in schedule name (default: TAXQUOTE_FEE_SCHEDULE)")
    q.add_argument("--schedule-file", help="JSON fee schedule document")
    q.add_argument("--name", dest="client_name", default="")
    q.add_argument("--email", dest="client_email", default="")
    q.add_argument("--filing-status", default="")
    q.add_argument("--deduction", dest="deduction_type", default="")
    q.add_argument("--schedule-c", dest="has_schedule_c", default="", help="yes/no")
    q.add_argument("--schedule-c-income", dest="schedule_c_income_band", default="",
                   help="under_250k or at_or_over_250k")
    q.add_argument("--schedule-d", dest="has_schedule_d", default="", help="yes/no")
    q.add_argument("--schedule-e", dest="has_schedule_e", default="", help="yes/no")
    q.add_argument("--owns-home", default="", help="yes/no")
    q.add_argument("--k1-forms", default="", help="Count or band")
    q.add_argument("--states", default="", help="Count (linear) or extra-state band (banded)")
    q.add_argument("--foreign-income", dest="has_foreign_income", default="", help="yes/no")
    q.add_argument("--send-to", help="Forward the quote to this lead relay destination")
    q.add_argument("--webhook-url", help="Also POST a summary to this webhook")
    q.add_argument("--book", action="store_true", help="Open the booking page afterwards")
    q.add_argument("--booking-url", help="Override TAXQUOTE_BOOKING_URL")
    q.add_argument("--audit", action="store_true", help="Include the calculation audit log")
    return parser


def _form_state(args: argparse.Namespace, schedule: FeeScheduleConfig) -> dict[str, Any]:
    """Map CLI answers onto QuoteRequest fields for the schedule's pricing mode."""
    state = {
        key: getattr(args, key)
        for key in (
            "client_name",
            "client_email",
            "filing_status",
            "deduction_type",
            "has_schedule_c",
            "schedule_c_income_band",
            "has_schedule_d",
            "has_schedule_e",
            "owns_home",
            "has_foreign_income",
        )
    }
    if schedule.is_linear:
        state["k1_form_count"] = args.k1_forms
        state["jurisdiction_count"] = args.states
    else:
        state["k1_form_band"] = args.k1_forms
        state["jurisdiction_band"] = args.states
    return state


def _select_schedule(args: argparse.Namespace, settings: TaxQuoteSettings) -> FeeScheduleConfig:
    if args.schedule_file:
        return load_fee_schedule(args.schedule_file)
    if args.schedule:
        return get_fee_schedule(args.schedule)
    return load_active_schedule(settings)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _cmd_schedules(args: argparse.Namespace) -> int:
    if args.show:
        _print_json(dump_fee_schedule(get_fee_schedule(args.show)))
        return 0
    for name in list_fee_schedules():
        schedule = BUILTIN_SCHEDULES[name]
        print(f"{name:<18} {schedule.pricing_mode.value:<7} {schedule.description}")
    return 0


def _cmd_quote(args: argparse.Namespace, settings: TaxQuoteSettings) -> int:
    schedule = _select_schedule(args, settings)
    result = validate(_form_state(args, schedule), schedule)
    if not result.is_valid:
        _print_json({"errors": [e.model_dump() for e in result.errors]})
        return 2

    quote_input = result.quote_input
    breakdown = FeeScheduleResolver(schedule).resolve(quote_input)
    exclude = None if args.audit else {"audit_log"}
    _print_json(breakdown.model_dump(mode="json", exclude=exclude))

    destination = args.send_to or (
        settings.delivery.lead_destination if settings.delivery.enabled else None
    )
    webhook_url = args.webhook_url or (
        settings.delivery.webhook_url if settings.delivery.enabled else None
    )
    if destination or webhook_url:
        delivery = LeadDelivery(
            destination=destination,
            webhook_url=webhook_url,
            relay_url_template=settings.delivery.relay_url_template,
            timeout=settings.delivery.timeout,
        )
        # The process is about to exit, so deliver in the foreground
        report = delivery.deliver(quote_input, breakdown)
        for attempt in report.attempts:
            if not attempt.success:
                print(f"warning: {attempt.target} delivery failed: {attempt.error}", file=sys.stderr)

    if args.book:
        BookingRedirect(args.booking_url or settings.booking_url).accept()
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = TaxQuoteSettings()
    except ValidationError as e:
        print("error: invalid TAXQUOTE_* settings", file=sys.stderr)
        for err in e.errors():
            print(f"  {'.'.join(map(str, err['loc']))}: {err['msg']}", file=sys.stderr)
        return 1
    configure_logging(args.log_level or settings.log_level)

    try:
        if args.command == "schedules":
            return _cmd_schedules(args)
        return _cmd_quote(args, settings)
    except FeeScheduleError as e:
        print(f"error: {e}", file=sys.stderr)
        for key, value in e.details.items():
            print(f"  {key}: {value}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
