"""Quote service: validate, price and forward a quote request.

This is the caller-side composition the core leaves to its users. The
validator gates the request, the resolver prices it, and delivery is
dispatched in the background so it can never block or fail a quote.
"""

from collections.abc import Mapping
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .config import TaxQuoteSettings, load_active_schedule
from .delivery import BookingRedirect, LeadDelivery
from .fee_schedules import FeeScheduleConfig
from .models import FieldError, QuoteBreakdown, QuoteInput, QuoteRequest
from .resolver import FeeScheduleResolver
from .validator import validate

logger = structlog.get_logger()


class QuoteOutcome(BaseModel):
    """Result of QuoteService.quote(): a priced quote or field errors."""

    model_config = ConfigDict(frozen=True)

    quote_input: Optional[QuoteInput] = None
    breakdown: Optional[QuoteBreakdown] = None
    errors: list[FieldError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.breakdown is not None


class QuoteService:
    """
    Quote requests end to end for one fee schedule.

    Example:
        service = QuoteService.from_settings(TaxQuoteSettings())
        outcome = service.quote({"client_name": "Jane", ...})
        if outcome.ok:
            print(outcome.breakdown.total)
    """

    def __init__(
        self,
        schedule: FeeScheduleConfig,
        delivery: Optional[LeadDelivery] = None,
        booking: Optional[BookingRedirect] = None,
    ):
        self.schedule = schedule
        self.resolver = FeeScheduleResolver(schedule)
        self.delivery = delivery
        self.booking = booking or BookingRedirect(None)

    @classmethod
    def from_settings(cls, settings: TaxQuoteSettings) -> "QuoteService":
        """Build a service from settings, loading the configured schedule."""
        delivery = None
        if settings.delivery.enabled:
            delivery = LeadDelivery(
                destination=settings.delivery.lead_destination,
                webhook_url=settings.delivery.webhook_url,
                relay_url_template=settings.delivery.relay_url_template,
                timeout=settings.delivery.timeout,
            )
            if not delivery.has_targets:
                logger.warning(
                    "lead_delivery_unconfigured",
                    reason="delivery enabled without a lead destination or webhook URL",
                )
                delivery = None
        return cls(
            schedule=load_active_schedule(settings),
            delivery=delivery,
            booking=BookingRedirect(settings.booking_url),
        )

    def quote(self, raw: Union[QuoteRequest, Mapping[str, Any]]) -> QuoteOutcome:
        """
        Validate and price a quote request, then forward it.

        Returns:
            QuoteOutcome with the breakdown, or with field errors when the
            request is invalid (nothing is priced or sent in that case)

        Raises:
            FeeScheduleError: If the schedule cannot price a validated input
        """
        result = validate(raw, self.schedule)
        if not result.is_valid:
            return QuoteOutcome(errors=result.errors)

        quote_input = result.quote_input
        breakdown = self.resolver.resolve(quote_input)

        if self.delivery is not None:
            self.delivery.dispatch(quote_input, breakdown)

        return QuoteOutcome(quote_input=quote_input, breakdown=breakdown)

    def accept(self) -> bool:
        """Client accepted the quote: open the booking page if one is configured."""
        return self.booking.accept()
