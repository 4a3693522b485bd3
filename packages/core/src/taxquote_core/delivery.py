"""Lead delivery and booking redirect collaborators.

Neither collaborator takes part in pricing. Lead delivery forwards a
computed quote to a form relay and an optional webhook; it is
fire-and-forget, so every failure is logged and recorded in the returned
DeliveryReport, never raised. Booking redirect opens an externally supplied
URL when the client accepts a quote.
"""

import threading
import webbrowser
from typing import Any, Callable, Optional
from urllib.parse import quote, urlparse

import requests
import structlog
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import DeliveryError
from .models import QuoteBreakdown, QuoteInput

logger = structlog.get_logger()

DEFAULT_RELAY_URL_TEMPLATE = "https://formsubmit.co/ajax/{destination}"
DEFAULT_TIMEOUT = 10.0
USER_AGENT = "TaxQuote-Delivery/0.1"


class DeliveryAttempt(BaseModel):
    """Outcome of one POST to one delivery target."""

    model_config = ConfigDict(frozen=True)

    target: str
    url: str
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class DeliveryReport(BaseModel):
    """Outcome of delivering one quote to every configured target."""

    model_config = ConfigDict(frozen=True)

    attempts: list[DeliveryAttempt] = Field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return all(a.success for a in self.attempts)


def build_lead_payload(quote_input: QuoteInput, breakdown: QuoteBreakdown) -> dict[str, Any]:
    """Form relay payload: client identity, quote total and the answers behind it."""

    def _yes_no(flag: Optional[bool]) -> str:
        if flag is None:
            return ""
        return "Yes" if flag else "No"

    k1 = quote_input.k1_form_band.value if quote_input.k1_form_band else quote_input.k1_form_count
    states = (
        quote_input.jurisdiction_band.value
        if quote_input.jurisdiction_band
        else quote_input.jurisdiction_count
    )
    return {
        "name": quote_input.client_name,
        "email": quote_input.client_email,
        "quote": str(breakdown.total),
        "schedule": breakdown.schedule_name,
        "filing": quote_input.filing_status.value,
        "deduction": quote_input.deduction_type.value if quote_input.deduction_type else "",
        "scheduleC": _yes_no(quote_input.has_schedule_c),
        "scheduleCIncome": (
            quote_input.schedule_c_income_band.value if quote_input.schedule_c_income_band else ""
        ),
        "scheduleD": _yes_no(quote_input.has_schedule_d),
        "scheduleE": _yes_no(quote_input.has_schedule_e),
        "ownsHome": _yes_no(quote_input.owns_home),
        "k1Forms": k1,
        "states": states,
        "foreignIncome": _yes_no(quote_input.has_foreign_income),
    }


def build_webhook_payload(quote_input: QuoteInput, breakdown: QuoteBreakdown) -> dict[str, Any]:
    """Webhook payload: who asked and what they were quoted."""
    return {
        "name": quote_input.client_name,
        "email": quote_input.client_email,
        "total": str(breakdown.total),
    }


class LeadDelivery:
    """
    Forward computed quotes to a form relay and an optional webhook.

    The relay URL is built from a caller-supplied destination (for the
    default relay, the address leads are mailed to). Without a destination
    the relay is skipped; without a webhook URL the webhook is skipped.
    """

    def __init__(
        self,
        destination: Optional[str] = None,
        webhook_url: Optional[str] = None,
        relay_url_template: str = DEFAULT_RELAY_URL_TEMPLATE,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.destination = destination
        self.webhook_url = webhook_url
        self.relay_url_template = relay_url_template
        self.timeout = timeout
        self.session = session

    @property
    def has_targets(self) -> bool:
        """True when there is a relay destination or a webhook to send to."""
        return bool(self.destination or self.webhook_url)

    @property
    def relay_url(self) -> Optional[str]:
        if not self.destination:
            return None
        return self.relay_url_template.format(destination=quote(self.destination, safe="@"))

    def _send(self, target: str, url: str, payload: dict[str, Any]) -> DeliveryAttempt:
        try:
            post = self.session.post if self.session is not None else requests.post
            response = post(
                url,
                json=payload,
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
                timeout=self.timeout,
            )
        except requests.Timeout:
            error = DeliveryError(
                f"Request timed out after {self.timeout}s", target=target, url=url
            )
        except requests.RequestException as e:
            error = DeliveryError(str(e)[:500], target=target, url=url)
        else:
            if 200 <= response.status_code < 300:
                logger.info("lead_delivered", target=target, status=response.status_code)
                return DeliveryAttempt(
                    target=target, url=url, success=True, status_code=response.status_code
                )
            error = DeliveryError(
                f"HTTP {response.status_code}: {response.text[:500]}",
                target=target,
                url=url,
                status_code=response.status_code,
            )

        return self._failed(error)

    def _failed(self, error: DeliveryError) -> DeliveryAttempt:
        logger.warning("lead_delivery_failed", **error.details, error=error.message)
        return DeliveryAttempt(
            target=error.target,
            url=error.url,
            success=False,
            status_code=error.status_code,
            error=error.message,
        )

    def deliver(self, quote_input: QuoteInput, breakdown: QuoteBreakdown) -> DeliveryReport:
        """
        Send the quote to every configured target.

        Never raises: failures are logged and reported.
        """
        attempts: list[DeliveryAttempt] = []
        try:
            relay_url = self.relay_url
        except (KeyError, IndexError, ValueError) as e:
            attempts.append(
                self._failed(
                    DeliveryError(
                        f"Relay URL template is unusable: {e!r}",
                        target="lead_relay",
                        url=self.relay_url_template,
                    )
                )
            )
        else:
            if relay_url:
                attempts.append(
                    self._send("lead_relay", relay_url, build_lead_payload(quote_input, breakdown))
                )
        if self.webhook_url:
            attempts.append(
                self._send("webhook", self.webhook_url, build_webhook_payload(quote_input, breakdown))
            )
        return DeliveryReport(attempts=attempts)

    def dispatch(self, quote_input: QuoteInput, breakdown: QuoteBreakdown) -> threading.Thread:
        """Deliver on a daemon thread so the caller never waits on the network."""
        thread = threading.Thread(
            target=self.deliver,
            args=(quote_input, breakdown),
            name="taxquote-lead-delivery",
            daemon=True,
        )
        thread.start()
        return thread


class BookingRedirect:
    """Open the booking page when a client accepts a quote."""

    def __init__(self, url: Optional[str], opener: Optional[Callable[[str], Any]] = None):
        self.url = url
        self._opener = opener

    @property
    def is_available(self) -> bool:
        """True when a usable http(s) booking URL was supplied."""
        if not self.url:
            return False
        parsed = urlparse(self.url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    def accept(self) -> bool:
        """Open the booking URL. Returns False when there is nothing to open."""
        if not self.is_available:
            logger.info("booking_redirect_skipped", url=self.url)
            return False
        opener = self._opener or webbrowser.open
        opener(self.url)
        logger.info("booking_redirect_opened", url=self.url)
        return True
