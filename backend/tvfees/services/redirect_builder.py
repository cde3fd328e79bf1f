"""Deep links for the payment-app redirect channel.

A successful launch only means an external app opened. It never confirms a
payment: the payer still has to supply the transaction reference and proof,
and an admin reviews them.
"""

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from urllib.parse import parse_qsl, quote, urlencode, urlsplit

from tvfees.core.errors import ExternalRedirectUnavailable, ValidationError
from tvfees.models.shared import quantize

logger = logging.getLogger(__name__)

MAX_REFERENCE_LENGTH = 35
ID_SHARE = 0.4

_EXTERNAL_REFERENCE_RE = re.compile(r"^[A-Za-z0-9]{8,50}$")


def safe_reference(
    prefix: str,
    entity_id: str,
    timestamp: int | str,
    separator: str = "_",
    max_length: int = MAX_REFERENCE_LENGTH,
) -> str:
    """Join prefix, id and timestamp, truncating to ``max_length`` deterministically.

    The prefix is always kept whole. What is left goes 40% to the head of the
    id and the rest to the tail of the timestamp, where consecutive values
    differ.
    """
    stamp = str(timestamp)
    joined = separator.join([prefix, entity_id, stamp])
    if len(joined) <= max_length:
        return joined

    remaining = max_length - len(prefix) - 2 * len(separator)
    if remaining <= 0:
        raise ValidationError(
            "Reference prefix leaves no room for the id", prefix=prefix, max_length=max_length
        )

    id_length = round(remaining * ID_SHARE)
    stamp_length = remaining - id_length
    return separator.join([prefix, entity_id[:id_length], stamp[-stamp_length:]])


def is_valid_external_reference(reference: str | None) -> bool:
    """Payment-app transaction ids are 8-50 alphanumeric characters."""
    if not reference:
        return False
    return _EXTERNAL_REFERENCE_RE.match(reference.strip()) is not None


@dataclass(frozen=True)
class DeepLinkRequest:
    payee_id: str
    payee_name: str
    merchant_code: str
    transaction_id: str
    transaction_ref: str
    note: str
    amount: Decimal
    currency: str = "INR"
    scheme: str = "upi"


def build_deep_link(request: DeepLinkRequest) -> str:
    """Render ``scheme://pay?pa=..&pn=..&mc=..&tid=..&tr=..&tn=..&am=..&cu=..``."""
    amount = quantize(request.amount)
    if amount <= 0:
        raise ValidationError("Redirect amount must be positive", amount=request.amount)
    for name, value in (("tid", request.transaction_id), ("tr", request.transaction_ref)):
        if not value or len(value) > MAX_REFERENCE_LENGTH:
            raise ValidationError(
                f"{name} must be 1-{MAX_REFERENCE_LENGTH} characters", field=name, value=value
            )
    if not request.payee_id or not request.payee_name:
        raise ValidationError("Payee id and name are required")

    params = [
        ("pa", request.payee_id),
        ("pn", request.payee_name),
        ("mc", request.merchant_code),
        ("tid", request.transaction_id),
        ("tr", request.transaction_ref),
        ("tn", request.note),
        ("am", f"{amount:.2f}"),
        ("cu", request.currency),
    ]
    return f"{request.scheme}://pay?{urlencode(params, safe='@', quote_via=quote)}"


def parse_deep_link(url: str) -> dict[str, str]:
    """Return the query fields of a payment deep link."""
    parts = urlsplit(url)
    if parts.netloc != "pay":
        raise ValidationError("Not a payment deep link", url=url)
    return dict(parse_qsl(parts.query, keep_blank_values=True))


def build_intent_link(deep_link: str) -> str:
    """Android intent wrapper around a deep link, falling back to the link itself."""
    parts = urlsplit(deep_link)
    return (
        f"intent://pay?{parts.query}#Intent;scheme={parts.scheme};"
        "action=android.intent.action.VIEW;"
        f"S.browser_fallback_url={quote(deep_link, safe='')};end"
    )


def manual_instructions(deep_link: str) -> str:
    """Plain-text steps for paying by hand when no app could be opened."""
    fields = parse_deep_link(deep_link)
    return "\n".join(
        [
            "Open any payment app and choose Pay / Send Money.",
            f"Payee ID: {fields.get('pa', '')}",
            f"Payee name: {fields.get('pn', '')}",
            f"Amount: {fields.get('am', '')} {fields.get('cu', '')}",
            f"Note: {fields.get('tn', '')}",
            f"Reference: {fields.get('tr', '')}",
            "After paying, submit the transaction reference and a screenshot for review.",
        ]
    )


Opener = Callable[[str], bool]


@dataclass(frozen=True)
class LaunchStrategy:
    name: str
    opener: Opener
    use_intent_link: bool = False


@dataclass(frozen=True)
class RedirectOutcome:
    deep_link: str
    intent_link: str
    launched: bool
    strategy: str | None
    message: str
    manual_instructions: str | None = None


class RedirectLauncher:
    """Tries each launch strategy in order until one reports an app opened."""

    def __init__(self, strategies: Sequence[LaunchStrategy]):
        self.strategies = list(strategies)

    def launch(self, deep_link: str) -> str:
        """Return the name of the strategy that opened an app.

        Raises ExternalRedirectUnavailable when every strategy fails.
        """
        intent_link = build_intent_link(deep_link)
        failures: dict[str, str] = {}
        for strategy in self.strategies:
            target = intent_link if strategy.use_intent_link else deep_link
            try:
                opened = strategy.opener(target)
            except Exception as exc:
                logger.warning("Launch strategy %s raised: %s", strategy.name, exc)
                failures[strategy.name] = str(exc) or type(exc).__name__
                continue
            if opened:
                return strategy.name
            failures[strategy.name] = "no app handled the link"

        raise ExternalRedirectUnavailable("No payment app could be opened", **failures)


def prepare_redirect(
    request: DeepLinkRequest, launcher: RedirectLauncher | None
) -> RedirectOutcome:
    """Build the links and attempt a launch, degrading to manual instructions."""
    deep_link = build_deep_link(request)
    intent_link = build_intent_link(deep_link)

    if launcher is None:
        return RedirectOutcome(
            deep_link=deep_link,
            intent_link=intent_link,
            launched=False,
            strategy=None,
            message="Open the link in a payment app, then submit the transaction reference",
            manual_instructions=manual_instructions(deep_link),
        )

    try:
        strategy = launcher.launch(deep_link)
    except ExternalRedirectUnavailable as exc:
        logger.warning("Redirect launch degraded to manual path: %s", exc.context)
        return RedirectOutcome(
            deep_link=deep_link,
            intent_link=intent_link,
            launched=False,
            strategy=None,
            message=exc.message,
            manual_instructions=manual_instructions(deep_link),
        )

    return RedirectOutcome(
        deep_link=deep_link,
        intent_link=intent_link,
        launched=True,
        strategy=strategy,
        message="Payment app opened; submit the transaction reference once paid",
    )
