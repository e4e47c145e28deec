"""Provider checkout requests and opening them in a separate browsing context."""

import asyncio
import html
import logging
import tempfile
import webbrowser
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlencode

import aiofiles

from ..config import PaymentConfig
from ..models.catalog import get_plan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutRequest:
    """Where and how to send the user to pay."""

    url: str
    method: str = "GET"
    fields: dict[str, str] = field(default_factory=dict)

    @property
    def is_post(self) -> bool:
        return self.method.upper() == "POST"

    def browser_url(self) -> str:
        """URL that reaches the checkout with a plain navigation (GET only)."""
        if not self.fields:
            return self.url
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{urlencode(self.fields)}"


def build_checkout_request(tier: str, config: PaymentConfig, email: str | None = None) -> CheckoutRequest:
    """Build the provider's hosted-checkout form for a paid tier.

    Uses the per-tier URL when one is configured, otherwise the provider's
    process URL with the merchant form fields.

    Raises:
        ValueError: If the tier is unknown or free
    """
    plan = get_plan(tier)
    if not plan.is_paid:
        raise ValueError(f"Tier {tier} does not require payment")

    if tier_url := config.tier_urls.get(plan.tier.value):
        return CheckoutRequest(url=tier_url)

    fields = {
        "merchant_id": config.merchant_id,
        "merchant_key": config.merchant_key,
        "return_url": config.return_url,
        "cancel_url": config.cancel_url,
        "notify_url": config.notify_url,
        "amount": f"{plan.price:.2f}",
        "item_name": f"{plan.name} Subscription - Academic Document Translator",
        "item_description": f"{plan.name} plan with {plan.limit_label} translations",
        "custom_str1": plan.tier.value,
    }
    if email:
        fields["email_address"] = email
    return CheckoutRequest(url=config.provider_url, method="POST", fields=fields)


def render_autosubmit_form(request: CheckoutRequest) -> str:
    """Render an HTML page that immediately POSTs the checkout form."""
    inputs = "\n".join(
        f'    <input type="hidden" name="{html.escape(name, quote=True)}" value="{html.escape(value, quote=True)}">'
        for name, value in request.fields.items()
    )
    return (
        "<!DOCTYPE html>\n"
        "<html><head><meta charset=\"utf-8\"><title>Redirecting to payment...</title></head>\n"
        '<body onload="document.forms[0].submit()">\n'
        f'  <form method="post" action="{html.escape(request.url, quote=True)}">\n'
        f"{inputs}\n"
        '    <noscript><button type="submit">Continue to payment</button></noscript>\n'
        "  </form>\n"
        "</body></html>\n"
    )


class BrowserCheckoutLauncher:
    """Opens checkout requests in the system web browser."""

    def __init__(self, scratch_dir: str | Path | None = None) -> None:
        self.scratch_dir = Path(scratch_dir) if scratch_dir else Path(tempfile.gettempdir())

    async def open(self, request: CheckoutRequest) -> bool:
        """Open the checkout page; returns whether a browser accepted it."""
        if request.is_post:
            page = self.scratch_dir / "translator-checkout.html"
            async with aiofiles.open(page, "w", encoding="utf-8") as f:
                await f.write(render_autosubmit_form(request))
            target = page.resolve().as_uri()
        else:
            target = request.browser_url()

        opened = await asyncio.to_thread(webbrowser.open, target, 2)
        if not opened:
            logger.warning(f"No browser available; open this page manually: {target}")
        return opened
