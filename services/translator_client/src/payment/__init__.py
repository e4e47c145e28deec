"""Subscription upgrade payments."""

from .checkout import BrowserCheckoutLauncher, CheckoutRequest, build_checkout_request, render_autosubmit_form
from .flow import PaymentReconciliationFlow, parse_redirect

__all__ = [
    "BrowserCheckoutLauncher",
    "CheckoutRequest",
    "PaymentReconciliationFlow",
    "build_checkout_request",
    "parse_redirect",
    "render_autosubmit_form",
]
