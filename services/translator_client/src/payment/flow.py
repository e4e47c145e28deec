"""
Payment reconciliation flow.

The provider's own completion notice does not upgrade the account. After
paying in a separate browsing context the user asserts "I've paid" (or the
provider redirects back), and the client asks the server to verify and apply
the upgrade. The pending tier is persisted so the flow survives a full
navigation or reload.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol
from urllib.parse import parse_qsl, urlparse

from ..api.client import TranslationAPIClient
from ..config import PaymentConfig
from ..exceptions import AuthenticationRequiredError, TranslatorClientError
from ..models.catalog import UserTier, get_plan
from ..models.payment import PaymentIntent, PaymentState, RedirectOutcome
from ..notices import NoticeBoard
from ..session.manager import SessionManager
from ..storage.base import SessionStore
from .checkout import BrowserCheckoutLauncher, CheckoutRequest, build_checkout_request

logger = logging.getLogger(__name__)

_OUTCOME_VALUES = {
    "success": RedirectOutcome.SUCCESS,
    "complete": RedirectOutcome.SUCCESS,
    "completed": RedirectOutcome.SUCCESS,
    "cancel": RedirectOutcome.CANCELLED,
    "cancelled": RedirectOutcome.CANCELLED,
    "canceled": RedirectOutcome.CANCELLED,
}


class CheckoutLauncher(Protocol):
    async def open(self, request: CheckoutRequest) -> bool: ...


def parse_redirect(location: str | Mapping[str, str]) -> RedirectOutcome | None:
    """Recognize a payment-provider redirect in a URL, query string or parsed query.

    Understands ``?payment=success``, ``?payment=cancelled`` (also ``status=``)
    and the bare ``/success`` and ``/cancel`` return paths.
    """
    if isinstance(location, Mapping):
        params = {str(k).lower(): str(v).lower() for k, v in location.items()}
        path = ""
    else:
        parsed = urlparse(location if "://" in location or location.startswith(("/", "?")) else f"?{location}")
        params = {k.lower(): v.lower() for k, v in parse_qsl(parsed.query)}
        path = parsed.path.rstrip("/").lower()

    for key in ("payment", "payment_status", "status"):
        if outcome := _OUTCOME_VALUES.get(params.get(key, "")):
            return outcome

    last_segment = path.rsplit("/", 1)[-1] if path else ""
    return _OUTCOME_VALUES.get(last_segment)


class PaymentReconciliationFlow:
    """Bridges the redirect-based external payment with the server's verify-and-upgrade step."""

    def __init__(
        self,
        api: TranslationAPIClient,
        session: SessionManager,
        store: SessionStore,
        notices: NoticeBoard,
        config: PaymentConfig | None = None,
        launcher: CheckoutLauncher | None = None,
    ) -> None:
        self.api = api
        self.session = session
        self.store = store
        self.notices = notices
        self.config = config or PaymentConfig()
        self.launcher = launcher or BrowserCheckoutLauncher()
        self.intent = PaymentIntent()
        self.checkout: CheckoutRequest | None = None
        self._listeners: list[Callable[[PaymentIntent], Any]] = []

        session.add_signed_out_listener(self._on_signed_out)

    @property
    def state(self) -> PaymentState:
        return self.intent.state

    def add_listener(self, listener: Callable[[PaymentIntent], Any]) -> None:
        self._listeners.append(listener)

    async def select_tier(self, tier: str) -> bool:
        """Start purchasing a paid tier: persist the marker and open the payment page.

        Returns:
            True if the flow is now awaiting the external payment
        """
        try:
            plan = get_plan(tier)
        except ValueError:
            self.notices.error(f"Unknown subscription tier: {tier}")
            return False

        user = self.session.user
        if not self.session.is_authenticated or user is None:
            self.notices.error("Please sign in to upgrade your plan")
            return False
        if user.tier is plan.tier:
            self.notices.info(f"You are already on the {plan.name} plan")
            return False
        if not plan.is_paid:
            self.notices.info(f"The {plan.name} plan does not require payment")
            return False
        if self.state is PaymentState.AWAITING_VERIFICATION:
            self.notices.info("A payment is already being verified")
            return False

        request = await self._checkout_request(plan.tier, user.email)
        if request is None:
            return False

        await self.store.save(pending_payment_tier=plan.tier.value)
        self.checkout = request
        self._set(PaymentIntent(PaymentState.AWAITING_EXTERNAL_ACTION, plan.tier.value))
        logger.info(f"Awaiting external payment for tier {plan.tier.value}")

        await self._open_checkout(request)
        self.notices.info(
            f"Complete the {plan.name} payment in the opened page, then confirm that you've paid "
            "to activate your plan."
        )
        return True

    async def reopen_payment_page(self) -> bool:
        if self.state is not PaymentState.AWAITING_EXTERNAL_ACTION or self.checkout is None:
            self.notices.info("There is no payment page to reopen")
            return False
        return await self._open_checkout(self.checkout)

    async def confirm_paid(self) -> bool:
        """The user asserts the external payment is done; verify it."""
        return await self.verify()

    async def verify(self) -> bool:
        """Ask the server to verify the payment and apply the upgrade.

        Safe to repeat: the server decides whether an upgrade was already applied.

        Returns:
            True if the upgrade is verified
        """
        tier = self.intent.tier or (await self.store.load()).pending_payment_tier
        if tier is None:
            self.notices.error("There is no pending payment to verify")
            return False
        if not self.session.is_authenticated:
            self.notices.error("Please sign in to verify your payment")
            return False

        was_verified = self.state is PaymentState.VERIFIED
        session_token = self.session.get_token()
        self._set(PaymentIntent(PaymentState.AWAITING_VERIFICATION, tier))
        try:
            response = await self.api.verify_payment(tier)
        except AuthenticationRequiredError:
            self._set(PaymentIntent())
            return False
        except TranslatorClientError as e:
            if self.session.get_token() != session_token:
                return False
            if was_verified:
                logger.info(f"Repeated verification for {tier} failed, keeping verified state: {e.message}")
                self._set(PaymentIntent(PaymentState.VERIFIED, tier))
                return True
            logger.warning(f"Payment verification for {tier} failed: {e.message}")
            self._set(PaymentIntent(PaymentState.AWAITING_EXTERNAL_ACTION, tier, error=e.message))
            self.notices.error(f"Payment verification failed: {e.message}")
            return False

        if self.session.get_token() != session_token:
            logger.info(f"Discarding verification result for {tier}, the session has ended")
            return False

        user = response.user
        if user.tier is not response.tier:
            user = user.model_copy(update={"tier": response.tier})
        await self.session.apply_user(user)
        await self.store.save(pending_payment_tier=None)

        self._set(PaymentIntent(PaymentState.VERIFIED, response.tier.value))
        self.checkout = None
        logger.info(f"Payment verified, account upgraded to {response.tier.value}")
        self.notices.success(f"Payment verified! You are now on the {get_plan(response.tier).name} plan.")
        return True

    async def resume_from_redirect(self, location: str | Mapping[str, str]) -> bool:
        """Resume after the provider redirected back into a fresh client.

        Returns:
            True if a persisted pending payment was verified
        """
        outcome = parse_redirect(location)
        if outcome is None:
            return False

        pending = (await self.store.load()).pending_payment_tier
        if outcome is RedirectOutcome.CANCELLED:
            # The marker stays so the purchase can be resumed later
            self._set(PaymentIntent())
            self.notices.info("Payment was cancelled. You can try again at any time.")
            return False

        if pending is None:
            logger.info("Payment success redirect without a pending tier, ignoring")
            return False
        if not self.session.is_authenticated:
            self.notices.info("Sign in to finish activating your plan")
            return False

        logger.info(f"Resuming payment verification for tier {pending}")
        self._set(PaymentIntent(PaymentState.AWAITING_VERIFICATION, pending))
        return await self.verify()

    async def abandon(self) -> None:
        """The user gives up on the purchase: drop the persisted marker."""
        await self.store.save(pending_payment_tier=None)
        self.checkout = None
        self._set(PaymentIntent())

    def dismiss(self) -> None:
        """Close the success/failure presentation."""
        if self.state in (PaymentState.VERIFIED, PaymentState.FAILED):
            self._set(PaymentIntent())

    async def _checkout_request(self, tier: UserTier, email: str) -> CheckoutRequest | None:
        try:
            response = await self.api.initiate_payment(tier.value)
        except AuthenticationRequiredError:
            return None
        except TranslatorClientError as e:
            logger.warning(f"Payment initiation failed, using configured checkout: {e.message}")
        else:
            if response.payment_url:
                return CheckoutRequest(url=response.payment_url, method=response.method, fields=response.form_fields)
            logger.info("Payment initiation returned no redirect, using configured checkout")

        try:
            return build_checkout_request(tier.value, self.config, email)
        except ValueError as e:
            self._set(PaymentIntent(PaymentState.FAILED, tier.value, error=str(e)))
            self.notices.error(f"Unable to start payment: {e}")
            return None

    async def _open_checkout(self, request: CheckoutRequest) -> bool:
        try:
            opened = await self.launcher.open(request)
        except OSError as e:
            logger.error(f"Failed to open payment page: {e}")
            opened = False
        if not opened:
            self.notices.error(f"Could not open the payment page. Please visit {request.url}")
        return opened

    def _on_signed_out(self) -> None:
        self.checkout = None
        if self.state is not PaymentState.NONE:
            self._set(PaymentIntent())

    def _set(self, intent: PaymentIntent) -> None:
        self.intent = intent
        for listener in list(self._listeners):
            try:
                listener(intent)
            except Exception:
                logger.exception("Payment listener failed")
