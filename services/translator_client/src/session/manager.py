"""Session manager: authentication token lifecycle and the cached quota snapshot."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..api.client import TranslationAPIClient
from ..api.schemas import User
from ..exceptions import AuthenticationRequiredError, TranslatorClientError, ValidationError
from ..models.catalog import get_plan
from ..notices import NoticeBoard
from ..storage.base import SessionStore
from .validation import validate_email, validate_name, validate_password, validate_terms

logger = logging.getLogger(__name__)

SessionListener = Callable[[], Any]


@dataclass(frozen=True)
class Session:
    """An authenticated identity."""

    token: str
    user: User


@dataclass(frozen=True)
class QuotaSummary:
    """Usage banner data derived from the cached user."""

    tier: str
    tier_name: str
    used: int
    limit: float
    remaining: int | None  # None when unlimited
    upgrade_required: bool

    @property
    def limit_label(self) -> str:
        return "∞" if self.remaining is None else str(int(self.limit))

    @property
    def remaining_label(self) -> str:
        return "∞" if self.remaining is None else str(self.remaining)


class SessionManager:
    """Owns the bearer token and the current user's quota snapshot.

    Installs itself on the shared request layer as the token provider and the
    forced sign-out hook, so every authenticated call carries the token and
    every rejected one clears the session.
    """

    def __init__(self, api: TranslationAPIClient, store: SessionStore, notices: NoticeBoard) -> None:
        """Initialize the session manager.

        Args:
            api: Shared request layer
            store: Persisted-state boundary holding token and user
            notices: Where user-visible outcomes are posted
        """
        self.api = api
        self.store = store
        self.notices = notices
        self.token: str | None = None
        self.user: User | None = None
        self._signed_in_listeners: list[SessionListener] = []
        self._signed_out_listeners: list[SessionListener] = []
        self._user_listeners: list[Callable[[User], Any]] = []

        api.token_provider = self.get_token
        api.on_unauthorized = self.force_sign_out

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and self.user is not None

    @property
    def session(self) -> Session | None:
        if self.token is None or self.user is None:
            return None
        return Session(token=self.token, user=self.user)

    def get_token(self) -> str | None:
        return self.token

    def add_signed_in_listener(self, listener: SessionListener) -> None:
        self._signed_in_listeners.append(listener)

    def add_signed_out_listener(self, listener: SessionListener) -> None:
        self._signed_out_listeners.append(listener)

    def add_user_listener(self, listener: Callable[[User], Any]) -> None:
        self._user_listeners.append(listener)

    async def restore(self) -> bool:
        """Reload a persisted session and refresh it from the server.

        Returns:
            True if the client ends up authenticated
        """
        state = await self.store.load()
        if not state.token:
            return False

        self.token = state.token
        self.user = state.user
        logger.info("Restoring persisted session")

        await self.refresh_user()
        if self.token is None:
            # Rejected by the server; the forced sign-out already ran
            return False
        if self.user is None:
            await self._clear()
            return False

        self._fire(self._signed_in_listeners)
        return True

    async def sign_in(self, email: str, password: str) -> Session:
        """Authenticate and persist the session.

        Raises:
            ValidationError: Email or password missing/malformed
            InvalidCredentialsError: Server rejected the credentials
            TranslatorClientError: Transport or server failure
        """
        email = validate_email(email)
        if not password:
            raise ValidationError("Password is required", field="password")

        response = await self.api.sign_in(email, password)
        self.token = response.token
        self._set_user(response.user)
        await self.store.save(token=response.token, user=response.user)
        logger.info(f"Signed in user {response.user.id}")

        self._fire(self._signed_in_listeners)
        return Session(token=response.token, user=response.user)

    async def sign_up(self, name: str, email: str, password: str, terms_accepted: bool = True) -> str:
        """Create an account without establishing a session.

        Returns:
            The server's confirmation message

        Raises:
            ValidationError: A field failed validation
            DuplicateAccountError: The email is already registered
            TranslatorClientError: Transport or server failure
        """
        name = validate_name(name)
        email = validate_email(email)
        validate_password(password)
        validate_terms(terms_accepted)

        message = await self.api.sign_up(name, email, password)
        logger.info("Account created")
        return message

    async def refresh_user(self) -> User | None:
        """Replace the cached user with the server's snapshot.

        Returns:
            The fresh user, or None if the refresh failed (the cached user is kept
            on transport errors; the session is gone on authentication errors)
        """
        token = self.token
        if token is None:
            return None
        try:
            user = await self.api.get_me()
        except AuthenticationRequiredError:
            return None
        except TranslatorClientError as e:
            logger.warning(f"User refresh failed, keeping cached snapshot: {e.message}")
            return None

        if self.token != token:
            logger.info("Discarding user refresh for a session that has ended")
            return None

        self._set_user(user)
        await self.store.save(user=user)
        return user

    async def apply_user(self, user: User) -> None:
        """Install an authoritative user snapshot obtained elsewhere (e.g. payment verification)."""
        if self.token is None:
            logger.warning("Ignoring user snapshot received while signed out")
            return
        self._set_user(user)
        await self.store.save(user=user)

    async def sign_out(self) -> None:
        """Best-effort server sign-out, then unconditionally clear local state."""
        if self.token is not None:
            try:
                await self.api.sign_out()
            except TranslatorClientError as e:
                logger.info(f"Server sign-out failed, clearing locally anyway: {e.message}")
        await self._clear()

    async def force_sign_out(self) -> None:
        """Forced sign-out hook run by the request layer on a rejected authenticated call."""
        if self.token is None and self.user is None:
            return
        logger.warning("Authenticated call rejected, signing out")
        await self._clear()
        self.notices.error("Session expired. Please sign in again.")

    def can_translate(self) -> bool:
        """Advisory quota gate over cached state; the server re-checks on translate."""
        if self.user is None:
            return False
        return self.user.translations_used < self.user.translations_limit

    def remaining_translations(self) -> int | None:
        """Translations left this month, or None when the tier is unlimited."""
        if self.user is None:
            return 0
        if self.user.is_unlimited:
            return None
        return max(0, int(self.user.translations_limit) - self.user.translations_used)

    def quota_summary(self) -> QuotaSummary | None:
        if self.user is None:
            return None
        return QuotaSummary(
            tier=self.user.tier.value,
            tier_name=get_plan(self.user.tier).name,
            used=self.user.translations_used,
            limit=self.user.translations_limit,
            remaining=self.remaining_translations(),
            upgrade_required=not self.can_translate(),
        )

    def _set_user(self, user: User) -> None:
        self.user = user
        for listener in list(self._user_listeners):
            try:
                listener(user)
            except Exception:
                logger.exception("User listener failed")

    async def _clear(self) -> None:
        had_session = self.token is not None or self.user is not None
        self.token = None
        self.user = None
        if had_session:
            logger.info("Session cleared")
            self._fire(self._signed_out_listeners)
        await self.store.clear()

    @staticmethod
    def _fire(listeners: list[SessionListener]) -> None:
        for listener in list(listeners):
            try:
                listener()
            except Exception:
                logger.exception("Session listener failed")
