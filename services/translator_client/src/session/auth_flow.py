"""Sign-in / sign-up form state machine.

There is exactly one path into an authenticated session: the sign-in form.
A successful sign-up returns to it with the email prefilled.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum

from ..exceptions import TranslatorClientError, ValidationError
from ..notices import NoticeBoard
from .manager import Session, SessionManager

logger = logging.getLogger(__name__)


class AuthMode(Enum):
    SIGN_IN = "sign_in"
    SIGN_UP = "sign_up"


@dataclass(frozen=True)
class AuthForm:
    """Contents of the visible auth form."""

    mode: AuthMode = AuthMode.SIGN_IN
    name: str = ""
    email: str = ""
    password: str = ""
    terms_accepted: bool = False
    error: str | None = None
    error_field: str | None = None
    submitting: bool = False


class AuthFlow:
    """Drives the auth form against the session manager."""

    def __init__(self, session: SessionManager, notices: NoticeBoard) -> None:
        self.session = session
        self.notices = notices
        self.form = AuthForm()

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def switch_mode(self, mode: AuthMode) -> None:
        """Toggle between the forms, keeping the email and clearing secrets and errors."""
        self.form = AuthForm(mode=mode, email=self.form.email)

    def update(self, **values: str | bool) -> None:
        """Edit form fields; editing clears a previous error."""
        self.form = replace(self.form, error=None, error_field=None, **values)  # type: ignore[arg-type]

    async def submit(self) -> Session | None:
        """Submit the current form.

        Returns:
            The new session after a successful sign-in, otherwise None
        """
        if self.form.submitting:
            return None
        self.form = replace(self.form, submitting=True, error=None, error_field=None)
        if self.form.mode is AuthMode.SIGN_IN:
            return await self._sign_in()
        await self._sign_up()
        return None

    async def _sign_in(self) -> Session | None:
        try:
            session = await self.session.sign_in(self.form.email, self.form.password)
        except ValidationError as e:
            self.form = replace(self.form, submitting=False, error=e.message, error_field=e.field)
            return None
        except TranslatorClientError as e:
            self.form = replace(self.form, submitting=False, password="", error=e.message)
            return None

        self.form = AuthForm()
        self.notices.success(f"Welcome back, {session.user.name or session.user.email}!")
        return session

    async def _sign_up(self) -> None:
        form = self.form
        try:
            await self.session.sign_up(form.name, form.email, form.password, form.terms_accepted)
        except ValidationError as e:
            self.form = replace(form, submitting=False, error=e.message, error_field=e.field)
            return
        except TranslatorClientError as e:
            self.form = replace(form, submitting=False, error=e.message)
            return

        self.form = AuthForm(mode=AuthMode.SIGN_IN, email=form.email.strip())
        self.notices.success("Account created! Please sign in.")
        logger.info("Sign-up complete, returning to sign-in form")
