"""Composition root wiring the session, orchestrator, document library and payment flow."""

from collections.abc import Mapping

import structlog

from shared.utils.async_http_client import AsyncHTTPClientFactory

from .api.client import TranslationAPIClient
from .config import ClientConfig, get_config
from .notices import NoticeBoard
from .orchestrator.documents import DocumentLibrary
from .orchestrator.orchestrator import TranslationOrchestrator
from .payment.flow import CheckoutLauncher, PaymentReconciliationFlow
from .session.auth_flow import AuthFlow
from .session.manager import SessionManager
from .storage import create_store
from .storage.base import SessionStore
from .timers import CancellationToken, RepeatingTask

logger = structlog.get_logger(__name__)


class TranslatorClient:
    """The whole client: three cooperating state machines on one event loop."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        store: SessionStore | None = None,
        http_factory: AsyncHTTPClientFactory | None = None,
        launcher: CheckoutLauncher | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Client configuration, defaults to the global configuration
            store: Persisted-state backend, defaults to the configured one
            http_factory: HTTP client factory (tests inject a mock transport)
            launcher: Opens payment pages, defaults to the system browser
        """
        self.config = config or get_config()
        self.notices = NoticeBoard(ttl=self.config.notice_ttl)
        self.store = store or create_store(self.config.storage)
        self.api = TranslationAPIClient(self.config.api, factory=http_factory)
        self.session = SessionManager(self.api, self.store, self.notices)
        self.auth = AuthFlow(self.session, self.notices)
        self.documents = DocumentLibrary(
            self.api,
            self.notices,
            poll_interval=self.config.polling.documents_poll_interval,
            is_authenticated=lambda: self.session.is_authenticated,
        )
        self.orchestrator = TranslationOrchestrator(
            self.api,
            self.session,
            self.documents,
            self.notices,
            progress=self.config.progress,
            upload=self.config.upload,
            task_poll_interval=self.config.polling.task_poll_interval,
        )
        self.payment = PaymentReconciliationFlow(
            self.api,
            self.session,
            self.store,
            self.notices,
            config=self.config.payment,
            launcher=launcher,
        )
        self._quota_refresher: RepeatingTask | None = None

        self.session.add_signed_in_listener(self._on_signed_in)
        self.session.add_signed_out_listener(self._on_signed_out)

    async def start(self, redirect: str | Mapping[str, str] | None = None) -> bool:
        """Restore a persisted session and, if the client was opened by a payment redirect, resume it.

        Returns:
            True if the client is authenticated
        """
        authenticated = await self.session.restore()
        logger.info("Client started", authenticated=authenticated)
        if redirect:
            await self.payment.resume_from_redirect(redirect)
        return authenticated

    async def close(self) -> None:
        """Stop every timer and release connections; the persisted session is kept."""
        self._stop_refreshers()
        self.orchestrator.halt()
        await self.orchestrator.drain()
        await self.api.close()
        logger.info("Client closed")

    def _on_signed_in(self) -> None:
        self.documents.start_polling()
        if self._quota_refresher is None or not self._quota_refresher.running:
            self._quota_refresher = RepeatingTask(
                self._refresh_quota,
                self.config.polling.quota_refresh_interval,
                name="quota-refresh",
                initial_delay=self.config.polling.quota_refresh_interval,
            )
            self._quota_refresher.start()

    def _on_signed_out(self) -> None:
        self._stop_refreshers()
        self.documents.clear()

    def _stop_refreshers(self) -> None:
        self.documents.stop_polling()
        if self._quota_refresher is not None:
            self._quota_refresher.stop()
            self._quota_refresher = None

    async def _refresh_quota(self, token: CancellationToken) -> bool:
        if not self.session.is_authenticated:
            return True
        await self.session.refresh_user()
        return False
