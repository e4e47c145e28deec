"""Cached, periodically refreshed list of the user's documents."""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from ..api.client import TranslationAPIClient
from ..api.schemas import Document
from ..exceptions import AuthenticationRequiredError, TranslatorClientError
from ..notices import NoticeBoard
from ..timers import CancellationToken, RepeatingTask

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_NAME = "translated.docx"


class DocumentLibrary:
    """Read-only client cache of the server's document list."""

    def __init__(
        self,
        api: TranslationAPIClient,
        notices: NoticeBoard,
        poll_interval: float = 5.0,
        is_authenticated: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the document library.

        Args:
            api: Shared request layer
            notices: Where download outcomes are posted
            poll_interval: Seconds between background list refreshes
            is_authenticated: Guard checked before each refresh
        """
        self.api = api
        self.notices = notices
        self.poll_interval = poll_interval
        self.is_authenticated = is_authenticated or (lambda: True)
        self.documents: list[Document] = []
        self._poller: RepeatingTask | None = None
        self._listeners: list[Callable[[list[Document]], Any]] = []

    def add_listener(self, listener: Callable[[list[Document]], Any]) -> None:
        self._listeners.append(listener)

    def get(self, doc_id: str) -> Document | None:
        return next((doc for doc in self.documents if doc.doc_id == doc_id), None)

    async def refresh(self) -> list[Document]:
        """Reload the list from the server. Failures are logged and the cache kept."""
        if not self.is_authenticated():
            return self.documents
        try:
            documents = await self.api.list_documents()
        except AuthenticationRequiredError:
            return self.documents
        except TranslatorClientError as e:
            logger.error(f"Failed to load documents: {e.message}")
            return self.documents

        if not self.is_authenticated():
            return self.documents

        self.documents = documents
        for listener in list(self._listeners):
            try:
                listener(documents)
            except Exception:
                logger.exception("Document listener failed")
        return documents

    def start_polling(self) -> None:
        if self._poller is not None and self._poller.running:
            return
        self._poller = RepeatingTask(self._tick, self.poll_interval, name="documents-poll")
        self._poller.start()
        logger.debug("Document polling started")

    def stop_polling(self) -> None:
        if self._poller is not None:
            self._poller.stop()
            self._poller = None
            logger.debug("Document polling stopped")

    def clear(self) -> None:
        """Drop the cache and stop polling (on sign-out)."""
        self.stop_polling()
        self.documents = []

    async def _tick(self, token: CancellationToken) -> bool:
        await self.refresh()
        return False

    async def download(self, doc_id: str, destination: str | Path = ".") -> Path | None:
        """Download a document's content to disk.

        Args:
            doc_id: Document to download
            destination: Directory to write into, or a full file path

        Returns:
            The written path, or None if the download failed (a notice was posted)
        """
        try:
            content, advertised_name = await self.api.download(doc_id)
        except AuthenticationRequiredError:
            return None
        except TranslatorClientError as e:
            logger.error(f"Download of {doc_id} failed: {e.message}")
            self.notices.error(f"Download failed: {e.message}")
            return None

        target = Path(destination).expanduser()
        if await aiofiles.os.path.isdir(target):
            cached = self.get(doc_id)
            filename = advertised_name or (cached.filename if cached and cached.filename else DEFAULT_DOWNLOAD_NAME)
            target = target / Path(filename).name
        else:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)

        async with aiofiles.open(target, "wb") as f:
            await f.write(content)

        logger.info(f"Downloaded {doc_id} to {target}")
        self.notices.success("Download complete!")
        return target
