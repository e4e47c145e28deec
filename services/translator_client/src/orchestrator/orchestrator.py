"""
Upload/translate orchestrator.

Drives one document at a time through upload, translation and, for large
files, polling of the server-side background task. Exposes live progress and
cancellation of background work. Every failure is caught where the network
call was issued and turned into a notice plus a local state reset.
"""

import asyncio
import logging
import mimetypes
from collections.abc import Callable, Coroutine
from dataclasses import replace
from pathlib import Path
from typing import Any

import aiofiles

from ..api.client import TranslationAPIClient
from ..config import ProgressConfig, UploadConfig
from ..exceptions import (
    AuthenticationRequiredError,
    FileValidationError,
    JobInProgressError,
    QuotaExceededError,
    TranslatorClientError,
    ValidationError,
)
from ..models.catalog import is_valid_source, is_valid_target
from ..models.job import (
    TERMINAL_PHASES,
    Cancelled,
    Done,
    EstimatedProgress,
    Failed,
    Idle,
    JobMode,
    JobPhase,
    JobState,
    ReportedProgress,
    SelectedFile,
    Translating,
    Uploading,
    is_active,
)
from ..notices import NoticeBoard
from ..session.manager import SessionManager
from ..timers import CancellationToken, ProgressRamp, RepeatingTask
from .documents import DocumentLibrary

logger = logging.getLogger(__name__)

DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

StateListener = Callable[[JobState], Any]


class TranslationOrchestrator:
    """Single-flight state machine for one translation job per client."""

    def __init__(
        self,
        api: TranslationAPIClient,
        session: SessionManager,
        documents: DocumentLibrary,
        notices: NoticeBoard,
        progress: ProgressConfig | None = None,
        upload: UploadConfig | None = None,
        task_poll_interval: float = 2.0,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            api: Shared request layer
            session: Supplies the quota gate and is refreshed after completion
            documents: Document list refreshed after upload and completion
            notices: Where outcomes and errors are posted
            progress: Fabricated progress cadence and hand-off delays
            upload: File allow-list and default languages
            task_poll_interval: Seconds between background task status polls
        """
        self.api = api
        self.session = session
        self.documents = documents
        self.notices = notices
        self.progress = progress or ProgressConfig()
        self.upload = upload or UploadConfig()
        self.task_poll_interval = task_poll_interval

        self.state: JobState = Idle()
        self.last_outcome: JobState | None = None
        self.selected_file: SelectedFile | None = None
        self.source_lang = self.upload.default_source_lang
        self.target_lang = self.upload.default_target_lang

        self._job_token: CancellationToken | None = None
        self._poller: RepeatingTask | None = None
        self._ramp: ProgressRamp | None = None
        self._reset_handle: asyncio.TimerHandle | None = None
        self._settled = asyncio.Event()
        self._settled.set()
        self._background: set[asyncio.Task[Any]] = set()
        self._listeners: list[StateListener] = []

        session.add_signed_out_listener(self.halt)

    @property
    def phase(self) -> JobPhase:
        return self.state.phase

    @property
    def is_busy(self) -> bool:
        return is_active(self.state)

    def add_listener(self, listener: StateListener) -> None:
        """Register a callback invoked with every new job state."""
        self._listeners.append(listener)

    # Selection

    def select_file(self, path: str | Path) -> bool:
        """Choose the document for the next job.

        Returns:
            True if the file was accepted
        """
        if self.is_busy:
            self.notices.error("Cannot change the file while a translation is in progress")
            return False

        file_path = Path(path).expanduser()
        allowed = [ext.lower() for ext in self.upload.allowed_extensions]
        if file_path.suffix.lower() not in allowed:
            self.notices.error(f"Please select a {' or '.join(allowed)} file")
            return False
        if not file_path.is_file():
            self.notices.error(f"File not found: {file_path.name}")
            return False

        self.selected_file = SelectedFile(path=file_path, size=file_path.stat().st_size)
        self.notices.success(f"Selected: {file_path.name}")
        return True

    def clear_selection(self) -> None:
        self.selected_file = None

    def set_languages(self, source_lang: str, target_lang: str) -> bool:
        if not is_valid_source(source_lang):
            self.notices.error(f"Unsupported source language: {source_lang}")
            return False
        if not is_valid_target(target_lang):
            self.notices.error(f"Unsupported target language: {target_lang}")
            return False
        self.source_lang = source_lang
        self.target_lang = target_lang
        return True

    # Admission

    def admission_error(self) -> TranslatorClientError | None:
        """Why start() would be refused right now, or None if it would proceed.

        Pure function of local state; issues no network call.
        """
        if self.is_busy:
            return JobInProgressError()
        if self.selected_file is None:
            return FileValidationError("Please select a file first")
        if not self.session.is_authenticated:
            return AuthenticationRequiredError("Please sign in to translate documents")
        if not self.session.can_translate():
            user = self.session.user
            return QuotaExceededError(
                used=user.translations_used if user else None,
                limit=user.translations_limit if user else None,
            )
        if not is_valid_source(self.source_lang) or not is_valid_target(self.target_lang):
            return ValidationError("Please choose supported source and target languages", field="language")
        return None

    # Lifecycle

    async def start(self) -> bool:
        """Upload the selected file and request its translation.

        Returns once the job reaches a terminal phase (direct mode) or once
        background polling has begun.

        Returns:
            True if the job was admitted and has not failed
        """
        error = self.admission_error()
        if error is not None:
            logger.info(f"Translation start refused: {error.message}")
            if isinstance(error, QuotaExceededError):
                self.notices.upgrade_required(error.message)
            else:
                self.notices.error(error.message)
            return False

        selected = self.selected_file
        if selected is None:
            return False
        token = self._begin_job()
        self._set_state(Uploading(filename=selected.name))
        logger.info(f"Starting translation of {selected.name} ({selected.size} bytes)")

        doc_id = await self._upload(selected, token)
        if doc_id is None:
            return False

        if self.progress.translate_delay > 0:
            await asyncio.sleep(self.progress.translate_delay)
        if token.cancelled:
            return False

        return await self._translate(doc_id, token)

    def cancel(self) -> bool:
        """Cancel a background translation.

        Stops polling and returns to idle immediately; the server-side cancel
        request is fired without waiting for its outcome.

        Returns:
            True if a background job was cancelled
        """
        state = self.state
        if not isinstance(state, Translating) or state.mode is not JobMode.BACKGROUND or state.task_id is None:
            self.notices.info("Only background translations can be cancelled")
            return False

        if self._job_token is not None:
            self._job_token.cancel()
        self._stop_timers()
        self._spawn(self._request_cancel(state.task_id))

        cancelled = Cancelled(task_id=state.task_id, doc_id=state.doc_id)
        self.last_outcome = cancelled
        self._set_state(cancelled)
        self._set_state(Idle())
        self.notices.info("Translation cancelled")
        self._settled.set()
        logger.info(f"Cancelled background task {state.task_id}")
        return True

    def reset(self) -> None:
        """Dismiss a terminal job and return to idle."""
        if self.state.phase not in TERMINAL_PHASES:
            return
        self._cancel_reset()
        self._set_state(Idle())

    def halt(self) -> None:
        """Abandon everything immediately (sign-out, including forced sign-out mid-job)."""
        if self._job_token is not None:
            self._job_token.cancel()
        self._stop_timers()
        self._cancel_reset()
        self.selected_file = None
        if not isinstance(self.state, Idle):
            logger.info(f"Halting job in phase {self.state.phase.value}")
            self._set_state(Idle())
        self._settled.set()

    async def wait_until_settled(self, timeout: float | None = None) -> JobState | None:
        """Wait until the current job is terminal (or halted) and its follow-up refreshes ran.

        Returns:
            The job's final state, or None if no job has finished yet
        """
        await asyncio.wait_for(self._settled.wait(), timeout)
        return self.last_outcome

    async def drain(self) -> None:
        """Wait for fire-and-forget requests (cancel, list refresh) to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # Steps

    async def _upload(self, selected: SelectedFile, token: CancellationToken) -> str | None:
        ramp = self._start_ramp(token, self.progress.upload_step, self.progress.upload_interval)
        try:
            async with aiofiles.open(selected.path, "rb") as f:
                content = await f.read()
            response = await self.api.upload(selected.name, content, _content_type(selected.path))
        except AuthenticationRequiredError:
            ramp.stop()
            return None
        except TranslatorClientError as e:
            ramp.stop()
            self._fail(token, f"Upload failed: {e.message}", quota=isinstance(e, QuotaExceededError))
            return None
        except OSError as e:
            ramp.stop()
            self._fail(token, f"Upload error: {e}")
            return None

        if token.cancelled:
            ramp.stop()
            return None

        ramp.finish()
        self.selected_file = None
        self.notices.success("Document uploaded successfully!")
        self._spawn(self.documents.refresh())
        logger.info(f"Uploaded {selected.name} as document {response.doc_id}")
        return response.doc_id

    async def _translate(self, doc_id: str, token: CancellationToken) -> bool:
        self._set_state(Translating(doc_id=doc_id, mode=JobMode.DIRECT))
        ramp = self._start_ramp(token, self.progress.translate_step, self.progress.translate_interval)
        try:
            response = await self.api.translate(doc_id, self.source_lang, self.target_lang)
        except AuthenticationRequiredError:
            ramp.stop()
            return False
        except TranslatorClientError as e:
            ramp.stop()
            self._fail(
                token,
                f"Translation failed: {e.message}",
                doc_id=doc_id,
                quota=isinstance(e, QuotaExceededError),
            )
            return False

        if token.cancelled:
            ramp.stop()
            return False

        task_id = response.task_id
        if task_id:
            ramp.stop()
            message = response.message or "Large document: translating in the background"
            self._set_state(
                Translating(
                    doc_id=doc_id,
                    mode=JobMode.BACKGROUND,
                    progress=ReportedProgress(0),
                    task_id=task_id,
                    status_message=message,
                )
            )
            self.notices.info(message)
            logger.info(f"Document {doc_id} translating in background task {task_id}")
            self._poller = RepeatingTask(
                lambda poll_token: self._poll(token, poll_token, doc_id, task_id),
                self.task_poll_interval,
                name=f"task-poll-{task_id}",
            )
            self._poller.start()
            return True

        ramp.finish()
        await self._complete(token, doc_id, response.message)
        return True

    async def _poll(
        self,
        job_token: CancellationToken,
        poll_token: CancellationToken,
        doc_id: str,
        task_id: str,
    ) -> bool:
        try:
            status = await self.api.get_task_status(task_id)
        except AuthenticationRequiredError:
            return True
        except TranslatorClientError as e:
            logger.warning(f"Status poll for task {task_id} failed, polling continues: {e.message}")
            return False

        if job_token.cancelled or poll_token.cancelled:
            return True

        message = status.message
        self._set_state(
            Translating(
                doc_id=doc_id,
                mode=JobMode.BACKGROUND,
                progress=ReportedProgress(status.progress),
                task_id=task_id,
                status_message=message,
            )
        )
        if not status.completed:
            return False

        self._poller = None
        if status.status == "completed":
            await self._complete(job_token, doc_id, status.message or None)
        else:
            self._fail(job_token, status.error or status.message or "Translation failed", doc_id=doc_id)
        return True

    async def _complete(self, token: CancellationToken, doc_id: str, message: str | None) -> None:
        if token.cancelled:
            return
        done = Done(doc_id=doc_id, message=message) if message else Done(doc_id=doc_id)
        self.last_outcome = done
        self._set_state(done)
        self.notices.success(done.message)
        logger.info(f"Translation of document {doc_id} completed")

        try:
            # Usage is incremented server-side
            await self.session.refresh_user()
            await self.documents.refresh()
        finally:
            self._settle(token)

    def _fail(
        self,
        token: CancellationToken,
        message: str,
        doc_id: str | None = None,
        quota: bool = False,
    ) -> None:
        if token.cancelled:
            return
        self._stop_timers()
        failed = Failed(error=message, doc_id=doc_id)
        self.last_outcome = failed
        self._set_state(failed)
        if quota:
            self.notices.upgrade_required(message)
        else:
            self.notices.error(message)
        logger.warning(message)
        if doc_id is not None:
            self._spawn(self.documents.refresh())
        self._settle(token)

    async def _request_cancel(self, task_id: str) -> None:
        try:
            await self.api.cancel_task(task_id)
        except TranslatorClientError as e:
            logger.warning(f"Server-side cancel of task {task_id} failed: {e.message}")

    # Internals

    def _begin_job(self) -> CancellationToken:
        self._cancel_reset()
        token = CancellationToken()
        self._job_token = token
        self._settled.clear()
        return token

    def _settle(self, token: CancellationToken) -> None:
        if token is not self._job_token or token.cancelled:
            return
        self._cancel_reset()
        loop = asyncio.get_running_loop()
        self._reset_handle = loop.call_later(self.progress.reset_delay, self._auto_reset, token)
        self._settled.set()

    def _auto_reset(self, token: CancellationToken) -> None:
        self._reset_handle = None
        if token is self._job_token and self.state.phase in TERMINAL_PHASES:
            self._set_state(Idle())

    def _cancel_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def _start_ramp(self, token: CancellationToken, step: int, interval: float) -> ProgressRamp:
        if self._ramp is not None:
            self._ramp.stop()
        ramp = ProgressRamp(
            step=step,
            interval=interval,
            cap=self.progress.cap,
            on_change=lambda value: self._set_estimated_progress(token, value),
        )
        self._ramp = ramp
        ramp.start()
        return ramp

    def _set_estimated_progress(self, token: CancellationToken, value: int) -> None:
        if token.cancelled:
            return
        state = self.state
        if isinstance(state, Uploading) or (isinstance(state, Translating) and state.mode is JobMode.DIRECT):
            self._set_state(replace(state, progress=EstimatedProgress(value)))

    def _stop_timers(self) -> None:
        if self._ramp is not None:
            self._ramp.stop()
            self._ramp = None
        if self._poller is not None:
            self._poller.stop()
            self._poller = None

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _set_state(self, state: JobState) -> None:
        self.state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Job state listener failed")


def _content_type(path: Path) -> str:
    if path.suffix.lower() == ".docx":
        return DOCX_CONTENT_TYPE
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"
