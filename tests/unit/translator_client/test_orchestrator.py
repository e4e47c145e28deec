"""Tests for the upload/translate orchestrator."""

import asyncio
import json

import httpx
import pytest
from fakes import gated, make_user, wait_for

from services.translator_client.src.models.job import (
    Cancelled,
    Done,
    EstimatedProgress,
    Failed,
    Idle,
    JobMode,
    JobPhase,
    ReportedProgress,
    Translating,
    Uploading,
)
from services.translator_client.src.notices import NoticeLevel

DIRECT_RESULT = {"message": "Translation completed successfully!", "doc_id": "d1"}


async def sign_in(client, server, **user):
    server.on("POST", "/auth/signin", {"token": "tok-1", "user": make_user(**user)})
    await client.session.sign_in("thandi@example.com", "correct-horse")


def record_states(orchestrator):
    states = []
    orchestrator.add_listener(states.append)
    return states


class TestAdmission:
    """Test the local admission checks in front of start()."""

    @pytest.mark.asyncio
    async def test_requires_file(self, signed_in_client, server):
        orchestrator = signed_in_client.orchestrator

        assert not await orchestrator.start()

        assert signed_in_client.notices.current.text == "Please select a file first"
        assert server.calls_to("POST", "/upload") == []

    @pytest.mark.asyncio
    async def test_requires_session(self, client, server, docx_file):
        orchestrator = client.orchestrator
        assert orchestrator.select_file(docx_file)

        assert not await orchestrator.start()

        assert client.notices.current.text == "Please sign in to translate documents"
        assert server.calls == []

    @pytest.mark.asyncio
    async def test_quota_exhausted_rejected_without_network(self, client, server, docx_file):
        """When the cached quota is used up start() issues no request and routes to the upsell."""
        await sign_in(client, server, translations_used=5, translations_limit=5)
        orchestrator = client.orchestrator
        orchestrator.select_file(docx_file)

        assert not await orchestrator.start()

        assert server.calls_to("POST", "/upload") == []
        assert server.calls_to("POST", "/translate") == []
        assert client.notices.current.level is NoticeLevel.UPGRADE_REQUIRED
        assert orchestrator.state == Idle()

    @pytest.mark.asyncio
    async def test_rejects_unaccepted_extension(self, signed_in_client, tmp_path):
        notes = tmp_path / "notes.pdf"
        notes.write_bytes(b"%PDF")

        assert not signed_in_client.orchestrator.select_file(notes)
        assert signed_in_client.orchestrator.selected_file is None
        assert signed_in_client.notices.current.text == "Please select a .docx file"

    @pytest.mark.asyncio
    async def test_accepts_uppercase_extension(self, signed_in_client, tmp_path):
        thesis = tmp_path / "THESIS.DOCX"
        thesis.write_bytes(b"PK")

        assert signed_in_client.orchestrator.select_file(thesis)
        assert signed_in_client.orchestrator.selected_file.name == "THESIS.DOCX"

    @pytest.mark.asyncio
    async def test_rejects_unknown_language(self, signed_in_client):
        orchestrator = signed_in_client.orchestrator

        assert not orchestrator.set_languages("auto", "auto")
        assert not orchestrator.set_languages("xx", "af")
        assert orchestrator.set_languages("en", "zu")
        assert (orchestrator.source_lang, orchestrator.target_lang) == ("en", "zu")


class TestSingleFlight:
    """Test that at most one job is active."""

    @pytest.mark.asyncio
    async def test_second_start_is_rejected_while_active(self, signed_in_client, server, docx_file):
        gate, slow_upload = gated({"doc_id": "d1"})
        server.on("POST", "/upload", slow_upload)
        server.on("POST", "/translate", DIRECT_RESULT)
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        first = asyncio.create_task(orchestrator.start())
        await wait_for(lambda: orchestrator.phase is JobPhase.UPLOADING)

        assert orchestrator.is_busy
        assert not await orchestrator.start()
        assert signed_in_client.notices.current.text == "A translation is already in progress"
        assert not orchestrator.select_file(docx_file)

        gate.set()
        assert await first
        assert len(server.calls_to("POST", "/upload")) == 1
        assert len(server.calls_to("POST", "/translate")) == 1


class TestDirectTranslation:
    """Test translations answered in the translate response."""

    @pytest.mark.asyncio
    async def test_direct_translation_then_quota_exhausted(self, client, server, docx_file):
        """A free user with one translation left completes a job and is then gated."""
        await sign_in(client, server, translations_used=4, translations_limit=5)
        server.on("POST", "/upload", {"doc_id": "d1", "message": "File uploaded"})
        server.on("POST", "/translate", DIRECT_RESULT)
        server.on("GET", "/auth/me", make_user(translations_used=5, translations_limit=5))
        orchestrator = client.orchestrator
        orchestrator.select_file(docx_file)

        assert await orchestrator.start()

        assert orchestrator.state == Done(doc_id="d1")
        assert orchestrator.selected_file is None
        assert client.session.user.translations_used == 5
        assert client.notices.current.text == "Translation completed successfully!"
        body = json.loads(server.calls_to("POST", "/translate")[0].content)
        assert body == {"doc_id": "d1", "source_lang": "auto", "target_lang": "af"}

        orchestrator.select_file(docx_file)
        assert not await orchestrator.start()
        assert client.notices.current.level is NoticeLevel.UPGRADE_REQUIRED
        assert len(server.calls_to("POST", "/upload")) == 1

    @pytest.mark.asyncio
    async def test_fabricated_progress_is_monotonic_and_capped(self, signed_in_client, server, docx_file):
        gate, slow_upload = gated({"doc_id": "d1"})
        server.on("POST", "/upload", slow_upload)
        server.on("POST", "/translate", DIRECT_RESULT)
        orchestrator = signed_in_client.orchestrator
        states = record_states(orchestrator)
        orchestrator.select_file(docx_file)

        task = asyncio.create_task(orchestrator.start())
        await wait_for(lambda: isinstance(orchestrator.state, Uploading) and orchestrator.state.progress.value == 90)
        await asyncio.sleep(0.05)
        assert orchestrator.state.progress.value == 90

        gate.set()
        await task

        uploads = [s.progress.value for s in states if isinstance(s, Uploading)]
        assert uploads == sorted(uploads)
        assert uploads[-1] == 100
        assert all(value <= 90 for value in uploads[:-1])
        assert all(isinstance(s.progress, EstimatedProgress) for s in states if isinstance(s, Uploading))
        direct = [s for s in states if isinstance(s, Translating)]
        assert direct
        assert all(s.mode is JobMode.DIRECT and s.task_id is None for s in direct)

    @pytest.mark.asyncio
    async def test_auto_reset_to_idle(self, signed_in_client, server, docx_file, config):
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", DIRECT_RESULT)
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        await orchestrator.start()
        assert orchestrator.phase is JobPhase.DONE

        await asyncio.sleep(config.progress.reset_delay * 3)
        assert orchestrator.state == Idle()
        assert orchestrator.last_outcome == Done(doc_id="d1")

    @pytest.mark.asyncio
    async def test_documents_refreshed_after_completion(self, signed_in_client, server, docx_file):
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", DIRECT_RESULT)
        completed = {"doc_id": "d1", "filename": "thesis.docx", "status": "completed"}
        server.on("GET", "/documents", {"documents": [completed]})
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        await orchestrator.start()
        await orchestrator.drain()

        assert [d.doc_id for d in signed_in_client.documents.documents] == ["d1"]

    @pytest.mark.asyncio
    async def test_cancel_not_offered_in_direct_mode(self, signed_in_client, server, docx_file):
        gate, slow_translate = gated(DIRECT_RESULT)
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", slow_translate)
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        task = asyncio.create_task(orchestrator.start())
        await wait_for(lambda: orchestrator.phase is JobPhase.TRANSLATING)

        assert not orchestrator.cancel()
        assert orchestrator.phase is JobPhase.TRANSLATING

        gate.set()
        assert await task


class TestFailures:
    """Test failures turned into notices and local resets."""

    @pytest.mark.asyncio
    async def test_upload_failure_keeps_selection(self, signed_in_client, server, docx_file, config):
        server.on("POST", "/upload", httpx.Response(500, json={"detail": "Storage unavailable"}))
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        assert not await orchestrator.start()

        assert orchestrator.state == Failed(error="Upload failed: Storage unavailable")
        assert signed_in_client.notices.current.level is NoticeLevel.ERROR
        assert orchestrator.selected_file is not None
        assert server.calls_to("POST", "/translate") == []

        await asyncio.sleep(config.progress.reset_delay * 3)
        assert orchestrator.state == Idle()

    @pytest.mark.asyncio
    async def test_server_quota_rejection_routes_to_upsell(self, signed_in_client, server, docx_file):
        """The local gate is advisory; a 402 from translate still ends in the upsell."""
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", httpx.Response(402, json={"detail": "Translation limit reached"}))
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        assert not await orchestrator.start()

        assert orchestrator.state == Failed(error="Translation failed: Translation limit reached", doc_id="d1")
        assert signed_in_client.notices.current.level is NoticeLevel.UPGRADE_REQUIRED

    @pytest.mark.asyncio
    async def test_translate_transport_error(self, signed_in_client, server, docx_file):
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", httpx.ReadError("connection reset"))
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        assert not await orchestrator.start()

        assert orchestrator.phase is JobPhase.FAILED
        assert "connection reset" in orchestrator.state.error


class TestMalformedResponses:
    """Test that a 2xx body the client cannot read fails the job instead of jamming it."""

    @pytest.mark.asyncio
    async def test_upload_body_without_doc_id(self, signed_in_client, server, docx_file, config):
        server.on("POST", "/upload", {"message": "stored"}, {"doc_id": "d1"})
        server.on("POST", "/translate", DIRECT_RESULT)
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        assert not await orchestrator.start()

        assert orchestrator.state == Failed(error="Upload failed: Server returned an invalid response")
        assert not orchestrator.is_busy
        assert server.calls_to("POST", "/translate") == []

        await asyncio.sleep(config.progress.reset_delay * 3)
        assert orchestrator.state == Idle()
        assert await orchestrator.start()
        assert orchestrator.last_outcome == Done(doc_id="d1")

    @pytest.mark.asyncio
    async def test_translate_body_with_unusable_task_id(self, signed_in_client, server, docx_file):
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", {"task_id": {"id": "t1"}})
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)
        states = record_states(orchestrator)

        assert not await orchestrator.start()

        assert orchestrator.state == Failed(
            error="Translation failed: Server returned an invalid response",
            doc_id="d1",
        )
        seen = len(states)
        await asyncio.sleep(0.03)
        assert all(isinstance(state, (Failed, Idle)) for state in states[seen:])

    @pytest.mark.asyncio
    async def test_malformed_document_list_still_settles(self, signed_in_client, server, docx_file):
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", DIRECT_RESULT)
        server.on("GET", "/documents", {"documents": "none yet"})
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        assert await orchestrator.start()

        assert await orchestrator.wait_until_settled(timeout=1.0) == Done(doc_id="d1")
        assert signed_in_client.documents.documents == []


class TestForcedSignOutMidJob:
    """Test that a rejected call in any phase clears the session and the job."""

    @pytest.mark.asyncio
    async def test_rejected_upload(self, signed_in_client, server, docx_file, store):
        server.on("POST", "/upload", httpx.Response(401, json={"detail": "Token expired"}))
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)
        states = record_states(orchestrator)

        assert not await orchestrator.start()

        assert orchestrator.state == Idle()
        assert orchestrator.selected_file is None
        assert signed_in_client.session.user is None
        assert store.record == {}
        assert (await store.load()).token is None
        assert server.calls_to("POST", "/translate") == []
        seen = len(states)
        await asyncio.sleep(0.05)
        assert states[seen:] == []

    @pytest.mark.asyncio
    async def test_rejected_direct_translate(self, signed_in_client, server, docx_file, store):
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", httpx.Response(401, json={"detail": "Token expired"}))
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)
        states = record_states(orchestrator)

        assert not await orchestrator.start()

        assert orchestrator.state == Idle()
        assert signed_in_client.session.token is None
        assert signed_in_client.session.user is None
        assert store.record == {}
        assert len(server.calls_to("POST", "/translate")) == 1
        assert signed_in_client.notices.current.text == "Session expired. Please sign in again."
        seen = len(states)
        await asyncio.sleep(0.05)
        assert states[seen:] == []


class TestBackgroundTranslation:
    """Test server-side background tasks tracked by polling."""

    @pytest.mark.asyncio
    async def test_polls_until_completed(self, signed_in_client, server, docx_file):
        """Two polls: one in progress, one completed; polling stops after exactly two ticks."""
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", {"task_id": "t1", "message": "Large document queued"})
        server.on(
            "GET",
            "/task/t1/status",
            {"progress": 10, "completed": False, "message": "Translating chunk 1 of 10"},
            {"progress": 100, "completed": True, "status": "completed", "message": "Translation completed"},
        )
        orchestrator = signed_in_client.orchestrator
        states = record_states(orchestrator)
        orchestrator.select_file(docx_file)

        assert await orchestrator.start()
        outcome = await orchestrator.wait_until_settled(timeout=2)
        await asyncio.sleep(0.05)

        assert outcome == Done(doc_id="d1", message="Translation completed")
        assert len(server.calls_to("GET", "/task/t1/status")) == 2
        background = [s for s in states if isinstance(s, Translating) and s.mode is JobMode.BACKGROUND]
        assert [s.progress.value for s in background] == [0, 10, 100]
        assert all(isinstance(s.progress, ReportedProgress) for s in background)
        assert all(s.task_id == "t1" for s in background)
        assert background[1].status_message == "Translating chunk 1 of 10"

    @pytest.mark.asyncio
    async def test_status_message_copied_as_received(self, signed_in_client, server, docx_file):
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", {"task_id": "t1", "message": "Large document queued"})
        server.on(
            "GET",
            "/task/t1/status",
            {"progress": 10, "completed": False, "message": "Translating chunk 1 of 10"},
            {"progress": 20, "completed": False, "message": ""},
            {"progress": 100, "completed": True, "status": "completed"},
        )
        orchestrator = signed_in_client.orchestrator
        states = record_states(orchestrator)
        orchestrator.select_file(docx_file)

        assert await orchestrator.start()
        await orchestrator.wait_until_settled(timeout=2)

        background = [s for s in states if isinstance(s, Translating) and s.mode is JobMode.BACKGROUND]
        assert [s.status_message for s in background] == ["Large document queued", "Translating chunk 1 of 10", "", ""]

    @pytest.mark.asyncio
    async def test_completed_with_failure_status(self, signed_in_client, server, docx_file):
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", {"task_id": "t1"})
        server.on(
            "GET",
            "/task/t1/status",
            {"progress": 40, "completed": True, "status": "failed", "error": "Model crashed"},
        )
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        await orchestrator.start()
        outcome = await orchestrator.wait_until_settled(timeout=2)

        assert outcome == Failed(error="Model crashed", doc_id="d1")
        assert signed_in_client.notices.current.text == "Model crashed"

    @pytest.mark.asyncio
    async def test_transient_poll_errors_keep_polling(self, signed_in_client, server, docx_file):
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", {"task_id": "t1"})
        server.on(
            "GET",
            "/task/t1/status",
            httpx.Response(503, json={"detail": "Busy"}),
            httpx.ConnectError("Connection refused"),
            {"progress": 100, "completed": True, "status": "completed"},
        )
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        await orchestrator.start()
        outcome = await orchestrator.wait_until_settled(timeout=2)

        assert outcome == Done(doc_id="d1")
        assert len(server.calls_to("GET", "/task/t1/status")) == 3

    @pytest.mark.asyncio
    async def test_cancel_mid_poll(self, signed_in_client, server, docx_file):
        """Cancelling fires the server request, stops polling and returns to idle at once."""
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", {"task_id": "t1"})
        server.on("GET", "/task/t1/status", {"progress": 10, "completed": False})
        server.on("POST", "/task/t1/cancel", httpx.Response(500, json={"detail": "Already finished"}))
        orchestrator = signed_in_client.orchestrator
        states = record_states(orchestrator)
        orchestrator.select_file(docx_file)

        await orchestrator.start()
        await wait_for(lambda: len(server.calls_to("GET", "/task/t1/status")) >= 2)

        assert orchestrator.cancel()
        assert orchestrator.state == Idle()
        assert orchestrator.last_outcome == Cancelled(task_id="t1", doc_id="d1")
        assert Cancelled(task_id="t1", doc_id="d1") in states

        await orchestrator.drain()
        polls = len(server.calls_to("GET", "/task/t1/status"))
        await asyncio.sleep(0.05)

        assert len(server.calls_to("GET", "/task/t1/status")) == polls
        assert len(server.calls_to("POST", "/task/t1/cancel")) == 1
        assert orchestrator.state == Idle()
        assert signed_in_client.notices.current.text == "Translation cancelled"

    @pytest.mark.asyncio
    async def test_in_flight_poll_after_cancel_is_discarded(self, signed_in_client, server, docx_file):
        gate, slow_status = gated({"progress": 100, "completed": True, "status": "completed"})
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", {"task_id": "t1"})
        server.on("GET", "/task/t1/status", slow_status)
        server.on("POST", "/task/t1/cancel", {"detail": "Cancelled"})
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        await orchestrator.start()
        await wait_for(lambda: len(server.calls_to("GET", "/task/t1/status")) == 1)

        orchestrator.cancel()
        gate.set()
        await asyncio.sleep(0.05)

        assert orchestrator.state == Idle()
        assert isinstance(orchestrator.last_outcome, Cancelled)

    @pytest.mark.asyncio
    async def test_forced_sign_out_mid_poll_stops_everything(self, signed_in_client, server, docx_file, store):
        server.on("POST", "/upload", {"doc_id": "d1"})
        server.on("POST", "/translate", {"task_id": "t1"})
        server.on(
            "GET",
            "/task/t1/status",
            {"progress": 10, "completed": False},
            httpx.Response(401, json={"detail": "Token expired"}),
        )
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_file(docx_file)

        await orchestrator.start()
        await wait_for(lambda: not signed_in_client.session.is_authenticated)
        polls = len(server.calls_to("GET", "/task/t1/status"))
        await asyncio.sleep(0.05)

        assert signed_in_client.session.token is None
        assert signed_in_client.session.user is None
        assert store.record == {}
        assert orchestrator.state == Idle()
        assert len(server.calls_to("GET", "/task/t1/status")) == polls == 2
        assert signed_in_client.notices.current.text == "Session expired. Please sign in again."
