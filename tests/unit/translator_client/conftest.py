"""Shared fixtures for translator client tests."""

import asyncio
from pathlib import Path

import pytest
from fakes import BASE_URL, FakeLauncher, FakeTranslationServer, make_user, wait_for

from services.translator_client.src.app import TranslatorClient
from services.translator_client.src.config import ClientConfig
from services.translator_client.src.storage.base import MemorySessionStore
from shared.utils.async_http_client import AsyncHTTPClientFactory, HTTPClientConfig


@pytest.fixture
def server():
    """Fake server with the routes every signed-in client touches."""
    fake = FakeTranslationServer()
    fake.on("POST", "/auth/signin", {"token": "tok-1", "user": make_user()})
    fake.on("GET", "/auth/me", make_user())
    fake.on("POST", "/auth/signout", {"detail": "Signed out"})
    fake.on("GET", "/documents", {"documents": []})
    return fake


@pytest.fixture
def config():
    """Configuration with tiny timer cadences."""
    config = ClientConfig()
    config.api.base_url = BASE_URL
    config.polling.task_poll_interval = 0.01
    config.polling.documents_poll_interval = 60.0
    config.polling.quota_refresh_interval = 60.0
    config.progress.upload_interval = 0.01
    config.progress.translate_interval = 0.01
    config.progress.translate_delay = 0.0
    config.progress.reset_delay = 0.05
    config.storage.backend = "memory"
    config.notice_ttl = 0.2
    return config


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
async def client(config, store, server, launcher):
    """Translator client wired to the fake server."""
    factory = AsyncHTTPClientFactory(HTTPClientConfig(base_url=BASE_URL), transport=server.transport)
    translator = TranslatorClient(config, store=store, http_factory=factory, launcher=launcher)
    yield translator
    await translator.close()


@pytest.fixture
async def signed_in_client(client, server):
    """Client with an established session for the default free user."""
    await client.session.sign_in("thandi@example.com", "correct-horse")
    # The first document poll fires at once; let it finish so tests start from a quiet client
    await wait_for(lambda: bool(server.calls_to("GET", "/documents")))
    await asyncio.sleep(0.01)
    return client


@pytest.fixture
def docx_file(tmp_path: Path) -> Path:
    path = tmp_path / "thesis.docx"
    path.write_bytes(b"PK\x03\x04" + b"\x00" * 2048)
    return path
