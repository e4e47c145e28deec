"""Pytest configuration and fixtures."""

import os

import pytest
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@pytest.fixture(autouse=True)
def isolated_translator_env(monkeypatch):
    """Keep developer TRANSLATOR_* settings from leaking into tests."""
    for name in list(os.environ):
        if name.startswith("TRANSLATOR_"):
            monkeypatch.delenv(name, raising=False)
