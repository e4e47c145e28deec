"""Async client for the academic document translation service."""

from services.translator_client.src.app import TranslatorClient
from services.translator_client.src.config import ClientConfig, get_config
from services.translator_client.src.exceptions import (
    AuthenticationRequiredError,
    QuotaExceededError,
    TranslatorClientError,
)
from services.translator_client.src.orchestrator.orchestrator import TranslationOrchestrator
from services.translator_client.src.payment.flow import PaymentReconciliationFlow
from services.translator_client.src.session.manager import SessionManager

__all__ = [
    "AuthenticationRequiredError",
    "ClientConfig",
    "PaymentReconciliationFlow",
    "QuotaExceededError",
    "SessionManager",
    "TranslationOrchestrator",
    "TranslatorClient",
    "TranslatorClientError",
    "get_config",
]
