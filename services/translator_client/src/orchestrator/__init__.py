"""Document upload and translation orchestration."""

from .documents import DocumentLibrary
from .orchestrator import TranslationOrchestrator

__all__ = ["DocumentLibrary", "TranslationOrchestrator"]
