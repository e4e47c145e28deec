"""
Pydantic schemas for translation API requests and responses.

The server is authoritative for every field here; the client only caches
what it receives.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ..models.catalog import UserTier


class DocumentStatus(str, Enum):
    """Server-side lifecycle of an uploaded document."""

    UPLOADED = "uploaded"
    QUEUED = "queued"
    TRANSLATING = "translating"
    COMPLETED = "completed"
    FAILED = "failed"


class User(BaseModel):
    """Snapshot of the signed-in user and their quota."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str
    name: str = ""
    tier: UserTier = UserTier.FREE
    translations_used: int = Field(default=0, ge=0)
    translations_limit: float = Field(default=5, description="math.inf when unlimited")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        """Accept integer ids from the server."""
        return str(v)

    @field_validator("translations_limit", mode="before")
    @classmethod
    def parse_limit(cls, v: Any) -> float:
        """Map the server's "unlimited" encodings (null, negative, "Infinity") to math.inf."""
        if v is None:
            return math.inf
        if isinstance(v, str) and v.strip().lower() in ("inf", "infinity", "unlimited", "∞"):
            return math.inf
        if isinstance(v, (int, float)) and v < 0:
            return math.inf
        return v

    @field_serializer("translations_limit")
    def serialize_limit(self, v: float) -> int | None:
        return None if math.isinf(v) else int(v)

    @property
    def is_unlimited(self) -> bool:
        return math.isinf(self.translations_limit)


class SignInResponse(BaseModel):
    """Response of POST /auth/signin."""

    token: str
    user: User


class Document(BaseModel):
    """Server-owned record of an uploaded document."""

    model_config = ConfigDict(extra="ignore")

    doc_id: str
    filename: str = ""
    upload_time: datetime | None = None
    status: DocumentStatus = DocumentStatus.UPLOADED

    @field_validator("doc_id", mode="before")
    @classmethod
    def coerce_doc_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v

    @field_validator("status", mode="before")
    @classmethod
    def tolerate_unknown_status(cls, v: Any) -> Any:
        """Unknown statuses are shown as uploaded."""
        if isinstance(v, str) and v not in DocumentStatus._value2member_map_:
            return DocumentStatus.UPLOADED
        return v


class DocumentList(BaseModel):
    """Response of GET /documents."""

    model_config = ConfigDict(extra="ignore")

    documents: list[Document] = Field(default_factory=list)


class UploadResponse(BaseModel):
    """Response of POST /upload."""

    model_config = ConfigDict(extra="ignore")

    doc_id: str
    message: str | None = None

    @field_validator("doc_id", mode="before")
    @classmethod
    def coerce_doc_id(cls, v: Any) -> Any:
        """Document ids are opaque; integer ids are kept as strings."""
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v


class TranslateRequest(BaseModel):
    """Body of POST /translate."""

    doc_id: str
    source_lang: str
    target_lang: str


class TranslateResponse(BaseModel):
    """Response of POST /translate: either a direct result or a background task."""

    model_config = ConfigDict(extra="allow")

    task_id: str | None = None
    message: str | None = None
    doc_id: str | None = None
    status: str | None = None

    @field_validator("task_id", "doc_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v

    @property
    def is_background(self) -> bool:
        return bool(self.task_id)


class TaskStatus(BaseModel):
    """Response of GET /task/{id}/status."""

    model_config = ConfigDict(extra="ignore")

    progress: int = Field(default=0, ge=0, le=100)
    message: str = ""
    completed: bool = False
    status: str = "processing"
    error: str | None = None

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, v: Any) -> int:
        if v is None:
            return 0
        return max(0, min(100, int(v)))


class PaymentInitiateResponse(BaseModel):
    """Response of POST /payment/initiate: where to send the user to pay."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    payment_url: str | None = None
    method: str = "GET"
    form_fields: dict[str, str] = Field(default_factory=dict, alias="fields")


class PaymentVerifyResponse(BaseModel):
    """Response of POST /payment/verify reflecting the applied upgrade."""

    model_config = ConfigDict(extra="ignore")

    tier: UserTier
    user: User
