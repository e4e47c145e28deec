"""
Async client for the document translation API.

Every authenticated call attaches the bearer token when one is present. An
authorization-rejected response on an authenticated call runs the forced
sign-out hook once and raises AuthenticationRequiredError; callers abandon
their operation rather than retry.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from shared.utils.async_http_client import AsyncHTTPClientFactory, HTTPClientConfig

from ..config import APIConfig
from ..exceptions import (
    APIError,
    AuthenticationRequiredError,
    DuplicateAccountError,
    InvalidCredentialsError,
    QuotaExceededError,
    TransportError,
    ValidationError,
)
from .schemas import (
    Document,
    DocumentList,
    PaymentInitiateResponse,
    PaymentVerifyResponse,
    SignInResponse,
    TaskStatus,
    TranslateRequest,
    TranslateResponse,
    UploadResponse,
    User,
)

logger = structlog.get_logger(__name__)

AUTH_REJECTED_STATUSES = frozenset({401, 403})
QUOTA_STATUSES = frozenset({402, 429})

TokenProvider = Callable[[], str | None]
UnauthorizedHook = Callable[[], Awaitable[None]]
ModelT = TypeVar("ModelT", bound=BaseModel)


def extract_detail(response: httpx.Response) -> str:
    """Pull a human-readable message out of an error response.

    Understands FastAPI-style ``{"detail": "..."}`` and
    ``{"detail": [{"msg": "..."}]}`` bodies, falling back to the raw text.
    """
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message") or body.get("error")
        if isinstance(detail, list):
            messages = [item.get("msg", str(item)) if isinstance(item, dict) else str(item) for item in detail]
            return "; ".join(messages)
        if detail:
            return str(detail)
    return response.reason_phrase or f"HTTP {response.status_code}"


class TranslationAPIClient:
    """Client for the translation, auth and payment endpoints."""

    def __init__(
        self,
        config: APIConfig,
        token_provider: TokenProvider | None = None,
        on_unauthorized: UnauthorizedHook | None = None,
        factory: AsyncHTTPClientFactory | None = None,
    ) -> None:
        """Initialize the API client.

        Args:
            config: API endpoint configuration
            token_provider: Returns the current bearer token, or None when signed out
            on_unauthorized: Forced sign-out hook run when an authenticated call is rejected
            factory: Optional HTTP client factory (tests inject one with a mock transport)
        """
        self.config = config
        self.token_provider = token_provider or (lambda: None)
        self.on_unauthorized = on_unauthorized
        self.factory = factory or AsyncHTTPClientFactory(
            HTTPClientConfig(
                base_url=config.base_url,
                timeout=config.request_timeout,
                user_agent=config.user_agent,
            )
        )

    async def close(self) -> None:
        """Release pooled connections."""
        await self.factory.close()

    async def _request(
        self,
        method: str,
        path: str,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Issue a request and translate failures into client exceptions.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            authenticated: Whether the bearer token is attached and 401/403 forces sign-out
            **kwargs: Passed through to httpx

        Returns:
            The successful (2xx) response

        Raises:
            AuthenticationRequiredError: Authenticated call rejected
            InvalidCredentialsError: Unauthenticated call rejected with 401/403
            QuotaExceededError: Server reports the quota is exhausted
            DuplicateAccountError: Server reports a conflict
            ValidationError: Server rejected the payload
            APIError: Any other non-2xx response
            TransportError: No response was received
        """
        headers = dict(kwargs.pop("headers", None) or {})
        if authenticated and (token := self.token_provider()):
            headers["Authorization"] = f"Bearer {token}"

        try:
            async with self.factory.get_httpx_client() as client:
                response = await client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Request failed without response", method=method, path=path, error=str(e))
            raise TransportError(f"Network error: {e}", url=path) from e

        if response.is_success:
            return response

        detail = extract_detail(response)
        status = response.status_code
        logger.info("Request rejected", method=method, path=path, status_code=status, detail=detail)

        if status in AUTH_REJECTED_STATUSES:
            if not authenticated:
                raise InvalidCredentialsError(detail)
            if self.on_unauthorized is not None:
                await self.on_unauthorized()
            raise AuthenticationRequiredError()
        if status in QUOTA_STATUSES:
            raise QuotaExceededError(detail)
        if status == 409:
            raise DuplicateAccountError(detail)
        if status in (400, 422):
            raise ValidationError(detail)
        raise APIError(detail, status_code=status, url=path)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise APIError("Server returned an invalid response", status_code=response.status_code) from e

    @classmethod
    def _parse(cls, model: type[ModelT], response: httpx.Response, body: Any = None) -> ModelT:
        """Validate a 2xx body against its schema; a mismatch is reported as an API error."""
        if body is None:
            body = cls._json(response)
        try:
            return model.model_validate(body)
        except PydanticValidationError as e:
            logger.warning(
                "Response failed schema validation",
                path=response.request.url.path,
                model=model.__name__,
                errors=e.error_count(),
            )
            raise APIError(
                "Server returned an invalid response",
                status_code=response.status_code,
                url=response.request.url.path,
            ) from e

    # Authentication

    async def sign_up(self, name: str, email: str, password: str) -> str:
        """Create an account. Returns the server's confirmation message."""
        response = await self._request(
            "POST",
            "/auth/signup",
            authenticated=False,
            json={"name": name, "email": email, "password": password},
        )
        body = self._json(response)
        if isinstance(body, dict):
            return str(body.get("detail") or body.get("message") or "Account created")
        return "Account created"

    async def sign_in(self, email: str, password: str) -> SignInResponse:
        response = await self._request(
            "POST",
            "/auth/signin",
            authenticated=False,
            json={"email": email, "password": password},
        )
        return self._parse(SignInResponse, response)

    async def sign_out(self) -> None:
        await self._request("POST", "/auth/signout")

    async def get_me(self) -> User:
        response = await self._request("GET", "/auth/me")
        body = self._json(response)
        # Some deployments wrap the snapshot as {"user": {...}}
        if isinstance(body, dict) and isinstance(body.get("user"), dict):
            body = body["user"]
        return self._parse(User, response, body)

    # Documents and translation

    async def upload(self, filename: str, content: bytes, content_type: str) -> UploadResponse:
        response = await self._request(
            "POST",
            "/upload",
            files={"file": (filename, content, content_type)},
        )
        return self._parse(UploadResponse, response)

    async def translate(self, doc_id: str, source_lang: str, target_lang: str) -> TranslateResponse:
        request = TranslateRequest(doc_id=doc_id, source_lang=source_lang, target_lang=target_lang)
        response = await self._request("POST", "/translate", json=request.model_dump())
        return self._parse(TranslateResponse, response)

    async def get_task_status(self, task_id: str) -> TaskStatus:
        response = await self._request("GET", f"/task/{task_id}/status")
        return self._parse(TaskStatus, response)

    async def cancel_task(self, task_id: str) -> None:
        await self._request("POST", f"/task/{task_id}/cancel")

    async def list_documents(self) -> list[Document]:
        response = await self._request("GET", "/documents")
        body = self._json(response)
        if body is None or isinstance(body, list):
            body = {"documents": body or []}
        return self._parse(DocumentList, response, body).documents

    async def download(self, doc_id: str) -> tuple[bytes, str | None]:
        """Fetch a document's binary content.

        Returns:
            The content and the filename advertised by Content-Disposition, if any
        """
        response = await self._request("GET", f"/download/{doc_id}")
        return response.content, _disposition_filename(response.headers.get("content-disposition"))

    # Payment

    async def initiate_payment(self, tier: str) -> PaymentInitiateResponse:
        response = await self._request("POST", "/payment/initiate", json={"tier": tier})
        return self._parse(PaymentInitiateResponse, response)

    async def verify_payment(self, tier: str | None = None) -> PaymentVerifyResponse:
        payload = {"tier": tier} if tier else {}
        response = await self._request("POST", "/payment/verify", json=payload)
        return self._parse(PaymentVerifyResponse, response)


def _disposition_filename(header: str | None) -> str | None:
    if not header:
        return None
    for part in header.split(";"):
        key, _, value = part.strip().partition("=")
        if key.lower() == "filename" and value:
            return value.strip().strip('"') or None
    return None
