"""Persisted client state shared across reloads."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..api.schemas import User

logger = logging.getLogger(__name__)


@dataclass
class PersistedState:
    """The only client state that survives a reload."""

    token: str | None = None
    user: User | None = None
    pending_payment_tier: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "token": self.token,
            "user": self.user.model_dump(mode="json") if self.user else None,
            "pendingPaymentTier": self.pending_payment_tier,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersistedState":
        """Rebuild state from its stored form, dropping an unreadable user record."""
        user = None
        if raw_user := data.get("user"):
            try:
                user = User.model_validate(raw_user)
            except PydanticValidationError as e:
                logger.warning(f"Discarding unreadable persisted user: {e}")
        return cls(
            token=data.get("token") or None,
            user=user,
            pending_payment_tier=data.get("pendingPaymentTier") or None,
        )


_FIELD_NAMES = {f.name for f in fields(PersistedState)}


class SessionStore(ABC):
    """Narrow persistence boundary: load, save, clear.

    The in-memory copy is merged synchronously before the backend write, so
    interleaved saves from different components on the event loop never
    overwrite each other's fields.
    """

    def __init__(self) -> None:
        self._state: PersistedState | None = None

    async def load(self) -> PersistedState:
        """Return the persisted state, reading the backend on first use."""
        if self._state is None:
            try:
                self._state = await self._read()
            except Exception as e:
                logger.error(f"Failed to read persisted state, starting empty: {e}")
                self._state = PersistedState()
        return PersistedState(**vars(self._state))

    async def save(self, **changes: Any) -> None:
        """Merge the given fields into the persisted state and write it through.

        Raises:
            TypeError: If an unknown field is given
        """
        unknown = set(changes) - _FIELD_NAMES
        if unknown:
            raise TypeError(f"Unknown persisted fields: {', '.join(sorted(unknown))}")
        state = self._state
        if state is None:
            await self.load()
            state = self._state or PersistedState()
            self._state = state
        for name, value in changes.items():
            setattr(state, name, value)
        await self._write(PersistedState(**vars(state)))

    async def clear(self) -> None:
        """Remove every persisted value."""
        self._state = PersistedState()
        await self._delete()

    @abstractmethod
    async def _read(self) -> PersistedState:
        """Read the state from the backend."""

    @abstractmethod
    async def _write(self, state: PersistedState) -> None:
        """Write the full state to the backend."""

    @abstractmethod
    async def _delete(self) -> None:
        """Delete the state from the backend."""


class MemorySessionStore(SessionStore):
    """Store that lives only as long as the process; used in tests."""

    def __init__(self, initial: PersistedState | None = None) -> None:
        super().__init__()
        self._record: dict[str, Any] = initial.to_dict() if initial else {}

    async def _read(self) -> PersistedState:
        return PersistedState.from_dict(self._record)

    async def _write(self, state: PersistedState) -> None:
        self._record = state.to_dict()

    async def _delete(self) -> None:
        self._record = {}

    @property
    def record(self) -> dict[str, Any]:
        """The raw stored record."""
        return dict(self._record)
