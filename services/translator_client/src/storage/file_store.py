"""JSON-file backend for the persisted session record."""

import json
import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from .base import PersistedState, SessionStore

logger = logging.getLogger(__name__)


class FileSessionStore(SessionStore):
    """Persists the session record as a JSON file in the user's home directory."""

    def __init__(self, path: str | Path) -> None:
        """Initialize the file store.

        Args:
            path: Location of the JSON file; ``~`` is expanded
        """
        super().__init__()
        self.path = Path(path).expanduser()

    async def _read(self) -> PersistedState:
        if not await aiofiles.os.path.exists(self.path):
            return PersistedState()

        async with aiofiles.open(self.path, encoding="utf-8") as f:
            raw = await f.read()
        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            logger.warning(f"Session file {self.path} is corrupt, ignoring it: {e}")
            return PersistedState()
        if not isinstance(data, dict):
            logger.warning(f"Session file {self.path} has unexpected content, ignoring it")
            return PersistedState()
        return PersistedState.from_dict(data)

    async def _write(self, state: PersistedState) -> None:
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(state.to_dict(), indent=2))
        await aiofiles.os.replace(tmp_path, self.path)
        logger.debug(f"Persisted session state to {self.path}")

    async def _delete(self) -> None:
        if await aiofiles.os.path.exists(self.path):
            await aiofiles.os.remove(self.path)
