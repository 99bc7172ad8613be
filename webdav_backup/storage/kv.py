"""
Key-value persistence used for the WebDAV config and the sync log
"""

import asyncio
import copy
import json
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import aiofiles

from webdav_backup.utils.mixins import LoggerMixin


@runtime_checkable
class KeyValueStore(Protocol):
    """Durable key-value area, consistent immediately after ``set``"""

    async def get(self, key: str, default: Any = None) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...


class MemoryStore:
    """Process-local store, mainly for tests and ephemeral runs"""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)


class JsonFileStore(LoggerMixin):
    """All keys in one JSON document on disk.

    Writes go to a sibling temp file which then replaces the original, so a
    crash mid-write leaves the previous document intact.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        async with aiofiles.open(self.path, encoding="utf-8") as f:
            content = await f.read()
        if not content.strip():
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            self.logger.warning(
                "Store file is not valid JSON, starting empty",
                path=str(self.path),
                error=str(e),
            )
            return {}
        return data if isinstance(data, dict) else {}

    async def get(self, key: str, default: Any = None) -> Any:
        data = await self._read_all()
        return data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = await self._read_all()
            data[key] = value

            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(data, ensure_ascii=False, indent=2))
            tmp_path.replace(self.path)

        self.logger.debug("Store key written", key=key, path=str(self.path))
