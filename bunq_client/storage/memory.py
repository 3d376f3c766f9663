"""In-process storage backends."""

import asyncio
import copy
import json
from pathlib import Path
from typing import Any


class MemoryStorage:
    """Dict-backed storage; state is lost when the process exits."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Any | None:
        # Copy so callers cannot mutate stored state in place.
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class JsonFileStorage:
    """
    Storage persisted as a single JSON document.

    Every write rewrites the whole file through a temporary sibling, so a
    crash mid-write leaves the previous document intact.
    """

    def __init__(self, path: Path | str) -> None:
        """
        Args:
            path: Location of the JSON document. Created on first write.
        """
        self._path = Path(path)
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = value
            await asyncio.to_thread(self._write, data)

    async def remove(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if key in data:
                del data[key]
                await asyncio.to_thread(self._write, data)

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        return json.loads(self._path.read_text(encoding="utf-8"))

    def _write(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(self._path)
