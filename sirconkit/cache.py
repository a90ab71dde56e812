"""Small string-vector caches kept in memory and optionally on disk."""

from __future__ import annotations

import enum
import time
from pathlib import Path
from typing import ClassVar, Iterable, Sequence

SEPARATOR = "^^^"


class CachedData:
    """A named cache holding one or more lists of strings."""

    class Kind(enum.Enum):
        ON_DISK = "on_disk"
        ONLY_MEMORY = "only_memory"

    _memory: ClassVar[dict[tuple[str | None, str], list[list[str]]]] = {}

    def __init__(self, name: str, kind: "CachedData.Kind" = Kind.ON_DISK, root: str | Path | None = None):
        self.name = name
        self.kind = kind
        self.root = Path(root) if root is not None else None
        self.path = self.root / name if self.root is not None else None
        self._key = (str(self.root) if self.root is not None else None, name)
        self._data: list[list[str]] = []
        self._exists = False
        self._modified: float | None = None

        if self._key in self._memory:
            self._data = self._memory[self._key]
            self._exists = True
            if self.path is not None and self.path.exists():
                self._modified = self.path.stat().st_mtime
            return

        if kind is CachedData.Kind.ONLY_MEMORY:
            return

        if self.path is None:
            raise ValueError("the cache root path must be set for an on-disk cache")

        if self.path.exists():
            self._modified = self.path.stat().st_mtime
            self._data = self._read()
            self._exists = True
            self._memory[self._key] = self._data

    def _read(self) -> list[list[str]]:
        data: list[list[str]] = [[]]
        with open(self.path, encoding="utf-8", newline="") as handle:
            for line in handle.read().splitlines():
                if line == SEPARATOR:
                    data.append([])
                else:
                    data[-1].append(line)
        if data[-1]:
            data[-1].pop()
        return data

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        blocks = ["".join(f"{line}\n" for line in vec) for vec in self._data]
        content = f"{SEPARATOR}\n".join(blocks) + "\n"
        with open(self.path, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        self._modified = self.path.stat().st_mtime

    def _store(self, data: list[list[str]]) -> None:
        self._data = data
        self._exists = True
        self._memory[self._key] = data
        if self.kind is CachedData.Kind.ON_DISK:
            if self.path is None:
                raise ValueError("the cache root path must be set for an on-disk cache")
            self._write()

    def is_unset(self) -> bool:
        return not self._exists

    def exists(self) -> bool:
        return self._exists

    def seconds_since_last_write(self) -> float:
        """Whole seconds since the cache was written; huge when unset."""
        if self.is_unset():
            return 1e10
        if self.kind is CachedData.Kind.ONLY_MEMORY or self._modified is None:
            return 0.0
        return float(int(time.time() - self._modified))

    def hours_since_last_write(self) -> float:
        return self.seconds_since_last_write() / 3600.0

    def days_since_last_write(self) -> float:
        return self.seconds_since_last_write() / 3600.0 / 24.0

    def get_cached_vector(self, index: int = 0) -> list[str]:
        """Return a copy of the cached list at the given position."""
        if not self._exists:
            raise LookupError(f"the cache '{self.name}' does not yet exist")
        if not 0 <= index < len(self._data):
            raise IndexError(
                f"cache '{self.name}': requesting vector in position {index}, "
                f"but there are only {len(self._data)} vectors in the cache"
            )
        return list(self._data[index])

    def set_cached_vector(self, values: Iterable[str]) -> "CachedData":
        self._store([list(values)])
        return self

    def set_cached_vectors(self, vectors: Sequence[Iterable[str]], equal_sizes: bool = True) -> "CachedData":
        data = [list(vec) for vec in vectors]
        if equal_sizes and len(data) > 1:
            first = len(data[0])
            for i, vec in enumerate(data[1:], start=1):
                if len(vec) != first:
                    raise ValueError(
                        f"when caching '{self.name}', the vectors must be of the same size: "
                        f"vector 0 is of size {first} while vector {i} is of size {len(vec)}"
                    )
        self._store(data)
        return self