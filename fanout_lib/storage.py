"""
Storage backends used by the generator.

The template tree is only ever listed and read; the output tree is also written
to and pruned. Both go through the same small interface so a run can target the
local disk or a purely in-memory tree (handy for tests and dry inspection).

Paths are plain strings using "/" as separator, relative to the storage base.
"" and "." both denote the base itself.
"""
import os
import posixpath
from abc import ABC, abstractmethod
from typing import Dict, List, NamedTuple, Optional, Set


class Entry(NamedTuple):
    name: str
    is_dir: bool


def join(*parts: str) -> str:
    kept = [p for p in parts if p not in ("", ".")]
    if not kept:
        return ""
    return posixpath.join(*kept)


class Storage(ABC):
    @abstractmethod
    def list_dir(self, path: str) -> List[Entry]:
        """Return the entries of a directory sorted by name."""

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        ...

    @abstractmethod
    def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    def is_dir(self, path: str) -> bool:
        ...

    @abstractmethod
    def make_dir(self, path: str) -> None:
        """Create a single directory; the parent must exist."""

    @abstractmethod
    def write_file(self, path: str, data: bytes) -> None:
        ...

    @abstractmethod
    def remove_file(self, path: str) -> None:
        ...

    @abstractmethod
    def remove_dir(self, path: str) -> None:
        """Remove an empty directory."""


class LocalStorage(Storage):
    """Storage on the local filesystem, optionally rooted at base_dir."""

    def __init__(self, base_dir: Optional[str] = None) -> None:
        self.base_dir = base_dir

    def _real(self, path: str) -> str:
        path = path or "."
        if self.base_dir is None:
            return path
        return os.path.join(self.base_dir, path)

    def list_dir(self, path: str) -> List[Entry]:
        real = self._real(path)
        entries = []
        for name in sorted(os.listdir(real)):
            entries.append(Entry(name, os.path.isdir(os.path.join(real, name))))
        return entries

    def read_file(self, path: str) -> bytes:
        with open(self._real(path), "rb") as f:
            return f.read()

    def exists(self, path: str) -> bool:
        return os.path.exists(self._real(path))

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(self._real(path))

    def make_dir(self, path: str) -> None:
        os.mkdir(self._real(path), 0o755)

    def write_file(self, path: str, data: bytes) -> None:
        with open(self._real(path), "wb") as f:
            f.write(data)

    def remove_file(self, path: str) -> None:
        os.remove(self._real(path))

    def remove_dir(self, path: str) -> None:
        os.rmdir(self._real(path))


class MemoryStorage(Storage):
    """A storage kept entirely in memory. The base directory always exists."""

    def __init__(self) -> None:
        self._dirs: Set[str] = {""}
        self._files: Dict[str, bytes] = {}

    @staticmethod
    def _norm(path: str) -> str:
        path = posixpath.normpath(path or ".").lstrip("/")
        return "" if path == "." else path

    def _children(self, path: str) -> List[str]:
        prefix = path + "/" if path else ""
        names = set()
        for p in list(self._dirs) + list(self._files):
            if p and p.startswith(prefix) and p != path:
                names.add(p[len(prefix):].split("/", 1)[0])
        return sorted(names)

    def _require_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if parent not in self._dirs:
            raise FileNotFoundError(f"no such directory: {parent!r}")

    def list_dir(self, path: str) -> List[Entry]:
        path = self._norm(path)
        if path not in self._dirs:
            raise FileNotFoundError(f"no such directory: {path!r}")
        return [Entry(name, join(path, name) in self._dirs) for name in self._children(path)]

    def read_file(self, path: str) -> bytes:
        path = self._norm(path)
        if path not in self._files:
            raise FileNotFoundError(f"no such file: {path!r}")
        return self._files[path]

    def exists(self, path: str) -> bool:
        path = self._norm(path)
        return path in self._dirs or path in self._files

    def is_dir(self, path: str) -> bool:
        return self._norm(path) in self._dirs

    def make_dir(self, path: str) -> None:
        path = self._norm(path)
        if self.exists(path):
            raise FileExistsError(f"already exists: {path!r}")
        self._require_parent(path)
        self._dirs.add(path)

    def write_file(self, path: str, data: bytes) -> None:
        path = self._norm(path)
        if path in self._dirs:
            raise IsADirectoryError(f"is a directory: {path!r}")
        self._require_parent(path)
        self._files[path] = bytes(data)

    def remove_file(self, path: str) -> None:
        path = self._norm(path)
        if path not in self._files:
            raise FileNotFoundError(f"no such file: {path!r}")
        del self._files[path]

    def remove_dir(self, path: str) -> None:
        path = self._norm(path)
        if path not in self._dirs or not path:
            raise FileNotFoundError(f"no such directory: {path!r}")
        if self._children(path):
            raise OSError(f"directory not empty: {path!r}")
        self._dirs.discard(path)

    # Convenience helpers for seeding a tree, creating parents as needed.

    def make_dirs(self, path: str) -> None:
        path = self._norm(path)
        current = ""
        for part in path.split("/") if path else []:
            current = join(current, part)
            self._dirs.add(current)

    def put(self, path: str, data) -> None:
        path = self._norm(path)
        self.make_dirs(posixpath.dirname(path))
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._files[path] = data

    def files(self) -> Dict[str, bytes]:
        return dict(sorted(self._files.items()))

    def dirs(self) -> List[str]:
        return sorted(d for d in self._dirs if d)
