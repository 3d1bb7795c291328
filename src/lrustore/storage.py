"""Pickle-backed persistence for repositories.

Each repository is stored as a single pickle file at
``<base_dir>/<name>.pickle``.  Names may contain ``/`` to namespace
repositories into subdirectories.
"""

from __future__ import annotations

import logging
import pickle
from pathlib import Path, PurePosixPath

from lrustore.errors import LruStoreConfigError

logger = logging.getLogger("lrustore.storage")

SUFFIX = ".pickle"


def check_name(name: str) -> str:
    """Return the canonical form of `name`, or raise if it is not usable.

    Spellings of the same relative path (`a//b`, `./a/b`, `a\\b`) canonicalize
    to one name, so they share one registry slot and one file.
    """

    if not isinstance(name, str) or not name.strip():
        raise LruStoreConfigError("Repository name must be a non-empty string.")
    posix = name.replace("\\", "/")
    if posix.startswith("/"):
        raise LruStoreConfigError(f"Repository name must be relative: {name!r}")
    if posix.endswith("/"):
        raise LruStoreConfigError(f"Repository name may not end with a separator: {name!r}")
    parts = [p for p in PurePosixPath(posix).parts if p != "."]
    if not parts:
        raise LruStoreConfigError(f"Repository name must name a file: {name!r}")
    if parts[0].endswith(":"):
        raise LruStoreConfigError(f"Repository name must be relative: {name!r}")
    if any(p == ".." for p in parts):
        raise LruStoreConfigError(f"Repository name may not contain '..': {name!r}")
    return "/".join(parts)


class PickleStorage:
    """Reads and writes repository state dicts under *base_dir*."""

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def path_for(self, name: str) -> Path:
        return self._base_dir / f"{check_name(name)}{SUFFIX}"

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def ensure_dir(self, name: str) -> None:
        self.path_for(name).parent.mkdir(parents=True, exist_ok=True)

    def read(self, name: str) -> object:
        """Load the raw persisted object for `name`.

        Any failure propagates unchanged; callers treat every exception as
        "no usable persisted state".
        """

        data = self.path_for(name).read_bytes()
        return pickle.loads(data)  # noqa: S301

    def write(self, name: str, state: dict[str, object]) -> Path:
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write via temp file so a crash never leaves a partial pickle.
        tmp = path.with_name(path.name + ".tmp")
        try:
            tmp.write_bytes(pickle.dumps(state, protocol=pickle.HIGHEST_PROTOCOL))
            tmp.replace(path)
        except Exception:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                pass
            raise
        logger.debug("Wrote %s (%d entries)", path, len(state.get("table") or {}))
        return path

    def delete(self, name: str) -> bool:
        """Remove the persisted file for `name`; a missing file is not an error."""

        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def names(self) -> list[str]:
        """Return every persisted repository name under the base directory."""

        if not self._base_dir.is_dir():
            return []
        out: list[str] = []
        for p in self._base_dir.rglob(f"*{SUFFIX}"):
            if not p.is_file():
                continue
            rel = p.relative_to(self._base_dir).as_posix()
            out.append(rel[: -len(SUFFIX)])
        return sorted(out)
