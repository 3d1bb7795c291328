"""Project configuration loading for lrustore.

This module is intentionally small and deterministic: it only reads
`lrustore.toml` and performs light validation.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from lrustore.errors import LruStoreConfigError

CONFIG_FILENAME = "lrustore.toml"

DEFAULT_BASE_DIR = ".lrustore"
DEFAULT_MAX_SIZE = 200
DEFAULT_SAVE_DELAY = 300.0


@dataclass(frozen=True)
class StoreConfig:
    base_dir: str
    max_size: int
    save_delay: float


@dataclass(frozen=True)
class LruStoreConfig:
    version: int
    store: StoreConfig


def default_config() -> LruStoreConfig:
    return LruStoreConfig(
        version=1,
        store=StoreConfig(
            base_dir=DEFAULT_BASE_DIR,
            max_size=DEFAULT_MAX_SIZE,
            save_delay=DEFAULT_SAVE_DELAY,
        ),
    )


def find_project_root(start: Path) -> Path:
    """Walk upward from `start` (file or directory) looking for `lrustore.toml`."""

    cur = start
    try:
        if cur.is_file():
            cur = cur.parent
    except OSError:
        cur = cur.parent

    cur = cur.resolve()
    while True:
        if (cur / CONFIG_FILENAME).is_file():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent

    raise LruStoreConfigError(
        f"Could not find {CONFIG_FILENAME} by walking upward from start path."
    )


def _as_table(value: Any, *, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise LruStoreConfigError(f"Expected [{name}] to be a table.")
    return value


def _as_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise LruStoreConfigError(f"Expected {name} to be an integer.")
    return value


def _as_str(value: Any, *, name: str) -> str:
    if not isinstance(value, str):
        raise LruStoreConfigError(f"Expected {name} to be a string.")
    return value


def as_max_size(value: Any, *, name: str) -> int:
    size = _as_int(value, name=name)
    if size < 0:
        raise LruStoreConfigError(f"Expected {name} to be >= 0.")
    return size


def as_save_delay(value: Any, *, name: str) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise LruStoreConfigError(f"Expected {name} to be a number of seconds.")
    if value != value or value < 0:
        raise LruStoreConfigError(f"Expected {name} to be >= 0.")
    return float(value)


def load_config(*, root: Path | None = None, config_path: Path | None = None) -> LruStoreConfig:
    """Load and validate `lrustore.toml`.

    If neither `root` nor `config_path` are provided, the project root is
    discovered by walking upward from the current working directory.
    """

    if config_path is None:
        if root is None:
            root = find_project_root(Path.cwd())
        config_path = root / CONFIG_FILENAME

    try:
        raw = config_path.read_bytes()
    except FileNotFoundError as e:
        raise LruStoreConfigError(f"Missing {CONFIG_FILENAME} at: {config_path}") from e
    except OSError as e:
        raise LruStoreConfigError(f"Failed reading config file: {config_path}") from e

    try:
        data = tomllib.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise LruStoreConfigError(f"Config is not valid UTF-8: {config_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise LruStoreConfigError(f"Invalid TOML in {config_path}: {e}") from e

    version = data.get("version", None)
    if version is None:
        raise LruStoreConfigError(f"Missing required `version = 1` in {CONFIG_FILENAME}.")
    version_i = _as_int(version, name="version")
    if version_i != 1:
        raise LruStoreConfigError(f"Unsupported config version: {version_i} (expected 1).")

    store_tbl = _as_table(data.get("store"), name="store")

    if "base_dir" in store_tbl:
        base_dir = _as_str(store_tbl["base_dir"], name="store.base_dir")
    else:
        base_dir = DEFAULT_BASE_DIR

    if "max_size" in store_tbl:
        max_size = as_max_size(store_tbl["max_size"], name="store.max_size")
    else:
        max_size = DEFAULT_MAX_SIZE

    if "save_delay" in store_tbl:
        save_delay = as_save_delay(store_tbl["save_delay"], name="store.save_delay")
    else:
        save_delay = DEFAULT_SAVE_DELAY

    if not base_dir.strip():
        raise LruStoreConfigError("Invalid config: store.base_dir must not be empty.")

    return LruStoreConfig(
        version=version_i,
        store=StoreConfig(base_dir=base_dir, max_size=max_size, save_delay=save_delay),
    )
