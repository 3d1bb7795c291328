"""Named repository registry.

A `Registry` maps repository names to live `Repository` instances and owns
the construct-or-load step.  Tests build isolated registries; application
code usually goes through the lazily created default registry.
"""

from __future__ import annotations

import atexit
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from lrustore.config import (
    DEFAULT_BASE_DIR,
    DEFAULT_MAX_SIZE,
    DEFAULT_SAVE_DELAY,
    LruStoreConfig,
    as_max_size,
    as_save_delay,
)
from lrustore.errors import LruStoreConfigError, LruStoreNotFoundError
from lrustore.repository import Repository
from lrustore.storage import PickleStorage, check_name
from lrustore.validation import purge_invalid, repository_problems

logger = logging.getLogger("lrustore.registry")


@dataclass(slots=True)
class Inspection:
    """A persisted repository read without registering it."""

    name: str
    path: Path
    repository: Repository | None
    problems: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.repository is not None and not self.problems


class Registry:
    def __init__(
        self,
        base_dir: Path,
        *,
        max_size: int = DEFAULT_MAX_SIZE,
        save_delay: float = DEFAULT_SAVE_DELAY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = PickleStorage(Path(base_dir))
        self.max_size = as_max_size(max_size, name="max_size")
        self.save_delay = as_save_delay(save_delay, name="save_delay")
        self._clock = clock
        self._repos: dict[str, Repository] = {}
        # Instances whose persisted state is currently being read.  A nested
        # open() of the same name resolves here instead of loading again.
        self._in_flight: dict[str, Repository] = {}
        self._exit_hook_installed = False

    @classmethod
    def from_config(
        cls,
        cfg: LruStoreConfig,
        *,
        root: Path,
        clock: Callable[[], float] = time.time,
    ) -> Registry:
        return cls(
            root / cfg.store.base_dir,
            max_size=cfg.store.max_size,
            save_delay=cfg.store.save_delay,
            clock=clock,
        )

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        try:
            return check_name(name) in self._repos
        except LruStoreConfigError:
            return False

    def names(self) -> list[str]:
        return sorted(self._repos)

    def get(self, name: str) -> Repository | None:
        """Return the live instance for `name` without loading anything."""

        return self._repos.get(check_name(name))

    def open(
        self,
        name: str,
        *,
        max_size: int | None = None,
        save_delay: float | None = None,
    ) -> Repository:
        """Return the repository called `name`, loading or creating it.

        A persisted repository that cannot be read, fails validation or was
        written by another format version is discarded and replaced by a
        fresh empty one; load failures never reach the caller.
        """

        name = check_name(name)

        repo = self._repos.get(name)
        if repo is not None:
            if repo.format_version == Repository.FORMAT_VERSION:
                return repo
            logger.debug(
                "Dropping %s: stale format version %r", name, repo.format_version
            )
            del self._repos[name]

        in_flight = self._in_flight.get(name)
        if in_flight is not None:
            return in_flight

        size = self.max_size if max_size is None else as_max_size(max_size, name="max_size")
        delay = (
            self.save_delay if save_delay is None else as_save_delay(save_delay, name="save_delay")
        )

        repo = Repository(
            name,
            storage=self.storage,
            max_size=size,
            save_delay=delay,
            clock=self._clock,
        )
        self._in_flight[name] = repo
        try:
            loaded = self._try_load(repo)
        finally:
            del self._in_flight[name]

        if not loaded:
            repo.reset(max_size=size, save_delay=delay)
            self.storage.ensure_dir(name)

        self._repos[name] = repo
        return repo

    def _try_load(self, repo: Repository) -> bool:
        if not self.storage.exists(repo.name):
            return False
        try:
            state = self.storage.read(repo.name)
            repo.restore(state)
        except Exception as e:  # noqa: BLE001 - any bad persisted state means "start fresh"
            logger.debug("Discarding persisted %s: %s: %s", repo.name, type(e).__name__, e)
            return False

        problems = repository_problems(repo)
        if problems:
            logger.debug("Discarding persisted %s: %s", repo.name, "; ".join(problems))
            return False
        return True

    def inspect(self, name: str) -> Inspection:
        """Read the persisted file for `name` into an unregistered repository.

        Nothing is registered and nothing is written.  Unreadable files are
        reported as problems rather than raised.
        """

        name = check_name(name)
        path = self.storage.path_for(name)
        if not path.is_file():
            raise LruStoreNotFoundError(f"No persisted repository named {name!r} at {path}")

        repo = Repository(
            name,
            storage=self.storage,
            max_size=self.max_size,
            save_delay=self.save_delay,
            clock=self._clock,
        )
        try:
            repo.restore(self.storage.read(name))
        except Exception as e:  # noqa: BLE001 - reported to the caller as a problem
            return Inspection(
                name=name,
                path=path,
                repository=None,
                problems=[f"unreadable: {type(e).__name__}: {e}"],
            )
        return Inspection(name=name, path=path, repository=repo, problems=repository_problems(repo))

    def destroy(self, name: str) -> None:
        """Forget `name` and delete its persisted file (idempotent).

        A handle to the forgotten repository stays usable in memory but is
        detached: it never writes to disk again, so it cannot bring the file
        back.
        """

        name = check_name(name)
        repo = self._repos.pop(name, None)
        if repo is not None:
            repo.detach()
        if self.storage.delete(name):
            logger.debug("Deleted persisted %s", name)

    def shutdown(self) -> None:
        """Purge invalid entries from every live repository and force-save it.

        Failures are logged per repository so one broken cache cannot stop
        the others from being flushed.
        """

        for name, repo in list(self._repos.items()):
            try:
                purge_invalid(repo)
                repo.save(force=True)
            except Exception:  # noqa: BLE001 - keep flushing the remaining repositories
                logger.warning("Failed flushing repository %s", name, exc_info=True)

    def install_exit_hook(self) -> None:
        """Run `shutdown()` at interpreter exit (registered at most once)."""

        if self._exit_hook_installed:
            return
        atexit.register(self.shutdown)
        self._exit_hook_installed = True

    def uninstall_exit_hook(self) -> None:
        if not self._exit_hook_installed:
            return
        atexit.unregister(self.shutdown)
        self._exit_hook_installed = False


_DEFAULT_REGISTRY: Registry | None = None


def get_default_registry() -> Registry:
    """Return the process-wide registry, creating it on first use.

    The default registry stores repositories under `.lrustore/` in the
    current working directory and flushes them at interpreter exit.
    """

    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        _DEFAULT_REGISTRY = Registry(Path.cwd() / DEFAULT_BASE_DIR)
        _DEFAULT_REGISTRY.install_exit_hook()
    return _DEFAULT_REGISTRY


def set_default_registry(registry: Registry | None) -> None:
    """Replace the process-wide registry (intended for application setup and tests)."""

    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is not None and _DEFAULT_REGISTRY is not registry:
        _DEFAULT_REGISTRY.uninstall_exit_hook()
    _DEFAULT_REGISTRY = registry


def open_repository(
    name: str,
    *,
    max_size: int | None = None,
    save_delay: float | None = None,
) -> Repository:
    return get_default_registry().open(name, max_size=max_size, save_delay=save_delay)


def destroy_repository(name: str) -> None:
    get_default_registry().destroy(name)
