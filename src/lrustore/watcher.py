"""Watch mode: re-validate a persisted repository whenever its file changes."""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from lrustore.registry import Registry


@dataclass(frozen=True, slots=True)
class WatchEvent:
    """A batch of changes touching the watched repository file."""

    changed_paths: frozenset[Path]
    timestamp: float


@dataclass(frozen=True, slots=True)
class WatchCycleResult:
    """Result of re-validating the repository after a change."""

    name: str
    exists: bool
    valid: bool
    size: int
    problems: tuple[str, ...]
    duration_s: float


def check_watchfiles_available() -> None:
    """Raise ImportError with a helpful message if watchfiles is not installed."""
    import importlib

    try:
        importlib.import_module("watchfiles")
    except ImportError:
        raise ImportError(
            "watchfiles is required for watch mode. Install it with: pip install lrustore[watch]"
        ) from None


def filter_repository_file(changed_paths: frozenset[Path], *, target: Path) -> frozenset[Path]:
    """Keep only changes to the watched repository file (temp files are ignored)."""
    target = target.resolve()
    return frozenset(p for p in changed_paths if p.resolve() == target)


async def run_watch_loop(
    *,
    changes_iter: AsyncIterator[set[tuple[Any, str]]],
    run_cycle: Callable[[WatchEvent], WatchCycleResult],
    on_event: Callable[[str], None],
    on_cycle_result: Callable[[WatchCycleResult], None],
    on_error: Callable[[BaseException], None],
    target: Path,
) -> None:
    """Main watch loop. Consumes changes_iter, filters, and calls run_cycle."""
    async for raw_changes in changes_iter:
        paths = frozenset(Path(p) for _, p in raw_changes)
        relevant = filter_repository_file(paths, target=target)
        if not relevant:
            continue

        event = WatchEvent(changed_paths=relevant, timestamp=time.monotonic())
        on_event(f"[watch] change detected: {target}")

        try:
            result = run_cycle(event)
        except Exception as exc:
            on_error(exc)
            continue

        on_cycle_result(result)


def format_watch_cycle_json(result: WatchCycleResult) -> dict[str, object]:
    """Format a cycle result as a JSON-serializable dict."""
    return {
        "command": "watch",
        "name": result.name,
        "exists": result.exists,
        "ok": result.valid,
        "size": result.size,
        "problems": list(result.problems),
        "duration_s": round(result.duration_s, 2),
    }


def build_cycle_runner(registry: Registry, name: str) -> Callable[[WatchEvent], WatchCycleResult]:
    """Create a cycle runner that inspects the persisted repository `name`."""
    from lrustore.errors import LruStoreNotFoundError

    def runner(event: WatchEvent) -> WatchCycleResult:
        t0 = time.monotonic()
        try:
            inspection = registry.inspect(name)
        except LruStoreNotFoundError:
            return WatchCycleResult(
                name=name,
                exists=False,
                valid=False,
                size=0,
                problems=("file removed",),
                duration_s=time.monotonic() - t0,
            )

        repo = inspection.repository
        return WatchCycleResult(
            name=name,
            exists=True,
            valid=inspection.valid,
            size=len(repo) if repo is not None else 0,
            problems=tuple(inspection.problems),
            duration_s=time.monotonic() - t0,
        )

    return runner


def make_watchfiles_iter(watch_paths: list[Path]) -> AsyncIterator[set[tuple[Any, str]]]:
    """Create an async iterator using watchfiles.awatch()."""
    import watchfiles  # type: ignore[import-untyped]

    return watchfiles.awatch(*watch_paths, debounce=200)
