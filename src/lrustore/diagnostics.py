"""Error formatting and actionable hints for lrustore CLI output.

Keep this module small and dependency-light: it is imported by the CLI layer
and only depends on the error hierarchy.
"""

from __future__ import annotations

from lrustore.errors import LruStoreConfigError, LruStoreNotFoundError, LruStoreSaveError


def format_problems(name: str, problems: list[str]) -> str:
    """Format validation problems into a human-readable summary."""
    if not problems:
        return f"{name}: ok\n"
    lines = [f"{name}: {len(problems)} problem(s)"]
    for p in problems:
        lines.append(f"  - {p}")
    return "\n".join(lines) + "\n"


def format_hint(exc: BaseException) -> str | None:
    """Return an actionable hint for a known error, or None."""
    msg = str(exc)

    if isinstance(exc, LruStoreConfigError):
        if "lrustore.toml" in msg and "find" in msg.lower():
            return "create an lrustore.toml with `version = 1` or pass --root"
        return None

    if isinstance(exc, LruStoreNotFoundError):
        return "run `lrustore list` to see persisted repositories"

    if isinstance(exc, LruStoreSaveError):
        return "check that store.base_dir is writable and every cached value is picklable"

    return None


def format_error_with_hint(exc: BaseException) -> str:
    """Format error message + optional hint for stderr output."""
    msg = (str(exc) or repr(exc)).strip()
    result = f"error: {msg}"
    hint = format_hint(exc)
    if hint:
        result += f"\nhint: {hint}"
    return result
