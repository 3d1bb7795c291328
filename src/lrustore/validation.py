"""Structural checks for entries and repositories.

Used after loading a persisted repository and for on-demand health checks.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable
from typing import TYPE_CHECKING

from lrustore.entry import Entry
from lrustore.recency import RecencyIndex

if TYPE_CHECKING:  # pragma: no cover
    from lrustore.repository import Repository

logger = logging.getLogger("lrustore.validation")


def validate_entry(entry: object) -> bool:
    """True iff `entry` is an Entry whose value matches its declared kind."""

    return isinstance(entry, Entry) and entry.is_valid()


def repository_problems(repo: Repository) -> list[str]:
    """Return human-readable integrity problems (empty list means valid)."""

    problems: list[str] = []

    expected = type(repo).FORMAT_VERSION
    if repo.format_version != expected:
        problems.append(
            f"format version {repo.format_version!r} does not match expected {expected!r}"
        )

    recency = repo.recency
    table = repo.table
    if not isinstance(recency, RecencyIndex):
        problems.append(f"recency is a {type(recency).__name__}, not a RecencyIndex")
        return problems
    if not isinstance(table, dict):
        problems.append(f"table is a {type(table).__name__}, not a dict")
        return problems

    keys = recency.most_to_least_recent()
    if len(keys) != len(table):
        problems.append(f"recency has {len(keys)} keys but table has {len(table)}")
    if len(set(keys)) != len(keys):
        problems.append("recency contains duplicate keys")

    missing = [k for k in keys if k not in table]
    if missing:
        problems.append(f"recency keys missing from table: {missing!r}")
    orphaned = [k for k in table if k not in recency]
    if orphaned:
        problems.append(f"table keys missing from recency: {orphaned!r}")

    bad = [k for k, e in table.items() if not validate_entry(e)]
    if bad:
        problems.append(f"invalid entries: {bad!r}")

    return problems


def validate_repository(repo: Repository) -> bool:
    """True iff `repo` passes every structural check."""

    problems = repository_problems(repo)
    for p in problems:
        logger.debug("%s: %s", repo.name, p)
    return not problems


def purge_invalid(repo: Repository) -> list[Hashable]:
    """Remove every entry that fails `validate_entry`, from table and recency.

    Returns the removed keys.  Table/recency mismatches are not repaired.
    """

    table = repo.table
    removed = [k for k, e in table.items() if not validate_entry(e)]
    for key in removed:
        del table[key]
        repo.recency.discard(key)
    if removed:
        logger.debug("Purged %d invalid entries from %s", len(removed), repo.name)
    return removed
