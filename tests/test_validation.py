from __future__ import annotations

from pathlib import Path

import pytest

from lrustore.entry import Entry
from lrustore.repository import Repository
from lrustore.storage import PickleStorage
from lrustore.validation import (
    purge_invalid,
    repository_problems,
    validate_entry,
    validate_repository,
)


@pytest.fixture
def repo(tmp_path: Path) -> Repository:
    r = Repository("v", storage=PickleStorage(tmp_path), clock=lambda: 1000.0)
    for k in ("a", "b", "c"):
        r.put(k, ord(k))
    return r


def test_fresh_and_mutated_repositories_are_valid(repo: Repository) -> None:
    assert validate_repository(repo)
    assert repository_problems(repo) == []


def test_validate_entry() -> None:
    assert validate_entry(Entry.wrap(3))
    assert not validate_entry(Entry(value="3", declared_kind=int))


def test_version_mismatch_is_invalid(repo: Repository) -> None:
    repo.format_version = "0"
    assert not validate_repository(repo)
    assert any("format version" in p for p in repository_problems(repo))


def test_expected_version_is_read_from_the_class(
    repo: Repository, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(Repository, "FORMAT_VERSION", "2")
    assert not validate_repository(repo)


def test_recency_missing_key_is_invalid(repo: Repository) -> None:
    repo.recency.discard("b")
    problems = repository_problems(repo)
    assert not validate_repository(repo)
    assert any("recency has 2 keys but table has 3" in p for p in problems)
    assert any("table keys missing from recency" in p for p in problems)


def test_table_missing_key_is_invalid(repo: Repository) -> None:
    del repo.table["a"]
    problems = repository_problems(repo)
    assert any("recency keys missing from table" in p for p in problems)


def test_same_size_but_different_keys_is_invalid(repo: Repository) -> None:
    del repo.table["a"]
    repo.table["z"] = Entry.wrap(1)
    assert not validate_repository(repo)


def test_foreign_structures_are_invalid(repo: Repository) -> None:
    repo._recency = ["c", "b", "a"]  # type: ignore[assignment]
    assert not validate_repository(repo)
    assert "not a RecencyIndex" in repository_problems(repo)[0]


def test_foreign_table_is_invalid(repo: Repository) -> None:
    repo._table = [("a", Entry.wrap(1))]  # type: ignore[assignment]
    assert not validate_repository(repo)


def test_non_entry_values_are_invalid(repo: Repository) -> None:
    repo.table["a"] = 97  # type: ignore[assignment]
    assert not validate_repository(repo)


def test_type_drift_makes_repository_invalid(repo: Repository) -> None:
    repo.table["b"].value = "bee"
    assert not validate_repository(repo)
    assert any("invalid entries: ['b']" in p for p in repository_problems(repo))


def test_purge_invalid_removes_from_table_and_recency(repo: Repository) -> None:
    repo.table["b"].value = "bee"
    repo.table["c"] = "raw"  # type: ignore[assignment]

    removed = purge_invalid(repo)

    assert sorted(removed) == ["b", "c"]
    assert list(repo.table) == ["a"]
    assert repo.most_to_least_recent() == ["a"]
    assert validate_repository(repo)


def test_purge_invalid_without_invalid_entries(repo: Repository) -> None:
    assert purge_invalid(repo) == []
    assert repo.most_to_least_recent() == ["c", "b", "a"]


def test_purge_does_not_repair_structural_mismatch(repo: Repository) -> None:
    repo.recency.discard("a")
    assert purge_invalid(repo) == []
    assert not validate_repository(repo)


def test_repository_shortcuts(repo: Repository) -> None:
    assert repo.validate()
    repo.table["a"].value = None
    assert repo.purge_invalid() == ["a"]
    assert repo.validate()
