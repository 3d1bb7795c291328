from __future__ import annotations

import pickle
from pathlib import Path

import pytest

from lrustore.errors import LruStoreConfigError
from lrustore.storage import PickleStorage, check_name


def test_path_for_joins_base_dir_and_name(tmp_path: Path) -> None:
    s = PickleStorage(tmp_path)
    assert s.path_for("thumbs") == tmp_path / "thumbs.pickle"
    assert s.path_for("images/thumbs") == tmp_path / "images" / "thumbs.pickle"


@pytest.mark.parametrize(
    "name", ["", "   ", "/abs", "../escape", "a/../../b", "C:/x", "ns/", ".", "./", "\\abs"]
)
def test_bad_names_are_rejected(name: str) -> None:
    with pytest.raises(LruStoreConfigError):
        check_name(name)


def test_write_then_read(tmp_path: Path) -> None:
    s = PickleStorage(tmp_path)
    path = s.write("ns/cache", {"table": {"a": 1}, "recency": ["a"]})

    assert path == tmp_path / "ns" / "cache.pickle"
    assert s.exists("ns/cache")
    assert s.read("ns/cache") == {"table": {"a": 1}, "recency": ["a"]}
    # No temp file left behind.
    assert sorted(p.name for p in (tmp_path / "ns").iterdir()) == ["cache.pickle"]


def test_read_garbage_raises(tmp_path: Path) -> None:
    s = PickleStorage(tmp_path)
    (tmp_path / "bad.pickle").write_bytes(b"not a pickle")
    with pytest.raises(Exception):
        s.read("bad")


def test_read_missing_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        PickleStorage(tmp_path).read("missing")


def test_failed_write_keeps_previous_file(tmp_path: Path) -> None:
    s = PickleStorage(tmp_path)
    s.write("c", {"table": {}, "recency": []})

    with pytest.raises(Exception):
        s.write("c", {"table": {"f": lambda: 1}, "recency": ["f"]})

    assert pickle.loads((tmp_path / "c.pickle").read_bytes()) == {"table": {}, "recency": []}
    assert not (tmp_path / "c.pickle.tmp").exists()


def test_delete_is_idempotent(tmp_path: Path) -> None:
    s = PickleStorage(tmp_path)
    s.write("c", {})
    assert s.delete("c") is True
    assert s.delete("c") is False
    assert not s.exists("c")


def test_names_lists_nested_repositories(tmp_path: Path) -> None:
    s = PickleStorage(tmp_path)
    assert s.names() == []
    s.write("b", {})
    s.write("a/inner", {})
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")
    assert s.names() == ["a/inner", "b"]


def test_names_on_missing_base_dir(tmp_path: Path) -> None:
    assert PickleStorage(tmp_path / "nope").names() == []


@pytest.mark.parametrize(
    "name, canonical",
    [
        ("ns/cache", "ns/cache"),
        ("ns//cache", "ns/cache"),
        ("./ns/cache", "ns/cache"),
        ("ns/./cache", "ns/cache"),
        ("ns\\cache", "ns/cache"),
        ("cache", "cache"),
    ],
)
def test_check_name_canonicalizes(name: str, canonical: str) -> None:
    assert check_name(name) == canonical


def test_spellings_of_a_name_share_one_path(tmp_path: Path) -> None:
    s = PickleStorage(tmp_path)
    assert s.path_for("ns//cache") == s.path_for("./ns/cache") == tmp_path / "ns" / "cache.pickle"
