from __future__ import annotations

from pathlib import Path

import pytest

from lrustore.config import default_config, find_project_root, load_config
from lrustore.errors import LruStoreConfigError


def test_load_minimal_config_defaults_apply(tmp_path: Path) -> None:
    (tmp_path / "lrustore.toml").write_text("version = 1\n", encoding="utf-8")
    cfg = load_config(root=tmp_path)

    assert cfg.version == 1
    assert cfg.store.base_dir == ".lrustore"
    assert cfg.store.max_size == 200
    assert cfg.store.save_delay == 300.0
    assert cfg == default_config()


def test_load_config_overrides_work(tmp_path: Path) -> None:
    (tmp_path / "lrustore.toml").write_text(
        "\n".join(
            [
                "version = 1",
                "",
                "[store]",
                'base_dir = "var/cache"',
                "max_size = 50",
                "save_delay = 2.5",
                "",
            ]
        ),
        encoding="utf-8",
    )

    cfg = load_config(root=tmp_path)
    assert cfg.store.base_dir == "var/cache"
    assert cfg.store.max_size == 50
    assert cfg.store.save_delay == 2.5


def test_integer_save_delay_becomes_float(tmp_path: Path) -> None:
    (tmp_path / "lrustore.toml").write_text("version = 1\n[store]\nsave_delay = 10\n")
    cfg = load_config(root=tmp_path)
    assert cfg.store.save_delay == 10.0
    assert isinstance(cfg.store.save_delay, float)


def test_load_config_from_explicit_path(tmp_path: Path) -> None:
    cfg_path = tmp_path / "elsewhere.toml"
    cfg_path.write_text("version = 1\n[store]\nmax_size = 3\n", encoding="utf-8")
    assert load_config(config_path=cfg_path).store.max_size == 3


@pytest.mark.parametrize(
    "body, match",
    [
        ("", "Missing required `version = 1`"),
        ("version = 2\n", "Unsupported config version"),
        ('version = "1"\n', "version to be an integer"),
        ("version = 1\nstore = 3\n", r"\[store\] to be a table"),
        ("version = 1\n[store]\nbase_dir = 3\n", "store.base_dir to be a string"),
        ('version = 1\n[store]\nbase_dir = " "\n', "must not be empty"),
        ("version = 1\n[store]\nmax_size = -1\n", "store.max_size to be >= 0"),
        ("version = 1\n[store]\nmax_size = 1.5\n", "store.max_size to be an integer"),
        ("version = 1\n[store]\nmax_size = true\n", "store.max_size to be an integer"),
        ('version = 1\n[store]\nsave_delay = "5m"\n', "store.save_delay to be a number"),
        ("version = 1\n[store]\nsave_delay = -1.0\n", "store.save_delay to be >= 0"),
        ("version = 1\n[store]\nsave_delay = nan\n", "store.save_delay to be >= 0"),
        ("version = [\n", "Invalid TOML"),
    ],
)
def test_invalid_config_is_rejected(tmp_path: Path, body: str, match: str) -> None:
    (tmp_path / "lrustore.toml").write_text(body, encoding="utf-8")
    with pytest.raises(LruStoreConfigError, match=match):
        load_config(root=tmp_path)


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(LruStoreConfigError, match="Missing lrustore.toml"):
        load_config(root=tmp_path)


def test_non_utf8_config(tmp_path: Path) -> None:
    (tmp_path / "lrustore.toml").write_bytes(b"version = 1\n# \xff\xfe\n")
    with pytest.raises(LruStoreConfigError, match="UTF-8"):
        load_config(root=tmp_path)


def test_find_project_root_walks_upward(tmp_path: Path) -> None:
    (tmp_path / "lrustore.toml").write_text("version = 1\n", encoding="utf-8")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    (nested / "mod.py").write_text("", encoding="utf-8")

    assert find_project_root(nested) == tmp_path.resolve()
    assert find_project_root(nested / "mod.py") == tmp_path.resolve()


def test_find_project_root_not_found(tmp_path: Path) -> None:
    with pytest.raises(LruStoreConfigError, match="Could not find lrustore.toml"):
        find_project_root(tmp_path)
