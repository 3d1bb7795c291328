from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from lrustore import __version__
from lrustore.diagnostics import format_error_with_hint, format_problems
from lrustore.errors import LruStoreConfigError, LruStoreNotFoundError, LruStoreSaveError

if TYPE_CHECKING:  # pragma: no cover
    from lrustore.registry import Registry


EXIT_OK = 0
EXIT_INVALID = 1
EXIT_CONFIG_OR_NOT_FOUND = 2
EXIT_SAVE_ERROR = 3


def _add_common_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--root",
        type=str,
        default=None,
        help="Project root (defaults to searching upward from cwd for lrustore.toml).",
    )
    p.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to lrustore.toml (defaults to <root>/lrustore.toml).",
    )
    p.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Emit machine-readable JSON on stdout.",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lrustore")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_p = subparsers.add_parser("list", help="List persisted repositories.")
    _add_common_flags(list_p)

    info_p = subparsers.add_parser("info", help="Show a persisted repository's summary.")
    _add_common_flags(info_p)
    info_p.add_argument("name")

    keys_p = subparsers.add_parser("keys", help="Print keys, most recently used first.")
    _add_common_flags(keys_p)
    keys_p.add_argument("name")
    keys_p.add_argument(
        "--oldest-first",
        action="store_true",
        help="Print least recently used keys first.",
    )

    validate_p = subparsers.add_parser("validate", help="Check a repository's integrity.")
    _add_common_flags(validate_p)
    validate_p.add_argument("name")

    purge_p = subparsers.add_parser("purge", help="Drop invalid entries and save.")
    _add_common_flags(purge_p)
    purge_p.add_argument("name")

    destroy_p = subparsers.add_parser("destroy", help="Delete a persisted repository.")
    _add_common_flags(destroy_p)
    destroy_p.add_argument("name")

    watch_p = subparsers.add_parser("watch", help="Re-validate a repository on every change.")
    _add_common_flags(watch_p)
    watch_p.add_argument("name")

    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


def _emit_json(payload: dict[str, object]) -> None:
    print(json.dumps(payload, sort_keys=True, default=repr))


def _configure_logging(args: argparse.Namespace) -> None:
    if bool(getattr(args, "verbose", False)):
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


def _load_registry(args: argparse.Namespace) -> Registry:
    from lrustore.config import find_project_root, load_config
    from lrustore.registry import Registry

    root = Path(args.root).resolve() if args.root else None
    config_path = Path(args.config).resolve() if args.config else None
    if root is None and config_path is None:
        root = find_project_root(Path.cwd())
    elif root is None and config_path is not None:
        root = config_path.parent

    assert root is not None
    cfg = load_config(root=root, config_path=config_path)
    return Registry.from_config(cfg, root=root)


def cmd_list(args: argparse.Namespace) -> int:
    try:
        registry = _load_registry(args)
    except LruStoreConfigError as e:
        _eprint(format_error_with_hint(e))
        return EXIT_CONFIG_OR_NOT_FOUND

    names = registry.storage.names()
    if args.json_output:
        _emit_json({"command": "list", "ok": True, "names": names})
    else:
        for name in names:
            print(name)
    return EXIT_OK


def cmd_info(args: argparse.Namespace) -> int:
    try:
        registry = _load_registry(args)
        inspection = registry.inspect(args.name)
    except (LruStoreConfigError, LruStoreNotFoundError) as e:
        _eprint(format_error_with_hint(e))
        return EXIT_CONFIG_OR_NOT_FOUND

    repo = inspection.repository
    payload: dict[str, object] = {
        "command": "info",
        "name": inspection.name,
        "path": str(inspection.path),
        "ok": inspection.valid,
        "problems": inspection.problems,
    }
    if repo is not None:
        payload.update(
            {
                "size": len(repo),
                "max_size": repo.max_size,
                "save_delay": repo.save_delay,
                "format_version": repo.format_version,
            }
        )

    if args.json_output:
        _emit_json(payload)
    else:
        for key in ("name", "path", "size", "max_size", "save_delay", "format_version"):
            if key in payload:
                print(f"{key}: {payload[key]}")
        print(f"valid: {'yes' if inspection.valid else 'no'}")
    return EXIT_OK


def cmd_keys(args: argparse.Namespace) -> int:
    try:
        registry = _load_registry(args)
        inspection = registry.inspect(args.name)
    except (LruStoreConfigError, LruStoreNotFoundError) as e:
        _eprint(format_error_with_hint(e))
        return EXIT_CONFIG_OR_NOT_FOUND

    repo = inspection.repository
    if repo is None:
        _eprint(format_problems(args.name, inspection.problems).rstrip())
        return EXIT_INVALID

    keys = repo.least_to_most_recent() if args.oldest_first else repo.most_to_least_recent()
    if args.json_output:
        _emit_json({"command": "keys", "ok": True, "name": args.name, "keys": keys})
    else:
        for key in keys:
            print(key if isinstance(key, str) else repr(key))
    return EXIT_OK


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        registry = _load_registry(args)
        inspection = registry.inspect(args.name)
    except (LruStoreConfigError, LruStoreNotFoundError) as e:
        _eprint(format_error_with_hint(e))
        return EXIT_CONFIG_OR_NOT_FOUND

    if args.json_output:
        _emit_json(
            {
                "command": "validate",
                "name": args.name,
                "ok": inspection.valid,
                "problems": inspection.problems,
            }
        )
    else:
        sys.stdout.write(format_problems(args.name, inspection.problems))
    return EXIT_OK if inspection.valid else EXIT_INVALID


def cmd_purge(args: argparse.Namespace) -> int:
    from lrustore.validation import purge_invalid

    try:
        registry = _load_registry(args)
        inspection = registry.inspect(args.name)
    except (LruStoreConfigError, LruStoreNotFoundError) as e:
        _eprint(format_error_with_hint(e))
        return EXIT_CONFIG_OR_NOT_FOUND

    repo = inspection.repository
    if repo is None:
        _eprint(format_problems(args.name, inspection.problems).rstrip())
        return EXIT_INVALID

    removed = purge_invalid(repo)
    try:
        repo.save(force=True)
    except LruStoreSaveError as e:
        _eprint(format_error_with_hint(e))
        return EXIT_SAVE_ERROR

    if args.json_output:
        _emit_json({"command": "purge", "ok": True, "name": args.name, "removed": removed})
    else:
        noun = "entry" if len(removed) == 1 else "entries"
        print(f"{args.name}: removed {len(removed)} invalid {noun}")
    return EXIT_OK


def cmd_destroy(args: argparse.Namespace) -> int:
    try:
        registry = _load_registry(args)
        existed = registry.storage.exists(args.name)
        registry.destroy(args.name)
    except LruStoreConfigError as e:
        _eprint(format_error_with_hint(e))
        return EXIT_CONFIG_OR_NOT_FOUND

    if args.json_output:
        _emit_json({"command": "destroy", "ok": True, "name": args.name, "existed": existed})
    elif existed:
        print(f"{args.name}: destroyed")
    return EXIT_OK


def cmd_watch(args: argparse.Namespace) -> int:
    from lrustore.watcher import (
        WatchCycleResult,
        build_cycle_runner,
        check_watchfiles_available,
        format_watch_cycle_json,
        make_watchfiles_iter,
        run_watch_loop,
    )

    try:
        check_watchfiles_available()
    except ImportError as e:
        _eprint(f"error: {e}")
        return EXIT_CONFIG_OR_NOT_FOUND

    try:
        registry = _load_registry(args)
        registry.inspect(args.name)
    except (LruStoreConfigError, LruStoreNotFoundError) as e:
        _eprint(format_error_with_hint(e))
        return EXIT_CONFIG_OR_NOT_FOUND

    target = registry.storage.path_for(args.name)
    json_mode = bool(args.json_output)

    def on_event(msg: str) -> None:
        if not json_mode:
            _eprint(msg)

    def on_cycle_result(result: WatchCycleResult) -> None:
        if json_mode:
            _emit_json(format_watch_cycle_json(result))
        else:
            sys.stdout.write(format_problems(result.name, list(result.problems)))

    def on_error(exc: BaseException) -> None:
        _eprint(f"[watch] error: {type(exc).__name__}: {exc}")

    try:
        asyncio.run(
            run_watch_loop(
                changes_iter=make_watchfiles_iter([target.parent]),
                run_cycle=build_cycle_runner(registry, args.name),
                on_event=on_event,
                on_cycle_result=on_cycle_result,
                on_error=on_error,
                target=target,
            )
        )
    except KeyboardInterrupt:
        pass
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(list(sys.argv[1:] if argv is None else argv))
    except SystemExit as e:
        # argparse uses SystemExit for --help/--version and parse errors.
        code = e.code
        return int(code) if isinstance(code, int) else EXIT_CONFIG_OR_NOT_FOUND

    _configure_logging(args)

    if args.command == "list":
        return cmd_list(args)
    if args.command == "info":
        return cmd_info(args)
    if args.command == "keys":
        return cmd_keys(args)
    if args.command == "validate":
        return cmd_validate(args)
    if args.command == "purge":
        return cmd_purge(args)
    if args.command == "destroy":
        return cmd_destroy(args)
    if args.command == "watch":
        return cmd_watch(args)

    return EXIT_CONFIG_OR_NOT_FOUND


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
