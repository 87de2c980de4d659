from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional

import tomli_w

from .config import DEFAULT_CONFIG_NAME, merge_setup, read_config, setup_to_dict
from .errors import ConfigError, QueryError, SetupError
from .model import Operation, ProjectConfig, QueryRequest, QuerySettings, SortOrder
from .query import run_query
from .scaffold import planned_folders, sync_project
from .utils import as_path, format_duration

_OPERATIONS = {
    "new": Operation.NEW,
    "n": Operation.NEW,
    "update": Operation.UPDATE,
    "u": Operation.UPDATE,
    "query": Operation.QUERY,
    "q": Operation.QUERY,
}


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got: {value!r}")
    if n < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got: {n}")
    return n


def _add_setup_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-n", "--name", default=None,
        help="Names the project and its directory. With update, renames the old directory.",
    )
    p.add_argument(
        "-dn", "--deadname", default=None,
        help="Adopt an existing directory with this name, renaming it to the project name.",
    )
    p.add_argument("-d", "--days", type=_positive_int, default=None, help="Number of shoot days.")
    p.add_argument("-c", "--cameras", type=_positive_int, default=None, help="Number of cameras.")
    p.add_argument(
        "-s", "--sound-sources", type=_positive_int, default=None, help="Number of sound sources."
    )
    p.add_argument(
        "-cl", "--clean", action="store_true",
        help="Delete empty folders that are not part of the project template.",
    )
    p.add_argument(
        "--print-folders", action="store_true",
        help="Print folders that would be created and exit.",
    )


def _add_query_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("-g", "--general", action="store_true",
                   help="General query over the folders listed in config (default).")
    p.add_argument("-r", "--root", action="store_true", help="Query the whole project directory.")
    p.add_argument("-d", "--days", action="store_true", help="Query each shoot day.")
    p.add_argument("-c", "--cameras", action="store_true",
                   help="Query each camera, combining all days unless --unique.")
    p.add_argument("-s", "--sound-sources", action="store_true",
                   help="Query each sound source, combining all days unless --unique.")
    p.add_argument("-u", "--unique", action="store_true",
                   help="Report each day's camera/sound-source folder separately.")
    p.add_argument("-f", "--folder", action="append", default=None,
                   help="Query every folder with this name (repeatable).")

    sort = p.add_mutually_exclusive_group()
    sort.add_argument("-ss", "--sort-size", action="store_true",
                      help="Sort results by size (largest first).")
    sort.add_argument("-sd", "--sort-default", action="store_true",
                      help="Keep results in template order (default).")

    p.add_argument("-w", "--write", nargs="?", const="", default=None, metavar="NAME",
                   help="Also write the report to NAME.txt (timestamped name if omitted).")
    p.add_argument("-t", "--timestamp", action="store_true",
                   help="Put a timestamp at the top of the written report.")
    p.add_argument("-q", "--quiet", action="store_true",
                   help="Do not report folders missing from the project.")
    p.add_argument("-rt", "--runtime", action="store_true",
                   help="Include runtime information in the results.")


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="rushtree",
        description="Scaffold, maintain and measure media-production project folders.",
    )
    p.add_argument(
        "--base-dir", default=".",
        help="Directory that holds the project folder and config (default: current directory).",
    )
    p.add_argument(
        "--config", default=None,
        help=f"Path to the project config (default: <base-dir>/{DEFAULT_CONFIG_NAME}).",
    )

    sub = p.add_subparsers(dest="command")
    _add_setup_args(sub.add_parser(
        "new", aliases=["n"], help="Create a new project and config from the given arguments."
    ))
    _add_setup_args(sub.add_parser(
        "update", aliases=["u"], help="Update an existing project from the given arguments."
    ))
    _add_query_args(sub.add_parser(
        "query", aliases=["q"], help="Report file counts and sizes for parts of the project."
    ))
    return p


def build_project_config(
    args: argparse.Namespace, previous: Optional[ProjectConfig], op: Operation
) -> ProjectConfig:
    if op == Operation.UPDATE:
        if previous is None:
            raise ConfigError("No project config found; run `rushtree new` first.")
        base = previous
    elif previous is not None:
        # a fresh setup keeps the user's template and query list
        base = ProjectConfig(folders=previous.folders, general_query=previous.general_query)
    else:
        base = ProjectConfig()

    setup = merge_setup(
        base.setup,
        name=args.name,
        deadname=args.deadname,
        days=args.days,
        cameras=args.cameras,
        sound_sources=args.sound_sources,
        clean_project=True if args.clean else None,
    )
    return ProjectConfig(
        setup=setup,
        folders=base.folders,
        general_query=base.general_query,
        version=base.version,
    )


def build_query_request(args: argparse.Namespace) -> QueryRequest:
    parts = [
        part
        for part, flag in (
            ("root", args.root),
            ("days", args.days),
            ("cameras", args.cameras),
            ("sound_sources", args.sound_sources),
        )
        if flag
    ]

    kinds: List[str] = []
    if args.general:
        kinds.append("general")
    if parts:
        kinds.append("partial")
    if args.folder:
        kinds.append("folder")
    if len(kinds) > 1:
        raise QueryError(
            f"Only one type of query can be used at a time, got: {', '.join(kinds)}"
        )

    settings = QuerySettings(
        write=args.write is not None,
        output_name=args.write or None,
        record_timestamp=bool(args.timestamp),
        unique_entries=bool(args.unique),
        quiet=bool(args.quiet),
        include_runtime=bool(args.runtime),
    )
    return QueryRequest(
        kind=kinds[0] if kinds else "general",
        sort=SortOrder.SIZE if args.sort_size else SortOrder.DEFAULT,
        parts=parts,
        folders=list(args.folder or []),
        settings=settings,
    )


def _run_setup(
    args: argparse.Namespace,
    op: Operation,
    base_dir: Path,
    cfg_path: Path,
    previous: Optional[ProjectConfig],
) -> int:
    try:
        config = build_project_config(args, previous, op)
    except ConfigError as e:
        print(f"[rushtree] config error: {e}", file=sys.stderr)
        return 2

    start = time.monotonic()
    try:
        if args.print_folders:
            for p in planned_folders(config):
                print(p)
            return 0
        result = sync_project(base_dir, config, previous, op, config_path=cfg_path)
    except (ConfigError, SetupError) as e:
        print(f"[rushtree] setup failed: {e}", file=sys.stderr)
        return 3

    elapsed = format_duration(int((time.monotonic() - start) * 1000))
    print(
        f"[rushtree] setup complete in {elapsed}: "
        f"created={len(result.created)} removed={len(result.removed)}"
    )
    print(f"\n[Current Project Setup]\n{tomli_w.dumps(setup_to_dict(config.setup))}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    op = _OPERATIONS[args.command]
    base_dir = as_path(str(args.base_dir))
    cfg_path = as_path(str(args.config)) if args.config else base_dir / DEFAULT_CONFIG_NAME

    try:
        previous = read_config(cfg_path)
    except ConfigError as e:
        print(f"[rushtree] config error: {e}", file=sys.stderr)
        return 2

    if op != Operation.QUERY:
        return _run_setup(args, op, base_dir, cfg_path, previous)

    if previous is None:
        print(
            f"[rushtree] config error: no project config at {cfg_path}; "
            "run `rushtree new` first.",
            file=sys.stderr,
        )
        return 2

    try:
        run_query(base_dir, previous, build_query_request(args))
    except QueryError as e:
        print(f"[rushtree] query failed: {e}", file=sys.stderr)
        return 4
    return 0
