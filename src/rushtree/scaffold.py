from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, List, Optional

from .config import validate_setup, write_config
from .errors import SetupError
from .model import Operation, ProjectConfig, ProjectSetup
from .template import resolve_paths
from .utils import normalize_sep

# Each pass removes at least one directory or stops; a runaway count means the
# walker and removal disagree, not a deep template.
MAX_CLEANUP_PASSES = 100


@dataclass
class SyncResult:
    renamed: Optional[str] = None
    created: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)


def _rename(base_dir: Path, old: str, new: str) -> str:
    src = base_dir / old
    dst = base_dir / new
    if dst.exists():
        raise SetupError(
            f"Cannot rename '{old}' to '{new}': target already exists in {base_dir}"
        )
    try:
        src.rename(dst)
    except OSError as e:
        raise SetupError(f"Could not rename '{src}' to '{dst}': {e}") from e
    print(f"[rushtree] renamed project directory: {old} -> {new}")
    return f"{old} -> {new}"


def _create_root(base_dir: Path, name: str) -> None:
    root = base_dir / name
    if root.exists():
        return
    try:
        root.mkdir()
    except OSError as e:
        raise SetupError(f"Could not create project directory '{root}': {e}") from e


def prepare_root(
    base_dir: Path,
    setup: ProjectSetup,
    previous: Optional[ProjectConfig],
    operation: Operation,
) -> Optional[str]:
    """Adopt, rename or create the project root directory.

    Returns a "<old> -> <new>" description when a rename happened.
    """
    if setup.deadname is not None:
        # a deadname equal to the name was adopted on an earlier run
        if setup.deadname != setup.name and (base_dir / setup.deadname).is_dir():
            return _rename(base_dir, setup.deadname, setup.name)
        _create_root(base_dir, setup.name)
        return None

    if (
        operation == Operation.UPDATE
        and previous is not None
        and (base_dir / previous.setup.name).is_dir()
        and previous.setup.name != setup.name
    ):
        return _rename(base_dir, previous.setup.name, setup.name)

    _create_root(base_dir, setup.name)
    return None


def ensure_dirs(base_dir: Path, paths: Iterable[str]) -> List[str]:
    created: List[str] = []
    for rel in paths:
        p = base_dir / rel
        if p.is_dir():
            continue
        try:
            p.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SetupError(f"Could not create directory '{p}': {e}") from e
        created.append(rel)
    return created


def _walk_error(e: OSError) -> None:
    raise SetupError(f"Could not list directory '{e.filename}': {e}") from e


def _prune_pass(base_dir: Path, project_name: str, keep: set[str]) -> List[str]:
    removed: List[str] = []
    root = base_dir / project_name
    # bottom-up so a parent emptied by this pass is checked after its children
    for dirpath, _dirnames, _filenames in os.walk(root, topdown=False, onerror=_walk_error):
        d = Path(dirpath)
        try:
            if any(d.iterdir()):
                continue
        except OSError as e:
            raise SetupError(f"Could not list directory '{d}': {e}") from e

        rel = normalize_sep(d.relative_to(base_dir).as_posix())
        if rel in keep:
            continue
        try:
            d.rmdir()
        except OSError as e:
            raise SetupError(f"Could not remove empty directory '{d}': {e}") from e
        print(f"[rushtree] Removed empty directory: {rel}")
        removed.append(rel)
    return removed


def prune_empty_dirs(
    base_dir: Path, project_name: str, keep: Iterable[str]
) -> List[str]:
    """Remove empty directories under the project root that are not in `keep`.

    Passes repeat until one removes nothing.
    """
    keep_set = {normalize_sep(p) for p in keep}
    removed: List[str] = []
    for _ in range(MAX_CLEANUP_PASSES):
        this_pass = _prune_pass(base_dir, project_name, keep_set)
        if not this_pass:
            return removed
        removed.extend(this_pass)
    raise SetupError(
        f"Exceeded maximum cleanup iterations ({MAX_CLEANUP_PASSES}) under "
        f"'{base_dir / project_name}'"
    )


def planned_folders(config: ProjectConfig) -> List[str]:
    return resolve_paths(config)


def sync_project(
    base_dir: Path,
    config: ProjectConfig,
    previous: Optional[ProjectConfig],
    operation: Operation,
    *,
    config_path: Path,
) -> SyncResult:
    """Make the directory tree under `base_dir` match `config`.

    The config file is rewritten with the new project name right after the
    root is settled, so an interrupted run still points at the renamed root.
    """
    validate_setup(config.setup)
    # resolve first: a broken template must fail before anything is renamed
    paths = resolve_paths(config)

    result = SyncResult(paths=paths)
    result.renamed = prepare_root(base_dir, config.setup, previous, operation)

    interim = previous if previous is not None else config
    write_config(
        replace(interim, setup=replace(interim.setup, name=config.setup.name, deadname=None)),
        config_path,
    )

    result.created = ensure_dirs(base_dir, paths)

    if config.setup.clean_project:
        result.removed = prune_empty_dirs(base_dir, config.setup.name, paths)

    write_config(replace(config, setup=replace(config.setup, deadname=None)), config_path)
    return result
