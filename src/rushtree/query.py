from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import tomli_w

from .errors import QueryError
from .model import PARTIAL_PARTS, ProjectConfig, QueryRequest, QuerySettings, SortOrder
from .template import camera_folder, day_folder, sound_folder
from .utils import index_letter, normalize_sep, sanitize_filename, to_shorthand, utc_now


# ----------------------------
# Results
# ----------------------------


def _render_block(title: str, fields: Dict[str, Any]) -> str:
    body = {k: v for k, v in fields.items() if v is not None}
    return f"[{title}]\n{tomli_w.dumps(body)}"


@dataclass(frozen=True)
class GeneralResult:
    path: str
    folder_name: str
    file_count: int
    total_bytes: int
    runtime_ms: Optional[int] = None

    @property
    def total_size(self) -> str:
        return to_shorthand(self.total_bytes)

    def size_key(self) -> int:
        return self.total_bytes

    def render(self) -> str:
        return _render_block(
            "General Query",
            {
                "path": self.path,
                "folder_name": self.folder_name,
                "file_count": self.file_count,
                "total_size": self.total_size,
                "runtime_ms": self.runtime_ms,
            },
        )


@dataclass(frozen=True)
class RootResult:
    project_name: str
    file_count: int
    total_bytes: int
    shoot_days: int
    camera_count: int
    sound_source_count: int
    runtime_ms: Optional[int] = None

    @property
    def total_size(self) -> str:
        return to_shorthand(self.total_bytes)

    def size_key(self) -> int:
        # the root summary never competes with the folders it contains
        return 0

    def render(self) -> str:
        return _render_block(
            "Root Query",
            {
                "project_name": self.project_name,
                "file_count": self.file_count,
                "total_size": self.total_size,
                "shoot_days": self.shoot_days,
                "camera_count": self.camera_count,
                "sound_source_count": self.sound_source_count,
                "runtime_ms": self.runtime_ms,
            },
        )


@dataclass(frozen=True)
class DayResult:
    day: str
    file_count: int
    total_bytes: int
    path: Optional[str] = None
    runtime_ms: Optional[int] = None

    @property
    def total_size(self) -> str:
        return to_shorthand(self.total_bytes)

    def size_key(self) -> int:
        return self.total_bytes

    def render(self) -> str:
        return _render_block(
            "Day Query",
            {
                "path": self.path,
                "day": self.day,
                "file_count": self.file_count,
                "total_size": self.total_size,
                "runtime_ms": self.runtime_ms,
            },
        )


@dataclass(frozen=True)
class CamResult:
    camera: str
    file_count: int
    total_bytes: int
    path: Optional[str] = None
    runtime_ms: Optional[int] = None

    @property
    def total_size(self) -> str:
        return to_shorthand(self.total_bytes)

    def size_key(self) -> int:
        return self.total_bytes

    def render(self) -> str:
        return _render_block(
            "Camera Query",
            {
                "path": self.path,
                "camera": self.camera,
                "file_count": self.file_count,
                "total_size": self.total_size,
                "runtime_ms": self.runtime_ms,
            },
        )


@dataclass(frozen=True)
class SoundResult:
    sound_source: str
    file_count: int
    total_bytes: int
    path: Optional[str] = None
    runtime_ms: Optional[int] = None

    @property
    def total_size(self) -> str:
        return to_shorthand(self.total_bytes)

    def size_key(self) -> int:
        return self.total_bytes

    def render(self) -> str:
        return _render_block(
            "Sound Source Query",
            {
                "path": self.path,
                "sound_source": self.sound_source,
                "file_count": self.file_count,
                "total_size": self.total_size,
                "runtime_ms": self.runtime_ms,
            },
        )


@dataclass(frozen=True)
class FolderResult:
    path: str
    file_count: int
    total_bytes: int
    runtime_ms: Optional[int] = None

    @property
    def total_size(self) -> str:
        return to_shorthand(self.total_bytes)

    def size_key(self) -> int:
        return self.total_bytes

    def render(self) -> str:
        return _render_block(
            "Folder Query",
            {
                "path": self.path,
                "file_count": self.file_count,
                "total_size": self.total_size,
                "runtime_ms": self.runtime_ms,
            },
        )


QueryResult = Union[
    GeneralResult, RootResult, DayResult, CamResult, SoundResult, FolderResult
]


@dataclass
class QueryReport:
    text: str
    results: List[QueryResult] = field(default_factory=list)
    written_to: Optional[Path] = None


# ----------------------------
# Filesystem measurement
# ----------------------------


def _walk_error(e: OSError) -> None:
    raise e


def dir_stats(path: Path) -> Tuple[int, int]:
    """Return (file_count, total_bytes) for everything below `path`."""
    count = 0
    size = 0
    for dirpath, _dirnames, filenames in os.walk(path, onerror=_walk_error):
        for name in filenames:
            count += 1
            size += os.lstat(os.path.join(dirpath, name)).st_size
    return count, size


def list_dirs(base_dir: Path, project_name: str) -> List[str]:
    """Project root plus every directory below it, top-down in sorted order."""
    root = base_dir / project_name
    if not root.is_dir():
        raise QueryError(f"Project directory not found: {root}")

    out: List[str] = []
    for dirpath, dirnames, _filenames in os.walk(root, onerror=_walk_error):
        dirnames.sort()
        out.append(normalize_sep(Path(dirpath).relative_to(base_dir).as_posix()))
    return out


def matches_folder(dir_path: str, name: str) -> bool:
    # Plain suffix test on the path string: "2_AUDIO" also matches "02_AUDIO".
    wanted = normalize_sep(name).rstrip("/")
    return f"{normalize_sep(dir_path)}/".endswith(f"{wanted}/")


# ----------------------------
# Queries
# ----------------------------


class _QueryRun:
    def __init__(self, base_dir: Path, config: ProjectConfig, settings: QuerySettings):
        self.base_dir = base_dir
        self.config = config
        self.settings = settings
        self.started = time.monotonic()
        self._dirs: Optional[List[str]] = None

    @property
    def dirs(self) -> List[str]:
        if self._dirs is None:
            self._dirs = list_dirs(self.base_dir, self.config.setup.name)
        return self._dirs

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    def runtime(self) -> Optional[int]:
        return self.elapsed_ms() if self.settings.include_runtime else None

    def matching(self, name: str) -> List[str]:
        return [d for d in self.dirs if matches_folder(d, name)]

    def stats(self, rel: str) -> Tuple[int, int]:
        return dir_stats(self.base_dir / rel)

    def omitted(self, name: str) -> None:
        if not self.settings.quiet:
            print(f'[rushtree] The non-existent folder "{name}" was omitted from the query!')


def apply_sorting(results: List[QueryResult], sort: SortOrder) -> List[QueryResult]:
    if sort == SortOrder.SIZE:
        # sorted() is stable: equal sizes keep production order
        return sorted(results, key=lambda r: r.size_key(), reverse=True)
    return list(results)


def query_root(run: _QueryRun) -> RootResult:
    setup = run.config.setup
    count, size = run.stats(setup.name)
    return RootResult(
        project_name=setup.name,
        file_count=count,
        total_bytes=size,
        shoot_days=setup.days,
        camera_count=setup.cameras,
        sound_source_count=setup.sound_sources,
        runtime_ms=run.runtime(),
    )


def query_general(run: _QueryRun, sort: SortOrder) -> List[QueryResult]:
    results: List[QueryResult] = []
    for name in run.config.general_query:
        found = run.matching(name)
        if not found:
            run.omitted(name)
            continue
        for rel in found:
            count, size = run.stats(rel)
            results.append(
                GeneralResult(
                    path=rel,
                    folder_name=name,
                    file_count=count,
                    total_bytes=size,
                    runtime_ms=run.runtime(),
                )
            )

    results = apply_sorting(results, sort)
    results.insert(0, query_root(run))
    return results


def _iterable_spec(run: _QueryRun, part: str) -> Tuple[int, Callable[[int], str]]:
    setup = run.config.setup
    if part == "days":
        return setup.days, day_folder
    if part == "cameras":
        return setup.cameras, camera_folder
    if part == "sound_sources":
        return setup.sound_sources, sound_folder
    raise QueryError(f"Not an iterable query part: {part!r}")


def _indexed_result(
    part: str, index: int, path: Optional[str], count: int, size: int, runtime: Optional[int]
) -> QueryResult:
    if part == "days":
        return DayResult(f"Day {index}", count, size, path, runtime)
    letter = index_letter(index)
    if part == "cameras":
        return CamResult(f"{letter} Cam ({index})", count, size, path, runtime)
    return SoundResult(f"{letter} Rec ({index})", count, size, path, runtime)


def query_iterable(run: _QueryRun, part: str) -> List[QueryResult]:
    """Per-day, per-camera or per-sound-source results.

    Same-index folders from different days are summed into one result unless
    `unique_entries` is set, in which case each folder is reported with its path.
    """
    total, folder_name = _iterable_spec(run, part)
    results: List[QueryResult] = []

    for i in range(1, total + 1):
        name = folder_name(i)
        found = run.matching(name)
        if not found:
            run.omitted(name)
            continue

        if run.settings.unique_entries:
            for rel in found:
                count, size = run.stats(rel)
                results.append(_indexed_result(part, i, rel, count, size, run.runtime()))
            continue

        count_sum = 0
        size_sum = 0
        for rel in found:
            count, size = run.stats(rel)
            count_sum += count
            size_sum += size
        results.append(_indexed_result(part, i, None, count_sum, size_sum, run.runtime()))

    return results


def query_partial(run: _QueryRun, parts: Sequence[str], sort: SortOrder) -> List[QueryResult]:
    results: List[QueryResult] = []
    for part in parts:
        if part == "root":
            results.append(query_root(run))
        elif part in PARTIAL_PARTS:
            results.extend(query_iterable(run, part))
        else:
            raise QueryError(f"Unknown partial query type: {part!r}")
    return apply_sorting(results, sort)


def query_folders(run: _QueryRun, folders: Sequence[str], sort: SortOrder) -> List[QueryResult]:
    results: List[QueryResult] = []
    for name in folders:
        found = run.matching(name)
        if not found:
            run.omitted(name)
            continue
        for rel in found:
            count, size = run.stats(rel)
            results.append(FolderResult(rel, count, size, run.runtime()))
    return apply_sorting(results, sort)


# ----------------------------
# Rendering / output
# ----------------------------


def explanation(request: QueryRequest) -> str:
    by_size = request.sort == SortOrder.SIZE
    if request.kind == "general":
        order = "Sorted by Size" if by_size else "Sorted in Default Order"
        return f"General Project Query - {order}\n\n"
    if request.kind == "folder":
        order = "Sorted by Size" if by_size else "Default Order"
        return f"Folder Query - {order}\n\n"
    if request.kind == "partial":
        order = "Sorted by Size" if by_size else "Sorted in Default Order"
        if request.settings.unique_entries:
            unique = (
                "unique_entries = true # Entries from different days will be "
                "displayed separately."
            )
        else:
            unique = "unique_entries = false # Entries from different days will be combined."
        return f"Partial Query ({', '.join(request.parts)}) - {order}\n{unique}\n\n"
    return ""


def timestamp_line(now: datetime) -> str:
    return f"{now:%d/%m/%Y %H:%M:%S}\n"


def export_path(base_dir: Path, settings: QuerySettings, now: datetime) -> Path:
    if settings.output_name:
        p = Path(settings.output_name)
        p = p.with_name(sanitize_filename(p.name) + ".txt")
        return p if p.is_absolute() else base_dir / p
    return base_dir / f"Query_{now:%d.%m.%Y_%H.%M.%S}.txt"


def prompt_overwrite(path: Path) -> bool:
    print(f"[rushtree] A file with the name {path} already exists! Overwrite? (Y/N)")
    try:
        answer = input().strip().lower()
    except EOFError:
        # closed or piped stdin counts as "no"
        return False
    return answer in {"y", "yes"}


def write_report(
    path: Path, content: str, *, confirm: Callable[[Path], bool] = prompt_overwrite
) -> bool:
    if path.exists() and not confirm(path):
        print("[rushtree] Did not overwrite existing file.")
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    print(f"[rushtree] Query result written to: {path}")
    return True


def run_query(
    base_dir: Path,
    config: ProjectConfig,
    request: QueryRequest,
    *,
    confirm: Callable[[Path], bool] = prompt_overwrite,
    now: Optional[datetime] = None,
) -> QueryReport:
    """Execute one query, print its report and optionally write it to a file."""
    settings = request.settings
    run = _QueryRun(base_dir, config, settings)

    try:
        if request.kind == "general":
            results = query_general(run, request.sort)
        elif request.kind == "partial":
            if not request.parts:
                raise QueryError("Partial query needs at least one of root/days/cameras/sound-sources")
            results = query_partial(run, request.parts, request.sort)
        elif request.kind == "folder":
            if not request.folders:
                raise QueryError("Folder query needs at least one folder name")
            results = query_folders(run, request.folders, request.sort)
        else:
            raise QueryError("No query type specified")
    except OSError as e:
        raise QueryError(f"Could not measure project directory: {e}") from e

    body = "".join(f"{r.render()}\n" for r in results)
    header = explanation(request)
    runtime = (
        f"Total Query Runtime: {run.elapsed_ms()}ms\n\n" if settings.include_runtime else ""
    )
    text = f"{header}{runtime}{body}"
    print(f"\n{text}")

    report = QueryReport(text=text, results=results)
    if settings.write:
        now = now or utc_now()
        stamp = timestamp_line(now) if settings.record_timestamp else ""
        target = export_path(base_dir, settings, now)
        try:
            if write_report(target, f"{stamp}{text}", confirm=confirm):
                report.written_to = target
        except OSError as e:
            raise QueryError(f"Could not write query report {target}: {e}") from e
    return report
