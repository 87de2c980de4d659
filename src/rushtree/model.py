from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

CONFIG_VERSION = 2
DEFAULT_PROJECT_NAME = "Untitled_Project"

# Repetition markers; the "per-*" spellings are accepted as aliases.
DAYS_MARKER = "%days"
CAMS_MARKER = "%cams"
SOUND_MARKER = "%soundsources"

MARKER_ALIASES = {
    DAYS_MARKER: DAYS_MARKER,
    "per-day": DAYS_MARKER,
    CAMS_MARKER: CAMS_MARKER,
    "per-camera": CAMS_MARKER,
    SOUND_MARKER: SOUND_MARKER,
    "per-sound-source": SOUND_MARKER,
}


@dataclass(frozen=True)
class FolderNode:
    id: str
    name: str
    parent_id: Optional[str] = None

    @property
    def marker(self) -> Optional[str]:
        """Canonical repetition marker for this node, or None for a literal name."""
        return MARKER_ALIASES.get(self.name)


@dataclass(frozen=True)
class ProjectSetup:
    name: str = DEFAULT_PROJECT_NAME
    days: int = 2
    cameras: int = 2
    sound_sources: int = 1
    clean_project: bool = False
    # one-time adoption of an existing directory; never persisted
    deadname: Optional[str] = None


def default_folders() -> Tuple[FolderNode, ...]:
    return (
        FolderNode("documentation", "01_DOCUMENTATION"),
        FolderNode("rushes", "02_RUSHES"),
        FolderNode("days", DAYS_MARKER, "rushes"),
        FolderNode("video", "01_VIDEO", "days"),
        FolderNode("cams", CAMS_MARKER, "video"),
        FolderNode("audio", "02_AUDIO", "days"),
        FolderNode("sound_sources", SOUND_MARKER, "audio"),
        FolderNode("vo", "03_VO", "days"),
        FolderNode("external", "03_EXTERNAL"),
        FolderNode("graphics", "01_GRAPHICS", "external"),
        FolderNode("images", "02_IMAGES", "external"),
        FolderNode("music", "03_MUSIC", "external"),
        FolderNode("sfx", "04_SFX", "external"),
        FolderNode("renders", "04_RENDERS"),
        FolderNode("comps", "01_COMPS", "renders"),
        FolderNode("pre_renders", "02_PRE-RENDERS", "renders"),
        FolderNode("finals", "05_FINALS"),
    )


def default_general_query() -> Tuple[str, ...]:
    return (
        "01_DOCUMENTATION",
        "01_VIDEO",
        "02_AUDIO",
        "03_VO",
        "01_GRAPHICS",
        "02_IMAGES",
        "03_MUSIC",
        "04_SFX",
        "01_COMPS",
        "02_PRE-RENDERS",
        "05_FINALS",
    )


@dataclass(frozen=True)
class ProjectConfig:
    setup: ProjectSetup = field(default_factory=ProjectSetup)
    folders: Tuple[FolderNode, ...] = field(default_factory=default_folders)
    general_query: Tuple[str, ...] = field(default_factory=default_general_query)
    version: int = CONFIG_VERSION


class Operation(str, Enum):
    NEW = "new"
    UPDATE = "update"
    QUERY = "query"


class SortOrder(str, Enum):
    SIZE = "size"
    DEFAULT = "default"


# Partial query parts, in the order they are reported when requested together.
PARTIAL_PARTS = ("root", "days", "cameras", "sound_sources")


@dataclass(frozen=True)
class QuerySettings:
    write: bool = False
    output_name: Optional[str] = None
    record_timestamp: bool = False
    unique_entries: bool = False
    quiet: bool = False
    include_runtime: bool = False


@dataclass(frozen=True)
class QueryRequest:
    kind: Optional[str]  # "general" | "partial" | "folder"
    sort: SortOrder = SortOrder.DEFAULT
    parts: List[str] = field(default_factory=list)
    folders: List[str] = field(default_factory=list)
    settings: QuerySettings = field(default_factory=QuerySettings)
