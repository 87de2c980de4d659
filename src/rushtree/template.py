from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .errors import ConfigError, TemplateError
from .model import (
    CAMS_MARKER,
    DAYS_MARKER,
    SOUND_MARKER,
    FolderNode,
    ProjectConfig,
    ProjectSetup,
)
from .utils import index_letter

# Templates are user-edited; a bad parent_id chain must fail instead of looping.
MAX_ANCESTOR_DEPTH = 100


def day_folder(index: int) -> str:
    return f"{index:02d}_DAY{index:02d}"


def camera_folder(index: int) -> str:
    return f"{index:02d}_{index_letter(index)}_CAM"


def sound_folder(index: int) -> str:
    return f"{index:02d}_{index_letter(index)}_REC"


def marker_segments(marker: str, setup: ProjectSetup) -> List[str]:
    if marker == DAYS_MARKER:
        return [day_folder(i) for i in range(1, setup.days + 1)]
    if marker == CAMS_MARKER:
        return [camera_folder(i) for i in range(1, setup.cameras + 1)]
    if marker == SOUND_MARKER:
        return [sound_folder(i) for i in range(1, setup.sound_sources + 1)]
    raise ConfigError(f"Unknown repetition marker: {marker!r}")


def node_segments(node: FolderNode, setup: ProjectSetup) -> List[str]:
    """Concrete folder names one template node stands for."""
    marker = node.marker
    if marker is None:
        return [node.name]
    return marker_segments(marker, setup)


class FolderForest:
    """Folder template as an ordered arena of nodes with an id index."""

    def __init__(self, nodes: Sequence[FolderNode]):
        self.nodes: List[FolderNode] = list(nodes)
        self._index: Dict[str, int] = {}
        for i, node in enumerate(self.nodes):
            if node.id in self._index:
                raise ConfigError(f"Duplicate folder id '{node.id}' in template")
            self._index[node.id] = i

    def get(self, node_id: str) -> FolderNode:
        try:
            return self.nodes[self._index[node_id]]
        except KeyError:
            raise TemplateError(f"Parent folder with ID '{node_id}' not found") from None

    def ancestors(self, node_id: str) -> List[FolderNode]:
        """Return the chain from the top-level folder down to `node_id` itself."""
        return self._chain(node_id, 0)

    def _chain(self, node_id: str, depth: int) -> List[FolderNode]:
        if depth >= MAX_ANCESTOR_DEPTH:
            raise TemplateError(
                f"Folder '{node_id}' exceeded maximum ancestor depth of "
                f"{MAX_ANCESTOR_DEPTH} (malformed or cyclic template)"
            )
        node = self.get(node_id)
        if node.parent_id is None:
            return [node]
        return self._chain(node.parent_id, depth + 1) + [node]


def resolve_paths(
    config: ProjectConfig, setup: Optional[ProjectSetup] = None
) -> List[str]:
    """Expand the folder template into every directory the project needs.

    Paths are '/'-joined and relative to the base directory; index 0 is the
    project root. A repeating node multiplies its whole subtree, so camera
    folders exist once per day when they sit under the per-day node.
    """
    setup = setup or config.setup
    forest = FolderForest(config.folders)

    ordered: List[str] = [setup.name]
    seen = {setup.name}
    for node in forest.nodes:
        paths = [setup.name]
        # every level is emitted so a parent always precedes its children
        for ancestor in forest.ancestors(node.id):
            segments = node_segments(ancestor, setup)
            paths = [f"{p}/{s}" for p in paths for s in segments]
            for p in paths:
                if p not in seen:
                    seen.add(p)
                    ordered.append(p)
    return ordered
