from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import tomli_w

from .errors import ConfigError
from .model import (
    CONFIG_VERSION,
    FolderNode,
    ProjectConfig,
    ProjectSetup,
    default_folders,
    default_general_query,
)

try:
    import tomllib  # py311+
except ModuleNotFoundError as exc:  # pragma: no cover
    raise SystemExit("Python 3.11+ required (missing tomllib).") from exc

DEFAULT_CONFIG_NAME = "config.toml"
MAX_NAME_LEN = 255
_INVALID_NAME_CHARS = '<>:"/\\|?*'


def load_toml(path: Path) -> Dict[str, Any]:
    raw = path.read_bytes()
    try:
        return tomllib.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise ConfigError(f"Config is not valid UTF-8: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"TOML parse error in {path}: {e}") from e


def _as_str(d: Dict[str, Any], key: str, where: str) -> str:
    v = d.get(key)
    if isinstance(v, str) and v != "":
        return v
    raise ConfigError(f"Expected non-empty string for '{where}.{key}', got: {v!r}")


def _as_int(d: Dict[str, Any], key: str, where: str, default: int) -> int:
    if key not in d:
        return default
    v = d.get(key)
    # bool is an int subclass; reject it explicitly
    if isinstance(v, int) and not isinstance(v, bool):
        return v
    raise ConfigError(f"Expected integer for '{where}.{key}', got: {v!r}")


def _optional_bool(d: Dict[str, Any], key: str, where: str, default: bool) -> bool:
    if key not in d:
        return default
    v = d.get(key)
    if isinstance(v, bool):
        return v
    raise ConfigError(f"Expected boolean for '{where}.{key}', got: {type(v).__name__}")


def _parse_setup(root: Dict[str, Any]) -> ProjectSetup:
    tbl = root.get("setup")
    if not isinstance(tbl, dict):
        raise ConfigError("Missing required table: [setup]")

    defaults = ProjectSetup()
    return ProjectSetup(
        name=_as_str(tbl, "name", "setup"),
        days=_as_int(tbl, "days", "setup", defaults.days),
        cameras=_as_int(tbl, "cameras", "setup", defaults.cameras),
        sound_sources=_as_int(tbl, "sound_sources", "setup", defaults.sound_sources),
        clean_project=_optional_bool(
            tbl, "clean_project", "setup", defaults.clean_project
        ),
    )


def _parse_folders(root: Dict[str, Any]) -> Tuple[FolderNode, ...]:
    if "folders" not in root:
        return default_folders()

    raw = root["folders"]
    if not isinstance(raw, list):
        raise ConfigError(
            "folders must be an array of tables ([[folders]]), "
            f"got: {type(raw).__name__}"
        )

    nodes: List[FolderNode] = []
    seen: set[str] = set()
    for i, entry in enumerate(raw, start=1):
        if not isinstance(entry, dict):
            raise ConfigError(f"folders[{i}] must be a table")
        where = f"folders[{i}]"
        node_id = _as_str(entry, "id", where)
        if node_id in seen:
            raise ConfigError(f"Duplicate folder id '{node_id}' in {where}")
        seen.add(node_id)

        parent_id = entry.get("parent_id")
        if parent_id is not None and (not isinstance(parent_id, str) or not parent_id):
            raise ConfigError(
                f"Expected non-empty string for '{where}.parent_id', got: {parent_id!r}"
            )
        nodes.append(
            FolderNode(id=node_id, name=_as_str(entry, "name", where), parent_id=parent_id)
        )
    return tuple(nodes)


def _parse_general_query(root: Dict[str, Any]) -> Tuple[str, ...]:
    if "general_query" not in root:
        return default_general_query()
    v = root["general_query"]
    if isinstance(v, list) and all(isinstance(x, str) and x for x in v):
        return tuple(v)
    raise ConfigError(f"Expected list of folder names for 'general_query', got: {v!r}")


def parse_config(root: Dict[str, Any]) -> ProjectConfig:
    version = root.get("version")
    if version != CONFIG_VERSION:
        raise ConfigError(
            f"Config version mismatch: found {version!r}, expected {CONFIG_VERSION}"
        )

    config = ProjectConfig(
        setup=_parse_setup(root),
        folders=_parse_folders(root),
        general_query=_parse_general_query(root),
        version=version,
    )
    validate_setup(config.setup)
    return config


def read_config(path: Path) -> Optional[ProjectConfig]:
    """Load the persisted project config.

    Returns None when the file does not exist (no prior project). A file that
    exists but cannot be parsed or validated raises ConfigError.
    """
    try:
        root = load_toml(path)
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ConfigError(f"Could not read config {path}: {e}") from e
    return parse_config(root)


def setup_to_dict(setup: ProjectSetup) -> Dict[str, Any]:
    return {
        "name": setup.name,
        "days": setup.days,
        "cameras": setup.cameras,
        "sound_sources": setup.sound_sources,
        "clean_project": setup.clean_project,
    }


def config_to_dict(config: ProjectConfig) -> Dict[str, Any]:
    folders: List[Dict[str, Any]] = []
    for node in config.folders:
        entry: Dict[str, Any] = {"id": node.id, "name": node.name}
        if node.parent_id is not None:
            entry["parent_id"] = node.parent_id
        folders.append(entry)

    return {
        "version": config.version,
        "general_query": list(config.general_query),
        "setup": setup_to_dict(config.setup),
        "folders": folders,
    }


def write_config(config: ProjectConfig, path: Path) -> Path:
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(tomli_w.dumps(config_to_dict(config)), encoding="utf-8")
        tmp.replace(path)
    except OSError as e:
        raise ConfigError(f"Could not write config {path}: {e}") from e
    return path


def validate_project_name(name: str) -> None:
    if not name.strip():
        raise ConfigError("Project name cannot be empty")
    if len(name) > MAX_NAME_LEN:
        raise ConfigError(
            f"Project name is too long (max {MAX_NAME_LEN} characters): {name[:32]!r}..."
        )
    bad = sorted({c for c in name if c in _INVALID_NAME_CHARS})
    if bad:
        raise ConfigError(
            f"Project name {name!r} contains invalid characters: {' '.join(bad)}"
        )


def validate_setup(setup: ProjectSetup) -> None:
    validate_project_name(setup.name)
    if setup.deadname is not None:
        validate_project_name(setup.deadname)
    for key in ("days", "cameras", "sound_sources"):
        v = getattr(setup, key)
        if not isinstance(v, int) or isinstance(v, bool) or v < 1:
            raise ConfigError(f"setup.{key} must be a positive integer, got: {v!r}")


def merge_setup(base: ProjectSetup, **overrides: Any) -> ProjectSetup:
    """Apply the non-None overrides on top of `base`.

    `deadname` always comes from the overrides since it only applies to the
    invocation that names it.
    """
    changes = {k: v for k, v in overrides.items() if v is not None}
    changes.setdefault("deadname", None)
    return replace(base, **changes)
