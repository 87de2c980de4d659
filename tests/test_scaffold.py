from pathlib import Path

import pytest

from rushtree import scaffold
from rushtree.config import read_config
from rushtree.errors import SetupError
from rushtree.model import Operation, ProjectConfig, ProjectSetup
from rushtree.scaffold import ensure_dirs, prune_empty_dirs, sync_project
from rushtree.template import resolve_paths


def make_cfg(name: str = "Shoot", **kw) -> ProjectConfig:
    return ProjectConfig(setup=ProjectSetup(name=name, **kw))


def test_new_creates_every_resolved_path(tmp_path):
    cfg = make_cfg()
    cfg_path = tmp_path / "config.toml"
    result = sync_project(tmp_path, cfg, None, Operation.NEW, config_path=cfg_path)

    for rel in resolve_paths(cfg):
        assert (tmp_path / rel).is_dir()
    assert result.renamed is None
    assert "Shoot" not in result.created  # root comes from prepare_root
    assert read_config(cfg_path) == cfg


def test_second_sync_is_a_noop(tmp_path):
    cfg = make_cfg()
    cfg_path = tmp_path / "config.toml"
    sync_project(tmp_path, cfg, None, Operation.NEW, config_path=cfg_path)

    again = sync_project(tmp_path, cfg, cfg, Operation.UPDATE, config_path=cfg_path)
    assert again.created == []
    assert again.renamed is None
    assert again.removed == []


def test_update_renames_root_and_keeps_contents(tmp_path):
    old = make_cfg("Old")
    cfg_path = tmp_path / "config.toml"
    sync_project(tmp_path, old, None, Operation.NEW, config_path=cfg_path)
    (tmp_path / "Old" / "05_FINALS" / "cut.mov").write_bytes(b"x" * 10)

    new = make_cfg("New")
    result = sync_project(tmp_path, new, old, Operation.UPDATE, config_path=cfg_path)

    assert result.renamed == "Old -> New"
    assert not (tmp_path / "Old").exists()
    assert (tmp_path / "New" / "05_FINALS" / "cut.mov").read_bytes() == b"x" * 10
    assert read_config(cfg_path).setup.name == "New"


def test_new_with_different_name_does_not_rename(tmp_path):
    old = make_cfg("Old")
    cfg_path = tmp_path / "config.toml"
    sync_project(tmp_path, old, None, Operation.NEW, config_path=cfg_path)

    result = sync_project(tmp_path, make_cfg("Other"), old, Operation.NEW, config_path=cfg_path)
    assert result.renamed is None
    assert (tmp_path / "Old").is_dir()
    assert (tmp_path / "Other").is_dir()


def test_deadname_adopts_existing_directory(tmp_path):
    (tmp_path / "legacy" / "stuff").mkdir(parents=True)
    (tmp_path / "legacy" / "stuff" / "notes.txt").write_text("keep", encoding="utf-8")
    cfg = make_cfg("Fresh", deadname="legacy")
    cfg_path = tmp_path / "config.toml"

    result = sync_project(tmp_path, cfg, None, Operation.NEW, config_path=cfg_path)

    assert result.renamed == "legacy -> Fresh"
    assert (tmp_path / "Fresh" / "stuff" / "notes.txt").read_text(encoding="utf-8") == "keep"
    persisted = read_config(cfg_path)
    assert persisted.setup.name == "Fresh"
    assert persisted.setup.deadname is None


def test_missing_deadname_falls_back_to_create(tmp_path):
    cfg = make_cfg("Fresh", deadname="nowhere")
    sync_project(tmp_path, cfg, None, Operation.NEW, config_path=tmp_path / "config.toml")
    assert (tmp_path / "Fresh").is_dir()


def test_rename_onto_existing_directory_is_refused(tmp_path):
    (tmp_path / "legacy").mkdir()
    (tmp_path / "Fresh").mkdir()
    cfg = make_cfg("Fresh", deadname="legacy")
    with pytest.raises(SetupError, match="already exists"):
        sync_project(tmp_path, cfg, None, Operation.NEW, config_path=tmp_path / "config.toml")
    assert (tmp_path / "legacy").is_dir()


def test_config_points_at_new_root_before_subdirectories(tmp_path, monkeypatch):
    old = make_cfg("Old")
    cfg_path = tmp_path / "config.toml"
    sync_project(tmp_path, old, None, Operation.NEW, config_path=cfg_path)

    def boom(base_dir, paths):
        raise SetupError("disk full")

    monkeypatch.setattr(scaffold, "ensure_dirs", boom)
    with pytest.raises(SetupError):
        sync_project(tmp_path, make_cfg("New", days=5), old, Operation.UPDATE, config_path=cfg_path)

    persisted = read_config(cfg_path)
    assert persisted.setup.name == "New"
    # only the name moves ahead; the rest is still the previous setup
    assert persisted.setup.days == old.setup.days


def test_prune_keeps_resolved_tree(tmp_path):
    paths = resolve_paths(make_cfg())
    ensure_dirs(tmp_path, paths)
    assert prune_empty_dirs(tmp_path, "Shoot", paths) == []


def test_prune_removes_single_extra_leaf(tmp_path):
    paths = resolve_paths(make_cfg())
    ensure_dirs(tmp_path, paths)
    (tmp_path / "Shoot" / "05_FINALS" / "old").mkdir()

    assert prune_empty_dirs(tmp_path, "Shoot", paths) == ["Shoot/05_FINALS/old"]
    assert (tmp_path / "Shoot" / "05_FINALS").is_dir()


def test_prune_cascades_to_emptied_parents(tmp_path):
    paths = resolve_paths(make_cfg())
    ensure_dirs(tmp_path, paths)
    (tmp_path / "Shoot" / "scratch" / "a" / "b").mkdir(parents=True)

    removed = prune_empty_dirs(tmp_path, "Shoot", paths)
    assert set(removed) == {"Shoot/scratch/a/b", "Shoot/scratch/a", "Shoot/scratch"}
    assert not (tmp_path / "Shoot" / "scratch").exists()


def test_prune_never_touches_directories_with_files(tmp_path):
    paths = resolve_paths(make_cfg())
    ensure_dirs(tmp_path, paths)
    keep = tmp_path / "Shoot" / "misc"
    keep.mkdir()
    (keep / "readme.txt").write_text("hi", encoding="utf-8")

    assert prune_empty_dirs(tmp_path, "Shoot", paths) == []
    assert keep.is_dir()


def test_prune_gives_up_after_pass_ceiling(tmp_path, monkeypatch):
    (tmp_path / "Shoot").mkdir()
    monkeypatch.setattr(scaffold, "_prune_pass", lambda *a: ["Shoot/ghost"])
    with pytest.raises(SetupError, match="Exceeded maximum cleanup iterations"):
        prune_empty_dirs(tmp_path, "Shoot", ["Shoot"])


def test_clean_project_prunes_during_sync(tmp_path):
    cfg_path = tmp_path / "config.toml"
    sync_project(tmp_path, make_cfg(days=3), None, Operation.NEW, config_path=cfg_path)
    day3 = tmp_path / "Shoot" / "02_RUSHES" / "03_DAY03"
    assert day3.is_dir()

    smaller = make_cfg(days=2, clean_project=True)
    result = sync_project(
        tmp_path, smaller, make_cfg(days=3), Operation.UPDATE, config_path=cfg_path
    )

    assert not day3.exists()
    assert "Shoot/02_RUSHES/03_DAY03" in result.removed
    assert Path(tmp_path / "Shoot" / "02_RUSHES" / "02_DAY02").is_dir()


def test_repeated_adoption_is_a_noop(tmp_path):
    (tmp_path / "Shoot").mkdir()
    (tmp_path / "Shoot" / "notes.txt").write_text("keep", encoding="utf-8")
    cfg = make_cfg("Shoot", deadname="Shoot")

    result = sync_project(tmp_path, cfg, None, Operation.NEW, config_path=tmp_path / "config.toml")

    assert result.renamed is None
    assert (tmp_path / "Shoot" / "notes.txt").read_text(encoding="utf-8") == "keep"


def test_unlistable_directory_fails_pruning(tmp_path, monkeypatch):
    (tmp_path / "Shoot" / "x").mkdir(parents=True)

    def walk(top, topdown=True, onerror=None, followlinks=False):
        onerror(PermissionError(13, "Permission denied", str(Path(top) / "x")))
        yield from ()

    monkeypatch.setattr(scaffold.os, "walk", walk)
    with pytest.raises(SetupError, match="Could not list directory"):
        prune_empty_dirs(tmp_path, "Shoot", ["Shoot"])
