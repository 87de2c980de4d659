import pytest

from rushtree.errors import TemplateError
from rushtree.model import FolderNode, ProjectConfig, ProjectSetup
from rushtree.template import (
    FolderForest,
    camera_folder,
    day_folder,
    resolve_paths,
    sound_folder,
)
from rushtree.utils import index_letter


def test_index_letter_bounds():
    assert index_letter(1) == "A"
    assert index_letter(26) == "Z"
    assert index_letter(0) == "_"
    assert index_letter(27) == "_"


def test_folder_naming_is_zero_padded():
    assert day_folder(1) == "01_DAY01"
    assert day_folder(12) == "12_DAY12"
    assert camera_folder(3) == "03_C_CAM"
    assert sound_folder(1) == "01_A_REC"
    assert camera_folder(30) == "30___CAM"


def test_top_level_marker_expands_to_count():
    cfg = ProjectConfig(
        setup=ProjectSetup(name="P", days=3),
        folders=(FolderNode("days", "%days"),),
    )
    assert resolve_paths(cfg) == ["P", "P/01_DAY01", "P/02_DAY02", "P/03_DAY03"]


def test_marker_aliases_are_accepted():
    cfg = ProjectConfig(
        setup=ProjectSetup(name="P", cameras=2),
        folders=(FolderNode("cams", "per-camera"),),
    )
    assert resolve_paths(cfg) == ["P", "P/01_A_CAM", "P/02_B_CAM"]


def test_default_template_multiplies_subtrees_per_day():
    cfg = ProjectConfig(setup=ProjectSetup(name="Shoot", days=2, cameras=3, sound_sources=2))
    paths = resolve_paths(cfg)

    assert paths[0] == "Shoot"
    assert "Shoot/01_DOCUMENTATION" in paths
    assert "Shoot/02_RUSHES/02_DAY02/01_VIDEO/03_C_CAM" in paths
    assert "Shoot/02_RUSHES/01_DAY01/02_AUDIO/02_B_REC" in paths

    cams = [p for p in paths if p.endswith("_CAM")]
    recs = [p for p in paths if p.endswith("_REC")]
    assert len(cams) == 2 * 3
    assert len(recs) == 2 * 2
    assert len(paths) == len(set(paths))


def test_parents_precede_children():
    paths = resolve_paths(ProjectConfig())
    position = {p: i for i, p in enumerate(paths)}
    for p in paths[1:]:
        parent = p.rsplit("/", 1)[0]
        assert position[parent] < position[p]


def test_forward_reference_still_lists_parent_first():
    cfg = ProjectConfig(
        setup=ProjectSetup(name="P"),
        folders=(
            FolderNode("child", "inner", "outer"),
            FolderNode("outer", "outer"),
        ),
    )
    assert resolve_paths(cfg) == ["P", "P/outer", "P/outer/inner"]


def test_missing_parent_is_named():
    cfg = ProjectConfig(
        setup=ProjectSetup(name="P"),
        folders=(FolderNode("a", "A", "ghost"),),
    )
    with pytest.raises(TemplateError, match="ghost"):
        resolve_paths(cfg)


def test_cycle_hits_depth_ceiling():
    cfg = ProjectConfig(
        setup=ProjectSetup(name="P"),
        folders=(FolderNode("a", "A", "b"), FolderNode("b", "B", "a")),
    )
    with pytest.raises(TemplateError, match="exceeded maximum ancestor depth"):
        resolve_paths(cfg)


def test_self_reference_hits_depth_ceiling():
    forest = FolderForest([FolderNode("loop", "L", "loop")])
    with pytest.raises(TemplateError, match="loop"):
        forest.ancestors("loop")


def test_deep_but_finite_chain_resolves():
    nodes = [FolderNode("n0", "L0")]
    nodes += [FolderNode(f"n{i}", f"L{i}", f"n{i - 1}") for i in range(1, 50)]
    forest = FolderForest(nodes)
    chain = forest.ancestors("n49")
    assert [n.id for n in chain][:2] == ["n0", "n1"]
    assert len(chain) == 50
