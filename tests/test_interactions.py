import numpy as np
import pytest

from conftest import make_model
from molsync.interactions import InteractionOverlay


@pytest.fixture
def overlay():
    return InteractionOverlay(make_model((("A", (4, 4)),)))


def test_invalid_pairs_are_dropped(overlay):
    n = overlay.add_layer("hbonds", [(0, 5, 2.9), (3, 3), (0, 99), (-1, 2), {"a": 1, "b": 6}])
    assert n == 2
    pairs = overlay.get_layer_pairs("hbonds")
    assert [(p["a"], p["b"]) for p in pairs] == [(0, 5), (1, 6)]
    assert pairs[0]["distance"] == pytest.approx(2.9)


def test_missing_distance_is_measured(overlay):
    overlay.add_layer("contacts", [{"a": 0, "b": 4}])
    positions = overlay.model.positions
    expected = np.linalg.norm(positions[0] - positions[4])
    assert overlay.get_layer_pairs("contacts")[0]["distance"] == pytest.approx(expected, rel=1e-5)


def test_adding_a_kind_replaces_its_pairs(overlay):
    dropped = []
    overlay.on_dispose(dropped.append)
    overlay.add_layer("hbonds", [(0, 5)])
    overlay.add_layer("hbonds", [(1, 6), (2, 7)])
    assert len(overlay.layers["hbonds"]) == 2
    assert [layer.kind for layer in dropped] == ["hbonds"]


def test_no_surviving_pairs_creates_no_layer(overlay):
    assert overlay.add_layer("hbonds", [(0, 0), (0, 50)]) == 0
    assert not overlay.has_layers()
    assert overlay.get_layer_pairs("hbonds") is None


def test_pairs_follow_atom_visibility(overlay):
    overlay.add_layer("salt_bridges", [(0, 5), (1, 6)])
    visible = np.ones(overlay.model.atom_count, dtype=bool)
    visible[6] = False
    overlay.apply_visibility(visible)
    assert overlay.visible_pairs("salt_bridges").tolist() == [[0, 5]]
    overlay.apply_visibility(np.ones(overlay.model.atom_count, dtype=bool))
    assert len(overlay.visible_pairs("salt_bridges")) == 2
    assert overlay.visible_pairs("missing").shape == (0, 2)


def test_remove_and_reset(overlay):
    overlay.add_layer("hbonds", [(0, 5)])
    overlay.add_layer("contacts", [(1, 6)])
    assert overlay.remove_layer("hbonds")
    assert not overlay.remove_layer("hbonds")
    overlay.reset(None)
    assert not overlay.has_layers()
    assert overlay.model is None
    assert overlay.add_layer("hbonds", [(0, 5)]) == 0
