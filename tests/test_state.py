import numpy as np
import pytest

from conftest import make_model, sequential_bonds
from molsync import config
from molsync.manager import StructureManager
from molsync.state import RepresentationStateTracker


def merged(*models):
    manager = StructureManager()
    for i, model in enumerate(models):
        manager.add_structure("s%d" % i, model, sequential_bonds(model))
    return manager, manager.build_merged_model(), manager.build_merged_bonds()


@pytest.fixture
def tracker():
    model = make_model((("A", (4, 5, 4, 6)),))
    tracker = RepresentationStateTracker()
    tracker.rebuild(model, sequential_bonds(model))
    return tracker


def assert_exclusive(tracker):
    """Each atom is shown by one layer iff it is visible and its layer is active."""
    shown = np.zeros(tracker.atom_count, dtype=int)
    for visible in tracker.visibility_by_layer().values():
        shown += visible.astype(int)
    assert shown.max() <= 1
    for i in range(tracker.atom_count):
        expected = tracker.visible[i] and tracker.rep_kinds[i] in tracker.layers
        assert shown[i] == int(expected)


def test_rebuild_resets_arrays(tracker):
    n = tracker.atom_count
    assert tracker.colors.shape == (n, 3)
    assert tracker.visible.all()
    assert (tracker.scale == 1.0).all()
    assert set(tracker.rep_kinds.tolist()) == {config.DEFAULT_REP_KIND}
    assert list(tracker.layers) == [config.DEFAULT_REP_KIND]
    assert tracker.current_kind == config.DEFAULT_REP_KIND
    assert_exclusive(tracker)


def test_mixed_representation_uses_one_layer_per_kind(tracker):
    assert tracker.set_representation_for_atoms(config.STICK, range(4, 9))
    assert set(tracker.layers) == {config.CARTOON, config.STICK}
    assert tracker.current_kind is None
    assert_exclusive(tracker)

    assert tracker.set_representation_for_atoms(config.STICK, range(tracker.atom_count))
    assert list(tracker.layers) == [config.STICK]
    assert tracker.current_kind == config.STICK
    assert_exclusive(tracker)


def test_unused_layers_are_disposed(tracker):
    cartoon = tracker.layers[config.CARTOON]
    tracker.set_representation(config.SPACEFILL)
    assert cartoon.is_disposed
    assert list(tracker.layers) == [config.SPACEFILL]


def test_set_same_representation_is_noop(tracker):
    layer = tracker.layers[config.CARTOON]
    assert not tracker.set_representation(config.CARTOON)
    assert tracker.layers[config.CARTOON] is layer


def test_unknown_kind_is_ignored(tracker):
    assert not tracker.set_representation("ribbon")
    assert not tracker.set_representation_for_atoms("ribbon", [0])
    assert list(tracker.layers) == [config.CARTOON]


def test_hidden_atoms_are_drawn_by_nobody(tracker):
    tracker.set_representation_for_atoms(config.BALL_AND_STICK, range(0, 9))
    assert tracker.hide_atoms([0, 1, 12])
    assert tracker.has_hidden_atoms()
    assert_exclusive(tracker)
    assert 12 not in tracker.visible_indices()

    tracker.show_atoms([0])
    tracker.reset_visibility()
    assert not tracker.has_hidden_atoms()
    assert_exclusive(tracker)


def test_empty_selection_is_noop(tracker):
    assert not tracker.hide_atoms([])
    assert not tracker.color_atoms([-1, 500], (1, 0, 0))
    assert not tracker.scale_atoms([], 2.0)
    assert tracker.visible.all()


def test_scale_multiplies_base_radius(tracker):
    tracker.set_representation(config.SPACEFILL)
    base = tracker.base_scales.copy()
    tracker.scale_atoms([3], 2.0)
    layer = tracker.layers[config.SPACEFILL]
    assert layer.atom_data["a_radius"][3] == pytest.approx(2.0 * base[3])
    tracker.reset_scale()
    assert layer.atom_data["a_radius"][3] == pytest.approx(base[3])


def test_colors_broadcast_to_all_layers(tracker):
    tracker.set_representation_for_atoms(config.STICK, [0, 1])
    tracker.color_atoms([0, 5], (1.0, 0.0, 0.0))
    for layer in tracker.layers.values():
        assert tuple(layer.atom_data["a_color"][5]) == (1.0, 0.0, 0.0)

    tracker.reset_colors_for_atoms([5])
    assert tuple(tracker.colors[5]) == pytest.approx(config.element_color("C"))
    assert tuple(tracker.colors[0]) == (1.0, 0.0, 0.0)
    tracker.reset_colors()
    assert tuple(tracker.colors[0]) == pytest.approx(config.element_color("N"))


def test_color_atoms_by_map(tracker):
    assert tracker.color_atoms_by_map({2: (0.0, 1.0, 0.0), 999: (1.0, 1.0, 1.0)})
    assert tuple(tracker.colors[2]) == (0.0, 1.0, 0.0)


def test_state_survives_rebuild_per_structure():
    a = make_model((("A", (4, 4)),))
    b = make_model((("B", (4,)),), origin=(20.0, 0.0, 0.0))
    manager, model, bonds = merged(a, b)
    tracker = RepresentationStateTracker()
    tracker.rebuild(model, bonds)

    tracker.hide_atoms([9])
    tracker.color_atoms([1], (1.0, 0.0, 0.0))
    tracker.set_representation_for_atoms(config.STICK, [10, 11])

    # drop the first structure: b's edits move from offset 8 to offset 0
    manager.remove_structure("s0")
    tracker.rebuild(manager.build_merged_model(), manager.build_merged_bonds())

    assert tracker.atom_count == 4
    assert tracker.visible.tolist() == [True, False, True, True]
    assert tracker.rep_kinds.tolist()[2:] == [config.STICK, config.STICK]
    assert tuple(tracker.colors[1]) == pytest.approx(config.element_color("C"))
    assert set(tracker.layers) == {config.CARTOON, config.STICK}
    assert_exclusive(tracker)


def test_restore_copies_min_of_old_and_new_counts():
    a = make_model((("A", (4, 4)),))
    manager, model, bonds = merged(a)
    tracker = RepresentationStateTracker()
    tracker.rebuild(model, bonds)
    tracker.hide_atoms([7])
    tracker.scale_atoms([0], 3.0)

    entry = manager.get_structure("s0")
    smaller = make_model((("A", (4, 2)),))
    entry.replace_model(smaller, sequential_bonds(smaller))
    manager.recalculate_offsets()
    tracker.rebuild(manager.build_merged_model(), manager.build_merged_bonds())

    assert tracker.atom_count == 6
    assert tracker.visible.all()
    assert tracker.scale[0] == pytest.approx(3.0)


def test_rebuild_layers_keeps_state(tracker):
    tracker.set_representation(config.BALL_AND_STICK)
    tracker.hide_atoms([0])
    old_layer = tracker.layers[config.BALL_AND_STICK]
    tracker.rebuild_layers(np.array([[1, 2]], dtype=np.uint32))
    layer = tracker.layers[config.BALL_AND_STICK]
    assert old_layer.is_disposed
    assert len(layer.bond_data) == 1
    assert not tracker.visible[0]
    assert_exclusive(tracker)


def test_clear_disposes_everything(tracker):
    layer = tracker.layers[config.CARTOON]
    tracker.clear()
    assert layer.is_disposed
    assert tracker.layers == {}
    assert not tracker.has_state


def test_interactions_follow_visibility_and_reset_on_rebuild(tracker):
    assert tracker.add_interactions("hbonds", [(0, 10), (2, 12)]) == 2
    tracker.hide_atoms([12])
    assert tracker.interactions.visible_pairs("hbonds").tolist() == [[0, 10]]
    tracker.reset_visibility()
    assert len(tracker.interactions.visible_pairs("hbonds")) == 2

    tracker.rebuild(tracker.model, tracker.bonds)
    assert not tracker.interactions.has_layers()

    tracker.add_interactions("hbonds", [(0, 10)])
    tracker.clear()
    assert not tracker.interactions.has_layers()
    assert tracker.add_interactions("hbonds", [(0, 10)]) == 0


def test_injected_layer_factory_is_used():
    built = []

    def factory(kind, model, bonds):
        from molsync.representations import build_layer

        layer = build_layer(kind, model, bonds)
        built.append(kind)
        return layer

    model = make_model((("A", (4,)),))
    tracker = RepresentationStateTracker(layer_factory=factory)
    tracker.rebuild(model, sequential_bonds(model))
    tracker.set_representation(config.LINES)
    assert built == [config.CARTOON, config.LINES]
