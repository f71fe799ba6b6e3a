import numpy as np
import pytest

from conftest import make_model, sequential_bonds
from molsync.mutation import (
    NO_IMAGE,
    add_bonds,
    build_index_map,
    rebuild_bonds_without_atoms,
    rebuild_model_without_atoms,
    remove_bonds,
)
from molsync.structures import NO_ATOM, as_bond_array


def test_remove_atoms_collapses_residue_ranges(scenario_model):
    new_model, index_map = rebuild_model_without_atoms(scenario_model, {2, 3})
    assert new_model.atom_count == 8
    assert [(r.atom_start, r.atom_end) for r in new_model.residues] == [(0, 2), (2, 8)]
    assert index_map.tolist() == [0, 1, NO_IMAGE, NO_IMAGE, 2, 3, 4, 5, 6, 7]
    new_model.check_ordering()


def test_index_map_is_monotone_compaction():
    index_map = build_index_map(6, [0, 4, 4, 99])
    assert index_map.tolist() == [NO_IMAGE, 0, 1, 2, NO_IMAGE, 3]


@pytest.mark.parametrize("remove", [set(), {0}, {9}, {0, 1, 2, 3}, {1, 5, 7}, set(range(10))])
def test_atom_count_drops_by_removed_count(scenario_model, remove):
    new_model, _ = rebuild_model_without_atoms(scenario_model, remove)
    assert new_model.atom_count == scenario_model.atom_count - len(remove)
    assert new_model.is_valid()


def test_surviving_residues_only_hold_their_own_atoms(two_chain_model):
    remove = {1, 4, 5, 6, 7, 12, 20}
    new_model, index_map = rebuild_model_without_atoms(two_chain_model, remove)
    inverse = {int(new): old for old, new in enumerate(index_map) if new != NO_IMAGE}
    old_residue_of = two_chain_model.residue_index_by_atom()
    for residue in new_model.residues:
        old_residues = {old_residue_of[inverse[i]] for i in range(residue.atom_start, residue.atom_end)}
        assert len(old_residues) == 1
    # residue [4, 8) lost every atom
    assert new_model.residue_count == two_chain_model.residue_count - 1


def test_backbone_reference_to_removed_atom_becomes_absent(scenario_model):
    new_model, _ = rebuild_model_without_atoms(scenario_model, {1})
    assert new_model.residues[0].ca_index == NO_ATOM
    assert new_model.residues[0].n_index == 0
    assert new_model.residues[0].c_index == 1
    assert new_model.residues[1].ca_index == 4


def test_chain_without_residues_is_dropped(two_chain_model):
    chain_b = two_chain_model.chains[1]
    start = two_chain_model.residues[chain_b.residue_start].atom_start
    new_model, _ = rebuild_model_without_atoms(two_chain_model, range(start, 21))
    assert [c.id for c in new_model.chains] == ["A"]
    assert new_model.residue_count == 3


def test_empty_removal_is_identity(two_chain_model):
    new_model, index_map = rebuild_model_without_atoms(two_chain_model, [])
    assert index_map.tolist() == list(range(two_chain_model.atom_count))
    assert np.array_equal(new_model.positions, two_chain_model.positions)
    assert new_model.residues == two_chain_model.residues
    assert new_model.chains == two_chain_model.chains
    assert new_model.atoms == two_chain_model.atoms


def test_conect_bonds_follow_removal():
    model = make_model((("A", (4, 4)),))
    model.conect_bonds = as_bond_array([(0, 5), (2, 7)])
    new_model, _ = rebuild_model_without_atoms(model, {2})
    assert new_model.conect_bonds.tolist() == [[0, 4]]


def test_rebuilt_bonds_never_touch_removed_atoms(two_chain_model):
    bonds = sequential_bonds(two_chain_model)
    remove = {3, 10, 11}
    _, index_map = rebuild_model_without_atoms(two_chain_model, remove)
    new_bonds = rebuild_bonds_without_atoms(bonds, remove, index_map)
    expected = [b for b in bonds.tolist() if b[0] not in remove and b[1] not in remove]
    assert len(new_bonds) == len(expected)
    assert new_bonds.max() < two_chain_model.atom_count - len(remove)
    assert new_bonds.tolist() == [[int(index_map[a]), int(index_map[b])] for a, b in expected]


def test_add_bonds_deduplicates_canonical_pairs():
    bonds = as_bond_array([(0, 1)])
    merged, added = add_bonds(bonds, [(1, 2), (2, 1), (1, 0), (3, 3), (2, 40)], 10)
    assert added.tolist() == [[1, 2]]
    assert merged.tolist() == [[0, 1], [1, 2]]


def test_remove_bonds_between_selections():
    bonds = as_bond_array([(1, 2), (3, 1), (1, 4), (2, 3)])
    kept, n_removed = remove_bonds(bonds, {1}, {2, 3})
    assert n_removed == 2
    assert kept.tolist() == [[1, 4], [2, 3]]


def test_remove_bonds_on_empty_list():
    kept, n_removed = remove_bonds(as_bond_array([]), {1}, {2})
    assert n_removed == 0
    assert kept.shape == (0, 2)
