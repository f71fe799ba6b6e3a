"""
Atom and bond removal for structural models.

Models are never edited in place: removing atoms builds a new model plus a
dense old->new index map (an int64 array sized to the old atom count, with -1
for atoms that have no image). Residue and chain bounds are recomputed by
min/max over survivors, which is valid because ranges are contiguous and
strictly increasing.
"""

import logging

import numpy as np

from .structures import NO_ATOM, Chain, Residue, StructuralModel, as_bond_array, empty_bonds

logger = logging.getLogger(__name__)

NO_IMAGE = -1


def as_index_array(indices, n):
    """Unique, sorted indices from any iterable, dropping those outside [0, n)."""
    arr = np.fromiter((int(i) for i in indices), dtype=np.int64)
    arr = arr[(arr >= 0) & (arr < n)]
    return np.unique(arr)


def build_index_map(n, indices_to_remove):
    """
    Monotone compaction map for n atoms.

    Survivors are renumbered from 0 in original order; removed atoms map to -1.
    """
    keep = np.ones(n, dtype=bool)
    keep[as_index_array(indices_to_remove, n)] = False
    index_map = np.full(n, NO_IMAGE, dtype=np.int64)
    index_map[keep] = np.arange(int(keep.sum()), dtype=np.int64)
    return index_map


def _collapse_range(index_map, start, end):
    """New [start, end) bounds of the mapped survivors in [start, end), or None."""
    mapped = index_map[start:end]
    survivors = mapped[mapped != NO_IMAGE]
    if len(survivors) == 0:
        return None
    return int(survivors.min()), int(survivors.max()) + 1


def _remap_backbone(index_map, i_atom):
    if i_atom == NO_ATOM:
        return NO_ATOM
    return int(index_map[i_atom])


def rebuild_model_without_atoms(model, indices_to_remove):
    """
    Build a new model with the given local atom indices removed.

    Returns (new_model, index_map). Residues left without atoms are dropped,
    chains left without residues are dropped, backbone references to removed
    atoms become NO_ATOM and CONECT bonds touching removed atoms are dropped.
    """
    index_map = build_index_map(model.atom_count, indices_to_remove)
    keep = index_map != NO_IMAGE
    new_count = int(keep.sum())

    new_atoms = [atom for atom, kept in zip(model.atoms, keep) if kept]

    new_residues = []
    residue_map = np.full(len(model.residues), NO_IMAGE, dtype=np.int64)
    for i_res, residue in enumerate(model.residues):
        bounds = _collapse_range(index_map, residue.atom_start, residue.atom_end)
        if bounds is None:
            continue
        residue_map[i_res] = len(new_residues)
        new_residues.append(
            Residue(
                bounds[0],
                bounds[1],
                name=residue.name,
                num=residue.num,
                chain_id=residue.chain_id,
                ins_code=residue.ins_code,
                ca_index=_remap_backbone(index_map, residue.ca_index),
                c_index=_remap_backbone(index_map, residue.c_index),
                n_index=_remap_backbone(index_map, residue.n_index),
            )
        )

    new_chains = []
    for chain in model.chains:
        bounds = _collapse_range(residue_map, chain.residue_start, chain.residue_end)
        if bounds is None:
            continue
        new_chains.append(Chain(chain.id, bounds[0], bounds[1]))

    new_model = StructuralModel(
        new_atoms,
        model.positions[keep],
        b_factors=model.b_factors[keep],
        elements=model.elements[keep],
        element_list=model.element_list,
        is_het=model.is_het[keep],
        residues=new_residues,
        chains=new_chains,
        conect_bonds=remap_bonds(model.conect_bonds, index_map),
        header=model.header,
    )

    logger.debug(
        "Rebuilt model: %d -> %d atoms, %d -> %d residues, %d -> %d chains",
        model.atom_count,
        new_count,
        len(model.residues),
        len(new_residues),
        len(model.chains),
        len(new_chains),
    )
    return new_model, index_map


def remap_bonds(bonds, index_map):
    """Drop bonds with an endpoint that has no image, remap the rest."""
    bonds = as_bond_array(bonds)
    if len(bonds) == 0:
        return empty_bonds()
    n = len(index_map)
    in_range = (bonds[:, 0] < n) & (bonds[:, 1] < n)
    bonds = bonds[in_range].astype(np.int64)
    mapped = index_map[bonds]
    kept = (mapped[:, 0] != NO_IMAGE) & (mapped[:, 1] != NO_IMAGE)
    return mapped[kept].astype(np.uint32)


def rebuild_bonds_without_atoms(bonds, indices_to_remove, index_map):
    """
    Filter and remap a bond list after atoms were removed.

    A bond is dropped if either endpoint is in indices_to_remove or has no
    image in index_map; survivors are remapped through index_map.
    """
    bonds = as_bond_array(bonds)
    if len(bonds) == 0:
        return empty_bonds()
    removed = as_index_array(indices_to_remove, len(index_map))
    touches = np.isin(bonds, removed).any(axis=1)
    return remap_bonds(bonds[~touches], index_map)


def add_bonds(bonds, new_bonds, n_atom):
    """
    Append genuinely new bonds.

    Pairs are compared in canonical (min, max) form so (i, j) and (j, i) are
    the same bond. Self-bonds and pairs outside [0, n_atom) are ignored.
    Returns (merged_bonds, added_bonds).
    """
    bonds = as_bond_array(bonds)
    existing = set(map(tuple, np.sort(bonds, axis=1).tolist()))
    to_add = []
    for a, b in as_bond_array(new_bonds).tolist():
        if a == b or a >= n_atom or b >= n_atom:
            continue
        key = (min(a, b), max(a, b))
        if key in existing:
            continue
        existing.add(key)
        to_add.append(key)
    if not to_add:
        return bonds, empty_bonds()
    added = as_bond_array(to_add)
    return np.concatenate([bonds, added]), added


def remove_bonds(bonds, sel1, sel2):
    """
    Remove every bond with one endpoint in sel1 and the other in sel2.

    Returns (kept_bonds, n_removed).
    """
    bonds = as_bond_array(bonds)
    if len(bonds) == 0:
        return bonds, 0
    sel1 = np.fromiter((int(i) for i in sel1), dtype=np.int64)
    sel2 = np.fromiter((int(i) for i in sel2), dtype=np.int64)
    a_in_1 = np.isin(bonds[:, 0], sel1)
    a_in_2 = np.isin(bonds[:, 0], sel2)
    b_in_1 = np.isin(bonds[:, 1], sel1)
    b_in_2 = np.isin(bonds[:, 1], sel2)
    crosses = (a_in_1 & b_in_2) | (b_in_1 & a_in_2)
    return bonds[~crosses], int(crosses.sum())
