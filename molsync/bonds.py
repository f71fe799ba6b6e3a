"""
Default covalent bond inference.

Heavy atoms closer than BOND_CUTOFF are bonded, unless both carry different
alternate-location codes. CONECT bonds recorded in the model are always kept.
"""

import logging

import numpy as np

from . import config
from .spacehash import SpaceHash
from .structures import as_bond_array, canonical_bonds, empty_bonds

logger = logging.getLogger(__name__)


def infer_bonds(model, cutoff=config.BOND_CUTOFF):
    """Return the (n_bond, 2) uint32 bond array of model, in local indices."""
    logger.info("Finding bonds...")
    heavy = [i for i, element in enumerate(model.element_symbols()) if element != "H"]
    vertices = model.positions[heavy]

    pairs = []
    if len(heavy) > 1:
        for i, j in SpaceHash(vertices, div=max(cutoff, 1.0)).close_pairs():
            atom1_idx, atom2_idx = heavy[i], heavy[j]
            if np.linalg.norm(vertices[i] - vertices[j]) >= cutoff:
                continue
            alt1 = model.atoms[atom1_idx].alt.strip()
            alt2 = model.atoms[atom2_idx].alt.strip()
            if alt1 and alt2 and alt1 != alt2:
                continue
            pairs.append((atom1_idx, atom2_idx))

    bonds = as_bond_array(pairs) if pairs else empty_bonds()
    if len(model.conect_bonds):
        bonds = np.concatenate([bonds, model.conect_bonds])
    if len(bonds):
        bonds = np.unique(canonical_bonds(bonds), axis=0)
        bonds = bonds[bonds[:, 0] != bonds[:, 1]]
    logger.info("Found %d bonds", len(bonds))
    return bonds
