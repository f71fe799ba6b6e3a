"""
PDB parsing through pdbstruct.

Converts a pdbstruct Soup into a StructuralModel. pdbstruct proxies are
transient, so every value is copied out while walking residues in soup order,
which already groups atoms by chain and residue.
"""

import logging
import re
import tempfile
from pathlib import Path

import numpy as np
from pdbstruct import parse

from .structures import Atom, InvalidModelError, StructuralModel

logger = logging.getLogger(__name__)

pdb_suffix_re = re.compile(r"\.(pdb|ent|pdb1)$", re.IGNORECASE)


def structure_name_from_path(path):
    return pdb_suffix_re.sub("", Path(path).name)


def read_pdb_id(text):
    for line in text.splitlines():
        if line.startswith("HEADER"):
            return line[62:66].strip() or None
    return None


def soup_to_model(soup, header=None):
    """Copy a pdbstruct Soup into a StructuralModel."""
    atoms = []
    positions = []
    b_factors = []
    is_het = []
    for i_res in range(soup.get_residue_count()):
        res_proxy = soup.get_residue_proxy(i_res)
        res_type = res_proxy.res_type
        res_num = res_proxy.res_num
        chain_id = res_proxy.chain
        ins_code = getattr(res_proxy, "ins_code", "") or ""
        for atom_idx in res_proxy.get_atom_indices():
            atom_proxy = soup.get_atom_proxy(atom_idx)
            pos = atom_proxy.pos
            atoms.append(
                Atom(
                    name=atom_proxy.atom_type,
                    element=atom_proxy.elem,
                    res_name=res_type,
                    res_num=res_num,
                    chain_id=chain_id,
                    ins_code=ins_code,
                    alt=atom_proxy.alt or " ",
                    serial=atom_idx + 1,
                )
            )
            positions.append((pos.x, pos.y, pos.z))
            b_factors.append(getattr(atom_proxy, "bfactor", 0.0))
            is_het.append(1 if getattr(atom_proxy, "is_hetatm", False) else 0)

    model = StructuralModel(
        atoms,
        np.array(positions, dtype=np.float32).reshape(-1, 3),
        b_factors=b_factors,
        is_het=is_het,
        header=header,
    )
    model.check_ordering()
    return model


def load_model(fname):
    """Load a PDB file; returns None if it cannot be parsed."""
    text = Path(fname).read_text()
    return parse_pdb_text(text)


def parse_pdb_text(text):
    """
    Parse PDB text into a StructuralModel.

    Returns None when the text holds no atoms or pdbstruct rejects it.
    """
    if not text or not text.strip():
        logger.warning("Empty PDB text")
        return None
    header = {"pdb_id": read_pdb_id(text)}
    with tempfile.TemporaryDirectory() as tmp_dir:
        fname = Path(tmp_dir) / "structure.pdb"
        fname.write_text(text)
        try:
            soup = parse.load_soup(str(fname))
            model = soup_to_model(soup, header)
        except (InvalidModelError, ValueError, KeyError, IndexError, AttributeError) as e:
            logger.warning("Failed to parse PDB text: %s", e)
            return None
    if model.atom_count == 0:
        logger.warning("PDB text contains no atoms")
        return None
    logger.info(
        "Parsed %d atoms, %d residues, %d chains",
        model.atom_count,
        model.residue_count,
        model.chain_count,
    )
    return model
