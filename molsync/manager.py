"""
Multi-structure composition.

StructureManager owns every loaded structure, keyed case-insensitively by
name in insertion order, and flattens them into one merged model whose
global atom index space is the concatenation of the structures' local
index spaces.
"""

import logging

import numpy as np

from . import config
from .structures import StructuralModel, as_bond_array, empty_bonds

logger = logging.getLogger(__name__)


class StructureEntry:
    """
    One loaded structure.

    The entry exclusively owns its model and bond list. `color` is an (r, g, b)
    tint or None for element colouring; `atom_offset` is the start of this
    structure's atoms in the merged index space.
    """

    def __init__(self, name, model, bonds, color=None):
        self.name = name
        self.model = model
        self.bonds = as_bond_array(bonds)
        self.atom_count = model.atom_count
        self.color = color
        self.atom_offset = 0

    @property
    def key(self):
        return self.name.lower()

    def contains(self, i_global):
        return self.atom_offset <= i_global < self.atom_offset + self.atom_count

    def replace_model(self, model, bonds):
        self.model = model
        self.bonds = as_bond_array(bonds)
        self.atom_count = model.atom_count

    def __repr__(self):
        return "<StructureEntry %s atoms=%d offset=%d>" % (
            self.name,
            self.atom_count,
            self.atom_offset,
        )


class StructureManager:
    def __init__(self):
        self.structures = {}
        self._n_tint = 0

    @property
    def count(self):
        return len(self.structures)

    def __len__(self):
        return len(self.structures)

    def __iter__(self):
        return iter(list(self.structures.values()))

    def unique_name(self, name):
        """Return name, or name_2, name_3, ... if taken (case-insensitive)."""
        name = name or "structure"
        if name.lower() not in self.structures:
            return name
        i = 2
        while ("%s_%d" % (name, i)).lower() in self.structures:
            i += 1
        return "%s_%d" % (name, i)

    def _next_tint(self):
        hex_color = config.STRUCTURE_TINTS[self._n_tint % len(config.STRUCTURE_TINTS)]
        self._n_tint += 1
        return config.hex_to_rgb(hex_color)

    def add_structure(self, name, model, bonds):
        """
        Register a parsed structure and return the name actually used.

        Every structure added while others are loaded gets a uniform tint;
        the first keeps element colouring.
        """
        actual_name = self.unique_name(name)
        color = self._next_tint() if self.structures else None
        entry = StructureEntry(actual_name, model, bonds, color)
        self.structures[entry.key] = entry
        self.recalculate_offsets()
        logger.info(
            "Added structure %s (%d atoms, %d bonds)", actual_name, entry.atom_count, len(entry.bonds)
        )
        return actual_name

    def remove_structure(self, name):
        """Remove a structure by name; returns False if it is unknown."""
        entry = self.structures.pop(name.lower(), None)
        if entry is None:
            logger.warning("No structure named %s", name)
            return False
        self.recalculate_offsets()
        logger.info("Removed structure %s", entry.name)
        return True

    def get_structure(self, name):
        return self.structures.get(name.lower())

    def get_structure_names(self):
        return [entry.name for entry in self.structures.values()]

    def clear(self):
        self.structures.clear()
        self._n_tint = 0

    def recalculate_offsets(self):
        offset = 0
        for entry in self.structures.values():
            entry.atom_offset = offset
            offset += entry.atom_count

    @property
    def total_atom_count(self):
        return sum(entry.atom_count for entry in self.structures.values())

    def partition_global_indices(self, global_indices):
        """
        Split global atom indices into {key: set(local indices)}.

        Indices outside every structure are dropped.
        """
        result = {}
        entries = list(self.structures.values())
        for i_global in global_indices:
            i_global = int(i_global)
            for entry in entries:
                if entry.contains(i_global):
                    result.setdefault(entry.key, set()).add(i_global - entry.atom_offset)
                    break
        return result

    def entry_of_atom(self, i_global):
        for entry in self.structures.values():
            if entry.contains(i_global):
                return entry
        return None

    def build_merged_model(self):
        """
        Concatenate all structures into one model.

        Residue atom ranges and backbone references are shifted by each
        structure's atom offset, chain residue ranges by its residue offset.
        Element codes are remapped onto a merged element list. The merged
        model records {key: (atom_offset, atom_count)} in structure_ranges.
        Returns None when no structure is loaded.
        """
        if not self.structures:
            return None

        atoms = []
        positions = []
        b_factors = []
        elements = []
        element_list = []
        is_het = []
        residues = []
        chains = []
        conect_bonds = []
        structure_ranges = {}

        for entry in self.structures.values():
            model = entry.model
            offset = entry.atom_offset
            residue_offset = len(residues)

            codes = []
            for element in model.element_list:
                if element not in element_list:
                    element_list.append(element)
                codes.append(element_list.index(element))
            code_map = np.array(codes, dtype=np.uint8)

            atoms.extend(model.atoms)
            positions.append(model.positions)
            b_factors.append(model.b_factors)
            if model.atom_count:
                elements.append(code_map[model.elements])
            is_het.append(model.is_het)
            residues.extend(residue.shifted(offset) for residue in model.residues)
            chains.extend(chain.shifted(residue_offset) for chain in model.chains)
            if len(model.conect_bonds):
                conect_bonds.append(model.conect_bonds + np.uint32(offset))
            structure_ranges[entry.key] = (offset, entry.atom_count)

        merged = StructuralModel(
            atoms,
            np.concatenate(positions),
            b_factors=np.concatenate(b_factors),
            elements=np.concatenate(elements) if elements else np.zeros(0, dtype=np.uint8),
            element_list=element_list,
            is_het=np.concatenate(is_het),
            residues=residues,
            chains=chains,
            conect_bonds=np.concatenate(conect_bonds) if conect_bonds else empty_bonds(),
            header={"structures": self.get_structure_names()},
        )
        merged.structure_ranges = structure_ranges
        return merged

    def build_merged_bonds(self):
        """All structures' bonds shifted into the global index space."""
        pieces = [
            entry.bonds + np.uint32(entry.atom_offset)
            for entry in self.structures.values()
            if len(entry.bonds)
        ]
        if not pieces:
            return empty_bonds()
        return np.concatenate(pieces)
