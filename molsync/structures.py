"""
Data structures for molecular structures.

Contains the flat, array-backed model that a parser produces and every other
part of the viewer consumes:
- Atom: per-atom identity (name, element, residue membership)
- Residue: half-open range of atom indices plus backbone back-references
- Chain: half-open range of residue indices
- StructuralModel: parallel per-atom arrays, residues, chains and CONECT bonds

Atoms are grouped by chain, then by residue, so residue atom-ranges and chain
residue-ranges are contiguous, disjoint and strictly increasing. Bounds can
therefore be recomputed with min/max after atoms are removed.

Bond lists are numpy arrays of shape (n_bond, 2), dtype uint32.
"""

import copy
from dataclasses import dataclass, replace

import numpy as np

# sentinel for a missing backbone atom
NO_ATOM = -1


class InvalidModelError(ValueError):
    """Raised when a model breaks the chain/residue ordering."""


@dataclass
class Atom:
    name: str
    element: str
    res_name: str = ""
    res_num: int = 0
    chain_id: str = "A"
    ins_code: str = ""
    alt: str = " "
    serial: int = 0


@dataclass
class Residue:
    atom_start: int
    atom_end: int
    name: str = ""
    num: int = 0
    chain_id: str = "A"
    ins_code: str = ""
    ca_index: int = NO_ATOM
    c_index: int = NO_ATOM
    n_index: int = NO_ATOM

    @property
    def atom_count(self):
        return self.atom_end - self.atom_start

    def shifted(self, atom_offset):
        def shift(i):
            return i + atom_offset if i >= 0 else NO_ATOM

        return replace(
            self,
            atom_start=self.atom_start + atom_offset,
            atom_end=self.atom_end + atom_offset,
            ca_index=shift(self.ca_index),
            c_index=shift(self.c_index),
            n_index=shift(self.n_index),
        )


@dataclass
class Chain:
    id: str
    residue_start: int
    residue_end: int

    @property
    def residue_count(self):
        return self.residue_end - self.residue_start

    def shifted(self, residue_offset):
        return replace(
            self,
            residue_start=self.residue_start + residue_offset,
            residue_end=self.residue_end + residue_offset,
        )


def empty_bonds():
    return np.zeros((0, 2), dtype=np.uint32)


def as_bond_array(pairs):
    """
    Coerce bond pairs into an (n, 2) uint32 array.

    Accepts a sequence of (i, j) pairs, a flat [i0, j0, i1, j1, ...] sequence
    or an existing array.
    """
    arr = np.asarray(pairs, dtype=np.int64)
    if arr.size == 0:
        return empty_bonds()
    if arr.size % 2:
        raise ValueError("bond list needs an even number of indices")
    if arr.min() < 0:
        raise ValueError("bond indices must be non-negative")
    return arr.reshape(-1, 2).astype(np.uint32)


def canonical_bonds(bonds):
    """Sort each pair so that (i, j) and (j, i) compare equal."""
    return np.sort(as_bond_array(bonds), axis=1)


def build_residues_and_chains(atoms):
    """
    Derive residues and chains from atoms listed in chain/residue order.

    A new residue starts whenever (chain_id, res_num, ins_code) changes, a new
    chain whenever chain_id changes. CA, C and N atoms are recorded as backbone
    back-references.
    """
    residues = []
    chains = []
    res_key = None
    for i_atom, atom in enumerate(atoms):
        key = (atom.chain_id, atom.res_num, atom.ins_code)
        if key != res_key:
            if residues:
                residues[-1].atom_end = i_atom
            if not chains or chains[-1].id != atom.chain_id:
                if chains:
                    chains[-1].residue_end = len(residues)
                chains.append(Chain(atom.chain_id, len(residues), len(residues)))
            residues.append(
                Residue(
                    i_atom,
                    i_atom,
                    name=atom.res_name,
                    num=atom.res_num,
                    chain_id=atom.chain_id,
                    ins_code=atom.ins_code,
                )
            )
            res_key = key
        residue = residues[-1]
        if atom.name == "CA" and residue.ca_index == NO_ATOM:
            residue.ca_index = i_atom
        elif atom.name == "C" and residue.c_index == NO_ATOM:
            residue.c_index = i_atom
        elif atom.name == "N" and residue.n_index == NO_ATOM:
            residue.n_index = i_atom
    if residues:
        residues[-1].atom_end = len(atoms)
        chains[-1].residue_end = len(residues)
    return residues, chains


class StructuralModel:
    """
    One molecular structure as parallel per-atom arrays.

    Models are treated as values: mutations build a new model rather than
    editing one in place. A merged model additionally carries
    `structure_ranges`, a {key: (atom_offset, atom_count)} table that maps
    global atom indices back onto the structures they came from.
    """

    def __init__(
        self,
        atoms,
        positions,
        b_factors=None,
        elements=None,
        element_list=None,
        is_het=None,
        residues=None,
        chains=None,
        conect_bonds=None,
        header=None,
    ):
        self.atoms = list(atoms)
        n = len(self.atoms)
        self.positions = np.asarray(positions, dtype=np.float32).reshape(n, 3)

        if b_factors is None:
            b_factors = np.zeros(n)
        self.b_factors = np.asarray(b_factors, dtype=np.float32)

        if elements is None:
            element_list = []
            codes = []
            for atom in self.atoms:
                element = atom.element.upper()
                if element not in element_list:
                    element_list.append(element)
                codes.append(element_list.index(element))
            elements = codes
        self.elements = np.asarray(elements, dtype=np.uint8)
        self.element_list = list(element_list)

        if is_het is None:
            is_het = np.zeros(n)
        self.is_het = np.asarray(is_het, dtype=np.uint8)

        if residues is None and chains is None:
            residues, chains = build_residues_and_chains(self.atoms)
        self.residues = list(residues or [])
        self.chains = list(chains or [])

        if conect_bonds is None:
            conect_bonds = empty_bonds()
        self.conect_bonds = as_bond_array(conect_bonds)

        self.header = dict(header or {})
        self.structure_ranges = {}

    @property
    def atom_count(self):
        return len(self.atoms)

    @property
    def residue_count(self):
        return len(self.residues)

    @property
    def chain_count(self):
        return len(self.chains)

    def element_of(self, i_atom):
        return self.element_list[self.elements[i_atom]]

    def element_symbols(self):
        return [self.element_list[code] for code in self.elements]

    def residue_index_by_atom(self):
        """Array mapping every atom index onto its residue index, -1 if none."""
        result = np.full(self.atom_count, -1, dtype=np.int64)
        for i_res, residue in enumerate(self.residues):
            result[residue.atom_start : residue.atom_end] = i_res
        return result

    def check_ordering(self):
        """
        Raise InvalidModelError unless residues and chains are non-empty,
        disjoint, strictly increasing ranges, and all references are in range.
        """
        n_atom = self.atom_count
        for name, arr in (
            ("positions", self.positions),
            ("b_factors", self.b_factors),
            ("elements", self.elements),
            ("is_het", self.is_het),
        ):
            if len(arr) != n_atom:
                raise InvalidModelError("%s has %d entries for %d atoms" % (name, len(arr), n_atom))
        if n_atom and int(self.elements.max()) >= len(self.element_list):
            raise InvalidModelError("element code outside element list")

        prev_end = 0
        for i_res, residue in enumerate(self.residues):
            if not (prev_end <= residue.atom_start < residue.atom_end <= n_atom):
                raise InvalidModelError(
                    "residue %d range [%d, %d) out of order"
                    % (i_res, residue.atom_start, residue.atom_end)
                )
            for i_atom in (residue.ca_index, residue.c_index, residue.n_index):
                if i_atom != NO_ATOM and not (residue.atom_start <= i_atom < residue.atom_end):
                    raise InvalidModelError("residue %d backbone atom outside its range" % i_res)
            prev_end = residue.atom_end

        n_res = len(self.residues)
        prev_end = 0
        for i_chain, chain in enumerate(self.chains):
            if not (prev_end <= chain.residue_start < chain.residue_end <= n_res):
                raise InvalidModelError(
                    "chain %d range [%d, %d) out of order"
                    % (i_chain, chain.residue_start, chain.residue_end)
                )
            prev_end = chain.residue_end

        if len(self.conect_bonds) and int(self.conect_bonds.max()) >= n_atom:
            raise InvalidModelError("CONECT bond refers to a missing atom")

    def is_valid(self):
        try:
            self.check_ordering()
        except InvalidModelError:
            return False
        return True

    def copy(self):
        model = StructuralModel(
            copy.deepcopy(self.atoms),
            self.positions.copy(),
            b_factors=self.b_factors.copy(),
            elements=self.elements.copy(),
            element_list=list(self.element_list),
            is_het=self.is_het.copy(),
            residues=[replace(r) for r in self.residues],
            chains=[replace(c) for c in self.chains],
            conect_bonds=self.conect_bonds.copy(),
            header=self.header,
        )
        model.structure_ranges = dict(self.structure_ranges)
        return model

    def __repr__(self):
        return "<StructuralModel atoms=%d residues=%d chains=%d>" % (
            self.atom_count,
            self.residue_count,
            self.chain_count,
        )
