"""
Render layers, one per representation kind.

A layer turns a model and its bonds into flat instance arrays that a canvas
can upload directly:
- atom instances: position, colour and radius per atom
- bond instances: two endpoints, two colours and a radius per bond

Every layer exposes the same interface (build, dispose, apply_colors,
apply_visibility, get_base_scales) and is chosen by kind through
LAYER_CLASSES, so callers never look up classes at runtime.

GPU-side handles belong to whoever uploads the arrays; they register a
callback with on_dispose() and release their handles when it fires.
"""

import logging

import numpy as np

from . import config
from .structures import NO_ATOM, empty_bonds

logger = logging.getLogger(__name__)

atom_dtype = [
    ("a_position", np.float32, 3),
    ("a_color", np.float32, 3),
    ("a_radius", np.float32),
    ("a_objid", np.float32),
]

bond_dtype = [
    ("a_position1", np.float32, 3),
    ("a_position2", np.float32, 3),
    ("a_color1", np.float32, 3),
    ("a_color2", np.float32, 3),
    ("a_radius", np.float32),
]


class Layer:
    """
    Base render layer.

    Subclasses set `kind`, `draws_bonds` and `bond_radius`, and override
    base_atom_radii() to size atoms for their style.
    """

    kind = None
    draws_bonds = True
    bond_radius = 0.15

    def __init__(self, model, bonds):
        self.model = model
        self.bonds = empty_bonds() if bonds is None else bonds
        self.atom_data = None
        self.bond_data = None
        self.base_radii = None
        self.base_bond_radii = None
        self.visible = None
        self.segments = None
        self.is_built = False
        self.is_disposed = False
        self.version = 0
        self._dispose_callbacks = []

    def base_atom_radii(self):
        return np.full(self.model.atom_count, 0.3, dtype=np.float32)

    def drawn_bonds(self):
        if not self.draws_bonds:
            return empty_bonds()
        return self.bonds

    def build(self):
        n_atom = self.model.atom_count
        self.base_radii = self.base_atom_radii()

        self.atom_data = np.zeros(n_atom, atom_dtype)
        self.atom_data["a_position"] = self.model.positions
        self.atom_data["a_color"] = np.array(
            [config.element_color(element) for element in self.model.element_symbols()],
            dtype=np.float32,
        ).reshape(-1, 3)
        self.atom_data["a_radius"] = self.base_radii
        self.atom_data["a_objid"] = np.arange(n_atom, dtype=np.float32)

        bonds = self.segments = self.drawn_bonds()
        self.base_bond_radii = np.full(len(bonds), self.bond_radius, dtype=np.float32)
        self.bond_data = np.zeros(len(bonds), bond_dtype)
        if len(bonds):
            i, j = bonds[:, 0].astype(np.int64), bonds[:, 1].astype(np.int64)
            self.bond_data["a_position1"] = self.model.positions[i]
            self.bond_data["a_position2"] = self.model.positions[j]
            self.bond_data["a_color1"] = self.atom_data["a_color"][i]
            self.bond_data["a_color2"] = self.atom_data["a_color"][j]
        self.bond_data["a_radius"] = self.base_bond_radii

        self.visible = np.ones(n_atom, dtype=bool)
        self.is_built = True
        self.version += 1
        logger.debug(
            "Built %s layer: %d atoms, %d bonds", self.kind, n_atom, len(self.bond_data)
        )
        return self

    def _bond_indices(self):
        bonds = self.segments
        return bonds[:, 0].astype(np.int64), bonds[:, 1].astype(np.int64)

    def apply_colors(self, colors):
        colors = np.asarray(colors, dtype=np.float32)
        self.atom_data["a_color"] = colors
        if len(self.bond_data):
            i, j = self._bond_indices()
            self.bond_data["a_color1"] = colors[i]
            self.bond_data["a_color2"] = colors[j]
        self.version += 1

    def apply_visibility(self, mask, scales):
        """
        Show exactly the atoms in mask, sized by base radius times scale.

        A bond is drawn only when both of its atoms are shown.
        """
        mask = np.asarray(mask, dtype=bool)
        scales = np.asarray(scales, dtype=np.float32)
        self.visible = mask.copy()
        self.atom_data["a_radius"] = np.where(mask, self.base_radii * scales, 0.0)
        if len(self.bond_data):
            i, j = self._bond_indices()
            shown = mask[i] & mask[j]
            self.bond_data["a_radius"] = np.where(shown, self.base_bond_radii, 0.0)
        self.version += 1

    def get_base_scales(self):
        return self.base_radii.copy()

    def get_base_bond_scales(self):
        return self.base_bond_radii.copy()

    def visible_atom_indices(self):
        return np.flatnonzero(self.visible)

    def on_dispose(self, callback):
        self._dispose_callbacks.append(callback)

    def dispose(self):
        if self.is_disposed:
            return
        for callback in self._dispose_callbacks:
            callback(self)
        self._dispose_callbacks = []
        self.atom_data = None
        self.bond_data = None
        self.visible = None
        self.is_disposed = True
        logger.debug("Disposed %s layer", self.kind)

    def __repr__(self):
        return "<%s atoms=%d>" % (self.__class__.__name__, self.model.atom_count)


class BallAndStickLayer(Layer):
    kind = config.BALL_AND_STICK
    bond_radius = 0.15

    def base_atom_radii(self):
        return np.array(
            [0.25 * config.vdw_radius(e) for e in self.model.element_symbols()],
            dtype=np.float32,
        )


class SpacefillLayer(Layer):
    kind = config.SPACEFILL
    draws_bonds = False

    def base_atom_radii(self):
        return np.array(
            [config.vdw_radius(e) for e in self.model.element_symbols()], dtype=np.float32
        )


class StickLayer(Layer):
    kind = config.STICK
    bond_radius = 0.2

    def base_atom_radii(self):
        return np.full(self.model.atom_count, self.bond_radius, dtype=np.float32)


class LinesLayer(Layer):
    kind = config.LINES
    bond_radius = 0.0

    def base_atom_radii(self):
        return np.zeros(self.model.atom_count, dtype=np.float32)


class CartoonLayer(Layer):
    """
    Backbone trace through CA atoms.

    Only CA atoms get a radius; consecutive CA atoms of a chain are joined by
    trace segments unless they are further apart than TRACE_BREAK_CUTOFF.
    """

    kind = config.CARTOON
    bond_radius = 0.3

    def base_atom_radii(self):
        radii = np.zeros(self.model.atom_count, dtype=np.float32)
        for residue in self.model.residues:
            if residue.ca_index != NO_ATOM:
                radii[residue.ca_index] = self.bond_radius
        return radii

    def drawn_bonds(self):
        positions = self.model.positions
        pairs = []
        for chain in self.model.chains:
            prev_ca = NO_ATOM
            for residue in self.model.residues[chain.residue_start : chain.residue_end]:
                ca = residue.ca_index
                if ca == NO_ATOM:
                    continue
                if prev_ca != NO_ATOM:
                    dist = np.linalg.norm(positions[ca] - positions[prev_ca])
                    if dist <= config.TRACE_BREAK_CUTOFF:
                        pairs.append((prev_ca, ca))
                prev_ca = ca
        if not pairs:
            return empty_bonds()
        return np.array(pairs, dtype=np.uint32)


LAYER_CLASSES = {
    config.CARTOON: CartoonLayer,
    config.BALL_AND_STICK: BallAndStickLayer,
    config.SPACEFILL: SpacefillLayer,
    config.STICK: StickLayer,
    config.LINES: LinesLayer,
}


def is_known_kind(kind):
    return kind in LAYER_CLASSES


def build_layer(kind, model, bonds):
    """Create and build the layer for kind."""
    if kind not in LAYER_CLASSES:
        raise ValueError("Unknown representation kind: %r" % (kind,))
    logger.info("Building %s layer...", kind)
    return LAYER_CLASSES[kind](model, bonds).build()
