"""
Interaction overlay: contact pairs drawn on top of the representations.

Pairs are grouped into layers keyed by interaction type ("hbonds",
"salt_bridges", ...). Each pair joins two global atom indices and carries
its distance. A pair is shown only while both of its atoms are visible.

The overlay belongs to one merged model and is emptied whenever that model
is rebuilt, since global indices change meaning.
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)


class InteractionLayer:
    def __init__(self, kind, pairs, distances):
        self.kind = kind
        self.pairs = pairs
        self.distances = distances
        self.visible = np.ones(len(pairs), dtype=bool)
        self.version = 0

    def apply_visibility(self, atom_visible):
        if not len(self.pairs):
            return
        visible = atom_visible[self.pairs[:, 0]] & atom_visible[self.pairs[:, 1]]
        if not np.array_equal(visible, self.visible):
            self.visible = visible
            self.version += 1

    def as_dicts(self):
        return [
            {"a": int(a), "b": int(b), "distance": float(d)}
            for (a, b), d in zip(self.pairs.tolist(), self.distances)
        ]

    def __len__(self):
        return len(self.pairs)


class InteractionOverlay:
    """
    Interaction layers over one model.

    Callers that hold GPU resources for the overlay register with on_dispose()
    and are told whenever a layer is dropped.
    """

    def __init__(self, model=None):
        self.model = model
        self.layers = {}
        self._dispose_callbacks = []

    def on_dispose(self, callback):
        self._dispose_callbacks.append(callback)

    def _coerce_pairs(self, pairs):
        """(n, 2) int64 pairs and float32 distances, dropping invalid pairs."""
        n_atom = 0 if self.model is None else self.model.atom_count
        kept = []
        distances = []
        for pair in pairs:
            if isinstance(pair, dict):
                a, b, distance = pair["a"], pair["b"], pair.get("distance")
            else:
                a, b = pair[0], pair[1]
                distance = pair[2] if len(pair) > 2 else None
            a, b = int(a), int(b)
            if a == b or not (0 <= a < n_atom and 0 <= b < n_atom):
                continue
            if distance is None:
                distance = np.linalg.norm(self.model.positions[a] - self.model.positions[b])
            kept.append((a, b))
            distances.append(distance)
        return (
            np.array(kept, dtype=np.int64).reshape(-1, 2),
            np.array(distances, dtype=np.float32),
        )

    def add_layer(self, kind, pairs):
        """Replace the layer of this kind; returns the number of pairs kept."""
        self.remove_layer(kind)
        pairs, distances = self._coerce_pairs(pairs)
        if not len(pairs):
            return 0
        self.layers[kind] = InteractionLayer(kind, pairs, distances)
        logger.info("Added %d %s interactions", len(pairs), kind)
        return len(pairs)

    def remove_layer(self, kind):
        layer = self.layers.pop(kind, None)
        if layer is None:
            return False
        for callback in self._dispose_callbacks:
            callback(layer)
        return True

    def remove_all(self):
        for kind in list(self.layers):
            self.remove_layer(kind)

    def reset(self, model):
        self.remove_all()
        self.model = model

    def has_layers(self):
        return bool(self.layers)

    def get_layer_pairs(self, kind):
        layer = self.layers.get(kind)
        if layer is None:
            return None
        return layer.as_dicts()

    def apply_visibility(self, atom_visible):
        if atom_visible is None:
            return
        for layer in self.layers.values():
            layer.apply_visibility(atom_visible)

    def visible_pairs(self, kind):
        layer = self.layers.get(kind)
        if layer is None:
            return np.zeros((0, 2), dtype=np.int64)
        return layer.pairs[layer.visible]
