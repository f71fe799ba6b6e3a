"""
Per-atom visual state and multi-layer synchronisation.

RepresentationStateTracker holds four arrays sized to the merged model:
colour, visibility, scale and assigned representation kind. Each kind in use
has exactly one active layer, and the layer for kind K shows atom i if and
only if rep_kinds[i] == K and visible[i], so no atom is drawn twice and
hidden atoms are drawn by nobody.

The arrays are recreated whenever the merged model changes shape. Their
content is carried across a rebuild per structure: snapshot() slices every
structure's range out of the old arrays, restore() copies
min(old_count, new_count) entries back into the structure's new range.

Contact pairs in the interaction overlay follow the same visibility array and
are dropped on every rebuild.
"""

import logging

import numpy as np

from . import config
from .interactions import InteractionOverlay
from .mutation import as_index_array
from .representations import build_layer, is_known_kind

logger = logging.getLogger(__name__)

kind_dtype = "<U16"


class RepresentationStateTracker:
    def __init__(self, layer_factory=build_layer):
        self.layer_factory = layer_factory
        self.model = None
        self.bonds = None
        self.layers = {}
        self.current_kind = config.DEFAULT_REP_KIND
        self.colors = None
        self.visible = None
        self.scale = None
        self.rep_kinds = None
        self.base_scales = None
        self.base_bond_scales = None
        self.interactions = InteractionOverlay()

    @property
    def atom_count(self):
        return 0 if self.model is None else self.model.atom_count

    @property
    def has_state(self):
        return self.model is not None and self.colors is not None

    def indices(self, indices):
        return as_index_array(indices, self.atom_count)

    def element_colors(self):
        return np.array(
            [config.element_color(e) for e in self.model.element_symbols()], dtype=np.float32
        ).reshape(-1, 3)

    # ---- Rebuild ----

    def reset_arrays(self):
        """Recreate all per-atom arrays with defaults for the current model."""
        n = self.atom_count
        self.colors = self.element_colors()
        self.visible = np.ones(n, dtype=bool)
        self.scale = np.ones(n, dtype=np.float32)
        self.rep_kinds = np.full(n, self.current_kind or config.FALLBACK_REP_KIND, dtype=kind_dtype)

    def snapshot(self):
        """Slice every structure's range out of the arrays, keyed by structure."""
        if not self.has_state or not self.model.structure_ranges:
            return None
        saved = {}
        for key, (offset, count) in self.model.structure_ranges.items():
            end = offset + count
            saved[key] = {
                "colors": self.colors[offset:end].copy(),
                "visible": self.visible[offset:end].copy(),
                "scale": self.scale[offset:end].copy(),
                "rep_kinds": self.rep_kinds[offset:end].copy(),
            }
        return saved

    def restore(self, saved):
        """
        Copy saved state back into each surviving structure's new range.

        Atoms past min(old_count, new_count) keep their defaults. Returns
        True if any structure was restored.
        """
        if not saved or not self.has_state:
            return False
        restored = False
        for key, (offset, count) in self.model.structure_ranges.items():
            state = saved.get(key)
            if state is None:
                continue
            n = min(count, len(state["colors"]))
            self.colors[offset : offset + n] = state["colors"][:n]
            self.visible[offset : offset + n] = state["visible"][:n]
            self.scale[offset : offset + n] = state["scale"][:n]
            self.rep_kinds[offset : offset + n] = state["rep_kinds"][:n]
            restored = True
        return restored

    def rebuild(self, model, bonds):
        """
        Switch to a new merged model, carrying per-structure state over.

        All existing layers are disposed first.
        """
        saved = self.snapshot()
        self.dispose_layers()
        self.model = model
        self.bonds = bonds
        self.interactions.reset(model)
        if model is None:
            self.clear()
            return

        self.reset_arrays()
        self.ensure_layer(self.current_kind or config.FALLBACK_REP_KIND)

        if self.restore(saved):
            for kind in self.used_kinds():
                self.ensure_layer(kind)
            self.cleanup_unused_layers()

        self.apply_colors()
        self.sync_visibility()
        self.update_current_kind()

    def rebuild_layers(self, bonds):
        """Rebuild every active layer against new bonds, keeping all arrays."""
        self.bonds = bonds
        kinds = list(self.layers)
        self.dispose_layers()
        for kind in kinds:
            self.ensure_layer(kind)
        self.sync_visibility()

    # ---- Layers ----

    def used_kinds(self):
        if self.rep_kinds is None:
            return []
        return list(dict.fromkeys(self.rep_kinds.tolist()))

    def ensure_layer(self, kind):
        if kind in self.layers:
            return self.layers[kind]
        if not is_known_kind(kind):
            return None
        layer = self.layer_factory(kind, self.model, self.bonds)
        if self.colors is not None:
            layer.apply_colors(self.colors)
        self.layers[kind] = layer
        self._update_base_scales()
        return layer

    def cleanup_unused_layers(self):
        used = set(self.used_kinds())
        for kind in list(self.layers):
            if kind not in used:
                self.layers.pop(kind).dispose()
        self._update_base_scales()

    def dispose_layers(self):
        for layer in self.layers.values():
            layer.dispose()
        self.layers.clear()

    def _update_base_scales(self):
        first = next(iter(self.layers.values()), None)
        self.base_scales = first.get_base_scales() if first else None
        self.base_bond_scales = first.get_base_bond_scales() if first else None

    def sync_visibility(self):
        if self.visible is None or self.rep_kinds is None:
            return
        for kind, layer in self.layers.items():
            combined = (self.rep_kinds == kind) & self.visible
            layer.apply_visibility(combined, self.scale)
        self.interactions.apply_visibility(self.visible)

    def update_current_kind(self):
        """Dominant kind when a single kind is assigned, None in mixed mode."""
        kinds = self.used_kinds()
        self.current_kind = kinds[0] if len(kinds) == 1 else None

    def visibility_by_layer(self):
        return {kind: layer.visible.copy() for kind, layer in self.layers.items()}

    # ---- Representation ----

    def set_representation(self, kind):
        """Assign kind to every atom, replacing all layers by one."""
        if not is_known_kind(kind) or not self.has_state:
            return False
        if len(self.layers) == 1 and kind in self.layers:
            return False
        self.dispose_layers()
        self.current_kind = kind
        self.rep_kinds[:] = kind
        self.ensure_layer(kind)
        self.sync_visibility()
        logger.info("Representation set to %s", kind)
        return True

    def set_representation_for_atoms(self, kind, indices):
        if not is_known_kind(kind) or not self.has_state:
            return False
        indices = self.indices(indices)
        if len(indices) == 0:
            return False
        self.rep_kinds[indices] = kind
        self.ensure_layer(kind)
        self.cleanup_unused_layers()
        self.sync_visibility()
        self.update_current_kind()
        return True

    # ---- Interactions ----

    def add_interactions(self, kind, pairs):
        if not self.has_state:
            return 0
        n_pair = self.interactions.add_layer(kind, pairs)
        self.interactions.apply_visibility(self.visible)
        return n_pair

    # ---- Colours ----

    def apply_colors(self):
        if self.colors is None:
            return
        for layer in self.layers.values():
            layer.apply_colors(self.colors)

    def color_atoms(self, indices, rgb):
        indices = self.indices(indices)
        if len(indices) == 0:
            return False
        self.colors[indices] = rgb
        self.apply_colors()
        return True

    def color_atoms_by_map(self, rgb_by_index):
        n = self.atom_count
        changed = False
        for i, rgb in rgb_by_index.items():
            if 0 <= i < n:
                self.colors[i] = rgb
                changed = True
        if changed:
            self.apply_colors()
        return changed

    def reset_colors_for_atoms(self, indices):
        indices = self.indices(indices)
        if len(indices) == 0:
            return False
        self.colors[indices] = self.element_colors()[indices]
        self.apply_colors()
        return True

    def reset_colors(self):
        self.colors = self.element_colors()
        self.apply_colors()

    def apply_tint(self, offset, count, rgb):
        """Overwrite the colours of one structure's atom range with a tint."""
        self.colors[offset : offset + count] = rgb
        self.apply_colors()

    # ---- Visibility and scale ----

    def hide_atoms(self, indices):
        return self._set_visible(indices, False)

    def show_atoms(self, indices):
        return self._set_visible(indices, True)

    def _set_visible(self, indices, is_visible):
        indices = self.indices(indices)
        if len(indices) == 0:
            return False
        self.visible[indices] = is_visible
        self.sync_visibility()
        return True

    def scale_atoms(self, indices, factor):
        if self.scale is None:
            return False
        indices = self.indices(indices)
        if len(indices) == 0:
            return False
        self.scale[indices] = factor
        self.sync_visibility()
        return True

    def reset_scale(self):
        if self.scale is None:
            return
        self.scale[:] = 1.0
        self.sync_visibility()

    def reset_visibility(self):
        if self.visible is None:
            return
        self.visible[:] = True
        self.sync_visibility()

    def visible_indices(self):
        if self.visible is None:
            return np.zeros(0, dtype=np.int64)
        return np.flatnonzero(self.visible)

    def has_hidden_atoms(self):
        return self.visible is not None and not bool(self.visible.all())

    def clear(self):
        self.dispose_layers()
        self.interactions.reset(None)
        self.model = None
        self.bonds = None
        self.colors = None
        self.visible = None
        self.scale = None
        self.rep_kinds = None
        self.base_scales = None
        self.base_bond_scales = None
