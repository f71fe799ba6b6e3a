"""
Viewer session: the caller-facing entry point of the core.

MolecularSession ties together the structure manager, the mutation
functions, the per-atom state tracker, the orientation solver and the camera
animator. Every mutation runs to completion before returning, so a query
made right after a call always sees the rebuilt, consistent state.

Parsing, bond inference and layer building are injected collaborators:

    session = MolecularSession(parser=parse_pdb_text)
    session.add_structure(open("1be9.pdb").read(), "1be9")
    session.hide_atoms(range(100))
    session.orient()
    session.tick()  # once per frame
"""

import logging
import time

import numpy as np

from . import config, mutation
from .bonds import infer_bonds
from .camera import Camera, CameraAnimator
from .manager import StructureManager
from .orientation import axis_aligned_view, centroid, frame_box, solve_orientation
from .representations import build_layer
from .state import RepresentationStateTracker
from .structures import as_bond_array

logger = logging.getLogger(__name__)

axis_vectors = {"x": (1, 0, 0), "y": (0, 1, 0), "z": (0, 0, 1)}


class MolecularSession:
    """
    Loaded structures plus all derived visual and camera state.

    Args:
        parser: callable text -> StructuralModel or None
        bond_inferrer: callable model -> (n, 2) bond array in local indices
        layer_factory: callable (kind, model, bonds) -> built layer
        clock: callable returning the current time in seconds
        fov: camera field of view in degrees
    """

    def __init__(
        self,
        parser=None,
        bond_inferrer=infer_bonds,
        layer_factory=build_layer,
        clock=time.perf_counter,
        fov=config.CAMERA_FOV,
    ):
        self.parser = parser
        self.bond_inferrer = bond_inferrer
        self.clock = clock
        self.structure_manager = StructureManager()
        self.state = RepresentationStateTracker(layer_factory)
        self.camera = Camera(fov)
        self.animator = CameraAnimator()
        self.model = None
        self.bonds = None
        self.background = None
        self._initial_camera = None

    # ---- Accessors ----

    @property
    def layers(self):
        return self.state.layers

    @property
    def atom_colors(self):
        return self.state.colors

    @property
    def atom_visible(self):
        return self.state.visible

    @property
    def atom_scale(self):
        return self.state.scale

    @property
    def atom_rep_kinds(self):
        return self.state.rep_kinds

    def _indices(self, indices):
        if self.model is None:
            return np.zeros(0, dtype=np.int64)
        return mutation.as_index_array(indices, self.model.atom_count)

    # ---- Structures ----

    def load_from_text(self, text, name=None):
        """Replace everything loaded with the structure in text."""
        self.clear_structure()
        return self.add_structure(text, name)

    def add_structure(self, text, name=None):
        """
        Parse text and add it as a new structure.

        Returns the unique name the structure was registered under, or None
        if parsing failed, in which case nothing changes.
        """
        model = self.parser(text) if self.parser else None
        if model is None:
            logger.warning("Failed to parse structure %s", name or "")
            return None
        return self.add_model(model, name)

    def add_model(self, model, name=None):
        """Add an already parsed model; returns the registered name."""
        bonds = self.bond_inferrer(model)
        struct_name = name or model.header.get("pdb_id") or "structure"
        actual_name = self.structure_manager.add_structure(struct_name, model, bonds)
        self._rebuild_merged_state()
        self._apply_structure_color(actual_name)
        self._center_camera()
        return actual_name

    def remove_structure(self, name):
        """Remove a structure by name; False if no such structure is loaded."""
        if not self.structure_manager.remove_structure(name):
            return False
        if self.structure_manager.count == 0:
            self.clear_structure()
            return True
        self._rebuild_merged_state()
        self._center_camera()
        return True

    def remove_atoms(self, global_indices):
        """
        Permanently delete atoms given by global index.

        Each affected structure is rebuilt without its atoms; structures that
        lose every atom are dropped, and the session is cleared if none is
        left. Returns True if anything was removed.
        """
        if self.model is None:
            return False
        per_structure = self.structure_manager.partition_global_indices(self._indices(global_indices))
        if not per_structure:
            return False

        emptied = []
        for key, local_indices in per_structure.items():
            entry = self.structure_manager.structures[key]
            if len(local_indices) >= entry.atom_count:
                emptied.append(entry.name)
                continue
            model, index_map = mutation.rebuild_model_without_atoms(entry.model, local_indices)
            bonds = mutation.rebuild_bonds_without_atoms(entry.bonds, local_indices, index_map)
            entry.replace_model(model, bonds)
            logger.info("Removed %d atoms from %s", len(local_indices), entry.name)

        for name in emptied:
            self.structure_manager.remove_structure(name)

        if self.structure_manager.count == 0:
            self.clear_structure()
            return True

        self.structure_manager.recalculate_offsets()
        self._rebuild_merged_state()
        return True

    def _rebuild_merged_state(self):
        self.model = self.structure_manager.build_merged_model()
        self.bonds = self.structure_manager.build_merged_bonds()
        self.state.rebuild(self.model, self.bonds)

    def _apply_structure_color(self, name):
        entry = self.structure_manager.get_structure(name)
        if entry is None or entry.color is None:
            return
        self.state.apply_tint(entry.atom_offset, entry.atom_count, entry.color)

    # ---- Bonds ----

    def add_bonds(self, pairs):
        """
        Add bonds given as global index pairs.

        (i, j) and (j, i) count once, existing bonds are skipped and pairs
        spanning two structures are rejected. Returns the number added.
        """
        if self.model is None:
            return 0
        try:
            pairs = as_bond_array(pairs)
        except ValueError as e:
            logger.warning("Ignoring bonds: %s", e)
            return 0
        per_entry = {}
        for a, b in pairs.tolist():
            entry = self.structure_manager.entry_of_atom(a)
            if entry is None or not entry.contains(b):
                logger.warning("Ignoring bond (%d, %d) across structures", a, b)
                continue
            per_entry.setdefault(entry.key, []).append(
                (a - entry.atom_offset, b - entry.atom_offset)
            )

        n_added = 0
        for key, local_pairs in per_entry.items():
            entry = self.structure_manager.structures[key]
            bonds, added = mutation.add_bonds(entry.bonds, local_pairs, entry.atom_count)
            if len(added):
                entry.bonds = bonds
                n_added += len(added)

        if n_added:
            self._rebuild_bonds()
        return n_added

    def remove_bonds(self, sel1, sel2):
        """Remove bonds with one end in sel1 and the other in sel2; returns the count."""
        if self.model is None:
            return 0
        sel1 = list(sel1)
        sel2 = list(sel2)
        n_removed = 0
        for entry in self.structure_manager:
            if not len(entry.bonds):
                continue
            offset = np.uint32(entry.atom_offset)
            kept, n = mutation.remove_bonds(entry.bonds + offset, sel1, sel2)
            if n:
                entry.bonds = kept - offset
                n_removed += n
        if n_removed:
            self._rebuild_bonds()
        return n_removed

    def _rebuild_bonds(self):
        self.bonds = self.structure_manager.build_merged_bonds()
        self.state.rebuild_layers(self.bonds)

    # ---- Representations ----

    def set_representation(self, kind):
        return self.state.set_representation(kind)

    def set_representation_for_atoms(self, kind, indices):
        return self.state.set_representation_for_atoms(kind, indices)

    def change_representation(self, kind):
        """Switch visible atoms only when some are hidden, otherwise everything."""
        if self.state.has_hidden_atoms():
            return self.set_representation_for_atoms(kind, self.state.visible_indices())
        return self.set_representation(kind)

    def get_representation(self):
        return self.state.current_kind

    # ---- Colours, visibility, scale ----

    def color_atoms(self, indices, hex_color):
        return self.state.color_atoms(self._indices(indices), config.hex_to_rgb(hex_color))

    def color_atoms_by_map(self, color_map):
        return self.state.color_atoms_by_map(
            {int(i): config.hex_to_rgb(hex_color) for i, hex_color in color_map.items()}
        )

    def reset_colors_for_atoms(self, indices):
        return self.state.reset_colors_for_atoms(self._indices(indices))

    def reset_colors(self):
        """Element colours everywhere, then structure tints."""
        if not self.state.has_state:
            return
        self.state.reset_colors()
        for name in self.structure_manager.get_structure_names():
            self._apply_structure_color(name)

    def hide_atoms(self, indices):
        return self.state.hide_atoms(self._indices(indices))

    def show_atoms(self, indices):
        return self.state.show_atoms(self._indices(indices))

    def scale_atoms(self, indices, factor):
        return self.state.scale_atoms(self._indices(indices), factor)

    def reset_scale(self):
        self.state.reset_scale()

    def reset_visibility(self):
        self.state.reset_visibility()

    def set_background(self, hex_color):
        self.background = None if hex_color is None else config.hex_to_rgb(hex_color)

    # ---- Interactions ----

    def add_interactions(self, kind, pairs):
        """
        Overlay contact pairs of one type, replacing earlier pairs of that type.

        pairs holds {"a", "b", "distance"} dicts or (a, b[, distance]) tuples
        over global atom indices. Returns the number of pairs kept.
        """
        return self.state.add_interactions(kind, pairs)

    def remove_interactions(self, kind):
        return self.state.interactions.remove_layer(kind)

    def clear_all_interactions(self):
        self.state.interactions.remove_all()

    def get_interaction_pairs(self, kind):
        return self.state.interactions.get_layer_pairs(kind)

    @property
    def interactions(self):
        return self.state.interactions

    # ---- Camera ----

    def animate_camera_to(self, target, position=None, duration=config.CENTER_DURATION, up=None):
        self.animator.animate_to(self.camera, target, self.clock(), position, duration, up)

    def tick(self, now=None):
        """Advance any running camera animation; safe to call every frame."""
        return self.animator.tick(self.camera, self.clock() if now is None else now)

    def _center_camera(self):
        framing = frame_box(self.model.positions, self.camera.fov)
        if framing is None:
            return
        dist = framing.distance
        self.camera.target = framing.center.astype(np.float64)
        self.camera.position = self.camera.target + np.array([0.0, 0.0, dist])
        self.camera.up = np.array([0.0, 1.0, 0.0])
        self.camera.near = config.CAMERA_NEAR
        self.camera.far = max(dist * 10, config.CAMERA_NEAR * 10)
        self.camera.min_distance = config.MIN_DISTANCE
        self.camera.max_distance = max(dist * 5, config.MIN_DISTANCE)
        if self._initial_camera is None:
            self._initial_camera = self.camera.copy_state()

    def _visible_positions(self):
        return self.model.positions[self.state.visible_indices()]

    def orient(self):
        """
        Animate to the principal-axis view of the visible atoms.

        Returns the Orientation used, or None if nothing is visible.
        """
        if self.model is None:
            return None
        solution = solve_orientation(self._visible_positions(), self.camera.fov)
        if solution is None:
            return None
        position = solution.center + solution.view_dir * solution.distance
        self.animate_camera_to(
            solution.center, position, config.ORIENT_DURATION, up=solution.up_dir
        )
        return solution

    def recenter_on_visible(self):
        """Shift the orbit target to the centroid of visible atoms."""
        if self.model is None:
            return False
        points = self._visible_positions()
        if len(points) == 0:
            return False
        new_target = centroid(points)
        if np.linalg.norm(new_target - self.camera.target) <= config.RECENTER_THRESHOLD:
            return False
        self.animate_camera_to(new_target, None, config.RECENTER_DURATION)
        return True

    def zoom_to_atoms(self, indices):
        indices = self._indices(indices)
        if len(indices) == 0:
            return False
        framing = frame_box(
            self.model.positions[indices], self.camera.fov, config.ZOOM_MARGIN, config.MIN_ZOOM_SIZE
        )
        position = framing.center + np.array([0.0, 0.0, framing.distance])
        self.animate_camera_to(framing.center, position, config.ZOOM_DURATION)
        return True

    def center_on_atoms(self, indices):
        indices = self._indices(indices)
        if len(indices) == 0:
            return False
        center = centroid(self.model.positions[indices])
        self.animate_camera_to(center, None, config.CENTER_DURATION)
        return True

    def orient_to_atoms(self, indices):
        """Look along the shortest bounding-box axis of the selection."""
        indices = self._indices(indices)
        if len(indices) == 0:
            return False
        center, view_dir, distance = axis_aligned_view(self.model.positions[indices], self.camera.fov)
        self.animate_camera_to(center, center + view_dir * distance, config.ZOOM_DURATION)
        return True

    def turn_view(self, axis, degrees):
        if axis not in axis_vectors:
            return False
        self.camera.rotate(axis_vectors[axis], degrees)
        return True

    def zoom_by(self, delta):
        self.camera.rezoom(delta)

    def reset_all(self):
        """Colours, visibility, scale, interactions, representation, camera and background."""
        if self.model is None:
            return
        self.reset_colors()
        self.reset_visibility()
        self.reset_scale()
        self.clear_all_interactions()
        self.set_representation(config.DEFAULT_REP_KIND)
        if self._initial_camera is not None:
            position, target, up = self._initial_camera
            self.animate_camera_to(target, position, config.RESET_DURATION, up=up)
        self.background = None

    # ---- Lifecycle ----

    def clear_structure(self):
        self.state.clear()
        self.structure_manager.clear()
        self.animator.cancel()
        self.model = None
        self.bonds = None
        self._initial_camera = None

    def dispose(self):
        self.clear_structure()
        self.camera = Camera(self.camera.fov)
        self.background = None
        logger.info("Session disposed")

    def get_info(self):
        """Counts and chain ids of the merged model, plus per-structure summaries."""
        if self.model is None:
            return None
        info = {
            "atom_count": self.model.atom_count,
            "residue_count": self.model.residue_count,
            "chain_count": self.model.chain_count,
            "chains": [chain.id for chain in self.model.chains],
        }
        if self.structure_manager.count > 1:
            info["structure_count"] = self.structure_manager.count
            info["structures"] = [
                {
                    "name": entry.name,
                    "atom_count": entry.atom_count,
                    "color": config.rgb_to_hex_string(entry.color) if entry.color else "element",
                }
                for entry in self.structure_manager
            ]
        return info
