"""
molsync: a multi-structure molecular viewer core.

This package keeps several molecular structures loaded at once, merges them
into one global atom index space and keeps per-atom colour, visibility, scale
and representation state consistent across structural edits. Camera framing
uses a principal-axis orientation with animated transitions.

Main classes:
- MolecularSession: entry point for loading, editing and viewing structures
- StructureManager: registry of loaded structures and the merged model
- RepresentationStateTracker: per-atom visual state and render layers
- StructuralModel: array-backed structure produced by the parser

Usage:
    from molsync import MolecularSession
    from molsync.parsing import parse_pdb_text

    session = MolecularSession(parser=parse_pdb_text)
    session.add_structure(open("1be9.pdb").read(), "1be9")
    session.orient()
"""

from .interactions import InteractionOverlay
from .manager import StructureEntry, StructureManager
from .session import MolecularSession
from .state import RepresentationStateTracker
from .structures import Atom, Chain, InvalidModelError, Residue, StructuralModel

__version__ = "0.1.0"

__all__ = [
    "MolecularSession",
    "StructureManager",
    "StructureEntry",
    "RepresentationStateTracker",
    "InteractionOverlay",
    "StructuralModel",
    "Atom",
    "Residue",
    "Chain",
    "InvalidModelError",
]
