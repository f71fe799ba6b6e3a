"""
Entry point for running molsync as a module: python -m molsync <pdb_file> ...
"""

import argparse
import logging
import sys
from pathlib import Path

from vispy import app

from . import config
from .logging_config import setup_logging
from .parsing import parse_pdb_text, structure_name_from_path
from .session import MolecularSession
from .viewer import MolecularViewerCanvas


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="View one or more PDB structures together.")
    parser.add_argument("pdb_files", nargs="+", help="PDB files to load")
    parser.add_argument(
        "--rep",
        choices=config.REP_KINDS,
        default=config.DEFAULT_REP_KIND,
        help="initial representation",
    )
    parser.add_argument("--log-level", default="INFO", help="logging level")
    parser.add_argument("--log-file", default=None, help="also log to this file")
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for the molsync viewer."""
    args = parse_args(argv)
    logger = setup_logging(getattr(logging, args.log_level.upper(), logging.INFO), args.log_file)

    session = MolecularSession(parser=parse_pdb_text)
    for fname in args.pdb_files:
        name = session.add_structure(Path(fname).read_text(), structure_name_from_path(fname))
        if name is None:
            logger.error("Could not load %s", fname)
    if not session.structure_manager.count:
        sys.exit(1)

    session.set_representation(args.rep)
    logger.info("Loaded %s", ", ".join(session.structure_manager.get_structure_names()))

    canvas = MolecularViewerCanvas(session, title="molsync: " + " ".join(args.pdb_files))
    canvas.show()
    app.run()
    session.dispose()


if __name__ == "__main__":
    main()
