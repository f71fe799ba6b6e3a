import numpy as np
import pytest

from molsync.structures import Atom, StructuralModel

# name, element and offset from the residue origin
backbone_template = [
    ("N", "N", (0.0, 0.0, 0.0)),
    ("CA", "C", (1.45, 0.0, 0.0)),
    ("C", "C", (2.5, 0.9, 0.0)),
    ("O", "O", (2.5, 2.1, 0.0)),
]


def make_model(chains=(("A", (4, 6)),), origin=(0.0, 0.0, 0.0), spacing=3.8, name=None):
    """
    Small protein-like model.

    chains is a sequence of (chain_id, residue_sizes). The first four atoms of
    a residue are N, CA, C, O; extra atoms are side-chain carbons.
    """
    atoms = []
    positions = []
    i_res = 0
    for i_chain, (chain_id, residue_sizes) in enumerate(chains):
        for size in residue_sizes:
            x0 = origin[0] + i_res * spacing
            y0 = origin[1] + i_chain * 10.0
            z0 = origin[2]
            for i_atom in range(size):
                if i_atom < len(backbone_template):
                    atom_name, element, offset = backbone_template[i_atom]
                else:
                    atom_name, element = "C%d" % i_atom, "C"
                    offset = (1.45, -1.4 * (i_atom - 3), 0.0)
                atoms.append(
                    Atom(
                        name=atom_name,
                        element=element,
                        res_name="ALA",
                        res_num=i_res + 1,
                        chain_id=chain_id,
                        serial=len(atoms) + 1,
                    )
                )
                positions.append((x0 + offset[0], y0 + offset[1], z0 + offset[2]))
            i_res += 1
    header = {"pdb_id": name} if name else None
    return StructuralModel(atoms, np.array(positions, dtype=np.float32), header=header)


def sequential_bonds(model):
    """Bond every atom to the next one."""
    n = model.atom_count
    if n < 2:
        return np.zeros((0, 2), dtype=np.uint32)
    i = np.arange(n - 1, dtype=np.uint32)
    return np.stack([i, i + 1], axis=1)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, dt):
        self.now += dt


def make_parser(models):
    """Parser that looks the text up in models and returns a copy, or None."""

    def parse(text):
        model = models.get(text)
        return None if model is None else model.copy()

    return parse


@pytest.fixture
def scenario_model():
    """10 atoms in residues [0, 4) and [4, 10)."""
    return make_model((("A", (4, 6)),))


@pytest.fixture
def two_chain_model():
    return make_model((("A", (4, 4, 5)), ("B", (4, 4))))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def models():
    return {
        "five": make_model((("A", (5,)),)),
        "three": make_model((("B", (3,)),), origin=(20.0, 0.0, 0.0)),
        "protein": make_model((("A", (4, 5, 4, 6)), ("B", (4, 4, 4)))),
    }


@pytest.fixture
def session(models, clock):
    from molsync.session import MolecularSession

    return MolecularSession(
        parser=make_parser(models), bond_inferrer=sequential_bonds, clock=clock
    )
