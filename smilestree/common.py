"""
Common fragments.

Prebuilt trees for frequent substituents and ring scaffolds, ready to be
attached, substituted or fused:

    >>> from smilestree.common import benzene, methyl
    >>> benzene.attach(1, methyl).smiles
    'c1(C)ccccc1'
"""

from __future__ import annotations

from smilestree.nodes import FusedRing, Linear, Ring
from smilestree.parser import parse

# Alkyl groups
methyl = Linear(["C"])
ethyl = Linear(["C", "C"])
propyl = Linear(["C", "C", "C"])
isopropyl = parse("C(C)C")
butyl = Linear(["C", "C", "C", "C"])
tbutyl = parse("C(C)(C)C")

# Functional groups
hydroxyl = Linear(["O"])
amino = Linear(["N"])
carboxyl = parse("C(=O)O")
carbonyl = parse("C=O")
nitro = parse("[N+](=O)[O-]")
cyano = parse("C#N")

# Halogens
fluoro = Linear(["F"])
chloro = Linear(["Cl"])
bromo = Linear(["Br"])
iodo = Linear(["I"])

# Single rings
benzene = Ring(atoms="c", size=6)
cyclohexane = Ring(atoms="C", size=6)
pyridine = benzene.substitute(1, "n")
pyrrole = Ring(atoms="c", size=5).substitute(1, "[nH]")
furan = Ring(atoms="c", size=5).substitute(1, "o")
thiophene = Ring(atoms="c", size=5).substitute(1, "s")

# Fused ring systems
naphthalene = FusedRing.build([
    Ring(atoms="c", size=6, ring_number=1),
    Ring(atoms="c", size=6, ring_number=2, offset=3),
])
indole = FusedRing.build([
    Ring(atoms="c", size=6, ring_number=1),
    Ring(atoms="c", size=5, ring_number=2, offset=3).substitute(2, "[nH]"),
])
quinoline = FusedRing.build([
    Ring(atoms="c", size=6, ring_number=1),
    Ring(atoms="c", size=6, ring_number=2, offset=3).substitute(2, "n"),
])

__all__ = [
    "methyl", "ethyl", "propyl", "isopropyl", "butyl", "tbutyl",
    "hydroxyl", "amino", "carboxyl", "carbonyl", "nitro", "cyano",
    "fluoro", "chloro", "bromo", "iodo",
    "benzene", "cyclohexane", "pyridine", "pyrrole", "furan", "thiophene",
    "naphthalene", "indole", "quinoline",
]
