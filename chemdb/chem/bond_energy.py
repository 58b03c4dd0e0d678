"""
Bond Dissociation Energies
==========================
Average bond dissociation energies (kJ/mol) keyed by bond label.

A bond label is the two element symbols in alphabetical order joined by
the bond symbol: ``-`` single, ``=`` double, ``#`` triple, ``:`` aromatic
(e.g. ``C-H``, ``C=O``, ``H-O``, ``C:C``).

Usage::

    from chemdb.chem.bond_energy import bond_label, bond_energy

    bond_energy(bond_label("O", "C", "DOUBLE"))   # 745.0
"""

from typing import Dict, Optional

__all__ = ["BOND_SYMBOLS", "BOND_ENERGIES", "bond_label", "bond_energy"]

BOND_SYMBOLS: Dict[str, str] = {
    "SINGLE": "-",
    "DOUBLE": "=",
    "TRIPLE": "#",
    "AROMATIC": ":",
}

BOND_ENERGIES: Dict[str, float] = {
    # hydrogen
    "H-H": 436.0,
    "C-H": 413.0,
    "H-N": 391.0,
    "H-O": 463.0,
    "H-S": 339.0,
    "H-P": 322.0,
    "Cl-H": 431.0,
    "F-H": 567.0,
    "Br-H": 366.0,
    "H-I": 298.0,
    # carbon
    "C-C": 348.0,
    "C=C": 614.0,
    "C#C": 839.0,
    "C:C": 518.0,
    "C-N": 293.0,
    "C=N": 615.0,
    "C#N": 891.0,
    "C-O": 358.0,
    "C=O": 745.0,
    "C#O": 1072.0,
    "C-S": 259.0,
    "C=S": 573.0,
    "C-P": 264.0,
    "C-F": 485.0,
    "C-Cl": 328.0,
    "C-Br": 276.0,
    "C-I": 240.0,
    # nitrogen, oxygen, sulfur, phosphorus
    "N-N": 163.0,
    "N=N": 418.0,
    "N#N": 941.0,
    "N-O": 201.0,
    "N=O": 607.0,
    "O-O": 146.0,
    "O=O": 495.0,
    "O-P": 335.0,
    "O=P": 544.0,
    "O-S": 265.0,
    "O=S": 523.0,
    "S-S": 266.0,
    "P-P": 201.0,
    "N-P": 209.0,
    "N-S": 243.0,
}


def bond_label(symbol_a: str, symbol_b: str, bond_type: str) -> str:
    """Label for a bond between two elements; *bond_type* is an RDKit name."""
    first, second = sorted((symbol_a, symbol_b))
    return f"{first}{BOND_SYMBOLS.get(bond_type, '~')}{second}"


def bond_energy(label: str) -> Optional[float]:
    """Dissociation energy of *label*, or ``None`` when unknown.

    Aromatic bonds missing from the table are taken as the mean of the
    single and double bond between the same elements.
    """
    if label in BOND_ENERGIES:
        return BOND_ENERGIES[label]
    if ":" in label:
        single = BOND_ENERGIES.get(label.replace(":", "-"))
        double = BOND_ENERGIES.get(label.replace(":", "="))
        if single is not None and double is not None:
            return (single + double) / 2.0
    return None
