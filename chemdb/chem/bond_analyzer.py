"""
Bond Change Analysis
====================
Bonds broken and formed by a mapped reaction, and the enthalpy estimate.

A bond is identified by the atom-map numbers of its two atoms.  A pair
bonded among the substrates but not among the products is broken, the
reverse is formed, and a pair whose bond order changes counts as one
broken plus one formed.  Bonds touching an unmapped atom are ignored.

    enthalpy_change = sum(BDE(broken)) - sum(BDE(formed))      [kJ/mol]

so bond breaking contributes positively.  Bonds without a tabulated energy
are listed under ``unknown_bond_types`` and contribute nothing.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from rdkit import Chem

from chemdb.chem.bond_energy import bond_energy, bond_label
from chemdb.chem.reaction_codec import rxn_block_to_smiles, split_reaction_smiles
from chemdb.common.errors import ConversionError, InvalidMapping
from chemdb.models.reaction_models import AtomMapping, BondChangeRecord

__all__ = ["BondChangeAnalyzer", "mapped_bonds"]

logger = logging.getLogger(__name__)

_Pair = Tuple[int, int]


def _parser_params() -> Chem.SmilesParserParams:
    params = Chem.SmilesParserParams()
    params.removeHs = False
    return params


def mapped_bonds(side_smiles: str) -> Dict[_Pair, str]:
    """Return ``{(map_a, map_b): bond label}`` for one reaction side.

    Raises:
        InvalidMapping: a component cannot be parsed.
    """
    params = _parser_params()
    bonds: Dict[_Pair, str] = {}
    for frag in side_smiles.split("."):
        frag = frag.strip()
        if not frag:
            continue
        mol = Chem.MolFromSmiles(frag, params)
        if mol is None:
            raise InvalidMapping(f"Unparsable mapped component: {frag!r}")
        for bond in mol.GetBonds():
            begin, end = bond.GetBeginAtom(), bond.GetEndAtom()
            a1, a2 = begin.GetAtomMapNum(), end.GetAtomMapNum()
            if a1 <= 0 or a2 <= 0:
                continue
            pair = (a1, a2) if a1 < a2 else (a2, a1)
            bonds[pair] = bond_label(begin.GetSymbol(), end.GetSymbol(), str(bond.GetBondType()))
    return bonds


class BondChangeAnalyzer:
    """Deterministic bond-change statistics of a successful atom mapping."""

    def analyze(self, mapping: AtomMapping) -> BondChangeRecord:
        if not mapping.mapped:
            raise InvalidMapping(f"{mapping.rxn_id}: reaction is not mapped")
        smiles = mapping.rsmi
        if not smiles and mapping.rxn_block:
            try:
                smiles = rxn_block_to_smiles(mapping.rxn_block)
            except ConversionError as exc:
                raise InvalidMapping(f"{mapping.rxn_id}: {exc.message}") from exc
        try:
            substrates, products = split_reaction_smiles(smiles or "")
        except ConversionError as exc:
            raise InvalidMapping(f"{mapping.rxn_id}: {exc.message}") from exc

        before = mapped_bonds(substrates)
        after = mapped_bonds(products)
        if not before and not after:
            raise InvalidMapping(f"{mapping.rxn_id}: no atom map numbers")

        broken: List[str] = []
        formed: List[str] = []
        for pair in sorted(set(before) | set(after)):
            old, new = before.get(pair), after.get(pair)
            if old == new:
                continue
            if old is not None:
                broken.append(f"{pair[0]}-{pair[1]}:{old}")
            if new is not None:
                formed.append(f"{pair[0]}-{pair[1]}:{new}")

        unknown = set()
        delta = 0.0
        for entries, sign in ((broken, 1.0), (formed, -1.0)):
            for entry in entries:
                label = entry.split(":", 1)[1]
                energy = bond_energy(label)
                if energy is None:
                    unknown.add(label)
                else:
                    delta += sign * energy
        if unknown:
            logger.debug("%s: no bond energy for %s", mapping.rxn_id, sorted(unknown))

        return BondChangeRecord(
            rxn_id=mapping.rxn_id,
            bonds_broken=len(broken),
            bonds_formed=len(formed),
            enthalpy_change=round(delta, 2),
            broken=broken,
            formed=formed,
            unknown_bond_types=sorted(unknown),
        )
