"""
Reaction Codec
==============
Serialises reaction tables for the atom-mapping service and derives the
reaction-level identifiers from a mapped table.

Public API:
    render_table(table, explicit_hydrogens)    -> RenderedTable
    rxn_block_to_smiles(rxn_block)              -> str
    smiles_to_rxn_block(reaction_smiles)        -> str
    reaction_inchi(reaction_smiles)             -> str   (RInChI-style string)
    atom_map_numbers(side_smiles)               -> List[int]
    check_atom_map_consistency(reaction_smiles) -> List[str]  (problems)
    strip_atom_maps(reaction_smiles)            -> str
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Tuple

from rdkit import Chem
from rdkit.Chem import rdChemReactions

from chemdb.common.errors import ConversionError
from chemdb.models.reaction_models import ReactionTable, TableEntry

__all__ = [
    "RenderedTable",
    "render_table",
    "rxn_block_to_smiles",
    "smiles_to_rxn_block",
    "reaction_inchi",
    "atom_map_numbers",
    "check_atom_map_consistency",
    "strip_atom_maps",
    "split_reaction_smiles",
]

logger = logging.getLogger(__name__)

_RINCHI_PREFIX = "RInChI=1.00.1S/"
_ATOM_MAP = re.compile(r"\[([^\]]*?):(\d+)\]")


@dataclass(frozen=True)
class RenderedTable:
    """A reaction table as submitted to the atom-mapping service."""

    rxn_id: str
    rxn_block: str
    reaction_smiles: str
    explicit_hydrogens: bool


def _copies(coefficient: float) -> int:
    return max(1, int(round(abs(coefficient))))


def _entry_mol(entry: TableEntry, explicit_hydrogens: bool) -> Chem.Mol:
    mol = Chem.MolFromMolBlock(entry.molblock, removeHs=False)
    if mol is None:
        raise ConversionError(f"Unreadable structure for {entry.met_id}")
    if explicit_hydrogens:
        mol = Chem.AddHs(mol, addCoords=mol.GetNumConformers() > 0)
    else:
        mol = Chem.RemoveHs(mol)
    mol.SetProp("_Name", entry.met_id)
    return mol


def render_table(table: ReactionTable, explicit_hydrogens: bool = True) -> RenderedTable:
    """Build the MDL RXN block and reaction SMILES of *table*.

    Each species is repeated ``round(|coefficient|)`` times (at least once).
    """
    if not table.complete:
        raise ConversionError(f"{table.rxn_id}: stoichiometry-only table cannot be rendered")
    if any(e.coefficient != _copies(e.coefficient) for e in table.substrates + table.products):
        logger.debug("%s: non-integer coefficients rounded for the RXN table", table.rxn_id)
    rxn = rdChemReactions.ChemicalReaction()
    for entry in table.substrates:
        mol = _entry_mol(entry, explicit_hydrogens)
        for _ in range(_copies(entry.coefficient)):
            rxn.AddReactantTemplate(mol)
    for entry in table.products:
        mol = _entry_mol(entry, explicit_hydrogens)
        for _ in range(_copies(entry.coefficient)):
            rxn.AddProductTemplate(mol)
    try:
        rxn_block = rdChemReactions.ReactionToRxnBlock(rxn)
        smiles = rdChemReactions.ReactionToSmiles(rxn)
    except Exception as exc:
        raise ConversionError(f"{table.rxn_id}: cannot write reaction: {exc}") from exc
    return RenderedTable(
        rxn_id=table.rxn_id,
        rxn_block=rxn_block,
        reaction_smiles=smiles,
        explicit_hydrogens=explicit_hydrogens,
    )


def rxn_block_to_smiles(rxn_block: str) -> str:
    try:
        rxn = rdChemReactions.ReactionFromRxnBlock(rxn_block, sanitize=False, removeHs=False)
    except Exception as exc:
        raise ConversionError(f"Unreadable RXN block: {exc}") from exc
    if rxn is None:
        raise ConversionError("Unreadable RXN block")
    # unsanitised templates still need valences before SMILES can be written
    for mol in list(rxn.GetReactants()) + list(rxn.GetProducts()):
        mol.UpdatePropertyCache(strict=False)
    return rdChemReactions.ReactionToSmiles(rxn)


def smiles_to_rxn_block(reaction_smiles: str) -> str:
    try:
        rxn = rdChemReactions.ReactionFromSmarts(reaction_smiles, useSmiles=True)
    except Exception as exc:
        raise ConversionError(f"Unreadable reaction SMILES: {exc}") from exc
    if rxn is None:
        raise ConversionError("Unreadable reaction SMILES")
    return rdChemReactions.ReactionToRxnBlock(rxn)


def split_reaction_smiles(reaction_smiles: str) -> Tuple[str, str]:
    """Return ``(substrates, products)``; agents between ``>`` are dropped."""
    parts = reaction_smiles.strip().split(">")
    if len(parts) != 3:
        raise ConversionError(f"Not a reaction SMILES: {reaction_smiles!r}")
    return parts[0], parts[2]


def _side_inchis(side: str) -> List[str]:
    bodies = []
    for frag in strip_atom_maps(side).split("."):
        frag = frag.strip()
        if not frag:
            continue
        mol = Chem.MolFromSmiles(frag)
        if mol is None:
            raise ConversionError(f"Unreadable reaction component: {frag!r}")
        inchi = Chem.MolToInchi(mol)
        if not inchi:
            raise ConversionError(f"No InChI for reaction component: {frag!r}")
        bodies.append(inchi.split("/", 1)[1])
    return sorted(bodies)


def reaction_inchi(reaction_smiles: str) -> str:
    """Reaction identifier assembled from the standard InChIs of each side.

    Layout follows RInChI: ``RInChI=1.00.1S/<substrates><><products>/d+``
    with the component InChIs of a side sorted and joined by ``!``.
    """
    substrates, products = split_reaction_smiles(reaction_smiles)
    left = "!".join(_side_inchis(substrates))
    right = "!".join(_side_inchis(products))
    return f"{_RINCHI_PREFIX}{left}<>{right}/d+"


def atom_map_numbers(side_smiles: str) -> List[int]:
    return [int(m.group(2)) for m in _ATOM_MAP.finditer(side_smiles)]


def check_atom_map_consistency(reaction_smiles: str) -> List[str]:
    """Problems with the atom maps of a mapped reaction (empty when consistent)."""
    substrates, products = split_reaction_smiles(reaction_smiles)
    left, right = atom_map_numbers(substrates), atom_map_numbers(products)
    problems = []
    if not left or not right:
        problems.append("no atom map numbers")
        return problems
    if len(set(left)) != len(left):
        problems.append("duplicate map numbers among substrates")
    if len(set(right)) != len(right):
        problems.append("duplicate map numbers among products")
    only_left = sorted(set(left) - set(right))
    only_right = sorted(set(right) - set(left))
    if only_left:
        problems.append(f"substrate atoms without product partner: {only_left}")
    if only_right:
        problems.append(f"product atoms without substrate partner: {only_right}")
    return problems


def strip_atom_maps(reaction_smiles: str) -> str:
    """Remove atom map numbers, e.g. ``[CH3:1]`` -> ``[CH3]``."""
    return _ATOM_MAP.sub(r"[\1]", reaction_smiles)
