"""Copy database results back onto a COBRA-JSON-shaped model dict."""

from __future__ import annotations

import logging
from typing import Any, Dict

from chemdb.io.model_loader import MetabolicModel
from chemdb.models.database_models import ChemicalDatabase

__all__ = ["annotate_model"]

logger = logging.getLogger(__name__)


def annotate_model(model: MetabolicModel, database: ChemicalDatabase) -> Dict[str, Any]:
    """Return the model as a dict with chemoinformatic fields filled in.

    Metabolites gain ``inchi``, ``smiles``, ``inchikey`` and
    ``structure_source``; reactions gain ``rinchi``, ``rsmi``, ``balanced``,
    ``mapped`` and, when bond changes exist, ``bonds_broken``,
    ``bonds_formed`` and ``enthalpy_change`` (kJ/mol).
    """
    metabolites = []
    for met_id, met in model.metabolites.items():
        entry: Dict[str, Any] = {
            "id": met_id,
            "name": met.name,
            "formula": met.formula,
            "charge": met.charge,
            "annotation": dict(met.identifiers),
        }
        chosen = database.structures.get(met_id)
        if chosen is not None:
            entry.update(
                inchi=chosen.inchi,
                smiles=chosen.smiles,
                inchikey=chosen.inchikey,
                structure_source=chosen.source,
            )
        metabolites.append(entry)

    reactions = []
    for rxn_id, rxn in model.reactions.items():
        entry = {
            "id": rxn_id,
            "name": rxn.name,
            "metabolites": {p.met_id: p.coefficient for p in rxn.participants},
        }
        mapping = database.mappings.get(rxn_id)
        if mapping is not None:
            entry.update(
                rinchi=mapping.rinchi,
                rsmi=mapping.rsmi,
                balanced=mapping.balanced,
                mapped=mapping.mapped,
            )
        bonds = database.bond_changes.get(rxn_id)
        if bonds is not None:
            entry.update(
                bonds_broken=bonds.bonds_broken,
                bonds_formed=bonds.bonds_formed,
                enthalpy_change=bonds.enthalpy_change,
            )
        reactions.append(entry)

    logger.debug("Annotated %d metabolites and %d reactions", len(metabolites), len(reactions))
    return {"id": model.model_id, "metabolites": metabolites, "reactions": reactions}
