"""
Model Loading
=============
Read-only view of a metabolic reconstruction: metabolites with formula,
charge and identifiers, reactions with signed stoichiometric coefficients.

Public API:
    MetabolicModel          - ordered metabolites and reactions
    load_model_json(path)   - COBRA-style JSON model
    from_matrix(S, ...)     - stoichiometric matrix + id/formula/charge vectors

Malformed input raises :class:`ConfigurationError`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from chemdb.common.constants import SourceNames
from chemdb.common.errors import ConfigurationError
from chemdb.models.reaction_models import Participant, Reaction
from chemdb.models.structure_models import Metabolite

__all__ = ["MetabolicModel", "load_model_json", "from_matrix", "ANNOTATION_SOURCES"]

logger = logging.getLogger(__name__)

# COBRA / identifiers.org annotation keys -> source names
ANNOTATION_SOURCES: Dict[str, str] = {
    "inchi": SourceNames.INCHI,
    "smiles": SourceNames.SMILES,
    "kegg.compound": SourceNames.KEGG,
    "kegg": SourceNames.KEGG,
    "hmdb": SourceNames.HMDB,
    "pubchem.compound": SourceNames.PUBCHEM,
    "pubchem": SourceNames.PUBCHEM,
    "chebi": SourceNames.CHEBI,
}


@dataclass
class MetabolicModel:
    """Metabolites and reactions of a reconstruction, in model order."""

    model_id: str = ""
    metabolites: Dict[str, Metabolite] = field(default_factory=dict)
    reactions: Dict[str, Reaction] = field(default_factory=dict)

    def select_metabolites(self, ids: Sequence[str] = ()) -> List[Metabolite]:
        if not ids:
            return list(self.metabolites.values())
        return [self.metabolites[i] for i in ids if i in self.metabolites]

    def select_reactions(self, ids: Sequence[str] = ()) -> List[Reaction]:
        if not ids:
            return list(self.reactions.values())
        return [self.reactions[i] for i in ids if i in self.reactions]

    def unknown_ids(self, metabolites: Sequence[str], reactions: Sequence[str]) -> List[str]:
        return [m for m in metabolites if m not in self.metabolites] + [
            r for r in reactions if r not in self.reactions
        ]


def _first(value: Any) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _metabolite_from_json(entry: Dict[str, Any]) -> Metabolite:
    identifiers: Dict[str, str] = {}
    annotation = entry.get("annotation") or {}
    for key, source in ANNOTATION_SOURCES.items():
        raw = _first(entry.get(key)) or _first(annotation.get(key))
        if raw and source not in identifiers:
            identifiers[source] = raw
    charge = entry.get("charge")
    return Metabolite(
        met_id=str(entry["id"]),
        formula=entry.get("formula") or "",
        charge=int(charge) if charge not in (None, "") else 0,
        name=entry.get("name") or "",
        identifiers=identifiers,
    )


def load_model_json(path: Path | str) -> MetabolicModel:
    """Load a COBRA JSON model (``metabolites`` / ``reactions`` lists)."""
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Cannot read model {path}: {exc}") from exc
    if not isinstance(payload, dict) or "metabolites" not in payload:
        raise ConfigurationError(f"{path} is not a COBRA JSON model")

    model = MetabolicModel(model_id=str(payload.get("id", path.stem)))
    try:
        for entry in payload["metabolites"]:
            met = _metabolite_from_json(entry)
            model.metabolites[met.met_id] = met
        for entry in payload.get("reactions", []):
            participants = [
                Participant(met_id, float(coef))
                for met_id, coef in entry.get("metabolites", {}).items()
                if float(coef) != 0
            ]
            missing = [p.met_id for p in participants if p.met_id not in model.metabolites]
            if missing:
                raise ConfigurationError(
                    f"Reaction {entry.get('id')} uses unknown metabolites {missing}"
                )
            rxn = Reaction(str(entry["id"]), participants, name=entry.get("name") or "")
            model.reactions[rxn.rxn_id] = rxn
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Malformed model {path}: {exc}") from exc

    logger.info(
        "Model %s: %d metabolites, %d reactions",
        model.model_id, len(model.metabolites), len(model.reactions),
    )
    return model


def from_matrix(
    S: Any,
    met_ids: Sequence[str],
    rxn_ids: Sequence[str],
    formulas: Optional[Sequence[str]] = None,
    charges: Optional[Sequence[int]] = None,
    model_id: str = "",
) -> MetabolicModel:
    """Build a model from a metabolites x reactions stoichiometric matrix."""
    try:
        matrix = pd.DataFrame(S, index=list(met_ids), columns=list(rxn_ids), dtype=float)
    except (ValueError, TypeError) as exc:
        raise ConfigurationError(f"Stoichiometric matrix does not match ids: {exc}") from exc
    n = len(met_ids)
    for name, vector in (("formulas", formulas), ("charges", charges)):
        if vector is not None and len(vector) != n:
            raise ConfigurationError(f"{name} has {len(vector)} entries for {n} metabolites")

    model = MetabolicModel(model_id=model_id)
    for idx, met_id in enumerate(met_ids):
        model.metabolites[met_id] = Metabolite(
            met_id=met_id,
            formula=formulas[idx] if formulas is not None else "",
            charge=int(charges[idx]) if charges is not None else 0,
        )
    for rxn_id in rxn_ids:
        column = matrix[rxn_id]
        participants = [
            Participant(met_id, float(coef)) for met_id, coef in column.items() if coef != 0
        ]
        model.reactions[rxn_id] = Reaction(rxn_id, participants)
    return model
