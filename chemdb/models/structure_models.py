"""
Structure data models — metabolites, candidate structures and comparisons.

Every class implements ``to_dict()`` / ``from_dict()`` with round-trip
consistency and missing-field tolerance.  :class:`StructureCandidate` and
:class:`ScoreBreakdown` are frozen: re-scoring produces a new candidate via
:meth:`StructureCandidate.with_score`.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from chemdb.chem.formula import parse_formula
from chemdb.common.status import StandardisationApproach, TieBreak


# ---------------------------------------------------------------------------
# ScoreBreakdown
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-term credit of one candidate (each term in [0, 1]) and the weighted total."""

    formula: float = 0.0
    charge: float = 0.0
    standard_inchi: float = 0.0
    stereochemistry: float = 0.0
    agreement: float = 0.0
    total: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "formula": self.formula,
            "charge": self.charge,
            "standard_inchi": self.standard_inchi,
            "stereochemistry": self.stereochemistry,
            "agreement": self.agreement,
            "total": self.total,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScoreBreakdown":
        return cls(
            formula=d.get("formula", 0.0),
            charge=d.get("charge", 0.0),
            standard_inchi=d.get("standard_inchi", 0.0),
            stereochemistry=d.get("stereochemistry", 0.0),
            agreement=d.get("agreement", 0.0),
            total=d.get("total", 0.0),
        )


# ---------------------------------------------------------------------------
# StructureCandidate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StructureCandidate:
    """One structure proposed by one source for one metabolite.

    ``molblock`` is the structure payload (MDL MOL); ``formula`` and
    ``charge`` are derived from ``inchi``, never from the model.
    """

    met_id: str
    source: str
    molblock: str
    inchi: str
    formula: str
    charge: int
    standardisation: StandardisationApproach = StandardisationApproach.BASIC
    smiles: str = ""
    inchikey: str = ""
    score: Optional[ScoreBreakdown] = None

    @property
    def formula_counts(self) -> Counter:
        return parse_formula(self.formula)

    @property
    def total_score(self) -> float:
        return self.score.total if self.score else 0.0

    def with_score(self, score: ScoreBreakdown) -> "StructureCandidate":
        return replace(self, score=score)

    def with_structure(
        self, molblock: str, standardisation: StandardisationApproach
    ) -> "StructureCandidate":
        return replace(self, molblock=molblock, standardisation=standardisation, score=None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "met_id": self.met_id,
            "source": self.source,
            "molblock": self.molblock,
            "inchi": self.inchi,
            "formula": self.formula,
            "charge": self.charge,
            "standardisation": self.standardisation.value,
            "smiles": self.smiles,
            "inchikey": self.inchikey,
            "score": self.score.to_dict() if self.score else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StructureCandidate":
        try:
            approach = StandardisationApproach(d.get("standardisation", "basic"))
        except ValueError:
            approach = StandardisationApproach.BASIC
        score_raw = d.get("score")
        return cls(
            met_id=d.get("met_id", ""),
            source=d.get("source", ""),
            molblock=d.get("molblock", ""),
            inchi=d.get("inchi", ""),
            formula=d.get("formula", ""),
            charge=int(d.get("charge", 0)),
            standardisation=approach,
            smiles=d.get("smiles", ""),
            inchikey=d.get("inchikey", ""),
            score=ScoreBreakdown.from_dict(score_raw) if score_raw else None,
        )


# ---------------------------------------------------------------------------
# Metabolite
# ---------------------------------------------------------------------------

@dataclass
class Metabolite:
    """Model metabolite with its per-source raw identifiers.

    ``identifiers`` maps a source name (``inchi``, ``smiles``, ``kegg``...)
    to the raw identifier for that source.
    """

    met_id: str
    formula: str = ""
    charge: int = 0
    name: str = ""
    identifiers: Dict[str, str] = field(default_factory=dict)

    @property
    def formula_counts(self) -> Counter:
        return parse_formula(self.formula)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "met_id": self.met_id,
            "formula": self.formula,
            "charge": self.charge,
            "name": self.name,
            "identifiers": dict(self.identifiers),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Metabolite":
        return cls(
            met_id=d.get("met_id", ""),
            formula=d.get("formula", "") or "",
            charge=int(d.get("charge", 0) or 0),
            name=d.get("name", "") or "",
            identifiers=dict(d.get("identifiers", {})),
        )


# ---------------------------------------------------------------------------
# ComparisonRecord
# ---------------------------------------------------------------------------

@dataclass
class ComparisonRecord:
    """Per-metabolite scoring table and selection rationale.

    ``rows`` holds every scored candidate ordered best first.  When the top
    score is shared, ``tied_sources`` names every source holding it and
    ``tie_break`` tells how the winner was picked.
    """

    met_id: str
    expected_formula: str = ""
    expected_charge: int = 0
    rows: List[Dict[str, Any]] = field(default_factory=list)
    chosen_source: Optional[str] = None
    tie_break: Optional[TieBreak] = None
    tied_sources: List[str] = field(default_factory=list)
    failed_sources: Dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def has_tie(self) -> bool:
        return len(self.tied_sources) > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "met_id": self.met_id,
            "expected_formula": self.expected_formula,
            "expected_charge": self.expected_charge,
            "rows": [dict(r) for r in self.rows],
            "chosen_source": self.chosen_source,
            "tie_break": self.tie_break.value if self.tie_break else None,
            "tied_sources": list(self.tied_sources),
            "failed_sources": dict(self.failed_sources),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ComparisonRecord":
        try:
            tie_break = TieBreak(d["tie_break"]) if d.get("tie_break") else None
        except ValueError:
            tie_break = None
        return cls(
            met_id=d.get("met_id", ""),
            expected_formula=d.get("expected_formula", ""),
            expected_charge=d.get("expected_charge", 0),
            rows=[dict(r) for r in d.get("rows", [])],
            chosen_source=d.get("chosen_source"),
            tie_break=tie_break,
            tied_sources=list(d.get("tied_sources", [])),
            failed_sources=dict(d.get("failed_sources", {})),
        )
