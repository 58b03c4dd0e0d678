"""
Reaction data models — stoichiometry, reaction tables, mappings, bond changes.

Coefficients follow the stoichiometric-matrix convention: negative for
substrates, positive for products.  :class:`AtomMapping` and
:class:`BondChangeRecord` are frozen; a failed mapping attempt is still an
``AtomMapping`` (``mapped=False``) rather than a missing record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from chemdb.common.status import MappingReason, Side


# ---------------------------------------------------------------------------
# Reaction
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Participant:
    """One metabolite of a reaction with its signed coefficient."""

    met_id: str
    coefficient: float

    def __post_init__(self) -> None:
        if self.coefficient == 0:
            raise ValueError(f"Zero coefficient for participant {self.met_id}")

    @property
    def side(self) -> Side:
        return Side.SUBSTRATE if self.coefficient < 0 else Side.PRODUCT

    def to_dict(self) -> Dict[str, Any]:
        return {"met_id": self.met_id, "coefficient": self.coefficient}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Participant":
        return cls(met_id=d["met_id"], coefficient=float(d["coefficient"]))


@dataclass
class Reaction:
    """Model reaction: identifier and ordered participants."""

    rxn_id: str
    participants: List[Participant] = field(default_factory=list)
    name: str = ""

    @property
    def substrates(self) -> List[Participant]:
        return [p for p in self.participants if p.side == Side.SUBSTRATE]

    @property
    def products(self) -> List[Participant]:
        return [p for p in self.participants if p.side == Side.PRODUCT]

    @property
    def met_ids(self) -> List[str]:
        return [p.met_id for p in self.participants]

    @property
    def is_exchange(self) -> bool:
        """All participants on one side (exchange, demand, sink)."""
        return not self.substrates or not self.products

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rxn_id": self.rxn_id,
            "name": self.name,
            "participants": [p.to_dict() for p in self.participants],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Reaction":
        return cls(
            rxn_id=d.get("rxn_id", ""),
            name=d.get("name", ""),
            participants=[Participant.from_dict(p) for p in d.get("participants", [])],
        )


# ---------------------------------------------------------------------------
# ReactionTable
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TableEntry:
    """One species row of a reaction table."""

    met_id: str
    coefficient: float
    molblock: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"met_id": self.met_id, "coefficient": self.coefficient, "molblock": self.molblock}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TableEntry":
        return cls(
            met_id=d.get("met_id", ""),
            coefficient=float(d.get("coefficient", 0.0)),
            molblock=d.get("molblock", ""),
        )


@dataclass
class ReactionTable:
    """Substrate and product structures of one reaction with coefficients.

    ``complete`` is ``False`` for a stoichiometry-only table, emitted for a
    reaction with unresolved participants when unmapped files are requested;
    such a table is never submitted to atom mapping.  ``imbalance`` maps
    each element to ``products - substrates`` atom count.
    """

    rxn_id: str
    substrates: List[TableEntry] = field(default_factory=list)
    products: List[TableEntry] = field(default_factory=list)
    balanced: bool = False
    imbalance: Dict[str, float] = field(default_factory=dict)
    complete: bool = True
    missing: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rxn_id": self.rxn_id,
            "substrates": [e.to_dict() for e in self.substrates],
            "products": [e.to_dict() for e in self.products],
            "balanced": self.balanced,
            "imbalance": dict(self.imbalance),
            "complete": self.complete,
            "missing": list(self.missing),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ReactionTable":
        return cls(
            rxn_id=d.get("rxn_id", ""),
            substrates=[TableEntry.from_dict(e) for e in d.get("substrates", [])],
            products=[TableEntry.from_dict(e) for e in d.get("products", [])],
            balanced=d.get("balanced", False),
            imbalance=dict(d.get("imbalance", {})),
            complete=d.get("complete", True),
            missing=list(d.get("missing", [])),
        )


# ---------------------------------------------------------------------------
# AtomMapping
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AtomMapping:
    """Outcome of one atom-mapping attempt.

    ``rxn_block`` is the mapped MDL RXN when ``mapped`` is true, otherwise
    the unmapped table that was (or would have been) submitted.
    """

    rxn_id: str
    rxn_block: str = ""
    balanced: bool = False
    mapped: bool = False
    rinchi: str = ""
    rsmi: str = ""
    reason: Optional[MappingReason] = None
    message: str = ""
    inconsistent: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rxn_id": self.rxn_id,
            "rxn_block": self.rxn_block,
            "balanced": self.balanced,
            "mapped": self.mapped,
            "rinchi": self.rinchi,
            "rsmi": self.rsmi,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "inconsistent": self.inconsistent,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AtomMapping":
        try:
            reason = MappingReason(d["reason"]) if d.get("reason") else None
        except ValueError:
            reason = None
        return cls(
            rxn_id=d.get("rxn_id", ""),
            rxn_block=d.get("rxn_block", ""),
            balanced=d.get("balanced", False),
            mapped=d.get("mapped", False),
            rinchi=d.get("rinchi", ""),
            rsmi=d.get("rsmi", ""),
            reason=reason,
            message=d.get("message", ""),
            inconsistent=d.get("inconsistent", False),
        )


# ---------------------------------------------------------------------------
# BondChangeRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BondChangeRecord:
    """Bonds broken/formed by a mapped reaction and the enthalpy estimate.

    ``enthalpy_change`` is in kJ/mol: sum of broken bond energies minus sum
    of formed bond energies (positive = endothermic).
    """

    rxn_id: str
    bonds_broken: int = 0
    bonds_formed: int = 0
    enthalpy_change: float = 0.0
    broken: List[str] = field(default_factory=list)
    formed: List[str] = field(default_factory=list)
    unknown_bond_types: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rxn_id": self.rxn_id,
            "bonds_broken": self.bonds_broken,
            "bonds_formed": self.bonds_formed,
            "enthalpy_change": self.enthalpy_change,
            "broken": list(self.broken),
            "formed": list(self.formed),
            "unknown_bond_types": list(self.unknown_bond_types),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BondChangeRecord":
        return cls(
            rxn_id=d.get("rxn_id", ""),
            bonds_broken=d.get("bonds_broken", 0),
            bonds_formed=d.get("bonds_formed", 0),
            enthalpy_change=d.get("enthalpy_change", 0.0),
            broken=list(d.get("broken", [])),
            formed=list(d.get("formed", [])),
            unknown_bond_types=list(d.get("unknown_bond_types", [])),
        )
