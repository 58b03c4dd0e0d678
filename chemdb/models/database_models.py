"""
Database data models — the persisted aggregate and its report.

:class:`ChemicalDatabase` is the only externally persisted artifact of a
build.  It is assembled once by the database assembler; merging with a
prior database produces a new instance instead of mutating either input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from chemdb.common.errors import ChemDBError
from chemdb.common.status import EntityKind
from chemdb.models.reaction_models import AtomMapping, BondChangeRecord, ReactionTable
from chemdb.models.structure_models import ComparisonRecord, StructureCandidate


# ---------------------------------------------------------------------------
# IssueRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IssueRecord:
    """A recoverable failure attached to the entity it affected."""

    entity_kind: EntityKind
    entity_id: str
    code: str
    message: str
    severity: str = "medium"
    detail: Optional[str] = None

    @classmethod
    def from_error(
        cls,
        kind: EntityKind,
        entity_id: str,
        exc: ChemDBError,
        detail: Optional[str] = None,
    ) -> "IssueRecord":
        return cls(
            entity_kind=kind,
            entity_id=entity_id,
            code=exc.code,
            message=exc.message,
            severity=exc.severity.value,
            detail=detail,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_kind": self.entity_kind.value,
            "entity_id": self.entity_id,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "detail": self.detail,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "IssueRecord":
        try:
            kind = EntityKind(d.get("entity_kind", "database"))
        except ValueError:
            kind = EntityKind.DATABASE
        return cls(
            entity_kind=kind,
            entity_id=d.get("entity_id", ""),
            code=d.get("code", ""),
            message=d.get("message", ""),
            severity=d.get("severity", "medium"),
            detail=d.get("detail"),
        )


# ---------------------------------------------------------------------------
# ConflictRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConflictRecord:
    """Disagreement between the new build and a prior database on one id."""

    entity_kind: EntityKind
    entity_id: str
    prior_name: str
    field_name: str
    old_value: Any = None
    new_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_kind": self.entity_kind.value,
            "entity_id": self.entity_id,
            "prior_name": self.prior_name,
            "field": self.field_name,
            "old": self.old_value,
            "new": self.new_value,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ConflictRecord":
        return cls(
            entity_kind=EntityKind(d.get("entity_kind", "database")),
            entity_id=d.get("entity_id", ""),
            prior_name=d.get("prior_name", ""),
            field_name=d.get("field", ""),
            old_value=d.get("old"),
            new_value=d.get("new"),
        )


# ---------------------------------------------------------------------------
# DatabaseReport
# ---------------------------------------------------------------------------

@dataclass
class DatabaseReport:
    """Counts, per-entity status and every recoverable failure of a build."""

    counts: Dict[str, int] = field(default_factory=dict)
    metabolite_status: Dict[str, str] = field(default_factory=dict)
    reaction_status: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    issues: List[IssueRecord] = field(default_factory=list)
    conflicts: List[ConflictRecord] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)

    def issues_with_code(self, code: str) -> List[IssueRecord]:
        return [i for i in self.issues if i.code == code]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "counts": dict(self.counts),
            "metabolite_status": dict(self.metabolite_status),
            "reaction_status": {k: dict(v) for k, v in self.reaction_status.items()},
            "issues": [i.to_dict() for i in self.issues],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "cancelled": list(self.cancelled),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DatabaseReport":
        return cls(
            counts=dict(d.get("counts", {})),
            metabolite_status=dict(d.get("metabolite_status", {})),
            reaction_status={k: dict(v) for k, v in d.get("reaction_status", {}).items()},
            issues=[IssueRecord.from_dict(i) for i in d.get("issues", [])],
            conflicts=[ConflictRecord.from_dict(c) for c in d.get("conflicts", [])],
            cancelled=list(d.get("cancelled", [])),
        )


# ---------------------------------------------------------------------------
# ChemicalDatabase
# ---------------------------------------------------------------------------

@dataclass
class ChemicalDatabase:
    """Chosen structures, reaction tables, atom mappings and bond changes."""

    structures: Dict[str, StructureCandidate] = field(default_factory=dict)
    comparisons: Dict[str, ComparisonRecord] = field(default_factory=dict)
    candidates: Dict[str, List[StructureCandidate]] = field(default_factory=dict)
    tables: Dict[str, ReactionTable] = field(default_factory=dict)
    mappings: Dict[str, AtomMapping] = field(default_factory=dict)
    bond_changes: Dict[str, BondChangeRecord] = field(default_factory=dict)
    report: DatabaseReport = field(default_factory=DatabaseReport)
    config: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "structures": {k: v.to_dict() for k, v in self.structures.items()},
            "comparisons": {k: v.to_dict() for k, v in self.comparisons.items()},
            "candidates": {k: [c.to_dict() for c in v] for k, v in self.candidates.items()},
            "tables": {k: v.to_dict() for k, v in self.tables.items()},
            "mappings": {k: v.to_dict() for k, v in self.mappings.items()},
            "bond_changes": {k: v.to_dict() for k, v in self.bond_changes.items()},
            "report": self.report.to_dict(),
            "config": dict(self.config),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ChemicalDatabase":
        return cls(
            structures={
                k: StructureCandidate.from_dict(v) for k, v in d.get("structures", {}).items()
            },
            comparisons={
                k: ComparisonRecord.from_dict(v) for k, v in d.get("comparisons", {}).items()
            },
            candidates={
                k: [StructureCandidate.from_dict(c) for c in v]
                for k, v in d.get("candidates", {}).items()
            },
            tables={k: ReactionTable.from_dict(v) for k, v in d.get("tables", {}).items()},
            mappings={k: AtomMapping.from_dict(v) for k, v in d.get("mappings", {}).items()},
            bond_changes={
                k: BondChangeRecord.from_dict(v) for k, v in d.get("bond_changes", {}).items()
            },
            report=DatabaseReport.from_dict(d.get("report", {})),
            config=dict(d.get("config", {})),
        )
