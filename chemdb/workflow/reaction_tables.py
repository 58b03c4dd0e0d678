"""
Reaction Table Builder — reconciled structures + stoichiometry -> reaction tables.

A reaction is only tabulated when every participant has a chosen
structure.  Otherwise it is marked ``notMapped`` and, when unmapped files
are requested, a stoichiometry-only table is still emitted.  Exchange,
demand and sink reactions (all participants on one side) are never
tabulated.

Elemental balance is checked on the exact coefficients: for every element
the signed sum ``sum(coefficient * atoms)`` must vanish.  Negating every
coefficient flips the sign of each sum, so swapping substrate and product
labels never changes the verdict.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from chemdb.common.constants import BALANCE_TOLERANCE
from chemdb.common.errors import IncompleteReactionParticipants
from chemdb.common.status import EntityKind, MappingReason, Side
from chemdb.models.database_models import IssueRecord
from chemdb.models.reaction_models import Reaction, ReactionTable, TableEntry
from chemdb.models.structure_models import StructureCandidate
from chemdb.workflow.parallel import CancellationToken, run_units

__all__ = ["ReactionTableBuilder", "TableResult", "TableBuildResult", "elemental_imbalance"]

logger = logging.getLogger(__name__)


def elemental_imbalance(
    reaction: Reaction,
    structures: Mapping[str, StructureCandidate],
) -> Dict[str, float]:
    """Per-element ``products - substrates`` atom count; empty when balanced."""
    totals: Dict[str, float] = defaultdict(float)
    for participant in reaction.participants:
        for element, n in structures[participant.met_id].formula_counts.items():
            totals[element] += participant.coefficient * n
    return {
        el: round(v, 6) for el, v in sorted(totals.items()) if abs(v) > BALANCE_TOLERANCE
    }


@dataclass
class TableResult:
    """Table of one reaction, or the reason it was not tabulated."""

    rxn_id: str
    table: Optional[ReactionTable] = None
    skip_reason: Optional[MappingReason] = None
    issue: Optional[IssueRecord] = None

    @property
    def mappable(self) -> bool:
        return self.table is not None and self.table.complete and self.skip_reason is None


@dataclass
class TableBuildResult:
    tables: Dict[str, ReactionTable] = field(default_factory=dict)
    skipped: Dict[str, MappingReason] = field(default_factory=dict)
    missing: Dict[str, List[str]] = field(default_factory=dict)
    issues: List[IssueRecord] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)

    def mappable_tables(self) -> List[ReactionTable]:
        return [
            t for rxn_id, t in self.tables.items()
            if t.complete and rxn_id not in self.skipped
        ]

    def to_dict(self) -> Dict[str, object]:
        return {
            "tables": {k: v.to_dict() for k, v in self.tables.items()},
            "skipped": {k: v.value for k, v in self.skipped.items()},
            "missing": {k: list(v) for k, v in self.missing.items()},
            "issues": [i.to_dict() for i in self.issues],
            "cancelled": list(self.cancelled),
        }


class ReactionTableBuilder:
    """Build balanced/unbalanced reaction tables from chosen structures."""

    def __init__(self, emit_incomplete: bool = False) -> None:
        self.emit_incomplete = emit_incomplete

    def build(
        self,
        reaction: Reaction,
        structures: Mapping[str, StructureCandidate],
    ) -> TableResult:
        rxn_id = reaction.rxn_id
        if reaction.is_exchange:
            logger.debug("%s: exchange reaction, not tabulated", rxn_id)
            return TableResult(rxn_id, skip_reason=MappingReason.EXCHANGE_REACTION)

        missing = [m for m in reaction.met_ids if m not in structures]
        if missing:
            exc = IncompleteReactionParticipants(
                f"{rxn_id}: no chosen structure for {', '.join(missing)}"
            )
            issue = IssueRecord.from_error(
                EntityKind.REACTION, rxn_id, exc, detail=",".join(missing)
            )
            logger.info("%s: notMapped (missing %s)", rxn_id, ", ".join(missing))
            table = None
            if self.emit_incomplete:
                table = ReactionTable(
                    rxn_id=rxn_id,
                    substrates=self._entries(reaction, Side.SUBSTRATE, structures),
                    products=self._entries(reaction, Side.PRODUCT, structures),
                    balanced=False,
                    complete=False,
                    missing=missing,
                )
            return TableResult(
                rxn_id, table=table, skip_reason=MappingReason.MISSING_STRUCTURE, issue=issue
            )

        imbalance = elemental_imbalance(reaction, structures)
        if imbalance:
            logger.info("%s: unbalanced %s", rxn_id, imbalance)
        table = ReactionTable(
            rxn_id=rxn_id,
            substrates=self._entries(reaction, Side.SUBSTRATE, structures),
            products=self._entries(reaction, Side.PRODUCT, structures),
            balanced=not imbalance,
            imbalance=imbalance,
        )
        return TableResult(rxn_id, table=table)

    @staticmethod
    def _entries(
        reaction: Reaction,
        side: Side,
        structures: Mapping[str, StructureCandidate],
    ) -> List[TableEntry]:
        entries = []
        for p in reaction.participants:
            if p.side != side:
                continue
            chosen = structures.get(p.met_id)
            entries.append(TableEntry(
                met_id=p.met_id,
                coefficient=abs(p.coefficient),
                molblock=chosen.molblock if chosen else "",
            ))
        return entries

    def build_all(
        self,
        reactions: Iterable[Reaction],
        structures: Mapping[str, StructureCandidate],
        max_workers: int = 1,
        token: Optional[CancellationToken] = None,
    ) -> TableBuildResult:
        results, cancelled = run_units(
            reactions,
            lambda r: self.build(r, structures),
            key=lambda r: r.rxn_id,
            max_workers=max_workers,
            token=token,
        )
        aggregate = TableBuildResult(cancelled=cancelled)
        for rxn_id, result in results.items():
            if result.table is not None:
                aggregate.tables[rxn_id] = result.table
            if result.skip_reason is not None:
                aggregate.skipped[rxn_id] = result.skip_reason
            if result.table is not None and result.table.missing:
                aggregate.missing[rxn_id] = list(result.table.missing)
            elif result.issue is not None and result.issue.detail:
                aggregate.missing[rxn_id] = result.issue.detail.split(",")
            if result.issue is not None:
                aggregate.issues.append(result.issue)
        logger.info(
            "Tabulated %d reaction(s), %d skipped",
            len(aggregate.mappable_tables()), len(aggregate.skipped),
        )
        return aggregate
