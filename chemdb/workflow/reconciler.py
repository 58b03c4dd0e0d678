"""
Metabolite Reconciler — one authoritative structure per metabolite.

For every metabolite each configured source is asked for a candidate;
failing sources (expected or not) are skipped and recorded, surviving candidates are brought
to the configured hydrogen representation and handed to the
:class:`ConsistencyScorer`.  Metabolites are independent units and run on
the shared worker pool.

Usage::

    reconciler = MetaboliteReconciler(sources, scorer, converter)
    result = reconciler.reconcile(model.metabolites.values(), max_workers=4)
    result.chosen["glc_D"].inchi
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from chemdb.chem.converter import FormatConverter
from chemdb.chem.inchi import parse_inchi
from chemdb.chem.scorer import ConsistencyScorer
from chemdb.common.constants import BuildDefaults
from chemdb.common.errors import (
    ChemDBError,
    ConversionError,
    NoCandidatesForMetabolite,
    NoStructureFound,
    SourceUnavailable,
    UnresolvedTie,
)
from chemdb.common.status import EntityKind, StandardisationApproach, TieBreak
from chemdb.models.database_models import IssueRecord
from chemdb.models.structure_models import ComparisonRecord, Metabolite, StructureCandidate
from chemdb.sources.base import StructureSource
from chemdb.workflow.parallel import CancellationToken, run_units

__all__ = ["MetaboliteReconciler", "MetaboliteResult", "ReconciliationResult"]

logger = logging.getLogger(__name__)

_SOURCE_FAILURES = (SourceUnavailable, NoStructureFound, ConversionError)


@dataclass
class MetaboliteResult:
    """Reconciliation outcome of one metabolite."""

    met_id: str
    chosen: Optional[StructureCandidate]
    record: ComparisonRecord
    candidates: List[StructureCandidate] = field(default_factory=list)
    issues: List[IssueRecord] = field(default_factory=list)


@dataclass
class ReconciliationResult:
    """Aggregate over all metabolites, merged after each unit completed."""

    chosen: Dict[str, StructureCandidate] = field(default_factory=dict)
    records: Dict[str, ComparisonRecord] = field(default_factory=dict)
    candidates: Dict[str, List[StructureCandidate]] = field(default_factory=dict)
    issues: List[IssueRecord] = field(default_factory=list)
    no_candidates: List[str] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "chosen": {k: v.to_dict() for k, v in self.chosen.items()},
            "records": {k: v.to_dict() for k, v in self.records.items()},
            "issues": [i.to_dict() for i in self.issues],
            "no_candidates": list(self.no_candidates),
            "cancelled": list(self.cancelled),
        }


class MetaboliteReconciler:
    """Collect candidates from every source and select the winner."""

    def __init__(
        self,
        sources: Dict[str, StructureSource],
        scorer: ConsistencyScorer,
        converter: FormatConverter,
        approach: StandardisationApproach = StandardisationApproach.EXPLICIT_H,
        source_timeout: float = BuildDefaults.SOURCE_TIMEOUT,
        adjust_to_ph: bool = False,
        model_ph: float = BuildDefaults.MODEL_PH,
    ) -> None:
        self.sources = sources
        self.scorer = scorer
        self.converter = converter
        self.approach = approach
        self.source_timeout = source_timeout
        self.adjust_to_ph = adjust_to_ph
        self.model_ph = model_ph
        self._ph_warned = False

    # -- one metabolite ----------------------------------------------------

    def reconcile_metabolite(self, metabolite: Metabolite) -> MetaboliteResult:
        met_id = metabolite.met_id
        issues: List[IssueRecord] = []
        failed: Dict[str, str] = {}
        candidates: List[StructureCandidate] = []

        for name, source in self.sources.items():
            raw_id = source.identifier_for(metabolite)
            if raw_id is None:
                continue
            try:
                candidate = source.fetch(met_id, raw_id, self.source_timeout)
                candidate = self._prepare(candidate)
            except _SOURCE_FAILURES as exc:
                logger.info("%s: source %s skipped (%s)", met_id, name, exc.message)
                failed[name] = exc.code
                issues.append(IssueRecord.from_error(EntityKind.SOURCE, met_id, exc, detail=name))
                continue
            except Exception as exc:
                logger.exception("%s: source %s failed unexpectedly", met_id, name)
                error = ChemDBError(f"{name}: {exc}", code="UNEXPECTED_ERROR")
                failed[name] = error.code
                issues.append(IssueRecord.from_error(EntityKind.SOURCE, met_id, error, detail=name))
                continue
            logger.debug("%s: %s -> %s", met_id, name, candidate.inchi)
            candidates.append(candidate)

        outcome = self.scorer.select(met_id, metabolite.formula, metabolite.charge, candidates)
        record = outcome.record
        record.failed_sources = failed

        if outcome.chosen is None:
            exc = NoCandidatesForMetabolite(f"No structure candidate for {met_id}")
            issues.append(IssueRecord.from_error(EntityKind.METABOLITE, met_id, exc))
            logger.warning("%s: no structure candidate", met_id)
        elif record.has_tie:
            resolution = (
                "picked by source priority"
                if record.tie_break == TieBreak.SOURCE_PRIORITY
                else "picked arbitrarily"
            )
            exc = UnresolvedTie(
                f"Top score {outcome.chosen.total_score} shared by "
                f"{', '.join(record.tied_sources)}; {record.chosen_source} {resolution}"
            )
            issues.append(IssueRecord.from_error(
                EntityKind.METABOLITE, met_id, exc, detail=",".join(record.tied_sources),
            ))

        return MetaboliteResult(
            met_id=met_id,
            chosen=outcome.chosen,
            record=record,
            candidates=outcome.ranked,
            issues=issues,
        )

    def _prepare(self, candidate: StructureCandidate) -> StructureCandidate:
        """pH adjustment (optional) then hydrogen standardisation."""
        if self.adjust_to_ph:
            adjusted = self.converter.adjust_to_ph(candidate.molblock, self.model_ph)
            if adjusted is None:
                if not self._ph_warned:
                    logger.warning(
                        "Converter %s cannot adjust to pH %.1f; structures kept as retrieved",
                        type(self.converter).__name__, self.model_ph,
                    )
                    self._ph_warned = True
            else:
                candidate = self._rederive(candidate, adjusted)
        molblock = self.converter.standardise(candidate.molblock, self.approach)
        return candidate.with_structure(molblock, self.approach)

    def _rederive(self, candidate: StructureCandidate, molblock: str) -> StructureCandidate:
        inchi = self.converter.convert(molblock, "mol", "inchi")
        try:
            layers = parse_inchi(inchi)
            formula, charge = layers.formula, layers.net_charge
        except ValueError as exc:
            raise ConversionError(str(exc)) from exc
        return StructureCandidate(
            met_id=candidate.met_id,
            source=candidate.source,
            molblock=molblock,
            inchi=layers.inchi,
            formula=formula,
            charge=charge,
            standardisation=candidate.standardisation,
            smiles=candidate.smiles,
            inchikey=candidate.inchikey,
        )

    # -- all metabolites ---------------------------------------------------

    def reconcile(
        self,
        metabolites: Iterable[Metabolite],
        max_workers: int = 1,
        token: Optional[CancellationToken] = None,
    ) -> ReconciliationResult:
        results, cancelled = run_units(
            metabolites,
            self._guarded_unit,
            key=lambda m: m.met_id,
            max_workers=max_workers,
            token=token,
        )
        aggregate = ReconciliationResult(cancelled=cancelled)
        for met_id, result in results.items():
            aggregate.records[met_id] = result.record
            aggregate.candidates[met_id] = result.candidates
            aggregate.issues.extend(result.issues)
            if result.chosen is None:
                aggregate.no_candidates.append(met_id)
            else:
                aggregate.chosen[met_id] = result.chosen
        logger.info(
            "Reconciled %d metabolite(s): %d chosen, %d without candidate",
            len(results), len(aggregate.chosen), len(aggregate.no_candidates),
        )
        return aggregate

    def _guarded_unit(self, metabolite: Metabolite) -> MetaboliteResult:
        try:
            return self.reconcile_metabolite(metabolite)
        except ChemDBError as exc:
            return self._failed_unit(metabolite, exc)
        except Exception as exc:
            logger.exception("Unexpected failure reconciling %s", metabolite.met_id)
            return self._failed_unit(
                metabolite, ChemDBError(str(exc), code="UNEXPECTED_ERROR")
            )

    @staticmethod
    def _failed_unit(metabolite: Metabolite, exc: ChemDBError) -> MetaboliteResult:
        record = ComparisonRecord(
            met_id=metabolite.met_id,
            expected_formula=metabolite.formula,
            expected_charge=metabolite.charge,
        )
        return MetaboliteResult(
            met_id=metabolite.met_id,
            chosen=None,
            record=record,
            issues=[IssueRecord.from_error(EntityKind.METABOLITE, metabolite.met_id, exc)],
        )
