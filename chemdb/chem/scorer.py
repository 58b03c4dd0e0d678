"""
Consistency Scorer
==================
Ranks the candidate structures of one metabolite by how consistent each is
with the model's formula and charge and with the other candidates.

Scoring terms (each in [0, 1], weighted by :class:`ScoreWeights`):

    formula          1.0 on exact match, else shared/total atom overlap
    charge           1.0 on exact net charge match, else 0.0
    standard_inchi   1.0 for a standard InChI (``InChI=1S/``)
    stereochemistry  1.0 when a ``/t`` or ``/b`` layer is present
    agreement        fraction of the other candidates sharing the
                     connectivity layer

Ties on the top score are broken by the caller's source priority; every
tie is recorded on the :class:`ComparisonRecord` whether or not the
priority resolved it.

Public API:
    ConsistencyScorer(source_priority).select(...)  -> ScoringOutcome
    compare_inchis(met_id, formula, charge, inchis) -> ComparisonRecord
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from chemdb.chem.formula import formula_overlap, parse_formula
from chemdb.chem.inchi import InChILayers, parse_inchi
from chemdb.common.constants import ScoreWeights
from chemdb.common.status import TieBreak
from chemdb.models.structure_models import ComparisonRecord, ScoreBreakdown, StructureCandidate

__all__ = ["ConsistencyScorer", "ScoringOutcome", "compare_inchis"]

logger = logging.getLogger(__name__)


@dataclass
class ScoringOutcome:
    """Ranked candidates (best first), the winner and the comparison record."""

    chosen: Optional[StructureCandidate]
    ranked: List[StructureCandidate] = field(default_factory=list)
    record: Optional[ComparisonRecord] = None


class ConsistencyScorer:
    """Score and select candidate structures for a metabolite."""

    def __init__(
        self,
        source_priority: Sequence[str] = (),
        weights: type = ScoreWeights,
    ) -> None:
        self.source_priority = list(source_priority)
        self.weights = weights

    # -- scoring -----------------------------------------------------------

    def score(
        self,
        expected_formula: str,
        expected_charge: int,
        candidates: Sequence[StructureCandidate],
    ) -> List[StructureCandidate]:
        """Return *candidates* (same order) annotated with a :class:`ScoreBreakdown`."""
        expected_counts = _safe_formula(expected_formula)
        layers = [_safe_layers(c.inchi) for c in candidates]
        keys = Counter(l.connectivity_key for l in layers if l is not None)
        others = len(candidates) - 1

        scored: List[StructureCandidate] = []
        for candidate, layer in zip(candidates, layers):
            formula_term = self._formula_term(expected_counts, candidate)
            charge_term = 1.0 if candidate.charge == expected_charge else 0.0
            standard_term = 1.0 if layer is not None and layer.is_standard else 0.0
            stereo_term = 1.0 if layer is not None and layer.has_stereo else 0.0
            agreement_term = 0.0
            if layer is not None and others > 0:
                agreement_term = (keys[layer.connectivity_key] - 1) / others

            w = self.weights
            total = round(
                w.FORMULA * formula_term
                + w.CHARGE * charge_term
                + w.STANDARD_INCHI * standard_term
                + w.STEREOCHEMISTRY * stereo_term
                + w.AGREEMENT * agreement_term,
                w.SCORE_DIGITS,
            )
            breakdown = ScoreBreakdown(
                formula=round(formula_term, w.SCORE_DIGITS),
                charge=charge_term,
                standard_inchi=standard_term,
                stereochemistry=stereo_term,
                agreement=round(agreement_term, w.SCORE_DIGITS),
                total=total,
            )
            scored.append(candidate.with_score(breakdown))
        return scored

    @staticmethod
    def _formula_term(expected: Optional[Counter], candidate: StructureCandidate) -> float:
        if not expected:
            return 0.0
        counts = _safe_formula(candidate.formula)
        if not counts:
            return 0.0
        if counts == expected:
            return 1.0
        return formula_overlap(expected, counts)

    # -- selection ---------------------------------------------------------

    def select(
        self,
        met_id: str,
        expected_formula: str,
        expected_charge: int,
        candidates: Sequence[StructureCandidate],
    ) -> ScoringOutcome:
        """Score *candidates* and pick the winner.

        Zero candidates give an empty record and no winner; that is a gap
        for this metabolite, not an error.
        """
        record = ComparisonRecord(
            met_id=met_id,
            expected_formula=expected_formula,
            expected_charge=expected_charge,
        )
        if not candidates:
            return ScoringOutcome(chosen=None, ranked=[], record=record)

        scored = self.score(expected_formula, expected_charge, candidates)
        order = {id(c): idx for idx, c in enumerate(scored)}
        ranked = sorted(
            scored,
            key=lambda c: (-c.total_score, self._priority(c.source), order[id(c)]),
        )

        top = ranked[0].total_score
        tied = [c for c in ranked if c.total_score == top]
        if len(tied) == 1:
            tie_break = TieBreak.SCORE
        else:
            best = self._priority(tied[0].source)
            same_priority = [c for c in tied if self._priority(c.source) == best]
            if len(same_priority) == 1 and best < len(self.source_priority):
                tie_break = TieBreak.SOURCE_PRIORITY
            else:
                tie_break = TieBreak.ARBITRARY
            logger.info(
                "%s: %d candidates tie at %.3f (%s), picked %s by %s",
                met_id, len(tied), top, ", ".join(c.source for c in tied),
                tied[0].source, tie_break.value,
            )

        record.rows = [_row(rank, c) for rank, c in enumerate(ranked, start=1)]
        record.chosen_source = ranked[0].source
        record.tie_break = tie_break
        record.tied_sources = [c.source for c in tied] if len(tied) > 1 else []
        return ScoringOutcome(chosen=ranked[0], ranked=ranked, record=record)

    def _priority(self, source: str) -> int:
        try:
            return self.source_priority.index(source)
        except ValueError:
            return len(self.source_priority)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _safe_formula(formula: str) -> Optional[Counter]:
    try:
        return parse_formula(formula)
    except ValueError:
        logger.debug("Unparsable formula %r scored as no match", formula)
        return None


def _safe_layers(inchi: str) -> Optional[InChILayers]:
    try:
        return parse_inchi(inchi)
    except ValueError:
        return None


def _row(rank: int, candidate: StructureCandidate) -> Dict[str, object]:
    row: Dict[str, object] = {
        "rank": rank,
        "source": candidate.source,
        "inchi": candidate.inchi,
        "formula": candidate.formula,
        "charge": candidate.charge,
        "standardisation": candidate.standardisation.value,
    }
    if candidate.score is not None:
        row.update(candidate.score.to_dict())
    return row


def compare_inchis(
    met_id: str,
    expected_formula: str,
    expected_charge: int,
    inchis: Dict[str, str],
    source_priority: Optional[Sequence[str]] = None,
) -> ComparisonRecord:
    """Score bare InChI strings (``{label: inchi}``) against a metabolite.

    No structures are retrieved; unparsable InChIs are left out of the table.
    """
    candidates = []
    for label, inchi in inchis.items():
        layers = _safe_layers(inchi)
        if layers is None:
            logger.warning("%s: %s is not an InChI, skipped", met_id, label)
            continue
        candidates.append(StructureCandidate(
            met_id=met_id,
            source=label,
            molblock="",
            inchi=layers.inchi,
            formula=layers.formula,
            charge=layers.net_charge,
        ))
    priority = list(source_priority) if source_priority is not None else list(inchis)
    scorer = ConsistencyScorer(source_priority=priority)
    return scorer.select(met_id, expected_formula, expected_charge, candidates).record
