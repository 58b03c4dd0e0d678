"""
Tests for ConsistencyScorer
"""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chemdb.chem.scorer import ConsistencyScorer, compare_inchis
from chemdb.common.status import TieBreak
from chemdb.models.structure_models import StructureCandidate

from fakes import GLUCONATE_LIKE_INCHI, GLUCOSE_INCHI

NON_STANDARD_GLUCOSE = "InChI=1/C6H12O6/c7-1-2-3(8)4(9)5(10)6(11)12-2/h2-11H,1H2"


def _candidate(source, inchi, formula="C6H12O6", charge=0):
    return StructureCandidate(
        met_id="glc_D", source=source, molblock="", inchi=inchi, formula=formula, charge=charge
    )


class TestScoring(unittest.TestCase):

    def setUp(self):
        self.scorer = ConsistencyScorer(source_priority=["inchi", "smiles", "kegg", "hmdb"])

    def test_full_credit(self):
        scored = self.scorer.score("C6H12O6", 0, [_candidate("inchi", GLUCOSE_INCHI)])
        score = scored[0].score
        self.assertEqual(score.formula, 1.0)
        self.assertEqual(score.charge, 1.0)
        self.assertEqual(score.standard_inchi, 1.0)
        self.assertEqual(score.stereochemistry, 1.0)
        # no sibling candidates to agree with
        self.assertEqual(score.agreement, 0.0)
        self.assertAlmostEqual(score.total, 0.9)

    def test_partial_formula_credit(self):
        scored = self.scorer.score(
            "C6H12O6", 0, [_candidate("hmdb", GLUCONATE_LIKE_INCHI, "C6H11O6", -1)]
        )
        self.assertAlmostEqual(scored[0].score.formula, round(23 / 24, 6))
        self.assertEqual(scored[0].score.charge, 0.0)

    def test_agreement_counts_matching_connectivity(self):
        candidates = [
            _candidate("inchi", GLUCOSE_INCHI),
            _candidate("kegg", NON_STANDARD_GLUCOSE),
            _candidate("smiles", "InChI=1S/C6H12O6/c7-1-3(9)5(11)6(12)4(10)2-8/h1,3-6,8-12H,2H2"),
        ]
        scored = self.scorer.score("C6H12O6", 0, candidates)
        self.assertEqual(scored[0].score.agreement, 0.5)
        self.assertEqual(scored[1].score.agreement, 0.5)
        self.assertEqual(scored[2].score.agreement, 0.0)

    def test_scores_keep_input_order_and_are_new_objects(self):
        candidates = [_candidate("kegg", NON_STANDARD_GLUCOSE), _candidate("inchi", GLUCOSE_INCHI)]
        scored = self.scorer.score("C6H12O6", 0, candidates)
        self.assertEqual([c.source for c in scored], ["kegg", "inchi"])
        self.assertIsNone(candidates[0].score)

    def test_unparsable_expected_formula_scores_zero(self):
        scored = self.scorer.score("not a formula", 0, [_candidate("inchi", GLUCOSE_INCHI)])
        self.assertEqual(scored[0].score.formula, 0.0)


class TestSelection(unittest.TestCase):

    def setUp(self):
        self.scorer = ConsistencyScorer(source_priority=["inchi", "smiles", "kegg", "hmdb"])

    def test_charge_match_beats_mismatch(self):
        outcome = self.scorer.select("glc_D", "C6H12O6", 0, [
            _candidate("hmdb", GLUCONATE_LIKE_INCHI, "C6H11O6", -1),
            _candidate("inchi", GLUCOSE_INCHI),
        ])
        self.assertEqual(outcome.chosen.source, "inchi")
        self.assertEqual(outcome.record.chosen_source, "inchi")
        self.assertEqual(outcome.record.tie_break, TieBreak.SCORE)
        self.assertFalse(outcome.record.has_tie)

    def test_charge_mismatch_never_wins_with_equal_formula(self):
        # the mismatched candidate holds the standard and stereo layers, the other neither
        outcome = self.scorer.select("glc_D", "C6H12O6", 0, [
            _candidate("inchi", GLUCOSE_INCHI, "C6H12O6", -1),
            _candidate("kegg", "InChI=1/C6H12O6/c7-1-3(9)5(11)6(12)4(10)2-8", "C6H12O6", 0),
        ])
        self.assertEqual(outcome.chosen.source, "kegg")

    def test_winner_has_highest_score(self):
        candidates = [
            _candidate("hmdb", GLUCONATE_LIKE_INCHI, "C6H11O6", -1),
            _candidate("kegg", NON_STANDARD_GLUCOSE),
            _candidate("inchi", GLUCOSE_INCHI),
        ]
        outcome = self.scorer.select("glc_D", "C6H12O6", 0, candidates)
        for candidate in outcome.ranked:
            self.assertGreaterEqual(outcome.chosen.total_score, candidate.total_score)
        self.assertEqual([r["rank"] for r in outcome.record.rows], [1, 2, 3])

    def test_deterministic(self):
        candidates = [
            _candidate("hmdb", GLUCONATE_LIKE_INCHI, "C6H11O6", -1),
            _candidate("kegg", NON_STANDARD_GLUCOSE),
            _candidate("inchi", GLUCOSE_INCHI),
        ]
        first = self.scorer.select("glc_D", "C6H12O6", 0, candidates)
        second = self.scorer.select("glc_D", "C6H12O6", 0, list(candidates))
        self.assertEqual(first.record.to_dict(), second.record.to_dict())
        self.assertEqual(first.chosen, second.chosen)

    def test_no_candidates(self):
        outcome = self.scorer.select("X", "C6H12O6", 0, [])
        self.assertIsNone(outcome.chosen)
        self.assertTrue(outcome.record.is_empty)
        self.assertIsNone(outcome.record.chosen_source)

    def test_tie_resolved_by_priority_is_recorded(self):
        outcome = self.scorer.select("X", "C6H12O6", 0, [
            _candidate("hmdb", GLUCOSE_INCHI),
            _candidate("kegg", GLUCOSE_INCHI),
        ])
        self.assertEqual(outcome.chosen.source, "kegg")
        self.assertEqual(outcome.record.tie_break, TieBreak.SOURCE_PRIORITY)
        self.assertEqual(sorted(outcome.record.tied_sources), ["hmdb", "kegg"])
        self.assertTrue(outcome.record.has_tie)

    def test_tie_without_priority_is_arbitrary(self):
        scorer = ConsistencyScorer()
        outcome = scorer.select("X", "C6H12O6", 0, [
            _candidate("dbA", GLUCOSE_INCHI),
            _candidate("dbB", GLUCOSE_INCHI),
        ])
        self.assertEqual(outcome.chosen.source, "dbA")
        self.assertEqual(outcome.record.tie_break, TieBreak.ARBITRARY)
        self.assertEqual(outcome.record.tied_sources, ["dbA", "dbB"])


class TestCompareInchis(unittest.TestCase):

    def test_compare_table(self):
        record = compare_inchis("glc_D", "C6H12O6", 0, {
            "model": GLUCOSE_INCHI,
            "hmdb": GLUCONATE_LIKE_INCHI,
            "broken": "not an inchi",
        })
        self.assertEqual(record.chosen_source, "model")
        self.assertEqual([r["source"] for r in record.rows], ["model", "hmdb"])

    def test_compare_proton(self):
        record = compare_inchis("h", "H", 1, {"model": "InChI=1S/p+1"})
        self.assertEqual(record.chosen_source, "model")
        self.assertEqual(record.rows[0]["formula"], "H")
        self.assertEqual(record.rows[0]["charge"], 1)


if __name__ == "__main__":
    unittest.main()
