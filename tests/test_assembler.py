"""
End-to-end tests for DatabaseAssembler
"""

import json
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chemdb.common.config import BuildConfig
from chemdb.common.errors import ConfigurationError, MappingServiceError
from chemdb.common.status import MappingReason
from chemdb.io.model_loader import MetabolicModel
from chemdb.models.reaction_models import Participant, Reaction
from chemdb.models.structure_models import Metabolite
from chemdb.workflow.assembler import COUNT_KEYS, DatabaseAssembler
from chemdb.workflow.parallel import CancellationToken

from fakes import FakeMapper

HYD_MAPPED = "[CH2:1]=[CH2:2].[H:3][H:4]>>[H:3][CH2:1][CH2:2][H:4]"

METABOLITES = [
    ("2pg", "C3H7O7P", "OCC(OP(=O)(O)O)C(=O)O"),
    ("pep", "C3H5O6P", "C=C(OP(=O)(O)O)C(=O)O"),
    ("h2o", "H2O", "O"),
    ("ethe", "C2H4", "C=C"),
    ("h2", "H2", "[H][H]"),
    ("etha", "C2H6", "CC"),
    ("fdp", "C6H14O12P2", None),
    ("f6p", "C6H13O9P", "OCC1(O)OC(COP(=O)(O)O)C(O)C1O"),
    ("pi", "H3O4P", "OP(=O)(O)O"),
]


def _model():
    model = MetabolicModel(model_id="toy")
    for met_id, formula, smiles in METABOLITES:
        model.metabolites[met_id] = Metabolite(
            met_id, formula, 0, identifiers={"smiles": smiles} if smiles else {}
        )
    for rxn in (
        Reaction("ENO", [Participant("2pg", -1), Participant("pep", 1), Participant("h2o", 1)]),
        Reaction("HYD", [Participant("ethe", -1), Participant("h2", -1), Participant("etha", 1)]),
        Reaction("FBP", [Participant("fdp", -1), Participant("h2o", -1),
                         Participant("f6p", 1), Participant("pi", 1)]),
        Reaction("EX_h2o", [Participant("h2o", -1)]),
    ):
        model.reactions[rxn.rxn_id] = rxn
    return model


def _mapper():
    return FakeMapper({"HYD": HYD_MAPPED, "ENO": MappingServiceError("mapper crashed")})


class TestDatabaseAssembler(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)

    def _config(self, name="db", **kwargs):
        kwargs.setdefault("sources", ["smiles"])
        kwargs.setdefault("max_workers", 2)
        return BuildConfig(output_dir=str(self.tmp / name), **kwargs)

    def test_full_build(self):
        mapper = _mapper()
        assembler = DatabaseAssembler(self._config(debug=True), _model(), mapper=mapper)
        database = assembler.build()
        report = database.report

        self.assertEqual(set(report.counts), set(COUNT_KEYS))
        self.assertEqual(report.counts["metabolites_reconciled"], 8)
        self.assertEqual(report.counts["metabolites_no_candidate"], 1)
        self.assertEqual(report.counts["reactions_balanced"], 2)
        self.assertEqual(report.counts["reactions_unbalanced"], 0)
        self.assertEqual(report.counts["reactions_mapped"], 1)
        self.assertEqual(report.counts["reactions_not_mapped"], 3)
        self.assertEqual(report.metabolite_status["fdp"], "noCandidate")
        self.assertEqual(report.metabolite_status["h2o"], "smiles")

        # a crashing mapper call only affects its own reaction
        self.assertEqual(sorted(mapper.calls), ["ENO", "HYD"])
        self.assertEqual(database.mappings["ENO"].reason, MappingReason.SERVICE_ERROR)
        self.assertNotIn("ENO", database.bond_changes)
        self.assertEqual(database.bond_changes["HYD"].enthalpy_change, -124.0)
        self.assertEqual(database.mappings["FBP"].reason, MappingReason.MISSING_STRUCTURE)
        self.assertEqual(database.mappings["EX_h2o"].reason, MappingReason.EXCHANGE_REACTION)
        self.assertEqual(report.reaction_status["FBP"]["reason"], "notMapped")

        root = assembler.output_path
        self.assertTrue((root / "database.json").is_file())
        self.assertTrue((root / "rxns" / "atomMapped" / "HYD.rxn").is_file())
        self.assertTrue((root / "rxns" / "rxnFiles" / "ENO.rxn").is_file())
        self.assertTrue((root / "debug" / "reconciliation.json").is_file())
        self.assertTrue((root / "downloads" / "smiles" / "h2o.mol").is_file())
        self.assertEqual(database.candidates, {})
        stored = json.loads((root / "database.json").read_text(encoding="utf-8"))
        self.assertEqual(stored["report"]["counts"], report.counts)

    def test_existing_database_is_not_overwritten(self):
        DatabaseAssembler(self._config(), _model(), mapper=_mapper()).build()
        with self.assertRaises(ConfigurationError):
            DatabaseAssembler(self._config(), _model(), mapper=_mapper()).build()

    def test_only_unmapped(self):
        mapper = _mapper()
        database = DatabaseAssembler(
            self._config(only_unmapped=True, keep_mol_comparison=True), _model(), mapper=mapper
        ).build()
        self.assertEqual(mapper.calls, [])
        self.assertEqual(database.mappings["ENO"].reason, MappingReason.ONLY_UNMAPPED)
        self.assertEqual(database.bond_changes, {})
        self.assertFalse(database.tables["FBP"].complete)
        self.assertTrue((self.tmp / "db" / "rxns" / "rxnFiles" / "FBP.json").is_file())
        self.assertIn("h2o", database.candidates)

    def test_subset_of_metabolites(self):
        database = DatabaseAssembler(
            self._config(metabolites=["ethe", "h2", "etha"]), _model(), mapper=_mapper()
        ).build()
        self.assertEqual(sorted(database.structures), ["etha", "ethe", "h2"])
        self.assertEqual(list(database.mappings), ["HYD"])

    def test_unknown_ids_fail_before_any_work(self):
        config = self._config(reactions=["PGK"])
        with self.assertRaises(ConfigurationError):
            DatabaseAssembler(config, _model(), mapper=_mapper()).build()
        self.assertFalse((self.tmp / "db").exists())

    def test_cancelled_build(self):
        token = CancellationToken()
        token.cancel()
        mapper = _mapper()
        database = DatabaseAssembler(self._config(), _model(), mapper=mapper, token=token).build()
        self.assertEqual(database.structures, {})
        self.assertEqual(database.mappings, {})
        self.assertEqual(mapper.calls, [])
        self.assertEqual(set(database.report.cancelled),
                         {m for m, _, _ in METABOLITES} | {"ENO", "HYD", "FBP", "EX_h2o"})
        self.assertEqual(database.report.metabolite_status["h2o"], "cancelled")

    def test_merge_with_prior_build(self):
        DatabaseAssembler(self._config("v1"), _model(), mapper=_mapper()).build()
        database = DatabaseAssembler(
            self._config("v2", dirs_to_compare=[str(self.tmp / "v1")], dir_names=["v1"]),
            _model(),
            mapper=_mapper(),
        ).build()
        self.assertEqual(database.report.conflicts, [])
        # the prior build offers the same structures; configured sources win ties
        self.assertEqual(database.structures["h2o"].source, "smiles")
        self.assertEqual(database.report.counts["top_score_ties"], 8)
        self.assertEqual(database.report.counts["arbitrary_ties"], 0)
        self.assertNotIn("fdp", database.structures)


if __name__ == "__main__":
    unittest.main()
