"""
Tests for the atom mappers, AtomMappingOrchestrator and BondChangeAnalyzer
"""

import subprocess
import sys
import threading
import unittest
from pathlib import Path
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chemdb.chem.atom_mapper import MappingResponse, RDTAtomMapper, RXNMapperAtomMapper
from chemdb.chem.bond_analyzer import BondChangeAnalyzer, mapped_bonds
from chemdb.chem.converter import RDKitFormatConverter
from chemdb.chem.reaction_codec import RenderedTable, smiles_to_rxn_block
from chemdb.common.errors import InvalidMapping, MappingServiceError, NoMappingFound
from chemdb.common.status import MappingReason
from chemdb.models.reaction_models import AtomMapping, Participant, Reaction
from chemdb.sources.model_sources import SMILESSource
from chemdb.workflow.mapping_orchestrator import AtomMappingOrchestrator
from chemdb.workflow.reaction_tables import ReactionTableBuilder

from fakes import FakeMapper

HYD_MAPPED = "[CH2:1]=[CH2:2].[H:3][H:4]>>[H:3][CH2:1][CH2:2][H:4]"

SMILES = {
    "ethe": "C=C",
    "h2": "[H][H]",
    "etha": "CC",
    "2pg": "OCC(OP(=O)(O)O)C(=O)O",
    "pep": "C=C(OP(=O)(O)O)C(=O)O",
    "h2o": "O",
}

HYD = Reaction("HYD", [Participant("ethe", -1), Participant("h2", -1), Participant("etha", 1)])
ENO = Reaction("ENO", [Participant("2pg", -1), Participant("pep", 1), Participant("h2o", 1)])
FBP = Reaction("FBP", [Participant("fdp", -1), Participant("h2o", -1), Participant("pep", 1)])
EX_H2O = Reaction("EX_h2o", [Participant("h2o", -1)])


def _structures():
    source = SMILESSource(RDKitFormatConverter())
    return {met_id: source.fetch(met_id, s, timeout=1) for met_id, s in SMILES.items()}


def _tables(*reactions):
    return ReactionTableBuilder().build_all(reactions, _structures())


def _rendered(rxn_id="HYD"):
    return RenderedTable(
        rxn_id=rxn_id,
        rxn_block=smiles_to_rxn_block("C=C.[H][H]>>CC"),
        reaction_smiles="C=C.[H][H]>>CC",
        explicit_hydrogens=True,
    )


class TestOrchestrator(unittest.TestCase):

    def test_successful_mapping(self):
        tables = _tables(HYD)
        orchestrator = AtomMappingOrchestrator(FakeMapper({"HYD": HYD_MAPPED}))
        outcome = orchestrator.map_table(tables.tables["HYD"])
        mapping = outcome.mapping
        self.assertTrue(mapping.mapped)
        self.assertTrue(mapping.balanced)
        self.assertIsNone(mapping.reason)
        self.assertFalse(mapping.inconsistent)
        self.assertEqual(mapping.rsmi, HYD_MAPPED)
        self.assertTrue(mapping.rinchi.startswith("RInChI=1.00.1S/"))
        self.assertIn("$RXN", mapping.rxn_block)
        self.assertIsNone(outcome.issue)
        self.assertTrue(outcome.rendered.explicit_hydrogens)

    def test_inconsistent_mapping_is_flagged(self):
        bad = "[CH2:1]=[CH2:2].[H:3][H:4]>>[H:3][CH2:1][CH2:2][H:5]"
        orchestrator = AtomMappingOrchestrator(FakeMapper({"HYD": bad}))
        mapping = orchestrator.map_table(_tables(HYD).tables["HYD"]).mapping
        self.assertTrue(mapping.mapped)
        self.assertTrue(mapping.inconsistent)
        self.assertIn("without", mapping.message)

    def test_service_error_is_recorded(self):
        orchestrator = AtomMappingOrchestrator(
            FakeMapper({"ENO": MappingServiceError("mapper crashed")})
        )
        outcome = orchestrator.map_table(_tables(ENO).tables["ENO"])
        self.assertFalse(outcome.mapping.mapped)
        self.assertEqual(outcome.mapping.reason, MappingReason.SERVICE_ERROR)
        self.assertEqual(outcome.issue.code, "MAPPING_SERVICE_ERROR")
        # the unmapped table is still available
        self.assertIn("$RXN", outcome.mapping.rxn_block)

    def test_no_mapping_found(self):
        orchestrator = AtomMappingOrchestrator(FakeMapper({"ENO": NoMappingFound("nothing")}))
        outcome = orchestrator.map_table(_tables(ENO).tables["ENO"])
        self.assertEqual(outcome.mapping.reason, MappingReason.NO_MAPPING_FOUND)
        self.assertEqual(outcome.issue.code, "NO_MAPPING_FOUND")

    def test_unexpected_exception_is_service_error(self):
        class Crashing(FakeMapper):
            def map(self, rendered, timeout):
                raise RuntimeError("segfault-ish")

        orchestrator = AtomMappingOrchestrator(Crashing({}))
        with self.assertLogs("chemdb.workflow.mapping_orchestrator", level="ERROR"):
            outcome = orchestrator.map_table(_tables(ENO).tables["ENO"])
        self.assertEqual(outcome.mapping.reason, MappingReason.SERVICE_ERROR)

    def test_unreadable_response_only_affects_its_reaction(self):
        class EmptyForEno(FakeMapper):
            def map(self, rendered, timeout):
                if rendered.rxn_id == "ENO":
                    return MappingResponse(rxn_block="", reaction_smiles="")
                return super().map(rendered, timeout)

        orchestrator = AtomMappingOrchestrator(EmptyForEno({"HYD": HYD_MAPPED}))
        result = orchestrator.map_all(_tables(HYD, ENO), max_workers=2)
        self.assertTrue(result.mappings["HYD"].mapped)
        eno = result.mappings["ENO"]
        self.assertFalse(eno.mapped)
        self.assertEqual(eno.reason, MappingReason.NO_MAPPING_FOUND)
        self.assertEqual([i.code for i in result.issues], ["NO_MAPPING_FOUND"])

    def test_only_unmapped_never_calls_service(self):
        mapper = FakeMapper({"ENO": "unused"})
        result = AtomMappingOrchestrator(mapper, only_unmapped=True).map_all(_tables(ENO))
        self.assertEqual(mapper.calls, [])
        self.assertEqual(result.mappings["ENO"].reason, MappingReason.ONLY_UNMAPPED)
        self.assertIn("ENO", result.unmapped_blocks)
        self.assertEqual(result.issues, [])

    def test_no_mapper_behaves_like_only_unmapped(self):
        result = AtomMappingOrchestrator(None).map_all(_tables(ENO))
        self.assertEqual(result.mappings["ENO"].reason, MappingReason.ONLY_UNMAPPED)

    def test_map_all_records_every_reaction(self):
        mapper = FakeMapper({"HYD": HYD_MAPPED, "ENO": MappingServiceError("down")})
        result = AtomMappingOrchestrator(mapper).map_all(
            _tables(HYD, ENO, FBP, EX_H2O), max_workers=3
        )
        self.assertEqual(sorted(mapper.calls), ["ENO", "HYD"])
        self.assertEqual(set(result.mappings), {"HYD", "ENO", "FBP", "EX_h2o"})
        self.assertEqual(result.mapped_ids, ["HYD"])
        self.assertEqual(result.mappings["FBP"].reason, MappingReason.MISSING_STRUCTURE)
        self.assertEqual(result.mappings["EX_h2o"].reason, MappingReason.EXCHANGE_REACTION)
        self.assertEqual([i.entity_id for i in result.issues], ["ENO"])

    def test_single_threaded_mapper_is_serialised(self):
        reactions = [
            Reaction(f"R{i}", [Participant("ethe", -1), Participant("h2", -1),
                               Participant("etha", 1)])
            for i in range(6)
        ]
        mapper = FakeMapper({r.rxn_id: HYD_MAPPED for r in reactions}, concurrent=False)
        result = AtomMappingOrchestrator(mapper).map_all(_tables(*reactions), max_workers=4)
        self.assertEqual(len(result.mapped_ids), 6)
        self.assertEqual(mapper.max_active, 1)


class TestRXNMapperAtomMapper(unittest.TestCase):

    def _mapper(self, answer=None, error=None):
        backend = mock.Mock()
        if error is not None:
            backend.get_attention_guided_atom_maps.side_effect = error
        else:
            backend.get_attention_guided_atom_maps.return_value = answer
        mapper = RXNMapperAtomMapper()
        mapper._mapper = backend
        return mapper

    def test_mapping(self):
        mapper = self._mapper([{"mapped_rxn": HYD_MAPPED, "confidence": 0.93}])
        response = mapper.map(_rendered(), timeout=5)
        self.assertEqual(response.reaction_smiles, HYD_MAPPED)
        self.assertEqual(response.confidence, 0.93)

    def test_empty_answer(self):
        with self.assertRaises(NoMappingFound):
            self._mapper([{}]).map(_rendered(), timeout=5)

    def test_backend_failure(self):
        with self.assertRaises(MappingServiceError):
            self._mapper(error=ValueError("tokenizer")).map(_rendered(), timeout=5)

    def test_timeout(self):
        release = threading.Event()
        self.addCleanup(release.set)
        backend = mock.Mock()
        backend.get_attention_guided_atom_maps.side_effect = lambda rxns: release.wait(5)
        mapper = RXNMapperAtomMapper()
        mapper._mapper = backend
        with self.assertRaises(MappingServiceError):
            mapper.map(_rendered(), timeout=0.05)

    def test_missing_dependency(self):
        with mock.patch.dict(sys.modules, {"rxnmapper": None}):
            with self.assertRaises(MappingServiceError):
                RXNMapperAtomMapper().map(_rendered(), timeout=5)


class TestRDTAtomMapper(unittest.TestCase):

    def test_reads_ecblast_output(self):
        mapped_block = smiles_to_rxn_block(HYD_MAPPED)

        def fake_run(cmd, cwd, **kwargs):
            self.assertEqual(cmd[:3], ["java", "-jar", "/opt/rdt.jar"])
            (Path(cwd) / "ECBLAST_HYD_AAM.rxn").write_text(mapped_block, encoding="utf-8")
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

        with mock.patch("chemdb.chem.atom_mapper.subprocess.run", side_effect=fake_run):
            response = RDTAtomMapper("/opt/rdt.jar").map(_rendered(), timeout=5)
        self.assertEqual(response.rxn_block, mapped_block)
        self.assertIn(":1]", response.reaction_smiles)

    def test_timeout(self):
        expired = subprocess.TimeoutExpired(["java"], 5)
        with mock.patch("chemdb.chem.atom_mapper.subprocess.run", side_effect=expired):
            with self.assertRaises(MappingServiceError):
                RDTAtomMapper("/opt/rdt.jar").map(_rendered(), timeout=5)

    def test_crash_without_output(self):
        crashed = subprocess.CompletedProcess([], 1, stdout="", stderr="Exception in thread")
        with mock.patch("chemdb.chem.atom_mapper.subprocess.run", return_value=crashed):
            with self.assertRaises(MappingServiceError):
                RDTAtomMapper("/opt/rdt.jar").map(_rendered(), timeout=5)

    def test_clean_exit_without_output(self):
        done = subprocess.CompletedProcess([], 0, stdout="", stderr="")
        with mock.patch("chemdb.chem.atom_mapper.subprocess.run", return_value=done):
            with self.assertRaises(NoMappingFound):
                RDTAtomMapper("/opt/rdt.jar").map(_rendered(), timeout=5)


class TestBondChangeAnalyzer(unittest.TestCase):

    def _mapping(self, rsmi, mapped=True):
        return AtomMapping(rxn_id="HYD", mapped=mapped, rsmi=rsmi)

    def test_hydrogenation(self):
        record = BondChangeAnalyzer().analyze(self._mapping(HYD_MAPPED))
        self.assertEqual(record.bonds_broken, 2)
        self.assertEqual(record.bonds_formed, 3)
        self.assertEqual(record.broken, ["1-2:C=C", "3-4:H-H"])
        self.assertEqual(record.formed, ["1-2:C-C", "1-3:C-H", "2-4:C-H"])
        # 614 + 436 - (348 + 2 * 413)
        self.assertEqual(record.enthalpy_change, -124.0)
        self.assertEqual(record.unknown_bond_types, [])

    def test_falls_back_to_rxn_block(self):
        mapping = AtomMapping(
            rxn_id="HYD", mapped=True, rxn_block=smiles_to_rxn_block(HYD_MAPPED)
        )
        record = BondChangeAnalyzer().analyze(mapping)
        self.assertEqual((record.bonds_broken, record.bonds_formed), (2, 3))

    def test_unknown_bond_types(self):
        record = BondChangeAnalyzer().analyze(self._mapping("[Fe:1][OH:2]>>[Fe+:1].[OH-:2]"))
        self.assertEqual(record.broken, ["1-2:Fe-O"])
        self.assertEqual(record.unknown_bond_types, ["Fe-O"])
        self.assertEqual(record.enthalpy_change, 0.0)

    def test_unmapped_reaction(self):
        with self.assertRaises(InvalidMapping):
            BondChangeAnalyzer().analyze(self._mapping(HYD_MAPPED, mapped=False))

    def test_no_map_numbers(self):
        with self.assertRaises(InvalidMapping):
            BondChangeAnalyzer().analyze(self._mapping("C=C.[H][H]>>CC"))

    def test_garbage(self):
        with self.assertRaises(InvalidMapping):
            BondChangeAnalyzer().analyze(self._mapping("not a reaction"))
        with self.assertRaises(InvalidMapping):
            mapped_bonds("[CH3:1](")


if __name__ == "__main__":
    unittest.main()
