"""
Tests for ReactionTableBuilder and the reaction codec
"""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from rdkit.Chem import rdChemReactions

from chemdb.chem.reaction_codec import (
    check_atom_map_consistency,
    reaction_inchi,
    render_table,
    rxn_block_to_smiles,
    split_reaction_smiles,
    strip_atom_maps,
)
from chemdb.chem.converter import RDKitFormatConverter
from chemdb.common.errors import ConversionError
from chemdb.common.status import MappingReason
from chemdb.models.reaction_models import Participant, Reaction, ReactionTable, TableEntry
from chemdb.sources.model_sources import SMILESSource
from chemdb.workflow.reaction_tables import ReactionTableBuilder, elemental_imbalance

SMILES = {
    "2pg": "OCC(OP(=O)(O)O)C(=O)O",
    "pep": "C=C(OP(=O)(O)O)C(=O)O",
    "h2o": "O",
    "f6p": "OCC1(O)OC(COP(=O)(O)O)C(O)C1O",
    "pi": "OP(=O)(O)O",
}


def _structures(met_ids=None):
    source = SMILESSource(RDKitFormatConverter())
    return {
        met_id: source.fetch(met_id, smiles, timeout=1)
        for met_id, smiles in SMILES.items()
        if met_ids is None or met_id in met_ids
    }


ENO = Reaction("ENO", [Participant("2pg", -1), Participant("pep", 1), Participant("h2o", 1)])
FBP = Reaction("FBP", [
    Participant("fdp", -1), Participant("h2o", -1), Participant("f6p", 1), Participant("pi", 1),
])
EX_H2O = Reaction("EX_h2o", [Participant("h2o", -1)])


class TestElementalBalance(unittest.TestCase):

    def setUp(self):
        self.structures = _structures()

    def test_balanced(self):
        self.assertEqual(elemental_imbalance(ENO, self.structures), {})

    def test_unbalanced_reports_products_minus_substrates(self):
        rxn = Reaction("BAD", [Participant("2pg", -1), Participant("pep", 1)])
        self.assertEqual(elemental_imbalance(rxn, self.structures), {"H": -2.0, "O": -1.0})

    def test_swapping_sides_keeps_verdict(self):
        rxn = Reaction("BAD", [Participant("2pg", -1), Participant("pep", 1)])
        for reaction in (ENO, rxn):
            forward = ReactionTableBuilder().build(reaction, self.structures).table
            swapped = Reaction(
                reaction.rxn_id, [Participant(p.met_id, -p.coefficient) for p in reaction.participants]
            )
            backward = ReactionTableBuilder().build(swapped, self.structures).table
            self.assertEqual(forward.balanced, backward.balanced)
            self.assertEqual(
                forward.imbalance, {el: -n for el, n in backward.imbalance.items()}
            )


class TestReactionTableBuilder(unittest.TestCase):

    def setUp(self):
        self.structures = _structures()

    def test_complete_table(self):
        result = ReactionTableBuilder().build(ENO, self.structures)
        self.assertTrue(result.mappable)
        table = result.table
        self.assertTrue(table.balanced)
        self.assertEqual([e.met_id for e in table.substrates], ["2pg"])
        self.assertEqual([e.met_id for e in table.products], ["pep", "h2o"])
        self.assertTrue(all(e.molblock for e in table.substrates + table.products))

    def test_missing_participant_is_not_mapped(self):
        result = ReactionTableBuilder().build(FBP, self.structures)
        self.assertIsNone(result.table)
        self.assertEqual(result.skip_reason, MappingReason.MISSING_STRUCTURE)
        self.assertEqual(result.issue.code, "INCOMPLETE_PARTICIPANTS")
        self.assertEqual(result.issue.detail, "fdp")

    def test_missing_participant_emits_stoichiometry_only_table(self):
        result = ReactionTableBuilder(emit_incomplete=True).build(FBP, self.structures)
        self.assertFalse(result.mappable)
        self.assertFalse(result.table.complete)
        self.assertEqual(result.table.missing, ["fdp"])
        self.assertEqual(result.table.substrates[0].molblock, "")

    def test_exchange_reaction(self):
        result = ReactionTableBuilder().build(EX_H2O, self.structures)
        self.assertIsNone(result.table)
        self.assertEqual(result.skip_reason, MappingReason.EXCHANGE_REACTION)
        self.assertIsNone(result.issue)

    def test_build_all(self):
        result = ReactionTableBuilder(emit_incomplete=True).build_all(
            [ENO, FBP, EX_H2O], self.structures, max_workers=2
        )
        self.assertEqual(list(result.tables), ["ENO", "FBP"])
        self.assertEqual([t.rxn_id for t in result.mappable_tables()], ["ENO"])
        self.assertEqual(result.skipped, {
            "FBP": MappingReason.MISSING_STRUCTURE,
            "EX_h2o": MappingReason.EXCHANGE_REACTION,
        })
        self.assertEqual(result.missing, {"FBP": ["fdp"]})
        self.assertEqual(len(result.issues), 1)


class TestRenderTable(unittest.TestCase):

    def setUp(self):
        self.structures = _structures()

    def _table(self, reaction):
        return ReactionTableBuilder().build(reaction, self.structures).table

    def test_coefficients_repeat_species(self):
        rxn = Reaction("H2O2", [Participant("h2o", -2), Participant("pi", 1.0)])
        rendered = render_table(self._table(rxn), explicit_hydrogens=False)
        parsed = rdChemReactions.ReactionFromRxnBlock(rendered.rxn_block)
        self.assertEqual(parsed.GetNumReactantTemplates(), 2)
        self.assertEqual(parsed.GetNumProductTemplates(), 1)
        substrates, _ = split_reaction_smiles(rendered.reaction_smiles)
        self.assertEqual(substrates.split("."), ["O", "O"])

    def test_explicit_hydrogens(self):
        rendered = render_table(self._table(ENO), explicit_hydrogens=True)
        self.assertTrue(rendered.explicit_hydrogens)
        self.assertIn("[H]", rendered.reaction_smiles)
        implicit = render_table(self._table(ENO), explicit_hydrogens=False)
        self.assertNotIn("[H]", implicit.reaction_smiles)

    def test_incomplete_table_cannot_be_rendered(self):
        table = ReactionTableBuilder(emit_incomplete=True).build(FBP, self.structures).table
        with self.assertRaises(ConversionError):
            render_table(table)

    def test_unreadable_structure(self):
        table = ReactionTable(
            rxn_id="X",
            substrates=[TableEntry("a", 1, "garbage")],
            products=[TableEntry("b", 1, "garbage")],
        )
        with self.assertRaises(ConversionError):
            render_table(table)

    def test_rxn_block_back_to_smiles(self):
        rendered = render_table(self._table(ENO), explicit_hydrogens=False)
        self.assertEqual(rxn_block_to_smiles(rendered.rxn_block).count(">>"), 1)


class TestMappedReactionHelpers(unittest.TestCase):

    MAPPED = "[CH2:1]=[CH2:2].[H:3][H:4]>>[H:3][CH2:1][CH2:2][H:4]"

    def test_consistent_mapping(self):
        self.assertEqual(check_atom_map_consistency(self.MAPPED), [])

    def test_inconsistent_mapping(self):
        problems = check_atom_map_consistency("[CH3:1][OH:2]>>[CH3:1][OH:1]")
        self.assertTrue(any("duplicate" in p for p in problems))
        self.assertTrue(any("without product partner" in p for p in problems))
        self.assertEqual(check_atom_map_consistency("CO>>CO"), ["no atom map numbers"])

    def test_strip_atom_maps(self):
        self.assertEqual(strip_atom_maps(self.MAPPED), "[CH2]=[CH2].[H][H]>>[H][CH2][CH2][H]")

    def test_reaction_inchi(self):
        rinchi = reaction_inchi(self.MAPPED)
        self.assertTrue(rinchi.startswith("RInChI=1.00.1S/"))
        self.assertTrue(rinchi.endswith("/d+"))
        left, right = rinchi[len("RInChI=1.00.1S/"):-len("/d+")].split("<>")
        self.assertEqual(left, "C2H4/c1-2/h1-2H2!H2/h1H")
        self.assertEqual(right, "C2H6/c1-2/h1-2H3")
        self.assertEqual(rinchi, reaction_inchi(strip_atom_maps(self.MAPPED)))

    def test_not_a_reaction(self):
        with self.assertRaises(ConversionError):
            split_reaction_smiles("CCO")


if __name__ == "__main__":
    unittest.main()
