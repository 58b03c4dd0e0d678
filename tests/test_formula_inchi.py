"""
Tests for formula and InChI layer parsing
"""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chemdb.chem.formula import format_formula, formula_overlap, parse_formula
from chemdb.chem.inchi import is_inchi, parse_inchi

GLUCOSE = "InChI=1S/C6H12O6/c7-1-2-3(8)4(9)5(10)6(11)12-2/h2-11H,1H2/t2-,3-,4+,5-,6?/m1/s1"


class TestFormula(unittest.TestCase):

    def test_parse_simple(self):
        self.assertEqual(parse_formula("C6H12O6"), {"C": 6, "H": 12, "O": 6})

    def test_parse_two_letter_elements_and_generic_atoms(self):
        counts = parse_formula("C21H36N7O16P3SR")
        self.assertEqual(counts["P"], 3)
        self.assertEqual(counts["S"], 1)
        self.assertEqual(counts["R"], 1)

    def test_parse_empty(self):
        self.assertEqual(parse_formula(""), {})

    def test_malformed_formula_raises(self):
        with self.assertRaises(ValueError):
            parse_formula("C6H12O6-")
        with self.assertRaises(ValueError):
            parse_formula("c6h12")

    def test_hill_order(self):
        self.assertEqual(format_formula({"O": 6, "H": 12, "C": 6}), "C6H12O6")
        self.assertEqual(format_formula({"O": 1, "H": 2}), "H2O")
        self.assertEqual(format_formula({"P": 1, "O": 4, "H": 3}), "H3O4P")

    def test_overlap(self):
        a = parse_formula("C6H12O6")
        self.assertEqual(formula_overlap(a, a), 1.0)
        self.assertAlmostEqual(formula_overlap(a, parse_formula("C6H11O6")), 23 / 24)
        self.assertEqual(formula_overlap({}, {}), 0.0)


class TestInChI(unittest.TestCase):

    def test_is_inchi(self):
        self.assertTrue(is_inchi(GLUCOSE))
        self.assertFalse(is_inchi("C1CCCCC1"))
        self.assertFalse(is_inchi(""))

    def test_parse_layers(self):
        layers = parse_inchi(GLUCOSE)
        self.assertTrue(layers.is_standard)
        self.assertTrue(layers.has_stereo)
        self.assertEqual(layers.formula, "C6H12O6")
        self.assertEqual(layers.net_charge, 0)
        self.assertEqual(layers.connectivity, "7-1-2-3(8)4(9)5(10)6(11)12-2")

    def test_proton_layer_adjusts_formula_and_charge(self):
        layers = parse_inchi("InChI=1S/C2H4O2/c1-2(3)4/h1H3,(H,3,4)/p-1")
        self.assertEqual(layers.formula, "C2H3O2")
        self.assertEqual(layers.net_charge, -1)

    def test_charge_layer(self):
        layers = parse_inchi("InChI=1S/H3N/h1H3/p+1")
        self.assertEqual(layers.net_charge, 1)
        self.assertEqual(layers.formula, "H4N")
        charged = parse_inchi("InChI=1S/Fe/q+2")
        self.assertEqual(charged.net_charge, 2)

    def test_multi_component_formula(self):
        layers = parse_inchi("InChI=1S/2ClH.Mg/h2*1H;/q;;+2/p-2")
        self.assertEqual(layers.formula_counts["Cl"], 2)
        self.assertEqual(layers.formula_counts["Mg"], 1)
        self.assertNotIn("H", layers.formula_counts)
        self.assertEqual(layers.net_charge, 0)

    def test_non_standard_without_stereo(self):
        layers = parse_inchi("InChI=1/CH4O/c1-2/h2H,1H3")
        self.assertFalse(layers.is_standard)
        self.assertFalse(layers.has_stereo)

    def test_fixed_h_layers_ignored(self):
        layers = parse_inchi("InChI=1/C2H4O2/c1-2(3)4/h1H3,(H,3,4)/f/h3H/q-1")
        self.assertEqual(layers.net_charge, 0)

    def test_connectivity_key_falls_back_to_formula(self):
        self.assertEqual(parse_inchi("InChI=1S/Fe/q+2").connectivity_key, "Fe")

    def test_bare_proton(self):
        layers = parse_inchi("InChI=1S/p+1")
        self.assertEqual(layers.formula_layer, "")
        self.assertEqual(layers.formula, "H")
        self.assertEqual(layers.net_charge, 1)
        self.assertEqual(layers.connectivity_key, "H")

    def test_not_an_inchi(self):
        with self.assertRaises(ValueError):
            parse_inchi("CCO")
        with self.assertRaises(ValueError):
            parse_inchi("InChI=1S")
        with self.assertRaises(ValueError):
            parse_inchi("InChI=1S/")
        with self.assertRaises(ValueError):
            parse_inchi("InChI=1S/p+x")


if __name__ == "__main__":
    unittest.main()
