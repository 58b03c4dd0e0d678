"""
Chemical computation tools for chemdb.

Provides modular, composable tools for structure handling:

- formula:          molecular formula parsing, Hill formatting, atom-count overlap
- inchi:            InChI layer parsing (formula, connectivity, charge, protons, stereo)
- converter:        FormatConverter interface and the RDKit implementation
- scorer:           ConsistencyScorer ranking candidate structures per metabolite
- reaction_codec:   MDL RXN / reaction SMILES / reaction InChI for reaction tables
- atom_mapper:      AtomMapper interface, RXNMapper and Reaction Decoder Tool services
- bond_energy:      average bond dissociation energies
- bond_analyzer:    bonds broken/formed and enthalpy change from a mapped reaction
"""
