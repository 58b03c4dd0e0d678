"""
chemdb — chemoinformatic database builder for metabolic reconstructions.

Organized into:
- common/   : shared constants, errors, status enums, configuration
- models/   : typed dataclass definitions
- chem/     : RDKit chemistry tools (InChI layers, conversion, scoring, bonds)
- sources/  : structure sources (model identifiers, HTTP databases, prior dirs)
- io/       : model and identifier-table loading
- workflow/ : reconciliation, reaction tables, atom mapping, assembly, merge
- output/   : database persistence, reports, model annotation
"""

__version__ = "0.1.0"
