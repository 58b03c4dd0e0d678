"""
Centralized Configuration Registry
====================================

Single source of truth for scoring weights, source names and defaults.

Usage::

    from chemdb.common.constants import ScoreWeights, BuildDefaults

    total = ScoreWeights.FORMULA * formula_term + ...
"""


class ScoreWeights:
    """Weights of the candidate scoring terms (sum to 1.0).

    The charge weight is larger than the three bonus terms together, so a
    charge-mismatched candidate can never overtake a charge-matched one
    with the same formula credit.
    """

    FORMULA: float = 0.35
    CHARGE: float = 0.35
    STANDARD_INCHI: float = 0.1
    STEREOCHEMISTRY: float = 0.1
    AGREEMENT: float = 0.1

    SCORE_DIGITS: int = 6                 # scores are rounded so ties compare exactly


class SourceNames:
    """Identifier sources understood out of the box, in default priority order."""

    INCHI = "inchi"
    SMILES = "smiles"
    KEGG = "kegg"
    HMDB = "hmdb"
    PUBCHEM = "pubchem"
    CHEBI = "chebi"

    DEFAULT_ORDER = (INCHI, SMILES, KEGG, HMDB, PUBCHEM, CHEBI)
    MODEL_SOURCES = (INCHI, SMILES)
    DATABASE_SOURCES = (KEGG, HMDB, PUBCHEM, CHEBI)


class BuildDefaults:
    """Default resource limits for a database build."""

    MAX_WORKERS: int = 4
    SOURCE_TIMEOUT: float = 30.0          # seconds per structure download
    CONVERSION_TIMEOUT: float = 30.0      # seconds per format conversion
    MAPPING_TIMEOUT: float = 300.0        # seconds per atom-mapping call
    MODEL_PH: float = 7.0
    PRINT_LEVEL: int = 1


BALANCE_TOLERANCE: float = 1e-6
"""Largest per-element imbalance still treated as balanced."""
