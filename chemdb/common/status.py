"""
Unified Status Enums
====================

Single source of truth for the string-valued states written to the
database and the report.  The enum values are the labels used in the
output files, so they must stay stable.

Usage::

    from chemdb.common.status import MappingReason, Side

    if participant.side == Side.SUBSTRATE:
        ...
"""

from enum import Enum


class StandardisationApproach(Enum):
    """Hydrogen representation applied to every candidate structure.

        EXPLICIT_H — chemical graph with every hydrogen as an atom
        IMPLICIT_H — hydrogen-suppressed chemical graph
        BASIC      — structure kept as retrieved
    """

    EXPLICIT_H = "explicitH"
    IMPLICIT_H = "implicitH"
    BASIC = "basic"


class Side(Enum):
    """Side of a reaction a participant sits on."""

    SUBSTRATE = "substrate"
    PRODUCT = "product"


class TieBreak(Enum):
    """How the winning candidate of a metabolite was selected.

        SCORE           — unique top score
        SOURCE_PRIORITY — top score shared, resolved by source order
        ARBITRARY       — top score shared, no usable priority; first taken
    """

    SCORE = "score"
    SOURCE_PRIORITY = "sourcePriority"
    ARBITRARY = "arbitrary"


class MappingReason(Enum):
    """Why a reaction carries ``mapped=False``.

    Lifecycle: a reaction is either skipped before submission
    (MISSING_STRUCTURE, EXCHANGE_REACTION, ONLY_UNMAPPED, CANCELLED) or
    submitted and classified (NO_MAPPING_FOUND, SERVICE_ERROR).
    """

    MISSING_STRUCTURE = "notMapped"
    EXCHANGE_REACTION = "exchangeReaction"
    ONLY_UNMAPPED = "onlyUnmapped"
    NO_MAPPING_FOUND = "noMappingFound"
    SERVICE_ERROR = "serviceError"
    CANCELLED = "cancelled"


class EntityKind(Enum):
    """Kind of entity an issue in the report refers to."""

    SOURCE = "source"
    METABOLITE = "metabolite"
    REACTION = "reaction"
    DATABASE = "database"
