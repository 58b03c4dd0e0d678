"""
Typed dataclass definitions shared across all chemdb modules.

Re-exports every model so callers can do::

    from chemdb.models import Metabolite, StructureCandidate, ChemicalDatabase
"""

from .structure_models import ComparisonRecord, Metabolite, ScoreBreakdown, StructureCandidate
from .reaction_models import (
    AtomMapping,
    BondChangeRecord,
    Participant,
    Reaction,
    ReactionTable,
    TableEntry,
)
from .database_models import ChemicalDatabase, ConflictRecord, DatabaseReport, IssueRecord
