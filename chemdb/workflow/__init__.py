"""
Workflow — the pipeline stages and their composition.

- parallel:              bounded worker pool with cooperative cancellation
- reconciler:            one authoritative structure per metabolite
- reaction_tables:       balanced / unbalanced reaction tables
- mapping_orchestrator:  atom-mapping submission and classification
- merge:                 union with prior databases, conflict reporting
- assembler:             the full build
"""

from chemdb.workflow.assembler import DatabaseAssembler
from chemdb.workflow.mapping_orchestrator import AtomMappingOrchestrator
from chemdb.workflow.merge import load_prior_database, merge_databases
from chemdb.workflow.parallel import CancellationToken, run_units
from chemdb.workflow.reaction_tables import ReactionTableBuilder
from chemdb.workflow.reconciler import MetaboliteReconciler

__all__ = [
    "DatabaseAssembler",
    "AtomMappingOrchestrator",
    "load_prior_database",
    "merge_databases",
    "CancellationToken",
    "run_units",
    "ReactionTableBuilder",
    "MetaboliteReconciler",
]
