"""
Database Assembler — top-level build pipeline.

Runs reconciliation, table building, atom mapping and bond analysis over
the selected metabolites and reactions, assembles one
:class:`ChemicalDatabase`, merges it with any prior databases and writes
it to the output directory.

Only :class:`ConfigurationError` escapes :meth:`DatabaseAssembler.build`,
and only from the preflight checks that run before any unit of work.

Usage::

    config = BuildConfig(output_dir="ecoli_db", max_workers=4)
    assembler = DatabaseAssembler(config, model, mapper=RDTAtomMapper(jar))
    database = assembler.build()
    database.report.counts["reactions_mapped"]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from chemdb.chem.atom_mapper import AtomMapper
from chemdb.chem.bond_analyzer import BondChangeAnalyzer
from chemdb.chem.converter import FormatConverter, RDKitFormatConverter
from chemdb.chem.scorer import ConsistencyScorer
from chemdb.common.config import BuildConfig
from chemdb.common.errors import ConfigurationError, InvalidMapping
from chemdb.common.status import EntityKind, MappingReason, TieBreak
from chemdb.io.model_loader import MetabolicModel
from chemdb.models.database_models import ChemicalDatabase, DatabaseReport, IssueRecord
from chemdb.models.reaction_models import AtomMapping, BondChangeRecord, Reaction
from chemdb.models.structure_models import Metabolite
from chemdb.output.database_writer import prepare_output_dir, write_database
from chemdb.output.snapshot import save_snapshot
from chemdb.sources import StructureSource, build_sources
from chemdb.workflow.mapping_orchestrator import AtomMappingOrchestrator, MappingResult
from chemdb.workflow.merge import load_prior_database, merge_databases
from chemdb.workflow.parallel import CancellationToken, run_units
from chemdb.workflow.reaction_tables import ReactionTableBuilder, TableBuildResult
from chemdb.workflow.reconciler import MetaboliteReconciler, ReconciliationResult

__all__ = ["DatabaseAssembler", "COUNT_KEYS"]

logger = logging.getLogger(__name__)

COUNT_KEYS = (
    "metabolites_reconciled",
    "metabolites_no_candidate",
    "top_score_ties",
    "arbitrary_ties",
    "reactions_balanced",
    "reactions_unbalanced",
    "reactions_mapped",
    "reactions_not_mapped",
    "reactions_inconsistent",
)


class DatabaseAssembler:
    """Compose the pipeline stages into one database build.

    Args:
        config: Build options.
        model: The metabolic model to process.
        converter: Format converter (default RDKit).
        sources: Structure sources by name; built from ``config`` when omitted.
        mapper: Atom-mapping service; ``None`` writes unmapped tables only.
        token: Cancellation token shared with the caller.
    """

    def __init__(
        self,
        config: BuildConfig,
        model: MetabolicModel,
        converter: Optional[FormatConverter] = None,
        sources: Optional[Dict[str, StructureSource]] = None,
        mapper: Optional[AtomMapper] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        self.config = config
        self.model = model
        self.converter = converter or RDKitFormatConverter()
        self.sources = sources
        self.mapper = mapper
        self.token = token or CancellationToken()
        self.output_path: Optional[Path] = None

    def cancel(self) -> None:
        """Stop before the next unit of work; in-flight units finish."""
        self.token.cancel()

    # -- preflight ---------------------------------------------------------

    def _preflight(self) -> List[Tuple[str, ChemicalDatabase]]:
        config = self.config
        config.validate()
        unknown = self.model.unknown_ids(config.metabolites, config.reactions)
        if unknown:
            raise ConfigurationError(f"Ids not in the model: {unknown}")
        priors = [
            (name, load_prior_database(path, name, self.converter))
            for name, path in config.prior_databases()
        ]
        self.output_path = prepare_output_dir(config.output_dir)
        if self.sources is None:
            self.sources = build_sources(config, self.converter)
        return priors

    def _select(self) -> Tuple[List[Metabolite], List[Reaction]]:
        config = self.config
        reactions = self.model.select_reactions(config.reactions)
        if config.metabolites:
            metabolites = self.model.select_metabolites(config.metabolites)
            if not config.reactions:
                wanted = set(config.metabolites)
                reactions = [r for r in reactions if set(r.met_ids) <= wanted]
        elif config.reactions:
            met_ids = list(dict.fromkeys(m for r in reactions for m in r.met_ids))
            metabolites = self.model.select_metabolites(met_ids)
        else:
            metabolites = self.model.select_metabolites()
        return metabolites, reactions

    def _source_priority(self) -> List[str]:
        configured = self.config.source_priority()
        return configured + [name for name in self.sources if name not in configured]

    # -- stages ------------------------------------------------------------

    def reconcile(self, metabolites: List[Metabolite]) -> ReconciliationResult:
        config = self.config
        reconciler = MetaboliteReconciler(
            self.sources,
            ConsistencyScorer(source_priority=self._source_priority()),
            self.converter,
            approach=config.standardisation_approach,
            source_timeout=config.source_timeout,
            adjust_to_ph=config.adjust_to_model_ph,
            model_ph=config.model_ph,
        )
        return reconciler.reconcile(metabolites, max_workers=config.max_workers, token=self.token)

    def build_tables(self, reactions: List[Reaction], result: ReconciliationResult) -> TableBuildResult:
        builder = ReactionTableBuilder(emit_incomplete=self.config.only_unmapped)
        return builder.build_all(
            reactions, result.chosen, max_workers=self.config.max_workers, token=self.token
        )

    def map_reactions(self, tables: TableBuildResult) -> MappingResult:
        orchestrator = AtomMappingOrchestrator(
            mapper=self.mapper,
            only_unmapped=self.config.only_unmapped,
            h_mapping=self.config.h_mapping,
            timeout=self.config.mapping_timeout,
        )
        return orchestrator.map_all(tables, max_workers=self.config.max_workers, token=self.token)

    def analyze_bonds(
        self, mappings: Dict[str, AtomMapping]
    ) -> Tuple[Dict[str, BondChangeRecord], List[IssueRecord], List[str]]:
        analyzer = BondChangeAnalyzer()

        def _unit(mapping: AtomMapping):
            try:
                return analyzer.analyze(mapping)
            except InvalidMapping as exc:
                logger.warning("%s: bond analysis skipped (%s)", mapping.rxn_id, exc.message)
                return IssueRecord.from_error(EntityKind.REACTION, mapping.rxn_id, exc)

        results, cancelled = run_units(
            [m for m in mappings.values() if m.mapped],
            _unit,
            key=lambda m: m.rxn_id,
            max_workers=self.config.max_workers,
            token=self.token,
        )
        records = {k: v for k, v in results.items() if isinstance(v, BondChangeRecord)}
        issues = [v for v in results.values() if isinstance(v, IssueRecord)]
        return records, issues, cancelled

    # -- report ------------------------------------------------------------

    @staticmethod
    def _report(
        reconciled: ReconciliationResult,
        tables: TableBuildResult,
        mapped: MappingResult,
        bond_issues: List[IssueRecord],
        cancelled: List[str],
    ) -> DatabaseReport:
        report = DatabaseReport(cancelled=cancelled)
        for met_id, record in reconciled.records.items():
            report.metabolite_status[met_id] = (
                record.chosen_source if met_id in reconciled.chosen else "noCandidate"
            )
        for met_id in reconciled.cancelled:
            report.metabolite_status[met_id] = MappingReason.CANCELLED.value
        for rxn_id, mapping in mapped.mappings.items():
            report.reaction_status[rxn_id] = {
                "balanced": mapping.balanced,
                "mapped": mapping.mapped,
                "reason": mapping.reason.value if mapping.reason else None,
                "inconsistent": mapping.inconsistent,
            }
        for rxn_id in tables.cancelled + mapped.cancelled:
            report.reaction_status[rxn_id] = {
                "mapped": False, "reason": MappingReason.CANCELLED.value,
            }

        report.issues = reconciled.issues + tables.issues + mapped.issues + bond_issues
        complete = [t for t in tables.tables.values() if t.complete]
        report.counts = dict(zip(COUNT_KEYS, (
            len(reconciled.chosen),
            len(reconciled.no_candidates),
            sum(1 for r in reconciled.records.values() if r.has_tie),
            sum(1 for r in reconciled.records.values() if r.tie_break == TieBreak.ARBITRARY),
            sum(1 for t in complete if t.balanced),
            sum(1 for t in complete if not t.balanced),
            len(mapped.mapped_ids),
            len(mapped.mappings) - len(mapped.mapped_ids),
            len(mapped.inconsistent_ids),
        )))
        return report

    # -- pipeline ----------------------------------------------------------

    def build(self) -> ChemicalDatabase:
        """Run every stage, merge with prior databases and write the result."""
        priors = self._preflight()
        config = self.config
        metabolites, reactions = self._select()
        logger.info(
            "Building database for %d metabolite(s), %d reaction(s) in %s",
            len(metabolites), len(reactions), self.output_path,
        )

        reconciled = self.reconcile(metabolites)
        if config.debug:
            save_snapshot("reconciliation", reconciled.to_dict(), self.output_path)

        tables = self.build_tables(reactions, reconciled)
        if config.debug:
            save_snapshot("tables", tables.to_dict(), self.output_path)

        mapped = self.map_reactions(tables)
        if config.debug:
            save_snapshot("mapping", mapped.to_dict(), self.output_path)

        bond_changes, bond_issues, bond_cancelled = self.analyze_bonds(mapped.mappings)
        for rxn_id in bond_cancelled:
            mapped.mappings.pop(rxn_id, None)
            mapped.unmapped_blocks.pop(rxn_id, None)
            tables.tables.pop(rxn_id, None)
            mapped.cancelled.append(rxn_id)

        cancelled = reconciled.cancelled + tables.cancelled + mapped.cancelled
        report = self._report(reconciled, tables, mapped, bond_issues, cancelled)
        database = ChemicalDatabase(
            structures=dict(reconciled.chosen),
            comparisons=dict(reconciled.records),
            candidates=dict(reconciled.candidates) if config.keep_mol_comparison else {},
            tables=dict(tables.tables),
            mappings=dict(mapped.mappings),
            bond_changes=bond_changes,
            report=report,
            config=config.to_dict(),
        )
        for name, prior in priors:
            database = merge_databases(database, prior, name)

        write_database(database, self.output_path, unmapped_blocks=mapped.unmapped_blocks)
        logger.info("Report: %s", report.counts)
        return database
