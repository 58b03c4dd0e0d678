"""
Atom Mapping Orchestrator — reaction tables -> AtomMapping records.

Every reaction that reaches this stage gets exactly one :class:`AtomMapping`.
Reactions skipped upstream (missing structures, exchange reactions) get a
``mapped=False`` record carrying the skip reason; tables submitted to the
mapping service end in one of three ways:

    success          mapped=True, rinchi/rsmi derived from the mapped table
    no mapping found mapped=False, reason noMappingFound
    service failure  mapped=False, reason serviceError (crash, timeout,
                     missing dependency); the batch continues

In ``only_unmapped`` mode the service is never called and every table is
recorded with reason onlyUnmapped.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from chemdb.chem.atom_mapper import AtomMapper
from chemdb.chem.reaction_codec import (
    RenderedTable,
    check_atom_map_consistency,
    reaction_inchi,
    render_table,
)
from chemdb.common.constants import BuildDefaults
from chemdb.common.errors import (
    ChemDBError,
    ConversionError,
    MappingServiceError,
    NoMappingFound,
)
from chemdb.common.status import EntityKind, MappingReason
from chemdb.models.database_models import IssueRecord
from chemdb.models.reaction_models import AtomMapping, ReactionTable
from chemdb.workflow.parallel import CancellationToken, run_units
from chemdb.workflow.reaction_tables import TableBuildResult

__all__ = ["AtomMappingOrchestrator", "MappingOutcome", "MappingResult"]

logger = logging.getLogger(__name__)


@dataclass
class MappingOutcome:
    """One reaction's mapping record plus what was submitted."""

    mapping: AtomMapping
    rendered: Optional[RenderedTable] = None
    issue: Optional[IssueRecord] = None


@dataclass
class MappingResult:
    mappings: Dict[str, AtomMapping] = field(default_factory=dict)
    unmapped_blocks: Dict[str, str] = field(default_factory=dict)
    issues: List[IssueRecord] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)

    @property
    def mapped_ids(self) -> List[str]:
        return [k for k, m in self.mappings.items() if m.mapped]

    @property
    def inconsistent_ids(self) -> List[str]:
        return [k for k, m in self.mappings.items() if m.inconsistent]

    def to_dict(self) -> Dict[str, object]:
        return {
            "mappings": {k: v.to_dict() for k, v in self.mappings.items()},
            "issues": [i.to_dict() for i in self.issues],
            "cancelled": list(self.cancelled),
        }


class AtomMappingOrchestrator:
    """Submit reaction tables to an :class:`AtomMapper` and classify results.

    Args:
        mapper: Mapping service; ``None`` behaves like ``only_unmapped``.
        only_unmapped: Record unmapped tables without calling the service.
        h_mapping: Expand hydrogens in the table handed to the service.
        timeout: Seconds allowed per mapping call.
    """

    def __init__(
        self,
        mapper: Optional[AtomMapper] = None,
        only_unmapped: bool = False,
        h_mapping: bool = True,
        timeout: float = BuildDefaults.MAPPING_TIMEOUT,
    ) -> None:
        self.mapper = mapper
        self.only_unmapped = only_unmapped or mapper is None
        self.h_mapping = h_mapping
        self.timeout = timeout
        if mapper is not None and not mapper.supports_concurrent_calls:
            self._lock = threading.Lock()
        else:
            self._lock = None

    # -- one reaction ------------------------------------------------------

    def map_table(self, table: ReactionTable) -> MappingOutcome:
        rxn_id = table.rxn_id
        try:
            rendered = render_table(table, explicit_hydrogens=self.h_mapping)
        except ConversionError as exc:
            logger.warning("%s: table not submitted (%s)", rxn_id, exc.message)
            return self._failed(table, None, MappingReason.NO_MAPPING_FOUND, exc)

        if self.only_unmapped:
            return MappingOutcome(
                mapping=AtomMapping(
                    rxn_id=rxn_id,
                    rxn_block=rendered.rxn_block,
                    balanced=table.balanced,
                    mapped=False,
                    reason=MappingReason.ONLY_UNMAPPED,
                ),
                rendered=rendered,
            )

        try:
            with self._lock or contextlib.nullcontext():
                response = self.mapper.map(rendered, self.timeout)
        except MappingServiceError as exc:
            logger.warning("%s: mapping service error (%s)", rxn_id, exc.message)
            return self._failed(table, rendered, MappingReason.SERVICE_ERROR, exc)
        except NoMappingFound as exc:
            logger.info("%s: no mapping found", rxn_id)
            return self._failed(table, rendered, MappingReason.NO_MAPPING_FOUND, exc)
        except Exception as exc:
            logger.exception("%s: mapping service crashed", rxn_id)
            return self._failed(
                table, rendered, MappingReason.SERVICE_ERROR,
                MappingServiceError(f"{rxn_id}: {exc}"),
            )

        try:
            problems = check_atom_map_consistency(response.reaction_smiles)
        except ConversionError as exc:
            logger.warning("%s: unreadable mapper response (%s)", rxn_id, exc.message)
            return self._failed(
                table, rendered, MappingReason.NO_MAPPING_FOUND,
                NoMappingFound(f"{rxn_id}: unreadable mapped reaction: {exc.message}"),
            )
        if problems:
            logger.info("%s: inconsistent atom mapping (%s)", rxn_id, "; ".join(problems))
        try:
            rinchi = reaction_inchi(response.reaction_smiles)
        except ConversionError as exc:
            logger.warning("%s: no reaction InChI (%s)", rxn_id, exc.message)
            rinchi = ""
        return MappingOutcome(
            mapping=AtomMapping(
                rxn_id=rxn_id,
                rxn_block=response.rxn_block,
                balanced=table.balanced,
                mapped=True,
                rinchi=rinchi,
                rsmi=response.reaction_smiles,
                message="; ".join(problems),
                inconsistent=bool(problems),
            ),
            rendered=rendered,
        )

    @staticmethod
    def _failed(
        table: ReactionTable,
        rendered: Optional[RenderedTable],
        reason: MappingReason,
        exc: ChemDBError,
    ) -> MappingOutcome:
        return MappingOutcome(
            mapping=AtomMapping(
                rxn_id=table.rxn_id,
                rxn_block=rendered.rxn_block if rendered else "",
                balanced=table.balanced,
                mapped=False,
                reason=reason,
                message=exc.message,
            ),
            rendered=rendered,
            issue=IssueRecord.from_error(EntityKind.REACTION, table.rxn_id, exc),
        )

    @staticmethod
    def skipped(
        rxn_id: str,
        reason: MappingReason,
        table: Optional[ReactionTable] = None,
    ) -> AtomMapping:
        """Record of a reaction never submitted to the service."""
        return AtomMapping(
            rxn_id=rxn_id,
            balanced=table.balanced if table else False,
            mapped=False,
            reason=reason,
        )

    # -- all reactions -----------------------------------------------------

    def map_all(
        self,
        tables: TableBuildResult,
        max_workers: int = 1,
        token: Optional[CancellationToken] = None,
    ) -> MappingResult:
        submit: Mapping[str, ReactionTable] = {t.rxn_id: t for t in tables.mappable_tables()}
        results, cancelled = run_units(
            submit.values(),
            self.map_table,
            key=lambda t: t.rxn_id,
            max_workers=max_workers,
            token=token,
        )
        aggregate = MappingResult(cancelled=cancelled)
        for rxn_id, reason in tables.skipped.items():
            aggregate.mappings[rxn_id] = self.skipped(rxn_id, reason, tables.tables.get(rxn_id))
        for rxn_id, outcome in results.items():
            aggregate.mappings[rxn_id] = outcome.mapping
            if outcome.rendered is not None:
                aggregate.unmapped_blocks[rxn_id] = outcome.rendered.rxn_block
            if outcome.issue is not None:
                aggregate.issues.append(outcome.issue)
        logger.info(
            "Atom mapping: %d mapped, %d not mapped, %d inconsistent",
            len(aggregate.mapped_ids),
            len(aggregate.mappings) - len(aggregate.mapped_ids),
            len(aggregate.inconsistent_ids),
        )
        return aggregate
