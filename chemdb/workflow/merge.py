"""
Prior-database merge — set-union on ids with conflict reporting.

For an id present in both databases the new build's value is kept and every
disagreement is recorded as a :class:`ConflictRecord` plus a
``MERGE_CONFLICT`` issue; ids present only in the prior database are
carried over unchanged.  Neither input is mutated.

Usage::

    prior = load_prior_database(Path("old_db"), "old", converter)
    merged = merge_databases(new_db, prior, "old")
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

from chemdb.chem.converter import FormatConverter
from chemdb.common.errors import ConfigurationError, ConversionError, MergeConflict
from chemdb.common.status import EntityKind
from chemdb.models.database_models import (
    ChemicalDatabase,
    ConflictRecord,
    DatabaseReport,
    IssueRecord,
)
from chemdb.output.database_writer import DATABASE_FILE
from chemdb.sources.directory_source import DirectorySource

__all__ = ["load_prior_database", "merge_databases"]

logger = logging.getLogger(__name__)

_STRUCTURE_FIELDS = ("source", "inchi")
_MAPPING_FIELDS = ("mapped", "rsmi")


def load_prior_database(path: Path, name: str, converter: FormatConverter) -> ChemicalDatabase:
    """Read a previous output directory or a bare directory of MOL files."""
    path = Path(path)
    db_file = path / DATABASE_FILE
    if db_file.is_file():
        try:
            payload = json.loads(db_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Cannot read prior database {db_file}: {exc}") from exc
        return ChemicalDatabase.from_dict(payload)

    source = DirectorySource(name, path, converter)
    database = ChemicalDatabase()
    for mol_file in sorted(source.directory.glob("*.mol")):
        met_id = mol_file.stem
        try:
            database.structures[met_id] = source.build_candidate(
                met_id, met_id, mol_file.read_text(encoding="utf-8")
            )
        except ConversionError as exc:
            logger.warning("%s: skipping %s (%s)", name, mol_file.name, exc.message)
    logger.info("Prior database %s: %d structure(s)", name, len(database.structures))
    return database


def _compare(
    kind: EntityKind,
    new: Mapping[str, Any],
    prior: Mapping[str, Any],
    fields: Tuple[str, ...],
    prior_name: str,
) -> List[ConflictRecord]:
    conflicts = []
    for entity_id in sorted(set(new) & set(prior)):
        for name in fields:
            old_value = getattr(prior[entity_id], name)
            new_value = getattr(new[entity_id], name)
            if name == "source" and old_value == prior_name:
                # structure read from a bare MOL directory
                continue
            if old_value != new_value:
                conflicts.append(ConflictRecord(
                    entity_kind=kind,
                    entity_id=entity_id,
                    prior_name=prior_name,
                    field_name=name,
                    old_value=old_value,
                    new_value=new_value,
                ))
    return conflicts


def _union(new: Mapping[str, Any], prior: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(new)
    for key, value in prior.items():
        merged.setdefault(key, value)
    return merged


def merge_databases(
    new: ChemicalDatabase,
    prior: ChemicalDatabase,
    prior_name: str,
) -> ChemicalDatabase:
    """Return a new database: *new* wins, *prior*-only ids are retained."""
    conflicts = _compare(
        EntityKind.METABOLITE, new.structures, prior.structures, _STRUCTURE_FIELDS, prior_name
    ) + _compare(
        EntityKind.REACTION, new.mappings, prior.mappings, _MAPPING_FIELDS, prior_name
    )
    issues = [
        IssueRecord.from_error(
            c.entity_kind,
            c.entity_id,
            MergeConflict(
                f"{c.field_name} differs from {prior_name}: {c.old_value!r} -> {c.new_value!r}"
            ),
            detail=prior_name,
        )
        for c in conflicts
    ]
    retained = sorted(set(prior.structures) - set(new.structures))
    if retained:
        logger.info("%s: %d metabolite(s) retained from prior database", prior_name, len(retained))
    if conflicts:
        logger.warning("%s: %d merge conflict(s)", prior_name, len(conflicts))

    report = DatabaseReport.from_dict(new.report.to_dict())
    report.conflicts.extend(conflicts)
    report.issues.extend(issues)
    return ChemicalDatabase(
        structures=_union(new.structures, prior.structures),
        comparisons=_union(new.comparisons, prior.comparisons),
        candidates=_union(new.candidates, prior.candidates),
        tables=_union(new.tables, prior.tables),
        mappings=_union(new.mappings, prior.mappings),
        bond_changes=_union(new.bond_changes, prior.bond_changes),
        report=report,
        config=dict(new.config),
    )
