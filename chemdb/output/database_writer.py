"""
Database writer — persists a :class:`ChemicalDatabase` as a directory.

Layout::

    <output_dir>/
        database.json                     aggregate (write-once)
        report.json                       counts, statuses, issues, conflicts
        REPORT.md                         human-readable summary
        mets/molFiles/<met>.mol           chosen structures
        mets/comparison/<met>.json        comparison record per metabolite
        mets/sources/<source>/<met>.mol   every candidate (keep all candidates)
        rxns/rxnFiles/<rxn>.rxn           unmapped tables (.json if stoichiometry-only)
        rxns/atomMapped/<rxn>.rxn         mapped tables
        rxns/txtData/<rxn>.json           rinchi, rsmi, balance, bond changes

``database.json`` is created exclusively and written last, so an output
directory holding one is never built into again.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from chemdb.common.errors import ConfigurationError
from chemdb.models.database_models import ChemicalDatabase
from chemdb.output.report_generator import generate_report_markdown

__all__ = ["prepare_output_dir", "write_database", "DATABASE_FILE", "REPORT_FILE"]

logger = logging.getLogger(__name__)

DATABASE_FILE = "database.json"
REPORT_FILE = "report.json"


def _safe_name(entity_id: str) -> str:
    return entity_id.replace(os.sep, "_")


def _dump(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2, default=str)


def prepare_output_dir(output_dir: Path | str) -> Path:
    """Create *output_dir* and check it can receive a new database.

    Raises:
        ConfigurationError: a database already exists there, or the
            directory cannot be created or written.
    """
    path = Path(output_dir).expanduser()
    if (path / DATABASE_FILE).exists():
        raise ConfigurationError(f"{path} already holds {DATABASE_FILE}")
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"Cannot create output directory {path}: {exc}") from exc
    if not os.access(path, os.W_OK):
        raise ConfigurationError(f"Output directory {path} is not writable")
    return path


def write_database(
    database: ChemicalDatabase,
    output_dir: Path | str,
    unmapped_blocks: Optional[Mapping[str, str]] = None,
) -> Dict[str, Path]:
    """Write every file of the database; return the top-level paths."""
    root = Path(output_dir)
    unmapped_blocks = unmapped_blocks or {}
    mets, rxns = root / "mets", root / "rxns"
    for sub in (mets / "molFiles", mets / "comparison", rxns / "rxnFiles",
                rxns / "atomMapped", rxns / "txtData"):
        sub.mkdir(parents=True, exist_ok=True)

    for met_id, chosen in database.structures.items():
        (mets / "molFiles" / f"{_safe_name(met_id)}.mol").write_text(
            chosen.molblock, encoding="utf-8"
        )
    for met_id, record in database.comparisons.items():
        (mets / "comparison" / f"{_safe_name(met_id)}.json").write_text(
            _dump(record.to_dict()), encoding="utf-8"
        )
    for met_id, candidates in database.candidates.items():
        for candidate in candidates:
            target = mets / "sources" / candidate.source
            target.mkdir(parents=True, exist_ok=True)
            (target / f"{_safe_name(met_id)}.mol").write_text(candidate.molblock, encoding="utf-8")

    for rxn_id, table in database.tables.items():
        name = _safe_name(rxn_id)
        if rxn_id in unmapped_blocks:
            (rxns / "rxnFiles" / f"{name}.rxn").write_text(unmapped_blocks[rxn_id], encoding="utf-8")
        elif not table.complete:
            (rxns / "rxnFiles" / f"{name}.json").write_text(_dump(table.to_dict()), encoding="utf-8")

    for rxn_id, mapping in database.mappings.items():
        name = _safe_name(rxn_id)
        if mapping.mapped:
            (rxns / "atomMapped" / f"{name}.rxn").write_text(mapping.rxn_block, encoding="utf-8")
        bonds = database.bond_changes.get(rxn_id)
        table = database.tables.get(rxn_id)
        txt = {
            "rxn_id": rxn_id,
            "mapped": mapping.mapped,
            "reason": mapping.reason.value if mapping.reason else None,
            "balanced": mapping.balanced,
            "imbalance": dict(table.imbalance) if table else {},
            "rinchi": mapping.rinchi,
            "rsmi": mapping.rsmi,
            "inconsistent": mapping.inconsistent,
            "bond_changes": bonds.to_dict() if bonds else None,
        }
        (rxns / "txtData" / f"{name}.json").write_text(_dump(txt), encoding="utf-8")

    report_path = root / REPORT_FILE
    report_path.write_text(_dump(database.report.to_dict()), encoding="utf-8")
    markdown_path = root / "REPORT.md"
    markdown_path.write_text(generate_report_markdown(database), encoding="utf-8")

    db_path = root / DATABASE_FILE
    try:
        with db_path.open("x", encoding="utf-8") as fh:
            fh.write(_dump(database.to_dict()))
    except FileExistsError as exc:
        raise ConfigurationError(f"{db_path} already exists") from exc
    logger.info("Database written to %s", root)
    return {"database": db_path, "report": report_path, "markdown": markdown_path}
