"""
Identifier table — spreadsheet of per-source raw identifiers.

One row per metabolite; the id column is one of ``mets``, ``met``, ``id``
or ``metabolite``, the other columns are matched case-insensitively to
source names (``KEGG``, ``keggId``, ``pubChemId``... all work).  Columns
that name no known source are ignored.

Usage::

    table = read_identifier_table("metaboliteIds.xlsx")
    changed = add_met_info(model, table)
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from chemdb.common.constants import SourceNames
from chemdb.common.errors import ConfigurationError
from chemdb.io.model_loader import MetabolicModel

__all__ = ["read_identifier_table", "add_met_info", "ID_COLUMNS"]

logger = logging.getLogger(__name__)

ID_COLUMNS = ("mets", "met", "id", "metabolite")
_COMPARTMENT = re.compile(r"(\[[^\]]+\]|_[a-z]\d?)$")


def _source_for_column(column: str, sources: Iterable[str]) -> Optional[str]:
    key = re.sub(r"[^a-z0-9]", "", str(column).lower())
    for candidate in (key, key[:-2] if key.endswith("id") else key):
        if candidate in sources:
            return candidate
    return None


def _read_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix in (".xlsx", ".xls"):
        return pd.read_excel(path, dtype=str)
    if suffix == ".tsv":
        return pd.read_csv(path, sep="\t", dtype=str)
    if suffix == ".csv":
        return pd.read_csv(path, dtype=str)
    raise ConfigurationError(f"Unsupported identifier table format: {path.suffix}")


def read_identifier_table(
    path: Path | str,
    sources: Iterable[str] = SourceNames.DEFAULT_ORDER,
) -> Dict[str, Dict[str, str]]:
    """Return ``{met_id: {source: raw_id}}`` (blank cells omitted)."""
    path = Path(path)
    sources = tuple(sources)
    try:
        frame = _read_frame(path)
    except ConfigurationError:
        raise
    except (OSError, ValueError, ImportError) as exc:
        raise ConfigurationError(f"Cannot read identifier table {path}: {exc}") from exc

    columns = {str(c).strip().lower(): c for c in frame.columns}
    id_column = next((columns[c] for c in ID_COLUMNS if c in columns), None)
    if id_column is None:
        raise ConfigurationError(
            f"Identifier table {path.name} has no id column (one of {', '.join(ID_COLUMNS)})"
        )
    source_columns = {}
    for column in frame.columns:
        if column == id_column:
            continue
        source = _source_for_column(column, sources)
        if source is None:
            logger.debug("Identifier table: ignoring column %s", column)
        elif source not in source_columns.values():
            source_columns[column] = source

    table: Dict[str, Dict[str, str]] = {}
    for _, row in frame.iterrows():
        met_id = row[id_column]
        if pd.isna(met_id) or not str(met_id).strip():
            continue
        ids = {}
        for column, source in source_columns.items():
            value = row[column]
            if pd.isna(value) or not str(value).strip():
                continue
            ids[source] = str(value).strip()
        table[str(met_id).strip()] = ids
    logger.info("Identifier table %s: %d metabolites", path.name, len(table))
    return table


def add_met_info(
    model: MetabolicModel,
    table: Dict[str, Dict[str, str]],
    replace: bool = False,
) -> List[str]:
    """Attach identifiers from *table* to the model's metabolites.

    A model id without an exact table row is looked up again without its
    compartment suffix (``glc_D[c]`` -> ``glc_D``).  Existing identifiers
    are kept unless *replace* is set.  Returns the ids whose identifiers
    changed.
    """
    changed = []
    for met_id, metabolite in model.metabolites.items():
        row = table.get(met_id)
        if row is None:
            row = table.get(_COMPARTMENT.sub("", met_id))
        if not row:
            continue
        effect = False
        for source, raw_id in row.items():
            current = metabolite.identifiers.get(source)
            if current == raw_id or (current and not replace):
                continue
            metabolite.identifiers[source] = raw_id
            effect = True
        if effect:
            changed.append(met_id)
    logger.info("Identifiers added to %d metabolite(s)", len(changed))
    return changed
