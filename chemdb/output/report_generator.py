"""
Report generator — ``REPORT.md`` summary of a database build.

Sections:

1. Counts
2. Metabolites (no candidate, unresolved ties)
3. Reactions (not mapped with reason, inconsistent mappings)
4. Issues
5. Merge conflicts

Usage::

    from chemdb.output.report_generator import generate_report_markdown

    text = generate_report_markdown(database)
"""

from __future__ import annotations

import logging
from typing import Dict, List

from chemdb.common.errors import NoCandidatesForMetabolite, UnresolvedTie
from chemdb.models.database_models import ChemicalDatabase

__all__ = ["generate_report_markdown"]

logger = logging.getLogger(__name__)


def _table(header: List[str], rows: List[List[str]]) -> List[str]:
    lines = ["| " + " | ".join(header) + " |", "|" + "|".join("---" for _ in header) + "|"]
    for row in rows:
        lines.append("| " + " | ".join(str(c).replace("|", "\\|") for c in row) + " |")
    lines.append("")
    return lines


def _not_mapped(database: ChemicalDatabase) -> Dict[str, str]:
    return {
        rxn_id: m.reason.value if m.reason else "unknown"
        for rxn_id, m in sorted(database.mappings.items())
        if not m.mapped
    }


def generate_report_markdown(database: ChemicalDatabase) -> str:
    report = database.report
    lines: List[str] = ["# Chemoinformatic Database Report", ""]

    # --- 1. Counts ---
    lines += ["## Counts", ""]
    lines += _table(["Quantity", "Value"], [[k, str(v)] for k, v in report.counts.items()])
    if report.cancelled:
        lines += [f"Cancelled before start: {', '.join(report.cancelled)}", ""]

    # --- 2. Metabolites ---
    lines += ["## Metabolites", ""]
    missing = [i.entity_id for i in report.issues_with_code(NoCandidatesForMetabolite.default_code)]
    lines.append(f"**Without candidate:** {', '.join(missing) if missing else 'none'}")
    lines.append("")
    ties = report.issues_with_code(UnresolvedTie.default_code)
    if ties:
        lines += _table(
            ["Metabolite", "Tied sources", "Chosen"],
            [
                [t.entity_id, t.detail or "", (database.structures.get(t.entity_id).source
                                               if t.entity_id in database.structures else "")]
                for t in ties
            ],
        )

    # --- 3. Reactions ---
    lines += ["## Reactions", ""]
    not_mapped = _not_mapped(database)
    if not_mapped:
        lines += _table(["Reaction", "Reason"], [[k, v] for k, v in not_mapped.items()])
    else:
        lines += ["Every tabulated reaction was mapped.", ""]
    inconsistent = sorted(k for k, m in database.mappings.items() if m.inconsistent)
    if inconsistent:
        lines += [f"**Inconsistent atom mappings:** {', '.join(inconsistent)}", ""]

    # --- 4. Issues ---
    lines += ["## Issues", ""]
    if report.issues:
        lines += _table(
            ["Kind", "Id", "Code", "Severity", "Message"],
            [[i.entity_kind.value, i.entity_id, i.code, i.severity, i.message]
             for i in report.issues],
        )
    else:
        lines += ["No issues.", ""]

    # --- 5. Merge conflicts ---
    if report.conflicts:
        lines += ["## Merge Conflicts", ""]
        lines += _table(
            ["Prior", "Kind", "Id", "Field", "Old", "New"],
            [[c.prior_name, c.entity_kind.value, c.entity_id, c.field_name,
              str(c.old_value), str(c.new_value)] for c in report.conflicts],
        )

    logger.debug("Report: %d issue(s), %d conflict(s)", len(report.issues), len(report.conflicts))
    return "\n".join(lines)
