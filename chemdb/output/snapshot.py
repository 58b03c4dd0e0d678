"""
Debug snapshots — JSON dumps of intermediate pipeline state.

Written only when the ``debug`` option is on, one file per stage::

    {output_dir}/
        debug/
            reconciliation.json
            tables.json
            mapping.json

A failing snapshot write is logged and never aborts the build.

Usage::

    from chemdb.output.snapshot import save_snapshot, load_snapshot

    save_snapshot("tables", table_result.to_dict(), output_dir)
    payload = load_snapshot(output_dir, "tables")
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

__all__ = ["save_snapshot", "load_snapshot", "list_snapshots", "DEBUG_DIR"]

logger = logging.getLogger(__name__)

DEBUG_DIR = "debug"


def _debug_dir(output_dir: Path) -> Path:
    return Path(output_dir) / DEBUG_DIR


def save_snapshot(stage: str, payload: Dict[str, Any], output_dir: Path) -> Optional[Path]:
    """Write *payload* to ``debug/<stage>.json``; ``None`` if writing failed."""
    path = _debug_dir(output_dir) / f"{stage}.json"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, default=str), encoding="utf-8"
        )
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("Failed to save %s snapshot: %s", stage, exc)
        return None
    logger.debug("Snapshot saved: %s", path)
    return path


def load_snapshot(output_dir: Path, stage: str) -> Optional[Dict[str, Any]]:
    path = _debug_dir(output_dir) / f"{stage}.json"
    if not path.is_file():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


def list_snapshots(output_dir: Path) -> List[str]:
    """Stage names with a snapshot, sorted."""
    debug_dir = _debug_dir(output_dir)
    if not debug_dir.is_dir():
        return []
    return sorted(p.stem for p in debug_dir.glob("*.json"))
