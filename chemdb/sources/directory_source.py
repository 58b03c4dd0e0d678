"""
Prior database source — ``<met_id>.mol`` files of an existing database.

The directory is either a bare folder of MOL files or a previous chemdb
output directory, whose chosen structures live in ``mets/molFiles``.
"""

import logging
from pathlib import Path
from typing import Optional

from chemdb.common.errors import NoStructureFound
from chemdb.models.structure_models import Metabolite
from chemdb.sources.base import StructureSource

__all__ = ["DirectorySource", "mol_directory"]

logger = logging.getLogger(__name__)


def mol_directory(root: Path) -> Path:
    nested = Path(root) / "mets" / "molFiles"
    return nested if nested.is_dir() else Path(root)


class DirectorySource(StructureSource):
    """Structures of a prior database, keyed by metabolite id."""

    def __init__(self, name: str, directory: Path, converter) -> None:
        super().__init__(converter, cache_dir=None, replace=False)
        self.name = name
        self.directory = mol_directory(directory)

    def identifier_for(self, metabolite: Metabolite) -> Optional[str]:
        return metabolite.met_id

    def retrieve(self, raw_id: str, timeout: float) -> str:
        path = self.directory / f"{raw_id}.mol"
        if not path.is_file():
            raise NoStructureFound(f"{self.name}: no {path.name}")
        return path.read_text(encoding="utf-8")
