"""
Structure Source Base
=====================

Abstract base for every structure source.  A source turns one raw
identifier of one metabolite into one :class:`StructureCandidate`, or
raises one of the typed, recoverable failures:

    SourceUnavailable  - network/service down; skip this source
    NoStructureFound   - reachable, but no structure for the identifier
    ConversionError    - structure retrieved but not convertible

Retrieved MOL files are written to ``<cache_dir>/<source>/<met_id>.mol``.
An existing file is re-used instead of retrieving again, and is only
overwritten when ``replace`` is set.

Usage::

    class MySource(StructureSource):
        name = "mine"

        def retrieve(self, raw_id, timeout):
            return molblock
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from chemdb.chem.converter import FormatConverter
from chemdb.chem.inchi import parse_inchi
from chemdb.common.errors import ConversionError
from chemdb.common.status import StandardisationApproach
from chemdb.models.structure_models import Metabolite, StructureCandidate

__all__ = ["StructureSource"]

logger = logging.getLogger(__name__)


class StructureSource(ABC):
    """Capability interface: raw identifier -> candidate structure."""

    name: str = ""

    def __init__(
        self,
        converter: FormatConverter,
        cache_dir: Optional[Path] = None,
        replace: bool = False,
    ) -> None:
        self.converter = converter
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.replace = replace

    # -- contract ----------------------------------------------------------

    @abstractmethod
    def retrieve(self, raw_id: str, timeout: float) -> str:
        """Return the MDL MOL block for *raw_id*."""
        raise NotImplementedError

    def identifier_for(self, metabolite: Metabolite) -> Optional[str]:
        """Raw identifier this source needs for *metabolite* (``None`` = skip)."""
        raw = metabolite.identifiers.get(self.name)
        if raw is None:
            return None
        raw = str(raw).strip()
        return raw or None

    def canonical_inchi(self, raw_id: str, molblock: str) -> str:
        return self.converter.convert(molblock, "mol", "inchi")

    # -- template ----------------------------------------------------------

    def fetch(self, met_id: str, raw_id: str, timeout: float) -> StructureCandidate:
        """Retrieve (or re-use) the structure and build the candidate."""
        molblock = self._read_cache(met_id)
        if molblock is None:
            molblock = self.retrieve(raw_id, timeout)
            self._write_cache(met_id, molblock)
        return self.build_candidate(met_id, raw_id, molblock)

    def build_candidate(self, met_id: str, raw_id: str, molblock: str) -> StructureCandidate:
        inchi = self.canonical_inchi(raw_id, molblock)
        try:
            layers = parse_inchi(inchi)
            formula, charge = layers.formula, layers.net_charge
        except ValueError as exc:
            raise ConversionError(f"{self.name}: {exc}") from exc
        return StructureCandidate(
            met_id=met_id,
            source=self.name,
            molblock=molblock,
            inchi=layers.inchi,
            formula=formula,
            charge=charge,
            standardisation=StandardisationApproach.BASIC,
            smiles=self._optional(molblock, "smiles"),
            inchikey=self._optional(molblock, "inchikey"),
        )

    def _optional(self, molblock: str, fmt: str) -> str:
        try:
            return self.converter.convert(molblock, "mol", fmt)
        except ConversionError:
            logger.debug("%s: no %s for structure", self.name, fmt)
            return ""

    # -- cache -------------------------------------------------------------

    def _cache_path(self, met_id: str) -> Optional[Path]:
        if self.cache_dir is None:
            return None
        return self.cache_dir / self.name / f"{met_id}.mol"

    def _read_cache(self, met_id: str) -> Optional[str]:
        path = self._cache_path(met_id)
        if path is None or self.replace or not path.exists():
            return None
        logger.debug("%s: re-using %s", self.name, path)
        return path.read_text(encoding="utf-8")

    def _write_cache(self, met_id: str, molblock: str) -> None:
        path = self._cache_path(met_id)
        if path is None:
            return
        if path.exists() and not self.replace:
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(molblock, encoding="utf-8")
