"""
Model identifier sources — structures written on the model itself.

``InChISource`` keeps the InChI exactly as given (standard or not) as the
candidate's canonical InChI; ``SMILESSource`` derives it from the structure.
"""

import logging

from chemdb.chem.inchi import is_inchi
from chemdb.common.constants import SourceNames
from chemdb.common.errors import ConversionError, NoStructureFound
from chemdb.sources.base import StructureSource

__all__ = ["InChISource", "SMILESSource"]

logger = logging.getLogger(__name__)


class InChISource(StructureSource):
    """Structure from the InChI string attached to the metabolite."""

    name = SourceNames.INCHI

    def retrieve(self, raw_id: str, timeout: float) -> str:
        if not is_inchi(raw_id):
            raise NoStructureFound(f"Identifier is not an InChI: {raw_id!r}")
        try:
            return self.converter.convert(raw_id, "inchi", "mol")
        except ConversionError as exc:
            raise NoStructureFound(f"InChI not convertible: {exc.message}") from exc

    def canonical_inchi(self, raw_id: str, molblock: str) -> str:
        return raw_id.strip()


class SMILESSource(StructureSource):
    """Structure from the SMILES string attached to the metabolite."""

    name = SourceNames.SMILES

    def retrieve(self, raw_id: str, timeout: float) -> str:
        try:
            return self.converter.convert(raw_id, "smiles", "mol")
        except ConversionError as exc:
            raise NoStructureFound(f"SMILES not convertible: {exc.message}") from exc
