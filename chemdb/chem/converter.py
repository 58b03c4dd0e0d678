"""
Format Conversion
=================
Converts structures between MDL MOL, SMILES, InChI and InChIKey and applies
the hydrogen standardisation approach.

Two implementations of :class:`FormatConverter`:

    RDKitFormatConverter      - in-process, RDKit (default)
    OpenBabelFormatConverter  - ``obabel`` subprocess, honours a timeout and
                                supports pH-dependent protonation

Every failure surfaces as :class:`ConversionError`.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional

from rdkit import Chem
from rdkit.Chem import AllChem

from chemdb.common.errors import ConversionError
from chemdb.common.status import StandardisationApproach

__all__ = ["FormatConverter", "RDKitFormatConverter", "OpenBabelFormatConverter", "FORMATS"]

logger = logging.getLogger(__name__)

FORMATS = ("mol", "smiles", "inchi", "inchikey")


class FormatConverter(ABC):
    """Capability interface for structure format conversion."""

    @abstractmethod
    def convert(self, payload: str, source_format: str, target_format: str) -> str:
        """Convert *payload* from *source_format* to *target_format*."""

    @abstractmethod
    def standardise(self, molblock: str, approach: StandardisationApproach) -> str:
        """Return *molblock* with hydrogens represented per *approach*."""

    def adjust_to_ph(self, molblock: str, ph: float) -> Optional[str]:
        """Protonate *molblock* for *ph*; ``None`` when unsupported."""
        return None

    @staticmethod
    def _check_formats(source_format: str, target_format: str) -> None:
        for fmt in (source_format, target_format):
            if fmt not in FORMATS:
                raise ConversionError(f"Unsupported format: {fmt!r}")
        if source_format == "inchikey":
            raise ConversionError("An InChIKey cannot be converted back to a structure")


# ---------------------------------------------------------------------------
# RDKit
# ---------------------------------------------------------------------------

class RDKitFormatConverter(FormatConverter):
    """Format conversion with RDKit; pH adjustment is not supported."""

    def convert(self, payload: str, source_format: str, target_format: str) -> str:
        self._check_formats(source_format, target_format)
        mol = self.to_mol(payload, source_format)
        return self.from_mol(mol, target_format)

    def standardise(self, molblock: str, approach: StandardisationApproach) -> str:
        if approach == StandardisationApproach.BASIC:
            return molblock
        mol = self.to_mol(molblock, "mol")
        if approach == StandardisationApproach.EXPLICIT_H:
            mol = Chem.AddHs(mol, addCoords=mol.GetNumConformers() > 0)
        else:
            mol = Chem.RemoveHs(mol)
        return self.from_mol(mol, "mol")

    @staticmethod
    def to_mol(payload: str, fmt: str) -> Chem.Mol:
        if not payload or not payload.strip():
            raise ConversionError(f"Empty {fmt} payload")
        if fmt == "mol":
            mol = Chem.MolFromMolBlock(payload, removeHs=False)
        elif fmt == "smiles":
            mol = Chem.MolFromSmiles(payload.strip())
        elif fmt == "inchi":
            mol = Chem.MolFromInchi(payload.strip(), removeHs=False)
        else:
            raise ConversionError(f"Cannot read structures from {fmt!r}")
        if mol is None:
            raise ConversionError(f"RDKit cannot parse {fmt} payload")
        return mol

    @staticmethod
    def from_mol(mol: Chem.Mol, fmt: str) -> str:
        try:
            if fmt == "mol":
                mol = Chem.Mol(mol)
                if mol.GetNumConformers() == 0:
                    AllChem.Compute2DCoords(mol)
                return Chem.MolToMolBlock(mol)
            if fmt == "smiles":
                return Chem.MolToSmiles(Chem.RemoveHs(mol))
            if fmt == "inchi":
                inchi = Chem.MolToInchi(mol)
            elif fmt == "inchikey":
                inchi = Chem.MolToInchiKey(mol)
            else:
                raise ConversionError(f"Cannot write structures as {fmt!r}")
        except ConversionError:
            raise
        except Exception as exc:
            raise ConversionError(f"RDKit failed writing {fmt}: {exc}") from exc
        if not inchi:
            raise ConversionError(f"RDKit produced an empty {fmt}")
        return inchi


# ---------------------------------------------------------------------------
# Open Babel
# ---------------------------------------------------------------------------

_OBABEL_FORMATS = {"mol": "mol", "smiles": "smi", "inchi": "inchi", "inchikey": "inchikey"}


class OpenBabelFormatConverter(FormatConverter):
    """Format conversion through the ``obabel`` command-line tool."""

    def __init__(self, executable: str = "obabel", timeout: float = 30.0) -> None:
        self.executable = executable
        self.timeout = timeout

    def convert(self, payload: str, source_format: str, target_format: str) -> str:
        self._check_formats(source_format, target_format)
        return self._run(payload, source_format, target_format, [])

    def standardise(self, molblock: str, approach: StandardisationApproach) -> str:
        if approach == StandardisationApproach.BASIC:
            return molblock
        flag = "-h" if approach == StandardisationApproach.EXPLICIT_H else "-d"
        return self._run(molblock, "mol", "mol", [flag])

    def adjust_to_ph(self, molblock: str, ph: float) -> Optional[str]:
        return self._run(molblock, "mol", "mol", ["-p", str(ph)])

    def _run(self, payload: str, source_format: str, target_format: str, extra: List[str]) -> str:
        cmd = [
            self.executable,
            f"-i{_OBABEL_FORMATS[source_format]}",
            f"-o{_OBABEL_FORMATS[target_format]}",
        ] + extra
        try:
            proc = subprocess.run(
                cmd,
                input=payload,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise ConversionError(f"obabel timed out after {self.timeout}s") from exc
        except OSError as exc:
            raise ConversionError(f"Cannot run {self.executable}: {exc}") from exc
        output = proc.stdout.strip()
        if proc.returncode != 0 or not output:
            raise ConversionError(
                f"obabel {source_format}->{target_format} failed: {proc.stderr.strip()}"
            )
        if target_format in ("smiles", "inchi", "inchikey"):
            # obabel appends the title after whitespace on line formats
            output = output.splitlines()[0].split()[0]
        else:
            output = proc.stdout
        logger.debug("obabel %s -> %s ok", source_format, target_format)
        return output
