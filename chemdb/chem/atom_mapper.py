"""
Atom Mapping Module
===================
Capability interface for atom-mapping services plus two implementations.

Public API:
    AtomMapper            - abstract service: map(rendered, timeout) -> MappingResponse
    MappingResponse       - mapped RXN block + mapped reaction SMILES
    RXNMapperAtomMapper   - in-process RXNMapper (optional ``rxnmapper`` extra)
    RDTAtomMapper         - Reaction Decoder Tool jar run as a subprocess

A mapper either returns a :class:`MappingResponse` or raises
:class:`NoMappingFound` (the service ran and found nothing) or
:class:`MappingServiceError` (crash, timeout, missing dependency).
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from chemdb.chem.reaction_codec import RenderedTable, rxn_block_to_smiles, smiles_to_rxn_block
from chemdb.common.errors import ConversionError, MappingServiceError, NoMappingFound

__all__ = ["AtomMapper", "MappingResponse", "RXNMapperAtomMapper", "RDTAtomMapper"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappingResponse:
    """Mapped reaction returned by an atom-mapping service."""

    rxn_block: str
    reaction_smiles: str
    confidence: Optional[float] = None


class AtomMapper(ABC):
    """Abstract atom-mapping service.

    ``supports_concurrent_calls`` tells the orchestrator whether calls may
    overlap; when false they are serialised behind a lock.
    """

    name = "mapper"
    supports_concurrent_calls = False

    @abstractmethod
    def map(self, rendered: RenderedTable, timeout: float) -> MappingResponse:
        ...


class RXNMapperAtomMapper(AtomMapper):
    """Attention-guided mapping with RXNMapper, run in-process.

    The model is loaded on first use. The call runs in a helper thread so
    a timeout can be honoured; an expired call is left to finish in the
    background and its result is discarded.
    """

    name = "rxnmapper"
    supports_concurrent_calls = False

    def __init__(self) -> None:
        self._mapper: Any = None

    def _load(self) -> Any:
        if self._mapper is None:
            try:
                from rxnmapper import RXNMapper
            except ImportError as exc:
                raise MappingServiceError(
                    "rxnmapper is not installed (pip install 'chemdb[rxnmapper]')"
                ) from exc
            self._mapper = RXNMapper()
        return self._mapper

    def _map_smiles(self, reaction_smiles: str) -> List[dict]:
        return self._load().get_attention_guided_atom_maps([reaction_smiles])

    def map(self, rendered: RenderedTable, timeout: float) -> MappingResponse:
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._map_smiles, rendered.reaction_smiles)
        try:
            mapped_list = future.result(timeout=timeout)
        except FutureTimeout as exc:
            raise MappingServiceError(
                f"{rendered.rxn_id}: rxnmapper timed out after {timeout:g}s"
            ) from exc
        except MappingServiceError:
            raise
        except Exception as exc:
            raise MappingServiceError(f"{rendered.rxn_id}: rxnmapper failed: {exc}") from exc
        finally:
            executor.shutdown(wait=False)

        if not mapped_list or not mapped_list[0].get("mapped_rxn"):
            raise NoMappingFound(f"{rendered.rxn_id}: rxnmapper returned no mapping")
        mapped = mapped_list[0]
        try:
            rxn_block = smiles_to_rxn_block(mapped["mapped_rxn"])
        except ConversionError as exc:
            raise NoMappingFound(f"{rendered.rxn_id}: unusable mapping ({exc.message})") from exc
        return MappingResponse(
            rxn_block=rxn_block,
            reaction_smiles=mapped["mapped_rxn"],
            confidence=mapped.get("confidence"),
        )


class RDTAtomMapper(AtomMapper):
    """Reaction Decoder Tool, one ``java -jar`` process per reaction.

    RDT writes ``ECBLAST_<name>_AAM.rxn`` into its working directory; every
    call runs in its own temporary directory so calls may overlap.
    """

    name = "rdt"
    supports_concurrent_calls = True

    def __init__(self, jar_path: str, java: str = "java") -> None:
        self.jar_path = str(Path(jar_path).expanduser())
        self.java = java

    def command(self, rxn_file: Path) -> List[str]:
        return [
            self.java, "-jar", self.jar_path,
            "-Q", "RXN", "-q", str(rxn_file),
            "-g", "-j", "AAM", "-f", "TEXT",
        ]

    def map(self, rendered: RenderedTable, timeout: float) -> MappingResponse:
        with tempfile.TemporaryDirectory(prefix="chemdb_rdt_") as tmp:
            workdir = Path(tmp)
            rxn_file = workdir / f"{rendered.rxn_id}.rxn"
            rxn_file.write_text(rendered.rxn_block, encoding="utf-8")
            try:
                proc = subprocess.run(
                    self.command(rxn_file),
                    cwd=workdir,
                    capture_output=True,
                    text=True,
                    timeout=timeout,
                )
            except subprocess.TimeoutExpired as exc:
                raise MappingServiceError(
                    f"{rendered.rxn_id}: RDT timed out after {timeout:g}s"
                ) from exc
            except OSError as exc:
                raise MappingServiceError(f"{rendered.rxn_id}: cannot run RDT: {exc}") from exc

            output = workdir / f"ECBLAST_{rxn_file.stem}_AAM.rxn"
            if not output.is_file():
                if proc.returncode != 0:
                    raise MappingServiceError(
                        f"{rendered.rxn_id}: RDT exited with {proc.returncode}: "
                        f"{proc.stderr.strip()[:200]}"
                    )
                raise NoMappingFound(f"{rendered.rxn_id}: RDT produced no mapping")
            rxn_block = output.read_text(encoding="utf-8")

        try:
            smiles = rxn_block_to_smiles(rxn_block)
        except ConversionError as exc:
            raise NoMappingFound(f"{rendered.rxn_id}: unreadable RDT output ({exc.message})") from exc
        logger.debug("%s: RDT mapping %s", rendered.rxn_id, smiles)
        return MappingResponse(rxn_block=rxn_block, reaction_smiles=smiles)
