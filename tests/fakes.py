"""
Test doubles for the chemdb service interfaces.
"""

import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from rdkit import Chem

from chemdb.chem.atom_mapper import AtomMapper, MappingResponse
from chemdb.chem.converter import FormatConverter
from chemdb.chem.inchi import parse_inchi
from chemdb.chem.reaction_codec import RenderedTable, smiles_to_rxn_block
from chemdb.common.errors import ChemDBError, ConversionError
from chemdb.common.status import StandardisationApproach
from chemdb.models.structure_models import StructureCandidate
from chemdb.sources.base import StructureSource

GLUCOSE_INCHI = (
    "InChI=1S/C6H12O6/c7-1-2-3(8)4(9)5(10)6(11)12-2/h2-11H,1H2/t2-,3-,4+,5-,6?/m1/s1"
)
GLUCONATE_LIKE_INCHI = (
    "InChI=1S/C6H12O6/c7-1-2-3(8)4(9)5(10)6(11)12-2/h2-11H,1H2/p-1/t2-,3-,4+,5-,6?/m1/s1"
)


def molblock_from_smiles(smiles: str) -> str:
    return Chem.MolToMolBlock(Chem.MolFromSmiles(smiles))


class FakeConverter(FormatConverter):
    """Returns canned InChIs keyed by MOL payload; standardisation is a no-op."""

    def __init__(self, inchis: Optional[Dict[str, str]] = None) -> None:
        self.inchis = dict(inchis or {})
        self.standardised: List[str] = []

    def convert(self, payload: str, source_format: str, target_format: str) -> str:
        if target_format == "inchi" and payload in self.inchis:
            return self.inchis[payload]
        if target_format == "mol":
            return f"MOL:{payload}"
        raise ConversionError(f"fake cannot convert to {target_format}")

    def standardise(self, molblock: str, approach: StandardisationApproach) -> str:
        self.standardised.append(molblock)
        return molblock


class FakeSource(StructureSource):
    """Source whose answers are given per metabolite id.

    An answer is either an InChI string (turned into a candidate) or a
    ChemDBError instance (raised).
    """

    def __init__(self, name: str, answers: Dict[str, Union[str, ChemDBError]]) -> None:
        super().__init__(FakeConverter())
        self.name = name
        self.answers = answers
        self.calls: List[str] = []

    def identifier_for(self, metabolite):
        return metabolite.met_id if metabolite.met_id in self.answers else None

    def retrieve(self, raw_id: str, timeout: float) -> str:
        return f"mol-{self.name}-{raw_id}"

    def fetch(self, met_id: str, raw_id: str, timeout: float) -> StructureCandidate:
        self.calls.append(met_id)
        answer = self.answers[met_id]
        if isinstance(answer, ChemDBError):
            raise answer
        layers = parse_inchi(answer)
        return StructureCandidate(
            met_id=met_id,
            source=self.name,
            molblock=self.retrieve(raw_id, timeout),
            inchi=layers.inchi,
            formula=layers.formula,
            charge=layers.net_charge,
        )


class FakeMapper(AtomMapper):
    """Answers per reaction id: a mapped reaction SMILES or an error to raise."""

    name = "fake"

    def __init__(
        self,
        answers: Dict[str, Union[str, ChemDBError]],
        concurrent: bool = False,
    ) -> None:
        self.answers = answers
        self.supports_concurrent_calls = concurrent
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0
        self._guard = threading.Lock()

    def map(self, rendered: RenderedTable, timeout: float) -> MappingResponse:
        with self._guard:
            self.calls.append(rendered.rxn_id)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            answer = self.answers[rendered.rxn_id]
            if isinstance(answer, ChemDBError):
                raise answer
            return MappingResponse(rxn_block=smiles_to_rxn_block(answer), reaction_smiles=answer)
        finally:
            with self._guard:
                self.active -= 1
