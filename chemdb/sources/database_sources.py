"""
Chemical database sources — MOL files downloaded over HTTP.

Each database is described by a :class:`DatabaseEndpoint`: a URL template
and an identifier normaliser.  Transport failures, timeouts and server
errors raise :class:`SourceUnavailable`; a missing record or a body that is
not a MOL/SDF structure raises :class:`NoStructureFound`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import requests

from chemdb.common.constants import SourceNames
from chemdb.common.errors import NoStructureFound, SourceUnavailable
from chemdb.sources.base import StructureSource

__all__ = ["DatabaseEndpoint", "HttpStructureSource", "DATABASE_ENDPOINTS"]

logger = logging.getLogger(__name__)

_MOL_END = "M  END"


def _strip_prefix(prefix: str) -> Callable[[str], str]:
    pattern = re.compile(rf"^{prefix}:?", re.IGNORECASE)
    return lambda raw: pattern.sub("", raw.strip())


def _hmdb_id(raw: str) -> str:
    # HMDB moved from 5 to 7 digit accessions
    digits = re.sub(r"^HMDB", "", raw.strip(), flags=re.IGNORECASE)
    return f"HMDB{digits.zfill(7)}" if digits.isdigit() else raw.strip()


@dataclass(frozen=True)
class DatabaseEndpoint:
    name: str
    url_template: str
    normalise: Callable[[str], str] = str.strip


DATABASE_ENDPOINTS: Dict[str, DatabaseEndpoint] = {
    SourceNames.KEGG: DatabaseEndpoint(
        SourceNames.KEGG, "https://rest.kegg.jp/get/cpd:{id}/mol", _strip_prefix("cpd")
    ),
    SourceNames.HMDB: DatabaseEndpoint(
        SourceNames.HMDB, "https://hmdb.ca/structures/metabolites/{id}.mol", _hmdb_id
    ),
    SourceNames.PUBCHEM: DatabaseEndpoint(
        SourceNames.PUBCHEM,
        "https://pubchem.ncbi.nlm.nih.gov/rest/pug/compound/cid/{id}/record/SDF?record_type=2d",
        _strip_prefix("CID"),
    ),
    SourceNames.CHEBI: DatabaseEndpoint(
        SourceNames.CHEBI,
        "https://www.ebi.ac.uk/chebi/saveStructure.do?defaultImage=true&chebiId={id}&imageId=0",
        _strip_prefix("CHEBI"),
    ),
}


class HttpStructureSource(StructureSource):
    """Download MOL files from one chemical database."""

    def __init__(
        self,
        endpoint: DatabaseEndpoint,
        converter,
        cache_dir=None,
        replace: bool = False,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(converter, cache_dir=cache_dir, replace=replace)
        self.endpoint = endpoint
        self.name = endpoint.name
        self.session = session or requests.Session()

    def url_for(self, raw_id: str) -> str:
        return self.endpoint.url_template.format(id=self.endpoint.normalise(raw_id))

    def retrieve(self, raw_id: str, timeout: float) -> str:
        url = self.url_for(raw_id)
        try:
            response = self.session.get(url, timeout=timeout)
        except requests.exceptions.Timeout as exc:
            raise SourceUnavailable(f"{self.name}: timed out after {timeout}s") from exc
        except requests.exceptions.RequestException as exc:
            raise SourceUnavailable(f"{self.name}: {exc}") from exc

        if response.status_code >= 500:
            raise SourceUnavailable(f"{self.name}: HTTP {response.status_code} for {url}")
        if response.status_code != 200:
            raise NoStructureFound(f"{self.name}: HTTP {response.status_code} for {raw_id}")

        molblock = extract_molblock(response.text)
        if molblock is None:
            raise NoStructureFound(f"{self.name}: no structure in response for {raw_id}")
        logger.debug("%s: downloaded %s", self.name, raw_id)
        return molblock


def extract_molblock(text: str) -> Optional[str]:
    """Return the first MOL block of a MOL/SDF body, or ``None``."""
    if not text or _MOL_END not in text:
        return None
    head = text.split(_MOL_END, 1)[0]
    return head + _MOL_END + "\n"
