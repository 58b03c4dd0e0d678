"""
Structure sources — normalise one identifier source into candidate structures.

- base:              StructureSource interface, file cache, candidate building
- model_sources:     InChI / SMILES written on the model
- database_sources:  KEGG, HMDB, PubChem, ChEBI over HTTP
- directory_source:  MOL files of a prior database
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from chemdb.chem.converter import FormatConverter
from chemdb.common.config import BuildConfig
from chemdb.common.errors import ConfigurationError

from .base import StructureSource
from .database_sources import DATABASE_ENDPOINTS, DatabaseEndpoint, HttpStructureSource
from .directory_source import DirectorySource
from .model_sources import InChISource, SMILESSource

__all__ = [
    "StructureSource",
    "InChISource",
    "SMILESSource",
    "HttpStructureSource",
    "DatabaseEndpoint",
    "DirectorySource",
    "build_sources",
]

logger = logging.getLogger(__name__)


def build_sources(
    config: BuildConfig,
    converter: FormatConverter,
    session: Optional[requests.Session] = None,
) -> Dict[str, StructureSource]:
    """Instantiate the configured sources, then one per prior database.

    The returned dict preserves the configured order.
    """
    cache_dir = config.download_path
    sources: Dict[str, StructureSource] = {}
    for name in config.sources:
        if name == InChISource.name:
            sources[name] = InChISource(converter, cache_dir=cache_dir, replace=config.replace)
        elif name == SMILESSource.name:
            sources[name] = SMILESSource(converter, cache_dir=cache_dir, replace=config.replace)
        elif name in DATABASE_ENDPOINTS:
            sources[name] = HttpStructureSource(
                DATABASE_ENDPOINTS[name],
                converter,
                cache_dir=cache_dir,
                replace=config.replace,
                session=session,
            )
        else:
            raise ConfigurationError(f"Unknown structure source: {name!r}")
    for name, path in config.prior_databases():
        sources[name] = DirectorySource(name, path, converter)
    logger.debug("Structure sources: %s", ", ".join(sources))
    return sources
