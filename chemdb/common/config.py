"""
Build configuration — the explicit options object threaded through a build.

Every option of a database build lives on :class:`BuildConfig`.  The
assembler receives one instance and hands the relevant fields down to each
component; nothing reads configuration from module-level state.

Usage::

    from chemdb.common.config import BuildConfig

    config = BuildConfig.from_dict({"output_dir": "out", "h_mapping": False})
    config.validate()
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from chemdb.common.constants import BuildDefaults, SourceNames
from chemdb.common.errors import ConfigurationError
from chemdb.common.status import StandardisationApproach

__all__ = ["BuildConfig", "load_config"]


@dataclass
class BuildConfig:
    """Options of one chemoinformatic database build.

    Attributes:
        output_dir: Directory receiving the database (created if missing).
        print_level: Verbosity; 0 warnings, 1 info, 2+ debug.
        standardisation_approach: Hydrogen representation for structures.
        debug: Write intermediate JSON snapshots under ``debug/``.
        adjust_to_model_ph: Ask the converter to protonate at ``model_ph``.
        keep_mol_comparison: Keep every candidate, not only the winner.
        dirs_to_compare: Prior databases to compare and merge against.
        dir_names: Names of the prior databases (same order).
        only_unmapped: Write reaction tables without atom mapping.
        h_mapping: Expand hydrogens before atom mapping.
        metabolites: Subset of metabolite ids (empty = all).
        reactions: Subset of reaction ids (empty = all).
        sources: Ordered source names; also the tie-break priority.
        replace: Overwrite previously downloaded structure files.
        download_dir: Cache for downloaded structures
            (default ``<output_dir>/downloads``).
    """

    output_dir: str = "."
    print_level: int = BuildDefaults.PRINT_LEVEL
    standardisation_approach: StandardisationApproach = StandardisationApproach.EXPLICIT_H
    debug: bool = False
    adjust_to_model_ph: bool = False
    model_ph: float = BuildDefaults.MODEL_PH
    keep_mol_comparison: bool = False
    dirs_to_compare: List[str] = field(default_factory=list)
    dir_names: List[str] = field(default_factory=list)
    only_unmapped: bool = False
    h_mapping: bool = True
    metabolites: List[str] = field(default_factory=list)
    reactions: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=lambda: list(SourceNames.DEFAULT_ORDER))
    max_workers: int = BuildDefaults.MAX_WORKERS
    source_timeout: float = BuildDefaults.SOURCE_TIMEOUT
    conversion_timeout: float = BuildDefaults.CONVERSION_TIMEOUT
    mapping_timeout: float = BuildDefaults.MAPPING_TIMEOUT
    replace: bool = False
    download_dir: Optional[str] = None

    # -- derived paths -----------------------------------------------------

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    @property
    def download_path(self) -> Path:
        if self.download_dir:
            return Path(self.download_dir)
        return self.output_path / "downloads"

    def prior_databases(self) -> List[tuple]:
        """Return ``(name, path)`` pairs for the prior databases."""
        pairs = []
        for idx, path in enumerate(self.dirs_to_compare):
            name = self.dir_names[idx] if idx < len(self.dir_names) else Path(path).name
            pairs.append((name, Path(path).expanduser()))
        return pairs

    def source_priority(self) -> List[str]:
        """Source names in tie-break order (configured sources, then prior dbs)."""
        return list(self.sources) + [name for name, _ in self.prior_databases()]

    # -- validation --------------------------------------------------------

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` on inconsistent options."""
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}")
        for name in ("source_timeout", "conversion_timeout", "mapping_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.dir_names and len(self.dir_names) != len(self.dirs_to_compare):
            raise ConfigurationError(
                "dir_names must name every entry of dirs_to_compare "
                f"({len(self.dir_names)} names for {len(self.dirs_to_compare)} dirs)"
            )
        if len(set(self.sources)) != len(self.sources):
            raise ConfigurationError("sources contains duplicates")
        clash = set(self.sources) & {name for name, _ in self.prior_databases()}
        if clash:
            raise ConfigurationError(f"dir_names clash with source names: {sorted(clash)}")
        for name, path in self.prior_databases():
            if not path.is_dir():
                raise ConfigurationError(f"Prior database '{name}' not found: {path}")

    # -- (de)serialization -------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        d["standardisation_approach"] = self.standardisation_approach.value
        for key in ("dirs_to_compare", "dir_names", "metabolites", "reactions", "sources"):
            d[key] = list(d[key])
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BuildConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        kwargs = dict(d)
        approach = kwargs.get("standardisation_approach")
        if approach is not None and not isinstance(approach, StandardisationApproach):
            try:
                kwargs["standardisation_approach"] = StandardisationApproach(approach)
            except ValueError as exc:
                raise ConfigurationError(
                    f"Unknown standardisation approach: {approach!r}"
                ) from exc
        return cls(**kwargs)


def load_config(path: Path | str) -> BuildConfig:
    """Load a :class:`BuildConfig` from a JSON file."""
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Cannot read configuration {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError("configuration file must contain a JSON object")
    return BuildConfig.from_dict(payload)
