"""
Common infrastructure — constants, errors, status enums, configuration.
"""

from .constants import BuildDefaults, ScoreWeights, SourceNames
from .errors import (
    ErrorSeverity,
    ChemDBError,
    ConfigurationError,
    SourceUnavailable,
    NoStructureFound,
    ConversionError,
    NoCandidatesForMetabolite,
    UnresolvedTie,
    IncompleteReactionParticipants,
    MappingServiceError,
    NoMappingFound,
    InvalidMapping,
    MergeConflict,
)
from .status import EntityKind, MappingReason, Side, StandardisationApproach, TieBreak
from .config import BuildConfig, load_config
