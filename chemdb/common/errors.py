"""
Unified Error Hierarchy
=======================
Exception-based error system for every chemdb component.

Per-unit failures (one source, one metabolite, one reaction) are raised by
the component that detects them and caught at the unit boundary, where they
are converted to report issues with :meth:`ChemDBError.to_dict`.  Only
:class:`ConfigurationError` is allowed to abort a build.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for the unified error system."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ChemDBError(Exception):
    """Unified error base class for all chemdb errors.

    Attributes:
        code: Machine-readable error code (e.g. "SOURCE_UNAVAILABLE").
        message: Human-readable error description.
        severity: Error severity level.
    """

    default_code = "CHEMDB_ERROR"
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
    ):
        self.code = code or self.default_code
        self.message = message
        self.severity = severity or self.default_severity
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
        }


class ConfigurationError(ChemDBError):
    """Malformed identifier table, unreadable model, unwritable output directory."""
    default_code = "CONFIGURATION_ERROR"
    default_severity = ErrorSeverity.CRITICAL


class SourceUnavailable(ChemDBError):
    """Structure source could not be reached (network or service down)."""
    default_code = "SOURCE_UNAVAILABLE"
    default_severity = ErrorSeverity.LOW


class NoStructureFound(ChemDBError):
    """Structure source was reachable but holds no structure for the identifier."""
    default_code = "NO_STRUCTURE_FOUND"
    default_severity = ErrorSeverity.LOW


class ConversionError(ChemDBError):
    """Raised when a format conversion is unsupported or the input is invalid."""
    default_code = "CONVERSION_FAILED"
    default_severity = ErrorSeverity.LOW


class NoCandidatesForMetabolite(ChemDBError):
    default_code = "NO_CANDIDATES"


class UnresolvedTie(ChemDBError):
    """Two or more candidates share the top score."""
    default_code = "UNRESOLVED_TIE"
    default_severity = ErrorSeverity.LOW


class IncompleteReactionParticipants(ChemDBError):
    """A reaction participant has no chosen structure."""
    default_code = "INCOMPLETE_PARTICIPANTS"


class MappingServiceError(ChemDBError):
    """Atom-mapping process crashed, timed out or is missing a dependency."""
    default_code = "MAPPING_SERVICE_ERROR"
    default_severity = ErrorSeverity.HIGH


class NoMappingFound(ChemDBError):
    """Atom-mapping service ran but reported no valid mapping."""
    default_code = "NO_MAPPING_FOUND"


class InvalidMapping(ChemDBError):
    """Malformed mapping data handed to bond-change analysis."""
    default_code = "INVALID_MAPPING"


class MergeConflict(ChemDBError):
    """Two databases disagree on the value stored for one id."""
    default_code = "MERGE_CONFLICT"
    default_severity = ErrorSeverity.LOW
