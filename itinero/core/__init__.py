"""Scheduling, validation and repair engine."""

from .autofix import AutoFixer, auto_fix_trip
from .coherence import CoherenceValidator, validate_trip_coherence
from .exporters import trip_to_ics
from .geography import GeographyAnalyzer, analyze_geography
from .reporting import build_report, find_long_gaps, report_to_text
from .scheduler import DayScheduler
from .transport import TransportFeasibilityChecker, check_transport_feasibility

__all__ = [
    "AutoFixer",
    "CoherenceValidator",
    "DayScheduler",
    "GeographyAnalyzer",
    "TransportFeasibilityChecker",
    "analyze_geography",
    "auto_fix_trip",
    "build_report",
    "check_transport_feasibility",
    "find_long_gaps",
    "report_to_text",
    "trip_to_ics",
    "validate_trip_coherence",
]
