"""
Models
======

Data types for chart analysis.

Modules:
- signal_types: Signal enum, analysis result and response validation
"""

from .signal_types import (
    SignalType,
    AnalysisResult,
    extract_json,
    validate_analysis,
    parse_analysis,
)

__all__ = [
    "SignalType",
    "AnalysisResult",
    "extract_json",
    "validate_analysis",
    "parse_analysis",
]
