"""
RadioCity Explanation Client

Async client for the external RF explanation service.
"""

from .client import (
    ExplanationClient,
    ExplanationRequest,
    ExplanationResult,
    MalformedAnalysisError,
    RfAnalysis,
    build_context,
)

__all__ = [
    'ExplanationClient',
    'ExplanationRequest',
    'ExplanationResult',
    'MalformedAnalysisError',
    'RfAnalysis',
    'build_context',
]
