"""
Error taxonomy for ConceptExplorer.

InputError and ConfigurationError are raised to the caller and fail the
run. DegenerateClusteringError is raised by the clustering routines and
caught by the hyperparameter searches, which record the candidate as
invalid. ExternalServiceError wraps embedder/synthesizer failures and is
recovered locally wherever a fallback exists.
"""

__all__ = [
    'ConceptExplorerError',
    'InputError',
    'ConfigurationError',
    'DegenerateClusteringError',
    'ExternalServiceError',
    'AnalysisCancelled',
]


class ConceptExplorerError(Exception):
    """Base class for all ConceptExplorer errors."""


class InputError(ConceptExplorerError, ValueError):
    """Empty or too-small corpus, or malformed sentence records."""


class ConfigurationError(ConceptExplorerError, ValueError):
    """Contradictory or out-of-range analysis parameters."""


class DegenerateClusteringError(ConceptExplorerError):
    """A clustering configuration cannot produce a valid partition."""


class ExternalServiceError(ConceptExplorerError):
    """An embedding or label-synthesis call failed or timed out."""


class AnalysisCancelled(ConceptExplorerError):
    """The run was cancelled before it finished."""
