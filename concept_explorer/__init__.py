"""
ConceptExplorer: Juror-Concept Extraction and Embedding
=======================================================

Builds an explainable juror <-> concept graph from stance-tagged juror
feedback sentences and their embeddings.

Three products per analysis run:
  - Concepts:  coherent sentence clusters (k-means or hierarchical),
               cleaned by hygiene passes, with optional detail concepts
  - Embedding: jurors and concepts on a few principal axes named by their
               extreme nodes, plus user-defined anchor axes
  - Graph:     weighted juror-concept, concept-concept and juror-juror
               links with stances, evidence and bridge flags

Cluster count, seed, text-unit window and evidence weights can be tuned by
multi-candidate search.

Basic Usage:
    >>> from concept_explorer import ConceptExplorer, AnalysisParams
    >>> ce = ConceptExplorer.from_records(records, params=AnalysisParams(auto_k=True))
    >>> result = ce.analyze()
    >>> result.save("analysis.json")

License: MIT
Version: 0.1.0
"""

from .core import (
    ConceptExplorer,
    ProgressReporter,
    main
)

from .config import (
    AnalysisParams,
    ScoreWeights,
    DEFAULT_SCORE_WEIGHTS,
    SOFTMAX_TEMPERATURE,
    MEMBERSHIP_FLOOR,
    STANCES
)

from .errors import (
    ConceptExplorerError,
    InputError,
    ConfigurationError,
    DegenerateClusteringError,
    ExternalServiceError,
    AnalysisCancelled
)

from .models import (
    Sentence,
    Concept,
    MembershipWeight,
    ComponentScores,
    CandidateResult,
    SearchOutcome,
    AxisLabel,
    AnchorPole,
    AnchorAxis,
    GraphNode,
    GraphLink,
    AnalysisResult
)

from .vectors import VectorStore

from .clustering import (
    cluster,
    ClusteringResult,
    detail_k
)

from .search import (
    run_search,
    search_unit_window,
    search_evidence_weights,
    search_k,
    search_seed
)

from .projection import (
    principal_axes,
    select_num_dimensions,
    score_anchor_axes
)

__version__ = "0.1.0"
__all__ = [
    # Core
    'ConceptExplorer',
    'ProgressReporter',
    'main',
    # Config
    'AnalysisParams',
    'ScoreWeights',
    'DEFAULT_SCORE_WEIGHTS',
    'SOFTMAX_TEMPERATURE',
    'MEMBERSHIP_FLOOR',
    'STANCES',
    # Errors
    'ConceptExplorerError',
    'InputError',
    'ConfigurationError',
    'DegenerateClusteringError',
    'ExternalServiceError',
    'AnalysisCancelled',
    # Models
    'Sentence',
    'Concept',
    'MembershipWeight',
    'ComponentScores',
    'CandidateResult',
    'SearchOutcome',
    'AxisLabel',
    'AnchorPole',
    'AnchorAxis',
    'GraphNode',
    'GraphLink',
    'AnalysisResult',
    # Vectors and clustering
    'VectorStore',
    'cluster',
    'ClusteringResult',
    'detail_k',
    # Search
    'run_search',
    'search_unit_window',
    'search_evidence_weights',
    'search_k',
    'search_seed',
    # Projection
    'principal_axes',
    'select_num_dimensions',
    'score_anchor_axes',
]
