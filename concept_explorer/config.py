"""
Analysis Parameters for ConceptExplorer
=======================================

Every tunable of the pipeline lives in one dataclass, AnalysisParams.
Defaults follow the interactive application the engine was extracted from.

Basic Usage:
    >>> from concept_explorer.config import AnalysisParams
    >>> params = AnalysisParams(k_concepts=8, auto_seed=True)
    >>> params.validate()

License: MIT
"""

from dataclasses import dataclass, field, fields, asdict
from typing import Dict, Optional, Tuple

from .errors import ConfigurationError

__all__ = [
    'STANCES',
    'CLUSTERING_MODES',
    'CUT_TYPES',
    'DIMENSION_MODES',
    'SOFTMAX_TEMPERATURE',
    'MEMBERSHIP_FLOOR',
    'ScoreWeights',
    'DEFAULT_SCORE_WEIGHTS',
    'AnalysisParams',
]


# =============================================================================
# Constants
# =============================================================================

STANCES = ('praise', 'critique', 'suggestion', 'neutral')
CLUSTERING_MODES = ('kmeans', 'hierarchical')
CUT_TYPES = ('count', 'granularity')
DIMENSION_MODES = ('manual', 'elbow', 'threshold')

# Soft membership: softmax temperature over negative cosine distance, and
# the floor under which a membership weight is dropped before renormalizing.
SOFTMAX_TEMPERATURE = 0.1
MEMBERSHIP_FLOOR = 0.05


# =============================================================================
# Composite Score Weights
# =============================================================================

@dataclass
class ScoreWeights:
    """
    Weights of the composite search objective.

    Positive terms (coherence, separation, stability) are added, penalty
    terms are subtracted. k_penalty is applied per unit of K and only in
    K search; label_penalty only in seed search.
    """
    coherence: float = 0.3
    separation: float = 0.25
    stability: float = 0.2
    dominance: float = 0.15
    micro_clusters: float = 0.05
    label_penalty: float = 0.05
    k_penalty: float = 0.001

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'ScoreWeights':
        return cls(**{k: float(v) for k, v in data.items()})


DEFAULT_SCORE_WEIGHTS = ScoreWeights()


# =============================================================================
# Analysis Parameters
# =============================================================================

@dataclass
class AnalysisParams:
    """
    Parameters of one analysis run.

    Clustering:
        k_concepts: Number of primary concepts (used when auto_k is off)
        clustering_mode: 'kmeans' or 'hierarchical'
        cut_type: Dendrogram cut, 'count' (exactly K) or 'granularity'
        granularity_percent: Cut height as a percentile of the merge range
        cluster_seed: Seed for k-means initialization
        soft_membership: Fractional membership across concepts

    Hygiene:
        min_cluster_size: Explicit floor for cluster size (None = off,
                          unless auto_min_cluster_size)
        dominance_cap: Split clusters above dominance_cap_threshold
        semantic_merge: Merge near-duplicate concepts

    Searches (run in the order unit -> weights -> K -> seed):
        auto_unit, auto_weights, auto_k, auto_seed

    Projection:
        dimension_mode: 'manual', 'elbow' or 'threshold'

    Graph:
        min_edge_weight, similarity_threshold, representative_count
    """
    # Clustering
    k_concepts: int = 6
    clustering_mode: str = 'kmeans'
    cut_type: str = 'count'
    granularity_percent: float = 60.0
    cluster_seed: int = 42
    soft_membership: bool = False

    # Detail concepts
    detail_concepts: bool = False
    detail_min_size: int = 6

    # Hygiene
    min_cluster_size: Optional[int] = None
    auto_min_cluster_size: bool = False
    dominance_cap: bool = False
    dominance_cap_threshold: float = 0.35
    dominance_max_rounds: int = 10
    semantic_merge: bool = False
    semantic_merge_threshold: float = 0.85
    max_concept_share: float = 0.3

    # K search
    auto_k: bool = False
    k_min: int = 4
    k_max: int = 20
    k_min_override: Optional[int] = None
    k_max_override: Optional[int] = None
    k_tie_epsilon: float = 0.02
    apply_concept_policy: bool = True

    # Seed search
    auto_seed: bool = False
    seed_candidates: int = 64
    seed_perturbations: int = 3
    seed_noise: float = 0.05

    # Unit-window search
    auto_unit: bool = False
    unit_window: int = 1
    unit_windows: Tuple[int, ...] = (1, 2, 3)

    # Evidence-weight search
    auto_weights: bool = False
    semantic_weight: float = 0.7
    frequency_weight: float = 0.3
    weight_grid_step: float = 0.1

    # Shared search settings
    stability_resamples: int = 5
    stability_fraction: float = 0.8
    score_weights: ScoreWeights = field(default_factory=ScoreWeights)
    n_jobs: int = 1

    # Projection
    dimension_mode: str = 'manual'
    num_dimensions: int = 3
    variance_threshold: float = 0.9
    elbow_fraction: float = 0.1
    max_scan_dimensions: int = 30

    # Graph
    min_edge_weight: float = 0.05
    similarity_threshold: float = 0.6
    representative_count: int = 8
    top_terms: int = 6

    # External services
    label_timeout: float = 10.0
    embed_timeout: float = 30.0

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> 'AnalysisParams':
        """Raise ConfigurationError on contradictory or out-of-range values."""
        if self.clustering_mode not in CLUSTERING_MODES:
            raise ConfigurationError(
                f"clustering_mode must be one of {CLUSTERING_MODES}, got '{self.clustering_mode}'"
            )
        if self.cut_type not in CUT_TYPES:
            raise ConfigurationError(
                f"cut_type must be one of {CUT_TYPES}, got '{self.cut_type}'"
            )
        if self.dimension_mode not in DIMENSION_MODES:
            raise ConfigurationError(
                f"dimension_mode must be one of {DIMENSION_MODES}, got '{self.dimension_mode}'"
            )
        if self.k_concepts < 1:
            raise ConfigurationError(f"k_concepts must be >= 1, got {self.k_concepts}")
        if self.k_min < 1 or self.k_max < self.k_min:
            raise ConfigurationError(
                f"Invalid K range: k_min={self.k_min}, k_max={self.k_max}"
            )
        if self.k_min_override is not None and self.k_min_override < 1:
            raise ConfigurationError(f"k_min_override must be >= 1, got {self.k_min_override}")
        if self.k_max_override is not None and self.k_max_override < 1:
            raise ConfigurationError(f"k_max_override must be >= 1, got {self.k_max_override}")
        if (self.k_min_override is not None and self.k_max_override is not None
                and self.k_min_override > self.k_max_override):
            raise ConfigurationError(
                f"k_min_override ({self.k_min_override}) is greater than "
                f"k_max_override ({self.k_max_override})"
            )
        if not 0.0 <= self.granularity_percent <= 100.0:
            raise ConfigurationError(
                f"granularity_percent must be in [0, 100], got {self.granularity_percent}"
            )
        for name in ('dominance_cap_threshold', 'variance_threshold',
                     'semantic_merge_threshold', 'max_concept_share',
                     'stability_fraction'):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ConfigurationError(f"{name} must be in (0, 1], got {value}")
        for name in ('semantic_weight', 'frequency_weight', 'min_edge_weight',
                     'similarity_threshold', 'elbow_fraction'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be in [0, 1], got {value}")
        if abs(self.semantic_weight + self.frequency_weight - 1.0) > 1e-6:
            raise ConfigurationError(
                "semantic_weight and frequency_weight must sum to 1, got "
                f"{self.semantic_weight} + {self.frequency_weight}"
            )
        if not 0.0 < self.weight_grid_step <= 1.0:
            raise ConfigurationError(
                f"weight_grid_step must be in (0, 1], got {self.weight_grid_step}"
            )
        if self.min_cluster_size is not None and self.min_cluster_size < 1:
            raise ConfigurationError(
                f"min_cluster_size must be >= 1, got {self.min_cluster_size}"
            )
        if not self.unit_windows or any(w < 1 for w in self.unit_windows):
            raise ConfigurationError(f"unit_windows must be positive, got {self.unit_windows}")
        if self.unit_window < 1:
            raise ConfigurationError(f"unit_window must be >= 1, got {self.unit_window}")
        for name in ('seed_candidates', 'num_dimensions', 'max_scan_dimensions',
                     'representative_count', 'top_terms', 'n_jobs',
                     'dominance_max_rounds', 'detail_min_size'):
            value = getattr(self, name)
            if value < 1:
                raise ConfigurationError(f"{name} must be >= 1, got {value}")
        if self.seed_perturbations < 0 or self.stability_resamples < 0:
            raise ConfigurationError("seed_perturbations and stability_resamples must be >= 0")
        if self.label_timeout <= 0:
            raise ConfigurationError(f"label_timeout must be > 0, got {self.label_timeout}")
        if self.embed_timeout <= 0:
            raise ConfigurationError(f"embed_timeout must be > 0, got {self.embed_timeout}")
        weights = self.score_weights
        if any(v < 0 for v in weights.to_dict().values()):
            raise ConfigurationError(f"score weights must be non-negative: {weights}")
        return self

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['unit_windows'] = list(self.unit_windows)
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'AnalysisParams':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown parameters: {sorted(unknown)}")
        data = dict(data)
        if 'score_weights' in data and isinstance(data['score_weights'], dict):
            data['score_weights'] = ScoreWeights.from_dict(data['score_weights'])
        if 'unit_windows' in data:
            data['unit_windows'] = tuple(int(w) for w in data['unit_windows'])
        return cls(**data)
