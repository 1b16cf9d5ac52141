"""
Data Model for ConceptExplorer
==============================

Plain dataclasses for the inputs (Sentence), the intermediate products
(Concept, MembershipWeight, CandidateResult) and the assembled result
(GraphNode, GraphLink, AnalysisResult).

Every result entity converts to and from plain JSON types through
to_dict() / from_dict(), so an AnalysisResult can be exported and reloaded
without further computation.

Basic Usage:
    >>> result = explorer.analyze()
    >>> result.save("analysis.json")
    >>> again = AnalysisResult.load("analysis.json")
    >>> again.nodes == result.nodes
    True

License: MIT
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

__all__ = [
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
    'MergeDiagnostics',
    'SplitRecord',
    'DominanceDiagnostics',
    'VarianceStats',
    'AnalysisResult',
]


def _floats(values) -> List[float]:
    return [float(v) for v in values]


# =============================================================================
# Inputs
# =============================================================================

@dataclass(frozen=True)
class Sentence:
    """A stance-tagged juror sentence with its embedding."""
    id: str
    juror: str
    text: str
    stance: str
    embedding: np.ndarray = field(compare=False, repr=False)
    unit_window: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'juror': self.juror,
            'text': self.text,
            'stance': self.stance,
            'embedding': _floats(self.embedding),
            'unit_window': self.unit_window,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Sentence':
        return cls(
            id=str(data['id']),
            juror=str(data['juror']),
            text=str(data.get('text', '')),
            stance=str(data.get('stance', 'neutral')),
            embedding=np.asarray(data['embedding'], dtype=float),
            unit_window=int(data.get('unit_window', 1)),
        )


# =============================================================================
# Concepts and Memberships
# =============================================================================

@dataclass
class Concept:
    """
    A cluster of sentences.

    Primary concepts are first-level clusters. Detail concepts are
    second-level clusters of one primary concept's members: they carry the
    parent's id in parent_id and never have children themselves.
    """
    id: str
    label: str
    size: int
    centroid: np.ndarray = field(compare=False, repr=False)
    top_terms: List[str] = field(default_factory=list)
    representative_sentence_ids: List[str] = field(default_factory=list)
    detail_concept_ids: List[str] = field(default_factory=list)
    parent_id: Optional[str] = None
    level: str = 'primary'
    one_liner: str = ''
    label_source: str = 'rule'

    @property
    def is_detail(self) -> bool:
        return self.level == 'detail'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'label': self.label,
            'size': self.size,
            'centroid': _floats(self.centroid),
            'top_terms': list(self.top_terms),
            'representative_sentence_ids': list(self.representative_sentence_ids),
            'detail_concept_ids': list(self.detail_concept_ids),
            'parent_id': self.parent_id,
            'level': self.level,
            'one_liner': self.one_liner,
            'label_source': self.label_source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Concept':
        data = dict(data)
        data['centroid'] = np.asarray(data['centroid'], dtype=float)
        return cls(**data)


@dataclass
class MembershipWeight:
    """Fractional membership of one sentence in one concept, weight in (0, 1]."""
    sentence_id: str
    concept_id: str
    weight: float

    def to_dict(self) -> Dict[str, Any]:
        return {'sentence_id': self.sentence_id, 'concept_id': self.concept_id,
                'weight': float(self.weight)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MembershipWeight':
        return cls(**data)


# =============================================================================
# Hyperparameter Search Results
# =============================================================================

@dataclass
class ComponentScores:
    """Raw (unweighted) terms of the composite search objective."""
    coherence: float = 0.0
    separation: float = 0.0
    stability: float = 0.0
    dominance: float = 0.0
    micro_clusters: float = 0.0
    label_penalty: float = 0.0
    k_penalty: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            'coherence': float(self.coherence),
            'separation': float(self.separation),
            'stability': float(self.stability),
            'dominance': float(self.dominance),
            'micro_clusters': float(self.micro_clusters),
            'label_penalty': float(self.label_penalty),
            'k_penalty': float(self.k_penalty),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> 'ComponentScores':
        return cls(**data)


@dataclass
class CandidateResult:
    """One trial of a hyperparameter search."""
    kind: str
    params: Dict[str, Any]
    score: float
    components: ComponentScores
    valid: bool = True
    reason: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'params': dict(self.params),
            'score': float(self.score),
            'components': self.components.to_dict(),
            'valid': self.valid,
            'reason': self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CandidateResult':
        data = dict(data)
        data['components'] = ComponentScores.from_dict(data['components'])
        return cls(**data)


@dataclass
class SearchOutcome:
    """Winner and full leaderboard (valid and invalid candidates) of a search."""
    kind: str
    best: Optional[CandidateResult]
    leaderboard: List[CandidateResult] = field(default_factory=list)
    reasoning: str = ''

    @property
    def best_score(self) -> Optional[float]:
        scores = [c.score for c in self.leaderboard if c.valid]
        return max(scores) if scores else None

    @property
    def n_valid(self) -> int:
        return sum(1 for c in self.leaderboard if c.valid)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'best': self.best.to_dict() if self.best is not None else None,
            'leaderboard': [c.to_dict() for c in self.leaderboard],
            'reasoning': self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchOutcome':
        best = data.get('best')
        return cls(
            kind=data['kind'],
            best=CandidateResult.from_dict(best) if best is not None else None,
            leaderboard=[CandidateResult.from_dict(c) for c in data.get('leaderboard', [])],
            reasoning=data.get('reasoning', ''),
        )


# =============================================================================
# Axes
# =============================================================================

@dataclass
class AxisLabel:
    """Polarity label of one projected axis, anchored by its extreme nodes."""
    axis_index: int
    name: str
    negative_pole: str
    positive_pole: str
    negative_node_id: Optional[str] = None
    positive_node_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AxisLabel':
        return cls(**data)


@dataclass
class AnchorPole:
    label: str
    seed_phrases: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {'label': self.label, 'seed_phrases': list(self.seed_phrases)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnchorPole':
        return cls(label=data['label'], seed_phrases=list(data['seed_phrases']))


@dataclass
class AnchorAxis:
    """
    A user-defined semantic direction, independent of PCA.

    The direction vector is derived from seed-phrase embeddings the first
    time it is requested and cached against the seed phrases; it is only
    recomputed when those change (see projection.anchor_direction).
    """
    id: str
    name: str
    negative_pole: AnchorPole
    positive_pole: AnchorPole
    _direction: Optional[np.ndarray] = field(default=None, compare=False, repr=False)
    _seed_key: Optional[tuple] = field(default=None, compare=False, repr=False)

    @property
    def seed_key(self) -> tuple:
        return (tuple(self.negative_pole.seed_phrases),
                tuple(self.positive_pole.seed_phrases))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'negative_pole': self.negative_pole.to_dict(),
            'positive_pole': self.positive_pole.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnchorAxis':
        return cls(
            id=data['id'],
            name=data['name'],
            negative_pole=AnchorPole.from_dict(data['negative_pole']),
            positive_pole=AnchorPole.from_dict(data['positive_pole']),
        )


# =============================================================================
# Graph
# =============================================================================

@dataclass
class GraphNode:
    id: str
    kind: str                     # 'juror' or 'concept'
    label: str
    size: int
    pc_values: List[float] = field(default_factory=list)
    anchor_scores: Dict[str, float] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'kind': self.kind,
            'label': self.label,
            'size': self.size,
            'pc_values': _floats(self.pc_values),
            'anchor_scores': {k: float(v) for k, v in self.anchor_scores.items()},
            'meta': self.meta,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GraphNode':
        return cls(**data)


@dataclass
class GraphLink:
    source: str
    target: str
    kind: str                     # 'juror-concept', 'concept-concept', 'juror-juror'
    weight: float
    stance: Optional[str] = None
    evidence_ids: List[str] = field(default_factory=list)
    structural_role: Optional[str] = None

    @property
    def is_bridge(self) -> bool:
        return self.structural_role == 'bridge'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'target': self.target,
            'kind': self.kind,
            'weight': float(self.weight),
            'stance': self.stance,
            'evidence_ids': list(self.evidence_ids),
            'structural_role': self.structural_role,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GraphLink':
        return cls(**data)


# =============================================================================
# Diagnostics
# =============================================================================

@dataclass
class MergeDiagnostics:
    """Cluster counts before/after the minimum-size merge pass."""
    before_size: int
    after_size: int
    merged_count: int
    min_size: int = 0

    def to_dict(self) -> Dict[str, int]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: Dict[str, int]) -> 'MergeDiagnostics':
        return cls(**data)


@dataclass
class SplitRecord:
    level: str                    # 'primary' or 'detail'
    original_size: int
    resulting_sizes: List[int]

    def to_dict(self) -> Dict[str, Any]:
        return {'level': self.level, 'original_size': self.original_size,
                'resulting_sizes': list(self.resulting_sizes)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SplitRecord':
        return cls(**data)


@dataclass
class DominanceDiagnostics:
    """
    Splits performed by the dominance cap.

    resolved is False when the pass stopped (round limit, or nothing left
    that could be split) while a cluster still exceeded the threshold.
    """
    level: str = 'primary'
    threshold: float = 0.35
    splits: List[SplitRecord] = field(default_factory=list)
    rounds: int = 0
    resolved: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'level': self.level,
            'threshold': float(self.threshold),
            'splits': [s.to_dict() for s in self.splits],
            'rounds': self.rounds,
            'resolved': self.resolved,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DominanceDiagnostics':
        data = dict(data)
        data['splits'] = [SplitRecord.from_dict(s) for s in data.get('splits', [])]
        return cls(**data)


@dataclass
class VarianceStats:
    explained_variances: List[float]
    cumulative_variances: List[float]
    total_variance: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'explained_variances': _floats(self.explained_variances),
            'cumulative_variances': _floats(self.cumulative_variances),
            'total_variance': float(self.total_variance),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VarianceStats':
        return cls(**data)


# =============================================================================
# Analysis Result
# =============================================================================

@dataclass
class AnalysisResult:
    """
    Self-contained output of one analysis run.

    Everything a renderer or exporter needs is stored here; no further
    computation is required to display it.
    """
    nodes: List[GraphNode]
    links: List[GraphLink]
    concepts: List[Concept]
    juror_vectors: Dict[str, Dict[str, float]]
    memberships: List[MembershipWeight] = field(default_factory=list)
    assignments: Dict[str, str] = field(default_factory=dict)
    axis_labels: List[AxisLabel] = field(default_factory=list)
    anchor_axes: List[AnchorAxis] = field(default_factory=list)
    variance_stats: Optional[VarianceStats] = None
    applied_num_dimensions: int = 0
    searches: Dict[str, SearchOutcome] = field(default_factory=dict)
    hygiene: Dict[str, Any] = field(default_factory=dict)
    health: Dict[str, Any] = field(default_factory=dict)
    chosen: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    # -------------------------------------------------------------------------
    # Convenience accessors
    # -------------------------------------------------------------------------

    @property
    def primary_concepts(self) -> List[Concept]:
        return [c for c in self.concepts if not c.is_detail]

    @property
    def detail_concepts(self) -> List[Concept]:
        return [c for c in self.concepts if c.is_detail]

    def concept(self, concept_id: str) -> Concept:
        for c in self.concepts:
            if c.id == concept_id:
                return c
        raise KeyError(concept_id)

    def node(self, node_id: str) -> GraphNode:
        for n in self.nodes:
            if n.id == node_id:
                return n
        raise KeyError(node_id)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodes': [n.to_dict() for n in self.nodes],
            'links': [l.to_dict() for l in self.links],
            'concepts': [c.to_dict() for c in self.concepts],
            'juror_vectors': {
                juror: {cid: float(w) for cid, w in vec.items()}
                for juror, vec in self.juror_vectors.items()
            },
            'memberships': [m.to_dict() for m in self.memberships],
            'assignments': dict(self.assignments),
            'axis_labels': [a.to_dict() for a in self.axis_labels],
            'anchor_axes': [a.to_dict() for a in self.anchor_axes],
            'variance_stats': self.variance_stats.to_dict() if self.variance_stats else None,
            'applied_num_dimensions': self.applied_num_dimensions,
            'searches': {k: s.to_dict() for k, s in self.searches.items()},
            'hygiene': self.hygiene,
            'health': self.health,
            'chosen': self.chosen,
            'params': self.params,
            'stats': self.stats,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisResult':
        variance = data.get('variance_stats')
        return cls(
            nodes=[GraphNode.from_dict(n) for n in data['nodes']],
            links=[GraphLink.from_dict(l) for l in data['links']],
            concepts=[Concept.from_dict(c) for c in data['concepts']],
            juror_vectors={j: dict(v) for j, v in data['juror_vectors'].items()},
            memberships=[MembershipWeight.from_dict(m) for m in data.get('memberships', [])],
            assignments=dict(data.get('assignments', {})),
            axis_labels=[AxisLabel.from_dict(a) for a in data.get('axis_labels', [])],
            anchor_axes=[AnchorAxis.from_dict(a) for a in data.get('anchor_axes', [])],
            variance_stats=VarianceStats.from_dict(variance) if variance else None,
            applied_num_dimensions=data.get('applied_num_dimensions', 0),
            searches={k: SearchOutcome.from_dict(s) for k, s in data.get('searches', {}).items()},
            hygiene=data.get('hygiene', {}),
            health=data.get('health', {}),
            chosen=data.get('chosen', {}),
            params=data.get('params', {}),
            stats=data.get('stats', {}),
        )

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> 'AnalysisResult':
        return cls.from_dict(json.loads(text))

    def save(self, path: Union[str, Path], indent: Optional[int] = 2):
        """Write the result as JSON."""
        Path(path).write_text(self.to_json(indent=indent), encoding='utf-8')

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'AnalysisResult':
        return cls.from_json(Path(path).read_text(encoding='utf-8'))
