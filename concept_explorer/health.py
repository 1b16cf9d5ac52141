"""
Report health and concept-count policy.

apply_concept_count_policy() caps K to what a reader can take in for the
corpus size. evaluate_report_health() grades a finished analysis and
suggests parameter changes.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

__all__ = [
    'ConceptCountPolicy',
    'apply_concept_count_policy',
    'evaluate_report_health',
]


@dataclass
class ConceptCountPolicy:
    adjusted_k: int
    requires_hierarchy: bool
    reasoning: str


def apply_concept_count_policy(
    recommended_k: int,
    corpus_size: int,
    small_corpus_max: int = 8,
    medium_corpus_max: int = 12,
    large_corpus_max: int = 12
) -> ConceptCountPolicy:
    """
    Cap K by corpus size: <100 sentences, 100-199, and 200+.

    Capping a large corpus also flags that detail concepts are needed to
    keep the finer structure.
    """
    if corpus_size < 100:
        cap, name, hierarchy = small_corpus_max, 'Small corpus (<100 sentences)', False
    elif corpus_size < 200:
        cap, name, hierarchy = medium_corpus_max, 'Medium corpus (100-200 sentences)', False
    else:
        cap, name, hierarchy = large_corpus_max, 'Large corpus (200+ sentences)', True

    if recommended_k > cap:
        return ConceptCountPolicy(
            adjusted_k=cap,
            requires_hierarchy=hierarchy,
            reasoning=f"{name} policy: capped K from {recommended_k} to {cap}",
        )
    return ConceptCountPolicy(
        adjusted_k=recommended_k,
        requires_hierarchy=False,
        reasoning=f"{name} policy: K={recommended_k} is within limits",
    )


# =============================================================================
# Report Health
# =============================================================================

_STATUS_SCORE = {'good': 1.0, 'warning': 0.6, 'poor': 0.2}


def _metric(value: float, status: str, label: str, description: str) -> Dict[str, Any]:
    return {'value': float(value), 'status': status, 'label': label, 'description': description}


def evaluate_report_health(
    total_sentences: int,
    total_concepts: int,
    axis_variance: float,
    concept_juror_counts: List[int]
) -> Dict[str, Any]:
    """
    Grade an analysis.

    Args:
        total_sentences: Number of sentences analysed
        total_concepts: Number of primary concepts
        axis_variance: Fraction of variance explained by the applied axes
        concept_juror_counts: Number of distinct jurors per primary concept

    Returns:
        Dict with 'overall_score' (0-1), 'metrics' and 'recommendations'
    """
    density = total_sentences / (total_concepts or 1)
    if density < 5 or density > 30:
        density_status = 'poor'
    elif density < 8 or density > 20:
        density_status = 'warning'
    else:
        density_status = 'good'

    if density < 4:
        size_status = 'poor'
    elif density < 7:
        size_status = 'warning'
    else:
        size_status = 'good'

    if axis_variance < 0.6:
        variance_status = 'poor'
    elif axis_variance < 0.75:
        variance_status = 'warning'
    else:
        variance_status = 'good'

    single = sum(1 for count in concept_juror_counts if count == 1)
    single_ratio = single / total_concepts if total_concepts > 0 else 0.0
    if single_ratio > 0.4:
        single_status = 'poor'
    elif single_ratio > 0.2:
        single_status = 'warning'
    else:
        single_status = 'good'

    overall = 0.25 * sum(_STATUS_SCORE[s] for s in
                         (density_status, size_status, variance_status, single_status))

    recommendations = []
    if density_status == 'poor' and density < 5:
        recommendations.append(
            "Too many concepts for this dataset size. Try reducing K or enabling detail concepts.")
    if density_status == 'poor' and density > 30:
        recommendations.append(
            "Concepts might be too broad. Try increasing K for more granular insights.")
    if variance_status == 'poor':
        recommendations.append(
            "Low axis variance suggests a noisy layout. Try another dimension mode.")
    if single_status != 'good':
        recommendations.append(
            "Many concepts are driven by single jurors. Check whether they are shared "
            "themes or individual outliers.")

    return {
        'overall_score': float(overall),
        'metrics': {
            'concept_density': _metric(density, density_status, 'Concept Density',
                                       'Ratio of sentences to concepts.'),
            'avg_sentences_per_concept': _metric(density, size_status, 'Avg Concept Size',
                                                 'Average number of sentences per concept.'),
            'axis_variance': _metric(axis_variance * 100, variance_status, 'Axis Variance',
                                     'Percentage of variance explained by the graph axes.'),
            'single_juror_concepts': _metric(single_ratio * 100, single_status, 'Solo Concepts',
                                             'Percentage of concepts supported by one juror.'),
        },
        'recommendations': recommendations,
    }
