"""
Concept labels: rule-based labels, synthesizer calls and quality gates.

A label synthesizer (typically an LLM client) is optional. It is called
with a timeout; failures and timeouts are recovered locally by keeping the
rule-based label. Synthesized titles must pass deterministic quality gates
(no echo of an evidence sentence, no repeated words, no boilerplate, plus
heuristic deductions) or the rule-based label is kept.

Labels only decorate concepts. They never feed back into clustering or
graph weights.
"""

import re
import warnings
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from .errors import ExternalServiceError
from .terms import STOPWORDS

__all__ = [
    'FALLBACK_LABEL_TEMPLATES',
    'LabelQuality',
    'evaluate_label_quality',
    'fallback_label',
    'rule_based_label',
    'call_synthesizer',
    'label_concept',
]


FALLBACK_LABEL_TEMPLATES = [
    "Core Feedback Themes",
    "Key Design Observations",
    "Juror Consensus Points",
    "Critical Project Insights",
    "Major Synthesis Categories",
    "Primary Feedback Clusters",
    "Thematic Design Principles",
    "Fundamental Proposal Aspects",
    "Essential Feedback Areas",
    "Key Narrative Elements",
]

BOILERPLATE_PHRASES = (
    'this concept', 'this cluster', 'this theme', 'the jurors', 'jurors said',
    'as an ai', 'here is', "here's", 'label:', 'title:', 'untitled',
    'various aspects', 'miscellaneous', 'n/a',
)

NON_NOUN_STARTS = frozenset([
    'addressing', 'shows', 'move', 'goes', 'tells', 'appearing', 'seems', 'is', 'are', 'about',
])

FILLER_WORDS = frozenset(['areas', 'project', 'design', 'spaces', 'brief', 'proposal'])

PASS_THRESHOLD = 0.6


def _normalize(text: str) -> str:
    return re.sub(r'[^a-z0-9 ]+', '', re.sub(r'\s+', ' ', text.lower())).strip()


# =============================================================================
# Quality Gates
# =============================================================================

@dataclass
class LabelQuality:
    score: float
    passed: bool
    violations: List[str] = field(default_factory=list)


def evaluate_label_quality(label: str, evidence: Sequence[str] = ()) -> LabelQuality:
    """
    Score a candidate label in [0, 1]; it passes at 0.6 or above.

    Echoing an evidence sentence verbatim or using boilerplate phrasing
    fails outright. Otherwise deductions apply: single word 0.4, over 7
    words 0.1, stopword-heavy 0.3, non-noun start 0.45, repeated word 0.45,
    filler words 0.1.
    """
    if not label or not label.strip():
        return LabelQuality(0.0, False, ['empty'])

    normalized = _normalize(label)
    if any(normalized and normalized == _normalize(s) for s in evidence):
        return LabelQuality(0.0, False, ['echo'])
    if any(phrase in label.lower() for phrase in BOILERPLATE_PHRASES):
        return LabelQuality(0.0, False, ['boilerplate'])

    words = label.strip().split()
    lower = [re.sub(r'[^\w\'-]', '', w.lower()) for w in words]
    violations = []
    score = 1.0

    if len(words) == 1:
        score -= 0.4
        violations.append('single-word')
    if len(words) > 7:
        score -= 0.1
        violations.append('too-long')
    if sum(1 for w in lower if w in STOPWORDS) / len(words) > 0.4:
        score -= 0.3
        violations.append('stopword-heavy')
    if lower[0] in STOPWORDS or lower[0] in NON_NOUN_STARTS:
        score -= 0.45
        violations.append('non-noun-start')
    if len(set(lower)) != len(lower):
        score -= 0.45
        violations.append('repetition')
    if any(w in FILLER_WORDS for w in lower):
        score -= 0.1
        violations.append('filler-words')

    score = max(0.0, min(1.0, score))
    return LabelQuality(score, score >= PASS_THRESHOLD, violations)


# =============================================================================
# Rule-based Labels
# =============================================================================

def fallback_label(concept_id) -> str:
    """Deterministic template label chosen by id (int, or sum of character codes)."""
    index = concept_id if isinstance(concept_id, int) else sum(ord(ch) for ch in str(concept_id))
    return FALLBACK_LABEL_TEMPLATES[index % len(FALLBACK_LABEL_TEMPLATES)]


def rule_based_label(top_terms: Sequence[str], max_terms: int = 3) -> str:
    """Join the leading top terms; empty string when there are none."""
    return ' · '.join(top_terms[:max_terms])


# =============================================================================
# Synthesizer
# =============================================================================

def call_synthesizer(synthesizer: Any, evidence: Dict[str, Any], timeout: float = 10.0) -> Dict[str, str]:
    """
    Call a synthesizer with a timeout.

    The synthesizer is an object with synthesize(evidence) or a callable,
    returning a dict with 'title' and optionally 'one_liner'.

    Raises:
        ExternalServiceError: on timeout, exception or malformed output
    """
    fn = synthesizer.synthesize if hasattr(synthesizer, 'synthesize') else synthesizer
    pool = ThreadPoolExecutor(max_workers=1)
    future = pool.submit(fn, evidence)
    try:
        output = future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        raise ExternalServiceError(f"Label synthesis timed out after {timeout}s")
    except Exception as e:
        raise ExternalServiceError(f"Label synthesis failed: {e}") from e
    finally:
        pool.shutdown(wait=False)

    if not isinstance(output, dict) or not isinstance(output.get('title'), str):
        raise ExternalServiceError(f"Label synthesis returned malformed output: {output!r}")
    return {'title': output['title'].strip(), 'one_liner': str(output.get('one_liner', '')).strip()}


def label_concept(
    concept_id: str,
    top_terms: Sequence[str],
    evidence: Sequence[str],
    synthesizer: Any = None,
    timeout: float = 10.0,
    attempts: int = 3
) -> Tuple[str, str, str]:
    """
    Label one concept.

    Returns:
        (label, one_liner, source) where source is 'synthesizer', 'rule'
        (top terms) or 'fallback' (template)
    """
    rule = rule_based_label(top_terms)
    default = (rule, '', 'rule') if rule else (fallback_label(concept_id), '', 'fallback')
    if synthesizer is None:
        return default

    request = {'concept_id': concept_id, 'top_terms': list(top_terms), 'sentences': list(evidence)}
    for _ in range(max(1, attempts)):
        try:
            output = call_synthesizer(synthesizer, request, timeout)
        except ExternalServiceError as e:
            warnings.warn(f"{concept_id}: {e}; keeping rule-based label")
            return default
        quality = evaluate_label_quality(output['title'], evidence)
        if quality.passed:
            return output['title'], output['one_liner'], 'synthesizer'

    warnings.warn(f"{concept_id}: synthesized labels failed quality gates "
                  f"({', '.join(quality.violations)}); keeping rule-based label")
    return default
