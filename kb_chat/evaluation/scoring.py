"""
Answer scoring and readiness report synthesis.

Scoring is heuristic: answer length plus positive/negative lexical cues.
It is exposed as a pluggable ScoringStrategy so a different scorer can be
substituted without touching the interview flow.
"""

import re
from typing import Iterable, Protocol

from pydantic import BaseModel, Field

from kb_chat.evaluation.dimensions import DIMENSIONS, Dimension, ReadinessLevel

MIN_SCORE = 0.0
MAX_SCORE = 5.0

# Average score cutoffs (exclusive upper bounds), lowest level first
LEVEL_CUTOFFS: tuple[tuple[float, ReadinessLevel], ...] = (
    (1.5, ReadinessLevel.EXPLORING),
    (2.5, ReadinessLevel.DEVELOPING),
    (3.5, ReadinessLevel.ESTABLISHED),
)

# Dimensions scoring at or below this get a recommendation
RECOMMENDATION_THRESHOLD = 2.5

POSITIVE_CUES = (
    "yes",
    "implemented",
    "established",
    "dedicated",
    "deployed",
    "production",
    "automated",
    "mature",
    "documented",
    "in place",
    "trained",
    "strong",
)

NEGATIVE_CUES = (
    "no",
    "not",
    "none",
    "never",
    "limited",
    "lack",
    "lacking",
    "don't",
    "unsure",
    "unknown",
)

RECOMMENDATIONS = {
    "data": (
        "Data Strategy: Start by identifying and organizing key datasets. Consider "
        "implementing data quality processes to ensure your data is accurate and accessible."
    ),
    "strategy": (
        "Strategic Alignment: Develop a clear AI strategy that aligns with your business "
        "objectives. Identify specific business problems where AI can deliver value."
    ),
    "talent": (
        "Talent Development: Consider upskilling existing team members through AI training "
        "programs or partnering with external experts for initial projects."
    ),
    "technical": (
        "Technical Foundations: Assess whether your infrastructure can support AI workloads "
        "and plan for scalable cloud or compute resources before committing to large projects."
    ),
    "governance": (
        "Governance: Put data privacy, model oversight and responsible-use policies in "
        "place before AI systems reach production."
    ),
    "experience": (
        "Building Experience: Run a small automation or analytics project to build delivery "
        "experience and gather lessons for larger AI initiatives."
    ),
}

START_SMALL = (
    "Start Small: Begin with a well-defined pilot project to demonstrate value and build "
    "momentum for broader AI adoption."
)


def _cue_pattern(cue: str) -> re.Pattern:
    return re.compile(r"\b" + re.escape(cue) + r"\b", re.IGNORECASE)


_POSITIVE_PATTERNS = [_cue_pattern(c) for c in POSITIVE_CUES]
_NEGATIVE_PATTERNS = [_cue_pattern(c) for c in NEGATIVE_CUES]


class ScoringStrategy(Protocol):
    """Scores one free-text answer for a dimension."""

    def score(self, dimension: Dimension, answer: str) -> float:
        ...


class HeuristicScorer:
    """Length thresholds plus lexical cues, clamped to [0, 5]."""

    def __init__(self, max_cue_bonus: int = 2, max_cue_penalty: int = 2):
        self.max_cue_bonus = max_cue_bonus
        self.max_cue_penalty = max_cue_penalty

    @staticmethod
    def length_score(answer: str) -> float:
        length = len(answer.strip())
        if length < 20:
            return 1.0
        if length < 50:
            return 2.0
        if length < 150:
            return 3.0
        return 4.0

    def score(self, dimension: Dimension, answer: str) -> float:
        positives = sum(1 for p in _POSITIVE_PATTERNS if p.search(answer))
        negatives = sum(1 for p in _NEGATIVE_PATTERNS if p.search(answer))
        raw = (
            self.length_score(answer)
            + min(positives, self.max_cue_bonus)
            - min(negatives, self.max_cue_penalty)
        )
        return max(MIN_SCORE, min(MAX_SCORE, raw))


def level_for_score(average: float) -> ReadinessLevel:
    """Map an average dimension score to a readiness level."""
    for cutoff, level in LEVEL_CUTOFFS:
        if average < cutoff:
            return level
    return ReadinessLevel.ADVANCED


class DimensionScore(BaseModel):
    """Score for one dimension."""

    dimension_id: str
    score: float = Field(ge=MIN_SCORE, le=MAX_SCORE)
    importance: int


class EvaluationReport(BaseModel):
    """Final readiness report emitted when the interview completes."""

    level: ReadinessLevel
    average_score: float
    dimension_scores: list[DimensionScore]
    recommendations: list[str]

    def render(self) -> str:
        """Terminal chat message: level, per-dimension scores, recommendations."""
        lines = [
            f"AI Readiness Level: {self.level.value} "
            f"(average score {self.average_score:.1f} / {MAX_SCORE:.0f})",
            "",
            "Dimension scores:",
        ]
        lines.extend(f"- {s.dimension_id}: {s.score:.1f}" for s in self.dimension_scores)
        lines.append("")
        lines.append(
            "Based on our conversation, here are some tailored recommendations to "
            "improve your AI readiness:"
        )
        lines.extend(f"\n• {r}" for r in self.recommendations)
        return "\n".join(lines)


def build_recommendations(
    scores: list[DimensionScore],
    threshold: float = RECOMMENDATION_THRESHOLD,
) -> list[str]:
    """Recommendations for weak dimensions, lowest score first, then importance."""
    weak = [s for s in scores if s.score <= threshold]
    weak.sort(key=lambda s: (s.score, -s.importance))
    recommendations = [RECOMMENDATIONS[s.dimension_id] for s in weak if s.dimension_id in RECOMMENDATIONS]
    recommendations.append(START_SMALL)
    return recommendations


def build_report(
    answers: dict[str, str],
    scorer: ScoringStrategy,
    dimensions: Iterable[Dimension] = DIMENSIONS,
) -> EvaluationReport:
    """Score every catalog dimension and synthesize the report.

    A dimension without an answer scores as an empty answer.
    """
    scores = [
        DimensionScore(
            dimension_id=d.id,
            score=scorer.score(d, answers.get(d.id, "")),
            importance=d.importance,
        )
        for d in dimensions
    ]
    average = sum(s.score for s in scores) / len(scores) if scores else 0.0
    return EvaluationReport(
        level=level_for_score(average),
        average_score=average,
        dimension_scores=scores,
        recommendations=build_recommendations(scores),
    )
