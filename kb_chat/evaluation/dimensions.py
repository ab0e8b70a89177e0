"""
AI readiness dimension catalog and readiness levels.

The catalog is fixed and read-only at runtime. Dimensions are asked in
descending importance; ties keep catalog order.
"""

from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReadinessLevel(str, Enum):
    """Ordered readiness outcomes, lowest first."""

    EXPLORING = "Exploring"
    DEVELOPING = "Developing"
    ESTABLISHED = "Established"
    ADVANCED = "Advanced"

    @property
    def rank(self) -> int:
        return list(ReadinessLevel).index(self)


class Dimension(BaseModel):
    """One topic axis of the readiness interview."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    question: str
    follow_up: Optional[str] = None
    importance: int = Field(ge=1, description="Ordinal weight; higher is asked first")


DIMENSIONS: tuple[Dimension, ...] = (
    Dimension(
        id="data",
        description="Data infrastructure and quality",
        question="How would you describe your organization's data infrastructure and quality?",
        follow_up="Do you have structured datasets relevant to your business problems?",
        importance=3,
    ),
    Dimension(
        id="strategy",
        description="AI strategy and business alignment",
        question="Does your organization have a clear AI strategy aligned with business goals?",
        follow_up="Can you describe how AI fits into your broader business strategy?",
        importance=3,
    ),
    Dimension(
        id="talent",
        description="AI and data science talent",
        question="What AI and data science talent do you currently have in your organization?",
        follow_up="Do you have plans for training existing staff or hiring specialists?",
        importance=2,
    ),
    Dimension(
        id="technical",
        description="Technical infrastructure for AI workloads",
        question="How would you rate your organization's technical infrastructure for supporting AI?",
        follow_up="Do you have cloud resources or compute power suitable for AI workloads?",
        importance=2,
    ),
    Dimension(
        id="governance",
        description="AI governance, privacy and ethics",
        question="What governance processes do you have for AI systems and data privacy?",
        follow_up="How do you ensure responsible and ethical use of AI?",
        importance=2,
    ),
    Dimension(
        id="experience",
        description="Prior AI and automation projects",
        question="Has your organization implemented any AI or automation projects before?",
        follow_up="What were the outcomes of those projects?",
        importance=1,
    ),
)


def by_importance(dimensions: Iterable[Dimension]) -> list[Dimension]:
    """Dimensions sorted by descending importance (stable for ties)."""
    return sorted(dimensions, key=lambda d: d.importance, reverse=True)


def next_dimension(
    answered: Iterable[str],
    dimensions: Iterable[Dimension] = DIMENSIONS,
) -> Optional[Dimension]:
    """Highest-importance dimension not yet answered, or None when all are."""
    answered_ids = set(answered)
    for dimension in by_importance(dimensions):
        if dimension.id not in answered_ids:
            return dimension
    return None
