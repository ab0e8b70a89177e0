"""AI readiness interview: dimension catalog, scoring, and state machine."""

from kb_chat.evaluation.dimensions import (
    DIMENSIONS,
    Dimension,
    ReadinessLevel,
    next_dimension,
)
from kb_chat.evaluation.questions import (
    CatalogQuestionProvider,
    GeneratedQuestionProvider,
    QuestionProvider,
)
from kb_chat.evaluation.scoring import (
    EvaluationReport,
    HeuristicScorer,
    ScoringStrategy,
    build_report,
    level_for_score,
)
from kb_chat.evaluation.state import EvaluationState, EvaluationStateMachine

__all__ = [
    "DIMENSIONS",
    "Dimension",
    "ReadinessLevel",
    "next_dimension",
    "CatalogQuestionProvider",
    "GeneratedQuestionProvider",
    "QuestionProvider",
    "EvaluationReport",
    "HeuristicScorer",
    "ScoringStrategy",
    "build_report",
    "level_for_score",
    "EvaluationState",
    "EvaluationStateMachine",
]
