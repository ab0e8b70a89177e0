"""
Readiness interview state machine.

States: Idle -> InProgress -> Idle. The first message of an interview
starts it and returns the highest-importance question; every later
message is recorded as the answer to the current dimension. When every
dimension is answered the report is returned and the state resets. Any
error during a turn resets the state and is raised as EvaluationError.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from kb_chat.errors import EvaluationError
from kb_chat.evaluation.dimensions import DIMENSIONS, Dimension, next_dimension
from kb_chat.evaluation.questions import CatalogQuestionProvider, QuestionProvider
from kb_chat.evaluation.scoring import (
    EvaluationReport,
    HeuristicScorer,
    ScoringStrategy,
    build_report,
)
from kb_chat.monitoring.logging import ComponentLogger
from kb_chat.monitoring.tracing import trace_span

logger = logging.getLogger(__name__)


@dataclass
class EvaluationState:
    """Per-session interview progress."""

    in_progress: bool = False
    current_topic_id: Optional[str] = None
    answers: dict[str, str] = field(default_factory=dict)
    awaiting_follow_up: bool = False

    def reset(self) -> None:
        self.in_progress = False
        self.current_topic_id = None
        self.answers = {}
        self.awaiting_follow_up = False


class EvaluationStateMachine:
    """Drives the readiness interview over chat turns."""

    def __init__(
        self,
        dimensions: Iterable[Dimension] = DIMENSIONS,
        scorer: Optional[ScoringStrategy] = None,
        question_provider: Optional[QuestionProvider] = None,
        ask_follow_ups: bool = False,
        monitor: Optional[ComponentLogger] = None,
    ):
        """Initialize the state machine.

        Args:
            dimensions: Dimension catalog
            scorer: Answer scoring strategy (default: HeuristicScorer)
            question_provider: Question source (default: catalog questions)
            ask_follow_ups: Ask each dimension's follow-up before moving on
            monitor: Component logger for turn timing
        """
        self.dimensions = tuple(dimensions)
        if not self.dimensions:
            raise ValueError("At least one dimension is required")
        self._by_id = {d.id: d for d in self.dimensions}
        self.scorer = scorer or HeuristicScorer()
        self.question_provider = question_provider or CatalogQuestionProvider()
        self.ask_follow_ups = ask_follow_ups
        self.monitor = monitor or ComponentLogger()

    def handle_turn(self, state: EvaluationState, message: str) -> str:
        """Process one user message and return the assistant reply.

        Raises:
            EvaluationError: The turn failed; the state has been reset
        """
        with trace_span("evaluation_turn") as span, self.monitor.component("evaluation_turn") as stage:
            try:
                reply = self._advance(state, message)
            except Exception as e:
                logger.error(f"Error in evaluation mode: {e}")
                state.reset()
                stage["reset"] = True
                raise EvaluationError(f"Evaluation abandoned: {e}") from e

            stage["answered"] = len(state.answers)
            stage["in_progress"] = state.in_progress
            span.set_attribute("in_progress", state.in_progress)
        return reply

    def _advance(self, state: EvaluationState, message: str) -> str:
        if not state.in_progress:
            state.reset()
            state.in_progress = True
            return self._ask_next(state)

        self._record_answer(state, message)

        if state.awaiting_follow_up:
            return self._by_id[state.current_topic_id].follow_up

        if next_dimension(state.answers, self.dimensions) is None:
            report = self.build_report(state.answers)
            logger.info(
                f"Evaluation complete: level={report.level.value} "
                f"average={report.average_score:.2f}"
            )
            state.reset()
            return report.render()

        return self._ask_next(state)

    def _record_answer(self, state: EvaluationState, message: str) -> None:
        topic_id = state.current_topic_id
        if topic_id is None:
            raise EvaluationError("No current dimension to record an answer for")
        if topic_id not in self._by_id:
            raise EvaluationError(f"Unknown dimension: {topic_id}")

        if state.awaiting_follow_up:
            state.answers[topic_id] = f"{state.answers.get(topic_id, '')}\n{message}".strip()
            state.awaiting_follow_up = False
            return

        state.answers[topic_id] = message
        if self.ask_follow_ups and self._by_id[topic_id].follow_up:
            state.awaiting_follow_up = True

    def _ask_next(self, state: EvaluationState) -> str:
        dimension = next_dimension(state.answers, self.dimensions)
        if dimension is None:
            raise EvaluationError("No dimension left to ask about")
        state.current_topic_id = dimension.id
        question = self.question_provider.question_for(dimension, dict(state.answers))
        if not question:
            raise EvaluationError(f"Failed to generate a question for {dimension.id}")
        return question

    def build_report(self, answers: dict[str, str]) -> EvaluationReport:
        return build_report(answers, self.scorer, self.dimensions)
