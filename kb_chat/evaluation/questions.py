"""Question providers for the readiness interview."""

import logging
from typing import Callable, Optional, Protocol

from kb_chat.agents.completion import ChatMessage, CompletionRequest, CompletionService
from kb_chat.evaluation.dimensions import Dimension
from kb_chat.prompts import (
    QUESTION_SYSTEM_PROMPT,
    QUESTION_USER_TEMPLATE,
    format_previous_answers,
)

logger = logging.getLogger(__name__)


class QuestionProvider(Protocol):
    """Produces the question to ask for a dimension."""

    def question_for(self, dimension: Dimension, answers: dict[str, str]) -> str:
        ...


class CatalogQuestionProvider:
    """Asks the fixed catalog question."""

    def question_for(self, dimension: Dimension, answers: dict[str, str]) -> str:
        return dimension.question


class GeneratedQuestionProvider:
    """Asks the completion service for a question tailored to earlier answers.

    Falls back to the catalog question when the service returns nothing.
    Service errors propagate so the interview can be reset.
    """

    def __init__(
        self,
        completion: CompletionService,
        model: str,
        context_lookup: Optional[Callable[[str], str]] = None,
        temperature: float = 0.7,
        max_tokens: int = 200,
    ):
        """Initialize the provider.

        Args:
            completion: Completion service
            model: Chat model name
            context_lookup: Optional function returning knowledge-base context for a query
            temperature: Sampling temperature
            max_tokens: Token ceiling for the generated question
        """
        self.completion = completion
        self.model = model
        self.context_lookup = context_lookup
        self.temperature = temperature
        self.max_tokens = max_tokens

    def question_for(self, dimension: Dimension, answers: dict[str, str]) -> str:
        context = ""
        if self.context_lookup is not None:
            context = self.context_lookup(dimension.description)

        user_prompt = QUESTION_USER_TEMPLATE.format(
            dimension_id=dimension.id,
            description=dimension.description,
            reference_question=dimension.question,
            previous_answers=format_previous_answers(answers),
            context=context or "(none)",
        )
        request = CompletionRequest(
            model=self.model,
            messages=[
                ChatMessage(role="system", content=QUESTION_SYSTEM_PROMPT),
                ChatMessage(role="user", content=user_prompt),
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        question = self.completion.complete(request).strip()
        if not question:
            logger.warning(f"Empty generated question for {dimension.id}, using catalog text")
            return dimension.question
        return question
