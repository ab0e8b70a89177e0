"""
Completion orchestration.

Routes each user turn either to retrieval-grounded Q&A or to the
readiness interview, and maps failures to fixed user-facing messages.
"""

import logging
import time
from typing import Optional

from kb_chat.agents.completion import ChatMessage, CompletionRequest, CompletionService
from kb_chat.config import Settings, get_settings, validate_api_key
from kb_chat.errors import (
    CompletionError,
    EvaluationError,
    USER_MESSAGES,
    UNKNOWN,
    classify_completion_error,
    user_message_for,
)
from kb_chat.evaluation.state import EvaluationStateMachine
from kb_chat.monitoring.logging import ComponentLogger
from kb_chat.monitoring.tracing import trace_span
from kb_chat.prompts import ASSISTANT_SYSTEM_PROMPT, PROMPT_VERSION
from kb_chat.rag.retriever import ContextRetriever
from kb_chat.services.session import ChatSession

logger = logging.getLogger(__name__)

KNOWLEDGE_BASE_REQUIRED = "Please upload knowledge base files first."
EVALUATION_INTERRUPTED = (
    "The readiness evaluation was interrupted and has been reset. "
    "Send any message to start again."
)


def build_system_message(context: str) -> str:
    """System instruction embedding the retrieved context."""
    return ASSISTANT_SYSTEM_PROMPT.format(context=context)


class KnowledgeAssistant:
    """Answers chat turns for a session."""

    def __init__(
        self,
        retriever: ContextRetriever,
        completion: CompletionService,
        evaluator: Optional[EvaluationStateMachine] = None,
        settings: Optional[Settings] = None,
        monitor: Optional[ComponentLogger] = None,
    ):
        """Initialize the assistant.

        Args:
            retriever: Context retriever for Q&A mode
            completion: Completion service
            evaluator: Interview state machine (default: catalog questions, heuristic scoring)
            settings: Application settings
            monitor: Component logger for stage timing
        """
        self.settings = settings or get_settings()
        self.retriever = retriever
        self.completion = completion
        self.monitor = monitor or ComponentLogger()
        self.evaluator = evaluator or EvaluationStateMachine(monitor=self.monitor)

    def check_preconditions(self, session: ChatSession) -> Optional[str]:
        """Return a user message if the session cannot be answered yet."""
        key_error = validate_api_key(session.api_key)
        if key_error:
            return key_error
        if not session.knowledge_base.is_loaded:
            return KNOWLEDGE_BASE_REQUIRED
        return None

    def answer(self, session: ChatSession, prompt: str) -> str:
        """Answer one user turn.

        Configuration problems and provider failures are returned as
        user-facing messages; no external call is made when a precondition
        fails.
        """
        self.monitor.start_turn(session.session_id)
        start = time.perf_counter()
        mode = "evaluation" if session.evaluation_mode else "qa"

        reply, outcome = self._dispatch(session, prompt)

        self.monitor.log_turn(
            mode,
            success=outcome is None,
            duration_ms=int((time.perf_counter() - start) * 1000),
            outcome=outcome,
        )
        return reply

    def _dispatch(self, session: ChatSession, prompt: str) -> tuple[str, Optional[str]]:
        """Return the reply and, for non-normal replies, an outcome label."""
        problem = self.check_preconditions(session)
        if problem:
            logger.warning(f"Precondition failed for session {session.session_id}")
            return problem, "precondition"

        try:
            if session.evaluation_mode:
                return self.evaluator.handle_turn(session.evaluation, prompt), None
            return self._answer_with_context(session, prompt), None
        except EvaluationError as e:
            cause = e.__cause__
            if isinstance(cause, CompletionError):
                return user_message_for(cause), cause.category
            logger.error(f"Evaluation turn failed: {e}")
            return EVALUATION_INTERRUPTED, "evaluation_reset"
        except CompletionError as e:
            return user_message_for(e), e.category
        except Exception as e:
            logger.exception("Error in answer")
            error = classify_completion_error(e)
            return user_message_for(error), error.category

    def _answer_with_context(self, session: ChatSession, prompt: str) -> str:
        retrieval = self.retriever.retrieve(prompt, session.knowledge_base.text_content)

        request = CompletionRequest(
            model=self.settings.chat_model,
            messages=[
                ChatMessage(role="system", content=build_system_message(retrieval.context)),
                ChatMessage(role="user", content=prompt),
            ],
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )

        with trace_span("completion", {"model": request.model}):
            with self.monitor.component(
                "completion", model=request.model, prompt_version=PROMPT_VERSION
            ) as stage:
                text = self.completion.complete(request)
                stage["context_chars"] = len(retrieval.context)
                stage["response_chars"] = len(text)

        if not text:
            return USER_MESSAGES[UNKNOWN]
        return text
