"""Per-conversation session state.

Knowledge base, credential and interview state are scoped to one session
and replaced wholesale on update.
"""

import uuid
from dataclasses import dataclass, field

from kb_chat.evaluation.state import EvaluationState
from kb_chat.models.knowledge import KnowledgeBase


@dataclass
class ChatSession:
    """State for one active chat conversation."""

    session_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    knowledge_base: KnowledgeBase = field(default_factory=KnowledgeBase)
    api_key: str = ""
    evaluation_mode: bool = False
    evaluation: EvaluationState = field(default_factory=EvaluationState)

    def set_knowledge_base(self, knowledge_base: KnowledgeBase) -> None:
        self.knowledge_base = knowledge_base

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key.strip()

    def toggle_evaluation_mode(self, enabled: bool) -> bool:
        """Enter or leave evaluation mode; the interview state starts fresh either way."""
        self.evaluation_mode = enabled
        self.evaluation = EvaluationState()
        return self.evaluation_mode
