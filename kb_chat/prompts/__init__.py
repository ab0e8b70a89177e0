"""Prompt templates for Knowledge Base Chat."""

from kb_chat.prompts.system_prompt import (
    ASSISTANT_SYSTEM_PROMPT,
    PROMPT_VERSION,
    QUESTION_SYSTEM_PROMPT,
    QUESTION_USER_TEMPLATE,
    format_previous_answers,
)

__all__ = [
    "ASSISTANT_SYSTEM_PROMPT",
    "PROMPT_VERSION",
    "QUESTION_SYSTEM_PROMPT",
    "QUESTION_USER_TEMPLATE",
    "format_previous_answers",
]
