"""
Prompts for the knowledge-base assistant and the readiness interview.

Version-tracked for reproducibility.
"""

PROMPT_VERSION = "1.0.0"

ASSISTANT_SYSTEM_PROMPT = """You are MoodleBot, an educational assistant that helps users with their questions.
Use the following knowledge base to answer questions. If you don't know the answer based on the provided
information, say so and avoid making up information.

Knowledge Base Context:
{context}"""

QUESTION_SYSTEM_PROMPT = """You are an AI readiness consultant running a structured interview.
Ask exactly one concise, open-ended question. Reply with the question only."""

QUESTION_USER_TEMPLATE = """Dimension: {dimension_id} - {description}
Reference question: {reference_question}

Answers so far:
{previous_answers}

Relevant organisational context:
{context}

Write the next interview question for this dimension, tailored to the answers so far."""


def format_previous_answers(answers: dict[str, str]) -> str:
    """Render collected answers for inclusion in a prompt."""
    if not answers:
        return "(none yet)"
    return "\n".join(f"- {dimension_id}: {answer}" for dimension_id, answer in answers.items())
