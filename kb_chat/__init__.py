"""
Knowledge Base Chat - retrieval-grounded assistant and AI readiness interview.

This package provides:
- Ingesting free text and tabular records into a vector store
- Answering questions with retrieved grounding context
- Running a structured AI readiness evaluation over a chat loop
"""

__version__ = "0.1.0"
