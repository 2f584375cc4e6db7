"""
Routing Layer

Maps clarification reasons to the question shown to the user.

Pure decision tables with no side effects:
- clarification_reason → question text
- YAML decision table (config/clarification_questions.yaml)
"""

from core.routing.clarification_router import ClarificationReason, get_question

__all__ = ["ClarificationReason", "get_question"]
