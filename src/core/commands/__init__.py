"""
Command Engine

Resolves short natural-language commands against a user's job records:
idempotent intake, candidate ranking, multi-turn clarification and effect
application.
"""

from core.commands.orchestrator import CommandEngine, handle_command

__all__ = ["CommandEngine", "handle_command"]
