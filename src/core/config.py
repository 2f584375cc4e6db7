"""
Command Engine Configuration

Centralized configuration for storage, ranking, clarification and parser settings.
All settings can be overridden via environment variables.
"""
import os
from typing import Optional

# Ensure .env files are loaded before class attributes are evaluated
import core.app  # noqa: F401


class CommandConfig:
    """
    Central configuration for the command engine.

    Example:
        >>> from core.config import config
        >>> print(config.CANDIDATE_LIMIT)
        100
    """

    # ========================================================================
    # Storage Settings
    # ========================================================================

    AWS_REGION: str = os.getenv("AWS_REGION", "eu-west-2")
    """DynamoDB region"""

    JOBS_TABLE: str = os.getenv("JOBS_TABLE", "jobs")
    JOBS_BY_UPDATED_INDEX: str = os.getenv(
        "JOBS_BY_UPDATED_INDEX", "user_id-updated_at-index")
    """GSI on (user_id, updated_at) used for recency-ordered candidate reads"""

    JOB_COMMENTS_TABLE: str = os.getenv("JOB_COMMENTS_TABLE", "job_comments")
    JOB_AUDIT_TABLE: str = os.getenv("JOB_AUDIT_TABLE", "job_audit")
    COMMAND_DEDUP_TABLE: str = os.getenv("COMMAND_DEDUP_TABLE", "command_dedup")
    PENDING_CLARIFICATIONS_TABLE: str = os.getenv(
        "PENDING_CLARIFICATIONS_TABLE", "pending_clarifications")

    # ========================================================================
    # Resolution Settings
    # ========================================================================

    CANDIDATE_LIMIT: int = int(os.getenv("CANDIDATE_LIMIT", "100"))
    """Maximum number of jobs considered when ranking candidates"""

    MAX_CLARIFICATION_OPTIONS: int = int(
        os.getenv("MAX_CLARIFICATION_OPTIONS", "5"))
    """Options stored in a pending clarification and returned to the user"""

    CLARIFICATION_TTL_SECONDS: int = int(
        os.getenv("CLARIFICATION_TTL_SECONDS", str(15 * 60)))
    """Pending clarifications older than this are treated as absent"""

    # ========================================================================
    # Intent Parser Settings
    # ========================================================================

    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
    """OpenAI API key (parser returns an empty result when unset)"""

    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    INTENT_PARSER_TIMEOUT: float = float(
        os.getenv("INTENT_PARSER_TIMEOUT", "15"))

    # ========================================================================
    # Logging Settings
    # ========================================================================

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    """Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"""

    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")
    """Log format: 'json' (structured) or 'pretty' (readable)"""

    LOG_FILE: Optional[str] = os.getenv("LOG_FILE")
    """Optional: Write logs to file"""

    def __repr__(self):
        return (
            f"<CommandConfig region={self.AWS_REGION} "
            f"candidates={self.CANDIDATE_LIMIT} ttl={self.CLARIFICATION_TTL_SECONDS}>"
        )


# Global config instance
config = CommandConfig()
