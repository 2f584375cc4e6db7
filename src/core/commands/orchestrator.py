"""
Command Orchestrator

Entry point of the command engine: one call per POST /commands.

Flow:
1. Idempotency guard (conditional insert of the request id); duplicates stop here
2. If a clarification reference is present, resume that clarification
3. Otherwise parse the transcript, validate it into typed arguments,
   rank the user's jobs and either apply the command or open a clarification

All non-fatal outcomes are returned as status-tagged dicts. StorageError
propagates after the dedup record is released so the client can retry.
"""

import logging
import threading
from typing import Any, Dict, Optional

from core.clients.intent_parser_client import IntentParser, IntentParserClient
from core.commands.args import (
    CommentArgs,
    CreateArgs,
    MoveStageArgs,
    UnsupportedArgs,
    parse_command,
)
from core.commands.clarification import ClarificationService, need_clarification
from core.commands.executor import CommandExecutor
from core.commands.idempotency import IdempotencyGuard, ignored_duplicate
from core.commands.resolver import policy_for, resolve
from core.config import config
from core.errors.exceptions import DuplicateRequest, StorageError, UpstreamError
from core.routing.clarification_router import ClarificationReason
from features.jobs.repo import JobRepo

logger = logging.getLogger(__name__)


class CommandEngine:
    """Wires the guard, parser, resolver, clarification service and executor."""

    def __init__(self, intent_parser: Optional[IntentParser] = None,
                 guard: Optional[IdempotencyGuard] = None,
                 repo: Optional[JobRepo] = None,
                 executor: Optional[CommandExecutor] = None,
                 clarifications: Optional[ClarificationService] = None,
                 candidate_limit: Optional[int] = None):
        self.intent_parser = intent_parser or IntentParserClient()
        self.guard = guard or IdempotencyGuard()
        self.repo = repo or JobRepo()
        self.executor = executor or CommandExecutor(repo=self.repo)
        self.clarifications = clarifications or ClarificationService(
            repo=self.repo, executor=self.executor)
        self.candidate_limit = candidate_limit or config.CANDIDATE_LIMIT

    def handle(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Handle one command request.

        Args:
            user_id: Authenticated user id
            body: {channel, transcript, requestId, clarificationId?, choice?, stage?}

        Returns:
            IGNORED_DUPLICATE, NEED_CLARIFICATION or APPLIED response dict

        Raises:
            StorageError: A primary read or write failed
        """
        request_id = body["requestId"]
        try:
            self.guard.submit(user_id, request_id, body)
        except DuplicateRequest:
            logger.info(f"Duplicate request {request_id} ignored",
                        extra={"user_id": user_id, "request_id": request_id})
            return ignored_duplicate(request_id)

        try:
            return self._dispatch(user_id, request_id, body)
        except StorageError as e:
            logger.error(f"Command {request_id} failed: {e}",
                         extra={"user_id": user_id, "request_id": request_id},
                         exc_info=True)
            self.guard.release(user_id, request_id)
            raise

    def _dispatch(self, user_id: str, request_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        transcript = body.get("transcript") or ""
        meta = {"requestId": request_id, "source": body.get("channel")}

        clarification_id = body.get("clarificationId")
        if clarification_id:
            choice = body.get("choice") or transcript
            return self.clarifications.resume(user_id, clarification_id, choice, request_id, meta)

        parsed = self._parse(transcript)
        command = parse_command(parsed, transcript, stage_override=body.get("stage"))

        if isinstance(command, UnsupportedArgs):
            reason = (ClarificationReason.MISSING_INTENT if command.intent is None
                      else ClarificationReason.UNSUPPORTED_INTENT)
            logger.info(f"Command {request_id} needs an action: {reason.value}",
                        extra={"user_id": user_id, "request_id": request_id})
            return need_clarification(reason, request_id)

        if isinstance(command, CreateArgs):
            return self.executor.create(user_id, command, meta)

        if isinstance(command, MoveStageArgs) and not command.stage:
            logger.info(f"Command {request_id} has no recognisable stage",
                        extra={"user_id": user_id, "request_id": request_id})
            return need_clarification(ClarificationReason.MISSING_STAGE, request_id)

        if isinstance(command, CommentArgs) and not command.text:
            logger.info(f"Command {request_id} has no note text",
                        extra={"user_id": user_id, "request_id": request_id})
            return need_clarification(ClarificationReason.MISSING_TEXT, request_id)

        candidates = self.repo.list_candidates(user_id, limit=self.candidate_limit)
        resolution = resolve(candidates, command.target, policy_for(command.intent))

        if resolution.confident:
            return self.executor.apply(user_id, resolution.target.job_id, command, meta)
        return self.clarifications.open(user_id, command, resolution, request_id)

    def _parse(self, transcript: str) -> Dict[str, Any]:
        try:
            parsed = self.intent_parser.parse(transcript)
        except UpstreamError as e:
            logger.warning(f"Intent parser failed, treating as empty parse: {e}")
            return {}
        return parsed if isinstance(parsed, dict) else {}


# boto3 resources are not thread-safe and sync FastAPI routes run on a
# threadpool, so each worker thread builds its own engine
_local = threading.local()


def get_engine() -> CommandEngine:
    """Engine for the calling thread, built from configuration on first use."""
    engine = getattr(_local, "engine", None)
    if engine is None:
        engine = CommandEngine()
        _local.engine = engine
    return engine


def handle_command(user_id: str, body: Dict[str, Any],
                   engine: Optional[CommandEngine] = None) -> Dict[str, Any]:
    return (engine or get_engine()).handle(user_id, body)
