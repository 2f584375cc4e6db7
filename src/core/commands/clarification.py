"""
Clarification State Machine

Carries an ambiguous command across HTTP calls. The only state is one
pending clarification row per user in DynamoDB; nothing is held in memory
between requests.

    NONE ──ambiguous──▶ AMBIGUOUS (row saved) ──follow-up──▶ RESOLVING
    RESOLVING ──choice matched──▶ RESOLVED (row deleted, effect applied)
    RESOLVING ──no match──▶ RESOLVING (same row, ask again)
    NONE ──no intent / no stage──▶ NEEDS_INTENT (nothing saved)

A follow-up claims the row with a conditional delete before executing, so two
racing follow-ups cannot both apply the captured command.
"""

import logging
import re
import time
from enum import Enum
from typing import Any, Dict, List, Optional

from core.commands.args import TargetHint, TargetedArgs, from_deferred
from core.commands.executor import CommandExecutor
from core.commands.normalization import fold, is_record_id
from core.commands.resolver import STAGE_MOVE_POLICY, Resolution, rank
from core.config import config
from core.errors.exceptions import JobNotFound, StaleClarification, StorageError
from core.routing.clarification_router import ClarificationReason, get_question
from db.clarifications import PendingClarificationDB
from db.enums import CommandStatus
from features.jobs.repo import JobRepo

logger = logging.getLogger(__name__)


class ClarificationState(Enum):
    NONE = "NONE"
    NEEDS_INTENT = "NEEDS_INTENT"
    AMBIGUOUS = "AMBIGUOUS"
    RESOLVING = "RESOLVING"
    RESOLVED = "RESOLVED"


ORDINALS = {
    "first": 0, "1st": 0,
    "second": 1, "2nd": 1,
    "third": 2, "3rd": 2,
    "fourth": 3, "4th": 3,
    "fifth": 4, "5th": 4,
}

_ORDINAL_PATTERN = re.compile(
    r"^(?:the\s+)?(" + "|".join(ORDINALS) + r")(?:\s+(?:one|option|job))?[.!]?$"
)
_INDEX_PATTERN = re.compile(r"^(?:pick|option|choose|select|number)\s*#?\s*(\d+)[.!]?$", re.IGNORECASE)
_BARE_INDEX_PATTERN = re.compile(r"^#?\s*(\d+)$")


def need_clarification(reason: ClarificationReason, request_id: str,
                       options: Optional[List[Dict[str, Any]]] = None,
                       clarification_id: Optional[str] = None) -> Dict[str, Any]:
    response: Dict[str, Any] = {
        "status": CommandStatus.NEED_CLARIFICATION.value,
        "question": get_question(reason),
        "options": options or [],
        "requestId": request_id,
    }
    if clarification_id:
        response["clarificationId"] = clarification_id
    return response


def _index_from_choice(text: str) -> Optional[int]:
    ordinal = _ORDINAL_PATTERN.match(fold(text))
    if ordinal:
        return ORDINALS[ordinal.group(1)]
    text = text.strip()
    match = _INDEX_PATTERN.match(text) or _BARE_INDEX_PATTERN.match(text)
    if match:
        return int(match.group(1)) - 1
    return None


def choose_option(choice: Optional[str], options: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Resolve a free-form answer to one of the stored options.

    Tried in order, first hit wins:
    1. the answer is a record id present among the options
    2. the whole answer is an ordinal ("second", "the 2nd one") or an index
       ("pick 2", "option 3", "2"), 1-based
    3. fuzzy: +2 if the option's company contains the answer, +1 if its title
       does; highest positive score wins, earlier options win ties
    """
    if not choice or not choice.strip() or not options:
        return None
    text = choice.strip()

    looks_like_id = is_record_id(text)
    if looks_like_id:
        for option in options:
            if str(option.get("jobId", "")).lower() == text.lower():
                return option
    else:
        index = _index_from_choice(text)
        if index is not None and 0 <= index < len(options):
            return options[index]

    needle = text.lower()
    best = None
    best_score = 0
    for option in options:
        score = 0
        if needle in str(option.get("company") or "").lower():
            score += 2
        if needle in str(option.get("title") or "").lower():
            score += 1
        if score > best_score:
            best, best_score = option, score
    return best


def is_expired(pending: Dict[str, Any], now: Optional[float] = None) -> bool:
    expires_at = pending.get("expires_at")
    if expires_at is None:
        return False
    now = time.time() if now is None else now
    return int(expires_at) <= now


class ClarificationService:
    """Opens and resumes pending clarifications for one user at a time."""

    def __init__(self, db: Optional[PendingClarificationDB] = None,
                 repo: Optional[JobRepo] = None,
                 executor: Optional[CommandExecutor] = None,
                 ttl_seconds: Optional[int] = None,
                 max_options: Optional[int] = None):
        self.db = db or PendingClarificationDB()
        self.repo = repo or JobRepo()
        self.executor = executor or CommandExecutor(repo=self.repo)
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else config.CLARIFICATION_TTL_SECONDS
        self.max_options = max_options if max_options is not None else config.MAX_CLARIFICATION_OPTIONS

    def open(self, user_id: str, args: TargetedArgs, resolution: Resolution,
             request_id: str) -> Dict[str, Any]:
        """NONE -> AMBIGUOUS: save (replacing any previous row) and ask."""
        options = resolution.options(self.max_options)
        if not options:
            return need_clarification(ClarificationReason.NO_CANDIDATES, request_id)

        pending = self.db.save(
            user_id=user_id,
            intent=args.intent.value,
            args=args.deferred(),
            options=options,
            ttl_seconds=self.ttl_seconds,
        )
        logger.info(
            f"Clarification {pending['clarification_id']} opened for user {user_id} "
            f"with {len(options)} options",
            extra={"user_id": user_id, "request_id": request_id,
                   "clarification_id": pending["clarification_id"],
                   "intent": args.intent.value, "state": ClarificationState.AMBIGUOUS.value})
        return need_clarification(ClarificationReason.AMBIGUOUS_TARGET, request_id,
                                  options=options,
                                  clarification_id=pending["clarification_id"])

    def resume(self, user_id: str, clarification_id: str, choice: Optional[str],
               request_id: str, meta: Dict[str, Any]) -> Dict[str, Any]:
        """RESOLVING: match the choice, claim the row, apply the captured command."""
        try:
            pending = self._load(user_id, clarification_id)
        except StaleClarification as e:
            logger.warning(f"Stale clarification for user {user_id}: {e}",
                           extra={"user_id": user_id, "request_id": request_id,
                                  "clarification_id": clarification_id})
            return self.stale(user_id, request_id)

        options = list(pending.get("options") or [])
        args = from_deferred(pending.get("intent"), pending.get("args") or {})
        if args is None:
            logger.warning(f"Clarification {clarification_id} holds an unusable command; discarding",
                           extra={"user_id": user_id, "clarification_id": clarification_id})
            self.db.delete_if_matches(user_id, clarification_id)
            return self.stale(user_id, request_id)

        option = choose_option(choice, options)
        if option is None:
            logger.info(f"Choice {choice!r} matched no option of clarification {clarification_id}",
                        extra={"user_id": user_id, "request_id": request_id,
                               "clarification_id": clarification_id,
                               "state": ClarificationState.RESOLVING.value})
            return need_clarification(ClarificationReason.CHOICE_NOT_FOUND, request_id,
                                      options=options, clarification_id=clarification_id)

        if not self.db.delete_if_matches(user_id, clarification_id):
            logger.warning(f"Clarification {clarification_id} was consumed concurrently",
                           extra={"user_id": user_id, "request_id": request_id,
                                  "clarification_id": clarification_id})
            return self.stale(user_id, request_id)

        job_id = str(option["jobId"])
        try:
            result = self.executor.apply(user_id, job_id, args,
                                         {**meta, "clarificationId": clarification_id})
        except JobNotFound:
            logger.warning(f"Job {job_id} chosen in clarification {clarification_id} no longer exists",
                           extra={"user_id": user_id, "request_id": request_id})
            return self.stale(user_id, request_id)
        except StorageError:
            # Put the row back so the user can answer again once storage recovers
            self._restore(pending)
            raise

        logger.info(f"Clarification {clarification_id} resolved to job {job_id}",
                    extra={"user_id": user_id, "request_id": request_id,
                           "clarification_id": clarification_id,
                           "state": ClarificationState.RESOLVED.value})
        return result

    def stale(self, user_id: str, request_id: str) -> Dict[str, Any]:
        """Re-prompt with a fresh option set built from the user's recent jobs."""
        candidates = self.repo.list_candidates(user_id, limit=config.CANDIDATE_LIMIT)
        ranked = rank(candidates, TargetHint(), STAGE_MOVE_POLICY)
        options = [c.job.summary() for c in ranked[:self.max_options]]
        return need_clarification(ClarificationReason.STALE_CLARIFICATION, request_id,
                                  options=options)

    def _load(self, user_id: str, clarification_id: str) -> Dict[str, Any]:
        pending = self.db.get(user_id)
        if pending is None:
            raise StaleClarification(f"no pending clarification ({clarification_id})")
        if pending.get("clarification_id") != clarification_id:
            raise StaleClarification(
                f"clarification {clarification_id} was replaced by {pending.get('clarification_id')}")
        if is_expired(pending):
            self.db.delete_if_matches(user_id, clarification_id)
            raise StaleClarification(f"clarification {clarification_id} expired")
        return pending

    def _restore(self, pending: Dict[str, Any]) -> None:
        try:
            self.db.put(pending)
        except StorageError as e:
            logger.error(f"Failed to restore clarification {pending.get('clarification_id')}: {e}",
                         extra={"user_id": pending.get("user_id")})
