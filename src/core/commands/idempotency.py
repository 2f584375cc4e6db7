"""
Idempotency Guard

At-most-once intake per (user, client request id). The conditional put on the
command_dedup table is the whole mechanism: two concurrent submissions of the
same id race on it and exactly one wins.
"""

import logging
from typing import Any, Dict, Optional

from core.errors.exceptions import StorageError
from db.command_dedup import CommandDedupDB
from db.enums import CommandStatus, DedupStatus

logger = logging.getLogger(__name__)


def ignored_duplicate(request_id: str) -> Dict[str, Any]:
    return {"status": CommandStatus.IGNORED_DUPLICATE.value, "requestId": request_id}


class IdempotencyGuard:
    def __init__(self, db: Optional[CommandDedupDB] = None):
        self.db = db or CommandDedupDB()

    def submit(self, user_id: str, request_id: str, payload: Dict[str, Any]) -> bool:
        """
        Record a request as handled.

        Returns:
            True when the request is fresh

        Raises:
            DuplicateRequest: the same user already submitted request_id
            StorageError: the dedup table could not be written
        """
        self.db.insert(user_id=user_id, request_id=request_id, command=payload,
                       status=DedupStatus.APPLIED.value)
        return True

    def release(self, user_id: str, request_id: str) -> None:
        """
        Forget a request after a fatal failure so the client can retry it.

        Best effort: a failure here is logged, the original error is what the
        caller reports.
        """
        try:
            self.db.delete(user_id, request_id)
            logger.info(f"Released request {request_id} after failure",
                        extra={"user_id": user_id, "request_id": request_id})
        except StorageError as e:
            logger.error(f"Could not release request {request_id}; retries will be ignored: {e}",
                         extra={"user_id": user_id, "request_id": request_id})
