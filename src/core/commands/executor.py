"""
Command Executor

Applies exactly one effect per call and records an audit row for it. Every
state change made by the command engine goes through here.
"""

import logging
from typing import Any, Dict, Optional

from core.commands.args import (
    ArchiveArgs,
    CommentArgs,
    CreateArgs,
    MoveStageArgs,
    RestoreArgs,
    TargetedArgs,
)
from core.errors.exceptions import JobNotFound, StorageError
from db.enums import CommandIntent, CommandStatus, Stage
from db.job_audit import JobAuditDB
from features.jobs.repo import JobRepo

logger = logging.getLogger(__name__)


def applied(effect: Dict[str, Any]) -> Dict[str, Any]:
    return {"status": CommandStatus.APPLIED.value, "effects": [effect]}


class CommandExecutor:
    def __init__(self, repo: Optional[JobRepo] = None, audit_db: Optional[JobAuditDB] = None):
        self.repo = repo or JobRepo()
        self.audit_db = audit_db or JobAuditDB()

    def create(self, user_id: str, args: CreateArgs, meta: Dict[str, Any]) -> Dict[str, Any]:
        job = self.repo.create_job(
            user_id=user_id,
            company=args.company,
            position=args.title,
            location=args.location,
            stage=args.stage,
        )
        self._audit(job.job_id, user_id, CommandIntent.CREATE, meta=meta)
        logger.info(f"Created job {job.job_id} for user {user_id}",
                    extra={"user_id": user_id, "job_id": job.job_id, **_log_meta(meta)})
        return applied({"type": CommandIntent.CREATE.value, "jobId": job.job_id})

    def apply(self, user_id: str, job_id: str, args: TargetedArgs,
              meta: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a targeted command to a resolved job.

        Raises:
            JobNotFound: the job disappeared since it was ranked
            StorageError: the primary write failed
        """
        if isinstance(args, MoveStageArgs):
            if not args.stage:
                raise ValueError("MOVE_STAGE requires a target stage")
            return self._set_stage(user_id, job_id, CommandIntent.MOVE_STAGE, args.stage, None, meta)
        if isinstance(args, ArchiveArgs):
            return self._set_stage(user_id, job_id, CommandIntent.ARCHIVE,
                                   Stage.ARCHIVED.value, True, meta)
        if isinstance(args, RestoreArgs):
            return self._set_stage(user_id, job_id, CommandIntent.RESTORE,
                                   Stage.WISHLIST.value, False, meta)
        if isinstance(args, CommentArgs):
            if not args.text or not args.text.strip():
                raise ValueError("COMMENT requires note text")
            return self._comment(user_id, job_id, args.text, meta)
        raise ValueError(f"Unsupported command arguments: {type(args).__name__}")

    def _set_stage(self, user_id: str, job_id: str, action: CommandIntent, stage: str,
                   archived: Optional[bool], meta: Dict[str, Any]) -> Dict[str, Any]:
        from_stage = self.repo.set_stage(user_id, job_id, stage, archived=archived)
        self._audit(job_id, user_id, action, from_stage=from_stage, to_stage=stage, meta=meta)
        logger.info(f"{action.value} job {job_id}: {from_stage} -> {stage}",
                    extra={"user_id": user_id, "job_id": job_id, **_log_meta(meta)})
        return applied({"type": action.value, "jobId": job_id, "from": from_stage, "to": stage})

    def _comment(self, user_id: str, job_id: str, text: str,
                 meta: Dict[str, Any]) -> Dict[str, Any]:
        comment = self.repo.add_comment(user_id=user_id, job_id=job_id, text=text)

        # The comment is kept even if the counter cannot be bumped
        notes_updated = True
        try:
            self.repo.increment_notes_count(user_id, job_id)
        except (JobNotFound, StorageError) as e:
            notes_updated = False
            logger.warning(
                f"Comment {comment['comment_id']} saved but notes counter of job {job_id} "
                f"was not incremented: {e}",
                extra={"user_id": user_id, "job_id": job_id, **_log_meta(meta)})

        self._audit(job_id, user_id, CommandIntent.COMMENT, meta=meta)
        logger.info(f"Commented on job {job_id}",
                    extra={"user_id": user_id, "job_id": job_id, **_log_meta(meta)})
        return applied({
            "type": CommandIntent.COMMENT.value,
            "jobId": job_id,
            "commentId": comment["comment_id"],
            "notesCountUpdated": notes_updated,
        })

    def _audit(self, job_id: str, user_id: str, action: CommandIntent,
               from_stage: Optional[str] = None, to_stage: Optional[str] = None,
               meta: Optional[Dict[str, Any]] = None) -> None:
        try:
            self.audit_db.record(job_id=job_id, user_id=user_id, action=action.value,
                                 from_stage=from_stage, to_stage=to_stage, meta=meta)
        except StorageError as e:
            logger.warning(f"Audit write failed for job {job_id} action {action.value}: {e}",
                           extra={"user_id": user_id, "job_id": job_id})


def _log_meta(meta: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    meta = meta or {}
    return {
        "request_id": meta.get("requestId"),
        "clarification_id": meta.get("clarificationId"),
    }
