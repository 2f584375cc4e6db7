"""
Job repository layer for data access operations.

Job rows were written in two shapes over time: current rows carry
`position`, older rows only `title`. normalize_job is the single place that
reconciles them; everything above this layer sees JobRecord.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from db.comments import CommentDB
from db.enums import Stage
from db.jobs import JobDB


@dataclass(frozen=True)
class JobRecord:
    job_id: str
    user_id: str
    company: str
    position: str
    stage: str
    notes_count: int = 0
    updated_at: str = ""
    archived: bool = False
    location: str = ""

    @property
    def is_archived(self) -> bool:
        return self.stage == Stage.ARCHIVED.value

    def summary(self) -> Dict[str, Any]:
        """Candidate summary as stored in clarification options."""
        return {
            "jobId": self.job_id,
            "company": self.company,
            "title": self.position,
            "stage": self.stage,
        }


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def read_position(item: Dict[str, Any]) -> str:
    """First non-empty of `position` then legacy `title`."""
    for key in ("position", "title"):
        value = _text(item.get(key))
        if value:
            return value
    return ""


def normalize_job(item: Dict[str, Any]) -> JobRecord:
    notes = item.get("notes_count", 0)
    if isinstance(notes, Decimal):
        notes = int(notes)
    elif not isinstance(notes, int):
        notes = 0
    return JobRecord(
        job_id=str(item.get("job_id", "")),
        user_id=str(item.get("user_id", "")),
        company=_text(item.get("company")),
        position=read_position(item),
        stage=_text(item.get("stage")) or Stage.WISHLIST.value,
        notes_count=notes,
        updated_at=_text(item.get("updated_at")),
        archived=bool(item.get("archived", False)),
        location=_text(item.get("location")),
    )


class JobRepo:
    """
    Thin data-access adapter around JobDB and CommentDB (user scoped).
    """

    def __init__(self, db: Optional[JobDB] = None, comment_db: Optional[CommentDB] = None):
        self.db = db or JobDB()
        self.comment_db = comment_db or CommentDB()

    def list_candidates(self, user_id: str, limit: int = 100) -> List[JobRecord]:
        """Most recently updated jobs of a user, normalized."""
        return [normalize_job(item) for item in self.db.list_recent_jobs(user_id, limit=limit)]

    def create_job(self, user_id: str, company: str, position: str, location: str = "",
                   stage: str = Stage.WISHLIST.value) -> JobRecord:
        return normalize_job(self.db.create_job(
            user_id=user_id, company=company, position=position,
            location=location, stage=stage))

    def set_stage(self, user_id: str, job_id: str, stage: str,
                  archived: Optional[bool] = None) -> Optional[str]:
        """Update the stage and return the stage the job had before."""
        previous = self.db.update_stage(user_id, job_id, stage, archived=archived)
        return _text(previous.get("stage")) or None

    def add_comment(self, user_id: str, job_id: str, text: str) -> Dict[str, Any]:
        return self.comment_db.create_comment(job_id=job_id, user_id=user_id, text=text)

    def increment_notes_count(self, user_id: str, job_id: str) -> int:
        return self.db.increment_notes_count(user_id, job_id, by=1)
