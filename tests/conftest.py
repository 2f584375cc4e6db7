import logging
import os
import time
from typing import Any, Dict, List, Optional

import pytest

# Offline defaults: no AWS credential discovery, no OpenAI calls
os.environ.setdefault("AWS_EC2_METADATA_DISABLED", "true")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-2")
os.environ["OPENAI_API_KEY"] = ""

from core.clients.intent_parser_client import IntentParser  # noqa: E402
from core.commands.clarification import ClarificationService  # noqa: E402
from core.commands.executor import CommandExecutor  # noqa: E402
from core.commands.idempotency import IdempotencyGuard  # noqa: E402
from core.commands.orchestrator import CommandEngine  # noqa: E402
from core.errors.exceptions import DuplicateRequest, JobNotFound, StorageError  # noqa: E402
from db.jobs import new_record_id, now_iso  # noqa: E402
from features.jobs.repo import JobRepo  # noqa: E402


class FakeJobDB:
    """In-memory stand-in for db.jobs.JobDB."""

    def __init__(self):
        self.items: Dict[tuple, Dict[str, Any]] = {}
        self.fail_updates = False
        self.fail_increments = False

    def add(self, user_id: str, company: str, position: Optional[str] = None,
            stage: str = "WISHLIST", updated_at: str = "2024-01-01T00:00:00+00:00",
            title: Optional[str] = None, job_id: Optional[str] = None) -> Dict[str, Any]:
        item = {
            "user_id": user_id,
            "job_id": job_id or new_record_id(),
            "company": company,
            "stage": stage,
            "archived": stage == "ARCHIVED",
            "notes_count": 0,
            "updated_at": updated_at,
        }
        if position is not None:
            item["position"] = position
        if title is not None:
            item["title"] = title
        self.items[(user_id, item["job_id"])] = item
        return item

    def create_job(self, user_id, company, position, location="", stage="WISHLIST",
                   source_url=None, priority="normal"):
        item = self.add(user_id, company, position=position, stage=stage, updated_at=now_iso())
        item["location"] = location
        return dict(item)

    def get_job(self, user_id, job_id):
        return self.items.get((user_id, job_id))

    def list_recent_jobs(self, user_id, limit=100):
        rows = [dict(i) for (uid, _), i in self.items.items() if uid == user_id]
        rows.sort(key=lambda i: i["updated_at"], reverse=True)
        return rows[:limit]

    def update_stage(self, user_id, job_id, stage, archived=None):
        if self.fail_updates:
            raise StorageError("update failed")
        item = self.items.get((user_id, job_id))
        if item is None:
            raise JobNotFound(job_id)
        old = dict(item)
        item["stage"] = stage
        if archived is not None:
            item["archived"] = archived
        item["updated_at"] = now_iso()
        return old

    def increment_notes_count(self, user_id, job_id, by=1):
        if self.fail_increments:
            raise StorageError("increment failed")
        item = self.items.get((user_id, job_id))
        if item is None:
            raise JobNotFound(job_id)
        item["notes_count"] += by
        return item["notes_count"]


class FakeCommentDB:
    def __init__(self):
        self.comments: List[Dict[str, Any]] = []

    def create_comment(self, job_id, user_id, text):
        if not text or not text.strip():
            raise ValueError("Comment text must not be empty")
        comment = {"job_id": job_id, "comment_id": new_record_id(), "user_id": user_id, "text": text}
        self.comments.append(comment)
        return comment


class FakeAuditDB:
    def __init__(self):
        self.rows: List[Dict[str, Any]] = []
        self.fail = False

    def record(self, job_id, user_id, action, from_stage=None, to_stage=None, meta=None):
        if self.fail:
            raise StorageError("audit table unavailable")
        row = {"job_id": job_id, "user_id": user_id, "action": action,
               "from_stage": from_stage, "to_stage": to_stage, "meta": meta}
        self.rows.append(row)
        return row


class FakeDedupDB:
    def __init__(self):
        self.rows: Dict[tuple, Dict[str, Any]] = {}

    def insert(self, user_id, request_id, command, status="APPLIED"):
        if (user_id, request_id) in self.rows:
            raise DuplicateRequest(user_id, request_id)
        row = {"user_id": user_id, "request_id": request_id, "command": command, "status": status}
        self.rows[(user_id, request_id)] = row
        return row

    def delete(self, user_id, request_id):
        self.rows.pop((user_id, request_id), None)


class FakeClarificationDB:
    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}

    def save(self, user_id, intent, args, options, ttl_seconds):
        item = {
            "user_id": user_id,
            "clarification_id": new_record_id(),
            "intent": intent,
            "args": dict(args),
            "options": list(options),
            "created_at": now_iso(),
            "expires_at": int(time.time()) + ttl_seconds,
        }
        return self.put(item)

    def put(self, item):
        self.rows[item["user_id"]] = dict(item)
        return item

    def get(self, user_id):
        row = self.rows.get(user_id)
        return dict(row) if row else None

    def delete_if_matches(self, user_id, clarification_id):
        row = self.rows.get(user_id)
        if row is None or row["clarification_id"] != clarification_id:
            return False
        del self.rows[user_id]
        return True


class StubParser(IntentParser):
    """Returns a canned parse per transcript (or a default)."""

    def __init__(self, responses: Optional[Dict[str, Dict[str, Any]]] = None,
                 default: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.default = default if default is not None else {}
        self.calls: List[str] = []

    def parse(self, transcript):
        self.calls.append(transcript)
        return self.responses.get(transcript, self.default)


@pytest.fixture
def job_db():
    return FakeJobDB()


@pytest.fixture
def comment_db():
    return FakeCommentDB()


@pytest.fixture
def audit_db():
    return FakeAuditDB()


@pytest.fixture
def dedup_db():
    return FakeDedupDB()


@pytest.fixture
def clarification_db():
    return FakeClarificationDB()


@pytest.fixture
def repo(job_db, comment_db):
    return JobRepo(db=job_db, comment_db=comment_db)


@pytest.fixture
def executor(repo, audit_db):
    return CommandExecutor(repo=repo, audit_db=audit_db)


@pytest.fixture
def clarifications(clarification_db, repo, executor):
    return ClarificationService(db=clarification_db, repo=repo, executor=executor,
                                ttl_seconds=900, max_options=5)


@pytest.fixture
def parser():
    return StubParser()


@pytest.fixture
def engine(parser, dedup_db, repo, executor, clarifications):
    return CommandEngine(intent_parser=parser, guard=IdempotencyGuard(db=dedup_db),
                         repo=repo, executor=executor, clarifications=clarifications,
                         candidate_limit=100)


@pytest.fixture(autouse=True)
def _package_logs_reach_caplog():
    # core.api.main installs package handlers with propagate=False
    for name in ("core", "db", "features"):
        logging.getLogger(name).propagate = True
    yield
