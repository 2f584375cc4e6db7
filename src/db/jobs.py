"""
DynamoDB Table: jobs

Primary Key (composite):
  - PK = user_id (string)
  - SK = job_id (string, 24 hex chars)

GSI user_id-updated_at-index:
  - PK = user_id
  - SK = updated_at (ISO8601)   # newest first with ScanIndexForward=False

Attributes:
  - company (string)
  - position (string)        # current shape
  - title (string)           # legacy shape, read only
  - location (string)
  - source_url (string, optional)
  - priority (string)        # "starred" | "normal"
  - stage (string)           # WISHLIST | APPLIED | INTERVIEW | OFFER | ARCHIVED
  - archived (bool)
  - notes_count (number)
  - created_at (ISO8601)
  - updated_at (ISO8601)
"""

import secrets
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from core.config import config
from core.errors.exceptions import JobNotFound, StorageError
from db.enums import Stage


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_record_id() -> str:
    """24 lowercase hex characters, the identifier shape users can quote back."""
    return secrets.token_hex(12)


def _is_conditional_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class JobDB:
    def __init__(self, table_name: Optional[str] = None, updated_index: Optional[str] = None,
                 region_name: Optional[str] = None):
        self.table = boto3.resource(
            "dynamodb", region_name=region_name or config.AWS_REGION
        ).Table(table_name or config.JOBS_TABLE)
        self.updated_index = updated_index or config.JOBS_BY_UPDATED_INDEX

    # ---------- Create / Fetch ----------
    def create_job(self, user_id: str, company: str, position: str, location: str = "",
                   stage: str = Stage.WISHLIST.value, source_url: Optional[str] = None,
                   priority: str = "normal") -> Dict[str, Any]:
        if stage not in {s.value for s in Stage}:
            raise ValueError(f"Invalid stage: {stage}")
        timestamp = now_iso()
        job = {
            "user_id": user_id,
            "job_id": new_record_id(),
            "company": company,
            "position": position,
            "location": location,
            "priority": priority,
            "stage": stage,
            "archived": stage == Stage.ARCHIVED.value,
            "notes_count": 0,
            "created_at": timestamp,
            "updated_at": timestamp,
        }
        if source_url:
            job["source_url"] = source_url
        try:
            self.table.put_item(Item=job)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to create job for user {user_id}: {e}") from e
        return job

    def get_job(self, user_id: str, job_id: str) -> Optional[Dict[str, Any]]:
        try:
            resp = self.table.get_item(Key={"user_id": user_id, "job_id": job_id})
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to read job {job_id}: {e}") from e
        return resp.get("Item")

    def list_recent_jobs(self, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Jobs of one user, most recently updated first, at most `limit` rows."""
        items: List[Dict[str, Any]] = []
        query_kwargs: Dict[str, Any] = {
            "IndexName": self.updated_index,
            "KeyConditionExpression": Key("user_id").eq(user_id),
            "ScanIndexForward": False,
            "Limit": limit,
        }
        try:
            while len(items) < limit:
                resp = self.table.query(**query_kwargs)
                items.extend(resp.get("Items", []))
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key
                query_kwargs["Limit"] = limit - len(items)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list jobs for user {user_id}: {e}") from e
        return items[:limit]

    # ---------- Updates ----------
    def update_stage(self, user_id: str, job_id: str, stage: str,
                     archived: Optional[bool] = None) -> Dict[str, Any]:
        """
        Set the stage of an existing job.

        Returns the item as it was before the update so callers can record the
        prior stage. Raises JobNotFound when the job no longer exists.
        """
        if stage not in {s.value for s in Stage}:
            raise ValueError(f"Invalid stage: {stage}")
        update_expression = "SET #stage = :stage, updated_at = :updated_at"
        values: Dict[str, Any] = {":stage": stage, ":updated_at": now_iso()}
        if archived is not None:
            update_expression += ", archived = :archived"
            values[":archived"] = archived
        try:
            resp = self.table.update_item(
                Key={"user_id": user_id, "job_id": job_id},
                UpdateExpression=update_expression,
                ConditionExpression="attribute_exists(job_id)",
                ExpressionAttributeNames={"#stage": "stage"},
                ExpressionAttributeValues=values,
                ReturnValues="ALL_OLD",
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                raise JobNotFound(job_id) from e
            raise StorageError(f"Failed to update stage of job {job_id}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to update stage of job {job_id}: {e}") from e
        return resp.get("Attributes", {})

    def increment_notes_count(self, user_id: str, job_id: str, by: int = 1) -> int:
        try:
            resp = self.table.update_item(
                Key={"user_id": user_id, "job_id": job_id},
                UpdateExpression="ADD notes_count :by SET updated_at = :updated_at",
                ConditionExpression="attribute_exists(job_id)",
                ExpressionAttributeValues={":by": by, ":updated_at": now_iso()},
                ReturnValues="UPDATED_NEW",
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                raise JobNotFound(job_id) from e
            raise StorageError(f"Failed to increment notes of job {job_id}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to increment notes of job {job_id}: {e}") from e
        return int(resp.get("Attributes", {}).get("notes_count", 0))
