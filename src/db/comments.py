"""
DynamoDB Table: job_comments

Primary Key (composite):
  - PK = job_id (string)
  - SK = comment_id (string, 24 hex chars)

Attributes:
  - user_id (string)
  - text (string)
  - created_at (ISO8601)
"""

from typing import Dict, Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from core.config import config
from core.errors.exceptions import StorageError
from db.jobs import new_record_id, now_iso


class CommentDB:
    def __init__(self, table_name: Optional[str] = None, region_name: Optional[str] = None):
        self.table = boto3.resource(
            "dynamodb", region_name=region_name or config.AWS_REGION
        ).Table(table_name or config.JOB_COMMENTS_TABLE)

    def create_comment(self, job_id: str, user_id: str, text: str) -> Dict[str, Any]:
        if not text or not text.strip():
            raise ValueError("Comment text must not be empty")
        comment = {
            "job_id": job_id,
            "comment_id": new_record_id(),
            "user_id": user_id,
            "text": text,
            "created_at": now_iso(),
        }
        try:
            self.table.put_item(Item=comment)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to create comment on job {job_id}: {e}") from e
        return comment
