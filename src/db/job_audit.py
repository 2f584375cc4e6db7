"""
DynamoDB Table: job_audit

Primary Key (composite):
  - PK = job_id (string)
  - SK = audit_sk (string)   # "{created_at}#{audit_id}", newest last

Attributes:
  - audit_id (string)
  - user_id (string)
  - action (string)          # CREATE | UPDATE | MOVE_STAGE | ARCHIVE | RESTORE | COMMENT
  - from_stage (string, optional)
  - to_stage (string, optional)
  - meta (map, optional)     # {requestId, source, clarificationId?}
  - created_at (ISO8601)
"""

from typing import Dict, Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from core.config import config
from core.errors.exceptions import StorageError
from db.enums import CommandIntent
from db.jobs import new_record_id, now_iso


class JobAuditDB:
    def __init__(self, table_name: Optional[str] = None, region_name: Optional[str] = None):
        self.table = boto3.resource(
            "dynamodb", region_name=region_name or config.AWS_REGION
        ).Table(table_name or config.JOB_AUDIT_TABLE)

    def record(self, job_id: str, user_id: str, action: str,
               from_stage: Optional[str] = None, to_stage: Optional[str] = None,
               meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if action not in {a.value for a in CommandIntent}:
            raise ValueError(f"Invalid audit action: {action}")
        audit_id = new_record_id()
        timestamp = now_iso()
        item: Dict[str, Any] = {
            "job_id": job_id,
            "audit_sk": f"{timestamp}#{audit_id}",
            "audit_id": audit_id,
            "user_id": user_id,
            "action": action,
            "created_at": timestamp,
        }
        # DynamoDB rejects empty/None attribute values in some shapes; only set what we have
        if from_stage:
            item["from_stage"] = from_stage
        if to_stage:
            item["to_stage"] = to_stage
        if meta:
            item["meta"] = {k: v for k, v in meta.items() if v is not None}
        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to write audit for job {job_id}: {e}") from e
        return item
