"""
DynamoDB Table: command_dedup

Primary Key (composite):
  - PK = user_id (string)
  - SK = request_id (string)   # client-supplied, unique per user

Attributes:
  - command (map)              # raw command body as received
  - status (string)            # "APPLIED" | "IGNORED"
  - created_at (ISO8601)

Rows are written once with attribute_not_exists(request_id); the conditional
put is the only concurrency primitive. Retention is handled outside this table.
"""

from typing import Dict, Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from core.config import config
from core.errors.exceptions import DuplicateRequest, StorageError
from db.enums import DedupStatus
from db.jobs import now_iso


class CommandDedupDB:
    def __init__(self, table_name: Optional[str] = None, region_name: Optional[str] = None):
        self.table = boto3.resource(
            "dynamodb", region_name=region_name or config.AWS_REGION
        ).Table(table_name or config.COMMAND_DEDUP_TABLE)

    def insert(self, user_id: str, request_id: str, command: Dict[str, Any],
               status: str = DedupStatus.APPLIED.value) -> Dict[str, Any]:
        """Insert-if-absent. Raises DuplicateRequest when the pair already exists."""
        item = {
            "user_id": user_id,
            "request_id": request_id,
            "command": {k: v for k, v in command.items() if v is not None},
            "status": status,
            "created_at": now_iso(),
        }
        try:
            self.table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(request_id)",
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise DuplicateRequest(user_id, request_id) from e
            raise StorageError(f"Failed to record request {request_id}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to record request {request_id}: {e}") from e
        return item

    def delete(self, user_id: str, request_id: str) -> None:
        try:
            self.table.delete_item(Key={"user_id": user_id, "request_id": request_id})
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete request {request_id}: {e}") from e
