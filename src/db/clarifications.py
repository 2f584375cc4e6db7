"""
DynamoDB Table: pending_clarifications

Partition key: user_id (string)   # at most one open clarification per user

Attributes:
  - clarification_id (string, 24 hex chars)
  - intent (string)                # MOVE_STAGE | COMMENT | ARCHIVE | RESTORE ...
  - args (map)                     # deferred intent arguments (stage, text, ...)
  - options (list<map>)            # [{jobId, company, title, stage}], at most 5
  - created_at (ISO8601)
  - expires_at (number, epoch)     # DynamoDB TTL attribute

Saving replaces any previous clarification of the same user. Deleting is
conditioned on clarification_id so only one resolver can consume a row.
"""

import time
from typing import Dict, Any, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from core.config import config
from core.errors.exceptions import StorageError
from db.jobs import new_record_id, now_iso


class PendingClarificationDB:
    def __init__(self, table_name: Optional[str] = None, region_name: Optional[str] = None):
        self.table = boto3.resource(
            "dynamodb", region_name=region_name or config.AWS_REGION
        ).Table(table_name or config.PENDING_CLARIFICATIONS_TABLE)

    def save(self, user_id: str, intent: str, args: Dict[str, Any],
             options: List[Dict[str, Any]], ttl_seconds: int) -> Dict[str, Any]:
        item = {
            "user_id": user_id,
            "clarification_id": new_record_id(),
            "intent": intent,
            "args": {k: v for k, v in args.items() if v is not None},
            "options": options,
            "created_at": now_iso(),
            "expires_at": int(time.time()) + ttl_seconds,
        }
        return self.put(item)

    def put(self, item: Dict[str, Any]) -> Dict[str, Any]:
        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                f"Failed to save clarification for user {item.get('user_id')}: {e}") from e
        return item

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            resp = self.table.get_item(Key={"user_id": user_id}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to read clarification for user {user_id}: {e}") from e
        return resp.get("Item")

    def delete_if_matches(self, user_id: str, clarification_id: str) -> bool:
        """Delete the row only if it still carries clarification_id. False when it does not."""
        try:
            self.table.delete_item(
                Key={"user_id": user_id},
                ConditionExpression=Attr("clarification_id").eq(clarification_id),
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return False
            raise StorageError(f"Failed to delete clarification {clarification_id}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to delete clarification {clarification_id}: {e}") from e
        return True
