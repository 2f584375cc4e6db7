"""
Core Error Classes

Custom exceptions for the command engine.
"""


class DuplicateRequest(Exception):
    """Raised when a request id was already submitted by the same user."""

    def __init__(self, user_id: str, request_id: str):
        super().__init__(f"Request {request_id} already handled for user {user_id}")
        self.user_id = user_id
        self.request_id = request_id


class StaleClarification(Exception):
    """Raised when a pending clarification is missing, expired or already consumed."""
    pass


class UpstreamError(Exception):
    """Raised when the upstream intent parser fails."""
    pass


class StorageError(Exception):
    """Raised when a DynamoDB read or write fails."""
    pass


class JobNotFound(StorageError):
    """Raised when the target job disappeared between ranking and update."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id
