"""
Command API Endpoint

FastAPI endpoint for voice/text commands against a user's job records.

Requests arrive already authenticated: the gateway resolves the user and
forwards its id in the X-User-Id header.
"""

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from core.commands.orchestrator import CommandEngine, get_engine
from core.errors.exceptions import StorageError

router = APIRouter()
logger = logging.getLogger(__name__)


class CommandRequest(BaseModel):
    """Request model for /commands endpoint."""
    channel: Literal["voice", "text"]
    transcript: str = Field(min_length=1)
    requestId: str = Field(min_length=1)
    clarificationId: Optional[str] = None
    choice: Optional[str] = None
    stage: Optional[str] = None


class ClarificationOption(BaseModel):
    jobId: str
    company: str
    title: Optional[str] = None
    stage: Optional[str] = None


class CommandResponse(BaseModel):
    """Response model for /commands endpoint; `status` says which fields are set."""
    status: Literal["APPLIED", "IGNORED_DUPLICATE", "NEED_CLARIFICATION"]
    requestId: Optional[str] = None
    clarificationId: Optional[str] = None
    question: Optional[str] = None
    options: Optional[List[ClarificationOption]] = None
    effects: Optional[List[Dict[str, Any]]] = None


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=401,
            detail={"success": False, "error": "unauthenticated", "message": "Missing user id"}
        )
    return x_user_id.strip()


def get_command_engine() -> CommandEngine:
    return get_engine()


@router.post("/commands", response_model=CommandResponse, response_model_exclude_none=True)
def post_command(
    request: CommandRequest,
    user_id: str = Depends(get_user_id),
    engine: CommandEngine = Depends(get_command_engine),
):
    """
    Process one command.

    Every engine outcome (applied, duplicate, clarification) is a 200 with a
    status discriminator. Only storage failures produce an error status.
    """
    body = request.model_dump(exclude_none=True)
    logger.info("[command] received", extra={
        "user_id": user_id,
        "request_id": request.requestId,
        "channel": request.channel,
        "resuming": request.clarificationId is not None,
    })
    try:
        result = engine.handle(user_id, body)
    except StorageError as e:
        raise HTTPException(
            status_code=500,
            detail={
                "success": False,
                "error": "internal_error",
                "message": str(e)
            }
        )
    logger.info("[command] done", extra={
        "user_id": user_id,
        "request_id": request.requestId,
        "status": result.get("status"),
    })
    return result
