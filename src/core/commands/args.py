"""
Typed command arguments.

The intent parser returns an untyped bag: {"intent": ..., "args": {...}} with
whatever keys the model felt like producing. parse_command turns it into one
tagged variant per intent right after parsing, so nothing downstream reads
raw parser output.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from core.commands.normalization import normalize_stage
from db.enums import CommandIntent, Stage

COMPANY_KEYS = ("company", "companyName", "company_name", "employer", "organization", "org")
POSITION_KEYS = ("position", "title", "role", "jobTitle", "job_title")
STAGE_KEYS = ("stage", "toStage", "to_stage", "targetStage", "target_stage", "status", "to")
TEXT_KEYS = ("text", "comment", "note", "body", "content", "message")
LOCATION_KEYS = ("location", "city")

_INTENT_ALIASES = {
    "MOVE": CommandIntent.MOVE_STAGE,
    "MOVE_STAGE": CommandIntent.MOVE_STAGE,
    "CHANGE_STAGE": CommandIntent.MOVE_STAGE,
    "COMMENT": CommandIntent.COMMENT,
    "NOTE": CommandIntent.COMMENT,
    "ADD_NOTE": CommandIntent.COMMENT,
    "CREATE": CommandIntent.CREATE,
    "ADD": CommandIntent.CREATE,
    "UPDATE": CommandIntent.UPDATE,
    "ARCHIVE": CommandIntent.ARCHIVE,
    "RESTORE": CommandIntent.RESTORE,
    "UNARCHIVE": CommandIntent.RESTORE,
}


def first_text(args: Dict[str, Any], keys: Tuple[str, ...]) -> Optional[str]:
    """First key whose value is a non-blank string. Other types are ignored."""
    for key in keys:
        value = args.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


@dataclass(frozen=True)
class TargetHint:
    company: Optional[str] = None
    position: Optional[str] = None

    @classmethod
    def from_args(cls, args: Dict[str, Any]) -> "TargetHint":
        return cls(company=first_text(args, COMPANY_KEYS),
                   position=first_text(args, POSITION_KEYS))


@dataclass(frozen=True)
class MoveStageArgs:
    stage: Optional[str]
    target: TargetHint = field(default_factory=TargetHint)
    intent: CommandIntent = CommandIntent.MOVE_STAGE

    def deferred(self) -> Dict[str, Any]:
        return {"stage": self.stage}


@dataclass(frozen=True)
class CommentArgs:
    text: str
    target: TargetHint = field(default_factory=TargetHint)
    intent: CommandIntent = CommandIntent.COMMENT

    def deferred(self) -> Dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class CreateArgs:
    title: str = "Untitled"
    company: str = "Unknown"
    location: str = ""
    stage: str = Stage.WISHLIST.value
    intent: CommandIntent = CommandIntent.CREATE


@dataclass(frozen=True)
class ArchiveArgs:
    target: TargetHint = field(default_factory=TargetHint)
    intent: CommandIntent = CommandIntent.ARCHIVE

    def deferred(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class RestoreArgs:
    target: TargetHint = field(default_factory=TargetHint)
    intent: CommandIntent = CommandIntent.RESTORE

    def deferred(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class UnsupportedArgs:
    """Parser produced no intent, or one this engine does not act on."""
    intent: Optional[CommandIntent] = None


CommandArgs = Union[MoveStageArgs, CommentArgs, CreateArgs, ArchiveArgs, RestoreArgs, UnsupportedArgs]
TargetedArgs = Union[MoveStageArgs, CommentArgs, ArchiveArgs, RestoreArgs]


def normalize_intent(value: Any) -> Optional[CommandIntent]:
    if not isinstance(value, str):
        return None
    key = value.strip().upper().replace("-", "_").replace(" ", "_")
    return _INTENT_ALIASES.get(key)


def parse_command(parsed: Any, transcript: str, stage_override: Optional[str] = None) -> CommandArgs:
    """
    Validate a parser result into a typed variant.

    Args:
        parsed: Raw parser output, expected {"intent": str, "args": dict}
        transcript: Original command text, used for stage inference and as
            the comment text fallback
        stage_override: Stage text supplied explicitly by the client

    Returns:
        One of the CommandArgs variants
    """
    if not isinstance(parsed, dict):
        return UnsupportedArgs()
    intent = normalize_intent(parsed.get("intent"))
    args = parsed.get("args")
    if not isinstance(args, dict):
        args = {}

    if intent is None:
        return UnsupportedArgs()

    if intent == CommandIntent.MOVE_STAGE:
        stage = (normalize_stage(stage_override)
                 or normalize_stage(first_text(args, STAGE_KEYS))
                 or normalize_stage(transcript))
        return MoveStageArgs(stage=stage, target=TargetHint.from_args(args))

    if intent == CommandIntent.COMMENT:
        text = first_text(args, TEXT_KEYS) or transcript.strip()
        return CommentArgs(text=text, target=TargetHint.from_args(args))

    if intent == CommandIntent.CREATE:
        return CreateArgs(
            title=first_text(args, POSITION_KEYS) or "Untitled",
            company=first_text(args, COMPANY_KEYS) or "Unknown",
            location=first_text(args, LOCATION_KEYS) or "",
            stage=normalize_stage(first_text(args, STAGE_KEYS)) or Stage.WISHLIST.value,
        )

    if intent == CommandIntent.ARCHIVE:
        return ArchiveArgs(target=TargetHint.from_args(args))

    if intent == CommandIntent.RESTORE:
        return RestoreArgs(target=TargetHint.from_args(args))

    return UnsupportedArgs(intent=intent)


def from_deferred(intent: str, deferred: Dict[str, Any]) -> Optional[TargetedArgs]:
    """Rebuild the variant captured in a pending clarification."""
    parsed_intent = normalize_intent(intent)
    deferred = deferred if isinstance(deferred, dict) else {}
    if parsed_intent == CommandIntent.MOVE_STAGE:
        stage = normalize_stage(first_text(deferred, ("stage",)))
        return MoveStageArgs(stage=stage) if stage else None
    if parsed_intent == CommandIntent.COMMENT:
        text = first_text(deferred, ("text",))
        return CommentArgs(text=text) if text else None
    if parsed_intent == CommandIntent.ARCHIVE:
        return ArchiveArgs()
    if parsed_intent == CommandIntent.RESTORE:
        return RestoreArgs()
    return None
