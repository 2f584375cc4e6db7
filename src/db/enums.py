from enum import Enum

class Stage(Enum):
    WISHLIST = "WISHLIST"
    APPLIED = "APPLIED"
    INTERVIEW = "INTERVIEW"
    OFFER = "OFFER"
    ARCHIVED = "ARCHIVED"


class CommandIntent(Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    MOVE_STAGE = "MOVE_STAGE"
    ARCHIVE = "ARCHIVE"
    RESTORE = "RESTORE"
    COMMENT = "COMMENT"


class DedupStatus(Enum):
    APPLIED = "APPLIED"
    IGNORED = "IGNORED"


class CommandStatus(Enum):
    APPLIED = "APPLIED"
    IGNORED_DUPLICATE = "IGNORED_DUPLICATE"
    NEED_CLARIFICATION = "NEED_CLARIFICATION"
