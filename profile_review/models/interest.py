"""Interest — durable customer interest, independent of the artifact that proposed it."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from profile_review.models.artifact import Confidence, InterestCategory, parse_tokens


class InterestStatus(str, Enum):
    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    ARCHIVED = "archived"   # Soft delete; rows are never removed

    @classmethod
    def parse_many(cls, tokens) -> List["InterestStatus"]:
        """Parse status tokens, silently dropping unknown ones."""
        return parse_tokens(cls, tokens)


class InterestSourceType(str, Enum):
    SYSTEM_SUGGESTED = "system_suggested"
    MANUAL = "manual"


class InterestAuditAction(str, Enum):
    CREATED = "created"
    CONFIRMED = "confirmed"
    EDITED = "edited"
    ARCHIVED = "archived"


class ActorType(str, Enum):
    RM = "rm"
    SYSTEM = "system"
    ADMIN = "admin"


class Interest(BaseModel):
    """A confirmed, proposed or archived interest of one customer."""

    id: str
    customer_id: str
    category: InterestCategory
    label: str
    description: Optional[str] = None
    status: InterestStatus = InterestStatus.CONFIRMED
    source_type: InterestSourceType = InterestSourceType.MANUAL
    source_artifact_id: Optional[str] = None
    source_text: Optional[str] = None
    confidence: Optional[Confidence] = None
    created_by: str
    archived_by: Optional[str] = None
    archived_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class InterestAuditRecord(BaseModel):
    """One entry in an interest's change history."""

    id: str
    interest_id: str
    action: InterestAuditAction
    actor_id: Optional[str] = None
    actor_type: ActorType = ActorType.RM
    previous_state: Optional[dict] = None
    new_state: Optional[dict] = None
    created_at: datetime


class InterestEdit(BaseModel):
    """Label/description overrides supplied by the RM."""

    label: Optional[str] = None
    description: Optional[str] = None

    def is_empty(self) -> bool:
        return self.label is None and self.description is None
