"""Customer — the canonical profile owned by the customer store."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from profile_review.models.artifact import Confidence


# Keys that field updates may never write
RESERVED_FIELDS = frozenset({"id", "created_at", "updated_at", "createdAt", "updatedAt"})


class AdditionalDataItem(BaseModel):
    """A captured attribute that has no slot in the profile schema."""

    key: str                                # snake_case attribute name
    label: str
    value: Any = None
    confidence: Confidence = Confidence.MEDIUM
    source: str = ""
    category: Optional[str] = None
    added_at: datetime
    added_by: Optional[str] = None


class Customer(BaseModel):
    """Flat key-value profile plus the additional-data extension area."""

    id: str
    fields: Dict[str, Any] = {}
    additional_data: List[AdditionalDataItem] = []
    created_at: datetime
    updated_at: datetime

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)


class CustomerNote(BaseModel):
    id: str
    customer_id: str
    content: str
    source: str = "meeting"                 # "meeting" | "call" | "email" | "voice_note"
    tags: List[str] = []
    raw_input: Optional[str] = None
    metadata: dict = {}                     # proposal id, approved/unapproved field ids
    created_by: Optional[str] = None
    created_at: datetime
