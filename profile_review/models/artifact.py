"""Artifact — a single extracted suggestion awaiting an RM decision."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


def parse_tokens(enum_cls, tokens) -> list:
    """
    Parse one token or an iterable of tokens into members of enum_cls.
    Unknown tokens are dropped silently; duplicates are collapsed.
    """
    if tokens is None:
        return []
    if isinstance(tokens, (str, Enum)):
        tokens = [tokens]
    parsed = []
    for token in tokens:
        try:
            member = enum_cls(token.strip() if isinstance(token, str) else token)
        except ValueError:
            continue
        if member not in parsed:
            parsed.append(member)
    return parsed


class Confidence(str, Enum):
    HIGH = "high"       # Clearly stated in the source text
    MEDIUM = "medium"   # Strongly implied
    LOW = "low"         # Needs careful verification


class ArtifactType(str, Enum):
    PROFILE_EDIT = "profile_edit"
    INTEREST_PROPOSAL = "interest_proposal"
    NOTE = "note"


class ArtifactStatus(str, Enum):
    """
    Artifact lifecycle.

    pending is the only initial state and the only state with outgoing
    edges. accepted, rejected and edited are terminal.
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EDITED = "edited"

    @property
    def is_terminal(self) -> bool:
        return self is not ArtifactStatus.PENDING

    @classmethod
    def parse_many(cls, tokens) -> List["ArtifactStatus"]:
        """Parse status tokens, silently dropping unknown ones."""
        return parse_tokens(cls, tokens)


class CreatorType(str, Enum):
    AGENT = "agent"
    ADMIN = "admin"
    SYSTEM = "system"


class InterestCategory(str, Enum):
    PERSONAL = "personal"
    FINANCIAL = "financial"


class ProfileEditPayload(BaseModel):
    """One proposed value for one profile field."""

    artifact_type: Literal["profile_edit"] = "profile_edit"
    field_key: str
    field_label: Optional[str] = None
    proposed_value: Any = None
    previous_value: Any = None              # Value in the profile when proposed
    confidence: Confidence = Confidence.MEDIUM
    source_text: str = ""                   # Quote that led to the extraction


class InterestProposalPayload(BaseModel):
    """One suggested customer interest."""

    artifact_type: Literal["interest_proposal"] = "interest_proposal"
    category: InterestCategory
    label: str
    description: Optional[str] = None
    confidence: Confidence = Confidence.MEDIUM
    source_text: str = ""


class NotePayload(BaseModel):
    """A drafted customer note."""

    artifact_type: Literal["note"] = "note"
    content: str
    source: Optional[str] = None            # "meeting" | "call" | "email" | "voice_note"
    tags: List[str] = []


ArtifactPayload = Union[ProfileEditPayload, InterestProposalPayload, NotePayload]


class Artifact(BaseModel):
    """
    A persisted suggestion. The payload is never mutated after creation;
    decisions record their substitutions in edited_value and overrides so
    the original proposal stays auditable.
    """

    id: str
    customer_id: str
    artifact_type: ArtifactType
    payload: ArtifactPayload = Field(discriminator="artifact_type")
    status: ArtifactStatus = ArtifactStatus.PENDING
    batch_id: Optional[str] = None          # Proposal that produced this artifact
    created_by_type: CreatorType = CreatorType.AGENT
    created_by_id: Optional[str] = None
    edited_value: Any = None                # Set only on the edited transition
    overrides: Dict[str, str] = {}          # label/description chosen on acceptance
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    created_at: datetime

    @model_validator(mode="after")
    def _payload_matches_type(self) -> "Artifact":
        if self.payload.artifact_type != self.artifact_type.value:
            raise ValueError(
                f"payload of type {self.payload.artifact_type!r} does not match "
                f"artifact_type {self.artifact_type.value!r}"
            )
        return self

    def applied_value(self) -> Any:
        """The value a decision on this profile edit commits, if any."""
        if self.artifact_type != ArtifactType.PROFILE_EDIT:
            return None
        if self.status == ArtifactStatus.ACCEPTED:
            return self.payload.proposed_value
        if self.status == ArtifactStatus.EDITED:
            return self.edited_value
        return None
