"""Profile review data models."""

from profile_review.models.artifact import (
    Artifact,
    ArtifactPayload,
    ArtifactStatus,
    ArtifactType,
    Confidence,
    CreatorType,
    InterestCategory,
    InterestProposalPayload,
    NotePayload,
    ProfileEditPayload,
)
from profile_review.models.customer import (
    RESERVED_FIELDS,
    AdditionalDataItem,
    Customer,
    CustomerNote,
)
from profile_review.models.interest import (
    ActorType,
    Interest,
    InterestAuditAction,
    InterestAuditRecord,
    InterestEdit,
    InterestSourceType,
    InterestStatus,
)
from profile_review.models.nudge import NudgeAnswer, NudgeQuestion, NudgeSet
from profile_review.models.proposal import (
    ApplyResult,
    ApplyUpdatesRequest,
    ProfileUpdateProposal,
    ProposedAdditionalData,
    ProposedFieldUpdate,
    ProposedInterest,
    ProposedNote,
)
from profile_review.models.render import RenderNode, RenderTree
from profile_review.models.review import ReviewDecision

__all__ = [
    "ActorType",
    "AdditionalDataItem",
    "ApplyResult",
    "ApplyUpdatesRequest",
    "Artifact",
    "ArtifactPayload",
    "ArtifactStatus",
    "ArtifactType",
    "Confidence",
    "CreatorType",
    "Customer",
    "CustomerNote",
    "Interest",
    "InterestAuditAction",
    "InterestAuditRecord",
    "InterestCategory",
    "InterestEdit",
    "InterestProposalPayload",
    "InterestSourceType",
    "InterestStatus",
    "NotePayload",
    "NudgeAnswer",
    "NudgeQuestion",
    "NudgeSet",
    "ProfileEditPayload",
    "ProfileUpdateProposal",
    "ProposedAdditionalData",
    "ProposedFieldUpdate",
    "ProposedInterest",
    "ProposedNote",
    "RESERVED_FIELDS",
    "RenderNode",
    "RenderTree",
    "ReviewDecision",
]
