"""
Review/Approval Engine — applies one RM decision to one artifact.

Behavioral Contract:
- Dispatch is exhaustive over the artifact types:
    profile_edit       → accepted | rejected | edited
    interest_proposal  → accepted (confirms an Interest) | rejected
    note               → accepted (persists a customer note) | rejected
- pending is never a valid decision.
- edited requires a value and is only defined for profile edits.
- Side effects of an acceptance commit in the same transaction as the
  artifact transition, or not at all.
"""

from typing import Any, Optional

from profile_review.artifacts.store import ArtifactStore
from profile_review.customers.store import CustomerStore
from profile_review.errors import InvalidStateError, ValidationError
from profile_review.interests.store import InterestStore
from profile_review.models.artifact import (
    Artifact,
    ArtifactStatus,
    ArtifactType,
    CreatorType,
    InterestProposalPayload,
    NotePayload,
    ProfileEditPayload,
)
from profile_review.models.proposal import ProfileUpdateProposal
from profile_review.models.review import ReviewDecision
from profile_review.observability.logging import get_logger

logger = get_logger(__name__)

DECIDABLE_STATUSES = (ArtifactStatus.ACCEPTED, ArtifactStatus.REJECTED, ArtifactStatus.EDITED)


def parse_decision(status: Any) -> ArtifactStatus:
    """Parse a requested decision, rejecting pending and unknown values."""
    allowed = ", ".join(s.value for s in DECIDABLE_STATUSES)
    try:
        parsed = ArtifactStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid status. Must be one of: {allowed}")
    if parsed not in DECIDABLE_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {allowed}")
    return parsed


class ReviewEngine:
    """Per-artifact decisions and proposal ingestion."""

    def __init__(
        self,
        artifacts: ArtifactStore,
        interests: InterestStore,
        customers: CustomerStore,
    ):
        self.artifacts = artifacts
        self.interests = interests
        self.customers = customers
        self.db = artifacts.db

    def decide(
        self,
        artifact_id: str,
        status: Any,
        actor_id: Optional[str] = None,
        edited_value: Any = None,
        label: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ReviewDecision:
        decision = parse_decision(status)
        if decision == ArtifactStatus.EDITED and edited_value is None:
            raise ValidationError("edited_value is required when status is 'edited'")

        artifact = self.artifacts.get_by_id(artifact_id)

        if artifact.artifact_type == ArtifactType.PROFILE_EDIT:
            result = self._decide_profile_edit(artifact, decision, actor_id, edited_value)
        elif artifact.artifact_type == ArtifactType.INTEREST_PROPOSAL:
            result = self._decide_interest(artifact, decision, actor_id, label, description)
        elif artifact.artifact_type == ArtifactType.NOTE:
            result = self._decide_note(artifact, decision, actor_id)
        else:
            raise InvalidStateError(f"Unsupported artifact type: {artifact.artifact_type}")

        logger.info(
            "review_decision_recorded",
            artifact_id=artifact_id,
            artifact_type=artifact.artifact_type.value,
            status=decision.value,
            actor_id=actor_id,
        )
        return result

    def _decide_profile_edit(
        self,
        artifact: Artifact,
        decision: ArtifactStatus,
        actor_id: Optional[str],
        edited_value: Any,
    ) -> ReviewDecision:
        if decision == ArtifactStatus.ACCEPTED:
            decided = self.artifacts.accept_profile_edit(artifact.id, decided_by=actor_id)
        elif decision == ArtifactStatus.REJECTED:
            decided = self.artifacts.reject_profile_edit(artifact.id, decided_by=actor_id)
        else:
            decided = self.artifacts.accept_profile_edit_with_edits(
                artifact.id, edited_value, decided_by=actor_id
            )
        return ReviewDecision(artifact=decided)

    def _decide_interest(
        self,
        artifact: Artifact,
        decision: ArtifactStatus,
        actor_id: Optional[str],
        label: Optional[str],
        description: Optional[str],
    ) -> ReviewDecision:
        if decision == ArtifactStatus.EDITED:
            raise InvalidStateError("Interest proposals cannot be edited; accept with overrides")
        if decision == ArtifactStatus.REJECTED:
            decided = self.artifacts.reject_interest_proposal(artifact.id, decided_by=actor_id)
            return ReviewDecision(artifact=decided)

        interest = self.interests.create_from_artifact(
            artifact.id, actor_id, label=label, description=description
        )
        return ReviewDecision(artifact=self.artifacts.get_by_id(artifact.id), interest=interest)

    def _decide_note(
        self,
        artifact: Artifact,
        decision: ArtifactStatus,
        actor_id: Optional[str],
    ) -> ReviewDecision:
        if decision == ArtifactStatus.EDITED:
            raise InvalidStateError("Notes cannot be edited through a review decision")
        if decision == ArtifactStatus.REJECTED:
            decided = self.artifacts.reject_note(artifact.id, decided_by=actor_id)
            return ReviewDecision(artifact=decided)

        with self.db.transaction():
            decided = self.artifacts.accept_note(artifact.id, decided_by=actor_id)
            payload = decided.payload
            note = self.customers.add_note(
                decided.customer_id,
                content=payload.content,
                source=payload.source,
                tags=payload.tags,
                metadata={"artifact_id": decided.id, "proposal_id": decided.batch_id},
                created_by=actor_id,
            )
        return ReviewDecision(artifact=decided, note=note)

    def record_proposal(
        self,
        proposal: ProfileUpdateProposal,
        actor_id: Optional[str] = None,
    ) -> ProfileUpdateProposal:
        """
        Persist a proposal's field updates, interests and note as pending
        artifacts under batch_id = proposal_id. Items that already carry an
        artifact_id are left alone. Returns the proposal with ids filled in.
        """
        self.customers.get(proposal.customer_id)

        field_updates = list(proposal.field_updates)
        interests = list(proposal.interests)
        note = proposal.note

        pending = []                        # (kind, index, payload)
        for i, update in enumerate(field_updates):
            if update.artifact_id is None:
                pending.append(("field", i, ProfileEditPayload(
                    field_key=update.field,
                    field_label=update.label,
                    proposed_value=update.proposed_value,
                    previous_value=update.current_value,
                    confidence=update.confidence,
                    source_text=update.source,
                )))
        for i, item in enumerate(interests):
            if item.artifact_id is None:
                pending.append(("interest", i, InterestProposalPayload(
                    category=item.category,
                    label=item.label,
                    description=item.description,
                    confidence=item.confidence,
                    source_text=item.source_text,
                )))
        if note is not None and note.artifact_id is None:
            pending.append(("note", 0, NotePayload(
                content=note.content, source=note.source, tags=note.tags
            )))

        created = self.artifacts.create_batch(
            proposal.customer_id,
            [p for _, _, p in pending],
            batch_id=proposal.proposal_id,
            created_by_type=CreatorType.AGENT,
            created_by_id=actor_id,
        )

        for (kind, index, _), artifact in zip(pending, created):
            if kind == "field":
                field_updates[index] = field_updates[index].model_copy(
                    update={"artifact_id": artifact.id}
                )
            elif kind == "interest":
                interests[index] = interests[index].model_copy(
                    update={"artifact_id": artifact.id}
                )
            else:
                note = note.model_copy(update={"artifact_id": artifact.id})

        logger.info(
            "proposal_recorded",
            proposal_id=proposal.proposal_id,
            customer_id=proposal.customer_id,
            artifacts=len(created),
        )
        return proposal.model_copy(update={
            "field_updates": field_updates,
            "interests": interests,
            "note": note,
        })
