"""Tests for data model validation and serialization."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from profile_review.models import (
    Artifact,
    ArtifactStatus,
    ArtifactType,
    InterestProposalPayload,
    InterestStatus,
    NudgeAnswer,
    ProfileEditPayload,
    ProfileUpdateProposal,
)

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


class TestArtifactModel:
    def test_payload_discriminated_by_type(self):
        artifact = Artifact.model_validate({
            "id": "art_1",
            "customer_id": "cus_1",
            "artifact_type": "interest_proposal",
            "payload": {"artifact_type": "interest_proposal", "category": "personal", "label": "Golf"},
            "created_at": NOW.isoformat(),
        })
        assert isinstance(artifact.payload, InterestProposalPayload)
        assert artifact.status == ArtifactStatus.PENDING

    def test_mismatched_payload_rejected(self):
        with pytest.raises(ValidationError):
            Artifact(
                id="art_1",
                customer_id="cus_1",
                artifact_type=ArtifactType.NOTE,
                payload=ProfileEditPayload(field_key="industry", proposed_value="IT"),
                created_at=NOW,
            )

    def test_applied_value(self):
        payload = ProfileEditPayload(field_key="industry", proposed_value="IT")
        base = dict(id="art_1", customer_id="cus_1", artifact_type=ArtifactType.PROFILE_EDIT,
                    payload=payload, created_at=NOW)

        assert Artifact(**base).applied_value() is None
        assert Artifact(**base, status=ArtifactStatus.ACCEPTED).applied_value() == "IT"
        assert Artifact(**base, status=ArtifactStatus.REJECTED).applied_value() is None
        edited = Artifact(**base, status=ArtifactStatus.EDITED, edited_value="Finance")
        assert edited.applied_value() == "Finance"

    def test_terminal_states(self):
        assert not ArtifactStatus.PENDING.is_terminal
        assert all(s.is_terminal for s in ArtifactStatus if s != ArtifactStatus.PENDING)


class TestStatusParsing:
    def test_unknown_tokens_dropped(self):
        assert ArtifactStatus.parse_many(["accepted", "bogus", " edited ", "accepted"]) == [
            ArtifactStatus.ACCEPTED,
            ArtifactStatus.EDITED,
        ]

    def test_single_token_and_none(self):
        assert InterestStatus.parse_many("archived") == [InterestStatus.ARCHIVED]
        assert InterestStatus.parse_many(None) == []


class TestCamelCaseInput:
    def test_proposal_accepts_both_casings(self):
        camel = ProfileUpdateProposal.model_validate({
            "proposalId": "prop_1",
            "customerId": "cus_1",
            "fieldUpdates": [{"id": "f1", "field": "industry", "proposedValue": "IT"}],
        })
        snake = ProfileUpdateProposal.model_validate({
            "proposal_id": "prop_1",
            "customer_id": "cus_1",
            "field_updates": [{"id": "f1", "field": "industry", "proposed_value": "IT"}],
        })
        assert camel == snake
        assert camel.find_field_update("f1").proposed_value == "IT"
        assert camel.find_field_update("nope") is None

    def test_answer_defaults(self):
        answer = NudgeAnswer(questionId="q1", fieldKey="industry")
        assert answer.answer is None
        assert not answer.skipped
