"""Tests for the Interest Store."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from profile_review.artifacts.store import ArtifactStore
from profile_review.errors import InvalidStateError, NotFoundError, ValidationError
from profile_review.interests.store import InterestStore
from profile_review.models.artifact import ArtifactStatus, Confidence, InterestCategory
from profile_review.models.interest import (
    InterestAuditAction,
    InterestSourceType,
    InterestStatus,
)
from profile_review.storage.database import Database

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def stores():
    db = Database(":memory:")
    artifacts = ArtifactStore(db)
    return artifacts, InterestStore(db, artifacts)


class TestManualInterests:
    def test_create_manual_is_confirmed(self, stores):
        _, interests = stores
        interest = interests.create_manual("cus_1", "rm_1", "financial", "Gold ETFs", "Prefers SGBs")
        assert interest.status == InterestStatus.CONFIRMED
        assert interest.source_type == InterestSourceType.MANUAL
        assert interest.source_artifact_id is None
        assert interest.created_by == "rm_1"
        assert interests.get_by_id(interest.id) == interest

    def test_rm_required(self, stores):
        _, interests = stores
        with pytest.raises(ValidationError):
            interests.create_manual("cus_1", None, "personal", "Chess")

    def test_invalid_category(self, stores):
        _, interests = stores
        with pytest.raises(ValidationError):
            interests.create_manual("cus_1", "rm_1", "hobby", "Chess")

    def test_manual_audit(self, stores):
        _, interests = stores
        interest = interests.create_manual("cus_1", "rm_1", "personal", "Chess")
        history = interests.get_audit_history(interest.id)
        assert len(history) == 1
        assert history[0].action == InterestAuditAction.CREATED
        assert history[0].new_state["label"] == "Chess"
        assert history[0].previous_state is None


class TestInterestFromArtifact:
    def test_confirm_uses_payload(self, stores):
        artifacts, interests = stores
        artifact = artifacts.create_interest_proposal(
            "cus_1", InterestCategory.PERSONAL, "Golf",
            description="Plays on weekends",
            confidence=Confidence.HIGH,
            source_text="he plays golf every Sunday",
        )
        interest = interests.create_from_artifact(artifact.id, "rm_1")

        assert interest.customer_id == "cus_1"
        assert interest.label == "Golf"
        assert interest.source_type == InterestSourceType.SYSTEM_SUGGESTED
        assert interest.source_artifact_id == artifact.id
        assert interest.confidence == Confidence.HIGH
        assert interest.source_text == "he plays golf every Sunday"

        decided = artifacts.get_by_id(artifact.id)
        assert decided.status == ArtifactStatus.ACCEPTED
        assert decided.decided_by == "rm_1"
        assert interests.get_audit_history(interest.id)[0].action == InterestAuditAction.CONFIRMED

    def test_overrides_win(self, stores):
        artifacts, interests = stores
        artifact = artifacts.create_interest_proposal("cus_1", InterestCategory.PERSONAL, "Golf")
        interest = interests.create_from_artifact(
            artifact.id, "rm_1", label="Competitive golf", description="Handicap 12"
        )
        assert interest.label == "Competitive golf"
        assert interest.description == "Handicap 12"
        assert artifacts.get_by_id(artifact.id).payload.label == "Golf"

    def test_blank_label_override_refused(self, stores):
        artifacts, interests = stores
        artifact = artifacts.create_interest_proposal("cus_1", InterestCategory.PERSONAL, "Golf")
        with pytest.raises(ValidationError, match="Label cannot be empty"):
            interests.create_from_artifact(artifact.id, "rm_1", label="   ")
        assert artifacts.get_by_id(artifact.id).status == ArtifactStatus.PENDING
        assert interests.list_by_customer("cus_1") == []

    def test_label_override_is_trimmed(self, stores):
        artifacts, interests = stores
        artifact = artifacts.create_interest_proposal("cus_1", InterestCategory.PERSONAL, "Golf")
        interest = interests.create_from_artifact(artifact.id, "rm_1", label="  Links golf ")
        assert interest.label == "Links golf"

    def test_empty_description_override_clears(self, stores):
        artifacts, interests = stores
        artifact = artifacts.create_interest_proposal(
            "cus_1", InterestCategory.PERSONAL, "Golf", description="old"
        )
        interest = interests.create_from_artifact(artifact.id, "rm_1", description="")
        assert interest.description == ""
        assert artifacts.get_by_id(artifact.id).overrides == {"description": ""}

    def test_second_confirmation_fails(self, stores):
        artifacts, interests = stores
        artifact = artifacts.create_interest_proposal("cus_1", InterestCategory.PERSONAL, "Golf")
        interests.create_from_artifact(artifact.id, "rm_1")
        with pytest.raises(InvalidStateError):
            interests.create_from_artifact(artifact.id, "rm_2")
        assert len(interests.list_by_customer("cus_1")) == 1

    def test_rejected_artifact_creates_nothing(self, stores):
        artifacts, interests = stores
        artifact = artifacts.create_interest_proposal("cus_1", InterestCategory.FINANCIAL, "REITs")
        artifacts.reject_interest_proposal(artifact.id)
        with pytest.raises(InvalidStateError):
            interests.create_from_artifact(artifact.id, "rm_1")
        assert interests.list_by_customer("cus_1") == []

    def test_wrong_type(self, stores):
        artifacts, interests = stores
        edit = artifacts.create_profile_edit("cus_1", "city_of_residence", "Pune")
        with pytest.raises(InvalidStateError):
            interests.create_from_artifact(edit.id, "rm_1")
        assert artifacts.get_by_id(edit.id).status == ArtifactStatus.PENDING

    def test_other_customers_artifact_is_not_found(self, stores):
        artifacts, interests = stores
        artifact = artifacts.create_interest_proposal("cus_1", InterestCategory.PERSONAL, "Golf")
        with pytest.raises(NotFoundError):
            interests.create_from_artifact(artifact.id, "rm_1", customer_id="cus_2")
        assert artifacts.get_by_id(artifact.id).status == ArtifactStatus.PENDING

    def test_concurrent_confirmations_create_exactly_one(self, stores):
        artifacts, interests = stores
        artifact = artifacts.create_interest_proposal("cus_1", InterestCategory.PERSONAL, "Golf")

        def confirm(i):
            try:
                return interests.create_from_artifact(artifact.id, f"rm_{i}")
            except InvalidStateError:
                return None

        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(pool.map(confirm, range(20)))

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        assert len(interests.list_by_customer("cus_1")) == 1
        assert artifacts.get_by_id(artifact.id).status == ArtifactStatus.ACCEPTED
        assert artifacts.get_by_id(artifact.id).decided_by == winners[0].created_by


class TestInterestUpdates:
    def setup_method(self):
        db = Database(":memory:")
        self.interests = InterestStore(db)
        self.interest = self.interests.create_manual("cus_1", "rm_1", "personal", "Chess")

    def test_partial_update(self):
        updated = self.interests.update(self.interest.id, "rm_2", description="Rated 1800")
        assert updated.label == "Chess"
        assert updated.description == "Rated 1800"
        assert updated.status == InterestStatus.CONFIRMED
        assert updated.category == InterestCategory.PERSONAL
        assert self.interests.get_by_id(self.interest.id).description == "Rated 1800"

        history = self.interests.get_audit_history(self.interest.id)
        assert [h.action for h in history] == [InterestAuditAction.EDITED, InterestAuditAction.CREATED]
        assert history[0].previous_state["description"] is None
        assert history[0].actor_id == "rm_2"

    def test_update_requires_a_field(self):
        with pytest.raises(ValidationError):
            self.interests.update(self.interest.id, "rm_1")

    def test_update_missing(self):
        with pytest.raises(NotFoundError):
            self.interests.update("int_missing", "rm_1", label="x")

    def test_archive_is_soft_and_first_wins(self):
        first = self.interests.archive(self.interest.id, "rm_1")
        assert first.status == InterestStatus.ARCHIVED
        assert first.archived_by == "rm_1"

        again = self.interests.archive(self.interest.id, "rm_2")
        assert again.archived_by == "rm_1"
        assert again.archived_at == first.archived_at

        stored = self.interests.get_by_id(self.interest.id)
        assert stored.archived_by == "rm_1"
        assert stored.archived_at == first.archived_at

        actions = [h.action for h in self.interests.get_audit_history(self.interest.id)]
        assert actions.count(InterestAuditAction.ARCHIVED) == 1


class TestInterestListing:
    def setup_method(self):
        self.interests = InterestStore(Database(":memory:"))
        self.chess = self.interests.create_manual(
            "cus_1", "rm_1", "personal", "Chess", created_at=T0
        )
        self.gold = self.interests.create_manual(
            "cus_1", "rm_1", "financial", "Gold", created_at=T0 + timedelta(minutes=1)
        )
        self.golf = self.interests.create_manual(
            "cus_1", "rm_1", "personal", "Golf", created_at=T0 + timedelta(minutes=2)
        )
        self.interests.archive(self.chess.id, "rm_1")

    def test_archived_excluded_by_default(self):
        listed = self.interests.list_by_customer("cus_1")
        assert [i.id for i in listed] == [self.golf.id, self.gold.id]

    def test_include_archived(self):
        listed = self.interests.list_by_customer("cus_1", include_archived=True)
        assert [i.id for i in listed] == [self.golf.id, self.gold.id, self.chess.id]

    def test_explicit_archived_status(self):
        listed = self.interests.list_by_customer("cus_1", status="archived")
        assert [i.id for i in listed] == [self.chess.id]

    def test_category_filter(self):
        listed = self.interests.list_by_customer("cus_1", category="personal")
        assert [i.id for i in listed] == [self.golf.id]

    def test_pagination(self):
        listed = self.interests.list_by_customer("cus_1", limit=1, offset=1)
        assert [i.id for i in listed] == [self.gold.id]

    def test_label_collision_keeps_both_rows(self):
        artifacts = self.interests.artifacts
        artifact = artifacts.create_interest_proposal("cus_1", InterestCategory.PERSONAL, "Golf")
        self.interests.create_from_artifact(artifact.id, "rm_1")
        golfs = [i for i in self.interests.list_by_customer("cus_1") if i.label == "Golf"]
        assert len(golfs) == 2
