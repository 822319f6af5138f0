"""
Profile Update Proposal — the transient bundle an RM reviews in one pass.

A proposal is never persisted as one row. Its items may be backed by
artifacts (artifact_id), and every item carries its own id so that the
RM can approve any subset.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from profile_review.models.artifact import Confidence, InterestCategory
from profile_review.models.customer import Customer
from profile_review.models.interest import Interest, InterestEdit


class ProposedFieldUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    field: str                              # Profile field key
    label: Optional[str] = None
    current_value: Any = None
    proposed_value: Any = None
    confidence: Confidence = Confidence.MEDIUM
    source: str = ""                        # Quote from the input
    artifact_id: Optional[str] = None


class ProposedAdditionalData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    key: str
    label: str
    value: Any = None
    confidence: Confidence = Confidence.MEDIUM
    source: str = ""
    category: Optional[str] = None


class ProposedInterest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    category: InterestCategory
    label: str
    description: Optional[str] = None
    source_text: str = ""
    confidence: Confidence = Confidence.MEDIUM
    artifact_id: Optional[str] = None


class ProposedNote(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    content: str
    source: str = "meeting"
    tags: List[str] = []
    artifact_id: Optional[str] = None


class ProfileUpdateProposal(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    proposal_id: str
    customer_id: str
    field_updates: List[ProposedFieldUpdate] = []
    additional_data: List[ProposedAdditionalData] = []
    interests: List[ProposedInterest] = []
    note: Optional[ProposedNote] = None
    raw_input: str = ""
    created_at: Optional[datetime] = None

    def find_field_update(self, item_id: str) -> Optional[ProposedFieldUpdate]:
        return next((f for f in self.field_updates if f.id == item_id), None)

    def find_additional_data(self, item_id: str) -> Optional[ProposedAdditionalData]:
        return next((d for d in self.additional_data if d.id == item_id), None)

    def find_interest(self, item_id: str) -> Optional[ProposedInterest]:
        return next((i for i in self.interests if i.id == item_id), None)


class ApplyUpdatesRequest(BaseModel):
    """The RM's selection over one proposal."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    proposal_id: str
    approved_field_ids: List[str] = []
    approved_additional_data_ids: List[str] = []
    approved_interest_ids: List[str] = []
    approved_note: bool = False
    edited_values: Dict[str, Any] = {}
    edited_additional_data: Dict[str, Any] = {}
    edited_interests: Dict[str, InterestEdit] = {}
    edited_note_content: Optional[str] = None
    rm_id: Optional[str] = None


class ApplyResult(BaseModel):
    """Outcome of applying a proposal. Non-empty errors means partial failure."""

    updated_customer: Customer
    errors: List[str] = []
    fields_updated: int = 0
    additional_data_added: int = 0
    interests_created: List[Interest] = []
    note_created: bool = False

    @property
    def success(self) -> bool:
        return not self.errors
