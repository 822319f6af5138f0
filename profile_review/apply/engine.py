"""
Apply Engine — commits the RM's approved subset of a proposal.

Behavioral Contract:
- Each approved item is validated and applied on its own. A failing item
  adds a message to errors and the rest carry on; nothing is rolled back.
- Items not named in an approved-id list are left untouched. Their
  artifacts keep whatever status the review engine gave them.
- Edited values win over proposed values. The proposal itself is never
  modified, so the original suggestion stays auditable.
- Approving nothing changes nothing and succeeds with no errors.
"""

from typing import Any, Dict, List, Optional

from profile_review.customers.store import CustomerStore
from profile_review.errors import NotFoundError, ReviewError, ValidationError
from profile_review.interests.store import InterestStore
from profile_review.models.customer import RESERVED_FIELDS, AdditionalDataItem
from profile_review.models.interest import Interest
from profile_review.models.proposal import (
    ApplyResult,
    ApplyUpdatesRequest,
    ProfileUpdateProposal,
)
from profile_review.observability.logging import get_logger
from profile_review.storage.database import utcnow

logger = get_logger(__name__)


class ApplyEngine:

    def __init__(self, customers: CustomerStore, interests: InterestStore):
        self.customers = customers
        self.interests = interests
        self.validator = customers.validator

    def apply_updates(
        self,
        customer_id: str,
        request: ApplyUpdatesRequest,
        proposal: ProfileUpdateProposal,
    ) -> ApplyResult:
        if not request.proposal_id or request.proposal_id != proposal.proposal_id:
            raise ValidationError("Proposal ID and proposal data are required")
        if proposal.customer_id != customer_id:
            raise NotFoundError("Proposal not found for this customer")
        self.customers.get(customer_id)

        errors: List[str] = []
        fields_updated = self._apply_fields(customer_id, request, proposal, errors)
        additional_added = self._apply_additional_data(customer_id, request, proposal, errors)
        interests = self._apply_interests(customer_id, request, proposal, errors)
        note_created = self._apply_note(customer_id, request, proposal, errors)

        result = ApplyResult(
            updated_customer=self.customers.get(customer_id),
            errors=errors,
            fields_updated=fields_updated,
            additional_data_added=additional_added,
            interests_created=interests,
            note_created=note_created,
        )
        logger.info(
            "proposal_applied",
            customer_id=customer_id,
            proposal_id=proposal.proposal_id,
            fields_updated=fields_updated,
            additional_data_added=additional_added,
            interests_created=len(interests),
            note_created=note_created,
            error_count=len(errors),
        )
        return result

    def _apply_fields(
        self,
        customer_id: str,
        request: ApplyUpdatesRequest,
        proposal: ProfileUpdateProposal,
        errors: List[str],
    ) -> int:
        staged: Dict[str, Any] = {}
        for field_id in request.approved_field_ids:
            update = proposal.find_field_update(field_id)
            if update is None:
                errors.append(f"Field update {field_id} not found in proposal")
                continue
            if update.field in RESERVED_FIELDS:
                errors.append(f"Cannot update reserved field {update.field}")
                continue

            if field_id in request.edited_values:
                value = request.edited_values[field_id]
            else:
                value = update.proposed_value

            validation = self.validator.validate(update.field, value)
            if not validation.valid:
                errors.append(f"Invalid value for {update.label or update.field}: {validation.error}")
                continue
            staged[update.field] = validation.value

        if not staged:
            return 0
        try:
            self.customers.update_fields(customer_id, staged)
        except ReviewError as e:
            errors.append(f"Failed to update profile fields: {e.message}")
            return 0
        return len(staged)

    def _apply_additional_data(
        self,
        customer_id: str,
        request: ApplyUpdatesRequest,
        proposal: ProfileUpdateProposal,
        errors: List[str],
    ) -> int:
        items: List[AdditionalDataItem] = []
        now = utcnow()
        for data_id in request.approved_additional_data_ids:
            data = proposal.find_additional_data(data_id)
            if data is None:
                errors.append(f"Additional data {data_id} not found in proposal")
                continue

            if data_id in request.edited_additional_data:
                value = request.edited_additional_data[data_id]
            else:
                value = data.value

            validation = self.validator.validate(data.key, value)
            if not validation.valid:
                errors.append(f"Invalid value for {data.label}: {validation.error}")
                continue
            items.append(AdditionalDataItem(
                key=data.key,
                label=data.label,
                value=validation.value,
                confidence=data.confidence,
                source=data.source,
                category=data.category,
                added_at=now,
                added_by=request.rm_id,
            ))

        if not items:
            return 0
        try:
            self.customers.append_additional_data(customer_id, items)
        except ReviewError as e:
            errors.append(f"Failed to add additional data: {e.message}")
            return 0
        return len(items)

    def _apply_interests(
        self,
        customer_id: str,
        request: ApplyUpdatesRequest,
        proposal: ProfileUpdateProposal,
        errors: List[str],
    ) -> List[Interest]:
        created: List[Interest] = []
        for interest_id in request.approved_interest_ids:
            item = proposal.find_interest(interest_id)
            if item is None:
                errors.append(f"Interest {interest_id} not found in proposal")
                continue

            edit = request.edited_interests.get(interest_id)
            label = edit.label if edit and edit.label else None
            description = edit.description if edit and edit.description is not None else None
            name = label.strip() if label and label.strip() else item.label

            try:
                if item.artifact_id:
                    interest = self.interests.create_from_artifact(
                        item.artifact_id,
                        request.rm_id,
                        label=label,
                        description=description,
                        customer_id=customer_id,
                    )
                else:
                    interest = self.interests.create_manual(
                        customer_id,
                        request.rm_id,
                        item.category,
                        label or item.label,
                        description if description is not None else item.description,
                    )
            except ReviewError as e:
                errors.append(f"Failed to create interest {name}: {e.message}")
                continue
            except Exception:
                logger.exception("interest_apply_failed", interest_id=interest_id)
                errors.append(f"Failed to create interest {name}")
                continue
            created.append(interest)
        return created

    def _apply_note(
        self,
        customer_id: str,
        request: ApplyUpdatesRequest,
        proposal: ProfileUpdateProposal,
        errors: List[str],
    ) -> bool:
        if not request.approved_note:
            return False

        note = proposal.note
        content: Optional[str] = request.edited_note_content
        if content is None:
            if note is None:
                errors.append("Failed to create note: proposal has no note")
                return False
            content = note.content

        approved = set(request.approved_field_ids)
        try:
            self.customers.add_note(
                customer_id,
                content=content,
                source=note.source if note else None,
                tags=note.tags if note else [],
                raw_input=proposal.raw_input or None,
                metadata={
                    "proposal_id": proposal.proposal_id,
                    "fields_approved": list(request.approved_field_ids),
                    "fields_rejected": [
                        f.id for f in proposal.field_updates if f.id not in approved
                    ],
                },
                created_by=request.rm_id,
            )
        except ReviewError as e:
            errors.append(f"Failed to create note: {e.message}")
            return False
        return True
