"""Proposal render tree: field updates grouped by confidence, then extras, then the note."""

from typing import Dict, List

from profile_review.models.artifact import Confidence
from profile_review.models.proposal import ProfileUpdateProposal, ProposedFieldUpdate
from profile_review.models.render import RenderNode, RenderTree

CONFIDENCE_GROUPS = {
    Confidence.HIGH: ("High Confidence", "Clearly stated in the input"),
    Confidence.MEDIUM: ("Medium Confidence", "Strongly implied"),
    Confidence.LOW: ("Needs Review", "Requires careful verification"),
}


def group_by_confidence(
    field_updates: List[ProposedFieldUpdate],
) -> Dict[Confidence, List[ProposedFieldUpdate]]:
    groups: Dict[Confidence, List[ProposedFieldUpdate]] = {c: [] for c in CONFIDENCE_GROUPS}
    for update in field_updates:
        groups[update.confidence].append(update)
    return groups


def proposal_to_tree(proposal: ProfileUpdateProposal) -> RenderTree:
    children: List[RenderNode] = []

    for confidence, updates in group_by_confidence(proposal.field_updates).items():
        if not updates:
            continue
        label, description = CONFIDENCE_GROUPS[confidence]
        children.append(RenderNode(
            type="ConfidenceGroup",
            key=f"confidence-{confidence.value}",
            props={
                "confidence": confidence.value,
                "label": label,
                "description": description,
                "field_count": len(updates),
                # Uncertain values are opened for review
                "default_open": confidence == Confidence.LOW,
            },
            children=[
                RenderNode(
                    type="FieldUpdateCard",
                    key=f"field-{u.id}",
                    props={
                        "field_id": u.id,
                        "field_key": u.field,
                        "label": u.label,
                        "current_value": u.current_value,
                        "proposed_value": u.proposed_value,
                        "confidence": u.confidence.value,
                        "source": u.source,
                        "artifact_id": u.artifact_id,
                    },
                )
                for u in updates
            ],
        ))

    for data in proposal.additional_data:
        children.append(RenderNode(
            type="AdditionalDataCard",
            key=f"additional-{data.id}",
            props={
                "data_id": data.id,
                "key": data.key,
                "label": data.label,
                "value": data.value,
                "confidence": data.confidence.value,
                "source": data.source,
                "category": data.category,
            },
        ))

    for interest in proposal.interests:
        children.append(RenderNode(
            type="InterestProposalCard",
            key=f"interest-{interest.id}",
            props={
                "interest_id": interest.id,
                "category": interest.category.value,
                "label": interest.label,
                "description": interest.description,
                "confidence": interest.confidence.value,
                "source_text": interest.source_text,
                "artifact_id": interest.artifact_id,
            },
        ))

    if proposal.note is not None:
        children.append(RenderNode(
            type="NoteProposalCard",
            key=f"note-{proposal.note.id}",
            props={
                "note_id": proposal.note.id,
                "content": proposal.note.content,
                "source": proposal.note.source,
                "tags": proposal.note.tags,
            },
        ))

    return RenderTree(root=RenderNode(
        type="ProposalCard",
        key=f"proposal-{proposal.proposal_id}",
        props={
            "proposal_id": proposal.proposal_id,
            "customer_id": proposal.customer_id,
            "title": "Proposed Profile Updates",
            "description": "Review the extracted information and approve or reject each field.",
        },
        children=children,
    ))
