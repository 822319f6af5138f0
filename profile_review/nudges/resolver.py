"""
Nudge Resolver — follow-up questions for missing or uncertain fields.

Behavioral Contract:
- transform() is pure. An empty nudge set yields None: the caller must
  not render a follow-up UI at all.
- finalize() returns exactly one answer per nudge, in nudge order.
  Nudges without an answer default to skipped.
- Answered nudges flow back into a proposal as high-confidence field
  updates keyed to the nudge's field.
"""

from typing import Dict, Iterable, List, Optional, Union
from uuid import uuid4

from profile_review.models.artifact import Confidence
from profile_review.models.customer import Customer
from profile_review.models.nudge import NudgeAnswer, NudgeQuestion, NudgeSet
from profile_review.models.proposal import ProfileUpdateProposal, ProposedFieldUpdate
from profile_review.models.render import RenderNode, RenderTree
from profile_review.nudges.scoring import (
    FieldScore,
    deduplicate_fields,
    score_empty_fields,
    select_top_fields,
)
from profile_review.observability.logging import get_logger
from profile_review.validation.catalogue import field_label, get_section_for_field, is_field_empty

logger = get_logger(__name__)

ANSWER_SOURCE = "RM provided in follow-up"


def _question_for(score: FieldScore) -> NudgeQuestion:
    return NudgeQuestion(
        id=f"nudge_{uuid4().hex[:12]}",
        field_key=score.field_key,
        field_label=score.field_label,
        section=score.section,
        question=f"What is the customer's {score.field_label.lower()}?",
        why=f"Helps build a more complete {score.section_label.lower()} profile.",
    )


def _confirmation_for(update: ProposedFieldUpdate) -> NudgeQuestion:
    label = update.label or field_label(update.field)
    section = get_section_for_field(update.field)
    return NudgeQuestion(
        id=f"nudge_{uuid4().hex[:12]}",
        field_key=update.field,
        field_label=label,
        section=section.id if section else None,
        question=f'Can you confirm the customer\'s {label.lower()}? The notes suggest "{update.proposed_value}".',
        why="The extracted value was uncertain and needs verification.",
    )


def build_nudge_set(
    customer: Customer,
    extracted_fields: Iterable[ProposedFieldUpdate] = (),
    extraction_context: str = "",
    max_questions: int = 10,
    top_fraction: float = 0.2,
) -> NudgeSet:
    """
    Pick follow-up questions for a customer after an extraction.

    Low-confidence extractions get a confirmation question first. Then the
    best-scoring empty fields follow, skipping anything already extracted
    and favouring sections the input touched.
    """
    extracted = list(extracted_fields)
    extracted_keys = [f.field for f in extracted]

    confirmations = [
        _confirmation_for(f) for f in extracted if f.confidence == Confidence.LOW
    ]

    ranked = deduplicate_fields(score_empty_fields(customer.fields), extracted_keys)
    remaining = max(max_questions - len(confirmations), 0)
    selected = select_top_fields(ranked, max_questions=remaining, top_fraction=top_fraction)

    nudges = confirmations + [_question_for(s) for s in selected]
    logger.info(
        "nudge_set_built",
        customer_id=customer.id,
        confirmations=len(confirmations),
        questions=len(selected),
    )
    return NudgeSet(nudges=nudges, extraction_context=extraction_context)


def transform(nudge_set: NudgeSet, proposal_id: Optional[str] = None) -> Optional[RenderTree]:
    """Render tree for sequential follow-up questions, or None when there are none."""
    if nudge_set.is_empty():
        return None

    children = [
        RenderNode(
            type="NudgeQuestionCard",
            key=f"nudge-{nudge.id}",
            props={
                "question_id": nudge.id,
                "field_key": nudge.field_key,
                "field_label": nudge.field_label,
                "section": nudge.section,
                "question": nudge.question,
                "why": nudge.why,
                "required": nudge.required,
                "position": index + 1,
                "total": len(nudge_set.nudges),
            },
        )
        for index, nudge in enumerate(nudge_set.nudges)
    ]
    return RenderTree(root=RenderNode(
        type="NudgesCard",
        key=f"nudges-{proposal_id or 'draft'}",
        props={
            "proposal_id": proposal_id,
            "title": "Quick Follow-ups",
            "description": "A few questions to help complete the profile. "
                           "Answer what you know, skip the rest.",
            "context": nudge_set.extraction_context,
        },
        children=children,
    ))


def finalize(
    nudge_set: NudgeSet,
    partial_answers: Union[Iterable[NudgeAnswer], Dict[str, NudgeAnswer], None] = None,
) -> List[NudgeAnswer]:
    """One answer per nudge in nudge order. Missing answers are skipped."""
    if partial_answers is None:
        given = {}
    elif isinstance(partial_answers, dict):
        given = dict(partial_answers)
    else:
        given = {a.question_id: a for a in partial_answers}

    answers = []
    for nudge in nudge_set.nudges:
        answer = given.get(nudge.id)
        if answer is None:
            answers.append(NudgeAnswer(
                question_id=nudge.id, field_key=nudge.field_key, answer=None, skipped=True
            ))
        else:
            answers.append(NudgeAnswer(
                question_id=nudge.id,
                field_key=nudge.field_key,
                answer=None if answer.skipped else answer.answer,
                skipped=answer.skipped,
            ))
    return answers


def answers_to_field_updates(
    nudge_set: NudgeSet,
    answers: Iterable[NudgeAnswer],
    customer: Optional[Customer] = None,
) -> List[ProposedFieldUpdate]:
    """Answered nudges as high-confidence field updates."""
    nudges = {n.id: n for n in nudge_set.nudges}
    updates = []
    for answer in answers:
        nudge = nudges.get(answer.question_id)
        if nudge is None or answer.skipped or is_field_empty(answer.answer):
            continue
        current = customer.get(nudge.field_key) if customer else None
        updates.append(ProposedFieldUpdate(
            id=f"fu_{answer.question_id}",
            field=nudge.field_key,
            label=nudge.field_label or field_label(nudge.field_key),
            current_value=None if is_field_empty(current) else current,
            proposed_value=answer.answer.strip(),
            confidence=Confidence.HIGH,
            source=ANSWER_SOURCE,
        ))
    return updates


def merge_answers(
    proposal: ProfileUpdateProposal,
    nudge_set: NudgeSet,
    answers: Iterable[NudgeAnswer],
    customer: Optional[Customer] = None,
) -> ProfileUpdateProposal:
    """
    Fold answered nudges into a proposal. An answer replaces any extracted
    update for the same field.
    """
    from_answers = answers_to_field_updates(nudge_set, answers, customer)
    answered_keys = {u.field for u in from_answers}
    kept = [u for u in proposal.field_updates if u.field not in answered_keys]
    return proposal.model_copy(update={"field_updates": kept + from_answers})
