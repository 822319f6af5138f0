"""
Nudge scoring — ranks empty profile fields for follow-up questions.

Score = priority weight + (section completeness² × 3)
  priority weight: high=3, medium=2, low=1
  section completeness: 0-1

Fields in nearly complete sections rank higher, so the RM is steered
toward finishing a section before starting another.
"""

import math
from typing import Any, Dict, Iterable, List

from pydantic import BaseModel

from profile_review.validation.catalogue import (
    PROFILE_SECTIONS,
    get_section_for_field,
    is_field_empty,
    section_completeness,
)

PRIORITY_WEIGHTS = {"high": 3, "medium": 2, "low": 1}


class FieldScore(BaseModel):
    field_key: str
    field_label: str
    section: str
    section_label: str
    priority: str
    section_completeness: int               # 0-100
    score: float


def calculate_field_score(priority: str, section_completeness_percent: float) -> float:
    completeness = section_completeness_percent / 100
    return PRIORITY_WEIGHTS[priority] + (completeness ** 2) * 3


def score_empty_fields(fields: Dict[str, Any]) -> List[FieldScore]:
    """Every empty catalogue field with its score, highest first."""
    scores = []
    for section in PROFILE_SECTIONS:
        completeness = section_completeness(fields, section)
        for field in section.fields:
            if not is_field_empty(fields.get(field.key)):
                continue
            scores.append(FieldScore(
                field_key=field.key,
                field_label=field.label,
                section=section.id,
                section_label=section.label,
                priority=field.priority,
                section_completeness=completeness,
                score=calculate_field_score(field.priority, completeness),
            ))
    # sorted() is stable, so equal scores keep catalogue order
    return sorted(scores, key=lambda s: s.score, reverse=True)


def select_top_fields(
    scores: List[FieldScore],
    max_questions: int = 10,
    top_fraction: float = 0.2,
) -> List[FieldScore]:
    """The top fraction of the list (rounded up), capped at max_questions."""
    if not scores:
        return []
    count = min(math.ceil(len(scores) * top_fraction), max_questions)
    return scores[:count]


def remove_extracted_fields(
    scores: List[FieldScore], extracted_keys: Iterable[str]
) -> List[FieldScore]:
    extracted = set(extracted_keys)
    return [s for s in scores if s.field_key not in extracted]


def prioritize_sections_with_extractions(
    scores: List[FieldScore], extracted_keys: Iterable[str]
) -> List[FieldScore]:
    """
    Move fields from sections the input already touched to the front,
    keeping score order inside each group.
    """
    sections = (get_section_for_field(k) for k in extracted_keys)
    touched = {s.id for s in sections if s is not None}
    if not touched:
        return scores
    return sorted(scores, key=lambda s: (s.section not in touched, -s.score))


def deduplicate_fields(
    scores: List[FieldScore],
    extracted_keys: Iterable[str],
    prioritize_sections: bool = True,
) -> List[FieldScore]:
    extracted_keys = list(extracted_keys)
    filtered = remove_extracted_fields(scores, extracted_keys)
    if prioritize_sections and extracted_keys:
        return prioritize_sections_with_extractions(filtered, extracted_keys)
    return filtered
